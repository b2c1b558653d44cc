import pulumi
import pulumi_eks as eks
import pulumi_awsx as awsx
from dataclasses import dataclass
from typing import Optional

@dataclass
class ClusterSizing:
  k8s_version: str = "1.31"
  instance_type: str = "t3.medium"    # 2 vCPU, 4GB RAM. Minimum for EKS + Argo + Jenkins + Kyverno
  desired_capacity: int = 2
  min_size: int = 1
  max_size: int = 3

def create_k8s_cluster(
    vpc: awsx.ec2.Vpc,
    cluster_name: str,
    sizing: Optional[ClusterSizing] = None,
    tags: Optional[dict] = None,
) -> eks.Cluster:
  if tags is None:
    tags = {}
  if sizing is None:
    sizing = ClusterSizing()

  cluster = eks.Cluster(cluster_name,
    name=cluster_name,                          # Fixed name; the pipeline's platform check looks it up
    version=sizing.k8s_version,
    storage_classes={
      "gp3": eks.StorageClassArgs(
        type="gp3",
        default=True,
        encrypted=True,
        reclaim_policy="Delete"
      )
    },
    vpc_id=vpc.vpc_id,
    public_subnet_ids=vpc.public_subnet_ids,    # Load balancers
    private_subnet_ids=vpc.private_subnet_ids,  # Worker nodes
    instance_type=sizing.instance_type,
    desired_capacity=sizing.desired_capacity,
    min_size=sizing.min_size,
    max_size=sizing.max_size,
    enabled_cluster_log_types=[
      "api",
      "audit",
      "authenticator",
    ],
    create_oidc_provider=True,                  # IRSA, lets pods assume IAM roles
    tags=tags
  )

  pulumi.export("kubeconfig", cluster.kubeconfig)
  pulumi.export("cluster_name", cluster.eks_cluster.name)
  pulumi.export("cluster_oidc_url", cluster.core.oidc_provider.url)

  return cluster

def sizing_from_config(config: pulumi.Config) -> ClusterSizing:
  # Explicit 0 is valid for min_size/desired_capacity (scale-to-zero), so only unset keys fall back
  defaults = ClusterSizing()
  return ClusterSizing(
    k8s_version=config.get("k8s_version", defaults.k8s_version),
    instance_type=config.get("node_instance_type", defaults.instance_type),
    desired_capacity=config.get_int("desired_capacity", defaults.desired_capacity),
    min_size=config.get_int("min_size", defaults.min_size),
    max_size=config.get_int("max_size", defaults.max_size),
  )
