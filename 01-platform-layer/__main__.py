"""Platform layer of the CI/CD demo: network, cluster, registry, Jenkins, ArgoCD, Kyverno"""

import pulumi
import pulumi_kubernetes as kubernetes
from components.vpc import create_vpc
from components.ecr import create_registry
from components.eks import create_k8s_cluster, sizing_from_config
from components.jenkins import create_jenkins
from components.argocd import create_argocd, create_applications
from components.kyverno import create_kyverno, create_policies

config = pulumi.Config()
cluster_name = config.get("cluster_name") or "demo-cluster"
repo_url = config.require("repo_url")
repo_revision = config.get("repo_revision") or "main"
environments = config.get_object("environments") or ["dev", "staging", "prod"]
policy_action = config.get("policy_action") or "Enforce"

sizing = sizing_from_config(config)

# Secrets: pulumi config set --secret jenkins_password <password>
#          pulumi config set --secret argocd_admin_password_hash "$(htpasswd -nbBC 10 '' <password> | tr -d ':\n')"
jenkins_password = config.require_secret("jenkins_password")
argocd_password_hash = config.require_secret("argocd_admin_password_hash")

aws_config = pulumi.Config("aws")
region = aws_config.get("region") or "us-east-1"

common_tags = {
  "Project": "cicd-pipeline-demo",
  "ManagedBy": "Pulumi",
}

vpc = create_vpc(cluster_name, availability_zones=config.get_int("availability_zones", 2), tags=common_tags)
registry = create_registry("demo-app", tags=common_tags)
cluster = create_k8s_cluster(vpc, cluster_name, sizing, tags=common_tags)
k8s_provider = kubernetes.Provider("k8s-provider",
  kubeconfig=cluster.kubeconfig,
  opts=pulumi.ResourceOptions(depends_on=[cluster])
)

kyverno = create_kyverno("kyverno", k8s_provider)
create_policies(k8s_provider, action=policy_action, depends_on=[kyverno])

jenkins = create_jenkins("jenkins", k8s_provider,
  repo_url=repo_url,
  repo_branch=repo_revision,
  cluster=cluster,
  registry=registry,
  region=region,
  tags=common_tags,
  admin_password=jenkins_password,
)

argocd = create_argocd("argocd", k8s_provider, argocd_password_hash)
create_applications(environments, "argocd", k8s_provider, repo_url, repo_revision, depends_on=[argocd])

pulumi.export("vpc_id", vpc.vpc_id)
pulumi.export("kubeconfig", cluster.kubeconfig)
pulumi.export("cluster_name", cluster.eks_cluster.name)
pulumi.export("ecr_registry_url", registry.repository_url)
