import pulumi
import pulumi_kubernetes as kubernetes
import pulumi_kubernetes.helm.v4 as helm
from typing import List, Optional

from pipeline_demo.policies import cluster_policies

def create_kyverno(namespace: str, k8s_provider: kubernetes.Provider):

  ns = kubernetes.core.v1.Namespace("kyverno-ns",
    metadata=kubernetes.meta.v1.ObjectMetaArgs(
      name=namespace
    ),
    opts=pulumi.ResourceOptions(provider=k8s_provider)
  )

  kyverno_chart = helm.Chart("kyverno",
    chart="kyverno",
    version="3.2.6",
    repository_opts=helm.RepositoryOptsArgs(
      repo="https://kyverno.github.io/kyverno/"
    ),
    namespace=namespace,
    values={
      "admissionController": {
        "replicas": 1,                              # 3 for HA; one is enough on a 2 node demo cluster
        "container": {
          "resources": {
            "requests": {"cpu": "100m", "memory": "128Mi"},
            "limits": {"memory": "384Mi"}
          }
        }
      },
      "backgroundController": {"replicas": 1},
      "cleanupController": {"enabled": False},
      "reportsController": {"replicas": 1},
      # Never lock ourselves out of the platform namespaces
      "config": {
        "resourceFiltersExcludeNamespaces": ["kube-system", "kyverno", "argocd", "jenkins"]
      },
    },
    skip_crds=False,                                # ClusterPolicy CRD is needed below
    opts=pulumi.ResourceOptions(
      provider=k8s_provider,
      depends_on=[ns]
    )
  )

  pulumi.export("kyverno_namespace", namespace)

  return kyverno_chart

def create_policies(
    k8s_provider: kubernetes.Provider,
    action: str = "Enforce",
    depends_on: Optional[list] = None,
) -> List[kubernetes.apiextensions.CustomResource]:
  policies = []
  for document in cluster_policies(action):
    name = document["metadata"]["name"]
    policy = kubernetes.apiextensions.CustomResource(f"policy-{name}",
      api_version=document["apiVersion"],
      kind=document["kind"],
      metadata=kubernetes.meta.v1.ObjectMetaArgs(
        name=name,
        annotations=document["metadata"]["annotations"],
      ),
      spec=document["spec"],
      opts=pulumi.ResourceOptions(
        provider=k8s_provider,
        depends_on=depends_on or []
      )
    )
    policies.append(policy)

  pulumi.export("kyverno_policies", [p["metadata"]["name"] for p in cluster_policies(action)])

  return policies
