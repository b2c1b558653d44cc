import pulumi
import pulumi_kubernetes as kubernetes
import pulumi_kubernetes.helm.v4 as helm
from typing import List, Optional

# Environments that ArgoCD syncs on its own; anything else waits for a manual sync
AUTO_SYNC_ENVIRONMENTS = ("dev", "staging")

def create_argocd(namespace: str, cluster: kubernetes.Provider, admin_password_hash: pulumi.Input[str]):

  ns = kubernetes.core.v1.Namespace("argocd-ns",
    metadata=kubernetes.meta.v1.ObjectMetaArgs(
      name=namespace
    ),
    opts=pulumi.ResourceOptions(provider=cluster)
  )

  # Refer to https://www.pulumi.com/registry/packages/kubernetes/api-docs/helm/v4/chart/
  argocd_chart = helm.Chart("argocd",
    chart="argo-cd",
    version="6.7.5",
    repository_opts=helm.RepositoryOptsArgs(
      repo="https://argoproj.github.io/argo-helm"
    ),
    namespace=namespace,
    values={
      "global": {
        "domain": "argocd.local",                   # No ingress; reached via port-forward
        "image": {
          "tag": "v2.11.3"
        },
        "networkPolicy": {
          "create": False
        },
      },
      "server": {
        "service": {
          "type": "ClusterIP"
        },
        "ingress": {
          "enabled": False
        },
        "replicas": 1,
        "resources": {
          "requests": {"cpu": "100m", "memory": "128Mi"},
          "limits": {"cpu": "200m", "memory": "256Mi"}
        },
        "autoscaling": {
          "enabled": False
        }
      },
      # Repo server clones the repo and renders the Helm chart
      "repoServer": {
        "replicas": 1,
        "resources": {
          "requests": {"cpu": "200m", "memory": "256Mi"},
          "limits": {"cpu": "500m", "memory": "512Mi"}
        },
        "autoscaling": {
          "enabled": False
        },
        "useEphemeralHelmWorkingDir": True
      },
      "controller": {
        "replicas": 1,
        "resources": {
          "requests": {"cpu": "100m", "memory": "128Mi"},
          "limits": {"cpu": "200m", "memory": "256Mi"}
        },
        "metrics": {
          "enabled": False
        }
      },
      "redis": {
        "enabled": True,
        "resources": {
          "requests": {"cpu": "50m", "memory": "64Mi"},
          "limits": {"cpu": "100m", "memory": "128Mi"}
        }
      },
      "redis-ha": {
        "enabled": False
      },
      "dex": {
        "enabled": False
      },
      "notifications": {
        "enabled": False
      },
      "applicationSet": {
        "enabled": False
      },
      "configs": {
        "secret": {
          "create": True,
          "argocdServerAdminPassword": admin_password_hash, # bcrypt hash: pulumi config set --secret argocd_admin_password_hash
        },
        "cm": {
          "create": True,
          "admin.enabled": True,
          "exec.enabled": False,
          "statusbadge.enabled": True,              # Badge shown on the Jenkins build page
          "timeout.reconciliation": "180s"
        },
        "params": {
          "create": True,
          "server.insecure": True
        }
      },
    },
    skip_crds=False,                                # Application CRD is needed below
    opts=pulumi.ResourceOptions(
      provider=cluster,
      depends_on=[ns]
    )
  )

  pulumi.export("argocd_namespace", namespace)
  # kubectl port-forward svc/argocd-server -n argocd 8080:443

  return argocd_chart

def application_spec(env: str, repo_url: str, revision: str = "main", chart_path: str = "helm-chart") -> dict:
  """Spec of the ArgoCD Application deploying the demo chart into one environment.

  dev and staging sync automatically with prune and self-heal; every other
  environment (prod) is synced by hand after the Jenkins approval gate.
  """
  spec = {
    "project": "default",
    "source": {
      "repoURL": repo_url,
      "targetRevision": revision,
      "path": chart_path,
      "helm": {
        "releaseName": f"demo-app-{env}",
        "valueFiles": ["values.yaml", f"values-{env}.yaml"],
      },
    },
    "destination": {
      "server": "https://kubernetes.default.svc",
      "namespace": f"demo-{env}",
    },
    "syncPolicy": {
      "syncOptions": ["CreateNamespace=true"],
      "retry": {
        "limit": 3,
        "backoff": {"duration": "10s", "factor": 2, "maxDuration": "3m"},
      },
    },
  }
  if env in AUTO_SYNC_ENVIRONMENTS:
    spec["syncPolicy"]["automated"] = {"prune": True, "selfHeal": True}
  return spec

def create_applications(
    envs: List[str],
    namespace: str,
    k8s_provider: kubernetes.Provider,
    repo_url: str,
    revision: str = "main",
    depends_on: Optional[list] = None,
) -> List[kubernetes.apiextensions.CustomResource]:
  apps = []
  for env in envs:
    app = kubernetes.apiextensions.CustomResource(f"demo-app-{env}",
      api_version="argoproj.io/v1alpha1",
      kind="Application",
      metadata=kubernetes.meta.v1.ObjectMetaArgs(
        name=f"demo-app-{env}",
        namespace=namespace,
        labels={"app.kubernetes.io/part-of": "demo-app", "environment": env},
      ),
      spec=application_spec(env, repo_url, revision),
      opts=pulumi.ResourceOptions(
        provider=k8s_provider,
        depends_on=depends_on or []
      )
    )
    apps.append(app)

  pulumi.export("argocd_applications", [f"demo-app-{env}" for env in envs])

  return apps
