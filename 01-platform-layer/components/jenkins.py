import json
import pulumi
import pulumi_aws as aws
import pulumi_eks as eks
import pulumi_kubernetes as kubernetes
import pulumi_kubernetes.helm.v4 as helm
from typing import List, Optional

# Replaces the chart default plugin list, so every step the Jenkinsfile calls must be covered here
JENKINS_PLUGINS = [
  "kubernetes:4801.v533a_805e9576",           # Agents run as pods
  "workflow-aggregator:588.vd01c4de1e71b_",   # Jenkinsfile support
  "git:5.3.0-600.vdf2c03c633a_5",
  "configuration-as-code:1704.v878c5_530326a",
  "job-dsl:1.87",                             # Seeds the demo-app job from JCasC
  "junit:1265.v65b_14fa_f12f0",               # junit step (Unit Tests stage)
  "ws-cleanup:0.46",                          # cleanWs() in post
  "snyk-security-scanner:4.0.2",
]

def seed_job_script(repo_url: str, branch: str = "main", job_name: str = "demo-app") -> str:
  """Job DSL that creates the pipeline job reading the repo's Jenkinsfile."""
  return (
    f"pipelineJob('{job_name}') {{\n"
    f"  parameters {{\n"
    f"    choiceParam('TARGET_ENV', ['dev', 'staging', 'prod'], 'Environment to deploy to')\n"
    f"    booleanParam('SKIP_SCAN', false, 'Skip the Snyk dependency scan')\n"
    f"  }}\n"
    f"  definition {{\n"
    f"    cpsScm {{\n"
    f"      scm {{\n"
    f"        git {{\n"
    f"          remote {{ url('{repo_url}') }}\n"
    f"          branch('*/{branch}')\n"
    f"        }}\n"
    f"      }}\n"
    f"      scriptPath('Jenkinsfile')\n"
    f"    }}\n"
    f"  }}\n"
    f"}}\n"
  )

def casc_config(repo_url: str, branch: str, cluster_name: str, region: str, ecr_url: str) -> str:
  # Global env vars are what the Jenkinsfile stages read (ECR_REGISTRY, EKS_CLUSTER_NAME, ...)
  script = "\n".join("        " + line for line in seed_job_script(repo_url, branch).splitlines())
  return (
    "jenkins:\n"
    "  globalNodeProperties:\n"
    "    - envVars:\n"
    "        env:\n"
    f"          - key: ECR_REGISTRY\n            value: \"{ecr_url}\"\n"
    f"          - key: EKS_CLUSTER_NAME\n            value: \"{cluster_name}\"\n"
    f"          - key: AWS_DEFAULT_REGION\n            value: \"{region}\"\n"
    "jobs:\n"
    "  - script: |\n"
    f"{script}\n"
  )

def irsa_trust_policy(oidc_provider_arn: str, oidc_provider_url: str, namespace: str, service_account: str) -> str:
  """Trust policy letting one Kubernetes service account assume the role through the cluster's OIDC provider."""
  issuer = oidc_provider_url.replace("https://", "")
  return json.dumps({
    "Version": "2012-10-17",
    "Statement": [{
      "Effect": "Allow",
      "Principal": {"Federated": oidc_provider_arn},
      "Action": "sts:AssumeRoleWithWebIdentity",
      "Condition": {
        "StringEquals": {
          f"{issuer}:sub": f"system:serviceaccount:{namespace}:{service_account}",
          f"{issuer}:aud": "sts.amazonaws.com",
        }
      },
    }],
  })

def pipeline_permissions_policy(cluster_arn: str, repository_arn: str) -> str:
  # check-cluster reads the cluster and its node groups; kaniko pushes to the app repository
  return json.dumps({
    "Version": "2012-10-17",
    "Statement": [
      {
        "Effect": "Allow",
        "Action": ["eks:DescribeCluster", "eks:ListNodegroups"],
        "Resource": cluster_arn,
      },
      {
        "Effect": "Allow",
        "Action": "ecr:GetAuthorizationToken",
        "Resource": "*",
      },
      {
        "Effect": "Allow",
        "Action": [
          "ecr:BatchCheckLayerAvailability",
          "ecr:BatchGetImage",
          "ecr:GetDownloadUrlForLayer",
          "ecr:InitiateLayerUpload",
          "ecr:UploadLayerPart",
          "ecr:CompleteLayerUpload",
          "ecr:PutImage",
        ],
        "Resource": repository_arn,
      },
    ],
  })

def pipeline_cluster_role_rules() -> List[dict]:
  """Kubernetes access the pipeline stages need from inside the agent pod."""
  return [
    {"api_groups": [""], "resources": ["nodes"], "verbs": ["get", "list"]},     # Platform Check
    {"api_groups": [""], "resources": ["pods"], "verbs": ["get", "list"]},      # kube-system pods
    {"api_groups": ["argoproj.io"], "resources": ["applications"], "verbs": ["get", "list", "patch"]}, # Sync
    {"api_groups": ["apps"], "resources": ["deployments"], "verbs": ["get", "list", "watch"]},         # rollout status
  ]

def create_pipeline_role(
    cluster: eks.Cluster,
    registry: aws.ecr.Repository,
    namespace: str,
    service_account: str,
    tags: Optional[dict] = None,
) -> aws.iam.Role:
  oidc = cluster.core.oidc_provider

  role = aws.iam.Role("jenkins-pipeline-role",
    assume_role_policy=pulumi.Output.all(oidc.arn, oidc.url).apply(
      lambda args: irsa_trust_policy(args[0], args[1], namespace, service_account)
    ),
    tags=tags or {}
  )

  aws.iam.RolePolicy("jenkins-pipeline-policy",
    role=role.id,
    policy=pulumi.Output.all(cluster.eks_cluster.arn, registry.arn).apply(
      lambda args: pipeline_permissions_policy(args[0], args[1])
    ),
  )

  return role

def create_pipeline_rbac(
    namespace: str,
    service_account: str,
    k8s_provider: kubernetes.Provider,
    depends_on: Optional[list] = None,
):
  opts = pulumi.ResourceOptions(provider=k8s_provider, depends_on=depends_on or [])

  cluster_role = kubernetes.rbac.v1.ClusterRole("jenkins-pipeline",
    metadata=kubernetes.meta.v1.ObjectMetaArgs(name="jenkins-pipeline"),
    rules=[kubernetes.rbac.v1.PolicyRuleArgs(**rule) for rule in pipeline_cluster_role_rules()],
    opts=opts
  )

  binding = kubernetes.rbac.v1.ClusterRoleBinding("jenkins-pipeline",
    metadata=kubernetes.meta.v1.ObjectMetaArgs(name="jenkins-pipeline"),
    role_ref=kubernetes.rbac.v1.RoleRefArgs(
      api_group="rbac.authorization.k8s.io",
      kind="ClusterRole",
      name="jenkins-pipeline",
    ),
    subjects=[kubernetes.rbac.v1.SubjectArgs(
      kind="ServiceAccount",
      name=service_account,
      namespace=namespace,
    )],
    opts=pulumi.ResourceOptions(provider=k8s_provider, depends_on=[cluster_role])
  )

  return cluster_role, binding

def load_balancer_address(status) -> str:
  """Hostname (or IP) of the controller NLB once AWS has provisioned it."""
  if status and status.load_balancer and status.load_balancer.ingress:
    ingress = status.load_balancer.ingress[0]
    return ingress.hostname or ingress.ip
  return "LoadBalancer pending - kubectl -n jenkins get svc jenkins"

def create_jenkins(
    namespace: str,
    k8s_provider: kubernetes.Provider,
    cluster: eks.Cluster,
    registry: aws.ecr.Repository,
    repo_url: str,
    region: str,
    repo_branch: str = "main",
    tags: Optional[dict] = None,
    admin_user: str = "admin",
    admin_password: Optional[pulumi.Input[str]] = None,
    service_account: str = "jenkins",
):
  """
  Deploy Jenkins with Helm and seed the demo-app pipeline job.

  The controller and agent pods run as `service_account`, which is bound to
  an IRSA role (EKS read, ECR push) and to the jenkins-pipeline ClusterRole.

  Args:
    namespace: Kubernetes namespace for Jenkins
    k8s_provider: Pulumi Kubernetes provider
    cluster: EKS cluster the pipeline checks and deploys to
    registry: ECR repository the pipeline pushes images to
    repo_url: Git repository holding the Jenkinsfile
    region: AWS region of the cluster and registry
    repo_branch: Branch the seeded job builds
    tags: AWS resource tags
    admin_user: Jenkins admin username (default: admin)
    admin_password: Jenkins admin password (pulumi config set --secret jenkins_password)
    service_account: Service account shared by controller and agents
  """
  if tags is None:
    tags = {}
  if admin_password is None:
    raise ValueError("jenkins admin password is required: pulumi config set --secret jenkins_password <password>")

  # "Key1=Val1,Key2=Val2" for the NLB annotation
  aws_lb_tags = ",".join([f"{k}={v}" for k, v in tags.items()])

  ns = kubernetes.core.v1.Namespace("jenkins-ns",
    metadata=kubernetes.meta.v1.ObjectMetaArgs(
      name=namespace,
      labels=tags
    ),
    opts=pulumi.ResourceOptions(provider=k8s_provider)
  )

  pipeline_role = create_pipeline_role(cluster, registry, namespace, service_account, tags)
  rbac = create_pipeline_rbac(namespace, service_account, k8s_provider, depends_on=[ns])

  casc = pulumi.Output.all(cluster.eks_cluster.name, registry.repository_url).apply(
    lambda args: casc_config(repo_url, repo_branch, args[0], region, args[1])
  )

  jenkins_chart = helm.Chart("jenkins",
    chart="jenkins",
    repository_opts=helm.RepositoryOptsArgs(
      repo="https://charts.jenkins.io"
    ),
    namespace=namespace,
    values={
      "controller": {
        "adminUser": admin_user,
        "adminPassword": admin_password,
        "serviceType": "LoadBalancer",
        "service": {
          "annotations": {
            "service.beta.kubernetes.io/aws-load-balancer-type": "nlb",
            "service.beta.kubernetes.io/aws-load-balancer-additional-resource-tags": aws_lb_tags
          }
        },
        "installPlugins": JENKINS_PLUGINS,
        "JCasC": {
          "configScripts": {
            "demo-pipeline": casc,
          }
        },
        "resources": {
          "requests": {
            "memory": "512Mi",
            "cpu": "250m"
          },
          "limits": {
            "memory": "1Gi",
            "cpu": "500m"
          }
        }
      },
      "persistence": {
        "size": "8Gi",
        "storageClass": "gp3"
      },
      "serviceAccount": {
        "create": True,
        "name": service_account,
        "annotations": {
          "eks.amazonaws.com/role-arn": pipeline_role.arn, # IRSA; the pod identity webhook injects AWS credentials
        }
      }
    },
    skip_crds=True,
    opts=pulumi.ResourceOptions(
      provider=k8s_provider,
      depends_on=[ns, *rbac]
    )
  )

  # The chart renders several Services; the controller one is the Service (not ServiceAccount) named jenkins
  def find_controller_service(resources):
    for r in resources or []:
      resource_type = getattr(r, 'pulumi_type', '') or ''
      resource_name = getattr(r, 'pulumi_resource_name', '') or ''
      if resource_type.endswith(':Service') and 'jenkins' in resource_name.lower():
        return r
    return None

  def controller_url(service):
    if not service:
      return "Service not found - check resources after deployment"
    return service.status.apply(load_balancer_address)

  pulumi.export("jenkins_namespace", namespace)
  pulumi.export("jenkins_pipeline_role_arn", pipeline_role.arn)
  pulumi.export("jenkins_url", jenkins_chart.resources.apply(find_controller_service).apply(controller_url))

  return jenkins_chart
