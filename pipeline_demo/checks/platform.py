"""EKS platform check run before anything is deployed.

Checks, in order, stopping at the first failure:
  1. the EKS control plane is ACTIVE
  2. the cluster has at least one node group
  3. worker nodes are registered
  4. every worker node is Ready
Pods in kube-system that are neither Running nor Succeeded only produce a warning.
"""

import logging
from typing import Optional

import boto3
from botocore.exceptions import ClientError
from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.exceptions import ApiException

from pipeline_demo.checks import PlatformReport, Status
from pipeline_demo.config import Settings
from pipeline_demo.errors import ClusterAccessError

logger = logging.getLogger(__name__)

HEALTHY_POD_PHASES = ("Running", "Succeeded")


def load_core_api(settings: Settings) -> k8s_client.CoreV1Api:
  try:
    k8s_config.load_kube_config(config_file=settings.kubeconfig)
  except (k8s_config.ConfigException, FileNotFoundError) as exc:
    logger.debug("no kubeconfig (%s), trying in-cluster config", exc)
    try:
      k8s_config.load_incluster_config()
    except k8s_config.ConfigException as incluster_exc:
      raise ClusterAccessError(f"kubectl not configured: {incluster_exc}") from incluster_exc
  return k8s_client.CoreV1Api()


def _node_ready(node) -> bool:
  for condition in node.status.conditions or []:
    if condition.type == "Ready":
      return condition.status == "True"
  return False


def run_platform_check(settings: Settings, eks_client=None, core_api=None) -> PlatformReport:
  cluster_name = settings.eks_cluster_name
  report = PlatformReport(cluster_name=cluster_name)
  if eks_client is None:
    eks_client = boto3.client("eks", region_name=settings.aws_default_region)

  # 1. Control plane
  logger.info("checking EKS cluster %s", cluster_name)
  try:
    cluster = eks_client.describe_cluster(name=cluster_name)["cluster"]
  except ClientError as exc:
    report.add("cluster status", Status.FAIL, exc.response.get("Error", {}).get("Message", str(exc)))
    return report
  status = cluster.get("status", "UNKNOWN")
  if status != "ACTIVE":
    report.add("cluster status", Status.FAIL, f"EKS cluster is not ACTIVE. Current status: {status}")
    return report
  report.add("cluster status", Status.OK, "ACTIVE")

  # 2. Node groups
  try:
    nodegroups = eks_client.list_nodegroups(clusterName=cluster_name).get("nodegroups", [])
  except ClientError as exc:
    report.add("node groups", Status.FAIL, exc.response.get("Error", {}).get("Message", str(exc)))
    return report
  if not nodegroups:
    report.add("node groups", Status.FAIL, "No node groups found")
    return report
  report.add("node groups", Status.OK, ", ".join(nodegroups))

  # 3. Worker nodes
  try:
    if core_api is None:
      core_api = load_core_api(settings)
    nodes = core_api.list_node().items
  except (ClusterAccessError, ApiException) as exc:
    report.add("worker nodes", Status.FAIL, f"No worker nodes found or kubectl not configured: {exc}")
    return report
  if not nodes:
    report.add("worker nodes", Status.FAIL, "No worker nodes found or kubectl not configured")
    return report
  report.add("worker nodes", Status.OK, f"{len(nodes)} registered")

  # 4. Readiness
  not_ready = [node.metadata.name for node in nodes if not _node_ready(node)]
  if not_ready:
    report.add("node readiness", Status.FAIL, "Not Ready: " + ", ".join(not_ready))
    return report
  report.add("node readiness", Status.OK, "All worker nodes are in Ready state")

  # System pods
  try:
    pods = core_api.list_namespaced_pod(namespace="kube-system").items
  except ApiException as exc:
    report.add("system pods", Status.WARN, f"Could not list kube-system pods: {exc.status} {exc.reason}")
    return report
  unhealthy = [
    f"{pod.metadata.name} ({pod.status.phase})"
    for pod in pods
    if pod.status.phase not in HEALTHY_POD_PHASES
  ]
  if unhealthy:
    report.add("system pods", Status.WARN, "Some system pods are not running: " + ", ".join(unhealthy))
  else:
    report.add("system pods", Status.OK, "All system pods are running")

  return report
