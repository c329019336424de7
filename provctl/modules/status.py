"""Post-install node readiness, read through the generated kubeconfig."""
import logging
from typing import Any, Dict, List

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import MaxRetryError

logger = logging.getLogger("provctl.status")


def node_conditions(kubeconfig: str) -> List[Dict[str, Any]]:
    """Name, readiness and true conditions of every node the API server knows."""
    config.load_kube_config(config_file=kubeconfig)
    v1 = client.CoreV1Api()
    nodes = v1.list_node().items
    result = []
    for node in nodes:
        conditions = node.status.conditions or []
        result.append({
            "name": node.metadata.name,
            "ready": any(c.type == "Ready" and c.status == "True" for c in conditions),
            "conditions": [c.type for c in conditions if c.status == "True"],
        })
    return result


def run(kubeconfig: str) -> Dict[str, Any]:
    """Summarise cluster readiness; API, connection and kubeconfig errors are returned rather than raised."""
    try:
        nodes = node_conditions(kubeconfig)
    except (ApiException, ConfigException, MaxRetryError) as e:
        logger.error(f"Failed to list nodes: {e}")
        return {"kubeconfig": kubeconfig, "error": str(e), "nodes": []}
    not_ready = [n["name"] for n in nodes if not n["ready"]]
    return {
        "kubeconfig": kubeconfig,
        "nodes": nodes,
        "ready": not not_ready and bool(nodes),
        "not_ready": not_ready,
    }
