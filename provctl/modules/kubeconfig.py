"""Generate the admin kubeconfig for the cluster."""
import base64
import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

from .certificates import ADMIN_NAME, CA_NAME
from .plan.models import Plan

logger = logging.getLogger("provctl.kubeconfig")

API_SERVER_PORT = 6443


def _encoded(path: Path) -> str:
    if not path.exists():
        raise FileNotFoundError(f"{path} not found, generate certificates first")
    return base64.b64encode(path.read_bytes()).decode()


def api_server_address(plan: Plan) -> str:
    host = plan.master.load_balanced_fqdn
    if not host:
        if not plan.master.nodes:
            raise ValueError("plan has no master nodes")
        host = plan.master.nodes[0].ip
    return f"https://{host}:{API_SERVER_PORT}"


def build_kubeconfig(plan: Plan, keys_dir: Path) -> Dict[str, Any]:
    cluster = plan.cluster.name
    user = f"{cluster}-{ADMIN_NAME}"
    return {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [{
            "name": cluster,
            "cluster": {
                "server": api_server_address(plan),
                "certificate-authority-data": _encoded(keys_dir / f"{CA_NAME}.pem"),
            },
        }],
        "users": [{
            "name": user,
            "user": {
                "client-certificate-data": _encoded(keys_dir / f"{ADMIN_NAME}.pem"),
                "client-key-data": _encoded(keys_dir / f"{ADMIN_NAME}-key.pem"),
            },
        }],
        "contexts": [{
            "name": user,
            "context": {"cluster": cluster, "user": user},
        }],
        "current-context": user,
        "preferences": {},
    }


def generate_kubeconfig(plan: Plan, generated_assets_dir: str) -> Path:
    """Write ``<assets>/kubeconfig`` from the issued admin certificate.

    Returns:
        Path of the written kubeconfig
    """
    assets = Path(generated_assets_dir)
    config = build_kubeconfig(plan, assets / "keys")
    path = assets / "kubeconfig"
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)
    os.chmod(path, 0o600)
    logger.debug(f"Wrote kubeconfig to {path}")
    return path
