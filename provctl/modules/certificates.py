"""Cluster certificate authority.

Issues the cluster CA, one certificate per node, a service account key pair
and the ``admin`` client certificate used by the generated kubeconfig. Key
material is produced by ``openssl``; this module only decides what has to be
issued.

Re-running is safe. Every issued pair is recorded in ``manifest.yaml`` with a
digest of its request (subject, SANs and signing CA). A pair whose digest is
unchanged is reused as is. A pair whose request changed is moved aside to
``<file>.backup-<timestamp>`` and issued again, so existing credentials are
never overwritten silently.
"""
import hashlib
import ipaddress
import json
import logging
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import yaml

from .plan.models import Plan
from ..utils import backup_path, run_command

logger = logging.getLogger("provctl.certificates")

CA_NAME = "ca"
ADMIN_NAME = "admin"
SERVICE_ACCOUNT_NAME = "service-account"
MANIFEST = "manifest.yaml"
# Node pairs are "<prefix><host>"; no cluster identity name starts with it
NODE_PREFIX = "node-"


@dataclass(frozen=True)
class CertificateRequest:
    """What a certificate should say; files are ``<name>.pem`` and ``<name>-key.pem``."""
    name: str
    common_name: str
    organization: str = ""
    hosts: Tuple[str, ...] = ()
    client_only: bool = False

    def digest(self, ca_fingerprint: str) -> str:
        payload = json.dumps({
            "cn": self.common_name,
            "o": self.organization,
            "hosts": sorted(self.hosts),
            "client_only": self.client_only,
            "ca": ca_fingerprint,
        }, sort_keys=True)
        return hashlib.sha256(payload.encode()).hexdigest()


@dataclass
class CertificateReport:
    issued: List[str] = field(default_factory=list)
    reused: List[str] = field(default_factory=list)
    reissued: List[str] = field(default_factory=list)
    ca_created: bool = False


def kubernetes_service_ip(service_cidr: str) -> str:
    """First usable address of the service network, used by the API server."""
    network = ipaddress.ip_network(service_cidr, strict=False)
    return str(network.network_address + 1)


def node_certificate_name(host: str) -> str:
    return f"{NODE_PREFIX}{host}"


def certificate_requests(plan: Plan) -> List[CertificateRequest]:
    """Every identity the plan needs, in a stable order."""
    masters = set(plan.master.hosts())
    requests = []
    for node in plan.all_nodes():
        hosts = [node.host, node.ip]
        if node.internal_ip and node.internal_ip != node.ip:
            hosts.append(node.internal_ip)
        if node.host in masters:
            hosts.extend([
                "kubernetes",
                "kubernetes.default",
                "kubernetes.default.svc",
                "kubernetes.default.svc.cluster.local",
                kubernetes_service_ip(plan.cluster.networking.service_cidr),
                "127.0.0.1",
            ])
            for name in (plan.master.load_balanced_fqdn, plan.master.load_balanced_short_name):
                if name:
                    hosts.append(name)
        deduped = tuple(dict.fromkeys(hosts))
        requests.append(CertificateRequest(name=node_certificate_name(node.host), common_name=node.host, hosts=deduped))

    requests.append(CertificateRequest(
        name=SERVICE_ACCOUNT_NAME,
        common_name="kube-service-account",
        client_only=True,
    ))
    requests.append(CertificateRequest(
        name=ADMIN_NAME,
        common_name=ADMIN_NAME,
        organization="system:masters",
        client_only=True,
    ))
    return requests


class Issuer:
    """Produces key material on disk."""

    def create_ca(self, cert: Path, key: Path, common_name: str, days: int) -> None:
        raise NotImplementedError

    def issue(self, request: CertificateRequest, ca_cert: Path, ca_key: Path,
              cert: Path, key: Path, days: int) -> None:
        raise NotImplementedError

    def fingerprint(self, cert: Path) -> str:
        raise NotImplementedError


def _subject(common_name: str, organization: str = "") -> str:
    subject = f"/CN={common_name}"
    if organization:
        subject = f"/O={organization}" + subject
    return subject


def _san_entry(host: str) -> str:
    try:
        ipaddress.ip_address(host)
        return f"IP:{host}"
    except ValueError:
        return f"DNS:{host}"


class OpenSSLIssuer(Issuer):
    """Issues RSA key pairs with the ``openssl`` command line tool."""

    def __init__(self, openssl: str = "openssl", key_bits: int = 2048):
        self.openssl = openssl
        self.key_bits = key_bits

    def create_ca(self, cert: Path, key: Path, common_name: str, days: int) -> None:
        run_command([
            self.openssl, "req", "-x509", "-nodes",
            "-newkey", f"rsa:{self.key_bits}",
            "-keyout", str(key),
            "-out", str(cert),
            "-days", str(days),
            "-subj", _subject(common_name),
            "-addext", "basicConstraints=critical,CA:TRUE",
            "-addext", "keyUsage=critical,keyCertSign,cRLSign",
        ])
        key.chmod(0o600)

    def issue(self, request: CertificateRequest, ca_cert: Path, ca_key: Path,
              cert: Path, key: Path, days: int) -> None:
        usages = "clientAuth" if request.client_only else "serverAuth,clientAuth"
        extensions = [
            "basicConstraints=CA:FALSE",
            "keyUsage=critical,digitalSignature,keyEncipherment",
            f"extendedKeyUsage={usages}",
        ]
        if request.hosts:
            extensions.append("subjectAltName=" + ",".join(_san_entry(h) for h in request.hosts))

        with tempfile.TemporaryDirectory() as tmp:
            csr = Path(tmp) / f"{request.name}.csr"
            extfile = Path(tmp) / "extensions.cnf"
            extfile.write_text("\n".join(extensions) + "\n")

            run_command([
                self.openssl, "req", "-new", "-nodes",
                "-newkey", f"rsa:{self.key_bits}",
                "-keyout", str(key),
                "-out", str(csr),
                "-subj", _subject(request.common_name, request.organization),
            ])
            run_command([
                self.openssl, "x509", "-req",
                "-in", str(csr),
                "-CA", str(ca_cert),
                "-CAkey", str(ca_key),
                "-CAcreateserial",
                "-out", str(cert),
                "-days", str(days),
                "-sha256",
                "-extfile", str(extfile),
            ])
        key.chmod(0o600)

    def fingerprint(self, cert: Path) -> str:
        result = run_command([self.openssl, "x509", "-noout", "-fingerprint", "-sha256", "-in", str(cert)])
        # SHA256 Fingerprint=AB:CD:...
        return result.stdout.strip().split("=", 1)[-1]


class CertificateAuthority:
    """Decides which identities to issue and keeps the keys directory in sync with the plan."""

    def __init__(self, keys_dir: Path, issuer: Optional[Issuer] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.keys_dir = Path(keys_dir)
        self.issuer = issuer or OpenSSLIssuer()
        self.clock = clock

    def paths(self, name: str) -> Tuple[Path, Path]:
        return self.keys_dir / f"{name}.pem", self.keys_dir / f"{name}-key.pem"

    def _load_manifest(self) -> Dict[str, str]:
        path = self.keys_dir / MANIFEST
        if not path.exists():
            return {}
        with open(path, 'r') as f:
            return yaml.safe_load(f) or {}

    def _save_manifest(self, manifest: Dict[str, str]) -> None:
        with open(self.keys_dir / MANIFEST, 'w') as f:
            yaml.safe_dump(manifest, f, default_flow_style=False, sort_keys=True)

    def _move_aside(self, name: str) -> None:
        now = self.clock()
        for path in self.paths(name):
            if path.exists():
                target = backup_path(path, now)
                path.rename(target)
                logger.info(f"Moved {path.name} to {target.name} before re-issuing")

    def generate(self, plan: Plan) -> CertificateReport:
        self.keys_dir.mkdir(parents=True, exist_ok=True)
        report = CertificateReport()
        days = plan.cluster.certificates.expiry_days

        ca_cert, ca_key = self.paths(CA_NAME)
        if not (ca_cert.exists() and ca_key.exists()):
            if ca_cert.exists() or ca_key.exists():
                self._move_aside(CA_NAME)
            logger.info("Creating cluster certificate authority")
            self.issuer.create_ca(ca_cert, ca_key, f"{plan.cluster.name}-ca",
                                  plan.cluster.certificates.ca_expiry_days)
            report.ca_created = True
        ca_fingerprint = self.issuer.fingerprint(ca_cert)

        manifest = self._load_manifest()
        for request in certificate_requests(plan):
            digest = request.digest(ca_fingerprint)
            cert, key = self.paths(request.name)
            present = cert.exists() and key.exists()

            if present and manifest.get(request.name) == digest:
                logger.debug(f"Certificate for {request.name} is up to date")
                report.reused.append(request.name)
                continue

            if cert.exists() or key.exists():
                self._move_aside(request.name)
                report.reissued.append(request.name)
            else:
                report.issued.append(request.name)

            logger.info(f"Issuing certificate for {request.name}")
            self.issuer.issue(request, ca_cert, ca_key, cert, key, days)
            manifest[request.name] = digest
            # Persist after every identity so a failure part-way keeps what was issued
            self._save_manifest(manifest)

        self._save_manifest(manifest)
        return report
