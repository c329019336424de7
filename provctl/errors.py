"""Exceptions raised while planning, validating and provisioning a cluster."""
from typing import List, Optional, Sequence


class ProvisionError(Exception):
    """Base class for every failure surfaced to the operator."""
    pass


class PlanNotFound(ProvisionError):
    """The plan file does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"plan file {path!r} does not exist")


class PlanMalformed(ProvisionError):
    """The plan could not be parsed or broke a schema rule."""

    def __init__(self, message: str, problems: Optional[Sequence[str]] = None):
        self.problems: List[str] = list(problems or [])
        if self.problems:
            message = f"{message}: " + "; ".join(self.problems)
        super().__init__(message)


class PreflightFailed(ProvisionError):
    """A live-environment check failed. Fix the environment and re-run."""

    def __init__(self, failures: Sequence[str], warnings: Sequence[str] = ()):
        self.failures = list(failures)
        self.warnings = list(warnings)
        super().__init__("pre-flight checks failed: " + "; ".join(self.failures))


class CertificateGenerationFailed(ProvisionError):
    pass


class PhaseExecutionFailed(ProvisionError):
    """A phase failed on one or more hosts."""

    def __init__(self, phase: str, hosts: Sequence[str] = (), reason: str = ""):
        self.phase = phase
        self.hosts = list(hosts)
        self.reason = reason
        message = f"phase {phase!r} failed"
        if self.hosts:
            message += f" on host(s) {', '.join(self.hosts)}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class SmokeTestFailed(PhaseExecutionFailed):
    pass
