"""Probe-then-act reconciliation for long-lived services.

Before a control plane play rolls out during an upgrade, the old systemd unit
must be stopped and its unit file removed. Doing that blindly on every run is
what makes a re-run after a partial failure dangerous, so the work is split in
two steps: ``probe`` maps the raw ``systemctl is-active`` exit code to a
``ServiceState`` and ``reconcile`` turns that state into the actions still
needed. Both are pure and tested on their own.
"""
from enum import Enum
from typing import List


class ServiceState(str, Enum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'


class Action(str, Enum):
    STOP_SERVICE = 'stop_service'
    REMOVE_UNIT = 'remove_unit'


# systemctl is-active: 0 = running, 3 = stopped or unit doesn't exist
RC_ACTIVE = 0
RC_INACTIVE = 3


class ProbeFailed(RuntimeError):
    """The probe returned something other than active or inactive."""

    def __init__(self, host: str, service: str, rc: int, detail: str = ""):
        self.host = host
        self.service = service
        self.rc = rc
        message = f"unexpected result probing {service} on {host} (rc={rc})"
        if detail:
            message += f": {detail}"
        super().__init__(message)


def probe(host: str, service: str, rc: int, detail: str = "") -> ServiceState:
    """Interpret the exit code of ``systemctl is-active -q <service>``."""
    if rc == RC_ACTIVE:
        return ServiceState.ACTIVE
    if rc == RC_INACTIVE:
        return ServiceState.INACTIVE
    raise ProbeFailed(host, service, rc, detail)


def reconcile(state: ServiceState, upgrading: bool) -> List[Action]:
    """Actions needed to get a service out of the way of its upgrade play.

    An empty list means the host is already in the desired state.
    """
    if not upgrading:
        return []
    if state == ServiceState.ACTIVE:
        return [Action.STOP_SERVICE, Action.REMOVE_UNIT]
    return []
