"""Rolling batch partitioning.

Mirrors Ansible's ``serial`` keyword: a percentage (or absolute count) of the
host group is rolled out at a time, batches run strictly in order and the last
batch takes whatever is left over.
"""
from typing import List, Sequence, Tuple, TypeVar, Union

from ..plan.models import SERIAL_RE

T = TypeVar('T')

FULL_SERIAL = "100%"


def batch_size(total: int, serial: Union[int, str] = FULL_SERIAL) -> int:
    """Number of hosts per batch for a group of ``total`` hosts.

    A percentage is floored like Ansible does, but never below one host.
    """
    if total <= 0:
        return 0
    if isinstance(serial, int):
        if serial < 1:
            raise ValueError(f"serial host count must be at least 1, got {serial}")
        return min(serial, total)

    match = SERIAL_RE.match(serial.strip())
    if not match:
        raise ValueError(f"invalid serial value {serial!r}")
    percent = int(match.group(1))
    if not 0 < percent <= 100:
        raise ValueError(f"serial percentage must be between 1% and 100%, got {serial!r}")
    return max(1, total * percent // 100)


def partition(hosts: Sequence[T], serial: Union[int, str] = FULL_SERIAL) -> List[Tuple[T, ...]]:
    """Split ``hosts`` into ordered batches."""
    size = batch_size(len(hosts), serial)
    if size == 0:
        return []
    return [tuple(hosts[i:i + size]) for i in range(0, len(hosts), size)]
