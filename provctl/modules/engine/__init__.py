"""Phase sequencing, rolling batches and service reconciliation.

Import the executor from ``provctl.modules.engine.executor``; this package
only re-exports the plain data models so the reporter can use them without
pulling in ansible-runner.
"""
from .models import ExecutorOptions, HostOutcome, ModeFlags, PhaseResult, PhaseState, RunState

__all__ = [
    'ExecutorOptions',
    'HostOutcome',
    'ModeFlags',
    'PhaseResult',
    'PhaseState',
    'RunState',
]
