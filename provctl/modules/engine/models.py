"""Data models for the execution engine."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

OUTPUT_FORMATS = ("simple", "raw")


@dataclass(frozen=True)
class ExecutorOptions:
    """Options for one run, built once from CLI input and passed explicitly."""
    generated_assets_dir: str = "generated"
    restart_services: bool = False
    verbose: bool = False
    output_format: str = "simple"
    skip_preflight: bool = False

    def __post_init__(self):
        if self.output_format not in OUTPUT_FORMATS:
            raise ValueError(
                f"output format {self.output_format!r} is not supported, "
                f"use one of: {', '.join(OUTPUT_FORMATS)}"
            )


@dataclass(frozen=True)
class ModeFlags:
    """Snapshot of every boolean a phase predicate may look at."""
    upgrading: bool = False
    restart_services: bool = False
    allow_package_installation: bool = True
    disconnected_installation: bool = False
    private_registry: bool = False


class PhaseState(str, Enum):
    """Lifecycle of one phase within a run."""
    PENDING = 'pending'
    RUNNING = 'running'
    COMPLETED = 'completed'
    FAILED = 'failed'
    SKIPPED = 'skipped'


class RunState(str, Enum):
    RUNNING = 'running'
    COMPLETED = 'completed'
    ABORTED = 'aborted'


_PHASE_TRANSITIONS = {
    PhaseState.PENDING: {PhaseState.RUNNING, PhaseState.SKIPPED},
    PhaseState.RUNNING: {PhaseState.COMPLETED, PhaseState.FAILED},
    PhaseState.COMPLETED: set(),
    PhaseState.FAILED: set(),
    PhaseState.SKIPPED: set(),
}


class InvalidTransition(RuntimeError):
    pass


@dataclass
class HostOutcome:
    """What the backend reported for a single host."""
    host: str
    ok: bool
    changed: bool = False
    message: str = ""


@dataclass
class PhaseResult:
    """Outcome of one phase, surfaced to the reporter and the abort controller."""
    phase: str
    state: PhaseState = PhaseState.PENDING
    batches: List[Tuple[str, ...]] = field(default_factory=list)
    failed_hosts: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def transition(self, state: PhaseState) -> None:
        if state not in _PHASE_TRANSITIONS[self.state]:
            raise InvalidTransition(f"phase {self.phase!r} cannot go from {self.state.value} to {state.value}")
        self.state = state

    @property
    def executed(self) -> bool:
        return self.state in (PhaseState.COMPLETED, PhaseState.FAILED)


@dataclass
class RunRecord:
    """Tracks every phase the engine touched during one run."""
    state: RunState = RunState.RUNNING
    results: Dict[str, PhaseResult] = field(default_factory=dict)

    def start(self, phase: str) -> PhaseResult:
        if self.state != RunState.RUNNING:
            raise InvalidTransition(f"run is {self.state.value}, cannot start phase {phase!r}")
        result = PhaseResult(phase=phase)
        self.results[phase] = result
        return result

    def abort(self) -> None:
        self.state = RunState.ABORTED

    def complete(self) -> None:
        if self.state == RunState.RUNNING:
            self.state = RunState.COMPLETED

    def executed(self) -> List[PhaseResult]:
        return [r for r in self.results.values() if r.executed]

    def skipped(self) -> List[PhaseResult]:
        return [r for r in self.results.values() if r.state == PhaseState.SKIPPED]
