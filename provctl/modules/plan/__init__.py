"""Cluster plan: schema and persistence."""
from .models import (
    Feature,
    Features,
    MasterNodeGroup,
    Node,
    NodeGroup,
    Plan,
    PlanMode,
)
from .planner import FilePlanner, Planner, starter_plan

__all__ = [
    'Feature',
    'Features',
    'FilePlanner',
    'MasterNodeGroup',
    'Node',
    'NodeGroup',
    'Plan',
    'PlanMode',
    'Planner',
    'starter_plan',
]
