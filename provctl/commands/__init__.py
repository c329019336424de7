"""CLI commands; each module exposes one command function registered by ``provctl.cli``."""
from . import apply, plan, status, validate

__all__ = ['apply', 'plan', 'status', 'validate']
