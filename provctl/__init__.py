"""provctl - plan-driven Kubernetes cluster provisioning."""

__version__ = "0.1.0"
