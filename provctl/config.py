"""Configuration management for the provctl application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()

class Config:
    """Application defaults, overridable through the environment.

    These values only seed CLI and API defaults. A run is driven by the
    explicit ExecutorOptions built from them, never by reading this class
    from inside the engine.
    """

    # Plan and generated assets
    PLAN_FILE: str = os.getenv("PROVCTL_PLAN_FILE", "cluster-plan.yaml")
    GENERATED_ASSETS_DIR: str = os.getenv("PROVCTL_GENERATED_ASSETS_DIR", "generated")

    # Ansible playbooks shipped alongside the CLI
    PLAYBOOK_DIR: str = os.getenv("PROVCTL_PLAYBOOK_DIR", "ansible")

    # Preflight
    SSH_TIMEOUT: int = int(os.getenv("PROVCTL_SSH_TIMEOUT", "10"))
    MIN_DISK_GB: int = int(os.getenv("PROVCTL_MIN_DISK_GB", "10"))
    MIN_MEMORY_MB: int = int(os.getenv("PROVCTL_MIN_MEMORY_MB", "2048"))

    # Logging
    LOG_LEVEL: str = os.getenv("PROVCTL_LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv(
        "PROVCTL_LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # API
    API_KEY: str = os.getenv("PROVCTL_API_KEY", "")

    @classmethod
    def validate(cls) -> None:
        """Validate configuration required by the HTTP API."""
        if not cls.API_KEY:
            raise ValueError("Missing required configuration: PROVCTL_API_KEY")

# Don't validate on import; the API calls Config.validate() when it starts
