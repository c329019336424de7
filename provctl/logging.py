"""Logging configuration for the provctl package."""
import logging

from .config import Config


def setup_logging(debug_mode: bool = False) -> None:
    """Configure root logging for a CLI invocation."""
    log_level = logging.DEBUG if debug_mode else getattr(logging, Config.LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=log_level,
        format=Config.LOG_FORMAT,
        handlers=[
            logging.StreamHandler()
        ]
    )
    # Disable debug logging for noisy libraries
    if not debug_mode:
        logging.getLogger('paramiko').setLevel(logging.WARNING)
        logging.getLogger('urllib3').setLevel(logging.WARNING)
        logging.getLogger('ansible_runner').setLevel(logging.WARNING)
