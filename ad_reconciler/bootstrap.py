"""Application bootstrap module."""

from .env_settings import get_env
from .log_config import setup_logging


def initialize_application() -> None:
    """Startup steps that must run before the first request."""
    env = get_env()
    setup_logging(
        level=env.log_level,
        retention_days=env.log_retention_days,
        log_dir=env.log_dir,
    )
