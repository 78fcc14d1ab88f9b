from .config import Settings, settings
from .logger import JSONFormatter, get_logger, setup_logging

__all__ = [
    "Settings",
    "settings",
    # Logging
    "JSONFormatter",
    "get_logger",
    "setup_logging",
]
