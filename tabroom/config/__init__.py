from tabroom.config.logging_config import setup_logging
from tabroom.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "setup_logging"]
