# Configuration module for the SafeButton Tracker backend
from .settings import (
    ConfigurationError,
    Environment,
    Settings,
    StoreBackend,
    get_settings,
    validate_startup,
)

__all__ = [
    "ConfigurationError",
    "Environment",
    "Settings",
    "StoreBackend",
    "get_settings",
    "validate_startup",
]
