"""Public API for shared Shipgate configuration."""

from .loader import CONFIG_FILE_ENV_VAR, load_settings
from .models import (
    DEFAULT_CONFIG_PATH,
    ComponentsSettings,
    CoreSettings,
    HttpSettings,
    LoggingSettings,
    PostgresSettings,
    ShipgateSettings,
    resolve_component_settings,
)

__all__ = [
    "CONFIG_FILE_ENV_VAR",
    "DEFAULT_CONFIG_PATH",
    "ComponentsSettings",
    "CoreSettings",
    "HttpSettings",
    "LoggingSettings",
    "PostgresSettings",
    "ShipgateSettings",
    "load_settings",
    "resolve_component_settings",
]
