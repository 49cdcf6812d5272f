"""Settings loading with a per-call YAML file override.

Precedence is always: explicit overrides, then ``SHIPGATE_*`` environment
variables (``__`` separates nested keys), then the YAML file, then defaults.
``SHIPGATE_LOGGING__LEVEL=DEBUG`` sets ``logging.level``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic_settings import SettingsConfigDict

from .models import DEFAULT_CONFIG_PATH, ShipgateSettings

CONFIG_FILE_ENV_VAR = "SHIPGATE_CONFIG_FILE"


def load_settings(
    *,
    config_path: str | Path | None = None,
    **overrides: Any,
) -> ShipgateSettings:
    """Load settings, reading YAML from ``config_path`` when given.

    Without ``config_path`` the file named by ``SHIPGATE_CONFIG_FILE`` is
    used, falling back to ``~/.config/shipgate/shipgate.yaml``. A missing
    file contributes nothing.
    """
    resolved = _resolve_config_path(config_path)
    if resolved == DEFAULT_CONFIG_PATH:
        return ShipgateSettings(**overrides)

    class _FileBoundSettings(ShipgateSettings):
        model_config = SettingsConfigDict(yaml_file=resolved)

    return _FileBoundSettings(**overrides)


def _resolve_config_path(config_path: str | Path | None) -> Path:
    if config_path is not None:
        return Path(config_path).expanduser()
    from_env = os.environ.get(CONFIG_FILE_ENV_VAR, "").strip()
    if from_env:
        return Path(from_env).expanduser()
    return DEFAULT_CONFIG_PATH
