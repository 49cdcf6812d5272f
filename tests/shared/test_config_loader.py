"""Tests for shared settings loading and precedence."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import BaseModel, ValidationError

from packages.shipgate_shared.config import (
    CONFIG_FILE_ENV_VAR,
    load_settings,
    resolve_component_settings,
)
from services.portal.external_portal.config import (
    ExternalPortalSettings,
    resolve_external_portal_settings,
)


def _write_config(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "shipgate.yaml"
    path.write_text(body, encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        CONFIG_FILE_ENV_VAR,
        "SHIPGATE_LOGGING__LEVEL",
        "SHIPGATE_HTTP__PORT",
    ):
        monkeypatch.delenv(name, raising=False)


def test_missing_config_file_yields_defaults(tmp_path: Path) -> None:
    """A missing YAML file contributes nothing."""
    settings = load_settings(config_path=tmp_path / "absent.yaml")

    assert settings.logging.level == "INFO"
    assert settings.http.port == 8080
    assert settings.core.run_migrations_on_startup is True


def test_yaml_values_override_defaults(tmp_path: Path) -> None:
    """YAML values apply over model defaults and keep sibling defaults."""
    path = _write_config(
        tmp_path,
        "logging:\n  level: WARNING\nhttp:\n  port: 9000\n",
    )

    settings = load_settings(config_path=path)

    assert settings.logging.level == "WARNING"
    assert settings.logging.json_output is True
    assert settings.http.port == 9000


def test_env_overrides_yaml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """``SHIPGATE_*`` variables beat the YAML file."""
    path = _write_config(tmp_path, "logging:\n  level: WARNING\n")
    monkeypatch.setenv("SHIPGATE_LOGGING__LEVEL", "DEBUG")

    assert load_settings(config_path=path).logging.level == "DEBUG"


def test_init_overrides_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Explicit overrides beat both environment and YAML."""
    path = _write_config(tmp_path, "http:\n  port: 9000\n")
    monkeypatch.setenv("SHIPGATE_HTTP__PORT", "9100")

    settings = load_settings(config_path=path, http={"port": 9200})

    assert settings.http.port == 9200


def test_config_file_env_var_selects_yaml(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Without an explicit path the file named by the env var is read."""
    path = _write_config(tmp_path, "logging:\n  level: ERROR\n")
    monkeypatch.setenv(CONFIG_FILE_ENV_VAR, str(path))

    assert load_settings().logging.level == "ERROR"


def test_invalid_values_fail_validation(tmp_path: Path) -> None:
    """Out-of-range values are rejected at load time."""
    path = _write_config(tmp_path, "http:\n  port: 70000\n")

    with pytest.raises(ValidationError):
        load_settings(config_path=path)


def test_external_portal_settings_resolve_from_components_subtree(
    tmp_path: Path,
) -> None:
    """``components.service.external_portal`` feeds the portal settings model."""
    path = _write_config(
        tmp_path,
        "components:\n"
        "  service:\n"
        "    external_portal:\n"
        "      bcrypt_rounds: 10\n"
        "      max_expiry_days: 90\n"
        "      persistence: memory\n",
    )

    portal = resolve_external_portal_settings(load_settings(config_path=path))

    assert portal.bcrypt_rounds == 10
    assert portal.max_expiry_days == 90
    assert portal.persistence == "memory"
    assert portal.token_prefix == "ext_"


def test_external_portal_settings_default_when_absent(tmp_path: Path) -> None:
    """No portal subtree resolves to the model defaults."""
    settings = load_settings(config_path=tmp_path / "absent.yaml")

    assert resolve_external_portal_settings(settings) == ExternalPortalSettings()


def test_external_portal_settings_reject_unknown_keys() -> None:
    """Typos in the portal subtree are configuration errors."""
    settings = load_settings(
        components={"service": {"external_portal": {"bcrypt_round": 10}}}
    )

    with pytest.raises(ValidationError):
        resolve_external_portal_settings(settings)


def test_resolve_component_settings_rejects_unknown_kind() -> None:
    """Component ids must start with a supported kind."""

    class _Model(BaseModel):
        pass

    with pytest.raises(ValueError, match="unsupported component id"):
        resolve_component_settings(
            settings=load_settings(), component_id="adapter_x", model=_Model
        )
