"""Pydantic settings for External Portal behavior."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from packages.shipgate_shared.config import ShipgateSettings, resolve_component_settings
from services.portal.external_portal.component import SERVICE_COMPONENT_ID


class ExternalPortalSettings(BaseModel):
    """Credential minting, hashing, and read-limit settings.

    ``secret_bytes`` stays under bcrypt's 72-byte input limit once hex
    encoded.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    token_prefix: str = Field(default="ext_", min_length=1, max_length=16)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    lookup_key_bytes: int = Field(default=8, ge=4, le=32)
    secret_bytes: int = Field(default=32, ge=16, le=36)
    max_expiry_days: int = Field(default=365, ge=1, le=3650)
    portal_path: str = "/portal"
    audit_trail_limit: int = Field(default=500, gt=0)
    persistence: Literal["memory", "postgres"] = "postgres"


def resolve_external_portal_settings(
    settings: ShipgateSettings,
) -> ExternalPortalSettings:
    """Resolve portal settings from ``components.service.external_portal``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=ExternalPortalSettings,
    )
