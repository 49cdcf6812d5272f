"""Component identity for the External Portal service."""

from __future__ import annotations

SERVICE_COMPONENT_ID = "service_external_portal"
SERVICE_SCHEMA_NAME = "external_portal"
