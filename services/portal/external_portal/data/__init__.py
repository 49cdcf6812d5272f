"""External Portal data layer exports."""

from services.portal.external_portal.data.repository import (
    InMemoryPortalPersistenceRepository,
    PostgresPortalPersistenceRepository,
)
from services.portal.external_portal.data.runtime import (
    ExternalPortalPostgresRuntime,
    external_portal_postgres_schema,
)
from services.portal.external_portal.data.schema import (
    audit_entries,
    external_credentials,
    metadata,
    shipment_documents,
    shipments,
)

__all__ = [
    "ExternalPortalPostgresRuntime",
    "InMemoryPortalPersistenceRepository",
    "PostgresPortalPersistenceRepository",
    "audit_entries",
    "external_credentials",
    "external_portal_postgres_schema",
    "metadata",
    "shipment_documents",
    "shipments",
]
