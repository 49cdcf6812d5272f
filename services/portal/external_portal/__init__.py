"""External Portal service native package exports.

Only the in-process API is exported here. FastAPI routes live in
`services.portal.external_portal.api` and are registered by Core.
"""

from packages.shipgate_shared.envelope import Envelope, EnvelopeKind, EnvelopeMeta
from packages.shipgate_shared.errors import ErrorCategory, ErrorDetail
from services.portal.external_portal.component import (
    SERVICE_COMPONENT_ID,
    SERVICE_SCHEMA_NAME,
)
from services.portal.external_portal.config import ExternalPortalSettings
from services.portal.external_portal.domain import (
    AuditTrailPage,
    CapabilitySet,
    GrantIssued,
    GrantRequest,
    GrantSummary,
    PortalSnapshot,
    Shipment,
    ShipmentStatus,
)
from services.portal.external_portal.implementation import (
    DefaultExternalPortalService,
)
from services.portal.external_portal.service import (
    ExternalPortalService,
    GrantManager,
    PortalGateway,
    build_external_portal_service,
)
from services.portal.external_portal.tenancy import InternalActor, TenantScope

__all__ = [
    "AuditTrailPage",
    "CapabilitySet",
    "DefaultExternalPortalService",
    "Envelope",
    "EnvelopeKind",
    "EnvelopeMeta",
    "ErrorCategory",
    "ErrorDetail",
    "ExternalPortalService",
    "ExternalPortalSettings",
    "GrantIssued",
    "GrantManager",
    "GrantRequest",
    "GrantSummary",
    "InternalActor",
    "PortalGateway",
    "PortalSnapshot",
    "SERVICE_COMPONENT_ID",
    "SERVICE_SCHEMA_NAME",
    "Shipment",
    "ShipmentStatus",
    "TenantScope",
    "build_external_portal_service",
]
