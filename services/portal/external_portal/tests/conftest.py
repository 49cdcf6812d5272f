"""Shared fixtures for External Portal tests."""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal

import pytest

from packages.shipgate_shared.envelope import EnvelopeKind, EnvelopeMeta, new_meta
from services.portal.external_portal.config import ExternalPortalSettings
from services.portal.external_portal.data.repository import (
    InMemoryPortalPersistenceRepository,
)
from services.portal.external_portal.domain import (
    AgentType,
    CapabilitySet,
    GrantIssued,
    GrantRequest,
    Shipment,
    ShipmentStatus,
)
from services.portal.external_portal.implementation import (
    DefaultExternalPortalService,
)
from services.portal.external_portal.tenancy import InternalActor, TenantScope

TENANT_ID = "tenant-acme"
SHIPMENT_ID = "shp-1001"


def meta(kind: EnvelopeKind = EnvelopeKind.COMMAND) -> EnvelopeMeta:
    return new_meta(kind=kind, source="test", principal="tester")


@pytest.fixture
def portal_settings() -> ExternalPortalSettings:
    return ExternalPortalSettings(bcrypt_rounds=4, persistence="memory")


@pytest.fixture
def scope() -> TenantScope:
    return TenantScope(tenant_id=TENANT_ID)


@pytest.fixture
def actor(scope: TenantScope) -> InternalActor:
    return InternalActor(scope=scope, user_id="staff-7")


@pytest.fixture
def repository(scope: TenantScope) -> InMemoryPortalPersistenceRepository:
    repo = InMemoryPortalPersistenceRepository()
    repo.upsert_shipment(
        scope=scope,
        shipment=Shipment(
            shipment_id=SHIPMENT_ID,
            tenant_id=TENANT_ID,
            order_number="PO-2026-0042",
            status=ShipmentStatus.DRAFT,
            origin_country="CN",
            origin_port="Shanghai",
            destination_port="Rotterdam",
            fob_total=Decimal("18000.00"),
            cif_total=Decimal("19850.00"),
            freight_cost=Decimal("1500.00"),
        ),
    )
    return repo


@pytest.fixture
def service(
    portal_settings: ExternalPortalSettings,
    repository: InMemoryPortalPersistenceRepository,
) -> DefaultExternalPortalService:
    return DefaultExternalPortalService(settings=portal_settings, repository=repository)


@pytest.fixture
def set_status(
    repository: InMemoryPortalPersistenceRepository, scope: TenantScope
) -> Callable[[ShipmentStatus], None]:
    """Move the seeded shipment to a status without going through the gateway."""

    def _set(status: ShipmentStatus) -> None:
        current = repository.get_shipment(scope=scope, shipment_id=SHIPMENT_ID)
        assert current is not None
        repository.upsert_shipment(
            scope=scope, shipment=current.model_copy(update={"status": status})
        )

    return _set


@pytest.fixture
def issue(
    service: DefaultExternalPortalService, actor: InternalActor
) -> Callable[..., GrantIssued]:
    """Create a grant on the seeded shipment and return the issued token."""

    def _issue(
        capabilities: CapabilitySet | None = None,
        *,
        agent_name: str = "Harbor Customs Ltd",
        agent_type: AgentType = AgentType.CUSTOMS_BROKER,
        expires_in_days: int = 30,
    ) -> GrantIssued:
        result = service.create_grant(
            meta=meta(),
            actor=actor,
            request=GrantRequest(
                shipment_id=SHIPMENT_ID,
                agent_type=agent_type,
                agent_name=agent_name,
                agent_email="ops@harbor-customs.example.com",
                capabilities=capabilities or CapabilitySet(),
                expires_in_days=expires_in_days,
            ),
        )
        assert result.ok, result.errors
        assert result.value is not None
        return result.value

    return _issue
