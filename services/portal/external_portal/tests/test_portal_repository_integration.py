"""Real-Postgres integration tests for the External Portal repository."""

from __future__ import annotations

import os
from datetime import timedelta
from decimal import Decimal

import pytest

from packages.shipgate_core.migrations import run_startup_migrations
from packages.shipgate_shared.config import load_settings
from packages.shipgate_shared.envelope import EnvelopeKind, new_meta
from packages.shipgate_shared.ids import generate_ulid_str
from services.portal.external_portal.config import ExternalPortalSettings
from services.portal.external_portal.data.repository import (
    PostgresPortalPersistenceRepository,
)
from services.portal.external_portal.data.runtime import ExternalPortalPostgresRuntime
from services.portal.external_portal.domain import (
    AgentType,
    CapabilitySet,
    GrantRequest,
    NamedField,
    Shipment,
)
from services.portal.external_portal.implementation import (
    DefaultExternalPortalService,
)
from services.portal.external_portal.tenancy import InternalActor, TenantScope

_POSTGRES_URL = os.getenv("SHIPGATE_TEST_POSTGRES_URL", "").strip()

pytestmark = pytest.mark.skipif(
    not _POSTGRES_URL,
    reason="set SHIPGATE_TEST_POSTGRES_URL to run Postgres integration tests",
)


@pytest.fixture(scope="module")
def runtime() -> ExternalPortalPostgresRuntime:
    settings = load_settings(postgres={"url": _POSTGRES_URL})
    run_startup_migrations(settings=settings)
    return ExternalPortalPostgresRuntime.from_settings(settings)


def test_grant_update_and_trail_roundtrip(runtime) -> None:
    repo = PostgresPortalPersistenceRepository(
        runtime.tenant_sessions, readiness=runtime.is_healthy
    )
    tenant_id = f"tenant-{generate_ulid_str()}"
    shipment_id = f"shp-{generate_ulid_str()}"
    scope = TenantScope(tenant_id=tenant_id)
    repo.upsert_shipment(
        scope=scope,
        shipment=Shipment(
            shipment_id=shipment_id,
            tenant_id=tenant_id,
            order_number="PO-INT-1",
            freight_cost=Decimal("10.00"),
        ),
    )
    service = DefaultExternalPortalService(
        settings=ExternalPortalSettings(bcrypt_rounds=4), repository=repo
    )
    actor = InternalActor(scope=scope, user_id="staff-int")
    meta = new_meta(kind=EnvelopeKind.COMMAND, source="test", principal="tester")

    issued = service.create_grant(
        meta=meta,
        actor=actor,
        request=GrantRequest(
            shipment_id=shipment_id,
            agent_type=AgentType.CARRIER,
            agent_name="Integration Carrier",
            agent_email="it@carrier.example.com",
            capabilities=CapabilitySet(allowed_fields=(NamedField.CONTAINER_NUMBER,)),
            expires_in_days=2,
        ),
    ).value

    updated = service.update_fields(
        meta=meta,
        bearer=issued.token,
        updates={"container_number": "MSKU1234565"},
        client_address="192.0.2.10",
    )

    assert updated.ok, updated.errors
    stored = repo.get_shipment(scope=scope, shipment_id=shipment_id)
    assert stored.container_number == "MSKU1234565"
    trail = repo.list_audit_entries(scope=scope, shipment_id=shipment_id, limit=10)
    assert [entry.field_name for entry in trail][0] == "container_number"
    credential = repo.get_credential(scope=scope, credential_id=issued.grant.credential_id)
    assert credential.use_count == 1
    assert credential.expires_at - credential.created_at == timedelta(days=2)
    assert repo.is_ready() is True


def test_same_shipment_id_is_independent_per_tenant(runtime) -> None:
    repo = PostgresPortalPersistenceRepository(runtime.tenant_sessions)
    shipment_id = f"shp-{generate_ulid_str()}"
    first = TenantScope(tenant_id=f"tenant-{generate_ulid_str()}")
    second = TenantScope(tenant_id=f"tenant-{generate_ulid_str()}")

    for scope, order_number in ((first, "PO-A"), (second, "PO-B")):
        repo.upsert_shipment(
            scope=scope,
            shipment=Shipment(
                shipment_id=shipment_id,
                tenant_id=scope.tenant_id,
                order_number=order_number,
            ),
        )

    assert repo.get_shipment(scope=first, shipment_id=shipment_id).order_number == "PO-A"
    assert repo.get_shipment(scope=second, shipment_id=shipment_id).order_number == "PO-B"
