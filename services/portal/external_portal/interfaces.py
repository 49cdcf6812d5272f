"""Persistence protocol for the External Portal service.

Every method touching tenant data takes a ``TenantScope``. The two
credential-candidate reads are the only unscoped calls: they run before a
tenant is known and return rows for the authenticator to verify.
There is no update or delete for audit entries.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence

from services.portal.external_portal.domain import (
    AuditEntry,
    ExternalCredential,
    Shipment,
)
from services.portal.external_portal.tenancy import TenantScope


class PortalPersistenceRepository(Protocol):
    """Credentials, shipments, and the append-only audit trail."""

    def find_credentials_by_lookup_key(
        self, *, lookup_key: str
    ) -> tuple[ExternalCredential, ...]:
        """Return credential rows carrying ``lookup_key`` across tenants."""

    def list_credential_candidates(self) -> tuple[ExternalCredential, ...]:
        """Return active credential rows for the fallback linear scan.

        Revoked rows are left out so a legacy bearer is never compared
        against them.
        """

    def record_credential_use(
        self, *, scope: TenantScope, credential_id: str, used_at: datetime
    ) -> None:
        """Set ``last_used_at`` and increment ``use_count``."""

    def get_credential(
        self, *, scope: TenantScope, credential_id: str
    ) -> ExternalCredential | None:
        """Read one credential within the tenant."""

    def list_credentials(
        self, *, scope: TenantScope, shipment_id: str
    ) -> tuple[ExternalCredential, ...]:
        """List credentials for one shipment, newest first."""

    def save_credential(
        self,
        *,
        scope: TenantScope,
        credential: ExternalCredential,
        entries: Sequence[AuditEntry],
    ) -> None:
        """Insert or replace one credential and append entries atomically."""

    def get_shipment(self, *, scope: TenantScope, shipment_id: str) -> Shipment | None:
        """Read one shipment within the tenant."""

    def upsert_shipment(self, *, scope: TenantScope, shipment: Shipment) -> None:
        """Insert or replace one shipment without auditing."""

    def commit_shipment_change(
        self,
        *,
        scope: TenantScope,
        shipment: Shipment,
        entries: Sequence[AuditEntry],
    ) -> None:
        """Persist a shipment mutation together with its audit entries.

        Either both are stored or neither is.
        """

    def append_audit_entries(
        self, *, scope: TenantScope, entries: Sequence[AuditEntry]
    ) -> None:
        """Append audit entries."""

    def list_audit_entries(
        self,
        *,
        scope: TenantScope,
        shipment_id: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[AuditEntry, ...]:
        """Return entries for one shipment ordered newest first.

        ``limit=None`` returns every entry from ``offset`` on.
        """

    def is_ready(self) -> bool:
        """Return whether backing storage is reachable."""
