"""External Portal persistence repository implementations."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Mapping, Sequence

from sqlalchemy import desc, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from packages.shipgate_shared.ids import ulid_bytes_to_str, ulid_str_to_bytes
from resources.substrates.postgres import TenantSessionProvider
from services.portal.external_portal.data.schema import (
    audit_entries,
    external_credentials,
    shipment_documents,
    shipments,
)
from services.portal.external_portal.domain import (
    AgentDescriptor,
    AuditEntry,
    CapabilitySet,
    DocumentReference,
    ExternalCredential,
    Shipment,
)
from services.portal.external_portal.interfaces import PortalPersistenceRepository
from services.portal.external_portal.tenancy import TenantScope

_SHIPMENT_COLUMNS = tuple(
    column.name for column in shipments.columns if column.name != "tenant_id"
)


class InMemoryPortalPersistenceRepository(PortalPersistenceRepository):
    """Process-local repository used by tests and single-process deployments.

    Atomic writes are emulated by restoring the previous record when the
    audit append raises.
    """

    def __init__(self) -> None:
        self._credentials: dict[str, ExternalCredential] = {}
        self._shipments: dict[tuple[str, str], Shipment] = {}
        self._entries: list[AuditEntry] = []

    def find_credentials_by_lookup_key(
        self, *, lookup_key: str
    ) -> tuple[ExternalCredential, ...]:
        return tuple(
            row for row in self._credentials.values() if row.lookup_key == lookup_key
        )

    def list_credential_candidates(self) -> tuple[ExternalCredential, ...]:
        return tuple(row for row in self._credentials.values() if row.active)

    def record_credential_use(
        self, *, scope: TenantScope, credential_id: str, used_at: datetime
    ) -> None:
        current = self.get_credential(scope=scope, credential_id=credential_id)
        if current is None:
            return
        self._credentials[credential_id] = current.model_copy(
            update={
                "last_used_at": used_at,
                "use_count": current.use_count + 1,
                "updated_at": used_at,
            }
        )

    def get_credential(
        self, *, scope: TenantScope, credential_id: str
    ) -> ExternalCredential | None:
        row = self._credentials.get(credential_id)
        if row is None or row.tenant_id != scope.tenant_id:
            return None
        return row

    def list_credentials(
        self, *, scope: TenantScope, shipment_id: str
    ) -> tuple[ExternalCredential, ...]:
        rows = [
            row
            for row in self._credentials.values()
            if row.tenant_id == scope.tenant_id and row.shipment_id == shipment_id
        ]
        rows.sort(key=lambda row: (row.created_at, row.credential_id), reverse=True)
        return tuple(rows)

    def save_credential(
        self,
        *,
        scope: TenantScope,
        credential: ExternalCredential,
        entries: Sequence[AuditEntry],
    ) -> None:
        _require_tenant(scope, credential.tenant_id)
        previous = self._credentials.get(credential.credential_id)
        self._credentials[credential.credential_id] = credential
        self._append_or_restore(
            scope=scope,
            entries=entries,
            restore=lambda: _restore(self._credentials, credential.credential_id, previous),
        )

    def get_shipment(self, *, scope: TenantScope, shipment_id: str) -> Shipment | None:
        return self._shipments.get((scope.tenant_id, shipment_id))

    def upsert_shipment(self, *, scope: TenantScope, shipment: Shipment) -> None:
        _require_tenant(scope, shipment.tenant_id)
        self._shipments[(scope.tenant_id, shipment.shipment_id)] = shipment

    def commit_shipment_change(
        self,
        *,
        scope: TenantScope,
        shipment: Shipment,
        entries: Sequence[AuditEntry],
    ) -> None:
        _require_tenant(scope, shipment.tenant_id)
        key = (scope.tenant_id, shipment.shipment_id)
        previous = self._shipments.get(key)
        self._shipments[key] = shipment
        self._append_or_restore(
            scope=scope,
            entries=entries,
            restore=lambda: _restore(self._shipments, key, previous),
        )

    def append_audit_entries(
        self, *, scope: TenantScope, entries: Sequence[AuditEntry]
    ) -> None:
        for entry in entries:
            _require_tenant(scope, entry.tenant_id)
        self._entries.extend(entries)

    def list_audit_entries(
        self,
        *,
        scope: TenantScope,
        shipment_id: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[AuditEntry, ...]:
        rows = [
            entry
            for entry in self._entries
            if entry.tenant_id == scope.tenant_id and entry.shipment_id == shipment_id
        ]
        rows.sort(key=lambda entry: (entry.created_at, entry.entry_id), reverse=True)
        end = None if limit is None else offset + limit
        return tuple(rows[offset:end])

    def is_ready(self) -> bool:
        return True

    def _append_or_restore(
        self,
        *,
        scope: TenantScope,
        entries: Sequence[AuditEntry],
        restore: Callable[[], None],
    ) -> None:
        try:
            self.append_audit_entries(scope=scope, entries=entries)
        except Exception:
            restore()
            raise


class PostgresPortalPersistenceRepository(PortalPersistenceRepository):
    """SQL repository over the ``external_portal`` schema."""

    def __init__(
        self,
        sessions: TenantSessionProvider,
        *,
        readiness: Callable[[], bool] | None = None,
    ) -> None:
        self._sessions = sessions
        self._readiness = readiness

    def find_credentials_by_lookup_key(
        self, *, lookup_key: str
    ) -> tuple[ExternalCredential, ...]:
        with self._sessions.session() as session:
            rows = session.execute(
                select(external_credentials).where(
                    external_credentials.c.lookup_key == lookup_key
                )
            ).mappings()
            return tuple(_to_credential(row) for row in rows)

    def list_credential_candidates(self) -> tuple[ExternalCredential, ...]:
        with self._sessions.session() as session:
            rows = session.execute(
                select(external_credentials).where(
                    external_credentials.c.active.is_(True)
                )
            ).mappings()
            return tuple(_to_credential(row) for row in rows)

    def record_credential_use(
        self, *, scope: TenantScope, credential_id: str, used_at: datetime
    ) -> None:
        with self._sessions.session(tenant_id=scope.tenant_id) as session:
            session.execute(
                update(external_credentials)
                .where(
                    external_credentials.c.id == ulid_str_to_bytes(credential_id),
                    external_credentials.c.tenant_id == scope.tenant_id,
                )
                .values(
                    last_used_at=used_at,
                    use_count=external_credentials.c.use_count + 1,
                    updated_at=used_at,
                )
            )

    def get_credential(
        self, *, scope: TenantScope, credential_id: str
    ) -> ExternalCredential | None:
        with self._sessions.session(tenant_id=scope.tenant_id) as session:
            row = (
                session.execute(
                    select(external_credentials).where(
                        external_credentials.c.id == ulid_str_to_bytes(credential_id),
                        external_credentials.c.tenant_id == scope.tenant_id,
                    )
                )
                .mappings()
                .one_or_none()
            )
            return None if row is None else _to_credential(row)

    def list_credentials(
        self, *, scope: TenantScope, shipment_id: str
    ) -> tuple[ExternalCredential, ...]:
        with self._sessions.session(tenant_id=scope.tenant_id) as session:
            rows = session.execute(
                select(external_credentials)
                .where(
                    external_credentials.c.tenant_id == scope.tenant_id,
                    external_credentials.c.shipment_id == shipment_id,
                )
                .order_by(
                    desc(external_credentials.c.created_at),
                    desc(external_credentials.c.id),
                )
            ).mappings()
            return tuple(_to_credential(row) for row in rows)

    def save_credential(
        self,
        *,
        scope: TenantScope,
        credential: ExternalCredential,
        entries: Sequence[AuditEntry],
    ) -> None:
        _require_tenant(scope, credential.tenant_id)
        values = _credential_values(credential)
        stmt = insert(external_credentials).values(**values)
        with self._sessions.session(tenant_id=scope.tenant_id) as session:
            session.execute(
                stmt.on_conflict_do_update(
                    index_elements=["id"],
                    set_={
                        key: value
                        for key, value in values.items()
                        if key not in {"id", "tenant_id", "created_at"}
                    },
                    where=external_credentials.c.tenant_id == scope.tenant_id,
                )
            )
            _insert_entries(session, scope=scope, entries=entries)

    def get_shipment(self, *, scope: TenantScope, shipment_id: str) -> Shipment | None:
        with self._sessions.session(tenant_id=scope.tenant_id) as session:
            row = (
                session.execute(
                    select(shipments).where(
                        shipments.c.tenant_id == scope.tenant_id,
                        shipments.c.shipment_id == shipment_id,
                    )
                )
                .mappings()
                .one_or_none()
            )
            if row is None:
                return None
            documents = session.execute(
                select(shipment_documents)
                .where(
                    shipment_documents.c.tenant_id == scope.tenant_id,
                    shipment_documents.c.shipment_id == shipment_id,
                )
                .order_by(shipment_documents.c.uploaded_at, shipment_documents.c.id)
            ).mappings()
            return _to_shipment(row, tuple(_to_document(doc) for doc in documents))

    def upsert_shipment(self, *, scope: TenantScope, shipment: Shipment) -> None:
        _require_tenant(scope, shipment.tenant_id)
        with self._sessions.session(tenant_id=scope.tenant_id) as session:
            _write_shipment(session, scope=scope, shipment=shipment)

    def commit_shipment_change(
        self,
        *,
        scope: TenantScope,
        shipment: Shipment,
        entries: Sequence[AuditEntry],
    ) -> None:
        _require_tenant(scope, shipment.tenant_id)
        with self._sessions.session(tenant_id=scope.tenant_id) as session:
            _write_shipment(session, scope=scope, shipment=shipment)
            _insert_entries(session, scope=scope, entries=entries)

    def append_audit_entries(
        self, *, scope: TenantScope, entries: Sequence[AuditEntry]
    ) -> None:
        with self._sessions.session(tenant_id=scope.tenant_id) as session:
            _insert_entries(session, scope=scope, entries=entries)

    def list_audit_entries(
        self,
        *,
        scope: TenantScope,
        shipment_id: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[AuditEntry, ...]:
        with self._sessions.session(tenant_id=scope.tenant_id) as session:
            stmt = (
                select(audit_entries)
                .where(
                    audit_entries.c.tenant_id == scope.tenant_id,
                    audit_entries.c.shipment_id == shipment_id,
                )
                .order_by(desc(audit_entries.c.created_at), desc(audit_entries.c.id))
                .offset(offset)
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            rows = session.execute(stmt).mappings()
            return tuple(_to_audit_entry(row) for row in rows)

    def is_ready(self) -> bool:
        if self._readiness is None:
            return True
        return self._readiness()


def _require_tenant(scope: TenantScope, tenant_id: str) -> None:
    if tenant_id != scope.tenant_id:
        raise ValueError("record tenant does not match the bound tenant scope")


def _restore(store: dict[Any, Any], key: Any, previous: Any) -> None:
    if previous is None:
        store.pop(key, None)
    else:
        store[key] = previous


def _write_shipment(session: Session, *, scope: TenantScope, shipment: Shipment) -> None:
    values = shipment.model_dump(mode="python", exclude={"documents"})
    values["status"] = shipment.status.value
    stmt = insert(shipments).values(**values)
    session.execute(
        stmt.on_conflict_do_update(
            index_elements=["tenant_id", "shipment_id"],
            set_={key: values[key] for key in _SHIPMENT_COLUMNS if key != "shipment_id"},
        )
    )
    for document in shipment.documents:
        session.execute(
            insert(shipment_documents)
            .values(
                id=ulid_str_to_bytes(document.document_id),
                tenant_id=scope.tenant_id,
                shipment_id=shipment.shipment_id,
                name=document.name,
                document_type=document.document_type.value,
                url=document.url,
                uploaded_by=document.uploaded_by,
                uploaded_at=document.uploaded_at,
                notes=document.notes,
            )
            .on_conflict_do_nothing(index_elements=["id"])
        )


def _insert_entries(
    session: Session, *, scope: TenantScope, entries: Sequence[AuditEntry]
) -> None:
    for entry in entries:
        _require_tenant(scope, entry.tenant_id)
        session.execute(
            insert(audit_entries).values(
                id=ulid_str_to_bytes(entry.entry_id),
                tenant_id=entry.tenant_id,
                shipment_id=entry.shipment_id,
                credential_id=(
                    None
                    if entry.credential_id is None
                    else ulid_str_to_bytes(entry.credential_id)
                ),
                user_id=entry.user_id,
                origin=entry.origin.value,
                action=entry.action.value,
                agent_type=None if entry.agent_type is None else entry.agent_type.value,
                agent_name=entry.agent_name,
                field_name=entry.field_name,
                old_value=entry.old_value,
                new_value=entry.new_value,
                note=entry.note,
                ip_address=entry.ip_address,
                created_at=entry.created_at,
            )
        )


def _credential_values(credential: ExternalCredential) -> dict[str, object]:
    return {
        "id": ulid_str_to_bytes(credential.credential_id),
        "tenant_id": credential.tenant_id,
        "shipment_id": credential.shipment_id,
        "secret_hash": credential.secret_hash,
        "lookup_key": credential.lookup_key,
        "agent_type": credential.agent.agent_type.value,
        "agent_name": credential.agent.agent_name,
        "agent_email": credential.agent.agent_email,
        "agent_phone": credential.agent.agent_phone,
        "capabilities": credential.capabilities.model_dump(mode="json"),
        "active": credential.active,
        "expires_at": credential.expires_at,
        "last_used_at": credential.last_used_at,
        "use_count": credential.use_count,
        "created_by": credential.created_by,
        "created_at": credential.created_at,
        "updated_at": credential.updated_at,
    }


def _to_credential(row: Mapping[str, Any]) -> ExternalCredential:
    return ExternalCredential(
        credential_id=ulid_bytes_to_str(row["id"]),
        tenant_id=row["tenant_id"],
        shipment_id=row["shipment_id"],
        secret_hash=row["secret_hash"],
        lookup_key=row["lookup_key"],
        agent=AgentDescriptor(
            agent_type=row["agent_type"],
            agent_name=row["agent_name"],
            agent_email=row["agent_email"],
            agent_phone=row["agent_phone"],
        ),
        capabilities=CapabilitySet.model_validate(row["capabilities"]),
        active=row["active"],
        expires_at=row["expires_at"],
        last_used_at=row["last_used_at"],
        use_count=row["use_count"],
        created_by=row["created_by"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _to_shipment(
    row: Mapping[str, Any], documents: tuple[DocumentReference, ...]
) -> Shipment:
    return Shipment.model_validate(
        {**{key: row[key] for key in row.keys()}, "documents": documents}
    )


def _to_document(row: Mapping[str, Any]) -> DocumentReference:
    return DocumentReference(
        document_id=ulid_bytes_to_str(row["id"]),
        name=row["name"],
        document_type=row["document_type"],
        url=row["url"],
        uploaded_by=row["uploaded_by"],
        uploaded_at=row["uploaded_at"],
        notes=row["notes"],
    )


def _to_audit_entry(row: Mapping[str, Any]) -> AuditEntry:
    credential_id = row["credential_id"]
    return AuditEntry(
        entry_id=ulid_bytes_to_str(row["id"]),
        tenant_id=row["tenant_id"],
        shipment_id=row["shipment_id"],
        credential_id=None if credential_id is None else ulid_bytes_to_str(credential_id),
        user_id=row["user_id"],
        origin=row["origin"],
        action=row["action"],
        agent_type=row["agent_type"],
        agent_name=row["agent_name"],
        field_name=row["field_name"],
        old_value=row["old_value"],
        new_value=row["new_value"],
        note=row["note"],
        ip_address=row["ip_address"],
        created_at=row["created_at"],
    )
