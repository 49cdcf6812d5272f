"""Append-only audit trail for shipment and credential mutations."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, Sequence

from packages.shipgate_shared.ids import generate_ulid_str
from packages.shipgate_shared.logging import get_logger
from services.portal.external_portal.domain import (
    AgentActivity,
    AgentType,
    AuditAction,
    AuditEntry,
    AuditOrigin,
    AuditTrailPage,
    CredentialView,
    ExternalCredential,
    FieldBucket,
    FieldChange,
    Shipment,
)
from services.portal.external_portal.errors import (
    AuditWriteFailed,
    FieldValidationError,
)
from services.portal.external_portal.interfaces import PortalPersistenceRepository
from services.portal.external_portal.tenancy import InternalActor, TenantScope

_LOGGER = get_logger(__name__)


class AuditLogger:
    """Write and read audit entries; mutations and entries commit together.

    There is no standalone append. Every write goes through ``commit`` or
    ``commit_credential`` so the entries land in the same transaction as the
    row they describe.
    """

    def __init__(
        self, *, repository: PortalPersistenceRepository, trail_limit: int
    ) -> None:
        self._repository = repository
        self._trail_limit = trail_limit

    def commit(
        self, scope: TenantScope, shipment: Shipment, entries: Sequence[AuditEntry]
    ) -> None:
        """Persist a shipment mutation with its entries or fail loudly."""
        try:
            self._repository.commit_shipment_change(
                scope=scope, shipment=shipment, entries=entries
            )
        except Exception as exc:
            _LOGGER.exception("Shipment mutation rolled back; audit write failed")
            raise AuditWriteFailed(exc) from exc

    def commit_credential(
        self,
        scope: TenantScope,
        credential: ExternalCredential,
        entries: Sequence[AuditEntry],
    ) -> None:
        try:
            self._repository.save_credential(
                scope=scope, credential=credential, entries=entries
            )
        except Exception as exc:
            _LOGGER.exception("Credential change rolled back; audit write failed")
            raise AuditWriteFailed(exc) from exc

    def trail(
        self,
        scope: TenantScope,
        shipment_id: str,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> AuditTrailPage:
        """Return one page of entries for a shipment, newest first.

        ``limit`` defaults to and may not exceed the configured trail limit.
        """
        page_size = self._trail_limit if limit is None else limit
        if page_size < 1 or page_size > self._trail_limit:
            raise FieldValidationError(
                f"limit must be between 1 and {self._trail_limit}",
                metadata={"field": "limit"},
            )
        if offset < 0:
            raise FieldValidationError(
                "offset must not be negative", metadata={"field": "offset"}
            )
        rows = self._repository.list_audit_entries(
            scope=scope, shipment_id=shipment_id, limit=page_size + 1, offset=offset
        )
        has_more = len(rows) > page_size
        return AuditTrailPage(
            entries=rows[:page_size],
            offset=offset,
            limit=page_size,
            next_offset=offset + page_size if has_more else None,
        )

    def history(self, scope: TenantScope, shipment_id: str) -> tuple[AuditEntry, ...]:
        """Return every entry for a shipment, newest first."""
        return self._repository.list_audit_entries(
            scope=scope, shipment_id=shipment_id
        )


def external_entry(
    view: CredentialView,
    *,
    action: AuditAction,
    created_at: datetime,
    ip_address: str | None,
    field_name: str | None = None,
    old_value: object = None,
    new_value: object = None,
    note: str | None = None,
) -> AuditEntry:
    return AuditEntry(
        entry_id=generate_ulid_str(),
        tenant_id=view.tenant_id,
        shipment_id=view.shipment_id,
        origin=AuditOrigin.EXTERNAL,
        action=action,
        credential_id=view.credential_id,
        agent_type=view.agent.agent_type,
        agent_name=view.agent.agent_name,
        field_name=field_name,
        old_value=audit_value(old_value),
        new_value=audit_value(new_value),
        note=note,
        ip_address=ip_address,
        created_at=created_at,
    )


def field_update_entry(
    view: CredentialView,
    changes: Sequence[FieldChange],
    *,
    created_at: datetime,
    ip_address: str | None,
) -> AuditEntry:
    """Record a whole field-update batch as one entry.

    A single-field batch keeps plain values. Larger batches join the field
    names with commas and store old and new values as JSON objects.
    """
    if not changes:
        raise ValueError("field update batch is empty")
    action = (
        AuditAction.COST_UPDATE
        if any(change.bucket is FieldBucket.COST for change in changes)
        else AuditAction.FIELD_UPDATE
    )
    if len(changes) == 1:
        (change,) = changes
        return external_entry(
            view,
            action=action,
            created_at=created_at,
            ip_address=ip_address,
            field_name=change.field.value,
            old_value=change.old_value,
            new_value=change.new_value,
        )
    return external_entry(
        view,
        action=action,
        created_at=created_at,
        ip_address=ip_address,
        field_name=",".join(change.field.value for change in changes),
        old_value=json.dumps(
            {change.field.value: audit_value(change.old_value) for change in changes}
        ),
        new_value=json.dumps(
            {change.field.value: audit_value(change.new_value) for change in changes}
        ),
    )


def internal_note_entry(
    actor: InternalActor,
    *,
    shipment_id: str,
    note: str,
    created_at: datetime,
    credential_id: str | None = None,
    ip_address: str | None = None,
) -> AuditEntry:
    return AuditEntry(
        entry_id=generate_ulid_str(),
        tenant_id=actor.scope.tenant_id,
        shipment_id=shipment_id,
        origin=AuditOrigin.INTERNAL,
        action=AuditAction.NOTE_ADDED,
        credential_id=credential_id,
        user_id=actor.user_id,
        note=note,
        ip_address=ip_address,
        created_at=created_at,
    )


def audit_value(value: object) -> str | None:
    """Render a field value the way it is stored in ``old_value``/``new_value``."""
    if value is None:
        return None
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


@dataclass
class _Tally:
    agent_name: str
    agent_type: AgentType | None
    last_action_at: datetime
    total_actions: int = 0
    actions: dict[str, int] = field(default_factory=dict)


def summarize_activity(entries: Iterable[AuditEntry]) -> tuple[AgentActivity, ...]:
    """Tally external entries per agent, most recently active first."""
    tallies: dict[tuple[str, AgentType | None], _Tally] = {}
    for entry in entries:
        if entry.origin is not AuditOrigin.EXTERNAL:
            continue
        key = (entry.agent_name or "", entry.agent_type)
        tally = tallies.setdefault(
            key,
            _Tally(
                agent_name=key[0],
                agent_type=entry.agent_type,
                last_action_at=entry.created_at,
            ),
        )
        tally.total_actions += 1
        tally.actions[entry.action.value] = tally.actions.get(entry.action.value, 0) + 1
        tally.last_action_at = max(tally.last_action_at, entry.created_at)

    activity = [
        AgentActivity(
            agent_name=tally.agent_name,
            agent_type=tally.agent_type,
            total_actions=tally.total_actions,
            last_action_at=tally.last_action_at,
            actions=tally.actions,
        )
        for tally in tallies.values()
    ]
    activity.sort(key=lambda item: item.last_action_at, reverse=True)
    return tuple(activity)
