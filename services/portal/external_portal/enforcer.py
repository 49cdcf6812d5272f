"""Field-level and action-level capability checks for external agents."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Mapping

from services.portal.external_portal.domain import (
    NAMED_FIELD_MAX_LENGTH,
    CapabilitySet,
    CostField,
    DateField,
    EditableField,
    FieldBucket,
    FieldChange,
    FieldChangeSet,
    NamedField,
    Shipment,
)
from services.portal.external_portal.errors import (
    EmptyRequest,
    FieldValidationError,
    Forbidden,
)

_FIELDS: dict[str, tuple[FieldBucket, EditableField]] = {
    **{field.value: (FieldBucket.DATE, field) for field in DateField},
    **{field.value: (FieldBucket.COST, field) for field in CostField},
    **{field.value: (FieldBucket.NAMED, field) for field in NamedField},
}

_MAX_COST = Decimal("999999999999.99")


class CapabilityEnforcer:
    """Decide whether a credential's capability set covers a requested write."""

    def authorize_field_updates(
        self,
        capabilities: CapabilitySet,
        payload: Mapping[str, object],
        shipment: Shipment,
    ) -> FieldChangeSet:
        """Authorize and parse one field-update batch, all or nothing.

        Null values are skipped. Unknown keys are denied like any field
        outside the capability set, and one denial rejects the batch.
        """
        present = {key: value for key, value in payload.items() if value is not None}
        if not present:
            raise EmptyRequest()

        denied = [key for key in present if not self._permits(capabilities, key)]
        if denied:
            raise Forbidden(
                f"not permitted to update: {', '.join(denied)}",
                permitted=self.permitted_fields(capabilities),
                denied=denied,
            )

        changes: list[FieldChange] = []
        problems: dict[str, str] = {}
        for key, raw in present.items():
            bucket, field = _FIELDS[key]
            try:
                value = _parse(bucket, field, raw)
            except ValueError as exc:
                problems[key] = str(exc)
                continue
            changes.append(
                FieldChange(
                    field=field,
                    bucket=bucket,
                    old_value=getattr(shipment, field.value),
                    new_value=value,
                )
            )
        if problems:
            raise FieldValidationError(
                "invalid field values: "
                + "; ".join(f"{key}: {reason}" for key, reason in problems.items()),
                metadata=problems,
            )
        return FieldChangeSet(changes=tuple(changes))

    def authorize_document_upload(self, capabilities: CapabilitySet) -> None:
        if not capabilities.may_upload_documents:
            raise Forbidden(
                "not permitted to upload documents",
                permitted=self.permitted_actions(capabilities),
            )

    def authorize_note(self, capabilities: CapabilitySet) -> None:
        """Notes are open to every authenticated credential."""
        del capabilities

    def permitted_fields(self, capabilities: CapabilitySet) -> tuple[str, ...]:
        permitted: list[str] = []
        if capabilities.may_edit_scheduling_dates:
            permitted.extend(field.value for field in DateField)
        if capabilities.may_edit_cost_fields:
            permitted.extend(field.value for field in CostField)
        permitted.extend(field.value for field in capabilities.allowed_fields)
        return tuple(permitted)

    def permitted_actions(self, capabilities: CapabilitySet) -> tuple[str, ...]:
        actions = ["add_note"]
        if capabilities.may_change_status:
            actions.append("change_status")
        if capabilities.may_upload_documents:
            actions.append("upload_document")
        if self.permitted_fields(capabilities):
            actions.append("update_fields")
        return tuple(actions)

    def _permits(self, capabilities: CapabilitySet, key: str) -> bool:
        resolved = _FIELDS.get(key)
        if resolved is None:
            return False
        bucket, field = resolved
        if bucket is FieldBucket.DATE:
            return capabilities.may_edit_scheduling_dates
        if bucket is FieldBucket.COST:
            return capabilities.may_edit_cost_fields
        return field in capabilities.allowed_fields


def _parse(bucket: FieldBucket, field: EditableField, raw: object) -> date | Decimal | str:
    if bucket is FieldBucket.DATE:
        return _parse_date(raw)
    if bucket is FieldBucket.COST:
        return _parse_cost(raw)
    return _parse_named(NamedField(field.value), raw)


def _parse_date(raw: object) -> date:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        raise ValueError("expected an ISO 8601 date")
    text = raw.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        raise ValueError(f"unparseable date {text!r}") from None


def _parse_cost(raw: object) -> Decimal:
    if isinstance(raw, bool) or not isinstance(raw, (int, float, str, Decimal)):
        raise ValueError("expected a non-negative amount")
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        raise ValueError(f"unparseable amount {raw!r}") from None
    if not value.is_finite():
        raise ValueError("amount must be finite")
    if value < 0:
        raise ValueError("amount must not be negative")
    if value > _MAX_COST:
        raise ValueError("amount is too large")
    exponent = value.as_tuple().exponent
    if isinstance(exponent, int) and exponent < -2:
        raise ValueError("amount allows at most two decimal places")
    return value


def _parse_named(field: NamedField, raw: object) -> str:
    if not isinstance(raw, str):
        raise ValueError("expected text")
    value = raw.strip()
    if not value:
        raise ValueError("must not be empty")
    limit = NAMED_FIELD_MAX_LENGTH[field]
    if len(value) > limit:
        raise ValueError(f"must be at most {limit} characters")
    return value
