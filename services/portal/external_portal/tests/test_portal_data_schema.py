"""Unit tests for External Portal data schema definitions."""

from __future__ import annotations

from services.portal.external_portal.data.schema import (
    audit_entries,
    external_credentials,
    shipment_documents,
    shipments,
)
from services.portal.external_portal.domain import CostField, DateField, NamedField


def test_credential_schema_keeps_hash_but_no_raw_secret() -> None:
    columns = set(external_credentials.c.keys())
    assert {"id", "tenant_id", "shipment_id", "secret_hash", "lookup_key"}.issubset(
        columns
    )
    assert "token" not in columns
    assert "secret" not in columns


def test_audit_schema_has_trail_index() -> None:
    (index,) = [
        item
        for item in audit_entries.indexes
        if item.name == "ix_audit_entries_tenant_shipment_created"
    ]
    rendered = [str(expr) for expr in index.expressions]
    assert rendered[0].endswith("tenant_id")
    assert rendered[1].endswith("shipment_id")
    assert rendered[2].endswith("created_at DESC")


def test_shipment_schema_covers_every_editable_field() -> None:
    columns = set(shipments.c.keys())
    editable = {field.value for field in (*DateField, *CostField, *NamedField)}
    assert editable.issubset(columns)


def test_document_schema_contains_required_columns() -> None:
    columns = set(shipment_documents.c.keys())
    assert {"id", "shipment_id", "name", "document_type", "url", "uploaded_by"}.issubset(
        columns
    )


def test_shipment_key_is_scoped_to_tenant() -> None:
    assert [column.name for column in shipments.primary_key.columns] == [
        "tenant_id",
        "shipment_id",
    ]
