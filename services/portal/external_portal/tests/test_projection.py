"""Unit tests for the scoped shipment projection."""

from __future__ import annotations

from decimal import Decimal

from services.portal.external_portal.domain import CapabilitySet, Shipment
from services.portal.external_portal.projection import (
    ALWAYS_VISIBLE_FIELDS,
    COST_VISIBLE_FIELDS,
    project_shipment,
)


def _shipment() -> Shipment:
    return Shipment(
        shipment_id="shp-1",
        tenant_id="tenant-a",
        order_number="PO-1",
        fob_total=Decimal("100.00"),
        other_costs=Decimal("4.20"),
    )


def test_projection_never_exposes_tenant_id() -> None:
    projected = project_shipment(_shipment(), CapabilitySet(may_edit_cost_fields=True))

    assert "tenant_id" not in projected


def test_projection_without_cost_capability_excludes_costs() -> None:
    projected = project_shipment(_shipment(), CapabilitySet())

    assert set(projected) == set(ALWAYS_VISIBLE_FIELDS)


def test_projection_with_cost_capability_includes_costs() -> None:
    projected = project_shipment(_shipment(), CapabilitySet(may_edit_cost_fields=True))

    assert set(projected) == {*ALWAYS_VISIBLE_FIELDS, *COST_VISIBLE_FIELDS}
    assert projected["fob_total"] == "100.00"
    assert projected["freight_cost"] is None
