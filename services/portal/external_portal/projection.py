"""Scoped read view of a shipment for an external agent."""

from __future__ import annotations

from typing import Any

from services.portal.external_portal.domain import CapabilitySet, CostField, Shipment

ALWAYS_VISIBLE_FIELDS: tuple[str, ...] = (
    "shipment_id",
    "order_number",
    "status",
    "origin_country",
    "origin_port",
    "destination_port",
    "incoterm",
    "currency",
    "bl_number",
    "container_number",
    "vessel_name",
    "shipping_line",
    "tracking_url",
    "etd",
    "eta",
    "actual_ship_date",
    "actual_arrival",
    "customs_clearance_date",
    "warehouse_entry_date",
    "notes",
    "documents",
    "created_at",
    "updated_at",
)

# Cost visibility follows the cost edit capability.
COST_VISIBLE_FIELDS: tuple[str, ...] = (
    "fob_total",
    "cif_total",
    *(field.value for field in CostField),
)


def visible_fields(capabilities: CapabilitySet) -> tuple[str, ...]:
    if capabilities.may_edit_cost_fields:
        return (*ALWAYS_VISIBLE_FIELDS, *COST_VISIBLE_FIELDS)
    return ALWAYS_VISIBLE_FIELDS


def project_shipment(shipment: Shipment, capabilities: CapabilitySet) -> dict[str, Any]:
    """Return the JSON-ready subset of ``shipment`` this credential may read."""
    return shipment.model_dump(mode="json", include=set(visible_fields(capabilities)))
