"""Table models for External Portal credentials, shipments, and audit."""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB

from packages.shipgate_shared.ids import ulid_column, ulid_primary_key_column

metadata = MetaData()

_MONEY = Numeric(14, 2)

external_credentials = Table(
    "external_credentials",
    metadata,
    ulid_primary_key_column("id"),
    Column("tenant_id", String(64), nullable=False, index=True),
    Column("shipment_id", String(64), nullable=False),
    Column("secret_hash", String(128), nullable=False),
    Column("lookup_key", String(64), nullable=True, index=True),
    Column("agent_type", String(32), nullable=False),
    Column("agent_name", String(200), nullable=False),
    Column("agent_email", String(320), nullable=False),
    Column("agent_phone", String(50), nullable=True),
    Column("capabilities", JSONB, nullable=False),
    Column("active", Boolean, nullable=False, server_default="true"),
    Column("expires_at", DateTime(timezone=True), nullable=False),
    Column("last_used_at", DateTime(timezone=True), nullable=True),
    Column("use_count", Integer, nullable=False, server_default="0"),
    Column("created_by", String(64), nullable=False),
    Column(
        "created_at", DateTime(timezone=True), nullable=False, server_default=func.now()
    ),
    Column(
        "updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()
    ),
)

audit_entries = Table(
    "audit_entries",
    metadata,
    ulid_primary_key_column("id"),
    Column("tenant_id", String(64), nullable=False),
    Column("shipment_id", String(64), nullable=False),
    ulid_column("credential_id", nullable=True),
    Column("user_id", String(64), nullable=True),
    Column("origin", String(16), nullable=False),
    Column("action", String(32), nullable=False),
    Column("agent_type", String(32), nullable=True),
    Column("agent_name", String(200), nullable=True),
    Column("field_name", String(64), nullable=True),
    Column("old_value", Text, nullable=True),
    Column("new_value", Text, nullable=True),
    Column("note", Text, nullable=True),
    Column("ip_address", String(64), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

Index(
    "ix_audit_entries_tenant_shipment_created",
    audit_entries.c.tenant_id,
    audit_entries.c.shipment_id,
    audit_entries.c.created_at.desc(),
)

shipments = Table(
    "shipments",
    metadata,
    Column("tenant_id", String(64), primary_key=True, index=True),
    Column("shipment_id", String(64), primary_key=True),
    Column("order_number", String(64), nullable=False),
    Column("status", String(32), nullable=False),
    Column("origin_country", String(64), nullable=True),
    Column("origin_port", String(200), nullable=True),
    Column("destination_port", String(200), nullable=True),
    Column("incoterm", String(16), nullable=True),
    Column("currency", String(8), nullable=False),
    Column("bl_number", String(100), nullable=True),
    Column("container_number", String(100), nullable=True),
    Column("vessel_name", String(200), nullable=True),
    Column("shipping_line", String(200), nullable=True),
    Column("tracking_url", String(1000), nullable=True),
    Column("etd", Date, nullable=True),
    Column("eta", Date, nullable=True),
    Column("actual_ship_date", Date, nullable=True),
    Column("actual_arrival", Date, nullable=True),
    Column("customs_clearance_date", Date, nullable=True),
    Column("warehouse_entry_date", Date, nullable=True),
    Column("notes", Text, nullable=False, server_default=""),
    Column("fob_total", _MONEY, nullable=True),
    Column("cif_total", _MONEY, nullable=True),
    Column("freight_cost", _MONEY, nullable=True),
    Column("insurance_cost", _MONEY, nullable=True),
    Column("port_charges", _MONEY, nullable=True),
    Column("broker_fees", _MONEY, nullable=True),
    Column("inland_freight", _MONEY, nullable=True),
    Column("other_costs", _MONEY, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

shipment_documents = Table(
    "shipment_documents",
    metadata,
    ulid_primary_key_column("id"),
    Column("tenant_id", String(64), nullable=False),
    Column("shipment_id", String(64), nullable=False, index=True),
    Column("name", String(255), nullable=False),
    Column("document_type", String(32), nullable=False),
    Column("url", String(1000), nullable=False),
    Column("uploaded_by", String(200), nullable=False),
    Column("uploaded_at", DateTime(timezone=True), nullable=False),
    Column("notes", String(500), nullable=False, server_default=""),
)
