"""create external portal tables"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from services.portal.external_portal.data.runtime import external_portal_postgres_schema

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def _schema() -> str:
    return external_portal_postgres_schema()


def _ulid(name: str, *, primary_key: bool = False, nullable: bool = False) -> sa.Column:
    """Return a 16-byte BYTEA column carrying the ULID length check."""
    return sa.Column(
        name,
        postgresql.BYTEA(),
        sa.CheckConstraint(
            f"{name} IS NULL OR octet_length({name}) = 16",
            name=f"ck_{name}_ulid_16",
        ),
        primary_key=primary_key,
        nullable=nullable,
    )


def _money(name: str) -> sa.Column:
    return sa.Column(name, sa.Numeric(14, 2), nullable=True)


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
    )


def upgrade() -> None:
    """Create External Portal schema objects."""
    schema = _schema()

    op.create_table(
        "external_credentials",
        _ulid("id", primary_key=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("shipment_id", sa.String(length=64), nullable=False),
        sa.Column("secret_hash", sa.String(length=128), nullable=False),
        sa.Column("lookup_key", sa.String(length=64), nullable=True),
        sa.Column("agent_type", sa.String(length=32), nullable=False),
        sa.Column("agent_name", sa.String(length=200), nullable=False),
        sa.Column("agent_email", sa.String(length=320), nullable=False),
        sa.Column("agent_phone", sa.String(length=50), nullable=True),
        sa.Column("capabilities", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("use_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("use_count >= 0", name="ck_external_credentials_use_count"),
        schema=schema,
    )

    op.create_table(
        "audit_entries",
        _ulid("id", primary_key=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("shipment_id", sa.String(length=64), nullable=False),
        _ulid("credential_id", nullable=True),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("origin", sa.String(length=16), nullable=False),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("agent_type", sa.String(length=32), nullable=True),
        sa.Column("agent_name", sa.String(length=200), nullable=True),
        sa.Column("field_name", sa.String(length=64), nullable=True),
        sa.Column("old_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        schema=schema,
    )

    op.create_table(
        "shipments",
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("shipment_id", sa.String(length=64), nullable=False),
        sa.Column("order_number", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("origin_country", sa.String(length=64), nullable=True),
        sa.Column("origin_port", sa.String(length=200), nullable=True),
        sa.Column("destination_port", sa.String(length=200), nullable=True),
        sa.Column("incoterm", sa.String(length=16), nullable=True),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("bl_number", sa.String(length=100), nullable=True),
        sa.Column("container_number", sa.String(length=100), nullable=True),
        sa.Column("vessel_name", sa.String(length=200), nullable=True),
        sa.Column("shipping_line", sa.String(length=200), nullable=True),
        sa.Column("tracking_url", sa.String(length=1000), nullable=True),
        sa.Column("etd", sa.Date(), nullable=True),
        sa.Column("eta", sa.Date(), nullable=True),
        sa.Column("actual_ship_date", sa.Date(), nullable=True),
        sa.Column("actual_arrival", sa.Date(), nullable=True),
        sa.Column("customs_clearance_date", sa.Date(), nullable=True),
        sa.Column("warehouse_entry_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        _money("fob_total"),
        _money("cif_total"),
        _money("freight_cost"),
        _money("insurance_cost"),
        _money("port_charges"),
        _money("broker_fees"),
        _money("inland_freight"),
        _money("other_costs"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("tenant_id", "shipment_id", name="pk_shipments"),
        schema=schema,
    )

    op.create_table(
        "shipment_documents",
        _ulid("id", primary_key=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("shipment_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("document_type", sa.String(length=32), nullable=False),
        sa.Column("url", sa.String(length=1000), nullable=False),
        sa.Column("uploaded_by", sa.String(length=200), nullable=False),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.String(length=500), nullable=False, server_default=""),
        schema=schema,
    )

    op.create_index("ix_external_credentials_tenant_id", "external_credentials", ["tenant_id"], unique=False, schema=schema)
    op.create_index("ix_external_credentials_lookup_key", "external_credentials", ["lookup_key"], unique=False, schema=schema)
    op.create_index(
        "ix_audit_entries_tenant_shipment_created",
        "audit_entries",
        ["tenant_id", "shipment_id", sa.text("created_at DESC")],
        unique=False,
        schema=schema,
    )
    op.create_index("ix_shipments_tenant_id", "shipments", ["tenant_id"], unique=False, schema=schema)
    op.create_index("ix_shipment_documents_shipment_id", "shipment_documents", ["shipment_id"], unique=False, schema=schema)


def downgrade() -> None:
    """Drop External Portal schema objects."""
    schema = _schema()

    op.drop_index("ix_shipment_documents_shipment_id", table_name="shipment_documents", schema=schema)
    op.drop_index("ix_shipments_tenant_id", table_name="shipments", schema=schema)
    op.drop_index("ix_audit_entries_tenant_shipment_created", table_name="audit_entries", schema=schema)
    op.drop_index("ix_external_credentials_lookup_key", table_name="external_credentials", schema=schema)
    op.drop_index("ix_external_credentials_tenant_id", table_name="external_credentials", schema=schema)

    op.drop_table("shipment_documents", schema=schema)
    op.drop_table("shipments", schema=schema)
    op.drop_table("audit_entries", schema=schema)
    op.drop_table("external_credentials", schema=schema)
