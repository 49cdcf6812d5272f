"""Domain contracts for the External Portal access gateway."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class ShipmentStatus(str, Enum):
    """Lifecycle states of one import shipment."""

    DRAFT = "draft"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    AT_PORT = "at_port"
    CUSTOMS = "customs"
    CLEARED = "cleared"
    RECEIVED = "received"
    CLOSED = "closed"


class AgentType(str, Enum):
    """Kinds of outside party a credential may be issued to."""

    CUSTOMS_BROKER = "customs_broker"
    FREIGHT_FORWARDER = "freight_forwarder"
    CARRIER = "carrier"
    INLAND_TRANSPORT = "inland_transport"
    PORT_AGENT = "port_agent"
    INSPECTOR = "inspector"


class DocumentType(str, Enum):
    """Document reference categories accepted from agents."""

    BL = "bl"
    COMMERCIAL_INVOICE = "commercial_invoice"
    PACKING_LIST = "packing_list"
    CUSTOMS_DECLARATION = "customs_declaration"
    CERTIFICATE = "certificate"
    INSURANCE = "insurance"
    FREIGHT_INVOICE = "freight_invoice"
    INSPECTION_REPORT = "inspection_report"
    OTHER = "other"


class AuditAction(str, Enum):
    STATUS_CHANGE = "status_change"
    FIELD_UPDATE = "field_update"
    COST_UPDATE = "cost_update"
    DOCUMENT_UPLOAD = "document_upload"
    NOTE_ADDED = "note_added"


class AuditOrigin(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


class FieldBucket(str, Enum):
    """Authorization bucket each editable shipment field belongs to."""

    DATE = "date"
    COST = "cost"
    NAMED = "named"


class DateField(str, Enum):
    """Scheduling dates gated by ``may_edit_scheduling_dates``."""

    ETD = "etd"
    ETA = "eta"
    ACTUAL_SHIP_DATE = "actual_ship_date"
    ACTUAL_ARRIVAL = "actual_arrival"
    CUSTOMS_CLEARANCE_DATE = "customs_clearance_date"
    WAREHOUSE_ENTRY_DATE = "warehouse_entry_date"


class CostField(str, Enum):
    """Cost amounts gated by ``may_edit_cost_fields``."""

    FREIGHT_COST = "freight_cost"
    INSURANCE_COST = "insurance_cost"
    PORT_CHARGES = "port_charges"
    BROKER_FEES = "broker_fees"
    INLAND_FREIGHT = "inland_freight"
    OTHER_COSTS = "other_costs"


class NamedField(str, Enum):
    """Free-text logistics fields gated individually by ``allowed_fields``."""

    BL_NUMBER = "bl_number"
    CONTAINER_NUMBER = "container_number"
    VESSEL_NAME = "vessel_name"
    SHIPPING_LINE = "shipping_line"
    TRACKING_URL = "tracking_url"
    ORIGIN_PORT = "origin_port"
    DESTINATION_PORT = "destination_port"


EditableField = DateField | CostField | NamedField

NAMED_FIELD_MAX_LENGTH: dict[NamedField, int] = {
    NamedField.BL_NUMBER: 100,
    NamedField.CONTAINER_NUMBER: 100,
    NamedField.VESSEL_NAME: 200,
    NamedField.SHIPPING_LINE: 200,
    NamedField.TRACKING_URL: 1000,
    NamedField.ORIGIN_PORT: 200,
    NamedField.DESTINATION_PORT: 200,
}


def utc_now() -> datetime:
    """Return current UTC timestamp."""
    return datetime.now(UTC)


class CapabilitySet(BaseModel):
    """Closed set of actions one credential may exercise.

    An empty ``allowed_statuses`` permits every globally legal transition;
    an empty ``allowed_fields`` permits no named field.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    may_change_status: bool = False
    may_upload_documents: bool = False
    may_edit_scheduling_dates: bool = False
    may_edit_cost_fields: bool = False
    allowed_statuses: tuple[ShipmentStatus, ...] = ()
    allowed_fields: tuple[NamedField, ...] = ()

    @field_validator("allowed_statuses", "allowed_fields")
    @classmethod
    def _dedupe(cls, value: tuple[Any, ...]) -> tuple[Any, ...]:
        return tuple(dict.fromkeys(value))


class AgentDescriptor(BaseModel):
    """Identity of the outside party holding a credential."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    agent_type: AgentType
    agent_name: str = Field(min_length=1, max_length=200)
    agent_email: str
    agent_phone: str | None = None


class ExternalCredential(BaseModel):
    """Stored credential row. Only the bcrypt digest of the secret is kept."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    credential_id: str
    tenant_id: str
    shipment_id: str
    secret_hash: str
    lookup_key: str | None = None
    agent: AgentDescriptor
    capabilities: CapabilitySet
    active: bool = True
    expires_at: datetime
    last_used_at: datetime | None = None
    use_count: int = Field(default=0, ge=0)
    created_by: str
    created_at: datetime
    updated_at: datetime


class CredentialView(BaseModel):
    """Authenticated credential as seen by request handling."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    credential_id: str
    tenant_id: str
    shipment_id: str
    agent: AgentDescriptor
    capabilities: CapabilitySet
    expires_at: datetime


class GrantSummary(BaseModel):
    """Credential listing entry for internal users; never carries hashes."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    credential_id: str
    shipment_id: str
    agent: AgentDescriptor
    capabilities: CapabilitySet
    active: bool
    expires_at: datetime
    last_used_at: datetime | None
    use_count: int
    created_by: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_credential(cls, credential: ExternalCredential) -> "GrantSummary":
        return cls(
            credential_id=credential.credential_id,
            shipment_id=credential.shipment_id,
            agent=credential.agent,
            capabilities=credential.capabilities,
            active=credential.active,
            expires_at=credential.expires_at,
            last_used_at=credential.last_used_at,
            use_count=credential.use_count,
            created_by=credential.created_by,
            created_at=credential.created_at,
            updated_at=credential.updated_at,
        )


class GrantIssued(BaseModel):
    """Result of create or rotate. ``token`` is shown exactly once."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    grant: GrantSummary
    token: str
    portal_url: str


class DocumentReference(BaseModel):
    """Opaque pointer to a document stored elsewhere."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    document_id: str
    name: str
    document_type: DocumentType
    url: str
    uploaded_by: str
    uploaded_at: datetime
    notes: str = ""


class Shipment(BaseModel):
    """Columns of the guarded shipment record this service reads and writes."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    shipment_id: str
    tenant_id: str
    order_number: str
    status: ShipmentStatus = ShipmentStatus.DRAFT
    origin_country: str | None = None
    origin_port: str | None = None
    destination_port: str | None = None
    incoterm: str | None = None
    currency: str = "USD"
    bl_number: str | None = None
    container_number: str | None = None
    vessel_name: str | None = None
    shipping_line: str | None = None
    tracking_url: str | None = None
    etd: date | None = None
    eta: date | None = None
    actual_ship_date: date | None = None
    actual_arrival: date | None = None
    customs_clearance_date: date | None = None
    warehouse_entry_date: date | None = None
    notes: str = ""
    fob_total: Decimal | None = None
    cif_total: Decimal | None = None
    freight_cost: Decimal | None = None
    insurance_cost: Decimal | None = None
    port_charges: Decimal | None = None
    broker_fees: Decimal | None = None
    inland_freight: Decimal | None = None
    other_costs: Decimal | None = None
    documents: tuple[DocumentReference, ...] = ()
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def with_note(self, line: str) -> "Shipment":
        """Return a copy with ``line`` appended to the notes journal."""
        notes = f"{self.notes}\n{line}" if self.notes else line
        return self.model_copy(update={"notes": notes})


class AuditEntry(BaseModel):
    """One immutable record of an accepted mutation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    entry_id: str
    tenant_id: str
    shipment_id: str
    origin: AuditOrigin
    action: AuditAction
    credential_id: str | None = None
    user_id: str | None = None
    agent_type: AgentType | None = None
    agent_name: str | None = None
    field_name: str | None = None
    old_value: str | None = None
    new_value: str | None = None
    note: str | None = None
    ip_address: str | None = None
    created_at: datetime


@dataclass(frozen=True)
class FieldChange:
    """One authorized field write with its parsed value."""

    field: EditableField
    bucket: FieldBucket
    old_value: date | Decimal | str | None
    new_value: date | Decimal | str


@dataclass(frozen=True)
class FieldChangeSet:
    """Authorized batch of field writes, applied all together or not at all."""

    changes: tuple[FieldChange, ...]

    def as_update(self) -> dict[str, object]:
        return {change.field.value: change.new_value for change in self.changes}


@dataclass(frozen=True)
class AcceptedTransition:
    """Status move approved by the transition engine.

    ``stamped_dates`` lists date fields set to today alongside the move.
    """

    from_status: ShipmentStatus
    to_status: ShipmentStatus
    stamped_dates: tuple[DateField, ...] = ()


class StatusChangeRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    new_status: ShipmentStatus
    note: str | None = Field(default=None, max_length=1000)


class DocumentUploadRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    name: str = Field(min_length=1, max_length=255)
    document_type: DocumentType = Field(alias="type")
    url: str = Field(min_length=1, max_length=1000)
    notes: str | None = Field(default=None, max_length=500)


class NoteRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    content: str = Field(min_length=1, max_length=2000)


class GrantRequest(BaseModel):
    """Internal request to issue a credential for one shipment."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    shipment_id: str = Field(min_length=1)
    agent_type: AgentType
    agent_name: str = Field(min_length=1, max_length=200)
    agent_email: EmailStr
    agent_phone: str | None = Field(default=None, max_length=50)
    capabilities: CapabilitySet = Field(default_factory=CapabilitySet)
    expires_in_days: int = Field(ge=1, le=365)


class PortalSnapshot(BaseModel):
    """What an authenticated agent sees: scoped record, identity, rights."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    shipment: dict[str, Any]
    agent: AgentDescriptor
    capabilities: CapabilitySet
    expires_at: datetime


class NotesJournal(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    notes: str


class AuditTrailPage(BaseModel):
    """One page of a shipment's audit trail, newest first.

    ``next_offset`` is set whenever older entries remain past this page.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    entries: tuple[AuditEntry, ...]
    offset: int
    limit: int
    next_offset: int | None = None


class AgentActivity(BaseModel):
    """Per-agent tally of external actions on one shipment."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    agent_name: str
    agent_type: AgentType | None
    total_actions: int
    last_action_at: datetime
    actions: dict[str, int]


class PortalHealthStatus(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    service_ready: bool
    persistence_ready: bool
    detail: str
