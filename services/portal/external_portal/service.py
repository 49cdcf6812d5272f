"""Authoritative in-process Python API for the External Portal."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping

from packages.shipgate_shared.config import ShipgateSettings
from packages.shipgate_shared.envelope import Envelope, EnvelopeMeta
from services.portal.external_portal.domain import (
    AgentActivity,
    AuditTrailPage,
    DocumentReference,
    DocumentUploadRequest,
    GrantIssued,
    GrantRequest,
    GrantSummary,
    NoteRequest,
    NotesJournal,
    PortalHealthStatus,
    PortalSnapshot,
    StatusChangeRequest,
)
from services.portal.external_portal.tenancy import InternalActor


class PortalGateway(ABC):
    """Bearer-authenticated operations on the credential's own shipment.

    Every method authenticates first; a failed authentication returns
    before the shipment or audit trail is read.
    """

    @abstractmethod
    def get_my_shipment(
        self, *, meta: EnvelopeMeta, bearer: str | None
    ) -> Envelope[PortalSnapshot]:
        """Return the scoped projection, agent identity, and capabilities."""

    @abstractmethod
    def update_fields(
        self,
        *,
        meta: EnvelopeMeta,
        bearer: str | None,
        updates: Mapping[str, object],
        client_address: str | None,
    ) -> Envelope[PortalSnapshot]:
        """Apply an all-or-nothing field batch and return the fresh projection."""

    @abstractmethod
    def change_status(
        self,
        *,
        meta: EnvelopeMeta,
        bearer: str | None,
        request: StatusChangeRequest,
        client_address: str | None,
    ) -> Envelope[PortalSnapshot]:
        """Move the shipment to a new status and return the fresh projection."""

    @abstractmethod
    def upload_document(
        self,
        *,
        meta: EnvelopeMeta,
        bearer: str | None,
        request: DocumentUploadRequest,
        client_address: str | None,
    ) -> Envelope[tuple[DocumentReference, ...]]:
        """Attach a document reference and return all references."""

    @abstractmethod
    def add_note(
        self,
        *,
        meta: EnvelopeMeta,
        bearer: str | None,
        request: NoteRequest,
        client_address: str | None,
    ) -> Envelope[NotesJournal]:
        """Append a journal line and return the full journal."""

    @abstractmethod
    def my_audit_trail(
        self,
        *,
        meta: EnvelopeMeta,
        bearer: str | None,
        limit: int | None = None,
        offset: int = 0,
    ) -> Envelope[AuditTrailPage]:
        """Return one page of the shipment's audit trail, newest first."""

    @abstractmethod
    def health(self, *, meta: EnvelopeMeta) -> Envelope[PortalHealthStatus]:
        """Return service and persistence readiness."""


class GrantManager(ABC):
    """Internal-user operations for issuing and managing credentials."""

    @abstractmethod
    def create_grant(
        self, *, meta: EnvelopeMeta, actor: InternalActor, request: GrantRequest
    ) -> Envelope[GrantIssued]:
        """Issue a credential; the raw token appears only in this result."""

    @abstractmethod
    def revoke_grant(
        self, *, meta: EnvelopeMeta, actor: InternalActor, credential_id: str
    ) -> Envelope[GrantSummary]:
        """Deactivate a credential. Rows are never deleted."""

    @abstractmethod
    def rotate_grant(
        self, *, meta: EnvelopeMeta, actor: InternalActor, credential_id: str
    ) -> Envelope[GrantIssued]:
        """Replace the secret, reset the use counter, keep rights and expiry."""

    @abstractmethod
    def list_grants(
        self, *, meta: EnvelopeMeta, actor: InternalActor, shipment_id: str
    ) -> Envelope[tuple[GrantSummary, ...]]:
        """List credentials for one shipment, newest first."""

    @abstractmethod
    def audit_trail(
        self,
        *,
        meta: EnvelopeMeta,
        actor: InternalActor,
        shipment_id: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> Envelope[AuditTrailPage]:
        """Return one page of a shipment's audit trail, newest first."""

    @abstractmethod
    def agent_activity(
        self, *, meta: EnvelopeMeta, actor: InternalActor, shipment_id: str
    ) -> Envelope[tuple[AgentActivity, ...]]:
        """Summarize every external agent action on one shipment."""


class ExternalPortalService(PortalGateway, GrantManager, ABC):
    """Combined external and internal surface served by one process."""


def build_external_portal_service(
    *, settings: ShipgateSettings
) -> ExternalPortalService:
    """Build the default implementation from typed settings."""
    from services.portal.external_portal.implementation import (
        DefaultExternalPortalService,
    )

    return DefaultExternalPortalService.from_settings(settings)
