"""Concrete External Portal service: authenticate, authorize, mutate, audit."""

from __future__ import annotations

from datetime import timedelta
from typing import Callable, Mapping, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from packages.shipgate_shared.config import ShipgateSettings
from packages.shipgate_shared.envelope import (
    Envelope,
    EnvelopeMeta,
    failure,
    success,
    validate_meta,
)
from packages.shipgate_shared.errors import codes, exception_to_error, validation_error
from packages.shipgate_shared.ids import generate_ulid_str, is_ulid_str
from packages.shipgate_shared.logging import get_logger, public_api_instrumented
from resources.substrates.postgres import normalize_postgres_error
from services.portal.external_portal.audit import (
    AuditLogger,
    external_entry,
    field_update_entry,
    internal_note_entry,
    summarize_activity,
)
from services.portal.external_portal.authenticator import CredentialAuthenticator
from services.portal.external_portal.component import SERVICE_COMPONENT_ID
from services.portal.external_portal.config import (
    ExternalPortalSettings,
    resolve_external_portal_settings,
)
from services.portal.external_portal.data.repository import (
    InMemoryPortalPersistenceRepository,
    PostgresPortalPersistenceRepository,
)
from services.portal.external_portal.data.runtime import ExternalPortalPostgresRuntime
from services.portal.external_portal.domain import (
    AgentActivity,
    AgentDescriptor,
    AuditAction,
    AuditTrailPage,
    CredentialView,
    DocumentReference,
    DocumentUploadRequest,
    ExternalCredential,
    GrantIssued,
    GrantRequest,
    GrantSummary,
    NoteRequest,
    NotesJournal,
    PortalHealthStatus,
    PortalSnapshot,
    Shipment,
    StatusChangeRequest,
    utc_now,
)
from services.portal.external_portal.enforcer import CapabilityEnforcer
from services.portal.external_portal.errors import (
    FieldValidationError,
    NotFound,
    PortalError,
)
from services.portal.external_portal.interfaces import PortalPersistenceRepository
from services.portal.external_portal.projection import project_shipment
from services.portal.external_portal.service import ExternalPortalService
from services.portal.external_portal.tenancy import InternalActor, TenantScope
from services.portal.external_portal.tokens import MintedToken, hash_secret, mint_token
from services.portal.external_portal.transitions import StatusTransitionEngine

_LOGGER = get_logger(__name__)

T = TypeVar("T")


class DefaultExternalPortalService(ExternalPortalService):
    """Default gateway over one persistence repository.

    Each external call runs authenticate, authorize, mutate, audit in that
    order and returns a projection re-read from storage.
    """

    def __init__(
        self,
        *,
        settings: ExternalPortalSettings,
        repository: PortalPersistenceRepository | None = None,
    ) -> None:
        self._settings = settings
        self._repository = repository or InMemoryPortalPersistenceRepository()
        self._authenticator = CredentialAuthenticator(
            repository=self._repository, token_prefix=settings.token_prefix
        )
        self._enforcer = CapabilityEnforcer()
        self._transitions = StatusTransitionEngine()
        self._audit = AuditLogger(
            repository=self._repository, trail_limit=settings.audit_trail_limit
        )

    @classmethod
    def from_settings(cls, settings: ShipgateSettings) -> "DefaultExternalPortalService":
        """Build from root settings, choosing persistence by configuration."""
        portal_settings = resolve_external_portal_settings(settings)
        if portal_settings.persistence == "memory":
            return cls(settings=portal_settings)
        runtime = ExternalPortalPostgresRuntime.from_settings(settings)
        return cls(
            settings=portal_settings,
            repository=PostgresPortalPersistenceRepository(
                runtime.tenant_sessions, readiness=runtime.is_healthy
            ),
        )

    @property
    def repository(self) -> PortalPersistenceRepository:
        return self._repository

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def get_my_shipment(
        self, *, meta: EnvelopeMeta, bearer: str | None
    ) -> Envelope[PortalSnapshot]:
        def operation() -> PortalSnapshot:
            view, scope = self._authenticate(bearer)
            return self._snapshot(view, scope)

        return self._run(meta, operation)

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def update_fields(
        self,
        *,
        meta: EnvelopeMeta,
        bearer: str | None,
        updates: Mapping[str, object],
        client_address: str | None,
    ) -> Envelope[PortalSnapshot]:
        def operation() -> PortalSnapshot:
            view, scope = self._authenticate(bearer)
            shipment = self._load_shipment(scope, view.shipment_id)
            change_set = self._enforcer.authorize_field_updates(
                view.capabilities, updates, shipment
            )
            now = utc_now()
            entry = field_update_entry(
                view,
                change_set.changes,
                created_at=now,
                ip_address=client_address,
            )
            updated = shipment.model_copy(
                update={**change_set.as_update(), "updated_at": now}
            )
            self._audit.commit(scope, updated, [entry])
            return self._snapshot(view, scope)

        return self._run(meta, operation)

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def change_status(
        self,
        *,
        meta: EnvelopeMeta,
        bearer: str | None,
        request: StatusChangeRequest,
        client_address: str | None,
    ) -> Envelope[PortalSnapshot]:
        def operation() -> PortalSnapshot:
            view, scope = self._authenticate(bearer)
            shipment = self._load_shipment(scope, view.shipment_id)
            accepted = self._transitions.attempt_transition(
                current=shipment.status,
                requested=request.new_status,
                capabilities=view.capabilities,
            )
            now = utc_now()
            update: dict[str, object] = {
                "status": accepted.to_status,
                "updated_at": now,
            }
            for stamped in accepted.stamped_dates:
                update[stamped.value] = now.date()
            updated = shipment.model_copy(update=update)
            if request.note:
                updated = updated.with_note(
                    f"[{accepted.to_status.value}] ({view.agent.agent_name}) "
                    f"{request.note}"
                )
            entry = external_entry(
                view,
                action=AuditAction.STATUS_CHANGE,
                created_at=now,
                ip_address=client_address,
                field_name="status",
                old_value=accepted.from_status,
                new_value=accepted.to_status,
                note=request.note or None,
            )
            self._audit.commit(scope, updated, [entry])
            return self._snapshot(view, scope)

        return self._run(meta, operation)

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def upload_document(
        self,
        *,
        meta: EnvelopeMeta,
        bearer: str | None,
        request: DocumentUploadRequest,
        client_address: str | None,
    ) -> Envelope[tuple[DocumentReference, ...]]:
        def operation() -> tuple[DocumentReference, ...]:
            view, scope = self._authenticate(bearer)
            self._enforcer.authorize_document_upload(view.capabilities)
            shipment = self._load_shipment(scope, view.shipment_id)
            now = utc_now()
            document = DocumentReference(
                document_id=generate_ulid_str(),
                name=request.name,
                document_type=request.document_type,
                url=request.url,
                uploaded_by=view.agent.agent_name,
                uploaded_at=now,
                notes=request.notes or "",
            )
            updated = shipment.model_copy(
                update={"documents": (*shipment.documents, document), "updated_at": now}
            )
            entry = external_entry(
                view,
                action=AuditAction.DOCUMENT_UPLOAD,
                created_at=now,
                ip_address=client_address,
                field_name="documents",
                new_value=f"{request.document_type.value}: {request.name}",
                note=request.notes or None,
            )
            self._audit.commit(scope, updated, [entry])
            return self._load_shipment(scope, view.shipment_id).documents

        return self._run(meta, operation)

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def add_note(
        self,
        *,
        meta: EnvelopeMeta,
        bearer: str | None,
        request: NoteRequest,
        client_address: str | None,
    ) -> Envelope[NotesJournal]:
        def operation() -> NotesJournal:
            view, scope = self._authenticate(bearer)
            self._enforcer.authorize_note(view.capabilities)
            shipment = self._load_shipment(scope, view.shipment_id)
            now = utc_now()
            line = (
                f"[{now:%Y-%m-%d %H:%M:%S}] "
                f"({view.agent.agent_name} - {view.agent.agent_type.value}) "
                f"{request.content}"
            )
            updated = shipment.with_note(line).model_copy(update={"updated_at": now})
            entry = external_entry(
                view,
                action=AuditAction.NOTE_ADDED,
                created_at=now,
                ip_address=client_address,
                note=request.content,
            )
            self._audit.commit(scope, updated, [entry])
            return NotesJournal(notes=self._load_shipment(scope, view.shipment_id).notes)

        return self._run(meta, operation)

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def my_audit_trail(
        self,
        *,
        meta: EnvelopeMeta,
        bearer: str | None,
        limit: int | None = None,
        offset: int = 0,
    ) -> Envelope[AuditTrailPage]:
        def operation() -> AuditTrailPage:
            view, scope = self._authenticate(bearer)
            return self._audit.trail(
                scope, view.shipment_id, limit=limit, offset=offset
            )

        return self._run(meta, operation)

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def health(self, *, meta: EnvelopeMeta) -> Envelope[PortalHealthStatus]:
        def operation() -> PortalHealthStatus:
            ready = self._repository.is_ready()
            return PortalHealthStatus(
                service_ready=True,
                persistence_ready=ready,
                detail="ok" if ready else "persistence unavailable",
            )

        return self._run(meta, operation)

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def create_grant(
        self, *, meta: EnvelopeMeta, actor: InternalActor, request: GrantRequest
    ) -> Envelope[GrantIssued]:
        def operation() -> GrantIssued:
            scope = actor.scope
            if request.expires_in_days > self._settings.max_expiry_days:
                raise FieldValidationError(
                    f"expires_in_days must be at most {self._settings.max_expiry_days}"
                )
            self._load_shipment(scope, request.shipment_id)
            now = utc_now()
            minted = self._mint()
            credential = ExternalCredential(
                credential_id=generate_ulid_str(),
                tenant_id=scope.tenant_id,
                shipment_id=request.shipment_id,
                secret_hash=hash_secret(
                    minted.secret, rounds=self._settings.bcrypt_rounds
                ),
                lookup_key=minted.lookup_key,
                agent=AgentDescriptor(
                    agent_type=request.agent_type,
                    agent_name=request.agent_name,
                    agent_email=str(request.agent_email),
                    agent_phone=request.agent_phone,
                ),
                capabilities=request.capabilities,
                active=True,
                expires_at=now + timedelta(days=request.expires_in_days),
                created_by=actor.user_id,
                created_at=now,
                updated_at=now,
            )
            note = (
                f"External access created for {request.agent_name} "
                f"({request.agent_type.value}). Email: {request.agent_email}. "
                f"Expires: {credential.expires_at.date().isoformat()}"
            )
            self._audit.commit_credential(
                scope,
                credential,
                [
                    internal_note_entry(
                        actor,
                        shipment_id=credential.shipment_id,
                        note=note,
                        created_at=now,
                        credential_id=credential.credential_id,
                    )
                ],
            )
            _LOGGER.info("External grant created for %s", credential.credential_id)
            return self._issued(credential, minted)

        return self._run(meta, operation)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("credential_id",)
    )
    def revoke_grant(
        self, *, meta: EnvelopeMeta, actor: InternalActor, credential_id: str
    ) -> Envelope[GrantSummary]:
        def operation() -> GrantSummary:
            current = self._load_credential(actor.scope, credential_id)
            now = utc_now()
            revoked = current.model_copy(update={"active": False, "updated_at": now})
            note = (
                f"Access revoked for {current.agent.agent_name} "
                f"({current.agent.agent_type.value})"
            )
            self._audit.commit_credential(
                actor.scope,
                revoked,
                [
                    internal_note_entry(
                        actor,
                        shipment_id=current.shipment_id,
                        note=note,
                        created_at=now,
                        credential_id=current.credential_id,
                    )
                ],
            )
            return GrantSummary.from_credential(revoked)

        return self._run(meta, operation)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("credential_id",)
    )
    def rotate_grant(
        self, *, meta: EnvelopeMeta, actor: InternalActor, credential_id: str
    ) -> Envelope[GrantIssued]:
        def operation() -> GrantIssued:
            current = self._load_credential(actor.scope, credential_id)
            now = utc_now()
            minted = self._mint()
            rotated = current.model_copy(
                update={
                    "secret_hash": hash_secret(
                        minted.secret, rounds=self._settings.bcrypt_rounds
                    ),
                    "lookup_key": minted.lookup_key,
                    "use_count": 0,
                    "updated_at": now,
                }
            )
            note = (
                f"Token rotated for {current.agent.agent_name} "
                f"({current.agent.agent_type.value})"
            )
            self._audit.commit_credential(
                actor.scope,
                rotated,
                [
                    internal_note_entry(
                        actor,
                        shipment_id=current.shipment_id,
                        note=note,
                        created_at=now,
                        credential_id=current.credential_id,
                    )
                ],
            )
            return self._issued(rotated, minted)

        return self._run(meta, operation)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("shipment_id",)
    )
    def list_grants(
        self, *, meta: EnvelopeMeta, actor: InternalActor, shipment_id: str
    ) -> Envelope[tuple[GrantSummary, ...]]:
        def operation() -> tuple[GrantSummary, ...]:
            rows = self._repository.list_credentials(
                scope=actor.scope, shipment_id=shipment_id
            )
            return tuple(GrantSummary.from_credential(row) for row in rows)

        return self._run(meta, operation)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("shipment_id",)
    )
    def audit_trail(
        self,
        *,
        meta: EnvelopeMeta,
        actor: InternalActor,
        shipment_id: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> Envelope[AuditTrailPage]:
        return self._run(
            meta,
            lambda: self._audit.trail(
                actor.scope, shipment_id, limit=limit, offset=offset
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("shipment_id",)
    )
    def agent_activity(
        self, *, meta: EnvelopeMeta, actor: InternalActor, shipment_id: str
    ) -> Envelope[tuple[AgentActivity, ...]]:
        return self._run(
            meta,
            lambda: summarize_activity(self._audit.history(actor.scope, shipment_id)),
        )

    def _run(self, meta: EnvelopeMeta, operation: Callable[[], T]) -> Envelope[T]:
        """Validate metadata, run ``operation``, and fold rejections into envelopes."""
        try:
            validate_meta(meta)
        except ValueError as exc:
            return failure(
                meta=meta,
                errors=[validation_error(str(exc), code=codes.INVALID_ARGUMENT)],
            )
        try:
            return success(meta=meta, payload=operation())
        except PortalError as exc:
            return failure(meta=meta, errors=[exc.error])
        except SQLAlchemyError as exc:
            _LOGGER.exception("External portal storage failure")
            return failure(meta=meta, errors=[normalize_postgres_error(exc)])
        except Exception as exc:
            _LOGGER.exception("External portal operation failed unexpectedly")
            return failure(meta=meta, errors=[exception_to_error(exc)])

    def _authenticate(self, bearer: str | None) -> tuple[CredentialView, TenantScope]:
        view = self._authenticator.authenticate(bearer)
        return view, TenantScope(tenant_id=view.tenant_id)

    def _load_shipment(self, scope: TenantScope, shipment_id: str) -> Shipment:
        shipment = self._repository.get_shipment(scope=scope, shipment_id=shipment_id)
        if shipment is None:
            raise NotFound("shipment not found")
        return shipment

    def _load_credential(
        self, scope: TenantScope, credential_id: str
    ) -> ExternalCredential:
        credential = None
        if is_ulid_str(credential_id):
            credential = self._repository.get_credential(
                scope=scope, credential_id=credential_id
            )
        if credential is None:
            raise NotFound("external access not found")
        return credential

    def _snapshot(self, view: CredentialView, scope: TenantScope) -> PortalSnapshot:
        shipment = self._load_shipment(scope, view.shipment_id)
        return PortalSnapshot(
            shipment=project_shipment(shipment, view.capabilities),
            agent=view.agent,
            capabilities=view.capabilities,
            expires_at=view.expires_at,
        )

    def _mint(self) -> MintedToken:
        return mint_token(
            prefix=self._settings.token_prefix,
            lookup_key_bytes=self._settings.lookup_key_bytes,
            secret_bytes=self._settings.secret_bytes,
        )

    def _issued(self, credential: ExternalCredential, minted: MintedToken) -> GrantIssued:
        return GrantIssued(
            grant=GrantSummary.from_credential(credential),
            token=minted.token,
            portal_url=f"{self._settings.portal_path.rstrip('/')}/{minted.token}",
        )
