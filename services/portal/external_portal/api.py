"""FastAPI routes for the External Portal service."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from packages.shipgate_shared.envelope import Envelope, EnvelopeKind, EnvelopeMeta, new_meta
from packages.shipgate_shared.errors import (
    codes,
    unauthenticated_error,
    validation_error,
)
from packages.shipgate_shared.http import (
    HttpServerError,
    bearer_token,
    client_address,
    error_response,
    get_header,
)
from packages.shipgate_shared.logging import fields, get_logger
from services.portal.external_portal.component import SERVICE_COMPONENT_ID
from services.portal.external_portal.domain import (
    DocumentUploadRequest,
    GrantRequest,
    NoteRequest,
    StatusChangeRequest,
)
from services.portal.external_portal.service import ExternalPortalService
from services.portal.external_portal.tenancy import InternalActor, bind_tenant

_LOGGER = get_logger(__name__)

TENANT_HEADER = "x-tenant-id"
USER_HEADER = "x-user-id"


def register_routes(
    *,
    router: APIRouter,
    service: ExternalPortalService,
    trust_forwarded_headers: bool = True,
) -> None:
    """Register external, internal and health routes on one router."""

    def external_meta(kind: EnvelopeKind) -> EnvelopeMeta:
        return new_meta(kind=kind, source=SERVICE_COMPONENT_ID, principal="external")

    def address(request: Request) -> str:
        return client_address(request, trust_forwarded=trust_forwarded_headers)

    @router.get("/portal/my-shipment")
    def get_my_shipment(request: Request) -> Response:
        return _respond(
            service.get_my_shipment(
                meta=external_meta(EnvelopeKind.QUERY), bearer=bearer_token(request)
            )
        )

    @router.patch("/portal/my-shipment/fields")
    def update_fields(
        request: Request, updates: dict[str, Any] = Body(...)
    ) -> Response:
        return _respond(
            service.update_fields(
                meta=external_meta(EnvelopeKind.COMMAND),
                bearer=bearer_token(request),
                updates=updates,
                client_address=address(request),
            )
        )

    @router.patch("/portal/my-shipment/status")
    def change_status(request: Request, body: StatusChangeRequest) -> Response:
        return _respond(
            service.change_status(
                meta=external_meta(EnvelopeKind.COMMAND),
                bearer=bearer_token(request),
                request=body,
                client_address=address(request),
            )
        )

    @router.post("/portal/my-shipment/documents")
    def upload_document(request: Request, body: DocumentUploadRequest) -> Response:
        return _respond(
            service.upload_document(
                meta=external_meta(EnvelopeKind.COMMAND),
                bearer=bearer_token(request),
                request=body,
                client_address=address(request),
            ),
            status_code=status.HTTP_201_CREATED,
        )

    @router.post("/portal/my-shipment/notes")
    def add_note(request: Request, body: NoteRequest) -> Response:
        return _respond(
            service.add_note(
                meta=external_meta(EnvelopeKind.COMMAND),
                bearer=bearer_token(request),
                request=body,
                client_address=address(request),
            ),
            status_code=status.HTTP_201_CREATED,
        )

    @router.get("/portal/my-shipment/log")
    def my_audit_trail(
        request: Request, limit: int | None = None, offset: int = 0
    ) -> Response:
        return _respond(
            service.my_audit_trail(
                meta=external_meta(EnvelopeKind.QUERY),
                bearer=bearer_token(request),
                limit=limit,
                offset=offset,
            )
        )

    @router.post("/portal/grants")
    def create_grant(
        body: GrantRequest, actor: InternalActor = Depends(internal_actor)
    ) -> Response:
        return _respond(
            service.create_grant(
                meta=_internal_meta(actor, EnvelopeKind.COMMAND),
                actor=actor,
                request=body,
            ),
            status_code=status.HTTP_201_CREATED,
        )

    @router.delete("/portal/grants/{credential_id}")
    def revoke_grant(
        credential_id: str, actor: InternalActor = Depends(internal_actor)
    ) -> Response:
        return _respond(
            service.revoke_grant(
                meta=_internal_meta(actor, EnvelopeKind.COMMAND),
                actor=actor,
                credential_id=credential_id,
            )
        )

    @router.post("/portal/grants/{credential_id}/rotate")
    def rotate_grant(
        credential_id: str, actor: InternalActor = Depends(internal_actor)
    ) -> Response:
        return _respond(
            service.rotate_grant(
                meta=_internal_meta(actor, EnvelopeKind.COMMAND),
                actor=actor,
                credential_id=credential_id,
            )
        )

    @router.get("/portal/grants/shipment/{shipment_id}")
    def list_grants(
        shipment_id: str, actor: InternalActor = Depends(internal_actor)
    ) -> Response:
        return _respond(
            service.list_grants(
                meta=_internal_meta(actor, EnvelopeKind.QUERY),
                actor=actor,
                shipment_id=shipment_id,
            )
        )

    @router.get("/portal/grants/log/{shipment_id}")
    def audit_trail(
        shipment_id: str,
        limit: int | None = None,
        offset: int = 0,
        actor: InternalActor = Depends(internal_actor),
    ) -> Response:
        return _respond(
            service.audit_trail(
                meta=_internal_meta(actor, EnvelopeKind.QUERY),
                actor=actor,
                shipment_id=shipment_id,
                limit=limit,
                offset=offset,
            )
        )

    @router.get("/portal/grants/activity/{shipment_id}")
    def agent_activity(
        shipment_id: str, actor: InternalActor = Depends(internal_actor)
    ) -> Response:
        return _respond(
            service.agent_activity(
                meta=_internal_meta(actor, EnvelopeKind.QUERY),
                actor=actor,
                shipment_id=shipment_id,
            )
        )

    @router.get("/health")
    def health() -> Response:
        result = service.health(
            meta=new_meta(
                kind=EnvelopeKind.QUERY,
                source=SERVICE_COMPONENT_ID,
                principal="system",
            )
        )
        if result.ok and result.value is not None and not result.value.persistence_ready:
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content=jsonable_encoder(result.value),
            )
        return _respond(result)


def register_exception_handlers(app: FastAPI) -> None:
    """Render request-parsing failures in the shared error shape."""

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        del request
        problems = {
            ".".join(str(part) for part in error["loc"]): error["msg"]
            for error in exc.errors()
        }
        return error_response(
            [
                validation_error(
                    "request validation failed",
                    code=codes.VALIDATION_ERROR,
                    metadata=problems,
                )
            ]
        )

    @app.exception_handler(HttpServerError)
    async def _bad_headers(request: Request, exc: HttpServerError) -> JSONResponse:
        del request
        _LOGGER.warning("Rejected request headers: %s", exc.message)
        return error_response(
            [unauthenticated_error(exc.message, code=codes.UNAUTHORIZED)]
        )


def internal_actor(request: Request) -> InternalActor:
    """Resolve the staff identity forwarded by the upstream gateway."""
    tenant_id = get_header(request, TENANT_HEADER)
    user_id = get_header(request, USER_HEADER)
    assert tenant_id is not None and user_id is not None
    scope = bind_tenant(tenant_id, **{fields.USER_ID: user_id})
    return InternalActor(scope=scope, user_id=user_id)


def _internal_meta(actor: InternalActor, kind: EnvelopeKind) -> EnvelopeMeta:
    return new_meta(kind=kind, source=SERVICE_COMPONENT_ID, principal=actor.user_id)


def _respond(
    result: Envelope[Any], *, status_code: int = status.HTTP_200_OK
) -> Response:
    """Render an envelope as its payload or as the shared error body."""
    if not result.ok:
        return error_response(result.errors)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(result.value))
