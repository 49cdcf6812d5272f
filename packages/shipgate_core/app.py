"""HTTP application assembly for the Shipgate process."""

from __future__ import annotations

from fastapi import APIRouter, FastAPI

from packages.shipgate_shared.config import ShipgateSettings
from packages.shipgate_shared.http import create_app
from services.portal.external_portal.api import (
    register_exception_handlers,
    register_routes,
)
from services.portal.external_portal.service import (
    ExternalPortalService,
    build_external_portal_service,
)

APP_TITLE = "Shipgate External Portal"
APP_VERSION = "0.1.0"


def build_app(
    *,
    settings: ShipgateSettings,
    service: ExternalPortalService | None = None,
) -> FastAPI:
    """Create the FastAPI app with every service route registered."""
    app = create_app(title=APP_TITLE, version=APP_VERSION)
    register_exception_handlers(app)
    router = APIRouter()
    register_routes(
        router=router,
        service=service or build_external_portal_service(settings=settings),
        trust_forwarded_headers=settings.http.trust_forwarded_headers,
    )
    app.include_router(router)
    return app
