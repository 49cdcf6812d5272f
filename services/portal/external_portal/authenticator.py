"""Resolve a presented bearer value to a stored external credential."""

from __future__ import annotations

from datetime import datetime
from typing import NoReturn

from packages.shipgate_shared.logging import fields, get_logger, log_context
from services.portal.external_portal.domain import (
    CredentialView,
    ExternalCredential,
    utc_now,
)
from services.portal.external_portal.errors import (
    CREDENTIAL_EXPIRED,
    CREDENTIAL_INVALID,
    CREDENTIAL_REVOKED,
    CredentialExpired,
    CredentialInvalid,
    CredentialRevoked,
    PortalError,
    Unauthorized,
)
from services.portal.external_portal.interfaces import PortalPersistenceRepository
from services.portal.external_portal.tenancy import TenantScope, bind_tenant
from services.portal.external_portal.tokens import ParsedBearer, parse_bearer, verify_secret

_LOGGER = get_logger(__name__)


class CredentialAuthenticator:
    """Verify bearer values against bcrypt digests, re-reading storage on every call.

    Revocation and rotation therefore take effect on the very next request.
    """

    def __init__(
        self, *, repository: PortalPersistenceRepository, token_prefix: str
    ) -> None:
        self._repository = repository
        self._token_prefix = token_prefix

    def authenticate(
        self, raw_bearer: str | None, *, now: datetime | None = None
    ) -> CredentialView:
        """Return the matching credential view or raise a ``PortalError``.

        Revocation is checked before expiry. A bearer whose lookup key only
        names revoked rows is reported as revoked even when its secret does
        not match.
        """
        if raw_bearer is None or not raw_bearer.strip():
            raise Unauthorized()
        checked_at = utc_now() if now is None else now

        parsed = parse_bearer(raw_bearer, prefix=self._token_prefix)
        candidates = self._candidates(parsed)
        match = next(
            (row for row in candidates if verify_secret(parsed.secret, row.secret_hash)),
            None,
        )

        if match is None:
            if parsed.lookup_key and candidates and not any(
                row.active for row in candidates
            ):
                self._reject(CREDENTIAL_REVOKED, candidates[0], CredentialRevoked())
            self._reject(CREDENTIAL_INVALID, None, CredentialInvalid())
        if not match.active:
            self._reject(CREDENTIAL_REVOKED, match, CredentialRevoked())
        if checked_at > match.expires_at:
            self._reject(CREDENTIAL_EXPIRED, match, CredentialExpired())

        bind_tenant(
            match.tenant_id,
            **{
                fields.CREDENTIAL_ID: match.credential_id,
                fields.SHIPMENT_ID: match.shipment_id,
            },
        )
        self._record_use(match, checked_at)
        return CredentialView(
            credential_id=match.credential_id,
            tenant_id=match.tenant_id,
            shipment_id=match.shipment_id,
            agent=match.agent,
            capabilities=match.capabilities,
            expires_at=match.expires_at,
        )

    def _candidates(self, parsed: ParsedBearer) -> list[ExternalCredential]:
        if parsed.lookup_key is not None:
            rows = self._repository.find_credentials_by_lookup_key(
                lookup_key=parsed.lookup_key
            )
        else:
            rows = self._repository.list_credential_candidates()
            _LOGGER.debug(
                "Bearer without lookup key; scanning %d active credential(s)",
                len(rows),
            )
        return sorted(rows, key=lambda row: not row.active)

    def _record_use(self, credential: ExternalCredential, used_at: datetime) -> None:
        """Best-effort usage bump; a failure never blocks the request."""
        try:
            self._repository.record_credential_use(
                scope=TenantScope(tenant_id=credential.tenant_id),
                credential_id=credential.credential_id,
                used_at=used_at,
            )
        except Exception:  # noqa: BLE001
            _LOGGER.warning("Credential usage update failed", exc_info=True)

    def _reject(
        self,
        reason: str,
        credential: ExternalCredential | None,
        error: PortalError,
    ) -> NoReturn:
        context: dict[str, object] = {fields.EVENT: "credential_rejected", "reason": reason}
        if credential is not None:
            context[fields.CREDENTIAL_ID] = credential.credential_id
            context[fields.TENANT_ID] = credential.tenant_id
        with log_context(context):
            _LOGGER.warning("External credential rejected")
        raise error
