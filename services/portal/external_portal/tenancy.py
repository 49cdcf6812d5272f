"""Explicit tenant scoping for every storage call."""

from __future__ import annotations

from dataclasses import dataclass

from packages.shipgate_shared.logging import bind_context
from packages.shipgate_shared.logging import fields


@dataclass(frozen=True)
class TenantScope:
    """Tenant identity passed to each repository method that reads or writes
    tenant data. Repositories filter on ``tenant_id`` and never infer it."""

    tenant_id: str

    def __post_init__(self) -> None:
        if not self.tenant_id or not self.tenant_id.strip():
            raise ValueError("tenant_id is required")


@dataclass(frozen=True)
class InternalActor:
    """Staff identity forwarded by the upstream gateway."""

    scope: TenantScope
    user_id: str


def bind_tenant(tenant_id: str, **context: object) -> TenantScope:
    """Build a scope and attach tenant plus extra identifiers to log context."""
    scope = TenantScope(tenant_id=tenant_id)
    bind_context(**{fields.TENANT_ID: scope.tenant_id}, **context)
    return scope
