"""Shipment status lifecycle and per-credential transition checks."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from services.portal.external_portal.domain import (
    AcceptedTransition,
    CapabilitySet,
    DateField,
    ShipmentStatus,
)
from services.portal.external_portal.enforcer import CapabilityEnforcer
from services.portal.external_portal.errors import Forbidden, IllegalTransition

_S = ShipmentStatus

SUCCESSORS: Mapping[ShipmentStatus, tuple[ShipmentStatus, ...]] = MappingProxyType(
    {
        _S.DRAFT: (_S.CONFIRMED,),
        _S.CONFIRMED: (_S.SHIPPED,),
        _S.SHIPPED: (_S.IN_TRANSIT,),
        _S.IN_TRANSIT: (_S.AT_PORT, _S.CUSTOMS),
        _S.AT_PORT: (_S.CUSTOMS,),
        _S.CUSTOMS: (_S.CLEARED,),
        _S.CLEARED: (_S.RECEIVED,),
        _S.RECEIVED: (_S.CLOSED,),
        _S.CLOSED: (),
    }
)

INITIAL_STATUS = _S.DRAFT
TERMINAL_STATUS = _S.CLOSED

_STAMPED_ON_ENTRY: Mapping[ShipmentStatus, tuple[DateField, ...]] = MappingProxyType(
    {
        _S.CLEARED: (DateField.CUSTOMS_CLEARANCE_DATE,),
        _S.RECEIVED: (DateField.ACTUAL_ARRIVAL,),
    }
)


class StatusTransitionEngine:
    """Stateless guard over the global lifecycle and a credential's subset."""

    def successors(self, status: ShipmentStatus) -> tuple[ShipmentStatus, ...]:
        return SUCCESSORS[status]

    def attempt_transition(
        self,
        *,
        current: ShipmentStatus,
        requested: ShipmentStatus,
        capabilities: CapabilitySet,
    ) -> AcceptedTransition:
        """Accept ``requested`` or raise ``Forbidden``/``IllegalTransition``.

        Checks run in order: the status capability, then global legality,
        then the credential's allow-list (empty means unrestricted).
        """
        if not capabilities.may_change_status:
            raise Forbidden(
                "not permitted to change status",
                permitted=CapabilityEnforcer().permitted_actions(capabilities),
                denied=("change_status",),
            )

        legal = self.successors(current)
        if requested not in legal:
            raise IllegalTransition(
                current.value, requested.value, (status.value for status in legal)
            )

        allowed = capabilities.allowed_statuses
        if allowed and requested not in allowed:
            raise Forbidden(
                f"not permitted to move to status {requested.value}",
                permitted=(status.value for status in allowed),
                denied=(requested.value,),
            )

        return AcceptedTransition(
            from_status=current,
            to_status=requested,
            stamped_dates=_STAMPED_ON_ENTRY.get(requested, ()),
        )
