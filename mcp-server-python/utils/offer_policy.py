"""
Transition policy for offer lifecycle operations.

Every mutator declares the offer states it may start from. Terminal offers
(accepted, rejected, declined, expired, withdrawn) accept no mutator at all.
"""

from typing import Dict, FrozenSet

from models.errors import create_invalid_offer_state_error, create_validation_error
from models.stage_catalog import ACTIVE_OFFER_STATUSES, is_terminal_offer
from models.status import OfferStatus

_RESPONDABLE = frozenset({OfferStatus.SENT, OfferStatus.VIEWED})

# Operation name -> statuses it may be applied from
OPERATION_SOURCES: Dict[str, FrozenSet[OfferStatus]] = {
    "sent": frozenset({OfferStatus.DRAFT}),
    "responded to": _RESPONDABLE,
    "resent": _RESPONDABLE,
    "updated": ACTIVE_OFFER_STATUSES,
    "deleted": frozenset({OfferStatus.DRAFT}),
}

# Administrative target status -> statuses it may be set from (console only)
ADMIN_TRANSITIONS: Dict[OfferStatus, FrozenSet[OfferStatus]] = {
    OfferStatus.NEGOTIATING: _RESPONDABLE,
    OfferStatus.REJECTED: _RESPONDABLE | {OfferStatus.NEGOTIATING},
    OfferStatus.EXPIRED: _RESPONDABLE | {OfferStatus.NEGOTIATING},
    OfferStatus.WITHDRAWN: ACTIVE_OFFER_STATUSES,
}


def check_offer_operation_or_raise(offer_id, status: OfferStatus, operation: str) -> None:
    """
    Ensure ``operation`` may be applied to an offer currently in ``status``.

    Raises:
        ToolError: With INVALID_OFFER_STATE code otherwise
    """
    status = OfferStatus(status)
    if is_terminal_offer(status) or status not in OPERATION_SOURCES[operation]:
        raise create_invalid_offer_state_error(offer_id, status.value, operation)


def check_admin_status_or_raise(offer_id, current: OfferStatus, target: OfferStatus) -> None:
    """
    Ensure an administrative status change is allowed.

    Raises:
        ToolError: VALIDATION_ERROR for a target the console may not set,
            INVALID_OFFER_STATE when the current status forbids it
    """
    current = OfferStatus(current)
    target = OfferStatus(target)
    if target not in ADMIN_TRANSITIONS:
        allowed = ", ".join(sorted(status.value for status in ADMIN_TRANSITIONS))
        raise create_validation_error(
            f"Invalid status '{target.value}' for an administrative change. Allowed values: {allowed}"
        )
    if is_terminal_offer(current) or current not in ADMIN_TRANSITIONS[target]:
        raise create_invalid_offer_state_error(offer_id, current.value, f"set to '{target.value}'")
