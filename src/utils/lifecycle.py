"""
Order payment and booster assignment state.

Order payment status (lowercase, driven by Flow):
    pending -> paid | rejected | cancelled

Booster assignment status (uppercase, driven by the booster):
    CLAIMED -> IN_PROGRESS -> COMPLETED
Releasing an active assignment deletes it and returns the order to the pool.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional, Tuple

from .errors import AppError, ErrorCode

# Order payment status
ORDER_PENDING = "pending"
ORDER_PAID = "paid"
ORDER_REJECTED = "rejected"
ORDER_CANCELLED = "cancelled"

# Flow payment status codes
FLOW_STATUS_PENDING = 1
FLOW_STATUS_PAID = 2
FLOW_STATUS_REJECTED = 3
FLOW_STATUS_CANCELLED = 4

FLOW_TO_ORDER_STATUS: Dict[int, str] = {
    FLOW_STATUS_PENDING: ORDER_PENDING,
    FLOW_STATUS_PAID: ORDER_PAID,
    FLOW_STATUS_REJECTED: ORDER_REJECTED,
    FLOW_STATUS_CANCELLED: ORDER_CANCELLED,
}

# Booster assignment status
CLAIMED = "CLAIMED"
IN_PROGRESS = "IN_PROGRESS"
COMPLETED = "COMPLETED"

ACTIVE_STATUSES: Tuple[str, ...] = (CLAIMED, IN_PROGRESS)
BOOSTER_STATUSES: Tuple[str, ...] = (CLAIMED, IN_PROGRESS, COMPLETED)

_PREDECESSOR: Dict[str, str] = {
    IN_PROGRESS: CLAIMED,
    COMPLETED: IN_PROGRESS,
}

# Timestamp attributes set when entering a status: (assignment attr, order attr)
STATUS_TIMESTAMPS: Dict[str, Tuple[str, str]] = {
    IN_PROGRESS: ("startedAt", "boosterStartedAt"),
    COMPLETED: ("completedAt", "boosterCompletedAt"),
}

CENTS = Decimal("0.01")


def next_allowed(status: str) -> Optional[str]:
    """Status that may follow the given one, if any."""
    for target, predecessor in _PREDECESSOR.items():
        if predecessor == status:
            return target
    return None


def required_predecessor(target: str) -> str:
    """
    Status an assignment must be in before moving to target.

    Raises:
        AppError: INVALID_INPUT when target is not a status a booster can set
    """
    if target not in _PREDECESSOR:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            f"Status must be one of: {', '.join(_PREDECESSOR)}",
            {"status": target},
        )
    return _PREDECESSOR[target]


def assert_transition(current: str, target: str) -> None:
    """
    Check a booster status transition.

    Raises:
        AppError: INVALID_STATUS_TRANSITION when target cannot follow current
    """
    if required_predecessor(target) != current:
        raise AppError(
            ErrorCode.INVALID_STATUS_TRANSITION,
            f"Cannot move an assignment from {current} to {target}",
            {"currentStatus": current, "requestedStatus": target},
        )


def is_active(assignment: Dict[str, Any]) -> bool:
    return assignment.get("status") in ACTIVE_STATUSES


def booster_earnings(price: Any, rate: Decimal) -> Decimal:
    """
    Booster commission for an order price, rounded half up to cents.

    Examples:
        >>> booster_earnings(Decimal("7.60"), Decimal("0.65"))
        Decimal('4.94')
    """
    if price is None or price == "":
        return Decimal("0.00")
    return (Decimal(str(price)) * rate).quantize(CENTS, rounding=ROUND_HALF_UP)
