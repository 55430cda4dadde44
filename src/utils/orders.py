"""
Order and assignment lookups shared by the order handlers.
"""

from typing import Any, Dict, Optional

from .auth import Caller
from .dynamodb import tables
from .errors import AppError, ErrorCode
from .ids import active_lock_key
from .lifecycle import is_active


def get_order(order_id: str) -> Optional[Dict[str, Any]]:
    """Get an order by ID."""
    if not order_id:
        return None
    response = tables.orders.get_item(Key={"orderId": order_id})
    return response.get("Item")


def require_order(order_id: Optional[str]) -> Dict[str, Any]:
    """
    Get an order or raise NOT_FOUND.

    Raises:
        AppError: INVALID_INPUT without an ID, NOT_FOUND for unknown orders
    """
    if not order_id:
        raise AppError(ErrorCode.INVALID_INPUT, "orderId is required")
    order = get_order(order_id)
    if order is None:
        raise AppError(ErrorCode.NOT_FOUND, f"Order {order_id} not found")
    return order


def get_assignment(assignment_id: Optional[str]) -> Optional[Dict[str, Any]]:
    """Get a booster assignment by ID."""
    if not assignment_id:
        return None
    response = tables.assignments.get_item(Key={"assignmentId": assignment_id})
    return response.get("Item")


def get_order_assignment(order: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Get the assignment currently linked to an order, if any."""
    return get_assignment(order.get("boosterAssignmentId"))


def get_active_order_id(booster_username: str) -> Optional[str]:
    """Order a booster is currently working, read from the booster's lock item."""
    lock = get_assignment(active_lock_key(booster_username))
    return lock.get("activeOrderId") if lock else None


def is_order_owner(caller: Caller, order: Dict[str, Any]) -> bool:
    return bool(order.get("userId")) and order.get("userId") == caller.sub


def is_assigned_booster(caller: Caller, order: Dict[str, Any]) -> bool:
    return bool(order.get("boosterUsername")) and order.get("boosterUsername") == caller.sub


def can_view_order(caller: Caller, order: Dict[str, Any]) -> bool:
    """Owner, assigned booster and admins may see an order and its chat."""
    return is_order_owner(caller, order) or is_assigned_booster(caller, order) or caller.is_admin


def has_active_assignment(caller: Caller, order: Dict[str, Any]) -> bool:
    """Whether the caller is the booster currently working the order."""
    if not is_assigned_booster(caller, order):
        return False
    assignment = get_order_assignment(order)
    return assignment is not None and is_active(assignment)
