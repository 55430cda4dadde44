"""
Test data builders for Lambda function tests.

Provides factory functions for creating orders, assignments and
notifications with sensible defaults, plus response helpers.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import uuid4

ORDERS_TABLE = "eloboost-orders-test"
ASSIGNMENTS_TABLE = "eloboost-assignments-test"
NOTIFICATIONS_TABLE = "eloboost-notifications-test"
MESSAGES_TABLE = "eloboost-messages-test"

CUSTOMER_SUB = "customer-sub-123"
BOOSTER_SUB = "booster-sub-456"
OTHER_BOOSTER_SUB = "booster-sub-789"
ADMIN_SUB = "admin-sub-000"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def make_order_id(suffix: Optional[str] = None) -> str:
    """Generate an order ID in the eloboost-<ms>-<hex> format."""
    return f"eloboost-1700000000000-{suffix or uuid4().hex[:8]}"


def make_order(order_id: Optional[str] = None, status: str = "paid", **overrides: Any) -> Dict[str, Any]:
    """Order item as stored by create_payment_link.

    Args:
        order_id: Order ID (generated if omitted)
        status: Payment status
        **overrides: Any attribute to replace

    Returns:
        Order item ready for put_item
    """
    now = _now()
    order: Dict[str, Any] = {
        "orderId": order_id or make_order_id(),
        "userId": CUSTOMER_SUB,
        "status": status,
        "amount": 7000,
        "priceCLP": 7000,
        "priceUSD": Decimal("7.60"),
        "subject": "Boost Gold IV -> Gold II (LAS)",
        "email": "customer@example.com",
        "fromRank": "Gold IV",
        "toRank": "Gold II",
        "server": "LAS",
        "nickname": "Faker2#LAS",
        "queueType": "soloq",
        "lpRange": "0-29",
        "lpGain": "20-25",
        "selectedLane": "none",
        "selectedChampions": [],
        "flash": "flash-d",
        "offlineMode": False,
        "duoBoost": False,
        "priorityBoost": False,
        "createdAt": now,
        "updatedAt": now,
    }
    order.update(overrides)
    return order


def make_assignment(
    order_id: str,
    booster: str = BOOSTER_SUB,
    status: str = "CLAIMED",
    **overrides: Any,
) -> Dict[str, Any]:
    """Booster assignment item."""
    now = _now()
    assignment: Dict[str, Any] = {
        "assignmentId": f"assignment-1700000000000-{uuid4().hex[:8]}",
        "orderId": order_id,
        "boosterUsername": booster,
        "boosterDisplayName": "Booster",
        "clientUserId": CUSTOMER_SUB,
        "status": status,
        "boosterEarnings": Decimal("4.94"),
        "boosterEarningsCLP": Decimal("4550.00"),
        "isPaid": False,
        "claimedAt": now,
        "createdAt": now,
        "updatedAt": now,
    }
    assignment.update(overrides)
    return assignment


def make_notification(user_id: str = CUSTOMER_SUB, is_read: bool = False, **overrides: Any) -> Dict[str, Any]:
    """Notification item."""
    notification: Dict[str, Any] = {
        "notificationId": f"notif-1700000000000-{uuid4().hex[:8]}",
        "userId": user_id,
        "type": "booster_assigned",
        "message": "A booster took your order",
        "isRead": is_read,
        "createdAt": _now(),
    }
    notification.update(overrides)
    return notification


def body_of(response: Dict[str, Any]) -> Any:
    """Decode the JSON body of a proxy response."""
    return json.loads(response["body"])
