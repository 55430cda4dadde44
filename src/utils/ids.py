"""
ID generation utilities.

All generated IDs share the `<prefix>-<epoch ms>-<8 hex>` shape so they sort
roughly by creation time and stay readable in logs and the Flow dashboard.
"""

import time
import uuid
from datetime import datetime
from typing import Optional

ACTIVE_LOCK_PREFIX = "ACTIVE#"


def _short_uuid() -> str:
    return uuid.uuid4().hex[:8]


def _prefixed_id(prefix: str, now_ms: Optional[int] = None) -> str:
    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{prefix}-{millis}-{_short_uuid()}"


def new_order_id(now_ms: Optional[int] = None) -> str:
    """
    Generate an order ID. Also used as the Flow commerceOrder.

    Examples:
        >>> new_order_id(1700000000000)[:23]
        'eloboost-1700000000000-'
    """
    return _prefixed_id("eloboost", now_ms)


def new_assignment_id(now_ms: Optional[int] = None) -> str:
    """Generate a booster assignment ID."""
    return _prefixed_id("assignment", now_ms)


def new_notification_id(now_ms: Optional[int] = None) -> str:
    """Generate a notification ID."""
    return _prefixed_id("notif", now_ms)


def new_message_id(now: datetime) -> str:
    """Generate a chat message sort key that orders by timestamp."""
    return f"{now.isoformat()}#{_short_uuid()}"


def active_lock_key(booster_username: str) -> str:
    """
    Key of the lock item a booster holds while working an order.

    Examples:
        >>> active_lock_key('abc-123')
        'ACTIVE#abc-123'
    """
    return f"{ACTIVE_LOCK_PREFIX}{booster_username}"
