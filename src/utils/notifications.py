"""
Notification sending shared by every Lambda.

A notification is stored in the notifications table (the inbox read by the
notifications API) and, when AppSync is configured, published through the
createNotification mutation so subscribed clients receive it immediately.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests

from .config import appsync_settings, http_timeout
from .dynamodb import tables
from .ids import new_notification_id
from .logging import get_logger

logger = get_logger(__name__)


class NotificationType:
    """Notification types understood by the frontend."""

    BOOST_COMPLETED = "boost_completed"
    NEW_MESSAGE = "new_message"
    BOOSTER_ASSIGNED = "booster_assigned"
    NEW_BOOST_AVAILABLE = "new_boost_available"
    BOOST_STARTED = "boost_started"
    PAYMENT_CONFIRMED = "payment_confirmed"

    ALL = (
        BOOST_COMPLETED,
        NEW_MESSAGE,
        BOOSTER_ASSIGNED,
        NEW_BOOST_AVAILABLE,
        BOOST_STARTED,
        PAYMENT_CONFIRMED,
    )


CREATE_NOTIFICATION_MUTATION = """
mutation CreateNotification($input: CreateNotificationInput!) {
  createNotification(input: $input) {
    id
    userId
    type
    message
    orderId
    isRead
    createdAt
  }
}
"""


def build_notification(
    user_id: str, notification_type: str, message: str, order_id: Optional[str] = None
) -> Dict[str, Any]:
    """Build a notification item."""
    notification: Dict[str, Any] = {
        "notificationId": new_notification_id(),
        "userId": user_id,
        "type": notification_type,
        "message": message,
        "isRead": False,
        "createdAt": datetime.now(timezone.utc).isoformat(),
    }
    if order_id:
        notification["orderId"] = order_id
    return notification


def publish_realtime(notification: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Post the createNotification mutation to AppSync.

    Returns:
        GraphQL response body, or None when AppSync is not configured

    Raises:
        requests.RequestException: On transport errors or non-2xx responses
        RuntimeError: When the GraphQL response carries errors
    """
    settings = appsync_settings()
    if settings is None:
        return None
    endpoint, api_key = settings

    variables = {
        "input": {
            "userId": notification["userId"],
            "type": notification["type"],
            "message": notification["message"],
            "orderId": notification.get("orderId"),
            "isRead": False,
            "createdAt": notification["createdAt"],
        }
    }
    response = requests.post(
        endpoint,
        json={"query": CREATE_NOTIFICATION_MUTATION, "variables": variables},
        headers={"x-api-key": api_key},
        timeout=http_timeout(),
    )
    response.raise_for_status()
    body: Dict[str, Any] = response.json()
    if body.get("errors"):
        raise RuntimeError(f"AppSync rejected notification: {body['errors']}")
    return body


def send_notification(
    user_id: Optional[str], notification_type: str, message: str, order_id: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """
    Send a notification to a user.

    Never raises: a failed notification must not undo the order operation
    that triggered it.

    Args:
        user_id: Recipient (Cognito sub)
        notification_type: One of NotificationType
        message: Text shown to the user
        order_id: Related order (optional)

    Returns:
        Stored notification item, or None if it could not be stored
    """
    if not user_id:
        logger.warning("Notification without recipient skipped", type=notification_type, order_id=order_id)
        return None

    notification = build_notification(user_id, notification_type, message, order_id)
    try:
        tables.notifications.put_item(Item=notification)
    except Exception as e:
        logger.error("Failed to store notification", user_id=user_id, type=notification_type, error=str(e))
        return None

    try:
        publish_realtime(notification)
    except Exception as e:
        logger.warning("Real-time notification publish failed", user_id=user_id, error=str(e))

    logger.info(
        "Notification sent",
        user_id=user_id,
        type=notification_type,
        notification_id=notification["notificationId"],
    )
    return notification
