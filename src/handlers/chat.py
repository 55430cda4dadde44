"""
Order chat between the customer and the assigned booster.

GET  /order/{orderId}/messages
POST /order/{orderId}/messages

The chat of an order uses the order ID as chatId.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from boto3.dynamodb.conditions import Key

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import Caller, require_caller, resolve_groups
    from utils.dynamodb import query_all, tables
    from utils.errors import AppError, ErrorCode
    from utils.ids import new_message_id
    from utils.logging import get_correlation_id, get_logger
    from utils.notifications import NotificationType, send_notification
    from utils.orders import can_view_order, require_order
    from utils.responses import (
        build_list_response,
        build_message_response,
        error_response,
        json_response,
        options_response,
    )
    from utils.validation import parse_json_body, validate_message_content
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import Caller, require_caller, resolve_groups
    from ..utils.dynamodb import query_all, tables
    from ..utils.errors import AppError, ErrorCode
    from ..utils.ids import new_message_id
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.notifications import NotificationType, send_notification
    from ..utils.orders import can_view_order, require_order
    from ..utils.responses import (
        build_list_response,
        build_message_response,
        error_response,
        json_response,
        options_response,
    )
    from ..utils.validation import parse_json_body, validate_message_content

logger = get_logger(__name__)

PREVIEW_LENGTH = 80


def _authorized_order(caller: Caller, event: Dict[str, Any]) -> Dict[str, Any]:
    order = require_order((event.get("pathParameters") or {}).get("orderId"))
    if not can_view_order(caller, order):
        resolve_groups(caller)
        if not caller.is_admin:
            raise AppError(ErrorCode.FORBIDDEN, "You are not part of this order's chat")
    return order


def list_messages(order: Dict[str, Any]) -> Dict[str, Any]:
    items = query_all(
        tables.messages,
        KeyConditionExpression=Key("chatId").eq(order["orderId"]),
        ScanIndexForward=True,
    )
    return json_response(200, {"messages": build_list_response(items, build_message_response), "count": len(items)})


def post_message(caller: Caller, order: Dict[str, Any], body: Dict[str, Any]) -> Dict[str, Any]:
    """Store a message and notify the other participants."""
    content = validate_message_content(body.get("content"))
    now = datetime.now(timezone.utc)
    message = {
        "chatId": order["orderId"],
        "messageId": new_message_id(now),
        "sender": caller.sub,
        "senderName": caller.display_name or caller.username,
        "content": content,
        "createdAt": now.isoformat(),
    }
    tables.messages.put_item(Item=message)
    logger.info("Message posted", order_id=order["orderId"], sender=caller.sub)

    preview = content if len(content) <= PREVIEW_LENGTH else content[:PREVIEW_LENGTH] + "..."
    recipients = {order.get("userId"), order.get("boosterUsername")} - {caller.sub, None}
    for recipient in sorted(recipients):
        send_notification(
            recipient,
            NotificationType.NEW_MESSAGE,
            f"Nuevo mensaje de {message['senderName']}: {preview}",
            order["orderId"],
        )

    return json_response(201, {"message": build_message_response(message)})


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    method = event.get("httpMethod")
    if method == "OPTIONS":
        return options_response()
    logger.bind(get_correlation_id(event))

    try:
        caller = require_caller(event)
        order = _authorized_order(caller, event)
        if method == "GET":
            return list_messages(order)
        if method == "POST":
            return post_message(caller, order, parse_json_body(event))
        raise AppError(ErrorCode.NOT_FOUND, f"Unsupported method {method}")

    except AppError as e:
        return error_response(e)
    except Exception as e:
        logger.error("Error handling chat request", error=str(e))
        return error_response(e)
