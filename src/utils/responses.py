"""
API Gateway response builders for Lambda handlers.

Provides consistent proxy-integration responses (CORS headers, JSON bodies)
and entity builders that normalize DynamoDB items for clients.
"""

import json
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, TypedDict, cast

from .errors import AppError, handle_error, http_status_for

CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization,x-correlation-id",
    "Access-Control-Allow-Methods": "GET,POST,PUT,DELETE,OPTIONS",
    "Content-Type": "application/json",
}


def _json_default(value: Any) -> Any:
    """Encode DynamoDB Decimals (and sets) for JSON."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, set):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json(body: Any) -> str:
    return json.dumps(body, default=_json_default)


def json_response(status_code: int, body: Any) -> Dict[str, Any]:
    """Build a JSON proxy-integration response."""
    return {"statusCode": status_code, "headers": dict(CORS_HEADERS), "body": to_json(body)}


def error_response(error: Exception) -> Dict[str, Any]:
    """Build an error response from an exception."""
    status = http_status_for(error.error_code) if isinstance(error, AppError) else 500
    return json_response(status, handle_error(error))


def options_response() -> Dict[str, Any]:
    """CORS preflight response."""
    return {"statusCode": 200, "headers": dict(CORS_HEADERS), "body": ""}


def text_response(status_code: int, text: str) -> Dict[str, Any]:
    """Plain text response (the Flow webhook expects plain text)."""
    return {"statusCode": status_code, "headers": {"Content-Type": "text/plain"}, "body": text}


def redirect_response(location: str) -> Dict[str, Any]:
    """302 redirect used to send the browser back to the frontend."""
    return {"statusCode": 302, "headers": {"Location": location}, "body": ""}


class OrderResponse(TypedDict, total=False):
    """Order as returned to clients."""

    orderId: str
    userId: str
    status: str
    subject: str
    email: str
    amount: int
    priceCLP: int
    priceUSD: str
    fromRank: str
    toRank: str
    server: str
    nickname: str
    queueType: str
    lpRange: str
    lpGain: str
    selectedLane: str
    selectedChampions: List[str]
    flash: str
    offlineMode: bool
    duoBoost: bool
    priorityBoost: bool
    boosterUsername: Optional[str]
    boosterDisplayName: Optional[str]
    boosterStatus: Optional[str]
    boosterAssignedAt: Optional[str]
    boosterStartedAt: Optional[str]
    boosterCompletedAt: Optional[str]
    hasCredentials: bool
    paidAt: Optional[str]
    createdAt: str
    updatedAt: str


class AssignmentResponse(TypedDict, total=False):
    """Booster assignment as returned to clients."""

    assignmentId: str
    orderId: str
    boosterUsername: str
    boosterDisplayName: str
    clientUserId: str
    status: str
    boosterEarnings: float
    boosterEarningsCLP: float
    isPaid: bool
    isPriority: bool
    orderSubject: Optional[str]
    fromRank: Optional[str]
    toRank: Optional[str]
    server: Optional[str]
    nickname: Optional[str]
    claimedAt: str
    startedAt: Optional[str]
    completedAt: Optional[str]
    paidAt: Optional[str]
    createdAt: str
    updatedAt: str


class NotificationResponse(TypedDict, total=False):
    """Notification as returned to clients."""

    notificationId: str
    userId: str
    type: str
    message: str
    orderId: Optional[str]
    isRead: bool
    createdAt: str


class MessageResponse(TypedDict, total=False):
    """Chat message as returned to clients."""

    chatId: str
    messageId: str
    sender: str
    senderName: str
    content: str
    createdAt: str


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (ValueError, TypeError):
        return 0


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (ValueError, TypeError):
        return 0.0


_ORDER_TEXT_FIELDS = (
    "userId",
    "status",
    "subject",
    "email",
    "fromRank",
    "toRank",
    "server",
    "nickname",
    "queueType",
    "lpRange",
    "lpGain",
    "selectedLane",
    "flash",
)

_ORDER_OPTIONAL_FIELDS = (
    "boosterUsername",
    "boosterDisplayName",
    "boosterStatus",
    "boosterAssignedAt",
    "boosterStartedAt",
    "boosterCompletedAt",
    "paidAt",
)


def build_order_response(item: Dict[str, Any]) -> OrderResponse:
    """
    Build an Order response from a DynamoDB item.

    The encrypted game credentials never leave the backend through this
    builder; clients only learn whether they were provided.

    Args:
        item: DynamoDB item dictionary

    Returns:
        OrderResponse with normalized field types
    """
    response = OrderResponse(
        orderId=cast(str, item.get("orderId", "")),
        amount=_as_int(item.get("amount")),
        priceCLP=_as_int(item.get("priceCLP", item.get("amount"))),
        priceUSD=str(item.get("priceUSD", "")),
        selectedChampions=list(item.get("selectedChampions") or []),
        offlineMode=bool(item.get("offlineMode", False)),
        duoBoost=bool(item.get("duoBoost", False)),
        priorityBoost=bool(item.get("priorityBoost", False)),
        hasCredentials=bool(item.get("encryptedCredentials")),
        createdAt=cast(str, item.get("createdAt", "")),
        updatedAt=cast(str, item.get("updatedAt", item.get("createdAt", ""))),
    )
    for name in _ORDER_TEXT_FIELDS:
        response[name] = cast(str, item.get(name, ""))  # type: ignore[literal-required]
    for name in _ORDER_OPTIONAL_FIELDS:
        if item.get(name) is not None:
            response[name] = item[name]  # type: ignore[literal-required]
    return response


def build_assignment_response(item: Dict[str, Any]) -> AssignmentResponse:
    """Build an assignment response from a DynamoDB item."""
    return AssignmentResponse(
        assignmentId=cast(str, item.get("assignmentId", "")),
        orderId=cast(str, item.get("orderId", "")),
        boosterUsername=cast(str, item.get("boosterUsername", "")),
        boosterDisplayName=cast(str, item.get("boosterDisplayName", "")),
        clientUserId=cast(str, item.get("clientUserId", "")),
        status=cast(str, item.get("status", "")),
        boosterEarnings=_as_float(item.get("boosterEarnings")),
        boosterEarningsCLP=_as_float(item.get("boosterEarningsCLP")),
        isPaid=bool(item.get("isPaid", False)),
        isPriority=bool(item.get("isPriority", False)),
        orderSubject=item.get("orderSubject"),
        fromRank=item.get("fromRank"),
        toRank=item.get("toRank"),
        server=item.get("server"),
        nickname=item.get("nickname"),
        claimedAt=cast(str, item.get("claimedAt", "")),
        startedAt=item.get("startedAt"),
        completedAt=item.get("completedAt"),
        paidAt=item.get("paidAt"),
        createdAt=cast(str, item.get("createdAt", "")),
        updatedAt=cast(str, item.get("updatedAt", "")),
    )


def build_notification_response(item: Dict[str, Any]) -> NotificationResponse:
    """Build a notification response from a DynamoDB item."""
    return NotificationResponse(
        notificationId=cast(str, item.get("notificationId", "")),
        userId=cast(str, item.get("userId", "")),
        type=cast(str, item.get("type", "")),
        message=cast(str, item.get("message", "")),
        orderId=item.get("orderId"),
        isRead=bool(item.get("isRead", False)),
        createdAt=cast(str, item.get("createdAt", "")),
    )


def build_message_response(item: Dict[str, Any]) -> MessageResponse:
    """Build a chat message response from a DynamoDB item."""
    return MessageResponse(
        chatId=cast(str, item.get("chatId", "")),
        messageId=cast(str, item.get("messageId", "")),
        sender=cast(str, item.get("sender", "")),
        senderName=cast(str, item.get("senderName", item.get("sender", ""))),
        content=cast(str, item.get("content", "")),
        createdAt=cast(str, item.get("createdAt", "")),
    )


def build_list_response(items: List[Dict[str, Any]], builder: Callable[[Dict[str, Any]], Any]) -> List[Any]:
    """
    Build a list of responses using a builder function.

    Args:
        items: List of DynamoDB items
        builder: Builder function to apply to each item

    Returns:
        List of built responses
    """
    return [builder(item) for item in items]
