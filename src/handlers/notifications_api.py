"""
Notifications inbox API.

Routes:
- POST   /notifications                          admin creates a notification
- GET    /notifications[?unread=true]             caller's latest notifications
- PUT    /notifications/{notificationId}/read     mark one as read
- PUT    /notifications/mark-all-read             mark all unread as read
- DELETE /notifications/{notificationId}          delete one

Recipients are checked inside the write condition, so users can only touch
their own notifications.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import ROLE_ADMIN, Caller, require_caller, require_role
    from utils.dynamodb import query_all, tables
    from utils.errors import AppError, ErrorCode
    from utils.logging import get_correlation_id, get_logger
    from utils.notifications import NotificationType, send_notification
    from utils.responses import (
        build_list_response,
        build_notification_response,
        error_response,
        json_response,
        options_response,
    )
    from utils.validation import parse_json_body, require_fields
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import ROLE_ADMIN, Caller, require_caller, require_role
    from ..utils.dynamodb import query_all, tables
    from ..utils.errors import AppError, ErrorCode
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.notifications import NotificationType, send_notification
    from ..utils.responses import (
        build_list_response,
        build_notification_response,
        error_response,
        json_response,
        options_response,
    )
    from ..utils.validation import parse_json_body, require_fields

logger = get_logger(__name__)

USER_INDEX = "byUserId"
MAX_NOTIFICATIONS = 50


def _notification_id(event: Dict[str, Any]) -> str:
    notification_id = (event.get("pathParameters") or {}).get("notificationId")
    if not notification_id:
        raise AppError(ErrorCode.INVALID_INPUT, "notificationId is required")
    return str(notification_id)


def _user_query(user_id: str, unread_only: bool = False) -> Dict[str, Any]:
    query: Dict[str, Any] = {
        "IndexName": USER_INDEX,
        "KeyConditionExpression": Key("userId").eq(user_id),
        "ScanIndexForward": False,
    }
    if unread_only:
        query["FilterExpression"] = Attr("isRead").eq(False)
    return query


def _latest_notifications(user_id: str, unread_only: bool = False) -> List[Dict[str, Any]]:
    """
    Newest notifications of a user, at most MAX_NOTIFICATIONS.

    Limit is applied before the unread filter, so further pages are read only
    while the filtered page came back short.
    """
    query = _user_query(user_id, unread_only)
    query["Limit"] = MAX_NOTIFICATIONS
    items: List[Dict[str, Any]] = []
    while len(items) < MAX_NOTIFICATIONS:
        response = tables.notifications.query(**query)
        items.extend(response.get("Items", []))
        last_evaluated_key = response.get("LastEvaluatedKey")
        if last_evaluated_key is None:
            break
        query["ExclusiveStartKey"] = last_evaluated_key
    return items[:MAX_NOTIFICATIONS]


def _unread_count(user_id: str) -> int:
    query = _user_query(user_id, unread_only=True)
    query["Select"] = "COUNT"
    count = 0
    while True:
        response = tables.notifications.query(**query)
        count += int(response.get("Count", 0))
        last_evaluated_key = response.get("LastEvaluatedKey")
        if last_evaluated_key is None:
            return count
        query["ExclusiveStartKey"] = last_evaluated_key


def _unread_notifications(user_id: str) -> List[Dict[str, Any]]:
    return query_all(tables.notifications, **_user_query(user_id, unread_only=True))


def create_notification(caller: Caller, event: Dict[str, Any]) -> Dict[str, Any]:
    require_role(caller, [ROLE_ADMIN])
    body = parse_json_body(event)
    require_fields(body, ["userId", "type", "message"])
    notification_type = str(body["type"])
    if notification_type not in NotificationType.ALL:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            f"type must be one of: {', '.join(NotificationType.ALL)}",
            {"type": notification_type},
        )

    notification = send_notification(str(body["userId"]), notification_type, str(body["message"]), body.get("orderId"))
    if notification is None:
        raise AppError(ErrorCode.NOTIFICATION_ERROR, "The notification could not be stored")
    return json_response(201, {"notification": build_notification_response(notification)})


def list_notifications(caller: Caller, event: Dict[str, Any]) -> Dict[str, Any]:
    """Latest notifications of the caller, newest first, with the unread count."""
    unread_only = str((event.get("queryStringParameters") or {}).get("unread", "")).lower() == "true"
    items = _latest_notifications(caller.sub, unread_only)
    unread_count = _unread_count(caller.sub)
    return json_response(
        200,
        {
            "notifications": build_list_response(items, build_notification_response),
            "count": len(items),
            "unreadCount": unread_count,
        },
    )


def mark_read(caller: Caller, event: Dict[str, Any]) -> Dict[str, Any]:
    notification_id = _notification_id(event)
    try:
        response = tables.notifications.update_item(
            Key={"notificationId": notification_id},
            UpdateExpression="SET isRead = :true",
            ConditionExpression="userId = :user_id",
            ExpressionAttributeValues={":true": True, ":user_id": caller.sub},
            ReturnValues="ALL_NEW",
        )
    except ClientError as e:
        if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
            raise AppError(ErrorCode.NOT_FOUND, "Notification not found")
        raise
    return json_response(200, {"notification": build_notification_response(response["Attributes"])})


def mark_all_read(caller: Caller, event: Dict[str, Any]) -> Dict[str, Any]:
    marked = 0
    for item in _unread_notifications(caller.sub):
        try:
            tables.notifications.update_item(
                Key={"notificationId": item["notificationId"]},
                UpdateExpression="SET isRead = :true",
                ConditionExpression="userId = :user_id",
                ExpressionAttributeValues={":true": True, ":user_id": caller.sub},
            )
        except ClientError as e:
            # Deleted since the query
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                continue
            raise
        marked += 1
    logger.info("Marked notifications read", user_id=caller.sub, count=marked)
    return json_response(200, {"success": True, "count": marked})


def delete_notification(caller: Caller, event: Dict[str, Any]) -> Dict[str, Any]:
    notification_id = _notification_id(event)
    try:
        tables.notifications.delete_item(
            Key={"notificationId": notification_id},
            ConditionExpression="userId = :user_id",
            ExpressionAttributeValues={":user_id": caller.sub},
        )
    except ClientError as e:
        if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
            raise AppError(ErrorCode.NOT_FOUND, "Notification not found")
        raise
    return json_response(200, {"success": True, "notificationId": notification_id})


Route = Callable[[Caller, Dict[str, Any]], Dict[str, Any]]

ROUTES: Dict[Tuple[str, str], Route] = {
    ("POST", "/notifications"): create_notification,
    ("GET", "/notifications"): list_notifications,
    ("PUT", "/notifications/{notificationId}/read"): mark_read,
    ("PUT", "/notifications/mark-all-read"): mark_all_read,
    ("DELETE", "/notifications/{notificationId}"): delete_notification,
}


def _route(event: Dict[str, Any]) -> Optional[Route]:
    return ROUTES.get((str(event.get("httpMethod", "")).upper(), str(event.get("resource", ""))))


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    if event.get("httpMethod") == "OPTIONS":
        return options_response()
    logger.bind(get_correlation_id(event))

    try:
        route = _route(event)
        if route is None:
            raise AppError(ErrorCode.NOT_FOUND, f"Route not found: {event.get('httpMethod')} {event.get('resource')}")
        return route(require_caller(event), event)

    except AppError as e:
        return error_response(e)
    except Exception as e:
        logger.error("Error handling notifications request", error=str(e))
        return error_response(e)
