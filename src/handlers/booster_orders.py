"""
Booster API: available orders, claiming, progress and earnings.

Routes (API Gateway resource + method):
- GET  /booster/orders                                 list claimable orders
- POST /booster/orders/{orderId}/claim                 claim an order
- GET  /booster/my-orders                              the booster's assignments
- PUT  /booster/update-status/{orderId}                IN_PROGRESS / COMPLETED
- GET  /booster/earnings                               earnings summary
- PUT  /booster/release/{orderId}                      give an active order back
- PUT  /booster/assignments/{assignmentId}/mark-paid   admin payout record

Claim, status update and release each run as a single DynamoDB transaction
touching the order, the assignment and the booster's ACTIVE# lock item, so
two boosters can never hold the same order and a booster never holds two.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import ROLE_ADMIN, ROLE_BOOSTER, Caller, require_caller, require_role
    from utils.config import commission_rate
    from utils.dynamodb import (
        get_dynamodb_client,
        query_all,
        scan_all,
        serialize_item,
        serialize_values,
        table_name,
        tables,
    )
    from utils.errors import AppError, ErrorCode
    from utils.ids import active_lock_key, new_assignment_id
    from utils.lifecycle import (
        CLAIMED,
        COMPLETED,
        IN_PROGRESS,
        ORDER_PAID,
        STATUS_TIMESTAMPS,
        assert_transition,
        booster_earnings,
        is_active,
    )
    from utils.logging import get_correlation_id, get_logger
    from utils.notifications import NotificationType, send_notification
    from utils.orders import get_active_order_id, get_assignment, get_order, get_order_assignment, require_order
    from utils.responses import (
        build_assignment_response,
        build_list_response,
        build_order_response,
        error_response,
        json_response,
        options_response,
    )
    from utils.validation import parse_json_body, require_fields, validate_booster_status
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import ROLE_ADMIN, ROLE_BOOSTER, Caller, require_caller, require_role
    from ..utils.config import commission_rate
    from ..utils.dynamodb import (
        get_dynamodb_client,
        query_all,
        scan_all,
        serialize_item,
        serialize_values,
        table_name,
        tables,
    )
    from ..utils.errors import AppError, ErrorCode
    from ..utils.ids import active_lock_key, new_assignment_id
    from ..utils.lifecycle import (
        CLAIMED,
        COMPLETED,
        IN_PROGRESS,
        ORDER_PAID,
        STATUS_TIMESTAMPS,
        assert_transition,
        booster_earnings,
        is_active,
    )
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.notifications import NotificationType, send_notification
    from ..utils.orders import get_active_order_id, get_assignment, get_order, get_order_assignment, require_order
    from ..utils.responses import (
        build_assignment_response,
        build_list_response,
        build_order_response,
        error_response,
        json_response,
        options_response,
    )
    from ..utils.validation import parse_json_body, require_fields, validate_booster_status

logger = get_logger(__name__)

ORDERS_TABLE_ENV = "ORDERS_TABLE_NAME"
ASSIGNMENTS_TABLE_ENV = "ASSIGNMENTS_TABLE_NAME"
BOOSTER_INDEX = "boosterUsername-index"

# Order attributes that exist only while a booster holds the order
BOOSTER_ORDER_FIELDS = (
    "boosterUsername",
    "boosterDisplayName",
    "boosterAssignedAt",
    "boosterStatus",
    "boosterAssignmentId",
    "boosterStartedAt",
)

STATUS_MESSAGES = {
    IN_PROGRESS: (NotificationType.BOOST_STARTED, "Tu booster comenzó a trabajar en tu pedido."),
    COMPLETED: (NotificationType.BOOST_COMPLETED, "¡Tu boost fue completado!"),
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _path_param(event: Dict[str, Any], name: str) -> str:
    value = (event.get("pathParameters") or {}).get(name)
    if not value:
        raise AppError(ErrorCode.INVALID_INPUT, f"{name} is required")
    return str(value)


def _is_transaction_cancelled(error: ClientError) -> bool:
    return error.response["Error"]["Code"] in ("TransactionCanceledException", "ConditionalCheckFailedException")


def _transact(items: List[Dict[str, Any]]) -> None:
    get_dynamodb_client().transact_write_items(TransactItems=items)


def _release_lock_item(booster_username: str, order_id: str) -> Dict[str, Any]:
    """Delete of the booster lock; a missing lock is fine, a lock for another order is not."""
    return {
        "Delete": {
            "TableName": table_name(ASSIGNMENTS_TABLE_ENV),
            "Key": serialize_item({"assignmentId": active_lock_key(booster_username)}),
            "ConditionExpression": "attribute_not_exists(assignmentId) OR activeOrderId = :order_id",
            "ExpressionAttributeValues": serialize_values({":order_id": order_id}),
        }
    }


# ----------------------------------------------------------------------------
# Available orders
# ----------------------------------------------------------------------------


def list_available_orders(caller: Caller, event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Paid orders nobody has claimed, newest first.

    While any priority order is waiting only priority orders are offered.
    """
    items = list(
        scan_all(
            tables.orders,
            FilterExpression=Attr("status").eq(ORDER_PAID) & Attr("boosterUsername").not_exists(),
        )
    )
    priority = [item for item in items if item.get("priorityBoost")]
    has_priority = bool(priority)
    if has_priority:
        items = priority
    items.sort(key=lambda item: item.get("createdAt", ""), reverse=True)

    logger.info("Listed available orders", count=len(items), has_priority=has_priority)
    return json_response(
        200,
        {
            "orders": build_list_response(items, build_order_response),
            "count": len(items),
            "hasPriorityOrders": has_priority,
        },
    )


# ----------------------------------------------------------------------------
# Claim
# ----------------------------------------------------------------------------


def _claim_failure(order_id: str, booster_username: str) -> AppError:
    """Work out which transaction condition failed by re-reading state."""
    order = get_order(order_id)
    if order is None:
        return AppError(ErrorCode.NOT_FOUND, f"Order {order_id} not found")
    if order.get("boosterUsername"):
        return AppError(
            ErrorCode.ORDER_ALREADY_CLAIMED,
            "This order was already claimed by another booster",
            {"orderId": order_id},
        )
    if order.get("status") != ORDER_PAID:
        return AppError(
            ErrorCode.ORDER_NOT_AVAILABLE,
            "Only paid orders can be claimed",
            {"orderId": order_id, "status": order.get("status")},
        )
    active_order_id = get_active_order_id(booster_username)
    if active_order_id:
        return AppError(
            ErrorCode.ACTIVE_ORDER_EXISTS,
            "You already have an active order. Complete or release it first.",
            {"activeOrderId": active_order_id},
        )
    return AppError(ErrorCode.DATABASE_ERROR, "Could not claim the order, please retry")


def build_assignment(order: Dict[str, Any], caller: Caller, display_name: str, now: str) -> Dict[str, Any]:
    """Assignment item for a booster claiming an order."""
    rate = commission_rate()
    return {
        "assignmentId": new_assignment_id(),
        "orderId": order["orderId"],
        "boosterUsername": caller.sub,
        "boosterDisplayName": display_name,
        "clientUserId": order.get("userId"),
        "status": CLAIMED,
        "boosterEarnings": booster_earnings(order.get("priceUSD"), rate),
        "boosterEarningsCLP": booster_earnings(order.get("priceCLP", order.get("amount")), rate),
        "commissionRate": rate,
        "isPaid": False,
        "isPriority": bool(order.get("priorityBoost", False)),
        "orderSubject": order.get("subject"),
        "fromRank": order.get("fromRank"),
        "toRank": order.get("toRank"),
        "server": order.get("server"),
        "nickname": order.get("nickname"),
        "claimedAt": now,
        "createdAt": now,
        "updatedAt": now,
    }


def claim_order(caller: Caller, event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Claim a paid order for the calling booster.

    One transaction: the order gains its booster only if it is paid and
    unclaimed, the assignment is created, and the booster's lock is taken
    only if the booster holds no other active order.
    """
    order_id = _path_param(event, "orderId")
    body = parse_json_body(event)
    display_name = str(body.get("boosterDisplayName") or caller.display_name or caller.username).strip()

    order = require_order(order_id)
    now = _now()
    assignment = build_assignment(order, caller, display_name, now)
    assignment_id = assignment["assignmentId"]

    items = [
        {
            "Update": {
                "TableName": table_name(ORDERS_TABLE_ENV),
                "Key": serialize_item({"orderId": order_id}),
                "UpdateExpression": (
                    "SET boosterUsername = :booster, boosterDisplayName = :display_name, "
                    "boosterAssignedAt = :now, boosterStatus = :claimed, "
                    "boosterAssignmentId = :assignment_id, updatedAt = :now"
                ),
                "ConditionExpression": (
                    "attribute_exists(orderId) AND #status = :paid AND attribute_not_exists(boosterUsername)"
                ),
                "ExpressionAttributeNames": {"#status": "status"},
                "ExpressionAttributeValues": serialize_values(
                    {
                        ":booster": caller.sub,
                        ":display_name": display_name,
                        ":now": now,
                        ":claimed": CLAIMED,
                        ":assignment_id": assignment_id,
                        ":paid": ORDER_PAID,
                    }
                ),
            }
        },
        {
            "Put": {
                "TableName": table_name(ASSIGNMENTS_TABLE_ENV),
                "Item": serialize_item(assignment),
                "ConditionExpression": "attribute_not_exists(assignmentId)",
            }
        },
        {
            "Put": {
                "TableName": table_name(ASSIGNMENTS_TABLE_ENV),
                "Item": serialize_item(
                    {
                        "assignmentId": active_lock_key(caller.sub),
                        "activeOrderId": order_id,
                        "activeAssignmentId": assignment_id,
                        "createdAt": now,
                    }
                ),
                "ConditionExpression": "attribute_not_exists(assignmentId)",
            }
        },
    ]

    try:
        _transact(items)
    except ClientError as e:
        if _is_transaction_cancelled(e):
            raise _claim_failure(order_id, caller.sub)
        raise

    logger.info("Order claimed", order_id=order_id, assignment_id=assignment_id, booster=caller.sub)
    send_notification(
        order.get("userId"),
        NotificationType.BOOSTER_ASSIGNED,
        f"{display_name} tomó tu pedido y comenzará pronto.",
        order_id,
    )
    return json_response(
        200,
        {
            "success": True,
            "message": "Order claimed",
            "assignment": build_assignment_response(assignment),
        },
    )


# ----------------------------------------------------------------------------
# Booster assignments and earnings
# ----------------------------------------------------------------------------


def _booster_assignments(booster_username: str) -> List[Dict[str, Any]]:
    return query_all(
        tables.assignments,
        IndexName=BOOSTER_INDEX,
        KeyConditionExpression=Key("boosterUsername").eq(booster_username),
        ScanIndexForward=False,
    )


def _target_booster(caller: Caller, event: Dict[str, Any]) -> str:
    """The caller, or for admins the booster named in ?username=."""
    requested = (event.get("queryStringParameters") or {}).get("username")
    if requested and requested != caller.sub:
        if not caller.is_admin:
            raise AppError(ErrorCode.FORBIDDEN, "Only admins can view other boosters")
        return str(requested)
    return caller.sub


def list_my_assignments(caller: Caller, event: Dict[str, Any]) -> Dict[str, Any]:
    booster = _target_booster(caller, event)
    items = _booster_assignments(booster)
    return json_response(
        200,
        {
            "assignments": build_list_response(items, build_assignment_response),
            "count": len(items),
            "activeOrderId": get_active_order_id(booster),
        },
    )


def summarize_earnings(assignments: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Earnings totals over a booster's assignments.

    USD amounts are returned as 2-decimal strings.
    """
    total = paid = Decimal("0")
    total_clp = paid_clp = Decimal("0")
    for assignment in assignments:
        earnings = Decimal(str(assignment.get("boosterEarnings") or 0))
        earnings_clp = Decimal(str(assignment.get("boosterEarningsCLP") or 0))
        total += earnings
        total_clp += earnings_clp
        if assignment.get("isPaid"):
            paid += earnings
            paid_clp += earnings_clp

    cents = Decimal("0.01")
    return {
        "totalEarnings": str(total.quantize(cents)),
        "paidEarnings": str(paid.quantize(cents)),
        "pendingEarnings": str((total - paid).quantize(cents)),
        "totalEarningsCLP": str(total_clp.quantize(cents)),
        "paidEarningsCLP": str(paid_clp.quantize(cents)),
        "pendingEarningsCLP": str((total_clp - paid_clp).quantize(cents)),
        "completedOrders": sum(1 for a in assignments if a.get("status") == COMPLETED),
        "activeOrders": sum(1 for a in assignments if is_active(a)),
    }


def get_earnings(caller: Caller, event: Dict[str, Any]) -> Dict[str, Any]:
    booster = _target_booster(caller, event)
    assignments = _booster_assignments(booster)
    summary = summarize_earnings(assignments)
    summary["assignments"] = build_list_response(assignments, build_assignment_response)
    return json_response(200, summary)


# ----------------------------------------------------------------------------
# Status updates and release
# ----------------------------------------------------------------------------


def _owned_assignment(caller: Caller, order: Dict[str, Any]) -> Dict[str, Any]:
    assignment = get_order_assignment(order)
    if assignment is None:
        raise AppError(ErrorCode.NOT_FOUND, "No assignment found for this order", {"orderId": order["orderId"]})
    if assignment.get("boosterUsername") != caller.sub:
        raise AppError(ErrorCode.FORBIDDEN, "This order is assigned to another booster")
    return assignment


def update_status(caller: Caller, event: Dict[str, Any]) -> Dict[str, Any]:
    """Move the caller's assignment CLAIMED -> IN_PROGRESS -> COMPLETED."""
    order_id = _path_param(event, "orderId")
    body = parse_json_body(event)
    require_fields(body, ["status"])
    target = validate_booster_status(body["status"])

    order = require_order(order_id)
    assignment = _owned_assignment(caller, order)
    current = assignment.get("status", "")
    assert_transition(current, target)

    now = _now()
    assignment_ts, order_ts = STATUS_TIMESTAMPS[target]
    assignment_id = assignment["assignmentId"]
    items = [
        {
            "Update": {
                "TableName": table_name(ASSIGNMENTS_TABLE_ENV),
                "Key": serialize_item({"assignmentId": assignment_id}),
                "UpdateExpression": f"SET #status = :target, {assignment_ts} = :now, updatedAt = :now",
                "ConditionExpression": "boosterUsername = :booster AND #status = :current",
                "ExpressionAttributeNames": {"#status": "status"},
                "ExpressionAttributeValues": serialize_values(
                    {":target": target, ":now": now, ":booster": caller.sub, ":current": current}
                ),
            }
        },
        {
            "Update": {
                "TableName": table_name(ORDERS_TABLE_ENV),
                "Key": serialize_item({"orderId": order_id}),
                "UpdateExpression": f"SET boosterStatus = :target, {order_ts} = :now, updatedAt = :now",
                "ConditionExpression": "boosterAssignmentId = :assignment_id",
                "ExpressionAttributeValues": serialize_values(
                    {":target": target, ":now": now, ":assignment_id": assignment_id}
                ),
            }
        },
    ]
    if target == COMPLETED:
        items.append(_release_lock_item(caller.sub, order_id))

    try:
        _transact(items)
    except ClientError as e:
        if _is_transaction_cancelled(e):
            latest = get_assignment(assignment_id) or {}
            raise AppError(
                ErrorCode.INVALID_STATUS_TRANSITION,
                "The assignment changed while updating, reload and retry",
                {"currentStatus": latest.get("status"), "requestedStatus": target},
            )
        raise

    logger.info("Assignment status updated", order_id=order_id, assignment_id=assignment_id, status=target)
    notification_type, message = STATUS_MESSAGES[target]
    send_notification(order.get("userId"), notification_type, message, order_id)

    assignment.update({"status": target, assignment_ts: now, "updatedAt": now})
    return json_response(
        200,
        {"success": True, "message": f"Status updated to {target}", "assignment": build_assignment_response(assignment)},
    )


def release_order(caller: Caller, event: Dict[str, Any]) -> Dict[str, Any]:
    """Give an active order back to the pool of available orders."""
    order_id = _path_param(event, "orderId")
    order = require_order(order_id)
    assignment = get_order_assignment(order)
    if assignment is None or not is_active(assignment):
        raise AppError(ErrorCode.NOT_FOUND, "No active assignment for this order", {"orderId": order_id})
    if assignment.get("boosterUsername") != caller.sub:
        raise AppError(ErrorCode.FORBIDDEN, "This order is assigned to another booster")

    now = _now()
    items = [
        {
            "Delete": {
                "TableName": table_name(ASSIGNMENTS_TABLE_ENV),
                "Key": serialize_item({"assignmentId": assignment["assignmentId"]}),
                "ConditionExpression": "boosterUsername = :booster AND (#status = :claimed OR #status = :in_progress)",
                "ExpressionAttributeNames": {"#status": "status"},
                "ExpressionAttributeValues": serialize_values(
                    {":booster": caller.sub, ":claimed": CLAIMED, ":in_progress": IN_PROGRESS}
                ),
            }
        },
        {
            "Update": {
                "TableName": table_name(ORDERS_TABLE_ENV),
                "Key": serialize_item({"orderId": order_id}),
                "UpdateExpression": f"REMOVE {', '.join(BOOSTER_ORDER_FIELDS)} SET updatedAt = :now",
                "ConditionExpression": "boosterUsername = :booster",
                "ExpressionAttributeValues": serialize_values({":booster": caller.sub, ":now": now}),
            }
        },
        _release_lock_item(caller.sub, order_id),
    ]

    try:
        _transact(items)
    except ClientError as e:
        if _is_transaction_cancelled(e):
            raise AppError(
                ErrorCode.INVALID_STATUS_TRANSITION,
                "The assignment is no longer active",
                {"orderId": order_id},
            )
        raise

    logger.info("Order released", order_id=order_id, assignment_id=assignment["assignmentId"], booster=caller.sub)
    return json_response(200, {"success": True, "message": "Order released", "orderId": order_id})


def mark_assignment_paid(caller: Caller, event: Dict[str, Any]) -> Dict[str, Any]:
    """Record that a completed assignment was paid out to the booster."""
    require_role(caller, [ROLE_ADMIN])
    assignment_id = _path_param(event, "assignmentId")
    now = _now()
    try:
        response = tables.assignments.update_item(
            Key={"assignmentId": assignment_id},
            UpdateExpression="SET isPaid = :true, paidAt = :now, updatedAt = :now",
            ConditionExpression="attribute_exists(assignmentId) AND #status = :completed",
            ExpressionAttributeNames={"#status": "status"},
            ExpressionAttributeValues={":true": True, ":now": now, ":completed": COMPLETED},
            ReturnValues="ALL_NEW",
        )
    except ClientError as e:
        if e.response["Error"]["Code"] != "ConditionalCheckFailedException":
            raise
        if get_assignment(assignment_id) is None:
            raise AppError(ErrorCode.NOT_FOUND, f"Assignment {assignment_id} not found")
        raise AppError(ErrorCode.INVALID_STATUS_TRANSITION, "Only completed assignments can be marked as paid")

    logger.info("Assignment marked paid", assignment_id=assignment_id, admin=caller.sub)
    return json_response(200, {"success": True, "assignment": build_assignment_response(response["Attributes"])})


Route = Callable[[Caller, Dict[str, Any]], Dict[str, Any]]

ROUTES: Dict[Tuple[str, str], Route] = {
    ("GET", "/booster/orders"): list_available_orders,
    ("POST", "/booster/orders/{orderId}/claim"): claim_order,
    ("GET", "/booster/my-orders"): list_my_assignments,
    ("PUT", "/booster/update-status/{orderId}"): update_status,
    ("GET", "/booster/earnings"): get_earnings,
    ("PUT", "/booster/release/{orderId}"): release_order,
    ("PUT", "/booster/assignments/{assignmentId}/mark-paid"): mark_assignment_paid,
}


def _route(event: Dict[str, Any]) -> Optional[Route]:
    return ROUTES.get((str(event.get("httpMethod", "")).upper(), str(event.get("resource", ""))))


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Dispatch a booster API request."""
    if event.get("httpMethod") == "OPTIONS":
        return options_response()
    logger.bind(get_correlation_id(event))

    try:
        route = _route(event)
        if route is None:
            raise AppError(ErrorCode.NOT_FOUND, f"Route not found: {event.get('httpMethod')} {event.get('resource')}")

        caller = require_caller(event)
        require_role(caller, [ROLE_BOOSTER])
        return route(caller, event)

    except AppError as e:
        logger.warning("Booster request rejected", error_code=e.error_code, error=e.message)
        return error_response(e)
    except Exception as e:
        logger.error("Error handling booster request", error=str(e))
        return error_response(e)
