"""
Cancel (delete) an order that no booster has claimed yet.

POST /cancel-order
"""

from typing import Any, Dict

from botocore.exceptions import ClientError

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import require_caller
    from utils.dynamodb import tables
    from utils.errors import AppError, ErrorCode
    from utils.logging import get_correlation_id, get_logger
    from utils.orders import get_order, is_order_owner
    from utils.responses import error_response, json_response, options_response
    from utils.validation import parse_json_body, require_fields
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import require_caller
    from ..utils.dynamodb import tables
    from ..utils.errors import AppError, ErrorCode
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.orders import get_order, is_order_owner
    from ..utils.responses import error_response, json_response, options_response
    from ..utils.validation import parse_json_body, require_fields

logger = get_logger(__name__)


def _cancellation_error(order_id: str, caller_sub: str) -> AppError:
    """Explain why the conditional delete did not match."""
    order = get_order(order_id)
    if order is None:
        return AppError(ErrorCode.NOT_FOUND, f"Order {order_id} not found")
    if order.get("userId") != caller_sub:
        return AppError(ErrorCode.FORBIDDEN, "You can only cancel your own orders")
    return AppError(
        ErrorCode.ORDER_ALREADY_CLAIMED,
        "The order was already taken by a booster and cannot be cancelled",
        {"orderId": order_id},
    )


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Delete the caller's unclaimed order.

    The ownership and "not claimed" checks are part of the delete condition,
    so a booster claiming concurrently either wins or loses cleanly.
    """
    if event.get("httpMethod") == "OPTIONS":
        return options_response()
    logger.bind(get_correlation_id(event))

    try:
        caller = require_caller(event)
        body = parse_json_body(event)
        require_fields(body, ["orderId"])
        order_id = str(body["orderId"])

        order = get_order(order_id)
        if order is None:
            raise AppError(ErrorCode.NOT_FOUND, f"Order {order_id} not found")
        if not is_order_owner(caller, order):
            raise AppError(ErrorCode.FORBIDDEN, "You can only cancel your own orders")

        try:
            tables.orders.delete_item(
                Key={"orderId": order_id},
                ConditionExpression="userId = :caller AND attribute_not_exists(boosterUsername)",
                ExpressionAttributeValues={":caller": caller.sub},
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise _cancellation_error(order_id, caller.sub)
            raise

        logger.info("Order cancelled", order_id=order_id, user_id=caller.sub)
        return json_response(200, {"success": True, "orderId": order_id, "message": "Order cancelled"})

    except AppError as e:
        logger.warning("Cancel rejected", error_code=e.error_code, error=e.message)
        return error_response(e)
    except Exception as e:
        logger.error("Error cancelling order", error=str(e))
        return error_response(e)
