"""
List the caller's orders.

GET /my-orders
"""

from typing import Any, Dict

from boto3.dynamodb.conditions import Key

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import require_caller
    from utils.dynamodb import query_all, tables
    from utils.errors import AppError
    from utils.logging import get_correlation_id, get_logger
    from utils.responses import (
        build_list_response,
        build_order_response,
        error_response,
        json_response,
        options_response,
    )
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import require_caller
    from ..utils.dynamodb import query_all, tables
    from ..utils.errors import AppError
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.responses import (
        build_list_response,
        build_order_response,
        error_response,
        json_response,
        options_response,
    )

logger = get_logger(__name__)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Return {orders, count} for the caller, newest first."""
    if event.get("httpMethod") == "OPTIONS":
        return options_response()
    logger.bind(get_correlation_id(event))

    try:
        caller = require_caller(event)
        items = query_all(
            tables.orders,
            IndexName="byUserId",
            KeyConditionExpression=Key("userId").eq(caller.sub),
            ScanIndexForward=False,
        )
        logger.info("Listed customer orders", user_id=caller.sub, count=len(items))
        orders = build_list_response(items, build_order_response)
        return json_response(200, {"orders": orders, "count": len(orders)})

    except AppError as e:
        return error_response(e)
    except Exception as e:
        logger.error("Error listing orders", error=str(e))
        return error_response(e)
