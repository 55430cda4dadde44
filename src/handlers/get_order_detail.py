"""
Get a single order.

GET /order/{orderId}
"""

from typing import Any, Dict

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import require_caller, resolve_groups
    from utils.errors import AppError, ErrorCode
    from utils.logging import get_correlation_id, get_logger
    from utils.orders import can_view_order, require_order
    from utils.responses import build_order_response, error_response, json_response, options_response
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import require_caller, resolve_groups
    from ..utils.errors import AppError, ErrorCode
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.orders import can_view_order, require_order
    from ..utils.responses import build_order_response, error_response, json_response, options_response

logger = get_logger(__name__)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Return one order to its owner, its assigned booster or an admin.

    Returns:
        200 with {order}, 403 for other callers, 404 when missing
    """
    if event.get("httpMethod") == "OPTIONS":
        return options_response()
    logger.bind(get_correlation_id(event))

    try:
        caller = require_caller(event)
        order_id = (event.get("pathParameters") or {}).get("orderId")
        order = require_order(order_id)

        if not can_view_order(caller, order):
            resolve_groups(caller)
            if not caller.is_admin:
                logger.warning("Order access denied", order_id=order_id, user_id=caller.sub)
                raise AppError(ErrorCode.FORBIDDEN, "You do not have access to this order")

        return json_response(200, {"order": build_order_response(order)})

    except AppError as e:
        return error_response(e)
    except Exception as e:
        logger.error("Error getting order", error=str(e))
        return error_response(e)
