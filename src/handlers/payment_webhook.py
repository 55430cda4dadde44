"""
Flow payment confirmation webhook.

POST /webhook/payment-confirmation

Flow posts `token=<token>` (form encoded) after a payment changes state. The
notification itself is not trusted: the real status is fetched from Flow
with the token.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from botocore.exceptions import ClientError

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.dynamodb import tables
    from utils.errors import AppError
    from utils.flow import FlowClient
    from utils.lifecycle import FLOW_STATUS_PAID, FLOW_TO_ORDER_STATUS, ORDER_PENDING
    from utils.logging import get_correlation_id, get_logger
    from utils.notifications import NotificationType, send_notification
    from utils.responses import text_response
    from utils.validation import parse_form_body
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.dynamodb import tables
    from ..utils.errors import AppError
    from ..utils.flow import FlowClient
    from ..utils.lifecycle import FLOW_STATUS_PAID, FLOW_TO_ORDER_STATUS, ORDER_PENDING
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.notifications import NotificationType, send_notification
    from ..utils.responses import text_response
    from ..utils.validation import parse_form_body

logger = get_logger(__name__)


def apply_payment_status(order_id: str, flow_status: int, flow_order: Any = None) -> bool:
    """
    Move a pending order to the status Flow reports.

    Only pending orders change, so repeated or late webhooks are no-ops.

    Returns:
        True if the order changed
    """
    new_status = FLOW_TO_ORDER_STATUS.get(flow_status)
    if new_status is None or new_status == ORDER_PENDING:
        return False

    now = datetime.now(timezone.utc).isoformat()
    update_expression = "SET #status = :new_status, updatedAt = :now"
    values: Dict[str, Any] = {":new_status": new_status, ":now": now, ":pending": ORDER_PENDING}
    if flow_status == FLOW_STATUS_PAID:
        update_expression += ", paidAt = :now"
    if flow_order is not None:
        update_expression += ", flowOrder = :flow_order"
        values[":flow_order"] = flow_order

    try:
        tables.orders.update_item(
            Key={"orderId": order_id},
            UpdateExpression=update_expression,
            ConditionExpression="attribute_exists(orderId) AND #status = :pending",
            ExpressionAttributeNames={"#status": "status"},
            ExpressionAttributeValues=values,
        )
    except ClientError as e:
        if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
            logger.info("Order not pending, payment status ignored", order_id=order_id, flow_status=flow_status)
            return False
        raise
    logger.info("Order payment status updated", order_id=order_id, status=new_status)
    return True


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Handle the Flow confirmation callback.

    Returns:
        200 "OK" once processed (Flow retries otherwise), 400 without token
    """
    logger.bind(get_correlation_id(event))

    token = parse_form_body(event).get("token")
    if not token:
        logger.error("Flow notification without token")
        return text_response(400, "Bad Request: Missing token")

    try:
        payment = FlowClient.from_env().get_status(token)
        order_id = str(payment.get("commerceOrder") or "")
        flow_status = int(payment.get("status", 0))
        logger.info("Flow payment status", order_id=order_id, flow_status=flow_status)

        if order_id and apply_payment_status(order_id, flow_status, payment.get("flowOrder")):
            if flow_status == FLOW_STATUS_PAID:
                order = tables.orders.get_item(Key={"orderId": order_id}).get("Item") or {}
                send_notification(
                    order.get("userId"),
                    NotificationType.PAYMENT_CONFIRMED,
                    "Tu pago fue confirmado. Pronto un booster tomará tu pedido.",
                    order_id,
                )

        return text_response(200, "OK")

    except AppError as e:
        logger.error("Payment webhook failed", error_code=e.error_code, error=e.message)
        return text_response(500, "Internal Server Error")
    except Exception as e:
        logger.error("Error processing payment webhook", error=str(e))
        return text_response(500, "Internal Server Error")
