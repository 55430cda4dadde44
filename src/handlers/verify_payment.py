"""
Flow return URL.

POST /verify-payment

Flow sends the customer's browser here after checkout. The payment status is
checked with Flow and the browser is redirected to the matching frontend page.
"""

from typing import Any, Dict
from urllib.parse import urlencode

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.config import frontend_url
    from utils.flow import FlowClient
    from utils.lifecycle import FLOW_STATUS_PAID
    from utils.logging import get_correlation_id, get_logger
    from utils.responses import redirect_response
    from utils.validation import parse_form_body
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.config import frontend_url
    from ..utils.flow import FlowClient
    from ..utils.lifecycle import FLOW_STATUS_PAID
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.responses import redirect_response
    from ..utils.validation import parse_form_body

logger = get_logger(__name__)


def _redirect(page: str, **params: Any) -> Dict[str, Any]:
    query = urlencode({k: v for k, v in params.items() if v is not None})
    return redirect_response(f"{frontend_url()}/payment/{page}?{query}")


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Redirect the customer to /payment/success or /payment/failure."""
    logger.bind(get_correlation_id(event))

    token = parse_form_body(event).get("token") or (event.get("queryStringParameters") or {}).get("token")
    if not token:
        logger.error("Return from Flow without token")
        return _redirect("failure", error="no_token")

    try:
        payment = FlowClient.from_env().get_status(token)
    except Exception as e:
        logger.error("Payment verification failed", error=str(e))
        return _redirect("failure", error="verification_failed")

    flow_order = payment.get("flowOrder")
    if int(payment.get("status", 0)) == FLOW_STATUS_PAID:
        logger.info("Payment verified", flow_order=flow_order)
        return _redirect("success", flowOrder=flow_order, orderId=payment.get("commerceOrder"))

    logger.info("Payment not completed", flow_order=flow_order, flow_status=payment.get("status"))
    return _redirect("failure", flowOrder=flow_order)
