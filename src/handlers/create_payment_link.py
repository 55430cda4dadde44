"""
Create a boost order and its Flow payment link.

POST /create-payment

The price is computed here from the boost configuration; the client only
chooses options. Callback URLs and Flow credentials are resolved first, then
the order is stored as `pending` before calling Flow so the webhook always
finds it.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import require_caller
    from utils.dynamodb import tables
    from utils.errors import AppError, ErrorCode
    from utils.flow import FlowClient
    from utils.ids import new_order_id
    from utils.lifecycle import ORDER_PENDING, ORDER_REJECTED
    from utils.logging import get_correlation_id, get_logger
    from utils.pricing import CHAMPION_POOL_SIZE, calculate_price, convert_clp_to_usd
    from utils.responses import error_response, json_response, options_response
    from utils.validation import parse_json_body, validate_boost_request, validate_email
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import require_caller
    from ..utils.dynamodb import tables
    from ..utils.errors import AppError, ErrorCode
    from ..utils.flow import FlowClient
    from ..utils.ids import new_order_id
    from ..utils.lifecycle import ORDER_PENDING, ORDER_REJECTED
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.pricing import CHAMPION_POOL_SIZE, calculate_price, convert_clp_to_usd
    from ..utils.responses import error_response, json_response, options_response
    from ..utils.validation import parse_json_body, validate_boost_request, validate_email

logger = get_logger(__name__)


def _api_base_url(event: Dict[str, Any]) -> str:
    """Public base URL of this API (host + stage) for Flow callbacks."""
    headers = event.get("headers") or {}
    host = headers.get("Host") or headers.get("host")
    if not host:
        raise AppError(ErrorCode.INVALID_INPUT, "Request is missing the Host header")
    stage = (event.get("requestContext") or {}).get("stage")
    return f"https://{host}/{stage}" if stage else f"https://{host}"


def _default_subject(boost: Dict[str, Any]) -> str:
    return f"Boost {boost['fromRank']} -> {boost['toRank']} ({boost['server']})"


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Create a pending order and return the Flow checkout URL.

    Args:
        event: API Gateway event with a JSON body:
            - email: Payer email
            - fromRank, toRank, server, nickname: Boost target
            - lpRange, lpGain, queueType, selectedLane, selectedChampions,
              offlineMode, duoBoost, priorityBoost: Options
            - subject: Optional payment description
        context: Lambda context (unused)

    Returns:
        200 with {paymentUrl, orderId, priceCLP, priceUSD}
    """
    if event.get("httpMethod") == "OPTIONS":
        return options_response()
    logger.bind(get_correlation_id(event))

    try:
        caller = require_caller(event)
        body = parse_json_body(event)
        email = validate_email(body.get("email") or caller.email)
        boost = validate_boost_request(body)

        price_clp = calculate_price(
            boost["fromRank"],
            boost["toRank"],
            lp_range=boost["lpRange"],
            selected_lane=boost["selectedLane"],
            queue_type=boost["queueType"],
            server=boost["server"],
            lp_gain=boost["lpGain"],
            champions_selected=len(boost["selectedChampions"]) >= CHAMPION_POOL_SIZE,
            offline_mode=boost["offlineMode"],
            duo_boost=boost["duoBoost"],
            priority_boost=boost["priorityBoost"],
        )
        if price_clp <= 0:
            raise AppError(ErrorCode.INVALID_RANK, "The selected ranks do not require a boost")
        price_usd = convert_clp_to_usd(price_clp)

        base_url = _api_base_url(event)
        flow = FlowClient.from_env()

        order_id = new_order_id()
        now = datetime.now(timezone.utc).isoformat()
        subject = str(body.get("subject") or _default_subject(boost)).strip()
        order: Dict[str, Any] = {
            "orderId": order_id,
            "userId": caller.sub,
            "status": ORDER_PENDING,
            "amount": price_clp,
            "priceCLP": price_clp,
            "priceUSD": Decimal(price_usd),
            "subject": subject,
            "email": email,
            **boost,
            "createdAt": now,
            "updatedAt": now,
        }
        tables.orders.put_item(Item=order)
        logger.info("Order created", order_id=order_id, user_id=caller.sub, price_clp=price_clp)

        try:
            link = flow.create_payment(
                commerce_order=order_id,
                subject=subject,
                amount=price_clp,
                email=email,
                url_confirmation=f"{base_url}/webhook/payment-confirmation",
                url_return=f"{base_url}/verify-payment",
            )
        except AppError:
            tables.orders.update_item(
                Key={"orderId": order_id},
                UpdateExpression="SET #status = :rejected, updatedAt = :now",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={":rejected": ORDER_REJECTED, ":now": now},
            )
            raise

        tables.orders.update_item(
            Key={"orderId": order_id},
            UpdateExpression="SET flowToken = :token, flowOrder = :flow_order",
            ExpressionAttributeValues={":token": link.token, ":flow_order": link.flow_order},
        )
        logger.info("Payment link created", order_id=order_id, flow_order=link.flow_order)

        return json_response(
            200,
            {
                "paymentUrl": link.payment_url,
                "orderId": order_id,
                "priceCLP": price_clp,
                "priceUSD": price_usd,
            },
        )

    except AppError as e:
        logger.warning("Create payment link rejected", error_code=e.error_code, error=e.message)
        return error_response(e)
    except Exception as e:
        logger.error("Error creating payment link", error=str(e))
        return error_response(e)
