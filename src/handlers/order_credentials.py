"""
Game account credentials of an order.

PUT /order/{orderId}/credentials  - owner stores them (KMS encrypted)
GET /order/{orderId}/credentials  - the working booster or an admin reads them
"""

from datetime import datetime, timezone
from typing import Any, Dict

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import Caller, require_caller, resolve_groups
    from utils.credentials import decrypt_credentials, encrypt_credentials
    from utils.dynamodb import tables
    from utils.errors import AppError, ErrorCode
    from utils.logging import get_correlation_id, get_logger
    from utils.orders import has_active_assignment, is_order_owner, require_order
    from utils.responses import error_response, json_response, options_response
    from utils.validation import parse_json_body, validate_credentials_input
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import Caller, require_caller, resolve_groups
    from ..utils.credentials import decrypt_credentials, encrypt_credentials
    from ..utils.dynamodb import tables
    from ..utils.errors import AppError, ErrorCode
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.orders import has_active_assignment, is_order_owner, require_order
    from ..utils.responses import error_response, json_response, options_response
    from ..utils.validation import parse_json_body, validate_credentials_input

logger = get_logger(__name__)


def store_credentials(caller: Caller, order_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
    order = require_order(order_id)
    if not is_order_owner(caller, order):
        raise AppError(ErrorCode.FORBIDDEN, "Only the order owner can set credentials")

    credentials = validate_credentials_input(body)
    blob = encrypt_credentials(order_id, credentials["gameUsername"], credentials["gamePassword"])
    now = datetime.now(timezone.utc).isoformat()
    tables.orders.update_item(
        Key={"orderId": order_id},
        UpdateExpression="SET encryptedCredentials = :blob, credentialsUpdatedAt = :now, updatedAt = :now",
        ExpressionAttributeValues={":blob": blob, ":now": now},
    )
    logger.info("Credentials stored", order_id=order_id, user_id=caller.sub)
    return {"success": True, "orderId": order_id, "credentialsUpdatedAt": now}


def read_credentials(caller: Caller, order_id: str) -> Dict[str, Any]:
    """
    Decrypted credentials for the active booster or an admin.

    The owner only learns whether credentials are stored.
    """
    order = require_order(order_id)
    blob = order.get("encryptedCredentials")

    if not has_active_assignment(caller, order):
        resolve_groups(caller)
        if not caller.is_admin:
            if is_order_owner(caller, order):
                return {"orderId": order_id, "hasCredentials": bool(blob)}
            raise AppError(ErrorCode.FORBIDDEN, "You do not have access to these credentials")

    if not blob:
        raise AppError(ErrorCode.NOT_FOUND, "The customer has not provided credentials yet")

    credentials = decrypt_credentials(order_id, blob)
    logger.info("Credentials read", order_id=order_id, user_id=caller.sub)
    return {
        "orderId": order_id,
        "hasCredentials": True,
        "gameUsername": credentials["gameUsername"],
        "gamePassword": credentials["gamePassword"],
        "credentialsUpdatedAt": order.get("credentialsUpdatedAt"),
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    method = event.get("httpMethod")
    if method == "OPTIONS":
        return options_response()
    logger.bind(get_correlation_id(event))

    try:
        caller = require_caller(event)
        order_id = (event.get("pathParameters") or {}).get("orderId") or ""

        if method == "PUT":
            return json_response(200, store_credentials(caller, order_id, parse_json_body(event)))
        if method == "GET":
            return json_response(200, read_credentials(caller, order_id))
        raise AppError(ErrorCode.NOT_FOUND, f"Unsupported method {method}")

    except AppError as e:
        return error_response(e)
    except Exception as e:
        logger.error("Error handling credentials", error=str(e))
        return error_response(e)
