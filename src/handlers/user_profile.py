"""
Current user profile.

GET /profile
"""

from typing import Any, Dict

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import require_caller, resolve_groups
    from utils.errors import AppError
    from utils.logging import get_correlation_id, get_logger
    from utils.responses import error_response, json_response, options_response
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import require_caller, resolve_groups
    from ..utils.errors import AppError
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.responses import error_response, json_response, options_response

logger = get_logger(__name__)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Return {username, sub, email, role, groups} for the caller."""
    if event.get("httpMethod") == "OPTIONS":
        return options_response()
    logger.bind(get_correlation_id(event))

    try:
        caller = require_caller(event)
        groups = resolve_groups(caller)
        return json_response(
            200,
            {
                "username": caller.username,
                "sub": caller.sub,
                "email": caller.email,
                "role": caller.role,
                "groups": groups,
            },
        )

    except AppError as e:
        return error_response(e)
    except Exception as e:
        logger.error("Error getting profile", error=str(e))
        return error_response(e)
