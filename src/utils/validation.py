"""
Input validation utilities.

Validates request bodies, boost configurations, statuses and roles.
"""

import base64
import json
import re
from typing import Any, Dict, Iterable, List
from urllib.parse import parse_qsl

from .auth import ROLES
from .errors import AppError, ErrorCode
from .lifecycle import BOOSTER_STATUSES
from .pricing import (
    CHAMPION_POOL_SIZE,
    LANES,
    LP_DISCOUNTS,
    LP_GAIN_MODIFIERS,
    QUEUE_TYPES,
    SERVER_MODIFIERS,
    parse_rank,
)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MAX_NICKNAME_LENGTH = 64
MAX_CREDENTIAL_LENGTH = 128
MAX_MESSAGE_LENGTH = 1000

FLASH_KEYS = ("flash-d", "flash-f")
DEFAULT_FLASH_KEY = "flash-d"


def _raw_body(event: Dict[str, Any]) -> str:
    body = event.get("body") or ""
    if event.get("isBase64Encoded") and body:
        body = base64.b64decode(body).decode("utf-8")
    return str(body)


def parse_json_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Parse a JSON request body.

    Returns:
        Parsed object, or {} for an empty body

    Raises:
        AppError: INVALID_INPUT for malformed JSON or a non-object body
    """
    raw = _raw_body(event)
    if not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        raise AppError(ErrorCode.INVALID_INPUT, "Request body must be valid JSON")
    if not isinstance(body, dict):
        raise AppError(ErrorCode.INVALID_INPUT, "Request body must be a JSON object")
    return body


def parse_form_body(event: Dict[str, Any]) -> Dict[str, str]:
    """Parse an application/x-www-form-urlencoded body (Flow callbacks)."""
    return dict(parse_qsl(_raw_body(event), keep_blank_values=True))


def require_fields(data: Dict[str, Any], names: Iterable[str]) -> None:
    """
    Require non-empty values for the given fields.

    Raises:
        AppError: INVALID_INPUT listing the missing fields
    """
    missing = [name for name in names if data.get(name) in (None, "")]
    if missing:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            f"Missing required fields: {', '.join(missing)}",
            {"missingFields": missing},
        )


def validate_email(email: str) -> str:
    """Validate and normalize an email address."""
    normalized = str(email or "").strip()
    if not EMAIL_PATTERN.match(normalized):
        raise AppError(ErrorCode.INVALID_INPUT, "A valid email is required", {"email": email})
    return normalized


def validate_booster_status(status: Any) -> str:
    """Validate a booster assignment status."""
    value = str(status or "").strip().upper()
    if value not in BOOSTER_STATUSES:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            f"Status must be one of: {', '.join(BOOSTER_STATUSES)}",
            {"status": status},
        )
    return value


def validate_role(role: Any) -> str:
    """Validate a role / Cognito group name."""
    value = str(role or "").strip().upper()
    if value not in ROLES:
        raise AppError(ErrorCode.INVALID_INPUT, f"Role must be one of: {', '.join(ROLES)}", {"role": role})
    return value


def validate_credentials_input(body: Dict[str, Any]) -> Dict[str, str]:
    """Validate the game account credentials a customer submits."""
    require_fields(body, ["gameUsername", "gamePassword"])
    username = str(body["gameUsername"]).strip()
    password = str(body["gamePassword"])
    if not username:
        raise AppError(ErrorCode.INVALID_INPUT, "gameUsername cannot be blank")
    if len(username) > MAX_CREDENTIAL_LENGTH or len(password) > MAX_CREDENTIAL_LENGTH:
        raise AppError(ErrorCode.INVALID_INPUT, f"Credentials cannot exceed {MAX_CREDENTIAL_LENGTH} characters")
    return {"gameUsername": username, "gamePassword": password}


def validate_message_content(content: Any) -> str:
    """Validate a chat message."""
    text = str(content or "").strip()
    if not text:
        raise AppError(ErrorCode.INVALID_INPUT, "Message content is required")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise AppError(ErrorCode.INVALID_INPUT, f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters")
    return text


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def validate_boost_request(body: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate and normalize a ranked boost configuration.

    Requirements:
    - fromRank, toRank, server and nickname are required
    - Ranks must parse, and the target must be above the start
    - nickname carries its tag (Nick#TAG)
    - A champion pool is either empty or at least CHAMPION_POOL_SIZE champions
    - Options must be known values

    Args:
        body: Request body from the checkout

    Returns:
        Normalized boost configuration

    Raises:
        AppError: If validation fails
    """
    require_fields(body, ["fromRank", "toRank", "server", "nickname"])

    from_rank = str(body["fromRank"]).strip()
    to_rank = str(body["toRank"]).strip()
    parse_rank(from_rank)
    parse_rank(to_rank)

    server = str(body["server"]).strip().upper()
    if server not in SERVER_MODIFIERS:
        raise AppError(ErrorCode.INVALID_INPUT, f"Server must be one of: {', '.join(SERVER_MODIFIERS)}")

    nickname = str(body["nickname"]).strip()
    if not nickname or len(nickname) > MAX_NICKNAME_LENGTH:
        raise AppError(ErrorCode.INVALID_INPUT, "nickname must be 1-64 characters")
    name, _, tag = nickname.rpartition("#")
    if not name.strip() or not tag.strip():
        raise AppError(ErrorCode.INVALID_INPUT, "nickname must include the tag, e.g. Nick#TAG")

    lp_range = str(body.get("lpRange") or body.get("currentLP") or "0-29")
    if lp_range not in LP_DISCOUNTS:
        raise AppError(ErrorCode.INVALID_INPUT, f"lpRange must be one of: {', '.join(LP_DISCOUNTS)}")

    lp_gain = str(body.get("lpGain") or body.get("lpPerWin") or "20-25")
    if lp_gain not in LP_GAIN_MODIFIERS:
        raise AppError(ErrorCode.INVALID_INPUT, f"lpGain must be one of: {', '.join(LP_GAIN_MODIFIERS)}")

    queue_type = str(body.get("queueType") or "soloq").lower()
    if queue_type not in QUEUE_TYPES:
        raise AppError(ErrorCode.INVALID_INPUT, f"queueType must be one of: {', '.join(QUEUE_TYPES)}")

    lane = str(body.get("selectedLane") or "none").lower()
    if lane not in LANES:
        raise AppError(ErrorCode.INVALID_INPUT, f"selectedLane must be one of: {', '.join(LANES)}")

    champions = body.get("selectedChampions") or []
    if not isinstance(champions, list):
        raise AppError(ErrorCode.INVALID_INPUT, "selectedChampions must be a list")
    if 0 < len(champions) < CHAMPION_POOL_SIZE:
        raise AppError(
            ErrorCode.INVALID_INPUT, f"selectedChampions needs at least {CHAMPION_POOL_SIZE} champions or none"
        )
    selected_champions: List[str] = [str(c) for c in champions] if lane != "none" else []

    flash = str(body.get("flash") or DEFAULT_FLASH_KEY).strip().lower()
    if flash not in FLASH_KEYS:
        raise AppError(ErrorCode.INVALID_INPUT, f"flash must be one of: {', '.join(FLASH_KEYS)}")

    return {
        "fromRank": from_rank,
        "toRank": to_rank,
        "server": server,
        "nickname": nickname,
        "lpRange": lp_range,
        "lpGain": lp_gain,
        "queueType": queue_type,
        "selectedLane": lane,
        "selectedChampions": selected_champions,
        "flash": flash,
        "offlineMode": _as_bool(body.get("offlineMode", False)),
        "duoBoost": _as_bool(body.get("duoBoost", False)),
        "priorityBoost": _as_bool(body.get("priorityBoost", False)),
    }
