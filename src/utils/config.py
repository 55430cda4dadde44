"""
Environment-based configuration.

Every setting is read at call time so tests can change it with monkeypatch.
"""

import os
from decimal import Decimal
from typing import Optional

DEFAULT_FLOW_API_URL = "https://sandbox.flow.cl/api"
DEFAULT_FRONTEND_URL = "http://localhost:3000"
DEFAULT_COMMISSION_RATE = "0.65"


def get_required_env(name: str, default: Optional[str] = None) -> str:
    """Get a required environment variable.

    In Lambda/production, the env var must be set. For tests, a default can be
    provided to allow the code to run in mocked environments.

    Args:
        name: Environment variable name
        default: Optional default

    Returns:
        The environment variable value

    Raises:
        ValueError: If the env var is not set and no default is provided
    """
    value = os.getenv(name, default)
    if value is None or value == "":
        raise ValueError(f"Required environment variable '{name}' is not set")
    return value


def commission_rate() -> Decimal:
    """Share of the order price paid to the booster."""
    return Decimal(os.getenv("BOOSTER_COMMISSION_RATE", DEFAULT_COMMISSION_RATE))


def flow_api_url() -> str:
    return os.getenv("FLOW_API_URL", DEFAULT_FLOW_API_URL).rstrip("/")


def frontend_url() -> str:
    return os.getenv("FRONTEND_URL", DEFAULT_FRONTEND_URL).rstrip("/")


def http_timeout() -> float:
    return float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))


def appsync_settings() -> Optional[tuple[str, str]]:
    """AppSync endpoint and API key, or None when real-time publish is disabled."""
    endpoint = os.getenv("APPSYNC_GRAPHQL_ENDPOINT")
    api_key = os.getenv("APPSYNC_API_KEY")
    if not endpoint or not api_key:
        return None
    return endpoint, api_key
