"""
Flow (flow.cl) payment gateway client.

Every request carries the API key and a signature `s`: the HMAC-SHA256 (hex)
of all parameters concatenated as key+value in ascending key order.
"""

import hashlib
import hmac
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .config import flow_api_url, get_required_env, http_timeout
from .errors import AppError, ErrorCode
from .logging import get_logger

logger = get_logger(__name__)

CURRENCY_CLP = "CLP"


def sign(params: Dict[str, Any], secret_key: str) -> str:
    """
    Sign Flow request parameters.

    Examples:
        >>> len(sign({"apiKey": "k", "token": "t"}, "secret"))
        64
    """
    to_sign = "".join(f"{key}{params[key]}" for key in sorted(params))
    return hmac.new(secret_key.encode("utf-8"), to_sign.encode("utf-8"), hashlib.sha256).hexdigest()


@dataclass
class PaymentLink:
    """Result of /payment/create."""

    url: str
    token: str
    flow_order: Optional[int] = None

    @property
    def payment_url(self) -> str:
        return f"{self.url}?token={self.token}"


class FlowClient:
    """Thin client for the Flow REST API."""

    def __init__(self, api_key: str, secret_key: str, base_url: Optional[str] = None) -> None:
        self.api_key = api_key
        self.secret_key = secret_key
        self.base_url = (base_url or flow_api_url()).rstrip("/")

    @classmethod
    def from_env(cls) -> "FlowClient":
        """Build a client from FLOW_API_KEY / FLOW_SECRET_KEY / FLOW_API_URL."""
        return cls(get_required_env("FLOW_API_KEY"), get_required_env("FLOW_SECRET_KEY"))

    def _signed(self, params: Dict[str, Any]) -> Dict[str, Any]:
        signed = {"apiKey": self.api_key, **{k: v for k, v in params.items() if v is not None}}
        signed["s"] = sign(signed, self.secret_key)
        return signed

    def _decode(self, response: requests.Response, operation: str) -> Dict[str, Any]:
        if response.status_code != 200:
            logger.error(
                "Flow request failed", operation=operation, status_code=response.status_code, body=response.text
            )
            raise AppError(ErrorCode.PAYMENT_ERROR, f"Payment provider rejected {operation}")
        try:
            data: Dict[str, Any] = response.json()
        except ValueError:
            logger.error("Flow returned a non-JSON body", operation=operation, body=response.text)
            raise AppError(ErrorCode.PAYMENT_ERROR, f"Payment provider sent an unreadable {operation} response")
        return data

    def create_payment(
        self,
        commerce_order: str,
        subject: str,
        amount: int,
        email: str,
        url_confirmation: str,
        url_return: str,
    ) -> PaymentLink:
        """
        Create a payment and get the checkout link.

        Raises:
            AppError: PAYMENT_ERROR on transport or API errors
        """
        params = self._signed(
            {
                "commerceOrder": commerce_order,
                "subject": subject,
                "currency": CURRENCY_CLP,
                "amount": amount,
                "email": email,
                "urlConfirmation": url_confirmation,
                "urlReturn": url_return,
            }
        )
        try:
            response = requests.post(f"{self.base_url}/payment/create", data=params, timeout=http_timeout())
        except requests.RequestException as e:
            logger.error("Flow payment/create unreachable", error=str(e))
            raise AppError(ErrorCode.PAYMENT_ERROR, "Payment provider unavailable")

        data = self._decode(response, "payment/create")
        if not data.get("url") or not data.get("token"):
            raise AppError(ErrorCode.PAYMENT_ERROR, "Payment provider returned an incomplete payment link")
        return PaymentLink(url=data["url"], token=data["token"], flow_order=data.get("flowOrder"))

    def get_status(self, token: str) -> Dict[str, Any]:
        """
        Get the payment status for a token.

        Returns:
            Flow payment status (commerceOrder, status, flowOrder, amount, ...)

        Raises:
            AppError: PAYMENT_ERROR on transport or API errors
        """
        params = self._signed({"token": token})
        try:
            response = requests.get(f"{self.base_url}/payment/getStatus", params=params, timeout=http_timeout())
        except requests.RequestException as e:
            logger.error("Flow payment/getStatus unreachable", error=str(e))
            raise AppError(ErrorCode.PAYMENT_ERROR, "Payment provider unavailable")
        return self._decode(response, "payment/getStatus")
