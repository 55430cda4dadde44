"""Tests for the payment Lambda handlers (create link, webhook, return URL)."""

from decimal import Decimal
from typing import Any, Callable, Dict
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import pytest

from src.handlers.create_payment_link import lambda_handler as create_payment_link
from src.handlers.payment_webhook import apply_payment_status
from src.handlers.payment_webhook import lambda_handler as payment_webhook
from src.handlers.verify_payment import lambda_handler as verify_payment
from src.utils.errors import AppError, ErrorCode
from src.utils.flow import PaymentLink
from tests.unit.fixtures import CUSTOMER_SUB, body_of, make_order

CHECKOUT_BODY = {
    "email": "customer@example.com",
    "fromRank": "Gold IV",
    "toRank": "Gold II",
    "server": "LAS",
    "nickname": "Faker2#LAS",
}


@pytest.fixture
def mock_flow() -> Any:
    """Patch FlowClient in every payment handler with one shared mock client."""
    client = MagicMock()
    client.create_payment.return_value = PaymentLink(url="https://flow.test/pay", token="tok-1", flow_order=991)
    with patch("src.handlers.create_payment_link.FlowClient") as create_cls, patch(
        "src.handlers.payment_webhook.FlowClient"
    ) as webhook_cls, patch("src.handlers.verify_payment.FlowClient") as verify_cls:
        for cls in (create_cls, webhook_cls, verify_cls):
            cls.from_env.return_value = client
        yield client


def _form_event(body: str) -> Dict[str, Any]:
    return {
        "httpMethod": "POST",
        "headers": {"Content-Type": "application/x-www-form-urlencoded"},
        "requestContext": {"requestId": "flow-callback"},
        "body": body,
    }


class TestCreatePaymentLink:
    """Tests for POST /create-payment."""

    def test_creates_pending_order_and_link(
        self, orders_table: Any, mock_flow: Any, api_event: Callable[..., Dict[str, Any]]
    ) -> None:
        response = create_payment_link(api_event("POST", "/create-payment", body=CHECKOUT_BODY), None)

        assert response["statusCode"] == 200
        body = body_of(response)
        assert body["paymentUrl"] == "https://flow.test/pay?token=tok-1"
        assert body["priceCLP"] == 7000
        assert body["priceUSD"] == "7.60"

        order = orders_table.get_item(Key={"orderId": body["orderId"]})["Item"]
        assert order["status"] == "pending"
        assert order["userId"] == CUSTOMER_SUB
        assert order["priceCLP"] == 7000
        assert order["priceUSD"] == Decimal("7.60")
        assert order["flowToken"] == "tok-1"
        assert order["flowOrder"] == 991
        assert order["nickname"] == "Faker2#LAS"
        assert order["flash"] == "flash-d"

        kwargs = mock_flow.create_payment.call_args.kwargs
        assert kwargs["commerce_order"] == body["orderId"]
        assert kwargs["amount"] == 7000
        assert kwargs["url_confirmation"] == "https://api.example.com/dev/webhook/payment-confirmation"
        assert kwargs["url_return"] == "https://api.example.com/dev/verify-payment"

    def test_client_price_is_ignored(
        self, orders_table: Any, mock_flow: Any, api_event: Callable[..., Dict[str, Any]]
    ) -> None:
        body = {**CHECKOUT_BODY, "amount": 1, "priceCLP": 1}

        response = create_payment_link(api_event("POST", "/create-payment", body=body), None)

        assert body_of(response)["priceCLP"] == 7000

    def test_champion_pool_surcharge(
        self, orders_table: Any, mock_flow: Any, api_event: Callable[..., Dict[str, Any]]
    ) -> None:
        body = {
            **CHECKOUT_BODY,
            "selectedLane": "mid",
            "selectedChampions": ["Ahri", "Lux", "Zed", "Yasuo", "Syndra"],
        }

        response = create_payment_link(api_event("POST", "/create-payment", body=body), None)

        assert body_of(response)["priceCLP"] == 9625

    def test_small_champion_pool_rejected(
        self, orders_table: Any, mock_flow: Any, api_event: Callable[..., Dict[str, Any]]
    ) -> None:
        body = {**CHECKOUT_BODY, "selectedLane": "mid", "selectedChampions": ["Ahri", "Lux"], "flash": "flash-f"}

        response = create_payment_link(api_event("POST", "/create-payment", body=body), None)

        assert response["statusCode"] == 400
        assert body_of(response)["errorCode"] == ErrorCode.INVALID_INPUT
        assert orders_table.scan()["Items"] == []

    def test_same_rank_rejected(
        self, orders_table: Any, mock_flow: Any, api_event: Callable[..., Dict[str, Any]]
    ) -> None:
        body = {**CHECKOUT_BODY, "toRank": "Gold IV"}

        response = create_payment_link(api_event("POST", "/create-payment", body=body), None)

        assert response["statusCode"] == 400
        assert body_of(response)["errorCode"] == ErrorCode.INVALID_RANK
        assert orders_table.scan()["Items"] == []
        mock_flow.create_payment.assert_not_called()

    def test_flow_failure_rejects_order(
        self, orders_table: Any, mock_flow: Any, api_event: Callable[..., Dict[str, Any]]
    ) -> None:
        mock_flow.create_payment.side_effect = AppError(ErrorCode.PAYMENT_ERROR, "Flow down")

        response = create_payment_link(api_event("POST", "/create-payment", body=CHECKOUT_BODY), None)

        assert response["statusCode"] == 502
        orders = orders_table.scan()["Items"]
        assert len(orders) == 1
        assert orders[0]["status"] == "rejected"

    def test_unreadable_flow_response_rejects_order(
        self, orders_table: Any, api_event: Callable[..., Dict[str, Any]]
    ) -> None:
        flow_response = MagicMock(status_code=200, text="<html>maintenance</html>")
        flow_response.json.side_effect = ValueError("Expecting value")

        with patch("src.utils.flow.requests.post", return_value=flow_response):
            response = create_payment_link(api_event("POST", "/create-payment", body=CHECKOUT_BODY), None)

        assert response["statusCode"] == 502
        assert body_of(response)["errorCode"] == ErrorCode.PAYMENT_ERROR
        orders = orders_table.scan()["Items"]
        assert len(orders) == 1
        assert orders[0]["status"] == "rejected"

    def test_missing_flow_credentials_store_no_order(
        self, orders_table: Any, api_event: Callable[..., Dict[str, Any]], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("FLOW_API_KEY", raising=False)

        with patch("src.utils.flow.requests.post") as post:
            response = create_payment_link(api_event("POST", "/create-payment", body=CHECKOUT_BODY), None)

        assert response["statusCode"] == 500
        assert orders_table.scan()["Items"] == []
        post.assert_not_called()

    def test_missing_host_stores_no_order(
        self, orders_table: Any, mock_flow: Any, api_event: Callable[..., Dict[str, Any]]
    ) -> None:
        event = api_event("POST", "/create-payment", body=CHECKOUT_BODY)
        event["headers"] = {}

        response = create_payment_link(event, None)

        assert response["statusCode"] == 400
        assert orders_table.scan()["Items"] == []
        mock_flow.create_payment.assert_not_called()

    def test_requires_authentication(self, orders_table: Any, api_event: Callable[..., Dict[str, Any]]) -> None:
        response = create_payment_link(api_event("POST", "/create-payment", sub=None, body=CHECKOUT_BODY), None)

        assert response["statusCode"] == 401

    def test_options(self, api_event: Callable[..., Dict[str, Any]]) -> None:
        assert create_payment_link(api_event("OPTIONS", "/create-payment"), None)["statusCode"] == 200


class TestPaymentWebhook:
    """Tests for POST /webhook/payment-confirmation."""

    def test_missing_token(self) -> None:
        response = payment_webhook(_form_event(""), None)

        assert response["statusCode"] == 400
        assert response["body"] == "Bad Request: Missing token"

    def test_paid_marks_order_and_notifies(
        self, orders_table: Any, notifications_table: Any, mock_flow: Any
    ) -> None:
        orders_table.put_item(Item=make_order("o1", status="pending"))
        mock_flow.get_status.return_value = {"commerceOrder": "o1", "status": 2, "flowOrder": 991}

        response = payment_webhook(_form_event("token=tok-1"), None)

        assert response == {"statusCode": 200, "headers": {"Content-Type": "text/plain"}, "body": "OK"}
        order = orders_table.get_item(Key={"orderId": "o1"})["Item"]
        assert order["status"] == "paid"
        assert order["flowOrder"] == 991
        assert "paidAt" in order

        notifications = notifications_table.scan()["Items"]
        assert len(notifications) == 1
        assert notifications[0]["type"] == "payment_confirmed"
        assert notifications[0]["userId"] == CUSTOMER_SUB

    def test_repeated_webhook_is_idempotent(
        self, orders_table: Any, notifications_table: Any, mock_flow: Any
    ) -> None:
        orders_table.put_item(Item=make_order("o1", status="pending"))
        mock_flow.get_status.return_value = {"commerceOrder": "o1", "status": 2, "flowOrder": 991}

        payment_webhook(_form_event("token=tok-1"), None)
        paid_at = orders_table.get_item(Key={"orderId": "o1"})["Item"]["paidAt"]
        response = payment_webhook(_form_event("token=tok-1"), None)

        assert response["statusCode"] == 200
        assert orders_table.get_item(Key={"orderId": "o1"})["Item"]["paidAt"] == paid_at
        assert len(notifications_table.scan()["Items"]) == 1

    @pytest.mark.parametrize("flow_status,expected", [(3, "rejected"), (4, "cancelled"), (1, "pending")])
    def test_other_statuses(self, orders_table: Any, mock_flow: Any, flow_status: int, expected: str) -> None:
        orders_table.put_item(Item=make_order("o1", status="pending"))
        mock_flow.get_status.return_value = {"commerceOrder": "o1", "status": flow_status}

        payment_webhook(_form_event("token=tok-1"), None)

        assert orders_table.get_item(Key={"orderId": "o1"})["Item"]["status"] == expected

    def test_late_rejection_does_not_undo_payment(self, orders_table: Any) -> None:
        orders_table.put_item(Item=make_order("o1", status="paid"))

        assert apply_payment_status("o1", 3) is False
        assert orders_table.get_item(Key={"orderId": "o1"})["Item"]["status"] == "paid"

    def test_unknown_order_is_ignored(self, orders_table: Any) -> None:
        assert apply_payment_status("missing", 2) is False
        assert orders_table.scan()["Items"] == []

    def test_flow_error_answers_500(self, orders_table: Any, mock_flow: Any) -> None:
        mock_flow.get_status.side_effect = AppError(ErrorCode.PAYMENT_ERROR, "Flow down")

        response = payment_webhook(_form_event("token=tok-1"), None)

        assert response["statusCode"] == 500


class TestVerifyPayment:
    """Tests for the Flow return URL."""

    def _location(self, response: Dict[str, Any]) -> Any:
        assert response["statusCode"] == 302
        return urlparse(response["headers"]["Location"])

    def test_paid_redirects_to_success(self, mock_flow: Any) -> None:
        mock_flow.get_status.return_value = {"commerceOrder": "o1", "status": 2, "flowOrder": 991}

        location = self._location(verify_payment(_form_event("token=tok-1"), None))

        assert location.netloc == "app.example.com"
        assert location.path == "/payment/success"
        assert parse_qs(location.query) == {"flowOrder": ["991"], "orderId": ["o1"]}

    def test_unpaid_redirects_to_failure(self, mock_flow: Any) -> None:
        mock_flow.get_status.return_value = {"commerceOrder": "o1", "status": 3, "flowOrder": 991}

        location = self._location(verify_payment(_form_event("token=tok-1"), None))

        assert location.path == "/payment/failure"
        assert parse_qs(location.query) == {"flowOrder": ["991"]}

    def test_missing_token(self) -> None:
        location = self._location(verify_payment(_form_event(""), None))

        assert location.path == "/payment/failure"
        assert parse_qs(location.query) == {"error": ["no_token"]}

    def test_verification_error(self, mock_flow: Any) -> None:
        mock_flow.get_status.side_effect = AppError(ErrorCode.PAYMENT_ERROR, "Flow down")

        location = self._location(verify_payment(_form_event("token=tok-1"), None))

        assert parse_qs(location.query) == {"error": ["verification_failed"]}
