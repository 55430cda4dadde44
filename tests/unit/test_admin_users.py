"""Tests for admin user management and the user profile handler."""

from typing import Any, Callable, Dict, List

import boto3
import pytest

from src.handlers.admin_users import format_user
from src.handlers.admin_users import lambda_handler as admin_users
from src.handlers.user_profile import lambda_handler as user_profile
from src.utils.errors import ErrorCode
from tests.unit.fixtures import ADMIN_SUB, body_of

Event = Callable[..., Dict[str, Any]]


@pytest.fixture
def users(create_cognito_user: Callable[..., str]) -> Dict[str, str]:
    """Seed an admin, a booster and a customer; returns username -> sub."""
    return {
        "admin": create_cognito_user("admin", "admin@example.com", ["ADMIN"]),
        "booster": create_cognito_user("booster", "booster@example.com", ["BOOSTER"]),
        "customer": create_cognito_user("customer", "customer@example.com", ["CUSTOMER"]),
    }


@pytest.fixture
def admin_call(api_event: Event) -> Callable[..., Dict[str, Any]]:
    def _call(method: str, resource: str, body: Any = None, **kwargs: Any) -> Dict[str, Any]:
        kwargs.setdefault("sub", ADMIN_SUB)
        kwargs.setdefault("groups", ["ADMIN"])
        kwargs.setdefault("username", "admin")
        return admin_users(api_event(method, resource, body=body, **kwargs), None)

    return _call


def _groups(user_pool_id: str, username: str) -> List[str]:
    client = boto3.client("cognito-idp", region_name="us-east-1")
    response = client.admin_list_groups_for_user(UserPoolId=user_pool_id, Username=username)
    return sorted(g["GroupName"] for g in response["Groups"])


def _enabled(user_pool_id: str, username: str) -> bool:
    client = boto3.client("cognito-idp", region_name="us-east-1")
    return bool(client.admin_get_user(UserPoolId=user_pool_id, Username=username)["Enabled"])


class TestAdminUsers:
    def test_list_users(self, users: Dict[str, str], admin_call: Callable[..., Dict[str, Any]]) -> None:
        body = body_of(admin_call("GET", "/admin/users"))

        assert body["count"] == 3
        by_name = {u["username"]: u for u in body["users"]}
        assert by_name["booster"]["role"] == "BOOSTER"
        assert by_name["booster"]["email"] == "booster@example.com"
        assert by_name["booster"]["sub"] == users["booster"]
        assert by_name["customer"]["groups"] == ["CUSTOMER"]

    def test_non_admin_forbidden(
        self, users: Dict[str, str], api_event: Event
    ) -> None:
        event = api_event("GET", "/admin/users", sub=users["booster"], groups=["BOOSTER"], username="booster")

        assert admin_users(event, None)["statusCode"] == 403

    def test_add_and_remove_group(
        self, users: Dict[str, str], user_pool_id: str, admin_call: Callable[..., Dict[str, Any]]
    ) -> None:
        added = admin_call("POST", "/admin/users/add-to-group", {"username": "customer", "groupName": "booster"})
        assert added["statusCode"] == 200
        assert _groups(user_pool_id, "customer") == ["BOOSTER", "CUSTOMER"]

        removed = admin_call("POST", "/admin/users/remove-from-group", {"username": "customer", "groupName": "CUSTOMER"})
        assert removed["statusCode"] == 200
        assert _groups(user_pool_id, "customer") == ["BOOSTER"]

    def test_unknown_group(self, users: Dict[str, str], admin_call: Callable[..., Dict[str, Any]]) -> None:
        response = admin_call("POST", "/admin/users/add-to-group", {"username": "customer", "groupName": "OWNER"})

        assert response["statusCode"] == 400

    def test_update_role_replaces_groups(
        self, users: Dict[str, str], user_pool_id: str, admin_call: Callable[..., Dict[str, Any]]
    ) -> None:
        response = admin_call(
            "POST", "/admin/users/update-role", {"targetUsername": "customer", "newRole": "BOOSTER"}
        )

        assert response["statusCode"] == 200
        assert body_of(response)["role"] == "BOOSTER"
        assert _groups(user_pool_id, "customer") == ["BOOSTER"]

    def test_enable_disable_delete(
        self, users: Dict[str, str], user_pool_id: str, admin_call: Callable[..., Dict[str, Any]]
    ) -> None:
        assert admin_call("POST", "/admin/users/disable", {"username": "booster"})["statusCode"] == 200
        assert _enabled(user_pool_id, "booster") is False

        assert admin_call("POST", "/admin/users/enable", {"username": "booster"})["statusCode"] == 200
        assert _enabled(user_pool_id, "booster") is True

        assert admin_call("POST", "/admin/users/delete", {"username": "booster"})["statusCode"] == 200
        assert body_of(admin_call("GET", "/admin/users"))["count"] == 2

    def test_unknown_user(self, users: Dict[str, str], admin_call: Callable[..., Dict[str, Any]]) -> None:
        response = admin_call("POST", "/admin/users/enable", {"username": "ghost"})

        assert response["statusCode"] == 404
        assert body_of(response)["errorCode"] == ErrorCode.NOT_FOUND

    @pytest.mark.parametrize(
        "resource,body",
        [
            ("/admin/users/disable", {"username": "admin"}),
            ("/admin/users/delete", {"username": "admin"}),
            ("/admin/users/remove-from-group", {"username": "admin", "groupName": "ADMIN"}),
            ("/admin/users/update-role", {"targetUsername": "admin", "newRole": "CUSTOMER"}),
        ],
    )
    def test_admin_cannot_lock_themselves_out(
        self,
        users: Dict[str, str],
        user_pool_id: str,
        admin_call: Callable[..., Dict[str, Any]],
        resource: str,
        body: Dict[str, Any],
    ) -> None:
        response = admin_call("POST", resource, body)

        assert response["statusCode"] == 403
        assert _groups(user_pool_id, "admin") == ["ADMIN"]
        assert _enabled(user_pool_id, "admin") is True

    def test_unknown_route(self, admin_call: Callable[..., Dict[str, Any]]) -> None:
        assert admin_call("DELETE", "/admin/users")["statusCode"] == 404

    def test_format_user(self) -> None:
        user = {
            "Username": "booster",
            "Enabled": True,
            "UserStatus": "CONFIRMED",
            "Attributes": [{"Name": "sub", "Value": "s-1"}, {"Name": "email", "Value": "b@example.com"}],
        }

        formatted = format_user(user, ["BOOSTER", "CUSTOMER"])

        assert formatted["role"] == "BOOSTER"
        assert formatted["sub"] == "s-1"
        assert formatted["createdAt"] is None


class TestUserProfile:
    """Tests for GET /profile."""

    def test_profile_from_token(self, api_event: Event) -> None:
        event = api_event("GET", "/profile", sub="s-1", groups=["BOOSTER"], username="booster")

        body = body_of(user_profile(event, None))

        assert body == {
            "username": "booster",
            "sub": "s-1",
            "email": "s-1@example.com",
            "role": "BOOSTER",
            "groups": ["BOOSTER"],
        }

    def test_groups_resolved_from_cognito(self, users: Dict[str, str], api_event: Event) -> None:
        event = api_event("GET", "/profile", sub=users["admin"])

        body = body_of(user_profile(event, None))

        assert body["username"] == "admin"
        assert body["role"] == "ADMIN"
        assert body["groups"] == ["ADMIN"]

    def test_customer_without_groups(self, api_event: Event) -> None:
        body = body_of(user_profile(api_event("GET", "/profile"), None))

        assert body["role"] == "CUSTOMER"
        assert body["groups"] == []

    def test_unauthenticated(self, api_event: Event) -> None:
        assert user_profile(api_event("GET", "/profile", sub=None), None)["statusCode"] == 401
