"""
Test fixtures for Lambda function tests.

Provides common test data, API Gateway events and mocked AWS resources.
"""

import json
from typing import Any, Callable, Dict, Generator, List, Optional

import boto3
import pytest
from moto import mock_aws

from src.utils.dynamodb import clear_all_overrides, reset_singleton
from tests.unit.fixtures import (
    ADMIN_SUB,
    ASSIGNMENTS_TABLE,
    BOOSTER_SUB,
    CUSTOMER_SUB,
    MESSAGES_TABLE,
    NOTIFICATIONS_TABLE,
    ORDERS_TABLE,
    OTHER_BOOSTER_SUB,
    make_order,
    make_order_id,
)


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Set fake AWS credentials and the Lambda environment for every test."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.setenv("ORDERS_TABLE_NAME", ORDERS_TABLE)
    monkeypatch.setenv("ASSIGNMENTS_TABLE_NAME", ASSIGNMENTS_TABLE)
    monkeypatch.setenv("NOTIFICATIONS_TABLE_NAME", NOTIFICATIONS_TABLE)
    monkeypatch.setenv("MESSAGES_TABLE_NAME", MESSAGES_TABLE)
    monkeypatch.setenv("FLOW_API_KEY", "test-flow-api-key")
    monkeypatch.setenv("FLOW_SECRET_KEY", "test-flow-secret")
    monkeypatch.setenv("FRONTEND_URL", "https://app.example.com")
    for name in ("APPSYNC_GRAPHQL_ENDPOINT", "APPSYNC_API_KEY", "USER_POOL_ID", "DYNAMODB_ENDPOINT"):
        monkeypatch.delenv(name, raising=False)
    yield
    clear_all_overrides()
    reset_singleton()


@pytest.fixture
def aws_mock(aws_credentials: None) -> Generator[None, None, None]:
    """Activate moto for the duration of a test."""
    with mock_aws():
        yield


def _create_table(
    dynamodb: Any,
    name: str,
    keys: List[tuple],
    indexes: Optional[Dict[str, List[tuple]]] = None,
) -> Any:
    """Create a PAY_PER_REQUEST table; keys are (attribute, KeyType) tuples."""
    attributes = {attr for attr, _ in keys}
    kwargs: Dict[str, Any] = {
        "TableName": name,
        "KeySchema": [{"AttributeName": attr, "KeyType": key_type} for attr, key_type in keys],
        "BillingMode": "PAY_PER_REQUEST",
    }
    if indexes:
        kwargs["GlobalSecondaryIndexes"] = [
            {
                "IndexName": index_name,
                "KeySchema": [{"AttributeName": attr, "KeyType": key_type} for attr, key_type in index_keys],
                "Projection": {"ProjectionType": "ALL"},
            }
            for index_name, index_keys in indexes.items()
        ]
        for index_keys in indexes.values():
            attributes.update(attr for attr, _ in index_keys)
    kwargs["AttributeDefinitions"] = [{"AttributeName": attr, "AttributeType": "S"} for attr in sorted(attributes)]
    return dynamodb.create_table(**kwargs)


@pytest.fixture
def dynamodb_tables(aws_mock: None) -> Dict[str, Any]:
    """Create all mock DynamoDB tables."""
    dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
    return {
        "orders": _create_table(
            dynamodb,
            ORDERS_TABLE,
            [("orderId", "HASH")],
            {"byUserId": [("userId", "HASH"), ("createdAt", "RANGE")]},
        ),
        "assignments": _create_table(
            dynamodb,
            ASSIGNMENTS_TABLE,
            [("assignmentId", "HASH")],
            {"boosterUsername-index": [("boosterUsername", "HASH"), ("createdAt", "RANGE")]},
        ),
        "notifications": _create_table(
            dynamodb,
            NOTIFICATIONS_TABLE,
            [("notificationId", "HASH")],
            {"byUserId": [("userId", "HASH"), ("createdAt", "RANGE")]},
        ),
        "messages": _create_table(dynamodb, MESSAGES_TABLE, [("chatId", "HASH"), ("messageId", "RANGE")]),
    }


@pytest.fixture
def orders_table(dynamodb_tables: Dict[str, Any]) -> Any:
    return dynamodb_tables["orders"]


@pytest.fixture
def assignments_table(dynamodb_tables: Dict[str, Any]) -> Any:
    return dynamodb_tables["assignments"]


@pytest.fixture
def notifications_table(dynamodb_tables: Dict[str, Any]) -> Any:
    return dynamodb_tables["notifications"]


@pytest.fixture
def messages_table(dynamodb_tables: Dict[str, Any]) -> Any:
    return dynamodb_tables["messages"]


@pytest.fixture
def kms_key_id(aws_mock: None, monkeypatch: pytest.MonkeyPatch) -> str:
    """Create a mock KMS key for game credentials."""
    kms = boto3.client("kms", region_name="us-east-1")
    key_id: str = kms.create_key(Description="eloboost credentials")["KeyMetadata"]["KeyId"]
    monkeypatch.setenv("CREDENTIALS_KMS_KEY_ID", key_id)
    return key_id


@pytest.fixture
def user_pool_id(aws_mock: None, monkeypatch: pytest.MonkeyPatch) -> str:
    """Create a mock Cognito user pool with the role groups."""
    cognito = boto3.client("cognito-idp", region_name="us-east-1")
    pool_id: str = cognito.create_user_pool(PoolName="eloboost-users")["UserPool"]["Id"]
    for group in ("CUSTOMER", "BOOSTER", "ADMIN"):
        cognito.create_group(GroupName=group, UserPoolId=pool_id)
    monkeypatch.setenv("USER_POOL_ID", pool_id)
    return pool_id


@pytest.fixture
def create_cognito_user(user_pool_id: str) -> Callable[..., str]:
    """Create a user pool user in the given groups; returns the user's sub."""
    cognito = boto3.client("cognito-idp", region_name="us-east-1")

    def _create(username: str, email: str, groups: Optional[List[str]] = None) -> str:
        response = cognito.admin_create_user(
            UserPoolId=user_pool_id,
            Username=username,
            UserAttributes=[
                {"Name": "email", "Value": email},
                {"Name": "name", "Value": username.title()},
            ],
        )
        for group in groups or []:
            cognito.admin_add_user_to_group(UserPoolId=user_pool_id, Username=username, GroupName=group)
        attributes = {a["Name"]: a["Value"] for a in response["User"]["Attributes"]}
        return attributes["sub"]

    return _create


@pytest.fixture
def api_event() -> Callable[..., Dict[str, Any]]:
    """Build API Gateway proxy events authorized by a Cognito user pool authorizer."""

    def _build(
        method: str = "GET",
        resource: str = "/",
        sub: Optional[str] = CUSTOMER_SUB,
        groups: Optional[List[str]] = None,
        body: Any = None,
        path_parameters: Optional[Dict[str, str]] = None,
        query: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
        username: Optional[str] = None,
    ) -> Dict[str, Any]:
        request_context: Dict[str, Any] = {"requestId": "test-correlation-id", "stage": "dev"}
        if sub is not None:
            claims: Dict[str, Any] = {
                "sub": sub,
                "cognito:username": username or sub,
                "email": f"{sub}@example.com",
                "name": f"Name {sub}",
            }
            if groups:
                claims["cognito:groups"] = ",".join(groups)
            request_context["authorizer"] = {"claims": claims}
        return {
            "httpMethod": method,
            "resource": resource,
            "path": resource,
            "headers": {"Host": "api.example.com", **(headers or {})},
            "pathParameters": path_parameters,
            "queryStringParameters": query,
            "requestContext": request_context,
            "body": json.dumps(body) if isinstance(body, dict) else body,
            "isBase64Encoded": False,
        }

    return _build


@pytest.fixture
def customer_sub() -> str:
    return CUSTOMER_SUB


@pytest.fixture
def booster_sub() -> str:
    return BOOSTER_SUB


@pytest.fixture
def other_booster_sub() -> str:
    return OTHER_BOOSTER_SUB


@pytest.fixture
def admin_sub() -> str:
    return ADMIN_SUB

@pytest.fixture
def sample_order_id() -> str:
    """Sample order ID."""
    return make_order_id("abcd1234")


@pytest.fixture
def paid_order(orders_table: Any, sample_order_id: str) -> Dict[str, Any]:
    """Create a paid, unclaimed order in DynamoDB."""
    order = make_order(sample_order_id)
    orders_table.put_item(Item=order)
    return order


@pytest.fixture
def lambda_context() -> Any:
    """Mock Lambda context."""

    class Context:
        function_name = "test-function"
        memory_limit_in_mb = 128
        invoked_function_arn = "arn:aws:lambda:us-east-1:123456789012:function:test-function"
        aws_request_id = "test-request-id"

    return Context()
