"""
Authorization utilities for API Gateway Lambda handlers.

Implements the caller identity and the CUSTOMER / BOOSTER / ADMIN role model
backed by Cognito user pool groups.
"""

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import boto3

from .errors import AppError, ErrorCode
from .logging import get_logger

logger = get_logger(__name__)

ROLE_CUSTOMER = "CUSTOMER"
ROLE_BOOSTER = "BOOSTER"
ROLE_ADMIN = "ADMIN"
ROLES = (ROLE_CUSTOMER, ROLE_BOOSTER, ROLE_ADMIN)


@dataclass
class Caller:
    """Authenticated caller of an API Gateway request."""

    sub: str
    username: str
    email: str = ""
    display_name: str = ""
    groups: List[str] = field(default_factory=list)

    @property
    def role(self) -> str:
        return primary_role(self.groups)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def get_cognito_client() -> Any:
    """Get Cognito Identity Provider client."""
    return boto3.client("cognito-idp")


def _parse_groups(raw: Any) -> List[str]:
    """
    Normalize the cognito:groups claim.

    API Gateway passes it as a list, a JSON string, or a comma/space separated string.
    """
    if not raw:
        return []
    if isinstance(raw, list):
        return [str(g) for g in raw]
    text = str(raw).strip()
    if text.startswith("["):
        try:
            parsed = json.loads(text)
            return [str(g) for g in parsed]
        except ValueError:
            text = text.strip("[]")
    return [g for g in text.replace(",", " ").split() if g]


def _claims(event: Dict[str, Any]) -> Dict[str, Any]:
    authorizer = (event.get("requestContext") or {}).get("authorizer") or {}
    claims: Dict[str, Any] = authorizer.get("claims") or {}
    return claims


def get_caller(event: Dict[str, Any]) -> Optional[Caller]:
    """
    Extract the caller from an API Gateway proxy event.

    With IAM auth the sub is the last segment of cognitoAuthenticationProvider:
    "cognito-idp.<region>.amazonaws.com/<pool>,cognito-idp...:CognitoSignIn:<sub>".
    With a Cognito authorizer it is the `sub` claim.

    Args:
        event: API Gateway proxy event

    Returns:
        Caller, or None if the request is unauthenticated
    """
    request_context = event.get("requestContext") or {}
    claims = _claims(event)

    sub: Optional[str] = None
    provider = (request_context.get("identity") or {}).get("cognitoAuthenticationProvider")
    if provider:
        sub = provider.split(":")[-1]
    if not sub:
        sub = claims.get("sub")
    if not sub:
        return None

    username = claims.get("cognito:username") or sub
    return Caller(
        sub=sub,
        username=username,
        email=claims.get("email", ""),
        display_name=claims.get("name") or username,
        groups=_parse_groups(claims.get("cognito:groups")),
    )


def primary_role(groups: Iterable[str]) -> str:
    """Resolve the main role: ADMIN over BOOSTER over CUSTOMER."""
    upper = {str(g).upper() for g in groups}
    if ROLE_ADMIN in upper or "ADMINS" in upper:
        return ROLE_ADMIN
    if ROLE_BOOSTER in upper:
        return ROLE_BOOSTER
    return ROLE_CUSTOMER


def lookup_cognito_user(sub: str) -> Optional[Dict[str, Any]]:
    """Find a user pool user by sub."""
    user_pool_id = os.getenv("USER_POOL_ID")
    if not user_pool_id:
        return None
    response = get_cognito_client().list_users(
        UserPoolId=user_pool_id, Filter=f'sub = "{sub}"', Limit=1
    )
    users = response.get("Users", [])
    return users[0] if users else None


def list_user_groups(username: str) -> List[str]:
    """List the Cognito group names of a user."""
    user_pool_id = os.getenv("USER_POOL_ID")
    if not user_pool_id:
        return []
    response = get_cognito_client().admin_list_groups_for_user(
        UserPoolId=user_pool_id, Username=username
    )
    return [g["GroupName"] for g in response.get("Groups", [])]


def resolve_groups(caller: Caller) -> List[str]:
    """
    Fill in the caller's groups from Cognito when the token carried none.

    IAM-authenticated requests have no claims, so the groups are looked up
    by sub. Lookup failures leave the caller with no groups (CUSTOMER).
    """
    if caller.groups:
        return caller.groups
    try:
        user = lookup_cognito_user(caller.sub)
        if user:
            caller.username = user.get("Username", caller.username)
            attributes = {a["Name"]: a["Value"] for a in user.get("Attributes", [])}
            caller.email = caller.email or attributes.get("email", "")
            if caller.display_name == caller.sub:
                caller.display_name = attributes.get("name") or caller.username
            caller.groups = list_user_groups(caller.username)
    except Exception as e:
        logger.warning("Could not resolve Cognito groups", sub=caller.sub, error=str(e))
    return caller.groups


def require_caller(event: Dict[str, Any]) -> Caller:
    """
    Require an authenticated caller.

    Raises:
        AppError: UNAUTHORIZED if the request carries no identity
    """
    caller = get_caller(event)
    if caller is None:
        raise AppError(ErrorCode.UNAUTHORIZED, "Authentication required")
    return caller


def require_role(caller: Caller, roles: Iterable[str]) -> None:
    """
    Require the caller to hold one of the given roles.

    ADMIN satisfies every requirement.

    Raises:
        AppError: FORBIDDEN otherwise
    """
    allowed = set(roles)
    role = primary_role(resolve_groups(caller))
    if role == ROLE_ADMIN or role in allowed:
        return
    raise AppError(
        ErrorCode.FORBIDDEN,
        f"This operation requires one of the roles: {', '.join(sorted(allowed))}",
    )
