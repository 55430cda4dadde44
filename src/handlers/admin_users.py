"""
Admin user management backed by the Cognito user pool.

Routes:
- GET  /admin/users
- POST /admin/users/add-to-group       {username, groupName}
- POST /admin/users/remove-from-group  {username, groupName}
- POST /admin/users/enable             {username}
- POST /admin/users/disable            {username}
- POST /admin/users/delete             {username}
- POST /admin/users/update-role        {targetUsername, newRole}
"""

from typing import Any, Callable, Dict, List, Optional, Tuple

from botocore.exceptions import ClientError

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import ROLE_ADMIN, Caller, get_cognito_client, primary_role, require_caller, require_role
    from utils.config import get_required_env
    from utils.errors import AppError, ErrorCode
    from utils.logging import get_correlation_id, get_logger
    from utils.responses import error_response, json_response, options_response
    from utils.validation import parse_json_body, require_fields, validate_role
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import ROLE_ADMIN, Caller, get_cognito_client, primary_role, require_caller, require_role
    from ..utils.config import get_required_env
    from ..utils.errors import AppError, ErrorCode
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.responses import error_response, json_response, options_response
    from ..utils.validation import parse_json_body, require_fields, validate_role

logger = get_logger(__name__)


def _user_pool_id() -> str:
    return get_required_env("USER_POOL_ID")


def _groups_for(username: str) -> List[str]:
    response = get_cognito_client().admin_list_groups_for_user(UserPoolId=_user_pool_id(), Username=username)
    return [g["GroupName"] for g in response.get("Groups", [])]


def _is_self(caller: Caller, username: str) -> bool:
    return username in (caller.username, caller.sub)


def _refuse_self(caller: Caller, username: str, action: str) -> None:
    if _is_self(caller, username):
        raise AppError(ErrorCode.FORBIDDEN, f"You cannot {action} your own account")


def _username(body: Dict[str, Any], field: str = "username") -> str:
    require_fields(body, [field])
    return str(body[field]).strip()


def _cognito_call(operation: str, username: str, call: Callable[[], Any]) -> None:
    """Run a Cognito admin call, mapping an unknown user to NOT_FOUND."""
    try:
        call()
    except ClientError as e:
        if e.response["Error"]["Code"] == "UserNotFoundException":
            raise AppError(ErrorCode.NOT_FOUND, f"User {username} not found")
        raise
    logger.info("Admin user operation", operation=operation, username=username)


def format_user(user: Dict[str, Any], groups: List[str]) -> Dict[str, Any]:
    """Shape a Cognito user record for the admin panel."""
    attributes = {a["Name"]: a["Value"] for a in user.get("Attributes", [])}
    created = user.get("UserCreateDate")
    return {
        "username": user.get("Username"),
        "sub": attributes.get("sub", ""),
        "email": attributes.get("email", ""),
        "name": attributes.get("name", ""),
        "phone": attributes.get("phone_number", ""),
        "enabled": bool(user.get("Enabled", False)),
        "status": user.get("UserStatus"),
        "createdAt": created.isoformat() if hasattr(created, "isoformat") else created,
        "groups": groups,
        "role": primary_role(groups),
    }


def list_users(caller: Caller, event: Dict[str, Any]) -> Dict[str, Any]:
    """All user pool users with their groups."""
    client = get_cognito_client()
    paginator = client.get_paginator("list_users")
    users = []
    for page in paginator.paginate(UserPoolId=_user_pool_id()):
        for user in page.get("Users", []):
            users.append(format_user(user, _groups_for(user["Username"])))
    logger.info("Listed users", count=len(users))
    return json_response(200, {"users": users, "count": len(users)})


def add_to_group(caller: Caller, event: Dict[str, Any]) -> Dict[str, Any]:
    body = parse_json_body(event)
    username = _username(body)
    group = validate_role(body.get("groupName"))
    _cognito_call(
        "add-to-group",
        username,
        lambda: get_cognito_client().admin_add_user_to_group(
            UserPoolId=_user_pool_id(), Username=username, GroupName=group
        ),
    )
    return json_response(200, {"success": True, "message": f"User {username} added to {group}"})


def remove_from_group(caller: Caller, event: Dict[str, Any]) -> Dict[str, Any]:
    body = parse_json_body(event)
    username = _username(body)
    group = validate_role(body.get("groupName"))
    if group == ROLE_ADMIN:
        _refuse_self(caller, username, "demote")
    _cognito_call(
        "remove-from-group",
        username,
        lambda: get_cognito_client().admin_remove_user_from_group(
            UserPoolId=_user_pool_id(), Username=username, GroupName=group
        ),
    )
    return json_response(200, {"success": True, "message": f"User {username} removed from {group}"})


def enable_user(caller: Caller, event: Dict[str, Any]) -> Dict[str, Any]:
    username = _username(parse_json_body(event))
    _cognito_call(
        "enable",
        username,
        lambda: get_cognito_client().admin_enable_user(UserPoolId=_user_pool_id(), Username=username),
    )
    return json_response(200, {"success": True, "message": f"User {username} enabled"})


def disable_user(caller: Caller, event: Dict[str, Any]) -> Dict[str, Any]:
    username = _username(parse_json_body(event))
    _refuse_self(caller, username, "disable")
    _cognito_call(
        "disable",
        username,
        lambda: get_cognito_client().admin_disable_user(UserPoolId=_user_pool_id(), Username=username),
    )
    return json_response(200, {"success": True, "message": f"User {username} disabled"})


def delete_user(caller: Caller, event: Dict[str, Any]) -> Dict[str, Any]:
    username = _username(parse_json_body(event))
    _refuse_self(caller, username, "delete")
    _cognito_call(
        "delete",
        username,
        lambda: get_cognito_client().admin_delete_user(UserPoolId=_user_pool_id(), Username=username),
    )
    return json_response(200, {"success": True, "message": f"User {username} deleted"})


def update_role(caller: Caller, event: Dict[str, Any]) -> Dict[str, Any]:
    """Replace every group of a user with the single new role."""
    body = parse_json_body(event)
    username = _username(body, "targetUsername")
    new_role = validate_role(body.get("newRole"))
    if new_role != ROLE_ADMIN:
        _refuse_self(caller, username, "demote")

    def replace_groups() -> None:
        client = get_cognito_client()
        pool_id = _user_pool_id()
        for group in _groups_for(username):
            client.admin_remove_user_from_group(UserPoolId=pool_id, Username=username, GroupName=group)
        client.admin_add_user_to_group(UserPoolId=pool_id, Username=username, GroupName=new_role)

    _cognito_call("update-role", username, replace_groups)
    return json_response(
        200,
        {"success": True, "message": f"Role of {username} set to {new_role}", "username": username, "role": new_role},
    )


Route = Callable[[Caller, Dict[str, Any]], Dict[str, Any]]

ROUTES: Dict[Tuple[str, str], Route] = {
    ("GET", "/admin/users"): list_users,
    ("POST", "/admin/users/add-to-group"): add_to_group,
    ("POST", "/admin/users/remove-from-group"): remove_from_group,
    ("POST", "/admin/users/enable"): enable_user,
    ("POST", "/admin/users/disable"): disable_user,
    ("POST", "/admin/users/delete"): delete_user,
    ("POST", "/admin/users/update-role"): update_role,
}


def _route(event: Dict[str, Any]) -> Optional[Route]:
    return ROUTES.get((str(event.get("httpMethod", "")).upper(), str(event.get("resource", ""))))


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Dispatch an admin request after checking the caller is an ADMIN."""
    if event.get("httpMethod") == "OPTIONS":
        return options_response()
    logger.bind(get_correlation_id(event))

    try:
        route = _route(event)
        if route is None:
            raise AppError(ErrorCode.NOT_FOUND, f"Route not found: {event.get('httpMethod')} {event.get('resource')}")

        caller = require_caller(event)
        require_role(caller, [ROLE_ADMIN])
        return route(caller, event)

    except AppError as e:
        logger.warning("Admin request rejected", error_code=e.error_code, error=e.message)
        return error_response(e)
    except Exception as e:
        logger.error("Error handling admin request", error=str(e))
        return error_response(e)
