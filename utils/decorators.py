from __future__ import annotations
from functools import wraps
from flask import request, g, abort
from utils.security import decode_token, TokenError
from models import storage
from models.user import User

JWT_COOKIE = "jwt_token"


def extract_token() -> str | None:
    """
    Authorization header first (mobile apps and explicit token passing),
    then the jwt_token cookie (web applications).
    """
    auth = request.headers.get("Authorization")
    if auth:
        parts = auth.split()
        return parts[-1] if parts else None
    return request.cookies.get(JWT_COOKIE) or None


def json_body() -> dict:
    """JSON object body of the request; {} when absent, 400 when it is not an object."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        abort(400, description="Request body must be a JSON object")
    return payload


def user_from_token(token: str) -> User:
    """Resolve the user behind an access token; raises TokenError."""
    decoded = decode_token(token)
    user = storage.get(User, decoded["user_id"])
    if not user:
        raise TokenError("User not found")
    return user


def jwt_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = extract_token()
            if not token:
                abort(401, description="No token provided")
            try:
                user = user_from_token(token)
            except TokenError as e:
                abort(401, description=str(e))

            g.current_user = user
            g.current_user_roles = user.role_names
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: list[str]):
    """
    Allow access if the user has ANY of the required roles.
    Deny (403) only if there is NO overlap between user_roles and required_roles.
    """
    req = set(required_roles or [])

    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            user_roles = set(getattr(g, "current_user_roles", []))
            if not (user_roles & req):
                abort(403, description="Insufficient role")
            return fn(*args, **kwargs)

        return wrapper

    return decorator
