"""
Session issuing, refresh-token rotation and logout.

Web clients receive both tokens as HttpOnly cookies as well as in the response
body. Clients sending `X-Client-Type: mobile` only get the body.
"""
from __future__ import annotations

import logging
from datetime import timedelta

from flask import current_app

from api.config import is_production
from models import storage
from models.base_model import utcnow
from models.refresh_token import RefreshToken
from models.user import User
from utils.decorators import JWT_COOKIE
from utils.security import create_access_token, generate_token

logger = logging.getLogger(__name__)

MOBILE_CLIENT = "mobile"
REFRESH_COOKIE = "refresh_token"


def authenticate_user(user: User, request=None) -> dict:
    """Issue an access token and a fresh refresh token for user."""
    jwt_token = create_access_token(user.id)
    refresh_token = RefreshToken.generate_for(user)

    cookie_data = None
    if request is not None and not mobile_client(request):
        cookie_data = auth_cookie_data(jwt_token, refresh_token.token)

    return {
        "token": jwt_token,
        "refresh_token": refresh_token.token,
        "user": user,
        "message": "Successfully authenticated",
        "cookies": cookie_data,
    }


def refresh_tokens(refresh_token_value: str | None, request=None) -> dict:
    """
    Exchange an active refresh token for a new access token and a new refresh token.
    The presented token is revoked in the same transaction that stores its replacement.
    """
    if not refresh_token_value:
        logger.info("Refresh token is blank")
        return {"success": False, "error": "Refresh token is required"}

    session = storage.get_session()
    old = session.query(RefreshToken).filter(RefreshToken.token == refresh_token_value).first()
    if old is None or not old.active():
        return {"success": False, "error": "Invalid or expired refresh token"}

    # Conditional update: a concurrent refresh with the same token matches zero rows
    consumed = (
        session.query(RefreshToken)
        .filter(
            RefreshToken.id == old.id,
            RefreshToken.revoked.is_(False),
            RefreshToken.expires_at > utcnow(),
        )
        .update({RefreshToken.revoked: True}, synchronize_session="fetch")
    )
    if consumed != 1:
        storage.rollback()
        logger.warning("Refresh token for user %s was already consumed", old.user_id)
        return {"success": False, "error": "Invalid or expired refresh token"}

    user = old.user
    new = RefreshToken(
        user=user,
        token=generate_token(),
        expires_at=utcnow() + current_app.config["REFRESH_TOKEN_EXPIRES"],
    )
    storage.new(new)
    storage.save()

    jwt_token = create_access_token(user.id)

    cookie_data = None
    if request is not None and not mobile_client(request):
        cookie_data = auth_cookie_data(jwt_token, new.token)

    return {
        "success": True,
        "token": jwt_token,
        "refresh_token": new.token,
        "cookies": cookie_data,
    }


def logout_user(user: User, request=None) -> dict:
    """Revoke every active refresh token the user holds."""
    session = storage.get_session()
    revoked = (
        RefreshToken.active_query(session)
        .filter(RefreshToken.user_id == user.id)
        .update({RefreshToken.revoked: True}, synchronize_session="fetch")
    )
    storage.save()
    logger.info("Logged out user %s (%d refresh tokens revoked)", user.id, revoked)

    cookie_data = None
    if request is not None and not mobile_client(request):
        cookie_data = clear_cookie_data()

    return {"message": "Successfully logged out", "cookies": cookie_data}


def mobile_client(request) -> bool:
    """Mobile apps identify themselves with the X-Client-Type header."""
    is_mobile = (request.headers.get("X-Client-Type") or "").strip().lower() == MOBILE_CLIENT
    if is_mobile:
        logger.info("Mobile client detected via X-Client-Type header")
    return is_mobile


def _cookie_options() -> dict:
    config = current_app.config
    options = {
        "httponly": True,
        "secure": is_production(config),  # HTTPS only in production
        "samesite": "Lax",
    }
    if is_production(config) and config.get("COOKIE_DOMAIN"):
        options["domain"] = config["COOKIE_DOMAIN"]
    return options


def auth_cookie_data(jwt_token: str, refresh_token: str) -> dict:
    now = utcnow()
    options = _cookie_options()
    return {
        JWT_COOKIE: dict(options, value=jwt_token, expires=now + current_app.config["ACCESS_TOKEN_EXPIRES"]),
        REFRESH_COOKIE: dict(
            options, value=refresh_token, expires=now + current_app.config["REFRESH_TOKEN_EXPIRES"]
        ),
    }


def clear_cookie_data() -> dict:
    config = current_app.config
    clear = {"value": "", "expires": utcnow() - timedelta(days=1)}
    if is_production(config) and config.get("COOKIE_DOMAIN"):
        clear["domain"] = config["COOKIE_DOMAIN"]
    return {JWT_COOKIE: dict(clear), REFRESH_COOKIE: dict(clear)}


def apply_cookies(response, cookie_data: dict | None):
    """Write cookie data produced above onto a Flask response."""
    for name, options in (cookie_data or {}).items():
        options = dict(options)
        response.set_cookie(name, options.pop("value") or "", **options)
    return response
