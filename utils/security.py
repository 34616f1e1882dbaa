"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT access token creation/verification via PyJWT
- Opaque random tokens (refresh, password reset, email confirmation)
- Numeric one-time codes for phone confirmation
"""
from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timezone
from typing import Dict, Any

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, InvalidHashError

from flask import current_app

ph = PasswordHasher()

OPAQUE_TOKEN_BYTES = 32


class TokenError(Exception):
    """Raised when a JWT cannot be accepted; the message is safe to return to clients."""


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def generate_token() -> str:
    """url-safe random string carrying 32 bytes of entropy"""
    return secrets.token_urlsafe(OPAQUE_TOKEN_BYTES)


def generate_numeric_code(length: int = 6) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(length))


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_access_token(user_id: str, expires_in=None) -> str:
    """
    Signed JWT identifying user_id. Lifetime defaults to ACCESS_TOKEN_EXPIRES.
    """
    now = _now()
    exp = now + (expires_in if expires_in is not None else current_app.config["ACCESS_TOKEN_EXPIRES"])
    payload = {
        "iss": current_app.config.get("JWT_ISSUER", "account-api"),
        "sub": str(user_id),
        "user_id": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
        "type": "access",
        "jti": generate_jti(),
    }
    return jwt.encode(payload, current_app.config["JWT_SECRET"], algorithm=current_app.config["JWT_ALGORITHM"])


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate an access JWT. Raises TokenError on bad signature,
    expiry, or a token that was not issued as an access token.
    """
    try:
        decoded = jwt.decode(
            token, current_app.config["JWT_SECRET"], algorithms=[current_app.config["JWT_ALGORITHM"]]
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError:
        raise TokenError("Invalid token")

    if decoded.get("type") != "access" or not decoded.get("user_id"):
        raise TokenError("Invalid token")
    return decoded
