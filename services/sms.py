"""
Phone confirmation codes.

Codes are generated and checked here; only delivery goes through SMS_BACKEND.
The code is stored argon2-hashed on the user together with the time it was sent.
"""
from __future__ import annotations

import logging

from flask import current_app

from models.base_model import utcnow, as_utc
from utils.security import generate_numeric_code, hash_password, verify_password

logger = logging.getLogger(__name__)


class SmsDeliveryError(Exception):
    pass


def deliver(phone: str, message: str):
    backend = current_app.config.get("SMS_BACKEND", "console")
    if backend == "console":
        logger.info("SMS to %s: %s", phone, message)
        return
    raise SmsDeliveryError(f"Unknown SMS_BACKEND: {backend}")


def send_verification_code(user) -> bool:
    """
    Issue a fresh code for user.phone and deliver it.
    Sets phone_confirmation_sent_at; the caller commits.
    Returns False (and logs) when delivery fails.
    """
    if not user.phone:
        return False
    code = generate_numeric_code(current_app.config["PHONE_CODE_LENGTH"])
    try:
        deliver(user.phone, f"Your verification code is {code}")
    except SmsDeliveryError as exc:
        logger.error("Verify SMS failed for %s: %s", user.phone, exc)
        return False
    user.phone_confirmation_code_hash = hash_password(code)
    user.phone_confirmation_sent_at = utcnow()
    return True


def check_verification_code(user, code: str | None) -> bool:
    if not code or not user.phone_confirmation_code_hash or not user.phone_confirmation_sent_at:
        return False
    sent_at = as_utc(user.phone_confirmation_sent_at)
    if sent_at + current_app.config["PHONE_CODE_EXPIRES"] < utcnow():
        logger.info("Verification code for %s has expired", user.phone)
        return False
    return verify_password(str(code).strip(), user.phone_confirmation_code_hash)
