"""
Outgoing mail.

MAIL_BACKEND selects delivery: "smtp" sends through MAIL_SERVER, "console"
writes the message to the log (development and tests).
"""
from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from urllib.parse import urlencode

from flask import current_app

logger = logging.getLogger(__name__)


class MailDeliveryError(Exception):
    pass


def build_message(to: str, subject: str, body: str) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = current_app.config["MAIL_DEFAULT_SENDER"]
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(body)
    return msg


def send_mail(to: str, subject: str, body: str) -> EmailMessage:
    config = current_app.config
    msg = build_message(to, subject, body)
    backend = config.get("MAIL_BACKEND", "console")

    if backend == "console":
        logger.info("Email to %s: %s\n%s", to, subject, body)
        return msg
    if backend != "smtp":
        raise MailDeliveryError(f"Unknown MAIL_BACKEND: {backend}")

    try:
        with smtplib.SMTP(config["MAIL_SERVER"], config["MAIL_PORT"]) as server:
            if config.get("MAIL_USE_TLS"):
                server.starttls()
            if config.get("MAIL_USERNAME"):
                server.login(config["MAIL_USERNAME"], config["MAIL_PASSWORD"])
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("Failed to send '%s' to %s: %s", subject, to, exc)
        raise MailDeliveryError(str(exc)) from exc

    logger.info("Email '%s' sent to %s", subject, to)
    return msg


def _url(path: str, **params) -> str:
    base = current_app.config["APP_BASE_URL"].rstrip("/")
    query = f"?{urlencode(params)}" if params else ""
    return f"{base}{path}{query}"


def confirmation_url(user) -> str:
    return _url("/api/v1/confirm_email", token=user.confirmation_token)


def password_reset_url(token) -> str:
    token_value = getattr(token, "token", token)
    return _url(f"/api/v1/password/reset/{token_value}")


def send_confirmation(user) -> EmailMessage:
    body = (
        f"Hi {user.name},\n\n"
        "Please confirm your email address by following this link:\n\n"
        f"{confirmation_url(user)}\n"
    )
    return send_mail(user.email, "Confirm your email address", body)


def send_password_reset(user, token) -> EmailMessage:
    """token may be a PasswordResetToken or its raw string value."""
    body = (
        f"Hi {user.name},\n\n"
        "Someone asked to reset the password for your account. "
        "If that was you, use the link below within the next hour:\n\n"
        f"{password_reset_url(token)}\n\n"
        "If you did not ask for this you can ignore this email.\n"
    )
    return send_mail(user.email, "Reset your password", body)
