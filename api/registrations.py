"""
Sign-up and confirmation endpoints. None of them require a token.

The "send_*" endpoints always answer 200 with the same message whether or not
the account exists; the work happens in a background job.
"""
from __future__ import annotations

import logging

from flask import Blueprint, request, jsonify, abort, current_app

from models import storage
from models.user import User
from models.schemas.common import format_phone_to_e164
from models.schemas.user import UserCreateSchema, UserOutSchema
from services import sms
from utils.decorators import json_body
from workers import tasks

logger = logging.getLogger(__name__)

bp = Blueprint("registrations", __name__)

user_create_schema = UserCreateSchema()
user_out_schema = UserOutSchema()


def user_params(payload: dict) -> dict:
    """Accept both {"user": {...}} and a flat body."""
    nested = payload.get("user")
    return nested if isinstance(nested, dict) else payload


@bp.post("/register")
def register():
    """
    Register a new user
    ---
    tags:
      - Registration
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            user:
              type: object
              properties:
                email: { type: string }
                password: { type: string }
                name: { type: string }
                phone: { type: string }
    responses:
      201:
        description: Created; confirmation email (and SMS code) sent
      409:
        description: Email or phone already registered
      422:
        description: Validation error
    """
    data = user_create_schema.load(user_params(json_body()))

    session = storage.get_session()
    if session.query(User).filter(User.email == data["email"]).first():
        abort(409, description="Email has already been taken")
    if data.get("phone") and session.query(User).filter(User.phone == data["phone"]).first():
        abort(409, description="Phone has already been taken")

    user = User(
        name=data["name"].strip(),
        email=data["email"],
        password=data["password"],
        phone=data.get("phone"),
        email_confirmed=False,
        phone_confirmed=False,
        profile={},
    )
    user.generate_email_confirmation_token()
    storage.new(user)
    user.add_role(current_app.config["DEFAULT_ROLE"])
    storage.save()

    tasks.send_confirmation_email.delay(user.id)

    message = "Signed up successfully. Please check your email to confirm your account."
    if user.phone:
        sms.send_verification_code(user)
        storage.save()
        message += " A confirmation code has been sent to your phone."

    logger.info("Registered user %s", user.id)
    return jsonify(
        {
            "status": {"code": 200, "message": message},
            "data": user_out_schema.dump(user),
        }
    ), 201


@bp.post("/confirm_email")
def confirm_email():
    """
    Confirm an email address with the token from the confirmation email
    ---
    tags:
      - Registration
    parameters:
      - in: query
        name: token
        type: string
      - in: body
        name: body
        schema:
          type: object
          properties:
            token: { type: string }
    responses:
      200: { description: Confirmed }
      422: { description: Invalid or expired token }
    """
    payload = json_body()
    token = payload.get("token") or request.args.get("token")

    user = None
    if token and isinstance(token, str):
        session = storage.get_session()
        user = session.query(User).filter(User.confirmation_token == token).first()
    if not user or user.email_confirmed:
        abort(422, description="Invalid or expired confirmation token.")

    user.confirm_email()
    return jsonify({"message": "Email confirmed successfully. You can now log in."}), 200


@bp.post("/confirm_phone")
def confirm_phone():
    """
    Confirm a phone number with the code sent by SMS
    ---
    tags:
      - Registration
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            phone: { type: string }
            code: { type: string }
    responses:
      200: { description: Confirmed }
      422: { description: Invalid or expired code }
    """
    payload = json_body()
    phone = payload.get("phone")
    code = payload.get("code")

    user = None
    if isinstance(phone, str) and phone.strip():
        session = storage.get_session()
        user = session.query(User).filter(User.phone == format_phone_to_e164(phone)).first()
    if not user or user.phone_confirmed or not sms.check_verification_code(user, code):
        abort(422, description="Invalid or expired confirmation code.")

    user.confirm_phone()
    return jsonify({"message": "Phone number confirmed successfully."}), 200


@bp.post("/send_phone_confirmation")
def send_phone_confirmation():
    """
    Send a new phone confirmation code
    ---
    tags:
      - Registration
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
    responses:
      200: { description: Accepted }
    """
    payload = json_body()
    tasks.send_phone_confirmation.delay(payload.get("email"))
    return jsonify(
        {"message": "If your account has a phone number, a confirmation code has been sent."}
    ), 200


@bp.post("/send_email_confirmation")
def send_email_confirmation():
    """
    Send a new email confirmation link
    ---
    tags:
      - Registration
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
    responses:
      200: { description: Accepted }
    """
    payload = json_body()
    tasks.send_email_confirmation.delay(payload.get("email"))
    return jsonify(
        {"message": "If your account exists and is not confirmed, a confirmation email has been sent."}
    ), 200
