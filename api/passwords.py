from __future__ import annotations

from flask import Blueprint, jsonify, abort, current_app
from marshmallow import ValidationError

from models import storage
from models.password_reset_token import PasswordResetToken
from models.schemas.common import validate_password_length
from utils.decorators import json_body
from workers import tasks

bp = Blueprint("passwords", __name__)


@bp.post("/password/reset")
def request_reset():
    """
    Request a password reset email
    ---
    tags:
      - Passwords
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
    responses:
      200:
        description: Always returned, whether or not the email is registered
    """
    payload = json_body()
    tasks.send_password_reset.delay(payload.get("email"))
    return jsonify({"message": "Password reset instructions sent (if user with that email exists)."}), 200


@bp.put("/password/reset/<token>")
def reset(token: str):
    """
    Set a new password with a reset token
    ---
    tags:
      - Passwords
    consumes:
      - application/json
    parameters:
      - in: path
        name: token
        type: string
        required: true
      - in: body
        name: body
        schema:
          type: object
          properties:
            password: { type: string }
    responses:
      200: { description: Password changed }
      401: { description: Invalid, used or expired token }
      422: { description: Missing or invalid password }
    """
    session = storage.get_session()
    prt = session.query(PasswordResetToken).filter(PasswordResetToken.token == token).first()

    if prt is None:
        abort(401, description="Invalid token")
    if prt.used:
        abort(401, description="Token has already been used")
    if prt.expired():
        abort(401, description="Token has expired")

    payload = json_body()
    password = payload.get("password")
    if not password or not isinstance(password, str):
        abort(422, description="Password is required")
    try:
        validate_password_length(password, current_app.config["MIN_PASSWORD_LENGTH"])
    except ValidationError as err:
        abort(422, description=" ".join(err.messages))

    user = prt.user
    user.set_password(password)
    storage.new(user)
    # commits the new password together with the token
    prt.mark_as_used()
    return jsonify({"message": "Password has been reset."}), 200
