"""
Authentication blueprint:
- POST   /login    credentials -> access token + refresh token
- POST   /refresh  rotate a refresh token
- DELETE /logout   revoke every active refresh token of the caller

Web clients get both tokens as HttpOnly cookies too; mobile clients
(X-Client-Type: mobile) only get the JSON body.
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g, abort

from models import storage
from models.user import User
from models.schemas.user import UserLoginSchema, AuthUserSchema
from services import authentication
from utils.decorators import jwt_required, json_body

bp = Blueprint("auth", __name__)

user_login_schema = UserLoginSchema()
auth_user_schema = AuthUserSchema()


@bp.post("/login")
def login():
    """
    Login: return token and refresh_token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: header
         name: X-Client-Type
         type: string
         required: false
         description: "mobile to skip auth cookies"
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens, sets cookies for web clients)
      401:
        description: Invalid credentials or unconfirmed email
    """
    payload = user_login_schema.load(json_body())
    email = payload.get("email")
    password = payload.get("password")

    user = None
    if email:
        session = storage.get_session()
        user = session.query(User).filter(User.email == email).first()
    if not user or not user.authenticate(password):
        abort(401, description="Invalid credentials")

    if not user.email_confirmed:
        # Phone confirmation is not required here so users can still fix a wrong number
        abort(401, description="You must confirm your email address before logging in.")

    result = authentication.authenticate_user(user, request)
    response = jsonify(
        {
            "token": result["token"],
            "refresh_token": result["refresh_token"],
            "user": auth_user_schema.dump(user),
            "message": result["message"],
        }
    )
    return authentication.apply_cookies(response, result["cookies"]), 200


@bp.post("/refresh")
def refresh():
    """
    Rotate a refresh token: the presented token is revoked and a new pair is issued.
    The refresh_token cookie takes precedence over the JSON body.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: OK (new token and refresh_token)
      401:
        description: Missing, invalid, revoked or expired refresh token
    """
    payload = json_body()
    token_value = request.cookies.get(authentication.REFRESH_COOKIE) or payload.get("refresh_token")
    if token_value is not None and not isinstance(token_value, str):
        abort(422, description="refresh_token must be a string")

    result = authentication.refresh_tokens(token_value, request)
    if not result["success"]:
        abort(401, description=result["error"])

    response = jsonify({"token": result["token"], "refresh_token": result["refresh_token"]})
    return authentication.apply_cookies(response, result["cookies"]), 200


@bp.delete("/logout")
@jwt_required()
def logout():
    """
    Logout: revokes all active refresh tokens and clears auth cookies
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Logged out
      401:
        description: Unauthorized
    """
    result = authentication.logout_user(g.current_user, request)
    response = jsonify({"message": result["message"]})
    return authentication.apply_cookies(response, result["cookies"]), 200
