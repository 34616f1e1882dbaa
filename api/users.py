from __future__ import annotations

from typing import Tuple

from flask import Blueprint, request, jsonify, g, abort, current_app
from sqlalchemy.orm.attributes import flag_modified

from models import storage
from models.user import User
from models.schemas.user import UserUpdateSchema, UserOutSchema, PasswordUpdateSchema
from utils.decorators import jwt_required, roles_required, json_body
from utils.policies import authorize, policy_scope
from workers import tasks

MAX_LIMIT = 100
MAX_PAGE = 10_000

bp = Blueprint("users", __name__)

user_update_schema = UserUpdateSchema()
password_update_schema = PasswordUpdateSchema()
user_out_schema = UserOutSchema()
user_list_out_schema = UserOutSchema(many=True)


def parse_pagination() -> Tuple[int, int]:
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args.get("limit", "20"))
        page = max(1, min(page, MAX_PAGE))
        limit = max(1, min(limit, MAX_LIMIT))
        return page, limit
    except ValueError:
        abort(400, description="page and limit must be integers")


def parse_sort(default="created_at"):
    sort = request.args.get("sort", default)
    desc = sort.startswith("-")
    key = sort[1:] if desc else sort
    columns = {"created_at": User.created_at, "name": User.name, "email": User.email}
    col = columns.get(key)
    if col is None:
        abort(400, description=f"Unsupported sort field. Allowed: {', '.join(columns)}")
    return (col.desc() if desc else col.asc(),)


def get_user_or_404(user_id: str) -> User:
    user = storage.get(User, user_id)
    if not user:
        abort(404)
    return user


def user_params(payload: dict) -> dict:
    nested = payload.get("user")
    return nested if isinstance(nested, dict) else payload


@bp.get("/users")
@jwt_required()
def list_users():
    """
    List users: every user for admins, only yourself otherwise
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: query
        name: page
        type: integer
        default: 1
      - in: query
        name: limit
        type: integer
        default: 20
      - in: query
        name: sort
        type: string
        default: created_at
        description: "Allowed: created_at, name, email (prefix - for descending)"
    responses:
      200: { description: OK }
      401: { description: Unauthorized }
    """
    authorize(g.current_user, User, "index")
    page, limit = parse_pagination()
    order_by = parse_sort()

    query = policy_scope(g.current_user, storage.get_session().query(User))
    total = query.count()
    rows = query.order_by(*order_by).offset((page - 1) * limit).limit(limit).all()
    return jsonify(
        {
            "data": user_list_out_schema.dump(rows),
            "meta": {"page": page, "limit": limit, "total": total}
        }
    )


@bp.get("/users/me")
@jwt_required()
def me():
    """
    Get current user info
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    user = authorize(g.current_user, g.current_user, "me")
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.get("/users/<user_id>")
@jwt_required()
def show(user_id: str):
    """
    Get a user (admin or self)
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
    responses:
      200: { description: OK }
      403: { description: Forbidden }
      404: { description: Not found }
    """
    user = authorize(g.current_user, get_user_or_404(user_id), "show")
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.route("/users/<user_id>", methods=["PATCH", "PUT"])
@jwt_required()
def update(user_id: str):
    """
    Update name, phone or profile (admin or self).
    Changing the phone number resets its confirmation and sends a new code.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
      - in: body
        name: body
        schema:
          type: object
          properties:
            user:
              type: object
              properties:
                name: { type: string }
                phone: { type: string }
                profile: { type: object }
    responses:
      200: { description: OK }
      403: { description: Forbidden }
      409: { description: Phone already taken }
      422: { description: Validation error }
    """
    user = authorize(g.current_user, get_user_or_404(user_id), "update")
    data = user_update_schema.load(user_params(json_body()))

    if "name" in data:
        user.name = data["name"].strip()
    if "profile" in data:
        user.profile = data["profile"]
        flag_modified(user, "profile")

    phone_changed = "phone" in data and data["phone"] != user.phone
    if phone_changed:
        session = storage.get_session()
        taken = data["phone"] and session.query(User).filter(
            User.phone == data["phone"], User.id != user.id
        ).first()
        if taken:
            abort(409, description="Phone has already been taken")
        user.phone = data["phone"]
        # clearing the number keeps the confirmation flag
        if user.phone:
            user.reset_phone_confirmation()

    user.save()

    if phone_changed and user.phone:
        tasks.send_phone_confirmation.delay(user.email)

    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.patch("/users/<user_id>/password")
@jwt_required()
def update_password(user_id: str):
    """
    Change password (admin or self); the current password is always required
    ---
    tags:
      - Users
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
      - in: body
        name: body
        schema:
          type: object
          properties:
            user:
              type: object
              properties:
                current_password: { type: string }
                password: { type: string }
                password_confirmation: { type: string }
    responses:
      200: { description: Password updated }
      403: { description: Forbidden }
      422: { description: Validation error }
    """
    user = authorize(g.current_user, get_user_or_404(user_id), "update_password")
    data = password_update_schema.load(user_params(json_body()))

    if not user.authenticate(data.get("current_password")):
        abort(422, description="Current password is incorrect")
    if not data.get("password"):
        abort(422, description="Password can't be blank")
    min_length = current_app.config["MIN_PASSWORD_LENGTH"]
    if len(data["password"]) < min_length:
        abort(422, description=f"Password is too short (minimum is {min_length} characters).")
    confirmation = data.get("password_confirmation")
    if confirmation is not None and confirmation != data["password"]:
        abort(422, description="Password confirmation doesn't match Password")

    user.set_password(data["password"])
    user.save()
    return jsonify({"message": "Password updated successfully"}), 200


@bp.delete("/users/<user_id>")
@jwt_required()
def destroy(user_id: str):
    """
    Delete a user (admin only, never yourself)
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
    responses:
      204: { description: Deleted }
      403: { description: Forbidden }
      404: { description: Not found }
    """
    user = authorize(g.current_user, get_user_or_404(user_id), "destroy")
    user.delete()
    storage.save()
    return ("", 204)


@bp.post("/users/<user_id>/roles")
@roles_required(["admin"])
def add_roles(user_id: str):
    """
    Admin-only: grant roles to a user.
    Body: { "roles": ["admin", "user"] }
    ---
    tags:
      - Users
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: path
         name: user_id
         type: string
         required: true
      -  in: body
         name: body
         schema:
           type: object
           properties:
             roles: { type: array, items: { type: string } }
    responses:
      200: { description: OK }
      403: { description: Forbidden }
      422: { description: Unknown role }
    """
    payload = json_body()
    roles = payload.get("roles")
    if not isinstance(roles, list) or not roles or not all(isinstance(r, str) for r in roles):
        abort(422, description="roles must be a non-empty list")

    user = authorize(g.current_user, get_user_or_404(user_id), "manage_roles")
    allowed = set(current_app.config.get("ALLOWED_ROLES", ["admin", "user"]))
    unknown = sorted(set(roles) - allowed)
    if unknown:
        abort(422, description=f"Unknown roles: {', '.join(unknown)}")

    for role in roles:
        user.add_role(role, whodunnit=g.current_user.id)
    storage.save()
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.delete("/users/<user_id>/roles/<role>")
@roles_required(["admin"])
def remove_role(user_id: str, role: str):
    """
    Admin-only: take a role away from a user
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
      - in: path
        name: role
        type: string
        required: true
    responses:
      200: { description: OK }
      403: { description: Forbidden }
      404: { description: User does not hold the role }
    """
    user = authorize(g.current_user, get_user_or_404(user_id), "manage_roles")
    if not user.remove_role(role, whodunnit=g.current_user.id):
        abort(404, description=f"User does not have role {role}")
    storage.save()
    return jsonify({"data": user_out_schema.dump(user)}), 200
