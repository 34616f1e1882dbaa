from flask import current_app
from marshmallow import Schema, fields, pre_load, post_load, validate, validates, EXCLUDE

from models.schemas.common import (
    normalize_email,
    format_phone_to_e164,
    validate_phone,
    validate_password_length,
    validate_name,
)


def _min_password_length():
    return current_app.config.get("MIN_PASSWORD_LENGTH", 6)


class UserCreateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    name = fields.String(required=True, validate=validate.Length(max=255))
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)
    phone = fields.String(allow_none=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            if "email" in data:
                data["email"] = normalize_email(data["email"])
            if "phone" in data:
                data["phone"] = format_phone_to_e164(data["phone"])
        return data

    @validates("name")
    def _validate_name(self, value, **kwargs):
        validate_name(value)

    @validates("password")
    def _validate_password(self, value, **kwargs):
        validate_password_length(value, _min_password_length())

    @validates("phone")
    def _validate_phone(self, value, **kwargs):
        validate_phone(value)


class UserLoginSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.String(load_default=None)
    password = fields.String(load_default=None)

    @post_load
    def normalize(self, data, **kwargs):
        data["email"] = normalize_email(data.get("email"))
        return data


class UserUpdateSchema(Schema):
    """Profile fields a user may change; email and roles are not editable here."""

    class Meta:
        unknown = EXCLUDE

    name = fields.String(validate=validate.Length(max=255))
    phone = fields.String(allow_none=True)
    profile = fields.Dict(keys=fields.String())

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "phone" in data:
            data = dict(data)
            data["phone"] = format_phone_to_e164(data["phone"])
        return data

    @validates("name")
    def _validate_name(self, value, **kwargs):
        validate_name(value)

    @validates("phone")
    def _validate_phone(self, value, **kwargs):
        validate_phone(value)


class PasswordUpdateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    current_password = fields.String(load_default=None)
    password = fields.String(load_default=None)
    password_confirmation = fields.String(load_default=None)


class UserOutSchema(Schema):
    id = fields.String()
    name = fields.String()
    email = fields.String()
    phone = fields.String(allow_none=True)
    email_confirmed = fields.Boolean()
    phone_confirmed = fields.Boolean()
    profile = fields.Dict()
    is_profile_complete = fields.Boolean()
    roles = fields.Function(lambda user: user.role_names)
    created_at = fields.DateTime()
    updated_at = fields.DateTime()


class AuthUserSchema(Schema):
    """The user as echoed back by login: id and email only."""

    id = fields.String()
    email = fields.String()
