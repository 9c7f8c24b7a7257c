import re

from marshmallow import Schema, fields, pre_load, validates, validate, ValidationError, EXCLUDE

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


def check_password_strength(value: str) -> None:
    if len(value) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long.")
    if len(value) > PASSWORD_MAX_LENGTH:
        raise ValidationError(f"Password must be at most {PASSWORD_MAX_LENGTH} characters long.")
    if not re.search(r"[A-Za-z]", value) or not re.search(r"\d", value):
        raise ValidationError("Password must contain at least one letter and one digit.")


class RegisterSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)
    name = fields.String(required=True, validate=validate.Length(min=1, max=255))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            if "email" in data:
                data["email"] = _norm_email(data["email"])
            if isinstance(data.get("name"), str):
                data["name"] = data["name"].strip()
        return data

    @validates("password")
    def validate_password(self, value, **kwargs):
        check_password_strength(value)


class LoginSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.String(required=True, validate=validate.Length(min=1))
    password = fields.String(required=True, validate=validate.Length(min=1), load_only=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data)
            data["email"] = _norm_email(data["email"])
        return data


class ProfileUpdateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    name = fields.String(allow_none=False, validate=validate.Length(min=1, max=255))
    bio = fields.String(allow_none=True, validate=validate.Length(max=2000))


class UserOutSchema(Schema):
    id = fields.String(allow_none=False)
    email = fields.String(allow_none=False)
    name = fields.String(allow_none=True)
    bio = fields.String(allow_none=True)
    role = fields.String()
    email_verified = fields.Boolean()
    created_at = fields.DateTime(allow_none=True)
    updated_at = fields.DateTime(allow_none=True)
    last_login_at = fields.DateTime(allow_none=True)


class PublicUserSchema(Schema):
    id = fields.String(allow_none=False)
    name = fields.String(allow_none=True)
    bio = fields.String(allow_none=True)
    created_at = fields.DateTime(allow_none=True)
