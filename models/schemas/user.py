from marshmallow import fields, pre_load, validates, ValidationError

from models.schemas.common import CamelCaseSchema


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


class UserCreateSchema(CamelCaseSchema):
    name = fields.String(required=True, validate=lambda s: 1 <= len(s.strip()) <= 100)
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data)
            data["email"] = _norm_email(data["email"])
        return data

    @validates("password")
    def validate_password(self, value, **kwargs):
        if len(value) < 8:
            raise ValidationError("Password must be at least 8 characters long.")


class UserLoginSchema(CamelCaseSchema):
    email = fields.String(required=True)
    password = fields.String(required=True, load_only=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data)
            data["email"] = _norm_email(data["email"])
        return data


class UserOutSchema(CamelCaseSchema):
    id = fields.String()
    name = fields.String()
    email = fields.String()
    roles = fields.List(fields.String())
    is_active = fields.Boolean()
    created_at = fields.DateTime()
