from marshmallow import fields, validate, validates, ValidationError

from models.schemas.common import CamelCaseSchema, Money, to_decimal_2
from models.sweet import SweetCategory


class SweetCreateSchema(CamelCaseSchema):
    name = fields.String(required=True, validate=validate.Length(min=1, max=100))
    description = fields.String(allow_none=True, validate=validate.Length(max=1000))
    category = fields.Enum(SweetCategory, required=True)
    price = fields.Decimal(required=True)
    quantity = fields.Integer(load_default=0, validate=validate.Range(min=0))
    image_url = fields.URL(allow_none=True)

    @validates("price")
    def _validate_price(self, value, **kwargs):
        to_decimal_2(value)


class SweetUpdateSchema(CamelCaseSchema):
    name = fields.String(validate=validate.Length(min=1, max=100))
    description = fields.String(allow_none=True, validate=validate.Length(max=1000))
    category = fields.Enum(SweetCategory)
    price = fields.Decimal()
    image_url = fields.URL(allow_none=True)

    @validates("price")
    def _validate_price(self, value, **kwargs):
        if value is None:
            raise ValidationError("price may not be null.")
        to_decimal_2(value)


class SweetQuerySchema(CamelCaseSchema):
    page = fields.Integer(load_default=1, validate=validate.Range(min=1))
    limit = fields.Integer(load_default=10, validate=validate.Range(min=1, max=100))
    category = fields.Enum(SweetCategory, load_default=None)
    search = fields.String(load_default=None)


class InventorySummarySchema(CamelCaseSchema):
    quantity = fields.Integer()
    min_stock_level = fields.Integer()
    max_stock_level = fields.Integer()
    reorder_point = fields.Integer()
    last_restocked_at = fields.DateTime(allow_none=True)


class SweetOutSchema(CamelCaseSchema):
    id = fields.String()
    name = fields.String()
    description = fields.String(allow_none=True)
    category = fields.Enum(SweetCategory)
    price = Money()
    image_url = fields.String(allow_none=True)
    is_active = fields.Boolean()
    inventory = fields.Nested(InventorySummarySchema, allow_none=True)
    created_at = fields.DateTime()
    updated_at = fields.DateTime()
