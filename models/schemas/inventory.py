from marshmallow import fields, validate, validates_schema, ValidationError

from models.schemas.common import CamelCaseSchema, Money
from models.stock_movement import StockMovementType
from models.sweet import SweetCategory


class RestockSchema(CamelCaseSchema):
    quantity = fields.Integer(
        required=True,
        strict=True,
        validate=validate.Range(min=1, max=10000, error="Quantity must be between 1 and 10000"),
    )
    reason = fields.String(allow_none=True, validate=validate.Length(max=255))


class InventoryUpdateSchema(CamelCaseSchema):
    quantity = fields.Integer(strict=True, validate=validate.Range(min=0))
    min_stock_level = fields.Integer(strict=True, validate=validate.Range(min=0))
    max_stock_level = fields.Integer(strict=True, validate=validate.Range(min=0))
    reorder_point = fields.Integer(strict=True, validate=validate.Range(min=0))
    reason = fields.String(allow_none=True, validate=validate.Length(max=255))

    @validates_schema
    def _at_least_one(self, data, **kwargs):
        if not any(k in data for k in ("quantity", "min_stock_level", "max_stock_level", "reorder_point")):
            raise ValidationError("No inventory fields supplied.")


class MovementQuerySchema(CamelCaseSchema):
    page = fields.Integer(load_default=1, validate=validate.Range(min=1))
    limit = fields.Integer(load_default=20, validate=validate.Range(min=1, max=100))
    sweet_id = fields.String(load_default=None)
    type = fields.Enum(StockMovementType, load_default=None)
    start_date = fields.Date(load_default=None)
    end_date = fields.Date(load_default=None)
    sort = fields.String(load_default="-created_at")


class SweetBriefSchema(CamelCaseSchema):
    id = fields.String()
    name = fields.String()
    category = fields.Enum(SweetCategory)
    price = Money()
    is_active = fields.Boolean()


class StockMovementOutSchema(CamelCaseSchema):
    id = fields.String()
    inventory_id = fields.String()
    type = fields.Enum(StockMovementType)
    quantity = fields.Integer()
    delta = fields.Integer()
    reason = fields.String(allow_none=True)
    reference = fields.String(allow_none=True)
    created_at = fields.DateTime()


class InventoryOutSchema(CamelCaseSchema):
    id = fields.String()
    sweet_id = fields.String()
    quantity = fields.Integer()
    min_stock_level = fields.Integer()
    max_stock_level = fields.Integer()
    reorder_point = fields.Integer()
    last_restocked_at = fields.DateTime(allow_none=True)
    updated_at = fields.DateTime()
    sweet = fields.Nested(SweetBriefSchema)
