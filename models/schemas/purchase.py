from marshmallow import fields, validate

from models.schemas.common import CamelCaseSchema, Money
from models.schemas.inventory import SweetBriefSchema
from models.purchase import PurchaseStatus, MAX_PURCHASE_QUANTITY, MAX_STATS_DAYS


class PurchaseCreateSchema(CamelCaseSchema):
    sweet_id = fields.String(required=True, validate=validate.Length(min=1))
    quantity = fields.Integer(
        required=True,
        strict=True,
        validate=[
            validate.Range(min=1, error="Quantity must be at least 1"),
            validate.Range(
                max=MAX_PURCHASE_QUANTITY,
                error=f"Maximum quantity per purchase is {MAX_PURCHASE_QUANTITY}",
            ),
        ],
    )


class PurchaseStatusSchema(CamelCaseSchema):
    status = fields.Enum(PurchaseStatus, required=True)


class PurchaseQuerySchema(CamelCaseSchema):
    page = fields.Integer(load_default=1, validate=validate.Range(min=1))
    limit = fields.Integer(load_default=10, validate=validate.Range(min=1, max=100))
    status = fields.Enum(PurchaseStatus, load_default=None)
    user_id = fields.String(load_default=None)
    start_date = fields.Date(load_default=None)
    end_date = fields.Date(load_default=None)


class PurchaseStatsQuerySchema(CamelCaseSchema):
    days = fields.Integer(
        load_default=30,
        validate=validate.Range(min=1, max=MAX_STATS_DAYS, error=f"days must be between 1 and {MAX_STATS_DAYS}"),
    )


class PurchaseUserSchema(CamelCaseSchema):
    id = fields.String()
    name = fields.String()
    email = fields.String()


class PurchaseOutSchema(CamelCaseSchema):
    id = fields.String()
    order_number = fields.String()
    quantity = fields.Integer()
    unit_price = Money()
    total_amount = Money()
    status = fields.Enum(PurchaseStatus)
    user_id = fields.String()
    sweet_id = fields.String()
    sweet = fields.Nested(SweetBriefSchema)
    user = fields.Nested(PurchaseUserSchema)
    created_at = fields.DateTime()
    updated_at = fields.DateTime()
