from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from marshmallow import Schema, ValidationError, fields


def camelcase(s: str) -> str:
    parts = iter(s.split("_"))
    return next(parts) + "".join(p.title() for p in parts)


class CamelCaseSchema(Schema):
    """Snake_case attributes on the Python side, camelCase keys on the wire."""

    def on_bind_field(self, field_name, field_obj):
        field_obj.data_key = camelcase(field_obj.data_key or field_name)


def to_decimal_2(value) -> Decimal:
    if value is None:
        return None
    try:
        d = Decimal(str(value))
    except (InvalidOperation, TypeError):
        raise ValidationError("Invalid decimal.")
    if not d.is_finite():
        raise ValidationError("Invalid decimal.")
    if d < 0:
        raise ValidationError("Must be greater than or equal to 0.")
    return d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class Money(fields.Decimal):
    """Two-place decimal, dumped as a float the way the clients expect."""

    def __init__(self, **kwargs):
        super().__init__(places=2, rounding=ROUND_HALF_UP, **kwargs)

    def _serialize(self, value, attr, obj, **kwargs):
        value = super()._serialize(value, attr, obj, **kwargs)
        return None if value is None else float(value)


class PaginationSchema(CamelCaseSchema):
    page = fields.Integer()
    limit = fields.Integer()
    total = fields.Integer()
    total_pages = fields.Integer()
    has_next_page = fields.Boolean()
    has_previous_page = fields.Boolean()


def camelize(value):
    """Recursively camelCase the keys of plain dict/list payloads."""
    if isinstance(value, dict):
        return {camelcase(k): camelize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [camelize(v) for v in value]
    return value
