"""Sweet catalog: create, edit, browse and retire sweets together with their inventory row."""
from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import func, or_
from sqlalchemy.orm import joinedload

from models import storage
from models.inventory import Inventory
from models.purchase import Purchase
from models.sweet import Sweet, SweetCategory
from services.errors import ConflictError, NotFoundError, ValidationError
from services.transaction import atomic
from utils.pagination import clamp, page_meta

logger = logging.getLogger(__name__)

DEFAULT_MIN_STOCK_LEVEL = 5
DEFAULT_MAX_STOCK_LEVEL = 1000
UPDATABLE_FIELDS = ("name", "description", "category", "price", "image_url")


def default_thresholds(quantity: int) -> dict:
    return {
        "min_stock_level": DEFAULT_MIN_STOCK_LEVEL,
        "max_stock_level": quantity * 10 if quantity > 0 else DEFAULT_MAX_STOCK_LEVEL,
        "reorder_point": max(10, int(quantity * 0.2)),
    }


def exists_name_case_insensitive(session, name: str, exclude_id: str | None = None) -> bool:
    q = session.query(Sweet).filter(func.lower(Sweet.name) == name.strip().lower(), Sweet.is_active.is_(True))
    if exclude_id:
        q = q.filter(Sweet.id != exclude_id)
    return session.query(q.exists()).scalar()


def _category(value):
    try:
        return SweetCategory(value)
    except ValueError:
        raise ValidationError(f"Invalid category {value!r}")


def _price(value):
    try:
        price = Decimal(str(value))
    except ArithmeticError:
        raise ValidationError("Invalid price")
    if not price.is_finite() or price < 0:
        raise ValidationError("Price must be a non-negative number")
    return price.quantize(Decimal("0.01"))


def create_sweet(name, category, price, quantity=0, description=None, image_url=None, cache=None) -> Sweet:
    if not name or not name.strip():
        raise ValidationError("Name is required")
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 0:
        raise ValidationError("Quantity must be a non-negative integer")

    with atomic(cache) as uow:
        if exists_name_case_insensitive(uow.session, name):
            raise ConflictError("Sweet with this name already exists", field="name")
        sweet = uow.add(
            Sweet(
                name=name.strip(),
                description=description,
                category=_category(category),
                price=_price(price),
                image_url=image_url,
                is_active=True,
            )
        )
        sweet.inventory = Inventory(quantity=quantity, **default_thresholds(quantity))
        uow.flush()
        uow.invalidate("sweets:*", "inventory:*")

    logger.info("sweet %s created (%s, initial stock %d)", sweet.id, sweet.name, quantity)
    return sweet


def get_sweet(sweet_id) -> Sweet:
    session = storage.get_session()
    sweet = (
        session.query(Sweet)
        .options(joinedload(Sweet.inventory))
        .filter(Sweet.id == sweet_id, Sweet.is_active.is_(True))
        .one_or_none()
    )
    if sweet is None:
        raise NotFoundError("Sweet not found or inactive")
    return sweet


def update_sweet(sweet_id, cache=None, **fields) -> Sweet:
    unknown = set(fields) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    with atomic(cache) as uow:
        sweet = (
            uow.session.query(Sweet)
            .filter(Sweet.id == sweet_id, Sweet.is_active.is_(True))
            .populate_existing()
            .one_or_none()
        )
        if sweet is None:
            raise NotFoundError("Sweet not found or inactive")

        if "name" in fields:
            name = (fields["name"] or "").strip()
            if not name:
                raise ValidationError("Name is required")
            if exists_name_case_insensitive(uow.session, name, exclude_id=sweet_id):
                raise ConflictError("Sweet with this name already exists", field="name")
            sweet.name = name
        if "category" in fields:
            sweet.category = _category(fields["category"])
        if "price" in fields:
            sweet.price = _price(fields["price"])
        if "description" in fields:
            sweet.description = fields["description"]
        if "image_url" in fields:
            sweet.image_url = fields["image_url"]
        uow.invalidate("sweets:*", f"sweet:{sweet_id}*", "inventory:*", "purchases:*")

    return sweet


def list_sweets(*, page=1, limit=10, category=None, search=None) -> dict:
    session = storage.get_session()
    page, limit = clamp(page, limit)
    q = session.query(Sweet).filter(Sweet.is_active.is_(True))
    if category is not None:
        q = q.filter(Sweet.category == _category(category))
    if search:
        like = f"%{search.strip().lower()}%"
        q = q.filter(or_(func.lower(Sweet.name).like(like), func.lower(Sweet.description).like(like)))

    total = q.count()
    items = (
        q.options(joinedload(Sweet.inventory))
        .order_by(Sweet.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"items": items, **page_meta(page, limit, total)}


def delete_sweet(sweet_id, cache=None) -> str:
    """
    Retire a sweet. With purchase history it is only deactivated (the FK is
    RESTRICT); otherwise the row, its inventory and movements are removed.
    Returns "deactivated" or "deleted".
    """
    with atomic(cache) as uow:
        session = uow.session
        sweet = session.query(Sweet).filter(Sweet.id == sweet_id, Sweet.is_active.is_(True)).one_or_none()
        if sweet is None:
            raise NotFoundError("Sweet not found or inactive")

        has_history = session.query(session.query(Purchase).filter(Purchase.sweet_id == sweet_id).exists()).scalar()
        if has_history:
            sweet.is_active = False
            outcome = "deactivated"
        else:
            session.delete(sweet)
            outcome = "deleted"
        uow.invalidate("sweets:*", f"sweet:{sweet_id}*", "inventory:*", "purchases:*")

    logger.info("sweet %s %s", sweet_id, outcome)
    return outcome
