"""
Stock movement ledger.

Invariants:
- Append-only: rows are inserted in the same transaction as the inventory
  change they record and are never updated or deleted by the application.
- quantity is a positive magnitude; the movement type carries the sign.
- For every inventory row, current quantity == initial quantity + net_delta.
"""
from __future__ import annotations

import logging

from sqlalchemy import case, func
from sqlalchemy.orm import selectinload

from models import storage
from models.inventory import Inventory
from models.stock_movement import StockMovement, StockMovementType, OUTBOUND_TYPES
from services.errors import ValidationError
from utils.pagination import apply_date_range, apply_sort, clamp, page_meta

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "created_at": StockMovement.created_at,
    "quantity": StockMovement.quantity,
    "type": StockMovement.type,
}

signed_quantity = case(
    (StockMovement.type.in_(list(OUTBOUND_TYPES)), -StockMovement.quantity),
    else_=StockMovement.quantity,
)


def append(uow, inventory_id, type, quantity, reason=None, reference=None) -> StockMovement:
    """Record one movement inside the caller's unit of work."""
    if not inventory_id:
        raise ValidationError("inventory_id is required")
    try:
        movement_type = StockMovementType(type)
    except ValueError:
        raise ValidationError(f"Unknown movement type {type!r}")
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationError("Movement quantity must be a positive integer")

    movement = StockMovement(
        inventory_id=inventory_id,
        type=movement_type,
        quantity=quantity,
        reason=reason,
        reference=reference,
    )
    uow.add(movement)
    uow.flush()
    logger.debug("ledger %s %s x%d ref=%s", inventory_id, movement_type.value, quantity, reference)
    return movement


def _filtered(session, inventory_id=None, sweet_id=None, type=None, date_from=None, date_to=None):
    q = session.query(StockMovement)
    if inventory_id:
        q = q.filter(StockMovement.inventory_id == inventory_id)
    if sweet_id:
        q = q.join(Inventory, Inventory.id == StockMovement.inventory_id).filter(Inventory.sweet_id == sweet_id)
    if type is not None:
        q = q.filter(StockMovement.type == StockMovementType(type))
    return apply_date_range(q, StockMovement.created_at, date_from, date_to)


def query(*, inventory_id=None, sweet_id=None, type=None, date_from=None, date_to=None,
          page=1, limit=20, sort="-created_at") -> dict:
    """
    Page through movements. summary and net_change are computed over the
    whole filtered set, not just the returned page.
    """
    session = storage.get_session()
    page, limit = clamp(page, limit, default_limit=20)
    base = _filtered(session, inventory_id, sweet_id, type, date_from, date_to)

    total = base.order_by(None).count()

    rows = (
        base.with_entities(StockMovement.type, func.count(StockMovement.id), func.sum(StockMovement.quantity))
        .group_by(StockMovement.type)
        .all()
    )
    summary = {
        StockMovementType(t).value: {"count": int(c), "quantity": int(s or 0)}
        for t, c, s in rows
    }
    net_change = int(base.with_entities(func.coalesce(func.sum(signed_quantity), 0)).scalar() or 0)

    ordered, sort_key = apply_sort(base, sort, SORT_COLUMNS, "-created_at")
    items = (
        ordered.options(selectinload(StockMovement.inventory).selectinload(Inventory.sweet))
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "items": items,
        "summary": summary,
        "net_change": net_change,
        "sort": sort_key,
        **page_meta(page, limit, total),
    }


def recent(inventory_id, limit=10):
    session = storage.get_session()
    return (
        session.query(StockMovement)
        .filter(StockMovement.inventory_id == inventory_id)
        .order_by(StockMovement.created_at.desc())
        .limit(limit)
        .all()
    )


def type_stats(inventory_id) -> dict:
    session = storage.get_session()
    rows = (
        session.query(StockMovement.type, func.count(StockMovement.id), func.sum(StockMovement.quantity))
        .filter(StockMovement.inventory_id == inventory_id)
        .group_by(StockMovement.type)
        .all()
    )
    return {StockMovementType(t).value: {"count": int(c), "quantity": int(s or 0)} for t, c, s in rows}


def net_delta(inventory_id) -> int:
    session = storage.get_session()
    value = (
        session.query(func.coalesce(func.sum(signed_quantity), 0))
        .filter(StockMovement.inventory_id == inventory_id)
        .scalar()
    )
    return int(value or 0)
