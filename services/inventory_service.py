"""
Inventory record operations.

Stock only ever changes through apply_delta, a single relative UPDATE that
refuses to take quantity below zero, so concurrent buyers cannot oversell
even without row locks.
"""
from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.orm import joinedload

from models import storage
from models.inventory import Inventory
from models.stock_movement import StockMovementType
from models.sweet import Sweet
from services import ledger_service
from services.errors import ConflictError, NotFoundError, OutOfStockError, ValidationError
from services.transaction import atomic, lock_for_update
from utils.time_utils import as_utc, epoch_millis, utcnow

logger = logging.getLogger(__name__)

MAX_RESTOCK_QUANTITY = 10000
RECENT_MOVEMENTS = 10

OUT_OF_STOCK = "OUT_OF_STOCK"
LOW_STOCK = "LOW_STOCK"
OVERSTOCKED = "OVERSTOCKED"
NORMAL = "NORMAL"


def inventory_cache_patterns(sweet_id):
    return ("inventory:*", f"sweet:{sweet_id}*", "stock_movements:*")


def stock_status(inventory) -> str:
    if inventory.quantity == 0:
        return OUT_OF_STOCK
    if inventory.quantity <= inventory.reorder_point:
        return LOW_STOCK
    if inventory.quantity > inventory.max_stock_level:
        return OVERSTOCKED
    return NORMAL


def get_inventory(sweet_id, session=None, *, for_update: bool = False) -> Inventory:
    session = session or storage.get_session()
    q = (
        session.query(Inventory)
        .join(Sweet, Sweet.id == Inventory.sweet_id)
        .filter(Inventory.sweet_id == sweet_id, Sweet.is_active.is_(True))
        .populate_existing()
    )
    if for_update:
        q = lock_for_update(q)
    inventory = q.one_or_none()
    if inventory is None:
        raise NotFoundError("Sweet not found or inactive")
    return inventory


def apply_delta(uow, inventory_id, signed_quantity: int, *, restocked: bool = False,
                expected_quantity: int | None = None) -> Inventory:
    """
    Atomically add signed_quantity to the row, refusing to go negative.
    With expected_quantity the update only applies while the row still holds
    that value; a miss is a retryable ConflictError.
    Must be called inside atomic(); the caller appends the ledger entry.
    """
    session = uow.session
    now = utcnow()
    values = {Inventory.quantity: Inventory.quantity + signed_quantity, Inventory.updated_at: now}
    if restocked:
        values[Inventory.last_restocked_at] = now

    q = session.query(Inventory).filter(
        Inventory.id == inventory_id, Inventory.quantity + signed_quantity >= 0
    )
    if expected_quantity is not None:
        q = q.filter(Inventory.quantity == expected_quantity)
    matched = q.update(values, synchronize_session=False)
    if matched == 0:
        current = session.query(Inventory.quantity).filter(Inventory.id == inventory_id).scalar()
        if current is None:
            raise NotFoundError("Inventory not found")
        if expected_quantity is not None and current != expected_quantity:
            raise ConflictError(
                "Stock changed while updating, please retry",
                field="quantity",
                retryable=True,
                details={"expected": expected_quantity, "current": current},
            )
        raise OutOfStockError(available=current, requested=-signed_quantity)

    return session.get(Inventory, inventory_id, populate_existing=True)


def restock(sweet_id, quantity, reason=None, cache=None) -> dict:
    if not isinstance(quantity, int) or isinstance(quantity, bool) or not 1 <= quantity <= MAX_RESTOCK_QUANTITY:
        raise ValidationError(f"Quantity must be between 1 and {MAX_RESTOCK_QUANTITY}")

    with atomic(cache) as uow:
        inventory = get_inventory(sweet_id, uow.session)
        inventory = apply_delta(uow, inventory.id, quantity, restocked=True)
        movement = ledger_service.append(
            uow,
            inventory.id,
            StockMovementType.RESTOCK,
            quantity,
            reason=reason or f"Restock of {quantity} units",
            reference=f"RESTOCK-{epoch_millis()}",
        )
        uow.invalidate(*inventory_cache_patterns(sweet_id))

    logger.info("restocked sweet %s by %d (now %d)", sweet_id, quantity, inventory.quantity)
    return {
        "sweet": inventory.sweet,
        "inventory": inventory,
        "stock_movement": movement,
        "previous_quantity": inventory.quantity - quantity,
        "new_quantity": inventory.quantity,
    }


def _check_thresholds(min_stock_level, max_stock_level, reorder_point, quantity):
    for label, value in (
        ("quantity", quantity),
        ("minStockLevel", min_stock_level),
        ("maxStockLevel", max_stock_level),
        ("reorderPoint", reorder_point),
    ):
        if value is not None and (not isinstance(value, int) or isinstance(value, bool) or value < 0):
            raise ValidationError(f"{label} must be a non-negative integer")
    if min_stock_level is not None and max_stock_level is not None and min_stock_level >= max_stock_level:
        raise ValidationError("Minimum stock level must be less than maximum stock level")
    if reorder_point is not None and min_stock_level is not None and reorder_point < min_stock_level:
        raise ValidationError("Reorder point must be greater than or equal to minimum stock level")


def set_thresholds(sweet_id, *, min_stock_level=None, max_stock_level=None, reorder_point=None,
                   quantity=None, reason=None, cache=None) -> Inventory:
    """
    Update stock thresholds and optionally override the on-hand quantity.
    A quantity override is booked as an ADJUSTMENT movement for the difference.
    """
    _check_thresholds(min_stock_level, max_stock_level, reorder_point, quantity)

    with atomic(cache) as uow:
        inventory = get_inventory(sweet_id, uow.session, for_update=True)
        if quantity is not None and quantity != inventory.quantity:
            diff = quantity - inventory.quantity
            inventory = apply_delta(uow, inventory.id, diff, expected_quantity=inventory.quantity)
            movement_type = StockMovementType.ADJUSTMENT_IN if diff > 0 else StockMovementType.ADJUSTMENT_OUT
            ledger_service.append(
                uow,
                inventory.id,
                movement_type,
                abs(diff),
                reason=reason or "Manual inventory adjustment",
                reference=f"ADJUST-{epoch_millis()}",
            )
            logger.info("inventory %s adjusted by %+d", inventory.id, diff)

        if min_stock_level is not None:
            inventory.min_stock_level = min_stock_level
        if max_stock_level is not None:
            inventory.max_stock_level = max_stock_level
        if reorder_point is not None:
            inventory.reorder_point = reorder_point
        uow.invalidate(*inventory_cache_patterns(sweet_id))

    return inventory


def _active_inventory(session):
    return (
        session.query(Inventory)
        .join(Sweet, Sweet.id == Inventory.sweet_id)
        .filter(Sweet.is_active.is_(True))
        .options(joinedload(Inventory.sweet))
    )


def inventory_status() -> dict:
    session = storage.get_session()
    items = _active_inventory(session).order_by(Inventory.quantity.asc()).all()

    total_items = len(items)
    total_quantity = sum(i.quantity for i in items)
    total_value = sum((Decimal(i.quantity) * i.sweet.price for i in items), Decimal("0"))
    stats = {
        "total_items": total_items,
        "low_stock_items": sum(1 for i in items if i.quantity <= i.reorder_point),
        "out_of_stock_items": sum(1 for i in items if i.quantity == 0),
        "overstocked_items": sum(1 for i in items if i.quantity > i.max_stock_level),
        "total_quantity": total_quantity,
        "total_value": float(total_value.quantize(Decimal("0.01"))),
        "average_quantity_per_item": round(total_quantity / total_items) if total_items else 0,
    }
    return {"inventory": items, "stats": stats}


def low_stock_items() -> list:
    session = storage.get_session()
    return (
        _active_inventory(session)
        .filter(Inventory.quantity <= Inventory.reorder_point)
        .order_by(Inventory.quantity.asc(), Inventory.reorder_point.desc())
        .all()
    )


def sweet_inventory(sweet_id) -> dict:
    session = storage.get_session()
    inventory = get_inventory(sweet_id, session)
    movements = ledger_service.recent(inventory.id, RECENT_MOVEMENTS)
    stats = ledger_service.type_stats(inventory.id)

    restocked_at = as_utc(inventory.last_restocked_at)
    days_since_restock = (utcnow() - restocked_at).days if restocked_at else None
    return {
        "inventory": inventory,
        "sweet": inventory.sweet,
        "recent_movements": movements,
        "total_movements": sum(s["count"] for s in stats.values()),
        "movement_stats": stats,
        "stock_status": stock_status(inventory),
        "days_since_restock": days_since_restock,
    }
