"""
Purchase lifecycle.

    PENDING --cancel / updateStatus--> CANCELLED (terminal)
    PENDING --updateStatus--> COMPLETED --updateStatus--> RETURNED (terminal)

Creating a purchase and cancelling one each touch a single inventory row and
append exactly one ledger entry in the same transaction. Status transitions
are conditional UPDATEs, so a purchase is restored to stock at most once no
matter how many cancels race.
"""
from __future__ import annotations

import logging
import secrets
import string
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import joinedload

from models import storage
from models.inventory import Inventory
from models.purchase import Purchase, PurchaseStatus, TERMINAL_STATUSES, MAX_PURCHASE_QUANTITY, MAX_STATS_DAYS
from models.stock_movement import StockMovementType
from models.sweet import Sweet
from models.user import User
from services import ledger_service
from services.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from services.inventory_service import apply_delta, get_inventory
from services.transaction import atomic, lock_for_update
from utils.pagination import apply_date_range, clamp, page_meta
from utils.time_utils import epoch_millis, utcnow

logger = logging.getLogger(__name__)

_ORDER_ALPHABET = string.digits + string.ascii_uppercase
ORDER_NUMBER_ATTEMPTS = 2


def generate_order_number() -> str:
    """ORD-<last 6 digits of epoch ms>-<6 base36 chars>; uniqueness is enforced by the DB."""
    stamp = str(epoch_millis())[-6:]
    suffix = "".join(secrets.choice(_ORDER_ALPHABET) for _ in range(6))
    return f"ORD-{stamp}-{suffix}"


def purchase_cache_patterns(sweet_id):
    return ("purchases:*", f"sweet:{sweet_id}*", "inventory:*")


def _validate_quantity(quantity):
    if quantity is None:
        raise ValidationError("Quantity is required")
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    if quantity > MAX_PURCHASE_QUANTITY:
        raise ValidationError(f"Maximum quantity per purchase is {MAX_PURCHASE_QUANTITY}")


def _place_order(user_id, sweet_id, quantity, order_number, cache):
    with atomic(cache) as uow:
        session = uow.session
        if session.get(User, user_id) is None:
            raise NotFoundError("User not found")
        inventory = get_inventory(sweet_id, session, for_update=True)
        sweet = inventory.sweet

        # First write of the unit: reserve the stock or fail with the available count
        inventory = apply_delta(uow, inventory.id, -quantity)

        unit_price = Decimal(sweet.price)
        purchase = uow.add(
            Purchase(
                order_number=order_number,
                quantity=quantity,
                unit_price=unit_price,
                total_amount=unit_price * quantity,
                status=PurchaseStatus.PENDING,
                user_id=user_id,
                sweet_id=sweet_id,
            )
        )
        uow.flush()
        ledger_service.append(
            uow,
            inventory.id,
            StockMovementType.SALE,
            quantity,
            reason=f"Purchase - Order {order_number}",
            reference=purchase.id,
        )
        uow.invalidate(*purchase_cache_patterns(sweet_id))
    return purchase


def create_purchase(user_id, sweet_id, quantity, cache=None) -> Purchase:
    """
    Reserve stock and record a PENDING purchase in one transaction.
    A lock conflict surfaces as a retryable ConflictError for the caller.
    """
    _validate_quantity(quantity)

    for attempt in range(ORDER_NUMBER_ATTEMPTS):
        order_number = generate_order_number()
        try:
            purchase = _place_order(user_id, sweet_id, quantity, order_number, cache)
        except ConflictError as exc:
            if exc.field == "order_number" and attempt < ORDER_NUMBER_ATTEMPTS - 1:
                logger.warning("order number %s already taken, regenerating", order_number)
                continue
            if exc.field == "order_number":
                raise ConflictError(
                    "Could not allocate a unique order number, please retry",
                    field="order_number",
                ) from exc
            raise
        logger.info(
            "purchase %s (%s) created: user=%s sweet=%s qty=%d",
            purchase.id, purchase.order_number, user_id, sweet_id, quantity,
        )
        return purchase


def _cancel(purchase_id, user_id, cache):
    with atomic(cache) as uow:
        session = uow.session
        purchase = lock_for_update(
            session.query(Purchase)
            .filter(Purchase.id == purchase_id, Purchase.user_id == user_id)
            .populate_existing()
        ).one_or_none()
        if purchase is None:
            raise NotFoundError("Purchase not found")

        flipped = (
            session.query(Purchase)
            .filter(Purchase.id == purchase_id, Purchase.status == PurchaseStatus.PENDING)
            .update(
                {Purchase.status: PurchaseStatus.CANCELLED, Purchase.updated_at: utcnow()},
                synchronize_session=False,
            )
        )
        if flipped == 0:
            current = session.query(Purchase.status).filter(Purchase.id == purchase_id).scalar()
            current = PurchaseStatus(current).value
            raise InvalidStateError(
                f"Purchase with status {current} cannot be cancelled",
                current=current,
                attempted=PurchaseStatus.CANCELLED.value,
            )

        inventory_id = session.query(Inventory.id).filter(Inventory.sweet_id == purchase.sweet_id).scalar()
        if inventory_id is None:
            raise NotFoundError("Inventory not found")
        apply_delta(uow, inventory_id, purchase.quantity)
        ledger_service.append(
            uow,
            inventory_id,
            StockMovementType.RETURN,
            purchase.quantity,
            reason=f"Purchase cancelled - Order {purchase.order_number}",
            reference=purchase.id,
        )
        uow.invalidate(*purchase_cache_patterns(purchase.sweet_id))
        purchase = session.get(Purchase, purchase_id, populate_existing=True)
    return purchase


def cancel_purchase(purchase_id, user_id, cache=None) -> Purchase:
    """Cancel the caller's own PENDING purchase and put its quantity back."""
    purchase = _cancel(purchase_id, user_id, cache)
    logger.info("purchase %s cancelled by user %s", purchase_id, user_id)
    return purchase


def update_purchase_status(purchase_id, status, cache=None) -> Purchase:
    """
    Administrative status change. Never touches inventory; use cancel_purchase
    to put stock back.
    """
    try:
        new_status = PurchaseStatus(status)
    except ValueError:
        raise ValidationError(f"Invalid status {status!r}")

    with atomic(cache) as uow:
        session = uow.session
        purchase = session.get(Purchase, purchase_id, populate_existing=True)
        if purchase is None:
            raise NotFoundError("Purchase not found")
        if purchase.status in TERMINAL_STATUSES:
            raise InvalidStateError(
                f"Cannot change status from {purchase.status.value}",
                current=purchase.status.value,
                attempted=new_status.value,
            )
        updated = (
            session.query(Purchase)
            .filter(Purchase.id == purchase_id, Purchase.status.notin_(list(TERMINAL_STATUSES)))
            .update({Purchase.status: new_status, Purchase.updated_at: utcnow()}, synchronize_session=False)
        )
        if updated == 0:
            current = PurchaseStatus(
                session.query(Purchase.status).filter(Purchase.id == purchase_id).scalar()
            ).value
            raise InvalidStateError(
                f"Cannot change status from {current}", current=current, attempted=new_status.value
            )
        purchase = session.get(Purchase, purchase_id, populate_existing=True)
        uow.invalidate("purchases:*")

    logger.info("purchase %s status set to %s", purchase_id, new_status.value)
    return purchase


def get_purchase(purchase_id, user_id, is_admin=False) -> Purchase:
    session = storage.get_session()
    q = session.query(Purchase).options(joinedload(Purchase.sweet), joinedload(Purchase.user))
    q = q.filter(Purchase.id == purchase_id)
    if not is_admin:
        q = q.filter(Purchase.user_id == user_id)
    purchase = q.one_or_none()
    if purchase is None:
        raise NotFoundError("Purchase not found")
    return purchase


def _filtered(session, *, user_id=None, status=None, start_date=None, end_date=None):
    q = session.query(Purchase)
    if user_id:
        q = q.filter(Purchase.user_id == user_id)
    if status is not None:
        q = q.filter(Purchase.status == PurchaseStatus(status))
    return apply_date_range(q, Purchase.created_at, start_date, end_date)


def _page(q, page, limit):
    return (
        q.options(joinedload(Purchase.sweet), joinedload(Purchase.user))
        .order_by(Purchase.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )


def _money(value) -> float:
    return float(Decimal(value or 0).quantize(Decimal("0.01")))


def list_user_purchases(user_id, *, page=1, limit=10, status=None, start_date=None, end_date=None) -> dict:
    session = storage.get_session()
    page, limit = clamp(page, limit)
    base = _filtered(session, user_id=user_id, status=status, start_date=start_date, end_date=end_date)
    total = base.count()
    spent = (
        base.filter(Purchase.status != PurchaseStatus.CANCELLED)
        .with_entities(func.sum(Purchase.total_amount))
        .scalar()
    )
    return {
        "items": _page(base, page, limit),
        "total_spent": _money(spent),
        **page_meta(page, limit, total),
    }


def list_purchases(*, page=1, limit=10, status=None, user_id=None, start_date=None, end_date=None) -> dict:
    session = storage.get_session()
    page, limit = clamp(page, limit)
    base = _filtered(session, user_id=user_id, status=status, start_date=start_date, end_date=end_date)
    total = base.count()
    revenue, average = (
        base.filter(Purchase.status != PurchaseStatus.CANCELLED)
        .with_entities(func.sum(Purchase.total_amount), func.avg(Purchase.total_amount))
        .one()
    )
    return {
        "items": _page(base, page, limit),
        "total_revenue": _money(revenue),
        "average_order_value": _money(average),
        **page_meta(page, limit, total),
    }


def purchase_stats(days=30) -> dict:
    if not isinstance(days, int) or isinstance(days, bool) or not 1 <= days <= MAX_STATS_DAYS:
        raise ValidationError(f"days must be between 1 and {MAX_STATS_DAYS}")
    session = storage.get_session()
    since = utcnow() - timedelta(days=days)
    window = session.query(Purchase).filter(Purchase.created_at >= since)
    counted = window.filter(Purchase.status != PurchaseStatus.CANCELLED)

    orders, revenue, items_sold, average = counted.with_entities(
        func.count(Purchase.id),
        func.sum(Purchase.total_amount),
        func.sum(Purchase.quantity),
        func.avg(Purchase.total_amount),
    ).one()

    breakdown = [
        {"status": PurchaseStatus(s).value, "count": int(c), "total_amount": _money(t)}
        for s, c, t in window.with_entities(
            Purchase.status, func.count(Purchase.id), func.sum(Purchase.total_amount)
        ).group_by(Purchase.status).all()
    ]

    day = func.date(Purchase.created_at)
    daily = [
        {"date": str(d), "orders": int(o), "revenue": _money(r), "items_sold": int(q or 0)}
        for d, o, r, q in counted.with_entities(
            day, func.count(Purchase.id), func.sum(Purchase.total_amount), func.sum(Purchase.quantity)
        ).group_by(day).order_by(day.desc()).limit(30).all()
    ]

    sold = func.sum(Purchase.quantity)
    top_rows = (
        counted.join(Sweet, Sweet.id == Purchase.sweet_id)
        .with_entities(
            Sweet.id, Sweet.name, Sweet.category, Sweet.image_url,
            func.count(Purchase.id), sold, func.sum(Purchase.total_amount),
        )
        .group_by(Sweet.id, Sweet.name, Sweet.category, Sweet.image_url)
        .order_by(sold.desc())
        .limit(10)
        .all()
    )
    top_sweets = [
        {
            "sweet": {"id": sid, "name": name, "category": category.value, "image_url": image_url},
            "orders": int(count),
            "quantity": int(qty or 0),
            "revenue": _money(rev),
        }
        for sid, name, category, image_url, count, qty, rev in top_rows
    ]

    return {
        "summary": {
            "total_orders": int(orders or 0),
            "total_revenue": _money(revenue),
            "total_items_sold": int(items_sold or 0),
            "average_order_value": _money(average),
        },
        "status_breakdown": breakdown,
        "daily_stats": daily,
        "top_sweets": top_sweets,
        "period": f"Last {days} days",
    }
