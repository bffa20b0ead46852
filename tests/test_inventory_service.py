import pytest
from sqlalchemy.dialects import postgresql

from models.inventory import Inventory
from models.stock_movement import StockMovement, StockMovementType
from services import catalog_service, inventory_service, ledger_service
from services.errors import ConflictError, NotFoundError, OutOfStockError, ValidationError
from services.transaction import atomic, lock_for_update


def _reload(db_session, inventory_id):
    db_session.expire_all()
    return db_session.get(Inventory, inventory_id)


class TestApplyDelta:
    def test_refuses_to_go_negative(self, db_session, sweet):
        inventory_id = sweet.inventory.id
        with pytest.raises(OutOfStockError) as exc:
            with atomic() as uow:
                inventory_service.apply_delta(uow, inventory_id, -51)

        assert exc.value.available == 50
        assert exc.value.requested == 51
        assert "Only 50 items in stock" in exc.value.message
        assert _reload(db_session, inventory_id).quantity == 50

    def test_can_take_stock_to_exactly_zero(self, db_session, sweet):
        with atomic() as uow:
            inventory = inventory_service.apply_delta(uow, sweet.inventory.id, -50)
        assert inventory.quantity == 0

    def test_unknown_row_is_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            with atomic() as uow:
                inventory_service.apply_delta(uow, "missing", 5)

    def test_only_restock_touches_last_restocked_at(self, db_session, sweet):
        with atomic() as uow:
            inventory = inventory_service.apply_delta(uow, sweet.inventory.id, 3)
        assert inventory.last_restocked_at is None

        with atomic() as uow:
            inventory = inventory_service.apply_delta(uow, sweet.inventory.id, 3, restocked=True)
        assert inventory.last_restocked_at is not None


class TestRestock:
    def test_restock_adds_stock_and_records_movement(self, db_session, sweet):
        result = inventory_service.restock(sweet.id, 25)

        assert result["previous_quantity"] == 50
        assert result["new_quantity"] == 75
        movement = result["stock_movement"]
        assert movement.type == StockMovementType.RESTOCK
        assert movement.quantity == 25
        assert movement.reason == "Restock of 25 units"
        assert movement.reference.startswith("RESTOCK-")

        inventory = _reload(db_session, sweet.inventory.id)
        assert inventory.quantity == 75
        assert inventory.last_restocked_at is not None

    def test_custom_reason_is_kept(self, db_session, sweet):
        result = inventory_service.restock(sweet.id, 5, reason="Supplier delivery")
        assert result["stock_movement"].reason == "Supplier delivery"

    @pytest.mark.parametrize("quantity", [0, -1, 10001, 2.5, True])
    def test_rejects_out_of_range_quantity(self, db_session, sweet, quantity):
        with pytest.raises(ValidationError):
            inventory_service.restock(sweet.id, quantity)
        assert db_session.query(StockMovement).count() == 0

    def test_inactive_sweet_cannot_be_restocked(self, db_session, sweet):
        catalog_service.delete_sweet(sweet.id)
        with pytest.raises(NotFoundError):
            inventory_service.restock(sweet.id, 5)


class TestSetThresholds:
    def test_min_must_be_below_max(self, db_session, sweet):
        with pytest.raises(ValidationError) as exc:
            inventory_service.set_thresholds(sweet.id, min_stock_level=20, max_stock_level=20)
        assert exc.value.message == "Minimum stock level must be less than maximum stock level"
        assert _reload(db_session, sweet.inventory.id).min_stock_level == 5

    def test_reorder_point_must_cover_minimum(self, db_session, sweet):
        with pytest.raises(ValidationError) as exc:
            inventory_service.set_thresholds(sweet.id, min_stock_level=10, reorder_point=5)
        assert exc.value.message == "Reorder point must be greater than or equal to minimum stock level"

    def test_negative_values_are_rejected(self, db_session, sweet):
        with pytest.raises(ValidationError):
            inventory_service.set_thresholds(sweet.id, reorder_point=-1)

    def test_updates_thresholds(self, db_session, sweet):
        inventory_service.set_thresholds(sweet.id, min_stock_level=2, max_stock_level=80, reorder_point=4)
        inventory = _reload(db_session, sweet.inventory.id)
        assert (inventory.min_stock_level, inventory.max_stock_level, inventory.reorder_point) == (2, 80, 4)
        assert inventory.quantity == 50

    def test_quantity_override_books_an_adjustment(self, db_session, sweet):
        inventory_service.set_thresholds(sweet.id, quantity=30, reason="Breakage")

        movements = db_session.query(StockMovement).all()
        assert len(movements) == 1
        assert movements[0].type == StockMovementType.ADJUSTMENT_OUT
        assert movements[0].quantity == 20
        assert movements[0].reason == "Breakage"

        inventory_service.set_thresholds(sweet.id, quantity=45)
        inventory = _reload(db_session, sweet.inventory.id)
        assert inventory.quantity == 45
        assert 50 + ledger_service.net_delta(inventory.id) == inventory.quantity

    def test_same_quantity_books_nothing(self, db_session, sweet):
        inventory_service.set_thresholds(sweet.id, quantity=50)
        assert db_session.query(StockMovement).count() == 0

    def test_override_conflicts_when_stock_moves_underneath(self, db_session, sweet, monkeypatch):
        read_inventory = inventory_service.get_inventory

        def read_then_sell(sweet_id, session=None, **kwargs):
            inventory = read_inventory(sweet_id, session, **kwargs)
            # another buyer takes 5 after the row was read
            session.query(Inventory).filter(Inventory.id == inventory.id).update(
                {Inventory.quantity: Inventory.quantity - 5}, synchronize_session=False
            )
            return inventory

        monkeypatch.setattr(inventory_service, "get_inventory", read_then_sell)

        with pytest.raises(ConflictError) as exc:
            inventory_service.set_thresholds(sweet.id, quantity=60, reorder_point=12)

        assert exc.value.retryable is True
        assert exc.value.details == {"expected": 50, "current": 45}
        inventory = _reload(db_session, sweet.inventory.id)
        assert (inventory.quantity, inventory.reorder_point) == (50, 10)
        assert db_session.query(StockMovement).count() == 0

    def test_override_reads_with_a_row_lock(self, db_session, sweet, monkeypatch):
        seen = []
        read_inventory = inventory_service.get_inventory

        def spy(sweet_id, session=None, **kwargs):
            seen.append(kwargs.get("for_update"))
            return read_inventory(sweet_id, session, **kwargs)

        monkeypatch.setattr(inventory_service, "get_inventory", spy)
        inventory_service.set_thresholds(sweet.id, quantity=40)

        assert seen == [True]
        assert _reload(db_session, sweet.inventory.id).quantity == 40


def test_lock_for_update_renders_for_update_on_postgres(db_session):
    query = lock_for_update(db_session.query(Inventory).filter(Inventory.sweet_id == "x"))
    sql = str(query.statement.compile(dialect=postgresql.dialect()))
    assert sql.rstrip().endswith("FOR UPDATE")


class TestProjections:
    def test_stock_status(self):
        def inv(q):
            return Inventory(quantity=q, reorder_point=10, max_stock_level=100)

        assert inventory_service.stock_status(inv(0)) == "OUT_OF_STOCK"
        assert inventory_service.stock_status(inv(10)) == "LOW_STOCK"
        assert inventory_service.stock_status(inv(50)) == "NORMAL"
        assert inventory_service.stock_status(inv(101)) == "OVERSTOCKED"

    def test_low_stock_items_are_ordered_emptiest_first(self, db_session, make_sweet):
        make_sweet("Plenty", quantity=500)
        make_sweet("Three Left", quantity=3)
        make_sweet("None Left", quantity=0)

        names = [i.sweet.name for i in inventory_service.low_stock_items()]
        assert names == ["None Left", "Three Left"]

    def test_inventory_status_stats(self, db_session, make_sweet):
        make_sweet("Plenty", quantity=100, price="1.00")
        make_sweet("Empty", quantity=0, price="4.00")

        result = inventory_service.inventory_status()
        stats = result["stats"]
        assert stats["total_items"] == 2
        assert stats["out_of_stock_items"] == 1
        assert stats["low_stock_items"] == 1
        assert stats["total_quantity"] == 100
        assert stats["total_value"] == 100.0
        assert stats["average_quantity_per_item"] == 50

    def test_sweet_inventory_detail(self, db_session, sweet):
        detail = inventory_service.sweet_inventory(sweet.id)
        assert detail["days_since_restock"] is None
        assert detail["total_movements"] == 0

        inventory_service.restock(sweet.id, 10)
        detail = inventory_service.sweet_inventory(sweet.id)
        assert detail["days_since_restock"] == 0
        assert detail["total_movements"] == 1
        assert detail["movement_stats"]["RESTOCK"] == {"count": 1, "quantity": 10}
        assert detail["stock_status"] == "NORMAL"
