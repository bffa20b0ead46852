from datetime import timedelta

import pytest

from models.stock_movement import StockMovement, StockMovementType
from services import inventory_service, ledger_service, purchase_service
from services.errors import ValidationError
from services.transaction import atomic
from utils.time_utils import utcnow


class TestAppend:
    @pytest.mark.parametrize("quantity", [0, -3])
    def test_magnitude_must_be_positive(self, db_session, sweet, quantity):
        with pytest.raises(ValidationError):
            with atomic() as uow:
                ledger_service.append(uow, sweet.inventory.id, StockMovementType.RESTOCK, quantity)
        assert db_session.query(StockMovement).count() == 0

    def test_inventory_is_required(self, db_session):
        with pytest.raises(ValidationError):
            with atomic() as uow:
                ledger_service.append(uow, None, StockMovementType.SALE, 1)

    def test_unknown_type_is_rejected(self, db_session, sweet):
        with pytest.raises(ValidationError):
            with atomic() as uow:
                ledger_service.append(uow, sweet.inventory.id, "SHRINKAGE", 1)

    def test_delta_carries_the_direction(self, db_session, sweet):
        with atomic() as uow:
            sale = ledger_service.append(uow, sweet.inventory.id, StockMovementType.SALE, 4)
            ret = ledger_service.append(uow, sweet.inventory.id, StockMovementType.RETURN, 4)
        assert sale.quantity == 4 and sale.delta == -4
        assert ret.delta == 4


class TestQuery:
    @pytest.fixture
    def history(self, db_session, sweet, user):
        inventory_service.restock(sweet.id, 20)
        first = purchase_service.create_purchase(user.id, sweet.id, 3)
        purchase_service.create_purchase(user.id, sweet.id, 2)
        purchase_service.cancel_purchase(first.id, user.id)
        return sweet

    def test_summary_covers_the_whole_filtered_set(self, db_session, history):
        result = ledger_service.query(sweet_id=history.id, limit=1)

        assert len(result["items"]) == 1
        assert result["total"] == 4
        assert result["total_pages"] == 4
        assert result["has_next_page"] is True
        assert result["summary"] == {
            "RESTOCK": {"count": 1, "quantity": 20},
            "SALE": {"count": 2, "quantity": 5},
            "RETURN": {"count": 1, "quantity": 3},
        }
        assert result["net_change"] == 20 - 5 + 3

    def test_filter_by_type(self, db_session, history):
        result = ledger_service.query(type=StockMovementType.SALE)
        assert result["total"] == 2
        assert {m.type for m in result["items"]} == {StockMovementType.SALE}
        assert result["net_change"] == -5

    def test_date_range_is_inclusive_of_today(self, db_session, history):
        today = utcnow().date()
        assert ledger_service.query(date_from=today, date_to=today)["total"] == 4
        assert ledger_service.query(date_to=today - timedelta(days=1))["total"] == 0

    def test_sort_falls_back_for_unknown_keys(self, db_session, history):
        result = ledger_service.query(sort="-password")
        assert result["sort"] == "-created_at"

        by_quantity = ledger_service.query(sort="quantity")
        quantities = [m.quantity for m in by_quantity["items"]]
        assert quantities == sorted(quantities)

    def test_net_delta_matches_inventory(self, db_session, history):
        db_session.expire_all()
        inventory = inventory_service.get_inventory(history.id)
        assert 50 + ledger_service.net_delta(inventory.id) == inventory.quantity == 68
