"""Tests for InventoryLedger."""

import pytest
from sqlalchemy import text

from shopcore.database import unit_of_work
from shopcore.errors import InsufficientStock, NotFound, ValidationError
from shopcore.models import MovementType, StockMovement


class TestReads:
    def test_available_and_has_stock(self, ledger, beverages):
        assert ledger.available(beverages["cola"].id) == 10
        assert ledger.has_stock(beverages["cola"].id, 10) is True
        assert ledger.has_stock(beverages["cola"].id, 11) is False

    def test_unknown_product(self, ledger):
        with pytest.raises(NotFound):
            ledger.available(404)


class TestReserve:
    def test_reserve_debits_and_records(self, db, ledger, beverages):
        with unit_of_work(db):
            balance = ledger.reserve(beverages["cola"].id, 4, reason="manual")

        assert balance == 6
        assert beverages["cola"].stock == 6
        movement = db.query(StockMovement).one()
        assert movement.qty == -4
        assert movement.balance == 6
        assert movement.type == MovementType.RESERVE

    def test_reserve_whole_stock(self, db, ledger, beverages):
        with unit_of_work(db):
            assert ledger.reserve(beverages["cola"].id, 10) == 0

    def test_reserve_more_than_available(self, db, ledger, beverages):
        with pytest.raises(InsufficientStock) as exc_info:
            with unit_of_work(db):
                ledger.reserve(beverages["cola"].id, 11)

        assert exc_info.value.available == 10
        assert exc_info.value.requested == 11
        assert ledger.available(beverages["cola"].id) == 10
        assert db.query(StockMovement).count() == 0

    def test_reserve_checks_current_row_not_loaded_value(self, db, ledger, beverages):
        cola = beverages["cola"]
        assert cola.stock == 10
        # Another writer got there first
        db.execute(text("UPDATE products SET stock = 3 WHERE id = :id"), {"id": cola.id})
        db.commit()

        with pytest.raises(InsufficientStock) as exc_info:
            with unit_of_work(db):
                ledger.reserve(cola.id, 6)

        assert exc_info.value.available == 3
        assert ledger.available(cola.id) == 3

    @pytest.mark.parametrize("qty", [0, -1, 1.5, True, "2"])
    def test_reserve_rejects_bad_quantities(self, ledger, beverages, qty):
        with pytest.raises(ValidationError):
            ledger.reserve(beverages["cola"].id, qty)


class TestRestockAndAdjust:
    def test_restock_has_no_upper_bound(self, db, ledger, beverages):
        with unit_of_work(db):
            assert ledger.restock(beverages["cola"].id, 1000, reason="Delivery") == 1010

        movement = db.query(StockMovement).one()
        assert movement.type == MovementType.RESTOCK
        assert movement.qty == 1000

    def test_restock_unknown_product(self, db, ledger):
        with pytest.raises(NotFound):
            with unit_of_work(db):
                ledger.restock(404, 1)

    def test_set_stock_records_delta(self, db, ledger, users, beverages):
        with unit_of_work(db):
            assert ledger.set_stock(beverages["cola"].id, 4, user_id=users["admin"].id, reason="count") == 4

        movement = db.query(StockMovement).one()
        assert movement.type == MovementType.ADJUSTMENT
        assert movement.qty == -6
        assert movement.user_id == users["admin"].id

    def test_set_stock_to_zero(self, db, ledger, beverages):
        with unit_of_work(db):
            assert ledger.set_stock(beverages["lemonade"].id, 0) == 0

    def test_set_stock_negative(self, ledger, beverages):
        with pytest.raises(ValidationError):
            ledger.set_stock(beverages["cola"].id, -1)

    def test_movement_history_newest_first(self, db, ledger, beverages):
        with unit_of_work(db):
            ledger.reserve(beverages["cola"].id, 2)
            ledger.restock(beverages["cola"].id, 5)
            ledger.reserve(beverages["cola"].id, 1)

        rows, total = ledger.movements(beverages["cola"].id, page=1, page_size=2)
        assert total == 3
        assert [m.qty for m in rows] == [-1, 5]
        assert [m.balance for m in rows] == [12, 13]
