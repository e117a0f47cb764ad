"""Tests for the per-user cart."""

from decimal import Decimal

import pytest

from shopcore.errors import InsufficientStock, NotFound, ProductInactive, ValidationError


class TestAddItem:
    def test_add_snapshots_price(self, cart, users, beverages):
        line = cart.add_item(users["alice"].id, beverages["cola"].id, 3)
        assert line.quantity == 3
        assert line.unit_price_snapshot == Decimal("1.50")

    def test_adding_again_merges_lines(self, cart, users, beverages):
        cart.add_item(users["alice"].id, beverages["cola"].id, 3)
        cart.add_item(users["alice"].id, beverages["cola"].id, 2)

        lines = cart.lines(users["alice"].id)
        assert len(lines) == 1
        assert lines[0].quantity == 5

    def test_merged_quantity_checked_against_stock(self, cart, users, beverages):
        cart.add_item(users["alice"].id, beverages["lemonade"].id, 2)
        with pytest.raises(InsufficientStock) as exc_info:
            cart.add_item(users["alice"].id, beverages["lemonade"].id, 2)

        assert exc_info.value.requested == 4
        assert cart.lines(users["alice"].id)[0].quantity == 2

    def test_snapshot_kept_unless_refreshed(self, cart, catalog, users, beverages):
        cart.add_item(users["alice"].id, beverages["cola"].id, 1)
        catalog.update_product(beverages["cola"].id, {"price": "2.00"})

        line = cart.add_item(users["alice"].id, beverages["cola"].id, 1)
        assert line.unit_price_snapshot == Decimal("1.50")

        line = cart.add_item(users["alice"].id, beverages["cola"].id, 1, refresh_price=True)
        assert line.unit_price_snapshot == Decimal("2.00")

    def test_adding_does_not_reserve(self, cart, ledger, users, beverages):
        cart.add_item(users["alice"].id, beverages["cola"].id, 8)
        cart.add_item(users["bob"].id, beverages["cola"].id, 8)
        assert ledger.available(beverages["cola"].id) == 10

    def test_inactive_product(self, cart, catalog, users, beverages):
        catalog.toggle_product(beverages["cola"].id)
        with pytest.raises(ProductInactive):
            cart.add_item(users["alice"].id, beverages["cola"].id, 1)

    def test_unknown_product(self, cart, users, beverages):
        with pytest.raises(NotFound):
            cart.add_item(users["alice"].id, 404, 1)

    def test_unknown_user(self, db, cart, beverages):
        with pytest.raises(NotFound) as exc_info:
            cart.add_item(999, beverages["cola"].id, 1)
        assert exc_info.value.resource == "User"
        assert cart.lines(999) == []

    @pytest.mark.parametrize("qty", [0, -2])
    def test_quantity_must_be_positive(self, cart, users, beverages, qty):
        with pytest.raises(ValidationError):
            cart.add_item(users["alice"].id, beverages["cola"].id, qty)


class TestChangeLines:
    def test_update_quantity_sets_value(self, cart, users, beverages):
        cart.add_item(users["alice"].id, beverages["cola"].id, 1)
        line = cart.update_quantity(users["alice"].id, beverages["cola"].id, 7)
        assert line.quantity == 7

    def test_update_quantity_over_stock(self, cart, users, beverages):
        cart.add_item(users["alice"].id, beverages["lemonade"].id, 1)
        with pytest.raises(InsufficientStock):
            cart.update_quantity(users["alice"].id, beverages["lemonade"].id, 4)

    def test_update_quantity_of_deactivated_product(self, cart, catalog, users, beverages):
        cart.add_item(users["alice"].id, beverages["cola"].id, 1)
        catalog.toggle_product(beverages["cola"].id)
        with pytest.raises(ProductInactive):
            cart.update_quantity(users["alice"].id, beverages["cola"].id, 2)

    def test_update_missing_line(self, cart, users, beverages):
        with pytest.raises(NotFound):
            cart.update_quantity(users["alice"].id, beverages["cola"].id, 2)

    def test_remove_item(self, cart, users, beverages):
        cart.add_item(users["alice"].id, beverages["cola"].id, 1)
        cart.remove_item(users["alice"].id, beverages["cola"].id)
        assert cart.lines(users["alice"].id) == []

        with pytest.raises(NotFound):
            cart.remove_item(users["alice"].id, beverages["cola"].id)

    def test_clear_only_touches_one_user(self, cart, users, beverages):
        cart.add_item(users["alice"].id, beverages["cola"].id, 1)
        cart.add_item(users["alice"].id, beverages["lemonade"].id, 1)
        cart.add_item(users["bob"].id, beverages["cola"].id, 1)

        assert cart.clear(users["alice"].id) == 2
        assert cart.lines(users["alice"].id) == []
        assert len(cart.lines(users["bob"].id)) == 1


class TestTotals:
    def test_total_uses_snapshots(self, cart, catalog, users, beverages):
        cart.add_item(users["alice"].id, beverages["cola"].id, 3)
        cart.add_item(users["alice"].id, beverages["lemonade"].id, 2)
        catalog.update_product(beverages["cola"].id, {"price": "9.99"})

        assert cart.total(users["alice"].id) == Decimal("8.48")

    def test_empty_cart_total(self, cart, users):
        assert cart.total(users["alice"].id) == Decimal("0.00")

    def test_cart_view(self, cart, users, beverages):
        cart.add_item(users["alice"].id, beverages["cola"].id, 2)
        view = cart.get_cart(users["alice"].id)

        assert view.summary.lines == 1
        assert view.summary.total_quantity == 2
        assert view.summary.total == Decimal("3.00")
        assert view.items[0].name == "Cola"
        assert view.items[0].available_stock == 10
