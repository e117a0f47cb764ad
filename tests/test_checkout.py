"""Tests for the cart -> order conversion."""

import threading
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from shopcore.database import init_db, make_engine
from shopcore.errors import CheckoutFailed, EmptyCart, InsufficientStock, NotFound, ProductInactive, ValidationError
from shopcore.models import AuditEntry, CartItem, Order, OrderStatus, Product, StockMovement, User
from shopcore.services import Cart, CatalogHierarchy, CheckoutTransaction, InventoryLedger


def _place(checkout, user):
    return checkout.checkout(user.id, "1 Main St", "555-0100", notes="leave at door")


class TestCheckout:
    def test_cart_becomes_pending_order(self, db, cart, checkout, ledger, users, beverages):
        alice = users["alice"]
        cart.add_item(alice.id, beverages["cola"].id, 3)

        order = _place(checkout, alice)

        assert order.status == OrderStatus.PENDING
        assert order.total == Decimal("4.50")
        assert [(i.product_id, i.quantity, i.subtotal) for i in order.items] == [
            (beverages["cola"].id, 3, Decimal("4.50"))
        ]
        assert ledger.available(beverages["cola"].id) == 7
        assert cart.lines(alice.id) == []

    def test_reservations_reference_the_order(self, db, cart, checkout, users, beverages):
        cart.add_item(users["alice"].id, beverages["cola"].id, 2)
        cart.add_item(users["alice"].id, beverages["lemonade"].id, 1)

        order = _place(checkout, users["alice"])

        movements = db.query(StockMovement).order_by(StockMovement.id).all()
        assert {m.order_id for m in movements} == {order.id}
        assert sorted(m.qty for m in movements) == [-2, -1]
        assert db.query(AuditEntry).filter_by(action="ORDER_CHECKOUT").count() == 1

    def test_price_captured_at_checkout(self, cart, catalog, checkout, users, beverages):
        cart.add_item(users["alice"].id, beverages["cola"].id, 2)
        catalog.update_product(beverages["cola"].id, {"price": "2.25"})

        order = _place(checkout, users["alice"])

        assert order.items[0].unit_price_snapshot == Decimal("2.25")
        assert order.total == Decimal("4.50")

    def test_empty_cart(self, checkout, users):
        with pytest.raises(EmptyCart):
            _place(checkout, users["alice"])

    def test_unknown_user(self, db, checkout, beverages):
        with pytest.raises(NotFound) as exc_info:
            checkout.checkout(999, "1 Main St", "555-0100")
        assert exc_info.value.resource == "User"
        assert db.query(Order).count() == 0

    def test_contact_details_required(self, cart, checkout, users, beverages):
        cart.add_item(users["alice"].id, beverages["cola"].id, 1)
        with pytest.raises(ValidationError) as exc_info:
            checkout.checkout(users["alice"].id, "  ", "")
        assert {"shipping_address", "contact_phone"} <= set(exc_info.value.errors)


class TestCheckoutFailures:
    def test_every_failing_line_reported(self, db, cart, catalog, checkout, ledger, users, beverages):
        alice = users["alice"]
        cart.add_item(alice.id, beverages["cola"].id, 5)
        cart.add_item(alice.id, beverages["lemonade"].id, 2)
        # Stock moved and a product was switched off after the items were added
        ledger.set_stock(beverages["cola"].id, 1)
        db.commit()
        catalog.toggle_product(beverages["lemonade"].id)

        with pytest.raises(CheckoutFailed) as exc_info:
            _place(checkout, alice)

        kinds = {type(f) for f in exc_info.value.failures}
        assert kinds == {InsufficientStock, ProductInactive}

    def test_failure_leaves_no_trace(self, db, cart, checkout, ledger, users, beverages):
        alice = users["alice"]
        cart.add_item(alice.id, beverages["cola"].id, 2)
        cart.add_item(alice.id, beverages["lemonade"].id, 3)
        ledger.set_stock(beverages["lemonade"].id, 1)
        db.commit()
        movements_before = db.query(StockMovement).count()

        with pytest.raises(CheckoutFailed):
            _place(checkout, alice)

        assert db.query(Order).count() == 0
        assert db.query(StockMovement).count() == movements_before
        assert ledger.available(beverages["cola"].id) == 10
        assert len(cart.lines(alice.id)) == 2

    def test_lost_reservation_rolls_back_everything(self, db, cart, users, beverages):
        alice = users["alice"]
        cart.add_item(alice.id, beverages["cola"].id, 2)
        cart.add_item(alice.id, beverages["lemonade"].id, 3)

        class RacingLedger(InventoryLedger):
            # Someone else empties lemonade between validation and debit
            def reserve(self, product_id, qty, **kwargs):
                if product_id == beverages["lemonade"].id:
                    raise InsufficientStock(product_id, 0, qty)
                return super().reserve(product_id, qty, **kwargs)

        checkout = CheckoutTransaction(db, ledger=RacingLedger(db))
        with pytest.raises(CheckoutFailed) as exc_info:
            _place(checkout, alice)

        assert isinstance(exc_info.value.failures[0], InsufficientStock)
        assert db.query(Order).count() == 0
        assert InventoryLedger(db).available(beverages["cola"].id) == 10
        assert len(cart.lines(alice.id)) == 2


class TestConcurrentCheckout:
    @pytest.fixture
    def file_engine(self, tmp_path):
        engine = make_engine(f"sqlite:///{tmp_path / 'race.db'}")
        init_db(bind=engine)
        yield engine
        engine.dispose()

    def test_only_one_of_two_checkouts_wins(self, file_engine):
        Session = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=file_engine)

        with Session() as setup:
            shoppers = [User(email=f"u{i}@shop.test", role="client") for i in range(2)]
            setup.add_all(shoppers)
            setup.commit()
            catalog = CatalogHierarchy(setup)
            category = catalog.create_category({"name": "Beverages"})
            soda = catalog.create_subcategory(category.id, {"name": "Soda"})
            cola = catalog.create_product(soda.id, category.id, {"name": "Cola", "price": "1.50", "stock": 10})
            for shopper in shoppers:
                Cart(setup).add_item(shopper.id, cola.id, 6)
            user_ids = [s.id for s in shoppers]

        barrier = threading.Barrier(2)
        outcomes = {}

        def run(user_id):
            with Session() as session:
                barrier.wait()
                try:
                    outcomes[user_id] = CheckoutTransaction(session).checkout(user_id, "1 Main St", "555-0100")
                except CheckoutFailed as exc:
                    outcomes[user_id] = exc

        threads = [threading.Thread(target=run, args=(uid,)) for uid in user_ids]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        orders = [o for o in outcomes.values() if isinstance(o, Order)]
        failures = [o for o in outcomes.values() if isinstance(o, CheckoutFailed)]
        assert len(orders) == 1
        assert len(failures) == 1
        assert isinstance(failures[0].failures[0], InsufficientStock)

        with Session() as check:
            assert check.get(Product, cola.id).stock == 4
            assert check.query(Order).count() == 1
            loser = next(uid for uid, o in outcomes.items() if isinstance(o, CheckoutFailed))
            assert check.query(CartItem).filter_by(user_id=loser).count() == 1
