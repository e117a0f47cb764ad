"""Pytest fixtures for shopcore tests."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shopcore.database import init_db, make_engine
from shopcore.models import User
from shopcore.services import Cart, CatalogHierarchy, CheckoutTransaction, InventoryLedger, OrderLifecycle
from shopcore.utils.clock import FixedClock


class MemoryStorage:
    """File storage double that remembers what was deleted."""

    def __init__(self, fail_on_delete=False):
        self.saved = {}
        self.deleted = []
        self.fail_on_delete = fail_on_delete

    def save(self, stream, content_type):
        ref = f"img-{len(self.saved) + 1}.png"
        self.saved[ref] = stream.read()
        return ref

    def url_for(self, ref):
        if not ref:
            return None
        return f"http://testserver/uploads/{ref}"

    def delete(self, ref):
        if self.fail_on_delete:
            raise OSError("disk unavailable")
        self.deleted.append(ref)
        return True


@pytest.fixture
def engine():
    """In-memory SQLite shared by every session of one test."""
    engine = make_engine("sqlite://", poolclass=StaticPool)
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def users(db):
    """An admin and two clients."""
    admin = User(email="admin@shop.test", name="Admin", role="admin")
    alice = User(email="alice@shop.test", name="Alice", role="client")
    bob = User(email="bob@shop.test", name="Bob", role="client")
    db.add_all([admin, alice, bob])
    db.commit()
    return {"admin": admin, "alice": alice, "bob": bob}


@pytest.fixture
def catalog(db, storage):
    return CatalogHierarchy(db, storage)


@pytest.fixture
def ledger(db):
    return InventoryLedger(db)


@pytest.fixture
def cart(db):
    return Cart(db)


@pytest.fixture
def checkout(db):
    return CheckoutTransaction(db)


@pytest.fixture
def lifecycle(db, clock):
    return OrderLifecycle(db, clock=clock)


@pytest.fixture
def beverages(catalog, users):
    """Beverages > Soda > Cola (10 in stock at 1.50) and Lemonade (3 at 1.99)."""
    category = catalog.create_category({"name": "Beverages"})
    soda = catalog.create_subcategory(category.id, {"name": "Soda"})
    cola = catalog.create_product(soda.id, category.id, {"name": "Cola", "price": Decimal("1.50"), "stock": 10})
    lemonade = catalog.create_product(
        soda.id, category.id, {"name": "Lemonade", "price": Decimal("1.99"), "stock": 3}
    )
    return {"category": category, "soda": soda, "cola": cola, "lemonade": lemonade}


@pytest.fixture
def broken_storage():
    return MemoryStorage(fail_on_delete=True)
