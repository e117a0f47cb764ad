"""Tests for the FastAPI adapter."""

import pytest
from fastapi.testclient import TestClient

from shopcore.database import get_db
from shopcore.main import app
from shopcore.utils.clock import get_clock
from shopcore.utils.storage import get_storage
from shopcore.utils.tokenJWT import create_access_token


@pytest.fixture
def client(db, storage, clock):
    def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


def _auth(user):
    token = create_access_token({"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(users):
    return _auth(users["admin"])


@pytest.fixture
def alice(users):
    return _auth(users["alice"])


class TestCatalogRoutes:
    def test_admin_builds_tree(self, client, admin):
        response = client.post("/categories", json={"name": "Snacks"}, headers=admin)
        assert response.status_code == 201
        category_id = response.json()["id"]

        response = client.post(f"/categories/{category_id}/subcategories", json={"name": "Chips"}, headers=admin)
        assert response.status_code == 201
        sub_id = response.json()["id"]

        response = client.post(
            f"/subcategories/{sub_id}/products",
            params={"category_id": category_id},
            json={"name": "Salted Chips", "price": "0.99", "stock": 5},
            headers=admin,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["active"] is True
        assert data["category_id"] == category_id

    def test_clients_cannot_edit_catalog(self, client, alice):
        response = client.post("/categories", json={"name": "Snacks"}, headers=alice)
        assert response.status_code == 403

    def test_catalog_is_public(self, client, beverages):
        response = client.get("/products", params={"category_id": beverages["category"].id})
        assert response.status_code == 200
        assert response.json()["total"] == 2

    def test_missing_product_is_404(self, client):
        response = client.get("/products/404")
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    def test_toggle_reports_cascade(self, client, admin, beverages):
        response = client.patch(f"/categories/{beverages['category'].id}/toggle", headers=admin)
        assert response.status_code == 200
        assert response.json() == {
            "id": beverages["category"].id,
            "active": False,
            "affected_subcategories": 1,
            "affected_products": 2,
        }

    def test_delete_with_dependents_is_conflict(self, client, admin, beverages):
        response = client.delete(f"/categories/{beverages['category'].id}", headers=admin)
        assert response.status_code == 409
        assert response.json()["dependents"] == {"subcategories": 1, "products": 2}

    def test_image_upload(self, client, admin, storage, beverages):
        response = client.post(
            f"/products/{beverages['cola'].id}/image",
            files={"file": ("cola.png", b"\x89PNG fake", "image/png")},
            headers=admin,
        )
        assert response.status_code == 200
        assert response.json()["image_url"] == "http://testserver/uploads/img-1.png"
        assert storage.saved["img-1.png"] == b"\x89PNG fake"

    def test_image_upload_rejects_other_types(self, client, admin, beverages):
        response = client.post(
            f"/products/{beverages['cola'].id}/image",
            files={"file": ("cola.txt", b"hello", "text/plain")},
            headers=admin,
        )
        assert response.status_code == 400


class TestShoppingFlow:
    def test_add_checkout_and_cancel(self, client, alice, beverages):
        cola_id = beverages["cola"].id

        response = client.post("/cart/items", json={"product_id": cola_id, "qty": 3}, headers=alice)
        assert response.status_code == 200
        assert response.json()["summary"]["total"] == "4.50"

        response = client.post(
            "/orders/checkout",
            json={"shipping_address": "1 Main St", "contact_phone": "555-0100"},
            headers=alice,
        )
        assert response.status_code == 201
        order = response.json()
        assert order["status"] == "pending"
        assert order["total"] == "4.50"
        assert order["allowed_transitions"] == ["paid", "cancelled"]
        assert client.get(f"/stock/{cola_id}").json()["stock"] == 7
        assert client.get("/cart", headers=alice).json()["items"] == []

        response = client.post(f"/orders/{order['id']}/cancel", headers=alice)
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert client.get(f"/stock/{cola_id}").json()["stock"] == 10

        response = client.post(f"/orders/{order['id']}/cancel", headers=alice)
        assert response.status_code == 409
        assert response.json()["code"] == "illegal_transition"

    def test_checkout_failure_lists_lines(self, client, alice, admin, beverages):
        lemonade_id = beverages["lemonade"].id
        client.post("/cart/items", json={"product_id": lemonade_id, "qty": 3}, headers=alice)
        client.put(f"/stock/{lemonade_id}", json={"qty": 1}, headers=admin)

        response = client.post(
            "/orders/checkout",
            json={"shipping_address": "1 Main St", "contact_phone": "555-0100"},
            headers=alice,
        )
        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "checkout_failed"
        assert body["failures"][0]["code"] == "insufficient_stock"
        assert body["failures"][0]["available"] == 1

    def test_empty_cart_checkout(self, client, alice):
        response = client.post(
            "/orders/checkout",
            json={"shipping_address": "1 Main St", "contact_phone": "555-0100"},
            headers=alice,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "empty_cart"

    def test_token_for_unknown_user_is_rejected(self, client, beverages):
        token = create_access_token({"sub": "999", "role": "client"})
        response = client.post(
            "/cart/items",
            json={"product_id": beverages["cola"].id, "qty": 1},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401

    def test_adding_over_stock(self, client, alice, beverages):
        response = client.post(
            "/cart/items", json={"product_id": beverages["lemonade"].id, "qty": 4}, headers=alice
        )
        assert response.status_code == 409
        assert response.json()["requested"] == 4


class TestOrderRoutes:
    @pytest.fixture
    def order_id(self, client, alice, beverages):
        client.post("/cart/items", json={"product_id": beverages["cola"].id, "qty": 2}, headers=alice)
        response = client.post(
            "/orders/checkout",
            json={"shipping_address": "1 Main St", "contact_phone": "555-0100"},
            headers=alice,
        )
        return response.json()["id"]

    def test_clients_may_only_cancel(self, client, alice, order_id):
        response = client.patch(f"/orders/{order_id}/status", json={"status": "paid"}, headers=alice)
        assert response.status_code == 403

    def test_admin_moves_order_forward(self, client, admin, order_id):
        response = client.patch(f"/orders/{order_id}/status", json={"status": "paid"}, headers=admin)
        assert response.status_code == 200
        assert response.json()["paid_at"] is not None

        response = client.patch(f"/orders/{order_id}/status", json={"status": "delivered"}, headers=admin)
        assert response.status_code == 409

    def test_other_users_orders_are_hidden(self, client, users, order_id):
        response = client.get(f"/orders/{order_id}", headers=_auth(users["bob"]))
        assert response.status_code == 404

    def test_delete_is_refused(self, client, admin, order_id):
        response = client.delete(f"/orders/{order_id}", headers=admin)
        assert response.status_code == 405
        assert response.json()["code"] == "use_cancel_instead"

    def test_order_history(self, client, alice, admin, order_id):
        response = client.get("/orders", headers=alice)
        assert response.json()["total"] == 1

        response = client.get("/orders", params={"all_users": True, "status": "pending"}, headers=admin)
        assert [o["id"] for o in response.json()["items"]] == [order_id]

    def test_best_sellers(self, client, admin, beverages, order_id):
        response = client.get("/orders/best-sellers", headers=admin)
        assert response.json() == [{"product_id": beverages["cola"].id, "product_name": "Cola", "quantity_sold": 2}]

    def test_movements_are_admin_only(self, client, alice, admin, beverages, order_id):
        assert client.get(f"/stock/{beverages['cola'].id}/movements", headers=alice).status_code == 403

        response = client.get(f"/stock/{beverages['cola'].id}/movements", headers=admin)
        assert response.status_code == 200
        assert response.json()["items"][0]["type"] == "RESERVE"


class TestAuditRoutes:
    def test_audit_trail_filters(self, client, admin, beverages):
        client.patch(f"/products/{beverages['cola'].id}/toggle", headers=admin)

        response = client.get(
            "/audit", params={"resource": "products", "resource_id": beverages["cola"].id}, headers=admin
        )
        assert response.status_code == 200
        actions = [e["action"] for e in response.json()["items"]]
        assert actions == ["PRODUCT_TOGGLE", "PRODUCT_CREATE"]

    def test_audit_trail_is_admin_only(self, client, alice):
        assert client.get("/audit", headers=alice).status_code == 403
