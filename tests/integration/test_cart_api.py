"""Integration tests for Cart API endpoints via TestClient."""

from orderflow.cart.cart import Cart
from protean import current_domain


class TestCartEndpoints:
    def test_get_cart_creates_it(self, client, customer_headers):
        response = client.get("/cart", headers=customer_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["customer_id"] == "cust-api-001"
        assert body["items"] == []
        assert body["total"] == 0.0

    def test_requires_identity(self, client):
        assert client.get("/cart").status_code == 401

    def test_add_items_returns_snapshot(self, client, customer_headers, make_product, make_variant):
        product = make_product(price=100.0, stock=5)
        variant = make_variant(price=50.0)

        client.post("/cart/items", json={"product_id": product.id, "quantity": 2}, headers=customer_headers)
        response = client.post("/cart/items", json={"service_variant_id": variant.id}, headers=customer_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["total"] == 250.0
        assert body["item_count"] == 3
        assert body["orderable"] is True

    def test_add_beyond_stock(self, client, customer_headers, make_product):
        product = make_product(name="Shea Butter Jar", stock=1)

        response = client.post("/cart/items", json={"product_id": product.id, "quantity": 2}, headers=customer_headers)

        assert response.status_code == 400
        assert response.json()["available"] == 1
        assert response.json()["requested"] == 2

    def test_add_unknown_product(self, client, customer_headers):
        response = client.post("/cart/items", json={"product_id": "nope"}, headers=customer_headers)
        assert response.status_code == 404

    def test_add_with_both_references(self, client, customer_headers, make_product, make_variant):
        product = make_product()
        variant = make_variant()
        response = client.post(
            "/cart/items",
            json={"product_id": product.id, "service_variant_id": variant.id},
            headers=customer_headers,
        )
        assert response.status_code == 400

    def test_update_and_remove_line(self, client, customer_headers, make_product):
        product = make_product(price=10.0, stock=5)
        body = client.post("/cart/items", json={"product_id": product.id}, headers=customer_headers).json()
        line_id = body["items"][0]["line_id"]

        updated = client.put(f"/cart/items/{line_id}", json={"quantity": 3}, headers=customer_headers)
        assert updated.status_code == 200
        assert updated.json()["total"] == 30.0

        removed = client.delete(f"/cart/items/{line_id}", headers=customer_headers)
        assert removed.status_code == 200
        assert removed.json()["items"] == []

    def test_update_to_zero_rejected(self, client, customer_headers, make_product):
        product = make_product()
        body = client.post("/cart/items", json={"product_id": product.id}, headers=customer_headers).json()
        line_id = body["items"][0]["line_id"]

        response = client.put(f"/cart/items/{line_id}", json={"quantity": 0}, headers=customer_headers)
        assert response.status_code == 400

    def test_clear_cart(self, client, customer_headers, fill_cart):
        fill_cart()

        response = client.delete("/cart", headers=customer_headers)

        assert response.status_code == 200
        cart = current_domain.repository_for(Cart).for_customer("cust-api-001")
        assert cart.is_empty
