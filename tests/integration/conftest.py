import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from orderflow.api import admin_router, cart_router, checkout_router, order_router, payment_router
from orderflow.api.errors import register_error_handlers

CUSTOMER = {"X-User-Id": "cust-api-001"}
ADMIN = {"X-User-Id": "admin-001", "X-User-Role": "admin"}


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(cart_router)
    app.include_router(checkout_router)
    app.include_router(order_router)
    app.include_router(payment_router)
    app.include_router(admin_router)
    register_error_handlers(app)
    return TestClient(app)


@pytest.fixture()
def customer_headers():
    return dict(CUSTOMER)


@pytest.fixture()
def admin_headers():
    return dict(ADMIN)


@pytest.fixture()
def checkout_body(shipping_address):
    return {"customer_email": "ada@example.com", "shipping_address": shipping_address}


@pytest.fixture()
def fill_cart(client, customer_headers, make_product, make_variant):
    """Two units of a 100.00 product (stock 5) and one 50.00 service variant."""

    def _fill():
        product = make_product(price=100.0, stock=5)
        variant = make_variant(price=50.0)
        client.post("/cart/items", json={"product_id": product.id, "quantity": 2}, headers=customer_headers)
        client.post("/cart/items", json={"service_variant_id": variant.id}, headers=customer_headers)
        return product

    return _fill
