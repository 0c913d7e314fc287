"""Shared helpers for command and orchestration tests."""

import json
import threading

import pytest
from orderflow.cart.items import AddToCart
from orderflow.domain import orderflow
from orderflow.order.order import Order
from orderflow.order.placement import PlaceOrder
from protean import current_domain


@pytest.fixture()
def customer_id():
    return "cust-001"


@pytest.fixture()
def add_to_cart(customer_id):
    def _add(product_id=None, service_variant_id=None, quantity=1, customer=None):
        return current_domain.process(
            AddToCart(
                customer_id=customer or customer_id,
                product_id=product_id,
                service_variant_id=service_variant_id,
                quantity=quantity,
            ),
            asynchronous=False,
        )

    return _add


@pytest.fixture()
def place_order(customer_id, shipping_address):
    def _place(payment_method="bank_transfer", customer=None, email="ada@example.com", shipping=None, **overrides):
        command = PlaceOrder(
            customer_id=customer or customer_id,
            customer_email=email,
            shipping_address=json.dumps(shipping_address if shipping is None else shipping),
            payment_method=payment_method,
            **overrides,
        )
        return current_domain.process(command, asynchronous=False)

    return _place


@pytest.fixture()
def scenario_order(make_product, make_variant, add_to_cart, place_order):
    """Two units of a 100.00 product (stock 5) plus one 50.00 service, placed by bank transfer."""

    def _build(payment_method="bank_transfer"):
        product = make_product(price=100.0, stock=5)
        variant = make_variant(price=50.0)
        add_to_cart(product_id=product.id, quantity=2)
        add_to_cart(service_variant_id=variant.id, quantity=1)
        order_id = place_order(payment_method=payment_method)
        return current_domain.repository_for(Order).get(order_id), product

    return _build


@pytest.fixture()
def run_in_other_thread():
    """Run ``fn`` to completion on a separate thread, as a concurrent request would.

    The thread pushes its own domain context, so its Unit of Work commits
    independently of anything in progress on the calling thread.
    """

    def _run(fn, *args, **kwargs):
        outcome = {}

        def _target():
            with orderflow.domain_context():
                try:
                    outcome["result"] = fn(*args, **kwargs)
                except Exception as exc:
                    outcome["error"] = exc

        thread = threading.Thread(target=_target)
        thread.start()
        thread.join()
        if "error" in outcome:
            raise outcome["error"]
        return outcome.get("result")

    return _run
