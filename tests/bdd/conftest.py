"""Shared BDD fixtures and step definitions for checkout scenarios."""

import json

import pytest
from orderflow.cart.cart import Cart
from orderflow.cart.items import AddToCart
from orderflow.catalog.product import Product
from orderflow.order.order import Order
from orderflow.order.placement import PlaceOrder
from orderflow.payment.payment import Payment
from protean import current_domain
from pytest_bdd import given, parsers, then


@pytest.fixture()
def customer_id():
    return "cust-001"


@pytest.fixture()
def catalogue():
    """Name → (field, id) for products and variants created by steps."""
    return {}


@pytest.fixture()
def context():
    """Scenario state: order id, last result and captured error."""
    return {"order_id": None, "result": None, "error": None}


def _add(customer, item, quantity):
    field, item_id = item
    current_domain.process(AddToCart(customer_id=customer, quantity=quantity, **{field: item_id}), asynchronous=False)


def _place(customer, payment_method, shipping_address) -> str:
    return current_domain.process(
        PlaceOrder(
            customer_id=customer,
            customer_email="ada@example.com",
            shipping_address=json.dumps(shipping_address),
            payment_method=payment_method,
        ),
        asynchronous=False,
    )


def _order(context) -> Order:
    return current_domain.repository_for(Order).get(context["order_id"])


def _payment(context) -> Payment:
    return current_domain.repository_for(Payment).for_order(context["order_id"])


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{name}" priced {price:f} with {stock:d} units in stock'))
def _(make_product, catalogue, name, price, stock):
    catalogue[name] = ("product_id", make_product(name=name, price=price, stock=stock).id)


@given(parsers.cfparse('a service variant "{name}" priced {price:f}'))
def _(make_variant, catalogue, name, price):
    catalogue[name] = ("service_variant_id", make_variant(name=name, price=price).id)


@given(parsers.cfparse('the customer has {quantity:d} of "{name}" in the cart'))
def _(catalogue, customer_id, quantity, name):
    _add(customer_id, catalogue[name], quantity)


@given(parsers.cfparse('customer "{customer}" has {quantity:d} of "{name}" in the cart'))
def _(catalogue, customer, quantity, name):
    _add(customer, catalogue[name], quantity)


@given(parsers.cfparse('the customer checked out by "{method}"'))
def _(context, customer_id, shipping_address, method):
    context["order_id"] = _place(customer_id, method, shipping_address)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the order total is {total:f}"))
def _(context, total):
    assert _order(context).total == total


@then(parsers.cfparse('the order payment status is "{status}"'))
def _(context, status):
    assert _order(context).payment_status == status


@then(parsers.cfparse('the order status is "{status}"'))
def _(context, status):
    assert _order(context).order_status == status


@then(parsers.cfparse('the payment status is "{status}"'))
def _(context, status):
    assert _payment(context).status == status


@then(parsers.cfparse('"{name}" has {stock:d} units in stock'))
def _(catalogue, name, stock):
    assert current_domain.repository_for(Product).get(catalogue[name][1]).stock == stock


@then("the cart is empty")
def _(customer_id):
    assert current_domain.repository_for(Cart).for_customer(customer_id).is_empty
