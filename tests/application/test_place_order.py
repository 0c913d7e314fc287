"""Application tests for PlaceOrder: totals, stock reservation and rollback."""

import pytest
from orderflow.cart.cart import Cart
from orderflow.catalog.product import Product
from orderflow.order.order import Order, OrderStatus, PaymentStatus
from orderflow.order.placement import checkout_summary, payment_instructions
from orderflow.payment.payment import Payment, PaymentRecordStatus
from orderflow.shared.errors import ConflictError, InsufficientStockError, NotFoundError
from protean import current_domain
from protean.exceptions import ValidationError


def _stock(product_id):
    return current_domain.repository_for(Product).get(product_id).stock


def _orders():
    return current_domain.repository_for(Order).matching()


def _cart_of(customer_id):
    return current_domain.repository_for(Cart).for_customer(customer_id)


class TestBankTransferCheckout:
    def test_mixed_cart_places_order_and_reserves_stock(self, scenario_order):
        order, product = scenario_order()

        assert order.total == 250.0
        assert order.subtotal == 250.0
        assert order.payment_status == PaymentStatus.PENDING.value
        assert order.order_status == OrderStatus.PENDING.value
        assert _stock(product.id) == 3

    def test_items_are_frozen_with_names(self, scenario_order):
        order, _ = scenario_order()
        names = sorted(item.name for item in order.items)
        assert names == ["Home Cleaning - Standard Session", "Shea Butter Jar"]

    def test_pending_payment_is_created(self, scenario_order):
        order, _ = scenario_order()
        payment = current_domain.repository_for(Payment).for_order(order.id)

        assert payment.status == PaymentRecordStatus.PENDING.value
        assert payment.amount == 250.0
        assert payment.transaction_reference == order.order_number
        assert payment.payment_method == "bank_transfer"

    def test_cart_is_cleared(self, scenario_order, customer_id):
        scenario_order()
        cart = _cart_of(customer_id)
        assert cart.is_empty
        assert cart.total == 0.0

    def test_billing_defaults_to_shipping(self, scenario_order):
        order, _ = scenario_order()
        assert order.billing_address.street == order.shipping_address.street
        assert order.billing_address.phone == order.shipping_address.phone

    def test_payment_instructions(self, scenario_order):
        order, _ = scenario_order()
        instructions = payment_instructions(order)

        assert instructions["reference"] == order.order_number
        assert instructions["amount"] == 250.0
        assert instructions["account_number"]
        assert order.order_number in instructions["instructions"]

    def test_cash_on_delivery_instructions(self, scenario_order):
        order, _ = scenario_order(payment_method="cash_on_delivery")
        instructions = payment_instructions(order)
        assert instructions["payment_method"] == "cash_on_delivery"
        assert "bank_name" not in instructions

    def test_gateway_order_has_no_instructions(self, scenario_order):
        order, _ = scenario_order(payment_method="gateway")
        assert payment_instructions(order) is None


class TestPreconditions:
    def test_empty_cart_rejected(self, place_order):
        with pytest.raises(ValidationError) as exc:
            place_order()
        assert "cart" in exc.value.messages

    def test_missing_shipping_fields_rejected(self, make_product, add_to_cart, place_order, customer_id):
        product = make_product()
        add_to_cart(product_id=product.id)

        with pytest.raises(ValidationError) as exc:
            place_order(shipping={"street": "12 Marina Road"})

        assert "shipping_address" in exc.value.messages
        assert _orders() == []
        assert not _cart_of(customer_id).is_empty

    def test_gateway_requires_email(self, make_product, add_to_cart, place_order):
        product = make_product()
        add_to_cart(product_id=product.id)
        with pytest.raises(ValidationError) as exc:
            place_order(payment_method="gateway", email=None)
        assert "customer_email" in exc.value.messages

    def test_zero_value_cart_rejected(self, make_variant, add_to_cart, place_order):
        variant = make_variant(price=0.0)
        add_to_cart(service_variant_id=variant.id)
        with pytest.raises(ValidationError):
            place_order()

    def test_deactivated_product_rejected(self, make_product, add_to_cart, place_order):
        product = make_product()
        add_to_cart(product_id=product.id)

        repo = current_domain.repository_for(Product)
        stored = repo.get(product.id)
        stored.is_active = False
        repo.add(stored)

        with pytest.raises(NotFoundError):
            place_order()
        assert _orders() == []


class TestStockShortfall:
    def test_shortfall_leaves_everything_untouched(
        self, make_product, make_variant, add_to_cart, place_order, customer_id
    ):
        plenty = make_product(name="Plenty", stock=10)
        scarce = make_product(name="Scarce", stock=3)
        add_to_cart(product_id=plenty.id, quantity=2)
        add_to_cart(product_id=scarce.id, quantity=3)

        repo = current_domain.repository_for(Product)
        stored = repo.get(scarce.id)
        stored.stock = 1
        repo.add(stored)

        with pytest.raises(InsufficientStockError) as exc:
            place_order()

        assert exc.value.product == "Scarce"
        assert exc.value.available == 1
        assert _stock(plenty.id) == 10
        assert _stock(scarce.id) == 1
        assert _orders() == []
        assert len(_cart_of(customer_id).items) == 2

    def test_last_unit_goes_to_exactly_one_buyer(self, make_product, add_to_cart, place_order):
        product = make_product(stock=1)
        add_to_cart(product_id=product.id, customer="cust-a")
        add_to_cart(product_id=product.id, customer="cust-b")

        place_order(customer="cust-a")
        with pytest.raises(InsufficientStockError):
            place_order(customer="cust-b")

        assert _stock(product.id) == 0
        assert len(_orders()) == 1


class TestOrderNumbers:
    def test_collision_is_retried(self, make_product, add_to_cart, place_order, monkeypatch):
        numbers = iter(["ORD-1700000000000-AAAAA", "ORD-1700000000000-AAAAA", "ORD-1700000000001-BBBBB"])
        monkeypatch.setattr("orderflow.order.placement.generate_order_number", lambda: next(numbers))
        product = make_product(stock=10)

        add_to_cart(product_id=product.id, customer="cust-a")
        place_order(customer="cust-a")
        add_to_cart(product_id=product.id, customer="cust-b")
        place_order(customer="cust-b")

        assert sorted(o.order_number for o in _orders()) == [
            "ORD-1700000000000-AAAAA",
            "ORD-1700000000001-BBBBB",
        ]

    def test_gives_up_after_repeated_collisions(self, make_product, add_to_cart, place_order, monkeypatch):
        monkeypatch.setattr(
            "orderflow.order.placement.generate_order_number", lambda: "ORD-1700000000000-AAAAA"
        )
        product = make_product(stock=10)
        add_to_cart(product_id=product.id, customer="cust-a")
        place_order(customer="cust-a")

        add_to_cart(product_id=product.id, customer="cust-b")
        with pytest.raises(ConflictError):
            place_order(customer="cust-b")

        assert len(_orders()) == 1
        assert _stock(product.id) == 9


class TestCheckoutSummary:
    def test_summary_totals(self, make_product, make_variant, add_to_cart, customer_id):
        product = make_product(price=100.0, stock=5)
        variant = make_variant(price=50.0)
        add_to_cart(product_id=product.id, quantity=2)
        add_to_cart(service_variant_id=variant.id)

        summary = checkout_summary(customer_id)

        assert summary["total"] == 250.0
        assert summary["item_count"] == 3
        assert summary["currency"]

    def test_summary_of_empty_cart(self, customer_id):
        with pytest.raises(ValidationError):
            checkout_summary(customer_id)
