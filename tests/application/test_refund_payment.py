"""Application tests for admin refunds."""

import pytest
from orderflow.catalog.product import Product
from orderflow.order.lifecycle import CancelOrder, UpdateOrderStatus, refund_payment
from orderflow.order.order import Order, OrderStatus, PaymentStatus
from orderflow.payment.initialization import initialize_gateway_payment
from orderflow.payment.payment import Payment, PaymentRecordStatus
from orderflow.payment.reconciliation import apply_outcome
from orderflow.payment.verification import verify_payment
from orderflow.shared.errors import IllegalTransitionError
from protean import current_domain
from protean.exceptions import ValidationError


def _payment(order):
    return current_domain.repository_for(Payment).for_order(order.id)


def _order(order):
    return current_domain.repository_for(Order).get(order.id)


def _stock(product):
    return current_domain.repository_for(Product).get(product.id).stock


@pytest.fixture()
def paid_order(scenario_order):
    order, product = scenario_order()
    apply_outcome(order.order_number, "success")
    return order, product


@pytest.fixture()
def paid_gateway_order(scenario_order, customer_id):
    order, product = scenario_order(payment_method="gateway")
    initialize_gateway_payment(order.order_number, customer_id)
    verify_payment(order.order_number)
    return order, product


class TestRefund:
    def test_refund_closes_order_and_restores_stock(self, paid_order):
        order, product = paid_order

        refund_payment(_payment(order).id, reason="Customer request")

        payment = _payment(order)
        order = _order(order)
        assert payment.status == PaymentRecordStatus.REFUNDED.value
        assert payment.refunded_amount == 250.0
        assert payment.refund_reason == "Customer request"
        assert order.order_status == OrderStatus.CANCELLED.value
        assert order.payment_status == PaymentStatus.REFUNDED.value
        assert order.stock_released is True
        assert _stock(product) == 5

    def test_partial_refund(self, paid_order):
        order, _ = paid_order
        refund_payment(_payment(order).id, amount=100.0)
        assert _payment(order).refunded_amount == 100.0

    def test_refund_after_cancellation_restores_stock_once(self, paid_order):
        order, product = paid_order
        current_domain.process(CancelOrder(order_id=order.id, cancelled_by="Admin"), asynchronous=False)
        assert _stock(product) == 5

        refund_payment(_payment(order).id)

        assert _order(order).payment_status == PaymentStatus.REFUNDED.value
        assert _stock(product) == 5

    def test_second_refund_rejected(self, paid_order):
        order, product = paid_order
        refund_payment(_payment(order).id)
        with pytest.raises(IllegalTransitionError):
            refund_payment(_payment(order).id)
        assert _stock(product) == 5

    def test_amount_above_payment_rejected(self, paid_order):
        order, _ = paid_order
        with pytest.raises(ValidationError):
            refund_payment(_payment(order).id, amount=300.0)
        assert _payment(order).status == PaymentRecordStatus.COMPLETED.value

    def test_unpaid_order_cannot_be_refunded(self, scenario_order):
        order, _ = scenario_order()
        with pytest.raises(IllegalTransitionError):
            refund_payment(_payment(order).id)

    def test_delivered_order_cannot_be_refunded(self, paid_order):
        order, _ = paid_order
        current_domain.process(UpdateOrderStatus(order_id=order.id, status="shipped"), asynchronous=False)
        current_domain.process(UpdateOrderStatus(order_id=order.id, status="delivered"), asynchronous=False)

        with pytest.raises(IllegalTransitionError):
            refund_payment(_payment(order).id)


class TestGatewayRefund:
    def test_offline_payment_does_not_call_gateway(self, paid_order, gateway):
        order, _ = paid_order
        refund_payment(_payment(order).id)
        assert not [call for call in gateway.calls if call["method"] == "refund"]

    def test_gateway_refund_in_minor_units(self, paid_gateway_order, gateway):
        order, _ = paid_gateway_order

        refund_payment(_payment(order).id, amount=100.0)

        refunds = [call for call in gateway.calls if call["method"] == "refund"]
        assert refunds == [
            {"method": "refund", "provider_reference": order.order_number, "amount_minor": 10000}
        ]

    def test_upstream_failure_still_books_refund(self, paid_gateway_order, gateway):
        order, product = paid_gateway_order
        gateway.configure(fail_with="error")

        refund_payment(_payment(order).id)

        assert _payment(order).status == PaymentRecordStatus.REFUNDED.value
        assert _stock(product) == 5

    def test_declined_refund_still_books_refund(self, paid_gateway_order, gateway):
        order, _ = paid_gateway_order
        gateway.configure(refund_accepted=False)

        refund_payment(_payment(order).id)

        assert _order(order).payment_status == PaymentStatus.REFUNDED.value

    def test_delivered_order_is_not_refunded_upstream(self, paid_gateway_order, gateway):
        order, _ = paid_gateway_order
        current_domain.process(UpdateOrderStatus(order_id=order.id, status="shipped"), asynchronous=False)
        current_domain.process(UpdateOrderStatus(order_id=order.id, status="delivered"), asynchronous=False)

        with pytest.raises(IllegalTransitionError):
            refund_payment(_payment(order).id)

        assert not [call for call in gateway.calls if call["method"] == "refund"]
        assert _payment(order).status == PaymentRecordStatus.COMPLETED.value

    def test_invalid_amount_is_not_sent_upstream(self, paid_gateway_order, gateway):
        order, _ = paid_gateway_order

        with pytest.raises(ValidationError) as exc:
            refund_payment(_payment(order).id, amount=250.01)

        assert "cannot exceed payment amount" in exc.value.messages["amount"][0]
        assert not [call for call in gateway.calls if call["method"] == "refund"]
