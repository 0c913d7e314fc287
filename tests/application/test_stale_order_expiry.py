"""Application tests for the stale pending-order sweep."""

from datetime import UTC, datetime, timedelta

from orderflow.catalog.product import Product
from orderflow.order.lifecycle import ExpireStalePendingOrders
from orderflow.order.order import Order, OrderStatus
from orderflow.payment.reconciliation import apply_outcome
from protean import current_domain


def _expire(minutes=60, as_of=None):
    return current_domain.process(
        ExpireStalePendingOrders(older_than_minutes=minutes, as_of=as_of or datetime.now(UTC) + timedelta(hours=2)),
        asynchronous=False,
    )


def test_expires_unpaid_orders_past_cutoff(scenario_order):
    order, product = scenario_order()

    assert _expire() == 1

    order = current_domain.repository_for(Order).get(order.id)
    assert order.order_status == OrderStatus.CANCELLED.value
    assert order.cancelled_by == "System"
    assert current_domain.repository_for(Product).get(product.id).stock == 5


def test_recent_orders_are_kept(scenario_order):
    order, _ = scenario_order()

    assert _expire(as_of=datetime.now(UTC)) == 0
    assert current_domain.repository_for(Order).get(order.id).order_status == OrderStatus.PENDING.value


def test_failed_payments_are_expired(scenario_order):
    order, _ = scenario_order(payment_method="gateway")
    apply_outcome(order.order_number, "failed", failure_reason="Declined")

    assert _expire() == 1


def test_paid_orders_are_kept(scenario_order):
    order, _ = scenario_order()
    apply_outcome(order.order_number, "success")

    assert _expire() == 0
    assert current_domain.repository_for(Order).get(order.id).order_status == OrderStatus.PROCESSING.value


def test_nothing_to_expire():
    assert _expire() == 0
