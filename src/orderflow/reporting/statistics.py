"""Admin statistics over orders and payments.

Aggregation happens in Python over repository results, which keeps it
provider-agnostic. Revenue counts only paid orders and completed payments.
"""

from collections import defaultdict
from datetime import UTC, date, datetime, time, timedelta

from protean.utils.globals import current_domain

from orderflow.order.order import Order, OrderStatus, PaymentStatus
from orderflow.payment.payment import Payment, PaymentRecordStatus
from orderflow.shared.money import to_decimal

DAILY_REVENUE_DAYS = 30


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


def _in_range(created_at, start_date: date | None, end_date: date | None) -> bool:
    if created_at is None:
        return start_date is None and end_date is None
    created = _as_utc(created_at)
    if start_date and created < datetime.combine(start_date, time.min, tzinfo=UTC):
        return False
    if end_date and created > datetime.combine(end_date, time.max, tzinfo=UTC):
        return False
    return True


def order_stats(start_date: date | None = None, end_date: date | None = None) -> dict:
    orders = [
        order
        for order in current_domain.repository_for(Order)._dao.query.all().items
        if _in_range(order.created_at, start_date, end_date)
    ]

    by_status = {status.value: 0 for status in OrderStatus}
    for order in orders:
        by_status[order.order_status] = by_status.get(order.order_status, 0) + 1

    paid = [order for order in orders if order.payment_status == PaymentStatus.PAID.value]
    revenue = sum((to_decimal(order.total) for order in paid), to_decimal(0))
    average = to_decimal(revenue / len(paid)) if paid else to_decimal(0)

    return {
        "total_orders": len(orders),
        "paid_orders": len(paid),
        "total_revenue": float(revenue),
        "average_order_value": float(average),
        "by_status": by_status,
    }


def payment_stats(start_date: date | None = None, end_date: date | None = None, today: date | None = None) -> dict:
    payments = [
        payment
        for payment in current_domain.repository_for(Payment)._dao.query.all().items
        if _in_range(payment.created_at, start_date, end_date)
    ]

    by_status = {status.value: {"count": 0, "total_amount": 0.0} for status in PaymentRecordStatus}
    by_method: dict[str, dict] = defaultdict(
        lambda: {"count": 0, "total_amount": 0.0, "successful_count": 0, "failed_count": 0}
    )
    daily = defaultdict(lambda: to_decimal(0))

    today = today or datetime.now(UTC).date()
    window_start = today - timedelta(days=DAILY_REVENUE_DAYS - 1)

    for payment in payments:
        amount = to_decimal(payment.amount)

        status_bucket = by_status.setdefault(payment.status, {"count": 0, "total_amount": 0.0})
        status_bucket["count"] += 1
        status_bucket["total_amount"] = float(to_decimal(status_bucket["total_amount"]) + amount)

        method_bucket = by_method[payment.payment_method]
        method_bucket["count"] += 1
        method_bucket["total_amount"] = float(to_decimal(method_bucket["total_amount"]) + amount)
        if payment.status == PaymentRecordStatus.COMPLETED.value:
            method_bucket["successful_count"] += 1
        elif payment.status == PaymentRecordStatus.FAILED.value:
            method_bucket["failed_count"] += 1

        if payment.status == PaymentRecordStatus.COMPLETED.value and payment.paid_at:
            paid_on = _as_utc(payment.paid_at).date()
            if window_start <= paid_on <= today:
                daily[paid_on] += amount

    completed = by_status[PaymentRecordStatus.COMPLETED.value]
    return {
        "total_payments": len(payments),
        "total_revenue": completed["total_amount"],
        "by_status": by_status,
        "by_payment_method": dict(by_method),
        "daily_revenue": [{"date": day.isoformat(), "revenue": float(daily[day])} for day in sorted(daily)],
    }
