"""Repository for the Payment aggregate."""

from orderflow.domain import orderflow
from orderflow.payment.payment import Payment


@orderflow.repository(part_of=Payment)
class PaymentRepository:
    def for_order(self, order_id) -> Payment | None:
        payments = self._dao.query.filter(order_id=str(order_id)).all().items
        return payments[0] if payments else None

    def by_reference(self, reference) -> Payment | None:
        """Resolve an order number or a retry's gateway reference to its payment."""
        payments = self._dao.query.filter(transaction_reference=str(reference)).all().items
        if not payments:
            payments = self._dao.query.filter(gateway_reference=str(reference)).all().items
        return payments[0] if payments else None

    def matching(self, **filters) -> list[Payment]:
        criteria = {key: value for key, value in filters.items() if value is not None}
        query = self._dao.query
        if criteria:
            query = query.filter(**criteria)
        return sorted(query.all().items, key=lambda p: p.created_at, reverse=True)
