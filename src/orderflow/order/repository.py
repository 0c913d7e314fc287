"""Repository for the Order aggregate."""

from orderflow.domain import orderflow
from orderflow.order.order import Order


@orderflow.repository(part_of=Order)
class OrderRepository:
    def by_number(self, order_number) -> Order | None:
        orders = self._dao.query.filter(order_number=str(order_number)).all().items
        return orders[0] if orders else None

    def number_exists(self, order_number) -> bool:
        return self.by_number(order_number) is not None

    def for_customer(self, customer_id) -> list[Order]:
        orders = self._dao.query.filter(customer_id=str(customer_id)).all().items
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    def matching(self, **filters) -> list[Order]:
        """All orders matching the given field filters, newest first."""
        criteria = {key: value for key, value in filters.items() if value is not None}
        query = self._dao.query
        if criteria:
            query = query.filter(**criteria)
        return sorted(query.all().items, key=lambda o: o.created_at, reverse=True)
