"""Product aggregate: physical catalogue item with a stock counter.

Products are reference data here. They are created directly through the
repository and only their stock moves at runtime, always through
``orderflow.inventory.guard``.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String

from orderflow.catalog.events import StockReleased, StockReserved
from orderflow.domain import orderflow


@orderflow.aggregate
class Product:
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    stock = Integer(default=0, min_value=0)
    is_active = Boolean(default=True)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, name, price, stock=0, is_active=True):
        now = datetime.now(UTC)
        return cls(
            name=name,
            price=price,
            stock=stock,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )

    def has_stock_for(self, quantity: int) -> bool:
        return (self.stock or 0) >= quantity

    def reserve(self, quantity: int, order_number: str) -> None:
        """Decrement stock for an order. Callers check availability first."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if not self.has_stock_for(quantity):
            raise ValidationError({"stock": [f"Only {self.stock} units of {self.name} available"]})

        previous = self.stock or 0
        now = datetime.now(UTC)
        self.stock = previous - quantity
        self.updated_at = now

        self.raise_(
            StockReserved(
                product_id=str(self.id),
                order_number=order_number,
                quantity=quantity,
                previous_stock=previous,
                new_stock=self.stock,
                reserved_at=now,
            )
        )

    def release(self, quantity: int, order_number: str) -> None:
        """Return previously reserved units to stock."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        previous = self.stock or 0
        now = datetime.now(UTC)
        self.stock = previous + quantity
        self.updated_at = now

        self.raise_(
            StockReleased(
                product_id=str(self.id),
                order_number=order_number,
                quantity=quantity,
                previous_stock=previous,
                new_stock=self.stock,
                released_at=now,
            )
        )
