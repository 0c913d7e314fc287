"""Cart aggregate: one long-lived cart per customer.

The cart is a plain CQRS aggregate. It is created on first access, mutated
continuously and never deleted; placing an order clears it. ``subtotal`` and
``total`` are derived from the lines and recomputed on every mutation, so they
are persisted in the same Unit of Work as the line change.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from orderflow.domain import orderflow
from orderflow.shared.errors import NotFoundError
from orderflow.shared.line_items import ItemType, assert_single_reference, reference_of
from orderflow.shared.money import as_amount, sum_lines


@orderflow.entity(part_of="Cart")
class CartItem:
    item_type = String(required=True, choices=ItemType)
    product_id = Identifier()
    service_variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    added_at = DateTime()


@orderflow.aggregate
class Cart:
    customer_id = Identifier(required=True, unique=True)
    items = HasMany(CartItem)
    subtotal = Float(default=0.0)
    total = Float(default=0.0)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def every_line_references_exactly_one_item(self):
        for item in self.items or []:
            assert_single_reference(item.product_id, item.service_variant_id)

    @classmethod
    def create(cls, customer_id):
        now = datetime.now(UTC)
        return cls(
            customer_id=str(customer_id),
            subtotal=0.0,
            total=0.0,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def find_line(self, line_id):
        return next((i for i in self.items if str(i.id) == str(line_id)), None)

    def line_for(self, product_id=None, service_variant_id=None):
        reference = str(product_id or service_variant_id)
        return next((i for i in self.items if reference_of(i) == reference), None)

    def quantity_of(self, product_id) -> int:
        line = self.line_for(product_id=product_id)
        return line.quantity if line else 0

    @property
    def is_empty(self) -> bool:
        return not self.items

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def add_item(self, quantity, unit_price, product_id=None, service_variant_id=None):
        """Add a line, or merge into the existing line for the same reference.

        A merge sums the quantities and refreshes the captured price to
        ``unit_price``. Returns the affected line.
        """
        item_type = assert_single_reference(product_id, service_variant_id)
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        now = datetime.now(UTC)
        existing = self.line_for(product_id=product_id, service_variant_id=service_variant_id)
        if existing:
            existing.quantity += quantity
            existing.unit_price = as_amount(unit_price)
            line = existing
        else:
            line = CartItem(
                item_type=item_type.value,
                product_id=str(product_id) if product_id else None,
                service_variant_id=str(service_variant_id) if service_variant_id else None,
                quantity=quantity,
                unit_price=as_amount(unit_price),
                added_at=now,
            )
            self.add_items(line)

        self._recompute_totals(now)
        return line

    def update_quantity(self, line_id, quantity):
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        line = self.find_line(line_id)
        if line is None:
            raise NotFoundError("Cart item", str(line_id))

        line.quantity = quantity
        self._recompute_totals(datetime.now(UTC))
        return line

    def remove_item(self, line_id):
        line = self.find_line(line_id)
        if line is None:
            raise NotFoundError("Cart item", str(line_id))

        self.remove_items(line)
        self._recompute_totals(datetime.now(UTC))

    def clear(self):
        for line in list(self.items):
            self.remove_items(line)
        self._recompute_totals(datetime.now(UTC))

    def _recompute_totals(self, now):
        subtotal = sum_lines(self.items)
        self.subtotal = float(subtotal)
        self.total = float(subtotal)
        self.updated_at = now
