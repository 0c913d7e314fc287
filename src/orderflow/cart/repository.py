"""Repository for the Cart aggregate."""

from orderflow.cart.cart import Cart
from orderflow.domain import orderflow


@orderflow.repository(part_of=Cart)
class CartRepository:
    def for_customer(self, customer_id) -> Cart | None:
        """The customer's cart, or ``None`` if it was never opened."""
        carts = self._dao.query.filter(customer_id=str(customer_id)).all().items
        return carts[0] if carts else None

    def get_or_create(self, customer_id) -> Cart:
        cart = self.for_customer(customer_id)
        if cart is None:
            cart = Cart.create(customer_id)
            self.add(cart)
        return cart
