"""Orderflow API package."""

from orderflow.api.routes import admin_router, cart_router, checkout_router, order_router, payment_router

__all__ = ["cart_router", "checkout_router", "order_router", "payment_router", "admin_router"]
