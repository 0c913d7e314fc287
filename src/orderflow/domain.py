"""Orderflow bounded context: carts, checkout, payments and order lifecycle.

All aggregates live in one domain so that a command handler touching the
cart, the stock counters, the order and its payment commits them in a single
Unit of Work.
"""

import structlog
from protean.domain import Domain

from orderflow.utils.logging import configure_logging

# Configure logging for the application
configure_logging()

logger = structlog.get_logger(__name__)

# Domain Composition Root
orderflow = Domain(name="orderflow")
