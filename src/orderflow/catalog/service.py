"""Service offerings and their bookable variants.

A variant is what a customer actually adds to a cart; it is orderable only
while both the variant and its parent service are active. Services carry no
stock.
"""

from datetime import UTC, datetime

from protean.fields import Boolean, DateTime, Float, Identifier, String, Text

from orderflow.domain import orderflow


@orderflow.aggregate
class Service:
    name = String(required=True, max_length=255)
    category = String(max_length=100)
    is_active = Boolean(default=True)
    created_at = DateTime()

    @classmethod
    def create(cls, name, category=None, is_active=True):
        return cls(
            name=name,
            category=category,
            is_active=is_active,
            created_at=datetime.now(UTC),
        )


@orderflow.aggregate
class ServiceVariant:
    service_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    description = Text()
    duration = String(max_length=50)
    price = Float(required=True, min_value=0.0)
    is_active = Boolean(default=True)
    created_at = DateTime()

    @classmethod
    def create(cls, service_id, name, price, description=None, duration=None, is_active=True):
        return cls(
            service_id=str(service_id),
            name=name,
            price=price,
            description=description,
            duration=duration,
            is_active=is_active,
            created_at=datetime.now(UTC),
        )
