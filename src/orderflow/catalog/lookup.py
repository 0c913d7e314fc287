"""Catalogue lookups used by the cart and checkout.

Missing and inactive references are reported the same way, as
``NotFoundError``, so callers cannot tell a deleted product from a retired one.
"""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from orderflow.catalog.product import Product
from orderflow.catalog.service import Service, ServiceVariant
from orderflow.shared.errors import NotFoundError


def find_product(product_id) -> Product | None:
    try:
        return current_domain.repository_for(Product).get(str(product_id))
    except ObjectNotFoundError:
        return None


def find_variant(variant_id) -> tuple[ServiceVariant | None, Service | None]:
    """Return the variant and its parent service; either may be ``None``."""
    try:
        variant = current_domain.repository_for(ServiceVariant).get(str(variant_id))
    except ObjectNotFoundError:
        return None, None
    try:
        service = current_domain.repository_for(Service).get(str(variant.service_id))
    except ObjectNotFoundError:
        return variant, None
    return variant, service


def active_product(product_id) -> Product:
    product = find_product(product_id)
    if product is None or not product.is_active:
        raise NotFoundError("Product", str(product_id))
    return product


def active_variant(variant_id) -> tuple[ServiceVariant, Service]:
    variant, service = find_variant(variant_id)
    if variant is None or not variant.is_active:
        raise NotFoundError("Service variant", str(variant_id))
    if service is None or not service.is_active:
        raise NotFoundError("Service", str(variant.service_id))
    return variant, service
