import os
from pathlib import Path

import pytest
from protean.integrations.pytest import DomainFixture


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Select the config overlay before the domain is imported."""
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in test_path:
            item.add_marker(pytest.mark.bdd)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def orderflow_bed():
    from orderflow.domain import orderflow

    bed = DomainFixture(orderflow)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(orderflow_bed):
    with orderflow_bed.domain_context():
        yield

        from protean import current_domain

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

        # Drain event stores
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def gateway():
    """A fresh FakeGateway per test; tests configure it and inspect its calls."""
    from orderflow.gateway import reset_gateway, set_gateway
    from orderflow.gateway.fake_adapter import FakeGateway

    fake = FakeGateway()
    set_gateway(fake)
    yield fake
    reset_gateway()


# ---------------------------------------------------------------------------
# Catalogue reference data
# ---------------------------------------------------------------------------
@pytest.fixture()
def make_product():
    from orderflow.catalog.product import Product
    from protean import current_domain

    def _make(name="Shea Butter Jar", price=100.0, stock=5, is_active=True):
        product = Product.create(name=name, price=price, stock=stock, is_active=is_active)
        current_domain.repository_for(Product).add(product)
        return product

    return _make


@pytest.fixture()
def make_variant():
    from orderflow.catalog.service import Service, ServiceVariant
    from protean import current_domain

    def _make(name="Standard Session", price=50.0, service_name="Home Cleaning", is_active=True, service_active=True):
        service = Service.create(name=service_name, category="cleaning", is_active=service_active)
        current_domain.repository_for(Service).add(service)
        variant = ServiceVariant.create(
            service_id=service.id,
            name=name,
            price=price,
            duration="2h",
            is_active=is_active,
        )
        current_domain.repository_for(ServiceVariant).add(variant)
        return variant

    return _make


@pytest.fixture()
def shipping_address():
    return {
        "street": "12 Marina Road",
        "city": "Lagos",
        "state": "Lagos",
        "country": "Nigeria",
        "postal_code": "101001",
        "phone": "+2348000000000",
    }
