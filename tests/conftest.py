"""
Pytest Configuration and Shared Fixtures

Provides an in-memory database, a seeded brand/domain catalog and API keys
for all test modules.
"""

import pytest
from datetime import datetime
from typing import Dict, List

from serptrack.database import get_db_context, init_db, repository, reset_engine
from serptrack.matching import CatalogDomain, build_index
from serptrack.utils.config import get_settings


# ============================================================================
# Settings
# ============================================================================

@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached per process; reset between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
def database():
    """Fresh in-memory SQLite database with all tables."""
    engine = reset_engine("sqlite://")
    init_db()
    yield engine
    engine.dispose()


@pytest.fixture
def seeded(database) -> Dict[str, str]:
    """
    Three brands with domains:

    TOKO   tokopedia.com
    SHOP   shopee.co.id, shopee.co.id/mall
    BLIB   blibli.com (plus an inactive blibli.net)
    """
    with get_db_context() as db:
        toko = repository.create_brand(db, "TOKO", "Tokopedia", color="#03ac0e")
        shop = repository.create_brand(db, "SHOP", "Shopee", color="#ee4d2d")
        blib = repository.create_brand(db, "BLIB", "Blibli", color="#0095da")

        repository.add_domain(db, toko.id, "tokopedia.com")
        repository.add_domain(db, shop.id, "shopee.co.id")
        mall = repository.add_domain(db, shop.id, "https://shopee.co.id/mall/")
        repository.add_domain(db, blib.id, "blibli.com")
        old = repository.add_domain(db, blib.id, "blibli.net")
        repository.deactivate_domain(db, old.id)

        return {
            "TOKO": toko.id,
            "SHOP": shop.id,
            "BLIB": blib.id,
            "shopee_mall": mall.id,
            "blibli_net": old.id,
        }


@pytest.fixture
def api_keys(database) -> List[str]:
    """Four active keys in rotation order; returns their ids."""
    with get_db_context() as db:
        keys = [repository.add_api_key(db, f"Key {n}", f"secret-key-{n:04d}") for n in range(1, 5)]
        return [key.id for key in keys]


# ============================================================================
# Pure catalog helpers
# ============================================================================

def make_domain(
    id: str,
    domain: str,
    brand_id: str = "brand-a",
    brand_code: str = "",
    is_active: bool = True,
) -> CatalogDomain:
    """Catalog entry with derived keys, no database needed."""
    return CatalogDomain.from_raw(
        id=id,
        domain=domain,
        brand_id=brand_id,
        brand_code=brand_code,
        brand_name=brand_code.title(),
        brand_color="#000000",
        is_active=is_active,
    )


@pytest.fixture
def catalog() -> List[CatalogDomain]:
    """A small catalog covering path-scoped, multi-level and token cases."""
    return [
        make_domain("d-toko", "tokopedia.com", brand_id="toko", brand_code="TOKO"),
        make_domain("d-shop", "shopee.co.id", brand_id="shop", brand_code="SHOP"),
        make_domain("d-shop-mall", "shopee.co.id/mall", brand_id="shop", brand_code="SHOP"),
        make_domain("d-example", "example.com", brand_id="ex", brand_code="EX"),
        make_domain("d-example-shop", "example.com/shop", brand_id="ex-shop", brand_code="EXS"),
        make_domain("d-blog", "shop.example.org", brand_id="blog", brand_code="BLOG"),
        make_domain("d-inactive", "inactive.com", brand_id="old", brand_code="OLD", is_active=False),
    ]


@pytest.fixture
def index(catalog):
    return build_index(catalog)


class FakeClock:
    """Controllable clock for cache and usage timestamps."""

    def __init__(self, now: datetime = datetime(2026, 3, 15, 12, 0, 0)):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============================================================================
# Test Markers
# ============================================================================

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
