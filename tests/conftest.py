"""
Pytest fixtures for the tariff engine tests.

Provides:
- measure / lookup factories
- a controllable clock for TTL expiry
- a mocked Trade Tariff adapter and a resolver wired to it
- Flask app and test client fixtures
"""

import os
import sys
from unittest.mock import Mock

import pytest

# Add the project root to the Python path
root_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if root_dir not in sys.path:
    sys.path.insert(0, root_dir)

from application.cache import RateCache  # noqa: E402
from application.landed_cost_service import LandedCostService  # noqa: E402
from application.rate_resolver import RateResolver  # noqa: E402
from domain.models import ALL_ORIGINS, DutyRate, MeasureType, TariffMeasure  # noqa: E402
from integration.measure_store import InMemoryMeasureStore  # noqa: E402
from integration.trade_tariff_adapter import CommodityLookup, TradeTariffAdapter  # noqa: E402


def make_measure(
    measure_type=MeasureType.THIRD_COUNTRY,
    percent=None,
    origin=ALL_ORIGINS,
    area="1011",
    code="8471300000",
    valid_from=None,
    valid_to=None,
    type_description=None,
    area_description=None,
):
    expression = f"{percent:.2f} %" if percent is not None else ""
    return TariffMeasure(
        code=code,
        origin_country=origin,
        geographical_area=area,
        measure_type=measure_type,
        duty_rate=DutyRate(percent=percent, expression=expression),
        valid_from=valid_from,
        valid_to=valid_to,
        measure_type_description=type_description,
        geographical_area_description=area_description,
    )


def make_lookup(code="8471300000", measures=None, matched_code=None, description="Portable computers"):
    if measures is None:
        measures = [make_measure(percent=0.0, code=code)]
    return CommodityLookup(
        requested_code=code,
        matched_code=matched_code or code,
        description=description,
        measures=measures,
    )


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


# ============================================================================
# Factories
# ============================================================================

@pytest.fixture
def measure():
    """Factory for TariffMeasure."""
    return make_measure


@pytest.fixture
def lookup():
    """Factory for CommodityLookup (adapter answers)."""
    return make_lookup


# ============================================================================
# Resolver Fixtures
# ============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def eu_adapter():
    """Mocked EU adapter; set lookup.return_value / side_effect per test."""
    adapter = Mock(spec=TradeTariffAdapter)
    adapter.region = "eu"
    adapter.source = "eu_taric"
    adapter.lookup.return_value = make_lookup()
    return adapter


@pytest.fixture
def cache(clock):
    return RateCache(ttl_seconds=3600, clock=clock)


@pytest.fixture
def store():
    return InMemoryMeasureStore()


@pytest.fixture
def resolver(eu_adapter, cache, store):
    return RateResolver(
        adapters={"eu": eu_adapter},
        cache=cache,
        store=store,
        max_concurrency=3,
        default_vat_rates={"eu": 19.0, "uk": 20.0, "xi": 20.0},
        reference_fallback=False,
    )


@pytest.fixture
def service(resolver):
    return LandedCostService(resolver)


# ============================================================================
# Flask App Fixtures
# ============================================================================

@pytest.fixture
def app(service):
    """Create Flask application for testing."""
    from app import create_app

    app = create_app(service=service)
    app.config.update({
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
    })
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()
