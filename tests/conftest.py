"""
Shared pytest fixtures for Moto Shop Web tests.
"""

from unittest.mock import MagicMock

import pytest
import requests

from app import create_app
from core.cache import MemoryCache
from core.printful_client import PrintfulClient
from models.placement import PlacementDefinition, VariantConfig
from modules.placement_normalizer import build_allowed_placement_map


class FakeClock:
    """Monotonic clock advanced only by sleep(), for deterministic polling."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> bool:
        self.sleeps.append(seconds)
        self.now += seconds
        return False


def make_response(status_code=200, json_body=None):
    """Build a MagicMock that looks like a requests.Response."""
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    if isinstance(json_body, Exception):
        response.json.side_effect = json_body
    else:
        response.json.return_value = json_body
    return response


def make_variant_config(*placements, techniques=("dtg",)):
    """VariantConfig allowing the given placements with the given techniques."""
    definitions = [PlacementDefinition(placement=p, techniques=list(techniques)) for p in placements]
    return VariantConfig(
        allowed_placements=definitions,
        allowed_map=build_allowed_placement_map(definitions),
        default_placement=definitions[0] if definitions else None,
        default_technique=techniques[0] if techniques else None,
        allowed_techniques=list(techniques),
    )


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def cache():
    """A fresh cache per test."""
    return MemoryCache("test")


@pytest.fixture
def mock_session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(mock_session):
    """PrintfulClient over a mocked requests.Session."""
    return PrintfulClient("test-key", store_id="store-1", base_url="https://api.printful.test", session=mock_session)


@pytest.fixture
def app():
    app = create_app("config.TestingConfig")
    app.config["CORS_ALLOWED_ORIGINS"] = ["https://motocoach.com.au"]
    return app


@pytest.fixture
def test_client(app):
    return app.test_client()
