# tests/conftest.py
from typing import Any, Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from geogate.config import GeoConfig
from geogate.exceptions import ProviderError
from geogate.geolocation import GeoLocation
from geogate.main import create_app
from geogate.models import LocationRecord
from geogate.providers import GeoProvider
from geogate.services.cache import CountryCache

PUBLIC_IP = "8.8.8.8"
IRAN_IP = "5.160.0.1"


class FakeProvider(GeoProvider):
    """
    Scripted provider: each lookup consumes the next outcome, the last one repeats.
    An outcome is a country code (None for a record without one), a dict of
    LocationRecord fields, or an exception instance to raise.
    """

    def __init__(self, name: str, *outcomes: Any):
        super().__init__()
        self.name = name
        self.outcomes = list(outcomes) or ["US"]
        self.calls: List[str] = []

    def build_request(self, ip: str) -> Tuple[str, Dict[str, str]]:
        return f"fake://{self.name}/{ip}", {}

    def parse(self, ip: str, data: Dict[str, Any]) -> LocationRecord:
        return self.record(ip, **data)

    def lookup(self, ip: str) -> LocationRecord:
        index = min(len(self.calls), len(self.outcomes) - 1)
        self.calls.append(ip)
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, dict):
            return self.parse(ip, outcome)
        return self.parse(ip, {"country_code": outcome})


def failing(name: str) -> ProviderError:
    return ProviderError(f"{name} unavailable", name)


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    """Records backoff pauses instead of sleeping"""
    return []


@pytest.fixture
def make_geo(clock, sleeps):
    def factory(providers: Optional[Dict[str, GeoProvider]] = None, **config) -> GeoLocation:
        providers = providers if providers is not None else {"ip-api": FakeProvider("ip-api", "US")}
        names = list(providers)
        config.setdefault("api_provider", names[0])
        config.setdefault("fallback_providers", names)
        cfg = GeoConfig(**config)
        cache = CountryCache(enabled=cfg.cache_enabled, clock=clock)
        return GeoLocation(cfg, providers=providers, cache=cache, sleep=sleeps.append)
    return factory


@pytest.fixture
def client(make_geo):
    """TestClient over an app whose only provider resolves to IR"""
    geo = make_geo({"ip-api": FakeProvider("ip-api", "IR")})
    with TestClient(create_app(geo, enforce=False)) as test_client:
        yield test_client
