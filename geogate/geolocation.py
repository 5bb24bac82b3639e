"""
Single-object API bundling configuration, resolver, evaluator and guard
"""

import logging
import time
from typing import Any, Callable, Dict, Iterable, Optional, Union

import httpx
from fastapi.responses import Response

from .access import AccessEvaluator
from .config import GeoConfig, load_config
from .exceptions import GeoLocationError
from .guard import Guard
from .models import AccessDecision, LocationRecord, RequestInfo, Resolution
from .providers import GeoProvider
from .resolver import CountryResolver
from .security import get_client_ip
from .services.cache import CountryCache

logger = logging.getLogger("geogate")


class GeoLocation:
    """Country-based access control for one configured policy"""

    def __init__(
        self,
        config: Union[GeoConfig, Dict[str, Any], None] = None,
        providers: Optional[Dict[str, GeoProvider]] = None,
        cache: Optional[CountryCache] = None,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not isinstance(config, GeoConfig):
            config = GeoConfig(**(config or {}))
        self.config = config
        self.resolver = CountryResolver(config, providers=providers, cache=cache, client=client, sleep=sleep)
        self.evaluator = AccessEvaluator(self.resolver)
        self._guard = Guard(self.evaluator)

    @classmethod
    def create(cls, config: Union[GeoConfig, Dict[str, Any], None] = None, **kwargs) -> "GeoLocation":
        return cls(config, **kwargs)

    @classmethod
    def from_env(cls, path: Optional[str] = None, **overrides) -> "GeoLocation":
        """Build from GEOGATE_* environment variables and an optional YAML file"""
        return cls(load_config(path, **overrides))

    def with_countries(self, countries: Iterable[str]) -> "GeoLocation":
        """Copy with a different allow-list sharing this instance's cache and providers"""
        config = self.config.model_copy(deep=True)
        clone = GeoLocation(
            config,
            providers={p.name: p for p in self.resolver.providers},
            cache=self.resolver.cache,
            sleep=self.resolver.sleep,
        )
        clone.set_allowed_countries(countries)
        return clone

    # Resolution

    def get_country_from_ip(self, ip: Optional[str] = None, request: Optional[RequestInfo] = None) -> Optional[str]:
        return self.resolver.get_country_from_ip(ip, request)

    def resolve(self, ip: Optional[str] = None, request: Optional[RequestInfo] = None) -> Resolution:
        return self.resolver.resolve(ip, request)

    def get_location_details(self, ip: Optional[str] = None, request: Optional[RequestInfo] = None) -> LocationRecord:
        return self.resolver.get_location_details(ip, request)

    def get_client_ip(self, request: Optional[RequestInfo] = None) -> str:
        return get_client_ip(request)

    # Access policy

    def decide(self, ip: Optional[str] = None, request: Optional[RequestInfo] = None) -> AccessDecision:
        return self.evaluator.decide(ip, request)

    def is_allowed(self, ip: Optional[str] = None, request: Optional[RequestInfo] = None) -> bool:
        return self.evaluator.is_allowed(ip, request)

    def validate(self, ip: Optional[str] = None, request: Optional[RequestInfo] = None) -> None:
        self.evaluator.validate(ip, request)

    def guard(self, ip: Optional[str] = None, request: Optional[RequestInfo] = None) -> Optional[Response]:
        return self._guard.guard(ip, request)

    def deny_access(self, message: Optional[str] = None, status_code: Optional[int] = None,
                    ip: Optional[str] = None, request: Optional[RequestInfo] = None) -> Response:
        return self._guard.deny_access(message, status_code, ip, request)

    def get_allowed_countries(self):
        return self.evaluator.get_allowed_countries()

    def set_allowed_countries(self, countries: Iterable[str]) -> "GeoLocation":
        self.evaluator.set_allowed_countries(countries)
        return self

    def add_allowed_country(self, country: str) -> "GeoLocation":
        self.evaluator.add_allowed_country(country)
        return self

    def remove_allowed_country(self, country: str) -> "GeoLocation":
        self.evaluator.remove_allowed_country(country)
        return self

    def is_country_allowed(self, country: str) -> bool:
        return self.evaluator.is_country_allowed(country)

    # Settings

    def set_message(self, key: str, message: str) -> "GeoLocation":
        self.config.messages[key] = message
        return self

    def set_api_provider(self, provider: str, token: Optional[str] = None,
                         api_key: Optional[str] = None, guid: Optional[str] = None) -> "GeoLocation":
        """Switch the primary provider; the config is left untouched if the chain cannot be built"""
        changes: Dict[str, Any] = {"api_provider": provider.strip().lower()}
        if token is not None:
            changes["ipinfo_token"] = token
        if api_key is not None:
            changes["ipdata_api_key"] = api_key
        if guid is not None:
            changes["ip_api_ir_guid"] = guid

        chain = self.resolver.build_chain(self.config.model_copy(update=changes))
        for field, value in changes.items():
            setattr(self.config, field, value)
        self.resolver.use_providers(chain)
        logger.info("Geolocation provider switched", extra={"providers": self.resolver.provider_names})
        return self

    def get_config(self) -> Dict[str, Any]:
        return self.config.model_dump()

    def debug_info(self, request: Optional[RequestInfo] = None) -> Dict[str, Any]:
        """Troubleshooting snapshot for the current request"""
        ip = get_client_ip(request)
        try:
            location = self.get_location_details(ip).model_dump()
            country = location.get("country_code")
        except GeoLocationError as e:
            location = {"error": e.message}
            country = None

        return {
            "client_ip": ip,
            "country": country,
            "location": location,
            "allowed_countries": self.get_allowed_countries(),
            "is_allowed": self.is_allowed(ip),
            "providers": self.resolver.provider_names,
            "cache_enabled": self.resolver.cache_enabled,
        }

    def close(self) -> None:
        self.resolver.close()
