"""
Country resolution: CDN header shortcut, local ranges, cache, then the
provider chain with per-provider retries and cross-provider fallback.
"""

import logging
import time
from typing import Callable, Dict, List, Optional, Union

import httpx

from .config import GeoConfig, RETRY_BACKOFF_SECONDS, UNKNOWN_COUNTRY
from .exceptions import ProviderError, ResolutionExhausted
from .models import (
    AccessReason,
    LocationRecord,
    RequestInfo,
    Resolution,
    SOURCE_CDN,
    SOURCE_CACHE,
    SOURCE_LOCAL,
)
from .providers import GeoProvider, build_provider, provider_order
from .security import get_cdn_country, get_client_ip, is_local_ip
from .services.cache import CountryCache, is_miss
from .services.prometheus_metrics import prometheus_metrics

logger = logging.getLogger("geogate.resolver")

AttemptResult = Union[LocationRecord, ProviderError]


class CountryResolver:
    """Resolves the country for an IP; owns its cache and provider chain"""

    def __init__(
        self,
        config: GeoConfig,
        providers: Optional[Dict[str, GeoProvider]] = None,
        cache: Optional[CountryCache] = None,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.cache = cache if cache is not None else CountryCache(enabled=config.cache_enabled)
        self._client = client
        self._provider_overrides = dict(providers or {})
        self.sleep = sleep
        self.providers: List[GeoProvider] = self._build_chain()

    def _build_chain(self, config: Optional[GeoConfig] = None) -> List[GeoProvider]:
        config = config or self.config
        chain = []
        for name in provider_order(config.api_provider, config.fallback_providers):
            provider = self._provider_overrides.get(name)
            # An injected provider only stands in while its credential still matches
            if provider is None or provider.credential != config.credentials_for(name):
                provider = build_provider(name, config, self._client)
            chain.append(provider)
        return chain

    def build_chain(self, config: GeoConfig) -> List[GeoProvider]:
        """Provider chain for ``config``; raises ValueError without touching this resolver"""
        return self._build_chain(config)

    def use_providers(self, chain: List[GeoProvider]) -> None:
        """Swap in ``chain``, closing replaced providers this resolver built itself"""
        injected = {id(p) for p in self._provider_overrides.values()}
        keep = {id(p) for p in chain}
        replaced, self.providers = self.providers, chain
        for provider in replaced:
            if id(provider) not in keep and id(provider) not in injected:
                provider.close()

    def rebuild_providers(self) -> None:
        """Re-read provider settings from config"""
        self.use_providers(self._build_chain())

    @property
    def provider_names(self) -> List[str]:
        return [p.name for p in self.providers]

    @property
    def cache_enabled(self) -> bool:
        return self.config.cache_enabled and self.cache.enabled

    def get_country_from_ip(self, ip: Optional[str] = None, request: Optional[RequestInfo] = None) -> Optional[str]:
        """
        Country code for ``ip``, or for the current request when ``ip`` is None.

        Returns None when every provider failed and fallback_allow is set;
        raises ResolutionExhausted when it is not.
        """
        return self.resolve(ip, request).country

    def resolve(self, ip: Optional[str] = None, request: Optional[RequestInfo] = None) -> Resolution:
        started = time.perf_counter()
        try:
            return self._resolve(ip, request)
        finally:
            prometheus_metrics.observe_resolve(time.perf_counter() - started)

    def _resolve(self, ip: Optional[str], request: Optional[RequestInfo]) -> Resolution:
        # CDN headers describe the current connection only
        if ip is None:
            country = get_cdn_country(request)
            if country:
                prometheus_metrics.record_lookup(SOURCE_CDN)
                return Resolution(country=country, reason=AccessReason.CDN)
            ip = get_client_ip(request)

        if is_local_ip(ip):
            prometheus_metrics.record_lookup(SOURCE_LOCAL)
            return Resolution(country=self.config.local_country, reason=AccessReason.LOCAL, ip=ip)

        if self.cache_enabled:
            cached = self.cache.lookup(ip)
            if not is_miss(cached):
                logger.debug("Cache hit", extra={"client_ip": ip, "country": cached})
                prometheus_metrics.record_lookup(SOURCE_CACHE)
                return Resolution(country=cached, reason=AccessReason.CACHE, ip=ip)

        attempts: List[str] = []
        outcome = self._run_chain(ip, attempts)

        if isinstance(outcome, LocationRecord):
            country = outcome.country_code or UNKNOWN_COUNTRY
            if self.cache_enabled:
                self.cache.put(ip, country, self.config.cache_ttl)
            prometheus_metrics.record_lookup(outcome.source)
            return Resolution(country=country, reason=AccessReason.PROVIDER_SUCCESS, ip=ip)

        prometheus_metrics.record_lookup("exhausted")
        logger.error("All geolocation providers failed", extra={
            "client_ip": ip,
            "attempts": attempts,
            "last_error": str(outcome) if outcome else None,
            "fallback_allow": self.config.fallback_allow,
        })
        if self.config.fallback_allow:
            return Resolution(country=None, reason=AccessReason.EXHAUSTED_FALLBACK_ALLOW, ip=ip)
        raise ResolutionExhausted(self.config.message("api_error"), attempts) from outcome

    def _run_chain(self, ip: str, attempts: List[str]) -> Optional[AttemptResult]:
        """First successful record, else the last ProviderError seen"""
        last_error: Optional[ProviderError] = None
        retries = self.config.retry_count

        for provider in self.providers:
            for attempt in range(1, retries + 1):
                attempts.append(provider.name)
                result = self._attempt(provider, ip)
                if isinstance(result, LocationRecord):
                    return result

                last_error = result
                logger.warning("Provider lookup failed", extra={
                    "provider": provider.name,
                    "attempt": attempt,
                    "client_ip": ip,
                    "error": str(result),
                })
                if attempt < retries:
                    self.sleep(RETRY_BACKOFF_SECONDS)

        return last_error

    def _attempt(self, provider: GeoProvider, ip: str) -> AttemptResult:
        try:
            record = provider.lookup(ip)
        except ProviderError as e:
            prometheus_metrics.record_provider_attempt(provider.name, success=False)
            return e
        prometheus_metrics.record_provider_attempt(provider.name, success=True)
        return record

    def get_location_details(self, ip: Optional[str] = None, request: Optional[RequestInfo] = None) -> LocationRecord:
        """Full location record from the provider chain; never cached"""
        if ip is None:
            ip = get_client_ip(request)

        if is_local_ip(ip):
            return LocationRecord(
                ip=ip,
                country_code=self.config.local_country,
                country_name="Local Network",
                is_local=True,
                source=SOURCE_LOCAL,
            )

        attempts: List[str] = []
        outcome = self._run_chain(ip, attempts)
        if isinstance(outcome, LocationRecord):
            return outcome
        raise ResolutionExhausted(self.config.message("api_error"), attempts) from outcome

    def close(self) -> None:
        for provider in self.providers:
            provider.close()
