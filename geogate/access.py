"""
Allow-list policy applied on top of country resolution
"""

import logging
from typing import Iterable, List, Optional

from .config import normalize_countries
from .exceptions import CountryNotAllowed, GeoLocationError
from .models import AccessDecision, AccessReason, RequestInfo
from .resolver import CountryResolver
from .services.prometheus_metrics import prometheus_metrics

logger = logging.getLogger("geogate.access")


class AccessEvaluator:
    """Grants or denies access for a resolved country"""

    def __init__(self, resolver: CountryResolver):
        self.resolver = resolver

    @property
    def config(self):
        return self.resolver.config

    def decide(self, ip: Optional[str] = None, request: Optional[RequestInfo] = None) -> AccessDecision:
        config = self.config
        try:
            resolution = self.resolver.resolve(ip, request)
        except Exception as e:
            # Any resolver failure, strict exhaustion included, falls back to policy
            allowed = config.fallback_allow
            reason = AccessReason.EXHAUSTED_FALLBACK_ALLOW if allowed else AccessReason.EXHAUSTED_FALLBACK_DENY
            logger.warning("Country resolution failed, applying fallback policy", extra={
                "client_ip": ip,
                "error": str(e),
                "error_type": type(e).__name__,
                "allowed": allowed,
            })
            return self._decision(allowed, None, reason)

        country = resolution.country
        if country is None:
            allowed = True
        elif country == config.local_country:
            allowed = config.allow_local
        else:
            allowed = country.upper() in config.allowed_countries

        return self._decision(allowed, country, resolution.reason)

    def _decision(self, allowed: bool, country: Optional[str], reason: AccessReason) -> AccessDecision:
        prometheus_metrics.record_decision(allowed, reason.value)
        return AccessDecision(allowed=allowed, resolved_country=country, reason=reason)

    def is_allowed(self, ip: Optional[str] = None, request: Optional[RequestInfo] = None) -> bool:
        return self.decide(ip, request).allowed

    def validate(self, ip: Optional[str] = None, request: Optional[RequestInfo] = None) -> None:
        """
        Raise CountryNotAllowed when access is denied.

        The country reported in the error comes from a second resolution; with
        caching enabled that second pass is normally a cache hit.
        """
        if self.is_allowed(ip, request):
            return

        try:
            country = self.resolver.get_country_from_ip(ip, request)
        except GeoLocationError:
            country = None

        logger.info("Access denied", extra={
            "client_ip": ip,
            "country": country,
            "allowed_countries": self.config.allowed_countries,
        })
        raise CountryNotAllowed(
            self.config.message("not_allowed"),
            detected_country=country,
            allowed_countries=self.get_allowed_countries(),
            code=self.config.response.status_code,
        )

    # Allow-list management

    def get_allowed_countries(self) -> List[str]:
        return list(self.config.allowed_countries)

    def set_allowed_countries(self, countries: Iterable[str]) -> "AccessEvaluator":
        self.config.allowed_countries = normalize_countries(countries)
        return self

    def add_allowed_country(self, country: str) -> "AccessEvaluator":
        self.config.allowed_countries = normalize_countries(
            list(self.config.allowed_countries) + [country]
        )
        return self

    def remove_allowed_country(self, country: str) -> "AccessEvaluator":
        code = country.strip().upper()
        self.config.allowed_countries = [c for c in self.config.allowed_countries if c != code]
        return self

    def is_country_allowed(self, country: str) -> bool:
        return country.strip().upper() in self.config.allowed_countries
