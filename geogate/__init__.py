"""
geogate: country-based access control for HTTP services
"""

from .config import GeoConfig, load_config
from .exceptions import CountryNotAllowed, GeoLocationError, ProviderError, ResolutionExhausted
from .geolocation import GeoLocation
from .models import AccessDecision, AccessReason, LocationRecord, RequestInfo
from .providers import GeoProvider, register_provider

__all__ = [
    "AccessDecision",
    "AccessReason",
    "CountryNotAllowed",
    "GeoConfig",
    "GeoLocation",
    "GeoLocationError",
    "GeoProvider",
    "LocationRecord",
    "ProviderError",
    "RequestInfo",
    "ResolutionExhausted",
    "load_config",
    "register_provider",
]
