"""
Error types raised while resolving countries and enforcing the allow-list
"""

import json
from typing import Any, Dict, List, Optional


class GeoLocationError(Exception):
    """Base class for geogate errors"""

    def __init__(
        self,
        message: str = "GeoLocation error occurred",
        code: int = 0,
        country_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.country_code = country_code
        self.context = context or {}


class ProviderError(GeoLocationError):
    """A single provider attempt failed (transport, status, body or provider-reported)"""

    def __init__(self, message: str, provider: str, ip: Optional[str] = None):
        super().__init__(message, context={"provider": provider, "ip": ip})
        self.provider = provider
        self.ip = ip


class ResolutionExhausted(GeoLocationError):
    """Every provider and every retry failed"""

    def __init__(self, message: str, attempts: Optional[List[str]] = None):
        super().__init__(message, code=503, context={"attempts": list(attempts or [])})
        self.attempts = list(attempts or [])


class CountryNotAllowed(GeoLocationError):
    """The resolved country is not on the allow-list"""

    def __init__(
        self,
        message: str = "Access from your country is not allowed",
        detected_country: Optional[str] = None,
        allowed_countries: Optional[List[str]] = None,
        code: int = 403,
    ):
        allowed = list(allowed_countries or [])
        super().__init__(
            message,
            code=code,
            country_code=detected_country,
            context={
                "detected_country": detected_country,
                "allowed_countries": allowed,
            },
        )
        self.detected_country = detected_country
        self.allowed_countries = allowed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": True,
            "message": self.message,
            "detected_country": self.detected_country,
            "allowed_countries": self.allowed_countries,
            "code": self.code,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)
