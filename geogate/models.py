import re
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

COUNTRY_CODE_RE = re.compile(r"^[A-Z]{2}$")

# Record sources
SOURCE_CDN = "cdn-header"
SOURCE_CACHE = "cache"
SOURCE_LOCAL = "local"
PROVIDER_SOURCE_PREFIX = "provider:"


def provider_source(name: str) -> str:
    return f"{PROVIDER_SOURCE_PREFIX}{name}"


class LocationRecord(BaseModel):
    """Normalized result of a provider lookup or a local/CDN shortcut"""

    ip: str
    country_code: Optional[str] = Field(None, description="ISO 3166-1 alpha-2, uppercase")
    country_name: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    is_local: bool = False
    source: str = Field(SOURCE_LOCAL, description="cdn-header | cache | local | provider:<name>")

    @field_validator("country_code", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip().upper()
        return value or None

    @field_validator("country_name", "city", "region", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @model_validator(mode="after")
    def _check_country(self):
        # Local records carry the configured sentinel instead of a real code
        if self.country_code and not self.is_local and not COUNTRY_CODE_RE.match(self.country_code):
            self.country_code = None
        return self


class AccessReason(str, Enum):
    CDN = "cdn"
    CACHE = "cache"
    LOCAL = "local"
    PROVIDER_SUCCESS = "provider-success"
    EXHAUSTED_FALLBACK_ALLOW = "provider-exhausted-fallback-allow"
    EXHAUSTED_FALLBACK_DENY = "provider-exhausted-fallback-deny"


class Resolution(BaseModel):
    """Country resolved for one call, with the path that produced it"""

    country: Optional[str] = None
    reason: AccessReason
    ip: Optional[str] = None


class AccessDecision(BaseModel):
    allowed: bool
    resolved_country: Optional[str] = None
    reason: AccessReason


class RequestInfo:
    """Header source and peer address of the request being evaluated"""

    def __init__(self, headers: Optional[Mapping[str, str]] = None, client_host: Optional[str] = None):
        self.headers: Dict[str, str] = {
            str(k).lower(): str(v) for k, v in (headers or {}).items()
        }
        self.client_host = client_host

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    @classmethod
    def from_request(cls, request) -> "RequestInfo":
        """Build from a Starlette/FastAPI request"""
        client_host = request.client.host if request.client else None
        return cls(dict(request.headers), client_host)
