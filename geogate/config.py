"""
Configuration module for geogate
"""

import os
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator


def env_bool(key: str, default: bool = False) -> bool:
    """Get boolean value from environment variable"""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")


def env_list(key: str, default: List[str]) -> List[str]:
    """Get comma-separated list from environment variable"""
    value = os.getenv(key)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


# Provider identifiers
PROVIDER_IP_API = "ip-api"
PROVIDER_IPINFO = "ipinfo"
PROVIDER_IPDATA = "ipdata"
PROVIDER_IP_API_IR = "ip-api-ir"

DEFAULT_PROVIDER = PROVIDER_IP_API
DEFAULT_FALLBACK_PROVIDERS = [PROVIDER_IP_API, PROVIDER_IPINFO]

LOCAL_COUNTRY = "LOCAL"
UNKNOWN_COUNTRY = "UNKNOWN"

# Fixed pause between attempts against the same provider
RETRY_BACKOFF_SECONDS = 0.1

DEFAULT_MESSAGES = {
    "not_allowed": "Access from your country is not allowed.",
    "api_error": "Unable to determine your location.",
}

# API configuration
API_PREFIX = "/v1"
CONFIG_PATH = os.getenv("GEOGATE_CONFIG", "")


class ResponseSettings(BaseModel):
    status_code: int = Field(403, description="HTTP status used for denials")
    json_response: bool = Field(True, description="Render denials as JSON instead of plain text")


class GeoConfig(BaseModel):
    """Runtime configuration for country resolution and access policy"""

    allowed_countries: List[str] = Field(default_factory=lambda: ["IR"])
    api_provider: str = DEFAULT_PROVIDER
    fallback_providers: List[str] = Field(default_factory=lambda: list(DEFAULT_FALLBACK_PROVIDERS))

    # Provider credentials
    ipinfo_token: str = ""
    ipdata_api_key: str = ""
    ip_api_ir_guid: str = ""

    timeout: float = Field(5.0, gt=0)
    connect_timeout: float = Field(3.0, gt=0)
    retry_count: int = Field(2, ge=1)

    fallback_allow: bool = True
    allow_local: bool = True
    local_country: str = LOCAL_COUNTRY

    cache_enabled: bool = True
    cache_ttl: int = Field(3600, ge=0)

    messages: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_MESSAGES))
    response: ResponseSettings = Field(default_factory=ResponseSettings)

    @field_validator("allowed_countries", mode="before")
    @classmethod
    def _normalize_countries(cls, value: Any) -> List[str]:
        if isinstance(value, str):
            value = value.split(",")
        return normalize_countries(value or [])

    @field_validator("api_provider", mode="before")
    @classmethod
    def _normalize_provider(cls, value: Any) -> str:
        return str(value or DEFAULT_PROVIDER).strip().lower()

    @field_validator("fallback_providers", mode="before")
    @classmethod
    def _normalize_fallbacks(cls, value: Any) -> List[str]:
        if isinstance(value, str):
            value = value.split(",")
        return [str(p).strip().lower() for p in (value or []) if str(p).strip()]

    @field_validator("messages", mode="before")
    @classmethod
    def _merge_messages(cls, value: Any) -> Dict[str, str]:
        merged = dict(DEFAULT_MESSAGES)
        merged.update(value or {})
        return merged

    def message(self, key: str) -> str:
        return self.messages.get(key, DEFAULT_MESSAGES.get(key, ""))

    def credentials_for(self, provider: str) -> Optional[str]:
        """Credential string configured for a provider, if any"""
        return {
            PROVIDER_IPINFO: self.ipinfo_token,
            PROVIDER_IPDATA: self.ipdata_api_key,
            PROVIDER_IP_API_IR: self.ip_api_ir_guid,
        }.get(provider) or None


def normalize_countries(countries) -> List[str]:
    """Uppercase, strip and de-duplicate country codes preserving order"""
    seen = []
    for country in countries:
        code = str(country).strip().upper()
        if code and code not in seen:
            seen.append(code)
    return seen


def env_defaults() -> Dict[str, Any]:
    """Collect configuration overrides from GEOGATE_* environment variables"""
    values: Dict[str, Any] = {
        "allowed_countries": env_list("GEOGATE_ALLOWED_COUNTRIES", ["IR"]),
        "api_provider": os.getenv("GEOGATE_API_PROVIDER", DEFAULT_PROVIDER),
        "fallback_providers": env_list("GEOGATE_FALLBACK_PROVIDERS", DEFAULT_FALLBACK_PROVIDERS),
        "ipinfo_token": os.getenv("GEOGATE_IPINFO_TOKEN", ""),
        "ipdata_api_key": os.getenv("GEOGATE_IPDATA_API_KEY", ""),
        "ip_api_ir_guid": os.getenv("GEOGATE_IP_API_IR_GUID", ""),
        "timeout": float(os.getenv("GEOGATE_TIMEOUT", "5")),
        "connect_timeout": float(os.getenv("GEOGATE_CONNECT_TIMEOUT", "3")),
        "retry_count": int(os.getenv("GEOGATE_RETRY_COUNT", "2")),
        "fallback_allow": env_bool("GEOGATE_FALLBACK_ALLOW", True),
        "allow_local": env_bool("GEOGATE_ALLOW_LOCAL", True),
        "local_country": os.getenv("GEOGATE_LOCAL_COUNTRY", LOCAL_COUNTRY),
        "cache_enabled": env_bool("GEOGATE_CACHE_ENABLED", True),
        "cache_ttl": int(os.getenv("GEOGATE_CACHE_TTL", "3600")),
        "response": {
            "status_code": int(os.getenv("GEOGATE_STATUS_CODE", "403")),
            "json_response": env_bool("GEOGATE_JSON_RESPONSE", True),
        },
    }
    return values


def _merge(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in updates.items():
        if key in ("messages", "response") and isinstance(value, dict):
            nested = dict(merged.get(key) or {})
            nested.update(value)
            merged[key] = nested
        else:
            merged[key] = value
    return merged


def load_config(path: Optional[str] = None, **overrides) -> GeoConfig:
    """
    Build a GeoConfig from environment defaults, an optional YAML file and
    keyword overrides (later sources win, nested dicts merge key-wise).
    """
    values = env_defaults()

    path = path or CONFIG_PATH
    if path:
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        values = _merge(values, loaded)

    values = _merge(values, overrides)
    return GeoConfig(**values)
