"""
Provider registry: identifier -> client class
"""
from typing import Dict, List, Optional, Type

import httpx

from .base import GeoProvider
from .ip_api import IpApiProvider
from .ip_api_ir import IpApiIrProvider
from .ipdata import IpDataProvider
from .ipinfo import IpInfoProvider

PROVIDERS: Dict[str, Type[GeoProvider]] = {}


def register_provider(cls: Type[GeoProvider], name: Optional[str] = None) -> Type[GeoProvider]:
    PROVIDERS[(name or cls.name).lower()] = cls
    return cls


for _cls in (IpApiProvider, IpInfoProvider, IpDataProvider, IpApiIrProvider):
    register_provider(_cls)


def provider_order(primary: str, fallbacks: List[str]) -> List[str]:
    """Primary first, then fallbacks in order, without duplicates"""
    order = [primary]
    for name in fallbacks:
        if name not in order:
            order.append(name)
    return order


def build_provider(name: str, config, client: Optional[httpx.Client] = None) -> GeoProvider:
    cls = PROVIDERS.get(name)
    if cls is None:
        raise ValueError(f"Unknown geolocation provider: {name!r} (known: {sorted(PROVIDERS)})")
    return cls(
        config.credentials_for(name),
        timeout=config.timeout,
        connect_timeout=config.connect_timeout,
        client=client,
    )


__all__ = [
    "GeoProvider",
    "IpApiProvider",
    "IpApiIrProvider",
    "IpDataProvider",
    "IpInfoProvider",
    "PROVIDERS",
    "build_provider",
    "provider_order",
    "register_provider",
]
