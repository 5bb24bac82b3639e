from typing import Any, Dict, Tuple

from ..exceptions import ProviderError
from ..models import LocationRecord
from .base import GeoProvider


class IpApiProvider(GeoProvider):
    """ip-api.com, free tier, no key"""

    name = "ip-api"
    base_url = "http://ip-api.com/json"

    def build_request(self, ip: str) -> Tuple[str, Dict[str, str]]:
        return f"{self.base_url}/{ip}", {}

    def parse(self, ip: str, data: Dict[str, Any]) -> LocationRecord:
        # A "fail" status is a failed attempt, not an unknown country
        if data.get("status") == "fail":
            reason = data.get("message") or "unknown reason"
            raise ProviderError(f"ip-api failed for {ip}: {reason}", self.name, ip)

        return self.record(
            ip,
            country_code=data.get("countryCode"),
            country_name=data.get("country"),
            city=data.get("city"),
            region=data.get("regionName"),
        )
