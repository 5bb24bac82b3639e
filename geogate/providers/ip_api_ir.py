from typing import Any, Dict, Tuple

from ..exceptions import ProviderError
from ..models import LocationRecord
from .base import GeoProvider

# Requested explicitly when no GUID is configured
FIELDS = "status,message,country,countryCode,regionName,city"


class IpApiIrProvider(GeoProvider):
    """
    ip-api.ir, optimized for servers inside Iran.

    With a GUID the account's full profile endpoint is used; without one the
    public endpoint is asked for an explicit field list.
    """

    name = "ip-api-ir"
    base_url = "https://api.ip-api.ir/json"

    def build_request(self, ip: str) -> Tuple[str, Dict[str, str]]:
        if self.credential:
            return f"{self.base_url}/{ip}/{self.credential}", {}
        return f"{self.base_url}/{ip}", {"fields": FIELDS}

    def parse(self, ip: str, data: Dict[str, Any]) -> LocationRecord:
        if data.get("status") == "fail":
            reason = data.get("message") or "unknown reason"
            raise ProviderError(f"ip-api-ir failed for {ip}: {reason}", self.name, ip)

        return self.record(
            ip,
            country_code=data.get("countryCode"),
            country_name=data.get("country"),
            city=data.get("city"),
            region=data.get("regionName"),
        )
