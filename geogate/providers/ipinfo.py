from typing import Any, Dict, Tuple

from ..exceptions import ProviderError
from ..models import LocationRecord
from .base import GeoProvider


class IpInfoProvider(GeoProvider):
    """ipinfo.io; the token is optional and sent as a query parameter"""

    name = "ipinfo"
    base_url = "https://ipinfo.io"

    def build_request(self, ip: str) -> Tuple[str, Dict[str, str]]:
        params = {"token": self.credential} if self.credential else {}
        return f"{self.base_url}/{ip}/json", params

    def parse(self, ip: str, data: Dict[str, Any]) -> LocationRecord:
        if data.get("error"):
            error = data["error"]
            detail = error.get("message") if isinstance(error, dict) else error
            raise ProviderError(f"ipinfo failed for {ip}: {detail}", self.name, ip)

        # ipinfo has no country display name
        return self.record(
            ip,
            country_code=data.get("country"),
            city=data.get("city"),
            region=data.get("region"),
        )
