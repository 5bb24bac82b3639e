from typing import Any, Dict, Tuple

from ..models import LocationRecord
from .base import GeoProvider


class IpDataProvider(GeoProvider):
    """ipdata.co; requires an API key"""

    name = "ipdata"
    base_url = "https://api.ipdata.co"

    def __init__(self, credential=None, **kwargs):
        if not credential:
            raise ValueError("ipdata provider requires an API key (ipdata_api_key)")
        super().__init__(credential, **kwargs)

    def build_request(self, ip: str) -> Tuple[str, Dict[str, str]]:
        return f"{self.base_url}/{ip}", {"api-key": self.credential}

    def parse(self, ip: str, data: Dict[str, Any]) -> LocationRecord:
        return self.record(
            ip,
            country_code=data.get("country_code"),
            country_name=data.get("country_name"),
            city=data.get("city"),
            region=data.get("region"),
        )
