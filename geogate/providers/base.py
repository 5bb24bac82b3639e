"""
Base geolocation provider client
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

import httpx

from ..exceptions import ProviderError
from ..models import LocationRecord, provider_source

logger = logging.getLogger("geogate.providers")


class GeoProvider(ABC):
    """One remote lookup service; subclasses map its JSON onto LocationRecord"""

    name: str = ""

    def __init__(
        self,
        credential: Optional[str] = None,
        timeout: float = 5.0,
        connect_timeout: float = 3.0,
        client: Optional[httpx.Client] = None,
    ):
        self.credential = credential or None
        self.timeout = httpx.Timeout(timeout, connect=connect_timeout)
        self._client = client
        self._owns_client = client is None
        self._client_lock = threading.Lock()
        self.error_count = 0
        self.success_count = 0

    @property
    def client(self) -> httpx.Client:
        with self._client_lock:
            if self._client is None:
                self._client = httpx.Client(timeout=self.timeout)
            return self._client

    @abstractmethod
    def build_request(self, ip: str) -> Tuple[str, Dict[str, str]]:
        """URL and query parameters for one lookup"""

    @abstractmethod
    def parse(self, ip: str, data: Dict[str, Any]) -> LocationRecord:
        """Map the provider payload onto a LocationRecord"""

    def lookup(self, ip: str) -> LocationRecord:
        url, params = self.build_request(ip)
        try:
            data = self._get_json(ip, url, params)
            record = self.parse(ip, data)
        except ProviderError:
            self.error_count += 1
            raise
        self.success_count += 1
        return record

    def _get_json(self, ip: str, url: str, params: Dict[str, str]) -> Dict[str, Any]:
        try:
            response = self.client.get(url, params=params or None, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise ProviderError(f"{self.name} timed out for {ip}", self.name, ip) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"{self.name} request failed for {ip}: {e}", self.name, ip) from e

        if not response.is_success:
            raise ProviderError(
                f"{self.name} returned HTTP {response.status_code} for {ip}", self.name, ip
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"{self.name} returned an unparseable body for {ip}", self.name, ip) from e

        if not isinstance(data, dict):
            raise ProviderError(f"{self.name} returned an unexpected payload for {ip}", self.name, ip)
        return data

    def record(self, ip: str, **fields) -> LocationRecord:
        return LocationRecord(ip=ip, is_local=False, source=provider_source(self.name), **fields)

    def get_status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "authenticated": self.credential is not None,
            "success_count": self.success_count,
            "error_count": self.error_count,
        }

    def close(self) -> None:
        with self._client_lock:
            if self._owns_client and self._client is not None:
                self._client.close()
                self._client = None
