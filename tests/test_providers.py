"""
Tests for provider clients against a mocked HTTP transport
"""

import threading

import httpx
import pytest

from geogate.config import GeoConfig
from geogate.exceptions import ProviderError
from geogate.providers import (
    PROVIDERS,
    IpApiIrProvider,
    IpApiProvider,
    IpDataProvider,
    IpInfoProvider,
    build_provider,
    provider_order,
)


def mock_client(payload=None, status=200, seen=None, content=None, exc=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request.url)
        if exc is not None:
            raise exc
        if content is not None:
            return httpx.Response(status, content=content)
        return httpx.Response(status, json=payload)
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestIpApi:
    def test_maps_fields(self):
        seen = []
        client = mock_client({
            "status": "success",
            "country": "Germany",
            "countryCode": "DE",
            "regionName": "Hesse",
            "city": "Frankfurt am Main",
        }, seen=seen)
        record = IpApiProvider(client=client).lookup("8.8.8.8")

        assert str(seen[0]) == "http://ip-api.com/json/8.8.8.8"
        assert record.country_code == "DE"
        assert record.country_name == "Germany"
        assert record.city == "Frankfurt am Main"
        assert record.region == "Hesse"
        assert record.is_local is False
        assert record.source == "provider:ip-api"

    def test_fail_status_is_an_error(self):
        client = mock_client({"status": "fail", "message": "reserved range"})
        provider = IpApiProvider(client=client)
        with pytest.raises(ProviderError) as exc_info:
            provider.lookup("8.8.8.8")
        assert "reserved range" in str(exc_info.value)
        assert exc_info.value.provider == "ip-api"
        assert provider.error_count == 1

    def test_missing_fields_stay_absent(self):
        record = IpApiProvider(client=mock_client({"status": "success", "countryCode": "de"})).lookup("8.8.8.8")
        assert record.country_code == "DE"
        assert record.country_name is None
        assert record.city is None
        assert record.region is None


class TestIpInfo:
    def test_token_sent_as_query_parameter(self):
        seen = []
        client = mock_client({"country": "IR", "city": "Tehran", "region": "Tehran"}, seen=seen)
        record = IpInfoProvider("secret", client=client).lookup("5.160.0.1")

        assert seen[0].path == "/5.160.0.1/json"
        assert seen[0].params["token"] == "secret"
        assert record.country_code == "IR"
        assert record.country_name is None

    def test_no_token_no_query(self):
        seen = []
        IpInfoProvider(client=mock_client({"country": "US"}, seen=seen)).lookup("8.8.8.8")
        assert "token" not in seen[0].params

    def test_error_payload(self):
        client = mock_client({"error": {"title": "Wrong ip", "message": "Please provide a valid IP address"}})
        with pytest.raises(ProviderError):
            IpInfoProvider(client=client).lookup("8.8.8.8")


class TestIpData:
    def test_api_key_required(self):
        with pytest.raises(ValueError):
            IpDataProvider()

    def test_key_in_query_and_fields_mapped(self):
        seen = []
        client = mock_client({
            "country_code": "FR",
            "country_name": "France",
            "city": "Paris",
            "region": "Ile-de-France",
        }, seen=seen)
        record = IpDataProvider("k3y", client=client).lookup("8.8.8.8")

        assert str(seen[0]).startswith("https://api.ipdata.co/8.8.8.8")
        assert seen[0].params["api-key"] == "k3y"
        assert record.country_code == "FR"
        assert record.country_name == "France"


class TestIpApiIr:
    def test_field_list_without_guid(self):
        seen = []
        IpApiIrProvider(client=mock_client({"status": "success", "countryCode": "IR"}, seen=seen)).lookup("5.160.0.1")
        assert seen[0].path == "/json/5.160.0.1"
        assert "countryCode" in seen[0].params["fields"]

    def test_full_profile_with_guid(self):
        seen = []
        record = IpApiIrProvider("abc-guid", client=mock_client(
            {"status": "success", "countryCode": "IR", "country": "Iran"}, seen=seen
        )).lookup("5.160.0.1")
        assert seen[0].path == "/json/5.160.0.1/abc-guid"
        assert "fields" not in seen[0].params
        assert record.country_name == "Iran"


class TestTransportFailures:
    """Every failure mode surfaces as ProviderError"""

    def test_non_2xx(self):
        with pytest.raises(ProviderError):
            IpApiProvider(client=mock_client({"status": "success"}, status=429)).lookup("8.8.8.8")

    def test_unparseable_body(self):
        with pytest.raises(ProviderError):
            IpApiProvider(client=mock_client(content=b"<html>oops</html>")).lookup("8.8.8.8")

    def test_non_object_body(self):
        with pytest.raises(ProviderError):
            IpInfoProvider(client=mock_client(["US"])).lookup("8.8.8.8")

    def test_connect_error(self):
        client = mock_client(exc=httpx.ConnectError("refused"))
        with pytest.raises(ProviderError) as exc_info:
            IpApiProvider(client=client).lookup("8.8.8.8")
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    def test_timeout(self):
        client = mock_client(exc=httpx.ReadTimeout("slow"))
        with pytest.raises(ProviderError, match="timed out"):
            IpApiProvider(client=client).lookup("8.8.8.8")


class TestRegistry:
    def test_known_providers_registered(self):
        assert {"ip-api", "ipinfo", "ipdata", "ip-api-ir"} <= set(PROVIDERS)

    def test_build_provider_applies_credentials_and_timeouts(self):
        config = GeoConfig(ipinfo_token="tok", timeout=7, connect_timeout=2)
        provider = build_provider("ipinfo", config)
        assert provider.credential == "tok"
        assert provider.timeout.read == 7
        assert provider.timeout.connect == 2

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            build_provider("nope", GeoConfig())

    def test_order_pins_primary_and_deduplicates(self):
        assert provider_order("p", ["q", "p", "r"]) == ["p", "q", "r"]
        assert provider_order("p", ["q", "q"]) == ["p", "q"]
        assert provider_order("p", []) == ["p"]


class TestOwnedClient:
    def test_concurrent_first_use_creates_one_client(self):
        provider = IpApiProvider()
        barrier = threading.Barrier(8)
        clients = []

        def grab():
            barrier.wait()
            clients.append(provider.client)

        threads = [threading.Thread(target=grab) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len({id(c) for c in clients}) == 1
        provider.close()
        assert clients[0].is_closed

    def test_injected_client_is_not_closed(self):
        client = mock_client({})
        provider = IpApiProvider(client=client)
        provider.close()
        assert client.is_closed is False
