"""
Unit tests for address geocoding (Nominatim replaced by httpx.MockTransport).
"""

import asyncio

import httpx
import pytest

import api.geocoding
from api.geocoding import (
    AddressData,
    format_address,
    normalize_and_geocode,
    reverse_geocode,
)
from src.coverage.errors import GeocodingError


class TestNormalizeAndGeocode:
    def test_first_result_used(self, geocoder):
        geocoder.add_result(49.8951, -97.1384)
        geocoder.add_result(1.0, 1.0, display_name="Somewhere else")

        address = asyncio.run(normalize_and_geocode("100 main st winnipeg"))

        assert address.raw == "100 main st winnipeg"
        assert address.normalized == "100 Main St, Winnipeg, Manitoba, Canada"
        assert address.lat == pytest.approx(49.8951)
        assert address.lng == pytest.approx(-97.1384)
        assert address.street == "100 Main St"
        assert address.city == "Winnipeg"
        assert address.province == "MB"
        assert address.postal_code == "R3C 1A1"
        assert address.country == "Canada"

    def test_request_parameters(self, geocoder):
        geocoder.add_result(49.0, -97.0)
        asyncio.run(normalize_and_geocode("1 Portage Ave"))

        request = geocoder.requests[0]
        assert request.url.path == "/search"
        assert request.url.params["q"] == "1 Portage Ave"
        assert request.url.params["countrycodes"] == "ca"
        assert "User-Agent" in request.headers

    def test_no_results(self, geocoder):
        with pytest.raises(GeocodingError, match="Geocoding failed"):
            asyncio.run(normalize_and_geocode("nowhere at all"))

    @pytest.mark.parametrize("payload", [{"error": "Unable to geocode"}, ["not an object"], "nothing"])
    def test_unexpected_payload(self, monkeypatch, payload):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=payload))
        monkeypatch.setattr(api.geocoding, "GEOCODING_HTTP_TRANSPORT", transport)
        with pytest.raises(GeocodingError, match="could not be geocoded"):
            asyncio.run(normalize_and_geocode("100 Main St"))

    def test_provider_error(self, geocoder):
        geocoder.status_code = 503
        with pytest.raises(GeocodingError, match="503"):
            asyncio.run(normalize_and_geocode("100 Main St"))

    def test_network_error(self, monkeypatch):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        monkeypatch.setattr(api.geocoding, "GEOCODING_HTTP_TRANSPORT", httpx.MockTransport(refuse))
        with pytest.raises(GeocodingError):
            asyncio.run(normalize_and_geocode("100 Main St"))


class TestReverseGeocode:
    def test_resolved_address_keeps_given_coordinates(self, geocoder):
        geocoder.set_reverse(49.9, -97.2)

        address = asyncio.run(reverse_geocode(49.8951, -97.1384))

        assert address.normalized == "100 Main St, Winnipeg, Manitoba, Canada"
        assert address.lat == 49.8951
        assert address.lng == -97.1384
        assert address.city == "Winnipeg"

    def test_placeholder_when_nothing_found(self, geocoder):
        address = asyncio.run(reverse_geocode(49.8951, -97.1384))

        assert address.raw == "Current Location (49.895100, -97.138400)"
        assert address.normalized == address.raw
        assert address.country == "Canada"
        assert (address.lat, address.lng) == (49.8951, -97.1384)

    def test_placeholder_on_provider_failure(self, geocoder):
        geocoder.status_code = 500
        address = asyncio.run(reverse_geocode(1.5, 2.25))
        assert address.raw == "Current Location (1.500000, 2.250000)"


class TestFormatAddress:
    def test_joins_non_empty_parts(self):
        address = AddressData(
            raw="x", normalized="x", lat=0, lng=0,
            street="100 Main St", city="Winnipeg", province="MB", postal_code="R3C 1A1",
        )
        assert format_address(address) == "100 Main St, Winnipeg, MB, R3C 1A1"

    def test_skips_empty_parts(self):
        address = AddressData(raw="x", normalized="x", lat=0, lng=0, city="Brandon", province="MB")
        assert format_address(address) == "Brandon, MB"

    def test_all_empty(self):
        assert format_address(AddressData(raw="", normalized="", lat=0, lng=0)) == ""
