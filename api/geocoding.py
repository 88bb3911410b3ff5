"""
Address normalization and geocoding against a Nominatim-compatible service.

Nominatim usage policy requires a User-Agent with contact info; set
GEOCODING_USER_AGENT in production.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from api.config import settings
from src.coverage.errors import GeocodingError

logger = logging.getLogger(__name__)

# Tests swap this for httpx.MockTransport
GEOCODING_HTTP_TRANSPORT: Optional[httpx.AsyncBaseTransport] = None


@dataclass
class AddressData:
    """Normalized address with coordinates."""

    raw: str
    normalized: str
    lat: float
    lng: float
    street: str = ""
    city: str = ""
    province: str = ""
    postal_code: str = ""
    country: str = "Canada"


def _headers() -> Dict[str, str]:
    return {
        "User-Agent": settings.geocoding_user_agent,
        "Accept": "application/json",
    }


def _province(address: Dict[str, Any]) -> str:
    # "CA-MB" -> "MB"
    iso = address.get("ISO3166-2-lvl4")
    if iso and "-" in iso:
        return iso.split("-", 1)[1]
    return address.get("state", "")


def _street(address: Dict[str, Any]) -> str:
    road = address.get("road")
    if not road:
        return ""
    return f"{address.get('house_number', '')} {road}".strip()


def _city(address: Dict[str, Any]) -> str:
    for key in ("city", "town", "village", "municipality", "hamlet"):
        if address.get(key):
            return address[key]
    return ""


def _from_result(raw: str, result: Dict[str, Any], lat: float, lng: float) -> AddressData:
    address = result.get("address") or {}
    return AddressData(
        raw=raw,
        normalized=result.get("display_name") or raw,
        lat=lat,
        lng=lng,
        street=_street(address),
        city=_city(address),
        province=_province(address),
        postal_code=address.get("postcode", ""),
        country=address.get("country") or settings.default_country,
    )


def _placeholder(lat: float, lng: float) -> AddressData:
    label = f"Current Location ({lat:.6f}, {lng:.6f})"
    return AddressData(raw=label, normalized=label, lat=lat, lng=lng, country=settings.default_country)


async def normalize_and_geocode(address: str) -> AddressData:
    """
    Resolve a free-text address to a normalized address and coordinates.

    Raises:
        GeocodingError: Provider unreachable, provider error, or no result
    """
    params = {
        "q": address,
        "format": "jsonv2",
        "addressdetails": 1,
        "limit": 1,
    }
    if settings.geocoding_country_codes:
        params["countrycodes"] = settings.geocoding_country_codes

    url = f"{settings.geocoding_base_url.rstrip('/')}/search"

    try:
        async with httpx.AsyncClient(
            timeout=settings.geocoding_timeout, transport=GEOCODING_HTTP_TRANSPORT
        ) as client:
            resp = await client.get(url, params=params, headers=_headers())
            resp.raise_for_status()
            results = resp.json()
    except httpx.HTTPStatusError as e:
        logger.warning(f"Geocoding provider error {e.response.status_code}")
        raise GeocodingError(f"Geocoding failed: provider returned {e.response.status_code}") from e
    except httpx.HTTPError as e:
        logger.warning(f"Geocoding request failed: {type(e).__name__}")
        raise GeocodingError(f"Geocoding failed: {type(e).__name__}") from e
    except ValueError as e:
        raise GeocodingError("Geocoding failed: invalid provider response") from e

    if not isinstance(results, list) or not results or not isinstance(results[0], dict):
        raise GeocodingError("Geocoding failed: Address could not be geocoded")

    result = results[0]
    try:
        lat, lng = float(result["lat"]), float(result["lon"])
    except (KeyError, TypeError, ValueError) as e:
        raise GeocodingError("Geocoding failed: result has no coordinates") from e

    return _from_result(address, result, lat, lng)


async def reverse_geocode(lat: float, lng: float) -> AddressData:
    """
    Describe coordinates as an address.

    Never raises: any provider failure yields a "Current Location (...)"
    placeholder carrying the original coordinates.
    """
    params = {
        "lat": lat,
        "lon": lng,
        "format": "jsonv2",
        "addressdetails": 1,
    }
    url = f"{settings.geocoding_base_url.rstrip('/')}/reverse"

    try:
        async with httpx.AsyncClient(
            timeout=settings.geocoding_timeout, transport=GEOCODING_HTTP_TRANSPORT
        ) as client:
            resp = await client.get(url, params=params, headers=_headers())
            resp.raise_for_status()
            result = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.info(f"Reverse geocoding unavailable ({type(e).__name__}); using placeholder")
        return _placeholder(lat, lng)

    if not isinstance(result, dict) or "error" in result or not result.get("display_name"):
        return _placeholder(lat, lng)

    return _from_result(result["display_name"], result, lat, lng)


def format_address(address: AddressData) -> str:
    """Street, city, province and postal code joined with commas, empty parts skipped."""
    parts = [address.street, address.city, address.province, address.postal_code]
    return ", ".join(p for p in parts if p)
