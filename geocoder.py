"""
Address geocoding against the MapQuest geocoding API
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from fastapi import Depends

from config import Settings, get_settings
from errors import UpstreamError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeoLocation:
    latitude: float
    longitude: float
    formatted_address: str = ""
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipcode: Optional[str] = None
    country: Optional[str] = None

    def to_location(self) -> Dict[str, Any]:
        """ GeoJSON point for the bootcamp `location` field """
        return {
            "type": "Point",
            "coordinates": [self.longitude, self.latitude],
            "formatted_address": self.formatted_address,
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "zipcode": self.zipcode,
            "country": self.country,
        }


class Geocoder:
    URL = "https://www.mapquestapi.com/geocoding/v1/address"

    def __init__(self, api_key: str, timeout: float = 10.0):
        self.api_key = api_key
        self.timeout = timeout

    def geocode(self, address: str) -> GeoLocation:
        try:
            resp = requests.get(self.URL, params={"key": self.api_key, "location": address}, timeout=self.timeout)
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("Geocoding request failed for %r: %s", address, e)
            raise UpstreamError("Geocoding service unavailable") from e

        results = payload.get("results") or []
        locations = results[0].get("locations") if results else None
        if not locations:
            raise UpstreamError(f"Could not geocode address '{address}'")

        loc = locations[0]
        lat_lng = loc.get("latLng") or {}
        if lat_lng.get("lat") is None or lat_lng.get("lng") is None:
            raise UpstreamError(f"Could not geocode address '{address}'")
        street, city = loc.get("street") or None, loc.get("adminArea5") or None
        state, zipcode = loc.get("adminArea3") or None, loc.get("postalCode") or None
        country = loc.get("adminArea1") or None
        formatted = ", ".join(p for p in (street, city, " ".join(filter(None, (state, zipcode))), country) if p)
        return GeoLocation(
            latitude=lat_lng.get("lat"),
            longitude=lat_lng.get("lng"),
            formatted_address=formatted,
            street=street,
            city=city,
            state=state,
            zipcode=zipcode,
            country=country,
        )


def get_geocoder(settings: Settings = Depends(get_settings)) -> Geocoder:
    return Geocoder(settings.geocoder_api_key)
