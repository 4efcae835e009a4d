"""Place names and timezones for polygon centroids."""

import logging
from datetime import datetime
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from geopy.exc import GeocoderServiceError
from geopy.geocoders import Nominatim
from timezonefinder import TimezoneFinder

from polygon_weather.config import GEOCODING_USER_AGENT

logger = logging.getLogger(__name__)


class GeocodingError(Exception):
    """Raised when geocoding fails."""
    pass


class GeocodingService:
    """Service for reverse geocoding and timezone detection."""

    def __init__(self):
        """Initialize the geocoding service."""
        # Reuse instance for performance
        self.tf = TimezoneFinder(in_memory=True)
        self.geolocator = Nominatim(user_agent=GEOCODING_USER_AGENT)
        logger.info("GeocodingService initialized with timezonefinder and Nominatim")

    @lru_cache(maxsize=1000)
    def reverse_geocode(self, lat: float, lon: float) -> Optional[str]:
        """Convert coordinates to a place name.

        Args:
            lat: Latitude
            lon: Longitude

        Returns:
            Place name if found, None otherwise
        """
        lat_rounded = round(lat, 4)
        lon_rounded = round(lon, 4)

        try:
            logger.info(f"Reverse geocoding coordinates: ({lat_rounded}, {lon_rounded})")
            location = self.geolocator.reverse((lat_rounded, lon_rounded))
        except GeocoderServiceError as e:
            logger.warning(f"Reverse geocoding service unavailable for ({lat}, {lon}): {e}")
            return None

        if location and location.raw.get('address'):
            address = location.raw['address']
            place = (
                address.get('city') or
                address.get('town') or
                address.get('village') or
                address.get('municipality') or
                address.get('county')
            )

            if place:
                logger.info(f"Reverse geocoded ({lat_rounded}, {lon_rounded}) to '{place}'")
                return place

        logger.info(f"No place found for coordinates ({lat_rounded}, {lon_rounded})")
        return None

    def get_timezone(self, lat: float, lon: float) -> str:
        """Get timezone for coordinates.

        Returns:
            Timezone string (e.g., "Europe/Berlin") or "UTC" if not found
        """
        timezone = self.tf.timezone_at(lng=lon, lat=lat)
        if timezone:
            return timezone

        logger.warning(f"No timezone found for ({lat}, {lon}), defaulting to UTC")
        return "UTC"

    def local_time(self, lat: float, lon: float, moment: datetime) -> str:
        """Format an instant in the local time of the given coordinates."""
        timezone = self.get_timezone(lat, lon)
        try:
            local = moment.astimezone(ZoneInfo(timezone))
        except ZoneInfoNotFoundError as e:
            raise GeocodingError(f"Unknown timezone '{timezone}'") from e
        return local.strftime('%Y-%m-%d %H:%M %Z')
