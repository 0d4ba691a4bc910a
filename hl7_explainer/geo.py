"""Coarse geo classification of client addresses.

Used for usage analytics only, never for access control. Lookups go through
a MaxMind GeoLite2/GeoIP2 Country database; without one configured every
address is classified as unknown.
"""

import ipaddress
import logging
from typing import Optional

import geoip2.database
import geoip2.errors

UNKNOWN_COUNTRY = "Unknown"

logger = logging.getLogger("explainer")


class GeoClassifier:
    """Resolve IP addresses to ISO country codes."""

    def __init__(self, database_path: Optional[str] = None) -> None:
        self._reader: Optional[geoip2.database.Reader] = None
        if database_path:
            self._reader = geoip2.database.Reader(database_path)

    @property
    def enabled(self) -> bool:
        return self._reader is not None

    def country_for(self, address: Optional[str]) -> str:
        """Return the country code for address, or UNKNOWN_COUNTRY."""
        if self._reader is None or not address:
            return UNKNOWN_COUNTRY

        try:
            ip = ipaddress.ip_address(address)
        except ValueError:
            return UNKNOWN_COUNTRY

        if not ip.is_global:
            return UNKNOWN_COUNTRY

        try:
            response = self._reader.country(str(ip))
        except geoip2.errors.AddressNotFoundError:
            return UNKNOWN_COUNTRY
        except geoip2.errors.GeoIP2Error as exc:
            logger.warning("Geo lookup failed for %s: %s", address, exc)
            return UNKNOWN_COUNTRY

        return response.country.iso_code or UNKNOWN_COUNTRY

    def close(self) -> None:
        if self._reader is not None:
            self._reader.close()
            self._reader = None
