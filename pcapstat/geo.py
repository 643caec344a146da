"""GeoIP enrichment for the busiest peers of an analysis result."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import geoip2.database
import geoip2.errors
import maxminddb

from pcapstat.analysis.result import DEFAULT_TOP_PEERS, top_peers
from pcapstat.logging_utils import get_logger

LOGGER = get_logger(__name__)

UNKNOWN = "Unknown"
NOT_CONFIGURED_MESSAGE = "GeoIP database not configured. Download GeoLite2-City.mmdb from maxmind.com"


@dataclass
class GeoLocation:
    """Location of one peer address together with its packet count."""

    ip: str
    city: str
    country: str
    latitude: float
    longitude: float
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class GeoLocator:
    """Owns an open GeoLite2 City database; close it when done."""

    def __init__(self, database_path: str | Path, reader: Any = None) -> None:
        self.database_path = Path(database_path)
        self._reader = reader if reader is not None else geoip2.database.Reader(str(self.database_path))
        LOGGER.info("GeoIP database loaded from %s", self.database_path)

    def lookup(self, address: str) -> Tuple[str, str, float, float]:
        """Return ``(city, country, latitude, longitude)`` for ``address``."""

        if self._reader is None:
            raise RuntimeError("GeoIP reader is closed")
        record = self._reader.city(address)
        city = record.city.name or UNKNOWN
        country = record.country.name or UNKNOWN
        latitude = record.location.latitude or 0.0
        longitude = record.location.longitude or 0.0
        return city, country, float(latitude), float(longitude)

    def close(self) -> None:
        if self._reader is not None:
            self._reader.close()
            self._reader = None

    def __enter__(self) -> "GeoLocator":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def open_locator(database_path: str | Path | None) -> Optional[GeoLocator]:
    """Open the database at ``database_path``; ``None`` when unset or unusable."""

    if not database_path:
        return None
    path = Path(database_path)
    if not path.exists():
        LOGGER.warning("GeoIP database not available at %s - map features disabled", path)
        return None
    try:
        return GeoLocator(path)
    except (OSError, ValueError, maxminddb.InvalidDatabaseError) as exc:
        LOGGER.warning("Failed to open GeoIP database %s (%s) - map features disabled", path, exc)
        return None


def locate_peers(
    sent_ip: Mapping[str, int],
    locator: Optional[GeoLocator],
    limit: int = DEFAULT_TOP_PEERS,
) -> Tuple[List[GeoLocation], str]:
    """Geolocate the busiest destinations of the target.

    Returns the accepted locations, highest packet count first, and an error
    message that is empty unless the database is unavailable. Peers that fail
    to resolve, or resolve to no coordinates, do not count toward ``limit``.
    """

    if locator is None:
        return [], NOT_CONFIGURED_MESSAGE

    locations: List[GeoLocation] = []
    for address, count in top_peers(sent_ip, limit=len(sent_ip)):
        if len(locations) >= limit:
            break
        try:
            city, country, latitude, longitude = locator.lookup(address)
        except (geoip2.errors.AddressNotFoundError, ValueError) as exc:
            LOGGER.warning("GeoIP lookup failed for %s: %s", address, exc)
            continue
        if latitude == 0 and longitude == 0:
            continue
        locations.append(GeoLocation(address, city, country, latitude, longitude, count))
    return locations, ""


__all__ = ["GeoLocation", "GeoLocator", "NOT_CONFIGURED_MESSAGE", "locate_peers", "open_locator"]
