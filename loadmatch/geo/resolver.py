"""Location resolution and great-circle distance

The match engine only depends on the LocationResolver interface. The
CityTableResolver shipped here is a deterministic lookup over a fixed
table of city coordinates; real geocoding providers plug in by
implementing resolve().
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

from loadmatch.utils.logging_config import get_logger


logger = get_logger(__name__)


EARTH_RADIUS_MILES = 3959.0


@dataclass(frozen=True)
class LocationKey:
    """Comparable location (WGS84 coordinates)."""

    lat: float
    lng: float
    label: Optional[str] = None


def haversine_miles(a: LocationKey, b: LocationKey) -> float:
    """
    Great-circle distance between two locations

    Args:
        a: First location
        b: Second location

    Returns:
        Distance in statute miles
    """
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)

    h = (math.sin(d_lat / 2) ** 2 +
         math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2)

    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


class LocationResolver(ABC):
    """
    Abstract base class for location resolvers

    Implementations must provide resolve(), returning a LocationKey or
    None when the text cannot be resolved. They may be slow or raise;
    the match engine applies a timeout and treats failures as
    "distance unknown".
    """

    @abstractmethod
    def resolve(self, location_text: str) -> Optional[LocationKey]:
        """
        Resolve free-text location to a comparable key

        Args:
            location_text: e.g. 'Fort Worth, TX'

        Returns:
            LocationKey, or None if unresolved
        """
        pass

    def distance(self, a: LocationKey, b: LocationKey) -> float:
        """Distance in miles between two resolved keys"""
        return haversine_miles(a, b)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


# City coordinates (lat, lng), keyed by lower-case city name
CITY_COORDINATES: Dict[str, Tuple[float, float]] = {
    # North America
    'new york': (40.7128, -74.0060),
    'newark': (40.7357, -74.1724),
    'jersey city': (40.7178, -74.0431),
    'los angeles': (34.0522, -118.2437),
    'long beach': (33.7701, -118.1937),
    'anaheim': (33.8366, -117.9143),
    'chicago': (41.8781, -87.6298),
    'houston': (29.7604, -95.3698),
    'dallas': (32.7767, -96.7970),
    'fort worth': (32.7555, -97.3308),
    'arlington': (32.7357, -97.1081),
    'austin': (30.2672, -97.7431),
    'san antonio': (29.4241, -98.4936),
    'el paso': (31.7619, -106.4850),
    'miami': (25.7617, -80.1918),
    'jacksonville': (30.3322, -81.6557),
    'orlando': (28.5383, -81.3792),
    'tampa': (27.9506, -82.4572),
    'atlanta': (33.7490, -84.3880),
    'charlotte': (35.2271, -80.8431),
    'nashville': (36.1627, -86.7816),
    'memphis': (35.1495, -90.0490),
    'new orleans': (29.9511, -90.0715),
    'st. louis': (38.6270, -90.1994),
    'st louis': (38.6270, -90.1994),
    'kansas city': (39.0997, -94.5786),
    'oklahoma city': (35.4676, -97.5164),
    'omaha': (41.2565, -95.9345),
    'minneapolis': (44.9778, -93.2650),
    'detroit': (42.3314, -83.0458),
    'indianapolis': (39.7684, -86.1581),
    'columbus': (39.9612, -82.9988),
    'cleveland': (41.4993, -81.6944),
    'pittsburgh': (40.4406, -79.9959),
    'seattle': (47.6062, -122.3321),
    'tacoma': (47.2529, -122.4443),
    'portland': (45.5152, -122.6784),
    'san francisco': (37.7749, -122.4194),
    'oakland': (37.8044, -122.2712),
    'san jose': (37.3382, -121.8863),
    'sacramento': (38.5816, -121.4944),
    'reno': (39.5296, -119.8138),
    'las vegas': (36.1699, -115.1398),
    'salt lake city': (40.7608, -111.8910),
    'phoenix': (33.4484, -112.0740),
    'boston': (42.3601, -71.0589),
    'denver': (39.7392, -104.9903),
    'philadelphia': (39.9526, -75.1652),
    'baltimore': (39.2904, -76.6122),
    'washington': (38.9072, -77.0369),
    'toronto': (43.6532, -79.3832),
    'montreal': (45.5017, -73.5673),
    'vancouver': (49.2827, -123.1207),
    'mexico city': (19.4326, -99.1332),
    'monterrey': (25.6866, -100.3161),

    # Europe
    'london': (51.5074, -0.1278),
    'paris': (48.8566, 2.3522),
    'berlin': (52.5200, 13.4050),
    'madrid': (40.4168, -3.7038),
    'rome': (41.9028, 12.4964),
    'amsterdam': (52.3676, 4.9041),
    'rotterdam': (51.9244, 4.4777),
    'hamburg': (53.5511, 9.9937),
    'munich': (48.1351, 11.5820),
    'frankfurt': (50.1109, 8.6821),
    'vienna': (48.2082, 16.3738),
    'zurich': (47.3769, 8.5417),

    # Middle East
    'dubai': (25.2048, 55.2708),
    'abu dhabi': (24.4539, 54.3773),

    # Asia
    'tokyo': (35.6762, 139.6503),
    'shanghai': (31.2304, 121.4737),
    'beijing': (39.9042, 116.4074),
    'hong kong': (22.3193, 114.1694),
    'singapore': (1.3521, 103.8198),
    'mumbai': (19.0760, 72.8777),
    'delhi': (28.7041, 77.1025),
    'seoul': (37.5665, 126.9780),

    # Others
    'sydney': (-33.8688, 151.2093),
    'melbourne': (-37.8136, 144.9631),
    'são paulo': (-23.5505, -46.6333),
    'sao paulo': (-23.5505, -46.6333),
    'lagos': (6.5244, 3.3792),
    'johannesburg': (-26.2041, 28.0473),
    'cape town': (-33.9249, 18.4241),
    'nairobi': (-1.2921, 36.8219),
}


class CityTableResolver(LocationResolver):
    """
    Resolve 'City, Region' text against a city coordinate table

    Lookup uses the part before the first comma, lower-cased. Exact
    matches win; otherwise the longest table key contained in the city
    text (or containing it) is used.
    """

    def __init__(self, table: Optional[Mapping[str, Tuple[float, float]]] = None):
        """
        Initialize resolver

        Args:
            table: Optional override of the city coordinate table
        """
        source = table if table is not None else CITY_COORDINATES
        self.table = {key.lower().strip(): coords for key, coords in source.items()}
        # Longest keys first so 'kansas city' beats 'kansas'
        self._keys_by_length = sorted(self.table, key=lambda k: (-len(k), k))

    def resolve(self, location_text: str) -> Optional[LocationKey]:
        if not location_text:
            return None

        city = str(location_text).split(',')[0].lower().strip()
        if not city:
            return None

        coords = self.table.get(city)
        if coords is None:
            for key in self._keys_by_length:
                if key in city or (len(city) >= 4 and city in key):
                    coords = self.table[key]
                    break

        if coords is None:
            logger.debug(f"Unresolved location: '{location_text}'")
            return None

        return LocationKey(lat=coords[0], lng=coords[1], label=city)

    def __repr__(self) -> str:
        return f"CityTableResolver(cities={len(self.table)})"
