"""Location resolution"""

from .resolver import LocationResolver, LocationKey, CityTableResolver, haversine_miles

__all__ = ['LocationResolver', 'LocationKey', 'CityTableResolver', 'haversine_miles']
