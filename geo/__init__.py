#Marks geo as a package.
#Re-exports the distance and region primitives so matching code can do
#`from geo import distance_km` without knowing internal file names.
#No business logic.

from .distance import LatLon, EARTH_RADIUS_KM, distance_km, haversine_km
from .region import OperatingRegion, SURREY_REGION, default_operating_region
from .place import Place

__all__ = [
    "LatLon",
    "EARTH_RADIUS_KM",
    "distance_km",
    "haversine_km",
    "OperatingRegion",
    "SURREY_REGION",
    "default_operating_region",
    "Place",
]
