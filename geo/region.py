"""
Purpose: Operating-region containment.
What it does:
Holds the service-area polygon and answers "is this point inside?" with a
bounding-box test over the polygon's vertices.

Whether a miss excludes a driver from matching or is only logged is decided
by MatchingPolicy.enforce_operating_region, not here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from .distance import LatLon

# (lon, lat) vertices, GeoJSON order. Approximate outline of Surrey, UK.
SURREY_POLYGON: List[Tuple[float, float]] = [
    (-0.7647820542412376, 51.23981446058468),
    (-0.7875715012305591, 51.3374427274924),
    (-0.6234890626433867, 51.38724570115019),
    (-0.5528255976095124, 51.44765326621072),
    (-0.4912946943742895, 51.4369998383697),
    (-0.4730633156372619, 51.460434099370985),
    (-0.4969920002292554, 51.49591764082311),
    (-0.41599643381312035, 51.48302961671584),
    (-0.4034623609311154, 51.447536045839286),
    (-0.35446553057650476, 51.40490731265197),
    (-0.3350946905903527, 51.35227709578001),
    (-0.27242432621378043, 51.39205851269867),
    (-0.23596156893145803, 51.37214590110136),
    (-0.18810419974732895, 51.34279330808303),
    (-0.12999168002420447, 51.315737863375745),
    (-0.05478725214481983, 51.348487158103154),
    (0.005236573648232934, 51.30684028123139),
    (0.08385939444977453, 51.320372623128776),
    (0.10095132645901117, 51.230557277238916),
    (0.07471019312615113, 51.14568596968138),
    (-0.09279059902101494, 51.11922959976991),
    (-0.13840415849489318, 51.15779247389932),
    (-0.20107452358979572, 51.16493836684967),
    (-0.2990681842990739, 51.12204640044169),
    (-0.47454520463912786, 51.0991543868395),
    (-0.6885988502547775, 51.033302729867955),
    (-0.7375956806094166, 51.09059298445487),
    (-0.7803726437674072, 51.11666890149371),
    (-0.8088591650132173, 51.1567073053445),
    (-0.8452124718280913, 51.192817893194615),
]


@dataclass(frozen=True)
class OperatingRegion:
    name: str
    polygon: Tuple[Tuple[float, float], ...]

    # derived bounding box, filled in __post_init__
    min_lat: float = field(init=False)
    max_lat: float = field(init=False)
    min_lon: float = field(init=False)
    max_lon: float = field(init=False)

    def __post_init__(self):
        if len(self.polygon) < 3:
            raise ValueError("An operating region needs at least 3 vertices")
        lons = [vertex[0] for vertex in self.polygon]
        lats = [vertex[1] for vertex in self.polygon]
        # frozen dataclass: derived fields go through object.__setattr__
        object.__setattr__(self, "min_lat", min(lats))
        object.__setattr__(self, "max_lat", max(lats))
        object.__setattr__(self, "min_lon", min(lons))
        object.__setattr__(self, "max_lon", max(lons))

    @classmethod
    def from_lon_lat(cls, name: str, vertices: Sequence[Tuple[float, float]]) -> "OperatingRegion":
        return cls(name=name, polygon=tuple((float(lon), float(lat)) for lon, lat in vertices))

    def contains_point(self, lat: float, lon: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lon <= lon <= self.max_lon

    def contains(self, point: LatLon) -> bool:
        return self.contains_point(point[0], point[1])


SURREY_REGION = OperatingRegion.from_lon_lat("surrey", SURREY_POLYGON)


def default_operating_region() -> OperatingRegion:
    return SURREY_REGION
