#Expose the high-level pipeline pieces:
#Matching policy (tunable thresholds)
#GeoMatcher (nearest eligible drivers)
#RideDispatcher orchestrator and the build_engine composition root

from .policy import MatchingPolicy, default_matching_policy
from .matcher import DriverCandidate, GeoMatcher, eta_minutes
from .dispatcher import RideDispatcher
from .engine import Engine, build_engine

__all__ = [
    "MatchingPolicy",
    "default_matching_policy",
    "DriverCandidate",
    "GeoMatcher",
    "eta_minutes",
    "RideDispatcher",
    "Engine",
    "build_engine",
]
