from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from core.errors import ForbiddenError, InvalidTransitionError
from .models import Actor, ActorRole, Ride, RideStatus, TERMINAL_STATUSES

RIDER = frozenset({ActorRole.RIDER})
DRIVER = frozenset({ActorRole.DRIVER})
SYSTEM = frozenset({ActorRole.SYSTEM})
ANYONE = frozenset(ActorRole)


@dataclass(frozen=True)
class Transition:
    action: str
    roles: FrozenSet[ActorRole]
    sources: FrozenSet[RideStatus]
    # None when the target depends on the outcome (reject)
    target: Optional[RideStatus]


NON_TERMINAL = frozenset(status for status in RideStatus if status not in TERMINAL_STATUSES)

TRANSITIONS: Dict[str, Transition] = {
    transition.action: transition
    for transition in (
        Transition("activate", SYSTEM, frozenset({RideStatus.SCHEDULED}), RideStatus.PENDING),
        Transition("begin_search", SYSTEM, frozenset({RideStatus.PENDING}), RideStatus.SEARCHING),
        Transition("assign", SYSTEM, frozenset({RideStatus.SEARCHING}), RideStatus.ASSIGNED),
        Transition("accept", DRIVER, frozenset({RideStatus.SEARCHING, RideStatus.ASSIGNED}), RideStatus.ACCEPTED),
        Transition("reject", DRIVER, frozenset({RideStatus.SEARCHING, RideStatus.ASSIGNED}), None),
        Transition("arrive", DRIVER, frozenset({RideStatus.ACCEPTED}), RideStatus.ARRIVED),
        Transition("start", DRIVER, frozenset({RideStatus.ACCEPTED, RideStatus.ARRIVED}), RideStatus.IN_PROGRESS),
        Transition("complete", DRIVER, frozenset({RideStatus.IN_PROGRESS}), RideStatus.COMPLETED),
        Transition("cancel", ANYONE, NON_TERMINAL, RideStatus.CANCELLED),
    )
}


def check_transition(ride: Ride, action: str, actor: Actor) -> Transition:
    """
    Raises ForbiddenError when the actor's role may not perform `action`, and
    InvalidTransitionError when `action` is not legal from the ride's status.
    Party checks (is this *the* driver of the ride?) are the caller's job.
    """
    transition = TRANSITIONS[action]

    if actor.role not in transition.roles:
        raise ForbiddenError(f"A {actor.role.value} cannot {action} a ride", action=action)

    if ride.status not in transition.sources:
        raise InvalidTransitionError(action, ride.status)

    return transition


def allowed_actions(ride: Ride, role: ActorRole) -> list:
    return sorted(
        action for action, transition in TRANSITIONS.items()
        if role in transition.roles and ride.status in transition.sources
    )
