"""
Application-state mutation definitions.

Rules:
- Mutations are declarative requests to change ride application state.
- Mutations are produced by the dispatch table and applied by RideStore.
- No behavior, no async, no I/O.
Invariant:
    - All concrete Mutation subclasses MUST be frozen dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ride.models import UserType, View


class MutationType(str, Enum):
    """Stable discriminants used for logging and store dispatch."""

    SET_ROLE = "SET_ROLE"
    SET_VIEW = "SET_VIEW"
    SET_PROFILE_FIELD = "SET_PROFILE_FIELD"
    RESOLVE_DESTINATION = "RESOLVE_DESTINATION"
    CREATE_TRIP_REQUEST = "CREATE_TRIP_REQUEST"
    GO_BACK = "GO_BACK"


class Mutation:
    """
    Base mutation type.

    mutation_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    mutation_type: MutationType


@dataclass(frozen=True)
class SetRole(Mutation):
    role: UserType | None
    mutation_type: MutationType = MutationType.SET_ROLE


@dataclass(frozen=True)
class SetView(Mutation):
    view: View
    mutation_type: MutationType = MutationType.SET_VIEW


@dataclass(frozen=True)
class SetProfileField(Mutation):
    """Set one profile field ("name", "phone", "plate") for a role."""
    role: UserType
    field_name: str
    value: str
    mutation_type: MutationType = MutationType.SET_PROFILE_FIELD


@dataclass(frozen=True)
class ResolveDestination(Mutation):
    """Trigger destination resolution; hint is free text from the user."""
    hint: str
    mutation_type: MutationType = MutationType.RESOLVE_DESTINATION


@dataclass(frozen=True)
class CreateTripRequest(Mutation):
    """Trigger trip creation from the current trip request."""
    mutation_type: MutationType = MutationType.CREATE_TRIP_REQUEST


@dataclass(frozen=True)
class GoBack(Mutation):
    """Apply the same context-sensitive back rule as the manual back action."""
    mutation_type: MutationType = MutationType.GO_BACK


def describe(mutation: Mutation) -> dict[str, object]:
    """Flat, log-friendly description of a mutation."""
    out: dict[str, object] = {"type": mutation.mutation_type.value}
    for key, value in vars(mutation).items():
        if key == "mutation_type":
            continue
        out[key] = value.value if isinstance(value, Enum) else value
    return out
