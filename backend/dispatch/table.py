"""
Action dispatch table.

(intent, context) -> DispatchResult(mutations, prompt)

Rules:
- Pure: no side effects, no IO, no clocks.
- Never transitions the voice phase; the reducer decides what to speak.
- Guard misses drop the mutations but keep the prompt, so the user still
  hears the service's reply even when the action does not apply to the
  current view.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from constants import DEFAULT_ACK_PROMPT
from dispatch.mutations import (
    CreateTripRequest,
    GoBack,
    Mutation,
    ResolveDestination,
    SetProfileField,
    SetRole,
    SetView,
)
from dispatch.sanitize import clean_phone, clean_plate
from dispatch.types import ActionKind, DispatchContext, Intent
from ride.models import DASHBOARD_VIEWS, REGISTRATION_VIEWS, UserType, View


@dataclass(frozen=True)
class DispatchResult:
    """
    Outcome of dispatching one intent.

    guard_miss is set (with a reason) when the action was recognized but
    not applicable to the captured context.
    """
    mutations: tuple[Mutation, ...]
    prompt: str
    guard_miss: str | None = None


Handler = Callable[[Intent, DispatchContext], tuple[tuple[Mutation, ...], str | None]]


# =============================================================================
# Handlers: return (mutations, guard_miss_reason)
# =============================================================================

def _navigate_registration(role: UserType) -> Handler:
    def handler(intent: Intent, ctx: DispatchContext):
        return (SetRole(role), SetView(REGISTRATION_VIEWS[role])), None
    return handler


def _set_name(role: UserType) -> Handler:
    registration = REGISTRATION_VIEWS[role]

    def handler(intent: Intent, ctx: DispatchContext):
        if ctx.view is View.HOME:
            return (
                SetRole(role),
                SetView(registration),
                SetProfileField(role, "name", intent.value),
            ), None
        if ctx.view is registration:
            return (SetProfileField(role, "name", intent.value),), None
        return (), f"view_is_{ctx.view.value}"
    return handler


def _set_phone(role: UserType) -> Handler:
    def handler(intent: Intent, ctx: DispatchContext):
        return (SetProfileField(role, "phone", clean_phone(intent.value)),), None
    return handler


def _set_plate(intent: Intent, ctx: DispatchContext):
    return (SetProfileField(UserType.DRIVER, "plate", clean_plate(intent.value)),), None


def _navigate_destination(intent: Intent, ctx: DispatchContext):
    mutations: list[Mutation] = []
    for role, registration in REGISTRATION_VIEWS.items():
        if ctx.view is registration:
            mutations.append(SetView(DASHBOARD_VIEWS[role]))
    mutations.append(ResolveDestination(hint=intent.value))
    return tuple(mutations), None


def _confirm_trip(intent: Intent, ctx: DispatchContext):
    if ctx.view is not View.PASSENGER_DASHBOARD:
        return (), f"view_is_{ctx.view.value}"
    if not ctx.trip_request.has_destination:
        return (), "destination_unresolved"
    return (CreateTripRequest(),), None


def _cancel(intent: Intent, ctx: DispatchContext):
    return (GoBack(),), None


def _none(intent: Intent, ctx: DispatchContext):
    return (), None


DISPATCH_TABLE: dict[ActionKind, Handler] = {
    ActionKind.NAVIGATE_PASSENGER_REG: _navigate_registration(UserType.PASSENGER),
    ActionKind.NAVIGATE_DRIVER_REG: _navigate_registration(UserType.DRIVER),
    ActionKind.SET_PASSENGER_NAME: _set_name(UserType.PASSENGER),
    ActionKind.SET_DRIVER_NAME: _set_name(UserType.DRIVER),
    ActionKind.SET_PASSENGER_PHONE: _set_phone(UserType.PASSENGER),
    ActionKind.SET_DRIVER_PHONE: _set_phone(UserType.DRIVER),
    ActionKind.SET_DRIVER_PLATE: _set_plate,
    ActionKind.NAVIGATE_DESTINATION: _navigate_destination,
    ActionKind.CONFIRM_TRIP: _confirm_trip,
    ActionKind.CANCEL: _cancel,
    ActionKind.NONE: _none,
}


def dispatch(intent: Intent, ctx: DispatchContext) -> DispatchResult:
    """
    Map a recognized intent onto mutations and the prompt to speak.

    The prompt is always the service's speech (or the default
    acknowledgement), whether or not the guard held.
    """
    mutations, guard_miss = DISPATCH_TABLE[intent.action](intent, ctx)
    return DispatchResult(
        mutations=mutations,
        prompt=intent.speech.strip() or DEFAULT_ACK_PROMPT,
        guard_miss=guard_miss,
    )
