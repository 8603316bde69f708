"""
Ride application state store.

Owns the single authoritative RideState for a session and implements every
operation that changes it: dispatch mutations from the voice loop, manual UI
actions, the trip-matching simulation, and driver position updates from the
position simulation engine.

Rules:
- State is immutable; every change swaps in a new RideState and notifies
  listeners in registration order.
- Never touches the voice controller phase. Spoken feedback goes through
  the announce callback (a SpeakRequest in the controller).
"""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict, replace
from enum import Enum
from typing import Any

from constants import (
    DEFAULT_BASE_LAT,
    DEFAULT_BASE_LNG,
    DEFAULT_RATING,
    DEMO_DRIVER_NAME,
    DEMO_DRIVER_PHONE,
    DEMO_DRIVER_PLATE,
    DESTINATION_HINT_MIN_CHARS,
    DESTINATION_JITTER_SPAN,
    DESTINATION_MISSING_PROMPT,
    DRIVER_FOUND_PROMPT,
    DRIVER_START_OFFSET,
    LOCATION_FAILED_PROMPT,
    RATING_THANKS_PROMPT,
    TRIP_ARRIVED_PROMPT,
    TRIP_FINISHED_PROMPT,
    TRIP_MATCH_DELAY_MS,
    ms_to_seconds,
)
from dispatch.mutations import (
    CreateTripRequest,
    GoBack,
    Mutation,
    ResolveDestination,
    SetProfileField,
    SetRole,
    SetView,
    describe,
)
from dispatch.types import DispatchContext
from observability.logger import log_event
from ride.geo import CoordinateGeocoder, Geocoder, distance_km, price_for_distance
from ride.models import (
    DriverStatus,
    Location,
    RideState,
    Trip,
    TripRequest,
    TripStatus,
    UserType,
    View,
)

StateListener = Callable[[RideState], Awaitable[None]]
Announcer = Callable[[str], Awaitable[None]]

PROFILE_FIELDS: dict[UserType, frozenset[str]] = {
    UserType.PASSENGER: frozenset({"name", "document_number", "phone"}),
    UserType.DRIVER: frozenset({"name", "document_number", "phone", "plate"}),
}


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _wire(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _wire(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_wire(v) for v in value]
    return value


def ride_state_payload(state: RideState) -> dict[str, Any]:
    """JSON-ready view of the ride state for the client (APP_STATE)."""
    return _wire(asdict(state))


class RideStore:
    """
    Mutable holder of the immutable ride state for one session.

    Cancellation:
    - The trip-matching timer is cancelled whenever the searching trip is
      abandoned (back, rating, completion) and on shutdown.
    """

    def __init__(
        self,
        *,
        session_id: str = "",
        geocoder: Geocoder | None = None,
        announce: Announcer | None = None,
        rng: random.Random | None = None,
        match_delay_ms: int = TRIP_MATCH_DELAY_MS,
        initial_state: RideState | None = None,
    ) -> None:
        self._session_id = session_id
        self._geocoder: Geocoder = geocoder or CoordinateGeocoder()
        self._announce = announce
        self._rng = rng or random.Random()
        self._match_delay_ms = match_delay_ms
        self._state = initial_state or RideState()
        self._listeners: list[StateListener] = []
        self._match_task: asyncio.Task[None] | None = None
        self._next_trip_id = 1

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def state(self) -> RideState:
        return self._state

    def snapshot(self) -> DispatchContext:
        """Immutable dispatch context for the current instant."""
        return DispatchContext.from_ride_state(self._state)

    @property
    def matching_pending(self) -> bool:
        return self._match_task is not None and not self._match_task.done()

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def set_announcer(self, announce: Announcer) -> None:
        self._announce = announce

    # ------------------------------------------------------------------
    # Dispatch mutations
    # ------------------------------------------------------------------

    async def apply(self, mutations: tuple[Mutation, ...]) -> None:
        """Apply dispatch mutations in order. Each one commits separately."""
        for mutation in mutations:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "ride_mutation",
                "session_id": self._session_id,
                "mutation": describe(mutation),
            })

            if isinstance(mutation, SetRole):
                await self.set_role(mutation.role)
            elif isinstance(mutation, SetView):
                await self.set_view(mutation.view)
            elif isinstance(mutation, SetProfileField):
                await self.set_profile_field(mutation.role, mutation.field_name, mutation.value)
            elif isinstance(mutation, ResolveDestination):
                await self.resolve_destination(mutation.hint)
            elif isinstance(mutation, CreateTripRequest):
                await self.request_trip()
            elif isinstance(mutation, GoBack):
                await self.go_back()
            else:
                raise TypeError(f"Unknown mutation: {type(mutation).__name__}")

    # ------------------------------------------------------------------
    # Navigation and profiles
    # ------------------------------------------------------------------

    async def set_role(self, role: UserType | None) -> None:
        await self._commit(replace(self._state, role=role), "set_role")

    async def set_view(self, view: View) -> None:
        await self._commit(replace(self._state, view=view), "set_view")

    async def set_profile_field(self, role: UserType, field_name: str, value: str) -> None:
        if field_name not in PROFILE_FIELDS[role]:
            raise ValueError(f"Unknown {role.value} field: {field_name}")

        if role is UserType.PASSENGER:
            new_state = replace(
                self._state, passenger=replace(self._state.passenger, **{field_name: value})
            )
        else:
            new_state = replace(
                self._state, driver=replace(self._state.driver, **{field_name: value})
            )
        await self._commit(new_state, "set_profile_field")

    async def toggle_driver_status(self) -> None:
        status = (
            DriverStatus.OFFLINE
            if self._state.driver_status is DriverStatus.ONLINE
            else DriverStatus.ONLINE
        )
        await self._commit(replace(self._state, driver_status=status), "toggle_driver_status")

    async def go_back(self) -> None:
        """
        Context-sensitive back action:
        - registration -> home, role cleared
        - searching -> passenger dashboard, trip and request reset
        - driver dashboard -> home, driver offline, role cleared
        - passenger dashboard -> home, role cleared
        - rate-driver -> default rating submitted
        Any other view: no-op.
        """
        view = self._state.view

        if view in (View.PASSENGER_REGISTER, View.DRIVER_REGISTER):
            await self._commit(replace(self._state, view=View.HOME, role=None), "go_back")
        elif view is View.SEARCHING:
            self._cancel_matching()
            await self._commit(
                replace(
                    self._state,
                    view=View.PASSENGER_DASHBOARD,
                    active_trip=None,
                    trip_request=TripRequest(),
                ),
                "go_back",
            )
        elif view is View.DRIVER_DASHBOARD:
            await self._commit(
                replace(
                    self._state,
                    view=View.HOME,
                    driver_status=DriverStatus.OFFLINE,
                    role=None,
                ),
                "go_back",
            )
        elif view is View.PASSENGER_DASHBOARD:
            await self._commit(replace(self._state, view=View.HOME, role=None), "go_back")
        elif view is View.RATE_DRIVER:
            await self.submit_rating(DEFAULT_RATING)
        else:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "go_back_noop",
                "session_id": self._session_id,
                "view": view.value,
            })

    # ------------------------------------------------------------------
    # Location
    # ------------------------------------------------------------------

    async def set_user_location(
        self,
        lat: float,
        lng: float,
        accuracy: float = 0.0,
        ts_ms: int | None = None,
    ) -> None:
        location = Location(lat=lat, lng=lng, accuracy=accuracy, ts_ms=ts_ms)
        await self._commit(replace(self._state, user_location=location), "set_user_location")

    async def use_current_location(self) -> bool:
        """
        Use the last known device location as pickup.

        Returns False (and announces the GPS failure) when none is known.
        """
        location = self._state.user_location
        if location is None:
            await self._say(LOCATION_FAILED_PROMPT)
            return False

        address = await self._geocoder.reverse(location.lat, location.lng)
        request = replace(
            self._state.trip_request,
            pickup_lat=location.lat,
            pickup_lng=location.lng,
            pickup_address=address,
        )
        await self._commit(replace(self._state, trip_request=request), "use_current_location")
        return True

    async def resolve_destination(self, hint: str) -> None:
        """
        Resolve a destination for the trip request.

        Demo resolution: a point within half the jitter span around pickup.
        The hint becomes the address when it is long enough; otherwise the
        point is reverse geocoded.
        """
        if not self._state.trip_request.has_pickup:
            await self._ensure_pickup()

        request = self._state.trip_request
        base_lat = request.pickup_lat if request.pickup_lat is not None else DEFAULT_BASE_LAT
        base_lng = request.pickup_lng if request.pickup_lng is not None else DEFAULT_BASE_LNG

        dest_lat = base_lat + (self._rng.random() - 0.5) * DESTINATION_JITTER_SPAN
        dest_lng = base_lng + (self._rng.random() - 0.5) * DESTINATION_JITTER_SPAN

        hint = hint.strip()
        if len(hint) >= DESTINATION_HINT_MIN_CHARS:
            address = hint
        else:
            address = await self._geocoder.reverse(dest_lat, dest_lng)

        distance = distance_km(base_lat, base_lng, dest_lat, dest_lng)
        request = replace(
            self._state.trip_request,
            destination_lat=dest_lat,
            destination_lng=dest_lng,
            destination_address=address,
            distance=distance,
            price=price_for_distance(distance),
        )
        await self._commit(replace(self._state, trip_request=request), "resolve_destination")

    async def _ensure_pickup(self) -> None:
        location = self._state.user_location
        if location is not None:
            await self.use_current_location()
            return

        address = await self._geocoder.reverse(DEFAULT_BASE_LAT, DEFAULT_BASE_LNG)
        request = replace(
            self._state.trip_request,
            pickup_lat=DEFAULT_BASE_LAT,
            pickup_lng=DEFAULT_BASE_LNG,
            pickup_address=address,
        )
        await self._commit(replace(self._state, trip_request=request), "pickup_defaulted")

    # ------------------------------------------------------------------
    # Trip lifecycle
    # ------------------------------------------------------------------

    async def request_trip(self) -> bool:
        """
        Create a searching trip from the current request and start matching.

        Returns False (and announces it) when pickup or destination is missing.
        """
        request = self._state.trip_request
        if not (request.has_pickup and request.has_destination):
            await self._say(DESTINATION_MISSING_PROMPT)
            return False

        assert request.pickup_lat is not None and request.pickup_lng is not None
        assert request.destination_lat is not None and request.destination_lng is not None

        trip = Trip(
            id=self._next_trip_id,
            pickup_lat=request.pickup_lat,
            pickup_lng=request.pickup_lng,
            pickup_address=request.pickup_address,
            destination_lat=request.destination_lat,
            destination_lng=request.destination_lng,
            destination_address=request.destination_address,
            status=TripStatus.SEARCHING,
            distance=request.distance,
            price=request.price,
            passenger_name=self._state.passenger.name,
            passenger_phone=self._state.passenger.phone,
        )
        self._next_trip_id += 1

        self._cancel_matching()
        await self._commit(
            replace(self._state, active_trip=trip, view=View.SEARCHING),
            "request_trip",
        )
        self._match_task = asyncio.create_task(self._match_after_delay(trip.id))
        return True

    async def _match_after_delay(self, trip_id: int) -> None:
        try:
            await asyncio.sleep(ms_to_seconds(self._match_delay_ms))
        except asyncio.CancelledError:
            return

        trip = self._state.active_trip
        if trip is None or trip.id != trip_id or trip.status is not TripStatus.SEARCHING:
            return

        accepted = replace(
            trip,
            status=TripStatus.ACCEPTED,
            driver_name=DEMO_DRIVER_NAME,
            driver_phone=DEMO_DRIVER_PHONE,
            driver_plate=DEMO_DRIVER_PLATE,
            driver_lat=trip.pickup_lat - DRIVER_START_OFFSET,
            driver_lng=trip.pickup_lng - DRIVER_START_OFFSET,
        )
        await self._commit(
            replace(self._state, active_trip=accepted, view=View.TRIP_ACTIVE),
            "trip_accepted",
        )
        await self._say(DRIVER_FOUND_PROMPT.format(name=DEMO_DRIVER_NAME.split()[0]))

    async def complete_trip(self) -> None:
        """
        Finish the active trip.

        Passenger: go rate the driver. Driver: count the trip and reset.
        """
        self._cancel_matching()

        if self._state.role is UserType.DRIVER:
            driver = replace(
                self._state.driver,
                completed_trips=self._state.driver.completed_trips + 1,
            )
            await self._commit(
                replace(
                    self._state,
                    driver=driver,
                    active_trip=None,
                    trip_request=TripRequest(),
                    view=View.DRIVER_DASHBOARD,
                ),
                "complete_trip",
            )
            await self._say(TRIP_FINISHED_PROMPT)
            return

        await self._commit(replace(self._state, view=View.RATE_DRIVER), "complete_trip")
        await self._say(TRIP_ARRIVED_PROMPT)

    async def submit_rating(self, rating: int) -> None:
        self._cancel_matching()
        await self._commit(
            replace(
                self._state,
                active_trip=None,
                trip_request=TripRequest(),
                view=View.PASSENGER_DASHBOARD,
            ),
            "submit_rating",
        )
        await self._say(RATING_THANKS_PROMPT.format(rating=rating))

    async def update_driver_position(self, lat: float, lng: float) -> None:
        """Position simulation write path. Ignored unless a trip is accepted."""
        trip = self._state.active_trip
        if trip is None or trip.status is not TripStatus.ACCEPTED:
            return
        await self._commit(
            replace(self._state, active_trip=replace(trip, driver_lat=lat, driver_lng=lng)),
            "driver_position",
            log=False,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def shutdown(self) -> None:
        task = self._match_task
        self._cancel_matching()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _cancel_matching(self) -> None:
        task = self._match_task
        self._match_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _say(self, text: str) -> None:
        if self._announce is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "announcement_dropped",
                "session_id": self._session_id,
                "text": text,
            })
            return
        await self._announce(text)

    async def _commit(self, new_state: RideState, reason: str, *, log: bool = True) -> None:
        old_view = self._state.view
        self._state = new_state

        if log:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "ride_state_changed",
                "session_id": self._session_id,
                "reason": reason,
                "from_view": old_view.value,
                "to_view": new_state.view.value,
                "role": new_state.role.value if new_state.role is not None else None,
            })

        for listener in list(self._listeners):
            await listener(new_state)
