"""
Intent and dispatch-context definitions.

Rules:
- ActionKind string values are a wire contract with the intent service.
- Intent and DispatchContext are immutable value objects.
- DispatchContext is captured once, when interpretation begins, and is
  passed by value through interpretation and dispatch.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ride.models import RideState, Trip, TripRequest, UserType, View


class ActionKind(str, Enum):
    """Closed set of actions the intent service may return."""

    SET_PASSENGER_NAME = "SET_PASSENGER_NAME"
    SET_PASSENGER_PHONE = "SET_PASSENGER_PHONE"
    SET_DRIVER_NAME = "SET_DRIVER_NAME"
    SET_DRIVER_PHONE = "SET_DRIVER_PHONE"
    SET_DRIVER_PLATE = "SET_DRIVER_PLATE"
    NAVIGATE_PASSENGER_REG = "NAVIGATE_PASSENGER_REG"
    NAVIGATE_DRIVER_REG = "NAVIGATE_DRIVER_REG"
    NAVIGATE_DESTINATION = "NAVIGATE_DESTINATION"
    CONFIRM_TRIP = "CONFIRM_TRIP"
    CANCEL = "CANCEL"
    NONE = "NONE"


@dataclass(frozen=True)
class Intent:
    """
    Structured result of interpreting one utterance.

    value is the raw fragment extracted by the service; dispatch still
    sanitizes it per action (digits for phones, plate normalization).
    """
    action: ActionKind
    value: str
    speech: str


@dataclass(frozen=True)
class DispatchContext:
    """Snapshot of the fields the dispatch rules and the prompt may read."""

    view: View
    role: UserType | None
    trip_request: TripRequest
    active_trip: Trip | None = None

    passenger_name: str = ""
    passenger_phone: str = ""
    driver_name: str = ""
    driver_phone: str = ""
    driver_plate: str = ""

    @staticmethod
    def from_ride_state(state: RideState) -> DispatchContext:
        """Capture a context snapshot from the (already immutable) ride state."""
        return DispatchContext(
            view=state.view,
            role=state.role,
            trip_request=state.trip_request,
            active_trip=state.active_trip,
            passenger_name=state.passenger.name,
            passenger_phone=state.passenger.phone,
            driver_name=state.driver.name,
            driver_phone=state.driver.phone,
            driver_plate=state.driver.plate,
        )

    def to_prompt_fields(self) -> dict[str, str]:
        """
        Flatten into string key/value pairs the intent service can reference.

        Current field values are included so the service knows which
        registration fields are still missing.
        """
        return {
            "currentView": self.view.value,
            "userType": self.role.value if self.role is not None else "",
            "passengerName": self.passenger_name,
            "passengerPhone": self.passenger_phone,
            "driverName": self.driver_name,
            "driverPhone": self.driver_phone,
            "driverPlate": self.driver_plate,
            "tripDestination": self.trip_request.destination_address,
            "tripStatus": (
                self.active_trip.status.value if self.active_trip is not None else ""
            ),
        }
