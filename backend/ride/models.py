"""
Ride application data model.

Rules:
- Pure, immutable data. RideStore swaps whole RideState values.
- No behavior beyond trivial derived properties.
- Coordinates are raw degrees; distances are kilometres; prices are COP.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class UserType(str, Enum):
    PASSENGER = "passenger"
    DRIVER = "driver"


class DriverStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class View(str, Enum):
    """Navigational views of the client application."""

    HOME = "home"
    PASSENGER_REGISTER = "passenger-register"
    DRIVER_REGISTER = "driver-register"
    PASSENGER_DASHBOARD = "passenger-dashboard"
    DRIVER_DASHBOARD = "driver-dashboard"
    SEARCHING = "searching"
    TRIP_ACTIVE = "trip-active"
    RATE_DRIVER = "rate-driver"


REGISTRATION_VIEWS: dict[UserType, View] = {
    UserType.PASSENGER: View.PASSENGER_REGISTER,
    UserType.DRIVER: View.DRIVER_REGISTER,
}

DASHBOARD_VIEWS: dict[UserType, View] = {
    UserType.PASSENGER: View.PASSENGER_DASHBOARD,
    UserType.DRIVER: View.DRIVER_DASHBOARD,
}


class TripStatus(str, Enum):
    SEARCHING = "searching"
    ACCEPTED = "accepted"


@dataclass(frozen=True)
class Location:
    """Last known device location."""
    lat: float
    lng: float
    accuracy: float = 0.0
    ts_ms: int | None = None


@dataclass(frozen=True)
class TripRequest:
    """
    Trip being assembled before it is requested.

    Lifecycle: empty -> pickup and/or destination resolved -> reset on
    completion, rating, or cancellation.
    """
    pickup_lat: float | None = None
    pickup_lng: float | None = None
    pickup_address: str = ""
    destination_lat: float | None = None
    destination_lng: float | None = None
    destination_address: str = ""
    distance: float = 0.0
    price: int = 0

    @property
    def has_pickup(self) -> bool:
        return self.pickup_lat is not None and self.pickup_lng is not None

    @property
    def has_destination(self) -> bool:
        return self.destination_lat is not None and self.destination_lng is not None


@dataclass(frozen=True)
class Trip:
    """Requested or accepted trip."""
    id: int
    pickup_lat: float
    pickup_lng: float
    pickup_address: str
    destination_lat: float
    destination_lng: float
    destination_address: str
    status: TripStatus
    distance: float
    price: int
    passenger_name: str = ""
    passenger_phone: str = ""
    driver_name: str = ""
    driver_phone: str = ""
    driver_plate: str = ""
    # Mutated only by the position simulation engine
    driver_lat: float | None = None
    driver_lng: float | None = None


@dataclass(frozen=True)
class PassengerProfile:
    name: str = ""
    document_number: str = ""
    phone: str = ""
    rating: float = 5.0


@dataclass(frozen=True)
class DriverProfile:
    name: str = ""
    document_number: str = ""
    phone: str = ""
    plate: str = ""
    rating: float = 4.8
    completed_trips: int = 12


@dataclass(frozen=True)
class RideState:
    """Immutable snapshot of all ride application state."""

    view: View = View.HOME
    role: UserType | None = None
    driver_status: DriverStatus = DriverStatus.OFFLINE

    passenger: PassengerProfile = field(default_factory=PassengerProfile)
    driver: DriverProfile = field(default_factory=DriverProfile)

    trip_request: TripRequest = field(default_factory=TripRequest)
    active_trip: Trip | None = None

    user_location: Location | None = None
