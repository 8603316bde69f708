"""
Straight-line, constant-speed position interpolator.

Pure: one call == one simulation tick. Works in raw coordinate units (no
projection); this is a demo approach animation, not road routing.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from constants import SIM_ARRIVAL_EPSILON, SIM_SPEED_PER_TICK


@dataclass(frozen=True)
class Position:
    lat: float
    lng: float


@dataclass(frozen=True)
class SimulationTick:
    """Inputs for one tick. Rebuilt from the stored position every tick."""
    current: Position
    target: Position
    speed_per_tick: float = SIM_SPEED_PER_TICK
    arrival_epsilon: float = SIM_ARRIVAL_EPSILON


def distance_to_target(current: Position, target: Position) -> float:
    """Euclidean magnitude of the delta, in raw coordinate units."""
    return math.hypot(target.lat - current.lat, target.lng - current.lng)


def has_arrived(tick: SimulationTick) -> bool:
    return distance_to_target(tick.current, tick.target) < tick.arrival_epsilon


def advance(tick: SimulationTick) -> Position:
    """
    Advance one tick toward the target.

    - Within arrival_epsilon: snap exactly onto the target.
    - Otherwise: move speed_per_tick along the normalized direction,
      never past the target.

    Once snapped, further calls return the target unchanged.
    """
    if tick.current == tick.target or has_arrived(tick):
        return tick.target

    d_lat = tick.target.lat - tick.current.lat
    d_lng = tick.target.lng - tick.current.lng
    magnitude = math.hypot(d_lat, d_lng)
    if magnitude <= tick.speed_per_tick:
        # One step would reach or overshoot the target
        return tick.target

    return Position(
        lat=tick.current.lat + d_lat / magnitude * tick.speed_per_tick,
        lng=tick.current.lng + d_lng / magnitude * tick.speed_per_tick,
    )
