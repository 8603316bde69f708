# pylint: disable=missing-module-docstring,missing-function-docstring

import math

import pytest

from simulation.interpolator import (
    Position,
    SimulationTick,
    advance,
    distance_to_target,
    has_arrived,
)


START = Position(4.60, -74.08)
TARGET = Position(4.605, -74.075)


def test_distance_strictly_decreases_until_snap() -> None:
    current = START
    last = distance_to_target(current, TARGET)

    for _ in range(100):
        current = advance(SimulationTick(current=current, target=TARGET))
        remaining = distance_to_target(current, TARGET)
        if current == TARGET:
            break
        assert remaining < last
        last = remaining
    else:
        pytest.fail("never reached the target")

    # Further ticks are no-ops
    for _ in range(3):
        assert advance(SimulationTick(current=current, target=TARGET)) == TARGET


def test_step_length_is_constant_when_far() -> None:
    nxt = advance(SimulationTick(current=START, target=TARGET, speed_per_tick=0.0005))
    step = math.hypot(nxt.lat - START.lat, nxt.lng - START.lng)
    assert step == pytest.approx(0.0005)

    # Moves along the straight line toward the target
    assert nxt.lat - START.lat == pytest.approx(nxt.lng - START.lng)


def test_snaps_within_arrival_epsilon() -> None:
    near = Position(TARGET.lat - 0.0003, TARGET.lng)
    tick = SimulationTick(current=near, target=TARGET, arrival_epsilon=0.0005)

    assert has_arrived(tick)
    assert advance(tick) == TARGET


def test_never_overshoots() -> None:
    near = Position(TARGET.lat - 0.0007, TARGET.lng)
    tick = SimulationTick(current=near, target=TARGET, speed_per_tick=0.001, arrival_epsilon=0.0001)

    assert advance(tick) == TARGET
