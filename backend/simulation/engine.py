"""
Fixed-tick position simulation engine.

Moves the accepted trip's driver toward the pickup point, one interpolator
step per tick. The loop runs only while the precondition holds:

    active_trip.status == accepted AND role == passenger

sync() is called on every ride state change and starts or cancels the loop
accordingly; the loop also re-checks the precondition on every tick.
"""

from __future__ import annotations

import asyncio

from constants import SIM_ARRIVAL_EPSILON, SIM_SPEED_PER_TICK, SIM_TICK_MS, ms_to_seconds
from observability.logger import log_event
from ride.models import RideState, TripStatus, UserType
from ride.store import RideStore
from simulation.interpolator import Position, SimulationTick, advance


def should_simulate(state: RideState) -> bool:
    trip = state.active_trip
    return (
        trip is not None
        and trip.status is TripStatus.ACCEPTED
        and state.role is UserType.PASSENGER
        and trip.driver_lat is not None
        and trip.driver_lng is not None
    )


class PositionSimulator:
    """Owns the single simulation task for a session."""

    def __init__(
        self,
        *,
        store: RideStore,
        session_id: str = "",
        tick_ms: int = SIM_TICK_MS,
        speed_per_tick: float = SIM_SPEED_PER_TICK,
        arrival_epsilon: float = SIM_ARRIVAL_EPSILON,
    ) -> None:
        self._store = store
        self._session_id = session_id
        self._tick_ms = tick_ms
        self._speed = speed_per_tick
        self._epsilon = arrival_epsilon
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sync(self, state: RideState) -> None:
        """Start or stop the loop so that it runs exactly when it should."""
        if should_simulate(state):
            if not self.running:
                self._task = asyncio.create_task(self._run())
                log_event({
                    "event_type": "simulation_started",
                    "session_id": self._session_id,
                })
        elif self.running:
            self._stop()

    async def shutdown(self) -> None:
        task = self._task
        self._stop()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    def _stop(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            log_event({
                "event_type": "simulation_stopped",
                "session_id": self._session_id,
            })

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(ms_to_seconds(self._tick_ms))

                state = self._store.state
                if not should_simulate(state):
                    return

                trip = state.active_trip
                assert trip is not None
                assert trip.driver_lat is not None and trip.driver_lng is not None

                tick = SimulationTick(
                    current=Position(trip.driver_lat, trip.driver_lng),
                    target=Position(trip.pickup_lat, trip.pickup_lng),
                    speed_per_tick=self._speed,
                    arrival_epsilon=self._epsilon,
                )
                if tick.current == tick.target:
                    # Arrived: further ticks are no-ops
                    continue

                nxt = advance(tick)
                await self._store.update_driver_position(nxt.lat, nxt.lng)

                if nxt == tick.target:
                    log_event({
                        "event_type": "simulation_arrived",
                        "session_id": self._session_id,
                        "trip_id": trip.id,
                    })
        except asyncio.CancelledError:
            return
