"""
Runtime execution shell for a single voice session.

Responsibilities:
- Own controller state
- Call pure reducer
- Execute commands with side effects (capture, intent, synthesis, store)
- Schedule and cancel timers
- Convert timer expiry and adapter failures into events
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import TYPE_CHECKING, Any

from adapters.capture.base import CapturePermissionDenied
from constants import CAPTURE_PERMISSION_ERROR_CODES, CAPTURE_START_FAILED_CODE
from orchestrator.commands import (
    ApplyMutations,
    CancelIntent,
    CancelSpeech,
    CancelTimer,
    Command,
    LogEvent,
    PublishVoiceState,
    SendJSONToClient,
    Speak,
    StartCapture,
    StartIntent,
    StartTimer,
    StopCapture,
)
from orchestrator.enums.service import Service
from orchestrator.events import (
    CaptureError,
    Event,
    EventType,
    HeartbeatTick,
    IntentFailed,
    IntentTimeout,
    ResumeListeningDue,
    SpeechError,
    SpeechStartDue,
)
from orchestrator.reducer import reduce
from orchestrator.state_dataclass import ControllerState

from observability.logger import log_event


if TYPE_CHECKING:
    from orchestrator.runtime_context import RuntimeExecutionContext


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def voice_state_payload(state: ControllerState) -> dict[str, Any]:
    return {
        "phase": state.phase.value,
        "voice_enabled": state.voice_enabled,
        "permission_denied": state.permission_denied,
    }


class Runtime:
    """
    Executes the voice controller for one connection.

    Every event source (browser callbacks routed by the gateway, intent
    results, ride store announcements, expired timers) feeds handle_event.
    The runtime runs the reducer once per event, installs the new state,
    then carries out the returned commands in order: capture, synthesis,
    intent calls, ride store mutations, client messages and timers.

    It holds no policy of its own. Adapter failures are turned back into
    events (CaptureError, IntentFailed, SpeechError) so the reducer decides.
    """

    def __init__(
        self,
        *,
        initial_state: ControllerState,
        context: RuntimeExecutionContext,
    ) -> None:
        self._state = initial_state
        self._ctx = context
        self._timers: dict[str, asyncio.Task[None]] = {}

        # Events raised by failing commands; reduced after the event that
        # issued those commands has finished executing
        self._follow_ups: deque[Event] = deque()
        self._depth = 0

    @property
    def state(self) -> ControllerState:
        """
        Return the current immutable controller state.

        Consumers must never modify this state directly.
        """
        return self._state

    @property
    def active_timers(self) -> frozenset[str]:
        return frozenset(
            timer_id for timer_id, task in self._timers.items() if not task.done()
        )

    async def handle_event(self, event: Event) -> None:
        """
        Reduce one event, then run its commands.

        The controller state is swapped in before the first command runs,
        so a command that re-enters handle_event (a nested announcement)
        sees the post-event state.

        An adapter that fails while a command runs does not re-enter: its
        error event is queued and reduced once every command of the
        current event has run, so nothing from the older reduction lands
        after the failure is handled.
        """
        self._depth += 1
        try:
            new_state, commands = reduce(self._state, event)
            self._state = new_state

            for cmd in commands:
                await self._execute_command(cmd)
        finally:
            self._depth -= 1

        if self._depth == 0:
            while self._follow_ups:
                await self.handle_event(self._follow_ups.popleft())

    async def shutdown(self) -> None:
        """Cancel every pending timer and wait for the tasks to unwind."""
        timers = list(self._timers.values())
        for timer_id in list(self._timers.keys()):
            self._cancel_timer(timer_id)

        if timers:
            await asyncio.gather(*timers, return_exceptions=True)

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_command(self, cmd: Command) -> None:
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            log_event({
                **cmd.event,
                "session_id": self._ctx.session_id,
                "connection_status": self._ctx.connection_status.value,
            })

        elif isinstance(cmd, StartCapture):
            assert self._ctx.capture_adapter is not None, "Capture adapter missing"
            try:
                await self._ctx.capture_adapter.start(cmd.run_id)
            except CapturePermissionDenied:
                self._capture_failed(cmd.run_id, CAPTURE_PERMISSION_ERROR_CODES[0])
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "CAPTURE_START_FAILED",
                    "session_id": self._ctx.session_id,
                    "capture_run_id": cmd.run_id,
                    "error": f"{type(exc).__name__}: {exc}",
                })
                self._capture_failed(cmd.run_id, CAPTURE_START_FAILED_CODE)

        elif isinstance(cmd, StopCapture):
            assert self._ctx.capture_adapter is not None, "Capture adapter missing"
            await self._ctx.capture_adapter.stop(cmd.run_id)

        elif isinstance(cmd, StartIntent):
            assert self._ctx.intent_adapter is not None, "Intent adapter missing"
            assert self._ctx.ride_store is not None, "Ride store missing"

            # Snapshot first: the utterance is interpreted against the
            # application state at the instant processing began
            context = self._ctx.ride_store.snapshot()
            try:
                await self._ctx.intent_adapter.interpret(
                    run_id=cmd.run_id,
                    transcript=cmd.transcript,
                    context=context,
                )
            except Exception as exc:  # pylint: disable=broad-exception-caught
                self._follow_ups.append(
                    IntentFailed(
                        event_type=EventType.INTENT_FAILED,
                        ts_ms=_now_ms(),
                        service=Service.INTENT,
                        run_id=cmd.run_id,
                        reason=f"{type(exc).__name__}: {exc}",
                    )
                )
                return

            log_event({
                "ts_ms": _now_ms(),
                "event_type": "intent_start_executed",
                "session_id": self._ctx.session_id,
                "intent_run_id": cmd.run_id,
                "view": context.view.value,
            })

        elif isinstance(cmd, CancelIntent):
            assert self._ctx.intent_adapter is not None, "Intent adapter missing"
            await self._ctx.intent_adapter.cancel(cmd.run_id)

        elif isinstance(cmd, Speak):
            assert self._ctx.synthesis_adapter is not None, "Synthesis adapter missing"
            try:
                await self._ctx.synthesis_adapter.speak(run_id=cmd.run_id, text=cmd.text)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                self._follow_ups.append(
                    SpeechError(
                        event_type=EventType.SPEECH_ERROR,
                        ts_ms=_now_ms(),
                        service=Service.SYNTHESIS,
                        run_id=cmd.run_id,
                        reason=f"{type(exc).__name__}: {exc}",
                    )
                )

        elif isinstance(cmd, CancelSpeech):
            assert self._ctx.synthesis_adapter is not None, "Synthesis adapter missing"
            await self._ctx.synthesis_adapter.cancel(cmd.run_id)

        elif isinstance(cmd, ApplyMutations):
            assert self._ctx.ride_store is not None, "Ride store missing"
            await self._ctx.ride_store.apply(cmd.mutations)

        elif isinstance(cmd, SendJSONToClient):
            self._ctx.send_to_client({
                "type": cmd.message_type,
                **cmd.data,
                "ts_ms": _now_ms(),
            })

        elif isinstance(cmd, PublishVoiceState):
            self._ctx.send_to_client({
                "type": "VOICE_STATE",
                **voice_state_payload(self._state),
                "ts_ms": _now_ms(),
            })

        elif isinstance(cmd, StartTimer):
            self._start_timer(
                timer_id=cmd.timer_id,
                duration_ms=cmd.duration_ms,
                timeout_event_type=cmd.timeout_event_type,
            )

        elif isinstance(cmd, CancelTimer):
            self._cancel_timer(cmd.timer_id)

        else:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "COMMAND_NOT_IMPLEMENTED",
                "session_id": self._ctx.session_id,
                "command_type": type(cmd).__name__,
            })

    def _capture_failed(self, run_id: int, code: str) -> None:
        self._follow_ups.append(
            CaptureError(
                event_type=EventType.CAPTURE_ERROR,
                ts_ms=_now_ms(),
                service=Service.CAPTURE,
                run_id=run_id,
                code=code,
            )
        )

    # ------------------------------------------------------------------
    # Timer management
    # ------------------------------------------------------------------

    def _start_timer(
        self,
        *,
        timer_id: str,
        duration_ms: int,
        timeout_event_type: EventType,
    ) -> None:
        """One-shot timer; re-arming an id replaces the pending task."""
        self._cancel_timer(timer_id)

        async def _timer_task() -> None:
            try:
                await asyncio.sleep(duration_ms / 1000.0)

                # An expired timer must not be cancelled by its own re-arm
                if self._timers.get(timer_id) is asyncio.current_task():
                    del self._timers[timer_id]

                event = self._construct_timeout_event(
                    timer_id=timer_id,
                    timeout_event_type=timeout_event_type,
                )
                await self.handle_event(event)

            except asyncio.CancelledError:
                return

        self._timers[timer_id] = asyncio.create_task(_timer_task())

    def _cancel_timer(self, timer_id: str) -> None:
        task = self._timers.pop(timer_id, None)
        if task is not None and not task.done():
            task.cancel()

    def _construct_timeout_event(
        self,
        *,
        timer_id: str,
        timeout_event_type: EventType,
    ) -> Event:
        """
        Build the event for an expired timer.

        Run ids are read from the state at expiry; a timer armed for an
        older run therefore carries the current id and the reducer's phase
        and pending-prompt checks decide whether it still applies.
        """
        ts = _now_ms()

        if timeout_event_type is EventType.HEARTBEAT_TICK:
            return HeartbeatTick(event_type=EventType.HEARTBEAT_TICK, ts_ms=ts)

        if timeout_event_type is EventType.SPEECH_START_DUE:
            return SpeechStartDue(
                event_type=EventType.SPEECH_START_DUE,
                ts_ms=ts,
                run_id=self._state.active_runs.synthesis,
            )

        if timeout_event_type is EventType.RESUME_LISTENING_DUE:
            return ResumeListeningDue(
                event_type=EventType.RESUME_LISTENING_DUE,
                ts_ms=ts,
                run_id=self._state.active_runs.synthesis,
            )

        if timeout_event_type is EventType.INTENT_TIMEOUT:
            return IntentTimeout(
                event_type=EventType.INTENT_TIMEOUT,
                ts_ms=ts,
                run_id=self._state.active_runs.intent,
            )

        raise ValueError(
            f"Unknown timeout event type: {timeout_event_type} "
            f"for timer_id: {timer_id}"
        )
