# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
from typing import Any

import pytest

from adapters.capture.base import CapturePermissionDenied
from constants import FALLBACK_PROMPT, GREETING_PROMPT, VoiceTimings
from dispatch.mutations import Mutation
from dispatch.types import DispatchContext
from observability import logger
from orchestrator.enums.phase import Phase
from orchestrator.enums.service import Service
from orchestrator.events import (
    CaptureResult,
    EventType,
    ListenRequest,
    SpeechDone,
    VoiceDisable,
    VoiceEnable,
)
from orchestrator.reducer import TIMER_HEARTBEAT, TIMER_INTENT
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import ControllerState
from ride.models import TripRequest, View
from session.connection_status import ConnectionStatus
from session.voice_session import VoiceSession


# ---------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------

class FakeCapture:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.started: list[int] = []
        self.stopped: list[int] = []

    async def start(self, run_id: int) -> None:
        if self.error is not None:
            raise self.error
        self.started.append(run_id)

    async def stop(self, run_id: int) -> None:
        self.stopped.append(run_id)


class FakeSynthesis:
    def __init__(self) -> None:
        self.spoken: list[tuple[int, str]] = []
        self.cancelled: list[int] = []

    async def speak(self, *, run_id: int, text: str) -> None:
        self.spoken.append((run_id, text))

    async def cancel(self, run_id: int) -> None:
        self.cancelled.append(run_id)


class SilentIntent:
    """Never answers; the controller's timeout has to fire."""

    def __init__(self) -> None:
        self.requests: list[dict[str, Any]] = []
        self.cancelled: list[int] = []

    async def interpret(self, *, run_id: int, transcript: str, context: DispatchContext) -> None:
        self.requests.append({"run_id": run_id, "transcript": transcript, "context": context})

    async def cancel(self, run_id: int) -> None:
        self.cancelled.append(run_id)


class BrokenIntent(SilentIntent):
    """Raises before the call is even scheduled."""

    async def interpret(self, *, run_id: int, transcript: str, context: DispatchContext) -> None:
        await super().interpret(run_id=run_id, transcript=transcript, context=context)
        raise ConnectionError("no route to model")


class FakeStore:
    def __init__(self) -> None:
        self.applied: list[tuple[Mutation, ...]] = []
        self.context = DispatchContext(view=View.HOME, role=None, trip_request=TripRequest())

    def snapshot(self) -> DispatchContext:
        return self.context

    async def apply(self, mutations: tuple[Mutation, ...]) -> None:
        self.applied.append(mutations)


FAST = VoiceTimings(
    heartbeat_ms=10_000,
    speech_start_delay_ms=1,
    speech_release_delay_ms=1,
    intent_timeout_ms=30,
    capture_stale_after_ms=10_000,
)


@pytest.fixture(autouse=True)
def quiet_logs(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logger, "_print", lambda line: None)


def make_runtime(
    capture: FakeCapture | None = None,
    timings: VoiceTimings = FAST,
    initial_state: ControllerState | None = None,
) -> tuple[Runtime, VoiceSession]:
    session = VoiceSession(session_id="s1", connection_status=ConnectionStatus.UP)
    session.attach_capture_adapter(capture or FakeCapture())
    session.attach_synthesis_adapter(FakeSynthesis())
    session.attach_intent_adapter(SilentIntent())
    session.ride_store = FakeStore()
    runtime = Runtime(
        initial_state=initial_state or ControllerState(timings=timings),
        context=RuntimeExecutionContext(session),
    )
    session.attach_runtime(runtime)
    return runtime, session


async def wait_until(predicate, timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("condition not reached")
        await asyncio.sleep(0.002)


def enable() -> VoiceEnable:
    return VoiceEnable(event_type=EventType.VOICE_ENABLE, ts_ms=0)


def disable() -> VoiceDisable:
    return VoiceDisable(event_type=EventType.VOICE_DISABLE, ts_ms=0)


# ---------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_intent_timeout_yields_one_fallback_then_listening() -> None:
    runtime, session = make_runtime()
    synthesis: FakeSynthesis = session.synthesis_adapter
    capture: FakeCapture = session.capture_adapter
    intent: SilentIntent = session.intent_adapter
    store: FakeStore = session.ride_store

    await runtime.handle_event(enable())
    await wait_until(lambda: synthesis.spoken == [(1, GREETING_PROMPT)])

    await runtime.handle_event(
        SpeechDone(event_type=EventType.SPEECH_DONE, ts_ms=0, service=Service.SYNTHESIS, run_id=1)
    )
    await wait_until(lambda: capture.started == [1])
    assert runtime.state.phase is Phase.LISTENING

    await runtime.handle_event(
        CaptureResult(
            event_type=EventType.CAPTURE_RESULT,
            ts_ms=0,
            service=Service.CAPTURE,
            run_id=1,
            transcript="quiero ir al centro",
        )
    )
    assert runtime.state.phase is Phase.PROCESSING
    assert capture.stopped == [1]
    assert intent.requests[0]["context"] is store.context

    await wait_until(lambda: len(synthesis.spoken) == 2)
    assert synthesis.spoken[1] == (2, FALLBACK_PROMPT)
    assert intent.cancelled == [1]
    assert store.applied == []

    await runtime.handle_event(
        SpeechDone(event_type=EventType.SPEECH_DONE, ts_ms=0, service=Service.SYNTHESIS, run_id=2)
    )
    await wait_until(lambda: capture.started == [1, 2])
    assert runtime.state.phase is Phase.LISTENING

    # Exactly one fallback was spoken
    assert [text for _, text in synthesis.spoken].count(FALLBACK_PROMPT) == 1

    await runtime.handle_event(disable())
    await runtime.shutdown()
    assert runtime.active_timers == frozenset()


@pytest.mark.asyncio
async def test_voice_state_is_published_to_the_client() -> None:
    runtime, session = make_runtime()

    await runtime.handle_event(enable())

    messages = session.drain_control()
    voice_states = [m for m in messages if m["type"] == "VOICE_STATE"]
    assert voice_states[-1]["phase"] == "SPEAKING"
    assert voice_states[-1]["voice_enabled"] is True
    assert "ts_ms" in voice_states[-1]

    await runtime.shutdown()


@pytest.mark.asyncio
async def test_capture_permission_failure_disables_voice() -> None:
    capture = FakeCapture(error=CapturePermissionDenied("not-allowed"))
    runtime, _ = make_runtime(
        capture=capture,
        initial_state=ControllerState(voice_enabled=True, timings=FAST),
    )

    await runtime.handle_event(ListenRequest(event_type=EventType.LISTEN_REQUEST, ts_ms=0))

    assert runtime.state.permission_denied is True
    assert runtime.state.voice_enabled is False
    assert runtime.state.phase is Phase.IDLE
    await runtime.shutdown()


def voice_states(session: VoiceSession) -> list[tuple[str, bool, bool]]:
    return [
        (m["phase"], m["voice_enabled"], m["permission_denied"])
        for m in session.drain_control()
        if m["type"] == "VOICE_STATE"
    ]


@pytest.mark.asyncio
async def test_last_voice_state_matches_controller_after_permission_denial() -> None:
    capture = FakeCapture(error=CapturePermissionDenied("not-allowed"))
    runtime, session = make_runtime(
        capture=capture,
        initial_state=ControllerState(voice_enabled=True, timings=FAST),
    )

    await runtime.handle_event(ListenRequest(event_type=EventType.LISTEN_REQUEST, ts_ms=0))

    published = voice_states(session)
    assert published[-1] == ("IDLE", False, True)
    state = runtime.state
    assert published[-1] == (state.phase.value, state.voice_enabled, state.permission_denied)
    await runtime.shutdown()


@pytest.mark.asyncio
async def test_intent_that_fails_to_start_speaks_fallback_without_timer() -> None:
    runtime, session = make_runtime(
        initial_state=ControllerState(voice_enabled=True, timings=FAST),
    )
    session.attach_intent_adapter(BrokenIntent())
    synthesis: FakeSynthesis = session.synthesis_adapter

    await runtime.handle_event(ListenRequest(event_type=EventType.LISTEN_REQUEST, ts_ms=0))
    session.drain_control()

    await runtime.handle_event(
        CaptureResult(
            event_type=EventType.CAPTURE_RESULT,
            ts_ms=0,
            service=Service.CAPTURE,
            run_id=1,
            transcript="quiero ir al centro",
        )
    )

    assert runtime.state.phase is Phase.SPEAKING
    assert runtime.state.last_error == "intent_failed:ConnectionError: no route to model"
    assert TIMER_INTENT not in runtime.active_timers

    messages = session.drain_control()
    types = [m["type"] for m in messages]
    assert types.index("TRANSCRIPT") < len(types) - 1
    assert messages[-1]["type"] == "VOICE_STATE"
    assert messages[-1]["phase"] == "SPEAKING"

    await wait_until(lambda: synthesis.spoken == [(1, FALLBACK_PROMPT)])
    await runtime.handle_event(disable())
    await runtime.shutdown()


@pytest.mark.asyncio
async def test_capture_start_failure_is_absorbed() -> None:
    capture = FakeCapture(error=RuntimeError("client not connected"))
    runtime, _ = make_runtime(
        capture=capture,
        initial_state=ControllerState(voice_enabled=True, timings=FAST),
    )

    await runtime.handle_event(ListenRequest(event_type=EventType.LISTEN_REQUEST, ts_ms=0))

    assert runtime.state.phase is Phase.IDLE
    assert runtime.state.voice_enabled is True
    assert runtime.state.capture_active is False
    assert runtime.state.last_error == "capture_error:start-failed"
    await runtime.shutdown()


@pytest.mark.asyncio
async def test_heartbeat_survives_its_own_rearm() -> None:
    timings = VoiceTimings(
        heartbeat_ms=5,
        speech_start_delay_ms=1,
        speech_release_delay_ms=1,
        intent_timeout_ms=1_000,
        capture_stale_after_ms=10_000,
    )
    runtime, session = make_runtime(timings=timings)

    await runtime.handle_event(enable())
    await asyncio.sleep(0.05)

    assert TIMER_HEARTBEAT in runtime.active_timers

    # Greeting never finished: the watchdog must not have opened capture
    assert session.capture_adapter.started == []

    await runtime.handle_event(disable())
    assert TIMER_HEARTBEAT not in runtime.active_timers
    await runtime.shutdown()
