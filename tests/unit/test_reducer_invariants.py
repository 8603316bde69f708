# pylint: disable=missing-module-docstring,missing-function-docstring
"""
Randomized event sequences against the reducer.

Capture and synthesis are single-slot resources that are never held at
the same time, whatever order callbacks and timers arrive in.
"""

import random

import pytest

from dispatch.types import ActionKind, DispatchContext, Intent
from orchestrator.commands import StartCapture
from orchestrator.enums.phase import Phase
from orchestrator.enums.service import Service
from orchestrator.events import (
    CaptureEnded,
    CaptureError,
    CaptureResult,
    Event,
    EventType,
    HeartbeatTick,
    IntentFailed,
    IntentResolved,
    IntentTimeout,
    ListenRequest,
    ResumeListeningDue,
    SpeakRequest,
    SpeechDone,
    SpeechError,
    SpeechStartDue,
    VoiceDisable,
    VoiceEnable,
)
from orchestrator.reducer import reduce
from orchestrator.state_dataclass import ControllerState
from ride.models import TripRequest, View


def _pick_run(rng: random.Random, current: int) -> int:
    # Mostly the live run, sometimes a stale or future one
    return rng.choice([current, current, current, max(current - 1, 0), current + 1])


def _random_event(rng: random.Random, state: ControllerState, ts_ms: int) -> Event:
    runs = state.active_runs
    context = DispatchContext(view=View.HOME, role=None, trip_request=TripRequest())
    choice = rng.randrange(15)

    if choice == 0:
        return VoiceEnable(event_type=EventType.VOICE_ENABLE, ts_ms=ts_ms)
    if choice == 1:
        return VoiceDisable(event_type=EventType.VOICE_DISABLE, ts_ms=ts_ms)
    if choice == 2:
        return ListenRequest(event_type=EventType.LISTEN_REQUEST, ts_ms=ts_ms)
    if choice == 3:
        return SpeakRequest(event_type=EventType.SPEAK_REQUEST, ts_ms=ts_ms, text="aviso")
    if choice == 4:
        return HeartbeatTick(event_type=EventType.HEARTBEAT_TICK, ts_ms=ts_ms)
    if choice == 5:
        return CaptureResult(
            event_type=EventType.CAPTURE_RESULT,
            ts_ms=ts_ms,
            service=Service.CAPTURE,
            run_id=_pick_run(rng, runs.capture),
            transcript=rng.choice(["", "hola", "quiero ir al centro"]),
        )
    if choice == 6:
        return CaptureEnded(
            event_type=EventType.CAPTURE_ENDED,
            ts_ms=ts_ms,
            service=Service.CAPTURE,
            run_id=_pick_run(rng, runs.capture),
        )
    if choice == 7:
        return CaptureError(
            event_type=EventType.CAPTURE_ERROR,
            ts_ms=ts_ms,
            service=Service.CAPTURE,
            run_id=_pick_run(rng, runs.capture),
            code=rng.choice(["no-speech", "network", "not-allowed"]),
        )
    if choice == 8:
        return IntentResolved(
            event_type=EventType.INTENT_RESOLVED,
            ts_ms=ts_ms,
            service=Service.INTENT,
            run_id=_pick_run(rng, runs.intent),
            intent=Intent(action=ActionKind.NONE, value="", speech="Vale."),
            context=context,
        )
    if choice == 9:
        return IntentFailed(
            event_type=EventType.INTENT_FAILED,
            ts_ms=ts_ms,
            service=Service.INTENT,
            run_id=_pick_run(rng, runs.intent),
            reason="boom",
        )
    if choice == 10:
        return IntentTimeout(
            event_type=EventType.INTENT_TIMEOUT,
            ts_ms=ts_ms,
            run_id=_pick_run(rng, runs.intent),
        )
    if choice == 11:
        return SpeechStartDue(
            event_type=EventType.SPEECH_START_DUE,
            ts_ms=ts_ms,
            run_id=_pick_run(rng, runs.synthesis),
        )
    if choice == 12:
        return SpeechDone(
            event_type=EventType.SPEECH_DONE,
            ts_ms=ts_ms,
            service=Service.SYNTHESIS,
            run_id=_pick_run(rng, runs.synthesis),
        )
    if choice == 13:
        return SpeechError(
            event_type=EventType.SPEECH_ERROR,
            ts_ms=ts_ms,
            service=Service.SYNTHESIS,
            run_id=_pick_run(rng, runs.synthesis),
            reason="interrupted",
        )
    return ResumeListeningDue(
        event_type=EventType.RESUME_LISTENING_DUE,
        ts_ms=ts_ms,
        run_id=_pick_run(rng, runs.synthesis),
    )


@pytest.mark.parametrize("seed", range(25))
def test_capture_and_synthesis_are_mutually_exclusive(seed: int) -> None:
    rng = random.Random(seed)
    state = ControllerState()
    ts_ms = 0

    for _ in range(300):
        ts_ms += rng.choice([10, 50, 200, 2_000, 16_000])
        event = _random_event(rng, state, ts_ms)
        new_state, commands = reduce(state, event)

        assert not (new_state.capture_active and new_state.synthesis_active)
        if new_state.capture_active:
            assert new_state.phase is Phase.LISTENING
        if new_state.synthesis_active:
            assert new_state.phase is Phase.SPEAKING
        if new_state.phase is Phase.PROCESSING:
            assert not new_state.capture_active
            assert not new_state.synthesis_active

        # Run ids only ever grow
        assert new_state.active_runs.capture >= state.active_runs.capture
        assert new_state.active_runs.intent >= state.active_runs.intent
        assert new_state.active_runs.synthesis >= state.active_runs.synthesis

        # At most one capture start per event
        assert len([c for c in commands if isinstance(c, StartCapture)]) <= 1
        if state.phase in (Phase.SPEAKING, Phase.PROCESSING) and isinstance(event, HeartbeatTick):
            assert not any(isinstance(c, StartCapture) for c in commands)

        state = new_state
