# pylint: disable=missing-module-docstring,missing-function-docstring
from constants import (
    FALLBACK_PROMPT,
    GREETING_PROMPT,
    INTENT_TIMEOUT_MS,
    SPEECH_RELEASE_DELAY_MS,
    SPEECH_START_DELAY_MS,
)
from dispatch.mutations import SetProfileField, SetRole, SetView
from dispatch.types import ActionKind, DispatchContext, Intent
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
from orchestrator.enums.phase import Phase
from orchestrator.enums.service import Service
from orchestrator.events import (
    CaptureEnded,
    CaptureError,
    CaptureResult,
    EventType,
    HeartbeatTick,
    IntentFailed,
    IntentResolved,
    IntentTimeout,
    ListenRequest,
    ResumeListeningDue,
    SpeakRequest,
    SpeechDone,
    SpeechStartDue,
    VoiceDisable,
    VoiceEnable,
)
from orchestrator.reducer import (
    TIMER_HEARTBEAT,
    TIMER_INTENT,
    TIMER_RESUME_LISTENING,
    TIMER_SPEECH_START,
    reduce,
)
from orchestrator.state_dataclass import ControllerState
from ride.models import TripRequest, UserType, View


# ---------------------------------------------------------------------
# Event helpers (mirror runtime construction)
# ---------------------------------------------------------------------

def enable(ts_ms: int = 0) -> VoiceEnable:
    return VoiceEnable(event_type=EventType.VOICE_ENABLE, ts_ms=ts_ms)


def disable(ts_ms: int = 0) -> VoiceDisable:
    return VoiceDisable(event_type=EventType.VOICE_DISABLE, ts_ms=ts_ms)


def listen(ts_ms: int = 0) -> ListenRequest:
    return ListenRequest(event_type=EventType.LISTEN_REQUEST, ts_ms=ts_ms)


def heartbeat(ts_ms: int = 0) -> HeartbeatTick:
    return HeartbeatTick(event_type=EventType.HEARTBEAT_TICK, ts_ms=ts_ms)


def speak_request(text: str, ts_ms: int = 0) -> SpeakRequest:
    return SpeakRequest(event_type=EventType.SPEAK_REQUEST, ts_ms=ts_ms, text=text)


def speech_start_due(run_id: int) -> SpeechStartDue:
    return SpeechStartDue(event_type=EventType.SPEECH_START_DUE, ts_ms=0, run_id=run_id)


def speech_done(run_id: int) -> SpeechDone:
    return SpeechDone(
        event_type=EventType.SPEECH_DONE,
        ts_ms=0,
        service=Service.SYNTHESIS,
        run_id=run_id,
    )


def resume_due(run_id: int) -> ResumeListeningDue:
    return ResumeListeningDue(
        event_type=EventType.RESUME_LISTENING_DUE,
        ts_ms=0,
        run_id=run_id,
    )


def capture_result(run_id: int, transcript: str = "me llamo Carlos") -> CaptureResult:
    return CaptureResult(
        event_type=EventType.CAPTURE_RESULT,
        ts_ms=0,
        service=Service.CAPTURE,
        run_id=run_id,
        transcript=transcript,
    )


def capture_ended(run_id: int) -> CaptureEnded:
    return CaptureEnded(
        event_type=EventType.CAPTURE_ENDED,
        ts_ms=0,
        service=Service.CAPTURE,
        run_id=run_id,
    )


def capture_error(run_id: int, code: str) -> CaptureError:
    return CaptureError(
        event_type=EventType.CAPTURE_ERROR,
        ts_ms=0,
        service=Service.CAPTURE,
        run_id=run_id,
        code=code,
    )


def home_context() -> DispatchContext:
    return DispatchContext(view=View.HOME, role=None, trip_request=TripRequest())


def intent_resolved(
    run_id: int,
    action: ActionKind = ActionKind.SET_PASSENGER_NAME,
    value: str = "Carlos",
    speech: str = "Hola Carlos, ¿cuál es tu número?",
    context: DispatchContext | None = None,
) -> IntentResolved:
    return IntentResolved(
        event_type=EventType.INTENT_RESOLVED,
        ts_ms=0,
        service=Service.INTENT,
        run_id=run_id,
        intent=Intent(action=action, value=value, speech=speech),
        context=context or home_context(),
    )


def intent_failed(run_id: int) -> IntentFailed:
    return IntentFailed(
        event_type=EventType.INTENT_FAILED,
        ts_ms=0,
        service=Service.INTENT,
        run_id=run_id,
        reason="contract: invalid json",
    )


def intent_timeout(run_id: int) -> IntentTimeout:
    return IntentTimeout(event_type=EventType.INTENT_TIMEOUT, ts_ms=0, run_id=run_id)


def of_type(commands: tuple[Command, ...], cls: type) -> list:
    return [c for c in commands if isinstance(c, cls)]


def decisions(commands: tuple[Command, ...]) -> list[str]:
    return [c.event["decision"] for c in commands if isinstance(c, LogEvent)]


# ---------------------------------------------------------------------
# Scenario helpers
# ---------------------------------------------------------------------

def speaking_greeting() -> ControllerState:
    state, _ = reduce(ControllerState(), enable())
    return state


def listening() -> ControllerState:
    state = speaking_greeting()
    state, _ = reduce(state, speech_start_due(1))
    state, _ = reduce(state, speech_done(1))
    state, _ = reduce(state, resume_due(1))
    assert state.phase is Phase.LISTENING
    return state


def processing() -> ControllerState:
    state, _ = reduce(listening(), capture_result(1))
    assert state.phase is Phase.PROCESSING
    return state


# ---------------------------------------------------------------------
# Master switch
# ---------------------------------------------------------------------

def test_enable_speaks_greeting_and_arms_heartbeat() -> None:
    state, commands = reduce(ControllerState(), enable())

    assert state.phase is Phase.SPEAKING
    assert state.voice_enabled is True
    assert state.synthesis_active is True
    assert state.pending_prompt == GREETING_PROMPT
    assert state.active_runs.synthesis == 1

    timers = {c.timer_id: c for c in of_type(commands, StartTimer)}
    assert set(timers) == {TIMER_HEARTBEAT, TIMER_SPEECH_START}
    assert timers[TIMER_SPEECH_START].duration_ms == SPEECH_START_DELAY_MS

    assert len(of_type(commands, PublishVoiceState)) == 1


def test_enable_when_already_enabled_is_ignored() -> None:
    state = speaking_greeting()
    new_state, commands = reduce(state, enable())

    assert new_state == state
    assert decisions(commands) == ["ignore"]


def test_speech_start_due_hands_prompt_to_synthesis() -> None:
    state, commands = reduce(speaking_greeting(), speech_start_due(1))

    assert of_type(commands, Speak) == [Speak(run_id=1, text=GREETING_PROMPT)]
    assert state.pending_prompt == ""
    assert state.phase is Phase.SPEAKING


def test_speech_start_due_for_superseded_run_is_ignored() -> None:
    state = speaking_greeting()
    _, commands = reduce(state, speech_start_due(0))
    assert not of_type(commands, Speak)


def test_speech_done_holds_speaking_through_release_delay() -> None:
    state, _ = reduce(speaking_greeting(), speech_start_due(1))
    state, commands = reduce(state, speech_done(1))

    assert state.phase is Phase.SPEAKING
    assert state.synthesis_active is False
    timers = of_type(commands, StartTimer)
    assert [t.timer_id for t in timers] == [TIMER_RESUME_LISTENING]
    assert timers[0].duration_ms == SPEECH_RELEASE_DELAY_MS
    assert not of_type(commands, StartCapture)


def test_release_delay_expiry_starts_listening() -> None:
    state, _ = reduce(speaking_greeting(), speech_start_due(1))
    state, _ = reduce(state, speech_done(1))
    state, commands = reduce(state, resume_due(1))

    assert state.phase is Phase.LISTENING
    assert state.capture_active is True
    assert of_type(commands, StartCapture) == [StartCapture(run_id=1)]


def test_disable_cancels_everything_and_nothing_follows() -> None:
    state, commands = reduce(speaking_greeting(), disable())

    assert state.phase is Phase.IDLE
    assert state.voice_enabled is False
    assert state.synthesis_active is False
    assert state.pending_prompt == ""
    assert of_type(commands, CancelSpeech) == [CancelSpeech(run_id=1)]
    cancelled = {c.timer_id for c in of_type(commands, CancelTimer)}
    assert {TIMER_HEARTBEAT, TIMER_SPEECH_START, TIMER_RESUME_LISTENING, TIMER_INTENT} <= cancelled

    # Late callbacks and timers change nothing
    for late in (speech_start_due(1), speech_done(1), resume_due(1), heartbeat(5_000)):
        next_state, late_commands = reduce(state, late)
        assert next_state.phase is Phase.IDLE
        assert not of_type(late_commands, StartCapture)
        assert not of_type(late_commands, Speak)
        assert not of_type(late_commands, StartTimer)
        state = next_state


def test_disable_while_processing_cancels_intent() -> None:
    state, commands = reduce(processing(), disable())

    assert state.phase is Phase.IDLE
    assert of_type(commands, CancelIntent) == [CancelIntent(run_id=1)]

    # Late result for the cancelled run is ignored
    state, commands = reduce(state, intent_resolved(1))
    assert state.phase is Phase.IDLE
    assert not of_type(commands, ApplyMutations)


# ---------------------------------------------------------------------
# Watchdog
# ---------------------------------------------------------------------

def test_heartbeat_issues_one_start_listening_per_tick() -> None:
    state = ControllerState(voice_enabled=True)

    state, commands = reduce(state, heartbeat(0))
    assert of_type(commands, StartCapture) == [StartCapture(run_id=1)]
    assert [t.timer_id for t in of_type(commands, StartTimer)] == [TIMER_HEARTBEAT]

    # Capture still open: nothing to do
    state, commands = reduce(state, heartbeat(2_000))
    assert not of_type(commands, StartCapture)

    # Silence ended the capture; next tick restarts it
    state, _ = reduce(state, capture_ended(1))
    assert state.phase is Phase.IDLE
    state, commands = reduce(state, heartbeat(4_000))
    assert of_type(commands, StartCapture) == [StartCapture(run_id=2)]


def test_heartbeat_never_acts_while_speaking_or_processing() -> None:
    for state in (speaking_greeting(), processing()):
        new_state, commands = reduce(state, heartbeat(1_000))
        assert new_state.phase is state.phase
        assert not of_type(commands, StartCapture)
        assert [t.timer_id for t in of_type(commands, StartTimer)] == [TIMER_HEARTBEAT]


def test_heartbeat_with_voice_disabled_does_not_rearm() -> None:
    _, commands = reduce(ControllerState(), heartbeat(0))
    assert not of_type(commands, StartTimer)
    assert not of_type(commands, StartCapture)


def test_heartbeat_restarts_stuck_capture() -> None:
    state, _ = reduce(ControllerState(voice_enabled=True), heartbeat(0))

    state, commands = reduce(state, heartbeat(15_000))

    assert of_type(commands, StopCapture) == [StopCapture(run_id=1)]
    assert of_type(commands, StartCapture) == [StartCapture(run_id=2)]
    assert state.capture_since_ts_ms == 15_000


# ---------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------

def test_listen_request_rejected_while_speaking() -> None:
    state, commands = reduce(speaking_greeting(), listen())
    assert state.phase is Phase.SPEAKING
    assert not of_type(commands, StartCapture)
    assert "listen_rejected" in decisions(commands)


def test_capture_result_starts_interpretation_first() -> None:
    state, commands = reduce(listening(), capture_result(1, "  me llamo Carlos "))

    assert state.phase is Phase.PROCESSING
    assert state.capture_active is False
    assert state.transcript == "me llamo Carlos"

    non_logs = [c for c in commands if not isinstance(c, LogEvent)]
    assert non_logs[0] == StartIntent(run_id=1, transcript="me llamo Carlos")
    assert StopCapture(run_id=1) in non_logs

    intent_timer = [t for t in of_type(commands, StartTimer) if t.timer_id == TIMER_INTENT]
    assert intent_timer[0].duration_ms == INTENT_TIMEOUT_MS
    assert intent_timer[0].timeout_event_type is EventType.INTENT_TIMEOUT

    transcript_msgs = [
        c for c in of_type(commands, SendJSONToClient) if c.message_type == "TRANSCRIPT"
    ]
    assert transcript_msgs[0].data == {"text": "me llamo Carlos"}


def test_empty_or_stale_capture_result_is_ignored() -> None:
    state = listening()

    for event in (capture_result(1, "   "), capture_result(0, "hola")):
        new_state, commands = reduce(state, event)
        assert new_state == state
        assert not of_type(commands, StartIntent)


def test_transient_capture_error_returns_to_idle() -> None:
    state, _ = reduce(listening(), capture_error(1, "no-speech"))

    assert state.phase is Phase.IDLE
    assert state.voice_enabled is True
    assert state.capture_active is False
    assert state.last_error == "capture_error:no-speech"


def test_permission_denied_is_terminal_until_reenabled() -> None:
    state, commands = reduce(listening(), capture_error(1, "not-allowed"))

    assert state.phase is Phase.IDLE
    assert state.voice_enabled is False
    assert state.permission_denied is True
    assert TIMER_HEARTBEAT in {c.timer_id for c in of_type(commands, CancelTimer)}
    assert of_type(commands, PublishVoiceState)

    state, commands = reduce(state, listen())
    assert not of_type(commands, StartCapture)

    state, _ = reduce(state, enable())
    assert state.permission_denied is False
    assert state.voice_enabled is True
    assert state.phase is Phase.SPEAKING


# ---------------------------------------------------------------------
# Intent outcomes
# ---------------------------------------------------------------------

def test_intent_resolved_applies_mutations_then_speaks() -> None:
    state, commands = reduce(processing(), intent_resolved(1))

    applied = of_type(commands, ApplyMutations)
    assert applied == [
        ApplyMutations(
            mutations=(
                SetRole(UserType.PASSENGER),
                SetView(View.PASSENGER_REGISTER),
                SetProfileField(UserType.PASSENGER, "name", "Carlos"),
            )
        )
    ]
    assert CancelTimer(timer_id=TIMER_INTENT) in commands
    assert state.phase is Phase.SPEAKING
    assert state.pending_prompt == "Hola Carlos, ¿cuál es tu número?"
    assert state.active_runs.synthesis == 2


def test_guard_miss_still_speaks_without_mutations() -> None:
    state, commands = reduce(
        processing(),
        intent_resolved(1, action=ActionKind.CONFIRM_TRIP, value="", speech="Listo"),
    )

    assert not of_type(commands, ApplyMutations)
    assert "dispatch_guard_miss" in decisions(commands)
    assert state.phase is Phase.SPEAKING
    assert state.pending_prompt == "Listo"


def test_intent_timeout_speaks_one_fallback_and_resumes_listening() -> None:
    state, commands = reduce(processing(), intent_timeout(1))

    assert of_type(commands, CancelIntent) == [CancelIntent(run_id=1)]
    assert not of_type(commands, ApplyMutations)
    assert state.pending_prompt == FALLBACK_PROMPT

    # A late result for the timed-out run is dropped
    state, commands = reduce(state, intent_resolved(1))
    assert not of_type(commands, ApplyMutations)
    assert state.pending_prompt == FALLBACK_PROMPT

    state, commands = reduce(state, speech_start_due(2))
    assert of_type(commands, Speak) == [Speak(run_id=2, text=FALLBACK_PROMPT)]
    state, _ = reduce(state, speech_done(2))
    state, commands = reduce(state, resume_due(2))
    assert state.phase is Phase.LISTENING
    assert of_type(commands, StartCapture) == [StartCapture(run_id=2)]


def test_intent_failure_speaks_fallback() -> None:
    state, commands = reduce(processing(), intent_failed(1))

    assert not of_type(commands, ApplyMutations)
    assert state.phase is Phase.SPEAKING
    assert state.pending_prompt == FALLBACK_PROMPT
    assert state.last_error == "intent_failed:contract: invalid json"


# ---------------------------------------------------------------------
# Announcements
# ---------------------------------------------------------------------

def test_announcement_while_processing_is_prefixed_to_next_prompt() -> None:
    state, commands = reduce(processing(), speak_request("¡Conductor encontrado!"))
    assert state.phase is Phase.PROCESSING
    assert state.deferred_prompts == ("¡Conductor encontrado!",)
    assert not of_type(commands, StartTimer)

    state, _ = reduce(state, intent_resolved(1, action=ActionKind.NONE, speech="Vale."))
    assert state.pending_prompt == "¡Conductor encontrado! Vale."
    assert state.deferred_prompts == ()


def test_announcement_before_speech_starts_is_appended() -> None:
    state, commands = reduce(speaking_greeting(), speak_request("Viaje terminado."))

    assert state.active_runs.synthesis == 1
    assert state.pending_prompt == f"{GREETING_PROMPT} Viaje terminado."
    assert not of_type(commands, CancelSpeech)


def test_announcement_preempts_playing_speech() -> None:
    state, _ = reduce(speaking_greeting(), speech_start_due(1))
    state, commands = reduce(state, speak_request("Viaje terminado."))

    assert of_type(commands, CancelSpeech) == [CancelSpeech(run_id=1)]
    assert state.active_runs.synthesis == 2
    assert state.pending_prompt == "Viaje terminado."


def test_announcement_with_voice_disabled_returns_to_idle() -> None:
    state, _ = reduce(ControllerState(), speak_request("Gracias por calificar con 5 estrellas."))
    assert state.phase is Phase.SPEAKING

    state, _ = reduce(state, speech_start_due(1))
    state, commands = reduce(state, speech_done(1))

    assert state.phase is Phase.IDLE
    assert not of_type(commands, StartTimer)
