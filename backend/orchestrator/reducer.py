"""
Pure voice controller reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (phase, event) pair is handled or explicitly ignored (logged).
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from constants import (
    CAPTURE_PERMISSION_ERROR_CODES,
    FALLBACK_PROMPT,
    GREETING_PROMPT,
)
from dispatch.mutations import describe
from dispatch.table import dispatch
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
    CaptureStarted,
    Event,
    EventType,
    HeartbeatTick,
    IntentFailed,
    IntentResolved,
    IntentTimeout,
    ListenRequest,
    ResumeListeningDue,
    ServiceEvent,
    SessionEnded,
    SessionStarted,
    SpeakRequest,
    SpeechDone,
    SpeechError,
    SpeechStartDue,
    VoiceDisable,
    VoiceEnable,
)
from orchestrator.run_ids import RunIds
from orchestrator.state_dataclass import ControllerState


# =============================================================================
# Timer IDs
# =============================================================================

TIMER_HEARTBEAT = "heartbeat"
TIMER_SPEECH_START = "speech_start_delay"
TIMER_RESUME_LISTENING = "resume_listening_delay"
TIMER_INTENT = "intent_timeout"

ALL_TIMERS = (
    TIMER_HEARTBEAT,
    TIMER_SPEECH_START,
    TIMER_RESUME_LISTENING,
    TIMER_INTENT,
)

Result = tuple[ControllerState, tuple[Command, ...]]


# =============================================================================
# Small helpers
# =============================================================================

def _bump_run_id(active_runs: RunIds, service: Service) -> RunIds:
    if service is Service.CAPTURE:
        return replace(active_runs, capture=active_runs.capture + 1)
    if service is Service.INTENT:
        return replace(active_runs, intent=active_runs.intent + 1)
    if service is Service.SYNTHESIS:
        return replace(active_runs, synthesis=active_runs.synthesis + 1)
    raise ValueError(service)


def _active_run_for(active_runs: RunIds, service: Service) -> int:
    if service is Service.CAPTURE:
        return active_runs.capture
    if service is Service.INTENT:
        return active_runs.intent
    if service is Service.SYNTHESIS:
        return active_runs.synthesis
    raise ValueError(service)


def _is_stale(state: ControllerState, event: ServiceEvent) -> bool:
    return event.run_id != _active_run_for(state.active_runs, event.service)


def _log(
    state: ControllerState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "phase": state.phase.value,
            "voice_enabled": state.voice_enabled,
            "event_type": event.event_type.value,
            "decision": decision,
            "run_ids": {
                "capture": state.active_runs.capture,
                "intent": state.active_runs.intent,
                "synthesis": state.active_runs.synthesis,
            },
            "capture_active": state.capture_active,
            "synthesis_active": state.synthesis_active,
            "details": details or {},
        }
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs: list[Command] = []
    logs: list[Command] = []
    state_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "state_changed":
                state_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + state_change_logs)


def _ignore(state: ControllerState, event: Event, reason: str) -> Result:
    return state, (_log(state, event, "ignore", {"reason": reason}),)


# =============================================================================
# Shared transitions
# =============================================================================

def _stop_capture(
    state: ControllerState, event: Event
) -> tuple[ControllerState, list[Command]]:
    """Close the microphone if it is open. Never bumps the run id."""
    if not state.capture_active:
        return state, []
    cmds: list[Command] = [
        StopCapture(run_id=state.active_runs.capture),
        _log(state, event, "stop_capture", {"capture_run_id": state.active_runs.capture}),
    ]
    return replace(state, capture_active=False, capture_since_ts_ms=None), cmds


def _start_listening(state: ControllerState, event: Event, source: str) -> Result:
    """
    Open capture for one utterance.

    Re-entrancy guard: rejected while SPEAKING or PROCESSING, while a capture
    run is already active, or after a permission denial.
    """
    if state.phase in (Phase.SPEAKING, Phase.PROCESSING):
        return state, (
            _log(state, event, "listen_rejected", {"reason": f"busy_{state.phase.value}", "source": source}),
        )
    if state.capture_active:
        return state, (
            _log(state, event, "listen_rejected", {"reason": "capture_active", "source": source}),
        )
    if state.permission_denied:
        return state, (
            _log(state, event, "listen_rejected", {"reason": "permission_denied", "source": source}),
        )

    new_runs = _bump_run_id(state.active_runs, Service.CAPTURE)
    new_state = replace(
        state,
        phase=Phase.LISTENING,
        active_runs=new_runs,
        capture_active=True,
        capture_since_ts_ms=event.ts_ms,
    )
    return new_state, (
        StartCapture(run_id=new_runs.capture),
        _log(new_state, event, "start_capture", {"capture_run_id": new_runs.capture, "source": source}),
    )


def _begin_speaking(
    state: ControllerState, event: Event, text: str, source: str
) -> Result:
    """
    Schedule an utterance.

    Order of effects:
    1. close capture (mutual exclusion)
    2. cancel any current utterance
    3. wait the start delay, then Speak (see SpeechStartDue)
    """
    spoken = " ".join(state.deferred_prompts + (text,))

    cmds: list[Command] = []
    new_state, stop_cmds = _stop_capture(state, event)
    cmds.extend(stop_cmds)

    if new_state.synthesis_active:
        cmds.append(CancelSpeech(run_id=new_state.active_runs.synthesis))
        cmds.append(
            _log(new_state, event, "cancel_speech", {"synthesis_run_id": new_state.active_runs.synthesis})
        )

    new_runs = _bump_run_id(new_state.active_runs, Service.SYNTHESIS)
    new_state = replace(
        new_state,
        phase=Phase.SPEAKING,
        active_runs=new_runs,
        synthesis_active=True,
        pending_prompt=spoken,
        deferred_prompts=(),
    )
    cmds.append(CancelTimer(timer_id=TIMER_RESUME_LISTENING))
    cmds.append(
        StartTimer(
            timer_id=TIMER_SPEECH_START,
            duration_ms=state.timings.speech_start_delay_ms,
            timeout_event_type=EventType.SPEECH_START_DUE,
        )
    )
    cmds.append(
        _log(
            new_state,
            event,
            "schedule_speech",
            {"synthesis_run_id": new_runs.synthesis, "source": source, "text_len": len(spoken)},
        )
    )
    return new_state, tuple(cmds)


def _say(state: ControllerState, event: Event, text: str, source: str) -> Result:
    """
    Speak text now, or as soon as the current phase allows.

    - PROCESSING: deferred and prefixed to the upcoming prompt.
    - SPEAKING with the utterance not yet handed to synthesis: appended.
    - otherwise: preempts whatever is happening.
    """
    if state.phase is Phase.PROCESSING:
        new_state = replace(state, deferred_prompts=state.deferred_prompts + (text,))
        return new_state, (_log(new_state, event, "defer_speech", {"source": source}),)

    if state.phase is Phase.SPEAKING and state.pending_prompt:
        new_state = replace(state, pending_prompt=f"{state.pending_prompt} {text}")
        return new_state, (_log(new_state, event, "append_speech", {"source": source}),)

    return _begin_speaking(state, event, text, source)


def _shutdown_voice(state: ControllerState, event: Event, source: str) -> Result:
    """
    Stop everything and return to IDLE with voice disabled.

    Deterministic: cancels synthesis, capture, interpretation and all timers.
    """
    cmds: list[Command] = [CancelTimer(timer_id=t) for t in ALL_TIMERS]

    if state.synthesis_active:
        cmds.append(CancelSpeech(run_id=state.active_runs.synthesis))
    if state.phase is Phase.PROCESSING:
        cmds.append(CancelIntent(run_id=state.active_runs.intent))

    new_state, stop_cmds = _stop_capture(state, event)
    cmds.extend(stop_cmds)

    new_state = replace(
        new_state,
        phase=Phase.IDLE,
        voice_enabled=False,
        synthesis_active=False,
        pending_prompt="",
        deferred_prompts=(),
        transcript="",
    )
    cmds.append(_log(new_state, event, "voice_shutdown", {"source": source}))
    return new_state, tuple(cmds)


# =============================================================================
# Reducer
# =============================================================================

def reduce(state: ControllerState, event: Event) -> Result:
    """
    Pure reducer for the voice session state machine.

    Given the current controller state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every (phase, event) pair is handled or explicitly ignored
    - Version-safe: ignores events with stale run IDs
    - Publishes VOICE_STATE whenever phase or the switches change
    """
    new_state, commands = _transition(state, event)

    if (
        new_state.phase is not state.phase
        or new_state.voice_enabled != state.voice_enabled
        or new_state.permission_denied != state.permission_denied
    ):
        commands = commands + (
            PublishVoiceState(),
            _log(
                new_state,
                event,
                "state_changed",
                {
                    "from_phase": state.phase.value,
                    "to_phase": new_state.phase.value,
                    "voice_enabled": new_state.voice_enabled,
                },
            ),
        )

    return new_state, _logs_last(commands)


def _transition(state: ControllerState, event: Event) -> Result:
    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    if isinstance(event, SessionStarted):
        return state, (_log(state, event, "session_started", {"session_id": event.session_id}),)

    if isinstance(event, SessionEnded):
        return state, (_log(state, event, "session_ended", {"session_id": event.session_id}),)

    # ------------------------------------------------------------------
    # Master switch
    # ------------------------------------------------------------------
    if isinstance(event, VoiceEnable):
        if state.voice_enabled:
            return _ignore(state, event, "already_enabled")

        enabled = replace(state, voice_enabled=True, permission_denied=False, last_error=None)
        new_state, cmds = _say(enabled, event, GREETING_PROMPT, "greeting")
        return new_state, (
            StartTimer(
                timer_id=TIMER_HEARTBEAT,
                duration_ms=state.timings.heartbeat_ms,
                timeout_event_type=EventType.HEARTBEAT_TICK,
            ),
            _log(new_state, event, "voice_enabled"),
        ) + cmds

    if isinstance(event, VoiceDisable):
        return _shutdown_voice(state, event, "voice_disable")

    # ------------------------------------------------------------------
    # Explicit requests
    # ------------------------------------------------------------------
    if isinstance(event, ListenRequest):
        return _start_listening(state, event, "listen_request")

    if isinstance(event, SpeakRequest):
        if not event.text.strip():
            return _ignore(state, event, "empty_announcement")
        return _say(state, event, event.text, "announcement")

    # ------------------------------------------------------------------
    # Watchdog
    # ------------------------------------------------------------------
    if isinstance(event, HeartbeatTick):
        return _on_heartbeat(state, event)

    # ------------------------------------------------------------------
    # Capture adapter
    # ------------------------------------------------------------------
    if isinstance(event, CaptureStarted):
        if _is_stale(state, event):
            return _ignore(state, event, "capture_started_stale")
        if not state.capture_active:
            return _ignore(state, event, "capture_started_after_stop")
        return state, (_log(state, event, "capture_confirmed", {"capture_run_id": event.run_id}),)

    if isinstance(event, CaptureResult):
        return _on_capture_result(state, event)

    if isinstance(event, CaptureEnded):
        if _is_stale(state, event):
            return _ignore(state, event, "capture_ended_stale")
        new_state = replace(state, capture_active=False, capture_since_ts_ms=None)
        if state.phase is Phase.LISTENING:
            # Watchdog re-opens capture on its next tick
            new_state = replace(new_state, phase=Phase.IDLE)
            return new_state, (_log(new_state, event, "capture_ended_without_result"),)
        return new_state, (_log(new_state, event, "capture_ended"),)

    if isinstance(event, CaptureError):
        return _on_capture_error(state, event)

    # ------------------------------------------------------------------
    # Intent interpretation
    # ------------------------------------------------------------------
    if isinstance(event, IntentResolved):
        if _is_stale(state, event) or state.phase is not Phase.PROCESSING:
            return _ignore(state, event, "intent_resolved_stale")

        result = dispatch(event.intent, event.context)
        cmds: list[Command] = [CancelTimer(timer_id=TIMER_INTENT)]
        if result.mutations:
            cmds.append(ApplyMutations(mutations=result.mutations))
        cmds.append(
            _log(
                state,
                event,
                "dispatch",
                {
                    "action": event.intent.action.value,
                    "view": event.context.view.value,
                    "mutations": [describe(m) for m in result.mutations],
                },
            )
        )
        if result.guard_miss is not None:
            cmds.append(
                _log(
                    state,
                    event,
                    "dispatch_guard_miss",
                    {"action": event.intent.action.value, "reason": result.guard_miss},
                )
            )
        new_state, speak_cmds = _begin_speaking(
            replace(state, transcript=""), event, result.prompt, "intent"
        )
        return new_state, tuple(cmds) + speak_cmds

    if isinstance(event, IntentFailed):
        if _is_stale(state, event) or state.phase is not Phase.PROCESSING:
            return _ignore(state, event, "intent_failed_stale")
        failed = replace(state, transcript="", last_error=f"intent_failed:{event.reason}")
        new_state, speak_cmds = _begin_speaking(failed, event, FALLBACK_PROMPT, "intent_fallback")
        return new_state, (
            CancelTimer(timer_id=TIMER_INTENT),
            _log(failed, event, "intent_failed", {"reason": event.reason}),
        ) + speak_cmds

    if isinstance(event, IntentTimeout):
        if event.run_id != state.active_runs.intent or state.phase is not Phase.PROCESSING:
            return _ignore(state, event, "intent_timeout_stale")
        failed = replace(state, transcript="", last_error="intent_timeout")
        new_state, speak_cmds = _begin_speaking(failed, event, FALLBACK_PROMPT, "intent_fallback")
        return new_state, (
            CancelIntent(run_id=event.run_id),
            _log(failed, event, "intent_timeout", {"intent_run_id": event.run_id}),
        ) + speak_cmds

    # ------------------------------------------------------------------
    # Synthesis
    # ------------------------------------------------------------------
    if isinstance(event, SpeechStartDue):
        if (
            state.phase is not Phase.SPEAKING
            or event.run_id != state.active_runs.synthesis
            or not state.pending_prompt
        ):
            return _ignore(state, event, "speech_start_stale")
        new_state = replace(state, pending_prompt="")
        return new_state, (
            Speak(run_id=event.run_id, text=state.pending_prompt),
            _log(new_state, event, "speak", {"synthesis_run_id": event.run_id}),
        )

    if isinstance(event, (SpeechDone, SpeechError)):
        if _is_stale(state, event) or not state.synthesis_active:
            return _ignore(state, event, "speech_end_stale")

        details: dict[str, Any] = {"synthesis_run_id": event.run_id}
        if isinstance(event, SpeechError):
            details["reason"] = event.reason

        released = replace(state, synthesis_active=False, pending_prompt="")
        if not state.voice_enabled:
            new_state = replace(released, phase=Phase.IDLE)
            return new_state, (_log(new_state, event, "speech_finished_idle", details),)

        # Stay in SPEAKING through the release delay so the watchdog
        # cannot reopen capture early
        return released, (
            StartTimer(
                timer_id=TIMER_RESUME_LISTENING,
                duration_ms=state.timings.speech_release_delay_ms,
                timeout_event_type=EventType.RESUME_LISTENING_DUE,
            ),
            _log(released, event, "speech_finished_release", details),
        )

    if isinstance(event, ResumeListeningDue):
        if (
            state.phase is not Phase.SPEAKING
            or state.synthesis_active
            or event.run_id != state.active_runs.synthesis
        ):
            return _ignore(state, event, "resume_listening_stale")
        idle = replace(state, phase=Phase.IDLE)
        if not state.voice_enabled:
            return idle, (_log(idle, event, "resume_skipped_voice_disabled"),)
        return _start_listening(idle, event, "resume_after_speech")

    return _ignore(state, event, "unhandled_event")


# =============================================================================
# Event handlers
# =============================================================================

def _on_heartbeat(state: ControllerState, event: HeartbeatTick) -> Result:
    """
    Watchdog: re-assert LISTENING when voice is on and nothing else is.

    Never acts while PROCESSING or SPEAKING. Idempotent: at most one
    StartCapture per tick.
    """
    if not state.voice_enabled:
        return _ignore(state, event, "heartbeat_voice_disabled")

    rearm = StartTimer(
        timer_id=TIMER_HEARTBEAT,
        duration_ms=state.timings.heartbeat_ms,
        timeout_event_type=EventType.HEARTBEAT_TICK,
    )

    if state.phase in (Phase.PROCESSING, Phase.SPEAKING):
        return state, (rearm, _log(state, event, "heartbeat_busy"))

    if state.capture_active:
        since = state.capture_since_ts_ms
        if since is not None and event.ts_ms - since >= state.timings.capture_stale_after_ms:
            stopped, stop_cmds = _stop_capture(state, event)
            stopped = replace(stopped, phase=Phase.IDLE)
            new_state, start_cmds = _start_listening(stopped, event, "heartbeat_stale_capture")
            return new_state, (rearm, *stop_cmds) + start_cmds
        return state, (rearm, _log(state, event, "heartbeat_capture_active"))

    new_state, cmds = _start_listening(state, event, "heartbeat")
    return new_state, (rearm,) + cmds


def _on_capture_result(state: ControllerState, event: CaptureResult) -> Result:
    if _is_stale(state, event):
        return _ignore(state, event, "capture_result_stale")
    if state.phase is not Phase.LISTENING:
        return _ignore(state, event, f"capture_result_in_{state.phase.value}")

    transcript = event.transcript.strip()
    if not transcript:
        return _ignore(state, event, "empty_transcript")

    new_runs = _bump_run_id(state.active_runs, Service.INTENT)
    new_state = replace(
        state,
        phase=Phase.PROCESSING,
        active_runs=new_runs,
        transcript=transcript,
    )

    # StartIntent goes first: the runtime snapshots the dispatch context
    # while executing it, before any other side effect can run
    cmds: list[Command] = [StartIntent(run_id=new_runs.intent, transcript=transcript)]
    new_state, stop_cmds = _stop_capture(new_state, event)
    cmds.extend(stop_cmds)
    cmds.extend([
        StartTimer(
            timer_id=TIMER_INTENT,
            duration_ms=state.timings.intent_timeout_ms,
            timeout_event_type=EventType.INTENT_TIMEOUT,
        ),
        SendJSONToClient(message_type="TRANSCRIPT", data={"text": transcript}),
        _log(new_state, event, "start_intent", {"intent_run_id": new_runs.intent}),
    ])
    return new_state, tuple(cmds)


def _on_capture_error(state: ControllerState, event: CaptureError) -> Result:
    if _is_stale(state, event):
        return _ignore(state, event, "capture_error_stale")

    if event.code in CAPTURE_PERMISSION_ERROR_CODES:
        # Terminal for the session until the user explicitly re-enables
        denied = replace(
            state,
            permission_denied=True,
            last_error=f"capture_permission:{event.code}",
        )
        new_state, cmds = _shutdown_voice(denied, event, "capture_permission_denied")
        return new_state, (
            _log(new_state, event, "capture_permission_denied", {"code": event.code}),
        ) + cmds

    # Transient: leave recovery to the watchdog
    new_state = replace(
        state,
        capture_active=False,
        capture_since_ts_ms=None,
        last_error=f"capture_error:{event.code}",
    )
    if state.phase is Phase.LISTENING:
        new_state = replace(new_state, phase=Phase.IDLE)
    return new_state, (_log(new_state, event, "capture_error_absorbed", {"code": event.code}),)
