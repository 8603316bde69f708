"""
Unified event definitions for the voice controller reducer.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Timer events are not ServiceEvents, but carry run_id for stale gating.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from dispatch.types import DispatchContext, Intent
from orchestrator.enums.service import Service


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (phase, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    SESSION_STARTED = "SESSION_STARTED"
    SESSION_ENDED = "SESSION_ENDED"

    # ------------------------------------------------------------------
    # User / application control
    # ------------------------------------------------------------------
    VOICE_ENABLE = "VOICE_ENABLE"
    VOICE_DISABLE = "VOICE_DISABLE"
    LISTEN_REQUEST = "LISTEN_REQUEST"
    SPEAK_REQUEST = "SPEAK_REQUEST"

    # ------------------------------------------------------------------
    # Capture adapter
    # ------------------------------------------------------------------
    CAPTURE_STARTED = "CAPTURE_STARTED"
    CAPTURE_RESULT = "CAPTURE_RESULT"
    CAPTURE_ENDED = "CAPTURE_ENDED"
    CAPTURE_ERROR = "CAPTURE_ERROR"

    # ------------------------------------------------------------------
    # Intent interpretation
    # ------------------------------------------------------------------
    INTENT_RESOLVED = "INTENT_RESOLVED"
    INTENT_FAILED = "INTENT_FAILED"
    INTENT_TIMEOUT = "INTENT_TIMEOUT"

    # ------------------------------------------------------------------
    # Synthesis adapter
    # ------------------------------------------------------------------
    SPEECH_DONE = "SPEECH_DONE"
    SPEECH_ERROR = "SPEECH_ERROR"

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    HEARTBEAT_TICK = "HEARTBEAT_TICK"
    SPEECH_START_DUE = "SPEECH_START_DUE"
    RESUME_LISTENING_DUE = "RESUME_LISTENING_DUE"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


@dataclass(frozen=True)
class ServiceEvent(Event):
    """
    Base class for events scoped to a versioned external service.

    The reducer MUST ignore events whose run_id does not match the
    currently active run for that service.
    """

    service: Service
    run_id: int


# =============================================================================
# Session Events
# =============================================================================

@dataclass(frozen=True)
class SessionStarted(Event):
    session_id: str


@dataclass(frozen=True)
class SessionEnded(Event):
    session_id: str


# =============================================================================
# Control Events
# =============================================================================

@dataclass(frozen=True)
class VoiceEnable(Event):
    """User switched the voice assistant on."""


@dataclass(frozen=True)
class VoiceDisable(Event):
    """User switched the voice assistant off."""


@dataclass(frozen=True)
class ListenRequest(Event):
    """Explicit request to open capture (mic button)."""


@dataclass(frozen=True)
class SpeakRequest(Event):
    """Application announcement (trip matched, rating thanks, ...)."""
    text: str


# =============================================================================
# Capture Events
# =============================================================================

@dataclass(frozen=True)
class CaptureStarted(ServiceEvent):
    """Capture hardware confirmed it is recording."""


@dataclass(frozen=True)
class CaptureResult(ServiceEvent):
    """Final transcript of one utterance (single-utterance mode)."""
    transcript: str


@dataclass(frozen=True)
class CaptureEnded(ServiceEvent):
    """Capture stopped, with or without a transcript."""


@dataclass(frozen=True)
class CaptureError(ServiceEvent):
    """
    Capture failed.

    code follows the browser's SpeechRecognition error codes
    ("no-speech", "aborted", "not-allowed", ...) or "start-failed".
    """
    code: str


# =============================================================================
# Intent Events
# =============================================================================

@dataclass(frozen=True)
class IntentResolved(ServiceEvent):
    """
    Interpretation succeeded.

    context is the snapshot the utterance was interpreted against; dispatch
    must use it rather than re-reading live state.
    """
    intent: Intent
    context: DispatchContext


@dataclass(frozen=True)
class IntentFailed(ServiceEvent):
    """Contract failure: transport error, empty or malformed response."""
    reason: str


@dataclass(frozen=True)
class IntentTimeout(Event):
    """No intent result within the bounded latency window."""
    run_id: int


# =============================================================================
# Synthesis Events
# =============================================================================

@dataclass(frozen=True)
class SpeechDone(ServiceEvent):
    """Utterance finished playing."""


@dataclass(frozen=True)
class SpeechError(ServiceEvent):
    """Utterance failed or was interrupted."""
    reason: str


# =============================================================================
# Timer Events
# =============================================================================

@dataclass(frozen=True)
class HeartbeatTick(Event):
    """Watchdog period elapsed."""


@dataclass(frozen=True)
class SpeechStartDue(Event):
    """Start delay elapsed; the pending prompt may be handed to synthesis."""
    run_id: int


@dataclass(frozen=True)
class ResumeListeningDue(Event):
    """Release delay after synthesis elapsed."""
    run_id: int
