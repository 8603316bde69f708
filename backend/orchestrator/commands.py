"""
Commands: the side effects the voice controller asks for.

The reducer returns them as frozen dataclasses; only the runtime acts on
them. A command names what should happen (open the microphone, speak this
prompt, apply these ride mutations) and carries no behavior.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from dispatch.mutations import Mutation
from orchestrator.events import EventType

# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """Stable discriminants, used in logs."""

    # Capture
    START_CAPTURE = "START_CAPTURE"
    STOP_CAPTURE = "STOP_CAPTURE"

    # Intent
    START_INTENT = "START_INTENT"
    CANCEL_INTENT = "CANCEL_INTENT"

    # Synthesis
    SPEAK = "SPEAK"
    CANCEL_SPEECH = "CANCEL_SPEECH"

    # Application state
    APPLY_MUTATIONS = "APPLY_MUTATIONS"

    # Client / transport
    SEND_JSON_TO_CLIENT = "SEND_JSON_TO_CLIENT"
    PUBLISH_VOICE_STATE = "PUBLISH_VOICE_STATE"

    # Timers
    START_TIMER = "START_TIMER"
    CANCEL_TIMER = "CANCEL_TIMER"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Capture Commands
# =============================================================================

@dataclass(frozen=True)
class StartCapture(Command):
    """Request to open the microphone for one utterance."""
    run_id: int
    command_type: CommandType = CommandType.START_CAPTURE


@dataclass(frozen=True)
class StopCapture(Command):
    """Request to close the microphone for the given run."""
    run_id: int
    command_type: CommandType = CommandType.STOP_CAPTURE


# =============================================================================
# Intent Commands
# =============================================================================

@dataclass(frozen=True)
class StartIntent(Command):
    """
    Request one interpretation of the transcript.

    The runtime captures the dispatch context snapshot when executing
    this command; the reducer emits it first so no other side effect
    runs in between.
    """
    run_id: int
    transcript: str
    command_type: CommandType = CommandType.START_INTENT


@dataclass(frozen=True)
class CancelIntent(Command):
    """Request to abandon an in-flight interpretation."""
    run_id: int
    command_type: CommandType = CommandType.CANCEL_INTENT


# =============================================================================
# Synthesis Commands
# =============================================================================

@dataclass(frozen=True)
class Speak(Command):
    """
    Request to speak one prompt.

    The adapter must emit exactly one SpeechDone or SpeechError.
    """
    run_id: int
    text: str
    command_type: CommandType = CommandType.SPEAK


@dataclass(frozen=True)
class CancelSpeech(Command):
    """Request to cancel a pending or playing utterance."""
    run_id: int
    command_type: CommandType = CommandType.CANCEL_SPEECH


# =============================================================================
# Application State Commands
# =============================================================================

@dataclass(frozen=True)
class ApplyMutations(Command):
    """Request to apply dispatch mutations to the ride store, in order."""
    mutations: tuple[Mutation, ...]
    command_type: CommandType = CommandType.APPLY_MUTATIONS


# =============================================================================
# Client / Transport Commands
# =============================================================================

@dataclass(frozen=True)
class SendJSONToClient(Command):
    """Push a UI message (TRANSCRIPT) to the browser."""
    message_type: str
    data: dict[str, Any]
    command_type: CommandType = CommandType.SEND_JSON_TO_CLIENT


@dataclass(frozen=True)
class PublishVoiceState(Command):
    """
    Push VOICE_STATE to the browser.

    Carries no payload: the runtime reads phase and switches from the
    state current when the command runs, never from an older reduction.
    """
    command_type: CommandType = CommandType.PUBLISH_VOICE_STATE


# =============================================================================
# Timer Commands
# =============================================================================

@dataclass(frozen=True)
class StartTimer(Command):
    """
    Request to start (or replace) a named one-shot timer.

    When it fires the runtime builds and reduces timeout_event_type.
    """
    timer_id: str
    duration_ms: int
    timeout_event_type: EventType
    command_type: CommandType = CommandType.START_TIMER


@dataclass(frozen=True)
class CancelTimer(Command):
    """Request to cancel a previously scheduled timer."""
    timer_id: str
    command_type: CommandType = CommandType.CANCEL_TIMER


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
