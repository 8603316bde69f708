"""
Authoritative voice controller state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from constants import VOICE_TIMINGS_V1, VoiceTimings
from orchestrator.enums.phase import Phase
from orchestrator.run_ids import RunIds


@dataclass(frozen=True)
class ControllerState:
    """Immutable snapshot of all controller-owned state."""

    # ------------------------------------------------------------------
    # Control state
    # ------------------------------------------------------------------
    phase: Phase = Phase.IDLE

    # Master feature switch, independent of the phase
    voice_enabled: bool = False

    # Set by a permission error; only an explicit VoiceEnable clears it
    permission_denied: bool = False

    # ------------------------------------------------------------------
    # Single-slot resources
    # ------------------------------------------------------------------
    # Never both True
    capture_active: bool = False
    capture_since_ts_ms: int | None = None

    # True from the moment an utterance is scheduled until it ends
    synthesis_active: bool = False

    # ------------------------------------------------------------------
    # Run/version tracking
    # ------------------------------------------------------------------
    active_runs: RunIds = field(default_factory=RunIds)

    # ------------------------------------------------------------------
    # Speech
    # ------------------------------------------------------------------
    # Scheduled utterance waiting for the start delay
    pending_prompt: str = ""

    # Announcements that arrived while PROCESSING; spoken with the next prompt
    deferred_prompts: tuple[str, ...] = ()

    # ------------------------------------------------------------------
    # Turn
    # ------------------------------------------------------------------
    transcript: str = ""

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------
    last_error: str | None = None

    # ------------------------------------------------------------------
    # Timer durations
    # ------------------------------------------------------------------
    timings: VoiceTimings = VOICE_TIMINGS_V1
