"""
Authoritative voice phase enumeration.

Rules:
- This enum defines ONLY the control-plane phases.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class Phase(str, Enum):
    """
    What the voice subsystem is doing right now.

    The master switch (voice_enabled) lives beside the phase on the
    controller state; it is not a phase.

    LISTENING and SPEAKING are mutually exclusive; PROCESSING excludes both.
    """

    IDLE = "IDLE"
    LISTENING = "LISTENING"
    PROCESSING = "PROCESSING"
    SPEAKING = "SPEAKING"
