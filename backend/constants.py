"""
BEHAVIOR-AS-CONSTANTS
---------------------
Single source of truth for all behavioral invariants in the system.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Tuple

# =============================================================================
# Voice Session Timing
# =============================================================================

# Watchdog period. The heartbeat only ever re-asserts LISTENING.
HEARTBEAT_INTERVAL_MS: Final[int] = 2_000

# Pause between issuing a new utterance and handing it to the synthesizer,
# so the capture hardware is released first.
SPEECH_START_DELAY_MS: Final[int] = 50

# Pause between synthesis end and re-opening capture.
# Shorter values let the microphone hear the tail of our own speech.
SPEECH_RELEASE_DELAY_MS: Final[int] = 200

# A capture run marked active for longer than this is considered lost
# (adapter never reported end) and is restarted by the heartbeat.
CAPTURE_STALE_AFTER_MS: Final[int] = 15_000

# =============================================================================
# Capture Adapter Configuration
# =============================================================================

CAPTURE_CONTINUOUS: Final[bool] = False
CAPTURE_INTERIM_RESULTS: Final[bool] = False
CAPTURE_MAX_ALTERNATIVES: Final[int] = 1

# Error codes that end the voice feature for the session.
CAPTURE_PERMISSION_ERROR_CODES: Final[Tuple[str, ...]] = (
    "not-allowed",
    "service-not-allowed",
)
CAPTURE_START_FAILED_CODE: Final[str] = "start-failed"

# =============================================================================
# Synthesis Defaults
# =============================================================================

VOICE_LOCALE_DEFAULT: Final[str] = "es-CO"
VOICE_RATE_DEFAULT: Final[float] = 1.0
VOICE_PITCH_DEFAULT: Final[float] = 1.0
VOICE_HINT_DEFAULT: Final[str] = "Google"

# =============================================================================
# Fixed Prompts
# =============================================================================

GREETING_PROMPT: Final[str] = (
    "Hola, soy tu asistente. Dime tu nombre o a dónde quieres ir."
)
FALLBACK_PROMPT: Final[str] = "Lo siento, no te entendí. ¿Puedes repetirlo?"
DEFAULT_ACK_PROMPT: Final[str] = "Entendido."

LOCATION_FAILED_PROMPT: Final[str] = (
    "No pude obtener tu ubicación. Verifica el GPS."
)
DESTINATION_MISSING_PROMPT: Final[str] = "Primero necesito saber a dónde vas."
DRIVER_FOUND_PROMPT: Final[str] = "¡Conductor encontrado! {name} viene en camino."
TRIP_ARRIVED_PROMPT: Final[str] = (
    "Hemos llegado. ¿Cuántas estrellas para el conductor?"
)
TRIP_FINISHED_PROMPT: Final[str] = "Viaje terminado."
RATING_THANKS_PROMPT: Final[str] = "Gracias por calificar con {rating} estrellas."

# =============================================================================
# Intent Interpretation
# =============================================================================

INTENT_TIMEOUT_MS: Final[int] = 8_000
INTENT_MAX_SPEECH_WORDS: Final[int] = 15

SYSTEM_PROMPT_VERSION: Final[str] = "v1"
PROMPT_HASH_HEX_LEN: Final[int] = 8

# Note:
# - Actual prompt text lives in adapters/llm/prompts.py
# - This file only defines versioning + tracking invariants

# =============================================================================
# Ride Simulation
# =============================================================================

# Fallback pickup when no device location is known.
DEFAULT_BASE_LAT: Final[float] = 4.60
DEFAULT_BASE_LNG: Final[float] = -74.08

# Demo destinations land within +/- half of this span around pickup.
DESTINATION_JITTER_SPAN: Final[float] = 0.03
DESTINATION_HINT_MIN_CHARS: Final[int] = 4

TRIP_MATCH_DELAY_MS: Final[int] = 4_000

# Demo driver starts this far south-west of the pickup point.
DRIVER_START_OFFSET: Final[float] = 0.005

DEMO_DRIVER_NAME: Final[str] = "Juan Pérez"
DEMO_DRIVER_PHONE: Final[str] = "310 555 1234"
DEMO_DRIVER_PLATE: Final[str] = "XYZ-123"

DEFAULT_RATING: Final[int] = 5

# =============================================================================
# Position Simulation
# =============================================================================

SIM_TICK_MS: Final[int] = 1_000
SIM_SPEED_PER_TICK: Final[float] = 0.0005
SIM_ARRIVAL_EPSILON: Final[float] = 0.0005

# =============================================================================
# Pricing (COP)
# =============================================================================

EARTH_RADIUS_KM: Final[float] = 6_371.0
PRICE_BASE_FARE: Final[int] = 3_000
PRICE_PER_KM: Final[int] = 1_200
PRICE_ROUNDING: Final[int] = 100


# =============================================================================
# Convenience Bundles
# =============================================================================

@dataclass(frozen=True)
class VoiceTimings:
    """
    Immutable bundle of the controller's timer durations.

    Carried on the controller state so the reducer stays pure; tests
    construct shorter timings. It is NOT a second source of truth.
    """
    heartbeat_ms: int = HEARTBEAT_INTERVAL_MS
    speech_start_delay_ms: int = SPEECH_START_DELAY_MS
    speech_release_delay_ms: int = SPEECH_RELEASE_DELAY_MS
    intent_timeout_ms: int = INTENT_TIMEOUT_MS
    capture_stale_after_ms: int = CAPTURE_STALE_AFTER_MS


VOICE_TIMINGS_V1: Final[VoiceTimings] = VoiceTimings()


@dataclass(frozen=True)
class VoiceSettings:
    """Synthesis parameters sent with every utterance."""
    locale: str = VOICE_LOCALE_DEFAULT
    rate: float = VOICE_RATE_DEFAULT
    pitch: float = VOICE_PITCH_DEFAULT
    voice_hint: str = VOICE_HINT_DEFAULT


def ms_to_seconds(duration_ms: int) -> float:
    """
    Convert milliseconds to seconds for asyncio.sleep.

    Defensive behavior:
    - Non-positive input returns 0.0.
    """
    if duration_ms <= 0:
        return 0.0
    return duration_ms / 1000.0
