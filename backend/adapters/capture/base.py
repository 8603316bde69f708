"""
Capture adapter contract.

This module defines the *interface only*: no recognition, retries, timers,
or orchestration decisions live here.

Key invariants:
- Run IDs are owned by the orchestrator (monotonic per service). Adapters never
  generate or mutate run IDs.
- One capture run is one utterance: no continuous mode, no interim results,
  one alternative.
- The adapter's results arrive as capture events (started / result / ended /
  error) tagged with the run_id; it never calls the reducer directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class CaptureStartError(RuntimeError):
    """Capture could not be started. Transient; the watchdog retries."""


class CapturePermissionDenied(CaptureStartError):
    """Microphone access was refused. Terminal until the user re-enables voice."""


class CaptureAdapter(ABC):
    """
    Abstract interface for a single-utterance capture adapter.

    Implementations are responsible for:
    - Opening the microphone for a specific run_id via start()
    - Producing exactly one terminal outcome per run (result, end or error)
    - Supporting stop()

    Non-responsibilities:
    - No state machine logic (IDLE/LISTENING/etc.)
    - No restart policy (the heartbeat owns recovery)
    - No timers owned by the reducer
    """

    @abstractmethod
    async def start(self, run_id: int) -> None:
        """
        Open capture for the given run_id.

        Raises:
            CapturePermissionDenied: access refused up front.
            CaptureStartError: any other start failure.
        """
        raise NotImplementedError

    @abstractmethod
    async def stop(self, run_id: int) -> None:
        """
        Request the capture run to stop.

        Contract:
        - Idempotent: repeated calls for the same run_id are safe.
        - If run_id is unknown or already complete, stop() is a no-op.
        """
        raise NotImplementedError
