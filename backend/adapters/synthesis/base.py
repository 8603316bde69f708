"""
Synthesis adapter contract.

This module defines the *interface only*: no text shaping, retries, timers,
or orchestration decisions live here.

Key invariants:
- Run IDs are owned by the orchestrator. Adapters never generate or mutate
  run IDs.
- Starting an utterance cancels any pending one first (single slot).
- The adapter reports completion as a SpeechDone / SpeechError event for the
  same run_id; it does not call the reducer or make state transitions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class SynthesisAdapter(ABC):
    """
    Abstract interface for a single-slot speech synthesis adapter.

    Non-responsibilities:
    - No state machine logic
    - No start/release delays (reducer-owned timers)
    - No direct interaction with capture
    """

    @abstractmethod
    async def speak(self, *, run_id: int, text: str) -> None:
        """
        Speak one prompt.

        Contract:
        - Must result in exactly ONE terminal event:
            - SpeechDone(run_id)
            OR
            - SpeechError(run_id, reason)
        - Must cancel any pending or playing utterance before starting.
        - Must NOT block the event loop until playback ends.
        """
        raise NotImplementedError

    @abstractmethod
    async def cancel(self, run_id: int) -> None:
        """
        Cancel a pending or playing utterance.

        Contract:
        - Idempotent; no-op if run_id is unknown or already complete.
        - The adapter MAY emit SpeechError(run_id, reason="cancelled") OR
          silently stop producing events.
        """
        raise NotImplementedError
