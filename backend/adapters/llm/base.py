"""
Intent adapter contract (v1).

Purpose:
- Define the interface for one-shot intent interpretation.
- Enforce run_id versioning at the boundary.
- Keep all orchestration, timing, and cancellation semantics
  OUT of the adapter.

Rules:
- This file contains NO logic.
- No retries.
- No streaming.
- No side effects beyond emitting events.
- No knowledge of synthesis, UI, or state machine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from dispatch.types import DispatchContext


class IntentAdapter(ABC):
    """
    Abstract base class for intent interpretation adapters.

    The adapter is a *dumb pipe*:
    transcript + context -> vendor -> one intent event.

    Orchestrator responsibilities (NOT here):
    - When to start
    - When to cancel
    - Timeouts
    - What to do with the intent
    """

    @abstractmethod
    async def interpret(
        self,
        *,
        run_id: int,
        transcript: str,
        context: DispatchContext,
    ) -> None:
        """
        Start one interpretation of the transcript.

        Contract:
        - Must emit at most ONE terminal event:
            - IntentResolved(run_id, intent, context)
            OR
            - IntentFailed(run_id, reason)
        - All emitted events MUST carry the provided run_id.
        - The emitted IntentResolved MUST carry the given context unchanged.
        - Must NOT retry internally.
        - Must return without waiting for the vendor.
        """
        raise NotImplementedError

    @abstractmethod
    async def cancel(self, run_id: int) -> None:
        """
        Request cancellation of an in-flight interpretation.

        Contract:
        - Best-effort, idempotent.
        - Must NOT raise if run_id is unknown or already completed.
        - Must result in no further events for that run_id.
        """
        raise NotImplementedError
