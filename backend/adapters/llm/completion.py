"""Intent adapter over an OpenAI-compatible chat completions API."""
from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

from adapters.llm.base import IntentAdapter
from adapters.llm.intent import IntentContractError, parse_intent
from adapters.llm.prompts import get_system_prompt, prompt_hash
from constants import SYSTEM_PROMPT_VERSION
from context.serialization import serialize_for_intent
from dispatch.types import DispatchContext
from observability.logger import log_event
from observability.metrics import timed
from orchestrator.enums.service import Service
from orchestrator.events import (
    Event,
    EventType,
    IntentFailed,
    IntentResolved,
)


class OpenAIIntentAdapter(IntentAdapter):
    """
    Concrete intent adapter.

    Design notes:
    - One adapter instance may serve multiple sequential runs.
    - Each run is tracked independently via run_id → asyncio.Task.
    - Adapter is responsible ONLY for:
        - Talking to the LLM provider (JSON mode, one call)
        - Validating the response contract
        - Emitting INTENT_* events
    - Adapter does NOT:
        - Retry
        - Manage timers
        - Decide orchestration outcomes
    """

    def __init__(
        self,
        *,
        emit_event: Callable[[Event], Awaitable[None]],
        client: Any,
        model: str,
        session_id: str,
        system_prompt_version: str = SYSTEM_PROMPT_VERSION,
    ) -> None:
        """
        Args:
            emit_event:
                Callback used to emit events into the runtime/event loop.
            client:
                Vendor client (AsyncOpenAI, pointed at OpenAI or Groq).
            model:
                Model identifier string.
            session_id:
                Session identifier for logging/correlation.
        """
        self._emit_event = emit_event
        self._client = client
        self._model = model
        self._session_id = session_id
        self._system_prompt_version = system_prompt_version
        self._system_prompt = get_system_prompt(system_prompt_version)
        self._prompt_hash = prompt_hash(self._system_prompt)

        # One task per active run_id
        self._active_tasks: dict[int, asyncio.Task[None]] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def active_runs(self) -> frozenset[int]:
        return frozenset(self._active_tasks)

    async def interpret(
        self,
        *,
        run_id: int,
        transcript: str,
        context: DispatchContext,
    ) -> None:
        if run_id in self._active_tasks:
            return

        task = asyncio.create_task(self._run(run_id, transcript, context))
        self._active_tasks[run_id] = task

        def _cleanup(_: asyncio.Task[None]) -> None:
            self._active_tasks.pop(run_id, None)

        task.add_done_callback(_cleanup)

    async def cancel(self, run_id: int) -> None:
        """
        Best-effort cancellation.

        Semantics:
        - Idempotent.
        - Silent if run_id is stale or already completed.
        - A cancelled run emits no terminal event.
        """
        task = self._active_tasks.get(run_id)
        if task is None:
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def shutdown(self) -> None:
        for run_id in list(self._active_tasks):
            await self.cancel(run_id)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _run(
        self,
        run_id: int,
        transcript: str,
        context: DispatchContext,
    ) -> None:
        """
        Internal request task.

        Guarantees:
        - Emits events only for its own run_id
        - Emits at most one terminal event
        """
        messages = serialize_for_intent(
            system_prompt=self._system_prompt,
            context=context,
            transcript=transcript,
        )
        log_event({
            "ts_ms": self._now_ms(),
            "event_type": "intent_request",
            "session_id": self._session_id,
            "intent_run_id": run_id,
            "model": self._model,
            "system_prompt_version": self._system_prompt_version,
            "prompt_hash": self._prompt_hash,
        })

        try:
            with timed(
                "intent_latency",
                session_id=self._session_id,
                details={"intent_run_id": run_id, "model": self._model},
            ):
                response = await self._client.chat.completions.create(
                    model=self._model,
                    messages=messages,
                    response_format={"type": "json_object"},
                )
            intent = parse_intent(self._extract_content(response))

        except asyncio.CancelledError:
            # Cancelled by the controller (timeout or voice disabled)
            raise

        except IntentContractError as exc:
            await self._fail(run_id, f"contract: {exc}")
            return

        except Exception as exc:  # pylint: disable=broad-exception-caught
            await self._fail(run_id, f"{type(exc).__name__}: {exc}")
            return

        log_event({
            "ts_ms": self._now_ms(),
            "event_type": "intent_parsed",
            "session_id": self._session_id,
            "intent_run_id": run_id,
            "action": intent.action.value,
        })
        await self._emit_event(
            IntentResolved(
                event_type=EventType.INTENT_RESOLVED,
                ts_ms=self._now_ms(),
                service=Service.INTENT,
                run_id=run_id,
                intent=intent,
                context=context,
            )
        )

    async def _fail(self, run_id: int, reason: str) -> None:
        await self._emit_event(
            IntentFailed(
                event_type=EventType.INTENT_FAILED,
                ts_ms=self._now_ms(),
                service=Service.INTENT,
                run_id=run_id,
                reason=reason,
            )
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_content(response: Any) -> str | None:
        """
        Extract message content from vendor response (OpenAI format).
        """
        try:
            return response.choices[0].message.content
        except (AttributeError, IndexError):
            return None

    @staticmethod
    def _now_ms() -> int:
        """
        Wall-clock timestamp in milliseconds.

        Orchestrator is responsible for monotonic timing;
        adapters only provide coarse timestamps for ordering/logging.
        """
        return int(time.time() * 1000)
