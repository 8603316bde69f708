"""
Per-connection session record.

Groups what one browser tab needs: the runtime, the two browser-backed
speech adapters, the intent adapter, the ride store and its position
simulator, plus the outbound control queue drained by the socket pump.
SessionGateway creates and mutates it; it decides nothing.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from orchestrator.runtime import Runtime
from session.connection_status import ConnectionStatus


# ---------------------------------------------------------------------
# VoiceSession
# ---------------------------------------------------------------------


@dataclass
class VoiceSession:
    """Mutable holder for one connection's collaborators."""

    # ------------------------------------------------------------------
    # Identity / lifecycle
    # ------------------------------------------------------------------

    session_id: str
    created_at: float = field(default_factory=time.time)

    # ------------------------------------------------------------------
    # Connection / gateway-controlled state
    # ------------------------------------------------------------------

    connection_status: ConnectionStatus = ConnectionStatus.DOWN

    # ------------------------------------------------------------------
    # Runtime (executes commands + owns authoritative controller state)
    # ------------------------------------------------------------------

    runtime: Runtime | None = None

    # ------------------------------------------------------------------
    # Service adapters (concrete, side-effectful)
    # ------------------------------------------------------------------

    capture_adapter: Any = None
    synthesis_adapter: Any = None
    intent_adapter: Any = None

    # ------------------------------------------------------------------
    # Application state
    # ------------------------------------------------------------------

    ride_store: Any = None  # Type: RideStore in practice
    simulator: Any = None  # Type: PositionSimulator in practice

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def __post_init__(self) -> None:
        self._control_out: deque[dict[str, Any]] = deque()
        self._control_ready = asyncio.Event()

    # ------------------------------------------------------------------
    # Wiring helpers (called by SessionGateway)
    # ------------------------------------------------------------------

    def attach_capture_adapter(self, adapter: Any) -> None:
        self.capture_adapter = adapter

    def attach_synthesis_adapter(self, adapter: Any) -> None:
        self.synthesis_adapter = adapter

    def attach_intent_adapter(self, adapter: Any) -> None:
        """
        Attach a concrete intent adapter.

        Adapter must implement IntentAdapterProtocol.
        """
        self.intent_adapter = adapter

    def attach_runtime(self, runtime: Runtime) -> None:
        """
        Attach the runtime executor.

        Must be called after adapters and the ride store are attached.
        """
        self.runtime = runtime

    @property
    def is_connected(self) -> bool:
        return self.connection_status is ConnectionStatus.UP

    # ------------------------------------------------------------------
    # Observability helpers (read-only)
    # ------------------------------------------------------------------

    def log_context(self) -> dict[str, Any]:
        """Fields merged into every log line emitted for this session."""
        return {
            "session_id": self.session_id,
            "connection_status": self.connection_status.value,
        }

    # ------------------------------------------------------------------
    # Outbound control queue
    # ------------------------------------------------------------------

    def enqueue_control(self, msg: dict[str, Any]) -> None:
        """
        Enqueue a control message for delivery to the client.

        Messages are buffered in FIFO order and retrieved via
        drain_control() or wait_control().
        """
        self._control_out.append(msg)
        self._control_ready.set()

    def drain_control(self) -> tuple[dict[str, Any], ...]:
        """Take every queued control message, oldest first."""
        self._control_ready.clear()
        if not self._control_out:
            return ()
        out = tuple(self._control_out)
        self._control_out.clear()
        return out

    async def wait_control(self) -> tuple[dict[str, Any], ...]:
        """Wait until at least one control message is pending, then drain."""
        while not self._control_out:
            self._control_ready.clear()
            await self._control_ready.wait()
        return self.drain_control()
