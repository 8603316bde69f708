"""
What the runtime may touch while executing commands.

The protocols below are the capabilities the runtime relies on; the
concrete adapters and RideStore satisfy them structurally. The context
reads through to the session on every access, so adapters attached after
the runtime is built are still found.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from dispatch.mutations import Mutation
from dispatch.types import DispatchContext
from session.connection_status import ConnectionStatus

if TYPE_CHECKING:
    from session.voice_session import VoiceSession


# ---------------------------------------------------------------------
# Adapter Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class CaptureAdapterProtocol(Protocol):
    async def start(self, run_id: int) -> None: ...
    async def stop(self, run_id: int) -> None: ...


@runtime_checkable
class SynthesisAdapterProtocol(Protocol):
    async def speak(self, *, run_id: int, text: str) -> None: ...
    async def cancel(self, run_id: int) -> None: ...


@runtime_checkable
class IntentAdapterProtocol(Protocol):
    async def interpret(
        self,
        *,
        run_id: int,
        transcript: str,
        context: DispatchContext,
    ) -> None: ...

    async def cancel(self, run_id: int) -> None: ...


# ---------------------------------------------------------------------
# Application State Protocol
# ---------------------------------------------------------------------

@runtime_checkable
class RideStoreProtocol(Protocol):
    def snapshot(self) -> DispatchContext: ...
    async def apply(self, mutations: tuple[Mutation, ...]) -> None: ...


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

class RuntimeExecutionContext:
    """
    Live view of one VoiceSession for the runtime.

    The ride store is only reached through snapshot() and apply(); client
    messages go through the session's control queue.
    """

    def __init__(self, session: VoiceSession) -> None:
        self.session = session

    # ----------------------------
    # Session metadata
    # ----------------------------

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def connection_status(self) -> ConnectionStatus:
        return self.session.connection_status

    # ----------------------------
    # Adapters
    # ----------------------------

    @property
    def capture_adapter(self) -> CaptureAdapterProtocol | None:
        return self.session.capture_adapter

    @property
    def synthesis_adapter(self) -> SynthesisAdapterProtocol | None:
        return self.session.synthesis_adapter

    @property
    def intent_adapter(self) -> IntentAdapterProtocol | None:
        return self.session.intent_adapter

    # ----------------------------
    # Application state
    # ----------------------------

    @property
    def ride_store(self) -> RideStoreProtocol | None:
        store: Any = self.session.ride_store
        return store

    # ----------------------------
    # Client transport
    # ----------------------------

    def send_to_client(self, msg: dict[str, Any]) -> None:
        self.session.enqueue_control(msg)
