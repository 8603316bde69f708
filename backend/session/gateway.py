"""
Session gateway.

Responsibilities:
- Owns VoiceSession lifecycle
- Tracks connection_status independently of controller state
- Wires runtime, browser-backed adapters, intent adapter, ride store and
  position simulator for one connection
- Routes inbound JSON messages -> controller events or ride store operations
- Publishes ride state changes to the client (APP_STATE)

NOT responsible for:
- Executing commands
- Any state machine logic
- Socket IO (see server.routes)
"""

from __future__ import annotations

import json
import random
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from adapters.capture.client import ClientCaptureAdapter
from adapters.llm.completion import OpenAIIntentAdapter
from adapters.synthesis.client import ClientSynthesisAdapter
from constants import (
    DEFAULT_RATING,
    SIM_TICK_MS,
    TRIP_MATCH_DELAY_MS,
    VOICE_TIMINGS_V1,
    VoiceTimings,
)
from observability.logger import log_event
from orchestrator.enums.service import Service
from orchestrator.events import (
    CaptureEnded,
    CaptureError,
    CaptureResult,
    CaptureStarted,
    Event,
    EventType,
    ListenRequest,
    SessionEnded,
    SessionStarted,
    SpeakRequest,
    SpeechDone,
    SpeechError,
    VoiceDisable,
    VoiceEnable,
)
from orchestrator.runtime import Runtime, voice_state_payload
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import ControllerState
from ride.geo import Geocoder
from ride.models import RideState, UserType, View
from ride.store import RideStore, ride_state_payload
from session.connection_status import ConnectionStatus
from session.voice_session import VoiceSession
from simulation.engine import PositionSimulator

if TYPE_CHECKING:
    from config import AppConfig

# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_session_id() -> str:
    return f"sess_{uuid4().hex[:12]}"


class InvalidMessage(ValueError):
    """Inbound message is missing fields or carries wrong types."""


def _require_int(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidMessage(f"'{key}' must be an integer")
    return value


def _require_float(data: dict[str, Any], key: str) -> float:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidMessage(f"'{key}' must be a number")
    return float(value)


def _require_str(data: dict[str, Any], key: str, default: str | None = None) -> str:
    value = data.get(key, default)
    if not isinstance(value, str):
        raise InvalidMessage(f"'{key}' must be a string")
    return value


# ------------------------------------------------------------------
# Gateway result
# ------------------------------------------------------------------

@dataclass(frozen=True)
class GatewayResult:
    """
    Return value for gateway boundary methods.

    outbound_json:
        JSON messages to send to client now

    close:
        The client asked to end the session
    """
    outbound_json: tuple[dict[str, Any], ...] = ()
    close: bool = False


# ------------------------------------------------------------------
# SessionGateway
# ------------------------------------------------------------------

class SessionGateway:
    """One gateway == one voice session."""

    def __init__(
        self,
        *,
        config: AppConfig,
        openai_client: Any | None = None,  # Type: openai.AsyncOpenAI
        geocoder: Geocoder | None = None,
        rng: random.Random | None = None,
        timings: VoiceTimings = VOICE_TIMINGS_V1,
        match_delay_ms: int = TRIP_MATCH_DELAY_MS,
        sim_tick_ms: int = SIM_TICK_MS,
    ) -> None:
        self._config = config
        self.session: VoiceSession | None = None

        # Injected dependencies, not globals
        self._openai_client = openai_client
        self._geocoder = geocoder
        self._rng = rng
        self._timings = timings
        self._match_delay_ms = match_delay_ms
        self._sim_tick_ms = sim_tick_ms

    async def on_ws_connect(self) -> GatewayResult:
        """Called when a WebSocket connection is established."""
        session_id = _new_session_id()

        session = VoiceSession(session_id=session_id)
        session.connection_status = ConnectionStatus.UP
        self.session = session

        runtime = Runtime(
            initial_state=ControllerState(timings=self._timings),
            context=RuntimeExecutionContext(session=session),
        )

        # Application state
        store = RideStore(
            session_id=session_id,
            geocoder=self._geocoder,
            announce=self._announce,
            rng=self._rng,
            match_delay_ms=self._match_delay_ms,
        )
        simulator = PositionSimulator(
            store=store,
            session_id=session_id,
            tick_ms=self._sim_tick_ms,
        )
        store.add_listener(self._on_ride_state)
        store.add_listener(simulator.sync)
        session.ride_store = store
        session.simulator = simulator

        # Browser-backed speech I/O
        session.attach_capture_adapter(
            ClientCaptureAdapter(
                send_control=session.enqueue_control,
                is_connected=lambda: session.is_connected,
                session_id=session_id,
                locale=self._config.voice_locale,
            )
        )
        session.attach_synthesis_adapter(
            ClientSynthesisAdapter(
                send_control=session.enqueue_control,
                voice=self._config.voice_settings,
            )
        )

        # Attach intent adapter ONLY if a client is provided
        if self._openai_client is not None:
            session.attach_intent_adapter(
                OpenAIIntentAdapter(
                    emit_event=runtime.handle_event,
                    client=self._openai_client,
                    model=self._config.llm_model,
                    session_id=session_id,
                )
            )

        # Attach runtime (must be AFTER adapters)
        session.attach_runtime(runtime)

        await self._dispatch(
            SessionStarted(
                event_type=EventType.SESSION_STARTED,
                ts_ms=_now_ms(),
                session_id=session_id,
            )
        )

        init_msg: dict[str, Any] = {
            "type": "SESSION_INIT",
            "session_id": session_id,
            "voice": {
                "lang": self._config.voice_locale,
                "rate": self._config.voice_rate,
                "pitch": self._config.voice_pitch,
                "voice_hint": self._config.voice_hint,
            },
            "voice_state": voice_state_payload(runtime.state),
            "app_state": ride_state_payload(store.state),
        }

        return GatewayResult(outbound_json=(init_msg,) + self._drain_control_out())

    async def on_ws_disconnect(self, reason: str | None = None) -> GatewayResult:
        """Called when the WebSocket disconnects. Cancels every task."""
        if self.session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "WS_DISCONNECT_WITHOUT_SESSION",
                "reason": reason,
            })
            return GatewayResult()

        session = self.session
        session.connection_status = ConnectionStatus.DOWN

        runtime = session.runtime
        if runtime is not None:
            await runtime.handle_event(
                VoiceDisable(event_type=EventType.VOICE_DISABLE, ts_ms=_now_ms())
            )
            await runtime.shutdown()

        if session.intent_adapter is not None:
            await session.intent_adapter.shutdown()
        if session.simulator is not None:
            await session.simulator.shutdown()
        if session.ride_store is not None:
            await session.ride_store.shutdown()

        await self._dispatch(
            SessionEnded(
                event_type=EventType.SESSION_ENDED,
                ts_ms=_now_ms(),
                session_id=session.session_id,
            )
        )
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "WS_DISCONNECTED",
            "session_id": session.session_id,
            "reason": reason,
        })

        # Nothing can be delivered any more
        session.drain_control()
        return GatewayResult()

    async def on_json_message(self, payload: str) -> GatewayResult:
        """Route inbound JSON to controller events or ride store operations."""
        if self.session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "MESSAGE_WITHOUT_SESSION",
                "payload_preview": payload[:100],
            })
            return GatewayResult()

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "JSON_DECODE_ERROR",
                "session_id": self.session.session_id,
                "error": str(e),
                "payload_preview": payload[:100],
            })
            return GatewayResult()

        if not isinstance(data, dict):
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "JSON_NOT_OBJECT",
                "session_id": self.session.session_id,
                "payload_preview": payload[:100],
            })
            return GatewayResult()

        msg_type = data.get("type")
        try:
            handled = await self._route_voice(msg_type, data)
            if not handled:
                handled = await self._route_app(msg_type, data)
        except InvalidMessage as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "INVALID_MESSAGE",
                "msg_type": msg_type,
                "session_id": self.session.session_id,
                "error": str(e),
            })
            return GatewayResult()

        if not handled:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "UNKNOWN_MESSAGE_TYPE",
                "msg_type": msg_type,
                "session_id": self.session.session_id,
            })
            return GatewayResult()

        return GatewayResult(
            outbound_json=self._drain_control_out(),
            close=msg_type == "SESSION_END",
        )

    # ------------------------------------------------------------------
    # Inbound routing
    # ------------------------------------------------------------------

    async def _route_voice(self, msg_type: Any, data: dict[str, Any]) -> bool:
        """Voice switch and browser speech callbacks -> controller events."""
        assert self.session is not None
        runtime = self.session.runtime
        assert runtime is not None, "Runtime must exist before dispatch"
        ts_ms = _now_ms()

        event: Event | None = None

        if msg_type == "VOICE_ENABLE":
            event = VoiceEnable(event_type=EventType.VOICE_ENABLE, ts_ms=ts_ms)
        elif msg_type == "VOICE_DISABLE":
            event = VoiceDisable(event_type=EventType.VOICE_DISABLE, ts_ms=ts_ms)
        elif msg_type == "VOICE_TOGGLE":
            if runtime.state.voice_enabled:
                event = VoiceDisable(event_type=EventType.VOICE_DISABLE, ts_ms=ts_ms)
            else:
                event = VoiceEnable(event_type=EventType.VOICE_ENABLE, ts_ms=ts_ms)
        elif msg_type == "LISTEN":
            event = ListenRequest(event_type=EventType.LISTEN_REQUEST, ts_ms=ts_ms)
        elif msg_type == "CAPTURE_STARTED":
            event = CaptureStarted(
                event_type=EventType.CAPTURE_STARTED,
                ts_ms=ts_ms,
                service=Service.CAPTURE,
                run_id=_require_int(data, "run_id"),
            )
        elif msg_type == "CAPTURE_RESULT":
            event = CaptureResult(
                event_type=EventType.CAPTURE_RESULT,
                ts_ms=ts_ms,
                service=Service.CAPTURE,
                run_id=_require_int(data, "run_id"),
                transcript=_require_str(data, "transcript"),
            )
        elif msg_type == "CAPTURE_ENDED":
            run_id = _require_int(data, "run_id")
            self.session.capture_adapter.release(run_id)
            event = CaptureEnded(
                event_type=EventType.CAPTURE_ENDED,
                ts_ms=ts_ms,
                service=Service.CAPTURE,
                run_id=run_id,
            )
        elif msg_type == "CAPTURE_ERROR":
            run_id = _require_int(data, "run_id")
            code = _require_str(data, "code", "unknown")
            self.session.capture_adapter.release(run_id)
            event = CaptureError(
                event_type=EventType.CAPTURE_ERROR,
                ts_ms=ts_ms,
                service=Service.CAPTURE,
                run_id=run_id,
                code=code,
            )
        elif msg_type == "SPEECH_END":
            run_id = _require_int(data, "run_id")
            self.session.synthesis_adapter.release(run_id)
            event = SpeechDone(
                event_type=EventType.SPEECH_DONE,
                ts_ms=ts_ms,
                service=Service.SYNTHESIS,
                run_id=run_id,
            )
        elif msg_type == "SPEECH_ERROR":
            run_id = _require_int(data, "run_id")
            reason = _require_str(data, "code", "unknown")
            self.session.synthesis_adapter.release(run_id)
            event = SpeechError(
                event_type=EventType.SPEECH_ERROR,
                ts_ms=ts_ms,
                service=Service.SYNTHESIS,
                run_id=run_id,
                reason=reason,
            )
        elif msg_type == "SESSION_END":
            event = VoiceDisable(event_type=EventType.VOICE_DISABLE, ts_ms=ts_ms)
        else:
            return False

        await self._dispatch(event)
        return True

    async def _route_app(self, msg_type: Any, data: dict[str, Any]) -> bool:
        """Manual UI actions -> ride store operations."""
        assert self.session is not None
        store: RideStore = self.session.ride_store

        try:
            if msg_type == "LOCATION":
                await store.set_user_location(
                    _require_float(data, "lat"),
                    _require_float(data, "lng"),
                    float(data.get("accuracy", 0.0)),
                    ts_ms=_now_ms(),
                )
            elif msg_type == "USE_CURRENT_LOCATION":
                await store.use_current_location()
            elif msg_type == "SET_VIEW":
                await store.set_view(View(_require_str(data, "view")))
            elif msg_type == "SET_ROLE":
                role = data.get("role")
                await store.set_role(UserType(role) if role is not None else None)
            elif msg_type == "SET_FIELD":
                await store.set_profile_field(
                    UserType(_require_str(data, "role")),
                    _require_str(data, "field"),
                    _require_str(data, "value"),
                )
            elif msg_type == "SET_DESTINATION":
                await store.resolve_destination(_require_str(data, "query", ""))
            elif msg_type == "REQUEST_TRIP":
                await store.request_trip()
            elif msg_type == "COMPLETE_TRIP":
                await store.complete_trip()
            elif msg_type == "SUBMIT_RATING":
                rating = data.get("rating", DEFAULT_RATING)
                if isinstance(rating, bool) or not isinstance(rating, int):
                    raise InvalidMessage("'rating' must be an integer")
                await store.submit_rating(rating)
            elif msg_type == "GO_BACK":
                await store.go_back()
            elif msg_type == "TOGGLE_DRIVER_STATUS":
                await store.toggle_driver_status()
            else:
                return False
        except InvalidMessage:
            raise
        except (TypeError, ValueError) as e:
            raise InvalidMessage(str(e)) from e

        return True

    # ------------------------------------------------------------------
    # Store callbacks
    # ------------------------------------------------------------------

    async def _on_ride_state(self, state: RideState) -> None:
        if self.session is None:
            return
        self.session.enqueue_control({
            "type": "APP_STATE",
            "state": ride_state_payload(state),
            "ts_ms": _now_ms(),
        })

    async def _announce(self, text: str) -> None:
        await self._dispatch(
            SpeakRequest(
                event_type=EventType.SPEAK_REQUEST,
                ts_ms=_now_ms(),
                text=text,
            )
        )

    # ------------------------------------------------------------------
    # Controller dispatch
    # ------------------------------------------------------------------

    async def _dispatch(self, event: Event) -> None:
        """Forward event into runtime. Runtime owns all orchestration."""
        if self.session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "DISPATCH_WITHOUT_SESSION",
                "dropped_event": event.event_type.value,
            })
            return

        runtime = self.session.runtime
        assert runtime is not None, "Runtime must exist before dispatch"
        await runtime.handle_event(event)

    def _drain_control_out(self) -> tuple[dict[str, Any], ...]:
        if self.session is None:
            return ()
        return self.session.drain_control()
