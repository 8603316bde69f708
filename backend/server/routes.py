"""
Route registration for the voice assistant API.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Wire gateway to WebSocket lifecycle
- Push queued control messages to the client as they are produced
- Pull dependencies from app.state
"""

from __future__ import annotations

import asyncio
import json

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from openai import AsyncOpenAI

from observability.logger import log_event
from session.gateway import GatewayResult, SessionGateway
from session.voice_session import VoiceSession


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        await ws.accept()

        # OpenAI client is pulled from app state
        openai_client: AsyncOpenAI | None = app.state.openai_client

        gateway = SessionGateway(
            config=app.state.config,
            openai_client=openai_client,
        )
        send_lock = asyncio.Lock()
        pump: asyncio.Task[None] | None = None

        try:
            result = await gateway.on_ws_connect()
            await _flush_gateway_result(ws, result, send_lock)

            assert gateway.session is not None
            pump = asyncio.create_task(_pump_control(ws, gateway.session, send_lock))

            while True:
                msg = await ws.receive()

                if msg.get("type") == "websocket.disconnect":
                    raise WebSocketDisconnect(code=msg.get("code", 1000))

                if msg.get("text") is not None:
                    result = await gateway.on_json_message(msg["text"])
                    await _flush_gateway_result(ws, result, send_lock)
                    if result.close:
                        break

                elif msg.get("bytes") is not None:
                    log_event({
                        "event_type": "BINARY_MESSAGE_IGNORED",
                        "session_id": gateway.session.session_id,
                        "payload_len": len(msg["bytes"]),
                    })

            await _stop_pump(pump)
            pump = None
            await gateway.on_ws_disconnect(reason="session_end")
            await ws.close()

        except WebSocketDisconnect:
            await _stop_pump(pump)
            await gateway.on_ws_disconnect(reason="client_disconnect")

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "WS_FATAL_ERROR",
                "session_id": gateway.session.session_id if gateway.session else None,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            await _stop_pump(pump)
            await gateway.on_ws_disconnect(reason="server_error")


async def _pump_control(ws: WebSocket, session: VoiceSession, send_lock: asyncio.Lock) -> None:
    """Deliver control messages produced outside inbound handling (timers, tasks)."""
    while True:
        messages = await session.wait_control()
        async with send_lock:
            for msg in messages:
                await ws.send_text(json.dumps(msg))


async def _stop_pump(pump: asyncio.Task[None] | None) -> None:
    if pump is None:
        return
    pump.cancel()
    await asyncio.gather(pump, return_exceptions=True)


async def _flush_gateway_result(
    ws: WebSocket,
    result: GatewayResult,
    send_lock: asyncio.Lock,
) -> None:
    async with send_lock:
        for msg in result.outbound_json:
            await ws.send_text(json.dumps(msg))
