"""Capture adapter backed by the browser's SpeechRecognition."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from adapters.capture.base import CaptureAdapter, CaptureStartError
from constants import (
    CAPTURE_CONTINUOUS,
    CAPTURE_INTERIM_RESULTS,
    CAPTURE_MAX_ALTERNATIVES,
    VOICE_LOCALE_DEFAULT,
)
from observability.logger import log_event


class ClientCaptureAdapter(CaptureAdapter):
    """
    Drives recognition in the connected browser.

    start() and stop() only enqueue control messages; the browser reports
    back CAPTURE_STARTED / CAPTURE_RESULT / CAPTURE_ENDED / CAPTURE_ERROR,
    which the gateway turns into capture events for the same run_id.
    """

    def __init__(
        self,
        *,
        send_control: Callable[[dict[str, Any]], None],
        is_connected: Callable[[], bool],
        session_id: str,
        locale: str = VOICE_LOCALE_DEFAULT,
    ) -> None:
        self._send_control = send_control
        self._is_connected = is_connected
        self._session_id = session_id
        self._locale = locale
        self._active_run: int | None = None

    @property
    def active_run(self) -> int | None:
        return self._active_run

    async def start(self, run_id: int) -> None:
        if not self._is_connected():
            raise CaptureStartError("client not connected")

        self._active_run = run_id
        self._send_control({
            "type": "CAPTURE_START",
            "run_id": run_id,
            "lang": self._locale,
            "continuous": CAPTURE_CONTINUOUS,
            "interim_results": CAPTURE_INTERIM_RESULTS,
            "max_alternatives": CAPTURE_MAX_ALTERNATIVES,
        })

    async def stop(self, run_id: int) -> None:
        if self._active_run != run_id:
            return

        self._active_run = None
        if not self._is_connected():
            log_event({
                "event_type": "capture_stop_skipped_disconnected",
                "session_id": self._session_id,
                "capture_run_id": run_id,
            })
            return

        self._send_control({"type": "CAPTURE_STOP", "run_id": run_id})

    def release(self, run_id: int) -> None:
        """Browser reported recognition ended; nothing left to stop."""
        if self._active_run == run_id:
            self._active_run = None
