"""Synthesis adapter backed by the browser's speechSynthesis."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from adapters.synthesis.base import SynthesisAdapter
from constants import VoiceSettings


class ClientSynthesisAdapter(SynthesisAdapter):
    """
    Speaks through the connected browser.

    The browser cancels anything queued before speaking (single slot) and
    answers with SPEECH_END or SPEECH_ERROR for the run_id.
    """

    def __init__(
        self,
        *,
        send_control: Callable[[dict[str, Any]], None],
        voice: VoiceSettings,
    ) -> None:
        self._send_control = send_control
        self._voice = voice
        self._active_run: int | None = None

    @property
    def active_run(self) -> int | None:
        return self._active_run

    async def speak(self, *, run_id: int, text: str) -> None:
        if not text.strip():
            raise ValueError("empty utterance")

        self._active_run = run_id
        self._send_control({
            "type": "SPEAK",
            "run_id": run_id,
            "text": text,
            "lang": self._voice.locale,
            "rate": self._voice.rate,
            "pitch": self._voice.pitch,
            "voice_hint": self._voice.voice_hint,
        })

    async def cancel(self, run_id: int) -> None:
        if self._active_run != run_id:
            return

        self._active_run = None
        self._send_control({"type": "SPEECH_CANCEL", "run_id": run_id})

    def release(self, run_id: int) -> None:
        """Browser reported the utterance finished; nothing left to cancel."""
        if self._active_run == run_id:
            self._active_run = None
