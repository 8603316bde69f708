"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No orchestration logic
- No behavioral constants (see constants.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    VOICE_HINT_DEFAULT,
    VOICE_LOCALE_DEFAULT,
    VOICE_PITCH_DEFAULT,
    VOICE_RATE_DEFAULT,
    VoiceSettings,
)


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the session gateway.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    log_level: str

    # ------------------------------------------------------------------
    # Intent service (OpenAI-compatible chat completions)
    # ------------------------------------------------------------------

    llm_provider: str
    llm_model: str
    openai_api_key: str | None
    groq_api_key: str | None

    # ------------------------------------------------------------------
    # Browser speech
    # ------------------------------------------------------------------

    voice_locale: str = VOICE_LOCALE_DEFAULT
    voice_rate: float = VOICE_RATE_DEFAULT
    voice_pitch: float = VOICE_PITCH_DEFAULT
    voice_hint: str = VOICE_HINT_DEFAULT

    @property
    def voice_settings(self) -> VoiceSettings:
        return VoiceSettings(
            locale=self.voice_locale,
            rate=self.voice_rate,
            pitch=self.voice_pitch,
            voice_hint=self.voice_hint,
        )

    @property
    def llm_api_key(self) -> str | None:
        """API key for the selected provider."""
        if self.llm_provider.lower() == "groq":
            return self.groq_api_key
        return self.openai_api_key

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable is malformed.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            llm_provider=os.environ.get("LLM_PROVIDER", "openai"),
            llm_model=os.environ.get("LLM_MODEL", "gpt-4o-mini"),
            openai_api_key=os.environ.get("OPENAI_API_KEY"),
            groq_api_key=os.environ.get("GROQ_API_KEY"),

            voice_locale=os.environ.get("VOICE_LOCALE", VOICE_LOCALE_DEFAULT),
            voice_rate=float(os.environ.get("VOICE_RATE", VOICE_RATE_DEFAULT)),
            voice_pitch=float(os.environ.get("VOICE_PITCH", VOICE_PITCH_DEFAULT)),
            voice_hint=os.environ.get("VOICE_HINT", VOICE_HINT_DEFAULT),
        )
