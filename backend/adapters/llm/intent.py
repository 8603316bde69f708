"""
Intent response contract.

The service must answer with one JSON object:
    {"speech": str, "action": <ActionKind wire string>, "value": str}

Anything else is a contract failure. No repair, no retry.
"""

from __future__ import annotations

import json
from typing import Any

from constants import DEFAULT_ACK_PROMPT
from dispatch.types import ActionKind, Intent


class IntentContractError(ValueError):
    """The intent service response violated the output contract."""


def _optional_str(data: dict[str, Any], key: str) -> str:
    raw = data.get(key)
    if raw is None:
        return ""
    if not isinstance(raw, str):
        raise IntentContractError(f"'{key}' must be a string, got {type(raw).__name__}")
    return raw


def parse_intent(raw_text: str | None) -> Intent:
    """
    Validate and convert a raw service response into an Intent.

    - Empty or missing text: contract failure
    - Invalid JSON or a non-object: contract failure
    - Missing or unknown action: contract failure
    - Missing value: ""
    - Missing or blank speech: the default acknowledgement
    """
    if raw_text is None or not raw_text.strip():
        raise IntentContractError("empty response")

    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise IntentContractError(f"invalid json: {exc.msg}") from exc

    if not isinstance(data, dict):
        raise IntentContractError(f"expected object, got {type(data).__name__}")

    action_raw = data.get("action")
    if not isinstance(action_raw, str):
        raise IntentContractError("missing 'action'")
    try:
        action = ActionKind(action_raw.strip().upper())
    except ValueError as exc:
        raise IntentContractError(f"unknown action: {action_raw!r}") from exc

    value = _optional_str(data, "value").strip()
    speech = _optional_str(data, "speech").strip() or DEFAULT_ACK_PROMPT

    return Intent(action=action, value=value, speech=speech)
