"""
Dispatch context serialization for intent interpretation.

Responsibilities:
- Convert system prompt + context snapshot + current transcript
  into LLM-ready message format.

Non-responsibilities:
- No conversation history (one utterance, one call)
- No logging
- No orchestration decisions
"""

from __future__ import annotations

import json

from dispatch.types import DispatchContext


def serialize_for_intent(
    *,
    system_prompt: str,
    context: DispatchContext,
    transcript: str,
) -> list[dict[str, str]]:
    """
    Serialize the context snapshot into LLM message format.

    Output format:
    [
        {"role": "system", "content": "..."},
        {"role": "user", "content": "CONTEXTO APP: {...}\\nUSUARIO DIJO: \\"...\\""},
    ]

    Rules:
    - System prompt is always first
    - Context is flattened to string key/value pairs
    - Transcript is quoted verbatim, never interpolated into the system prompt
    """
    context_json = json.dumps(context.to_prompt_fields(), ensure_ascii=False)

    return [
        {
            "role": "system",
            "content": system_prompt,
        },
        {
            "role": "user",
            "content": f"CONTEXTO APP: {context_json}\nUSUARIO DIJO: {json.dumps(transcript, ensure_ascii=False)}",
        },
    ]
