"""Shared plumbing for the Claude-backed adapters."""

import json
import os

import anthropic

from localdink.domain.intent import ExtractionError, RateLimitedError

DEFAULT_MODEL = "claude-haiku-4-5-20251001"


def create_client(api_key: str | None = None) -> anthropic.AsyncAnthropic:
    return anthropic.AsyncAnthropic(api_key=api_key or os.environ["ANTHROPIC_API_KEY"])


async def ask_for_json(
    client: anthropic.AsyncAnthropic,
    model: str,
    system: str,
    user_content: str,
    max_tokens: int = 512,
) -> dict:
    """One request/response round trip that must come back as a JSON object."""
    try:
        response = await client.messages.create(
            model=model,
            max_tokens=max_tokens,
            system=system,
            messages=[{"role": "user", "content": user_content}],
        )
    except anthropic.RateLimitError as exc:
        raise RateLimitedError(str(exc)) from exc
    except anthropic.APIError as exc:
        raise ExtractionError(str(exc)) from exc

    texts = [block.text for block in (response.content or []) if getattr(block, "type", None) == "text"]
    if not texts:
        raise ExtractionError("model returned no text")
    raw = texts[0].strip()
    # Strip markdown code fences if the model wraps the JSON
    if raw.startswith("```"):
        raw = raw.split("```")[1]
        if raw.startswith("json"):
            raw = raw[4:]
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ExtractionError(f"model returned invalid JSON: {raw[:80]!r}") from exc
    if not isinstance(data, dict):
        raise ExtractionError("model returned JSON that is not an object")
    return data
