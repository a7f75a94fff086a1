"""
ClaudeIntentExtractor: uses Claude to read scheduling conversations.

The system prompt (prompts/extract_schedule.txt) is the source of truth
for the output schema; the JSON maps directly to PartialIntent.
"""

import logging
from datetime import date

from localdink.adapters.claude_common import DEFAULT_MODEL, ask_for_json, create_client
from localdink.domain.intent import ExtractionError, IntentExtractor, PartialIntent
from localdink.prompts import load_prompt

log = logging.getLogger(__name__)


def _text_or_none(value) -> str | None:
    if isinstance(value, str) and value.strip() and value.strip().lower() != "null":
        return value.strip()
    return None


class ClaudeIntentExtractor(IntentExtractor):
    """Extractor backed by Claude claude-haiku-4-5-20251001 (fast + cheap)."""

    def __init__(self, api_key: str | None = None, model: str = DEFAULT_MODEL):
        self._client = create_client(api_key)
        self._model = model
        self._system = load_prompt("extract_schedule")

    async def extract(
        self,
        conversation_text: str,
        current_message: str,
        known_players: list[str],
        known_courts: list[str],
        today: date,
    ) -> PartialIntent:
        user_content = (
            f"Today: {today.isoformat()} ({today.strftime('%A')})\n"
            f"Known players: {', '.join(known_players) or 'none'}\n"
            f"Known courts: {', '.join(known_courts) or 'none'}\n"
        )
        if conversation_text:
            user_content += f"\nConversation so far:\n{conversation_text}\n"
        user_content += f"\nLatest message:\n{current_message}"

        data = await ask_for_json(self._client, self._model, self._system, user_content)
        log.debug("extractor raw=%r", data)

        players = data.get("players") or []
        if not isinstance(players, list):
            raise ExtractionError(f"model returned players as {type(players).__name__}, expected a list")
        return PartialIntent(
            players=[p.strip() for p in players if isinstance(p, str) and p.strip()],
            date=_text_or_none(data.get("date")),
            time=_text_or_none(data.get("time")),
            location=_text_or_none(data.get("location")),
            confirmation_text=_text_or_none(data.get("reply")),
        )
