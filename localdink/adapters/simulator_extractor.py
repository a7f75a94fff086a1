"""
SimulatorIntentExtractor: deterministic stand-in for the AI extractor.

No LLM calls, no network. Reads a handful of obvious phrasings so the
conversational flow can be exercised end to end, and can be scripted to
return a fixed answer, fail, or stall for tests of the fallback paths.
"""

import asyncio
import re
from datetime import date, timedelta

from localdink.domain.intent import IntentExtractor, PartialIntent

_TIME = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*(am|pm)\b", re.IGNORECASE)
_WITH = re.compile(r"\bwith\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)")
_AT_PLACE = re.compile(r"\bat\s+((?:[A-Z][\w']*\s?)+)")


class SimulatorIntentExtractor(IntentExtractor):

    def __init__(
        self,
        response: PartialIntent | None = None,
        fail_with: Exception | None = None,
        delay: float = 0.0,
    ):
        self.response = response
        self.fail_with = fail_with
        self.delay = delay
        self.calls: list[str] = []

    async def extract(
        self,
        conversation_text: str,
        current_message: str,
        known_players: list[str],
        known_courts: list[str],
        today: date,
    ) -> PartialIntent:
        self.calls.append(current_message)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        if self.response is not None:
            return self.response

        text = f"{conversation_text}\n{current_message}"
        intent = PartialIntent(players=["me"], confirmation_text="Sounds like a fun game!")

        if re.search(r"\btomorrow\b", text, re.IGNORECASE):
            intent.date = (today + timedelta(days=1)).isoformat()
        elif re.search(r"\btoday\b", text, re.IGNORECASE):
            intent.date = today.isoformat()

        m = _TIME.search(text)
        if m:
            intent.time = f"{int(m.group(1))}:{m.group(2) or '00'} {m.group(3).upper()}"

        for name in _WITH.findall(text):
            if name not in intent.players:
                intent.players.append(name)

        m = _AT_PLACE.search(text)
        if m:
            intent.location = m.group(1).strip()
        return intent
