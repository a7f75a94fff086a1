"""
ClaudeReplyClassifier: uses Claude for SMS replies the fast-path rules
didn't recognise.
"""

from localdink.adapters.claude_common import DEFAULT_MODEL, ask_for_json, create_client
from localdink.domain.intent import (
    REPLY_INTENTS,
    ExtractionError,
    ReplyClassifier,
    SmsClassification,
)
from localdink.prompts import load_prompt


class ClaudeReplyClassifier(ReplyClassifier):

    def __init__(self, api_key: str | None = None, model: str = DEFAULT_MODEL):
        self._client = create_client(api_key)
        self._model = model
        self._system = load_prompt("classify_reply")

    async def classify(self, text: str) -> SmsClassification:
        data = await ask_for_json(
            self._client, self._model, self._system, f"Reply:\n{text}", max_tokens=256
        )
        intent = data.get("intent")
        if intent not in REPLY_INTENTS:
            raise ExtractionError(f"model returned unsupported intent {intent!r}")
        confidence = data.get("confidence")
        if confidence not in ("high", "medium", "low"):
            confidence = "low"
        follow_up = data.get("followUp")
        return SmsClassification(
            intent=intent,
            confidence=confidence,
            follow_up=follow_up.strip() if isinstance(follow_up, str) and follow_up.strip() else None,
        )
