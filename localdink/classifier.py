"""
Inbound SMS reply classification.

Fast path: a fixed table of whole-message phrases ("yes", "im out",
"something came up", emoji...) answers immediately with high confidence.
Only replies the table misses reach the AI classifier, under a timeout;
any failure there degrades to "unknown" with a clarification prompt.
"""

import asyncio
import logging
import re

from localdink.domain.intent import ExtractionError, ReplyClassifier, SmsClassification

log = logging.getLogger(__name__)

CLARIFICATION_PROMPT = "I didn't catch that. Reply YES to join or NO to decline."

_ACCEPT = re.compile(
    r"^(yes|yep|yeah|yea|ya|yup|sure|ok|okay|k|in|im in|i'm in|count me in|i'll be there"
    r"|see you there|confirmed|accept|joining|join|down|let's go|lets go|absolutely"
    r"|definitely|for sure|👍|✅|🎾|🏓)$",
    re.IGNORECASE,
)
_DECLINE = re.compile(
    r"^(no|nope|nah|can't|cant|cannot|pass|skip|out|i'm out|im out|not this time"
    r"|maybe next time|decline|busy|unavailable|sorry|❌|👎)$",
    re.IGNORECASE,
)
_CANCEL = re.compile(
    r"^(cancel|canceling|cancelling|back out|backing out|pull out|pulling out|drop|dropping"
    r"|remove me|take me out|something came up|can't make it anymore|cant make it)$",
    re.IGNORECASE,
)

FAST_PATH: list[tuple[str, re.Pattern]] = [
    ("accept", _ACCEPT),
    ("decline", _DECLINE),
    ("cancel", _CANCEL),
]


def _normalize(text: str) -> str:
    text = text.strip().lower().replace("’", "'").replace("‘", "'")
    text = re.sub(r"\s+", " ", text)
    return text.rstrip("!. ")


def quick_match(text: str) -> SmsClassification | None:
    normalized = _normalize(text)
    for intent, pattern in FAST_PATH:
        if pattern.match(normalized):
            return SmsClassification(intent, "high")
    return None


class SmsIntentClassifier:
    """Fast-path table in front of a (slow, fallible) ReplyClassifier."""

    def __init__(self, fallback: ReplyClassifier | None, timeout: float = 10.0):
        self._fallback = fallback
        self._timeout = timeout

    async def classify(self, text: str) -> SmsClassification:
        quick = quick_match(text)
        if quick is not None:
            log.debug("fast path intent=%s text=%.40r", quick.intent, text)
            return quick

        if self._fallback is None:
            return SmsClassification("unknown", "low", follow_up=CLARIFICATION_PROMPT)

        try:
            result = await asyncio.wait_for(self._fallback.classify(text), timeout=self._timeout)
        except asyncio.TimeoutError:
            log.warning("reply classifier timed out after %.1fs", self._timeout)
            return SmsClassification("unknown", "low", follow_up=CLARIFICATION_PROMPT)
        except ExtractionError as exc:
            log.warning("reply classifier failed: %s", exc)
            return SmsClassification("unknown", "low", follow_up=CLARIFICATION_PROMPT)
        except Exception:
            log.exception("reply classifier crashed")
            return SmsClassification("unknown", "low", follow_up=CLARIFICATION_PROMPT)

        log.info("ai intent=%s confidence=%s text=%.40r", result.intent, result.confidence, text)
        return result
