"""
SimulatorReplyClassifier: keyword-based stand-in for the AI classifier.

Only sees replies the fast-path table missed, so it deals with longer,
chattier phrasings.
"""

import asyncio
import re

from localdink.domain.intent import ReplyClassifier, SmsClassification

_ACCEPT_KEYWORDS = [
    r"\bcount me in\b", r"\bi'?m in\b", r"\bi'?ll be there\b", r"\bsign me up\b",
    r"\bsounds good\b", r"\bi can make it\b", r"\byes\b", r"\bsure\b",
]
_DECLINE_KEYWORDS = [
    r"\bcan'?t make it\b", r"\bnot (?:this|that) (?:time|day|week)\b", r"\bi'?ll pass\b",
    r"\bno thanks\b", r"\bnext time\b",
]
_CANCEL_KEYWORDS = [
    r"\bneed to cancel\b", r"\bhave to cancel\b", r"\bdrop (?:me|out)\b",
    r"\bcan'?t make it anymore\b", r"\bno longer\b",
]


def _match_any(text: str, patterns: list[str]) -> bool:
    lower = text.lower()
    return any(re.search(p, lower) for p in patterns)


class SimulatorReplyClassifier(ReplyClassifier):

    def __init__(self, fail_with: Exception | None = None, delay: float = 0.0):
        self.fail_with = fail_with
        self.delay = delay
        self.calls: list[str] = []

    async def classify(self, text: str) -> SmsClassification:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with

        # Cancel phrases overlap with decline ones ("can't make it anymore")
        if _match_any(text, _CANCEL_KEYWORDS):
            return SmsClassification("cancel", "medium")
        if _match_any(text, _DECLINE_KEYWORDS):
            return SmsClassification("decline", "medium")
        if _match_any(text, _ACCEPT_KEYWORDS):
            return SmsClassification("accept", "medium")
        if text.strip().endswith("?"):
            return SmsClassification(
                "question", "medium",
                follow_up="Good question! Check the game details in the app, or reply YES to join.",
            )
        return SmsClassification(
            "unknown", "low",
            follow_up="Sorry, I didn't get that. Reply YES to join, NO to pass, or CANCEL to drop out.",
        )
