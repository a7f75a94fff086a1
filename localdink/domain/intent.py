"""
Intent ports: turn free text into structured data.

AI is used here, behind two ports:
  - IntentExtractor reads a scheduling conversation and returns the
    fields it could find (players, date, time, location).
  - ReplyClassifier reads an inbound SMS reply and returns what the
    player wants (accept / decline / cancel / question / unknown).

Both are fallible. Callers wrap them in a timeout and fall back to the
deterministic rules in patterns.py and the classifier fast path.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Literal

ReplyIntent = Literal["accept", "decline", "cancel", "question", "unknown"]
Confidence = Literal["high", "medium", "low"]

REPLY_INTENTS: tuple[str, ...] = ("accept", "decline", "cancel", "question", "unknown")

# The organizer, as a player name
ME = "me"


class ExtractionError(Exception):
    """The probabilistic service failed or answered with something unusable."""


class RateLimitedError(ExtractionError):
    """The probabilistic service is refusing calls for now (quota / 429)."""


@dataclass
class PartialIntent:
    """Whatever could be read from the conversation so far. Every field is optional."""
    players: list[str] = field(default_factory=list)
    date: str | None = None          # ISO: "2026-03-05"
    time: str | None = None          # "4:00 PM"
    location: str | None = None
    court_id: str | None = None      # set only when location is a known court
    confirmation_text: str | None = None  # conversational reply from the AI, if any

    def is_empty(self) -> bool:
        return not (self.players or self.date or self.time or self.location)


@dataclass
class SmsClassification:
    intent: ReplyIntent
    confidence: Confidence
    follow_up: str | None = None


class IntentExtractor(ABC):
    """
    Port: extract scheduling fields from a conversation.

    Implementations may use an LLM (ClaudeIntentExtractor) or keyword
    rules (SimulatorIntentExtractor). Raise ExtractionError (or
    RateLimitedError) on failure; never return made-up fields.
    """

    @abstractmethod
    async def extract(
        self,
        conversation_text: str,
        current_message: str,
        known_players: list[str],
        known_courts: list[str],
        today: date,
    ) -> PartialIntent:
        ...


class ReplyClassifier(ABC):
    """Port: classify a free-text SMS reply to an invite."""

    @abstractmethod
    async def classify(self, text: str) -> SmsClassification:
        ...


def merge_intents(deterministic: PartialIntent, probabilistic: PartialIntent | None) -> PartialIntent:
    """
    Field-by-field merge. The deterministic value wins whenever it exists;
    the probabilistic value only fills gaps. A location matched to a known
    court keeps its canonical name and court id. A player list holding only
    the organizer counts as a gap.
    """
    if probabilistic is None:
        return replace(deterministic, players=list(deterministic.players))

    players = list(deterministic.players)
    if not [p for p in players if p != ME]:
        # Rules found nobody but the organizer; take the AI's invitees
        invitees = [p for p in probabilistic.players if p.lower() != ME]
        if invitees:
            with_me = bool(players) or len(invitees) < len(probabilistic.players)
            players = ([ME] if with_me else []) + invitees

    if deterministic.location:
        location, court_id = deterministic.location, deterministic.court_id
    else:
        location, court_id = probabilistic.location, None

    return PartialIntent(
        players=players,
        date=deterministic.date or probabilistic.date,
        time=deterministic.time or probabilistic.time,
        location=location,
        court_id=court_id,
        confirmation_text=probabilistic.confirmation_text,
    )
