"""
Scheduling intent extraction and planning.

    AI → data → code

  1. Code: deterministic regex extraction (domain/patterns.py), always.
  2. AI: probabilistic extraction, under a timeout. Failure of any kind
     (error, timeout, rate limit) leaves step 1's result standing.
  3. Code: merge (deterministic wins), then resolve names against the
     organizer's roster, courts and groups into a SchedulingPlan that is
     either ready to create or carries the follow-up question to ask.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Literal, Sequence

import pytz

from localdink.domain.intent import (
    ExtractionError,
    IntentExtractor,
    PartialIntent,
    RateLimitedError,
    merge_intents,
)
from localdink.domain.models import Court, Group, Player
from localdink.domain.patterns import ME, extract_deterministic
from localdink.domain.resolver import (
    Ambiguous,
    Unique,
    disambiguation_question,
    resolve,
    resolve_player,
)

log = logging.getLogger(__name__)

RATE_LIMIT_NOTICE = (
    "Heads up: the assistant has hit its usage limit for the moment, so I'm working "
    "only from the details I can read directly. If something looks off, wait a minute and try again."
)

_TIME_FORMATS = ("%I:%M %p", "%I:%M%p", "%I %p", "%I%p", "%H:%M")

_ASKS = {
    "players": "who you'd like to invite",
    "date": "which day",
    "time": "what time",
    "location": "which court",
}


@dataclass
class ExtractionOutcome:
    intent: PartialIntent
    deterministic: PartialIntent
    probabilistic: PartialIntent | None = None
    failure: Literal["timeout", "error", "rate_limited"] | None = None


class ExtractionPipeline:

    def __init__(self, extractor: IntentExtractor | None, timeout: float = 10.0):
        self._extractor = extractor
        self._timeout = timeout

    async def extract(
        self,
        conversation_text: str,
        current_message: str,
        known_players: Sequence[Player],
        known_courts: Sequence[Court],
        today: date,
    ) -> ExtractionOutcome:
        deterministic = extract_deterministic(
            conversation_text, current_message, known_players, known_courts, today
        )
        log.debug("deterministic intent=%s", deterministic)
        if self._extractor is None:
            return ExtractionOutcome(merge_intents(deterministic, None), deterministic)

        failure = None
        probabilistic = None
        try:
            probabilistic = await asyncio.wait_for(
                self._extractor.extract(
                    conversation_text,
                    current_message,
                    [p.name for p in known_players],
                    [c.name for c in known_courts],
                    today,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            log.warning("extractor timed out after %.1fs, using deterministic fields", self._timeout)
            failure = "timeout"
        except RateLimitedError as exc:
            log.warning("extractor rate limited: %s", exc)
            failure = "rate_limited"
        except ExtractionError as exc:
            log.warning("extractor failed, using deterministic fields: %s", exc)
            failure = "error"
        except Exception:
            log.exception("extractor crashed, using deterministic fields")
            failure = "error"

        return ExtractionOutcome(merge_intents(deterministic, probabilistic), deterministic, probabilistic, failure)


# -- planning ------------------------------------------------------------------

def parse_clock(text: str | None) -> time | None:
    if not text:
        return None
    cleaned = " ".join(text.strip().upper().replace(".", "").split())
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).time()
        except ValueError:
            continue
    return None


def parse_day(text: str | None) -> date | None:
    if not text:
        return None
    try:
        return date.fromisoformat(text.strip())
    except ValueError:
        return None


def _human_list(items: list[str]) -> str:
    if len(items) <= 1:
        return "".join(items)
    return ", ".join(items[:-1]) + f" and {items[-1]}"


@dataclass
class SchedulingPlan:
    intent: PartialIntent
    invitees: list[Player] = field(default_factory=list)
    court: Court | None = None
    day: date | None = None
    start: time | None = None
    questions: list[str] = field(default_factory=list)
    unknown_players: list[str] = field(default_factory=list)
    unknown_location: str | None = None
    notice: str | None = None

    @property
    def missing(self) -> list[str]:
        missing = []
        if not self.invitees:
            missing.append("players")
        if self.day is None:
            missing.append("date")
        if self.start is None:
            missing.append("time")
        if self.court is None:
            missing.append("location")
        return missing

    @property
    def ready(self) -> bool:
        return not self.missing and not self.questions

    @property
    def is_doubles(self) -> bool:
        # Organizer plus one invitee is a singles game; anything bigger is doubles
        return len(self.invitees) + 1 > 2

    def start_time(self, tz_name: str) -> datetime:
        tz = pytz.timezone(tz_name)
        return tz.localize(datetime.combine(self.day, self.start)).astimezone(pytz.utc)

    def _known_fields(self) -> list[str]:
        known = []
        if self.invitees:
            known.append(f"with {_human_list([p.name for p in self.invitees])}")
        if self.day is not None:
            known.append(f"on {self.day:%A, %B} {self.day.day}")
        if self.start is not None:
            known.append(f"at {self.start.hour % 12 or 12}:{self.start.minute:02d} {'AM' if self.start.hour < 12 else 'PM'}")
        if self.court is not None:
            known.append(f"at {self.court.name}")
        return known

    def summary(self) -> str:
        return f"A game {' '.join(self._known_fields())}."

    def prompt(self) -> str:
        """The next thing to say to the organizer."""
        parts = []
        if self.notice:
            parts.append(self.notice)
        known = self._known_fields()
        if self.ready:
            parts.append(f"Great! {self.summary()}")
            if self.unknown_players:
                parts.append(
                    f"I don't have {_human_list(self.unknown_players)} in your players yet; "
                    "send a phone number to add them, or go ahead without them."
                )
            parts.append("Does that look right?")
            return " ".join(parts)

        if known:
            parts.append(f"Got it: a game {' '.join(known)}.")
        parts.extend(self.questions)
        if self.unknown_location:
            parts.append(
                f"I don't know {self.unknown_location} yet. Want me to add it as a court? Reply YES to add it."
            )
        if self.unknown_players:
            names = _human_list(self.unknown_players)
            parts.append(f"I don't have {names} in your players yet. What's their phone number?")
        asks = [
            _ASKS[m] for m in self.missing
            if not (m == "location" and self.unknown_location)
            and not (m == "players" and (self.unknown_players or self.questions))
        ]
        if asks:
            parts.append(f"Just let me know {_human_list(asks)}.")
        return " ".join(parts)


def build_plan(
    intent: PartialIntent,
    roster: Sequence[Player],
    courts: Sequence[Court],
    groups: Sequence[Group] = (),
    organizer_id: str | None = None,
) -> SchedulingPlan:
    plan = SchedulingPlan(intent=intent, day=parse_day(intent.date), start=parse_clock(intent.time))
    others = [p for p in roster if p.id != organizer_id and not p.is_current_user]
    selves = [p for p in roster if p not in others]
    by_id = {p.id: p for p in others}

    for name in intent.players:
        if name.lower() == ME:
            continue
        match = resolve_player(name, others)
        if not isinstance(match, Unique) and isinstance(resolve_player(name, selves), Unique):
            continue
        if isinstance(match, Unique):
            if match.entity not in plan.invitees:
                plan.invitees.append(match.entity)
            continue
        if isinstance(match, Ambiguous):
            plan.questions.append(disambiguation_question(name, match))
            continue
        group_match = resolve(name, groups)
        if isinstance(group_match, Unique):
            for member_id in group_match.entity.members:
                member = by_id.get(member_id.split(":")[-1])
                if member is not None and member not in plan.invitees:
                    plan.invitees.append(member)
            continue
        plan.unknown_players.append(name)

    if intent.court_id:
        plan.court = next((c for c in courts if c.id == intent.court_id), None)
    if plan.court is None and intent.location:
        match = resolve(intent.location, courts)
        if isinstance(match, Unique):
            plan.court = match.entity
        elif isinstance(match, Ambiguous):
            plan.questions.append(disambiguation_question(intent.location, match))
        else:
            plan.unknown_location = intent.location
    return plan
