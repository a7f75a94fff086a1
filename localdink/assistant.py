"""
Scheduling assistant: the organizer's chat.

Each turn re-reads the whole conversation (so details given across
several messages add up), builds a SchedulingPlan and answers with the
next question. When the plan is complete the assistant asks for a yes;
only a confirmation creates the game and sends the invites.

Conversation state lives in the record store, one document per
organizer, so a restart mid-conversation loses nothing.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime

import pytz

from localdink.communication.phone import normalize_to_e164
from localdink.domain.intent import ME
from localdink.domain.models import DEFAULT_DURATION_MINUTES
from localdink.domain.patterns import extract_deterministic
from localdink.domain.store import RecordStore
from localdink.extraction import RATE_LIMIT_NOTICE, ExtractionPipeline, SchedulingPlan, build_plan
from localdink.profiles import ProfileDirectory
from localdink.sessions import DEFAULT_TIMEZONE, CreateSessionRequest, SessionService, utcnow

log = logging.getLogger(__name__)

CONVERSATIONS = "conversations"

_CONFIRM_EXACT = {
    "y", "yes", "yeah", "yep", "ok", "okay", "confirm", "confirmed", "do it", "sure",
    "sounds good", "go ahead", "try again", "i did, yes", "i did",
}
_CONFIRM_PREFIX = re.compile(r"^(y|yes|yeah|yep|ok|okay)\b")
_CONFIRM_ANYWHERE = re.compile(r"\b(sounds good|looks good|please do|go ahead|try again|confirmed)\b")
_TRAILING = re.compile(r"[!.\s]+$")
_PHONE = re.compile(r"\+?\d[\d\s().-]{8,}\d")

HISTORY_LIMIT = 20


def is_confirmation(message: str) -> bool:
    m = _TRAILING.sub("", message.lower().strip())
    if not m:
        return False
    if m in _CONFIRM_EXACT:
        return True
    return bool(_CONFIRM_PREFIX.search(m) or _CONFIRM_ANYWHERE.search(m))


@dataclass
class ChatReply:
    text: str
    session_id: str | None = None
    notified_count: int = 0
    plan: SchedulingPlan | None = None


@dataclass
class _Conversation:
    organizer_id: str
    messages: list[dict] = field(default_factory=list)
    pending: dict | None = None
    unknown_players: list[str] = field(default_factory=list)

    def user_history(self) -> str:
        return "\n".join(m["text"] for m in self.messages if m["role"] == "user")

    def to_record(self) -> dict:
        return {
            "organizerId": self.organizer_id,
            "messages": self.messages[-HISTORY_LIMIT:],
            "pending": self.pending,
            "unknownPlayers": self.unknown_players,
            "updatedAt": utcnow().isoformat(),
        }


def _human_join(names: list[str]) -> str:
    return " and ".join(names)


class SchedulingAssistant:

    def __init__(
        self,
        store: RecordStore,
        pipeline: ExtractionPipeline,
        sessions: SessionService,
        profiles: ProfileDirectory | None = None,
        timezone_name: str = DEFAULT_TIMEZONE,
        clock=utcnow,
    ):
        self._store = store
        self._pipeline = pipeline
        self._sessions = sessions
        self._profiles = profiles or ProfileDirectory(store)
        self._tz = timezone_name
        self._clock = clock

    async def _load(self, organizer_id: str) -> _Conversation:
        record = await self._store.get(CONVERSATIONS, organizer_id)
        if record is None:
            return _Conversation(organizer_id)
        return _Conversation(
            organizer_id,
            messages=list(record.data.get("messages") or []),
            pending=record.data.get("pending"),
            unknown_players=list(record.data.get("unknownPlayers") or []),
        )

    async def _save(self, conversation: _Conversation) -> None:
        await self._store.set(CONVERSATIONS, conversation.organizer_id, conversation.to_record())

    async def reset(self, organizer_id: str) -> None:
        await self._save(_Conversation(organizer_id))

    async def chat(self, organizer_id: str, message: str) -> ChatReply:
        conversation = await self._load(organizer_id)
        pending = conversation.pending
        log.info("chat organizer=%s pending=%s", organizer_id, pending["kind"] if pending else None)

        if pending and is_confirmation(message) and not await self._adds_details(organizer_id, message):
            if pending["kind"] == "create":
                reply = await self._create(organizer_id, pending)
                await self.reset(organizer_id)
                return reply
            if pending["kind"] == "add_court":
                court = await self._profiles.add_court(organizer_id, pending["name"])
                conversation.pending = None
                return await self._plan_turn(conversation, "", prefix=f"Added {court.name} to your courts.")

        prefix = None
        phone = _PHONE.search(message)
        if phone and conversation.unknown_players and normalize_to_e164(phone.group(0)):
            name = conversation.unknown_players[0]
            first, _, last = name.strip().partition(" ")
            player = await self._profiles.add_player(organizer_id, first.title(), last.title(), phone.group(0))
            prefix = f"Added {player.name} to your players."

        return await self._plan_turn(conversation, message, prefix=prefix)

    def _today(self):
        return self._clock().astimezone(pytz.timezone(self._tz)).date()

    async def _adds_details(self, organizer_id: str, message: str) -> bool:
        """A yes that also changes something ("yes but make it 5pm") is not a plain yes."""
        roster = await self._profiles.roster(organizer_id)
        courts = await self._profiles.courts(organizer_id)
        found = extract_deterministic("", message, roster, courts, self._today())
        return bool(found.date or found.time or found.location or [p for p in found.players if p != ME])

    async def _plan_turn(self, conversation: _Conversation, current: str, prefix: str | None = None) -> ChatReply:
        """Re-plan from the whole conversation plus `current` ("" when nothing new was said)."""
        organizer_id = conversation.organizer_id
        roster = await self._profiles.roster(organizer_id)
        courts = await self._profiles.courts(organizer_id)
        groups = await self._profiles.groups(organizer_id)
        today = self._today()

        history = conversation.user_history()
        if current:
            conversation.messages.append({"role": "user", "text": current})
        outcome = await self._pipeline.extract(history, current, roster, courts, today)
        plan = build_plan(outcome.intent, roster, courts, groups, organizer_id)
        if outcome.failure == "rate_limited":
            plan.notice = RATE_LIMIT_NOTICE

        if plan.ready:
            conversation.pending = {
                "kind": "create",
                "courtId": plan.court.id,
                "startTime": plan.start_time(self._tz).isoformat(),
                "isDoubles": plan.is_doubles,
                "attendees": [{"id": p.id, "source": p.source} for p in plan.invitees],
                "names": [p.name for p in plan.invitees],
            }
        elif plan.unknown_location and not plan.unknown_players:
            conversation.pending = {"kind": "add_court", "name": plan.unknown_location}
        else:
            conversation.pending = None
        conversation.unknown_players = plan.unknown_players

        text = plan.prompt()
        if prefix:
            text = f"{prefix} {text}"
        conversation.messages.append({"role": "assistant", "text": text})
        await self._save(conversation)
        log.info(
            "chat organizer=%s ready=%s missing=%s unknown=%s",
            organizer_id, plan.ready, plan.missing, plan.unknown_players,
        )
        return ChatReply(text, plan=plan)

    async def _create(self, organizer_id: str, pending: dict) -> ChatReply:
        request = CreateSessionRequest(
            court_id=pending["courtId"],
            organizer_id=organizer_id,
            start_time=datetime.fromisoformat(pending["startTime"]),
            is_doubles=pending["isDoubles"],
            duration_minutes=DEFAULT_DURATION_MINUTES,
            attendees=pending["attendees"],
        )
        result = await self._sessions.create_session(request)
        names = pending.get("names") or []
        if names:
            text = f"Excellent. I will notify {_human_join(names)} and get this scheduled right away."
        else:
            text = "Excellent. I have scheduled your game."
        log.info("chat organizer=%s created session=%s notified=%d", organizer_id, result.session.id, result.notified_count)
        return ChatReply(text, session_id=result.session.id, notified_count=result.notified_count)
