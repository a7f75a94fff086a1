"""
Game session lifecycle: create, look up, edit, cancel.

All writes to an existing session go through SessionRepository.apply,
which re-reads and retries on version conflicts, so a concurrent RSVP
and an organizer edit can't overwrite each other.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable

import pytz

from localdink.dispatcher import DispatchReport, NotificationDispatcher
from localdink.domain.attendees import coerce_attendee, merge_attendees, normalize_attendees
from localdink.domain.models import (
    CONFIRMED,
    DEFAULT_DURATION_MINUTES,
    GAME_SESSIONS,
    PENDING,
    RSVP_STATUSES,
    SMS_ATTEMPT_LOGS,
    WAITLIST,
    GameSession,
)
from localdink.domain.notifications import DEFAULT_APP_URL, render, session_link
from localdink.domain.rsvp import capacity, confirmed_count, refresh_fullness
from localdink.domain.store import RecordStore, WriteConflictError
from localdink.profiles import ProfileDirectory

log = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/New_York"


class SessionValidationError(ValueError):
    """The session payload is inconsistent. `details` lists each problem."""

    def __init__(self, message: str, details: list[str] | None = None):
        super().__init__(message)
        self.details = details or []


class ConcurrentUpdateError(Exception):
    """A session kept changing underneath us; every retry lost."""


class SessionNotFoundError(LookupError):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def match_type(session: GameSession) -> str:
    return "doubles" if session.is_doubles else "singles"


def describe_start(start_time: datetime, tz_name: str = DEFAULT_TIMEZONE) -> str:
    """Human start time in the organizer's zone: "Sat, Mar 7 at 4:00 PM"."""
    local = start_time.astimezone(pytz.timezone(tz_name))
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return f"{local:%a, %b} {local.day} at {hour}:{local.minute:02d} {meridiem}"


class SessionRepository:
    """Reads and conditional writes of game-sessions documents."""

    def __init__(self, store: RecordStore, max_attempts: int = 5):
        self._store = store
        self._max_attempts = max_attempts

    async def get(self, session_id: str) -> GameSession | None:
        record = await self._store.get(GAME_SESSIONS, session_id)
        if record is None:
            return None
        return GameSession.from_record(record.id, record.data, record.version)

    async def create(self, session: GameSession) -> GameSession:
        record = await self._store.create(GAME_SESSIONS, session.to_record(), session.id or None)
        return GameSession.from_record(record.id, record.data, record.version)

    async def save(self, session: GameSession) -> GameSession:
        """Conditional write; WriteConflictError if the session moved since it was read."""
        session = replace(session, updated_at=utcnow())
        record = await self._store.compare_and_set(
            GAME_SESSIONS, session.id, session.to_record(), session.version
        )
        return replace(session, version=record.version)

    async def apply(self, session_id: str, change: Callable[[GameSession], tuple]):
        """
        Read, change, conditionally write; repeat on conflict.

        `change` receives the freshly read session and returns
        (new session or None for no write, result). Returns
        (stored session, result).
        """
        for attempt in range(1, self._max_attempts + 1):
            session = await self.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            updated, result = change(session)
            if updated is None:
                return session, result
            try:
                return await self.save(updated), result
            except WriteConflictError:
                log.info("session=%s write conflict, retry %d/%d", session_id, attempt, self._max_attempts)
        raise ConcurrentUpdateError(f"session {session_id} changed {self._max_attempts} times in a row")

    async def find(self, predicate: Callable[[dict], bool]) -> list[GameSession]:
        records = await self._store.find(GAME_SESSIONS, predicate)
        return [GameSession.from_record(r.id, r.data, r.version) for r in records]


@dataclass
class CreateSessionRequest:
    court_id: str
    organizer_id: str
    start_time: datetime
    is_doubles: bool = True
    duration_minutes: int = DEFAULT_DURATION_MINUTES
    attendees: list = field(default_factory=list)
    player_ids: list = field(default_factory=list)
    player_statuses: dict[str, str] = field(default_factory=dict)
    min_players: int | None = None
    max_players: int | None = None
    group_ids: list[str] = field(default_factory=list)
    status: str = "open"
    court_name: str = ""
    court_location: str = ""
    start_time_display: str = ""


@dataclass
class CreateSessionResult:
    session: GameSession
    report: DispatchReport

    @property
    def notified_players(self) -> list[dict]:
        return [
            {"playerId": r.recipient_id, "phone": r.phone, "messageSid": r.delivery_id}
            for r in self.report.sms_sent
        ]

    @property
    def skipped_players(self) -> list[dict]:
        return [{"playerId": r.recipient_id, "reason": r.reason} for r in self.report.sms_skipped]

    @property
    def notified_count(self) -> int:
        return len(self.report.sms_sent)


class SessionService:

    def __init__(
        self,
        store: RecordStore,
        dispatcher: NotificationDispatcher,
        profiles: ProfileDirectory | None = None,
        timezone_name: str = DEFAULT_TIMEZONE,
        app_url: str = DEFAULT_APP_URL,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._dispatcher = dispatcher
        self._profiles = profiles or ProfileDirectory(store)
        self._tz = timezone_name
        self._app_url = app_url
        self._clock = clock
        self.repository = SessionRepository(store)

    # -- creation --------------------------------------------------------------

    async def create_session(self, request: CreateSessionRequest) -> CreateSessionResult:
        problems = []
        if not request.court_id:
            problems.append("courtId is required")
        if not request.organizer_id:
            problems.append("organizerId is required")
        if request.start_time.tzinfo is None:
            problems.append("startTime must include a UTC offset")
        if request.duration_minutes <= 0:
            problems.append("durationMinutes must be positive")
        bad = sorted(s for s in request.player_statuses.values() if s not in RSVP_STATUSES)
        if bad:
            problems.append(f"unknown player statuses: {', '.join(bad)}")
        if request.status not in ("open", "full"):
            problems.append(f"status must be open or full for a new game, got {request.status!r}")
        if problems:
            raise SessionValidationError("Invalid game session payload", problems)

        attendees = normalize_attendees(request.attendees, request.player_ids)
        for group_id in request.group_ids:
            group = await self._profiles.group(group_id)
            if group is None:
                log.warning("group=%s not found, skipping", group_id)
                continue
            members = [a for a in (coerce_attendee(m) for m in group.members) if a is not None]
            attendees = merge_attendees(attendees, members)
        attendees = [a for a in attendees if a.id != request.organizer_id]

        statuses = {a.id: request.player_statuses.get(a.id) or PENDING for a in attendees}
        statuses[request.organizer_id] = CONFIRMED

        max_players = request.max_players or (4 if request.is_doubles else 2)
        min_players = request.min_players or max_players
        if min_players > max_players:
            raise SessionValidationError(
                "Invalid game session payload", ["minPlayers cannot exceed maxPlayers"]
            )

        court_name, court_location = request.court_name, request.court_location
        if not court_name:
            court = await self._profiles.court(request.court_id)
            if court is not None:
                court_name, court_location = court.name, court.location

        now = self._clock()
        session = GameSession(
            id="",
            court_id=request.court_id,
            organizer_id=request.organizer_id,
            start_time=request.start_time.astimezone(timezone.utc),
            duration_minutes=request.duration_minutes,
            is_doubles=request.is_doubles,
            attendees=attendees,
            player_statuses=statuses,
            min_players=min_players,
            max_players=max_players,
            status=request.status,
            court_name=court_name,
            court_location=court_location,
            start_time_display=request.start_time_display or describe_start(request.start_time, self._tz),
            group_ids=list(request.group_ids),
            created_at=now,
            updated_at=now,
        )
        if confirmed_count(session) > capacity(session):
            raise SessionValidationError(
                "Invalid game session payload", ["more players confirmed than maxPlayers"]
            )
        session = refresh_fullness(session)
        session = await self.repository.create(session)
        log.info(
            "session=%s created organizer=%s invitees=%d start=%s",
            session.id, session.organizer_id, len(attendees), session.start_time.isoformat(),
        )

        report = await self._send_invites(session)
        session, _ = await self.repository.apply(
            session.id, lambda s: (replace(s, invites_sent_at=self._clock()), None)
        )
        await self._store.create(SMS_ATTEMPT_LOGS, {
            "sessionId": session.id,
            "organizerId": session.organizer_id,
            "notifiedPlayers": [
                {"playerId": r.recipient_id, "phone": r.phone, "messageSid": r.delivery_id}
                for r in report.sms_sent
            ],
            "skippedPlayers": [{"playerId": r.recipient_id, "reason": r.reason} for r in report.sms_skipped],
            "createdAt": self._clock().isoformat(),
        })
        return CreateSessionResult(session, report)

    async def _send_invites(self, session: GameSession) -> DispatchReport:
        invitees = [session.attendee_for(pid) for pid in session.players_with_status(PENDING)]
        organizer = await self._profiles.resolve(session.organizer_id)
        organizer_name = organizer.name if organizer else "your organizer"
        court = " • ".join(p for p in (session.court_name, session.court_location) if p) or "the courts"
        sms_body = (
            f"Hi {{first_name}}! You're invited to a LocalDink pickleball game at {court}. "
            f"It starts {session.start_time_display}. "
            f"Reply YES if you can play or NO if you need to pass. - {organizer_name}"
        )
        notification = render(
            "GAME_INVITE",
            session.id,
            inviter_name=organizer_name,
            match_type=match_type(session),
            when=session.start_time_display,
            court_name=session.court_name,
            web_link=session_link(session.id, self._app_url),
            sms_body=sms_body,
        )
        return await self._dispatcher.dispatch(invitees, notification)

    # -- lookups -------------------------------------------------------------

    async def get(self, session_id: str) -> GameSession | None:
        return await self.repository.get(session_id)

    async def find_pending_session_for_player(self, player_id: str) -> GameSession | None:
        """Most recently scheduled upcoming game where the player still owes an answer."""
        now = self._clock()
        sessions = await self.repository.find(
            lambda d: d.get("status") in ("open", "full")
            and (d.get("playerStatuses") or {}).get(player_id) in (PENDING, WAITLIST)
        )
        upcoming = [s for s in sessions if s.start_time > now]
        return max(upcoming, key=lambda s: s.start_time, default=None)

    async def find_confirmed_session_for_player(self, player_id: str) -> GameSession | None:
        """Soonest upcoming game the player is confirmed for."""
        now = self._clock()
        sessions = await self.repository.find(
            lambda d: d.get("status") in ("open", "full")
            and (d.get("playerStatuses") or {}).get(player_id) == CONFIRMED
            and d.get("organizerId") != player_id
        )
        upcoming = [s for s in sessions if s.start_time > now]
        return min(upcoming, key=lambda s: s.start_time, default=None)

    # -- organizer edits -----------------------------------------------------

    async def update_details(
        self,
        session_id: str,
        actor_id: str,
        *,
        court_id: str | None = None,
        start_time: datetime | None = None,
        is_doubles: bool | None = None,
        duration_minutes: int | None = None,
    ) -> tuple[GameSession, DispatchReport]:
        court = await self._profiles.court(court_id) if court_id else None
        if court_id and court is None:
            raise SessionValidationError("Unknown court", [f"court {court_id} not found"])

        def change(session: GameSession):
            if session.organizer_id != actor_id:
                raise PermissionError("only the organizer can edit a game")
            updated = session
            if court is not None:
                updated = replace(updated, court_id=court.id, court_name=court.name, court_location=court.location)
            if start_time is not None:
                updated = replace(
                    updated,
                    start_time=start_time.astimezone(timezone.utc),
                    start_time_display=describe_start(start_time, self._tz),
                    last_reminder_at=None,
                )
            if is_doubles is not None and is_doubles != session.is_doubles:
                size = 4 if is_doubles else 2
                updated = replace(updated, is_doubles=is_doubles, max_players=size, min_players=size)
            if duration_minutes is not None:
                updated = replace(updated, duration_minutes=duration_minutes)
            if confirmed_count(updated) > capacity(updated):
                raise SessionValidationError(
                    "Invalid game update", ["more players are confirmed than the new format allows"]
                )
            return refresh_fullness(updated), None

        session, _ = await self.repository.apply(session_id, change)
        recipients = [
            session.attendee_for(pid)
            for pid in session.players_with_status(PENDING, CONFIRMED, WAITLIST)
            if pid != session.organizer_id
        ]
        report = await self._dispatcher.dispatch(recipients, render(
            "GAME_CHANGED",
            session.id,
            match_type=match_type(session),
            when=session.start_time_display,
            court_name=session.court_name,
            web_link=session_link(session.id, self._app_url),
        ))
        log.info("session=%s details changed by organizer, notified=%d", session.id, len(report.sent))
        return session, report

    async def cancel_session(self, session_id: str, actor_id: str) -> tuple[GameSession, DispatchReport]:
        def change(session: GameSession):
            if session.organizer_id != actor_id:
                raise PermissionError("only the organizer can cancel a game")
            if session.status == "cancelled":
                return None, False
            return replace(session, status="cancelled"), True

        session, changed = await self.repository.apply(session_id, change)
        if not changed:
            return session, DispatchReport()
        recipients = [
            session.attendee_for(pid)
            for pid in session.players_with_status(PENDING, CONFIRMED, WAITLIST)
            if pid != session.organizer_id
        ]
        report = await self._dispatcher.dispatch(recipients, render(
            "GAME_CANCELLED",
            session.id,
            match_type=match_type(session),
            when=session.start_time_display,
            court_name=session.court_name,
        ))
        log.info("session=%s cancelled by organizer, notified=%d", session.id, len(report.sent))
        return session, report
