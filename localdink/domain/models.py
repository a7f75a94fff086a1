"""
Core records of the scheduling engine.

Sessions are persisted as camelCase documents (see GameSession.to_record);
everything else in the engine works with these dataclasses.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Literal

from localdink.domain.notifications import NotificationPreferences

AttendeeSource = Literal["user", "player"]
RsvpStatus = Literal["PENDING", "CONFIRMED", "DECLINED", "CANCELLED", "WAITLIST", "EXPIRED"]
SessionStatus = Literal["open", "full", "cancelled", "completed"]

PENDING: RsvpStatus = "PENDING"
CONFIRMED: RsvpStatus = "CONFIRMED"
DECLINED: RsvpStatus = "DECLINED"
CANCELLED: RsvpStatus = "CANCELLED"
WAITLIST: RsvpStatus = "WAITLIST"
EXPIRED: RsvpStatus = "EXPIRED"

RSVP_STATUSES: tuple[str, ...] = (PENDING, CONFIRMED, DECLINED, CANCELLED, WAITLIST, EXPIRED)
SESSION_STATUSES: tuple[str, ...] = ("open", "full", "cancelled", "completed")

# Collection names in the record store
USERS = "users"
PLAYERS = "players"
COURTS = "courts"
GROUPS = "groups"
GAME_SESSIONS = "game-sessions"
NOTIFICATIONS = "notifications"
SMS_ATTEMPT_LOGS = "sms-attempt-logs"

SOURCE_COLLECTIONS: dict[str, str] = {"user": USERS, "player": PLAYERS}

DEFAULT_DURATION_MINUTES = 120


@dataclass(frozen=True)
class Attendee:
    """Reference to an invited participant: which collection, which record."""
    id: str
    source: AttendeeSource = "user"

    @property
    def key(self) -> str:
        return f"{self.source}:{self.id}"


@dataclass
class Player:
    """A profile from either the users or the players collection."""
    id: str
    first_name: str
    last_name: str = ""
    phone: str | None = None
    email: str | None = None
    is_current_user: bool = False
    source: AttendeeSource = "player"
    owner_id: str | None = None
    preferences: NotificationPreferences = field(default_factory=NotificationPreferences)

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def attendee(self) -> Attendee:
        return Attendee(self.id, self.source)

    @classmethod
    def from_record(cls, record_id: str, data: dict, source: AttendeeSource) -> "Player":
        first = data.get("firstName") or ""
        last = data.get("lastName") or ""
        if not first and data.get("name"):
            first, _, last = str(data["name"]).partition(" ")
        return cls(
            id=record_id,
            first_name=first,
            last_name=last,
            phone=data.get("phone") or data.get("phoneNumber"),
            email=data.get("email"),
            is_current_user=bool(data.get("isCurrentUser", False)),
            source=source,
            owner_id=data.get("ownerId"),
            preferences=NotificationPreferences.from_record(data.get("notificationPreferences")),
        )


@dataclass
class Court:
    id: str
    name: str
    location: str = ""
    owner_id: str | None = None

    @property
    def display_name(self) -> str:
        return f"{self.name} • {self.location}" if self.location else self.name

    @classmethod
    def from_record(cls, record_id: str, data: dict) -> "Court":
        return cls(
            id=record_id,
            name=data.get("name", ""),
            location=data.get("location", ""),
            owner_id=data.get("ownerId"),
        )


@dataclass
class Group:
    id: str
    name: str
    members: list[str] = field(default_factory=list)
    owner_id: str | None = None
    admins: list[str] = field(default_factory=list)

    @classmethod
    def from_record(cls, record_id: str, data: dict) -> "Group":
        return cls(
            id=record_id,
            name=data.get("name", ""),
            members=list(data.get("members") or []),
            owner_id=data.get("ownerId"),
            admins=list(data.get("admins") or []),
        )


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class GameSession:
    """
    The aggregate root: one scheduled game.

    `version` is the record-store version the session was read at; it is
    not part of the document and is used for conditional writes.
    """
    id: str
    court_id: str
    organizer_id: str
    start_time: datetime
    duration_minutes: int = DEFAULT_DURATION_MINUTES
    is_doubles: bool = True
    attendees: list[Attendee] = field(default_factory=list)
    player_statuses: dict[str, str] = field(default_factory=dict)
    alternates: list[str] = field(default_factory=list)
    min_players: int | None = None
    max_players: int | None = None
    status: SessionStatus = "open"
    court_name: str = ""
    court_location: str = ""
    start_time_display: str = ""
    group_ids: list[str] = field(default_factory=list)
    invites_sent_at: datetime | None = None
    game_full_notified_at: datetime | None = None
    last_reminder_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 0

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration_minutes)

    @property
    def player_ids(self) -> list[str]:
        return [a.id for a in self.attendees]

    def attendee_for(self, player_id: str) -> Attendee:
        for attendee in self.attendees:
            if attendee.id == player_id:
                return attendee
        return Attendee(player_id, "user")

    def players_with_status(self, *statuses: str) -> list[str]:
        return [pid for pid, s in self.player_statuses.items() if s in statuses]

    def to_record(self) -> dict:
        return {
            "courtId": self.court_id,
            "organizerId": self.organizer_id,
            "startTime": self.start_time.isoformat(),
            "durationMinutes": self.duration_minutes,
            "isDoubles": self.is_doubles,
            "attendees": [{"id": a.id, "source": a.source} for a in self.attendees],
            "playerIds": self.player_ids,
            "playerStatuses": dict(self.player_statuses),
            "alternates": list(self.alternates),
            "minPlayers": self.min_players,
            "maxPlayers": self.max_players,
            "status": self.status,
            "courtName": self.court_name,
            "courtLocation": self.court_location,
            "startTimeDisplay": self.start_time_display,
            "groupIds": list(self.group_ids),
            "invitesSentAt": _iso(self.invites_sent_at),
            "gameFullNotifiedAt": _iso(self.game_full_notified_at),
            "lastReminderAt": _iso(self.last_reminder_at),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    @classmethod
    def from_record(cls, record_id: str, data: dict, version: int = 0) -> "GameSession":
        return cls(
            id=record_id,
            court_id=data.get("courtId", ""),
            organizer_id=data.get("organizerId", ""),
            start_time=parse_timestamp(data["startTime"]),
            duration_minutes=int(data.get("durationMinutes") or DEFAULT_DURATION_MINUTES),
            is_doubles=bool(data.get("isDoubles", True)),
            attendees=[
                Attendee(a["id"], "player" if a.get("source") == "player" else "user")
                for a in data.get("attendees") or []
            ],
            player_statuses=dict(data.get("playerStatuses") or {}),
            alternates=list(data.get("alternates") or []),
            min_players=data.get("minPlayers"),
            max_players=data.get("maxPlayers"),
            status=data.get("status", "open"),
            court_name=data.get("courtName") or "",
            court_location=data.get("courtLocation") or "",
            start_time_display=data.get("startTimeDisplay") or "",
            group_ids=list(data.get("groupIds") or []),
            invites_sent_at=parse_timestamp(data.get("invitesSentAt")),
            game_full_notified_at=parse_timestamp(data.get("gameFullNotifiedAt")),
            last_reminder_at=parse_timestamp(data.get("lastReminderAt")),
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
            version=version,
        )


@dataclass(frozen=True)
class NotificationRecord:
    """Outcome of one notification attempt for one recipient on one channel."""
    recipient_id: str
    channel: Literal["sms", "in_app"]
    outcome: Literal["sent", "skipped"]
    reason: str | None = None
    phone: str | None = None
    delivery_id: str | None = None
