"""
RSVP state machine: pure transitions over a GameSession.

    PENDING  -> CONFIRMED | DECLINED | WAITLIST | EXPIRED
    WAITLIST -> CONFIRMED | DECLINED | EXPIRED
    CONFIRMED -> CANCELLED

DECLINED, CANCELLED and EXPIRED are terminal for the session. The organizer
is always CONFIRMED. No function here mutates its input; every transition
returns a fresh session in its Transition, and persisting it is the
caller's job (see rsvp_service).
"""

from dataclasses import dataclass, replace
from typing import Literal

from localdink.domain.models import (
    CANCELLED,
    CONFIRMED,
    DECLINED,
    EXPIRED,
    PENDING,
    WAITLIST,
    GameSession,
)

Outcome = Literal[
    "confirmed",
    "already_confirmed",
    "waitlisted",
    "declined",
    "already_declined",
    "cancelled",
    "expired",
    "not_confirmed",
    "organizer",
    "not_invited",
    "closed",
]

# Outcomes that write a new session state
CHANGING_OUTCOMES = frozenset({"confirmed", "waitlisted", "declined", "cancelled", "expired"})

_TERMINAL = (DECLINED, CANCELLED, EXPIRED)


@dataclass(frozen=True)
class Transition:
    session: GameSession
    player_id: str
    outcome: Outcome
    previous: str | None = None
    became_full: bool = False
    reopened: bool = False

    @property
    def changed(self) -> bool:
        return self.outcome in CHANGING_OUTCOMES and self.session.player_statuses.get(self.player_id) != self.previous


def capacity(session: GameSession) -> int:
    if session.max_players:
        return session.max_players
    return 4 if session.is_doubles else 2


def minimum_players(session: GameSession) -> int:
    return session.min_players or capacity(session)


def confirmed_count(session: GameSession) -> int:
    return sum(1 for s in session.player_statuses.values() if s == CONFIRMED)


def is_full(session: GameSession) -> bool:
    return session.status == "full" or confirmed_count(session) >= capacity(session)


def _with_status(session: GameSession, player_id: str, status: str, **changes) -> GameSession:
    statuses = dict(session.player_statuses)
    statuses[player_id] = status
    alternates = [p for p in session.alternates if p != player_id]
    if status == WAITLIST:
        alternates.append(player_id)
    return replace(session, player_statuses=statuses, alternates=alternates, **changes)


def _guard(session: GameSession, player_id: str) -> Transition | None:
    if session.status in ("cancelled", "completed"):
        return Transition(session, player_id, "closed", session.player_statuses.get(player_id))
    if player_id not in session.player_statuses and player_id not in session.player_ids:
        return Transition(session, player_id, "not_invited")
    return None


def accept(session: GameSession, player_id: str) -> Transition:
    """
    Confirm a player, or waitlist them when the game is already full.

    A WAITLIST player accepting while a spot is free is promoted; while
    the game is still full they stay where they are in the alternates.
    """
    blocked = _guard(session, player_id)
    if blocked:
        return blocked
    previous = session.player_statuses.get(player_id, PENDING)
    if previous == CONFIRMED:
        return Transition(session, player_id, "already_confirmed", previous)
    if previous in _TERMINAL:
        return Transition(session, player_id, "closed", previous)

    if is_full(session):
        if previous == WAITLIST:
            return Transition(session, player_id, "waitlisted", previous)
        return Transition(_with_status(session, player_id, WAITLIST), player_id, "waitlisted", previous)

    updated = _with_status(session, player_id, CONFIRMED)
    became_full = confirmed_count(updated) >= capacity(updated)
    if became_full:
        updated = replace(updated, status="full")
    return Transition(updated, player_id, "confirmed", previous, became_full=became_full)


def decline(session: GameSession, player_id: str) -> Transition:
    """Decline an invite or leave the waitlist. Never touches fullness."""
    blocked = _guard(session, player_id)
    if blocked:
        return blocked
    previous = session.player_statuses.get(player_id, PENDING)
    if player_id == session.organizer_id:
        return Transition(session, player_id, "organizer", previous)
    if previous == DECLINED:
        return Transition(session, player_id, "already_declined", previous)
    if previous == CONFIRMED:
        return Transition(session, player_id, "not_confirmed", previous)
    if previous in _TERMINAL:
        return Transition(session, player_id, "closed", previous)
    return Transition(_with_status(session, player_id, DECLINED), player_id, "declined", previous)


def cancel(session: GameSession, player_id: str) -> Transition:
    """Drop out of a confirmed spot; a full game reopens."""
    blocked = _guard(session, player_id)
    if blocked:
        return blocked
    previous = session.player_statuses.get(player_id, PENDING)
    if player_id == session.organizer_id:
        return Transition(session, player_id, "organizer", previous)
    if previous != CONFIRMED:
        return Transition(session, player_id, "not_confirmed", previous)

    updated = _with_status(session, player_id, CANCELLED)
    reopened = session.status == "full" and confirmed_count(updated) < capacity(updated)
    if reopened:
        updated = replace(updated, status="open", game_full_notified_at=None)
    return Transition(updated, player_id, "cancelled", previous, reopened=reopened)


def expire(session: GameSession, player_id: str) -> Transition:
    """Time out an unanswered invite or waitlist spot."""
    previous = session.player_statuses.get(player_id)
    if previous not in (PENDING, WAITLIST):
        return Transition(session, player_id, "closed", previous)
    return Transition(_with_status(session, player_id, EXPIRED), player_id, "expired", previous)


def promotion_order(session: GameSession) -> list[str]:
    """Who gets offered an opened spot: alternates in order, then PENDING players."""
    order = [p for p in session.alternates if session.player_statuses.get(p) == WAITLIST]
    for player_id in session.player_ids:
        if session.player_statuses.get(player_id) == PENDING and player_id not in order:
            order.append(player_id)
    return order


def refresh_fullness(session: GameSession) -> GameSession:
    """Re-derive open/full after an edit that may have changed capacity."""
    if session.status not in ("open", "full"):
        return session
    status = "full" if confirmed_count(session) >= capacity(session) else "open"
    return replace(session, status=status)
