"""
Periodic sweep over upcoming and running games.

Extracted from scripts/run.py so it can be imported and tested
without pulling in Twilio or Claude adapter dependencies.

Per session, in one pass:
  1. Less than two hours to go: remind still-PENDING players (once).
  2. Start time reached: expire PENDING and WAITLIST players.
  3. End time passed: mark the session completed.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from localdink.dispatcher import IN_APP, NotificationDispatcher
from localdink.domain import rsvp
from localdink.domain.models import PENDING, WAITLIST, GameSession
from localdink.domain.notifications import DEFAULT_APP_URL, render, session_link
from localdink.sessions import SessionRepository, match_type, utcnow

log = logging.getLogger(__name__)

REMINDER_WINDOW = timedelta(hours=2)


@dataclass
class SweepStats:
    reminded: int = 0
    expired: int = 0
    completed: int = 0
    errors: int = 0


async def sweep_once(
    repository: SessionRepository,
    dispatcher: NotificationDispatcher,
    now: datetime | None = None,
    app_url: str = DEFAULT_APP_URL,
) -> SweepStats:
    now = now or utcnow()
    stats = SweepStats()
    sessions = await repository.find(lambda d: d.get("status") in ("open", "full"))
    log.info("Sweep: %d active session(s)", len(sessions))

    for session in sessions:
        try:
            if now >= session.end_time:
                stats.completed += await _complete(repository, session)
            elif now >= session.start_time:
                stats.expired += await _expire(repository, dispatcher, session)
            elif session.start_time - now <= REMINDER_WINDOW and session.last_reminder_at is None:
                stats.reminded += await _remind(repository, dispatcher, session, now, app_url)
        except Exception as exc:
            stats.errors += 1
            log.error("Sweep error for session %s: %s", session.id, exc)

    log.info(
        "Sweep done: reminded=%d expired=%d completed=%d errors=%d",
        stats.reminded, stats.expired, stats.completed, stats.errors,
    )
    return stats


async def _remind(
    repository: SessionRepository,
    dispatcher: NotificationDispatcher,
    session: GameSession,
    now: datetime,
    app_url: str,
) -> int:
    # Claim the reminder before sending so two sweepers can't both send it
    def claim(current: GameSession):
        if current.last_reminder_at is not None:
            return None, False
        return replace(current, last_reminder_at=now), True

    session, claimed = await repository.apply(session.id, claim)
    if not claimed:
        return 0
    pending = session.players_with_status(PENDING)
    if not pending:
        return 0
    report = await dispatcher.dispatch(
        [session.attendee_for(p) for p in pending],
        render(
            "GAME_REMINDER", session.id,
            match_type=match_type(session), when=session.start_time_display,
            court_name=session.court_name, web_link=session_link(session.id, app_url),
        ),
    )
    log.info("session=%s reminder sent=%d skipped=%d", session.id, len(report.sent), len(report.skipped))
    return len(pending)


async def _expire(repository: SessionRepository, dispatcher: NotificationDispatcher, session: GameSession) -> int:
    def change(current: GameSession):
        expired = []
        for player_id in current.players_with_status(PENDING, WAITLIST):
            transition = rsvp.expire(current, player_id)
            current = transition.session
            expired.append(player_id)
        if not expired:
            return None, expired
        return replace(current, alternates=[]), expired

    session, expired = await repository.apply(session.id, change)
    if not expired:
        return 0
    await dispatcher.dispatch(
        [session.attendee_for(p) for p in expired],
        render("RSVP_EXPIRED", session.id, match_type=match_type(session), when=session.start_time_display),
        channels=(IN_APP,),
    )
    log.info("session=%s expired %d unanswered invite(s)", session.id, len(expired))
    return len(expired)


async def _complete(repository: SessionRepository, session: GameSession) -> int:
    def change(current: GameSession):
        if current.status not in ("open", "full"):
            return None, 0
        for player_id in current.players_with_status(PENDING, WAITLIST):
            current = rsvp.expire(current, player_id).session
        return replace(current, status="completed", alternates=[]), 1

    _, completed = await repository.apply(session.id, change)
    if completed:
        log.info("session=%s completed", session.id)
    return completed
