"""
RSVP actions: accept, decline, cancel.

Flow per action:
  1. Code: apply the pure transition (domain/rsvp.py) to a fresh read of
     the session and write it back conditionally; a lost race re-reads
     and re-decides, so the last open spot goes to exactly one player.
  2. Code: fan out the consequences (organizer notice, "game is full"
     broadcast, spot-opened offers) through the dispatcher.

The reply text for the acting player comes back in RsvpActionResult.
"""

import logging
from dataclasses import dataclass, field, replace

from localdink.dispatcher import DispatchReport, NotificationDispatcher
from localdink.domain import rsvp
from localdink.domain.models import CONFIRMED, DECLINED, PENDING, GameSession
from localdink.domain.notifications import DEFAULT_APP_URL, render, session_link
from localdink.profiles import ProfileDirectory
from localdink.sessions import SessionNotFoundError, SessionRepository, match_type, utcnow

log = logging.getLogger(__name__)

ACCEPTED_FULL = "You're in! 🎉 Game is now full - see you there!"
ACCEPTED = "You're in! ✅ We'll let you know when the game is confirmed."
ALREADY_CONFIRMED = "You're already confirmed for this game!"
WAITLISTED = "Game is full. You've been added to the waitlist - we'll let you know if a spot opens!"
DECLINED_REPLY = "No problem! Maybe next time. 👍"
ALREADY_DECLINED = "You've already passed on this game. No worries!"
CONFIRMED_USE_CANCEL = "You're confirmed for this game. Reply CANCEL if you can no longer make it."
CANCELLED_REPLY = "Got it - you're out of this game. We've notified the others."
NOT_CONFIRMED = "You're not currently confirmed for this game."
ORGANIZER_REPLY = "You're organizing this game. Cancel or edit it from the app instead."
NOT_INVITED = "You're not on the invite list for this game."
CLOSED = "This game is no longer taking RSVPs."
NOT_FOUND = "Game not found."

_REPLIES = {
    "already_confirmed": ALREADY_CONFIRMED,
    "waitlisted": WAITLISTED,
    "declined": DECLINED_REPLY,
    "already_declined": ALREADY_DECLINED,
    "cancelled": CANCELLED_REPLY,
    "organizer": ORGANIZER_REPLY,
    "not_invited": NOT_INVITED,
    "closed": CLOSED,
}

_FAILED_OUTCOMES = ("organizer", "not_invited", "closed", "not_confirmed")


@dataclass
class RsvpActionResult:
    success: bool
    message: str
    player_id: str = ""
    outcome: str | None = None
    session: GameSession | None = None
    report: DispatchReport = field(default_factory=DispatchReport)

    @property
    def new_status(self) -> str | None:
        if self.session is None:
            return None
        return self.session.player_statuses.get(self.player_id)

    @property
    def game_status(self) -> str | None:
        return self.session.status if self.session else None


class RsvpService:

    def __init__(
        self,
        repository: SessionRepository,
        dispatcher: NotificationDispatcher,
        profiles: ProfileDirectory,
        app_url: str = DEFAULT_APP_URL,
    ):
        self._sessions = repository
        self._dispatcher = dispatcher
        self._profiles = profiles
        self._app_url = app_url

    async def _transition(self, session_id: str, player_id: str, step) -> tuple[GameSession, rsvp.Transition]:
        def change(session: GameSession):
            transition = step(session, player_id)
            return (transition.session if transition.changed else None), transition

        return await self._sessions.apply(session_id, change)

    async def _player_name(self, session: GameSession, player_id: str) -> str:
        profile = await self._profiles.resolve(session.attendee_for(player_id))
        return profile.name if profile else "A player"

    def _result(self, player_id: str, transition: rsvp.Transition, session: GameSession, message: str) -> RsvpActionResult:
        success = transition.outcome not in _FAILED_OUTCOMES
        return RsvpActionResult(success, message, player_id, transition.outcome, session)

    # -- accept ----------------------------------------------------------------

    async def accept(self, session_id: str, player_id: str) -> RsvpActionResult:
        log.info("rsvp accept session=%s player=%s", session_id, player_id)
        try:
            session, transition = await self._transition(session_id, player_id, rsvp.accept)
        except SessionNotFoundError:
            return RsvpActionResult(False, NOT_FOUND)

        if transition.outcome != "confirmed":
            log.info("rsvp accept session=%s player=%s -> %s", session_id, player_id, transition.outcome)
            return self._result(player_id, transition, session, _REPLIES[transition.outcome])

        result = self._result(player_id, transition, session, ACCEPTED_FULL if transition.became_full else ACCEPTED)
        log.info(
            "rsvp accept session=%s player=%s confirmed=%d/%d full=%s",
            session_id, player_id, rsvp.confirmed_count(session), rsvp.capacity(session), transition.became_full,
        )

        if player_id != session.organizer_id:
            name = await self._player_name(session, player_id)
            result.report.extend(await self._dispatcher.dispatch(
                [session.attendee_for(session.organizer_id)],
                render(
                    "GAME_INVITE_ACCEPTED", session.id,
                    player_name=name, match_type=match_type(session), when=session.start_time_display,
                ),
            ))

        if transition.became_full:
            result.report.extend(await self.notify_game_full(session))
            session, _ = await self._sessions.apply(
                session.id, lambda s: (replace(s, game_full_notified_at=utcnow()), None)
            )
            result.session = session
        return result

    async def notify_game_full(self, session: GameSession) -> DispatchReport:
        confirmed = session.players_with_status(CONFIRMED)
        names = []
        for player_id in confirmed:
            profile = await self._profiles.resolve(session.attendee_for(player_id))
            if profile:
                names.append(profile.name)

        report = await self._dispatcher.dispatch(
            [session.attendee_for(p) for p in confirmed],
            render(
                "GAME_FULL", session.id,
                match_type=match_type(session), when=session.start_time_display,
                court_name=session.court_name, players=", ".join(names),
            ),
        )
        left_out = session.players_with_status(PENDING, DECLINED)
        if left_out:
            report.extend(await self._dispatcher.dispatch(
                [session.attendee_for(p) for p in left_out],
                render("GAME_FILLED", session.id, match_type=match_type(session), when=session.start_time_display),
            ))
        return report

    # -- decline ---------------------------------------------------------------

    async def decline(self, session_id: str, player_id: str) -> RsvpActionResult:
        log.info("rsvp decline session=%s player=%s", session_id, player_id)
        try:
            session, transition = await self._transition(session_id, player_id, rsvp.decline)
        except SessionNotFoundError:
            return RsvpActionResult(False, NOT_FOUND)

        if transition.outcome == "not_confirmed":
            return self._result(player_id, transition, session, CONFIRMED_USE_CANCEL)
        result = self._result(player_id, transition, session, _REPLIES[transition.outcome])
        if transition.outcome != "declined":
            return result

        name = await self._player_name(session, player_id)
        result.report.extend(await self._dispatcher.dispatch(
            [session.attendee_for(session.organizer_id)],
            render(
                "GAME_INVITE_DECLINED", session.id,
                player_name=name, match_type=match_type(session), when=session.start_time_display,
            ),
        ))
        return result

    # -- cancel ----------------------------------------------------------------

    async def cancel(self, session_id: str, player_id: str) -> RsvpActionResult:
        log.info("rsvp cancel session=%s player=%s", session_id, player_id)
        try:
            session, transition = await self._transition(session_id, player_id, rsvp.cancel)
        except SessionNotFoundError:
            return RsvpActionResult(False, NOT_FOUND)

        if transition.outcome == "not_confirmed":
            return self._result(player_id, transition, session, NOT_CONFIRMED)
        result = self._result(player_id, transition, session, _REPLIES[transition.outcome])
        if transition.outcome != "cancelled":
            return result

        log.info("rsvp cancel session=%s player=%s reopened=%s", session_id, player_id, transition.reopened)
        name = await self._player_name(session, player_id)
        others = [p for p in session.players_with_status(CONFIRMED) if p != player_id]
        result.report.extend(await self._dispatcher.dispatch(
            [session.attendee_for(p) for p in others],
            render(
                "PLAYER_CANCELLED", session.id,
                player_name=name, match_type=match_type(session), when=session.start_time_display,
            ),
        ))
        result.report.extend(await self.offer_spot(session))
        return result

    async def offer_spot(self, session: GameSession) -> DispatchReport:
        """
        Tell alternates (in waitlist order), then still-pending invitees,
        that a spot is open. It's an offer: whoever accepts first gets it.
        """
        order = rsvp.promotion_order(session)
        if not order or rsvp.is_full(session):
            return DispatchReport()
        log.info("session=%s spot opened, offering to %d player(s)", session.id, len(order))
        return await self._dispatcher.dispatch(
            [session.attendee_for(p) for p in order],
            render(
                "SPOT_AVAILABLE", session.id,
                match_type=match_type(session), when=session.start_time_display,
                court_name=session.court_name, web_link=session_link(session.id, self._app_url),
            ),
        )
