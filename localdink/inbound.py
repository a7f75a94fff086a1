"""
Inbound SMS replies: who is texting, what they want, which game it's about.

The handler always produces a reply text. Unknown numbers, unclear
messages and "nothing to answer" cases get canned guidance; only a store
outage escapes as an exception (the web layer turns it into a generic
"try again").
"""

import logging

from localdink.classifier import SmsIntentClassifier
from localdink.domain.models import GameSession, Player
from localdink.profiles import ProfileDirectory
from localdink.rsvp_service import RsvpService
from localdink.sessions import SessionService

log = logging.getLogger(__name__)

UNKNOWN_NUMBER = "I don't recognize this number. Please make sure your phone is registered in LocalDink."
NO_PENDING_TO_ACCEPT = "You don't have any pending game invites right now."
NO_PENDING_TO_DECLINE = "You don't have any pending game invites to decline."
NO_CONFIRMED_TO_CANCEL = "You don't have any confirmed games to cancel."
HELP = (
    "For help, check the LocalDink app or contact the game organizer. "
    "Reply YES to join a game or NO to decline."
)
DID_NOT_UNDERSTAND = (
    "I didn't understand. Reply YES to join a game, NO to decline, "
    "or CANCEL to back out of a confirmed game."
)


class InboundSmsHandler:

    def __init__(
        self,
        profiles: ProfileDirectory,
        sessions: SessionService,
        rsvp: RsvpService,
        classifier: SmsIntentClassifier,
    ):
        self._profiles = profiles
        self._sessions = sessions
        self._rsvp = rsvp
        self._classifier = classifier

    async def handle(self, from_number: str, body: str) -> str:
        people = await self._profiles.find_all_by_phone(from_number)
        if not people:
            log.info("inbound from=%s: unknown number", from_number)
            return UNKNOWN_NUMBER

        classification = await self._classifier.classify(body)
        log.info(
            "inbound from=%s player=%s intent=%s confidence=%s",
            from_number, people[0].id, classification.intent, classification.confidence,
        )

        if classification.intent == "accept":
            found = await self._find(people, self._sessions.find_pending_session_for_player)
            if found is None:
                return NO_PENDING_TO_ACCEPT
            session, player = found
            return (await self._rsvp.accept(session.id, player.id)).message

        if classification.intent == "decline":
            found = await self._find(people, self._sessions.find_pending_session_for_player)
            if found is None:
                return NO_PENDING_TO_DECLINE
            session, player = found
            return (await self._rsvp.decline(session.id, player.id)).message

        if classification.intent == "cancel":
            found = await self._find(people, self._sessions.find_confirmed_session_for_player)
            if found is None:
                return NO_CONFIRMED_TO_CANCEL
            session, player = found
            return (await self._rsvp.cancel(session.id, player.id)).message

        if classification.intent == "question":
            return HELP

        return classification.follow_up or DID_NOT_UNDERSTAND

    @staticmethod
    async def _find(people: list[Player], lookup) -> tuple[GameSession, Player] | None:
        """First profile (users before players) that has a matching game."""
        for player in people:
            session = await lookup(player.id)
            if session is not None:
                return session, player
        return None
