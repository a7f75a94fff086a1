"""
RSVP state machine: pure transitions, no store.
"""

from datetime import datetime, timezone

from localdink.domain import rsvp
from localdink.domain.models import (
    CANCELLED,
    CONFIRMED,
    DECLINED,
    EXPIRED,
    PENDING,
    WAITLIST,
    Attendee,
    GameSession,
)


def _session(statuses: dict[str, str], organizer="org", is_doubles=True, status="open", **kw) -> GameSession:
    attendees = [Attendee(pid, "player") for pid in statuses if pid != organizer]
    session = GameSession(
        id="g1",
        court_id="c1",
        organizer_id=organizer,
        start_time=datetime(2026, 3, 6, 21, 0, tzinfo=timezone.utc),
        is_doubles=is_doubles,
        attendees=attendees,
        player_statuses={organizer: CONFIRMED, **statuses},
        status=status,
        **kw,
    )
    return rsvp.refresh_fullness(session)


# ---------------------------------------------------------------------------
# accept
# ---------------------------------------------------------------------------


def test_accept_confirms():
    t = rsvp.accept(_session({"a": PENDING, "b": PENDING}), "a")
    assert t.outcome == "confirmed"
    assert t.session.player_statuses["a"] == CONFIRMED
    assert t.session.status == "open"
    assert not t.became_full


def test_accept_at_capacity_minus_one_fills_the_game():
    session = _session({"a": CONFIRMED, "b": CONFIRMED, "c": PENDING, "d": PENDING})
    t = rsvp.accept(session, "c")
    assert t.outcome == "confirmed"
    assert t.became_full
    assert t.session.status == "full"


def test_accept_on_full_game_waitlists():
    session = _session({"a": CONFIRMED, "b": CONFIRMED, "c": CONFIRMED, "d": PENDING})
    assert session.status == "full"
    t = rsvp.accept(session, "d")
    assert t.outcome == "waitlisted"
    assert t.session.player_statuses["d"] == WAITLIST
    assert t.session.alternates == ["d"]
    assert rsvp.confirmed_count(t.session) == 4


def test_waitlisted_accept_again_keeps_place():
    session = rsvp.accept(_session({"a": CONFIRMED, "b": CONFIRMED, "c": CONFIRMED, "d": PENDING}), "d").session
    t = rsvp.accept(session, "d")
    assert t.outcome == "waitlisted"
    assert not t.changed


def test_waitlisted_player_promoted_when_spot_is_free():
    session = _session({"a": CONFIRMED, "b": CONFIRMED, "d": WAITLIST}, alternates=["d"])
    t = rsvp.accept(session, "d")
    assert t.outcome == "confirmed"
    assert t.session.alternates == []


def test_accept_twice():
    t = rsvp.accept(_session({"a": CONFIRMED}), "a")
    assert t.outcome == "already_confirmed"
    assert not t.changed


def test_accept_after_decline_is_closed():
    assert rsvp.accept(_session({"a": DECLINED}), "a").outcome == "closed"


def test_accept_by_stranger():
    assert rsvp.accept(_session({"a": PENDING}), "zz").outcome == "not_invited"


def test_accept_on_cancelled_game():
    assert rsvp.accept(_session({"a": PENDING}, status="cancelled"), "a").outcome == "closed"


def test_singles_capacity_is_two():
    session = _session({"a": PENDING, "b": PENDING}, is_doubles=False)
    first = rsvp.accept(session, "a")
    assert first.became_full
    assert rsvp.accept(first.session, "b").outcome == "waitlisted"


def test_confirmed_never_exceeds_capacity():
    session = _session({p: PENDING for p in "abcdef"})
    for pid in "abcdef":
        session = rsvp.accept(session, pid).session
        assert rsvp.confirmed_count(session) <= rsvp.capacity(session)
    assert session.players_with_status(WAITLIST) == ["d", "e", "f"]


def test_input_is_not_mutated():
    session = _session({"a": PENDING})
    rsvp.accept(session, "a")
    assert session.player_statuses["a"] == PENDING


# ---------------------------------------------------------------------------
# decline
# ---------------------------------------------------------------------------


def test_decline_pending():
    t = rsvp.decline(_session({"a": PENDING}), "a")
    assert t.outcome == "declined"
    assert t.session.player_statuses["a"] == DECLINED


def test_decline_leaves_waitlist():
    session = _session({"a": CONFIRMED, "b": CONFIRMED, "c": CONFIRMED, "d": WAITLIST}, alternates=["d"])
    t = rsvp.decline(session, "d")
    assert t.outcome == "declined"
    assert t.session.alternates == []
    assert t.session.status == "full"


def test_decline_twice():
    assert rsvp.decline(_session({"a": DECLINED}), "a").outcome == "already_declined"


def test_decline_when_confirmed_points_to_cancel():
    assert rsvp.decline(_session({"a": CONFIRMED}), "a").outcome == "not_confirmed"


def test_organizer_cannot_decline():
    assert rsvp.decline(_session({"a": PENDING}), "org").outcome == "organizer"


# ---------------------------------------------------------------------------
# cancel
# ---------------------------------------------------------------------------


def test_cancel_on_full_reopens():
    session = _session(
        {"a": CONFIRMED, "b": CONFIRMED, "c": CONFIRMED},
        game_full_notified_at=datetime(2026, 3, 5, tzinfo=timezone.utc),
    )
    assert session.status == "full"
    t = rsvp.cancel(session, "b")
    assert t.outcome == "cancelled"
    assert t.reopened
    assert t.session.status == "open"
    assert t.session.player_statuses["b"] == CANCELLED
    assert t.session.game_full_notified_at is None


def test_cancel_when_not_confirmed():
    assert rsvp.cancel(_session({"a": PENDING}), "a").outcome == "not_confirmed"


def test_organizer_cannot_cancel_as_player():
    assert rsvp.cancel(_session({"a": CONFIRMED}), "org").outcome == "organizer"


def test_cancelled_player_cannot_rejoin():
    session = rsvp.cancel(_session({"a": CONFIRMED}), "a").session
    assert rsvp.accept(session, "a").outcome == "closed"


# ---------------------------------------------------------------------------
# expire / promotion order
# ---------------------------------------------------------------------------


def test_expire_pending_and_waitlist_only():
    session = _session({"a": PENDING, "b": WAITLIST, "c": CONFIRMED}, alternates=["b"])
    session = rsvp.expire(session, "a").session
    session = rsvp.expire(session, "b").session
    assert session.player_statuses["a"] == EXPIRED
    assert session.player_statuses["b"] == EXPIRED
    assert rsvp.expire(session, "c").outcome == "closed"


def test_promotion_order_alternates_then_pending():
    session = _session(
        {"p1": PENDING, "w1": WAITLIST, "p2": PENDING, "w2": WAITLIST, "x": DECLINED},
        alternates=["w2", "w1"],
    )
    assert rsvp.promotion_order(session) == ["w2", "w1", "p1", "p2"]
