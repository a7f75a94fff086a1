"""
Attendee normalization.

Session payloads reference invitees in three shapes: a bare id
("abc123"), a prefixed string ("player:abc123") or an object
({"id": ..., "source": ...}; legacy payloads use playerId/uid/value for
the id and type/collection for the source). Everything is canonicalized
to Attendee and de-duplicated by (source, id).
"""

from collections.abc import Iterable, Mapping

from localdink.domain.models import Attendee

DEFAULT_SOURCE = "user"
_SOURCES = ("user", "player")
_ID_KEYS = ("id", "playerId", "uid", "value")


def _text(value) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _sanitize(attendee_id, source) -> Attendee | None:
    attendee_id = _text(attendee_id)
    if attendee_id is None:
        return None
    return Attendee(attendee_id, "player" if source == "player" else DEFAULT_SOURCE)


def parse_attendee_string(value: str) -> Attendee | None:
    trimmed = value.strip()
    if not trimmed:
        return None
    prefix, sep, rest = trimmed.partition(":")
    if sep and prefix in _SOURCES and rest.strip():
        return Attendee(rest.strip(), prefix)
    return Attendee(trimmed, DEFAULT_SOURCE)


def coerce_attendee(entry) -> Attendee | None:
    """Turn any supported shape into an Attendee, or None when unusable."""
    if not entry:
        return None
    if isinstance(entry, Attendee):
        return _sanitize(entry.id, entry.source)
    if isinstance(entry, str):
        return parse_attendee_string(entry)
    if isinstance(entry, Mapping):
        attendee_id = next((entry[k] for k in _ID_KEYS if _text(entry.get(k))), None)
        source = None
        if entry.get("source") in _SOURCES:
            source = entry["source"]
        elif entry.get("type") in _SOURCES:
            source = entry["type"]
        elif entry.get("collection") == "players":
            source = "player"
        return _sanitize(attendee_id, source)
    return None


def unique_attendees(attendees: Iterable[Attendee]) -> list[Attendee]:
    """De-duplicate by (source, id), keeping first-seen order."""
    seen: set[str] = set()
    out: list[Attendee] = []
    for attendee in attendees:
        if attendee.key not in seen:
            seen.add(attendee.key)
            out.append(attendee)
    return out


def normalize_attendees(raw_attendees: Iterable | None = None, raw_player_ids: Iterable | None = None) -> list[Attendee]:
    collected: list[Attendee] = []
    for entry in raw_attendees or ():
        attendee = coerce_attendee(entry)
        if attendee is not None:
            collected.append(attendee)
    for value in raw_player_ids or ():
        if isinstance(value, str):
            attendee = parse_attendee_string(value)
            if attendee is not None:
                collected.append(attendee)
    return unique_attendees(collected)


def partition_attendees(attendees: Iterable[Attendee]) -> tuple[set[str], set[str]]:
    """Split into (user ids, player ids)."""
    users: set[str] = set()
    players: set[str] = set()
    for attendee in attendees:
        (players if attendee.source == "player" else users).add(attendee.id)
    return users, players


def merge_attendees(base: Iterable[Attendee], additions: Iterable[Attendee]) -> list[Attendee]:
    return unique_attendees([*base, *additions])
