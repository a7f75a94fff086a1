"""
Deterministic extraction of scheduling fields.

Regex rules only: no I/O, no AI, always available. The current message is
scanned first and the earlier conversation fills whatever it didn't say,
so a follow-up like "4pm works" keeps the date and players given before.
"""

import calendar
import re
from datetime import date, timedelta
from typing import Sequence

from localdink.domain.intent import ME, PartialIntent
from localdink.domain.resolver import (
    Ambiguous,
    Unique,
    clean_for_matching,
    normalize_name,
    resolve,
    resolve_player,
)

SCHEDULING_KEYWORDS = re.compile(
    r"\b(schedule|book|set\s*up|organi[sz]e|plan|play|game|match|invite|reserve|dink)\b",
    re.IGNORECASE,
)

# -- dates -------------------------------------------------------------------

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_MONTH = (
    r"(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)
_SLASH_DATE = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{2}|\d{4}))?\b")
_MONTH_DAY = re.compile(r"\b" + _MONTH + r"\.?\s+(\d{1,2})(?:st|nd|rd|th)?\b(?:,?\s*(\d{4})\b)?", re.IGNORECASE)
_DAY_MONTH = re.compile(r"\b(\d{1,2})(?:st|nd|rd|th)?\s+(?:of\s+)?" + _MONTH + r"\b(?:,?\s*(\d{4})\b)?", re.IGNORECASE)
_TODAY = re.compile(r"\b(today|tonight|this\s+(?:morning|afternoon|evening))\b", re.IGNORECASE)
_TOMORROW = re.compile(r"\b(tomorrow|tmrw|tmr|tmrow|tomorow|2morrow|2mrw|2moro)\b", re.IGNORECASE)

# SMS shorthand included; "sat"/"sun"/"wed"/"mon" are left out as too common as words
_WEEKDAYS = {
    "monday": 0,
    "tuesday": 1, "tues": 1, "tue": 1,
    "wednesday": 2, "weds": 2,
    "thursday": 3, "thurs": 3, "thur": 3, "thu": 3,
    "friday": 4, "fri": 4,
    "saturday": 5,
    "sunday": 6,
}
_WEEKDAY = re.compile(r"\b(" + "|".join(sorted(_WEEKDAYS, key=len, reverse=True)) + r")\b", re.IGNORECASE)


def _safe_date(year: int, month: int, day: int) -> date | None:
    if not 1 <= month <= 12 or not 1 <= day <= calendar.monthrange(year, month)[1]:
        return None
    return date(year, month, day)


def _calendar_date(year: str | None, month: int, day: int, today: date) -> date | None:
    if year:
        y = int(year)
        return _safe_date(y + 2000 if y < 100 else y, month, day)
    found = _safe_date(today.year, month, day)
    if found is not None and found < today:
        found = _safe_date(today.year + 1, month, day)
    return found


def next_weekday(today: date, weekday: int) -> date:
    """Next occurrence of weekday; naming today means a week from today."""
    days_ahead = (weekday - today.weekday()) % 7 or 7
    return today + timedelta(days=days_ahead)


def extract_date(text: str, today: date) -> date | None:
    for m in _SLASH_DATE.finditer(text):
        found = _calendar_date(m.group(3), int(m.group(1)), int(m.group(2)), today)
        if found:
            return found
    for m in _MONTH_DAY.finditer(text):
        found = _calendar_date(m.group(3), _MONTHS[m.group(1)[:3].lower()], int(m.group(2)), today)
        if found:
            return found
    for m in _DAY_MONTH.finditer(text):
        found = _calendar_date(m.group(3), _MONTHS[m.group(2)[:3].lower()], int(m.group(1)), today)
        if found:
            return found
    if _TOMORROW.search(text):
        return today + timedelta(days=1)
    if _TODAY.search(text):
        return today
    m = _WEEKDAY.search(text)
    if m:
        return next_weekday(today, _WEEKDAYS[m.group(1).lower()])
    return None


# -- times -------------------------------------------------------------------

_CLOCK = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*([ap])\.?\s*m\b\.?", re.IGNORECASE)
_AT_HOUR = re.compile(r"\bat\s+(\d{1,2})(?::(\d{2}))?\b(?!\s*(?:/|:|\d|st\b|nd\b|rd\b|th\b))", re.IGNORECASE)
_NOON = re.compile(r"\bnoon\b", re.IGNORECASE)


def format_time(hour: int, minute: int, meridiem: str) -> str:
    return f"{hour}:{minute:02d} {meridiem}"


def extract_time(text: str) -> str | None:
    """
    Clock time as "H:MM AM/PM".

    A bare "at N" is read as afternoon for 1-9, morning for 10-11 and as
    a 24-hour clock for 13-23.
    """
    for m in _CLOCK.finditer(text):
        hour, minute = int(m.group(1)), int(m.group(2) or 0)
        if 1 <= hour <= 12 and minute < 60:
            return format_time(hour, minute, "AM" if m.group(3).lower() == "a" else "PM")
    if _NOON.search(text):
        return format_time(12, 0, "PM")
    for m in _AT_HOUR.finditer(text):
        hour, minute = int(m.group(1)), int(m.group(2) or 0)
        if minute >= 60:
            continue
        if 1 <= hour <= 9:
            return format_time(hour, minute, "PM")
        if hour in (10, 11):
            return format_time(hour, minute, "AM")
        if hour == 12:
            return format_time(12, minute, "PM")
        if 13 <= hour <= 23:
            return format_time(hour - 12, minute, "PM")
    return None


# -- locations ---------------------------------------------------------------

_AT_PHRASE = re.compile(
    r"\bat\s+(?:the\s+)?([a-z][\w'’&-]*(?:\s+[a-z][\w'’&-]*){0,4}?)"
    r"(?=\s+(?:on|at|with|and|tomorrow|today|tonight|next|this|for|by|around|from|in)\b|\s*[,.!?;]|\s*$)",
    re.IGNORECASE,
)
_NOT_PLACES = {"noon", "night", "home", "work", "lunch", "dinner", "all", "least", "once", "some point"}


def _contains_phrase(haystack: str, needle: str) -> bool:
    return bool(needle) and re.search(rf"(?<![\w]){re.escape(needle)}(?![\w])", haystack) is not None


def extract_location(text: str, courts: Sequence) -> tuple[str, str | None] | None:
    """
    Returns (location name, court id). The id is None when the place isn't
    one of the known courts; the caller offers to add it.
    """
    normalized = normalize_name(text)
    unquoted = clean_for_matching(text)

    full_hits = [c for c in courts if _contains_phrase(normalized, normalize_name(c.name))]
    if full_hits:
        court = max(full_hits, key=lambda c: len(c.name))
        return court.name, court.id

    cleaned_hits = [
        c for c in courts
        if len(clean_for_matching(c.name)) >= 3
        and _contains_phrase(unquoted, clean_for_matching(c.name))
    ]
    if len(cleaned_hits) == 1:
        return cleaned_hits[0].name, cleaned_hits[0].id

    for m in _AT_PHRASE.finditer(text):
        phrase = m.group(1).strip()
        if phrase.lower() in _NOT_PLACES:
            continue
        match = resolve(phrase, courts)
        if isinstance(match, Unique):
            return match.entity.name, match.entity.id
        return phrase.title() if phrase.islower() else phrase, None
    return None


# -- players -----------------------------------------------------------------

_WITH_REGION = re.compile(
    r"\bwith\s+(.+?)(?=\s+(?:at|on|tomorrow|today|tonight|next|this|for|in|around|from|@)\b|[.!?;]|$)",
    re.IGNORECASE,
)
_AND_NAME = re.compile(r"\band\s+([A-Za-z][A-Za-z'’-]+)")
_LIST_SPLIT = re.compile(r"\s*(?:,|&|\band\b)\s*", re.IGNORECASE)
_NOT_NAMES = {
    "me", "us", "you", "him", "her", "them", "everyone", "everybody", "anyone",
    "someone", "the", "my", "our", "friends", "group", "guys", "people", "players",
    "partner", "partners", "crew", "team", "a", "an",
}


def _name_from_piece(piece: str, players: Sequence) -> str | None:
    words = piece.split()
    if not words or words[0].lower() in _NOT_NAMES or not words[0][0].isalpha():
        return None
    if len(words) >= 2:
        match = resolve_player(" ".join(words[:2]), players)
        if isinstance(match, Unique):
            return match.entity.name
    match = resolve_player(words[0], players)
    if isinstance(match, Unique):
        return match.entity.name
    return words[0].capitalize()


def extract_players(text: str, players: Sequence) -> list[str]:
    """
    Names in order of appearance. Known players come back as full names;
    an ambiguous or unknown first name comes back as written, for the
    caller to disambiguate or add.
    """
    found: list[tuple[int, str]] = []
    normalized = normalize_name(text)

    for player in players:
        full = normalize_name(player.name)
        if " " in full:
            m = re.search(rf"(?<!\w){re.escape(full)}(?!\w)", normalized)
            if m:
                found.append((m.start(), player.name))

    for region in _WITH_REGION.finditer(text):
        offset = region.start(1)
        for piece in _LIST_SPLIT.split(region.group(1)):
            name = _name_from_piece(piece.strip(), players)
            if name:
                found.append((offset + region.group(1).find(piece), name))

    for m in _AND_NAME.finditer(text):
        match = resolve_player(m.group(1), players)
        if isinstance(match, Unique):
            found.append((m.start(1), match.entity.name))
        elif isinstance(match, Ambiguous):
            found.append((m.start(1), m.group(1).capitalize()))

    return _merge_names(name for _, name in sorted(found, key=lambda item: item[0]))


def _merge_names(candidates) -> list[str]:
    # "Alex" is redundant once "Alex Johnson" is in the list
    names: list[str] = []
    for name in candidates:
        key = name.lower()
        if any(n.lower() == key or n.lower().startswith(key + " ") for n in names):
            continue
        names = [n for n in names if not key.startswith(n.lower() + " ")]
        names.append(name)
    return names


# -- whole conversation ------------------------------------------------------

def extract_deterministic(
    conversation_text: str,
    current_message: str,
    players: Sequence,
    courts: Sequence,
    today: date,
) -> PartialIntent:
    texts = [current_message, conversation_text] if conversation_text else [current_message]

    found_date = next((d for d in (extract_date(t, today) for t in texts) if d), None)
    found_time = next((t for t in (extract_time(t) for t in texts) if t), None)
    found_location = next((loc for loc in (extract_location(t, courts) for t in texts) if loc), None)

    names = _merge_names(name for text in reversed(texts) for name in extract_players(text, players))
    if any(SCHEDULING_KEYWORDS.search(t) for t in texts):
        names.insert(0, ME)

    return PartialIntent(
        players=names,
        date=found_date.isoformat() if found_date else None,
        time=found_time,
        location=found_location[0] if found_location else None,
        court_id=found_location[1] if found_location else None,
    )
