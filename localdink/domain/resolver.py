"""
Name disambiguation for players, courts and groups.

`resolve` runs an ordered cascade of matching strategies; the first stage
that matches anything decides the result:

  1. exact        case-folded, whitespace-normalized full string
  2. cleaned      apostrophes, a leading "the" and court-ish suffixes removed
  3. containment  one cleaned name appears in the other as whole words
  4. prefix       one cleaned name is a character prefix of the other
  5. tokens       a query token of 3+ chars is a substring of the name

Failure is a value (NotFound / Ambiguous), never an exception.
"""

import re
from dataclasses import dataclass
from typing import Callable, Protocol, Sequence


class NamedEntity(Protocol):
    id: str

    @property
    def name(self) -> str: ...


@dataclass(frozen=True)
class Unique:
    entity: NamedEntity


@dataclass(frozen=True)
class Ambiguous:
    entities: tuple


@dataclass(frozen=True)
class NotFound:
    pass


Match = Unique | Ambiguous | NotFound

_APOSTROPHES = re.compile(r"['‘’`]")
_LEADING_THE = re.compile(r"^the\s+")
_SUFFIX = re.compile(r"\s+(?:courts?|tennis|center|park|club)$")

MIN_TOKEN_LENGTH = 3


def normalize_name(text: str) -> str:
    return " ".join(text.casefold().split())


def clean_for_matching(text: str) -> str:
    """
    Reduce a name to its distinctive part: "The Sunnyvale Tennis Center"
    becomes "sunnyvale". A name made only of stop words is kept as is.
    """
    base = _APOSTROPHES.sub("", normalize_name(text))
    cleaned = _LEADING_THE.sub("", base)
    while True:
        stripped = _SUFFIX.sub("", cleaned)
        if stripped == cleaned:
            break
        cleaned = stripped
    return cleaned.strip() or base


def _contains_words(haystack: str, needle: str) -> bool:
    return re.search(rf"(?:^|\s){re.escape(needle)}(?:\s|$)", haystack) is not None


def _distinct(entities: list) -> list:
    seen: set[str] = set()
    out = []
    for entity in entities:
        if entity.id not in seen:
            seen.add(entity.id)
            out.append(entity)
    return out


def _decide(matched: list) -> Match | None:
    matched = _distinct(matched)
    if not matched:
        return None
    if len(matched) == 1:
        return Unique(matched[0])
    return Ambiguous(tuple(matched))


def resolve(query: str, candidates: Sequence[NamedEntity]) -> Match:
    """Match a free-text name against candidates. Pure and deterministic."""
    exact = normalize_name(query)
    if not exact:
        return NotFound()
    cleaned = clean_for_matching(query)
    tokens = [t for t in cleaned.split() if len(t) >= MIN_TOKEN_LENGTH]

    named = [(c, normalize_name(c.name), clean_for_matching(c.name)) for c in candidates]

    stages: list[Callable[[str, str], bool]] = [
        lambda full, _: full == exact,
        lambda _, name: name == cleaned,
        lambda _, name: _contains_words(name, cleaned) or _contains_words(cleaned, name),
        lambda _, name: name.startswith(cleaned) or cleaned.startswith(name),
        lambda _, name: any(t in name for t in tokens),
    ]
    for stage in stages:
        result = _decide([c for c, full, name in named if name and stage(full, name)])
        if result is not None:
            return result
    return NotFound()


def resolve_player(query: str, players: Sequence) -> Match:
    """
    First-name-aware player lookup.

    A single-word query is compared with first names only, so "Alex" is
    Ambiguous when the roster has two Alexes. Longer queries go through
    the full cascade.
    """
    words = normalize_name(query).split()
    if not words:
        return NotFound()
    if len(words) == 1:
        first = _APOSTROPHES.sub("", words[0])
        matched = [
            p for p in players
            if _APOSTROPHES.sub("", normalize_name(p.first_name)) == first
        ]
        return _decide(matched) or NotFound()
    return resolve(query, players)


def disambiguation_question(query: str, match: Ambiguous) -> str:
    names = [e.name for e in match.entities]
    listed = ", ".join(names[:-1]) + f" or {names[-1]}" if len(names) > 1 else names[0]
    return f'I found more than one match for "{query}": {listed}. Which one did you mean?'
