"""
Name resolution: players, courts and groups.

Pure functions, no fixtures beyond plain dataclasses.
"""

from localdink.domain.models import Court, Player
from localdink.domain.resolver import (
    Ambiguous,
    NotFound,
    Unique,
    clean_for_matching,
    disambiguation_question,
    resolve,
    resolve_player,
)

COURTS = [
    Court("c1", "Sunnyvale Park"),
    Court("c2", "Mitchell Park"),
    Court("c3", "The Los Altos Tennis Center"),
    Court("c4", "Rengstorff Park Courts"),
    Court("c5", "Mitchell Community Center"),
]

ROSTER = [
    Player("p1", "Alex", "Johnson"),
    Player("p2", "Alex", "Kim"),
    Player("p3", "Maria", "Garcia"),
    Player("p4", "Sam", "O'Neil"),
]


# ---------------------------------------------------------------------------
# clean_for_matching
# ---------------------------------------------------------------------------


def test_clean_strips_the_and_suffixes():
    assert clean_for_matching("The Los Altos Tennis Center") == "los altos"


def test_clean_strips_stacked_suffixes():
    assert clean_for_matching("Rengstorff Park Courts") == "rengstorff"


def test_clean_keeps_name_made_only_of_stop_words():
    assert clean_for_matching("Park") == "park"


def test_clean_drops_apostrophes():
    assert clean_for_matching("O’Neil's Club") == "oneils"


# ---------------------------------------------------------------------------
# resolve cascade
# ---------------------------------------------------------------------------


def test_exact_match():
    assert resolve("sunnyvale park", COURTS) == Unique(COURTS[0])


def test_cleaned_match():
    assert resolve("Los Altos", COURTS) == Unique(COURTS[2])


def test_containment_match():
    assert resolve("the courts at rengstorff", COURTS) == Unique(COURTS[3])


def test_prefix_match():
    assert resolve("Sunny", COURTS) == Unique(COURTS[0])


def test_token_match():
    assert resolve("altos hills", COURTS) == Unique(COURTS[2])


def test_shared_prefix_is_ambiguous():
    result = resolve("mitch", COURTS)
    assert isinstance(result, Ambiguous)
    assert [c.id for c in result.entities] == ["c2", "c5"]


def test_cleaned_equality_beats_prefix():
    assert resolve("Mitchell", COURTS) == Unique(COURTS[1])


def test_suffix_alone_finds_nothing():
    assert resolve("park", COURTS) == NotFound()


def test_no_match():
    assert resolve("Golden Gate", COURTS) == NotFound()


def test_empty_query():
    assert resolve("   ", COURTS) == NotFound()


def test_duplicates_by_id_collapse():
    doubled = COURTS + [Court("c1", "Sunnyvale Park")]
    assert resolve("Sunnyvale", doubled) == Unique(COURTS[0])


def test_resolution_is_idempotent():
    first = resolve("mitch", COURTS)
    second = resolve("mitch", COURTS)
    assert first == second


# ---------------------------------------------------------------------------
# resolve_player
# ---------------------------------------------------------------------------


def test_first_name_unique():
    assert resolve_player("maria", ROSTER) == Unique(ROSTER[2])


def test_first_name_ambiguous():
    result = resolve_player("Alex", ROSTER)
    assert isinstance(result, Ambiguous)
    assert [p.id for p in result.entities] == ["p1", "p2"]


def test_full_name_disambiguates():
    assert resolve_player("Alex Kim", ROSTER) == Unique(ROSTER[1])


def test_unknown_first_name():
    assert resolve_player("Jordan", ROSTER) == NotFound()


def test_disambiguation_question_lists_choices():
    question = disambiguation_question("Alex", resolve_player("Alex", ROSTER))
    assert question == 'I found more than one match for "Alex": Alex Johnson or Alex Kim. Which one did you mean?'
