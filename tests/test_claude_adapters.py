"""
Claude adapters against a fake Anthropic client: malformed answers must
surface as ExtractionError, and the callers must fall back to the rules.

No network; the fake client returns whatever content blocks a test gives it.
"""

from datetime import date
from types import SimpleNamespace

import pytest

from localdink.adapters.claude_classifier import ClaudeReplyClassifier
from localdink.adapters.claude_common import ask_for_json
from localdink.adapters.claude_extractor import ClaudeIntentExtractor
from localdink.classifier import CLARIFICATION_PROMPT, SmsIntentClassifier
from localdink.domain.intent import ExtractionError
from localdink.domain.models import Court, Player
from localdink.extraction import ExtractionPipeline
from localdink.prompts import load_prompt

TODAY = date(2026, 3, 5)
ROSTER = [Player("u1", "Pat", "Organizer", is_current_user=True, source="user"), Player("p4", "Sam", "Lee")]
COURTS = [Court("c1", "Sunnyvale Park")]


def _text(body: str):
    return SimpleNamespace(type="text", text=body)


class _FakeMessages:
    def __init__(self, content):
        self.content = content
        self.requests: list[dict] = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        return SimpleNamespace(content=self.content)


class _FakeClient:
    def __init__(self, content):
        self.messages = _FakeMessages(content)


def _extractor(content) -> ClaudeIntentExtractor:
    extractor = ClaudeIntentExtractor(api_key="test-key")
    extractor._client = _FakeClient(content)
    return extractor


def _classifier(content) -> ClaudeReplyClassifier:
    classifier = ClaudeReplyClassifier(api_key="test-key")
    classifier._client = _FakeClient(content)
    return classifier


def test_prompts_load():
    assert "JSON" in load_prompt("extract_schedule")
    assert load_prompt("classify_reply")
    with pytest.raises(FileNotFoundError):
        load_prompt("missing")


# ---------------------------------------------------------------------------
# ask_for_json
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_fenced_json_is_parsed():
    client = _FakeClient([_text('```json\n{"intent": "accept"}\n```')])
    assert await ask_for_json(client, "m", "system", "hi") == {"intent": "accept"}


@pytest.mark.parametrize("content", [
    [],
    None,
    [SimpleNamespace(type="tool_use", id="x", name="t", input={})],
    [_text("not json at all")],
    [_text("[1, 2]")],
])
@pytest.mark.asyncio
async def test_unusable_answers_raise_extraction_error(content):
    with pytest.raises(ExtractionError):
        await ask_for_json(_FakeClient(content), "m", "system", "hi")


# ---------------------------------------------------------------------------
# ClaudeIntentExtractor
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_extractor_maps_fields():
    extractor = _extractor([_text(
        '{"players": ["me", "Sam", 7, " "], "date": "2026-03-06", "time": "4:00 PM", '
        '"location": null, "reply": "Sounds fun!"}'
    )])
    intent = await extractor.extract("", "game with Sam tomorrow at 4", ["Sam Lee"], ["Sunnyvale Park"], TODAY)
    assert intent.players == ["me", "Sam"]
    assert intent.date == "2026-03-06"
    assert intent.location is None
    assert intent.confirmation_text == "Sounds fun!"


@pytest.mark.asyncio
async def test_extractor_rejects_players_that_are_not_a_list():
    with pytest.raises(ExtractionError):
        await _extractor([_text('{"players": 5}')]).extract("", "hi", [], [], TODAY)


@pytest.mark.parametrize("content", [[_text('{"players": 5, "time": "6:00 PM"}')], []])
@pytest.mark.asyncio
async def test_pipeline_keeps_rules_when_claude_answers_garbage(content):
    pipeline = ExtractionPipeline(_extractor(content), timeout=1.0)
    outcome = await pipeline.extract("", "game tomorrow at 4pm with Sam", ROSTER, COURTS, TODAY)
    assert outcome.failure == "error"
    assert outcome.intent == outcome.deterministic
    assert outcome.intent.time == "4:00 PM"


# ---------------------------------------------------------------------------
# ClaudeReplyClassifier
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_classifier_maps_fields():
    classifier = _classifier([_text('{"intent": "decline", "confidence": "sure", "followUp": 3}')])
    result = await classifier.classify("probably not this week, sorry")
    assert result.intent == "decline"
    assert result.confidence == "low"
    assert result.follow_up is None


@pytest.mark.parametrize("content", [[], [_text('{"intent": "dance"}')], [_text("")]])
@pytest.mark.asyncio
async def test_sms_classifier_degrades_when_claude_answers_garbage(content):
    result = await SmsIntentClassifier(_classifier(content)).classify("hmm what time again?")
    assert result.intent == "unknown"
    assert result.follow_up == CLARIFICATION_PROMPT
