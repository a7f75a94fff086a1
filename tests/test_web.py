"""
HTTP layer: Twilio webhook (signature, TwiML), session creation API and
the chat endpoint. FastAPI TestClient over simulators, no network.
"""

import asyncio
import xml.etree.ElementTree as ET

import pytest
from fastapi.testclient import TestClient
from twilio.request_validator import RequestValidator

from localdink.adapters.simulator_classifier import SimulatorReplyClassifier
from localdink.adapters.simulator_extractor import SimulatorIntentExtractor
from localdink.assistant import SchedulingAssistant
from localdink.classifier import CLARIFICATION_PROMPT, SmsIntentClassifier
from localdink.domain.models import CONFIRMED
from localdink.extraction import ExtractionPipeline
from localdink.inbound import UNKNOWN_NUMBER, InboundSmsHandler
from localdink.rsvp_service import ACCEPTED
from localdink.web import TRY_AGAIN, create_app, twiml
from tests.builders import NOW, ORGANIZER, PHONES, START, build_services, game_request, seed_club

AUTH_TOKEN = "test-auth-token"
BASE_URL = "https://localdink.example"
WEBHOOK = "/api/sms/inbound"


@pytest.fixture
def services():
    s = build_services()
    asyncio.run(seed_club(s.store))
    return s


def _app(services, **kwargs):
    handler = InboundSmsHandler(
        services.profiles, services.sessions, services.rsvp, SmsIntentClassifier(SimulatorReplyClassifier())
    )
    assistant = SchedulingAssistant(
        services.store, ExtractionPipeline(None), services.sessions, services.profiles, clock=lambda: NOW
    )
    return create_app(handler, services.sessions, assistant, **kwargs)


@pytest.fixture
def dev_client(services):
    return TestClient(_app(services, dev_mode=True))


@pytest.fixture
def signed_client(services):
    return TestClient(_app(services, auth_token=AUTH_TOKEN, public_base_url=BASE_URL))


def _sign(params: dict) -> str:
    return RequestValidator(AUTH_TOKEN).compute_signature(BASE_URL + WEBHOOK, params)


def _reply_text(resp) -> str:
    root = ET.fromstring(resp.content)
    assert root.tag == "Response"
    return root.find("Message").text


def test_twiml_escapes_markup():
    resp = twiml("Tom & Jerry's <game>")
    assert b"Tom &amp; Jerry's &lt;game&gt;" in resp.body
    assert resp.body.startswith(b'<?xml version="1.0" encoding="UTF-8"?><Response><Message>')
    assert ET.fromstring(resp.body).find("Message").text == "Tom & Jerry's <game>"


def test_health(dev_client):
    assert dev_client.get("/health").json() == {"status": "ok"}


def test_webhook_probe(dev_client, signed_client):
    assert dev_client.get(WEBHOOK).json() == {"status": "ready", "signatureRequired": False}
    assert signed_client.get(WEBHOOK).json()["signatureRequired"] is True


# ---------------------------------------------------------------------------
# Inbound SMS webhook
# ---------------------------------------------------------------------------


def test_inbound_reply_is_twiml(services, dev_client):
    session = asyncio.run(services.sessions.create_session(game_request())).session

    resp = dev_client.post(WEBHOOK, data={"From": PHONES["p1"], "Body": "YES"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/xml")
    assert _reply_text(resp) == ACCEPTED
    stored = asyncio.run(services.sessions.get(session.id))
    assert stored.player_statuses["p1"] == CONFIRMED


def test_inbound_unknown_number(dev_client):
    resp = dev_client.post(WEBHOOK, data={"From": "+19995550000", "Body": "yes"})
    assert _reply_text(resp) == UNKNOWN_NUMBER


def test_inbound_missing_fields(dev_client):
    assert dev_client.post(WEBHOOK, data={"From": PHONES["p1"]}).status_code == 400
    assert dev_client.post(WEBHOOK, data={"Body": "yes"}).status_code == 400


def test_inbound_store_outage_asks_to_retry(services, dev_client):
    services.store.available = False
    resp = dev_client.post(WEBHOOK, data={"From": PHONES["p1"], "Body": "yes"})
    assert resp.status_code == 200
    assert _reply_text(resp) == TRY_AGAIN


def test_signed_request_accepted(signed_client):
    params = {"From": PHONES["p1"], "Body": "yes"}
    resp = signed_client.post(WEBHOOK, data=params, headers={"X-Twilio-Signature": _sign(params)})
    assert resp.status_code == 200
    assert "<Message>" in resp.text


def test_bad_signature_rejected(signed_client):
    params = {"From": PHONES["p1"], "Body": "yes"}
    forged = _sign({"From": PHONES["p2"], "Body": "yes"})
    assert signed_client.post(WEBHOOK, data=params, headers={"X-Twilio-Signature": forged}).status_code == 403


def test_missing_signature_rejected(signed_client):
    assert signed_client.post(WEBHOOK, data={"From": PHONES["p1"], "Body": "yes"}).status_code == 403


def test_no_auth_token_outside_dev_mode_rejects_everything(services):
    client = TestClient(_app(services))
    params = {"From": PHONES["p1"], "Body": "yes"}
    resp = client.post(WEBHOOK, data=params, headers={"X-Twilio-Signature": _sign(params)})
    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Session creation API
# ---------------------------------------------------------------------------


def _payload(**overrides) -> dict:
    payload = {
        "courtId": "c1",
        "organizerId": ORGANIZER,
        "startTime": "2026-03-06T21:00:00Z",
        "isDoubles": True,
        "attendees": [{"id": "p1", "source": "player"}, {"id": "p2", "source": "player"}],
    }
    payload.update(overrides)
    return payload


def test_create_game_session(services, dev_client):
    resp = dev_client.post("/api/game-sessions", json=_payload())

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["notifiedCount"] == 2
    assert [p["playerId"] for p in body["notifiedPlayers"]] == ["p1", "p2"]
    assert body["notifiedPlayers"][0]["phone"] == PHONES["p1"]
    assert body["skippedPlayers"] == []

    session = asyncio.run(services.sessions.get(body["sessionId"]))
    assert session.start_time == START


def test_create_reports_skipped_players(services, dev_client):
    services.transport.fail_numbers.add(PHONES["p2"])
    body = dev_client.post("/api/game-sessions", json=_payload()).json()
    assert body["notifiedCount"] == 1
    assert body["skippedPlayers"][0]["playerId"] == "p2"


def test_create_rejects_missing_fields(dev_client):
    resp = dev_client.post("/api/game-sessions", json={"organizerId": ORGANIZER})
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "Invalid game session payload"
    assert any(d.startswith("courtId") for d in body["details"])


def test_create_rejects_bad_start_time(dev_client):
    resp = dev_client.post("/api/game-sessions", json=_payload(startTime="next friday"))
    assert resp.status_code == 400
    assert "startTime" in resp.json()["details"][0]


def test_create_rejects_unknown_status(dev_client):
    resp = dev_client.post("/api/game-sessions", json=_payload(playerStatuses={"p1": "MAYBE"}))
    assert resp.status_code == 400
    assert resp.json()["details"] == ["unknown player statuses: MAYBE"]


@pytest.mark.parametrize("attendee", [
    {"id": "p1", "source": "robot"},
    {"id": "", "source": "player"},
    {"id": "  ", "source": "player"},
    {"nope": 1},
    42,
    "player:p2",
])
def test_create_rejects_malformed_attendees(services, dev_client, attendee):
    resp = dev_client.post("/api/game-sessions", json=_payload(attendees=[{"id": "p1", "source": "player"}, attendee]))
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "Invalid game session payload"
    assert all(d.startswith("attendees.1") for d in body["details"])
    assert services.transport.sent == []


def test_create_rejects_unknown_session_status(dev_client):
    resp = dev_client.post("/api/game-sessions", json=_payload(status="archived"))
    assert resp.status_code == 400
    assert resp.json()["details"][0].startswith("status")


def test_create_rejects_closed_initial_status(services, dev_client):
    resp = dev_client.post("/api/game-sessions", json=_payload(status="cancelled"))
    assert resp.status_code == 400
    assert resp.json()["details"] == ["status must be open or full for a new game, got 'cancelled'"]
    assert services.transport.sent == []


def test_create_rejects_empty_player_id(dev_client):
    resp = dev_client.post("/api/game-sessions", json=_payload(playerIds=["p3", ""]))
    assert resp.status_code == 400
    assert resp.json()["details"][0].startswith("playerIds.1")


def test_create_rejects_non_json(dev_client):
    resp = dev_client.post("/api/game-sessions", content=b"not json", headers={"content-type": "application/json"})
    assert resp.status_code == 400


def test_create_during_store_outage(services, dev_client):
    services.store.available = False
    resp = dev_client.post("/api/game-sessions", json=_payload())
    assert resp.status_code == 503
    assert resp.json() == {"success": False, "error": TRY_AGAIN}


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


def test_chat_round_trip(services, dev_client):
    first = dev_client.post("/api/chat", json={
        "organizerId": ORGANIZER, "message": "Schedule a game with Alex tomorrow at 4pm at Sunnyvale Park",
    }).json()
    assert first["success"] is True
    assert first["reply"].startswith("Great!")
    assert first["sessionId"] is None

    done = dev_client.post("/api/chat", json={"organizerId": ORGANIZER, "message": "yes"}).json()
    assert done["sessionId"]
    assert services.transport.messages_to(PHONES["p1"])


def test_chat_rejects_empty_message(dev_client):
    assert dev_client.post("/api/chat", json={"organizerId": ORGANIZER, "message": ""}).status_code == 400


def test_chat_disabled(services):
    handler = InboundSmsHandler(services.profiles, services.sessions, services.rsvp, SmsIntentClassifier(None))
    client = TestClient(create_app(handler, services.sessions, dev_mode=True))
    assert client.post("/api/chat", json={"organizerId": ORGANIZER, "message": "hi"}).status_code == 404


def test_crashing_ai_adapters_fall_back(services):
    handler = InboundSmsHandler(
        services.profiles, services.sessions, services.rsvp,
        SmsIntentClassifier(SimulatorReplyClassifier(fail_with=IndexError("list index out of range"))),
    )
    assistant = SchedulingAssistant(
        services.store,
        ExtractionPipeline(SimulatorIntentExtractor(fail_with=TypeError("'int' object is not iterable"))),
        services.sessions,
        services.profiles,
        clock=lambda: NOW,
    )
    client = TestClient(create_app(handler, services.sessions, assistant, dev_mode=True))

    sms = client.post(WEBHOOK, data={"From": PHONES["p1"], "Body": "hmm what time again?"})
    assert sms.status_code == 200
    assert _reply_text(sms) == CLARIFICATION_PROMPT

    chat = client.post("/api/chat", json={
        "organizerId": ORGANIZER, "message": "Schedule a game with Alex tomorrow at 4pm at Sunnyvale Park",
    })
    assert chat.status_code == 200
    assert chat.json()["reply"].startswith("Great!")
