"""
HTTP server for the SMS webhook, session API and scheduling assistant.

Usage:
    source .env && python scripts/serve.py

Environment variables:
    ANTHROPIC_API_KEY       - Anthropic/Claude API key (optional; without it
                              only the deterministic rules run)
    LLM_MODEL               - model name (default: claude-haiku-4-5-20251001)
    LLM_TIMEOUT             - seconds to wait for the model (default: 10)
    SMS_CHANNEL             - "twilio" or "console" (default: twilio)
    TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER
    APP_ENV                 - "development" skips webhook signature checks
    PUBLIC_BASE_URL         - public URL of this app (signature check, links)
    DEFAULT_TIMEZONE        - organizer time zone (default: America/New_York)
    DB_PATH                 - SQLite database path (default: data/localdink.db)
    HOST, PORT              - bind address (default: 0.0.0.0:8000)
"""

import logging
import os
import sys

import uvicorn

# Make sure project root is on sys.path when run as a script
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from localdink.adapters.claude_classifier import ClaudeReplyClassifier
from localdink.adapters.claude_common import DEFAULT_MODEL
from localdink.adapters.claude_extractor import ClaudeIntentExtractor
from localdink.adapters.sqlite_store import SqliteRecordStore
from localdink.assistant import SchedulingAssistant
from localdink.classifier import SmsIntentClassifier
from localdink.communication.factory import create_sms_transport
from localdink.dispatcher import NotificationDispatcher
from localdink.domain.notifications import DEFAULT_APP_URL
from localdink.extraction import ExtractionPipeline
from localdink.inbound import InboundSmsHandler
from localdink.profiles import ProfileDirectory
from localdink.rsvp_service import RsvpService
from localdink.sessions import DEFAULT_TIMEZONE, SessionService
from localdink.web import create_app

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-7s  %(name)s  %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger(__name__)


def build_app():
    db_path = os.environ.get("DB_PATH", "data/localdink.db")
    os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
    dev_mode = os.environ.get("APP_ENV") == "development"
    public_url = os.environ.get("PUBLIC_BASE_URL")
    tz_name = os.environ.get("DEFAULT_TIMEZONE", DEFAULT_TIMEZONE)
    timeout = float(os.environ.get("LLM_TIMEOUT", "10"))

    api_key = os.environ.get("ANTHROPIC_API_KEY")
    model = os.environ.get("LLM_MODEL", DEFAULT_MODEL)
    if api_key:
        extractor = ClaudeIntentExtractor(api_key=api_key, model=model)
        reply_classifier = ClaudeReplyClassifier(api_key=api_key, model=model)
    else:
        log.warning("ANTHROPIC_API_KEY not set: running on deterministic rules only")
        extractor = reply_classifier = None

    store = SqliteRecordStore(db_path=db_path)
    profiles = ProfileDirectory(store)
    dispatcher = NotificationDispatcher(store, create_sms_transport(), profiles)
    app_url = public_url or DEFAULT_APP_URL
    sessions = SessionService(store, dispatcher, profiles, timezone_name=tz_name, app_url=app_url)
    rsvp = RsvpService(sessions.repository, dispatcher, profiles, app_url=app_url)
    handler = InboundSmsHandler(profiles, sessions, rsvp, SmsIntentClassifier(reply_classifier, timeout=timeout))
    assistant = SchedulingAssistant(
        store, ExtractionPipeline(extractor, timeout=timeout), sessions, profiles, timezone_name=tz_name
    )

    if not dev_mode and not os.environ.get("TWILIO_AUTH_TOKEN"):
        log.warning("TWILIO_AUTH_TOKEN not set: every inbound SMS will be rejected")
    return create_app(
        handler,
        sessions,
        assistant,
        auth_token=os.environ.get("TWILIO_AUTH_TOKEN"),
        dev_mode=dev_mode,
        public_base_url=public_url,
    )


if __name__ == "__main__":
    uvicorn.run(
        build_app(),
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
    )
