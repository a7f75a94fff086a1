"""
Local process runner for the LocalDink sweeper.

Every SWEEP_INTERVAL seconds: remind players who still owe an answer on
games starting within two hours, expire unanswered invites once a game
starts, and mark finished games completed.

Usage:
    source .env && python scripts/run.py

Environment variables:
    SMS_CHANNEL             - "twilio" or "console" (default: twilio)
    TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER
                            - required when SMS_CHANNEL=twilio
    SWEEP_INTERVAL          - seconds between sweeps (default: 300)
    DB_PATH                 - SQLite database path (default: data/localdink.db)
    PUBLIC_BASE_URL         - app URL used in links (default: https://localdink.app)
"""

import asyncio
import logging
import os
import sys

# Make sure project root is on sys.path when run as a script
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from localdink.adapters.sqlite_store import SqliteRecordStore
from localdink.communication.factory import create_sms_transport
from localdink.daemon import sweep_once
from localdink.dispatcher import NotificationDispatcher
from localdink.domain.notifications import DEFAULT_APP_URL
from localdink.sessions import SessionRepository

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-7s  %(name)s  %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger(__name__)


def _require_env(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        print(f"ERROR: environment variable {name!r} is not set.", file=sys.stderr)
        sys.exit(1)
    return value


async def main() -> None:
    if os.environ.get("SMS_CHANNEL", "twilio") == "twilio":
        for name in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_PHONE_NUMBER"):
            _require_env(name)
    interval = int(os.environ.get("SWEEP_INTERVAL", "300"))
    db_path = os.environ.get("DB_PATH", "data/localdink.db")
    os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
    app_url = os.environ.get("PUBLIC_BASE_URL", DEFAULT_APP_URL)

    store = SqliteRecordStore(db_path=db_path)
    dispatcher = NotificationDispatcher(store, create_sms_transport())
    repository = SessionRepository(store)

    log.info("Sweeper started: interval=%ds db=%s", interval, db_path)

    while True:
        try:
            await sweep_once(repository, dispatcher, app_url=app_url)
        except Exception as exc:
            log.error("Sweep failed: %s", exc)
        log.info("Sleeping %ds …", interval)
        await asyncio.sleep(interval)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        log.info("Sweeper stopped.")
