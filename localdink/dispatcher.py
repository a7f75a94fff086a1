"""
Notification fan-out over SMS and in-app channels.

Every recipient is accounted for exactly once per requested channel, as
either sent or skipped with a reason. One recipient's failure never
affects another's; only the record store being unavailable aborts a
batch.

Three phases per batch:
  1. resolve all profiles (concurrently)
  2. decide per recipient, in input order: preferences, phone
     normalization, duplicate numbers, transport configured
  3. deliver everything that survived, concurrently, at most
     `max_concurrency` at a time
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Sequence

from localdink.communication.phone import normalize_to_e164
from localdink.communication.ports import SmsTransport
from localdink.domain.models import NOTIFICATIONS, Attendee, NotificationRecord, Player
from localdink.domain.notifications import Notification
from localdink.domain.store import RecordStore, StoreUnavailableError
from localdink.profiles import ProfileDirectory

log = logging.getLogger(__name__)

SMS = "sms"
IN_APP = "in_app"
ALL_CHANNELS = (IN_APP, SMS)

# Skip reasons
NOT_FOUND = "Attendee record not found in users or players"
TYPE_DISABLED = "Notification type disabled in preferences"
CHANNEL_DISABLED = "Channel disabled in preferences"
NO_SMS_TEXT = "Notification has no SMS text"
NO_ACCOUNT = "No app account for in-app notifications"
INVALID_PHONE = "Missing or invalid phone number"
DUPLICATE_PHONE = "Duplicate phone number"
NOT_CONFIGURED = "SMS transport is not configured"


@dataclass
class DispatchReport:
    sent: list[NotificationRecord] = field(default_factory=list)
    skipped: list[NotificationRecord] = field(default_factory=list)

    def channel(self, channel: str) -> tuple[list[NotificationRecord], list[NotificationRecord]]:
        return (
            [r for r in self.sent if r.channel == channel],
            [r for r in self.skipped if r.channel == channel],
        )

    @property
    def sms_sent(self) -> list[NotificationRecord]:
        return self.channel(SMS)[0]

    @property
    def sms_skipped(self) -> list[NotificationRecord]:
        return self.channel(SMS)[1]

    def extend(self, other: "DispatchReport") -> None:
        self.sent.extend(other.sent)
        self.skipped.extend(other.skipped)


class NotificationDispatcher:

    def __init__(
        self,
        store: RecordStore,
        transport: SmsTransport,
        profiles: ProfileDirectory | None = None,
        max_concurrency: int = 8,
    ):
        self._store = store
        self._transport = transport
        self._profiles = profiles or ProfileDirectory(store)
        self._max_concurrency = max_concurrency

    async def dispatch(
        self,
        recipients: Sequence[Attendee | str],
        notification: Notification,
        channels: Sequence[str] = ALL_CHANNELS,
    ) -> DispatchReport:
        refs = [r if isinstance(r, Attendee) else Attendee(r, "user") for r in recipients]
        limit = asyncio.Semaphore(self._max_concurrency)

        async def bounded(coro: Awaitable):
            async with limit:
                return await coro

        # Phase 1: profiles
        profiles = await asyncio.gather(*(bounded(self._profiles.resolve(r)) for r in refs))

        # Phase 2: decide, in input order so duplicate detection is stable
        slots: list[NotificationRecord | None] = []
        jobs: list[tuple[int, Callable[[], Awaitable[NotificationRecord]]]] = []
        seen_phones: set[str] = set()
        configured = self._transport.is_configured()

        for ref, profile in zip(refs, profiles):
            personal = notification.personalize(profile.first_name) if profile else notification
            for channel in channels:
                skip = self._precheck(profile, notification, channel)
                phone = None
                if skip is None and channel == SMS:
                    phone = normalize_to_e164(profile.phone)
                    if phone is None:
                        skip = INVALID_PHONE
                    elif phone in seen_phones:
                        skip = DUPLICATE_PHONE
                    else:
                        seen_phones.add(phone)
                        if not configured:
                            skip = NOT_CONFIGURED

                if skip is not None:
                    log.info("notify type=%s to=%s channel=%s skipped: %s", notification.type, ref.id, channel, skip)
                    slots.append(NotificationRecord(ref.id, channel, "skipped", skip, phone=phone))
                    continue

                slots.append(None)
                if channel == SMS:
                    jobs.append((len(slots) - 1, self._sms_job(ref.id, phone, personal)))
                else:
                    jobs.append((len(slots) - 1, self._in_app_job(ref.id, personal)))

        # Phase 3: deliver
        results = await asyncio.gather(*(bounded(job()) for _, job in jobs))
        for (index, _), record in zip(jobs, results):
            slots[index] = record

        report = DispatchReport()
        for record in slots:
            (report.sent if record.outcome == "sent" else report.skipped).append(record)
        log.info(
            "notify type=%s recipients=%d sent=%d skipped=%d",
            notification.type, len(refs), len(report.sent), len(report.skipped),
        )
        return report

    @staticmethod
    def _precheck(profile: Player | None, notification: Notification, channel: str) -> str | None:
        if profile is None:
            return NOT_FOUND
        if not profile.preferences.allows(notification.type):
            return TYPE_DISABLED
        if channel == SMS:
            if not notification.sms_body:
                return NO_SMS_TEXT
            if not profile.preferences.channel_enabled("sms"):
                return CHANNEL_DISABLED
            return None
        if profile.source != "user":
            return NO_ACCOUNT
        if not profile.preferences.channel_enabled("inApp"):
            return CHANNEL_DISABLED
        return None

    def _sms_job(self, recipient_id: str, phone: str, notification: Notification):
        async def run() -> NotificationRecord:
            try:
                delivery_id = await self._transport.send(phone, notification.sms_body)
            except Exception as exc:
                log.warning("sms to=%s phone=%s failed: %s", recipient_id, phone, exc)
                return NotificationRecord(recipient_id, SMS, "skipped", str(exc) or type(exc).__name__, phone=phone)
            return NotificationRecord(recipient_id, SMS, "sent", phone=phone, delivery_id=delivery_id)
        return run

    def _in_app_job(self, recipient_id: str, notification: Notification):
        async def run() -> NotificationRecord:
            try:
                record = await self._store.create(NOTIFICATIONS, {
                    "userId": recipient_id,
                    "type": notification.type,
                    "title": notification.title,
                    "body": notification.body,
                    "data": notification.data,
                    "read": False,
                    "channels": ["inApp"],
                    "createdAt": datetime.now(timezone.utc).isoformat(),
                })
            except StoreUnavailableError:
                raise
            except Exception as exc:
                log.exception("in-app notification to=%s failed", recipient_id)
                return NotificationRecord(recipient_id, IN_APP, "skipped", str(exc) or type(exc).__name__)
            return NotificationRecord(recipient_id, IN_APP, "sent", delivery_id=record.id)
        return run
