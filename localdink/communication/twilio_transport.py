"""
TwilioSmsTransport: sends text messages through the Twilio REST API.

The Twilio client is synchronous; sends run in a worker thread so a
batch of them can overlap.
"""

import asyncio
import logging

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from .ports import SmsDeliveryError, SmsTransport

log = logging.getLogger(__name__)


class TwilioSmsTransport(SmsTransport):

    def __init__(
        self,
        account_sid: str | None,
        auth_token: str | None,
        from_number: str | None,
    ):
        self._from = from_number
        self._client = Client(account_sid, auth_token) if account_sid and auth_token else None

    def is_configured(self) -> bool:
        return self._client is not None and bool(self._from)

    async def send(self, to: str, body: str) -> str:
        if not self.is_configured():
            raise SmsDeliveryError("Twilio is not configured")
        try:
            message = await asyncio.to_thread(
                self._client.messages.create, body=body, from_=self._from, to=to
            )
        except TwilioRestException as exc:
            log.warning("twilio send to=%s failed: code=%s %s", to, exc.code, exc.msg)
            raise SmsDeliveryError(exc.msg or str(exc)) from exc
        log.debug("twilio send to=%s sid=%s", to, message.sid)
        return message.sid
