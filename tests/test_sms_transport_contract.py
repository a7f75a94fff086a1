"""
SmsTransport contract tests.

Runs the shared contract against:
  - ConsoleSmsTransport  (always, no credentials needed)
  - TwilioSmsTransport   (skipped without Twilio credentials and TWILIO_TEST_TO)
"""

import os

import pytest

from localdink.communication.console_transport import ConsoleSmsTransport
from localdink.communication.factory import create_sms_transport
from localdink.communication.ports import SmsDeliveryError
from localdink.communication.twilio_transport import TwilioSmsTransport
from tests.contracts.sms_transport_contract import SmsTransportContract


class TestConsoleSmsTransport(SmsTransportContract):

    def create_transport(self):
        return ConsoleSmsTransport(quiet=True)

    def recipient(self):
        return "+14085550100"

    @pytest.mark.asyncio
    async def test_failure_injection(self):
        transport = ConsoleSmsTransport(fail_numbers={"+14085550199"}, quiet=True)
        with pytest.raises(SmsDeliveryError):
            await transport.send("+14085550199", "hi")
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_messages_to(self):
        transport = ConsoleSmsTransport(quiet=True)
        await transport.send("+14085550100", "one")
        await transport.send("+14085550101", "other")
        await transport.send("+14085550100", "two")
        assert transport.messages_to("+14085550100") == ["one", "two"]


TWILIO_CREDS = all(
    os.environ.get(k)
    for k in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_PHONE_NUMBER", "TWILIO_TEST_TO")
)


@pytest.mark.skipif(not TWILIO_CREDS, reason="Twilio credentials / TWILIO_TEST_TO not set")
class TestTwilioSmsTransport(SmsTransportContract):

    def create_transport(self):
        return TwilioSmsTransport(
            os.environ["TWILIO_ACCOUNT_SID"],
            os.environ["TWILIO_AUTH_TOKEN"],
            os.environ["TWILIO_PHONE_NUMBER"],
        )

    def recipient(self):
        return os.environ["TWILIO_TEST_TO"]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def test_twilio_without_credentials_is_not_configured():
    assert TwilioSmsTransport(None, None, None).is_configured() is False


@pytest.mark.asyncio
async def test_unconfigured_twilio_refuses_to_send():
    with pytest.raises(SmsDeliveryError):
        await TwilioSmsTransport(None, None, None).send("+14085550100", "hi")


def test_factory_console(monkeypatch):
    monkeypatch.setenv("SMS_CHANNEL", "console")
    assert isinstance(create_sms_transport(), ConsoleSmsTransport)


def test_factory_defaults_to_twilio(monkeypatch):
    monkeypatch.delenv("SMS_CHANNEL", raising=False)
    monkeypatch.delenv("TWILIO_ACCOUNT_SID", raising=False)
    transport = create_sms_transport()
    assert isinstance(transport, TwilioSmsTransport)
    assert transport.is_configured() is False


def test_factory_unknown_channel():
    with pytest.raises(ValueError):
        create_sms_transport("pigeon")
