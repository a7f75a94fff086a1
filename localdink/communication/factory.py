import os

from .ports import SmsTransport


def create_sms_transport(channel: str | None = None) -> SmsTransport:
    """
    Factory: create the right adapter based on config.

    The channel can be passed explicitly or read from the SMS_CHANNEL env
    var. Defaults to "twilio"; a Twilio transport with missing credentials
    reports itself as not configured instead of failing here.
    """
    channel = channel or os.environ.get("SMS_CHANNEL", "twilio")

    if channel == "twilio":
        from .twilio_transport import TwilioSmsTransport

        return TwilioSmsTransport(
            account_sid=os.environ.get("TWILIO_ACCOUNT_SID"),
            auth_token=os.environ.get("TWILIO_AUTH_TOKEN"),
            from_number=os.environ.get("TWILIO_PHONE_NUMBER"),
        )

    if channel == "console":
        from .console_transport import ConsoleSmsTransport

        return ConsoleSmsTransport()

    raise ValueError(f"Unknown SMS channel: {channel!r}")
