from abc import ABC, abstractmethod


class SmsDeliveryError(Exception):
    """The provider refused or failed to deliver a message."""


class SmsTransport(ABC):
    """
    Port: how text messages leave the system.

    The dispatcher depends ONLY on this interface and is handed one
    instance at construction. It doesn't know whether messages go through
    Twilio, get printed to the console, or are collected by a test.
    """

    @abstractmethod
    def is_configured(self) -> bool:
        """True when the transport has everything it needs to send."""
        ...

    @abstractmethod
    async def send(self, to: str, body: str) -> str:
        """
        Send one message to an E.164 number.
        Returns the provider's delivery id; raises SmsDeliveryError on failure.
        """
        ...
