from dataclasses import dataclass

from .ports import SmsDeliveryError, SmsTransport


@dataclass
class SentMessage:
    to: str
    body: str
    delivery_id: str


class ConsoleSmsTransport(SmsTransport):
    """Adapter: print to console, keep every message in memory. For dev/testing."""

    def __init__(self, configured: bool = True, fail_numbers: set[str] | None = None, quiet: bool = False):
        self.configured = configured
        self.fail_numbers = set(fail_numbers or ())
        self.sent: list[SentMessage] = []
        self._quiet = quiet

    def is_configured(self) -> bool:
        return self.configured

    async def send(self, to: str, body: str) -> str:
        if to in self.fail_numbers:
            raise SmsDeliveryError(f"Simulated delivery failure to {to}")

        delivery_id = f"console-{len(self.sent) + 1}"
        self.sent.append(SentMessage(to, body, delivery_id))

        if not self._quiet:
            print(f"\n{'=' * 60}")
            print(f"  SMS TO: {to}")
            print(f"  ID: {delivery_id}")
            print(f"{'=' * 60}")
            print(body)
            print(f"{'=' * 60}\n")

        return delivery_id

    def messages_to(self, to: str) -> list[str]:
        """Bodies sent to one number, oldest first."""
        return [m.body for m in self.sent if m.to == to]
