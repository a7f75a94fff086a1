"""
Contract tests for any SmsTransport implementation.

The contract defines the behavioral guarantees:
- A configured transport reports itself as configured
- A successful send returns a non-empty delivery id
- Two sends return two different delivery ids
"""

from abc import ABC, abstractmethod

import pytest

from localdink.communication.ports import SmsTransport


class SmsTransportContract(ABC):

    @abstractmethod
    def create_transport(self) -> SmsTransport:
        ...

    @abstractmethod
    def recipient(self) -> str:
        """An E.164 number the transport may deliver to."""
        ...

    def test_is_configured(self):
        assert self.create_transport().is_configured() is True

    @pytest.mark.asyncio
    async def test_send_returns_delivery_id(self):
        transport = self.create_transport()
        delivery_id = await transport.send(self.recipient(), "LocalDink contract test: hello")
        assert isinstance(delivery_id, str)
        assert delivery_id

    @pytest.mark.asyncio
    async def test_delivery_ids_are_unique(self):
        transport = self.create_transport()
        first = await transport.send(self.recipient(), "LocalDink contract test: one")
        second = await transport.send(self.recipient(), "LocalDink contract test: two")
        assert first != second
