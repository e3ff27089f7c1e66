"""Port for the persistent duplex connection behind the push channel.

The transport only moves frames. Reconnection policy, connection state and
subscriber fan-out live in `PushChannel`, which lets tests drive the channel
with an in-memory fake.
"""

from abc import ABC, abstractmethod
from typing import Any, Protocol, Sequence


class TransportListener(Protocol):
    """Callbacks a transport invokes on lifecycle changes and inbound frames."""

    def on_transport_connect(self) -> None:
        ...

    def on_transport_disconnect(self, reason: str) -> None:
        ...

    def on_transport_error(self, error: BaseException) -> None:
        ...

    async def on_transport_event(self, name: str, data: Any) -> None:
        ...


class PushTransportPort(ABC):
    @abstractmethod
    def bind(self, listener: TransportListener) -> None:
        """Register the single listener receiving lifecycle callbacks and frames."""
        pass

    @property
    @abstractmethod
    def connected(self) -> bool:
        pass

    @abstractmethod
    async def connect(self, url: str, transports: Sequence[str]) -> None:
        """Open the connection, trying transports in order.

        Raises on failure; the caller owns retries. Must not reconnect on its own.
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        pass

    @abstractmethod
    async def emit(self, name: str, data: Any = None) -> None:
        pass
