# leadsync/adapters/socketio_transport.py
from typing import Any, Optional, Sequence

import socketio

from leadsync.core.interfaces.push_transport import PushTransportPort, TransportListener
from leadsync.core.settings import logger


class SocketIOTransportAdapter(PushTransportPort):
    """python-socketio AsyncClient behind the push transport port.

    Built-in reconnection is switched off: PushChannel applies its own
    bounded backoff so the policy is the same for every transport.
    """

    def __init__(self, client: Optional[socketio.AsyncClient] = None, wait_timeout: float = 5.0):
        self._sio = client or socketio.AsyncClient(
            reconnection=False,
            logger=False,
            engineio_logger=False,
        )
        self._wait_timeout = wait_timeout
        self._listener: Optional[TransportListener] = None
        self._sio.on("connect", self._handle_connect)
        self._sio.on("disconnect", self._handle_disconnect)
        self._sio.on("connect_error", self._handle_connect_error)
        # Catch-all: every application event goes through the listener
        self._sio.on("*", self._handle_event)

    def bind(self, listener: TransportListener) -> None:
        self._listener = listener

    @property
    def connected(self) -> bool:
        return bool(self._sio.connected)

    async def connect(self, url: str, transports: Sequence[str]) -> None:
        logger.debug(f"[transport:socketio] connecting url={url} transports={list(transports)}")
        await self._sio.connect(
            url,
            transports=list(transports),
            wait_timeout=self._wait_timeout,
        )

    async def disconnect(self) -> None:
        await self._sio.disconnect()

    async def emit(self, name: str, data: Any = None) -> None:
        await self._sio.emit(name, data)

    async def _handle_connect(self) -> None:
        logger.debug(f"[transport:socketio] connected sid={self._sio.sid}")
        if self._listener:
            self._listener.on_transport_connect()

    async def _handle_disconnect(self, reason: Any = None) -> None:
        if self._listener:
            self._listener.on_transport_disconnect(str(reason) if reason is not None else "transport close")

    async def _handle_connect_error(self, data: Any = None) -> None:
        if not self._listener:
            return
        if isinstance(data, BaseException):
            error = data
        else:
            message = data.get("message") if isinstance(data, dict) else data
            error = ConnectionError(str(message or "connection refused"))
        self._listener.on_transport_error(error)

    async def _handle_event(self, event: str, *args: Any) -> None:
        if not self._listener:
            return
        if not args:
            data = None
        elif len(args) == 1:
            data = args[0]
        else:
            data = list(args)
        await self._listener.on_transport_event(event, data)
