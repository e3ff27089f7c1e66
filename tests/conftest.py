"""Shared fakes for channel and reconciler tests."""

import asyncio
from typing import Any, List, Optional, Sequence, Tuple

import pytest

from leadsync.core.interfaces.push_transport import PushTransportPort, TransportListener
from leadsync.core.models.job import JobSnapshot, ReconcileStatus


class FakeTransport(PushTransportPort):
    """In-memory transport: fails the first `fail_times` connects, records emits."""

    def __init__(self, fail_times: int = 0):
        self.listener: Optional[TransportListener] = None
        self.fail_times = fail_times
        self.connect_calls = 0
        self.last_transports: List[str] = []
        self.emitted: List[Tuple[str, Any]] = []
        self._connected = False

    def bind(self, listener: TransportListener) -> None:
        self.listener = listener

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self, url: str, transports: Sequence[str]) -> None:
        self.connect_calls += 1
        self.last_transports = list(transports)
        if self.connect_calls <= self.fail_times:
            error = ConnectionError(f"refused attempt={self.connect_calls}")
            self.listener.on_transport_error(error)
            raise error
        self._connected = True
        self.listener.on_transport_connect()

    async def disconnect(self) -> None:
        self._connected = False
        self.listener.on_transport_disconnect("io client disconnect")

    async def emit(self, name: str, data: Any = None) -> None:
        self.emitted.append((name, data))

    def drop(self) -> None:
        """Simulate the server going away."""
        self._connected = False
        self.listener.on_transport_disconnect("transport close")

    async def push(self, name: str, data: Any = None) -> None:
        await self.listener.on_transport_event(name, data)


class RecordingObserver:
    """Collects every status change and finish notification."""

    def __init__(self):
        self.changes: List[ReconcileStatus] = []
        self.finished: List[Tuple[ReconcileStatus, Optional[JobSnapshot]]] = []

    async def on_status_changed(self, old_status, new_status) -> None:
        self.changes.append(new_status)

    async def on_job_finished(self, final_status, snapshot) -> None:
        self.finished.append((final_status, snapshot))


async def eventually(predicate, timeout: float = 1.0, step: float = 0.005) -> None:
    """Wait until `predicate()` holds or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(step)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def recording_observer():
    return RecordingObserver()


@pytest.fixture
def wait_until():
    return eventually
