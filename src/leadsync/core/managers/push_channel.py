"""PushChannel: session-scoped push invalidation channel.

One instance per client session, constructed at the composition root and
handed to consumers explicitly (or through `provide_channel`). It keeps a
single transport connection alive with bounded reconnection, exposes the
connection state as data and fans inbound events out to subscribers keyed by
`PushEventKind`.

Push events are hints only. Delivery is best effort, nothing is buffered
while disconnected, and consumers re-fetch authoritative data over REST.
"""

from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict

from leadsync.core.config import PushChannelConfig
from leadsync.core.exceptions import ChannelNotProvidedError
from leadsync.core.interfaces.push_transport import PushTransportPort
from leadsync.core.interfaces.retry import RetryPort
from leadsync.core.models.events import PushEvent, PushEventKind
from leadsync.core.settings import logger

EventHandler = Callable[[PushEvent], Union[None, Awaitable[None]]]
StateWatcher = Callable[["ChannelState"], None]


class ChannelState(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    connected: bool = False
    last_error: Optional[BaseException] = None


class Subscription:
    """Registration of one handler for one event kind.

    `unsubscribe()` is idempotent and removes exactly this registration, even
    when the same handler is registered more than once.
    """

    def __init__(self, channel: "PushChannel", kind: PushEventKind, handler: EventHandler):
        self._channel = channel
        self.kind = kind
        self.handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._channel._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.unsubscribe()


class SubscriptionGroup:
    """Several subscriptions torn down together."""

    def __init__(self, subscriptions: List[Subscription]):
        self._subscriptions = subscriptions

    @property
    def active(self) -> bool:
        return any(s.active for s in self._subscriptions)

    def unsubscribe(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()

    def __enter__(self) -> "SubscriptionGroup":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.unsubscribe()


class PushChannel:
    """Persistent push connection with subscriber fan-out.

    Attributes:
        config: Immutable connection and reconnection settings
    """

    def __init__(
        self,
        transport: PushTransportPort,
        config: Optional[PushChannelConfig] = None,
        retry_port: Optional[RetryPort] = None,
    ) -> None:
        self._transport = transport
        self.config = config or PushChannelConfig()
        self._retry = retry_port
        self._registry: Dict[PushEventKind, List[Subscription]] = defaultdict(list)
        self._watchers: List[StateWatcher] = []
        self._state = ChannelState()
        self._connect_task: Optional[asyncio.Task] = None
        self._closing = False
        self._dispatch_lock = asyncio.Lock()
        transport.bind(self)

    # ----------------- State -----------------
    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state.connected

    @property
    def last_error(self) -> Optional[BaseException]:
        return self._state.last_error

    def watch(self, watcher: StateWatcher) -> Callable[[], None]:
        """Call `watcher` with the new ChannelState on every state change.

        Returns a function removing the watcher.
        """
        self._watchers.append(watcher)

        def unwatch() -> None:
            if watcher in self._watchers:
                self._watchers.remove(watcher)

        return unwatch

    def _set_state(self, **changes: Any) -> None:
        new_state = self._state.model_copy(update=changes)
        if new_state == self._state:
            return
        self._state = new_state
        for watcher in list(self._watchers):
            try:
                watcher(new_state)
            except Exception as exc:
                logger.error(f"[channel:watch] watcher failed watcher={watcher!r} error={exc}")

    # ----------------- Transport callbacks -----------------
    def on_transport_connect(self) -> None:
        logger.info(f"[channel:connect] connected url={self.config.url}")
        self._set_state(connected=True, last_error=None)

    def on_transport_disconnect(self, reason: str) -> None:
        logger.info(f"[channel:disconnect] disconnected reason={reason}")
        self._set_state(connected=False)
        if not self._closing:
            self._schedule_reconnect()

    def on_transport_error(self, error: BaseException) -> None:
        logger.error(f"[channel:error] connection error url={self.config.url} error={error}")
        self._set_state(connected=False, last_error=error)

    async def on_transport_event(self, name: str, data: Any) -> None:
        await self.dispatch(name, data)

    # ----------------- Connection lifecycle -----------------
    async def connect(self) -> bool:
        """Open the connection, retrying with backoff.

        Returns True once connected and False after the attempts ran out (or
        the channel was closed meanwhile). Never raises on connection failure;
        the error is available as `last_error`.
        """
        if self.connected:
            return True
        self._closing = False
        if self._connect_task is None or self._connect_task.done():
            self._connect_task = asyncio.create_task(
                self._connect_with_retry(reconnect=False)
            )
        task = self._connect_task
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return False
            raise

    def _schedule_reconnect(self) -> None:
        if self._connect_task is not None and not self._connect_task.done():
            return
        logger.debug("[channel:reconnect] scheduling reconnect")
        self._connect_task = asyncio.create_task(self._connect_with_retry(reconnect=True))

    async def _connect_with_retry(self, reconnect: bool) -> bool:
        attempts = 0

        async def attempt() -> None:
            nonlocal attempts
            attempts += 1
            await self._transport.connect(self.config.url, self.config.transports)

        if reconnect:
            # A lost connection gets reconnection_attempts tries; the first
            # connect gets one extra for the initial attempt
            total = self.config.reconnection_attempts
            await asyncio.sleep(self.config.reconnection_delay)
        else:
            total = self.config.reconnection_attempts + 1

        if total < 1:
            logger.debug("[channel:reconnect] reconnection disabled")
            return False

        try:
            if self._retry:
                await self._retry.execute(
                    attempt,
                    attempts=total,
                    wait_initial=self.config.reconnection_delay,
                    wait_max=self.config.reconnection_delay_max,
                    exception_types=(Exception,),
                )
            else:
                await attempt()
        except Exception as exc:
            self._set_state(connected=False, last_error=exc)
            if reconnect:
                logger.error(
                    f"[channel:reconnect] reconnection failed - max attempts reached attempts={attempts}"
                )
            else:
                logger.error(
                    f"[channel:connect] giving up url={self.config.url} attempts={attempts} error={exc}"
                )
            return False

        if reconnect:
            logger.info(f"[channel:reconnect] reconnected after {attempts} attempts")
        self._set_state(connected=True, last_error=None)
        return True

    async def close(self) -> None:
        """Tear the connection down and drop every subscription."""
        self._closing = True
        task, self._connect_task = self._connect_task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        if self._transport.connected:
            try:
                await self._transport.disconnect()
            except Exception as exc:
                logger.warning(f"[channel:close] disconnect failed error={exc}")
        for subscriptions in list(self._registry.values()):
            for subscription in list(subscriptions):
                subscription.unsubscribe()
        self._registry.clear()
        self._set_state(connected=False)
        logger.debug("[channel:close] closed")

    # ----------------- Subscriptions -----------------
    def subscribe(self, kind: Union[PushEventKind, str], handler: EventHandler) -> Subscription:
        """Register `handler` for `kind`; raises ValueError for unknown event names."""
        event_kind = PushEventKind.lookup(str(kind))
        if event_kind is None:
            raise ValueError(f"Unknown push event kind: {kind!r}")
        subscription = Subscription(self, event_kind, handler)
        self._registry[event_kind].append(subscription)
        logger.debug(
            f"[channel:subscribe] kind={event_kind} subscribers={len(self._registry[event_kind])}"
        )
        return subscription

    def subscribe_many(self, handlers: Mapping[Union[PushEventKind, str], EventHandler]) -> SubscriptionGroup:
        subscriptions: List[Subscription] = []
        try:
            for kind, handler in handlers.items():
                subscriptions.append(self.subscribe(kind, handler))
        except ValueError:
            for subscription in subscriptions:
                subscription.unsubscribe()
            raise
        return SubscriptionGroup(subscriptions)

    def subscriber_count(self, kind: Union[PushEventKind, str]) -> int:
        event_kind = PushEventKind.lookup(str(kind))
        if event_kind is None:
            return 0
        return len(self._registry.get(event_kind, ()))

    def _remove(self, subscription: Subscription) -> None:
        subscriptions = self._registry.get(subscription.kind)
        if not subscriptions:
            return
        for index, registered in enumerate(subscriptions):
            if registered is subscription:
                del subscriptions[index]
                break

    async def dispatch(self, name: str, data: Any = None) -> int:
        """Deliver one inbound event to its subscribers, in receipt order.

        Returns the number of handlers invoked. Unknown event names are
        dropped.
        """
        event = PushEvent.parse(name, data)
        if event is None:
            logger.debug(f"[channel:dispatch] ignoring unknown event name={name}")
            return 0

        async with self._dispatch_lock:
            delivered = 0
            for subscription in list(self._registry.get(event.kind, ())):
                # Unsubscribed by an earlier handler of this same event
                if not subscription.active:
                    continue
                try:
                    result = subscription.handler(event)
                    if inspect.isawaitable(result):
                        await result
                    delivered += 1
                except Exception as exc:
                    logger.error(
                        f"[channel:dispatch] handler failed kind={event.kind} "
                        f"handler={subscription.handler!r} error={exc}"
                    )
            return delivered

    # ----------------- Emission -----------------
    async def emit(self, event: Union[PushEventKind, str], data: Any = None) -> bool:
        """Send an event to the server.

        Returns False without touching the transport while disconnected;
        nothing is queued for later delivery.
        """
        name = str(event)
        if not self.connected:
            logger.warning(f'[channel:emit] cannot emit "{name}" - not connected')
            return False
        try:
            await self._transport.emit(name, data)
        except Exception as exc:
            logger.warning(f'[channel:emit] emit "{name}" failed error={exc}')
            return False
        return True


# ----------------- Scoped access -----------------
_current_channel: ContextVar[Optional[PushChannel]] = ContextVar(
    "leadsync_push_channel", default=None
)


@contextmanager
def provide_channel(channel: PushChannel) -> Iterator[PushChannel]:
    """Make `channel` the current channel for code running inside the block."""
    token = _current_channel.set(channel)
    try:
        yield channel
    finally:
        _current_channel.reset(token)


def current_channel() -> PushChannel:
    channel = _current_channel.get()
    if channel is None:
        raise ChannelNotProvidedError(
            "current_channel() must be used within a provide_channel() scope"
        )
    return channel
