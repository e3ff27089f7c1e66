"""Concrete observers wiring push events and reconciliation side effects.

- RefreshOnPushObserver: push event -> immediate job status refetch
- CacheInvalidationObserver: push event -> refetch of cached views
- LoggingReconcileObserver: status transitions -> log lines
"""

import inspect
from typing import Any, Awaitable, Callable, Optional, Union

from leadsync.core.managers.push_channel import PushChannel, SubscriptionGroup
from leadsync.core.managers.reconciler import JobReconciler
from leadsync.core.models.events import INVALIDATION_TARGETS, JOB_REFRESH_EVENTS, PushEvent
from leadsync.core.models.job import JobSnapshot, ReconcileStatus
from leadsync.core.settings import logger

Invalidate = Callable[[str], Union[None, Awaitable[None]]]


class RefreshOnPushObserver:
    """Asks the reconciler for an early fetch when a job event is pushed.

    Polling stays the source of truth; this only shortens the time until the
    terminal snapshot is seen. Duplicate triggers are harmless.
    """

    def __init__(self, reconciler: JobReconciler, channel: PushChannel):
        self._reconciler = reconciler
        self._channel = channel
        self._subscriptions: Optional[SubscriptionGroup] = None

    @property
    def attached(self) -> bool:
        return self._subscriptions is not None and self._subscriptions.active

    def attach(self) -> "RefreshOnPushObserver":
        if self.attached:
            return self
        self._subscriptions = self._channel.subscribe_many(
            {kind: self._on_event for kind in sorted(JOB_REFRESH_EVENTS)}
        )
        return self

    def detach(self) -> None:
        if self._subscriptions is not None:
            self._subscriptions.unsubscribe()
            self._subscriptions = None

    def _on_event(self, event: PushEvent) -> None:
        if self._reconciler.request_refresh():
            logger.debug(f"[observer:refresh] refresh requested by kind={event.kind}")


class CacheInvalidationObserver:
    """Maps push events to cache keys and hands them to `invalidate`.

    Each key is invalidated once per event, in the order listed in
    INVALIDATION_TARGETS.
    """

    def __init__(self, channel: PushChannel, invalidate: Invalidate):
        self._channel = channel
        self._invalidate = invalidate
        self._subscriptions: Optional[SubscriptionGroup] = None

    def attach(self) -> "CacheInvalidationObserver":
        if self._subscriptions is None:
            self._subscriptions = self._channel.subscribe_many(
                {kind: self._on_event for kind in INVALIDATION_TARGETS}
            )
        return self

    def detach(self) -> None:
        if self._subscriptions is not None:
            self._subscriptions.unsubscribe()
            self._subscriptions = None

    async def _on_event(self, event: PushEvent) -> None:
        for key in INVALIDATION_TARGETS.get(event.kind, ()):
            try:
                result = self._invalidate(key)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.warning(
                    f"[observer:invalidate] invalidation failed key={key} kind={event.kind} error={exc}"
                )


class LoggingReconcileObserver:
    """Logs reconciliation transitions."""

    async def on_status_changed(
        self,
        old_status: ReconcileStatus,
        new_status: ReconcileStatus,
    ) -> None:
        if old_status.ui_status != new_status.ui_status:
            logger.info(
                f"[observer:log] job_id={new_status.identifier} "
                f"status {old_status.ui_status} -> {new_status.ui_status}"
            )
        else:
            logger.debug(
                f"[observer:log] job_id={new_status.identifier} progress={new_status.progress} "
                f"found={new_status.found_count} saved={new_status.saved_count}"
            )

    async def on_job_finished(
        self,
        final_status: ReconcileStatus,
        snapshot: Optional[JobSnapshot],
    ) -> None:
        extra: Any = snapshot.finishedAt if snapshot else "client timeout"
        logger.info(
            f"[observer:log] job_id={final_status.identifier} finished "
            f"status={final_status.ui_status} message={final_status.message!r} at={extra}"
        )
