"""JobReconciler: converges a local status view with a backend job.

Responsibilities:
1. Track one job identifier at a time; tracking a new one supersedes the old.
2. Fetch GET /api/jobs/:id immediately, then on a fixed interval while the
   job is in flight.
3. Fold each snapshot into an observable ReconcileStatus (monotonic counters,
   terminal messages).
4. Stop for good after the first completed/failed snapshot.
5. Treat every fetch failure as transient: keep the last good snapshot and
   try again on the next tick.
"""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional

from leadsync.core.config import ReconcilerConfig
from leadsync.core.interfaces.observers import ReconcileObserver
from leadsync.core.managers.polling_policy import (
    PollPhase,
    next_delay,
    phase_of,
    ui_status_for,
)
from leadsync.core.models.job import JobSnapshot, JobState, ReconcileStatus, UiStatus
from leadsync.core.services.lead_api_service import LeadApiService
from leadsync.core.settings import logger


class ReconcileScope:
    """Cancellation token for one tracked job.

    `cancel()` is idempotent and is the only way to stop a loop from the
    outside. A tick that wakes up after cancellation does nothing.
    """

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        self.failures = 0
        self._cancelled = False
        self._task: Optional[asyncio.Task] = None
        self._wake = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._task is None or self._task.done()

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def wake(self) -> None:
        self._wake.set()

    async def sleep(self, delay: float) -> None:
        """Sleep until the next tick or an explicit wake-up."""
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
        self._wake.clear()

    async def wait(self) -> None:
        """Wait until the loop for this scope has ended."""
        if self._task is not None and self._task is not asyncio.current_task():
            await asyncio.gather(self._task, return_exceptions=True)


class JobReconciler:
    """Polls one job at a time and exposes its status.

    Attributes:
        config: Poll cadence, optional timeout and message label
    """

    def __init__(
        self,
        api: LeadApiService,
        config: Optional[ReconcilerConfig] = None,
        observers: Optional[List[ReconcileObserver]] = None,
        inflight_status: UiStatus = UiStatus.running,
    ) -> None:
        self._api = api
        self.config = config or ReconcilerConfig()
        self._observers = list(observers or [])
        self._inflight_status = inflight_status
        self._status = ReconcileStatus()
        self._snapshot: Optional[JobSnapshot] = None
        self._scope: Optional[ReconcileScope] = None

    @property
    def status(self) -> ReconcileStatus:
        return self._status

    @property
    def snapshot(self) -> Optional[JobSnapshot]:
        """Last successfully fetched snapshot of the tracked job."""
        return self._snapshot

    @property
    def scope(self) -> Optional[ReconcileScope]:
        return self._scope

    @property
    def phase(self) -> PollPhase:
        return phase_of(
            self._status.identifier,
            self._snapshot.status if self._snapshot else None,
        )

    def add_observer(self, observer: ReconcileObserver) -> None:
        self._observers.append(observer)

    async def _notify_status_changed(self, old: ReconcileStatus, new: ReconcileStatus) -> None:
        for observer in self._observers:
            try:
                await observer.on_status_changed(old, new)
            except Exception as exc:
                logger.error(
                    f"[observer:error] on_status_changed failed observer={type(observer).__name__} "
                    f"job_id={new.identifier} error={exc}"
                )

    async def _notify_job_finished(self, status: ReconcileStatus, snapshot: Optional[JobSnapshot]) -> None:
        for observer in self._observers:
            try:
                await observer.on_job_finished(status, snapshot)
            except Exception as exc:
                logger.error(
                    f"[observer:error] on_job_finished failed observer={type(observer).__name__} "
                    f"job_id={status.identifier} error={exc}"
                )

    # ----------------- Public operations -----------------
    async def track(
        self,
        job_id: Optional[str],
        *,
        found: int = 0,
        saved: int = 0,
        message: str = "",
    ) -> Optional[ReconcileScope]:
        """Start reconciling `job_id`, superseding whatever was tracked.

        A missing identifier resets to idle and never fetches. Returns the
        scope of the new loop (None when nothing is tracked).
        """
        self._cancel_current()
        self._snapshot = None

        if not job_id:
            logger.debug("[job:track] no job id; reconciler idle")
            await self._apply(ReconcileStatus())
            return None

        scope = ReconcileScope(job_id)
        self._scope = scope
        await self._apply(
            ReconcileStatus(
                identifier=job_id,
                ui_status=self._inflight_status,
                found_count=max(found or 0, 0),
                saved_count=max(saved or 0, 0),
                message=message or "",
            )
        )
        # An observer may already have superseded this scope
        if self._scope is not scope:
            return scope
        logger.info(f"[job:track] tracking job_id={job_id} interval={self.config.poll_interval}s")
        scope._task = asyncio.create_task(self._poll_loop(scope))
        return scope

    async def reset(self) -> None:
        """Stop tracking and return to the idle status."""
        self._cancel_current()
        self._snapshot = None
        await self._apply(ReconcileStatus())

    async def fail(self, message: str) -> None:
        """Stop tracking and show a failed status carrying `message`."""
        self._cancel_current()
        await self._apply(
            self._status.model_copy(update=dict(ui_status=UiStatus.failed, message=message))
        )

    def request_refresh(self) -> bool:
        """Fetch now instead of waiting for the next tick.

        Used by push events; ticks stay sequential, so duplicate requests
        collapse into one extra fetch. Returns False when nothing is polling.
        """
        scope = self._scope
        if scope is None or scope.cancelled or scope.done:
            return False
        logger.debug(f"[job:refresh] out-of-band refresh job_id={scope.job_id}")
        scope.wake()
        return True

    async def shutdown(self) -> None:
        scope = self._scope
        self._cancel_current()
        if scope is not None:
            await scope.wait()

    def _cancel_current(self) -> None:
        scope, self._scope = self._scope, None
        if scope is not None and not scope.cancelled:
            logger.debug(f"[job:track] cancelling job_id={scope.job_id}")
            scope.cancel()

    # ----------------- Polling -----------------
    async def _poll_loop(self, scope: ReconcileScope) -> None:
        """Fetch, reconcile, sleep; until terminal, timeout or cancellation."""
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            while not scope.cancelled:
                if self._timed_out(started, loop.time()):
                    await self._give_up(scope)
                    return

                snapshot = await self._fetch(scope)

                # Superseded or cancelled while the request was in flight
                if scope.cancelled or self._scope is not scope:
                    logger.debug(f"[job:poll] dropping stale response job_id={scope.job_id}")
                    return

                if snapshot is not None:
                    self._snapshot = snapshot
                    status = self._derive(self._status, snapshot)
                    await self._apply(status)
                    # An observer may have tracked another job during notification
                    if scope.cancelled or self._scope is not scope:
                        return
                    if snapshot.is_terminal():
                        await self._finish(scope, snapshot, status)
                        return

                delay = next_delay(
                    phase_of(scope.job_id, snapshot.status if snapshot else None),
                    self.config.poll_interval,
                )
                if delay is None:
                    return
                await scope.sleep(delay)
        except asyncio.CancelledError:
            logger.debug(f"[job:poll] loop cancelled job_id={scope.job_id}")
            raise

    async def _fetch(self, scope: ReconcileScope) -> Optional[JobSnapshot]:
        try:
            snapshot = await self._api.get_job(scope.job_id)
        except Exception as exc:
            # Transient: a failed request never means a failed job
            scope.failures += 1
            logger.warning(
                f"[job:poll] fetch error job_id={scope.job_id} "
                f"consecutive_failures={scope.failures} err={exc}"
            )
            return None
        scope.failures = 0
        logger.debug(
            f"[job:poll] job_id={scope.job_id} status={snapshot.status} progress={snapshot.progress}"
        )
        return snapshot

    async def _finish(self, scope: ReconcileScope, snapshot: JobSnapshot, status: ReconcileStatus) -> None:
        logger.info(
            f"[job:poll] terminal state reached job_id={scope.job_id} status={snapshot.status}"
        )
        await self._notify_job_finished(status, snapshot)

    def _timed_out(self, started: float, now: float) -> bool:
        return self.config.poll_timeout is not None and now - started > self.config.poll_timeout

    async def _give_up(self, scope: ReconcileScope) -> None:
        logger.warning(
            f"[job:poll] timeout reached job_id={scope.job_id} after {self.config.poll_timeout}s; marking failed"
        )
        status = self._status.model_copy(
            update=dict(
                ui_status=UiStatus.failed,
                message=f"Timed out after {self.config.poll_timeout}s waiting for {self.config.label.lower()} to finish",
            )
        )
        await self._apply(status)
        if self._scope is scope:
            await self._notify_job_finished(status, None)

    # ----------------- Reconciliation -----------------
    async def _apply(self, new_status: ReconcileStatus) -> bool:
        old_status = self._status
        if new_status == old_status:
            return False
        self._status = new_status
        await self._notify_status_changed(old_status, new_status)
        return True

    def _derive(self, current: ReconcileStatus, snapshot: JobSnapshot) -> ReconcileStatus:
        """Fold a snapshot into the observable status.

        Counters only grow. Missing progress keeps the previous value.
        """
        found, saved = _counters(snapshot)
        label = self.config.label
        progress = snapshot.progress if snapshot.progress is not None else current.progress

        if snapshot.status == JobState.completed:
            progress = 100
            message = snapshot.message or f"{label} completed successfully"
        elif snapshot.status == JobState.failed:
            message = snapshot.failedReason or f"{label} failed"
        else:
            message = snapshot.message or current.message

        return current.model_copy(
            update=dict(
                ui_status=ui_status_for(snapshot.status, self._inflight_status),
                progress=progress,
                found_count=max(current.found_count, found),
                saved_count=max(current.saved_count, saved),
                message=message,
            )
        )


def _counters(snapshot: JobSnapshot) -> tuple[int, int]:
    """Item counters reported by the job, from itemCount or the job result."""
    found = snapshot.itemCount or 0
    saved = 0
    result: Any = snapshot.result
    if isinstance(result, dict):
        found = max(found, _as_int(result.get("found")), _as_int(result.get("totalFound")))
        saved = _as_int(result.get("saved"))
    return found, saved


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return max(int(value), 0)
    return 0
