"""Unit tests for push-driven observers and the logging observer.

Each observer is exercised against a real PushChannel driven by the fake
transport from conftest.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, Mock

from leadsync.core.config import ReconcilerConfig
from leadsync.core.managers.observers import (
    CacheInvalidationObserver,
    LoggingReconcileObserver,
    RefreshOnPushObserver,
)
from leadsync.core.managers.push_channel import PushChannel
from leadsync.core.managers.reconciler import JobReconciler
from leadsync.core.models.events import PushEventKind
from leadsync.core.models.job import JobSnapshot, JobState, ReconcileStatus, UiStatus
from leadsync.core.services.lead_api_service import LeadApiService


# --- Test Fixtures ---

@pytest.fixture
def channel(fake_transport):
    return PushChannel(fake_transport)


@pytest.fixture
def mock_reconciler():
    reconciler = Mock(spec=JobReconciler)
    reconciler.request_refresh.return_value = True
    return reconciler


# --- RefreshOnPushObserver Tests ---

class TestRefreshOnPushObserver:
    @pytest.mark.asyncio
    async def test_job_events_request_refresh(self, channel, fake_transport, mock_reconciler):
        RefreshOnPushObserver(mock_reconciler, channel).attach()

        await fake_transport.push("scraping:completed", {"runId": "r1", "totalFound": 47})
        await fake_transport.push("enrichment:failed", {"businessId": 3})

        assert mock_reconciler.request_refresh.call_count == 2

    @pytest.mark.asyncio
    async def test_unrelated_events_are_ignored(self, channel, fake_transport, mock_reconciler):
        RefreshOnPushObserver(mock_reconciler, channel).attach()

        await fake_transport.push("business:created", {"id": 1})
        await fake_transport.push("stats:updated", {})

        mock_reconciler.request_refresh.assert_not_called()

    @pytest.mark.asyncio
    async def test_detach_stops_refreshes(self, channel, fake_transport, mock_reconciler):
        observer = RefreshOnPushObserver(mock_reconciler, channel).attach()
        observer.attach()  # second attach is a no-op

        observer.detach()
        await fake_transport.push("scraping:completed", {})

        mock_reconciler.request_refresh.assert_not_called()
        assert channel.subscriber_count(PushEventKind.scraping_completed) == 0

    @pytest.mark.asyncio
    async def test_push_shortcuts_poll_interval(self, channel, fake_transport):
        http = AsyncMock()
        http.get.side_effect = [
            {"jobId": "job-1", "status": "active", "progress": 90},
            {"jobId": "job-1", "status": "completed", "progress": 100},
        ]
        reconciler = JobReconciler(LeadApiService(http), config=ReconcilerConfig(poll_interval=30.0))
        RefreshOnPushObserver(reconciler, channel).attach()

        scope = await reconciler.track("job-1")
        while http.get.call_count < 1:
            await asyncio.sleep(0.005)
        await asyncio.sleep(0.01)
        await fake_transport.push("scraping:completed", {"runId": "r1"})
        await fake_transport.push("scraping:completed", {"runId": "r1"})
        await asyncio.wait_for(scope.wait(), timeout=1.0)

        assert reconciler.status.ui_status == UiStatus.completed
        assert http.get.call_count == 2


# --- CacheInvalidationObserver Tests ---

class TestCacheInvalidationObserver:
    @pytest.mark.asyncio
    async def test_invalidates_mapped_keys(self, channel, fake_transport):
        invalidated = []
        CacheInvalidationObserver(channel, invalidated.append).attach()

        await fake_transport.push("business:created", {"id": 1})
        await fake_transport.push("stats:updated", {})

        assert invalidated == ["businesses", "stats", "stats"]

    @pytest.mark.asyncio
    async def test_async_invalidate_and_errors(self, channel, fake_transport):
        invalidate = AsyncMock(side_effect=[RuntimeError("cache down"), None, None])
        CacheInvalidationObserver(channel, invalidate).attach()

        await fake_transport.push("scraping:completed", {})

        assert [c.args[0] for c in invalidate.await_args_list] == ["businesses", "stats", "jobs"]

    @pytest.mark.asyncio
    async def test_unmapped_event_does_nothing(self, channel, fake_transport):
        invalidated = []
        observer = CacheInvalidationObserver(channel, invalidated.append).attach()

        await fake_transport.push("scraping:progress", {"progress": 10})
        observer.detach()
        await fake_transport.push("stats:updated", {})

        assert invalidated == []


# --- LoggingReconcileObserver Tests ---

class TestLoggingReconcileObserver:
    @pytest.mark.asyncio
    async def test_logs_without_raising(self):
        observer = LoggingReconcileObserver()
        running = ReconcileStatus(identifier="job-1", ui_status=UiStatus.running, progress=10)
        done = running.model_copy(update={"ui_status": UiStatus.completed, "progress": 100})

        await observer.on_status_changed(ReconcileStatus(), running)
        await observer.on_status_changed(running, running.model_copy(update={"progress": 20}))
        await observer.on_job_finished(done, JobSnapshot(status=JobState.completed))
        await observer.on_job_finished(done, None)
