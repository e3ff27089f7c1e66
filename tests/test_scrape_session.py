"""End-to-end scraping scenarios: dispatch, poll, terminal state."""

import asyncio

import pytest
from unittest.mock import AsyncMock

from leadsync.core.config import ReconcilerConfig
from leadsync.core.exceptions import ApiError
from leadsync.core.managers.scrape_session import DISPATCH_FAILED_MESSAGE, ScrapeSession
from leadsync.core.models.job import ScrapeRequest, UiStatus
from leadsync.core.services.lead_api_service import LeadApiService


@pytest.fixture
def mock_http_client():
    return AsyncMock()


@pytest.fixture
def session(mock_http_client, recording_observer):
    return ScrapeSession(
        LeadApiService(mock_http_client),
        config=ReconcilerConfig(poll_interval=0.01),
        observers=[recording_observer],
    )


@pytest.fixture
def request_body():
    return ScrapeRequest(location="Route 9, Freehold, NJ", radius=1, business_type="restaurant")


@pytest.mark.asyncio
async def test_scrape_runs_to_completion(session, mock_http_client, recording_observer, request_body):
    mock_http_client.post.return_value = {
        "jobId": "job-123", "status": "active", "found": 0, "saved": 0, "message": "Scraping started",
    }
    mock_http_client.get.side_effect = [
        {"jobId": "job-123", "status": "active", "progress": 45},
        {"jobId": "job-123", "status": "completed", "progress": 100, "itemCount": 47},
    ]

    scope = await session.start(request_body)
    await asyncio.wait_for(scope.wait(), timeout=1.0)
    await asyncio.sleep(0.05)

    mock_http_client.post.assert_awaited_once_with(
        "/api/scrape",
        json={"location": "Route 9, Freehold, NJ", "radius": 1.0, "business_type": "restaurant"},
    )
    progress_view = [s for s in recording_observer.changes if s.progress == 45][0]
    assert progress_view.ui_status == UiStatus.scraping
    assert progress_view.identifier == "job-123"

    assert session.status.ui_status == UiStatus.completed
    assert session.status.progress == 100
    assert session.status.found_count == 47
    assert session.status.message == "Scraping completed successfully"
    # no third poll
    assert mock_http_client.get.call_count == 2


@pytest.mark.asyncio
async def test_backend_failure_halts_polling(session, mock_http_client, request_body):
    mock_http_client.post.return_value = {"jobId": "job-9", "status": "waiting", "message": "Queued"}
    mock_http_client.get.side_effect = [
        {"jobId": "job-9", "status": "failed", "failedReason": "Quota exceeded"},
    ]

    scope = await session.start(request_body)
    await asyncio.wait_for(scope.wait(), timeout=1.0)
    await asyncio.sleep(0.03)

    assert session.status.ui_status == UiStatus.failed
    assert session.status.message == "Quota exceeded"
    assert mock_http_client.get.call_count == 1


@pytest.mark.asyncio
async def test_dispatch_failure_never_polls(session, mock_http_client, request_body):
    mock_http_client.post.side_effect = ApiError(503, "Service Unavailable")

    scope = await session.start(request_body)
    await asyncio.sleep(0.03)

    assert scope is None
    assert session.status.ui_status == UiStatus.failed
    assert session.status.message == DISPATCH_FAILED_MESSAGE
    mock_http_client.get.assert_not_called()


@pytest.mark.asyncio
async def test_new_search_supersedes_previous(session, mock_http_client, request_body):
    mock_http_client.post.side_effect = [
        {"jobId": "job-old", "status": "active", "message": "first"},
        {"jobId": "job-new", "status": "active", "message": "second"},
    ]

    async def fake_get(path, params=None, timeout=None):
        if path.endswith("job-old"):
            return {"jobId": "job-old", "status": "active", "progress": 80, "itemCount": 300}
        return {"jobId": "job-new", "status": "completed", "progress": 100, "itemCount": 3}

    mock_http_client.get.side_effect = fake_get

    old_scope = await session.start(request_body)
    await asyncio.sleep(0.02)
    new_scope = await session.start(request_body)
    await asyncio.wait_for(new_scope.wait(), timeout=1.0)

    assert old_scope.cancelled
    assert session.status.identifier == "job-new"
    assert session.status.found_count == 3
    await session.close()


@pytest.mark.asyncio
async def test_reset_returns_to_idle(session, mock_http_client, request_body):
    mock_http_client.post.return_value = {"jobId": "job-1", "status": "active", "message": ""}
    mock_http_client.get.return_value = {"jobId": "job-1", "status": "active", "progress": 5}

    await session.start(request_body)
    await session.reset()

    assert session.status.ui_status == UiStatus.idle
    assert session.status.identifier is None


def held_dispatch(mock_http_client, first_outcome, later_response):
    """First POST blocks on the returned event, then returns or raises `first_outcome`."""
    release = asyncio.Event()
    calls = 0

    async def fake_post(path, json=None, timeout=None, skip_auth=False):
        nonlocal calls
        calls += 1
        if calls == 1:
            await release.wait()
            if isinstance(first_outcome, Exception):
                raise first_outcome
            return first_outcome
        return later_response

    mock_http_client.post.side_effect = fake_post
    return release


@pytest.mark.asyncio
async def test_late_dispatch_response_does_not_replace_newer_search(session, mock_http_client, request_body):
    release = held_dispatch(
        mock_http_client,
        {"jobId": "job-A", "status": "active", "message": "first"},
        {"jobId": "job-B", "status": "active", "message": "second"},
    )
    mock_http_client.get.return_value = {"jobId": "job-B", "status": "active", "progress": 10}

    first = asyncio.create_task(session.start(request_body))
    await asyncio.sleep(0.01)
    scope_b = await session.start(request_body)

    release.set()
    assert await first is None

    assert session.status.identifier == "job-B"
    assert not scope_b.cancelled
    assert all(c.args[0] == "/api/jobs/job-B" for c in mock_http_client.get.await_args_list)
    await session.close()


@pytest.mark.asyncio
async def test_late_dispatch_failure_does_not_fail_newer_search(session, mock_http_client, request_body):
    release = held_dispatch(
        mock_http_client,
        ApiError(503, "Service Unavailable"),
        {"jobId": "job-B", "status": "active", "message": "second"},
    )
    mock_http_client.get.return_value = {"jobId": "job-B", "status": "active", "progress": 10}

    first = asyncio.create_task(session.start(request_body))
    await asyncio.sleep(0.01)
    scope_b = await session.start(request_body)

    release.set()
    assert await first is None

    assert not scope_b.cancelled
    assert session.status.identifier == "job-B"
    assert session.status.ui_status == UiStatus.scraping
    assert session.status.message != DISPATCH_FAILED_MESSAGE
    await session.close()


@pytest.mark.asyncio
async def test_reset_during_dispatch_keeps_idle(session, mock_http_client, request_body):
    release = held_dispatch(mock_http_client, {"jobId": "job-A", "status": "active"}, None)

    pending = asyncio.create_task(session.start(request_body))
    await asyncio.sleep(0.01)
    await session.reset()
    release.set()

    assert await pending is None
    assert session.status.ui_status == UiStatus.idle
    mock_http_client.get.assert_not_called()
