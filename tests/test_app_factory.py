import asyncio

import pytest
from unittest.mock import AsyncMock

from leadsync.app_factory import ClientSession
from leadsync.core.exceptions import ChannelNotProvidedError
from leadsync.core.managers.push_channel import current_channel
from leadsync.core.models.events import PushEventKind
from leadsync.core.models.job import UiStatus
from leadsync.core.settings import LeadSyncSettings


@pytest.fixture
def settings():
    return LeadSyncSettings(
        LEADSYNC_API_URL="http://api.test/",
        LEADSYNC_WS_URL="http://ws.test",
        LEADSYNC_JOB_POLL_INTERVAL=30.0,
    )


@pytest.fixture
def http():
    return AsyncMock()


def test_settings_strip_trailing_slash(settings):
    assert settings.LEADSYNC_API_URL == "http://api.test"


@pytest.mark.asyncio
async def test_session_provides_and_connects_channel(settings, http, fake_transport, wait_until):
    async with ClientSession(settings, http, fake_transport) as session:
        assert current_channel() is session.channel
        await wait_until(lambda: session.channel.connected)

    assert session.channel.connected is False
    http.__aexit__.assert_awaited_once()
    with pytest.raises(ChannelNotProvidedError):
        current_channel()


@pytest.mark.asyncio
async def test_pushed_job_event_triggers_early_fetch(settings, http, fake_transport):
    http.get.side_effect = [
        {"jobId": "job-5", "status": "active", "progress": 10},
        {"jobId": "job-5", "status": "completed", "progress": 100, "itemCount": 12},
    ]

    async with ClientSession(settings, http, fake_transport) as session:
        reconciler = session.job_reconciler(label="Enrichment")
        scope = await reconciler.track("job-5")
        while http.get.call_count < 1:
            await asyncio.sleep(0.005)
        await asyncio.sleep(0.01)

        await fake_transport.push("enrichment:completed", {"businessId": 1})
        await asyncio.wait_for(scope.wait(), timeout=1.0)

        assert reconciler.status.ui_status == UiStatus.completed
        assert reconciler.status.message == "Enrichment completed successfully"

    assert session.channel.subscriber_count(PushEventKind.enrichment_completed) == 0
