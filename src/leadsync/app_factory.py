# app_factory lives at the outermost layer (not in core)
# Instantiates the concrete adapters and wires one client session together

import asyncio
import uuid
from typing import List, Optional

from leadsync.adapters.aiohttp_client_adapter import AioHttpClientAdapter
from leadsync.adapters.retry_tenacity import TenacityRetryAdapter
from leadsync.adapters.socketio_transport import SocketIOTransportAdapter
from leadsync.core.config import HttpClientConfig, PushChannelConfig, ReconcilerConfig
from leadsync.core.interfaces.http_client import HttpClientPort
from leadsync.core.interfaces.observers import ReconcileObserver
from leadsync.core.interfaces.push_transport import PushTransportPort
from leadsync.core.interfaces.retry import RetryPort
from leadsync.core.logging_config import session_id_var
from leadsync.core.managers.observers import RefreshOnPushObserver
from leadsync.core.managers.push_channel import PushChannel, provide_channel
from leadsync.core.managers.reconciler import JobReconciler
from leadsync.core.managers.scrape_session import ScrapeSession
from leadsync.core.services.lead_api_service import LeadApiService
from leadsync.core.settings import LeadSyncSettings, app_settings, logger


class ClientSession:
    """Everything one client session shares: HTTP client, API wrapper, push channel.

    Construct once per application session and use as an async context
    manager. The push channel connects in the background so an unreachable
    push server never delays REST calls; reconcilers created here get an
    early refresh whenever a job event is pushed.
    """

    def __init__(
        self,
        settings: LeadSyncSettings,
        http_client: HttpClientPort,
        transport: PushTransportPort,
        retry_port: Optional[RetryPort] = None,
    ):
        self.settings = settings
        self.session_id = uuid.uuid4().hex[:8]
        self.http = http_client
        self.api = LeadApiService(http_client)
        self.channel = PushChannel(
            transport,
            PushChannelConfig.from_app_settings(settings),
            retry_port,
        )
        self._bridges: List[RefreshOnPushObserver] = []
        self._reconcilers: List[JobReconciler] = []
        self._connect_task: Optional[asyncio.Task] = None
        self._channel_scope = None

    async def __aenter__(self) -> "ClientSession":
        session_id_var.set(self.session_id)
        await self.http.__aenter__()
        self._channel_scope = provide_channel(self.channel)
        self._channel_scope.__enter__()
        self._connect_task = asyncio.create_task(self.channel.connect())
        logger.info(
            f"[session:start] session_id={self.session_id} api={self.settings.LEADSYNC_API_URL} "
            f"ws={self.settings.LEADSYNC_WS_URL}"
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        for bridge in self._bridges:
            bridge.detach()
        for reconciler in self._reconcilers:
            await reconciler.shutdown()
        await self.channel.close()
        if self._connect_task is not None:
            await asyncio.gather(self._connect_task, return_exceptions=True)
        if self._channel_scope is not None:
            self._channel_scope.__exit__(exc_type, exc_val, exc_tb)
            self._channel_scope = None
        await self.http.__aexit__(exc_type, exc_val, exc_tb)
        logger.info(f"[session:end] session_id={self.session_id}")
        return False

    def _bridge(self, reconciler: JobReconciler) -> JobReconciler:
        self._reconcilers.append(reconciler)
        self._bridges.append(RefreshOnPushObserver(reconciler, self.channel).attach())
        return reconciler

    def job_reconciler(
        self,
        label: str = "Job",
        observers: Optional[List[ReconcileObserver]] = None,
    ) -> JobReconciler:
        config = ReconcilerConfig.from_app_settings(self.settings, label=label)
        return self._bridge(JobReconciler(self.api, config=config, observers=observers))

    def scrape_session(self, observers: Optional[List[ReconcileObserver]] = None) -> ScrapeSession:
        config = ReconcilerConfig.from_app_settings(self.settings, label="Scraping")
        session = ScrapeSession(self.api, config=config, observers=observers)
        self._bridge(session.reconciler)
        return session


def create_client_session(
    settings: LeadSyncSettings = app_settings,
    http_client: Optional[HttpClientPort] = None,
    transport: Optional[PushTransportPort] = None,
) -> ClientSession:
    """Composition root: default adapters unless a caller substitutes its own."""
    http_client = http_client or AioHttpClientAdapter(HttpClientConfig.from_app_settings(settings))
    transport = transport or SocketIOTransportAdapter()
    retry_adapter = TenacityRetryAdapter()
    return ClientSession(settings, http_client, transport, retry_adapter)
