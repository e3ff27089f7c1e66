"""ScrapeSession: dispatch a map scrape and follow it to completion."""

from typing import List, Optional

from leadsync.core.config import ReconcilerConfig
from leadsync.core.exceptions import ApiError
from leadsync.core.interfaces.observers import ReconcileObserver
from leadsync.core.managers.reconciler import JobReconciler, ReconcileScope
from leadsync.core.models.job import ReconcileStatus, ScrapeRequest, UiStatus
from leadsync.core.services.lead_api_service import LeadApiService
from leadsync.core.settings import logger

DISPATCH_FAILED_MESSAGE = "Failed to start scraping"


class ScrapeSession:
    """One search at a time: starting a new scrape supersedes the previous one.

    A dispatch failure and a backend-reported failure both end in
    `UiStatus.failed`; only the message differs.
    """

    def __init__(
        self,
        api: LeadApiService,
        config: Optional[ReconcilerConfig] = None,
        observers: Optional[List[ReconcileObserver]] = None,
    ):
        self._api = api
        config = config or ReconcilerConfig()
        if "label" not in config.model_fields_set:
            config = config.model_copy(update={"label": "Scraping"})
        self.reconciler = JobReconciler(
            api,
            config=config,
            observers=observers,
            inflight_status=UiStatus.scraping,
        )
        # Bumped by every start/reset; a dispatch answered under an older value is stale
        self._generation = 0

    @property
    def status(self) -> ReconcileStatus:
        return self.reconciler.status

    def _superseded(self, generation: int) -> bool:
        return generation != self._generation

    async def start(self, request: ScrapeRequest) -> Optional[ReconcileScope]:
        """Dispatch the scrape and start reconciling its job.

        Returns the reconcile scope, or None when the dispatch call failed or
        a newer `start`/`reset` happened while the dispatch was in flight.
        """
        self._generation += 1
        generation = self._generation
        # Stop following the previous search before the new request goes out
        await self.reconciler.reset()
        try:
            response = await self._api.start_scrape(request)
        except Exception as exc:
            if self._superseded(generation):
                logger.debug(f"[scrape:start] ignoring failed dispatch of superseded search err={exc!r}")
                return None
            if isinstance(exc, ApiError):
                logger.warning(f"[scrape:start] dispatch failed location={request.location!r} err={exc.message}")
            else:
                logger.error(f"[scrape:start] dispatch failed location={request.location!r} err={exc!r}")
            await self._fail_dispatch()
            return None

        if self._superseded(generation):
            logger.debug(f"[scrape:start] ignoring superseded dispatch job_id={response.jobId}")
            return None

        logger.info(f"[scrape:start] job_id={response.jobId} status={response.status}")
        return await self.reconciler.track(
            response.jobId,
            found=response.found or 0,
            saved=response.saved or 0,
            message=response.message,
        )

    async def _fail_dispatch(self) -> None:
        await self.reconciler.fail(DISPATCH_FAILED_MESSAGE)

    async def reset(self) -> None:
        self._generation += 1
        await self.reconciler.reset()

    async def close(self) -> None:
        self._generation += 1
        await self.reconciler.shutdown()
