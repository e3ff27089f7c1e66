from typing import Any, Dict, List, Optional
from urllib.parse import quote

from leadsync.core.interfaces.http_client import HttpClientPort
from leadsync.core.models.job import (
    BatchEnrichmentRequest,
    BatchEnrichmentResult,
    EnrichmentResult,
    JobSnapshot,
    ScrapeRequest,
    ScrapeResponse,
)


class LeadApiService:
    """Typed wrapper over the REST endpoints the job layer talks to.

    Errors from the HTTP port (ApiError) and payload validation errors
    propagate unchanged; callers decide whether they are transient.
    """

    def __init__(self, http_client: HttpClientPort):
        self._http = http_client

    # Scraping
    async def start_scrape(self, request: ScrapeRequest) -> ScrapeResponse:
        body = await self._http.post("/api/scrape", json=request.model_dump(exclude_none=True))
        return ScrapeResponse.model_validate(body)

    # Jobs
    async def get_job(self, job_id: str) -> JobSnapshot:
        body = await self._http.get(f"/api/jobs/{quote(job_id, safe='')}")
        snapshot = JobSnapshot.model_validate(body)
        if snapshot.jobId is None:
            snapshot = snapshot.model_copy(update={"jobId": job_id})
        return snapshot

    async def retry_job(self, job_id: str) -> None:
        await self._http.post(f"/api/jobs/{quote(job_id, safe='')}/retry")

    async def cancel_job(self, job_id: str) -> None:
        await self._http.post(f"/api/jobs/{quote(job_id, safe='')}/cancel")

    async def get_failed_jobs(self, limit: int = 10) -> List[JobSnapshot]:
        body = await self._http.get("/api/jobs/failed", params={"limit": limit})
        return [JobSnapshot.model_validate(item) for item in body or []]

    # Enrichment
    async def enrich_business(self, business_id: int) -> EnrichmentResult:
        body = await self._http.post(f"/api/enrich/{business_id}")
        return EnrichmentResult.model_validate(body)

    async def batch_enrichment(self, count: int = 10) -> BatchEnrichmentResult:
        request = BatchEnrichmentRequest(count=count)
        body = await self._http.post("/api/enrich/batch/process", json=request.model_dump())
        return BatchEnrichmentResult.model_validate(body)

    # Statistics
    async def get_stats(self) -> Optional[Dict[str, Any]]:
        return await self._http.get("/api/businesses/stats")
