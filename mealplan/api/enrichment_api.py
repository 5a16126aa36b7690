"""HTTP client for the enrichment service.

Every job type follows the same protocol: POST the request to the start
endpoint and get a job id back, GET the job until its status is terminal,
then DELETE it. Transport errors, non-success statuses and malformed
bodies all surface as EnrichmentError.
"""
import logging
from typing import Dict, NamedTuple, Optional, Type

import httpx
from pydantic import BaseModel, ValidationError

from mealplan.api.schemas import (
    GroceryPolishRequest, GroceryPolishResponse, JobStatusResponse,
    PantryCategorizeResponse, StartJobResponse, SubstitutionResponse, WireModel,
)
from mealplan.domain.PendingJob import JobType
from mealplan.utilities.config import ENRICHMENT_API_KEY, ENRICHMENT_BASE_URL, ENRICHMENT_TIMEOUT_SECONDS
from mealplan.utilities.errors import EnrichmentError

logger = logging.getLogger(__name__)


class JobEndpoint(NamedTuple):
    start: str
    status: str
    result_model: Type[BaseModel]


JOB_ENDPOINTS: Dict[JobType, JobEndpoint] = {
    JobType.LIST_POLISH: JobEndpoint(
        "/api/meal-plan/polish-grocery-list-async",
        "/api/meal-plan/grocery-polish-jobs/{job_id}",
        GroceryPolishResponse,
    ),
    JobType.PANTRY_CATEGORIZE: JobEndpoint(
        "/api/meal-plan/categorize-pantry-items-async",
        "/api/meal-plan/pantry-categorize-jobs/{job_id}",
        PantryCategorizeResponse,
    ),
    JobType.INGREDIENT_SUBSTITUTION: JobEndpoint(
        "/api/meal-plan/process-substitution-async",
        "/api/meal-plan/substitution-jobs/{job_id}",
        SubstitutionResponse,
    ),
}

SYNC_POLISH_PATH = "/api/meal-plan/polish-grocery-list"


class EnrichmentClient:
    def __init__(self, base_url: str = ENRICHMENT_BASE_URL, timeout: float = ENRICHMENT_TIMEOUT_SECONDS,
                 api_key: Optional[str] = ENRICHMENT_API_KEY,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        headers = {"X-Api-Key": api_key} if api_key else {}
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, headers=headers,
                                         transport=transport)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, operation: str, job_id: Optional[str] = None,
                       body: Optional[dict] = None) -> httpx.Response:
        try:
            response = await self._client.request(method, path, json=body)
        except httpx.HTTPError as e:
            raise EnrichmentError(f"Request failed: {e}", operation, job_id=job_id) from e
        if response.status_code >= 400:
            raise EnrichmentError(
                "Service returned an error status", operation,
                status_code=response.status_code, job_id=job_id,
                details={"response": response.text[:200]},
            )
        return response

    @staticmethod
    def _parse(model: Type[BaseModel], data, operation: str, job_id: Optional[str] = None):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise EnrichmentError(f"Malformed payload: {e.error_count()} error(s)", operation,
                                  job_id=job_id) from e

    @staticmethod
    def _json(response: httpx.Response, operation: str, job_id: Optional[str] = None):
        try:
            return response.json()
        except ValueError as e:
            raise EnrichmentError("Response body is not JSON", operation, job_id=job_id) from e

    async def start_job(self, job_type: JobType, request: WireModel) -> str:
        operation = f"start_{job_type.value.lower()}"
        response = await self._request("POST", JOB_ENDPOINTS[job_type].start, operation,
                                       body=request.to_wire())
        started = self._parse(StartJobResponse, self._json(response, operation), operation)
        logger.debug(f"Started {job_type.value} job {started.job_id}")
        return started.job_id

    async def get_status(self, job_type: JobType, job_id: str) -> JobStatusResponse:
        """Current status of a job. A job the service no longer knows reads as failed."""
        operation = f"status_{job_type.value.lower()}"
        path = JOB_ENDPOINTS[job_type].status.format(job_id=job_id)
        try:
            response = await self._request("GET", path, operation, job_id=job_id)
        except EnrichmentError as e:
            if e.status_code == 404:
                return JobStatusResponse(id=job_id, status="failed", error="Job not found or expired")
            raise
        return self._parse(JobStatusResponse, self._json(response, operation, job_id), operation, job_id)

    async def delete_job(self, job_type: JobType, job_id: str) -> None:
        path = JOB_ENDPOINTS[job_type].status.format(job_id=job_id)
        await self._request("DELETE", path, f"delete_{job_type.value.lower()}", job_id=job_id)

    def parse_result(self, job_type: JobType, result, job_id: Optional[str] = None) -> BaseModel:
        return self._parse(JOB_ENDPOINTS[job_type].result_model, result,
                           f"result_{job_type.value.lower()}", job_id)

    async def polish_now(self, request: GroceryPolishRequest) -> GroceryPolishResponse:
        """Synchronous list polish, without the job protocol."""
        response = await self._request("POST", SYNC_POLISH_PATH, "polish_now", body=request.to_wire())
        return self._parse(GroceryPolishResponse, self._json(response, "polish_now"), "polish_now")
