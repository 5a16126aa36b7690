"""Test doubles shared by the async test modules."""
import asyncio
from typing import Callable, Dict, List, Optional

from mealplan.api.enrichment_api import JOB_ENDPOINTS, EnrichmentClient
from mealplan.api.schemas import JobStatusResponse
from mealplan.domain.PendingJob import JobType
from mealplan.infra.Job_Repository import JobRepository
from mealplan.utilities.errors import EnrichmentError

NOW = 1_700_000_000_000


def running():
    return {"status": "running"}


def completed(result):
    return {"status": "completed", "result": result}


def failed(error="boom"):
    return {"status": "failed", "error": error}


async def no_wait(_seconds):
    # yield so cancellation and other tasks get a turn
    await asyncio.sleep(0)


class FakeEnrichmentClient:
    """Scripted stand-in for EnrichmentClient.

    ``script(job_type, *steps)`` queues poll answers; the last one repeats.
    A step is a status dict or an exception instance to raise.
    """

    def __init__(self):
        self.started: List[tuple] = []
        self.polls: List[str] = []
        self.deleted: List[str] = []
        self.start_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None
        self.on_poll: Optional[Callable[[str], None]] = None
        self._scripts: Dict[JobType, list] = {}

    def script(self, job_type: JobType, *steps):
        self._scripts[job_type] = list(steps)

    async def start_job(self, job_type, request):
        if self.start_error is not None:
            raise self.start_error
        self.started.append((job_type, request))
        return f"{job_type.value.lower()}-{len(self.started)}"

    async def get_status(self, job_type, job_id):
        self.polls.append(job_id)
        if self.on_poll is not None:
            self.on_poll(job_id)
        steps = self._scripts.get(job_type) or [running()]
        step = steps.pop(0) if len(steps) > 1 else steps[0]
        if isinstance(step, Exception):
            raise step
        return JobStatusResponse(id=job_id, **step)

    async def delete_job(self, job_type, job_id):
        self.deleted.append(job_id)
        if self.delete_error is not None:
            raise self.delete_error

    def parse_result(self, job_type, result, job_id=None):
        return EnrichmentClient._parse(JOB_ENDPOINTS[job_type].result_model, result, "result", job_id)


class CountingJobRepository(JobRepository):
    def __init__(self, db):
        super().__init__(db)
        self.deletes: List[str] = []

    def delete(self, job_id):
        self.deletes.append(job_id)
        return super().delete(job_id)


def network_error():
    return EnrichmentError("Request failed: connection refused", "status")
