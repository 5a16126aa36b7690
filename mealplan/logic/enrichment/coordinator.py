"""Enrichment job coordinator.

Drives submit -> poll -> terminal for jobs on the enrichment service:

    SUBMITTED -> POLLING -> COMPLETED | FAILED | TIMED_OUT

The PendingJob record is written before the first poll so a restart can
resume the job, and it is deleted exactly once when the job reaches a
terminal state. A cancelled poll (process shutting down) leaves the record
for resume_pending() on the next start. Each poll loop runs as an asyncio
task owned by the coordinator instance; at most one job per type is pending.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from mealplan.api.enrichment_api import EnrichmentClient
from mealplan.api.schemas import WireModel
from mealplan.domain.Pantry import now_ms
from mealplan.domain.PendingJob import JobType, PendingJob
from mealplan.events.Event_Bus import EventBus, GLOBAL_EVENT_BUS
from mealplan.events.event_helpers import publish_job_completed, publish_job_failed
from mealplan.infra.Job_Repository import JobRepository
from mealplan.utilities.config import JOB_MAX_POLLS, JOB_POLL_INTERVAL_SECONDS, STALE_JOB_MAX_AGE_SECONDS
from mealplan.utilities.errors import DuplicateJobError, EnrichmentError, JobFailedError, JobTimeoutError

logger = logging.getLogger(__name__)

__all__ = [
    "JobState", "JobCompleted", "JobFailed", "JobTimedOut", "JobOutcome",
    "JobPolicy", "JOB_POLICIES", "EnrichmentCoordinator",
]


class JobState(str, Enum):
    SUBMITTED = "SUBMITTED"
    POLLING = "POLLING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"


@dataclass(frozen=True)
class JobCompleted:
    job: PendingJob
    result: Any


@dataclass(frozen=True)
class JobFailed:
    job: PendingJob
    reason: str


@dataclass(frozen=True)
class JobTimedOut:
    job: PendingJob
    polls: int


JobOutcome = Union[JobCompleted, JobFailed, JobTimedOut]
OutcomeHandler = Callable[[JobOutcome], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class JobPolicy:
    bounded: bool


# List polish keeps polling until the service answers: the user is waiting
# on screen. The other job types give up after max_polls.
JOB_POLICIES: Dict[JobType, JobPolicy] = {
    JobType.LIST_POLISH: JobPolicy(bounded=False),
    JobType.PANTRY_CATEGORIZE: JobPolicy(bounded=True),
    JobType.INGREDIENT_SUBSTITUTION: JobPolicy(bounded=True),
}


def unwrap(outcome: JobOutcome) -> Any:
    """Return the payload of a completed job or raise the matching EnrichmentError."""
    if isinstance(outcome, JobCompleted):
        return outcome.result
    if isinstance(outcome, JobTimedOut):
        raise JobTimeoutError(f"No result after {outcome.polls} polls",
                              outcome.job.job_type.value.lower(), job_id=outcome.job.job_id)
    raise JobFailedError(outcome.reason, outcome.job.job_type.value.lower(), job_id=outcome.job.job_id)


class EnrichmentCoordinator:
    def __init__(self, client: EnrichmentClient, jobs: JobRepository, bus: Optional[EventBus] = None,
                 clock: Callable[[], int] = now_ms,
                 poll_interval: float = JOB_POLL_INTERVAL_SECONDS,
                 max_polls: int = JOB_MAX_POLLS,
                 stale_after_seconds: int = STALE_JOB_MAX_AGE_SECONDS,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.client = client
        self.jobs = jobs
        self.bus = bus if bus is not None else GLOBAL_EVENT_BUS
        self.clock = clock
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self.stale_after_ms = stale_after_seconds * 1000
        self._sleep = sleep
        self._tasks: Dict[JobType, asyncio.Task] = {}
        self._starting: Set[JobType] = set()
        self._states: Dict[str, JobState] = {}
        self._handlers: Dict[JobType, OutcomeHandler] = {}

    # --- inspection ----------------------------------------------------------
    def state(self, job_id: str) -> Optional[JobState]:
        return self._states.get(job_id)

    def is_pending(self, job_type: JobType) -> bool:
        return (job_type in self._starting or job_type in self._tasks
                or self.jobs.get_by_type(job_type) is not None)

    def task_for(self, job_type: JobType) -> Optional[asyncio.Task]:
        return self._tasks.get(job_type)

    def register_handler(self, job_type: JobType, handler: OutcomeHandler) -> None:
        """Receive outcomes of jobs of this type resumed after a restart."""
        self._handlers[job_type] = handler

    # --- submission ----------------------------------------------------------
    async def submit(self, job_type: JobType, request: WireModel,
                     related_entity_id: Optional[str] = None) -> "asyncio.Task[JobOutcome]":
        """Start a job and return the task polling it.

        Raises DuplicateJobError if a job of this type is already pending and
        EnrichmentError if the service refuses the job.
        """
        if self.is_pending(job_type):
            raise DuplicateJobError(f"A {job_type.value} job is already pending", "submit")
        self._starting.add(job_type)
        try:
            job_id = await self.client.start_job(job_type, request)
            job = PendingJob(job_id, job_type, self.clock(), related_entity_id)
            self.jobs.insert(job)
            self._states[job_id] = JobState.SUBMITTED
            return self._spawn(job)
        finally:
            self._starting.discard(job_type)

    async def run(self, job_type: JobType, request: WireModel,
                  related_entity_id: Optional[str] = None) -> Any:
        """Submit, wait, and return the parsed result; raises EnrichmentError on failure."""
        task = await self.submit(job_type, request, related_entity_id)
        return unwrap(await task)

    def _spawn(self, job: PendingJob, handler: Optional[OutcomeHandler] = None) -> asyncio.Task:
        task = asyncio.create_task(self._drive(job, handler), name=f"{job.job_type.value}:{job.job_id}")
        self._tasks[job.job_type] = task
        task.add_done_callback(lambda t, jt=job.job_type: self._forget(jt, t))
        return task

    def _forget(self, job_type: JobType, task: asyncio.Task) -> None:
        if self._tasks.get(job_type) is task:
            del self._tasks[job_type]

    async def _drive(self, job: PendingJob, handler: Optional[OutcomeHandler]) -> JobOutcome:
        outcome = await self._poll(job)
        if handler is not None:
            try:
                result = handler(outcome)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Outcome handler for {job} failed")
        return outcome

    # --- polling -------------------------------------------------------------
    async def _poll(self, job: PendingJob) -> JobOutcome:
        bounded = JOB_POLICIES[job.job_type].bounded
        self._states[job.job_id] = JobState.POLLING
        polls = 0
        while True:
            if bounded and polls >= self.max_polls:
                outcome: JobOutcome = JobTimedOut(job, polls)
                break
            await self._sleep(self.poll_interval)
            polls += 1
            try:
                status = await self.client.get_status(job.job_type, job.job_id)
            except EnrichmentError as e:
                outcome = JobFailed(job, str(e))
                break
            logger.debug(f"{job} poll {polls}: {status.status}")
            if status.status == "completed":
                try:
                    outcome = JobCompleted(job, self.client.parse_result(job.job_type, status.result, job.job_id))
                except EnrichmentError as e:
                    outcome = JobFailed(job, str(e))
                break
            if status.status == "failed":
                outcome = JobFailed(job, status.error or "Job failed")
                break
        await self._finish(job, outcome)
        return outcome

    async def _finish(self, job: PendingJob, outcome: JobOutcome) -> None:
        self.jobs.delete(job.job_id)
        try:
            await self.client.delete_job(job.job_type, job.job_id)
        except EnrichmentError as e:
            logger.debug(f"Remote delete of {job} failed, ignoring: {e}")
        if isinstance(outcome, JobCompleted):
            self._states[job.job_id] = JobState.COMPLETED
            logger.info(f"{job} completed")
            publish_job_completed(job, outcome.result, bus=self.bus)
        elif isinstance(outcome, JobTimedOut):
            self._states[job.job_id] = JobState.TIMED_OUT
            logger.warning(f"{job} timed out after {outcome.polls} polls")
            publish_job_failed(job, "timed out", timed_out=True, bus=self.bus)
        else:
            self._states[job.job_id] = JobState.FAILED
            logger.warning(f"{job} failed: {outcome.reason}")
            publish_job_failed(job, outcome.reason, bus=self.bus)

    # --- startup / shutdown --------------------------------------------------
    def purge_stale(self) -> List[PendingJob]:
        """Delete records older than the staleness threshold without polling them."""
        cutoff = self.clock() - self.stale_after_ms
        stale = self.jobs.delete_stale(cutoff)
        for job in stale:
            logger.info(f"Discarded abandoned {job}")
        return stale

    async def resume_pending(self) -> List[asyncio.Task]:
        """Purge stale records, then resume polling every remaining one.

        Outcomes go to the handler registered for the job type.
        """
        self.purge_stale()
        tasks: List[asyncio.Task] = []
        for job in self.jobs.all():
            if job.job_type in self._tasks:
                logger.warning(f"Skipping {job}: a {job.job_type.value} job is already running")
                continue
            logger.info(f"Resuming {job}")
            self._states[job.job_id] = JobState.SUBMITTED
            tasks.append(self._spawn(job, self._handlers.get(job.job_type)))
        return tasks

    async def shutdown(self) -> None:
        """Cancel running poll loops; their records stay for the next start."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
