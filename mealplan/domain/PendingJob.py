"""PendingJob: local record of an in-flight enrichment job, kept so it survives a restart."""
from enum import Enum
from typing import Optional


class JobType(str, Enum):
    LIST_POLISH = "LIST_POLISH"
    PANTRY_CATEGORIZE = "PANTRY_CATEGORIZE"
    INGREDIENT_SUBSTITUTION = "INGREDIENT_SUBSTITUTION"


class PendingJob:
    def __init__(self, job_id: str, job_type: JobType, started_at: int,
                 related_entity_id: Optional[str] = None):
        self.job_id = job_id
        self.job_type = job_type
        self.related_entity_id = related_entity_id
        self.started_at = started_at

    def age_ms(self, now: int) -> int:
        return now - self.started_at

    def __eq__(self, other):
        if not isinstance(other, PendingJob):
            return NotImplemented
        return (self.job_id, self.job_type, self.related_entity_id, self.started_at) == \
            (other.job_id, other.job_type, other.related_entity_id, other.started_at)

    def __str__(self) -> str:
        return f"{self.job_type.value} job {self.job_id} (related: {self.related_entity_id})"

    __repr__ = __str__

    @staticmethod
    def from_row(row) -> "PendingJob":
        return PendingJob(
            job_id=row["job_id"],
            job_type=JobType(row["job_type"]),
            related_entity_id=row["related_entity_id"],
            started_at=row["started_at"],
        )
