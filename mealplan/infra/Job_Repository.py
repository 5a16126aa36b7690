"""Pending enrichment job records."""
import logging
from typing import List, Optional

from mealplan.domain.PendingJob import JobType, PendingJob
from mealplan.infra.database import Database

logger = logging.getLogger(__name__)


class JobRepository:
    def __init__(self, db: Database):
        self.db = db

    def insert(self, job: PendingJob) -> None:
        with self.db.transaction() as conn:
            conn.execute(
                """INSERT OR REPLACE INTO pending_jobs (job_id, job_type, related_entity_id, started_at)
                   VALUES (?, ?, ?, ?)""",
                (job.job_id, job.job_type.value, job.related_entity_id, job.started_at),
            )

    def get(self, job_id: str) -> Optional[PendingJob]:
        row = self.db.query_one("SELECT * FROM pending_jobs WHERE job_id = ?", (job_id,))
        return PendingJob.from_row(row) if row else None

    def get_by_type(self, job_type: JobType) -> Optional[PendingJob]:
        row = self.db.query_one(
            "SELECT * FROM pending_jobs WHERE job_type = ? ORDER BY started_at LIMIT 1",
            (job_type.value,),
        )
        return PendingJob.from_row(row) if row else None

    def all(self) -> List[PendingJob]:
        rows = self.db.query("SELECT * FROM pending_jobs ORDER BY started_at")
        return [PendingJob.from_row(r) for r in rows]

    def delete(self, job_id: str) -> bool:
        '''Idempotent; returns whether a row was removed.'''
        with self.db.transaction() as conn:
            cur = conn.execute("DELETE FROM pending_jobs WHERE job_id = ?", (job_id,))
        return cur.rowcount > 0

    def delete_stale(self, cutoff: int) -> List[PendingJob]:
        """Remove and return every record started before ``cutoff`` (epoch ms)."""
        with self.db.transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM pending_jobs WHERE started_at < ?", (cutoff,)
            ).fetchall()
            conn.execute("DELETE FROM pending_jobs WHERE started_at < ?", (cutoff,))
        stale = [PendingJob.from_row(r) for r in rows]
        if stale:
            logger.info(f"Purged {len(stale)} stale pending job(s)")
        return stale
