"""SQL statements for the job and queue tables over a DB-API connection."""

from __future__ import annotations

from contextlib import closing
from datetime import datetime
from typing import Any, Optional, Sequence, Union

from .models import JobStatus, QueueJob, QueueMetadata, RetryPolicy

_JOB_COLUMNS = (
    "job_id, queue_name, created_at, started_at, finished_at, scheduled_at, "
    "max_retries, retry_attempt, retry_policy, status, error, arguments"
)
_JOB_COLUMNS_J = ", ".join(f"j.{c.strip()}" for c in _JOB_COLUMNS.split(","))

_FETCH_JOB_TEMPLATE = """
UPDATE goqueue_jobs AS j
SET
    status = 'running',
    retry_attempt = j.retry_attempt + 1,
    started_at = NOW()
WHERE job_id = (
    SELECT job_id
    FROM goqueue_jobs AS j2
    WHERE j2.queue_name = %s
      AND j2.status = 'available'
      AND j2.scheduled_at <= NOW()
    ORDER BY j2.created_at
    LIMIT 1{lock}
)
RETURNING {columns}
"""

FETCH_JOB = _FETCH_JOB_TEMPLATE.format(lock="", columns=_JOB_COLUMNS_J)
FETCH_JOB_LOCKED = _FETCH_JOB_TEMPLATE.format(
    lock="\n    FOR UPDATE SKIP LOCKED", columns=_JOB_COLUMNS_J
)

INSERT_JOB = f"""
INSERT INTO goqueue_jobs (queue_name, created_at, status, scheduled_at, arguments, max_retries, retry_policy)
VALUES (%s, NOW(), 'available', %s, %s, %s, %s)
RETURNING {_JOB_COLUMNS}
"""

MOVE_JOB_TO_DLQ = f"""
UPDATE goqueue_jobs
SET
    queue_name = %s,
    status = 'available',
    retry_attempt = 0,
    scheduled_at = NOW()
WHERE job_id = %s
RETURNING {_JOB_COLUMNS}
"""

RESCHEDULE_JOB = f"""
UPDATE goqueue_jobs
SET
    status = 'available',
    scheduled_at = %s
WHERE job_id = %s
RETURNING {_JOB_COLUMNS}
"""

UPDATE_JOB = f"""
UPDATE goqueue_jobs
SET created_at = %s,
    finished_at = %s,
    status = %s,
    error = %s,
    arguments = %s
WHERE job_id = %s
RETURNING {_JOB_COLUMNS}
"""

UPDATE_JOB_FAILED = f"""
UPDATE goqueue_jobs
SET
    status = 'failed',
    error = %s
WHERE job_id = %s
RETURNING {_JOB_COLUMNS}
"""

UPDATE_JOB_FINISHED = f"""
UPDATE goqueue_jobs
SET
    status = 'finished',
    finished_at = NOW()
WHERE job_id = %s
RETURNING {_JOB_COLUMNS}
"""

UPDATE_JOB_STATUS = f"""
UPDATE goqueue_jobs
SET status = %s
WHERE job_id = %s
RETURNING {_JOB_COLUMNS}
"""

GET_QUEUE = """
SELECT queue_name, is_fifo, created_at
FROM goqueue_queues
WHERE queue_name = %s
LIMIT 1
"""

INSERT_QUEUE = """
INSERT INTO goqueue_queues (queue_name, is_fifo)
VALUES (%s, %s)
ON CONFLICT (queue_name) DO NOTHING
RETURNING queue_name, is_fifo, created_at
"""

LOCK_QUEUE = """
SELECT pg_try_advisory_xact_lock(
    hashtext(%s)::bigint
) AS acquired
"""


class NoRowsError(LookupError):
    """A statement expected to return one row returned none."""

    def __init__(self) -> None:
        super().__init__("no rows in result set")


def _enum_value(value: Union[str, JobStatus, RetryPolicy]) -> str:
    return value.value if isinstance(value, (JobStatus, RetryPolicy)) else str(value)


class Queries:
    """Typed access to the queue tables through a DB-API connection.

    The connection must use the ``format`` parameter style (``%s``).
    """

    def __init__(self, db: Any) -> None:
        self._db = db

    def with_connection(self, conn: Any) -> "Queries":
        """Return a copy that runs its statements on another connection."""
        return Queries(conn)

    def _query_row(self, sql: str, params: Sequence[Any]) -> Sequence[Any]:
        with closing(self._db.cursor()) as cursor:
            cursor.execute(sql, tuple(params))
            row = cursor.fetchone()
        if row is None:
            raise NoRowsError()
        return row

    def _job(self, sql: str, *params: Any) -> QueueJob:
        return QueueJob.from_row(self._query_row(sql, params))

    def fetch_job(self, queue_name: str) -> QueueJob:
        """Claim the oldest due job of the queue and mark it running."""
        return self._job(FETCH_JOB, queue_name)

    def fetch_job_locked(self, queue_name: str) -> QueueJob:
        """Like fetch_job, but skips rows locked by other receivers."""
        return self._job(FETCH_JOB_LOCKED, queue_name)

    def get_queue(self, queue_name: str) -> QueueMetadata:
        return QueueMetadata.from_row(self._query_row(GET_QUEUE, (queue_name,)))

    def insert_job(
        self,
        queue_name: str,
        scheduled_at: datetime,
        arguments: bytes,
        max_retries: int,
        retry_policy: Union[str, RetryPolicy],
    ) -> QueueJob:
        return self._job(
            INSERT_JOB,
            queue_name,
            scheduled_at,
            arguments,
            max_retries,
            _enum_value(retry_policy),
        )

    def insert_queue(self, queue_name: str, is_fifo: bool) -> QueueMetadata:
        """Create queue metadata; raises NoRowsError if the queue exists."""
        return QueueMetadata.from_row(self._query_row(INSERT_QUEUE, (queue_name, is_fifo)))

    def lock_queue(self, queue_name: str) -> bool:
        """Try to take the transaction-scoped advisory lock of a queue."""
        (acquired,) = self._query_row(LOCK_QUEUE, (queue_name,))
        return bool(acquired)

    def move_job_to_dlq(self, job_id: int, queue_name: str) -> QueueJob:
        return self._job(MOVE_JOB_TO_DLQ, queue_name, job_id)

    def reschedule_job(self, job_id: int, scheduled_at: datetime) -> QueueJob:
        return self._job(RESCHEDULE_JOB, scheduled_at, job_id)

    def update_job(
        self,
        job_id: int,
        created_at: Optional[datetime],
        finished_at: Optional[datetime],
        status: Union[str, JobStatus],
        error: Optional[str],
        arguments: bytes,
    ) -> QueueJob:
        return self._job(
            UPDATE_JOB,
            created_at,
            finished_at,
            _enum_value(status),
            error,
            arguments,
            job_id,
        )

    def update_job_failed(self, job_id: int, error: Optional[str]) -> QueueJob:
        return self._job(UPDATE_JOB_FAILED, error, job_id)

    def update_job_finished(self, job_id: int) -> QueueJob:
        return self._job(UPDATE_JOB_FINISHED, job_id)

    def update_job_status(self, job_id: int, status: Union[str, JobStatus]) -> QueueJob:
        return self._job(UPDATE_JOB_STATUS, _enum_value(status), job_id)