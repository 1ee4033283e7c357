"""Named job queues backed by the job tables, with retries and dead-lettering."""

from __future__ import annotations

import abc
import dataclasses
import json
import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Generic, Optional, TypeVar, Union

from .errors import (
    NoJobError,
    QueueError,
    ReceiveJobError,
    UpdateJobStatusError,
    WorkerFailedError,
)
from .models import JobStatus, QueueJob, RetryPolicy, parse_retry_policy
from .queries import NoRowsError, Queries

T = TypeVar("T")

Duration = Union[float, int, timedelta]

_MAX_RETRIES_REACHED = "maximum number of retries reached"


def _seconds(value: Duration) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class Job(Generic[T]):
    """A queued job: its database identifier and its arguments."""

    id: int
    args: T


class Worker(abc.ABC, Generic[T]):
    """Processes jobs; implementations should be idempotent."""

    @abc.abstractmethod
    def work(self, job: Job[T]) -> None:
        """Process one job; raising triggers the job's retry handling."""


class JobQueue(Generic[T]):
    """Polls a named queue for due jobs and runs them through a worker.

    ``db`` is a DB-API connection using the ``format`` parameter style.
    Arguments are stored as JSON; ``args_type`` turns the decoded JSON back
    into the argument type (a dataclass or any callable taking the value).
    """

    def __init__(
        self,
        db: Any,
        worker: Worker[T],
        *,
        queue_name: str = "default",
        dlq_name: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
        poll_interval: Duration = 1.0,
        base_retry_delay: Duration = 2.0,
        max_retry_delay: Duration = 3600.0,
        fifo: bool = False,
        args_type: Optional[Any] = None,
    ) -> None:
        self._db = db
        self._queries = Queries(db)
        self._worker = worker
        self.queue_name = queue_name
        self.dlq_name = dlq_name or None
        self._logger = logger or logging.getLogger(__name__)
        self.poll_interval = _seconds(poll_interval)
        self.base_retry_delay = _seconds(base_retry_delay)
        self.max_retry_delay = _seconds(max_retry_delay)
        self.fifo = fifo
        self._args_type = args_type
        self._ensure_queue_metadata()

    def _ensure_queue_metadata(self) -> None:
        try:
            metadata = self._queries.insert_queue(self.queue_name, self.fifo)
        except NoRowsError:
            try:
                metadata = self._queries.get_queue(self.queue_name)
            except Exception:
                self._db.rollback()
                raise
        except Exception:
            self._db.rollback()
            raise
        self._db.commit()

        if metadata.is_fifo != self.fifo:
            raise ValueError(
                f"queue '{self.queue_name}' config mismatch: "
                f"expected FIFO={str(self.fifo).lower()}, "
                f"got FIFO={str(metadata.is_fifo).lower()}"
            )

    def _encode(self, args: T) -> bytes:
        payload: Any = args
        if dataclasses.is_dataclass(args) and not isinstance(args, type):
            payload = dataclasses.asdict(args)
        try:
            return json.dumps(payload).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise ValueError(f"failed to json encode job arguments: {exc}") from exc

    def _decode(self, raw: bytes) -> T:
        data = json.loads(raw)
        target = self._args_type
        if target is None:
            return data
        if dataclasses.is_dataclass(target):
            if not isinstance(data, dict):
                raise TypeError(
                    f"cannot decode {type(data).__name__} into {target.__name__}"
                )
            names = {f.name for f in dataclasses.fields(target) if f.init}
            return target(**{k: v for k, v in data.items() if k in names})
        return target(data)

    def enqueue(
        self,
        args: T,
        *,
        max_retries: int = 3,
        retry_policy: Union[str, RetryPolicy] = RetryPolicy.EXPONENTIAL,
    ) -> Job[T]:
        """Add a job with the given arguments to the queue."""
        raw = self._encode(args)
        policy = parse_retry_policy(retry_policy)
        if policy is None:
            raise ValueError("retry policy must be given")
        try:
            row = self._queries.insert_job(
                self.queue_name, _utcnow(), raw, max_retries, policy
            )
        except Exception:
            self._db.rollback()
            raise
        self._db.commit()
        return Job(id=row.job_id, args=args)

    def receive(self, stop: Optional[threading.Event] = None) -> None:
        """Poll and process jobs until ``stop`` is set; errors are logged."""
        if stop is None:
            stop = threading.Event()
        while not stop.wait(self.poll_interval):
            try:
                self.receive_once()
            except NoJobError:
                continue
            except Exception as exc:
                self._logger.error("receive error: %s", exc)

    def receive_once(self) -> Job[T]:
        """Fetch and process a single job, returning it.

        Raises NoJobError when nothing is due, and another QueueError when
        fetching, decoding, working or finishing the job fails.
        """
        if self.fifo:
            return self._receive_fifo()
        return self._receive_concurrent()

    def _receive_concurrent(self) -> Job[T]:
        queries = self._queries
        try:
            row = queries.fetch_job_locked(self.queue_name)
        except NoRowsError:
            self._db.rollback()
            raise NoJobError() from None
        except Exception as exc:
            self._db.rollback()
            raise ReceiveJobError(exc) from exc
        self._db.commit()

        try:
            job = self._process(queries, row)
        finally:
            self._db.commit()

        try:
            queries.update_job_finished(row.job_id)
        except Exception as exc:
            self._db.rollback()
            raise UpdateJobStatusError(
                row.status.value, JobStatus.FINISHED.value, exc
            ) from exc
        self._db.commit()
        return job

    def _receive_fifo(self) -> Job[T]:
        queries = self._queries
        try:
            try:
                acquired = queries.lock_queue(self.queue_name)
            except Exception as exc:
                wrapped = RuntimeError(f"lock queue: {exc}")
                wrapped.__cause__ = exc
                raise ReceiveJobError(wrapped) from exc
            if not acquired:
                raise NoJobError()

            try:
                row = queries.fetch_job(self.queue_name)
            except NoRowsError:
                raise NoJobError() from None
            except Exception as exc:
                raise ReceiveJobError(exc) from exc

            job = self._process(queries, row)

            try:
                queries.update_job_finished(row.job_id)
            except Exception as exc:
                raise UpdateJobStatusError(
                    row.status.value, JobStatus.FINISHED.value, exc
                ) from exc
        except BaseException:
            self._db.rollback()
            raise

        try:
            self._db.commit()
        except Exception as exc:
            raise QueueError(f"tx commit: {exc}") from exc
        return job

    def _process(self, queries: Queries, row: QueueJob) -> Job[T]:
        try:
            args = self._decode(row.arguments)
        except Exception as exc:
            self._mark_failed(queries, row, str(exc))
            raise ReceiveJobError(exc) from exc

        job = Job(id=row.job_id, args=args)
        try:
            self._worker.work(job)
        except Exception as exc:
            if row.retry_attempt < row.max_retries:
                self._retry(queries, row)
            else:
                self._mark_failed(queries, row, _MAX_RETRIES_REACHED)
            raise WorkerFailedError(exc) from exc
        return job

    def _retry(self, queries: Queries, row: QueueJob) -> None:
        delay = self.next_retry_delay(row)
        try:
            scheduled_at = _utcnow() + timedelta(seconds=delay)
        except OverflowError:
            scheduled_at = datetime.max
        try:
            queries.reschedule_job(row.job_id, scheduled_at)
        except Exception as exc:
            self._logger.error("failed to retry job %s: %s", row.job_id, exc)

    def _mark_failed(self, queries: Queries, row: QueueJob, message: str) -> None:
        try:
            queries.update_job_failed(row.job_id, message)
        except Exception as exc:
            self._logger.error(
                "failed to update job status to 'failed' for job %s: %s",
                row.job_id,
                exc,
            )

        if self.dlq_name is not None:
            try:
                queries.move_job_to_dlq(row.job_id, self.dlq_name)
            except Exception as exc:
                self._logger.error(
                    "failed to insert job %s into DLQ %s: %s",
                    row.job_id,
                    self.dlq_name,
                    exc,
                )

    def next_retry_delay(self, job: QueueJob) -> float:
        """Seconds to wait before the job's next attempt, capped at the maximum."""
        delay = self.base_retry_delay
        exponent = job.retry_attempt + 1

        if job.retry_policy is RetryPolicy.LINEAR:
            delay = delay * exponent
        elif job.retry_policy is RetryPolicy.EXPONENTIAL:
            try:
                power = delay**exponent
            except OverflowError:
                power = math.inf
            delay = float(math.trunc(power)) if math.isfinite(power) else math.inf

        return min(delay, self.max_retry_delay)