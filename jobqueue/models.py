"""Records and enumerations stored in the job queue tables."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence, Type, TypeVar


class JobStatus(str, enum.Enum):
    """Lifecycle state of a job."""

    AVAILABLE = "available"
    RUNNING = "running"
    FAILED = "failed"
    FINISHED = "finished"

    def __str__(self) -> str:
        return self.value


class RetryPolicy(str, enum.Enum):
    """Strategy for spacing out retries of a failed job."""

    CONSTANT = "constant"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"

    def __str__(self) -> str:
        return self.value


_E = TypeVar("_E", JobStatus, RetryPolicy)


def _parse_enum(enum_cls: Type[_E], value: Any) -> Optional[_E]:
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        value = bytes(value).decode("utf-8")
    elif not isinstance(value, str):
        raise TypeError(
            f"unsupported scan type for {enum_cls.__name__}: {type(value).__name__}"
        )
    try:
        return enum_cls(value)
    except ValueError:
        raise ValueError(f"unknown {enum_cls.__name__} value: {value!r}") from None


def parse_job_status(value: Any) -> Optional[JobStatus]:
    """Convert a database value to a JobStatus; None stays None."""
    return _parse_enum(JobStatus, value)


def parse_retry_policy(value: Any) -> Optional[RetryPolicy]:
    """Convert a database value to a RetryPolicy; None stays None."""
    return _parse_enum(RetryPolicy, value)


def _as_bytes(value: Any) -> bytes:
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    # Drivers may decode JSON columns themselves; re-encode them.
    return json.dumps(value).encode("utf-8")


def _check_width(cls_name: str, row: Sequence[Any], width: int) -> None:
    if len(row) != width:
        raise ValueError(f"{cls_name} row must have {width} columns, got {len(row)}")


@dataclass(frozen=True)
class QueueJob:
    """A row of the jobs table."""

    job_id: int
    queue_name: str
    created_at: Optional[datetime]
    started_at: Optional[datetime]
    finished_at: Optional[datetime]
    scheduled_at: Optional[datetime]
    max_retries: int
    retry_attempt: int
    retry_policy: RetryPolicy
    status: JobStatus
    error: Optional[str]
    arguments: bytes

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "QueueJob":
        """Build a job from a row in table column order."""
        _check_width(cls.__name__, row, 12)
        (
            job_id,
            queue_name,
            created_at,
            started_at,
            finished_at,
            scheduled_at,
            max_retries,
            retry_attempt,
            retry_policy,
            status,
            error,
            arguments,
        ) = row
        return cls(
            job_id=int(job_id),
            queue_name=queue_name,
            created_at=created_at,
            started_at=started_at,
            finished_at=finished_at,
            scheduled_at=scheduled_at,
            max_retries=int(max_retries),
            retry_attempt=int(retry_attempt),
            retry_policy=parse_retry_policy(retry_policy),
            status=parse_job_status(status),
            error=error,
            arguments=_as_bytes(arguments),
        )


@dataclass(frozen=True)
class QueueMetadata:
    """A row of the queues table."""

    queue_name: str
    is_fifo: bool
    created_at: Optional[datetime]

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "QueueMetadata":
        """Build queue metadata from a row in table column order."""
        _check_width(cls.__name__, row, 3)
        queue_name, is_fifo, created_at = row
        return cls(queue_name=queue_name, is_fifo=bool(is_fifo), created_at=created_at)