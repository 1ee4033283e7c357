from datetime import datetime

import pytest

from jobqueue.models import (
    JobStatus,
    QueueJob,
    QueueMetadata,
    RetryPolicy,
    parse_job_status,
    parse_retry_policy,
)

CREATED = datetime(2024, 1, 2, 3, 4, 5)


def job_row(**overrides):
    values = {
        "job_id": 7,
        "queue_name": "orders",
        "created_at": CREATED,
        "started_at": None,
        "finished_at": None,
        "scheduled_at": CREATED,
        "max_retries": 3,
        "retry_attempt": 1,
        "retry_policy": "exponential",
        "status": "available",
        "error": None,
        "arguments": b'{"foo":"bar"}',
    }
    values.update(overrides)
    return tuple(values.values())


@pytest.mark.parametrize("raw", ["running", b"running", bytearray(b"running")])
def test_parse_job_status_accepts_text_and_bytes(raw):
    assert parse_job_status(raw) is JobStatus.RUNNING


def test_parse_job_status_keeps_none():
    assert parse_job_status(None) is None


def test_parse_job_status_rejects_other_types():
    with pytest.raises(TypeError, match="unsupported scan type"):
        parse_job_status(42)


def test_parse_job_status_rejects_unknown_value():
    with pytest.raises(ValueError):
        parse_job_status("sleeping")


@pytest.mark.parametrize("policy", list(RetryPolicy))
def test_parse_retry_policy_round_trip(policy):
    assert parse_retry_policy(policy.value) is policy
    assert parse_retry_policy(policy.value.encode()) is policy
    assert parse_retry_policy(policy) is policy


@pytest.mark.parametrize(
    ("stored", "status"),
    [
        ("available", JobStatus.AVAILABLE),
        ("running", JobStatus.RUNNING),
        ("failed", JobStatus.FAILED),
        ("finished", JobStatus.FINISHED),
    ],
)
def test_stored_job_status_strings(stored, status):
    assert parse_job_status(stored) is status


@pytest.mark.parametrize(
    ("stored", "policy"),
    [
        ("constant", RetryPolicy.CONSTANT),
        ("linear", RetryPolicy.LINEAR),
        ("exponential", RetryPolicy.EXPONENTIAL),
    ],
)
def test_stored_retry_policy_strings(stored, policy):
    assert parse_retry_policy(stored) is policy


def test_queue_job_from_row():
    job = QueueJob.from_row(job_row())
    assert job.job_id == 7
    assert job.queue_name == "orders"
    assert job.created_at == CREATED
    assert job.retry_policy is RetryPolicy.EXPONENTIAL
    assert job.status is JobStatus.AVAILABLE
    assert job.arguments == b'{"foo":"bar"}'
    assert job.error is None


def test_queue_job_arguments_normalised_to_bytes():
    from_view = QueueJob.from_row(job_row(arguments=memoryview(b"[1]")))
    from_text = QueueJob.from_row(job_row(arguments="[1]"))
    from_decoded = QueueJob.from_row(job_row(arguments={"foo": "bar"}))
    assert from_view.arguments == b"[1]"
    assert from_text.arguments == b"[1]"
    assert from_decoded.arguments == b'{"foo": "bar"}'


def test_queue_job_from_row_wrong_width():
    with pytest.raises(ValueError):
        QueueJob.from_row(job_row()[:5])


def test_queue_metadata_from_row():
    meta = QueueMetadata.from_row(("orders", 1, CREATED))
    assert meta == QueueMetadata(queue_name="orders", is_fifo=True, created_at=CREATED)


def test_queue_metadata_from_row_wrong_width():
    with pytest.raises(ValueError):
        QueueMetadata.from_row(("orders", True))