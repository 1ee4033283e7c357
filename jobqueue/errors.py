"""Exceptions raised while receiving and processing queued jobs."""

from __future__ import annotations

import json


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


class QueueError(Exception):
    """Base class for all job queue errors."""


class NoJobError(QueueError):
    """No job is currently available in the queue."""

    def __init__(self) -> None:
        super().__init__("no job available")


class ReceiveJobError(QueueError):
    """A job could not be fetched or decoded."""

    def __init__(self, err: BaseException) -> None:
        super().__init__(f"failed to get job: {err}")
        self.err = err
        self.__cause__ = err


class UpdateJobStatusError(QueueError):
    """A job's status could not be moved to the wanted state."""

    def __init__(self, current_state: str, wanted_state: str, err: BaseException) -> None:
        super().__init__(
            f"failed to update job state from {_quote(current_state)} "
            f"to {_quote(wanted_state)}: {err}"
        )
        self.current_state = current_state
        self.wanted_state = wanted_state
        self.err = err
        self.__cause__ = err


class WorkerFailedError(QueueError):
    """The worker raised while processing a job."""

    def __init__(self, err: BaseException) -> None:
        super().__init__(f"failed to execute job: {err}")
        self.err = err
        self.__cause__ = err