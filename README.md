# jobqueue

A job queue that keeps its jobs in PostgreSQL tables. Producers add jobs to a
named queue. Receivers poll that queue, run each due job through a worker and
mark it finished. A job whose worker raises is rescheduled after a delay set by
its retry policy. Once its attempts are used up it is marked failed and, if the
queue has a dead-letter queue, moved there.

## Installation

```
pip install .
```

To run the tests as well:

```
pip install ".[test]"
pytest
```

The package has no runtime dependencies of its own. You supply the database
connection: any DB-API 2.0 connection to PostgreSQL whose driver uses the
`format` parameter style (`%s`).

## Modules

- `jobqueue.queue`: `Job`, `Worker` and `JobQueue`.
- `jobqueue.models`: `JobStatus`, `RetryPolicy`, the row records `QueueJob`
  and `QueueMetadata`, and `parse_job_status` / `parse_retry_policy`.
- `jobqueue.queries`: `Queries`, the SQL statements on the two tables, and
  `NoRowsError`, raised when a statement that should return a row returns none.
- `jobqueue.errors`: `QueueError` and its subclasses `NoJobError`,
  `ReceiveJobError`, `UpdateJobStatusError` and `WorkerFailedError`.

## Concepts

- **`Job`**: a queued job with a database `id` and an `args` payload. The
  payload is stored as JSON. Dataclass instances are stored as their fields.
- **`Worker`**: an abstract class with one method, `work(job)`. If `work`
  raises, the retry handling starts. A job may run more than once, so workers
  should be idempotent.
- **`JobQueue`**: manages one named queue. It enqueues jobs, fetches due jobs,
  runs them through the worker and handles retries and failures.
- **`RetryPolicy`**: `CONSTANT`, `LINEAR` or `EXPONENTIAL`. Let `n` be the
  number of attempts made so far, counting the one that just failed. The delay
  before the next attempt, in seconds, is:
  - `CONSTANT`: `base_retry_delay`
  - `LINEAR`: `base_retry_delay * (n + 1)`
  - `EXPONENTIAL`: `base_retry_delay ** (n + 1)`, truncated to whole seconds

  The delay never exceeds `max_retry_delay`. `JobQueue.next_retry_delay(job)`
  returns it for a `QueueJob`.

Each fetch counts as an attempt. A job that fails on an attempt numbered
`max_retries` or higher is marked `failed` with the error
`"maximum number of retries reached"`. A job whose arguments cannot be decoded
is marked failed at once.

## Usage

```python
import threading
from dataclasses import dataclass

from jobqueue.models import RetryPolicy
from jobqueue.queue import Job, JobQueue, Worker


@dataclass
class Email:
    to: str


class SendWorker(Worker):
    def work(self, job: Job) -> None:
        print("sending", job.id, job.args.to)


queue = JobQueue(
    db,                      # DB-API connection to PostgreSQL, %s parameters
    SendWorker(),
    queue_name="emails",
    dlq_name="emails-dlq",   # optional dead-letter queue
    poll_interval=0.5,       # seconds or a timedelta
    base_retry_delay=2.0,    # seconds or a timedelta
    max_retry_delay=3600.0,  # seconds or a timedelta
    fifo=False,              # True processes jobs strictly in order
    args_type=Email,         # rebuilds args from the stored JSON
)

job = queue.enqueue(Email(to="someone@example.com"),
                    max_retries=5, retry_policy=RetryPolicy.EXPONENTIAL)

stop = threading.Event()
threading.Thread(target=queue.receive, args=(stop,), daemon=True).start()
# ... later
stop.set()
```

Without `args_type`, workers get the decoded JSON value as it is. When
`args_type` is a dataclass, the JSON object's keys that match its fields are
passed to it. Any other callable is called with the decoded value.

`receive(stop)` waits `poll_interval`, makes one attempt and repeats until
`stop` is set. Without `stop` it runs forever. Errors other than `NoJobError`
are logged and polling goes on. `receive_once()` makes a single attempt and
returns the processed `Job`. It raises:

- `NoJobError` when no job is due, or, in FIFO mode, when another receiver holds
  the queue;
- `ReceiveJobError` when fetching or decoding fails;
- `WorkerFailedError` when the worker raised;
- `UpdateJobStatusError` when the job cannot be marked finished.

In FIFO mode each attempt runs in one transaction under a per-queue advisory
lock, so jobs are taken one at a time in order of creation. Otherwise receivers
take jobs concurrently with `FOR UPDATE SKIP LOCKED`, and the order is not
guaranteed.

Creating a `JobQueue` records the queue in `goqueue_queues` and commits. It
raises `ValueError` if a queue of that name already exists with a different
FIFO setting. `enqueue` raises `ValueError` if the arguments cannot be encoded
as JSON.

A job moved to the dead-letter queue becomes `available` in that queue with its
attempt count reset to 0. Process it with a second `JobQueue` that has the
dead-letter queue's name.

## Defaults

| Option             | Default                         |
|--------------------|---------------------------------|
| `queue_name`       | `"default"`                     |
| `dlq_name`         | none (an empty string also means none) |
| `logger`           | `logging.getLogger("jobqueue.queue")` |
| `poll_interval`    | 1 second                        |
| `base_retry_delay` | 2 seconds                       |
| `max_retry_delay`  | 1 hour                          |
| `fifo`             | `False`                         |
| `max_retries`      | 3                               |
| `retry_policy`     | `EXPONENTIAL`                   |

## What this package does not do

It does not create the database schema. The tables `goqueue_jobs` (columns
`job_id`, `queue_name`, `created_at`, `started_at`, `finished_at`,
`scheduled_at`, `max_retries`, `retry_attempt`, `retry_policy`, `status`,
`error`, `arguments`) and `goqueue_queues` (columns `queue_name`, unique,
`is_fifo` and `created_at` with a default) must already exist. The
statements use PostgreSQL features, so other databases will not work. The
package has no command-line program and no async interface.