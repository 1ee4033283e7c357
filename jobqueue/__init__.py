"""A PostgreSQL-backed job queue with retry policies, FIFO mode and dead-letter queues."""

__version__ = "0.1.0"
__all__ = ["errors", "models", "queries", "queue"]