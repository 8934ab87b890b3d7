"""Persistence workflows: retried writes, dead-letter parking and replay."""

from overseer.workflows.durable import DurableWriter
from overseer.workflows.retry import MaxRetriesExceeded, RetryConfig, with_retry

__all__ = ["DurableWriter", "MaxRetriesExceeded", "RetryConfig", "with_retry"]
