"""
Jobqueue - persistent, retryable job queue on a shared relational store.

Components:
- Connection: backend contract (push, pop, schedule, stats, prune, failed jobs)
- SQLConnection: SQLite-backed implementation with transactional dequeue
- QueueManager: named queues with per-queue config and failure routing
- JobTypeRegistry: logical job name -> factory, used to revive failed jobs

Usage:
    from jobqueue import QueueManager, QueueableJob, register_job_type

    @register_job_type
    class SendWelcomeMail(QueueableJob):
        job_name = "send_welcome_mail"
        ...

    manager = QueueManager.from_yaml("configs/queues.yaml")
    manager.push("emails", SendWelcomeMail(42), priority=10)

    job = manager.pop("emails")
    if job:
        # execute job...
        manager.complete("emails", job.id)

Architecture:
    - The store is the only shared state; producers and workers can be
      separate processes
    - pop reserves atomically, so a job is never handed out twice
    - Unique jobs are deduplicated per queue (best effort)
    - Failed jobs are retried with backoff, then quarantined
"""

from jobqueue.config import (
    DEFAULT_QUEUE_OPTIONS,
    QueueConfig,
    load_queue_configs,
    load_store_manager,
)
from jobqueue.connection import (
    Connection,
    ConnectionFactory,
    DependencyResolver,
    InstanceResolver,
)
from jobqueue.cron import CronExpression
from jobqueue.exceptions import (
    ConfigurationError,
    DedupCheckError,
    InvalidCronExpressionError,
    JobSerializationError,
    QueueException,
    QueueStoreError,
    RetryHydrationError,
    UnknownJobTypeError,
)
from jobqueue.hydrator import JobHydrator
from jobqueue.job_types import (
    FailedJobRecord,
    Job,
    JobState,
    Queueable,
    QueueableJob,
    RecurringJobDefinition,
)
from jobqueue.manager import QueueManager
from jobqueue.registry import JobTypeRegistry, default_registry, register_job_type
from jobqueue.retry import RetryStrategy
from jobqueue.sql_connection import SQLConnection, SQLConnectionFactory
from jobqueue.store import SQLiteStore, StoreManager

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "Connection",
    "ConnectionFactory",
    "CronExpression",
    "DEFAULT_QUEUE_OPTIONS",
    "DedupCheckError",
    "DependencyResolver",
    "FailedJobRecord",
    "InstanceResolver",
    "InvalidCronExpressionError",
    "Job",
    "JobHydrator",
    "JobSerializationError",
    "JobState",
    "JobTypeRegistry",
    "QueueConfig",
    "QueueException",
    "QueueManager",
    "QueueStoreError",
    "Queueable",
    "QueueableJob",
    "RecurringJobDefinition",
    "RetryHydrationError",
    "RetryStrategy",
    "SQLConnection",
    "SQLConnectionFactory",
    "SQLiteStore",
    "StoreManager",
    "UnknownJobTypeError",
    "default_registry",
    "load_queue_configs",
    "load_store_manager",
    "register_job_type",
]
