"""
Queue Manager - named queues behind one facade.

Holds the QueueConfig of every registered queue, creates each queue's
Connection lazily through the config's factory, applies per-queue
defaults, and routes job failures: released with a retry delay while
attempts remain, quarantined in the failed-job store after that.

Usage:
    from jobqueue.manager import QueueManager

    manager = QueueManager.from_yaml("configs/queues.yaml")

    manager.push("emails", SendWelcomeMail(42))
    job = manager.pop("emails")
    try:
        run(job)
        manager.complete("emails", job.id)
    except Exception as e:
        manager.fail(job, e)

    manager.run_due_recurring()   # from a scheduler loop
    manager.prune_all()
    manager.close_all()
"""

import logging
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Union

from jobqueue.config import QueueConfig, load_queue_configs, load_store_manager
from jobqueue.connection import Connection, DependencyResolver, InstanceResolver, LoggerLike
from jobqueue.exceptions import QueueException, RetryHydrationError
from jobqueue.hydrator import JobHydrator
from jobqueue.job_types import FailedJobRecord, Job, Queueable, utc_now
from jobqueue.sql_connection import SQLConnectionFactory
from jobqueue.store import StoreManager

logger = logging.getLogger("queue_manager")


class QueueManager:
    """
    Facade over per-queue Connections.

    Thread-safe for connection creation; the connections themselves are
    safe to share because every operation is its own store transaction.
    """

    def __init__(
        self,
        resolver: DependencyResolver,
        configs: Optional[Dict[str, QueueConfig]] = None,
        logger: Optional[LoggerLike] = None,
        hydrator: Optional[JobHydrator] = None,
    ):
        self.resolver = resolver
        self.logger = logger if logger is not None else logging.getLogger("queue_manager")
        self.hydrator = hydrator or JobHydrator()
        self._configs: Dict[str, QueueConfig] = {}
        self._connections: Dict[str, Connection] = {}
        self._lock = threading.Lock()

        for name, config in (configs or {}).items():
            self.register_queue(name, config)

    @classmethod
    def from_yaml(
        cls,
        path: Union[Path, str, None] = None,
        resolver: Optional[DependencyResolver] = None,
        logger: Optional[LoggerLike] = None,
    ) -> "QueueManager":
        """Build a manager (and, without a resolver, its stores) from a queue config file."""
        if resolver is None:
            resolver = InstanceResolver({StoreManager: load_store_manager(path)})
        return cls(resolver, load_queue_configs(path), logger=logger)

    # =========================================================================
    # QUEUES
    # =========================================================================

    def register_queue(self, name: str, config: Optional[QueueConfig] = None) -> QueueConfig:
        """Add or replace a queue. Replacing drops its cached connection."""
        if not name:
            raise QueueException("Queue name must not be empty")
        config = config or QueueConfig()
        with self._lock:
            self._configs[name] = config
            old = self._connections.pop(name, None)
        if old is not None:
            old.close()
        self.logger.debug(f"Registered queue '{name}'")
        return config

    def has_queue(self, name: str) -> bool:
        return name in self._configs

    def queue_names(self) -> List[str]:
        return sorted(self._configs)

    def get_config(self, name: str) -> QueueConfig:
        config = self._configs.get(name)
        if config is None:
            raise QueueException(f"Unknown queue: '{name}'")
        return config

    def connection(self, name: str) -> Connection:
        """Get (creating on first use) the connection for a queue."""
        config = self.get_config(name)
        with self._lock:
            conn = self._connections.get(name)
            if conn is None:
                factory = config.connection_factory or SQLConnectionFactory()
                conn = factory.create_connection(name, self.resolver, self.logger, config)
                self._connections[name] = conn
        return conn

    # =========================================================================
    # PRODUCERS
    # =========================================================================

    def push(
        self,
        queue: str,
        job: Queueable,
        delay: Optional[int] = None,
        priority: Optional[int] = None,
    ) -> str:
        """
        Push with the queue's defaults.

        Args:
            delay: Seconds before the job is eligible (default_delay_seconds if None)
            priority: Higher pops first (default_priority if None)
        """
        config = self.get_config(queue)
        if delay is None:
            delay = config.default_delay_seconds
        if priority is None:
            priority = config.default_priority

        execute_at = utc_now() + timedelta(seconds=delay) if delay > 0 else None
        return self.connection(queue).push(job, execute_at=execute_at, priority=priority)

    def later(self, queue: str, delay: int, job: Queueable, priority: Optional[int] = None) -> str:
        return self.push(queue, job, delay=delay, priority=priority)

    def schedule(
        self,
        queue: str,
        job: Queueable,
        execute_at: datetime,
        priority: Optional[int] = None,
    ) -> str:
        if priority is None:
            priority = self.get_config(queue).default_priority
        return self.connection(queue).schedule(job, execute_at, priority)

    def recurring(self, queue: str, job: Queueable, cron: str, priority: Optional[int] = None) -> str:
        conn = self.connection(queue)
        if not conn.supports_recurring():
            raise QueueException(f"Queue '{queue}' does not support recurring jobs")
        if priority is None:
            priority = self.get_config(queue).default_priority
        return conn.register_recurring_job(job, cron, priority)

    def run_due_recurring(
        self,
        queue: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, List[str]]:
        """
        Enqueue due recurring jobs, for one queue or every queue.

        Call this from a scheduler loop, e.g. once a minute.
        Returns {queue: [pushed row ids]}.
        """
        names = [queue] if queue is not None else self.queue_names()
        results = {}
        for name in names:
            conn = self.connection(name)
            if conn.supports_recurring():
                results[name] = conn.run_due_recurring_jobs(now)
        total = sum(len(ids) for ids in results.values())
        if total:
            self.logger.info(f"Enqueued {total} recurring jobs across {len(results)} queues")
        return results

    # =========================================================================
    # WORKERS
    # =========================================================================

    def pop(self, queue: str) -> Optional[Job]:
        return self.connection(queue).pop()

    def complete(self, queue: str, job_id: str) -> bool:
        return self.connection(queue).complete(job_id)

    def remove(self, queue: str, job_id: str) -> bool:
        return self.connection(queue).remove(job_id)

    def fail(self, job: Job, error: BaseException) -> bool:
        """
        Route a failed job.

        While job.attempts < max_retries the job is released and becomes
        eligible again after the queue's retry delay. After that the job's
        failed() hook runs and the job is moved to the failed-job store
        (or simply removed when the queue doesn't keep failed jobs).

        Returns:
            True if the job will be retried
        """
        config = self.get_config(job.queue)
        conn = self.connection(job.queue)

        if job.attempts < config.max_retries:
            delay = config.retry_delay_for(job.attempts)
            conn.release(job.id, delay)
            self.logger.info(
                f"Job {job.id} on '{job.queue}' failed (attempt {job.attempts}/"
                f"{config.max_retries}), retrying in {delay}s: {error}"
            )
            return True

        self._run_failed_hook(job, error)

        if config.store_failed_jobs and conn.has_failed_job_storage():
            if not conn.store_failed_job(job, error):
                self.logger.error(f"Job {job.id} on '{job.queue}' could not be quarantined")
        else:
            conn.remove(job.id)

        self.logger.warning(
            f"Job {job.id} on '{job.queue}' failed permanently after {job.attempts} attempts: {error}"
        )
        return False

    def _run_failed_hook(self, job: Job, error: BaseException) -> None:
        try:
            instance = self.hydrator.hydrate(job.payload)
        except RetryHydrationError as e:
            self.logger.warning(f"Skipping failed() hook for job {job.id}: {e}")
            return
        try:
            instance.failed(error)
        except Exception as e:
            # The hook is user code; the job still has to be quarantined
            self.logger.error(f"failed() hook of job {job.id} raised: {e}")

    # =========================================================================
    # FAILED JOBS
    # =========================================================================

    def retry(self, queue: str, failed_id: str) -> bool:
        return self.connection(queue).retry_failed_job(failed_id)

    def failed_jobs(self, queue: str, limit: int = 10, offset: int = 0) -> List[FailedJobRecord]:
        conn = self.connection(queue)
        if not conn.has_failed_job_storage():
            return []
        return conn.get_failed_jobs(limit, offset)

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    def get_stats(self, queue: Optional[str] = None) -> Dict:
        """Stats of one queue, or {queue: stats} for all queues."""
        if queue is not None:
            return self.connection(queue).get_stats()
        return {name: self.connection(name).get_stats() for name in self.queue_names()}

    def prune(self, queue: str, max_age: Optional[int] = None) -> int:
        if max_age is None:
            max_age = self.get_config(queue).max_age_seconds
        return self.connection(queue).prune(max_age)

    def prune_all(self) -> Dict[str, int]:
        """Prune every queue with auto_prune enabled."""
        results = {}
        for name in self.queue_names():
            if self.get_config(name).auto_prune:
                results[name] = self.prune(name)
        total = sum(results.values())
        if total:
            self.logger.info(f"Pruned {total} jobs across {len(results)} queues")
        return results

    def release_stale(self, queue: str) -> int:
        """Release jobs reserved longer than the queue's max_execution_time_seconds."""
        return self.connection(queue).release_stale_reservations(
            self.get_config(queue).max_execution_time_seconds
        )

    def clear(self, queue: str) -> int:
        return self.connection(queue).clear()

    def close_all(self) -> None:
        with self._lock:
            connections, self._connections = self._connections, {}
        for conn in connections.values():
            conn.close()

    def __enter__(self) -> "QueueManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close_all()
