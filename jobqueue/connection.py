"""
Connection - the contract every queue backend implements.

A Connection is bound to one queue name. Producers push/schedule jobs,
workers pop them, and maintenance code prunes and reads stats. Backends
are interchangeable behind this interface.

Job row states:
    PENDING  -> RESERVED           pop (attempts + 1, never handed out twice)
    RESERVED -> COMPLETED          complete
    RESERVED -> PENDING            release (retry with delay)
    RESERVED -> FAILED             store_failed_job
    any      -> gone               remove
    FAILED record -> new PENDING   retry_failed_job

Also defines the two collaborators a ConnectionFactory needs: a dependency
resolver (which hands out the configured store handle) and a logger.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from jobqueue.exceptions import ConfigurationError
from jobqueue.job_types import FailedJobRecord, Job, Queueable, RecurringJobDefinition

LoggerLike = Union[logging.Logger, logging.LoggerAdapter]


# =============================================================================
# COLLABORATORS
# =============================================================================

class DependencyResolver(ABC):
    """Produces configured instances by type."""

    @abstractmethod
    def resolve(self, type_: type) -> Any:
        """Return the instance registered for a type."""
        pass


class InstanceResolver(DependencyResolver):
    """Resolver backed by a plain type -> instance map."""

    def __init__(self, instances: Optional[Dict[type, Any]] = None):
        self._instances: Dict[type, Any] = dict(instances or {})

    def register(self, type_: type, instance: Any) -> None:
        self._instances[type_] = instance

    def resolve(self, type_: type) -> Any:
        try:
            return self._instances[type_]
        except KeyError:
            raise ConfigurationError(f"Nothing registered for {type_.__name__}") from None


# =============================================================================
# CONNECTION CONTRACT
# =============================================================================

class Connection(ABC):
    """
    Abstract queue backend bound to one queue.

    Store failures raise QueueStoreError unless a method says otherwise.
    """

    queue: str

    @abstractmethod
    def push(
        self,
        job: Queueable,
        execute_at: Optional[datetime] = None,
        priority: int = 0,
    ) -> str:
        """
        Add a job to the queue.

        Unique jobs with an outstanding duplicate (same queue and unique key,
        not failed or failed within the dedup window) are not inserted; the
        existing row id is returned instead.

        Args:
            job: The job to enqueue
            execute_at: Earliest run time (naive UTC), None for now
            priority: Higher pops first

        Returns:
            Row id of the queued (or already queued) job
        """
        pass

    @abstractmethod
    def pop(self) -> Optional[Job]:
        """
        Atomically reserve the next eligible job.

        Highest priority first, FIFO within a priority. Returns None when
        nothing is eligible.
        """
        pass

    @abstractmethod
    def remove(self, job_id: str) -> bool:
        """Delete a job row of this queue, whatever its state."""
        pass

    @abstractmethod
    def schedule(self, job: Queueable, execute_at: datetime, priority: int = 0) -> str:
        """Push a job that becomes eligible at execute_at."""
        pass

    @abstractmethod
    def complete(self, job_id: str) -> bool:
        """Mark a reserved job as successfully finished."""
        pass

    @abstractmethod
    def release(self, job_id: str, delay: int = 0) -> bool:
        """Return a reserved job to pending, eligible again after delay seconds."""
        pass

    @abstractmethod
    def get(self, job_id: str) -> Optional[Job]:
        """Get a job row by id."""
        pass

    @abstractmethod
    def supports_recurring(self) -> bool:
        pass

    @abstractmethod
    def register_recurring_job(self, job: Queueable, cron: str, priority: int = 0) -> str:
        """Create or update the recurring definition for (queue, job.name)."""
        pass

    @abstractmethod
    def list_recurring_jobs(self) -> List[RecurringJobDefinition]:
        pass

    @abstractmethod
    def remove_recurring_job(self, name: str) -> bool:
        pass

    @abstractmethod
    def run_due_recurring_jobs(self, now: Optional[datetime] = None) -> List[str]:
        """
        Push one job for every recurring definition that has come due.

        Returns the ids of the pushed rows.
        """
        pass

    @abstractmethod
    def get_stats(self) -> Dict[str, int]:
        """Counts of pending, reserved, failed, delayed, done and recurring, as of now."""
        pass

    @abstractmethod
    def prune(self, max_age: Optional[int] = None) -> int:
        """Delete completed and failed rows older than max_age seconds. Returns count."""
        pass

    @abstractmethod
    def clear(self) -> int:
        """Delete every job row of this queue. Returns count."""
        pass

    @abstractmethod
    def release_stale_reservations(self, max_execution_time: Optional[int] = None) -> int:
        """Return jobs reserved longer than max_execution_time to pending. Returns count."""
        pass

    @abstractmethod
    def has_failed_job_storage(self) -> bool:
        pass

    @abstractmethod
    def store_failed_job(self, job: Job, error: BaseException) -> bool:
        """
        Record a failure and mark the job row failed.

        Returns False (after logging) if the write fails; never raises for
        store errors.
        """
        pass

    @abstractmethod
    def get_failed_jobs(self, limit: int = 10, offset: int = 0) -> List[FailedJobRecord]:
        """Failed records of this queue, newest first."""
        pass

    @abstractmethod
    def retry_failed_job(self, failed_id: str) -> bool:
        """
        Re-queue a failed job and delete its failed record.

        Returns False if the record is missing or its payload can't be
        turned back into a job.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class ConnectionFactory(ABC):
    """Builds ready-to-use Connections."""

    @abstractmethod
    def create_connection(
        self,
        queue_name: str,
        resolver: DependencyResolver,
        logger: Optional[LoggerLike] = None,
        config: Any = None,
    ) -> Connection:
        pass
