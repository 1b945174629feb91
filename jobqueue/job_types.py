"""
Job Types - the queue's data model.

This module defines:
- Job: a row in the jobs table (identity, queue, payload, timing, priority)
- JobState: lifecycle state derived from the row's timestamps
- Queueable: the capability set a job payload class must provide
- QueueableJob: base implementation most job classes extend
- FailedJobRecord / RecurringJobDefinition: rows of the side tables

Usage:
    from jobqueue.job_types import QueueableJob

    class SendWelcomeMail(QueueableJob):
        job_name = "send_welcome_mail"

        def __init__(self, user_id=None, job_id=None):
            super().__init__(job_id)
            self.user_id = user_id

        def get_data(self):
            return {"user_id": self.user_id}

        def set_data(self, data):
            self.user_id = data["user_id"]

        def handle(self):
            ...

    job = SendWelcomeMail(42).make_unique(f"welcome:42")
    connection.push(job, priority=5)

Lifecycle of a Job row:
    push/schedule -> PENDING (or DELAYED while execute_at is in the future)
    pop           -> RESERVED (attempts + 1)
    complete      -> COMPLETED
    store_failed  -> FAILED
"""

import hashlib
import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

from jobqueue.exceptions import JobSerializationError


def utc_now() -> datetime:
    """Current time as naive UTC (the store keeps naive UTC timestamps)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_id() -> str:
    """Random 32-char hex id."""
    return uuid.uuid4().hex


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _format_dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class JobState(str, Enum):
    """State of a job row, derived from reserved_at / failed_at / last_executed_at."""
    PENDING = "pending"        # Eligible for pop
    DELAYED = "delayed"        # Pending, but execute_at is in the future
    RESERVED = "reserved"      # Claimed by a worker
    COMPLETED = "completed"    # Finished successfully
    FAILED = "failed"          # Moved to the failed-job store

    @property
    def is_terminal(self) -> bool:
        return self in {JobState.COMPLETED, JobState.FAILED}


# =============================================================================
# JOB INTERFACE
# =============================================================================

class Queueable(ABC):
    """
    Capability set of a job payload.

    to_dict() must carry everything from_dict() needs to rebuild an
    equivalent instance. is_unique() and unique_key must depend only on the
    job's own fields, otherwise two identical constructions won't dedup.
    """

    @property
    @abstractmethod
    def id(self) -> str:
        """Stable id of this job instance."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Logical job name. Keys the type registry and recurring jobs."""

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible map."""

    @classmethod
    @abstractmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Queueable":
        """Rebuild an instance from to_dict() output."""

    @abstractmethod
    def is_unique(self) -> bool:
        """Whether duplicates of this job should be suppressed."""

    @property
    @abstractmethod
    def unique_key(self) -> str:
        """Dedup key within a queue. Only meaningful when is_unique()."""

    @property
    def timeout(self) -> Optional[int]:
        """Max execution time in seconds, None for the queue default."""
        return None

    @abstractmethod
    def handle(self) -> Any:
        """Do the work."""

    def failed(self, error: BaseException) -> None:
        """Called once the job has been moved to the failed-job store."""


class QueueableJob(Queueable):
    """
    Base class for job payloads.

    Subclasses set job_name (defaults to the class name) and implement
    get_data() / set_data() for their own fields.
    """

    job_name: Optional[str] = None

    def __init__(self, job_id: Optional[str] = None):
        self._id = job_id or generate_id()
        self._timeout: Optional[int] = None
        self._unique = False
        self._unique_key: Optional[str] = None

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> str:
        return type(self).job_name or type(self).__name__

    @property
    def timeout(self) -> Optional[int]:
        return self._timeout

    def set_timeout(self, timeout: Optional[int]) -> "QueueableJob":
        self._timeout = timeout
        return self

    def is_unique(self) -> bool:
        return self._unique

    def make_unique(self, unique_key: Optional[str] = None) -> "QueueableJob":
        """Mark as unique. Without a key, one is derived from name + data."""
        self._unique = True
        self._unique_key = unique_key
        return self

    @property
    def unique_key(self) -> str:
        if not self._unique:
            raise JobSerializationError(f"Job {self.name} is not marked unique")
        if self._unique_key is not None:
            return self._unique_key
        # Derived, not cached: must stay a pure function of the data
        canonical = json.dumps(self.get_data(), sort_keys=True, default=str)
        return hashlib.md5(f"{self.name}:{canonical}".encode("utf-8")).hexdigest()

    @abstractmethod
    def get_data(self) -> Dict[str, Any]:
        """Job-specific fields."""

    @abstractmethod
    def set_data(self, data: Dict[str, Any]) -> None:
        """Restore job-specific fields."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self._id,
            "name": self.name,
            "timeout": self._timeout,
            "unique": self._unique,
            "unique_key": self._unique_key,
            "data": self.get_data(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueueableJob":
        if not isinstance(data, dict):
            raise JobSerializationError(f"Expected a dict payload, got {type(data).__name__}")

        job = cls.__new__(cls)
        QueueableJob.__init__(job, data.get("id"))
        job._timeout = data.get("timeout")
        if data.get("unique"):
            job._unique = True
            job._unique_key = data.get("unique_key")

        job_data = data.get("data")
        if not isinstance(job_data, dict):
            raise JobSerializationError(
                f"Payload for job {job.name} has no data map (got {type(job_data).__name__})"
            )
        try:
            job.set_data(job_data)
        except (KeyError, TypeError, ValueError) as e:
            raise JobSerializationError(f"Invalid data for job {job.name}: {e}") from e
        return job

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self._id}, name={self.name})"


# =============================================================================
# STORED RECORDS
# =============================================================================

@dataclass
class Job:
    """
    A job row in the queue.

    The payload is the Queueable's to_dict() output; the row id is assigned
    at push time and is independent of the payload's own id.
    """
    id: str
    queue: str
    payload: Dict[str, Any] = field(default_factory=dict)
    attempts: int = 0
    created_at: datetime = field(default_factory=utc_now)
    execute_at: Optional[datetime] = None
    priority: int = 0
    reserved_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    last_executed_at: Optional[datetime] = None
    unique_key: Optional[str] = None

    @property
    def name(self) -> Optional[str]:
        """Logical job name from the payload."""
        return self.payload.get("name")

    @property
    def has_failed(self) -> bool:
        return self.failed_at is not None

    @property
    def is_reserved(self) -> bool:
        return self.reserved_at is not None

    def state_at(self, now: datetime) -> JobState:
        """Derive the lifecycle state as of `now`."""
        if self.failed_at is not None:
            return JobState.FAILED
        if self.reserved_at is not None:
            return JobState.RESERVED
        if self.last_executed_at is not None:
            return JobState.COMPLETED
        if self.execute_at is not None and self.execute_at > now:
            return JobState.DELAYED
        return JobState.PENDING

    @property
    def state(self) -> JobState:
        return self.state_at(utc_now())

    def is_executable(self, now: Optional[datetime] = None) -> bool:
        """Not reserved, not terminal, and due."""
        return self.state_at(now or utc_now()) == JobState.PENDING

    def has_timed_out(self, max_execution_time: int, now: Optional[datetime] = None) -> bool:
        """
        Whether a reserved job has run longer than allowed.

        A timeout declared in the payload tightens the queue limit.
        """
        if self.reserved_at is None:
            return False
        job_timeout = self.payload.get("timeout")
        if job_timeout is not None:
            max_execution_time = min(max_execution_time, int(job_timeout))
        now = now or utc_now()
        return now > self.reserved_at + timedelta(seconds=max_execution_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "queue": self.queue,
            "payload": self.payload,
            "attempts": self.attempts,
            "created_at": _format_dt(self.created_at),
            "execute_at": _format_dt(self.execute_at),
            "priority": self.priority,
            "reserved_at": _format_dt(self.reserved_at),
            "failed_at": _format_dt(self.failed_at),
            "last_executed_at": _format_dt(self.last_executed_at),
            "unique_key": self.unique_key,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        return cls(
            id=data["id"],
            queue=data["queue"],
            payload=data.get("payload") or {},
            attempts=data.get("attempts", 0),
            created_at=_parse_dt(data.get("created_at")) or utc_now(),
            execute_at=_parse_dt(data.get("execute_at")),
            priority=data.get("priority", 0),
            reserved_at=_parse_dt(data.get("reserved_at")),
            failed_at=_parse_dt(data.get("failed_at")),
            last_executed_at=_parse_dt(data.get("last_executed_at")),
            unique_key=data.get("unique_key"),
        )


@dataclass
class FailedJobRecord:
    """A row in the failed-job store."""
    id: str
    queue: str
    job_id: str
    payload: Dict[str, Any]
    exception: Dict[str, Any]
    failed_at: datetime

    @property
    def message(self) -> str:
        return self.exception.get("message", "")

    @property
    def job_payload(self) -> Dict[str, Any]:
        """The original Queueable payload (the stored payload is the whole Job row)."""
        inner = self.payload.get("payload")
        return inner if isinstance(inner, dict) else {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "queue": self.queue,
            "job_id": self.job_id,
            "payload": self.payload,
            "exception": self.exception,
            "failed_at": self.failed_at.isoformat(),
        }


@dataclass
class RecurringJobDefinition:
    """A named, cron-scheduled job template. Unique per (queue, name)."""
    id: str
    queue: str
    name: str
    cron: str
    payload: Dict[str, Any]
    priority: int = 0
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    last_run_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "queue": self.queue,
            "name": self.name,
            "cron": self.cron,
            "payload": self.payload,
            "priority": self.priority,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
        }
