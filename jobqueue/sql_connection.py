"""
SQL Connection - the relational-store queue backend.

Three tables per store (names configurable):
    queue_jobs             one row per pushed job
    queue_failed_jobs      failure records, retryable
    queue_recurring_jobs   cron definitions, unique per (queue, name)

Usage:
    from jobqueue.sql_connection import SQLConnectionFactory

    factory = SQLConnectionFactory(connection_name="default")
    with factory.create_connection("emails", resolver, logger) as conn:
        conn.push(job, priority=10)
        job = conn.pop()
        ...
        conn.complete(job.id)

Architecture:
    - pop selects and reserves inside one BEGIN IMMEDIATE transaction,
      so two workers never get the same row
    - Unique-job dedup is check-then-insert and best effort: two truly
      concurrent pushes of the same key can both insert
    - Timestamps are naive UTC in a fixed-width format, so string
      comparison in SQL matches time order
"""

import json
import logging
import sqlite3
import traceback
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from jobqueue.config import QueueConfig
from jobqueue.connection import Connection, ConnectionFactory, DependencyResolver, LoggerLike
from jobqueue.cron import CronExpression
from jobqueue.exceptions import (
    DedupCheckError,
    JobSerializationError,
    QueueException,
    QueueStoreError,
    RetryHydrationError,
)
from jobqueue.hydrator import JobHydrator
from jobqueue.job_types import (
    FailedJobRecord,
    Job,
    Queueable,
    RecurringJobDefinition,
    generate_id,
    utc_now,
)
from jobqueue.registry import JobTypeRegistry
from jobqueue.store import SQLiteStore, StoreManager, validate_identifier


TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


def _naive_utc(value: datetime) -> datetime:
    """Stored and compared times are naive UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _to_db(value: Optional[datetime]) -> Optional[str]:
    return _naive_utc(value).strftime(TIMESTAMP_FORMAT) if value is not None else None


def _from_db(value: Optional[str]) -> Optional[datetime]:
    return datetime.strptime(value, TIMESTAMP_FORMAT) if value else None


class SQLConnection(Connection):
    """
    Connection over an SQLiteStore.

    The store is shared; this object only carries the queue name, table
    names, config and logger, so it is cheap to create one per queue.
    """

    def __init__(
        self,
        store: SQLiteStore,
        queue_name: str,
        logger: Optional[LoggerLike] = None,
        config: Optional[QueueConfig] = None,
        jobs_table: str = "queue_jobs",
        failed_table: str = "queue_failed_jobs",
        recurring_table: str = "queue_recurring_jobs",
        hydrator: Optional[JobHydrator] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if not queue_name:
            raise QueueException("Queue name must not be empty")

        self.store = store
        self.queue = queue_name
        self.config = config or QueueConfig()
        self.logger = logger if logger is not None else logging.getLogger("job_queue")
        self.hydrator = hydrator or JobHydrator()
        self._clock = clock or utc_now
        self._closed = False

        self.jobs_table = validate_identifier(jobs_table)
        self.failed_table = validate_identifier(failed_table)
        self.recurring_table = validate_identifier(recurring_table)

        with self._store_errors("create tables"):
            store.ensure_schema(self.jobs_table, self.failed_table, self.recurring_table)

    # =========================================================================
    # HELPERS
    # =========================================================================

    @contextmanager
    def _store_errors(self, action: str):
        """Turn driver errors into QueueStoreError (cause chained)."""
        if self._closed:
            raise QueueException(f"Connection for queue '{self.queue}' is closed")
        try:
            yield
        except sqlite3.Error as e:
            self.logger.error(f"Queue '{self.queue}': failed to {action}: {e}")
            raise QueueStoreError(f"Failed to {action} on queue '{self.queue}': {e}") from e

    def _now(self) -> datetime:
        return self._clock()

    def _encode_payload(self, job: Queueable) -> Dict[str, Any]:
        if not isinstance(job, Queueable):
            raise JobSerializationError(f"Expected a Queueable, got {type(job).__name__}")
        payload = job.to_dict()
        if not isinstance(payload, dict):
            raise JobSerializationError(f"{job.name}.to_dict() must return a dict")
        return payload

    def _dumps(self, value: Any, what: str) -> str:
        try:
            return json.dumps(value)
        except (TypeError, ValueError) as e:
            raise JobSerializationError(f"Cannot serialize {what}: {e}") from e

    def _loads(self, text: Optional[str], row_id: str) -> Dict[str, Any]:
        try:
            value = json.loads(text) if text else {}
        except ValueError as e:
            self.logger.error(f"Queue '{self.queue}': row {row_id} has a corrupt payload: {e}")
            return {}
        return value if isinstance(value, dict) else {}

    def _row_to_job(self, row: sqlite3.Row) -> Job:
        return Job(
            id=row["id"],
            queue=row["queue"],
            payload=self._loads(row["payload"], row["id"]),
            attempts=row["attempts"],
            created_at=_from_db(row["created_at"]),
            execute_at=_from_db(row["execute_at"]),
            priority=row["priority"],
            reserved_at=_from_db(row["reserved_at"]),
            failed_at=_from_db(row["failed_at"]),
            last_executed_at=_from_db(row["last_executed_at"]),
            unique_key=row["unique_key"],
        )

    def _row_to_failed(self, row: sqlite3.Row) -> FailedJobRecord:
        return FailedJobRecord(
            id=row["id"],
            queue=row["queue"],
            job_id=row["job_id"],
            payload=self._loads(row["payload"], row["id"]),
            exception=self._loads(row["exception"], row["id"]),
            failed_at=_from_db(row["failed_at"]),
        )

    def _row_to_recurring(self, row: sqlite3.Row) -> RecurringJobDefinition:
        return RecurringJobDefinition(
            id=row["id"],
            queue=row["queue"],
            name=row["name"],
            cron=row["cron"],
            payload=self._loads(row["payload"], row["id"]),
            priority=row["priority"],
            created_at=_from_db(row["created_at"]),
            updated_at=_from_db(row["updated_at"]),
            last_run_at=_from_db(row["last_run_at"]),
        )

    def _insert(
        self,
        conn: sqlite3.Connection,
        payload_json: str,
        execute_at: Optional[datetime],
        priority: int,
        unique_key: Optional[str],
    ) -> str:
        row_id = generate_id()
        conn.execute(
            f"""
            INSERT INTO {self.jobs_table}
                (id, queue, payload, priority, unique_key, created_at, execute_at, attempts)
            VALUES (?, ?, ?, ?, ?, ?, ?, 0)
            """,
            (row_id, self.queue, payload_json, int(priority), unique_key,
             _to_db(self._now()), _to_db(execute_at)),
        )
        return row_id

    def _find_unique(self, unique_key: str) -> Optional[str]:
        """
        Id of an outstanding job with this unique key, if any.

        Failed jobs keep blocking for unique_jobs_expiration_seconds.

        Raises:
            DedupCheckError: the lookup itself failed
        """
        cutoff = self._now() - timedelta(seconds=self.config.unique_jobs_expiration_seconds)
        try:
            row = self.store.query_one(
                f"""
                SELECT id FROM {self.jobs_table}
                WHERE queue = ? AND unique_key = ?
                AND (failed_at IS NULL OR failed_at > ?)
                ORDER BY failed_at IS NOT NULL, created_at ASC
                LIMIT 1
                """,
                (self.queue, unique_key, _to_db(cutoff)),
            )
        except sqlite3.Error as e:
            raise DedupCheckError(f"Unique lookup for '{unique_key}' failed: {e}") from e
        return row["id"] if row else None

    # =========================================================================
    # PRODUCER SIDE
    # =========================================================================

    def push(
        self,
        job: Queueable,
        execute_at: Optional[datetime] = None,
        priority: int = 0,
    ) -> str:
        payload = self._encode_payload(job)
        payload_json = self._dumps(payload, f"payload of job {job.name}")

        unique_key = job.unique_key if job.is_unique() else None
        if unique_key is not None and self.config.support_unique_jobs:
            try:
                existing = self._find_unique(unique_key)
            except DedupCheckError as e:
                # Best effort: a failed lookup never blocks the producer
                self.logger.warning(f"Queue '{self.queue}': {e}; pushing anyway")
                existing = None
            if existing is not None:
                self.logger.debug(
                    f"Queue '{self.queue}': unique job '{unique_key}' already queued as {existing}"
                )
                return existing

        with self._store_errors("push job"):
            with self.store.transaction(immediate=True) as conn:
                row_id = self._insert(conn, payload_json, execute_at, priority, unique_key)

        self.logger.debug(
            f"Queue '{self.queue}': pushed {job.name} as {row_id} "
            f"(priority={priority}, execute_at={execute_at})"
        )
        return row_id

    def schedule(self, job: Queueable, execute_at: datetime, priority: int = 0) -> str:
        return self.push(job, execute_at=execute_at, priority=priority)

    # =========================================================================
    # WORKER SIDE
    # =========================================================================

    def pop(self) -> Optional[Job]:
        """
        Reserve the next eligible job.

        Select and reserve run in one immediate transaction. The UPDATE is
        additionally guarded on reserved_at IS NULL, so even a store
        without the write lock can't hand a row out twice.
        """
        now = self._now()
        now_db = _to_db(now)

        with self._store_errors("pop job"):
            with self.store.transaction(immediate=True) as conn:
                row = conn.execute(
                    f"""
                    SELECT * FROM {self.jobs_table}
                    WHERE queue = ?
                    AND (execute_at IS NULL OR execute_at <= ?)
                    AND reserved_at IS NULL
                    AND failed_at IS NULL
                    AND last_executed_at IS NULL
                    ORDER BY priority DESC, created_at ASC, rowid ASC
                    LIMIT 1
                    """,
                    (self.queue, now_db),
                ).fetchone()
                if row is None:
                    return None

                cursor = conn.execute(
                    f"""
                    UPDATE {self.jobs_table}
                    SET reserved_at = ?, attempts = attempts + 1
                    WHERE id = ? AND reserved_at IS NULL
                    """,
                    (now_db, row["id"]),
                )
                if cursor.rowcount != 1:
                    return None

                job = self._row_to_job(row)
                job.reserved_at = now
                job.attempts += 1

        self.logger.debug(
            f"Queue '{self.queue}': reserved {job.id} ({job.name}, attempt {job.attempts})"
        )
        return job

    def complete(self, job_id: str) -> bool:
        now_db = _to_db(self._now())
        with self._store_errors("complete job"):
            with self.store.transaction() as conn:
                cursor = conn.execute(
                    f"""
                    UPDATE {self.jobs_table}
                    SET last_executed_at = ?, reserved_at = NULL
                    WHERE id = ? AND queue = ?
                    AND reserved_at IS NOT NULL AND failed_at IS NULL
                    """,
                    (now_db, job_id, self.queue),
                )
                updated = cursor.rowcount > 0

        if updated:
            self.logger.info(f"Queue '{self.queue}': job {job_id} completed")
        return updated

    def release(self, job_id: str, delay: int = 0) -> bool:
        delay = max(0, int(delay))
        execute_at = self._now() + timedelta(seconds=delay) if delay else None
        with self._store_errors("release job"):
            with self.store.transaction() as conn:
                cursor = conn.execute(
                    f"""
                    UPDATE {self.jobs_table}
                    SET reserved_at = NULL, execute_at = ?
                    WHERE id = ? AND queue = ?
                    AND reserved_at IS NOT NULL AND failed_at IS NULL
                    """,
                    (_to_db(execute_at), job_id, self.queue),
                )
                released = cursor.rowcount > 0

        if released:
            self.logger.info(f"Queue '{self.queue}': job {job_id} released (delay {delay}s)")
        return released

    def remove(self, job_id: str) -> bool:
        with self._store_errors("remove job"):
            with self.store.transaction() as conn:
                cursor = conn.execute(
                    f"DELETE FROM {self.jobs_table} WHERE id = ? AND queue = ?",
                    (job_id, self.queue),
                )
                return cursor.rowcount > 0

    def get(self, job_id: str) -> Optional[Job]:
        with self._store_errors("get job"):
            row = self.store.query_one(
                f"SELECT * FROM {self.jobs_table} WHERE id = ? AND queue = ?",
                (job_id, self.queue),
            )
        return self._row_to_job(row) if row else None

    # =========================================================================
    # RECURRING JOBS
    # =========================================================================

    def supports_recurring(self) -> bool:
        return True

    def register_recurring_job(self, job: Queueable, cron: str, priority: int = 0) -> str:
        CronExpression.parse(cron)
        payload_json = self._dumps(self._encode_payload(job), f"payload of job {job.name}")
        now_db = _to_db(self._now())

        with self._store_errors("register recurring job"):
            with self.store.transaction(immediate=True) as conn:
                row = conn.execute(
                    f"SELECT id FROM {self.recurring_table} WHERE queue = ? AND name = ?",
                    (self.queue, job.name),
                ).fetchone()

                if row:
                    definition_id = row["id"]
                    conn.execute(
                        f"""
                        UPDATE {self.recurring_table}
                        SET cron = ?, payload = ?, priority = ?, updated_at = ?
                        WHERE id = ?
                        """,
                        (cron, payload_json, int(priority), now_db, definition_id),
                    )
                else:
                    definition_id = generate_id()
                    conn.execute(
                        f"""
                        INSERT INTO {self.recurring_table}
                            (id, queue, name, cron, payload, priority, created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (definition_id, self.queue, job.name, cron, payload_json,
                         int(priority), now_db, now_db),
                    )

        self.logger.info(f"Queue '{self.queue}': recurring job '{job.name}' set to '{cron}'")
        return definition_id

    def list_recurring_jobs(self) -> List[RecurringJobDefinition]:
        with self._store_errors("list recurring jobs"):
            rows = self.store.query(
                f"SELECT * FROM {self.recurring_table} WHERE queue = ? ORDER BY name",
                (self.queue,),
            )
        return [self._row_to_recurring(row) for row in rows]

    def remove_recurring_job(self, name: str) -> bool:
        with self._store_errors("remove recurring job"):
            with self.store.transaction() as conn:
                cursor = conn.execute(
                    f"DELETE FROM {self.recurring_table} WHERE queue = ? AND name = ?",
                    (self.queue, name),
                )
                return cursor.rowcount > 0

    def run_due_recurring_jobs(self, now: Optional[datetime] = None) -> List[str]:
        """
        Push one job for every definition that has come due.

        A definition that never ran is due at once; after that it is due
        when its cron has a scheduled minute in (last_run_at, now]. The run
        is claimed with a guarded UPDATE before the push, so schedulers
        sharing a store enqueue each run once. Definitions that can't be
        rebuilt or pushed are logged and skipped.
        """
        now = _naive_utc(now) if now is not None else self._now()
        pushed: List[str] = []

        for definition in self.list_recurring_jobs():
            try:
                if definition.last_run_at is not None:
                    cron = CronExpression.parse(definition.cron)
                    if not cron.is_due(definition.last_run_at, now):
                        continue
                job = self.hydrator.hydrate(definition.payload)
                if not self._claim_recurring_run(definition, now):
                    continue
                row_id = self.push(job, priority=definition.priority)
            except QueueException as e:
                self.logger.error(
                    f"Queue '{self.queue}': recurring job '{definition.name}' not run: {e}"
                )
                continue

            pushed.append(row_id)
            self.logger.info(
                f"Queue '{self.queue}': recurring job '{definition.name}' "
                f"({definition.cron}) pushed as {row_id}"
            )
        return pushed

    def _claim_recurring_run(self, definition: RecurringJobDefinition, now: datetime) -> bool:
        with self._store_errors("claim recurring run"):
            with self.store.transaction(immediate=True) as conn:
                cursor = conn.execute(
                    f"""
                    UPDATE {self.recurring_table}
                    SET last_run_at = ?
                    WHERE id = ? AND last_run_at IS ?
                    """,
                    (_to_db(now), definition.id, _to_db(definition.last_run_at)),
                )
                return cursor.rowcount == 1

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    def get_stats(self) -> Dict[str, int]:
        now_db = _to_db(self._now())
        with self._store_errors("read stats"):
            row = self.store.query_one(
                f"""
                SELECT
                    SUM(CASE WHEN reserved_at IS NULL AND failed_at IS NULL
                             AND last_executed_at IS NULL
                             AND (execute_at IS NULL OR execute_at <= ?)
                        THEN 1 ELSE 0 END) AS pending,
                    SUM(CASE WHEN reserved_at IS NOT NULL AND failed_at IS NULL
                        THEN 1 ELSE 0 END) AS reserved,
                    SUM(CASE WHEN failed_at IS NOT NULL
                        THEN 1 ELSE 0 END) AS failed,
                    SUM(CASE WHEN reserved_at IS NULL AND failed_at IS NULL
                             AND last_executed_at IS NULL AND execute_at > ?
                        THEN 1 ELSE 0 END) AS delayed,
                    SUM(CASE WHEN last_executed_at IS NOT NULL AND failed_at IS NULL
                             AND reserved_at IS NULL
                        THEN 1 ELSE 0 END) AS done
                FROM {self.jobs_table}
                WHERE queue = ?
                """,
                (now_db, now_db, self.queue),
            )
            recurring = self.store.query_one(
                f"SELECT COUNT(*) AS count FROM {self.recurring_table} WHERE queue = ?",
                (self.queue,),
            )["count"]

        stats = {key: row[key] or 0 for key in ("pending", "reserved", "failed", "delayed", "done")}
        stats["recurring"] = recurring
        return stats

    def prune(self, max_age: Optional[int] = None) -> int:
        """
        Delete old terminal rows.

        Completed rows go once last_executed_at is older than max_age,
        failed rows once failed_at is. Pending and reserved rows are never
        touched.
        """
        if max_age is None:
            max_age = self.config.max_age_seconds
        cutoff_db = _to_db(self._now() - timedelta(seconds=max(0, int(max_age))))

        with self._store_errors("prune jobs"):
            with self.store.transaction() as conn:
                cursor = conn.execute(
                    f"""
                    DELETE FROM {self.jobs_table}
                    WHERE queue = ?
                    AND (
                        (last_executed_at IS NOT NULL AND failed_at IS NULL
                         AND reserved_at IS NULL AND last_executed_at < ?)
                        OR (failed_at IS NOT NULL AND failed_at < ?)
                    )
                    """,
                    (self.queue, cutoff_db, cutoff_db),
                )
                count = cursor.rowcount

        if count > 0:
            self.logger.info(f"Queue '{self.queue}': pruned {count} old jobs")
        return count

    def clear(self) -> int:
        with self._store_errors("clear queue"):
            with self.store.transaction() as conn:
                cursor = conn.execute(
                    f"DELETE FROM {self.jobs_table} WHERE queue = ?",
                    (self.queue,),
                )
                count = cursor.rowcount

        self.logger.info(f"Queue '{self.queue}': cleared {count} jobs")
        return count

    def release_stale_reservations(self, max_execution_time: Optional[int] = None) -> int:
        """
        Return jobs whose worker has apparently died to pending.

        Uses the queue-level limit only; attempts are kept, so a job that
        keeps crashing its worker still runs out of retries.
        """
        if max_execution_time is None:
            max_execution_time = self.config.max_execution_time_seconds
        cutoff_db = _to_db(self._now() - timedelta(seconds=max(0, int(max_execution_time))))

        with self._store_errors("release stale reservations"):
            with self.store.transaction() as conn:
                cursor = conn.execute(
                    f"""
                    UPDATE {self.jobs_table}
                    SET reserved_at = NULL
                    WHERE queue = ?
                    AND reserved_at IS NOT NULL AND reserved_at < ?
                    AND failed_at IS NULL
                    """,
                    (self.queue, cutoff_db),
                )
                count = cursor.rowcount

        if count > 0:
            self.logger.info(f"Queue '{self.queue}': released {count} stale reservations")
        return count

    # =========================================================================
    # FAILED JOBS
    # =========================================================================

    def has_failed_job_storage(self) -> bool:
        return True

    def store_failed_job(self, job: Job, error: BaseException) -> bool:
        if self._closed:
            self.logger.error(
                f"Queue '{self.queue}': could not store failed job {job.id}: connection is closed"
            )
            return False

        now_db = _to_db(self._now())
        exception = {
            "message": str(error),
            "type": type(error).__name__,
            "trace": "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ),
        }

        try:
            payload_json = self._dumps(job.to_dict(), f"failed job {job.id}")
            exception_json = self._dumps(exception, f"failure of job {job.id}")
            with self.store.transaction(immediate=True) as conn:
                conn.execute(
                    f"""
                    INSERT INTO {self.failed_table}
                        (id, queue, job_id, payload, exception, failed_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        payload = excluded.payload,
                        exception = excluded.exception,
                        failed_at = excluded.failed_at
                    """,
                    (generate_id(), self.queue, job.id, payload_json, exception_json, now_db),
                )
                conn.execute(
                    f"""
                    UPDATE {self.jobs_table}
                    SET failed_at = ?, last_executed_at = ?, reserved_at = NULL
                    WHERE id = ? AND queue = ?
                    """,
                    (now_db, now_db, job.id, self.queue),
                )
        except (sqlite3.Error, JobSerializationError) as e:
            self.logger.error(f"Queue '{self.queue}': could not store failed job {job.id}: {e}")
            return False

        self.logger.info(f"Queue '{self.queue}': job {job.id} failed: {exception['message']}")
        return True

    def get_failed_jobs(self, limit: int = 10, offset: int = 0) -> List[FailedJobRecord]:
        with self._store_errors("list failed jobs"):
            rows = self.store.query(
                f"""
                SELECT * FROM {self.failed_table}
                WHERE queue = ?
                ORDER BY failed_at DESC, rowid DESC
                LIMIT ? OFFSET ?
                """,
                (self.queue, int(limit), int(offset)),
            )
        return [self._row_to_failed(row) for row in rows]

    def retry_failed_job(self, failed_id: str) -> bool:
        """
        Re-queue a failed job.

        The new row skips the unique-job check (its own failed row would
        otherwise block it). Insert and record removal commit together.
        """
        with self._store_errors("read failed job"):
            row = self.store.query_one(
                f"SELECT * FROM {self.failed_table} WHERE id = ? AND queue = ?",
                (failed_id, self.queue),
            )
        if row is None:
            self.logger.warning(f"Queue '{self.queue}': no failed job {failed_id}")
            return False

        try:
            record = json.loads(row["payload"])
            if not isinstance(record, dict):
                raise RetryHydrationError("Failed job record is not a map")
            job = self.hydrator.hydrate(record.get("payload"))
            payload_json = self._dumps(self._encode_payload(job), f"payload of job {job.name}")
            unique_key = job.unique_key if job.is_unique() else None
            priority = int(record.get("priority") or 0)
        except (TypeError, ValueError, QueueException) as e:
            self.logger.warning(f"Queue '{self.queue}': cannot retry failed job {failed_id}: {e}")
            return False

        with self._store_errors("retry failed job"):
            with self.store.transaction(immediate=True) as conn:
                row_id = self._insert(conn, payload_json, None, priority, unique_key)
                conn.execute(
                    f"DELETE FROM {self.failed_table} WHERE id = ?",
                    (failed_id,),
                )

        self.logger.info(f"Queue '{self.queue}': failed job {failed_id} re-queued as {row_id}")
        return True

    def close(self) -> None:
        """Detach from the store. The store itself stays open for other queues."""
        self._closed = True


# =============================================================================
# FACTORY
# =============================================================================

class SQLConnectionFactory(ConnectionFactory):
    """
    Builds SQLConnections on a named store.

    Store name and table names are fixed per factory; the queue name,
    resolver and logger come per call.
    """

    def __init__(
        self,
        connection_name: str = "default",
        jobs_table: str = "queue_jobs",
        failed_table: str = "queue_failed_jobs",
        recurring_table: str = "queue_recurring_jobs",
        registry: Optional[JobTypeRegistry] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.connection_name = connection_name
        self.jobs_table = validate_identifier(jobs_table)
        self.failed_table = validate_identifier(failed_table)
        self.recurring_table = validate_identifier(recurring_table)
        self.registry = registry
        self.clock = clock

    def create_connection(
        self,
        queue_name: str,
        resolver: DependencyResolver,
        logger: Optional[LoggerLike] = None,
        config: Optional[QueueConfig] = None,
    ) -> SQLConnection:
        stores = resolver.resolve(StoreManager)
        store = stores.get_store(self.connection_name)
        return SQLConnection(
            store,
            queue_name,
            logger=logger,
            config=config,
            jobs_table=self.jobs_table,
            failed_table=self.failed_table,
            recurring_table=self.recurring_table,
            hydrator=JobHydrator(self.registry),
            clock=self.clock,
        )

    def __repr__(self) -> str:
        return (
            f"SQLConnectionFactory(connection_name={self.connection_name!r}, "
            f"jobs_table={self.jobs_table!r})"
        )
