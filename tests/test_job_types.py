"""Tests for the job model: Job rows, states and QueueableJob serialization."""

from datetime import datetime, timedelta

import pytest

from jobqueue.exceptions import JobSerializationError
from jobqueue.job_types import Job, JobState, QueueableJob

from sample_jobs import SendEmail

NOW = datetime(2024, 3, 4, 12, 0, 0)


class TestJobState:
    def test_pending(self):
        job = Job(id="a", queue="q", created_at=NOW)
        assert job.state_at(NOW) == JobState.PENDING
        assert job.is_executable(NOW)

    def test_delayed(self):
        job = Job(id="a", queue="q", execute_at=NOW + timedelta(seconds=5))
        assert job.state_at(NOW) == JobState.DELAYED
        assert not job.is_executable(NOW)
        assert job.state_at(NOW + timedelta(seconds=5)) == JobState.PENDING

    def test_reserved(self):
        job = Job(id="a", queue="q", reserved_at=NOW)
        assert job.state_at(NOW) == JobState.RESERVED
        assert job.is_reserved

    def test_completed(self):
        job = Job(id="a", queue="q", last_executed_at=NOW)
        assert job.state_at(NOW) == JobState.COMPLETED
        assert job.state_at(NOW).is_terminal

    def test_failed_wins(self):
        job = Job(id="a", queue="q", reserved_at=NOW, last_executed_at=NOW, failed_at=NOW)
        assert job.state_at(NOW) == JobState.FAILED
        assert job.has_failed

    def test_pending_is_not_terminal(self):
        assert not JobState.PENDING.is_terminal


class TestTimeout:
    def test_not_reserved_never_times_out(self):
        assert not Job(id="a", queue="q").has_timed_out(60, NOW)

    def test_queue_limit(self):
        job = Job(id="a", queue="q", reserved_at=NOW)
        assert not job.has_timed_out(60, NOW + timedelta(seconds=60))
        assert job.has_timed_out(60, NOW + timedelta(seconds=61))

    def test_job_timeout_tightens_limit(self):
        job = Job(id="a", queue="q", reserved_at=NOW, payload={"timeout": 10})
        assert job.has_timed_out(60, NOW + timedelta(seconds=11))


class TestJobSerialization:
    def test_round_trip(self):
        job = Job(
            id="a",
            queue="emails",
            payload={"name": "send_email", "data": {"to": "x@example.com"}},
            attempts=2,
            created_at=NOW,
            execute_at=NOW + timedelta(minutes=5),
            priority=7,
            unique_key="k",
        )
        restored = Job.from_dict(job.to_dict())
        assert restored == job
        assert restored.name == "send_email"


class TestQueueableJob:
    def test_to_dict_shape(self):
        job = SendEmail("a@example.com", "hi", job_id="abc")
        assert job.to_dict() == {
            "id": "abc",
            "name": "send_email",
            "timeout": None,
            "unique": False,
            "unique_key": None,
            "data": {"to": "a@example.com", "subject": "hi"},
        }

    def test_round_trip(self):
        job = SendEmail("a@example.com", "hi").set_timeout(30).make_unique("welcome:42")
        restored = SendEmail.from_dict(job.to_dict())
        assert restored.to_dict() == job.to_dict()
        assert restored.unique_key == "welcome:42"
        assert restored.timeout == 30

    def test_random_ids(self):
        assert SendEmail("a").id != SendEmail("a").id

    def test_name_defaults_to_class_name(self):
        class Unnamed(QueueableJob):
            def get_data(self):
                return {}

            def set_data(self, data):
                pass

            def handle(self):
                pass

        assert Unnamed().name == "Unnamed"

    def test_derived_unique_key_is_pure(self):
        """Two identical constructions produce the same key; different data doesn't."""
        a = SendEmail("a@example.com", "hi").make_unique()
        b = SendEmail("a@example.com", "hi").make_unique()
        c = SendEmail("b@example.com", "hi").make_unique()
        assert a.unique_key == b.unique_key
        assert a.unique_key != c.unique_key
        assert len(a.unique_key) == 32

    def test_unique_key_on_non_unique_job(self):
        with pytest.raises(JobSerializationError):
            SendEmail("a").unique_key

    def test_from_dict_bad_data(self):
        with pytest.raises(JobSerializationError):
            SendEmail.from_dict({"name": "send_email", "data": {"subject": "no recipient"}})

    def test_from_dict_not_a_map(self):
        with pytest.raises(JobSerializationError):
            SendEmail.from_dict(["nope"])

    @pytest.mark.parametrize("data", [None, [1, 2], "to=a@example.com"])
    def test_from_dict_requires_data_map(self, data):
        """A payload without a data map can't restore the job's fields."""
        payload = {"name": "send_email"}
        if data is not None:
            payload["data"] = data
        with pytest.raises(JobSerializationError, match="no data map"):
            SendEmail.from_dict(payload)
