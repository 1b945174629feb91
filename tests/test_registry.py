"""Tests for the job type registry and the failed-job hydrator."""

import pytest

from jobqueue.exceptions import ConfigurationError, RetryHydrationError, UnknownJobTypeError
from jobqueue.hydrator import JobHydrator
from jobqueue.job_types import QueueableJob
from jobqueue.registry import JobTypeRegistry

from sample_jobs import ExportReport, SendEmail


class Incomplete(QueueableJob):
    """Missing handle()."""
    job_name = "incomplete"

    def get_data(self):
        return {}

    def set_data(self, data):
        pass


class TestRegistration:
    def test_register_class(self):
        registry = JobTypeRegistry()
        registry.register(SendEmail)
        assert "send_email" in registry
        assert registry.names() == ["send_email"]

    def test_decorator_forms(self):
        registry = JobTypeRegistry()

        @registry.register
        class A(SendEmail):
            job_name = "a"

        @registry.register(name="b_alias")
        class B(SendEmail):
            job_name = "b"

        assert registry.names() == ["a", "b_alias"]
        assert isinstance(registry.resolve("b_alias")({"name": "b", "data": {"to": "x"}}), B)

    def test_factory_needs_name(self):
        registry = JobTypeRegistry()
        with pytest.raises(ConfigurationError):
            registry.register(lambda data: SendEmail.from_dict(data))

        registry.register(lambda data: SendEmail.from_dict(data), name="legacy_email")
        assert "legacy_email" in registry

    def test_rejects_non_queueable(self):
        with pytest.raises(ConfigurationError, match="does not implement Queueable"):
            JobTypeRegistry().register(dict)

    def test_rejects_abstract(self):
        with pytest.raises(ConfigurationError, match="handle"):
            JobTypeRegistry().register(Incomplete)

    def test_rejects_non_callable(self):
        with pytest.raises(ConfigurationError):
            JobTypeRegistry().register(42, name="x")

    def test_duplicate_name(self):
        registry = JobTypeRegistry()
        registry.register(SendEmail)
        registry.register(SendEmail)  # same target is fine
        with pytest.raises(ConfigurationError, match="already registered"):
            registry.register(ExportReport, name="send_email")

    def test_unregister(self):
        registry = JobTypeRegistry()
        registry.register(SendEmail)
        assert registry.unregister("send_email") is True
        assert registry.unregister("send_email") is False
        assert registry.get("send_email") is None

    def test_resolve_unknown(self):
        with pytest.raises(UnknownJobTypeError, match="nope"):
            JobTypeRegistry().resolve("nope")


class TestHydrator:
    def test_hydrate(self, registry):
        original = SendEmail("a@example.com", "hi")
        job = JobHydrator(registry).hydrate(original.to_dict())
        assert isinstance(job, SendEmail)
        assert job.to_dict() == original.to_dict()

    @pytest.mark.parametrize("payload", [
        None,
        "send_email",
        {},
        {"name": ""},
        {"name": 5},
    ])
    def test_malformed(self, registry, payload):
        with pytest.raises(RetryHydrationError):
            JobHydrator(registry).hydrate(payload)

    def test_unregistered_name(self, registry):
        with pytest.raises(RetryHydrationError, match="not registered"):
            JobHydrator(registry).hydrate({"name": "launch_rockets", "data": {}})

    def test_factory_raises(self, registry):
        with pytest.raises(RetryHydrationError, match="Could not rebuild"):
            JobHydrator(registry).hydrate({"name": "send_email", "data": {"subject": "x"}})

    def test_factory_returns_wrong_type(self):
        registry = JobTypeRegistry()
        registry.register(lambda data: {"not": "a job"}, name="broken")
        with pytest.raises(RetryHydrationError, match="not a Queueable"):
            JobHydrator(registry).hydrate({"name": "broken"})

    @pytest.mark.parametrize("payload", [
        {"name": "send_email"},
        {"name": "send_email", "data": [1, 2]},
    ])
    def test_payload_without_data_map(self, registry, payload):
        with pytest.raises(RetryHydrationError, match="Could not rebuild"):
            JobHydrator(registry).hydrate(payload)

    def test_factory_with_unexpected_error(self):
        def exploding(data):
            raise AttributeError("half-built")

        registry = JobTypeRegistry()
        registry.register(exploding, name="exploding")
        with pytest.raises(RetryHydrationError, match="half-built"):
            JobHydrator(registry).hydrate({"name": "exploding", "data": {}})

    def test_rebuilt_job_must_serialize(self):
        class Hollow(SendEmail):
            job_name = "hollow"

            def set_data(self, data):
                pass

        registry = JobTypeRegistry()
        registry.register(Hollow)
        with pytest.raises(RetryHydrationError, match="cannot serialize"):
            JobHydrator(registry).hydrate({"name": "hollow", "data": {"to": "a@example.com"}})
