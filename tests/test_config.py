"""Tests for queue configuration loading."""

import os
from pathlib import Path

import pytest

from jobqueue.config import (
    DEFAULT_QUEUE_OPTIONS,
    QueueConfig,
    expand_env_vars,
    get_config_path,
    load_queue_configs,
    load_store_manager,
    load_yaml,
    queue_config_from_dict,
)
from jobqueue.exceptions import ConfigurationError
from jobqueue.retry import RetryStrategy
from jobqueue.sql_connection import SQLConnectionFactory
from jobqueue.store import StoreManager

SHIPPED_CONFIG = Path(__file__).parent.parent / "configs" / "queues.yaml"


class TestEnvVarExpansion:
    def test_simple_var(self, monkeypatch):
        monkeypatch.setenv("JQ_TEST_VAR", "hello")
        assert expand_env_vars("${JQ_TEST_VAR}") == "hello"

    def test_var_with_default(self, monkeypatch):
        monkeypatch.delenv("JQ_UNSET_VAR", raising=False)
        assert expand_env_vars("${JQ_UNSET_VAR:-fallback}") == "fallback"

    def test_nested(self, monkeypatch):
        monkeypatch.setenv("JQ_TEST_PATH", "/data")
        data = {"stores": {"default": {"path": "${JQ_TEST_PATH}/q.db"}}, "list": ["${JQ_TEST_PATH}"]}
        result = expand_env_vars(data)
        assert result["stores"]["default"]["path"] == "/data/q.db"
        assert result["list"] == ["/data"]

    def test_unset_var_preserved(self, monkeypatch):
        monkeypatch.delenv("JQ_UNSET_VAR", raising=False)
        assert expand_env_vars("${JQ_UNSET_VAR}") == "${JQ_UNSET_VAR}"

    def test_non_string_passthrough(self):
        assert expand_env_vars(42) == 42
        assert expand_env_vars(None) is None

    def test_strict_rejects_unset_var(self, monkeypatch):
        monkeypatch.delenv("JQ_UNSET_VAR", raising=False)
        with pytest.raises(ConfigurationError, match="JQ_UNSET_VAR"):
            expand_env_vars({"path": "${JQ_UNSET_VAR}/q.db"}, strict=True)

    def test_strict_still_uses_defaults(self, monkeypatch):
        monkeypatch.delenv("JQ_UNSET_VAR", raising=False)
        assert expand_env_vars("${JQ_UNSET_VAR:-}", strict=True) == ""


class TestQueueConfig:
    def test_frozen(self):
        config = QueueConfig()
        with pytest.raises(AttributeError):
            config.max_retries = 10

    def test_replace(self):
        config = QueueConfig().replace(max_retries=7)
        assert config.max_retries == 7
        assert QueueConfig().max_retries == 3

    @pytest.mark.parametrize("field,value", [
        ("max_retries", -1),
        ("retry_delay_seconds", -5),
        ("max_age_seconds", -1),
        ("unique_jobs_expiration_seconds", -1),
        ("batch_size", 0),
        ("max_retries", "three"),
    ])
    def test_validation(self, field, value):
        with pytest.raises(ConfigurationError):
            QueueConfig(**{field: value})

    def test_negative_priority_allowed(self):
        assert QueueConfig(default_priority=-5).default_priority == -5


class TestQueueConfigFromDict:
    def test_defaults(self):
        config = queue_config_from_dict("q", {})
        assert config.max_retries == DEFAULT_QUEUE_OPTIONS["max_retries"]
        assert config.max_age_seconds == 604800
        assert config.unique_jobs_expiration_seconds == 86400
        assert isinstance(config.connection_factory, SQLConnectionFactory)
        assert config.connection_factory.connection_name == "default"
        assert config.connection_factory.jobs_table == "queue_jobs"

    def test_section_overrides_defaults(self):
        config = queue_config_from_dict(
            "emails",
            {"max_retries": 5, "retry_delay": 300},
            defaults={"max_retries": 4, "retry_strategy": "LINEAR"},
        )
        assert config.max_retries == 5
        assert config.retry_delay_seconds == 300
        assert config.retry_strategy is RetryStrategy.LINEAR

    def test_string_values_coerced(self):
        config = queue_config_from_dict("q", {"max_retries": "9", "auto_prune": "false"})
        assert config.max_retries == 9
        assert config.auto_prune is False

    def test_bad_bool(self):
        with pytest.raises(ConfigurationError):
            queue_config_from_dict("q", {"store_failed_jobs": "maybe"})

    def test_connection_options(self):
        config = queue_config_from_dict("q", {"connection": "reporting", "table": "report_jobs"})
        factory = config.connection_factory
        assert factory.connection_name == "reporting"
        assert factory.jobs_table == "report_jobs"

    def test_bad_table_name(self):
        with pytest.raises(ConfigurationError):
            queue_config_from_dict("q", {"table": "jobs; DROP TABLE x"})

    def test_unknown_option_ignored(self, caplog):
        config = queue_config_from_dict("q", {"colour": "blue"})
        assert config.max_retries == 3
        assert "colour" in caplog.text


class TestLoading:
    def test_missing_file(self, temp_dir):
        with pytest.raises(FileNotFoundError):
            load_yaml(temp_dir / "nope.yaml")

    def test_invalid_yaml(self, temp_dir):
        path = temp_dir / "bad.yaml"
        path.write_text("queues: [unclosed")
        with pytest.raises(ConfigurationError):
            load_yaml(path)

    def test_top_level_must_be_mapping(self, temp_dir):
        path = temp_dir / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError):
            load_yaml(path)

    def test_strict_load(self, temp_dir, monkeypatch):
        monkeypatch.delenv("JQ_UNSET_VAR", raising=False)
        path = temp_dir / "queues.yaml"
        path.write_text("stores:\n  default:\n    path: ${JQ_UNSET_VAR}\n")
        assert load_yaml(path)["stores"]["default"]["path"] == "${JQ_UNSET_VAR}"
        with pytest.raises(ConfigurationError):
            load_yaml(path, strict=True)

    def test_shipped_config(self, monkeypatch, temp_dir):
        monkeypatch.setenv("JOBQUEUE_DB_PATH", str(temp_dir / "shipped.db"))
        configs = load_queue_configs(SHIPPED_CONFIG)

        assert set(configs) == {"default", "emails", "exports"}
        assert configs["default"].max_retries == 3
        assert configs["emails"].max_retries == 5
        assert configs["emails"].retry_delay_seconds == 300
        assert configs["emails"].max_execution_time_seconds == 30
        assert configs["exports"].max_retries == 2
        assert configs["exports"].max_execution_time_seconds == 300
        assert configs["exports"].batch_size == 5

        stores = load_store_manager(SHIPPED_CONFIG)
        assert stores.get_store("default").db_path == temp_dir / "shipped.db"
        stores.close_all()

    def test_relative_store_path(self, temp_dir):
        path = temp_dir / "queues.yaml"
        path.write_text("stores:\n  default:\n    path: data/q.db\nqueues:\n  default: {}\n")
        stores = load_store_manager(path)
        assert isinstance(stores, StoreManager)
        assert stores.get_store("default").db_path == temp_dir / "data" / "q.db"
        stores.close_all()

    def test_store_without_path(self, temp_dir):
        path = temp_dir / "queues.yaml"
        path.write_text("stores:\n  default: {}\n")
        with pytest.raises(ConfigurationError, match="no path"):
            load_store_manager(path)

    def test_config_path_from_env(self, monkeypatch, temp_dir):
        monkeypatch.setenv("JOBQUEUE_CONFIG", str(temp_dir / "custom.yaml"))
        assert get_config_path() == temp_dir / "custom.yaml"

    def test_default_config_path(self, monkeypatch):
        monkeypatch.delenv("JOBQUEUE_CONFIG", raising=False)
        path = get_config_path()
        assert path.name == "queues.yaml"
        assert path.parent.name == "configs"
