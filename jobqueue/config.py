"""
Queue configuration.

QueueConfig is the per-queue bundle of operational knobs. It is built once
per queue name at startup and shared read-only by producers and workers.

Configs normally come from a YAML file with environment variable support:

    defaults:
      retry_strategy: exponential
    stores:
      default:
        path: ${JOBQUEUE_DB_PATH:-vault/queue.db}
    queues:
      default: {}
      emails:
        max_retries: 5
        retry_delay: 300

Usage:
    from jobqueue.config import load_queue_configs, load_store_manager

    configs = load_queue_configs("configs/queues.yaml")
    stores = load_store_manager("configs/queues.yaml")
"""

import logging
import os
import re
from dataclasses import dataclass, fields, replace as dc_replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from jobqueue.exceptions import ConfigurationError
from jobqueue.retry import RetryStrategy
from jobqueue.store import DEFAULT_BUSY_TIMEOUT_MS, SQLiteStore, StoreManager

logger = logging.getLogger("job_queue")

# Defaults for every queue, keyed the way queue files spell them
DEFAULT_QUEUE_OPTIONS: Dict[str, Any] = {
    "max_retries": 3,
    "retry_delay": 60,
    "retry_strategy": "exponential",
    "default_priority": 0,
    "default_delay": 0,
    "auto_prune": True,
    "max_age": 604800,            # 7 days
    "max_execution_time": 60,
    "store_failed_jobs": True,
    "batch_size": 10,
    "support_unique_jobs": True,
    "unique_jobs_expiration": 86400,  # 24 hours
}

# Queue file key -> QueueConfig field
_OPTION_FIELDS = {
    "max_retries": "max_retries",
    "retry_delay": "retry_delay_seconds",
    "retry_strategy": "retry_strategy",
    "default_priority": "default_priority",
    "default_delay": "default_delay_seconds",
    "auto_prune": "auto_prune",
    "max_age": "max_age_seconds",
    "max_execution_time": "max_execution_time_seconds",
    "store_failed_jobs": "store_failed_jobs",
    "batch_size": "batch_size",
    "support_unique_jobs": "support_unique_jobs",
    "unique_jobs_expiration": "unique_jobs_expiration_seconds",
}

# Keys that configure the connection factory rather than the queue
_CONNECTION_KEYS = {"connection", "table", "failed_table", "recurring_table"}

_INT_FIELDS = {
    "max_retries",
    "retry_delay_seconds",
    "default_priority",
    "default_delay_seconds",
    "max_age_seconds",
    "max_execution_time_seconds",
    "batch_size",
    "unique_jobs_expiration_seconds",
}
_BOOL_FIELDS = {"auto_prune", "store_failed_jobs", "support_unique_jobs"}
# default_priority is signed
_NON_NEGATIVE = _INT_FIELDS - {"default_priority"}


@dataclass(frozen=True)
class QueueConfig:
    """
    Operational settings for one queue.

    connection_factory builds the queue's Connection; None means the
    manager's default (an SQLConnectionFactory on the "default" store).
    """
    connection_factory: Any = None
    max_retries: int = 3
    retry_delay_seconds: int = 60
    retry_strategy: RetryStrategy = RetryStrategy.EXPONENTIAL
    default_priority: int = 0
    default_delay_seconds: int = 0
    auto_prune: bool = True
    max_age_seconds: int = 604800
    max_execution_time_seconds: int = 60
    store_failed_jobs: bool = True
    batch_size: int = 10
    support_unique_jobs: bool = True
    unique_jobs_expiration_seconds: int = 86400

    def __post_init__(self):
        object.__setattr__(self, "retry_strategy", RetryStrategy.parse(self.retry_strategy))
        for name in _NON_NEGATIVE:
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
            if value < 0:
                raise ConfigurationError(f"{name} must be >= 0, got {value}")
        if self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be >= 1, got {self.batch_size}")

    def retry_delay_for(self, attempt: int) -> int:
        """Seconds to wait before retry number `attempt`."""
        return self.retry_strategy.delay(attempt, self.retry_delay_seconds)

    def replace(self, **changes) -> "QueueConfig":
        return dc_replace(self, **changes)


# =============================================================================
# YAML LOADING
# =============================================================================

_ENV_REF = re.compile(r"\$\{(?P<var>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}")


def expand_env_vars(value: Any, strict: bool = False) -> Any:
    """
    Expand ${VAR} and ${VAR:-default} in every string of a loaded config tree.

    An unset ${VAR} without a default stays as written, or raises
    ConfigurationError when strict is set.
    """
    if isinstance(value, dict):
        return {key: expand_env_vars(item, strict) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item, strict) for item in value]
    if not isinstance(value, str):
        return value

    def resolve(match: "re.Match") -> str:
        name = match.group("var")
        if name in os.environ:
            return os.environ[name]
        if match.group("default") is not None:
            return match.group("default")
        if strict:
            raise ConfigurationError(f"Required environment variable {name} is not set")
        return match.group(0)

    return _ENV_REF.sub(resolve, value)


def get_config_path() -> Path:
    """Queue config file: $JOBQUEUE_CONFIG, else configs/queues.yaml at the project root."""
    env_path = os.environ.get("JOBQUEUE_CONFIG")
    if env_path:
        return Path(env_path)
    return Path(__file__).parent.parent / "configs" / "queues.yaml"


def load_yaml(path: Union[Path, str], strict: bool = False) -> dict:
    """Load a YAML file with environment variable expansion."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    return expand_env_vars(data, strict)


def _coerce(field_name: str, value: Any) -> Any:
    """Env-expanded values arrive as strings; turn them back into ints/bools."""
    if field_name in _BOOL_FIELDS and isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ConfigurationError(f"{field_name} must be a boolean, got {value!r}")
    if field_name in _INT_FIELDS and isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise ConfigurationError(f"{field_name} must be an integer, got {value!r}") from None
    return value


def queue_config_from_dict(
    name: str,
    data: Optional[Dict[str, Any]],
    defaults: Optional[Dict[str, Any]] = None,
) -> QueueConfig:
    """
    Build a QueueConfig from a queue section merged over defaults.

    Unknown keys are logged and ignored.
    """
    merged: Dict[str, Any] = dict(DEFAULT_QUEUE_OPTIONS)
    merged.update(defaults or {})
    merged.update(data or {})

    kwargs: Dict[str, Any] = {}
    connection_opts: Dict[str, Any] = {}
    for key, value in merged.items():
        if key in _CONNECTION_KEYS:
            connection_opts[key] = value
        elif key in _OPTION_FIELDS:
            field_name = _OPTION_FIELDS[key]
            kwargs[field_name] = _coerce(field_name, value)
        elif key in {f.name for f in fields(QueueConfig)}:
            kwargs[key] = _coerce(key, value)
        else:
            logger.warning(f"Queue '{name}': ignoring unknown option '{key}'")

    # Avoids a cycle: sql_connection imports this module
    from jobqueue.sql_connection import SQLConnectionFactory

    kwargs["connection_factory"] = SQLConnectionFactory(
        connection_name=connection_opts.get("connection", "default"),
        jobs_table=connection_opts.get("table", "queue_jobs"),
        failed_table=connection_opts.get("failed_table", "queue_failed_jobs"),
        recurring_table=connection_opts.get("recurring_table", "queue_recurring_jobs"),
    )
    return QueueConfig(**kwargs)


def load_queue_configs(path: Union[Path, str, None] = None) -> Dict[str, QueueConfig]:
    """Load every queue section of a queue config file."""
    path = Path(path) if path is not None else get_config_path()
    data = load_yaml(path)

    defaults = data.get("defaults") or {}
    queues = data.get("queues") or {}
    if not isinstance(queues, dict):
        raise ConfigurationError(f"'queues' in {path} must be a mapping")

    configs = {
        name: queue_config_from_dict(name, section, defaults)
        for name, section in queues.items()
    }
    logger.info(f"Loaded {len(configs)} queue configs from {path}")
    return configs


def load_store_manager(path: Union[Path, str, None] = None) -> StoreManager:
    """
    Build the named stores declared under `stores:`.

    Relative store paths resolve against the config file's directory.
    """
    path = Path(path) if path is not None else get_config_path()
    data = load_yaml(path)

    stores = data.get("stores") or {}
    if not isinstance(stores, dict):
        raise ConfigurationError(f"'stores' in {path} must be a mapping")

    manager = StoreManager()
    for name, section in stores.items():
        section = section or {}
        if "path" not in section:
            raise ConfigurationError(f"Store '{name}' in {path} has no path")
        db_path = Path(section["path"])
        if not db_path.is_absolute():
            db_path = path.parent / db_path
        busy_timeout = int(section.get("busy_timeout_ms", DEFAULT_BUSY_TIMEOUT_MS))
        manager.add_store(name, SQLiteStore(db_path, busy_timeout_ms=busy_timeout))
    return manager
