"""
Shared pytest fixtures for the queue tests.

All fixtures use temporary directories - no hardcoded paths.
"""

import sys
from pathlib import Path

# Add project root to sys.path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import shutil
import tempfile
from typing import Generator

import pytest

from jobqueue.config import QueueConfig
from jobqueue.connection import InstanceResolver
from jobqueue.hydrator import JobHydrator
from jobqueue.registry import JobTypeRegistry
from jobqueue.sql_connection import SQLConnection
from jobqueue.store import SQLiteStore, StoreManager

from sample_jobs import ExportReport, FakeClock, SendEmail


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Provides a temporary directory for tests.

    Automatically cleaned up after test completes.
    """
    tmpdir = tempfile.mkdtemp()
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def store(temp_dir: Path) -> Generator[SQLiteStore, None, None]:
    """File-backed store in the temp dir."""
    store = SQLiteStore(temp_dir / "queue.db")
    yield store
    store.close()


@pytest.fixture
def stores(store: SQLiteStore) -> StoreManager:
    return StoreManager({"default": store})


@pytest.fixture
def resolver(stores: StoreManager) -> InstanceResolver:
    return InstanceResolver({StoreManager: stores})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> JobTypeRegistry:
    """Registry with the sample job types."""
    registry = JobTypeRegistry()
    registry.register(SendEmail)
    registry.register(ExportReport)
    return registry


@pytest.fixture
def connection(store, clock, registry) -> SQLConnection:
    """Connection on the "emails" queue with a controllable clock."""
    return SQLConnection(
        store,
        "emails",
        config=QueueConfig(),
        hydrator=JobHydrator(registry),
        clock=clock,
    )


@pytest.fixture(autouse=True)
def reset_hook_calls():
    ExportReport.failures.clear()
    yield
    ExportReport.failures.clear()


def pytest_configure(config):
    """Add custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
