"""Pytest configuration and fixtures."""

from typing import Any

import pytest

from tests.fakes import InMemoryStore
from utils.config import ExportConfig


@pytest.fixture
def output_path(tmp_path):
    """Path for the export file inside the test's temp dir."""
    return tmp_path / "export.json"


@pytest.fixture
def make_config(output_path):
    """Factory for run configurations with fast polling and test-friendly sizes."""

    def _make(**overrides: Any) -> ExportConfig:
        values: dict[str, Any] = {
            "output_file": str(output_path),
            "workers": 4,
            "batch_size": 10,
            "progress_interval": 60.0,
            "poll_interval": 0.01,
        }
        values.update(overrides)
        return ExportConfig(**values)

    return _make


@pytest.fixture
def sample_store():
    """Store holding one key of every supported type."""
    return InMemoryStore(
        data={
            "greeting": ("string", "hello world"),
            "queue": ("list", ["item1", "item2", "item3"]),
            "tags": ("set", ["a", "b"]),
            "leaderboard": ("zset", [("alice", 10.0), ("bob", 7.5)]),
            "user:1": ("hash", {"name": "a"}),
            "events": ("stream", [("1700000000000-0", {"action": "login"})]),
        },
        ttls={"user:1": 3600},
    )
