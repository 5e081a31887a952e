"""End-to-end tests for the export pipeline."""

import asyncio
import logging

import orjson
import pytest

from apps.exporter.errors import EnumerationError, ExportCancelled, SinkError
from apps.exporter.pipeline import ExportPipeline, RunState
from tests.fakes import InMemoryStore, string_keys
from utils.sink import FileSink


def make_pipeline(store, config) -> ExportPipeline:
    return ExportPipeline(store, FileSink(config.output_file), config)


class TestCompletedRuns:
    """Test runs that reach COMPLETED."""

    @pytest.mark.asyncio
    async def test_single_string_key(self, make_config, output_path) -> None:
        """Test a persistent string key exports without a ttl field."""
        store = InMemoryStore(data={"test:key": ("string", "test value")})
        pipeline = make_pipeline(store, make_config())

        summary = await pipeline.run()

        assert pipeline.state is RunState.COMPLETED
        assert summary.total_keys == 1
        assert orjson.loads(output_path.read_bytes()) == [
            {"key": "test:key", "type": "string", "value": "test value"}
        ]

    @pytest.mark.asyncio
    async def test_hash_key_with_ttl(self, make_config, output_path) -> None:
        store = InMemoryStore(data={"user:1": ("hash", {"name": "a"})}, ttls={"user:1": 3600})

        await make_pipeline(store, make_config()).run()

        [element] = orjson.loads(output_path.read_bytes())
        assert element["ttl"] == 3600
        assert element["value"] == {"name": "a"}

    @pytest.mark.asyncio
    async def test_every_type(self, make_config, output_path, sample_store) -> None:
        await make_pipeline(sample_store, make_config()).run()

        data = {e["key"]: e for e in orjson.loads(output_path.read_bytes())}
        assert set(data) == set(sample_store.data)
        assert data["leaderboard"]["value"] == [
            {"Score": 10.0, "Member": "alice"},
            {"Score": 7.5, "Member": "bob"},
        ]
        assert data["events"]["value"] == [{"ID": "1700000000000-0", "Values": {"action": "login"}}]
        assert {e["type"] for e in data.values()} == {"string", "list", "set", "zset", "hash", "stream"}

    @pytest.mark.asyncio
    async def test_binary_key_name_with_replacement_characters(self, make_config, output_path) -> None:
        """Test a key whose name was decoded leniently is exported like any other."""
        name = b"bin:\xff\xfe".decode("utf-8", errors="replace")
        store = InMemoryStore(data={name: ("string", "v"), "plain": ("string", "w")})

        summary = await make_pipeline(store, make_config()).run()

        assert summary.total_keys == 2
        keys = {e["key"] for e in orjson.loads(output_path.read_bytes())}
        assert keys == {"bin:\ufffd\ufffd", "plain"}

    @pytest.mark.asyncio
    async def test_one_element_per_key(self, make_config, output_path) -> None:
        """Test a multi-page keyspace exports with no loss and no duplicates."""
        data = string_keys(237)
        store = InMemoryStore(data=data)

        summary = await make_pipeline(store, make_config(workers=8, batch_size=16)).run()

        keys = [e["key"] for e in orjson.loads(output_path.read_bytes())]
        assert len(keys) == 237
        assert set(keys) == set(data)
        assert summary.total_keys == 237
        assert summary.failed_keys == 0

    @pytest.mark.asyncio
    async def test_empty_store(self, make_config, output_path) -> None:
        summary = await make_pipeline(InMemoryStore(), make_config()).run()
        assert summary.total_keys == 0
        assert orjson.loads(output_path.read_bytes()) == []

    @pytest.mark.asyncio
    async def test_ttl_omission_is_uniform(self, make_config, output_path) -> None:
        """Test no-expiry and non-positive TTLs produce the same element shape."""
        store = InMemoryStore(
            data={"persistent": ("string", "v"), "expiring": ("string", "v")},
            ttls={"expiring": 0},
        )
        await make_pipeline(store, make_config()).run()

        elements = {e["key"]: e for e in orjson.loads(output_path.read_bytes())}
        assert set(elements["persistent"]) == set(elements["expiring"]) == {"key", "type", "value"}

    @pytest.mark.asyncio
    async def test_unsupported_type_skipped(self, make_config, output_path, caplog) -> None:
        """Test an unsupported key is absent and logged exactly once with its type."""
        store = InMemoryStore(data={"ok": ("string", "v"), "doc": ("ReJSON-RL", "{}")})

        with caplog.at_level(logging.ERROR):
            summary = await make_pipeline(store, make_config()).run()

        assert [e["key"] for e in orjson.loads(output_path.read_bytes())] == ["ok"]
        assert summary.failed_keys == 1
        errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
        assert len(errors) == 1
        assert "ReJSON-RL" in errors[0].getMessage()

    @pytest.mark.asyncio
    async def test_key_failures_do_not_fail_run(self, make_config, output_path) -> None:
        """Test type, value and TTL failures each drop only their key."""
        store = InMemoryStore(
            data=string_keys(6),
            failures={"type": {"key:0"}, "value": {"key:1"}, "ttl": {"key:2"}},
        )
        pipeline = make_pipeline(store, make_config())

        summary = await pipeline.run()

        assert pipeline.state is RunState.COMPLETED
        keys = {e["key"] for e in orjson.loads(output_path.read_bytes())}
        assert keys == {"key:3", "key:4", "key:5"}
        assert summary.failed_keys == 3

    @pytest.mark.asyncio
    async def test_pipeline_runs_once(self, make_config) -> None:
        pipeline = make_pipeline(InMemoryStore(), make_config())
        await pipeline.run()
        with pytest.raises(RuntimeError):
            await pipeline.run()


class TestFailedRuns:
    """Test fatal errors."""

    @pytest.mark.asyncio
    async def test_first_page_enumeration_failure(self, make_config, output_path) -> None:
        """Test a failed first scan leaves an empty output and names the cause."""
        store = InMemoryStore(data=string_keys(5), failures={"scan": {0}})
        pipeline = make_pipeline(store, make_config())

        with pytest.raises(EnumerationError, match="key enumeration failed"):
            await pipeline.run()

        assert pipeline.state is RunState.FAILED
        assert not output_path.exists() or output_path.read_bytes() == b""

    @pytest.mark.asyncio
    async def test_sink_open_failure(self, make_config, tmp_path) -> None:
        """Test an output path that cannot be created fails the run."""
        pipeline = make_pipeline(InMemoryStore(data=string_keys(3)), make_config(output_file=str(tmp_path)))

        with pytest.raises(SinkError, match="failed to create output file"):
            await pipeline.run()

        assert pipeline.state is RunState.FAILED

    @pytest.mark.asyncio
    async def test_sink_write_failure(self, make_config, output_path) -> None:
        class FullDisk(FileSink):
            def write(self, data: bytes) -> None:
                raise OSError("No space left on device")

        config = make_config()
        pipeline = ExportPipeline(InMemoryStore(data=string_keys(50)), FullDisk(config.output_file), config)

        with pytest.raises(SinkError):
            await asyncio.wait_for(pipeline.run(), timeout=5.0)

        assert pipeline.state is RunState.FAILED
        assert not pipeline.sink.is_open


class TestCancelledRuns:
    """Test cooperative cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_mid_run_yields_valid_partial_array(self, make_config, output_path) -> None:
        data = string_keys(500)
        store = InMemoryStore(data=data, delay=0.002)
        pipeline = make_pipeline(store, make_config(workers=4, batch_size=10))

        task = asyncio.create_task(pipeline.run())
        await asyncio.sleep(0.1)
        pipeline.cancel("test shutdown")

        with pytest.raises(ExportCancelled) as exc_info:
            await asyncio.wait_for(task, timeout=5.0)

        assert exc_info.value.reason == "test shutdown"
        assert pipeline.state is RunState.CANCELLED
        keys = [e["key"] for e in orjson.loads(output_path.read_bytes())]
        assert 0 < len(keys) < len(data)
        assert len(set(keys)) == len(keys)
        assert set(keys) < set(data)

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, make_config, output_path) -> None:
        pipeline = make_pipeline(InMemoryStore(data=string_keys(20)), make_config())
        pipeline.cancel()

        with pytest.raises(ExportCancelled):
            await asyncio.wait_for(pipeline.run(), timeout=5.0)

        assert orjson.loads(output_path.read_bytes()) == []

    @pytest.mark.asyncio
    async def test_task_cancellation_stops_all_stages(self, make_config) -> None:
        """Test cancelling the run task itself unwinds every stage."""
        pipeline = make_pipeline(InMemoryStore(data=string_keys(500), delay=0.01), make_config())
        task = asyncio.create_task(pipeline.run())
        await asyncio.sleep(0.05)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert pipeline.state is RunState.CANCELLED
        assert not pipeline.sink.is_open
