"""
Export Runner - command-line entry point.

Parses flags over environment settings, configures logging, connects to
Redis and runs one export. SIGINT/SIGTERM request a graceful cancellation:
in-flight keys finish and the output array is closed.

Usage:
    python -m apps.exporter --addr localhost:6379 --output dump.json
    REDIS_ADDR=redis:6379 OUTPUT_FILE=/data/dump.json redis-export

Exit codes:
    0   export completed (keys that failed to resolve are only logged)
    1   export failed or configuration is invalid
    130 export cancelled
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional, Sequence

import redis.asyncio as redis
from pydantic import ValidationError

from apps.exporter.errors import ExportCancelled, ExportError, StoreConnectionError
from apps.exporter.pipeline import ExportPipeline, ExportSummary
from utils.config import ExportConfig, Settings, get_settings
from utils.logging import setup_logging
from utils.sink import FileSink
from utils.store import RedisStore

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130


def create_parser(settings: Settings) -> argparse.ArgumentParser:
    """Create the argument parser; defaults come from the environment."""
    parser = argparse.ArgumentParser(
        prog=settings.APP_NAME,
        description=(
            "High-performance Redis database exporter to JSON. Exports all keys and "
            "values from a Redis database to a JSON array with concurrent processing."
        ),
    )
    parser.add_argument("-a", "--addr", help=f"Redis server address (default: {settings.REDIS_ADDR})")
    parser.add_argument("-p", "--password", help="Redis password")
    parser.add_argument("-d", "--db", type=int, help=f"Redis database number (default: {settings.REDIS_DB})")
    parser.add_argument("-o", "--output", help=f"Output JSON file (default: {settings.OUTPUT_FILE})")
    parser.add_argument(
        "-w", "--workers", type=int, help=f"Number of concurrent workers (default: {settings.EXPORT_WORKERS})"
    )
    parser.add_argument(
        "-b", "--batch", type=int, help=f"Batch size for key scanning and queues (default: {settings.EXPORT_BATCH_SIZE})"
    )
    parser.add_argument(
        "-l",
        "--log-level",
        default=settings.LOG_LEVEL,
        help="Log level (trace, debug, info, warn, error, fatal, panic)",
    )
    parser.add_argument("--log-format", default=settings.LOG_FORMAT, choices=["text", "json"], help="Log format")
    parser.add_argument(
        "--progress-interval",
        type=float,
        help=f"Seconds between progress reports (default: {settings.PROGRESS_INTERVAL})",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {settings.APP_VERSION}")
    return parser


def build_config(args: argparse.Namespace, settings: Settings) -> ExportConfig:
    """Merge parsed flags over settings.

    Raises:
        pydantic.ValidationError: If the merged configuration is invalid
    """
    return ExportConfig.from_settings(
        settings,
        redis_addr=args.addr,
        redis_password=args.password,
        redis_db=args.db,
        output_file=args.output,
        workers=args.workers,
        batch_size=args.batch,
        progress_interval=args.progress_interval,
    )


def target_given(args: argparse.Namespace, settings: Settings) -> bool:
    """True when an address or output path was set by flag or environment."""
    if args.addr is not None or args.output is not None:
        return True
    return bool({"REDIS_ADDR", "OUTPUT_FILE"} & settings.model_fields_set)


class ExportRunner:
    """
    Runs a single export with signal-driven graceful shutdown.

    Handles:
    - Redis connection lifecycle
    - SIGINT/SIGTERM -> pipeline cancellation
    - Mapping the run outcome to a process exit code
    """

    def __init__(self, config: ExportConfig) -> None:
        self.config = config
        self.pipeline: Optional[ExportPipeline] = None
        self.cancel_reason: Optional[str] = None
        self._signals: list[int] = []

    def request_cancel(self, reason: str) -> None:
        """Cancel the running export, or the one about to start."""
        if self.cancel_reason is None:
            self.cancel_reason = reason
        if self.pipeline is not None:
            self.pipeline.cancel(reason)

    def setup_signal_handlers(self) -> None:
        """Setup handlers for graceful shutdown on SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum: int) -> None:
            logger.info(f"Received signal {signum}, initiating graceful shutdown")
            self.request_cancel(f"received signal {signal.Signals(signum).name}")

        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, signal_handler, signum)
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform/loop; Ctrl-C falls back to KeyboardInterrupt
                continue
            self._signals.append(signum)

    def remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        while self._signals:
            loop.remove_signal_handler(self._signals.pop())

    async def export(self) -> ExportSummary:
        """
        Connect to Redis and run the export.

        Raises:
            StoreConnectionError: If Redis cannot be reached
            ExportError: Any fatal pipeline error, including cancellation
        """
        store = RedisStore(self.config)
        logger.info("Connecting to Redis", extra={"redis_addr": self.config.redis_addr})

        try:
            try:
                await store.connect()
            except redis.RedisError as e:
                raise StoreConnectionError(f"failed to connect to Redis: {e}") from e

            if self.cancel_reason is not None:
                raise ExportCancelled(self.cancel_reason)

            self.pipeline = ExportPipeline(store, FileSink(self.config.output_file), self.config)
            return await self.pipeline.run()

        finally:
            await store.close()

    async def start(self) -> int:
        """Run the export and return the process exit code."""
        self.setup_signal_handlers()

        try:
            await self.export()
        except ExportCancelled as e:
            logger.warning("Export cancelled", extra={"reason": e.reason})
            return EXIT_CANCELLED
        except ExportError as e:
            logger.error("Export failed: %s", e, exc_info=True)
            return EXIT_FAILED
        finally:
            self.remove_signal_handlers()

        return EXIT_OK


async def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the exporter; returns the exit code."""
    settings = get_settings()
    parser = create_parser(settings)
    args = parser.parse_args(argv)

    if not target_given(args, settings):
        parser.print_help()
        return EXIT_OK

    try:
        setup_logging(level=args.log_level, format_type=args.log_format)
    except ValueError as e:
        print(f"{parser.prog}: {e}", file=sys.stderr)
        return EXIT_FAILED

    try:
        config = build_config(args, settings)
    except ValidationError as e:
        logger.error("Invalid configuration: %s", e)
        return EXIT_FAILED

    runner = ExportRunner(config)
    return await runner.start()


def run() -> None:
    """Console-script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
