"""Application Entry Point."""

import argparse
import asyncio
import logging
import signal
import sys

from config.settings import get_settings
from scheduling.api import ManagementServer
from scheduling.errors import PersistenceError
from scheduling.manager import SchedulingManager
from scheduling.store import JobStore

logger = logging.getLogger("hookcron.main")


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="hookcron", description="Scheduled webhook chains.")
    parser.add_argument("--config", help="Path to the jobs file (default: $HOOKCRON_JOBS_FILE or config.yaml)")
    parser.add_argument("--addr", help="HTTP server address, host:port (default: :8080)")
    return parser.parse_args(argv)


async def serve(settings) -> None:
    """Load jobs, start the engine and serve the management API until cancelled."""
    store = JobStore(settings.jobs_path)
    store.load()

    sched = SchedulingManager(
        repository=store,
        default_timeout=settings.default_webhook_timeout,
        max_concurrent=settings.max_concurrent_executions,
    )
    loop = asyncio.get_running_loop()
    main_task = asyncio.current_task()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, main_task.cancel)
        except (NotImplementedError, RuntimeError):
            pass  # Windows

    sched.start()
    sched.load_jobs()

    server = ManagementServer(sched, store, host=settings.host, port=settings.port)
    try:
        await server.run()
    finally:
        await sched.shutdown()


def main(argv=None) -> int:
    """Run the service."""
    args = _parse_args(argv)
    settings = get_settings()
    if args.config:
        settings = settings.model_copy(update={"jobs_file": args.config})
    if args.addr:
        settings = settings.with_addr(args.addr)

    logging.basicConfig(level=settings.log_level, format=settings.log_format)

    # Silence noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

    try:
        asyncio.run(serve(settings))
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Shutting down gracefully...")
    except PersistenceError as exc:
        logger.error("Failed to load configuration: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
