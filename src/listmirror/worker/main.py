"""Worker process entry point: mirrors labeler events into lists until signalled."""

from __future__ import annotations

import asyncio
import signal
import sys

from listmirror.common.logging import get_logger, setup_logging
from listmirror.common.redis_client import close_redis, get_redis
from listmirror.common.settings import ConfigError, get_settings, validate_settings
from listmirror.firehose.client import FirehoseClient
from listmirror.firehose.handler import LabelEventHandler
from listmirror.lists.factory import create_mutator, create_registry, create_repo_client

log = get_logger(__name__)


def _handle_signal(shutdown: asyncio.Event, sig: signal.Signals) -> None:
    log.info("shutdown_signal", signal=sig.name)
    shutdown.set()


async def run(shutdown: asyncio.Event) -> None:
    """Connect everything, stream until ``shutdown`` is set, then wind down."""
    settings = get_settings()

    registry = create_registry(settings)
    log.info("lists_loaded", count=len(registry), labels=registry.labels())
    if not len(registry):
        log.warning("no_lists_configured", detail="events will be received but none applied")

    await get_redis()

    async with create_repo_client(settings) as repo:
        await repo.login()

        mutator = create_mutator(settings, repo, registry)
        handler = LabelEventHandler(mutator, registry)
        firehose = FirehoseClient(
            settings.wss_url,
            handler.handle,
            initial_delay=settings.firehose_initial_delay_seconds,
            max_delay=settings.firehose_max_delay_seconds,
            resume_cursor=settings.firehose_resume_cursor,
        )
        await firehose.start()
        log.info("worker_started", url=settings.wss_url)

        await shutdown.wait()

        log.info("worker_shutting_down", inflight=firehose.inflight)
        await firehose.stop()
        remaining = await firehose.drain(settings.shutdown_grace_seconds)
        if remaining:
            log.warning("worker_abandoning_inflight", count=remaining)

    await close_redis()
    log.info("worker_stopped")


async def main() -> int:
    settings = get_settings()
    setup_logging(settings.log_level, settings.environment)

    log.info("worker_starting")
    try:
        validate_settings(settings)
    except ConfigError as exc:
        log.critical("config_invalid", missing=exc.missing, error=str(exc))
        return 1

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    signals = (signal.SIGTERM, signal.SIGINT) if sys.platform != "win32" else ()
    for sig in signals:
        loop.add_signal_handler(sig, _handle_signal, shutdown, sig)

    try:
        await run(shutdown)
    except Exception as exc:
        log.critical("worker_failed", error=str(exc), exc_info=True)
        await close_redis()
        return 1
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)
    return 0


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
