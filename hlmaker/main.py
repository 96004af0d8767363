"""
HLMaker - Main entry point.

Usage:
    python -m hlmaker.main config.json
"""
import argparse
import asyncio
import signal

from .config import load_config
from .feed import HyperliquidFeed
from .logging import ErrorContext, make_logger
from .router import EventRouter
from .types import BotConfig


async def print_intents(outbox: asyncio.Queue) -> None:
    """Stand-in execution client: show admitted quote intents, send nothing."""
    while True:
        q = await outbox.get()
        print(f"[DRY] WOULD QUOTE {q.side.value}: {q.size:.3f} @ {q.price:.2f}")


async def run(cfg: BotConfig) -> None:
    logger = make_logger(cfg.log_path, cfg.logging.level, cfg.logging.enable_performance)
    outbox: asyncio.Queue = asyncio.Queue()
    router = EventRouter(cfg, logger, outbox=outbox)
    feed = HyperliquidFeed(cfg.feed, logger)

    loop = asyncio.get_running_loop()
    handled = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, lambda: asyncio.create_task(feed.shutdown()))
            handled.append(sig)
        except NotImplementedError:
            pass

    feed_task = asyncio.create_task(feed.run(router))
    intents_task = asyncio.create_task(print_intents(outbox))
    router_task = asyncio.create_task(router.run())
    stop_task = asyncio.create_task(feed.wait_shutdown())
    tasks = (stop_task, intents_task, feed_task, router_task)
    try:
        # A quiet socket must not delay shutdown until the next frame
        await asyncio.wait({router_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        if not router_task.done():
            router.close()
        await router_task
        if feed_task.done() and not feed_task.cancelled() and feed_task.exception() is not None:
            ErrorContext.log_operation_error(logger, "feed", feed_task.exception(), {"url": cfg.feed.wss_url})
    finally:
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for sig in handled:
            loop.remove_signal_handler(sig)
        logger.close()


async def _amain():
    """Main async entry point."""
    parser = argparse.ArgumentParser(description="Run the HLMaker quoting core against the live feed")
    parser.add_argument("config", help="Path to configuration JSON file")
    args = parser.parse_args()
    await run(load_config(args.config))


def cli():
    asyncio.run(_amain())


if __name__ == "__main__":
    cli()
