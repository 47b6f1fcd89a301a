from __future__ import annotations

import asyncio
import logging
from typing import List

from . import config
from .classifiers import CLASSIFIERS
from .fetcher import Fetcher
from .notifier import DiscordWebhookChannel, EventChannel, FanoutChannel, LoggingChannel, StockNotifier
from .runner import CycleRunner
from .schedule import PeriodicTask, ScheduleController
from .store import StatusStore
from .utils import get_http_session


def setup_logging() -> None:
    level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_channel() -> FanoutChannel:
    channels: List[EventChannel] = [LoggingChannel()]
    if config.DISCORD_WEBHOOK_URL:
        channels.append(DiscordWebhookChannel(config.DISCORD_WEBHOOK_URL))
    else:
        logging.getLogger(__name__).info("Discord webhook not configured; events are only logged.")
    return FanoutChannel(channels)


async def run() -> None:
    """Wire the monitor together and poll until cancelled."""
    logger = logging.getLogger(__name__)

    schedule = ScheduleController(
        config.FAST_INTERVAL_MS,
        config.SLOW_INTERVAL_MS,
        config.STEP_UP_MS,
        config.STEP_DOWN_MS,
        failure_threshold=config.FAILURE_THRESHOLD,
    )
    session = get_http_session(config.USER_AGENT)
    fetcher = Fetcher(
        session,
        schedule,
        user_agent=config.USER_AGENT,
        timeout_ms=config.FETCH_TIMEOUT_MS,
    )
    channel = build_channel()
    notifier = StockNotifier(
        StatusStore(),
        channel,
        require_first_party=config.REQUIRE_FIRST_PARTY,
    )
    runner = CycleRunner(
        config.PRODUCTS,
        fetcher,
        notifier,
        stagger_ms=config.STAGGER_MS,
        skip_in_flight=config.SKIP_IN_FLIGHT,
    )

    timer = PeriodicTask(runner.run_cycle, schedule.current_interval_ms, name="stock-poll")
    schedule.attach(timer)

    logger.info(
        "Monitoring %d products (interval %d-%d ms, stagger %d ms, first-party required: %s)",
        len(config.PRODUCTS),
        config.FAST_INTERVAL_MS,
        config.SLOW_INTERVAL_MS,
        config.STAGGER_MS,
        config.REQUIRE_FIRST_PARTY,
    )
    for site, classifier in CLASSIFIERS.items():
        logger.debug("Classifier %s rules v%s", site.value, classifier.rules_version)

    timer.start(immediate=True)
    try:
        await asyncio.Event().wait()
    finally:
        timer.cancel()
        for ch in channel.channels:
            if isinstance(ch, DiscordWebhookChannel):
                ch.close()
        session.close()


def main() -> None:
    """Initialise and run the monitoring loop."""
    config.validate()
    setup_logging()
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Interrupted; shutting down.")


if __name__ == "__main__":
    main()
