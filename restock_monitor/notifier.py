"""Change-triggered stock notifications.

`StockNotifier` compares each fresh classification with the status store
and emits one `stock_update` event per change.  Events go to a channel
(anything with ``emit(event_name, payload)``); delivery is
fire-and-forget, so channel errors are logged and never reach the runner.

`DiscordWebhookChannel` relays events to a Discord channel via webhook,
posting from a small background pool so the event loop never waits on
Discord.
"""
from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, Optional, Protocol

import requests

from .models import Classification, Product, Status, StockUpdateEvent
from .store import StatusStore
from .utils import get_http_session, retryable_request

logger = logging.getLogger(__name__)

STOCK_UPDATE = "stock_update"


class EventChannel(Protocol):
    def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        ...


def effective_status(raw: Status, require_first_party: bool) -> Status:
    """Apply the first-party policy to a raw classifier status."""
    if require_first_party and raw is Status.THIRD_PARTY:
        return Status.OOS
    return raw


class StockNotifier:
    def __init__(
        self,
        store: StatusStore,
        channel: EventChannel,
        *,
        require_first_party: bool = False,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.store = store
        self.channel = channel
        self.require_first_party = require_first_party
        self._clock = clock

    def process(self, product: Product, result: Classification) -> Optional[StockUpdateEvent]:
        """Record ``result`` for ``product``; return the emitted event, or None if unchanged."""
        status = effective_status(result.status, self.require_first_party)
        previous = self.store.get(product.url)
        if status == previous:
            logger.debug("[%s] %s: unchanged (%s)", product.site.value, product.name, status.value)
            return None

        self.store.set(product.url, status)

        extra = None
        if result.is_first_party is not None:
            extra = {"rawStatus": result.status.value, "isFirstParty": result.is_first_party}

        kwargs: Dict[str, Any] = {}
        if self._clock is not None:
            kwargs["ts"] = int(self._clock() * 1000)
        event = StockUpdateEvent(
            site=product.site,
            name=product.name,
            url=product.url,
            status=status,
            extra=extra,
            **kwargs,
        )
        logger.info("[%s] %s: %s -> %s", product.site.value, product.name, previous.value, status.value)

        try:
            self.channel.emit(STOCK_UPDATE, event.to_dict())
        except Exception:
            logger.exception("Failed to emit %s for %s", STOCK_UPDATE, product.url)
        return event


# ---- Channels ------------------------------------------------------------------

class LoggingChannel:
    """Writes every event to the log as JSON."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        logger.log(self.level, "%s %s", event_name, json.dumps(payload, sort_keys=True))


class FanoutChannel:
    """Forwards each event to several channels; one failing channel does not stop the rest."""

    def __init__(self, channels: Iterable[EventChannel]):
        self.channels = list(channels)

    def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        for ch in self.channels:
            try:
                ch.emit(event_name, payload)
            except Exception:
                logger.exception("Channel %s failed to emit %s", type(ch).__name__, event_name)


@retryable_request
def _post(session: requests.Session, url: str, **kwargs) -> requests.Response:
    return session.post(url, **kwargs)


_TITLES = {
    Status.IN_STOCK.value: "In Stock",
    Status.OOS.value: "Out of Stock",
    Status.PREORDER.value: "Preorder",
    Status.THIRD_PARTY.value: "Third-Party Seller",
}

_COLORS = {
    Status.IN_STOCK.value: 0x2ECC71,
    Status.PREORDER.value: 0x3498DB,
    Status.THIRD_PARTY.value: 0xF1C40F,
}


def _build_embed(payload: Dict[str, Any]) -> dict:
    status = payload.get("status", "")
    name = payload.get("name") or "Unknown product"
    desc_lines: list[str] = [f"Site: {payload.get('site', 'n/a')}", f"Status: {status}"]

    extra = payload.get("extra") or {}
    if "rawStatus" in extra and extra["rawStatus"] != status:
        desc_lines.append(f"Raw status: {extra['rawStatus']}")
    if "isFirstParty" in extra:
        desc_lines.append("Sold by the retailer" if extra["isFirstParty"] else "Sold by a marketplace seller")

    embed = {
        "title": f"{_TITLES.get(status, 'Update')}: {name}",
        "url": payload.get("url"),
        "description": "\n".join(desc_lines),
        "color": _COLORS.get(status, 0x95A5A6),
    }
    return embed


class DiscordWebhookChannel:
    def __init__(
        self,
        webhook_url: str,
        session: Optional[requests.Session] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        if not webhook_url:
            raise ValueError("Discord webhook URL is required")
        self.webhook_url = webhook_url
        self.session = session or get_http_session()
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="discord")

    def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        if event_name != STOCK_UPDATE:
            return
        future = self._executor.submit(self.send, payload)
        future.add_done_callback(self._log_failure)

    def send(self, payload: Dict[str, Any]) -> None:
        body = {"embeds": [_build_embed(payload)]}
        logger.info("Sending %s notification for %s", payload.get("status"), payload.get("url"))
        _post(self.session, self.webhook_url, json=body, timeout=10)

    @staticmethod
    def _log_failure(future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Discord notification failed: %s", exc)

    def close(self) -> None:
        self._executor.shutdown(wait=False)
        self.session.close()


__all__ = [
    "EventChannel",
    "StockNotifier",
    "effective_status",
    "LoggingChannel",
    "FanoutChannel",
    "DiscordWebhookChannel",
    "STOCK_UPDATE",
]
