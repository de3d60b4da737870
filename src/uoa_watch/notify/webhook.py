from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, Sequence

import httpx

from uoa_watch.notify.payloads import Category, SignalPayload

LOGGER = logging.getLogger(__name__)
CALL_COLOR = 0x2ECC71
PUT_COLOR = 0xE74C3C


class Notifier(Protocol):
    async def send(self, payload: SignalPayload) -> bool: ...


def build_embed(payload: SignalPayload) -> dict[str, Any]:
    def fmt(value: float | None) -> str:
        return "N/A" if value is None else f"{value:g}"

    return {
        "title": payload.title,
        "color": CALL_COLOR if payload.side == "Call" else PUT_COLOR,
        "fields": [
            {"name": "Premium ~$", "value": f"{payload.premium:,.0f}", "inline": True},
            {"name": "Vol / OI", "value": f"{payload.volume_open_interest_ratio:g}", "inline": True},
            {"name": "Last / Bid-Ask", "value": f"{fmt(payload.last)} / {fmt(payload.bid)}-{fmt(payload.ask)}", "inline": True},
            {"name": "Moneyness", "value": payload.moneyness, "inline": True},
            {"name": "Trade Time", "value": payload.trade_time.isoformat() if payload.trade_time else "N/A", "inline": True},
            {"name": "Legs", "value": str(payload.legs), "inline": True},
            {"name": "Link", "value": payload.link, "inline": False},
        ],
    }


class WebhookNotifier:
    """Post signal payloads to a webhook per category."""

    def __init__(
        self,
        *,
        webhooks: dict[Category, str | None],
        session_factory: Callable[[], httpx.AsyncClient] | None = None,
    ) -> None:
        self._webhooks = {category: url for category, url in webhooks.items() if url}
        self._session_factory = session_factory or (lambda: httpx.AsyncClient(timeout=10.0))
        self._session: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Any, **kwargs: Any) -> "WebhookNotifier":
        return cls(
            webhooks={
                "Large": settings.webhook_large,
                "Golden": settings.webhook_golden,
                "Cluster": settings.webhook_cluster or settings.webhook_golden,
            },
            **kwargs,
        )

    async def __aenter__(self) -> "WebhookNotifier":
        self._session = self._session_factory()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._session is not None:
            await self._session.aclose()
            self._session = None

    async def send(self, payload: SignalPayload) -> bool:
        url = self._webhooks.get(payload.category)
        if not url:
            LOGGER.debug("No webhook configured for %s; skipping %s", payload.category, payload.title)
            return False
        if self._session is None:
            raise RuntimeError("WebhookNotifier must be used as an async context manager")
        body = {"content": "", "embeds": [build_embed(payload)]}
        try:
            response = await self._session.post(url, json=body)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            LOGGER.error("Webhook delivery failed for %s: %s", payload.title, exc)
            return False
        LOGGER.debug("Webhook response %s for %s", response.status_code, payload.title)
        return True


class LogNotifier:
    """Dry-run notifier that only logs each payload."""

    async def send(self, payload: SignalPayload) -> bool:
        LOGGER.info("[dry-run] %s %s", payload.title, payload.model_dump_json())
        return True


async def dispatch(
    payloads: Sequence[SignalPayload],
    notifier: Notifier,
    *,
    delay_seconds: float = 0.4,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> int:
    """Send payloads one at a time with ``delay_seconds`` between sends."""

    sent = 0
    for index, payload in enumerate(payloads):
        if index:
            await sleep(delay_seconds)
        if await notifier.send(payload):
            sent += 1
    return sent


__all__ = ["LogNotifier", "Notifier", "WebhookNotifier", "build_embed", "dispatch"]
