from __future__ import annotations

import asyncio
import json
from datetime import date

import httpx

from uoa_watch.notify.payloads import SignalPayload, cluster_payload, group_payload, trade_payload
from uoa_watch.notify.webhook import LogNotifier, WebhookNotifier, build_embed, dispatch
from uoa_watch.services.clusters import Cluster, ClusterKey


def _payload(category: str = "Large", **overrides) -> SignalPayload:
    data = dict(
        category=category,
        symbol="TSLA",
        side="Put",
        strike=240.0,
        expiration=date(2025, 1, 17),
        premium=450_000,
        volume_open_interest_ratio=3.2,
        bid=4.4,
        last=4.5,
        ask=4.5,
        moneyness="OTM",
        link="https://www.barchart.com/stocks/quotes/TSLA/options",
    )
    data.update(overrides)
    return SignalPayload(**data)


def _notifier(handler, **webhooks) -> WebhookNotifier:
    transport = httpx.MockTransport(handler)
    return WebhookNotifier(
        webhooks=webhooks,
        session_factory=lambda: httpx.AsyncClient(transport=transport),
    )


def test_send_posts_embed_to_category_webhook():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    async def scenario() -> bool:
        async with _notifier(handler, Large="https://hooks.test/large", Golden="https://hooks.test/golden") as notifier:
            return await notifier.send(_payload())

    assert asyncio.run(scenario()) is True
    assert [str(r.url) for r in seen] == ["https://hooks.test/large"]
    body = json.loads(seen[0].content)
    embed = body["embeds"][0]
    assert embed["title"] == "Large: TSLA Put 240 01/17/2025"
    assert {"name": "Last / Bid-Ask", "value": "4.5 / 4.4-4.5", "inline": True} in embed["fields"]


def test_unconfigured_category_is_skipped():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not be called
        raise AssertionError("unexpected request")

    async def scenario() -> bool:
        async with _notifier(handler, Large="https://hooks.test/large") as notifier:
            return await notifier.send(_payload(category="Golden"))

    assert asyncio.run(scenario()) is False


def test_http_failure_reports_false():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    async def scenario() -> bool:
        async with _notifier(handler, Large="https://hooks.test/large") as notifier:
            return await notifier.send(_payload())

    assert asyncio.run(scenario()) is False


def test_from_settings_falls_back_to_golden_for_clusters():
    class Cfg:
        webhook_large = None
        webhook_golden = "https://hooks.test/golden"
        webhook_cluster = None

    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200)

    transport = httpx.MockTransport(handler)
    notifier = WebhookNotifier.from_settings(Cfg(), session_factory=lambda: httpx.AsyncClient(transport=transport))

    async def scenario() -> bool:
        async with notifier:
            return await notifier.send(_payload(category="Cluster", strike_hi=250.0, legs=3))

    assert asyncio.run(scenario()) is True
    assert seen == ["https://hooks.test/golden"]


def test_dispatch_waits_between_sends():
    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    payloads = [_payload(), _payload(strike=245.0), _payload(strike=250.0)]
    sent = asyncio.run(dispatch(payloads, LogNotifier(), delay_seconds=0.4, sleep=fake_sleep))
    assert sent == 3
    assert delays == [0.4, 0.4]


def test_payload_builders_carry_required_fields(make_trade, make_group, now):
    trade = make_trade(volume=1500)
    large = trade_payload(trade)
    assert large.category == "Large"
    assert (large.bid, large.last, large.ask) == (trade.bid, trade.last, trade.ask)
    assert large.link.endswith("/NVDA/options")

    group = make_group(volume=6000, open_interest=1000)
    golden = group_payload(group)
    assert golden.category == "Golden"
    assert golden.premium == 1_200_000
    assert golden.volume_open_interest_ratio == 6.0

    key = ClusterKey("NVDA", "Call", 140.0, 145.0, date(2025, 1, 17), date(2025, 1, 24))
    cluster = Cluster(key, 3_500_000, 9_000, 3_000, (), frozenset({"a"}), now)
    payload = cluster_payload(cluster)
    assert payload.title == "Cluster: NVDA Call 140-145 01/17/2025-01/24/2025"
    assert payload.volume_open_interest_ratio == 3.0
    assert payload.legs == 0
    assert build_embed(payload)["color"] == 0x2ECC71


def test_malformed_webhook_url_reports_false():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not be called
        raise AssertionError("unexpected request")

    async def scenario() -> bool:
        async with _notifier(handler, Large="http://[::1") as notifier:
            return await notifier.send(_payload())

    assert asyncio.run(scenario()) is False
