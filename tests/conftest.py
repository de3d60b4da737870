from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Callable

import pytest

from uoa_watch.config import settings as settings_module
from uoa_watch.config.settings import DetectionConfig
from uoa_watch.ingest.records import TradeRecord
from uoa_watch.services.window import ContractGroup, WindowEntry, build_groups

NOW = datetime(2025, 1, 13, 15, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("UOA_WATCH_WEBHOOK_LARGE", raising=False)
    monkeypatch.delenv("UOA_WATCH_WEBHOOK_GOLDEN", raising=False)
    monkeypatch.delenv("UOA_WATCH_WEBHOOK_CLUSTER", raising=False)
    settings_module.get_settings.cache_clear()
    yield
    settings_module.get_settings.cache_clear()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def config() -> DetectionConfig:
    return DetectionConfig()


def build_trade(
    *,
    symbol: str = "NVDA",
    side: str = "Call",
    strike: float = 150.0,
    expiration: date | None = date(2025, 1, 17),
    bid: float | None = 1.9,
    ask: float | None = 2.0,
    last: float | None = 2.0,
    volume: int = 2000,
    open_interest: int = 500,
    ratio: float | None = None,
    premium: float | None = None,
    moneyness: str = "OTM",
    trade_time: datetime | None = NOW - timedelta(minutes=1),
) -> TradeRecord:
    if premium is None:
        premium = float(round((last or 0.0) * 100 * volume))
    if ratio is None:
        ratio = round(volume / max(1, open_interest), 2)
    return TradeRecord(
        symbol=symbol,
        side=side,  # type: ignore[arg-type]
        strike=strike,
        expiration=expiration,
        bid=bid,
        ask=ask,
        last=last,
        volume=volume,
        open_interest=max(1, open_interest),
        volume_open_interest_ratio=ratio,
        premium=premium,
        moneyness=moneyness,
        trade_time=trade_time,
    )


@pytest.fixture
def make_trade() -> Callable[..., TradeRecord]:
    return build_trade


@pytest.fixture
def make_group() -> Callable[..., ContractGroup]:
    def _make(observed_at: datetime = NOW, **kwargs) -> ContractGroup:
        groups = build_groups([WindowEntry(trade=build_trade(**kwargs), observed_at=observed_at)])
        assert len(groups) == 1
        return groups[0]

    return _make
