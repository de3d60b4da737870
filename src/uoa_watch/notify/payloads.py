from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel

from uoa_watch.ingest.records import TradeRecord
from uoa_watch.services.clusters import Cluster
from uoa_watch.services.window import ContractGroup

Category = Literal["Large", "Golden", "Cluster"]
QUOTE_LINK = "https://www.barchart.com/stocks/quotes/{symbol}/options"


class SignalPayload(BaseModel):
    """Field set handed to the notification channel for one firing signal."""

    category: Category
    symbol: str
    side: str
    strike: float
    strike_hi: float | None = None
    expiration: date | None = None
    expiration_hi: date | None = None
    premium: float
    volume_open_interest_ratio: float
    bid: float | None = None
    last: float | None = None
    ask: float | None = None
    moneyness: str = "N/A"
    trade_time: datetime | None = None
    link: str
    legs: int = 1

    @property
    def title(self) -> str:
        strike = f"{self.strike:g}" if self.strike_hi is None else f"{self.strike:g}-{self.strike_hi:g}"
        expiry = _us_date(self.expiration)
        if self.expiration_hi is not None and self.expiration_hi != self.expiration:
            expiry = f"{expiry}-{_us_date(self.expiration_hi)}"
        return f"{self.category}: {self.symbol} {self.side} {strike} {expiry}"


def _us_date(value: date | None) -> str:
    return value.strftime("%m/%d/%Y") if value else "N/A"


def _link(symbol: str) -> str:
    return QUOTE_LINK.format(symbol=symbol)


def trade_payload(trade: TradeRecord) -> SignalPayload:
    return SignalPayload(
        category="Large",
        symbol=trade.symbol,
        side=trade.side,
        strike=trade.strike,
        expiration=trade.expiration,
        premium=trade.premium,
        volume_open_interest_ratio=trade.volume_open_interest_ratio,
        bid=trade.bid,
        last=trade.last,
        ask=trade.ask,
        moneyness=trade.moneyness,
        trade_time=trade.trade_time,
        link=_link(trade.symbol),
    )


def group_payload(group: ContractGroup) -> SignalPayload:
    return SignalPayload(
        category="Golden",
        symbol=group.symbol,
        side=group.side,
        strike=group.strike,
        expiration=group.expiration,
        premium=group.premium_sum,
        volume_open_interest_ratio=round(group.volume_open_interest_ratio, 2),
        bid=group.bid,
        last=group.last,
        ask=group.ask,
        moneyness=group.moneyness,
        trade_time=group.latest_trade_time,
        link=_link(group.symbol),
        legs=len(group.fingerprints),
    )


def cluster_payload(cluster: Cluster) -> SignalPayload:
    key = cluster.key
    return SignalPayload(
        category="Cluster",
        symbol=key.symbol,
        side=key.side,
        strike=key.strike_lo,
        strike_hi=key.strike_hi,
        expiration=key.exp_lo,
        expiration_hi=key.exp_hi,
        premium=cluster.premium_sum,
        volume_open_interest_ratio=round(cluster.volume_open_interest_ratio, 2),
        trade_time=cluster.latest_trade_time,
        link=_link(key.symbol),
        legs=len(cluster.members),
    )


__all__ = ["Category", "SignalPayload", "cluster_payload", "group_payload", "trade_payload"]
