from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import date, datetime
from functools import cached_property
from typing import Any, Literal, NamedTuple

Side = Literal["Call", "Put"]


class ContractKey(NamedTuple):
    symbol: str
    side: str
    strike: float
    expiration: date | None


@dataclass(frozen=True)
class TradeRecord:
    """One observed option trade, normalized from a raw grid row."""

    symbol: str
    side: Side
    strike: float
    expiration: date | None
    bid: float | None
    ask: float | None
    last: float | None
    volume: int
    open_interest: int
    volume_open_interest_ratio: float
    premium: float
    moneyness: str = "N/A"
    trade_time: datetime | None = None
    option_symbol: str = ""
    raw_trade_time: str | None = None

    @property
    def contract_key(self) -> ContractKey:
        return ContractKey(self.symbol, self.side, float(self.strike), self.expiration)

    @cached_property
    def fingerprint(self) -> str:
        identity = [
            self.symbol,
            self.side,
            float(self.strike),
            self.expiration.isoformat() if self.expiration else None,
            self.trade_time.isoformat() if self.trade_time else self.raw_trade_time,
            self.last,
            self.volume,
        ]
        canonical = json.dumps(identity, separators=(",", ":"))
        return hashlib.sha1(canonical.encode("utf-8")).hexdigest()

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "side": self.side,
            "strike": self.strike,
            "expiration": self.expiration.isoformat() if self.expiration else None,
            "bid": self.bid,
            "ask": self.ask,
            "last": self.last,
            "volume": self.volume,
            "openInterest": self.open_interest,
            "volumeOpenInterestRatio": self.volume_open_interest_ratio,
            "premium": self.premium,
            "moneyness": self.moneyness,
            "tradeTime": self.trade_time.isoformat() if self.trade_time else None,
            "optionSymbol": self.option_symbol,
            "rawTradeTime": self.raw_trade_time,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TradeRecord":
        expiration = data.get("expiration")
        trade_time = data.get("tradeTime")
        return cls(
            symbol=str(data["symbol"]),
            side="Put" if data.get("side") == "Put" else "Call",
            strike=float(data.get("strike", 0.0)),
            expiration=date.fromisoformat(expiration) if expiration else None,
            bid=_optional_float(data.get("bid")),
            ask=_optional_float(data.get("ask")),
            last=_optional_float(data.get("last")),
            volume=int(data.get("volume", 0)),
            open_interest=max(1, int(data.get("openInterest", 1))),
            volume_open_interest_ratio=float(data.get("volumeOpenInterestRatio", 0.0)),
            premium=float(data.get("premium", 0.0)),
            moneyness=str(data.get("moneyness") or "N/A"),
            trade_time=datetime.fromisoformat(trade_time) if trade_time else None,
            option_symbol=str(data.get("optionSymbol") or ""),
            raw_trade_time=str(data["rawTradeTime"]) if data.get("rawTradeTime") else None,
        )


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    return float(value)


__all__ = ["ContractKey", "Side", "TradeRecord"]
