from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, timezone
from typing import Any, Iterable, List

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from uoa_watch.ingest.records import Side, TradeRecord

LOGGER = logging.getLogger(__name__)
CONTRACT_MULTIPLIER = 100

_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_DATE_ADAPTER = TypeAdapter(date)
_DATETIME_ADAPTER = TypeAdapter(datetime)
_DATE_FORMATS = ("%m/%d/%y", "%m/%d/%Y")
_DATETIME_FORMATS = (
    "%m/%d/%y %H:%M:%S",
    "%m/%d/%y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%y",
    "%m/%d/%Y",
)


class RawOptionRow(BaseModel):
    """One row of the unusual-activity grid payload, every field optional."""

    base_symbol: Any = Field(default=None, alias="baseSymbol")
    option_symbol: Any = Field(default=None, alias="symbol")
    strike_price: Any = Field(default=None, alias="strikePrice")
    last_price: Any = Field(default=None, alias="lastPrice")
    bid_price: Any = Field(default=None, alias="bidPrice")
    ask_price: Any = Field(default=None, alias="askPrice")
    volume: Any = None
    open_interest: Any = Field(default=None, alias="openInterest")
    volume_open_interest_ratio: Any = Field(default=None, alias="volumeOpenInterestRatio")
    expiration_date: Any = Field(default=None, alias="expirationDate")
    moneyness: Any = None
    delta: Any = None
    trade_time: Any = Field(default=None, alias="tradeTime")

    model_config = ConfigDict(extra="allow", populate_by_name=True)


def parse_number(value: Any) -> float:
    """Tolerantly parse ``value``; anything unusable becomes ``nan``."""

    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else math.nan
    if value is None:
        return math.nan
    cleaned = _NON_NUMERIC.sub("", str(value))
    if not cleaned:
        return math.nan
    try:
        return float(cleaned)
    except ValueError:
        return math.nan


def infer_side(option_symbol: str, delta: Any) -> Side:
    # Heuristic: a root containing both letters resolves to Call.
    if "P" in option_symbol and "C" not in option_symbol:
        return "Put"
    if "C" in option_symbol:
        return "Call"
    delta_value = parse_number(delta)
    if math.isfinite(delta_value) and delta_value < 0:
        return "Put"
    return "Call"


def parse_expiration(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return _DATE_ADAPTER.validate_python(text)
    except ValidationError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_trade_time(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    parsed: datetime | None = None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = _DATETIME_ADAPTER.validate_python(value)
        except ValidationError:
            if isinstance(value, str):
                parsed = _strptime_any(value.strip(), _DATETIME_FORMATS)
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _strptime_any(text: str, formats: Iterable[str]) -> datetime | None:
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def normalize_row(raw: RawOptionRow | dict[str, Any]) -> TradeRecord | None:
    """Map one raw grid row to a ``TradeRecord``; ``None`` when the symbol is missing."""

    if not isinstance(raw, RawOptionRow):
        try:
            raw = RawOptionRow.model_validate(raw)
        except ValidationError:
            LOGGER.debug("Invalid raw row skipped: %s", raw)
            return None

    option_symbol = str(raw.option_symbol or "")
    symbol = str(raw.base_symbol or option_symbol or "").strip()
    if not symbol:
        return None

    strike = parse_number(raw.strike_price)
    last = parse_number(raw.last_price)
    bid = parse_number(raw.bid_price)
    ask = parse_number(raw.ask_price)
    volume_raw = parse_number(raw.volume)
    oi_raw = parse_number(raw.open_interest)

    volume = math.trunc(volume_raw) if math.isfinite(volume_raw) else 0
    volume = max(0, volume)
    open_interest = max(1, math.trunc(oi_raw)) if math.isfinite(oi_raw) else 1

    upstream_ratio = raw.volume_open_interest_ratio
    if isinstance(upstream_ratio, (int, float)) and not isinstance(upstream_ratio, bool) and math.isfinite(upstream_ratio):
        ratio = round(float(upstream_ratio), 2)
    else:
        ratio = round(volume / open_interest, 2)

    price_for_premium = last if math.isfinite(last) else 0.0
    premium = float(round(price_for_premium * CONTRACT_MULTIPLIER * volume))
    trade_time = parse_trade_time(raw.trade_time)
    # unparsed time text still tells two prints apart
    raw_trade_time = None
    if trade_time is None and raw.trade_time is not None:
        raw_trade_time = str(raw.trade_time).strip() or None

    return TradeRecord(
        symbol=symbol,
        side=infer_side(option_symbol, raw.delta),
        strike=strike if math.isfinite(strike) else 0.0,
        expiration=parse_expiration(raw.expiration_date),
        bid=bid if math.isfinite(bid) else None,
        ask=ask if math.isfinite(ask) else None,
        last=last if math.isfinite(last) else None,
        volume=volume,
        open_interest=open_interest,
        volume_open_interest_ratio=max(0.0, ratio),
        premium=max(0.0, premium),
        moneyness=str(raw.moneyness) if raw.moneyness else "N/A",
        trade_time=trade_time,
        option_symbol=option_symbol,
        raw_trade_time=raw_trade_time,
    )


def normalize_rows(rows: Iterable[Any]) -> List[TradeRecord]:
    records: List[TradeRecord] = []
    dropped = 0
    for row in rows:
        record = normalize_row(row)
        if record is None:
            dropped += 1
            continue
        records.append(record)
    LOGGER.debug("Normalized rows: kept=%d dropped=%d", len(records), dropped)
    return records


__all__ = [
    "CONTRACT_MULTIPLIER",
    "RawOptionRow",
    "infer_side",
    "normalize_row",
    "normalize_rows",
    "parse_expiration",
    "parse_number",
    "parse_trade_time",
]
