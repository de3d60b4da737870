from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Sequence

from uoa_watch.ingest.records import ContractKey, TradeRecord

LOGGER = logging.getLogger(__name__)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class WindowEntry:
    trade: TradeRecord
    observed_at: datetime


@dataclass(frozen=True)
class ContractGroup:
    """Aggregate of every windowed trade on one contract."""

    key: ContractKey
    volume_sum: int
    open_interest_sum: int
    premium_sum: float
    earliest_trade_time: datetime | None
    latest_trade_time: datetime | None
    fingerprints: frozenset[str]
    reference: TradeRecord

    @property
    def symbol(self) -> str:
        return self.key.symbol

    @property
    def side(self) -> str:
        return self.key.side

    @property
    def strike(self) -> float:
        return self.key.strike

    @property
    def expiration(self) -> date | None:
        return self.key.expiration

    @property
    def premium(self) -> float:
        return self.premium_sum

    @property
    def volume_open_interest_ratio(self) -> float:
        return self.volume_sum / self.open_interest_sum

    @property
    def bid(self) -> float | None:
        return self.reference.bid

    @property
    def ask(self) -> float | None:
        return self.reference.ask

    @property
    def last(self) -> float | None:
        return self.reference.last

    @property
    def moneyness(self) -> str:
        return self.reference.moneyness

    @property
    def trade_time(self) -> datetime | None:
        return self.reference.trade_time


def _reference_rank(entry: WindowEntry) -> tuple[datetime, datetime]:
    return entry.observed_at, entry.trade.trade_time or _EPOCH


def latest_observations(entries: Iterable[WindowEntry]) -> List[WindowEntry]:
    """Collapse repeated observations of a fingerprint to its most recent one."""

    latest: Dict[str, WindowEntry] = {}
    for entry in entries:
        fingerprint = entry.trade.fingerprint
        current = latest.get(fingerprint)
        if current is None or entry.observed_at >= current.observed_at:
            latest[fingerprint] = entry
    return list(latest.values())


def build_groups(entries: Iterable[WindowEntry]) -> List[ContractGroup]:
    buckets: Dict[ContractKey, List[WindowEntry]] = {}
    for entry in latest_observations(entries):
        buckets.setdefault(entry.trade.contract_key, []).append(entry)

    groups: List[ContractGroup] = []
    for key, members in buckets.items():
        trade_times = [m.trade.trade_time for m in members if m.trade.trade_time is not None]
        reference = max(members, key=_reference_rank).trade
        groups.append(
            ContractGroup(
                key=key,
                volume_sum=sum(m.trade.volume for m in members),
                open_interest_sum=sum(max(1, m.trade.open_interest) for m in members),
                premium_sum=sum(max(0.0, m.trade.premium) for m in members),
                earliest_trade_time=min(trade_times) if trade_times else None,
                latest_trade_time=max(trade_times) if trade_times else None,
                fingerprints=frozenset(m.trade.fingerprint for m in members),
                reference=reference,
            )
        )
    return groups


class RollingWindow:
    """Recently observed trades, evicted by observation time."""

    def __init__(self, entries: Iterable[WindowEntry] = (), *, window: timedelta = timedelta(minutes=10)) -> None:
        self._window = window
        self._entries: List[WindowEntry] = list(entries)

    @property
    def entries(self) -> List[WindowEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def evict(self, now: datetime) -> int:
        cutoff = now - self._window
        kept = [entry for entry in self._entries if entry.observed_at >= cutoff]
        evicted = len(self._entries) - len(kept)
        self._entries = kept
        if evicted:
            LOGGER.debug("Evicted %d window entries older than %s", evicted, cutoff.isoformat())
        return evicted

    def extend(self, trades: Sequence[TradeRecord], now: datetime) -> int:
        seen: set[str] = set()
        added = 0
        for trade in trades:
            if trade.fingerprint in seen:
                continue
            seen.add(trade.fingerprint)
            self._entries.append(WindowEntry(trade=trade, observed_at=now))
            added += 1
        return added

    def groups(self) -> List[ContractGroup]:
        return build_groups(self._entries)


__all__ = ["ContractGroup", "RollingWindow", "WindowEntry", "build_groups", "latest_observations"]
