from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, NamedTuple, Sequence

from uoa_watch.config.settings import DetectionConfig
from uoa_watch.ingest.records import ContractKey
from uoa_watch.services.classifier import days_to_expiry
from uoa_watch.services.window import ContractGroup

LOGGER = logging.getLogger(__name__)


class ClusterKey(NamedTuple):
    symbol: str
    side: str
    strike_lo: float
    strike_hi: float
    exp_lo: date
    exp_hi: date


@dataclass(frozen=True)
class Cluster:
    key: ClusterKey
    premium_sum: float
    volume_sum: int
    open_interest_sum: int
    members: tuple[ContractKey, ...]
    fingerprints: frozenset[str]
    latest_trade_time: datetime | None

    @property
    def symbol(self) -> str:
        return self.key.symbol

    @property
    def side(self) -> str:
        return self.key.side

    @property
    def volume_open_interest_ratio(self) -> float:
        return self.volume_sum / self.open_interest_sum


class DisjointSet:
    """Union-find over dense indices ``0..size-1``."""

    def __init__(self, size: int) -> None:
        self._parent = list(range(size))

    def find(self, index: int) -> int:
        root = index
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[index] != root:
            self._parent[index], index = root, self._parent[index]
        return root

    def union(self, a: int, b: int) -> None:
        root_a = self.find(a)
        root_b = self.find(b)
        if root_a != root_b:
            self._parent[root_b] = root_a

    def components(self) -> List[List[int]]:
        grouped: Dict[int, List[int]] = {}
        for index in range(len(self._parent)):
            grouped.setdefault(self.find(index), []).append(index)
        return list(grouped.values())


def is_adjacent(a: ContractGroup, b: ContractGroup, config: DetectionConfig, today: date) -> bool:
    if a.symbol != b.symbol or a.side != b.side:
        return False
    if a.expiration is None or b.expiration is None:
        return False
    low = min(a.strike, b.strike)
    if low <= 0:
        return False
    if abs(a.strike - b.strike) / low > config.strike_band_pct / 100:
        return False
    dte_gap = abs(days_to_expiry(a.expiration, today) - days_to_expiry(b.expiration, today))
    return dte_gap <= config.date_band_days


def _materialize(members: Sequence[ContractGroup]) -> Cluster:
    first = members[0]
    strikes = [m.strike for m in members]
    expirations = [m.expiration for m in members if m.expiration is not None]
    trade_times = [m.latest_trade_time for m in members if m.latest_trade_time is not None]
    fingerprints: set[str] = set()
    for member in members:
        fingerprints.update(member.fingerprints)
    return Cluster(
        key=ClusterKey(
            symbol=first.symbol,
            side=first.side,
            strike_lo=min(strikes),
            strike_hi=max(strikes),
            exp_lo=min(expirations),
            exp_hi=max(expirations),
        ),
        premium_sum=sum(m.premium_sum for m in members),
        volume_sum=sum(m.volume_sum for m in members),
        open_interest_sum=sum(m.open_interest_sum for m in members),
        members=tuple(sorted((m.key for m in members), key=lambda k: (k.strike, k.expiration))),
        fingerprints=frozenset(fingerprints),
        latest_trade_time=max(trade_times) if trade_times else None,
    )


def detect_clusters(groups: Sequence[ContractGroup], config: DetectionConfig, today: date) -> List[Cluster]:
    """Link adjacent contract groups and keep multi-leg components above the premium floor."""

    arena = list(groups)
    dsu = DisjointSet(len(arena))
    buckets: Dict[tuple[str, str], List[int]] = {}
    for index, group in enumerate(arena):
        if group.expiration is None:
            continue
        buckets.setdefault((group.symbol, group.side), []).append(index)

    for indices in buckets.values():
        for pos, i in enumerate(indices):
            for j in indices[pos + 1 :]:
                if is_adjacent(arena[i], arena[j], config, today):
                    dsu.union(i, j)

    clusters: List[Cluster] = []
    for component in dsu.components():
        if len(component) < 2:
            continue
        cluster = _materialize([arena[i] for i in component])
        if cluster.premium_sum < config.cluster_min_premium:
            LOGGER.debug("Cluster %s below premium floor (%.0f)", cluster.key, cluster.premium_sum)
            continue
        clusters.append(cluster)

    clusters.sort(key=lambda c: c.premium_sum, reverse=True)
    return clusters


__all__ = ["Cluster", "ClusterKey", "DisjointSet", "detect_clusters", "is_adjacent"]
