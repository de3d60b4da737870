from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, List, Literal, TypeVar

from uoa_watch.config.settings import DetectionConfig
from uoa_watch.ingest.records import TradeRecord
from uoa_watch.services.classifier import is_golden, is_large
from uoa_watch.services.clusters import Cluster
from uoa_watch.services.window import ContractGroup
from uoa_watch.storage.state import ClusterSnapshot, PersistedState, TradeNotificationKey

LOGGER = logging.getLogger(__name__)

ClusterReason = Literal["new", "no_new_trades", "below_jump", "premium_jump"]
T = TypeVar("T")


@dataclass(frozen=True)
class ClusterDecision:
    fire: bool
    reason: ClusterReason
    new_fingerprints: frozenset[str] = frozenset()
    premium_jump: float = 0.0


@dataclass
class PolicyStats:
    fired: int = 0
    duplicates: int = 0
    capped: int = 0


@dataclass
class PolicyOutcome:
    large: List[TradeRecord] = field(default_factory=list)
    golden: List[ContractGroup] = field(default_factory=list)
    clusters: List[Cluster] = field(default_factory=list)
    stats: dict[str, PolicyStats] = field(default_factory=dict)


class NotificationPolicy:
    """Decide which signals fire this run and record them in ``state``."""

    def __init__(self, config: DetectionConfig, state: PersistedState) -> None:
        self._config = config
        self._state = state

    @property
    def state(self) -> PersistedState:
        return self._state

    def should_notify_trade(self, trade: TradeRecord) -> bool:
        return not self._state.is_posted(TradeNotificationKey(trade.fingerprint))

    def mark_trade(self, trade: TradeRecord, now: datetime) -> None:
        self._state.mark_posted(TradeNotificationKey(trade.fingerprint), now)

    def should_notify_group(self, group: ContractGroup) -> bool:
        return not self._state.is_posted(group.key)

    def mark_group(self, group: ContractGroup, now: datetime) -> None:
        self._state.mark_posted(group.key, now)
        for fingerprint in group.fingerprints:
            self._state.mark_posted(TradeNotificationKey(fingerprint), now)

    def cluster_decision(self, cluster: Cluster) -> ClusterDecision:
        history = self._state.cluster_history.get(cluster.key)
        if history is None:
            return ClusterDecision(fire=True, reason="new", new_fingerprints=cluster.fingerprints)
        new_fingerprints = cluster.fingerprints - history.fingerprints
        if not new_fingerprints:
            return ClusterDecision(fire=False, reason="no_new_trades")
        jump = cluster.premium_sum - history.premium_sum
        if jump >= self._config.cluster_premium_jump_threshold:
            return ClusterDecision(fire=True, reason="premium_jump", new_fingerprints=new_fingerprints, premium_jump=jump)
        return ClusterDecision(fire=False, reason="below_jump", new_fingerprints=new_fingerprints, premium_jump=jump)

    def mark_cluster(self, cluster: Cluster, now: datetime) -> None:
        self._state.cluster_history[cluster.key] = ClusterSnapshot(
            premium_sum=cluster.premium_sum,
            last_notified_at=now,
            fingerprints=cluster.fingerprints,
        )
        self._state.mark_posted(cluster.key, now)

    def _select(
        self,
        category: str,
        candidates: Iterable[T],
        should_fire: Callable[[T], bool],
        mark: Callable[[T], None],
    ) -> tuple[List[T], PolicyStats]:
        stats = PolicyStats()
        selected: List[T] = []
        for candidate in candidates:
            if not should_fire(candidate):
                stats.duplicates += 1
                continue
            if len(selected) >= self._config.notify_cap_per_category:
                stats.capped += 1
                continue
            mark(candidate)
            selected.append(candidate)
        stats.fired = len(selected)
        if stats.capped:
            LOGGER.info("%s: %d signals deferred by the per-run cap", category, stats.capped)
        return selected, stats

    def select_large(self, trades: Iterable[TradeRecord], now: datetime) -> tuple[List[TradeRecord], PolicyStats]:
        candidates = sorted((t for t in trades if is_large(t, self._config)), key=lambda t: t.premium, reverse=True)
        return self._select("Large", candidates, self.should_notify_trade, lambda t: self.mark_trade(t, now))

    def select_golden(self, groups: Iterable[ContractGroup], now: datetime) -> tuple[List[ContractGroup], PolicyStats]:
        today = self._config.trading_day(now)
        candidates = sorted(
            (g for g in groups if is_golden(g, self._config, today)), key=lambda g: g.premium_sum, reverse=True
        )
        return self._select("Golden", candidates, self.should_notify_group, lambda g: self.mark_group(g, now))

    def select_clusters(self, clusters: Iterable[Cluster], now: datetime) -> tuple[List[Cluster], PolicyStats]:
        def should_fire(cluster: Cluster) -> bool:
            decision = self.cluster_decision(cluster)
            if not decision.fire:
                LOGGER.debug("Cluster %s suppressed (%s, jump=%.0f)", cluster.key, decision.reason, decision.premium_jump)
            return decision.fire

        ordered = sorted(clusters, key=lambda c: c.premium_sum, reverse=True)
        return self._select("Cluster", ordered, should_fire, lambda c: self.mark_cluster(c, now))

    def evaluate(
        self,
        trades: Iterable[TradeRecord],
        groups: Iterable[ContractGroup],
        clusters: Iterable[Cluster],
        now: datetime,
    ) -> PolicyOutcome:
        outcome = PolicyOutcome()
        outcome.large, outcome.stats["Large"] = self.select_large(trades, now)
        outcome.golden, outcome.stats["Golden"] = self.select_golden(groups, now)
        outcome.clusters, outcome.stats["Cluster"] = self.select_clusters(clusters, now)
        return outcome


__all__ = ["ClusterDecision", "NotificationPolicy", "PolicyOutcome", "PolicyStats"]
