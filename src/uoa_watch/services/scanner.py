from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Sequence

from uoa_watch.config.settings import DetectionConfig
from uoa_watch.ingest.normalizer import normalize_rows
from uoa_watch.ingest.records import TradeRecord
from uoa_watch.notify.payloads import SignalPayload, cluster_payload, group_payload, trade_payload
from uoa_watch.notify.webhook import Notifier, dispatch
from uoa_watch.services.clusters import Cluster, detect_clusters
from uoa_watch.services.policy import NotificationPolicy, PolicyStats
from uoa_watch.services.window import ContractGroup, RollingWindow
from uoa_watch.storage.backends import StateStore
from uoa_watch.storage.state import PersistedState

LOGGER = logging.getLogger(__name__)


@dataclass
class ScanResult:
    notifications: List[SignalPayload] = field(default_factory=list)
    trades: List[TradeRecord] = field(default_factory=list)
    groups: List[ContractGroup] = field(default_factory=list)
    clusters: List[Cluster] = field(default_factory=list)
    stats: dict[str, PolicyStats] = field(default_factory=dict)
    sent: int = 0


def run_scan(
    raw_records: Sequence[Any] | None,
    state: PersistedState,
    config: DetectionConfig,
    now: datetime,
) -> ScanResult:
    """Run one detection pass over ``raw_records``, mutating ``state`` in place."""

    trades = normalize_rows(raw_records or [])
    window = RollingWindow(state.recent_window, window=config.window)
    window.evict(now)

    if not trades:
        state.recent_window = window.entries
        state.evict(now, posted_retention=config.posted_retention, cluster_retention=config.cluster_retention)
        LOGGER.info("Empty batch; nothing to evaluate")
        return ScanResult()

    window.extend(trades, now)
    state.recent_window = window.entries
    groups = window.groups()
    clusters = detect_clusters(groups, config, config.trading_day(now))

    policy = NotificationPolicy(config, state)
    outcome = policy.evaluate(trades, groups, clusters, now)
    state.evict(now, posted_retention=config.posted_retention, cluster_retention=config.cluster_retention)

    notifications = (
        [trade_payload(t) for t in outcome.large]
        + [group_payload(g) for g in outcome.golden]
        + [cluster_payload(c) for c in outcome.clusters]
    )
    LOGGER.info(
        "Scan: trades=%d window=%d groups=%d clusters=%d large=%d golden=%d cluster=%d",
        len(trades),
        len(state.recent_window),
        len(groups),
        len(clusters),
        len(outcome.large),
        len(outcome.golden),
        len(outcome.clusters),
    )
    return ScanResult(
        notifications=notifications,
        trades=trades,
        groups=groups,
        clusters=clusters,
        stats=outcome.stats,
    )


async def execute_run(
    raw_records: Sequence[Any] | None,
    store: StateStore,
    notifier: Notifier,
    config: DetectionConfig,
    now: datetime,
    **dispatch_kwargs: Any,
) -> ScanResult:
    """Load state once, scan, send sequentially, then save state once."""

    state = store.load()
    result = run_scan(raw_records, state, config, now)
    dispatch_kwargs.setdefault("delay_seconds", config.notify_delay_seconds)
    try:
        result.sent = await dispatch(result.notifications, notifier, **dispatch_kwargs)
    finally:
        store.save(state)
    LOGGER.info("DONE. Parsed:%d Posted:%d", len(result.trades), result.sent)
    return result


__all__ = ["ScanResult", "execute_run", "run_scan"]
