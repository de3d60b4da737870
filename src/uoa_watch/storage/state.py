from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, NamedTuple, Union

from pydantic import BaseModel, ConfigDict, Field

from uoa_watch.ingest.records import ContractKey, TradeRecord
from uoa_watch.services.clusters import ClusterKey
from uoa_watch.services.window import WindowEntry

LOGGER = logging.getLogger(__name__)
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
POSTED_RETENTION = timedelta(days=2)
CLUSTER_RETENTION = timedelta(days=7)


class TradeNotificationKey(NamedTuple):
    fingerprint: str


NotificationKey = Union[TradeNotificationKey, ContractKey, ClusterKey]


def to_epoch_ms(value: datetime) -> int:
    return (value - EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(value: int) -> datetime:
    return EPOCH + timedelta(milliseconds=int(value))


def _date_text(value: date | None) -> str | None:
    return value.isoformat() if value else None


def encode_key(key: NotificationKey) -> str:
    """Single canonical spelling of a notification key for storage."""

    if isinstance(key, TradeNotificationKey):
        return f"trade:{key.fingerprint}"
    if isinstance(key, ClusterKey):
        parts = [key.symbol, key.side, float(key.strike_lo), float(key.strike_hi), _date_text(key.exp_lo), _date_text(key.exp_hi)]
        return "cluster:" + json.dumps(parts, separators=(",", ":"))
    if isinstance(key, ContractKey):
        parts = [key.symbol, key.side, float(key.strike), _date_text(key.expiration)]
        return "group:" + json.dumps(parts, separators=(",", ":"))
    raise TypeError(f"unsupported notification key: {key!r}")


def decode_cluster_key(text: str) -> ClusterKey:
    prefix, _, body = text.partition(":")
    if prefix != "cluster":
        raise ValueError(f"not a cluster key: {text}")
    symbol, side, strike_lo, strike_hi, exp_lo, exp_hi = json.loads(body)
    return ClusterKey(
        symbol=symbol,
        side=side,
        strike_lo=float(strike_lo),
        strike_hi=float(strike_hi),
        exp_lo=date.fromisoformat(exp_lo),
        exp_hi=date.fromisoformat(exp_hi),
    )


@dataclass(frozen=True)
class ClusterSnapshot:
    premium_sum: float
    last_notified_at: datetime
    fingerprints: frozenset[str]


class WindowEntryDocument(BaseModel):
    trade: Dict[str, Any]
    observed_at: int = Field(alias="observedAt")

    model_config = ConfigDict(populate_by_name=True)


class ClusterHistoryDocument(BaseModel):
    premium_sum: float = Field(alias="premiumSum")
    last_notified_at: int = Field(alias="lastNotifiedAt")
    fingerprints: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class StateDocument(BaseModel):
    """Serialized form of ``PersistedState``; timestamps are epoch milliseconds."""

    posted: Dict[str, int] = Field(default_factory=dict)
    recent_window: List[WindowEntryDocument] = Field(default_factory=list, alias="recentWindow")
    cluster_history: Dict[str, ClusterHistoryDocument] = Field(default_factory=dict, alias="clusterHistory")

    model_config = ConfigDict(populate_by_name=True)


@dataclass
class PersistedState:
    posted: Dict[str, datetime] = field(default_factory=dict)
    recent_window: List[WindowEntry] = field(default_factory=list)
    cluster_history: Dict[ClusterKey, ClusterSnapshot] = field(default_factory=dict)

    def is_posted(self, key: NotificationKey) -> bool:
        return encode_key(key) in self.posted

    def mark_posted(self, key: NotificationKey, now: datetime) -> None:
        self.posted[encode_key(key)] = now

    def evict(
        self,
        now: datetime,
        *,
        posted_retention: timedelta = POSTED_RETENTION,
        cluster_retention: timedelta = CLUSTER_RETENTION,
    ) -> tuple[int, int]:
        posted_cutoff = now - posted_retention
        stale_posted = [key for key, ts in self.posted.items() if ts < posted_cutoff]
        for key in stale_posted:
            del self.posted[key]

        cluster_cutoff = now - cluster_retention
        stale_clusters = [
            key for key, snapshot in self.cluster_history.items() if snapshot.last_notified_at < cluster_cutoff
        ]
        for key in stale_clusters:
            del self.cluster_history[key]

        if stale_posted or stale_clusters:
            LOGGER.debug("Evicted %d posted keys and %d cluster histories", len(stale_posted), len(stale_clusters))
        return len(stale_posted), len(stale_clusters)

    def to_document(self) -> StateDocument:
        return StateDocument(
            posted={key: to_epoch_ms(ts) for key, ts in self.posted.items()},
            recent_window=[
                WindowEntryDocument(trade=entry.trade.to_dict(), observed_at=to_epoch_ms(entry.observed_at))
                for entry in self.recent_window
            ],
            cluster_history={
                encode_key(key): ClusterHistoryDocument(
                    premium_sum=snapshot.premium_sum,
                    last_notified_at=to_epoch_ms(snapshot.last_notified_at),
                    fingerprints=sorted(snapshot.fingerprints),
                )
                for key, snapshot in self.cluster_history.items()
            },
        )

    def to_json(self) -> str:
        return self.to_document().model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_document(cls, document: StateDocument) -> "PersistedState":
        return cls(
            posted={key: from_epoch_ms(ms) for key, ms in document.posted.items()},
            recent_window=[
                WindowEntry(trade=TradeRecord.from_dict(entry.trade), observed_at=from_epoch_ms(entry.observed_at))
                for entry in document.recent_window
            ],
            cluster_history={
                decode_cluster_key(key): ClusterSnapshot(
                    premium_sum=item.premium_sum,
                    last_notified_at=from_epoch_ms(item.last_notified_at),
                    fingerprints=frozenset(item.fingerprints),
                )
                for key, item in document.cluster_history.items()
            },
        )

    @classmethod
    def from_json(cls, text: str) -> "PersistedState":
        """Parse serialized state; raises ``ValueError`` when the payload is unusable."""

        document = StateDocument.model_validate_json(text)
        try:
            return cls.from_document(document)
        except (KeyError, TypeError, OverflowError) as exc:
            raise ValueError(f"malformed state document: {exc}") from exc


__all__ = [
    "CLUSTER_RETENTION",
    "ClusterSnapshot",
    "NotificationKey",
    "POSTED_RETENTION",
    "PersistedState",
    "StateDocument",
    "TradeNotificationKey",
    "decode_cluster_key",
    "encode_key",
    "from_epoch_ms",
    "to_epoch_ms",
]
