from __future__ import annotations

from datetime import date, timedelta

from uoa_watch.ingest.records import ContractKey
from uoa_watch.services.clusters import ClusterKey
from uoa_watch.services.window import WindowEntry
from uoa_watch.storage.state import (
    ClusterSnapshot,
    PersistedState,
    TradeNotificationKey,
    decode_cluster_key,
    encode_key,
    from_epoch_ms,
    to_epoch_ms,
)

MS = timedelta(milliseconds=1)
CLUSTER = ClusterKey("SPY", "Put", 480.0, 500.0, date(2025, 1, 17), date(2025, 1, 24))


def test_posted_eviction_boundary(now):
    state = PersistedState(posted={"old": now - timedelta(days=2) - MS, "young": now - timedelta(days=2) + MS})
    assert state.evict(now) == (1, 0)
    assert set(state.posted) == {"young"}


def test_cluster_history_eviction_boundary(now):
    old_key = CLUSTER._replace(strike_hi=501.0)
    state = PersistedState(
        cluster_history={
            old_key: ClusterSnapshot(3_000_000, now - timedelta(days=7) - MS, frozenset()),
            CLUSTER: ClusterSnapshot(3_000_000, now - timedelta(days=7) + MS, frozenset()),
        }
    )
    assert state.evict(now) == (0, 1)
    assert set(state.cluster_history) == {CLUSTER}


def test_entry_at_exact_horizon_is_retained(now):
    state = PersistedState(posted={"edge": now - timedelta(days=2)})
    state.evict(now)
    assert "edge" in state.posted


def test_encode_key_is_canonical():
    assert encode_key(ContractKey("SPY", "Call", 500, date(2025, 1, 17))) == encode_key(
        ContractKey("SPY", "Call", 500.0, date(2025, 1, 17))
    )
    assert encode_key(TradeNotificationKey("abc")) == "trade:abc"
    assert encode_key(ContractKey("SPY", "Call", 500.0, None)).startswith("group:")
    assert decode_cluster_key(encode_key(CLUSTER)) == CLUSTER


def test_posted_lookup_by_value_key(now):
    state = PersistedState()
    state.mark_posted(ContractKey("SPY", "Call", 500, date(2025, 1, 17)), now)
    assert state.is_posted(ContractKey("SPY", "Call", 500.0, date(2025, 1, 17)))
    assert not state.is_posted(ContractKey("SPY", "Put", 500.0, date(2025, 1, 17)))


def test_epoch_millis_round_trip(now):
    assert from_epoch_ms(to_epoch_ms(now + 7 * MS)) == now + 7 * MS


def test_json_round_trip_is_lossless(make_trade, now):
    trade = make_trade(bid=None, expiration=None, trade_time=None, moneyness="N/A")
    other = make_trade(strike=152.5)
    state = PersistedState(
        posted={encode_key(TradeNotificationKey(trade.fingerprint)): now},
        recent_window=[
            WindowEntry(trade=trade, observed_at=now - timedelta(minutes=3)),
            WindowEntry(trade=other, observed_at=now),
        ],
        cluster_history={CLUSTER: ClusterSnapshot(3_250_000.5, now, frozenset({"f1", "f2"}))},
    )
    restored = PersistedState.from_json(state.to_json())
    assert restored == state
    assert restored.recent_window[0].trade.fingerprint == trade.fingerprint


def test_serialized_sections_use_wire_names(now):
    text = PersistedState(posted={"k": now}).to_json()
    assert '"recentWindow"' in text
    assert '"clusterHistory"' in text
    assert f'"k": {to_epoch_ms(now)}' in text
