from __future__ import annotations

from datetime import date

from uoa_watch.services.clusters import DisjointSet, detect_clusters, is_adjacent

TODAY = date(2025, 1, 13)
# last 2.0 x 100 x 8000 contracts = 1.6M per leg
BIG = dict(volume=8000, open_interest=1000)


def test_disjoint_set_unions_and_compresses():
    dsu = DisjointSet(5)
    dsu.union(0, 1)
    dsu.union(1, 2)
    dsu.union(3, 4)
    assert dsu.find(2) == dsu.find(0)
    assert dsu.find(3) != dsu.find(0)
    assert sorted(sorted(c) for c in dsu.components()) == [[0, 1, 2], [3, 4]]


def test_adjacency_rules(make_group, config):
    base = make_group(strike=100.0, **BIG)
    assert is_adjacent(base, make_group(strike=105.0, **BIG), config, TODAY)
    assert not is_adjacent(base, make_group(strike=105.5, **BIG), config, TODAY)
    assert not is_adjacent(base, make_group(strike=101.0, side="Put", **BIG), config, TODAY)
    assert not is_adjacent(base, make_group(strike=101.0, symbol="AMD", **BIG), config, TODAY)
    assert is_adjacent(base, make_group(strike=101.0, expiration=date(2025, 1, 24), **BIG), config, TODAY)
    assert not is_adjacent(base, make_group(strike=101.0, expiration=date(2025, 1, 25), **BIG), config, TODAY)
    assert not is_adjacent(base, make_group(strike=101.0, expiration=None, **BIG), config, TODAY)


def test_transitive_adjacency_forms_one_cluster(make_group, config):
    a = make_group(strike=100.0, **BIG)
    b = make_group(strike=104.0, **BIG)
    c = make_group(strike=108.0, **BIG)
    assert not is_adjacent(a, c, config, TODAY)

    (cluster,) = detect_clusters([a, c, b], config, TODAY)
    assert set(cluster.members) == {a.key, b.key, c.key}
    assert cluster.premium_sum == 4_800_000
    assert cluster.key.strike_lo == 100.0
    assert cluster.key.strike_hi == 108.0
    assert cluster.fingerprints == a.fingerprints | b.fingerprints | c.fingerprints


def test_expiration_range_in_key(make_group, config):
    near = make_group(strike=100.0, expiration=date(2025, 1, 17), **BIG)
    far = make_group(strike=102.0, expiration=date(2025, 1, 24), **BIG)
    (cluster,) = detect_clusters([near, far], config, TODAY)
    assert (cluster.key.exp_lo, cluster.key.exp_hi) == (date(2025, 1, 17), date(2025, 1, 24))


def test_single_oversized_group_is_not_a_cluster(make_group, config):
    huge = make_group(strike=100.0, volume=50_000, open_interest=1000)
    lonely = make_group(strike=200.0, **BIG)
    assert detect_clusters([huge, lonely], config, TODAY) == []


def test_cluster_below_premium_floor_is_discarded(make_group, config):
    a = make_group(strike=100.0, volume=3000, open_interest=1000)
    b = make_group(strike=101.0, volume=4000, open_interest=1000)
    assert a.premium_sum + b.premium_sum == 1_400_000
    assert detect_clusters([a, b], config, TODAY) == []


def test_sides_cluster_separately(make_group, config):
    groups = [
        make_group(strike=100.0, **BIG),
        make_group(strike=101.0, **BIG),
        make_group(strike=100.0, side="Put", **BIG),
        make_group(strike=101.0, side="Put", **BIG),
    ]
    clusters = detect_clusters(groups, config, TODAY)
    assert sorted(c.side for c in clusters) == ["Call", "Put"]
    assert all(len(c.members) == 2 for c in clusters)
