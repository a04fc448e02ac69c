import numpy as np
import pytest

from idxdock.errors import BadArgument
from idxdock.scoring.partition import InteractionMap, InteractionPartitioner, partition_distance


def _random_positions(n, seed=1, scale=8.0):
    return np.random.default_rng(seed).random((n, 3)) * scale


def test_intra_map_lists_each_pair_once():
    m = InteractionPartitioner().build_candidate_map(np.arange(5))
    pairs = {(int(a), int(b)) for a in m.anchors for b in m.candidates(a)}
    assert len(pairs) == 10
    assert all(a < b for a, b in pairs)


def test_inter_map_drops_exclusions_and_self():
    p = InteractionPartitioner({0: {4}})
    m = p.build_candidate_map([0, 1], [0, 3, 4])
    assert list(m.candidates(0)) == [3]
    assert list(m.candidates(1)) == [0, 3, 4]


def test_partitioned_lists_are_subsets_of_candidates():
    pos = _random_positions(30)
    p = InteractionPartitioner({i: {i + 1} for i in range(29)})
    cand = p.build_candidate_map(np.arange(30))
    part = InteractionPartitioner.partition(cand, pos, 3.0)
    assert part.is_partitioned
    for a in part.anchors:
        assert set(part.partitioned(a)) <= set(cand.candidates(a))
        for b in part.partitioned(a):
            assert np.linalg.norm(pos[a] - pos[b]) <= 3.0


def test_dropped_pairs_stay_out_of_range_within_the_displacement_bound():
    cutoff, maxdisp = 2.0, 0.75
    pos = _random_positions(40, seed=3)
    cand = InteractionPartitioner().build_candidate_map(np.arange(40))
    part = InteractionPartitioner.partition(cand, pos, partition_distance(cutoff, maxdisp))

    rng = np.random.default_rng(4)
    for _ in range(20):
        v = rng.normal(size=(40, 3))
        v /= np.linalg.norm(v, axis=1)[:, None]
        moved = pos + v * (rng.random((40, 1)) * maxdisp)
        for a in cand.anchors:
            kept = set(part.partitioned(a))
            for b in cand.candidates(a):
                if b not in kept:
                    assert np.linalg.norm(moved[a] - moved[b]) > cutoff


def test_unpartitioned_map_falls_back_to_candidates():
    m = InteractionPartitioner().build_candidate_map([2, 5, 7])
    assert not m.is_partitioned
    assert list(m.partitioned(2)) == list(m.candidates(2))


def test_csr_matches_lists():
    pos = _random_positions(12)
    cand = InteractionPartitioner().build_candidate_map(np.arange(12))
    part = InteractionPartitioner.partition(cand, pos, 4.0)
    start, items = part.csr(partitioned=True)
    for row, a in enumerate(part.anchors):
        assert list(items[start[row]:start[row + 1]]) == list(part.partitioned(a))
    assert start[-1] == part.num_pairs()


def test_merge_and_errors():
    p = InteractionPartitioner()
    merged = InteractionPartitioner.merge(p.build_candidate_map([0, 1]), p.build_candidate_map([0, 1], [5, 6]))
    assert list(merged.candidates(0)) == [1, 5, 6]
    with pytest.raises(BadArgument):
        InteractionPartitioner.merge(p.build_candidate_map([0]), p.build_candidate_map([1]))
    with pytest.raises(BadArgument):
        InteractionPartitioner.partition(merged, np.zeros((7, 3)), -1.0)
    with pytest.raises(BadArgument):
        merged.candidates(42)


def test_partition_distance():
    assert partition_distance(4.0, 1.5) == 7.0


def test_empty_map():
    m = InteractionPartitioner().build_candidate_map(np.zeros(0, dtype=np.int64))
    assert isinstance(m, InteractionMap)
    assert len(m) == 0
    assert m.num_pairs() == 0
