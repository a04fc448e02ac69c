"""idxdock.scoring.partition

Candidate interaction maps and distance partitioning.

A candidate map lists, for every anchor centre, all topologically eligible
partners (distance independent). Partitioning keeps the partners currently
within a threshold. Use ``partition_distance`` to pick the threshold: a pair
left out can then not come within ``cutoff`` until some centre has moved by
more than ``max_displacement``.

Partitioning is never automatic; owners re-partition when the flexibility
state changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Sequence, Set, Tuple

import numpy as np

from ..errors import BadArgument

_EMPTY = np.zeros(0, dtype=np.int64)


def partition_distance(cutoff: float, max_displacement: float) -> float:
    return float(cutoff) + 2.0 * float(max_displacement)


def _to_csr(lists: Sequence[np.ndarray]) -> Tuple[np.ndarray, np.ndarray]:
    start = np.zeros(len(lists) + 1, dtype=np.int64)
    if lists:
        start[1:] = np.cumsum([len(x) for x in lists])
        items = np.concatenate(lists).astype(np.int64) if start[-1] else _EMPTY.copy()
    else:
        items = _EMPTY.copy()
    return start, items


@dataclass(frozen=True, eq=False)
class InteractionMap:
    anchors: np.ndarray
    candidate_lists: Tuple[np.ndarray, ...]
    partitioned_lists: Optional[Tuple[np.ndarray, ...]] = None
    threshold: float = 0.0
    _rows: Dict[int, int] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._rows.update({int(a): i for i, a in enumerate(self.anchors)})

    @property
    def is_partitioned(self) -> bool:
        return self.partitioned_lists is not None

    def __len__(self) -> int:
        return len(self.anchors)

    def _row(self, anchor: int) -> int:
        try:
            return self._rows[int(anchor)]
        except KeyError:
            raise BadArgument(f"Centre {anchor} is not an anchor of this interaction map") from None

    def candidates(self, anchor: int) -> np.ndarray:
        return self.candidate_lists[self._row(anchor)]

    def partitioned(self, anchor: int) -> np.ndarray:
        """Currently active partners; the candidate list if never partitioned."""
        lists = self.partitioned_lists if self.partitioned_lists is not None else self.candidate_lists
        return lists[self._row(anchor)]

    def num_pairs(self, partitioned: bool = True) -> int:
        lists = self.partitioned_lists if (partitioned and self.partitioned_lists is not None) else self.candidate_lists
        return int(sum(len(x) for x in lists))

    def csr(self, partitioned: bool = True) -> Tuple[np.ndarray, np.ndarray]:
        lists = self.partitioned_lists if (partitioned and self.partitioned_lists is not None) else self.candidate_lists
        return _to_csr(lists)


class InteractionPartitioner:
    """Builds candidate maps (minus exclusions) and partitions them by distance.

    ``exclusions`` maps a centre id to the centre ids it must never be paired
    with (bonded 1-2 / 1-3 neighbours, centres sharing atoms).
    """

    def __init__(self, exclusions: Optional[Mapping[int, Set[int]]] = None) -> None:
        self.exclusions = exclusions or {}

    def _allowed(self, anchor: int, partners: np.ndarray) -> np.ndarray:
        ex = self.exclusions.get(int(anchor))
        if not ex:
            return partners
        keep = np.fromiter((int(p) not in ex for p in partners), dtype=bool, count=len(partners))
        return partners[keep]

    def build_candidate_map(self, anchors, partners=None) -> InteractionMap:
        """Intra map when ``partners`` is None (each unordered pair once), inter map otherwise."""
        anchors = np.asarray(anchors, dtype=np.int64).reshape(-1)
        lists = []
        if partners is None:
            for i, a in enumerate(anchors):
                lists.append(self._allowed(a, anchors[i + 1:]))
        else:
            partners = np.asarray(partners, dtype=np.int64).reshape(-1)
            for a in anchors:
                lists.append(self._allowed(a, partners[partners != a]))
        return InteractionMap(anchors, tuple(lists))

    @staticmethod
    def merge(first: InteractionMap, second: InteractionMap) -> InteractionMap:
        """Concatenate the candidate lists of two maps over the same anchors."""
        if not np.array_equal(first.anchors, second.anchors):
            raise BadArgument("Can only merge interaction maps with identical anchors")
        lists = tuple(np.concatenate([a, b]) for a, b in zip(first.candidate_lists, second.candidate_lists))
        return InteractionMap(first.anchors, lists)

    @staticmethod
    def partition(candidate_map: InteractionMap, positions: np.ndarray, threshold: float) -> InteractionMap:
        """Keep candidates within ``threshold`` of their anchor at the current positions."""
        if threshold < 0.0:
            raise BadArgument(f"Partition threshold must be >= 0 (got {threshold})")
        t2 = float(threshold) ** 2
        lists = []
        for a, cands in zip(candidate_map.anchors, candidate_map.candidate_lists):
            if len(cands) == 0:
                lists.append(cands)
                continue
            d = positions[cands] - positions[a]
            lists.append(cands[np.einsum("ij,ij->i", d, d) <= t2])
        return InteractionMap(candidate_map.anchors, candidate_map.candidate_lists, tuple(lists), float(threshold))
