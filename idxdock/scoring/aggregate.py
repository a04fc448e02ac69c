"""idxdock.scoring.aggregate

Weighted-sum tree of scoring terms.

    root = ScoringAggregate("score")
    inter = ScoringAggregate("inter")
    root.add(inter)
    inter.add(VdwTerm("vdw"), weight=1.5)

``score()`` is the weighted sum of the children's scores. ``score_map()``
returns the flat reporting map: one entry per node (its inter total), plus
``<root>.system`` and ``<root>.system.<path below root>`` for the receptor / solvent
parts. The root folds the system bucket into its own entry, so
``score_map()[root.name] == root.score()``.

Structural changes are pushed eagerly: adding a child to a registered tree
sets it up at once, and the workspace calls ``cascade_structural_change`` on
every receptor / ligand / solvent assignment.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from loguru import logger

from ..errors import BadArgument
from .base import SYSTEM, Change, ScoringTerm
from .requests import Request


class ScoringAggregate(ScoringTerm):
    def __init__(self, name: str, weight: float = 1.0) -> None:
        super().__init__(name, weight)
        self._children: List[ScoringTerm] = []

    # ------------------------------------------------------------------
    # composition

    @property
    def children(self) -> List[ScoringTerm]:
        return list(self._children)

    @property
    def num_children(self) -> int:
        return len(self._children)

    def child(self, i: int) -> ScoringTerm:
        if not 0 <= i < len(self._children):
            raise BadArgument(f"{self.full_name}: child index {i} out of range (0..{len(self._children) - 1})")
        return self._children[i]

    def add(self, child: ScoringTerm, weight: Optional[float] = None) -> ScoringTerm:
        if child is self:
            raise BadArgument(f"{self.full_name}: can not add an aggregate to itself")
        if child.name == SYSTEM:
            raise BadArgument(f"{self.full_name}: {SYSTEM!r} is reserved for the system score bucket")
        if child.parent is not None:
            child.parent.remove(child)
        if weight is not None:
            child.weight = weight
        child.parent = self
        self._children.append(child)
        if self.workspace is not None:
            child.register(self.workspace)
        logger.debug(f"{self.full_name}: added {child.full_name} (weight={child.weight})")
        return child

    def remove(self, child: ScoringTerm) -> None:
        if child not in self._children:
            raise BadArgument(f"{self.full_name}: {child.name!r} is not a child of this aggregate")
        self._children.remove(child)
        child.parent = None
        if child.workspace is not None:
            child.unregister()

    def find(self, full_name: str) -> Optional[ScoringTerm]:
        if self.full_name == full_name:
            return self
        for c in self._children:
            if c.full_name == full_name:
                return c
            if isinstance(c, ScoringAggregate):
                hit = c.find(full_name)
                if hit is not None:
                    return hit
        return None

    def leaves(self) -> List[ScoringTerm]:
        out = []
        for c in self._children:
            if isinstance(c, ScoringAggregate):
                out.extend(c.leaves())
            else:
                out.append(c)
        return out

    # ------------------------------------------------------------------
    # lifecycle

    def register(self, workspace) -> None:
        self.workspace = workspace
        for c in self._children:
            c.register(workspace)

    def unregister(self) -> None:
        self.workspace = None
        for c in self._children:
            c.unregister()

    def setup(self, change: Change) -> None:
        for c in self._children:
            c.setup(change)

    def setup_receptor(self) -> None:
        for c in self._children:
            c.setup_receptor()

    def setup_ligand(self) -> None:
        for c in self._children:
            c.setup_ligand()

    def setup_solvent(self) -> None:
        for c in self._children:
            c.setup_solvent()

    def setup_score(self) -> None:
        for c in self._children:
            c.setup_score()

    # ------------------------------------------------------------------
    # scoring

    def raw_score(self) -> float:
        return float(sum(c.weight * c.score() for c in self._children))

    def system_score(self) -> float:
        return float(sum(c.weight * c.system_score() for c in self._children if c.enabled))

    def score_map(self, scores: Optional[Dict[str, float]] = None) -> Dict[str, float]:
        if scores is None:
            scores = {}
        if not self.enabled:
            return scores
        name = self.full_name
        scores.setdefault(name, 0.0)
        for c in self._children:
            c.score_map(scores)
        if self.parent is None:
            scores[name] += scores.get(f"{name}.{SYSTEM}", 0.0)
        else:
            self._add_to_parent_entry(scores, scores[name])
        return scores

    # ------------------------------------------------------------------
    # requests

    def handle_request(self, request: Request) -> None:
        super().handle_request(request)
        for c in self._children:
            c.handle_request(request)


def cascade_structural_change(node: ScoringTerm, change: Change) -> None:
    """Depth-first: every leaf re-runs the matching setup_* and then setup_score."""
    if isinstance(node, ScoringAggregate):
        for c in node.children:
            cascade_structural_change(c, change)
    else:
        node.setup(change)
