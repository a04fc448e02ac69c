"""idxdock.scoring.base

Scoring-function nodes.

A node is either a leaf term or an aggregate (see ``aggregate.py``). Every
node has:

- a short name and a parent (full name = dotted path from the root)
- a ``WEIGHT`` parameter, applied by the parent when summing
- the capability set: setup_receptor / setup_ligand / setup_solvent /
  setup_score, raw_score, handle_request, parameter_updated

Leaves get the workspace when the tree is registered on it and must rebuild
their cached state in every ``setup_*`` call.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional

from ..errors import InvalidRequest
from ..params import ParamHandler
from .requests import EnableRequest, PartitionRequest, Request, SetParamRequest

WEIGHT = "WEIGHT"
SYSTEM = "system"


class Change(Enum):
    RECEPTOR = "receptor"
    LIGAND = "ligand"
    SOLVENT = "solvent"


class ScoringTerm(ParamHandler):
    """Base for every scoring-function node."""

    def __init__(self, name: str, weight: float = 1.0) -> None:
        super().__init__()
        self.name = name
        self.parent = None
        self.workspace = None
        self.enabled = True
        self.add_parameter(WEIGHT, float(weight))

    # ------------------------------------------------------------------
    # tree

    @property
    def weight(self) -> float:
        return self.get_parameter(WEIGHT)

    @weight.setter
    def weight(self, value: float) -> None:
        self.set_parameter(WEIGHT, value)

    @property
    def full_name(self) -> str:
        if self.parent is None:
            return self.name
        return f"{self.parent.full_name}.{self.name}"

    def root(self) -> "ScoringTerm":
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def effective_weight(self) -> float:
        """Product of the weights from this node up to (not including) the root."""
        w = 1.0
        node = self
        while node.parent is not None:
            w *= node.weight
            node = node.parent
        return w

    def matches(self, target: Optional[str]) -> bool:
        return target is None or target == self.name or target == self.full_name

    # ------------------------------------------------------------------
    # lifecycle

    def register(self, workspace) -> None:
        self.workspace = workspace
        self.setup_receptor()
        self.setup_ligand()
        self.setup_solvent()
        self.setup_score()

    def unregister(self) -> None:
        self.workspace = None
        self.setup_receptor()
        self.setup_ligand()
        self.setup_solvent()

    def setup(self, change: Change) -> None:
        if change is Change.RECEPTOR:
            self.setup_receptor()
        elif change is Change.LIGAND:
            self.setup_ligand()
        else:
            self.setup_solvent()
        self.setup_score()

    def setup_receptor(self) -> None:
        pass

    def setup_ligand(self) -> None:
        pass

    def setup_solvent(self) -> None:
        pass

    def setup_score(self) -> None:
        pass

    # ------------------------------------------------------------------
    # scoring

    def raw_score(self) -> float:
        raise NotImplementedError

    def score(self) -> float:
        return self.raw_score() if self.enabled else 0.0

    def system_score(self) -> float:
        """Part of the raw score that belongs to the system (receptor / solvent) bucket."""
        return 0.0

    def score_map(self, scores: Optional[Dict[str, float]] = None) -> Dict[str, float]:
        if scores is None:
            scores = {}
        if not self.enabled:
            return scores
        sys_part = self.system_score()
        inter = self.raw_score() - sys_part
        scores[self.full_name] = inter
        self._add_to_parent_entry(scores, inter)
        self._add_to_system(scores, sys_part)
        return scores

    def _add_to_parent_entry(self, scores: Dict[str, float], value: float) -> None:
        if self.parent is not None:
            key = self.parent.full_name
            scores[key] = scores.get(key, 0.0) + self.weight * value

    def _add_to_system(self, scores: Dict[str, float], value: float) -> None:
        if value == 0.0:
            return
        root = self.root().name
        # path below the root keeps same-named leaves apart
        path = self.full_name[len(root) + 1:] or self.name
        scores[f"{root}.{SYSTEM}.{path}"] = value
        key = f"{root}.{SYSTEM}"
        scores[key] = scores.get(key, 0.0) + self.effective_weight() * value

    # ------------------------------------------------------------------
    # requests

    def handle_request(self, request: Request) -> None:
        if isinstance(request, PartitionRequest):
            if request.distance < 0.0:
                raise InvalidRequest(f"Partition distance must be >= 0 (got {request.distance})")
        elif isinstance(request, SetParamRequest):
            if self.matches(request.target) and self.has_parameter(request.name):
                self.set_parameter(request.name, request.value)
        elif isinstance(request, EnableRequest):
            if self.matches(request.target):
                self.enabled = bool(request.enabled)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.full_name!r}, weight={self.weight})"


class ConstantTerm(ScoringTerm):
    """Leaf with a fixed raw score (tests, score offsets)."""

    def __init__(self, name: str, value: float = 0.0, weight: float = 1.0, system: float = 0.0) -> None:
        super().__init__(name, weight)
        self.value = float(value)
        self.system = float(system)

    def raw_score(self) -> float:
        return self.value + self.system

    def system_score(self) -> float:
        return self.system
