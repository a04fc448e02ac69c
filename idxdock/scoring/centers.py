"""idxdock.scoring.centers

Interaction centres and the flat atom table they index into.

Every indexed scoring term concatenates the atoms of the receptor, the ligand
and each solvent model into one ``AtomTable`` (global atom ids). Interaction
centres reference atoms by global id only; they never own atoms.

A centre has a primary position (a single atom, or a pseudo-atom averaged
over 1-3 atoms) plus an optional auxiliary point used by angular terms
(donor heavy atom, acceptor neighbours). ``members()`` expands both into the
constituent atoms, which is what the enabled-state gating looks at.

``CenterTable`` is the vectorised form handed to the numba kernels:
padded (S, 3) member matrices with -1 for unused slots.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from ..errors import BadArgument

MAX_GROUP = 3


class Role(IntEnum):
    NONE = 0
    DONOR = 1
    ACCEPTOR = 2


@dataclass(frozen=True)
class SingleAtom:
    atom: int

    def members(self) -> Tuple[int, ...]:
        return (self.atom,)


@dataclass(frozen=True)
class PseudoGroup:
    atoms: Tuple[int, ...]

    def __post_init__(self) -> None:
        if not 1 <= len(self.atoms) <= MAX_GROUP:
            raise BadArgument(f"PseudoGroup needs 1-{MAX_GROUP} atoms (got {len(self.atoms)})")

    def members(self) -> Tuple[int, ...]:
        return tuple(self.atoms)


Point = Union[SingleAtom, PseudoGroup]


@dataclass(frozen=True)
class InteractionCenter:
    point: Point
    role: Role = Role.NONE
    aux: Optional[Point] = None

    def members(self) -> Tuple[int, ...]:
        out = list(self.point.members())
        if self.aux is not None:
            out.extend(a for a in self.aux.members() if a not in out)
        return tuple(out)


class AtomTable:
    """Receptor, ligand and solvent atoms under one global index."""

    def __init__(self, models: Sequence) -> None:
        self.models = [m for m in models if m is not None]
        self.offsets = np.zeros(len(self.models) + 1, dtype=np.int64)
        for i, m in enumerate(self.models):
            self.offsets[i + 1] = self.offsets[i] + m.num_atoms
        self.atoms = [a for m in self.models for a in m.atoms]
        self.owner = np.repeat(np.arange(len(self.models), dtype=np.int64),
                               [m.num_atoms for m in self.models]) if self.models else np.zeros(0, dtype=np.int64)

    @property
    def n_atoms(self) -> int:
        return int(self.offsets[-1])

    def slot(self, model) -> int:
        for i, m in enumerate(self.models):
            if m is model:
                return i
        raise BadArgument(f"Model {getattr(model, 'name', model)!r} is not in this atom table")

    def gid(self, model, idx: int) -> int:
        return int(self.offsets[self.slot(model)]) + int(idx)

    def gids(self, model) -> np.ndarray:
        s = self.slot(model)
        return np.arange(self.offsets[s], self.offsets[s + 1], dtype=np.int64)

    def coords(self) -> np.ndarray:
        if not self.models:
            return np.zeros((0, 3), dtype=float)
        return np.concatenate([m.coords for m in self.models], axis=0)

    def enabled(self) -> np.ndarray:
        if not self.models:
            return np.zeros(0, dtype=bool)
        return np.concatenate([m.enabled for m in self.models])

    def excluded(self, gid: int, max_bonds: int = 2) -> List[int]:
        """Global ids of atoms within ``max_bonds`` bonds of atom ``gid``."""
        s = int(self.owner[gid])
        off = int(self.offsets[s])
        return [off + j for j in self.models[s].excluded_atoms(gid - off, max_bonds)]


def _pad(points: Sequence[Optional[Point]]) -> np.ndarray:
    out = np.full((len(points), MAX_GROUP), -1, dtype=np.int64)
    for i, p in enumerate(points):
        if p is None:
            continue
        m = p.members()
        out[i, :len(m)] = m
    return out


class CenterTable:
    """Vectorised interaction centres."""

    def __init__(self, centers: Sequence[InteractionCenter]) -> None:
        self.centers = list(centers)
        self.point = _pad([c.point for c in self.centers])
        self.aux = _pad([c.aux for c in self.centers])
        self.role = np.array([int(c.role) for c in self.centers], dtype=np.int64)
        self.has_aux = self.aux[:, 0] >= 0 if len(self.centers) else np.zeros(0, dtype=bool)

    def __len__(self) -> int:
        return len(self.centers)

    @staticmethod
    def _mean(members: np.ndarray, xyz: np.ndarray) -> np.ndarray:
        if members.shape[0] == 0:
            return np.zeros((0, 3), dtype=float)
        mask = members >= 0
        safe = np.where(mask, members, 0)
        pts = xyz[safe] * mask[:, :, None]
        n = np.maximum(mask.sum(axis=1), 1)
        return pts.sum(axis=1) / n[:, None]

    def positions(self, xyz: np.ndarray) -> np.ndarray:
        return self._mean(self.point, xyz)

    def aux_positions(self, xyz: np.ndarray) -> np.ndarray:
        return self._mean(self.aux, xyz)

    def enabled(self, atom_enabled: np.ndarray) -> np.ndarray:
        """A centre is enabled only if every constituent atom is enabled."""
        if len(self.centers) == 0:
            return np.zeros(0, dtype=np.uint8)
        both = np.concatenate([self.point, self.aux], axis=1)
        mask = both >= 0
        ok = np.where(mask, atom_enabled[np.where(mask, both, 0)], True)
        return np.all(ok, axis=1).astype(np.uint8)

    def members(self, i: int) -> Tuple[int, ...]:
        return self.centers[i].members()
