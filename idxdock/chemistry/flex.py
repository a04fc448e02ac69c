"""idxdock.chemistry.flex

Flexibility descriptors and atom mobility classification.

Two kinds of descriptors are attached to models:

- RigidBodyFlex: ligand / solvent molecules moving as a rigid body, with a
  translation mode and a rotation mode, each FIXED, TETHERED or FREE.
- TorsionFlex: receptors whose polar hydrogens (-OH, -NH3+) rotate about
  their heavy-atom bond.

FlexAtomFactory turns a descriptor into fixed / tethered / free atom lists
and caches each atom's maximum displacement in ``atom.user2``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .atom_types import is_donor_element, is_hydrogen
from ..errors import BadArgument, SetupError

# displacements below this are treated as "does not move"
_FIXED_TOL = 1e-6


class Mode(Enum):
    FIXED = "fixed"
    TETHERED = "tethered"
    FREE = "free"

    @classmethod
    def from_str(cls, s) -> "Mode":
        if isinstance(s, Mode):
            return s
        try:
            return cls(str(s).strip().lower())
        except ValueError:
            raise BadArgument(f"Unknown flexibility mode {s!r}. Use fixed|tethered|free") from None


@dataclass
class RigidBodyFlex:
    trans_mode: Mode = Mode.FREE
    rot_mode: Mode = Mode.FREE
    max_trans: float = 1.0   # Å (tethered translation)
    max_rot: float = 30.0    # degrees (tethered rotation)

    def __post_init__(self) -> None:
        self.trans_mode = Mode.from_str(self.trans_mode)
        self.rot_mode = Mode.from_str(self.rot_mode)
        if self.max_trans < 0.0 or self.max_rot < 0.0:
            raise SetupError("RigidBodyFlex: max_trans and max_rot must be >= 0")

    def is_flexible(self) -> bool:
        return not (self.trans_mode is Mode.FIXED and self.rot_mode is Mode.FIXED)

    def set_modes(self, trans_mode, rot_mode) -> None:
        self.trans_mode = Mode.from_str(trans_mode)
        self.rot_mode = Mode.from_str(rot_mode)


@dataclass(frozen=True)
class Torsion:
    axis_from: int
    axis_to: int
    moving: Tuple[int, ...]


@dataclass
class TorsionFlex:
    torsions: List[Torsion] = field(default_factory=list)

    def is_flexible(self) -> bool:
        return bool(self.torsions)


def find_polar_hydrogen_torsions(model) -> List[Torsion]:
    """-OH and -NH3+ rotors: polar H on a heavy atom with exactly one heavy neighbour."""
    torsions = []
    for atom in model.atoms:
        if not is_donor_element(atom.element):
            continue
        nbrs = model.neighbours(atom.idx)
        hs = tuple(j for j in nbrs if is_hydrogen(model.atoms[j].element))
        heavy = [j for j in nbrs if not is_hydrogen(model.atoms[j].element)]
        if hs and len(heavy) == 1:
            torsions.append(Torsion(heavy[0], atom.idx, hs))
    return torsions


def rigid_body_displacement(
    coords: np.ndarray,
    center: np.ndarray,
    flex: RigidBodyFlex,
) -> Optional[np.ndarray]:
    """Max displacement per atom for a rigid-body descriptor, None if free."""
    if flex.trans_mode is Mode.FREE:
        return None
    r = np.linalg.norm(coords - center, axis=1)
    if flex.rot_mode is Mode.FIXED:
        rot = np.zeros_like(r)
    elif flex.rot_mode is Mode.TETHERED:
        theta = min(math.radians(flex.max_rot), math.pi)
        rot = 2.0 * r * math.sin(0.5 * theta)
    else:
        rot = 2.0 * r
    trans = flex.max_trans if flex.trans_mode is Mode.TETHERED else 0.0
    return rot + trans


def _distance_to_axis(points: np.ndarray, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    u = b - a
    n = np.linalg.norm(u)
    if n < 1e-12:
        raise SetupError("Torsion axis has zero length")
    u = u / n
    v = points - a
    proj = v @ u
    return np.linalg.norm(v - np.outer(proj, u), axis=1)


class FlexAtomFactory:
    """Classify the atoms of a model into fixed / tethered / free lists."""

    def __init__(self, model) -> None:
        self.model = model
        self._fixed: List = []
        self._tethered: List = []
        self._free: List = []
        self._classify()

    def _classify(self) -> None:
        model = self.model
        flex = model.flex
        disp = np.zeros(model.num_atoms, dtype=float)
        free = np.zeros(model.num_atoms, dtype=bool)

        if flex is None:
            pass
        elif isinstance(flex, RigidBodyFlex):
            d = rigid_body_displacement(model.coords, model.centroid(), flex)
            if d is None:
                free[:] = True
            else:
                disp = d
        elif isinstance(flex, TorsionFlex):
            for t in flex.torsions:
                ids = np.asarray(t.moving, dtype=int)
                if ids.size == 0:
                    continue
                if ids.max() >= model.num_atoms or max(t.axis_from, t.axis_to) >= model.num_atoms:
                    raise SetupError(f"Torsion {t} references atoms outside model {model.name!r}")
                r = _distance_to_axis(model.coords[ids], model.coords[t.axis_from], model.coords[t.axis_to])
                disp[ids] = np.maximum(disp[ids], 2.0 * r)
        else:
            raise SetupError(f"Unsupported flexibility descriptor {type(flex).__name__}")

        for atom in model.atoms:
            if free[atom.idx]:
                atom.user2 = 0.0
                self._free.append(atom)
            elif disp[atom.idx] > _FIXED_TOL:
                atom.user2 = float(disp[atom.idx])
                self._tethered.append(atom)
            else:
                atom.user2 = 0.0
                self._fixed.append(atom)

    def fixed_atoms(self) -> List:
        return list(self._fixed)

    def tethered_atoms(self) -> List:
        return list(self._tethered)

    def free_atoms(self) -> List:
        return list(self._free)

    def counts(self) -> Tuple[int, int, int]:
        return len(self._fixed), len(self._tethered), len(self._free)


def mode_pairs() -> Sequence[Tuple[Mode, Mode]]:
    """The 9 (translation, rotation) mode combinations, translation-major."""
    modes = (Mode.FIXED, Mode.TETHERED, Mode.FREE)
    return [(t, r) for t in modes for r in modes]
