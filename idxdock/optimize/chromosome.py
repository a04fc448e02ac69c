"""idxdock.optimize.chromosome

Chromosome = ordered list of elements, each owning a slice of the gene
vector and knowing how to write it into a Model.

- RigidBodyElement: ligand / solvent position + orientation. FIXED parts
  carry no genes, TETHERED parts are clamped to max_trans / max_rot around
  the starting pose, FREE translations are sampled inside the docking site.
- TorsionElement: rotation of the moving atoms of a receptor rotor (-OH,
  -NH3+) about its bond.

``compare`` is the largest gene difference in units of each gene's step
size; the population uses it to detect duplicates.
"""

from __future__ import annotations

import copy
import math
from typing import List, Optional, Tuple

import numpy as np

from ..chemistry.flex import Mode, RigidBodyFlex, Torsion, TorsionFlex
from ..errors import BadArgument, SetupError
from .pose import (
    Pose,
    random_rotvec,
    random_unit_vector,
    rotation_matrix,
    rotvec_from_matrix,
    wrap_rotvec,
)


def _step_length(rng: np.random.Generator, scale: float, cauchy: bool) -> float:
    if cauchy:
        return scale * abs(float(rng.standard_cauchy()))
    return scale * float(rng.random())


def _wrap_angle(a: float) -> float:
    return (a + math.pi) % (2.0 * math.pi) - math.pi


class ChromElement:
    model = None

    @property
    def length(self) -> int:
        raise NotImplementedError

    def step_sizes(self) -> np.ndarray:
        raise NotImplementedError

    def get_vector(self) -> np.ndarray:
        raise NotImplementedError

    def set_vector(self, v) -> None:
        raise NotImplementedError

    def randomise(self, rng: np.random.Generator) -> None:
        raise NotImplementedError

    def mutate(self, rng: np.random.Generator, rel_step: float, cauchy: bool = False) -> None:
        raise NotImplementedError

    def sync_to_model(self) -> None:
        raise NotImplementedError

    def sync_from_model(self) -> None:
        raise NotImplementedError

    def compare(self, other: "ChromElement") -> float:
        if self.length == 0:
            return 0.0
        d = np.abs(self.get_vector() - other.get_vector()) / self.step_sizes()
        return float(d.max())

    def clone(self) -> "ChromElement":
        # shallow copy shares the model; gene arrays are copied
        c = copy.copy(self)
        c.__dict__.update({k: v.copy() for k, v in self.__dict__.items() if isinstance(v, np.ndarray)})
        return c


class RigidBodyElement(ChromElement):
    def __init__(self, model, flex: RigidBodyFlex, site=None,
                 trans_step: float = 2.0, rot_step: float = 30.0) -> None:
        self.model = model
        self.flex = flex
        self.site = site
        self.trans_step = float(trans_step)
        self.rot_step = math.radians(float(rot_step))
        self.pose = Pose(model.coords)
        self.ref_t = self.pose.t.copy()
        self.max_trans = float(flex.max_trans)
        self.max_rot = math.radians(float(flex.max_rot))

    def clone(self) -> "RigidBodyElement":
        c = copy.copy(self)
        c.pose = copy.copy(self.pose)
        c.pose.t = self.pose.t.copy()
        c.pose.rot = self.pose.rot.copy()
        return c

    @property
    def _has_trans(self) -> bool:
        return self.flex.trans_mode is not Mode.FIXED

    @property
    def _has_rot(self) -> bool:
        return self.flex.rot_mode is not Mode.FIXED

    @property
    def length(self) -> int:
        return 3 * int(self._has_trans) + 3 * int(self._has_rot)

    def step_sizes(self) -> np.ndarray:
        parts = []
        if self._has_trans:
            parts.append(np.full(3, self.trans_step))
        if self._has_rot:
            parts.append(np.full(3, self.rot_step))
        return np.concatenate(parts) if parts else np.zeros(0)

    def get_vector(self) -> np.ndarray:
        parts = []
        if self._has_trans:
            parts.append(self.pose.t)
        if self._has_rot:
            parts.append(self.pose.rot)
        return np.concatenate(parts) if parts else np.zeros(0)

    def set_vector(self, v) -> None:
        v = np.asarray(v, dtype=float).reshape(-1)
        if v.shape[0] != self.length:
            raise BadArgument(f"RigidBodyElement({self.model.name}): expected {self.length} genes, got {v.shape[0]}")
        k = 0
        if self._has_trans:
            self.pose.t = v[k:k + 3].copy()
            k += 3
        if self._has_rot:
            self.pose.rot = v[k:k + 3].copy()
        self._clamp()

    def _clamp(self) -> None:
        if self.flex.trans_mode is Mode.TETHERED:
            d = self.pose.t - self.ref_t
            n = float(np.linalg.norm(d))
            if n > self.max_trans:
                self.pose.t = self.ref_t + d * (self.max_trans / n)
        if self.flex.rot_mode is Mode.TETHERED:
            n = float(np.linalg.norm(self.pose.rot))
            if n > self.max_rot:
                self.pose.rot = self.pose.rot * (self.max_rot / n)
        elif self.flex.rot_mode is Mode.FREE:
            self.pose.rot = wrap_rotvec(self.pose.rot)

    def randomise(self, rng: np.random.Generator) -> None:
        if self.flex.trans_mode is Mode.FREE:
            if self.site is not None:
                self.pose.t = self.site.random_point(rng)
        elif self.flex.trans_mode is Mode.TETHERED:
            r = self.max_trans * float(rng.random()) ** (1.0 / 3.0)
            self.pose.t = self.ref_t + r * random_unit_vector(rng)
        if self.flex.rot_mode is Mode.FREE:
            self.pose.rot = random_rotvec(rng)
        elif self.flex.rot_mode is Mode.TETHERED:
            self.pose.rot = random_unit_vector(rng) * (self.max_rot * float(rng.random()))
        self._clamp()

    def mutate(self, rng: np.random.Generator, rel_step: float, cauchy: bool = False) -> None:
        if self._has_trans:
            step = _step_length(rng, rel_step * self.trans_step, cauchy)
            self.pose.t = self.pose.t + step * random_unit_vector(rng)
        if self._has_rot:
            angle = _step_length(rng, rel_step * self.rot_step, cauchy)
            delta = rotation_matrix(random_unit_vector(rng) * angle)
            self.pose.rot = rotvec_from_matrix(delta @ rotation_matrix(self.pose.rot))
        self._clamp()

    def sync_to_model(self) -> None:
        self.model.set_coords(self.pose.transformed_xyz())

    def sync_from_model(self) -> None:
        self.pose.fit(self.model.coords)
        self._clamp()


class TorsionElement(ChromElement):
    def __init__(self, model, torsion: Torsion, step: float = 30.0) -> None:
        if not torsion.moving:
            raise SetupError(f"Torsion {torsion} of {model.name!r} moves no atoms")
        self.model = model
        self.torsion = torsion
        self.step = math.radians(float(step))
        self.moving = np.asarray(torsion.moving, dtype=int)
        self.ref_moving = model.coords[self.moving].copy()
        self.angle = np.zeros(1, dtype=float)

    @property
    def length(self) -> int:
        return 1

    def step_sizes(self) -> np.ndarray:
        return np.array([self.step])

    def get_vector(self) -> np.ndarray:
        return self.angle.copy()

    def set_vector(self, v) -> None:
        v = np.asarray(v, dtype=float).reshape(-1)
        if v.shape[0] != 1:
            raise BadArgument(f"TorsionElement: expected 1 gene, got {v.shape[0]}")
        self.angle = np.array([_wrap_angle(float(v[0]))])

    def compare(self, other: "ChromElement") -> float:
        d = abs(_wrap_angle(float(self.angle[0] - other.get_vector()[0])))
        return d / self.step

    def randomise(self, rng: np.random.Generator) -> None:
        self.angle = np.array([float(rng.uniform(-math.pi, math.pi))])

    def mutate(self, rng: np.random.Generator, rel_step: float, cauchy: bool = False) -> None:
        step = _step_length(rng, rel_step * self.step, cauchy)
        sign = 1.0 if rng.random() < 0.5 else -1.0
        self.angle = np.array([_wrap_angle(float(self.angle[0]) + sign * step)])

    def _axis(self) -> Tuple[np.ndarray, np.ndarray]:
        a = self.model.coords[self.torsion.axis_from]
        b = self.model.coords[self.torsion.axis_to]
        u = b - a
        return b.copy(), u / np.linalg.norm(u)

    def sync_to_model(self) -> None:
        origin, u = self._axis()
        R = rotation_matrix(u * float(self.angle[0]))
        self.model.coords[self.moving] = (self.ref_moving - origin) @ R.T + origin

    def sync_from_model(self) -> None:
        origin, u = self._axis()
        p0 = self.ref_moving[0] - origin
        p1 = self.model.coords[self.moving[0]] - origin
        p0 = p0 - (p0 @ u) * u
        p1 = p1 - (p1 @ u) * u
        if np.linalg.norm(p0) < 1e-9 or np.linalg.norm(p1) < 1e-9:
            self.angle = np.zeros(1)
            return
        self.angle = np.array([math.atan2(float(np.cross(p0, p1) @ u), float(p0 @ p1))])


class Chromosome:
    def __init__(self, elements: Optional[List[ChromElement]] = None) -> None:
        self.elements: List[ChromElement] = list(elements or [])

    @property
    def length(self) -> int:
        return sum(e.length for e in self.elements)

    def __len__(self) -> int:
        return self.length

    def clone(self) -> "Chromosome":
        return Chromosome([e.clone() for e in self.elements])

    def get_vector(self) -> np.ndarray:
        if not self.elements:
            return np.zeros(0)
        return np.concatenate([e.get_vector() for e in self.elements])

    def set_vector(self, v) -> None:
        v = np.asarray(v, dtype=float).reshape(-1)
        if v.shape[0] != self.length:
            raise BadArgument(f"Chromosome: expected {self.length} genes, got {v.shape[0]}")
        k = 0
        for e in self.elements:
            e.set_vector(v[k:k + e.length])
            k += e.length

    def randomise(self, rng: np.random.Generator) -> None:
        for e in self.elements:
            e.randomise(rng)

    def mutate(self, rng: np.random.Generator, rel_step: float, cauchy: bool = False) -> None:
        for e in self.elements:
            e.mutate(rng, rel_step, cauchy)

    def crossover(self, other: "Chromosome", rng: np.random.Generator) -> Tuple["Chromosome", "Chromosome"]:
        """Two-point crossover over the flat gene vector."""
        c1, c2 = self.clone(), other.clone()
        n = self.length
        if n < 2:
            return c1, c2
        i, j = sorted(int(x) for x in rng.choice(n + 1, size=2, replace=False))
        v1, v2 = self.get_vector(), other.get_vector()
        v1[i:j], v2[i:j] = v2[i:j].copy(), v1[i:j].copy()
        c1.set_vector(v1)
        c2.set_vector(v2)
        return c1, c2

    def compare(self, other: "Chromosome") -> float:
        if not self.elements:
            return 0.0
        return max(a.compare(b) for a, b in zip(self.elements, other.elements))

    def sync_to_model(self) -> None:
        for e in self.elements:
            e.sync_to_model()

    def sync_from_model(self) -> None:
        for e in self.elements:
            e.sync_from_model()


def build_chromosome(workspace, trans_step: float = 2.0, rot_step: float = 30.0) -> Chromosome:
    """Elements for the ligand, a flexible receptor and every mobile solvent model."""
    elements: List[ChromElement] = []
    site = workspace.docking_site
    ligand = workspace.ligand
    if ligand is not None:
        flex = ligand.flex if isinstance(ligand.flex, RigidBodyFlex) else RigidBodyFlex()
        if flex.is_flexible():
            elements.append(RigidBodyElement(ligand, flex, site, trans_step, rot_step))
    receptor = workspace.receptor
    if receptor is not None and isinstance(receptor.flex, TorsionFlex):
        for t in receptor.flex.torsions:
            elements.append(TorsionElement(receptor, t, rot_step))
    for m in workspace.solvent:
        if isinstance(m.flex, RigidBodyFlex) and m.flex.is_flexible():
            elements.append(RigidBodyElement(m, m.flex, site, trans_step, rot_step))
    return Chromosome(elements)
