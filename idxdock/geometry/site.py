"""idxdock.geometry.site

Docking site volume.

A site is a union of spheres of equal radius around one or more points:

- centroid: one sphere around the reference ligand centroid
- atoms:    one sphere around EVERY reference ligand atom

Scoring terms use ``select`` / ``atom_ids`` to restrict the receptor atoms
they index to those within range of the site; the GA samples free ligand
positions with ``random_point``.
"""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np

from ..errors import BadArgument


class DockingSite:
    def __init__(self, center, radius: float, points=None) -> None:
        radius = float(radius)
        if radius < 0.0:
            raise BadArgument(f"Docking site radius must be >= 0 (got {radius})")
        self.center = np.asarray(center, dtype=float).reshape(3)
        self.radius = radius
        if points is None:
            self.points = self.center.reshape(1, 3).copy()
        else:
            self.points = np.asarray(points, dtype=float).reshape(-1, 3)
            if self.points.shape[0] == 0:
                raise BadArgument("Docking site needs at least one point")

    @classmethod
    def from_ligand(cls, ligand, radius: float = 12.0, mode: str = "centroid") -> "DockingSite":
        """Site around a reference ligand (Model or (N, 3) coordinates)."""
        coords = ligand.coords if hasattr(ligand, "coords") else np.asarray(ligand, dtype=float).reshape(-1, 3)
        if coords.shape[0] == 0:
            raise BadArgument("Can not define a docking site from an empty ligand")
        center = coords.mean(axis=0)

        mode = (mode or "centroid").strip().lower()
        if mode == "centroid":
            return cls(center, radius)
        if mode == "atoms":
            return cls(center, radius, points=coords)
        raise BadArgument(f"Unknown site mode={mode!r}. Use centroid|atoms")

    def distances(self, coords) -> np.ndarray:
        """Distance of each coordinate to the site volume (0 inside)."""
        xyz = np.asarray(coords, dtype=float).reshape(-1, 3)
        if xyz.shape[0] == 0:
            return np.zeros(0, dtype=float)
        d = np.linalg.norm(xyz[:, None, :] - self.points[None, :, :], axis=2).min(axis=1)
        return np.maximum(d - self.radius, 0.0)

    def select(self, coords, min_dist: float = 0.0, max_dist: float = 0.0) -> np.ndarray:
        d = self.distances(coords)
        return (d >= min_dist) & (d <= max_dist)

    def atom_ids(self, model, min_dist: float = 0.0, max_dist: float = 0.0) -> np.ndarray:
        return np.flatnonzero(self.select(model.coords, min_dist, max_dist))

    def contains(self, point) -> bool:
        return bool(self.distances(point)[0] <= 0.0)

    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        return self.points.min(axis=0) - self.radius, self.points.max(axis=0) + self.radius

    def random_point(self, rng: np.random.Generator) -> np.ndarray:
        """Uniform-in-volume sample from one of the site spheres."""
        p = self.points[int(rng.integers(self.points.shape[0]))]
        r = self.radius * float(rng.random()) ** (1.0 / 3.0)
        theta = math.acos(2.0 * float(rng.random()) - 1.0)
        phi = 2.0 * math.pi * float(rng.random())
        return p + r * np.array(
            [math.sin(theta) * math.cos(phi), math.sin(theta) * math.sin(phi), math.cos(theta)],
            dtype=float,
        )

    def __repr__(self) -> str:
        return f"DockingSite(center={self.center.round(3).tolist()}, radius={self.radius}, points={len(self.points)})"
