"""idxdock.geometry.grid

Uniform 3D indexing grid.

Grid points sit at ``origin + (i, j, k) * step``; each point owns the cell
of coordinates closest to it. An entity inserted with a radius is listed in
every cell whose centre lies within that radius of the entity's anchor, so a
query at any coordinate inside a cell sees every entity whose anchor is
within ``radius - max_error`` of the coordinate.

Insertions are appended as (cell, entity) pairs and compacted lazily into
CSR arrays ``(start, items)``: the entities of cell ``c`` are
``items[start[c]:start[c + 1]]``. The numba kernels consume the CSR arrays
directly.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..errors import BadArgument


class SpatialIndexGrid:
    def __init__(self, origin, step: float, dims: Sequence[int]) -> None:
        step = float(step)
        if step <= 0.0:
            raise BadArgument(f"Grid step must be > 0 (got {step})")
        dims = tuple(int(d) for d in dims)
        if len(dims) != 3 or any(d < 0 for d in dims):
            raise BadArgument(f"Grid dims must be 3 non-negative ints (got {dims})")

        self.origin = np.asarray(origin, dtype=float).reshape(3)
        self.step = step
        self.dims = dims
        self.n_cells = dims[0] * dims[1] * dims[2]

        self._cells: List[np.ndarray] = []
        self._entities: List[np.ndarray] = []
        self._csr: Optional[Tuple[np.ndarray, np.ndarray]] = None

    @classmethod
    def create_grid(cls, lo, hi, step: float, border: float = 0.0) -> "SpatialIndexGrid":
        """Grid covering the box [lo, hi] expanded by ``border`` on every side."""
        lo = np.asarray(lo, dtype=float).reshape(3) - float(border)
        hi = np.asarray(hi, dtype=float).reshape(3) + float(border)
        if np.any(hi < lo):
            return cls(lo, step, (0, 0, 0))
        dims = np.floor((hi - lo) / float(step)).astype(int) + 1
        return cls(lo, step, tuple(int(d) for d in dims))

    @property
    def max_error(self) -> float:
        """Half the cell diagonal: the furthest a coordinate can be from its cell centre."""
        return 0.5 * math.sqrt(3.0) * self.step

    def __len__(self) -> int:
        return int(sum(len(c) for c in self._cells))

    # ------------------------------------------------------------------
    # cell lookup

    def cell_index(self, coord) -> int:
        ijk = np.rint((np.asarray(coord, dtype=float).reshape(3) - self.origin) / self.step).astype(int)
        if np.any(ijk < 0) or np.any(ijk >= np.asarray(self.dims)):
            return -1
        return int(np.ravel_multi_index(tuple(ijk), self.dims))

    def cell_indices(self, coords) -> np.ndarray:
        """Vectorised ``cell_index`` for an (N, 3) array; -1 marks off-grid points."""
        xyz = np.asarray(coords, dtype=float).reshape(-1, 3)
        out = np.full(xyz.shape[0], -1, dtype=np.int64)
        if self.n_cells == 0 or xyz.shape[0] == 0:
            return out
        ijk = np.rint((xyz - self.origin) / self.step).astype(np.int64)
        ok = np.all((ijk >= 0) & (ijk < np.asarray(self.dims)), axis=1)
        if np.any(ok):
            out[ok] = np.ravel_multi_index(tuple(ijk[ok].T), self.dims)
        return out

    def cell_center(self, index: int) -> np.ndarray:
        ijk = np.asarray(np.unravel_index(int(index), self.dims), dtype=float)
        return self.origin + ijk * self.step

    def sphere_indices(self, anchor, radius: float) -> np.ndarray:
        """Flat indices of all cells whose centre is within ``radius`` of ``anchor``."""
        if self.n_cells == 0 or radius < 0.0:
            return np.zeros(0, dtype=np.int64)
        a = np.asarray(anchor, dtype=float).reshape(3)
        rel = a - self.origin
        lo = np.maximum(np.ceil((rel - radius) / self.step).astype(int), 0)
        hi = np.minimum(np.floor((rel + radius) / self.step).astype(int), np.asarray(self.dims) - 1)
        if np.any(hi < lo):
            return np.zeros(0, dtype=np.int64)

        ii, jj, kk = np.meshgrid(
            np.arange(lo[0], hi[0] + 1),
            np.arange(lo[1], hi[1] + 1),
            np.arange(lo[2], hi[2] + 1),
            indexing="ij",
        )
        ijk = np.stack([ii.ravel(), jj.ravel(), kk.ravel()], axis=1)
        d = ijk * self.step - rel
        mask = np.einsum("ij,ij->i", d, d) <= radius * radius
        if not np.any(mask):
            return np.zeros(0, dtype=np.int64)
        return np.ravel_multi_index(tuple(ijk[mask].T), self.dims).astype(np.int64)

    # ------------------------------------------------------------------
    # insertion / compaction

    def insert_with_radius(self, entity: int, anchor, radius: float) -> None:
        cells = self.sphere_indices(anchor, radius)
        if cells.size == 0:
            return
        self._cells.append(cells)
        self._entities.append(np.full(cells.size, int(entity), dtype=np.int64))
        self._csr = None

    def _pairs(self) -> Tuple[np.ndarray, np.ndarray]:
        if not self._cells:
            return np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.int64)
        return np.concatenate(self._cells), np.concatenate(self._entities)

    def deduplicate(self) -> None:
        """Sort every cell list and drop repeated entities."""
        cells, ents = self._pairs()
        if cells.size == 0:
            return
        stride = int(ents.max()) + 1
        key = np.unique(cells * stride + ents)
        self._cells = [key // stride]
        self._entities = [key % stride]
        self._csr = None

    def clear(self) -> None:
        self._cells = []
        self._entities = []
        self._csr = None

    def csr(self) -> Tuple[np.ndarray, np.ndarray]:
        if self._csr is None:
            cells, ents = self._pairs()
            start = np.zeros(self.n_cells + 1, dtype=np.int64)
            if cells.size:
                order = np.argsort(cells, kind="stable")
                ents = ents[order]
                start[1:] = np.cumsum(np.bincount(cells, minlength=self.n_cells))
            self._csr = (start, ents.astype(np.int64))
        return self._csr

    def query_cell(self, coord) -> np.ndarray:
        """Entities listed in the cell containing ``coord`` (empty when off-grid)."""
        idx = self.cell_index(coord) if self.n_cells else -1
        if idx < 0:
            return np.zeros(0, dtype=np.int64)
        start, items = self.csr()
        return items[start[idx]:start[idx + 1]]

    def __repr__(self) -> str:
        return f"SpatialIndexGrid(origin={self.origin.tolist()}, step={self.step}, dims={self.dims})"
