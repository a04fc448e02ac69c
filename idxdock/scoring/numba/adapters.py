from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

from ...chemistry.parameters import get_solvation_params, well_depth
from .core import LJ_4_8, LJ_6_12, PLP

VDW_FUNCTIONS = {"lj-6-12": LJ_6_12, "lj-4-8": LJ_4_8, "plp": PLP}


def prepare_vdw_arrays(atoms: Sequence) -> Tuple[np.ndarray, np.ndarray]:
    """
    Per-atom arrays for the vdW kernel.
    Returns:
      radius (float64, [n])  vdW radius (well position is radius_i + radius_j)
      eps    (float64, [n])  LJ well depth from the element table
    """
    n = len(atoms)
    radius = np.empty((n,), dtype=np.float64)
    eps = np.empty((n,), dtype=np.float64)
    for i, a in enumerate(atoms):
        radius[i] = float(getattr(a, "vdw_radius", 1.7))
        eps[i] = well_depth(getattr(a, "element", "X"))
    return radius, eps


def prepare_solvation_arrays(atoms: Sequence) -> Tuple[np.ndarray, np.ndarray]:
    """
    Returns:
      solpar (float64, [n])  atomic solvation parameter
      volume (float64, [n])  atomic fragmental volume
    """
    n = len(atoms)
    solpar = np.empty((n,), dtype=np.float64)
    volume = np.empty((n,), dtype=np.float64)
    for i, a in enumerate(atoms):
        p = get_solvation_params(getattr(a, "element", "X"))
        solpar[i] = p.solpar
        volume[i] = p.volume
    return solpar, volume


def query_arrays(ids, rows) -> Tuple[np.ndarray, np.ndarray]:
    return (
        np.ascontiguousarray(ids, dtype=np.int64),
        np.ascontiguousarray(rows, dtype=np.int64),
    )


def single_row_csr(partners) -> Tuple[np.ndarray, np.ndarray]:
    """CSR with one row holding every partner (brute-force loops)."""
    items = np.ascontiguousarray(partners, dtype=np.int64)
    return np.array([0, items.shape[0]], dtype=np.int64), items
