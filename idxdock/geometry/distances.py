"""idxdock.geometry.distances

Small numpy geometry helpers.
"""

from __future__ import annotations

import numpy as np


def closest_distance(xyz_a, xyz_b) -> float:
    """Smallest distance between any atom of ``xyz_a`` and any atom of ``xyz_b`` (inf if either is empty)."""
    a = np.asarray(xyz_a, dtype=float).reshape(-1, 3)
    b = np.asarray(xyz_b, dtype=float).reshape(-1, 3)
    if a.shape[0] == 0 or b.shape[0] == 0:
        return float("inf")
    return float(np.linalg.norm(a[:, None, :] - b[None, :, :], axis=2).min())
