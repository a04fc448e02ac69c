"""idxdock.scoring.desolvation

Indexed pairwise desolvation term (AutoDock 4 volume-weighted form):

    (S_i * V_j + S_j * V_i) * exp(-r^2 / (2 * SIGMA^2)),  r <= CUTOFF

S = atomic solvation parameter, V = atomic volume (chemistry.parameters).
"""

from __future__ import annotations

from typing import Dict

import numpy as np

from .indexed import IndexedTerm
from .numba.adapters import prepare_solvation_arrays
from .numba.core import desolvation_pair, desolvation_query_sums

SIGMA = "SIGMA"
CUTOFF = "CUTOFF"


class DesolvationTerm(IndexedTerm):
    SETUP_PARAMS = IndexedTerm.SETUP_PARAMS | {CUTOFF}

    def __init__(self, name: str = "solv", weight: float = 1.0) -> None:
        super().__init__(name, weight)
        self.add_parameter(SIGMA, 3.6)
        self.add_parameter(CUTOFF, 8.0)

    def center_attrs(self, table, centers) -> Dict[str, np.ndarray]:
        solpar, volume = prepare_solvation_arrays([table.atoms[g] for g in centers.point[:, 0]])
        return {"solpar": solpar, "volume": volume}

    def center_ranges(self, centers, attrs) -> np.ndarray:
        return np.full(len(centers), float(self.get_parameter(CUTOFF)))

    def query_sums(self, q_ids, q_rows, start, items, ctx, state) -> np.ndarray:
        return desolvation_query_sums(
            q_ids, q_rows, start, items, ctx.pos, ctx.en,
            state.attrs["solpar"], state.attrs["volume"],
            float(self.get_parameter(SIGMA)), float(self.get_parameter(CUTOFF)),
        )

    def pair_energy(self, i, j, ctx, state) -> float:
        d = ctx.pos[i] - ctx.pos[j]
        sigma = float(self.get_parameter(SIGMA))
        cutoff = float(self.get_parameter(CUTOFF))
        s, v = state.attrs["solpar"], state.attrs["volume"]
        return float(desolvation_pair(float(d @ d), s[i], v[i], s[j], v[j],
                                      1.0 / (2.0 * sigma * sigma), cutoff * cutoff))
