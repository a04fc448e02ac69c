"""idxdock.scoring.vdw

Indexed van der Waals term.

Well position r0 = R_i + R_j (vdW radii), well depth sqrt(eps_i * eps_j)
from the element LJ table. FUNCTION selects the functional form:

- lj-6-12: eps * ((r0/r)^12 - 2 (r0/r)^6), zero beyond RMAX * r0
- lj-4-8:  eps * ((r0/r)^8 - 2 (r0/r)^4),  zero beyond RMAX * r0
- plp:     piecewise linear contact (PLP_* parameters), zero beyond r0 + PLP_WIDTH_OUT

Every form is capped at ECUT so that clashes stay finite.
"""

from __future__ import annotations

from typing import Dict

import numpy as np

from ..chemistry.parameters import MAX_VDW_RADIUS
from ..errors import BadArgument
from .indexed import IndexedTerm
from .numba.adapters import VDW_FUNCTIONS, prepare_vdw_arrays
from .numba.core import PLP, vdw_pair, vdw_query_sums

FUNCTION = "FUNCTION"
RMAX = "RMAX"
ECUT = "ECUT"
PLP_SLOPE_IN = "PLP_SLOPE_IN"
PLP_SLOPE_OUT = "PLP_SLOPE_OUT"
PLP_WIDTH_IN = "PLP_WIDTH_IN"
PLP_WIDTH_OUT = "PLP_WIDTH_OUT"


def lj_energy(r: float, r0: float, epsilon: float, function: str = "lj-6-12",
              rmax: float = 1.5, ecut: float = 1.0) -> float:
    """Single pair energy (python entry point to the kernel pair function)."""
    code = VDW_FUNCTIONS.get(function)
    if code is None:
        raise BadArgument(f"Unknown vdW function {function!r}. Use {'|'.join(VDW_FUNCTIONS)}")
    return float(vdw_pair(r * r, 0.5 * r0, 0.5 * r0, epsilon, epsilon, code, rmax, ecut, 5.0, -1.0, 0.6, 1.5))


class VdwTerm(IndexedTerm):
    SETUP_PARAMS = IndexedTerm.SETUP_PARAMS | {FUNCTION, RMAX, PLP_WIDTH_OUT}

    def __init__(self, name: str = "vdw", weight: float = 1.0) -> None:
        super().__init__(name, weight)
        self.add_parameter(FUNCTION, "lj-6-12")
        self.add_parameter(RMAX, 1.5)
        self.add_parameter(ECUT, 1.0)
        self.add_parameter(PLP_SLOPE_IN, 5.0)
        self.add_parameter(PLP_SLOPE_OUT, -1.0)
        self.add_parameter(PLP_WIDTH_IN, 0.6)
        self.add_parameter(PLP_WIDTH_OUT, 1.5)

    def set_parameter(self, name: str, value) -> None:
        if name == FUNCTION and str(value) not in VDW_FUNCTIONS:
            raise BadArgument(f"Unknown vdW function {value!r}. Use {'|'.join(VDW_FUNCTIONS)}")
        super().set_parameter(name, value)

    def _function_code(self) -> int:
        return VDW_FUNCTIONS[self.get_parameter(FUNCTION)]

    def center_attrs(self, table, centers) -> Dict[str, np.ndarray]:
        atoms = [table.atoms[g] for g in centers.point[:, 0]]
        radius, eps = prepare_vdw_arrays(atoms)
        return {"radius": radius, "eps": eps}

    def center_ranges(self, centers, attrs) -> np.ndarray:
        radius = attrs["radius"]
        rmax_partner = max(MAX_VDW_RADIUS, float(radius.max())) if radius.size else MAX_VDW_RADIUS
        r0 = radius + rmax_partner
        if self._function_code() == PLP:
            return r0 + float(self.get_parameter(PLP_WIDTH_OUT))
        return float(self.get_parameter(RMAX)) * r0

    def _kernel_params(self):
        return (
            self._function_code(),
            float(self.get_parameter(RMAX)),
            float(self.get_parameter(ECUT)),
            float(self.get_parameter(PLP_SLOPE_IN)),
            float(self.get_parameter(PLP_SLOPE_OUT)),
            float(self.get_parameter(PLP_WIDTH_IN)),
            float(self.get_parameter(PLP_WIDTH_OUT)),
        )

    def query_sums(self, q_ids, q_rows, start, items, ctx, state) -> np.ndarray:
        return vdw_query_sums(
            q_ids, q_rows, start, items, ctx.pos, ctx.en,
            state.attrs["radius"], state.attrs["eps"], *self._kernel_params()
        )

    def pair_energy(self, i, j, ctx, state) -> float:
        d = ctx.pos[i] - ctx.pos[j]
        radius, eps = state.attrs["radius"], state.attrs["eps"]
        return float(vdw_pair(float(d @ d), radius[i], radius[j], eps[i], eps[j], *self._kernel_params()))
