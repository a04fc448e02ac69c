"""idxdock.scoring.polar

Indexed polar (H-bond) term.

Centres:
- donor:    a polar hydrogen (H bonded to N/O); auxiliary point = donor heavy atom
- acceptor: O, S, and N with at most two neighbours; auxiliary point = pseudo
            atom over its heavy neighbours (none for isolated atoms)

Only donor-acceptor pairs score:

    STRENGTH * f(r) * f(D-H..A) * f(X..A..H)

f(r) is 1 up to R12 and falls linearly to 0 at R12 + DR12. The angle
factors are 1 above ANGLE_MIN / ACC_ANGLE_MIN and fall linearly to 0 over
DANGLE degrees.
"""

from __future__ import annotations

from typing import Dict, List

import numpy as np

from ..chemistry.atom_types import is_acceptor_element, is_donor_element, is_hydrogen
from .centers import InteractionCenter, PseudoGroup, Role, SingleAtom
from .indexed import IndexedTerm
from .numba.core import polar_pair, polar_query_sums

R12 = "R12"
DR12 = "DR12"
STRENGTH = "STRENGTH"
ANGLE_MIN = "ANGLE_MIN"
ACC_ANGLE_MIN = "ACC_ANGLE_MIN"
DANGLE = "DANGLE"


def polar_centers(model, table) -> List[InteractionCenter]:
    """Donor and acceptor centres of one model, in global atom ids."""
    out = []
    for atom in model.atoms:
        nbrs = model.neighbours(atom.idx)
        g = table.gid(model, atom.idx)
        if is_hydrogen(atom.element):
            heavy = [j for j in nbrs if is_donor_element(model.atoms[j].element)]
            if heavy:
                out.append(InteractionCenter(SingleAtom(g), Role.DONOR, SingleAtom(table.gid(model, heavy[0]))))
            continue
        if not is_acceptor_element(atom.element):
            continue
        if atom.element == "N" and len(nbrs) > 2:
            continue
        heavy = [table.gid(model, j) for j in nbrs if not is_hydrogen(model.atoms[j].element)][:3]
        aux = PseudoGroup(tuple(heavy)) if heavy else None
        out.append(InteractionCenter(SingleAtom(g), Role.ACCEPTOR, aux))
    return out


class PolarTerm(IndexedTerm):
    SETUP_PARAMS = IndexedTerm.SETUP_PARAMS | {R12, DR12}

    def __init__(self, name: str = "polar", weight: float = 1.0) -> None:
        super().__init__(name, weight)
        self.add_parameter(R12, 1.9)
        self.add_parameter(DR12, 0.6)
        self.add_parameter(STRENGTH, -1.0)
        self.add_parameter(ANGLE_MIN, 120.0)
        self.add_parameter(ACC_ANGLE_MIN, 90.0)
        self.add_parameter(DANGLE, 30.0)

    def build_centers(self, model, table) -> List[InteractionCenter]:
        return polar_centers(model, table)

    def center_attrs(self, table, centers) -> Dict[str, np.ndarray]:
        return {
            "role": centers.role.astype(np.int64),
            "has_aux": centers.has_aux.astype(np.uint8),
        }

    def center_ranges(self, centers, attrs) -> np.ndarray:
        return np.full(len(centers), float(self.get_parameter(R12)) + float(self.get_parameter(DR12)))

    def _kernel_params(self):
        return (
            float(self.get_parameter(R12)),
            float(self.get_parameter(DR12)),
            float(self.get_parameter(STRENGTH)),
            float(self.get_parameter(ANGLE_MIN)),
            float(self.get_parameter(ACC_ANGLE_MIN)),
            float(self.get_parameter(DANGLE)),
        )

    def query_sums(self, q_ids, q_rows, start, items, ctx, state) -> np.ndarray:
        return polar_query_sums(
            q_ids, q_rows, start, items, ctx.pos, ctx.aux,
            state.attrs["has_aux"], state.attrs["role"], ctx.en, *self._kernel_params()
        )

    def pair_energy(self, i, j, ctx, state) -> float:
        role, has_aux = state.attrs["role"], state.attrs["has_aux"]
        if role[i] == Role.DONOR and role[j] == Role.ACCEPTOR:
            d, a = i, j
        elif role[i] == Role.ACCEPTOR and role[j] == Role.DONOR:
            d, a = j, i
        else:
            return 0.0
        return float(polar_pair(ctx.pos[d], ctx.aux[d], has_aux[d], ctx.pos[a], ctx.aux[a], has_aux[a],
                                *self._kernel_params()))
