"""idxdock.chemistry.model

Atoms and models (receptor, ligand, solvent molecules).

A Model owns the coordinate array (N x 3) and the per-atom ``enabled`` flags.
Atom objects are light views into that arena: ``atom.coords`` and
``atom.enabled`` read and write the owning model's arrays, so moving a model
(pose synchronisation, coordinate reverts) never leaves stale atoms behind.
"""

from __future__ import annotations

import copy
from collections import deque
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np

from .atom_types import normalize_element
from .parameters import vdw_radius
from ..errors import BadArgument


class Atom:
    __slots__ = (
        "model", "idx", "name", "element", "vdw_radius", "charge",
        "resname", "resseq", "chain", "user1", "user2",
    )

    def __init__(
        self,
        model: "Model",
        idx: int,
        name: str,
        element: str,
        vdw_radius: float,
        charge: float = 0.0,
        resname: str = "",
        resseq: int = 0,
        chain: str = "",
    ) -> None:
        self.model = model
        self.idx = idx
        self.name = name
        self.element = element
        self.vdw_radius = vdw_radius
        self.charge = charge
        self.resname = resname
        self.resseq = resseq
        self.chain = chain
        # scratch values; user2 holds the max displacement set by FlexAtomFactory
        self.user1 = 0.0
        self.user2 = 0.0

    @property
    def coords(self) -> np.ndarray:
        return self.model.coords[self.idx]

    @coords.setter
    def coords(self, xyz) -> None:
        self.model.coords[self.idx] = np.asarray(xyz, dtype=float)

    @property
    def enabled(self) -> bool:
        return bool(self.model.enabled[self.idx])

    @enabled.setter
    def enabled(self, flag: bool) -> None:
        self.model.enabled[self.idx] = bool(flag)

    @property
    def residue_label(self) -> str:
        return f"{self.chain}:{self.resname}{self.resseq}"

    def __repr__(self) -> str:
        return f"Atom({self.model.name}:{self.idx} {self.name} {self.element})"


class Model:
    """A molecule: atoms, coordinates, topology, flexibility and metadata."""

    def __init__(
        self,
        name: str,
        elements: Sequence[str],
        coords,
        *,
        names: Optional[Sequence[str]] = None,
        radii: Optional[Sequence[float]] = None,
        charges: Optional[Sequence[float]] = None,
        bonds: Iterable[Tuple[int, int]] = (),
        residues: Optional[Sequence[Tuple[str, int, str]]] = None,
        flex=None,
    ) -> None:
        xyz = np.array(coords, dtype=float).reshape(-1, 3)
        n = len(elements)
        if xyz.shape[0] != n:
            raise BadArgument(f"Model {name!r}: {n} elements but {xyz.shape[0]} coordinates")

        self.name = name
        self.coords = xyz
        self.enabled = np.ones(n, dtype=bool)
        self.occupancy = 1.0
        self.flex = flex
        self.data: Dict[str, Any] = {}
        self._saved: List[np.ndarray] = []
        self.current_coords = 0

        self.atoms: List[Atom] = []
        for i, el in enumerate(elements):
            el = normalize_element(el)
            resname, resseq, chain = residues[i] if residues is not None else ("", 0, "")
            self.atoms.append(
                Atom(
                    self,
                    i,
                    names[i] if names is not None else f"{el}{i + 1}",
                    el,
                    float(radii[i]) if radii is not None else vdw_radius(el),
                    float(charges[i]) if charges is not None else 0.0,
                    resname=resname,
                    resseq=int(resseq),
                    chain=chain,
                )
            )

        self._neighbours: List[List[int]] = [[] for _ in range(n)]
        self.bonds: List[Tuple[int, int]] = []
        for i, j in bonds:
            self.add_bond(i, j)

    # ------------------------------------------------------------------
    # topology

    def add_bond(self, i: int, j: int) -> None:
        n = len(self.atoms)
        if not (0 <= i < n and 0 <= j < n) or i == j:
            raise BadArgument(f"Model {self.name!r}: invalid bond ({i}, {j})")
        self.bonds.append((i, j))
        self._neighbours[i].append(j)
        self._neighbours[j].append(i)

    def neighbours(self, i: int) -> List[int]:
        return list(self._neighbours[i])

    def excluded_atoms(self, i: int, max_bonds: int = 2) -> Set[int]:
        """Atom ids within ``max_bonds`` bonds of atom i (including i)."""
        seen = {i}
        queue = deque([(i, 0)])
        while queue:
            a, d = queue.popleft()
            if d == max_bonds:
                continue
            for b in self._neighbours[a]:
                if b not in seen:
                    seen.add(b)
                    queue.append((b, d + 1))
        return seen

    # ------------------------------------------------------------------
    # atoms / coords

    @property
    def num_atoms(self) -> int:
        return len(self.atoms)

    def get_atom_list(self) -> List[Atom]:
        return list(self.atoms)

    def centroid(self) -> np.ndarray:
        if not self.atoms:
            return np.zeros(3, dtype=float)
        return self.coords.mean(axis=0)

    def set_coords(self, xyz) -> None:
        xyz = np.asarray(xyz, dtype=float).reshape(-1, 3)
        if xyz.shape != self.coords.shape:
            raise BadArgument(f"Model {self.name!r}: coordinate shape {xyz.shape} != {self.coords.shape}")
        self.coords[:] = xyz

    def save_coords(self) -> int:
        """Store the current coordinates as a new numbered set (1-based)."""
        self._saved.append(self.coords.copy())
        self.current_coords = len(self._saved)
        return self.current_coords

    def revert_coords(self, i: int) -> None:
        if not 1 <= i <= len(self._saved):
            raise BadArgument(f"Model {self.name!r}: no saved coordinate set #{i}")
        self.coords[:] = self._saved[i - 1]
        self.current_coords = i

    @property
    def num_saved_coords(self) -> int:
        return len(self._saved)

    # ------------------------------------------------------------------
    # occupancy / flexibility / metadata

    def set_occupancy(self, occupancy: float, threshold: float = 0.5) -> None:
        """Set model occupancy; atoms are enabled iff occupancy >= threshold."""
        self.occupancy = float(occupancy)
        self.enabled[:] = self.occupancy >= float(threshold)

    def set_flex_data(self, flex) -> None:
        self.flex = flex

    def is_flexible(self) -> bool:
        return self.flex is not None and self.flex.is_flexible()

    def set_data_value(self, key: str, value: Any) -> None:
        self.data[key] = value

    def copy(self) -> "Model":
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        return f"Model({self.name!r}, {self.num_atoms} atoms)"

    # ------------------------------------------------------------------
    # construction

    @classmethod
    def from_rdkit(
        cls,
        mol,
        name: Optional[str] = None,
        *,
        conf_id: int = -1,
        compute_charges: bool = True,
        flex=None,
    ) -> "Model":
        """Build a Model from an RDKit molecule with a 3D conformer."""
        from rdkit.Chem import AllChem

        if mol.GetNumConformers() == 0:
            raise BadArgument("RDKit molecule has no conformer")
        if compute_charges:
            AllChem.ComputeGasteigerCharges(mol)

        conf = mol.GetConformer(conf_id)
        elements, names, charges, residues = [], [], [], []
        coords = np.zeros((mol.GetNumAtoms(), 3), dtype=float)
        for a in mol.GetAtoms():
            idx = a.GetIdx()
            pos = conf.GetAtomPosition(idx)
            coords[idx] = (pos.x, pos.y, pos.z)
            elements.append(a.GetSymbol())
            q = float(a.GetFormalCharge())
            if compute_charges and a.HasProp("_GasteigerCharge"):
                q = float(a.GetDoubleProp("_GasteigerCharge"))
                if not np.isfinite(q):
                    q = 0.0
            charges.append(q)
            info = a.GetPDBResidueInfo()
            if info is not None:
                names.append(info.GetName().strip())
                residues.append((info.GetResidueName().strip(), info.GetResidueNumber(), info.GetChainId().strip()))
            else:
                names.append(f"{a.GetSymbol()}{idx + 1}")
                residues.append(("", 0, ""))

        bonds = [(b.GetBeginAtomIdx(), b.GetEndAtomIdx()) for b in mol.GetBonds()]
        if name is None:
            name = mol.GetProp("_Name") if mol.HasProp("_Name") else "model"
        return cls(
            name,
            elements,
            coords,
            names=names,
            charges=charges,
            bonds=bonds,
            residues=residues,
            flex=flex,
        )
