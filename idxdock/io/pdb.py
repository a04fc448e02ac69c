"""idxdock.io.pdb

Receptor and explicit-water input through RDKit's PDB reader.

Waters (HOH/WAT) are split off the receptor. Each water residue becomes its
own solvent Model so that it can carry its own occupancy and rigid-body
flexibility.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from loguru import logger
from rdkit import Chem

from ..chemistry.flex import RigidBodyFlex
from ..chemistry.model import Model
from ..errors import BadArgument

WATER_NAMES = ("HOH", "WAT", "H2O", "DOD")


def _is_water(atom) -> bool:
    info = atom.GetPDBResidueInfo()
    return info is not None and info.GetResidueName().strip() in WATER_NAMES


def _load(pdb_path: str, remove_hs: bool):
    mol = Chem.MolFromPDBFile(pdb_path, removeHs=remove_hs, sanitize=False)
    if mol is None:
        raise BadArgument(f"RDKit could not read PDB file: {pdb_path}")
    try:
        Chem.SanitizeMol(mol)
    except (ValueError, RuntimeError) as e:
        logger.warning(f"{pdb_path}: sanitization failed ({e}); using unsanitized molecule")
        mol.UpdatePropertyCache(strict=False)
    return mol


def read_receptor_pdb(pdb_path: str, remove_hs: bool = False, flex=None,
                      name: Optional[str] = None) -> Tuple[Model, List[Model]]:
    """Returns (receptor, waters). Receptor excludes every water residue."""
    mol = _load(pdb_path, remove_hs)
    water_idx = [a.GetIdx() for a in mol.GetAtoms() if _is_water(a)]

    waters = waters_from_mol(mol, water_idx) if water_idx else []
    if water_idx:
        rw = Chem.RWMol(mol)
        for i in sorted(water_idx, reverse=True):
            rw.RemoveAtom(i)
        mol = rw.GetMol()

    receptor = Model.from_rdkit(mol, name or "receptor", compute_charges=True, flex=flex)
    logger.info(f"{pdb_path}: receptor {receptor.num_atoms} atoms, {len(waters)} water(s)")
    return receptor, waters


def waters_from_mol(mol, atom_ids=None, trans_mode="tethered", rot_mode="tethered",
                    max_trans: float = 1.0, max_rot: float = 30.0) -> List[Model]:
    """One Model per residue among ``atom_ids`` (all atoms when None)."""
    conf = mol.GetConformer()
    ids = range(mol.GetNumAtoms()) if atom_ids is None else atom_ids
    groups = {}
    for i in ids:
        a = mol.GetAtomWithIdx(i)
        info = a.GetPDBResidueInfo()
        key = (info.GetChainId(), info.GetResidueNumber(), info.GetInsertionCode()) if info else (i,)
        groups.setdefault(key, []).append(i)

    out: List[Model] = []
    for key, members in groups.items():
        local = {g: k for k, g in enumerate(members)}
        elements, coords, names = [], [], []
        for g in members:
            a = mol.GetAtomWithIdx(g)
            p = conf.GetAtomPosition(g)
            elements.append(a.GetSymbol())
            coords.append((p.x, p.y, p.z))
            info = a.GetPDBResidueInfo()
            names.append(info.GetName().strip() if info else f"{a.GetSymbol()}{len(names) + 1}")
        bonds = []
        for b in mol.GetBonds():
            i, j = b.GetBeginAtomIdx(), b.GetEndAtomIdx()
            if i in local and j in local:
                bonds.append((local[i], local[j]))
        label = "_".join(str(k) for k in key if str(k).strip())
        out.append(
            Model(
                f"water_{label}",
                elements,
                coords,
                names=names,
                bonds=bonds,
                flex=RigidBodyFlex(trans_mode, rot_mode, max_trans, max_rot),
            )
        )
    return out


def read_solvent_pdb(pdb_path: str, trans_mode="tethered", rot_mode="tethered",
                     max_trans: float = 1.0, max_rot: float = 30.0) -> List[Model]:
    mol = _load(pdb_path, remove_hs=False)
    return waters_from_mol(mol, None, trans_mode, rot_mode, max_trans, max_rot)
