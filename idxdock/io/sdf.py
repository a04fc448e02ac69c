"""idxdock.io.sdf

Ligand input / pose output through RDKit.

The RDKit Mol is kept next to the Model so that docked coordinates can be
written back out with the original bond orders and properties.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from rdkit import Chem
from rdkit.Chem import AllChem
from rdkit.Geometry import Point3D

from ..chemistry.model import Model
from ..errors import BadArgument


@dataclass(frozen=True)
class LigandMol:
    model: Model
    rdkit_mol: object


def read_sdf_first_mol(
    sdf_path: str,
    add_hs: bool = True,
    compute_gasteiger: bool = True,
    flex=None,
) -> LigandMol:
    suppl = Chem.SDMolSupplier(sdf_path, removeHs=not add_hs)
    mol = next((m for m in suppl if m is not None), None)
    if mol is None:
        raise BadArgument(f"No valid molecules found in SDF: {sdf_path}")

    if add_hs:
        mol = Chem.AddHs(mol, addCoords=True)

    if mol.GetNumConformers() == 0:
        AllChem.EmbedMolecule(mol, randomSeed=0xC0FFEE)
        AllChem.UFFOptimizeMolecule(mol)

    name = mol.GetProp("_Name") if mol.HasProp("_Name") and mol.GetProp("_Name") else "ligand"
    model = Model.from_rdkit(mol, name, compute_charges=compute_gasteiger, flex=flex)
    return LigandMol(model=model, rdkit_mol=mol)


def model_to_mol(model: Model, rdkit_mol, props: Optional[Dict] = None):
    """Copy of ``rdkit_mol`` carrying the model's current coordinates."""
    if rdkit_mol.GetNumAtoms() != model.num_atoms:
        raise BadArgument(f"{model.name}: {model.num_atoms} atoms but RDKit mol has {rdkit_mol.GetNumAtoms()}")
    mol = Chem.Mol(rdkit_mol)
    conf = mol.GetConformer()
    for aidx in range(mol.GetNumAtoms()):
        x, y, z = map(float, model.coords[aidx])
        conf.SetAtomPosition(aidx, Point3D(x, y, z))
    mol.SetProp("_Name", model.name)
    for k, v in model.data.items():
        mol.SetProp(str(k), str(v))
    for k, v in (props or {}).items():
        mol.SetProp(str(k), str(v))
    return mol


def write_poses(path: str, model: Model, rdkit_mol, records) -> int:
    """Write one SD record per (coords, props) pair; returns the number written."""
    writer = Chem.SDWriter(path)
    saved = model.coords.copy()
    n = 0
    try:
        for coords, props in records:
            model.set_coords(coords)
            writer.write(model_to_mol(model, rdkit_mol, props))
            n += 1
    finally:
        model.set_coords(saved)
        writer.close()
    return n
