import json

import numpy as np
import pytest
from rdkit import Chem
from rdkit.Geometry import Point3D

from conftest import make_ligand
from idxdock.chemistry.model import Model
from idxdock.errors import BadArgument
from idxdock.geometry.site import DockingSite
from idxdock.io.pdb import read_receptor_pdb, read_solvent_pdb
from idxdock.io.sdf import read_sdf_first_mol, write_poses
from idxdock.main import main

PDB_ATOMS = [
    ("ATOM", "N", "ALA", 1, (0.000, 0.000, 0.000), "N"),
    ("ATOM", "CA", "ALA", 1, (1.458, 0.000, 0.000), "C"),
    ("ATOM", "C", "ALA", 1, (2.009, 1.420, 0.000), "C"),
    ("ATOM", "O", "ALA", 1, (1.251, 2.390, 0.000), "O"),
    ("ATOM", "CB", "ALA", 1, (1.988, -0.773, -1.199), "C"),
    ("HETATM", "O", "HOH", 101, (5.000, 2.000, 1.000), "O"),
    ("HETATM", "O", "HOH", 102, (7.500, 2.000, 1.000), "O"),
]


def _pdb_block(atoms):
    lines = []
    for serial, (rec, name, res, resseq, (x, y, z), el) in enumerate(atoms, start=1):
        lines.append(
            f"{rec:<6}{serial:>5} {' ' + name:<4} {res:>3} A{resseq:>4}    "
            f"{x:8.3f}{y:8.3f}{z:8.3f}{1.0:6.2f}{0.0:6.2f}          {el:>2}"
        )
    lines.append("END")
    return "\n".join(lines) + "\n"


@pytest.fixture
def receptor_pdb(tmp_path):
    p = tmp_path / "receptor.pdb"
    p.write_text(_pdb_block(PDB_ATOMS), encoding="utf-8")
    return str(p)


@pytest.fixture
def ligand_sdf(tmp_path, mol3d):
    mol = mol3d("CCO")
    conf = mol.GetConformer()
    # park the ligand next to the fragment
    shift = np.array([4.0, 1.0, 0.0]) - conf.GetPositions().mean(axis=0)
    for i in range(mol.GetNumAtoms()):
        p = conf.GetAtomPosition(i)
        conf.SetAtomPosition(i, Point3D(p.x + shift[0], p.y + shift[1], p.z + shift[2]))
    mol.SetProp("_Name", "ethanol")
    p = tmp_path / "ligand.sdf"
    w = Chem.SDWriter(str(p))
    w.write(mol)
    w.close()
    return str(p)


def test_model_from_rdkit(mol3d):
    mol = mol3d("CCO")
    m = Model.from_rdkit(mol, "etoh")
    assert m.num_atoms == 9
    assert len(m.bonds) == 8
    assert abs(sum(a.charge for a in m.atoms)) < 1e-3
    with pytest.raises(BadArgument):
        Model.from_rdkit(Chem.MolFromSmiles("CCO"))


def test_coordinate_sets_and_occupancy():
    lig = make_ligand()
    first = lig.coords.copy()
    assert lig.save_coords() == 1
    lig.set_coords(first + 1.0)
    lig.save_coords()
    lig.revert_coords(1)
    assert np.allclose(lig.coords, first)
    assert lig.current_coords == 1
    with pytest.raises(BadArgument):
        lig.revert_coords(3)
    with pytest.raises(BadArgument):
        lig.set_coords(np.zeros((2, 3)))

    lig.set_occupancy(0.4)
    assert not lig.enabled.any()
    lig.set_occupancy(0.5)
    assert lig.enabled.all()


def test_excluded_atoms_cover_one_three_pairs():
    lig = make_ligand()
    assert lig.excluded_atoms(0) == {0, 1, 2}
    assert lig.excluded_atoms(1) == {0, 1, 2, 3}
    assert lig.excluded_atoms(0, max_bonds=1) == {0, 1}


def test_docking_site_modes():
    lig = make_ligand()
    site = DockingSite.from_ligand(lig, radius=2.0)
    assert site.contains(lig.centroid())
    rng = np.random.default_rng(0)
    for _ in range(50):
        assert site.contains(site.random_point(rng))

    atoms = DockingSite.from_ligand(lig, radius=1.0, mode="atoms")
    assert all(atoms.contains(p) for p in lig.coords)
    far = np.array([[0.0, 0.0, 0.0], [lig.coords[0, 0] + 0.5, 1.5, 0.0]])
    assert list(atoms.select(far)) == [False, True]
    assert list(atoms.atom_ids(lig)) == [0, 1, 2, 3]

    with pytest.raises(BadArgument):
        DockingSite.from_ligand(lig, mode="pocket")
    with pytest.raises(BadArgument):
        DockingSite((0, 0, 0), -1.0)


def test_read_receptor_splits_waters(receptor_pdb):
    receptor, waters = read_receptor_pdb(receptor_pdb)
    assert receptor.num_atoms == 5
    assert {a.resname for a in receptor.atoms} == {"ALA"}
    assert [w.name for w in waters] == ["water_A_101", "water_A_102"]
    assert all(w.num_atoms == 1 for w in waters)
    assert waters[0].flex.trans_mode.value == "tethered"

    solvent = read_solvent_pdb(receptor_pdb, "free", "fixed")
    assert len(solvent) == 3
    assert solvent[-1].flex.rot_mode.value == "fixed"


def test_sdf_round_trip(ligand_sdf, tmp_path):
    lig = read_sdf_first_mol(ligand_sdf)
    assert lig.model.name == "ethanol"
    assert lig.model.num_atoms == lig.rdkit_mol.GetNumAtoms() == 9

    out = tmp_path / "poses.sdf"
    start = lig.model.coords.copy()
    moved = start + np.array([1.0, 0.0, 0.0])
    n = write_poses(str(out), lig.model, lig.rdkit_mol, [(start, {"STEP": 0}), (moved, {"STEP": 1})])
    assert n == 2
    assert np.allclose(lig.model.coords, start)

    mols = [m for m in Chem.SDMolSupplier(str(out), removeHs=False)]
    assert [m.GetProp("STEP") for m in mols] == ["0", "1"]
    assert np.allclose(mols[1].GetConformer().GetPositions(), moved, atol=1e-3)


def test_cli_score_only(receptor_pdb, ligand_sdf, capsys):
    assert main(["--receptor", receptor_pdb, "--ligand", ligand_sdf, "--keep-waters", "--score-only", "--quiet"]) == 0
    out = capsys.readouterr().out
    assert "---- Input pose ----" in out
    assert "Solvent models: 2" in out
    assert "score.inter.vdw" in out


def test_cli_short_run_writes_best_pose(receptor_pdb, ligand_sdf, tmp_path):
    cfg = {
        "protocol": "fast",
        "transforms": [
            {"class": "random-population", "name": "init", "params": {"population-size": 6}},
            {"class": "ga", "name": "ga", "params": {"number-of-cycles": 2}},
        ],
    }
    out = tmp_path / "best.sdf"
    argv = [
        "--receptor", receptor_pdb,
        "--ligand", ligand_sdf,
        "--config", json.dumps(cfg),
        "--seed", "3",
        "--out", str(out),
        "--quiet",
    ]
    assert main(argv) == 0
    mols = [m for m in Chem.SDMolSupplier(str(out), removeHs=False)]
    assert len(mols) == 1
    assert mols[0].HasProp("SCORE")
    assert mols[0].GetProp("IDXDOCK.ri") == "0"
