import numpy as np
import pytest
from rdkit import Chem, RDLogger
from rdkit.Chem import AllChem

from idxdock.chemistry.flex import RigidBodyFlex
from idxdock.chemistry.model import Model
from idxdock.geometry.site import DockingSite
from idxdock.workspace import Workspace


@pytest.fixture(scope="session", autouse=True)
def _silence_rdkit():
    RDLogger.DisableLog("rdApp.*")


@pytest.fixture
def mol3d():
    """Factory fixture: build a small 3D molecule deterministically."""
    def _make(smiles: str, seed: int = 0xC0FFEE):
        mol = Chem.AddHs(Chem.MolFromSmiles(smiles))
        res = AllChem.EmbedMolecule(mol, randomSeed=seed)
        assert res == 0
        AllChem.UFFOptimizeMolecule(mol, maxIters=50)
        return mol
    return _make


def make_receptor():
    # hydroxyl, amine and a lone methyl carbon
    return Model(
        "rec",
        ["C", "O", "H", "C", "N", "H", "C"],
        [
            (0.0, 0.0, 0.0),
            (1.43, 0.0, 0.0),
            (1.75, 0.9, 0.0),
            (0.0, 3.0, 0.0),
            (1.47, 3.0, 0.0),
            (1.8, 3.9, 0.3),
            (-1.0, -3.0, 0.5),
        ],
        bonds=[(0, 1), (1, 2), (3, 4), (4, 5)],
        residues=[("SER", 1, "A")] * 3 + [("LYS", 2, "A")] * 3 + [("ALA", 3, "A")],
    )


def make_ligand():
    return Model(
        "lig",
        ["O", "C", "N", "H"],
        [(4.3, 1.5, 0.0), (5.7, 1.5, 0.0), (6.4, 2.7, 0.0), (7.4, 2.7, 0.0)],
        bonds=[(0, 1), (1, 2), (2, 3)],
        flex=RigidBodyFlex("free", "free"),
    )


WATER_COORDS = [
    [(3.2, -1.2, 1.0), (3.8, -0.6, 1.4), (2.4, -0.8, 1.3)],
    [(2.8, 4.2, -1.5), (3.4, 3.6, -1.0), (2.0, 3.8, -1.1)],
    [(5.5, -0.5, -2.0), (6.1, 0.1, -1.6), (4.8, -0.1, -2.5)],
    [(4.4, 3.8, 1.7), (4.9, 3.2, 1.1), (3.6, 3.3, 1.9)],
]


def make_waters(trans="tethered", rot="tethered"):
    return [
        Model(
            f"water_{i + 1}",
            ["O", "H", "H"],
            xyz,
            bonds=[(0, 1), (0, 2)],
            flex=RigidBodyFlex(trans, rot, 1.0, 30.0),
        )
        for i, xyz in enumerate(WATER_COORDS)
    ]


@pytest.fixture
def receptor():
    return make_receptor()


@pytest.fixture
def ligand():
    return make_ligand()


@pytest.fixture
def waters():
    return make_waters()


@pytest.fixture
def complex_ws():
    """Factory: workspace with receptor, ligand, docking site and the given solvent + scoring function."""
    def _make(sf, solvent=None, seed=0):
        ws = Workspace("test", seed=seed)
        rec, lig = make_receptor(), make_ligand()
        ws.receptor = rec
        ws.ligand = lig
        ws.solvent = solvent or []
        ws.docking_site = DockingSite.from_ligand(lig, radius=8.0)
        ws.set_sf(sf)
        return ws
    return _make


def assert_close(a, b, tol=1e-4):
    assert abs(float(a) - float(b)) < tol, f"{a} != {b}"


def coords_of(model):
    return np.array(model.coords, copy=True)
