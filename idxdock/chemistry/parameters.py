"""idxdock.chemistry.parameters

Element-based parameter tables.

- van der Waals radii (Å): default atom radii and the vdW well position
  (r0 = R_i + R_j)
- Lennard-Jones well depths (kcal/mol)
- atomic solvation parameters and volumes for the desolvation term
  (AutoDock 4 published values, kcal/mol/Å^2 and Å^3)

All values are defaults; scoring terms accept overrides through parameters.
Unknown elements fall back to the "X" row.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from .atom_types import normalize_element

VDW_RADII: Dict[str, float] = {
    "H": 1.20,
    "C": 1.70,
    "N": 1.55,
    "O": 1.52,
    "S": 1.80,
    "P": 1.80,
    "F": 1.47,
    "Cl": 1.75,
    "Br": 1.85,
    "I": 1.98,
    "X": 1.70,
}

# largest radius any atom can get; bounds every vdW interaction range
MAX_VDW_RADIUS = max(VDW_RADII.values())

WELL_DEPTHS: Dict[str, float] = {
    "H": 0.015,
    "C": 0.055,
    "N": 0.070,
    "O": 0.120,
    "S": 0.200,
    "P": 0.200,
    "F": 0.060,
    "Cl": 0.100,
    "Br": 0.120,
    "I": 0.150,
    "X": 0.050,
}


@dataclass(frozen=True)
class SolvationParams:
    solpar: float
    volume: float


SOLVATION_TABLE: Dict[str, SolvationParams] = {
    "H":  SolvationParams(solpar=0.00051, volume=0.0),
    "C":  SolvationParams(solpar=-0.00143, volume=33.5103),
    "N":  SolvationParams(solpar=-0.00162, volume=22.4493),
    "O":  SolvationParams(solpar=-0.00251, volume=17.1573),
    "S":  SolvationParams(solpar=-0.00214, volume=33.5103),
    "P":  SolvationParams(solpar=-0.00110, volume=38.7924),
    "F":  SolvationParams(solpar=-0.00110, volume=15.4480),
    "Cl": SolvationParams(solpar=-0.00110, volume=35.8235),
    "Br": SolvationParams(solpar=-0.00110, volume=42.5661),
    "I":  SolvationParams(solpar=-0.00110, volume=55.0585),
    "X":  SolvationParams(solpar=-0.00110, volume=20.0000),
}


def vdw_radius(element: str) -> float:
    return float(VDW_RADII.get(normalize_element(element), VDW_RADII["X"]))


def well_depth(element: str) -> float:
    return float(WELL_DEPTHS.get(normalize_element(element), WELL_DEPTHS["X"]))


def get_solvation_params(element: str) -> SolvationParams:
    return SOLVATION_TABLE.get(normalize_element(element), SOLVATION_TABLE["X"])
