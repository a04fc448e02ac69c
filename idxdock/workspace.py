"""idxdock.workspace

The docking workspace: receptor, ligand, explicit solvent, docking site,
scoring function, population and history, plus the random generator every
stochastic component draws from.

Assigning a model pushes the change through the scoring-function tree at once
(``cascade_structural_change``), so ``sf.score()`` is always consistent with
the current models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
from loguru import logger

from .scoring.aggregate import cascade_structural_change
from .scoring.base import Change


@dataclass
class HistoryRecord:
    ligand_coords: Optional[np.ndarray]
    scores: Dict[str, float] = field(default_factory=dict)


class Workspace:
    def __init__(self, name: str = "workspace", seed: Optional[int] = None) -> None:
        self.name = name
        self.rng = np.random.default_rng(seed)
        self._receptor = None
        self._ligand = None
        self._solvent: List = []
        self._site = None
        self._sf = None
        self.population = None
        self.history: List[HistoryRecord] = []

    # ------------------------------------------------------------------
    # models

    @property
    def receptor(self):
        return self._receptor

    @receptor.setter
    def receptor(self, model) -> None:
        self._receptor = model
        logger.debug(f"{self.name}: receptor = {model!r}")
        self._cascade(Change.RECEPTOR)

    @property
    def ligand(self):
        return self._ligand

    @ligand.setter
    def ligand(self, model) -> None:
        self._ligand = model
        logger.debug(f"{self.name}: ligand = {model!r}")
        self._cascade(Change.LIGAND)

    @property
    def solvent(self) -> List:
        return list(self._solvent)

    @solvent.setter
    def solvent(self, models) -> None:
        self._solvent = [m for m in (models or []) if m is not None]
        logger.debug(f"{self.name}: {len(self._solvent)} solvent model(s)")
        self._cascade(Change.SOLVENT)

    def remove_solvent(self) -> None:
        self.solvent = []

    @property
    def docking_site(self):
        return self._site

    @docking_site.setter
    def docking_site(self, site) -> None:
        self._site = site
        # receptor selection and solvent grid bounds both depend on the site
        self._cascade(Change.RECEPTOR)
        self._cascade(Change.SOLVENT)

    # ------------------------------------------------------------------
    # scoring function

    @property
    def sf(self):
        return self._sf

    @sf.setter
    def sf(self, sf) -> None:
        self.set_sf(sf)

    def set_sf(self, sf) -> None:
        if self._sf is not None and self._sf is not sf:
            self._sf.unregister()
        self._sf = sf
        if sf is not None:
            sf.register(self)

    def _cascade(self, change: Change) -> None:
        if self._sf is not None:
            cascade_structural_change(self._sf, change)

    def score(self) -> float:
        return 0.0 if self._sf is None else float(self._sf.score())

    def score_map(self) -> Dict[str, float]:
        return {} if self._sf is None else self._sf.score_map()

    # ------------------------------------------------------------------
    # history

    def save_history(self) -> HistoryRecord:
        lig = None if self._ligand is None else self._ligand.coords.copy()
        rec = HistoryRecord(lig, self.score_map())
        self.history.append(rec)
        return rec

    def __repr__(self) -> str:
        return (
            f"Workspace({self.name!r}, receptor={self._receptor!r}, ligand={self._ligand!r}, "
            f"solvent={len(self._solvent)})"
        )
