"""idxdock.optimize.genetic

Genetic algorithm driver over the workspace population.

Each cycle:
1. (history) every ``history-frequency`` cycles the best pose is synced to
   the models and a history record is saved
2. one ``Population.ga_step``
3. the best fitness is compared with the best seen so far; a strict
   improvement resets the convergence counter, anything else increments it

The loop stops after ``number-of-cycles`` cycles or when the convergence
counter reaches ``number-for-convergence``. The scoring function is switched
to full range first (partition distance 0), and the population is rescored
in case the scoring function changed since it was built.

A missing workspace, scoring function or population (or a population of
capacity 0) is a no-op.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from loguru import logger

from ..scoring.requests import PartitionRequest
from .transforms import BaseTransform

META_PREFIX = "IDXDOCK."

NEW_FRACTION = "fraction-of-new-individuals"
PCROSSOVER = "crossover-probability"
XOVERMUT = "crossover-mutation"
CMUTATE = "crossover-mutate"
STEP_SIZE = "step-size"
EQUALITY_THRESHOLD = "equality-threshold"
NCYCLES = "number-of-cycles"
NCONVERGENCE = "number-for-convergence"
HISTORY_FREQ = "history-frequency"
CAUCHY = "cauchy-mutation"


class GAState(Enum):
    INITIALIZED = "initialized"
    CYCLING = "cycling"
    CONVERGED = "converged"
    EXHAUSTED_CYCLES = "exhausted-cycles"


@dataclass
class GAResult:
    cycles: int
    convergence: int
    state: GAState
    best_fitness: Optional[float]

    @property
    def best_score(self) -> Optional[float]:
        return None if self.best_fitness is None else -self.best_fitness


class GATransform(BaseTransform):
    def __init__(self, name: str = "ga") -> None:
        super().__init__(name)
        self.add_parameter(NEW_FRACTION, 0.5)
        self.add_parameter(PCROSSOVER, 0.4)
        self.add_parameter(XOVERMUT, True)
        self.add_parameter(CMUTATE, False)
        self.add_parameter(STEP_SIZE, 1.0)
        self.add_parameter(EQUALITY_THRESHOLD, 0.1)
        self.add_parameter(NCYCLES, 100)
        self.add_parameter(NCONVERGENCE, 6)
        self.add_parameter(HISTORY_FREQ, 0)
        self.add_parameter(CAUCHY, False)
        self.state = GAState.INITIALIZED

    def execute(self) -> GAResult:
        self.state = GAState.INITIALIZED
        noop = GAResult(0, 0, self.state, None)
        ws = self.workspace
        if ws is None:
            return noop
        sf = ws.sf
        if sf is None:
            return noop
        pop = ws.population
        if pop is None or pop.max_size < 1:
            return noop

        # poses move arbitrarily far between generations
        sf.handle_request(PartitionRequest(0.0))
        pop.set_sf(sf)

        new_fraction = float(self.get_parameter(NEW_FRACTION))
        pcross = float(self.get_parameter(PCROSSOVER))
        xovermut = bool(self.get_parameter(XOVERMUT))
        cmutate = bool(self.get_parameter(CMUTATE))
        rel_step = float(self.get_parameter(STEP_SIZE))
        equality = float(self.get_parameter(EQUALITY_THRESHOLD))
        n_cycles = int(self.get_parameter(NCYCLES))
        n_conv = int(self.get_parameter(NCONVERGENCE))
        his_freq = int(self.get_parameter(HISTORY_FREQ))
        cauchy = bool(self.get_parameter(CAUCHY))

        nrepl = int(new_fraction * pop.max_size)
        best_fitness = pop.best().fitness
        conv = 0

        logger.info("CYCLE CONV      BEST      MEAN       VAR")
        logger.info(f" Init    -{best_fitness:10.3f}{pop.score_mean():10.3f}{pop.score_variance():10.3f}")

        self.state = GAState.CYCLING
        cycle = 0
        while cycle < n_cycles and conv < n_conv:
            if his_freq > 0 and cycle % his_freq == 0:
                pop.best().chromosome.sync_to_model()
                ws.save_history()
            pop.ga_step(nrepl, rel_step, equality, pcross, xovermut, cmutate, cauchy)
            fitness = pop.best().fitness
            if fitness > best_fitness:
                best_fitness = fitness
                conv = 0
            else:
                conv += 1
            logger.info(f"{cycle:5d}{conv:5d}{fitness:10.3f}{pop.score_mean():10.3f}{pop.score_variance():10.3f}")
            cycle += 1

        self.state = GAState.CONVERGED if conv >= n_conv else GAState.EXHAUSTED_CYCLES
        pop.best().chromosome.sync_to_model()
        if ws.ligand is not None and ws.receptor is not None:
            ws.ligand.set_data_value(META_PREFIX + "ri", ws.receptor.current_coords)
        return GAResult(cycle, conv, self.state, best_fitness)


GAScheduler = GATransform
