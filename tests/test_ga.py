import numpy as np
import pytest

from conftest import coords_of, make_ligand, make_receptor
from idxdock.optimize.genetic import (
    HISTORY_FREQ,
    META_PREFIX,
    NCONVERGENCE,
    NCYCLES,
    GAState,
    GATransform,
)
from idxdock.optimize.population import Population
from idxdock.optimize.transforms import POPULATION_SIZE, RandomPopulationTransform, TransformAggregate
from idxdock.scoring.aggregate import ScoringAggregate
from idxdock.scoring.base import ConstantTerm
from idxdock.scoring.vdw import VdwTerm
from idxdock.workspace import Workspace


class _Chrom:
    def __init__(self):
        self.synced = 0

    def sync_to_model(self):
        self.synced += 1


class _Best:
    def __init__(self, fitness):
        self.fitness = fitness
        self.chromosome = _Chrom()


class _FakePopulation:
    """Population stand-in whose best fitness follows a scripted sequence."""

    def __init__(self, fitnesses, max_size=10):
        self._fitnesses = list(fitnesses)
        self._best = _Best(self._fitnesses.pop(0))
        self.max_size = max_size
        self.steps = []
        self.sf = None

    def best(self):
        return self._best

    def score_mean(self):
        return self._best.fitness

    def score_variance(self):
        return 0.0

    def set_sf(self, sf):
        self.sf = sf

    def ga_step(self, *args):
        self.steps.append(args)
        if self._fitnesses:
            self._best.fitness = self._fitnesses.pop(0)


def _workspace(pop):
    ws = Workspace("ga", seed=0)
    ws.receptor = make_receptor()
    ws.ligand = make_ligand()
    ws.set_sf(ConstantTerm("score", 1.0))
    ws.population = pop
    return ws


def _ga(ws, **params):
    ga = GATransform()
    ga.set_parameters(params)
    ga.register(ws)
    return ga


def test_stops_after_convergence_window_without_improvement():
    # one improvement in the first cycle, then flat
    pop = _FakePopulation([-10.0, -5.0] + [-5.0] * 50)
    ws = _workspace(pop)
    result = _ga(ws).go()
    assert result.cycles == 7
    assert result.convergence == 6
    assert result.state is GAState.CONVERGED
    assert result.best_fitness == -5.0
    assert result.best_score == 5.0
    assert pop.sf is ws.sf


def test_strict_improvement_is_required():
    pop = _FakePopulation([-10.0] * 20)
    result = _ga(_workspace(pop), **{NCONVERGENCE: 3}).go()
    assert result.cycles == 3
    assert result.state is GAState.CONVERGED


def test_runs_all_cycles_while_improving():
    pop = _FakePopulation([-200.0 + i for i in range(150)])
    result = _ga(_workspace(pop)).go()
    assert result.cycles == 100
    assert result.convergence == 0
    assert result.state is GAState.EXHAUSTED_CYCLES
    assert len(pop.steps) == 100


def test_step_arguments_come_from_parameters():
    pop = _FakePopulation([-1.0] * 5, max_size=30)
    _ga(_workspace(pop), **{NCYCLES: 1, "fraction-of-new-individuals": 0.2, "cauchy-mutation": True}).go()
    nrepl, rel_step, equality, pcross, xovermut, cmutate, cauchy = pop.steps[0]
    assert nrepl == 6
    assert (rel_step, equality, pcross) == (1.0, 0.1, 0.4)
    assert xovermut is True and cmutate is False and cauchy is True


def test_history_is_saved_every_n_cycles():
    pop = _FakePopulation([-1.0] * 10)
    ws = _workspace(pop)
    _ga(ws, **{NCYCLES: 5, NCONVERGENCE: 100, HISTORY_FREQ: 2}).go()
    assert len(ws.history) == 3
    assert ws.history[0].scores["score"] == 1.0
    # three history syncs plus the final one
    assert pop.best().chromosome.synced == 4


def test_final_pose_is_synced_and_annotated():
    pop = _FakePopulation([-1.0] * 10)
    ws = _workspace(pop)
    _ga(ws).go()
    assert pop.best().chromosome.synced == 1
    assert ws.ligand.data[META_PREFIX + "ri"] == ws.receptor.current_coords


def test_empty_population_is_a_no_op():
    ws = _workspace(None)
    lig = ws.ligand
    before = coords_of(lig)
    ws.population = Population(_NoGenes(), 0, ws.sf, ws.rng)
    result = _ga(ws).go()
    assert result.cycles == 0
    assert result.state is GAState.INITIALIZED
    assert np.array_equal(lig.coords, before)
    assert META_PREFIX + "ri" not in lig.data


class _NoGenes:
    def clone(self):
        return self


def test_missing_workspace_pieces_are_no_ops():
    ga = GATransform()
    assert ga.go().cycles == 0

    ws = Workspace("bare")
    ga.register(ws)
    assert ga.go().cycles == 0

    ws.set_sf(ConstantTerm("score"))
    assert ga.go().cycles == 0


def test_small_docking_run(complex_ws):
    root = ScoringAggregate("score")
    root.add(ScoringAggregate("inter")).add(VdwTerm())
    ws = complex_ws(root, seed=7)

    protocol = TransformAggregate("dock")
    init = protocol.add(RandomPopulationTransform("init"))
    init.set_parameter(POPULATION_SIZE, 12)
    ga = protocol.add(GATransform("ga"))
    ga.set_parameters({NCYCLES: 5, NCONVERGENCE: 3})
    protocol.register(ws)

    pop, result = protocol.go()
    assert len(pop) <= 12
    assert 1 <= result.cycles <= 5
    # the ligand ends in the best pose found
    assert ws.sf.score() == pytest.approx(pop.best().score, abs=1e-6)
    assert ws.ligand.data[META_PREFIX + "ri"] == 0
