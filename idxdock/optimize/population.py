"""idxdock.optimize.population

Individuals and the GA population.

Fitness is the negated score (higher is better). It is computed lazily: the
chromosome is synced into the shared models and the scoring function is
called as one step, so no other individual can touch the models in between.
"""

from __future__ import annotations

from typing import List, Optional

import numpy as np

from ..errors import BadArgument
from .chromosome import Chromosome

# sigma truncation constant for fitness scaling
SIGMA_C = 2.0


class Individual:
    def __init__(self, chromosome: Chromosome) -> None:
        self._chrom = chromosome
        self._fitness: Optional[float] = None

    @property
    def chromosome(self) -> Chromosome:
        return self._chrom

    @chromosome.setter
    def chromosome(self, chrom: Chromosome) -> None:
        self._chrom = chrom
        self._fitness = None

    def invalidate(self) -> None:
        self._fitness = None

    @property
    def is_evaluated(self) -> bool:
        return self._fitness is not None

    def evaluate(self, sf) -> float:
        if self._fitness is None:
            self._chrom.sync_to_model()
            self._fitness = -float(sf.score())
        return self._fitness

    @property
    def fitness(self) -> float:
        if self._fitness is None:
            raise BadArgument("Individual has not been scored")
        return self._fitness

    @property
    def score(self) -> float:
        return -self.fitness

    def clone(self) -> "Individual":
        ind = Individual(self._chrom.clone())
        ind._fitness = self._fitness
        return ind

    def __repr__(self) -> str:
        f = "-" if self._fitness is None else f"{self._fitness:.3f}"
        return f"Individual(genes={self._chrom.length}, fitness={f})"


class Population:
    """Fixed-capacity population kept sorted by decreasing fitness."""

    def __init__(self, template: Chromosome, size: int, sf, rng: np.random.Generator) -> None:
        if size < 0:
            raise BadArgument(f"Population size must be >= 0 (got {size})")
        self._max_size = int(size)
        self._sf = sf
        self._rng = rng
        self._pop: List[Individual] = []
        for _ in range(self._max_size):
            chrom = template.clone()
            chrom.randomise(rng)
            self._pop.append(Individual(chrom))
        if self._pop and sf is not None:
            self._evaluate_all()

    # ------------------------------------------------------------------

    @property
    def max_size(self) -> int:
        return self._max_size

    def __len__(self) -> int:
        return len(self._pop)

    def individuals(self) -> List[Individual]:
        return list(self._pop)

    def individual(self, i: int) -> Individual:
        if not 0 <= i < len(self._pop):
            raise BadArgument(f"Population: index {i} out of range (0..{len(self._pop) - 1})")
        return self._pop[i]

    def best(self) -> Optional[Individual]:
        return self._pop[0] if self._pop else None

    def _fitnesses(self) -> np.ndarray:
        return np.array([ind.fitness for ind in self._pop], dtype=float)

    def score_mean(self) -> float:
        if not self._pop:
            return 0.0
        return float(self._fitnesses().mean())

    def score_variance(self) -> float:
        if not self._pop:
            return 0.0
        return float(self._fitnesses().var())

    def set_sf(self, sf) -> None:
        """Attach a (possibly new) scoring function and rescore everybody."""
        self._sf = sf
        for ind in self._pop:
            ind.invalidate()
        if self._pop and sf is not None:
            self._evaluate_all()

    def _evaluate_all(self) -> None:
        for ind in self._pop:
            ind.evaluate(self._sf)
        self._pop.sort(key=lambda ind: ind.fitness, reverse=True)

    # ------------------------------------------------------------------
    # selection

    def _scaled_fitness(self) -> np.ndarray:
        f = self._fitnesses()
        scaled = f - (f.mean() - SIGMA_C * f.std())
        return np.clip(scaled, 0.0, None)

    def _select(self, cum: np.ndarray) -> Individual:
        """Roulette wheel over the cumulative scaled fitness."""
        total = cum[-1]
        if total <= 0.0:
            return self._pop[int(self._rng.integers(len(self._pop)))]
        k = int(np.searchsorted(cum, self._rng.random() * total, side="right"))
        return self._pop[min(k, len(self._pop) - 1)]

    # ------------------------------------------------------------------

    def ga_step(
        self,
        nrepl: int,
        rel_step: float,
        equality_threshold: float,
        pcross: float,
        xovermut: bool = True,
        cmutate: bool = False,
        cauchy: bool = False,
    ) -> None:
        """One generation.

        ``nrepl`` offspring are bred in pairs from roulette-selected parents.
        With probability ``pcross`` the pair is crossed over (parents first
        mutated when ``cmutate``, children mutated after when ``xovermut``);
        otherwise both children are plain mutants. Offspring and parents are
        merged, near-duplicates (``compare < equality_threshold``) dropped and
        the fittest ``max_size`` kept. Chromosomes with no genes skip the
        duplicate check.
        """
        if not self._pop or self._sf is None:
            return
        cum = np.cumsum(self._scaled_fitness())
        offspring: List[Individual] = []
        while len(offspring) < nrepl:
            mum = self._select(cum).chromosome.clone()
            dad = self._select(cum).chromosome.clone()
            if self._rng.random() < pcross:
                if cmutate:
                    mum.mutate(self._rng, rel_step, cauchy)
                    dad.mutate(self._rng, rel_step, cauchy)
                c1, c2 = mum.crossover(dad, self._rng)
                if xovermut:
                    c1.mutate(self._rng, rel_step, cauchy)
                    c2.mutate(self._rng, rel_step, cauchy)
            else:
                c1, c2 = mum, dad
                c1.mutate(self._rng, rel_step, cauchy)
                c2.mutate(self._rng, rel_step, cauchy)
            offspring.append(Individual(c1))
            if len(offspring) < nrepl:
                offspring.append(Individual(c2))

        for ind in offspring:
            ind.evaluate(self._sf)

        merged = sorted(self._pop + offspring, key=lambda ind: ind.fitness, reverse=True)
        # without genes every pair compares equal
        dedupe = merged[0].chromosome.length > 0
        kept: List[Individual] = []
        for ind in merged:
            if dedupe and any(ind.chromosome.compare(k.chromosome) < equality_threshold for k in kept):
                continue
            kept.append(ind)
            if len(kept) == self._max_size:
                break
        self._pop = kept

    def __repr__(self) -> str:
        best = self.best()
        return f"Population(size={len(self._pop)}/{self._max_size}, best={best})"
