"""idxdock.optimize.transforms

Search protocol building blocks.

A transform is a named, parameterised step run against a workspace. Before
executing, ``go()`` sends the transform's scoring-function requests (e.g. a
partition distance) to the workspace scoring function, so a protocol can
retune the scoring function between stages.

    protocol = TransformAggregate("dock")
    protocol.add(RandomPopulationTransform("init"))
    protocol.add(GATransform("ga"))
    protocol.register(ws)
    protocol.go()
"""

from __future__ import annotations

from typing import List

from loguru import logger

from ..errors import BadArgument
from ..params import ParamHandler
from ..scoring.requests import Request
from .chromosome import build_chromosome
from .population import Population

POPULATION_SIZE = "population-size"
SCALE_CHROM_LENGTH = "scale-chromosome-length"


class BaseTransform(ParamHandler):
    def __init__(self, name: str) -> None:
        super().__init__()
        self.name = name
        self.parent = None
        self.workspace = None
        self._requests: List[Request] = []

    def register(self, workspace) -> None:
        self.workspace = workspace

    def unregister(self) -> None:
        self.workspace = None

    def add_sf_request(self, request: Request) -> None:
        self._requests.append(request)

    def clear_sf_requests(self) -> None:
        self._requests = []

    @property
    def sf_requests(self) -> List[Request]:
        return list(self._requests)

    def send_sf_requests(self) -> None:
        ws = self.workspace
        if ws is None or ws.sf is None:
            return
        for req in self._requests:
            ws.sf.handle_request(req)

    def handle_request(self, request: Request) -> None:
        pass

    def go(self):
        self.send_sf_requests()
        return self.execute()

    def execute(self):
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class NullTransform(BaseTransform):
    """Does nothing except send its scoring-function requests."""

    def execute(self):
        return None


class TransformAggregate(BaseTransform):
    def __init__(self, name: str = "protocol") -> None:
        super().__init__(name)
        self._transforms: List[BaseTransform] = []

    def add(self, transform: BaseTransform) -> BaseTransform:
        if transform is self:
            raise BadArgument(f"{self.name}: can not add an aggregate to itself")
        if transform.parent is not None:
            transform.parent.remove(transform)
        transform.parent = self
        self._transforms.append(transform)
        if self.workspace is not None:
            transform.register(self.workspace)
        return transform

    def remove(self, transform: BaseTransform) -> None:
        if transform not in self._transforms:
            raise BadArgument(f"{self.name}: {transform.name!r} is not a member of this aggregate")
        self._transforms.remove(transform)
        transform.parent = None

    @property
    def num_transforms(self) -> int:
        return len(self._transforms)

    def transform(self, i: int) -> BaseTransform:
        if not 0 <= i < len(self._transforms):
            raise BadArgument(f"{self.name}: transform index {i} out of range")
        return self._transforms[i]

    def register(self, workspace) -> None:
        self.workspace = workspace
        for t in self._transforms:
            t.register(workspace)

    def unregister(self) -> None:
        self.workspace = None
        for t in self._transforms:
            t.unregister()

    def handle_request(self, request: Request) -> None:
        for t in self._transforms:
            t.handle_request(request)

    def execute(self):
        results = []
        for t in self._transforms:
            logger.debug(f"{self.name}: running {t.name}")
            results.append(t.go())
        return results


class RandomPopulationTransform(BaseTransform):
    """Seeds the workspace population with randomised chromosomes."""

    def __init__(self, name: str = "random-population") -> None:
        super().__init__(name)
        self.add_parameter(POPULATION_SIZE, 50)
        self.add_parameter(SCALE_CHROM_LENGTH, False)

    def execute(self):
        ws = self.workspace
        if ws is None or ws.sf is None:
            return None
        template = build_chromosome(ws)
        size = int(self.get_parameter(POPULATION_SIZE))
        if self.get_parameter(SCALE_CHROM_LENGTH):
            size *= max(1, template.length)
        pop = Population(template, size, ws.sf, ws.rng)
        ws.population = pop
        best = pop.best()
        if best is not None:
            best.chromosome.sync_to_model()
            logger.info(f"{self.name}: population of {len(pop)} (genes={template.length}), best score {best.score:.3f}")
        return pop
