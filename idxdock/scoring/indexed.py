"""idxdock.scoring.indexed

Grid-indexed pair scoring shared by the vdW, polar and desolvation terms.

The raw score is split five ways:

    inter               ligand vs receptor (receptor grid, one lookup per ligand centre)
    ligand-solvent      ligand vs fixed/tethered solvent (solvent grid)
                        + free solvent vs ligand (brute force)
    intra-receptor      flexible receptor centres (partitioned map)
    intra-solvent       fixed/tethered vs fixed/tethered (partitioned map)
                        + free vs fixed/tethered (solvent grid)
                        + free vs free (unpartitioned map)
    receptor-solvent    every solvent centre vs the receptor grid

inter + ligand-solvent is reported under the term's own name, the other three
under ``<root>.system``.

Solvent centres are split by mobility (FlexAtomFactory): fixed and tethered
centres are indexed on the solvent grid with their radius inflated by their
maximum displacement, free centres always go through the brute-force paths.
With FAST_SOLVENT off every solvent centre is treated as free; both settings
give the same score.

Every ``setup_*`` call rebuilds one IndexedTermState from the workspace.
Subclasses provide the centres, their per-centre arrays, the range bound and
the kernel call.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Dict, List, NamedTuple, Optional, Set

import numpy as np
from loguru import logger

from ..chemistry.flex import FlexAtomFactory
from ..geometry.grid import SpatialIndexGrid
from .base import ScoringTerm
from .centers import AtomTable, CenterTable, InteractionCenter, SingleAtom
from .numba.adapters import query_arrays, single_row_csr
from .partition import InteractionMap, InteractionPartitioner, partition_distance
from .requests import PartitionRequest, Request

GRID_STEP = "GRID_STEP"
BORDER = "BORDER"
FAST_SOLVENT = "FAST_SOLVENT"
THRESHOLD_ATTR = "THRESHOLD_ATTR"
THRESHOLD_REP = "THRESHOLD_REP"
ANNOTATE = "ANNOTATE"
ANNOTATION_THRESHOLD = "ANNOTATION_THRESHOLD"

# -OH / -NH3+ protons can not move further than this
FLEX_DIST = 2.0


def _no_ids() -> np.ndarray:
    return np.zeros(0, dtype=np.int64)


class ScoreContext(NamedTuple):
    pos: np.ndarray
    aux: np.ndarray
    en: np.ndarray


@dataclass(frozen=True)
class Annotation:
    atom1: object
    atom2: object
    distance: float
    score: float

    def render(self) -> str:
        a1, a2 = self.atom1, self.atom2
        return (f"{a1.model.name}:{a1.name},{a2.residue_label}:{a2.name},"
                f"{self.distance:.3f},{self.score:.3f}")


@dataclass(frozen=True, eq=False)
class IndexedTermState:
    atoms: AtomTable
    centers: CenterTable
    attrs: Dict[str, np.ndarray]
    ranges: np.ndarray
    max_range: float
    rec_ids: np.ndarray = field(default_factory=_no_ids)
    rec_site_ids: np.ndarray = field(default_factory=_no_ids)
    rec_grid: Optional[SpatialIndexGrid] = None
    rec_flex_ids: np.ndarray = field(default_factory=_no_ids)
    rec_flex_map: Optional[InteractionMap] = None
    n_rec_coords: int = 0
    lig_ids: np.ndarray = field(default_factory=_no_ids)
    solv_ids: np.ndarray = field(default_factory=_no_ids)
    solv_fixteth_ids: np.ndarray = field(default_factory=_no_ids)
    solv_free_ids: np.ndarray = field(default_factory=_no_ids)
    solv_grid: Optional[SpatialIndexGrid] = None
    solv_fixteth_map: Optional[InteractionMap] = None
    solv_free_map: Optional[InteractionMap] = None
    max_solvent_flex: float = 0.0
    partition_dist: float = 0.0
    lig_rec_map: Optional[InteractionMap] = None
    lig_free_map: Optional[InteractionMap] = None
    owner: np.ndarray = field(default_factory=_no_ids)


class IndexedTerm(ScoringTerm):
    """Base class for grid-indexed pair terms."""

    # parameters whose change invalidates the cached state
    SETUP_PARAMS: Set[str] = {GRID_STEP, BORDER, FAST_SOLVENT}

    def __init__(self, name: str, weight: float = 1.0) -> None:
        super().__init__(name, weight)
        self.add_parameter(GRID_STEP, 0.5)
        self.add_parameter(BORDER, 1.0)
        self.add_parameter(FAST_SOLVENT, True)
        self.add_parameter(THRESHOLD_ATTR, -0.5)
        self.add_parameter(THRESHOLD_REP, 0.5)
        self.add_parameter(ANNOTATE, False)
        self.add_parameter(ANNOTATION_THRESHOLD, 0.0)
        self._state: Optional[IndexedTermState] = None
        self._partition = 0.0
        self.nattr = 0
        self.nrep = 0
        self.annotations: List[Annotation] = []

    # ------------------------------------------------------------------
    # subclass hooks

    def build_centers(self, model, table: AtomTable) -> List[InteractionCenter]:
        """One single-atom centre per atom (global ids)."""
        return [InteractionCenter(SingleAtom(int(g))) for g in table.gids(model)]

    def center_attrs(self, table: AtomTable, centers: CenterTable) -> Dict[str, np.ndarray]:
        return {}

    def center_ranges(self, centers: CenterTable, attrs: Dict[str, np.ndarray]) -> np.ndarray:
        """Largest interaction distance of each centre against any partner."""
        raise NotImplementedError

    def query_sums(self, q_ids, q_rows, start, items, ctx: ScoreContext, state: IndexedTermState) -> np.ndarray:
        raise NotImplementedError

    def pair_energy(self, i: int, j: int, ctx: ScoreContext, state: IndexedTermState) -> float:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # setup

    @property
    def state(self) -> Optional[IndexedTermState]:
        return self._state

    def register(self, workspace) -> None:
        self.workspace = workspace
        self._rebuild()
        self.setup_score()

    def setup_receptor(self) -> None:
        self._rebuild()

    def setup_ligand(self) -> None:
        self._rebuild()

    def setup_solvent(self) -> None:
        self._rebuild()

    def parameter_updated(self, name: str) -> None:
        if name in self.SETUP_PARAMS and self.workspace is not None:
            self._rebuild()

    def _grid_for(self, lo, hi) -> SpatialIndexGrid:
        return SpatialIndexGrid.create_grid(lo, hi, self.get_parameter(GRID_STEP), self.get_parameter(BORDER))

    def _max_error(self) -> float:
        return 0.5 * math.sqrt(3.0) * float(self.get_parameter(GRID_STEP))

    def _rebuild(self) -> None:
        ws = self.workspace
        if ws is None:
            self._state = None
            return
        state = self._build_state(ws)
        if self._partition > 0.0:
            state = self._partitioned(state, self._partition)
        self._state = state

    def _build_state(self, ws) -> IndexedTermState:
        receptor = ws.receptor
        ligand = ws.ligand
        solvent = list(ws.solvent)
        table = AtomTable([receptor, ligand] + solvent)

        centers: List[InteractionCenter] = []
        for m in table.models:
            centers.extend(self.build_centers(m, table))
        ctab = CenterTable(centers)
        attrs = self.center_attrs(table, ctab)
        ranges = self.center_ranges(ctab, attrs) if len(ctab) else np.zeros(0, dtype=float)
        max_range = float(ranges.max()) if ranges.size else 0.0
        owner = table.owner[ctab.point[:, 0]] if len(ctab) else _no_ids()

        def ids_of(model) -> np.ndarray:
            if model is None:
                return _no_ids()
            return np.flatnonzero(owner == table.slot(model)).astype(np.int64)

        state = IndexedTermState(
            atoms=table,
            centers=ctab,
            attrs=attrs,
            ranges=ranges,
            max_range=max_range,
            rec_ids=ids_of(receptor),
            lig_ids=ids_of(ligand),
            solv_ids=np.concatenate([ids_of(m) for m in solvent]) if solvent else _no_ids(),
            owner=owner,
        )
        if receptor is not None:
            state = self._setup_receptor_state(state, ws)
        if solvent:
            state = self._setup_solvent_state(state, ws)
        return state

    def _exclusions(self, state: IndexedTermState, ids: np.ndarray) -> Dict[int, Set[int]]:
        """Centres sharing atoms or within 1-3 bonds of each other never pair."""
        ctab, table = state.centers, state.atoms
        by_atom: Dict[int, Set[int]] = {}
        for c in ids:
            for a in ctab.members(int(c)):
                by_atom.setdefault(a, set()).add(int(c))
        out: Dict[int, Set[int]] = {}
        for c in ids:
            ex: Set[int] = set()
            for a in ctab.members(int(c)):
                for b in table.excluded(a, 2):
                    ex.update(by_atom.get(b, ()))
            ex.discard(int(c))
            out[int(c)] = ex
        return out

    def _setup_receptor_state(self, state: IndexedTermState, ws) -> IndexedTermState:
        receptor = ws.receptor
        site = ws.docking_site
        ctab, table = state.centers, state.atoms
        rec_ids = state.rec_ids
        max_error = self._max_error()
        corrected = state.max_range + max_error

        def site_selection(pos: np.ndarray) -> np.ndarray:
            if site is None:
                return rec_ids
            return rec_ids[site.select(pos[rec_ids], 0.0, corrected)]

        pos = ctab.positions(table.coords())
        if site is not None:
            lo, hi = site.bounds()
        elif rec_ids.size:
            lo, hi = pos[rec_ids].min(axis=0), pos[rec_ids].max(axis=0)
        else:
            lo = hi = np.zeros(3)
        grid = self._grid_for(lo, hi)

        n_coords = receptor.num_saved_coords
        flex_ids = _no_ids()
        flex_map = None
        if n_coords > 1:
            # receptor ensemble: index every saved conformer on one grid
            current = receptor.current_coords
            backup = receptor.coords.copy()
            selected = []
            try:
                for i in range(1, n_coords + 1):
                    logger.debug(f"{self.full_name}: indexing receptor coords #{i}")
                    receptor.revert_coords(i)
                    p = ctab.positions(table.coords())
                    sel = site_selection(p)
                    for c in sel:
                        grid.insert_with_radius(int(c), p[c], state.ranges[c] + max_error)
                    grid.deduplicate()
                    selected.append(sel)
            finally:
                if current > 0:
                    receptor.revert_coords(current)
                else:
                    receptor.set_coords(backup)
            site_ids = np.unique(np.concatenate(selected)) if selected else _no_ids()
        else:
            site_ids = site_selection(pos)
            rigid_ids = site_ids
            if receptor.is_flexible():
                factory = FlexAtomFactory(receptor)
                moving = {table.gid(receptor, a.idx) for a in factory.tethered_atoms() + factory.free_atoms()}
                flex_mask = np.array([any(a in moving for a in ctab.members(int(c))) for c in site_ids], dtype=bool)
                flex_ids = site_ids[flex_mask] if site_ids.size else _no_ids()
                rigid_ids = site_ids[~flex_mask] if site_ids.size else _no_ids()
                flex_dist = max([FLEX_DIST] + [a.user2 for a in factory.tethered_atoms()])

                partitioner = InteractionPartitioner(self._exclusions(state, site_ids))
                candidates = InteractionPartitioner.merge(
                    partitioner.build_candidate_map(flex_ids),
                    partitioner.build_candidate_map(flex_ids, rigid_ids),
                )
                flex_map = InteractionPartitioner.partition(
                    candidates, pos, partition_distance(state.max_range, flex_dist)
                )
                for c in flex_ids:
                    grid.insert_with_radius(int(c), pos[c], state.ranges[c] + max_error + flex_dist)
            for c in rigid_ids:
                grid.insert_with_radius(int(c), pos[c], state.ranges[c] + max_error)

        logger.debug(
            f"{self.full_name}: indexed {len(site_ids)} receptor centres "
            f"({max(n_coords, 1)} conformer(s), {len(flex_ids)} flexible) on {grid}"
        )
        state = replace(
            state,
            rec_site_ids=site_ids,
            rec_grid=grid,
            rec_flex_ids=flex_ids,
            rec_flex_map=flex_map,
            n_rec_coords=n_coords,
        )
        if flex_map is not None:
            logger.debug(f"{ws.name} {self.full_name}: intra-receptor score = {self._receptor_score(state, self._context(state)):.4f}")
        return state

    def _setup_solvent_state(self, state: IndexedTermState, ws) -> IndexedTermState:
        ctab, table = state.centers, state.atoms
        fast = bool(self.get_parameter(FAST_SOLVENT))
        fixteth: List[int] = []
        free: List[int] = []
        flex = np.zeros(len(ctab), dtype=float)

        for m in ws.solvent:
            ids = np.flatnonzero(state.owner == table.slot(m))
            if not fast:
                free.extend(int(c) for c in ids)
                continue
            factory = FlexAtomFactory(m)
            free_atoms = {table.gid(m, a.idx) for a in factory.free_atoms()}
            for c in ids:
                members = ctab.members(int(c))
                if any(a in free_atoms for a in members):
                    free.append(int(c))
                else:
                    fixteth.append(int(c))
                    flex[c] = max(table.atoms[a].user2 for a in members)

        fixteth_ids = np.asarray(fixteth, dtype=np.int64)
        free_ids = np.asarray(free, dtype=np.int64)
        pos = ctab.positions(table.coords())
        grid = None
        fixteth_map = None
        free_map = None
        max_flex = 0.0

        if fixteth_ids.size:
            max_error = self._max_error()
            radii = state.ranges[fixteth_ids] + max_error + flex[fixteth_ids]
            lo = (pos[fixteth_ids] - radii[:, None]).min(axis=0)
            hi = (pos[fixteth_ids] + radii[:, None]).max(axis=0)
            if ws.docking_site is not None:
                slo, shi = ws.docking_site.bounds()
                lo, hi = np.minimum(lo, slo), np.maximum(hi, shi)
            grid = self._grid_for(lo, hi)
            for c, r in zip(fixteth_ids, radii):
                grid.insert_with_radius(int(c), pos[c], float(r))
            max_flex = float(flex[fixteth_ids].max())

            partitioner = InteractionPartitioner(self._exclusions(state, fixteth_ids))
            fixteth_map = InteractionPartitioner.partition(
                partitioner.build_candidate_map(fixteth_ids), pos, partition_distance(state.max_range, max_flex)
            )
            logger.info(f"{self.full_name}: faster scoring of fixed/tethered solvent is enabled")
            logger.info(f"{self.full_name}: #fixed/tethered solvent centres = {fixteth_ids.size}")
            logger.info(f"{self.full_name}: max displacement of any fixed/tethered solvent centre = {max_flex:.3f} A")

        if free_ids.size:
            partitioner = InteractionPartitioner(self._exclusions(state, free_ids))
            free_map = partitioner.build_candidate_map(free_ids)
            if fast:
                logger.info(f"{self.full_name}: scoring of freely translating solvent can not be optimised")
                logger.info(f"{self.full_name}: #free solvent centres = {free_ids.size}")
            else:
                logger.info(f"{self.full_name}: faster scoring of fixed/tethered solvent is disabled")

        return replace(
            state,
            solv_fixteth_ids=fixteth_ids,
            solv_free_ids=free_ids,
            solv_grid=grid,
            solv_fixteth_map=fixteth_map,
            solv_free_map=free_map,
            max_solvent_flex=max_flex,
        )

    # ------------------------------------------------------------------
    # partition requests

    def handle_request(self, request: Request) -> None:
        super().handle_request(request)
        if isinstance(request, PartitionRequest):
            self._partition = float(request.distance)
            if self._state is not None:
                if self._partition > 0.0:
                    self._state = self._partitioned(self._state, self._partition)
                else:
                    self._state = replace(self._state, lig_rec_map=None, lig_free_map=None, partition_dist=0.0)

    def _partitioned(self, state: IndexedTermState, dist: float) -> IndexedTermState:
        """Ligand-receptor and ligand-free-solvent lists restricted to max_range + 2 * dist."""
        pos = state.centers.positions(state.atoms.coords())
        threshold = partition_distance(state.max_range, dist)
        partitioner = InteractionPartitioner()
        lig_rec = None
        lig_free = None
        if state.rec_grid is not None:
            lig_rec = partitioner.partition(
                partitioner.build_candidate_map(state.lig_ids, state.rec_site_ids), pos, threshold
            )
        if state.solv_free_ids.size:
            lig_free = partitioner.partition(
                partitioner.build_candidate_map(state.solv_free_ids, state.lig_ids), pos, threshold
            )
        return replace(state, lig_rec_map=lig_rec, lig_free_map=lig_free, partition_dist=float(dist))

    # ------------------------------------------------------------------
    # scoring

    def _context(self, state: IndexedTermState) -> ScoreContext:
        ctab, table = state.centers, state.atoms
        xyz = table.coords()
        return ScoreContext(
            np.ascontiguousarray(ctab.positions(xyz)),
            np.ascontiguousarray(ctab.aux_positions(xyz)),
            np.ascontiguousarray(ctab.enabled(table.enabled())),
        )

    def _run(self, state, ids, rows, csr, ctx) -> np.ndarray:
        if len(ids) == 0:
            return np.zeros(0, dtype=float)
        q_ids, q_rows = query_arrays(ids, rows)
        return self.query_sums(q_ids, q_rows, csr[0], csr[1], ctx, state)

    def _grid_sums(self, state, ids, grid, ctx) -> np.ndarray:
        if grid is None or len(ids) == 0:
            return np.zeros(len(ids), dtype=float)
        return self._run(state, ids, grid.cell_indices(ctx.pos[ids]), grid.csr(), ctx)

    def _map_sums(self, state, imap: Optional[InteractionMap], ctx) -> np.ndarray:
        if imap is None or len(imap) == 0:
            return np.zeros(0, dtype=float)
        return self._run(state, imap.anchors, np.arange(len(imap)), imap.csr(partitioned=True), ctx)

    def _brute_sums(self, state, ids, partners, ctx) -> np.ndarray:
        if len(ids) == 0 or len(partners) == 0:
            return np.zeros(len(ids), dtype=float)
        return self._run(state, ids, np.zeros(len(ids), dtype=np.int64), single_row_csr(partners), ctx)

    def _inter_sums(self, state, ctx) -> np.ndarray:
        if state.lig_rec_map is not None:
            return self._map_sums(state, state.lig_rec_map, ctx)
        return self._grid_sums(state, state.lig_ids, state.rec_grid, ctx)

    def _inter_score(self, state, ctx) -> float:
        per = self._inter_sums(state, ctx)
        self.nrep = int(np.count_nonzero(per > self.get_parameter(THRESHOLD_REP)))
        self.nattr = int(np.count_nonzero(per < self.get_parameter(THRESHOLD_ATTR)))
        return float(per.sum())

    def _ligand_solvent_score(self, state, ctx) -> float:
        s = float(self._grid_sums(state, state.lig_ids, state.solv_grid, ctx).sum())
        if state.lig_free_map is not None:
            s += float(self._map_sums(state, state.lig_free_map, ctx).sum())
        else:
            s += float(self._brute_sums(state, state.solv_free_ids, state.lig_ids, ctx).sum())
        return s

    def _receptor_score(self, state, ctx) -> float:
        return float(self._map_sums(state, state.rec_flex_map, ctx).sum())

    def _solvent_score(self, state, ctx) -> float:
        s = float(self._map_sums(state, state.solv_fixteth_map, ctx).sum())
        s += float(self._grid_sums(state, state.solv_free_ids, state.solv_grid, ctx).sum())
        s += float(self._map_sums(state, state.solv_free_map, ctx).sum())
        return s

    def _receptor_solvent_score(self, state, ctx) -> float:
        return float(self._grid_sums(state, state.solv_ids, state.rec_grid, ctx).sum())

    def _with_state(self, fn) -> float:
        state = self._state
        if state is None or len(state.centers) == 0:
            return 0.0
        return fn(state, self._context(state))

    def inter_score(self) -> float:
        return self._with_state(self._inter_score)

    def ligand_solvent_score(self) -> float:
        return self._with_state(self._ligand_solvent_score)

    def receptor_score(self) -> float:
        return self._with_state(self._receptor_score)

    def solvent_score(self) -> float:
        return self._with_state(self._solvent_score)

    def receptor_solvent_score(self) -> float:
        return self._with_state(self._receptor_solvent_score)

    def raw_score(self) -> float:
        def total(state, ctx):
            return (
                self._inter_score(state, ctx)
                + self._ligand_solvent_score(state, ctx)
                + self._receptor_score(state, ctx)
                + self._solvent_score(state, ctx)
                + self._receptor_solvent_score(state, ctx)
            )
        return self._with_state(total)

    def system_score(self) -> float:
        def system(state, ctx):
            return (
                self._receptor_score(state, ctx)
                + self._solvent_score(state, ctx)
                + self._receptor_solvent_score(state, ctx)
            )
        return self._with_state(system)

    def score_map(self, scores=None):
        if scores is None:
            scores = {}
        if not self.enabled:
            return scores
        state = self._state
        inter = system = 0.0
        self.nattr = self.nrep = 0
        if state is not None and len(state.centers):
            ctx = self._context(state)
            inter = self._inter_score(state, ctx) + self._ligand_solvent_score(state, ctx)
            system = (
                self._receptor_score(state, ctx)
                + self._solvent_score(state, ctx)
                + self._receptor_solvent_score(state, ctx)
            )
            if self.get_parameter(ANNOTATE):
                self.annotations = self._annotate(state, ctx)
        name = self.full_name
        scores[name] = inter
        self._add_to_parent_entry(scores, inter)
        self._add_to_system(scores, system)
        scores[f"{name}.nattr"] = self.nattr
        scores[f"{name}.nrep"] = self.nrep
        return scores

    # ------------------------------------------------------------------
    # annotations

    def _annotate(self, state, ctx) -> List[Annotation]:
        """Ligand-receptor pair records with |score| above ANNOTATION_THRESHOLD."""
        out: List[Annotation] = []
        if state.rec_grid is None:
            return out
        threshold = float(self.get_parameter(ANNOTATION_THRESHOLD))
        ctab, table = state.centers, state.atoms
        for i in state.lig_ids:
            if not ctx.en[i]:
                continue
            for j in state.rec_grid.query_cell(ctx.pos[i]):
                if j == i or not ctx.en[j]:
                    continue
                e = self.pair_energy(int(i), int(j), ctx, state)
                if abs(e) > threshold:
                    d = float(np.linalg.norm(ctx.pos[i] - ctx.pos[j]))
                    out.append(Annotation(table.atoms[ctab.point[i, 0]], table.atoms[ctab.point[j, 0]], d, e))
        return out

    def render_annotations_by_residue(self) -> List[str]:
        """``<NAME>_SUM,<residue>,<score>`` per receptor residue, then ``<NAME>_REP`` pair lines."""
        tag = self.name.upper()
        sums: Dict[str, float] = {}
        reps = []
        for ann in self.annotations:
            key = ann.atom2.residue_label
            sums[key] = sums.get(key, 0.0) + ann.score
            if ann.score > 0.0:
                reps.append(f"{tag}_REP,{ann.render()}")
        lines = [f"{tag}_SUM,{res},{s:.3f}" for res, s in sorted(sums.items())]
        return lines + reps
