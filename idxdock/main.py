"""idxdock.main

Docking driver: indexed vdW / polar / desolvation scoring + explicit
solvent + genetic algorithm search.

Examples:
  python -m idxdock.main --receptor receptor.pdb --ligand ligand.sdf --site-radius 10 --site-mode atoms --score-only
  python -m idxdock.main --receptor receptor.pdb --ligand ligand.sdf --keep-waters --protocol fast --seed 7 --out best.sdf
  python -m idxdock.main --receptor receptor.pdb --ligand ligand.sdf --config run.json --no-fast-solvent --verbose
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any, Dict, Optional

from loguru import logger

from .chemistry.flex import Mode, RigidBodyFlex, TorsionFlex, find_polar_hydrogen_torsions
from .errors import BadArgument
from .factory import build_protocol, build_scoring_function, default_config
from .geometry.distances import closest_distance
from .geometry.site import DockingSite
from .io.pdb import read_receptor_pdb, read_solvent_pdb
from .io.sdf import read_sdf_first_mol, write_poses
from .optimize.genetic import HISTORY_FREQ, GATransform
from .scoring.indexed import ANNOTATE, FAST_SOLVENT, IndexedTerm
from .scoring.requests import SetParamRequest
from .workspace import Workspace


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = "DEBUG" if verbose else ("WARNING" if quiet else "INFO")
    logger.remove()
    logger.add(sys.stderr, level=level, format="<level>{level: <8}</level> {message}")


def _print_score_map(title: str, scores: Dict[str, float]) -> None:
    print(title)
    for k in sorted(scores):
        print(f"  {k:<32s} {scores[k]: .4f}")


def _load_config(json_or_path: Optional[str]) -> Dict[str, Any]:
    """Run configuration from an inline JSON object or a .json file; None => {}."""
    if not json_or_path:
        return {}
    s = json_or_path.strip()
    source = "--config"
    if not s.startswith("{") and os.path.isfile(s):
        source = s
        with open(s, "r", encoding="utf-8") as f:
            s = f.read()
    elif s.lower().endswith(".json"):
        raise FileNotFoundError(f"Config file not found: {s}")
    try:
        cfg = json.loads(s)
    except json.JSONDecodeError as e:
        raise BadArgument(f"{source}: invalid JSON ({e})") from e
    if not isinstance(cfg, dict):
        raise BadArgument(f"{source}: expected a JSON object, got {type(cfg).__name__}")
    return cfg


def _merge_config(user: dict) -> dict:
    cfg = default_config()
    for k, v in user.items():
        cfg[k] = v
    return cfg


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(prog="idxdock")

    ap.add_argument("--receptor", required=True, help="Receptor PDB file")
    ap.add_argument("--ligand", required=True, help="Ligand SDF file (reference pose)")
    ap.add_argument("--solvent", default=None, help="Explicit waters (PDB). Default: none")
    ap.add_argument("--keep-waters", action="store_true", help="Use the receptor file's waters as explicit solvent")
    ap.add_argument("--solvent-trans", choices=[m.value for m in Mode], default="tethered")
    ap.add_argument("--solvent-rot", choices=[m.value for m in Mode], default="tethered")
    ap.add_argument("--solvent-occupancy", type=float, default=1.0)
    ap.add_argument("--flex-receptor", action="store_true", help="Rotate receptor -OH / -NH3+ hydrogens")

    ap.add_argument("--site-radius", type=float, default=10.0, help="Docking site radius (Å)")
    ap.add_argument("--site-mode", choices=["centroid", "atoms"], default="centroid")

    ap.add_argument(
        "--config",
        default=None,
        help='Scoring / protocol JSON: JSON string \'{"protocol":"fast"}\' or path to .json file.',
    )
    ap.add_argument("--protocol", choices=["fast", "standard", "thorough"], default=None,
                    help="Search preset (overrides the config file).")
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument("--fast-solvent", dest="fast_solvent", action="store_true", default=True)
    ap.add_argument("--no-fast-solvent", dest="fast_solvent", action="store_false")
    ap.add_argument("--history-freq", type=int, default=0, help="Save the GA best pose every N cycles")
    ap.add_argument("--annotate", action="store_true", help="Print per-residue interaction annotations")

    ap.add_argument("--score-only", action="store_true", help="Score the input pose, no search")
    ap.add_argument("--out", default=None, help="SDF for the best pose")
    ap.add_argument("--history-out", default=None, help="SDF for the saved history poses")

    ap.add_argument("--verbose", action="store_true")
    ap.add_argument("--quiet", action="store_true")
    args = ap.parse_args(argv)

    _configure_logging(args.verbose, args.quiet)

    # Read inputs
    rec_flex = None
    receptor, waters = read_receptor_pdb(args.receptor)
    if args.flex_receptor:
        rec_flex = TorsionFlex(find_polar_hydrogen_torsions(receptor))
        receptor.set_flex_data(rec_flex)
        logger.info(f"Flexible receptor: {len(rec_flex.torsions)} rotor(s)")

    lig = read_sdf_first_mol(args.ligand, flex=RigidBodyFlex(Mode.FREE, Mode.FREE))
    ligand = lig.model

    solvent = []
    if args.solvent:
        solvent = read_solvent_pdb(args.solvent, args.solvent_trans, args.solvent_rot)
    elif args.keep_waters:
        solvent = waters
        for w in solvent:
            w.flex.set_modes(args.solvent_trans, args.solvent_rot)
    for w in solvent:
        w.set_occupancy(args.solvent_occupancy)

    site = DockingSite.from_ligand(ligand, radius=args.site_radius, mode=args.site_mode)
    lo, hi = site.bounds()
    print(f"Site mode: {args.site_mode}  radius: {args.site_radius:.1f} Å")
    print(f"Site center (ligand centroid): ({site.center[0]:.3f}, {site.center[1]:.3f}, {site.center[2]:.3f})")
    print(f"Site box: ({lo[0]:.1f}, {lo[1]:.1f}, {lo[2]:.1f}) - ({hi[0]:.1f}, {hi[1]:.1f}, {hi[2]:.1f})")
    print(f"Receptor atoms: {receptor.num_atoms}")
    print(f"Ligand atoms:   {ligand.num_atoms}  ({ligand.name})")
    print(f"Solvent models: {len(solvent)}")

    cfg = _merge_config(_load_config(args.config))
    if args.protocol:
        cfg["protocol"] = args.protocol

    sf = build_scoring_function(cfg.get("scoring"))
    sf.handle_request(SetParamRequest(FAST_SOLVENT, bool(args.fast_solvent)))
    if args.annotate:
        sf.handle_request(SetParamRequest(ANNOTATE, True))

    ws = Workspace(name=ligand.name, seed=args.seed)
    ws.receptor = receptor
    ws.ligand = ligand
    ws.solvent = solvent
    ws.docking_site = site
    ws.set_sf(sf)

    _print_score_map("---- Input pose ----", ws.score_map())

    if not args.score_only:
        protocol = build_protocol(cfg)
        for i in range(protocol.num_transforms):
            t = protocol.transform(i)
            if isinstance(t, GATransform) and args.history_freq:
                t.set_parameter(HISTORY_FREQ, args.history_freq)
        protocol.register(ws)
        protocol.go()
        _print_score_map("---- Best pose ----", ws.score_map())

    print(f"Closest receptor-ligand atom distance: {closest_distance(receptor.coords, ligand.coords):.3f} Å")

    if args.annotate:
        for leaf in sf.leaves():
            if isinstance(leaf, IndexedTerm):
                print(f"---- {leaf.full_name} annotations ----")
                for line in leaf.render_annotations_by_residue():
                    print(f"  {line}")

    if args.out:
        write_poses(args.out, ligand, lig.rdkit_mol, [(ligand.coords.copy(), {"SCORE": ws.score()})])
        print(f"Wrote best pose to: {args.out}")

    if args.history_out and ws.history:
        n = write_poses(
            args.history_out,
            ligand,
            lig.rdkit_mol,
            [(h.ligand_coords, {"SCORE": h.scores.get(sf.name, 0.0), "STEP": i}) for i, h in enumerate(ws.history)],
        )
        print(f"Wrote {n} history pose(s) to: {args.history_out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
