"""idxdock.factory

Build scoring-function trees and transform protocols from config dicts.

    {"scoring": {"name": "score",
                 "terms": {"inter.vdw": {"class": "vdw", "weight": 1.0, "params": {...}}}},
     "protocol": "standard",
     "transforms": [{"class": "random-population", "name": "init"},
                    {"class": "ga", "name": "ga", "params": {...},
                     "requests": [{"partition": 0.0}]}]}

Dotted term keys create the intermediate aggregates ("inter.vdw" puts a
``vdw`` leaf under an ``inter`` aggregate under the root).
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Optional

from .config import merge_protocol
from .errors import BadArgument
from .optimize.genetic import GATransform
from .optimize.transforms import NullTransform, RandomPopulationTransform, TransformAggregate
from .scoring.aggregate import ScoringAggregate
from .scoring.base import ConstantTerm
from .scoring.desolvation import DesolvationTerm
from .scoring.polar import PolarTerm
from .scoring.requests import request_from_dict
from .scoring.vdw import VdwTerm

TERM_CLASSES = {
    "vdw": VdwTerm,
    "polar": PolarTerm,
    "solv": DesolvationTerm,
    "desolvation": DesolvationTerm,
    "const": ConstantTerm,
}

TRANSFORM_CLASSES = {
    "random-population": RandomPopulationTransform,
    "ga": GATransform,
    "null": NullTransform,
}

DEFAULT_CONFIG: Dict[str, Any] = {
    "scoring": {
        "name": "score",
        "terms": {
            "inter.vdw": {"class": "vdw", "weight": 1.0},
            "inter.polar": {"class": "polar", "weight": 1.0},
            "inter.solv": {"class": "solv", "weight": 0.1},
        },
    },
    "protocol": "standard",
    "transforms": [
        {"class": "random-population", "name": "init"},
        {"class": "ga", "name": "ga"},
    ],
}


def default_config() -> Dict[str, Any]:
    return copy.deepcopy(DEFAULT_CONFIG)


def _lookup(table: dict, key: str, what: str):
    try:
        return table[key.lower()]
    except KeyError:
        raise BadArgument(f"Unknown {what} class {key!r}. Use {'|'.join(table)}") from None


def build_scoring_function(config: Optional[dict]) -> ScoringAggregate:
    cfg = dict(config or DEFAULT_CONFIG["scoring"])
    root = ScoringAggregate(cfg.get("name", "score"))
    for path, spec in (cfg.get("terms") or {}).items():
        *parents, leaf = path.split(".")
        node = root
        for p in parents:
            found = node.find(f"{node.full_name}.{p}")
            if found is None:
                found = node.add(ScoringAggregate(p))
            elif not isinstance(found, ScoringAggregate):
                raise BadArgument(f"{found.full_name} is a leaf term and can not hold {path!r}")
            node = found
        cls = _lookup(TERM_CLASSES, spec.get("class", leaf), "scoring term")
        if cls is ConstantTerm:
            term = cls(leaf, float(spec.get("value", 0.0)))
        else:
            term = cls(leaf)
        term.set_parameters(spec.get("params") or {})
        node.add(term, float(spec.get("weight", 1.0)))
    return root


def build_transform(spec: dict, protocol: Optional[str] = None):
    cls = _lookup(TRANSFORM_CLASSES, spec.get("class", ""), "transform")
    t = cls(spec.get("name", spec.get("class")))
    params = dict(spec.get("params") or {})
    if protocol:
        preset = merge_protocol(params, protocol)
        params = {k: v for k, v in preset.items() if t.has_parameter(k)}
    t.set_parameters(params)
    for r in spec.get("requests") or []:
        t.add_sf_request(request_from_dict(r))
    return t


def build_protocol(config: Optional[dict]) -> TransformAggregate:
    cfg = config or DEFAULT_CONFIG
    protocol = cfg.get("protocol")
    agg = TransformAggregate(cfg.get("name", "protocol"))
    for spec in cfg.get("transforms", DEFAULT_CONFIG["transforms"]):
        agg.add(build_transform(spec, protocol))
    return agg
