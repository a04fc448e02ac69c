"""idxdock.config

Search protocol presets for the genetic algorithm.

fast:      small population, few cycles (screening)
standard:  default GA settings
thorough:  larger population, longer convergence window
"""

from __future__ import annotations

from typing import Any, Dict, Optional

PROTOCOL_PRESETS: Dict[str, Dict[str, Any]] = {
    "fast": {
        "population-size": 30,
        "number-of-cycles": 30,
        "number-for-convergence": 4,
        "fraction-of-new-individuals": 0.5,
        "crossover-probability": 0.4,
        "step-size": 1.0,
    },
    "standard": {
        "population-size": 50,
        "number-of-cycles": 100,
        "number-for-convergence": 6,
        "fraction-of-new-individuals": 0.5,
        "crossover-probability": 0.4,
        "step-size": 1.0,
    },
    "thorough": {
        "population-size": 100,
        "number-of-cycles": 300,
        "number-for-convergence": 20,
        "fraction-of-new-individuals": 0.5,
        "crossover-probability": 0.6,
        "step-size": 0.5,
    },
}


def merge_protocol(params: Optional[dict], protocol: str = "standard") -> dict:
    p = dict(params or {})
    name = (protocol or "standard").lower()
    if name not in PROTOCOL_PRESETS:
        raise ValueError(f"Unknown protocol '{protocol}'. Use {'|'.join(PROTOCOL_PRESETS)}.")
    merged = dict(PROTOCOL_PRESETS[name])
    merged.update(p)  # user overrides take precedence
    return merged
