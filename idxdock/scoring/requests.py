"""idxdock.scoring.requests

Request objects sent down a scoring-function tree with ``handle_request``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from ..errors import BadArgument


@dataclass(frozen=True)
class Request:
    pass


@dataclass(frozen=True)
class PartitionRequest(Request):
    """Restrict inter lists to pairs within range + 2 * distance; 0.0 restores full range."""
    distance: float = 0.0


@dataclass(frozen=True)
class SetParamRequest(Request):
    """Set a parameter on every term that has it (or only on ``target``, a short or full name)."""
    name: str
    value: Any
    target: Optional[str] = None


@dataclass(frozen=True)
class EnableRequest(Request):
    target: str
    enabled: bool = True


def request_from_dict(d: dict) -> Request:
    """Config form: {"partition": 2.0} | {"set": {"name":..., "value":..., "target":...}} | {"enable"/"disable": name}."""
    if "partition" in d:
        return PartitionRequest(float(d["partition"]))
    if "set" in d:
        s = d["set"]
        return SetParamRequest(s["name"], s["value"], s.get("target"))
    if "enable" in d:
        return EnableRequest(str(d["enable"]), True)
    if "disable" in d:
        return EnableRequest(str(d["disable"]), False)
    raise BadArgument(f"Unknown request {d!r}")
