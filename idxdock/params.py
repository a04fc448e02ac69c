"""idxdock.params

Named, typed parameters shared by scoring terms and transforms.

Defaults are declared once in the constructor (``add_parameter``); user values
are coerced to the type of the default so that JSON configs written with ints
for float parameters still behave.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable

from .errors import BadArgument


def _coerce(value: Any, default: Any) -> Any:
    if isinstance(default, bool):
        if isinstance(value, str):
            v = value.strip().lower()
            if v in ("1", "true", "yes", "on"):
                return True
            if v in ("0", "false", "no", "off"):
                return False
            raise BadArgument(f"Can not interpret {value!r} as a boolean")
        return bool(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    if isinstance(default, str):
        return str(value)
    return value


class ParamHandler:
    """Holds a dict of named parameters with defaults."""

    def __init__(self) -> None:
        self._params: Dict[str, Any] = {}

    def add_parameter(self, name: str, default: Any) -> None:
        self._params[name] = default

    def has_parameter(self, name: str) -> bool:
        return name in self._params

    def get_parameter(self, name: str) -> Any:
        try:
            return self._params[name]
        except KeyError:
            raise BadArgument(f"{type(self).__name__}: unknown parameter {name!r}") from None

    def set_parameter(self, name: str, value: Any) -> None:
        if name not in self._params:
            raise BadArgument(f"{type(self).__name__}: unknown parameter {name!r}")
        self._params[name] = _coerce(value, self._params[name])
        self.parameter_updated(name)

    def set_parameters(self, values: Dict[str, Any]) -> None:
        for k, v in (values or {}).items():
            self.set_parameter(k, v)

    def parameter_names(self) -> Iterable[str]:
        return list(self._params)

    def parameters(self) -> Dict[str, Any]:
        return dict(self._params)

    def parameter_updated(self, name: str) -> None:
        """Hook called after every successful ``set_parameter``."""
