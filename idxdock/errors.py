"""idxdock.errors

Exception types raised by the docking engine.

Configuration gaps in the search loop (no workspace, no scoring function,
empty population) are not errors: the GA simply returns without cycling.
"""

from __future__ import annotations


class DockingError(Exception):
    """Base class for all idxdock errors."""


class BadArgument(DockingError, ValueError):
    """Caller error: invalid member, index, parameter name or mode string."""


class InvalidRequest(DockingError):
    """A request object that a scoring term or transform can not honour."""


class SetupError(DockingError):
    """Inconsistent model data detected while setting up a scoring term."""
