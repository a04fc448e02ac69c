"""idxdock.chemistry.atom_types

Element normalization and the simple element-based classes used by the
polar and desolvation terms.
"""

from __future__ import annotations

ACCEPTOR_ELEMENTS = {"N", "O", "S"}
DONOR_ELEMENTS = {"N", "O"}


def normalize_element(element: str) -> str:
    e = (element or "").strip()
    if not e:
        return "X"
    if len(e) == 1:
        return e.upper()
    return e[0].upper() + e[1:].lower()


def is_hydrogen(element: str) -> bool:
    return normalize_element(element) == "H"


def is_acceptor_element(element: str) -> bool:
    return normalize_element(element) in ACCEPTOR_ELEMENTS


def is_donor_element(element: str) -> bool:
    return normalize_element(element) in DONOR_ELEMENTS
