"""Orbital addressing shared by all Green's function slicers."""
from __future__ import annotations
from dataclasses import dataclass
import numpy as np


@dataclass(frozen=True, slots=True)
class CellOrbitals:
    """A set of orbitals inside unit cell ``cell`` (all of them if ``orbitals`` is None)."""
    cell: int = 0
    orbitals: tuple | None = None

    def __post_init__(self):
        cell = self.cell
        if isinstance(cell, tuple):
            if len(cell) > 1:
                raise ValueError(f"Only 0-D and 1-D cells are supported, got cell {cell}")
            cell = cell[0] if cell else 0
        object.__setattr__(self, "cell", int(cell))
        if self.orbitals is not None:
            if isinstance(self.orbitals, slice):
                raise ValueError("Pass orbitals as a sequence of indices, not a slice")
            object.__setattr__(self, "orbitals", tuple(int(o) for o in np.atleast_1d(self.orbitals)))

    def indices(self, norbitals: int) -> np.ndarray:
        if self.orbitals is None:
            return np.arange(norbitals)
        inds = np.asarray(self.orbitals, dtype=int)
        if inds.size and (inds.min() < 0 or inds.max() >= norbitals):
            raise IndexError(f"Orbitals {self.orbitals} out of range for a {norbitals}-orbital cell")
        return inds

    def size(self, norbitals: int) -> int:
        return self.indices(norbitals).size


def cellorbs(key) -> CellOrbitals:
    if isinstance(key, CellOrbitals):
        return key
    if isinstance(key, (int, np.integer)):
        return CellOrbitals(int(key))
    if isinstance(key, tuple) and len(key) == 2:
        return CellOrbitals(*key)
    raise TypeError(f"Cannot interpret {key!r} as cell orbitals")


class GreenSlicer:
    """Answers ``slicer[i, j]`` queries for one frequency.

    Subclasses implement the indexing forms they support; the rest raise
    ``NotImplementedError``.
    """
    norbitals: int = 0

    def __getitem__(self, key):
        i, j = key
        return self.slice(cellorbs(i), cellorbs(j))

    def slice(self, i: CellOrbitals, j: CellOrbitals) -> np.ndarray:
        raise NotImplementedError(f"{type(self).__name__} does not implement slicing by cell orbitals")

    def contact_view(self, a: int, b: int) -> np.ndarray:
        raise NotImplementedError(f"{type(self).__name__} does not implement contact views")


class ContactBlockStructure:
    """Merged, duplicate-free orbital set of several contacts.

    ``subcells`` lists one :class:`CellOrbitals` per distinct cell, in order of
    first appearance; the flat ordering of contact orbitals follows it.
    ``contact_inds[c]`` gives the positions of contact ``c`` inside that
    flat ordering.
    """

    def __init__(self, contacts, norbitals: int):
        self.norbitals_cell = norbitals
        bycell: dict[int, list[int]] = {}
        for c in contacts:
            orbs = bycell.setdefault(c.cell, [])
            for o in c.indices(norbitals):
                if o not in orbs:
                    orbs.append(int(o))
        self.subcells = [CellOrbitals(cell, tuple(orbs)) for cell, orbs in bycell.items()]
        position = {}
        for cell, orbs in bycell.items():
            for o in orbs:
                position[(cell, o)] = len(position)
        self.contact_inds = [np.array([position[(c.cell, int(o))] for o in c.indices(norbitals)], dtype=int)
                             for c in contacts]
        self.norbitals = len(position)

    @property
    def ncontacts(self) -> int:
        return len(self.contact_inds)

    def contact(self, a: int) -> np.ndarray:
        if not 0 <= a < self.ncontacts:
            raise IndexError(f"Contact {a} out of range, there are {self.ncontacts} contacts")
        return self.contact_inds[a]
