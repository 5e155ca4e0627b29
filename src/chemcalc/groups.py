"""Plantillas de grupos funcionales con átomo ficticio de anclaje.

Cada plantilla contiene un átomo "X" (el marcador de anclaje) unido a un
único átomo del grupo, el ancla. Las coordenadas son locales: el ficticio
se coloca en (-1, 0, 0) y el ancla en el origen, de modo que el enlace de
anclaje apunta hacia +x. Solo se describen átomos pesados; los hidrógenos
se completan después con `add_hydrogens`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from chemcalc.elements import DUMMY_ELEMENT
from core.errors import PreconditionError

GroupAtom = Tuple[str, Tuple[float, float, float]]
GroupBond = Tuple[int, int, int]


@dataclass
class FunctionalGroup:
    """Fragmento listo para insertarse en una estructura anfitriona.

    Attributes:
        name: Nombre corto del grupo (p. ej., "OH").
        atoms: Lista ordenada de (elemento, posición local).
        bonds: Lista de (índice, índice, orden) sobre `atoms`.
        dummy: Índice del átomo ficticio que marca el punto de anclaje.
    """
    name: str
    atoms: List[GroupAtom]
    bonds: List[GroupBond] = field(default_factory=list)
    dummy: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.dummy < len(self.atoms):
            raise PreconditionError(f"Group {self.name}: dummy index {self.dummy} out of range")
        for i, j, order in self.bonds:
            if not (0 <= i < len(self.atoms) and 0 <= j < len(self.atoms)) or i == j:
                raise PreconditionError(f"Group {self.name}: invalid bond ({i}, {j})")
            if order < 1:
                raise PreconditionError(f"Group {self.name}: invalid bond order {order}")
        self.anchor_index()

    def anchor_index(self) -> int:
        """Índice del único vecino del átomo ficticio.

        Raises:
            PreconditionError: Si el ficticio no tiene exactamente un vecino.
        """
        neighbors = [j if i == self.dummy else i for i, j, _ in self.bonds if self.dummy in (i, j)]
        if len(neighbors) != 1:
            raise PreconditionError(
                f"Group {self.name}: attachment atom must have exactly one neighbor, found {len(neighbors)}"
            )
        return neighbors[0]

    def anchor_bond_order(self) -> int:
        anchor = self.anchor_index()
        for i, j, order in self.bonds:
            if {i, j} == {self.dummy, anchor}:
                return order
        return 1

    @property
    def anchor_element(self) -> str:
        return self.atoms[self.anchor_index()][0]

    @classmethod
    def from_structure(cls, structure, leaving, anchor, name: str | None = None) -> "FunctionalGroup":
        """Construye un grupo a partir de una estructura y su par saliente-ancla.

        El átomo saliente pasa a ser el ficticio; el resto de átomos y
        enlaces se copian tal cual.

        Raises:
            PreconditionError: Si ambos átomos no están enlazados o el
                saliente no es terminal.
        """
        if structure.get_bond(leaving, anchor) is None:
            raise PreconditionError(
                f"Atoms {structure.index_of(leaving)} and {structure.index_of(anchor)} are not bonded"
            )
        if len(leaving.bonds) != 1:
            raise PreconditionError(f"Leaving atom {structure.index_of(leaving)} must be terminal")
        index = {atom.id: i for i, atom in enumerate(structure.atoms)}
        atoms: List[GroupAtom] = []
        for atom in structure.atoms:
            element = DUMMY_ELEMENT if atom is leaving else atom.element
            atoms.append((element, (atom.x, atom.y, atom.z)))
        bonds = [(index[b.atom1.id], index[b.atom2.id], b.order) for b in structure.bonds]
        return cls(name or structure.name, atoms, bonds, dummy=index[leaving.id])


def _group(name: str, atoms: Sequence[GroupAtom], bonds: Sequence[GroupBond] = ()) -> FunctionalGroup:
    """Plantilla con el ficticio en (-1, 0, 0) unido al primer átomo."""
    full_atoms = [(DUMMY_ELEMENT, (-1.0, 0.0, 0.0))] + list(atoms)
    full_bonds = [(0, 1, 1)] + [(i + 1, j + 1, order) for i, j, order in bonds]
    return FunctionalGroup(name, full_atoms, full_bonds, dummy=0)


GROUP_LIBRARY: Dict[str, FunctionalGroup] = {
    "Me": _group("Me", [("C", (0.0, 0.0, 0.0))]),
    "Et": _group("Et", [("C", (0.0, 0.0, 0.0)), ("C", (0.514, 1.452, 0.0))], [(0, 1, 1)]),
    "OH": _group("OH", [("O", (0.0, 0.0, 0.0))]),
    "OMe": _group("OMe", [("O", (0.0, 0.0, 0.0)), ("C", (0.477, 1.348, 0.0))], [(0, 1, 1)]),
    "NH2": _group("NH2", [("N", (0.0, 0.0, 0.0))]),
    "SH": _group("SH", [("S", (0.0, 0.0, 0.0))]),
    "CN": _group("CN", [("C", (0.0, 0.0, 0.0)), ("N", (1.16, 0.0, 0.0))], [(0, 1, 3)]),
    "CHO": _group("CHO", [("C", (0.0, 0.0, 0.0)), ("O", (0.605, 1.048, 0.0))], [(0, 1, 2)]),
    "COOH": _group(
        "COOH",
        [("C", (0.0, 0.0, 0.0)), ("O", (0.605, 1.048, 0.0)), ("O", (0.675, -1.169, 0.0))],
        [(0, 1, 2), (0, 2, 1)],
    ),
    "NO2": _group(
        "NO2",
        [("N", (0.0, 0.0, 0.0)), ("O", (0.61, 1.057, 0.0)), ("O", (0.61, -1.057, 0.0))],
        [(0, 1, 2), (0, 2, 1)],
    ),
    "CF3": _group(
        "CF3",
        [
            ("C", (0.0, 0.0, 0.0)),
            ("F", (0.451, 1.273, 0.0)),
            ("F", (0.451, -0.636, 1.102)),
            ("F", (0.451, -0.636, -1.102)),
        ],
        [(0, 1, 1), (0, 2, 1), (0, 3, 1)],
    ),
    "Ph": _group(
        "Ph",
        [
            ("C", (0.0, 0.0, 0.0)),
            ("C", (0.695, -1.204, 0.0)),
            ("C", (2.085, -1.204, 0.0)),
            ("C", (2.78, 0.0, 0.0)),
            ("C", (2.085, 1.204, 0.0)),
            ("C", (0.695, 1.204, 0.0)),
        ],
        [(0, 1, 2), (1, 2, 1), (2, 3, 2), (3, 4, 1), (4, 5, 2), (5, 0, 1)],
    ),
}


def get_group(name: str) -> FunctionalGroup:
    """Busca un grupo de la biblioteca (sin distinguir mayúsculas).

    Raises:
        PreconditionError: Si el grupo no existe.
    """
    if name in GROUP_LIBRARY:
        return GROUP_LIBRARY[name]
    lowered = {key.lower(): group for key, group in GROUP_LIBRARY.items()}
    try:
        return lowered[name.lower()]
    except KeyError:
        raise PreconditionError(
            f"Unknown functional group: {name}. Available: {', '.join(GROUP_LIBRARY)}"
        ) from None
