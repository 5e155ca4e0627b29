"""Estado del editor: modo de trabajo, selección ordenada y portapapeles.

El estado es explícito y se pasa a las operaciones; no hay variables
globales de módulo para el elemento por defecto, el grupo activo ni el
portapapeles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from chemcalc.groups import FunctionalGroup
from core.errors import PreconditionError
from core.model import Atom
from editor.options import COLOR_SCHEMES, LABEL_MODES, StructureSettings

# Submodos válidos por modo; el primero es el valor por defecto.
SUBMODES: Dict[str, Tuple[str, ...]] = {
    "edit": ("manual", "smart"),
    "select": ("lasso", "rectangle"),
    "move": ("translate", "orbit", "trackball"),
}
CAMERA_MODES = ("orbit", "trackball")
PROJECTION_MODES = ("perspective", "orthographic")


def _check_choice(kind: str, value: str, valid: Iterable[str]) -> None:
    valid = tuple(valid)
    if value not in valid:
        raise PreconditionError(f"Invalid {kind}: {value}. Must be one of: {', '.join(valid)}")


class Selection:
    """Lista ordenada de átomos sin duplicados con conjunto de pertenencia."""

    def __init__(self) -> None:
        self.order: List[Atom] = []
        self._members: set[int] = set()

    def __len__(self) -> int:
        return len(self.order)

    def __iter__(self):
        return iter(list(self.order))

    def __contains__(self, atom: Atom) -> bool:
        return atom.id in self._members

    def add(self, atom: Atom) -> bool:
        """Añade un átomo al final; devuelve False si ya estaba."""
        if atom.id in self._members:
            return False
        self.order.append(atom)
        self._members.add(atom.id)
        return True

    def remove(self, atom: Atom) -> bool:
        if atom.id not in self._members:
            return False
        self._members.discard(atom.id)
        self.order = [a for a in self.order if a.id != atom.id]
        return True

    def toggle(self, atom: Atom) -> bool:
        """Alterna la pertenencia; devuelve True si el átomo queda seleccionado."""
        if self.remove(atom):
            return False
        self.add(atom)
        return True

    def set(self, atoms: Iterable[Atom]) -> None:
        self.clear()
        for atom in atoms:
            self.add(atom)

    def clear(self) -> None:
        self.order = []
        self._members = set()

    def first(self, n: int) -> List[Atom]:
        """Los primeros `n` átomos en orden de selección.

        Raises:
            PreconditionError: Si hay menos de `n` átomos seleccionados.
        """
        if len(self.order) < n:
            raise PreconditionError(f"Select at least {n} atoms (currently {len(self.order)})")
        return self.order[:n]

    def prune(self, alive: Iterable[Atom]) -> None:
        """Descarta átomos que ya no pertenecen a la estructura."""
        live = {id(a) for a in alive}
        self.order = [a for a in self.order if id(a) in live]
        self._members = {a.id for a in self.order}


@dataclass
class Clipboard:
    """Copia desacoplada de átomos y enlaces.

    Attributes:
        atoms: Lista de (elemento, posición).
        bonds: Lista de (índice, índice, orden) sobre `atoms`.
        centroid: Centro geométrico de los átomos copiados (informativo).
    """
    atoms: List[Tuple[str, np.ndarray]] = field(default_factory=list)
    bonds: List[Tuple[int, int, int]] = field(default_factory=list)
    centroid: Optional[np.ndarray] = None

    def is_empty(self) -> bool:
        return not self.atoms

    @classmethod
    def from_atoms(cls, structure, atoms: List[Atom]) -> "Clipboard":
        """Copia `atoms` y los enlaces cuyos dos extremos están copiados."""
        index = {atom.id: i for i, atom in enumerate(atoms)}
        bonds = [
            (index[b.atom1.id], index[b.atom2.id], b.order)
            for b in structure.bonds
            if b.atom1.id in index and b.atom2.id in index
        ]
        positions = [atom.position for atom in atoms]
        centroid = np.mean(positions, axis=0) if positions else None
        return cls([(a.element, a.position) for a in atoms], bonds, centroid)


class EditorState:
    """Estado centralizado del editor.

    Attributes:
        mode: Modo activo ("edit", "select" o "move").
        submodes: Submodo elegido para cada modo.
        selection: Selección ordenada de átomos.
        clipboard: Contenido del portapapeles.
        settings: Preferencias de la estructura activa.
        camera_mode: Modo de cámara ("orbit" o "trackball").
        projection_mode: Proyección ("perspective" u "orthographic").
        default_element: Elemento usado al añadir átomos sin especificar.
        selected_group: Grupo funcional activo para inserciones.
        custom_groups: Grupos definidos en la sesión (p. ej. desde SMILES),
            indexados por nombre.
    """

    def __init__(self, default_element: str = "C") -> None:
        self.mode = "edit"
        self.submodes: Dict[str, str] = {mode: options[0] for mode, options in SUBMODES.items()}
        self.selection = Selection()
        self.clipboard = Clipboard()
        self.settings = StructureSettings()
        self.camera_mode = "orbit"
        self.projection_mode = "perspective"
        self.default_element = default_element
        self.selected_group: Optional[str] = None
        self.custom_groups: Dict[str, FunctionalGroup] = {}

    @property
    def submode(self) -> str:
        return self.submodes[self.mode]

    def set_mode(self, mode: str, submode: Optional[str] = None) -> None:
        """Cambia de modo y, opcionalmente, de submodo.

        Raises:
            PreconditionError: Si el modo o el submodo no son válidos.
        """
        _check_choice("mode", mode, SUBMODES)
        if submode is not None:
            _check_choice(f"{mode} submode", submode, SUBMODES[mode])
            self.submodes[mode] = submode
        self.mode = mode

    def set_label_mode(self, mode: str) -> None:
        _check_choice("label mode", mode, LABEL_MODES)
        self.settings.label_mode = mode

    def cycle_label_mode(self) -> str:
        """Pasa al siguiente modo de etiquetas y lo devuelve."""
        current = LABEL_MODES.index(self.settings.label_mode)
        self.settings.label_mode = LABEL_MODES[(current + 1) % len(LABEL_MODES)]
        return self.settings.label_mode

    def set_color_scheme(self, scheme: str) -> None:
        _check_choice("color scheme", scheme, COLOR_SCHEMES)
        self.settings.color_scheme = scheme

    def set_camera_mode(self, mode: str) -> None:
        _check_choice("camera mode", mode, CAMERA_MODES)
        self.camera_mode = mode

    def set_projection_mode(self, mode: str) -> None:
        aliases = {"persp": "perspective", "ortho": "orthographic"}
        mode = aliases.get(mode, mode)
        _check_choice("projection mode", mode, PROJECTION_MODES)
        self.projection_mode = mode

    def set_scale(self, target: str, value: float) -> None:
        """Ajusta la escala de átomos o enlaces de la estructura activa."""
        if not value > 0:
            raise PreconditionError(f"Scale must be positive, got {value}")
        if target == "atom":
            self.settings.atom_scale = float(value)
        elif target == "bond":
            self.settings.bond_scale = float(value)
        else:
            raise PreconditionError(f"Unknown scale target: {target}. Use atom or bond")
