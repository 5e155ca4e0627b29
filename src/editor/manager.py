"""Gestor de estructuras con nombre: puntero activo, historial y portapapeles.

Cada entrada tiene su propio historial de instantáneas y sus preferencias
de visualización; al cambiar de estructura el estado del editor toma las
de la entrada entrante.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from chemcalc.elements import DUMMY_ELEMENT
from chemcalc.geometry import smart_offset, translated_positions
from chemcalc.groups import FunctionalGroup
from chemcalc.placement import attach_group
from core.errors import InconsistencyError, PreconditionError
from core.model import Atom, Structure, add_atoms_and_bonds
from editor.history import History
from editor.options import EditorOptions, StructureSettings
from editor.state import Clipboard, EditorState

logger = logging.getLogger(__name__)


@dataclass
class MoleculeEntry:
    """Estructura gestionada junto con su historial y preferencias.

    Attributes:
        id: Identificador interno de la entrada.
        structure: `Structure` o `Crystal`.
        history: Historial de instantáneas de esta estructura.
        settings: Preferencias de visualización propias.
        reference: Instantánea de la celda importada (para fijar la red).
    """
    id: int
    structure: Any
    history: History
    settings: StructureSettings = field(default_factory=StructureSettings)
    reference: Optional[Dict[str, Any]] = None

    @property
    def name(self) -> str:
        return self.structure.name

    @name.setter
    def name(self, value: str) -> None:
        self.structure.name = value


def resolve_substitution_indices(structure, indices: Sequence[int]) -> Tuple[Atom, Atom]:
    """Determina el par (saliente, ancla) de una sustitución.

    Args:
        structure: Estructura donde se buscan los átomos.
        indices: Dos índices explícitos (saliente, ancla) o solo el ancla;
            en ese caso el saliente es su único vecino "X" terminal.

    Returns:
        Tupla (saliente, ancla).

    Raises:
        PreconditionError: Si los índices no son válidos, los átomos no
            están enlazados o no hay un único ficticio terminal.
    """
    if len(indices) == 2:
        leaving = structure.atom_at(indices[0])
        anchor = structure.atom_at(indices[1])
        if structure.get_bond(leaving, anchor) is None:
            raise PreconditionError(f"Atoms {indices[0]} and {indices[1]} are not bonded")
        return leaving, anchor
    if len(indices) == 1:
        anchor = structure.atom_at(indices[0])
        dummies = [n for n in anchor.neighbors() if n.element == DUMMY_ELEMENT and len(n.bonds) == 1]
        if not dummies:
            raise PreconditionError(f"No terminal '{DUMMY_ELEMENT}' atom found attached to atom {indices[0]}")
        if len(dummies) > 1:
            raise PreconditionError(f"Ambiguous: Multiple '{DUMMY_ELEMENT}' atoms attached to atom {indices[0]}")
        return dummies[0], anchor
    raise PreconditionError("Invalid number of indices (must be 1 or 2)")


class MoleculeManager:
    """Colección ordenada de estructuras con una entrada activa.

    Attributes:
        molecules: Entradas en orden de creación.
        active_index: Índice de la entrada activa (-1 si no hay ninguna).
    """

    def __init__(
        self,
        state: EditorState,
        options: Optional[EditorOptions] = None,
        create_initial: bool = True,
    ) -> None:
        self.state = state
        self.options = options or EditorOptions()
        self.molecules: List[MoleculeEntry] = []
        self.active_index = -1
        self.next_id = 1
        if create_initial:
            self.create("Molecule 1")

    def __len__(self) -> int:
        return len(self.molecules)

    # --- Entradas ---------------------------------------------------------

    @property
    def active(self) -> MoleculeEntry:
        if not 0 <= self.active_index < len(self.molecules):
            raise InconsistencyError("No active structure")
        return self.molecules[self.active_index]

    @property
    def structure(self):
        return self.active.structure

    def unique_name(self, name: Optional[str] = None) -> str:
        """Nombre libre: "Molecule N" por defecto o `name_K` si está repetido."""
        names = {entry.name for entry in self.molecules}
        if not name:
            counter = 1
            name = f"Molecule {len(self.molecules) + counter}"
            while name in names:
                counter += 1
                name = f"Molecule {len(self.molecules) + counter}"
            return name
        if name not in names:
            return name
        counter = 1
        candidate = f"{name}_{counter}"
        while candidate in names:
            counter += 1
            candidate = f"{name}_{counter}"
        return candidate

    def create(
        self,
        name: Optional[str] = None,
        structure=None,
        unique: bool = True,
    ) -> MoleculeEntry:
        """Crea una entrada nueva y la activa.

        Args:
            name: Nombre deseado; se añade un sufijo si ya existe.
            structure: Estructura a registrar; por defecto una vacía.
            unique: Si es False se conserva el nombre tal cual (carga de
                archivos guardados).

        Returns:
            La entrada creada, con su historial sembrado con el estado inicial.

        Side Effects:
            Cambia la entrada activa y limpia la selección.
        """
        if structure is None:
            structure = Structure()
            base = name
        else:
            base = name or structure.name
        structure.name = self.unique_name(base) if unique else (base or self.unique_name())
        entry = MoleculeEntry(self.next_id, structure, History(self.options.max_history))
        self.next_id += 1
        entry.history.push(structure.to_snapshot())
        self.molecules.append(entry)
        logger.info("Created structure %r", entry.name)
        self.switch(len(self.molecules) - 1)
        return entry

    def reset(self) -> None:
        """Descarta todas las entradas (antes de cargar un espacio de trabajo)."""
        self.molecules = []
        self.active_index = -1
        self.state.selection.clear()

    def resolve(self, target: Union[int, str]) -> int:
        """Convierte un índice o un nombre en índice de entrada.

        Raises:
            PreconditionError: Si el índice está fuera de rango o el nombre
                no existe.
        """
        if isinstance(target, str):
            text = target.strip()
            if text.lstrip("-").isdigit():
                target = int(text)
            else:
                for i, entry in enumerate(self.molecules):
                    if entry.name == text:
                        return i
                raise PreconditionError(f'Molecule "{text}" not found')
        if not 0 <= target < len(self.molecules):
            raise PreconditionError(f"Invalid molecule index: {target}")
        return target

    def remove(self, index: int) -> MoleculeEntry:
        """Elimina una entrada.

        Raises:
            PreconditionError: Si el índice no es válido o es la última.

        Side Effects:
            Si se elimina la activa, se activa la anterior (o la primera).
        """
        index = self.resolve(index)
        if len(self.molecules) == 1:
            raise PreconditionError("Cannot remove the last molecule")
        removed = self.molecules.pop(index)
        if index == self.active_index:
            self.active_index = -1
            self.switch(max(0, index - 1))
        elif index < self.active_index:
            self.active_index -= 1
        logger.info("Removed structure %r", removed.name)
        return removed

    def switch(self, index: int) -> MoleculeEntry:
        """Activa otra entrada.

        Side Effects:
            Guarda las preferencias de la saliente, carga las de la
            entrante y limpia la selección.
        """
        index = self.resolve(index)
        if self.active_index != -1:
            self.molecules[self.active_index].settings = self.state.settings
        self.state.selection.clear()
        self.active_index = index
        entry = self.molecules[index]
        self.state.settings = entry.settings
        logger.info("Switched to %r", entry.name)
        return entry

    def rename(self, index: int, name: str) -> Tuple[str, str]:
        """Renombra una entrada; devuelve (nombre anterior, nombre nuevo)."""
        index = self.resolve(index)
        name = (name or "").strip()
        if not name:
            raise PreconditionError("Name cannot be empty")
        entry = self.molecules[index]
        old = entry.name
        entry.name = name
        return old, name

    def replace_structure(self, structure) -> None:
        """Sustituye la estructura activa (otro tipo o una derivada).

        Side Effects:
            Limpia la selección; el historial se conserva.
        """
        self.active.structure = structure
        self.state.selection.clear()

    def save_state(self) -> None:
        """Añade la instantánea actual al historial de la entrada activa."""
        self.active.history.push(self.structure.to_snapshot())

    # --- Portapapeles y fusión ----------------------------------------------

    def copy_selection(self) -> Clipboard:
        """Copia la selección al portapapeles del estado.

        Raises:
            PreconditionError: Si no hay átomos seleccionados.
        """
        atoms = list(self.state.selection)
        if not atoms:
            raise PreconditionError("No atoms selected")
        self.state.clipboard = Clipboard.from_atoms(self.structure, atoms)
        return self.state.clipboard

    def _offset_positions(self, positions: List[np.ndarray], min_distance: float) -> List[np.ndarray]:
        current = [atom.position for atom in self.structure.atoms]
        if min_distance <= 0 or not current:
            return positions
        shift = smart_offset(
            positions,
            current,
            min_distance,
            step=self.options.smart_offset_step,
            max_steps=self.options.smart_offset_max_steps,
        )
        return translated_positions(positions, shift)

    def paste(self, min_distance: float = 0.0) -> List[Atom]:
        """Pega el portapapeles desplazado y lo deja seleccionado.

        Args:
            min_distance: Si es positiva, además del desplazamiento fijo se
                aplica el desplazamiento +z mínimo que separa ambos grupos.

        Returns:
            Átomos creados.

        Raises:
            PreconditionError: Si el portapapeles está vacío.
        """
        clipboard = self.state.clipboard
        if clipboard.is_empty():
            raise PreconditionError("Clipboard is empty")
        positions = translated_positions((pos for _, pos in clipboard.atoms), self.options.paste_offset)
        positions = self._offset_positions(positions, min_distance)
        elements = [element for element, _ in clipboard.atoms]
        new_atoms = add_atoms_and_bonds(self.structure, zip(elements, positions), clipboard.bonds)
        self.state.selection.set(new_atoms)
        self.save_state()
        return new_atoms

    def merge(self, source: Union[int, str], min_distance: float = 0.0) -> Tuple[int, str]:
        """Copia otra estructura dentro de la activa y elimina la de origen.

        Returns:
            Tupla (átomos fusionados, nombre de la estructura de origen).

        Raises:
            PreconditionError: Si el origen no existe o es la activa.
        """
        index = self.resolve(source)
        if index == self.active_index:
            raise PreconditionError("Cannot merge molecule with itself")
        src = self.molecules[index].structure
        order = {atom.id: i for i, atom in enumerate(src.atoms)}
        positions = self._offset_positions([atom.position for atom in src.atoms], min_distance)
        bonds = [(order[b.atom1.id], order[b.atom2.id], b.order) for b in src.bonds]
        add_atoms_and_bonds(
            self.structure,
            zip((atom.element for atom in src.atoms), positions),
            bonds,
        )
        name = src.name
        self.remove(index)
        self.save_state()
        return len(order), name

    # --- Sustitución ------------------------------------------------------

    def substitute(self, target_indices: Sequence[int], group: FunctionalGroup) -> List[Atom]:
        """Reemplaza un átomo saliente del anfitrión por un grupo funcional.

        La dirección de anclaje es la VSEPR del ancla sin contar el átomo
        saliente; la longitud es la suma de radios covalentes.

        Returns:
            Átomos del grupo insertados.

        Side Effects:
            Inserta el grupo, elimina el átomo saliente y guarda el estado.
        """
        structure = self.structure
        leaving, anchor = resolve_substitution_indices(structure, target_indices)
        new_atoms = attach_group(structure, anchor, group, exclude=[leaving])
        structure.remove_atom(leaving)
        self.state.selection.prune(structure.atoms)
        self.save_state()
        return new_atoms

    def substitute_from(
        self,
        target_indices: Sequence[int],
        source: Union[int, str],
        source_indices: Sequence[int],
    ) -> List[Atom]:
        """Sustituye usando otra estructura abierta como grupo y la elimina.

        Raises:
            PreconditionError: Si el origen es la estructura activa o sus
                índices no definen un par saliente-ancla válido.
        """
        index = self.resolve(source)
        if index == self.active_index:
            raise PreconditionError("Cannot substitute with self")
        src = self.molecules[index].structure
        leaving, anchor = resolve_substitution_indices(src, source_indices)
        group = FunctionalGroup.from_structure(src, leaving, anchor)
        new_atoms = self.substitute(target_indices, group)
        self.remove(index)
        return new_atoms
