"""Modelos de datos base del editor estructural 3D.

Este módulo concentra las estructuras que representan el grafo molecular
(átomos y enlaces con adyacencia explícita). El resto de la aplicación
(cristales, geometría, editor y persistencia) interactúa con estas clases
para añadir, mover y eliminar átomos sin romper los invariantes del grafo:

* cada enlace vivo referencia dos átomos presentes en la estructura;
* cada enlace aparece en la lista de enlaces de sus dos extremos;
* existe como mucho un enlace por par no ordenado de átomos.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from core.errors import InconsistencyError, PreconditionError


@dataclass(eq=False)
class Atom:
    """Representa un átomo en el grafo molecular."""
    id: int
    element: str
    x: float
    y: float
    z: float
    bonds: List["Bond"] = field(default_factory=list, repr=False)

    @property
    def position(self) -> np.ndarray:
        """Posición cartesiana (Å) como vector nuevo."""
        return np.array([self.x, self.y, self.z], dtype=float)

    def neighbors(self) -> List["Atom"]:
        return [bond.other(self) for bond in self.bonds]


@dataclass(eq=False)
class Bond:
    """Representa un enlace químico entre dos átomos."""
    atom1: Atom
    atom2: Atom
    order: int = 1

    @property
    def id(self) -> str:
        return f"{self.atom1.id}-{self.atom2.id}"

    def other(self, atom: Atom) -> Atom:
        """Devuelve el extremo opuesto a `atom`."""
        if atom is self.atom1:
            return self.atom2
        if atom is self.atom2:
            return self.atom1
        raise PreconditionError(f"Atom {atom.id} is not part of bond {self.id}")

    def connects(self, a: Atom, b: Atom) -> bool:
        return (self.atom1 is a and self.atom2 is b) or (self.atom1 is b and self.atom2 is a)


def _check_position(element: str, position: Sequence[float]) -> Tuple[float, float, float]:
    try:
        x, y, z = (float(v) for v in position)
    except (TypeError, ValueError) as exc:
        raise PreconditionError(f"Invalid position for {element}: {position!r}") from exc
    if not all(math.isfinite(v) for v in (x, y, z)):
        raise PreconditionError(f"Invalid position for {element}: ({x}, {y}, {z})")
    return x, y, z


class Structure:
    """Grafo molecular mutable con operaciones de edición básicas.

    Los átomos y enlaces se guardan en listas ordenadas (el orden define
    los índices 0-based que usa la consola); un diccionario auxiliar
    resuelve átomos por ID.
    """

    is_crystal = False

    def __init__(self, name: str = "Molecule") -> None:
        """Inicializa la estructura vacía y el contador de IDs."""
        self.name = name
        self.atoms: List[Atom] = []
        self.bonds: List[Bond] = []
        self.next_atom_id = 1
        self._atoms_by_id: Dict[int, Atom] = {}

    def __len__(self) -> int:
        return len(self.atoms)

    def add_atom(
        self,
        element: str,
        position: Sequence[float],
        atom_id: Optional[int] = None,
    ) -> Atom:
        """Crea y registra un átomo en la estructura.

        Args:
            element: Símbolo del elemento químico (p. ej., "C", "O").
            position: Coordenadas cartesianas (Å).
            atom_id: ID explícito si se desea restaurar desde una instantánea.

        Returns:
            El átomo creado y añadido al final de `self.atoms`.

        Raises:
            PreconditionError: Si la posición no es finita, el elemento está
                vacío o el ID ya está en uso.

        Side Effects:
            Incrementa el contador de IDs y modifica `self.atoms`.
        """
        if not element:
            raise PreconditionError("Element symbol cannot be empty")
        x, y, z = _check_position(element, position)
        if atom_id is None:
            atom_id = self.next_atom_id
            self.next_atom_id += 1
        else:
            if atom_id in self._atoms_by_id:
                raise PreconditionError(f"Atom id {atom_id} already in use")
            self.next_atom_id = max(self.next_atom_id, atom_id + 1)
        atom = Atom(id=atom_id, element=element, x=x, y=y, z=z)
        self.atoms.append(atom)
        self._atoms_by_id[atom_id] = atom
        return atom

    def add_bond(self, atom1: Atom, atom2: Atom, order: int = 1) -> Bond:
        """Crea y registra un enlace entre dos átomos.

        Si ya existe un enlace entre el par se devuelve sin cambios.

        Args:
            atom1: Primer átomo (debe pertenecer a la estructura).
            atom2: Segundo átomo (distinto del primero).
            order: Orden de enlace (entero >= 1).

        Returns:
            El enlace creado o el existente.

        Raises:
            PreconditionError: Si los átomos son el mismo, no pertenecen a la
                estructura o el orden no es válido.

        Side Effects:
            Modifica `self.bonds` y las listas de adyacencia de ambos átomos.
        """
        if atom1 is atom2:
            raise PreconditionError("Cannot bond an atom to itself")
        for atom in (atom1, atom2):
            if self._atoms_by_id.get(atom.id) is not atom:
                raise PreconditionError(f"Atom {atom.id} does not belong to {self.name!r}")
        if int(order) != order or order < 1:
            raise PreconditionError(f"Invalid bond order: {order}")
        existing = self.get_bond(atom1, atom2)
        if existing is not None:
            return existing
        bond = Bond(atom1, atom2, int(order))
        self.bonds.append(bond)
        atom1.bonds.append(bond)
        atom2.bonds.append(bond)
        return bond

    def remove_bond(self, bond: Bond) -> Bond:
        """Elimina un enlace del grafo y de la adyacencia de sus extremos.

        Side Effects:
            Modifica `self.bonds` y las listas `Atom.bonds`.
        """
        for atom in (bond.atom1, bond.atom2):
            if bond in atom.bonds:
                atom.bonds.remove(bond)
        if bond in self.bonds:
            self.bonds.remove(bond)
        return bond

    def remove_atom(self, atom: Atom) -> tuple[Atom, List[Bond]]:
        """Elimina un átomo y todos los enlaces conectados.

        Args:
            atom: Átomo a eliminar.

        Returns:
            Una tupla con el átomo eliminado y la lista de enlaces removidos.

        Raises:
            PreconditionError: Si el átomo no pertenece a la estructura.

        Side Effects:
            Modifica `self.atoms` y `self.bonds`, actualizando el grafo.
        """
        if self._atoms_by_id.get(atom.id) is not atom:
            raise PreconditionError(f"Atom {atom.id} does not belong to {self.name!r}")
        removed_bonds = [self.remove_bond(bond) for bond in list(atom.bonds)]
        self.atoms.remove(atom)
        del self._atoms_by_id[atom.id]
        return atom, removed_bonds

    def get_bond(self, atom1: Atom, atom2: Atom) -> Optional[Bond]:
        """Busca un enlace existente entre dos átomos (simétrico)."""
        for bond in atom1.bonds:
            if bond.connects(atom1, atom2):
                return bond
        return None

    def get_atom(self, atom_id: int) -> Atom:
        """Obtiene un átomo por ID.

        Raises:
            PreconditionError: Si no existe un átomo con ese ID.
        """
        try:
            return self._atoms_by_id[atom_id]
        except KeyError:
            raise PreconditionError(f"No atom with id {atom_id}") from None

    def has_atom(self, atom: Atom) -> bool:
        return self._atoms_by_id.get(atom.id) is atom

    def atom_at(self, index: int) -> Atom:
        """Obtiene un átomo por índice 0-based.

        Raises:
            PreconditionError: Si el índice está fuera de rango.
        """
        if index < 0 or index >= len(self.atoms):
            raise PreconditionError(f"Invalid atom index: {index}")
        return self.atoms[index]

    def index_of(self, atom: Atom) -> int:
        return self.atoms.index(atom)

    def neighbors(self, atom: Atom) -> List[Atom]:
        return atom.neighbors()

    def move_atom(self, atom: Atom, position: Sequence[float]) -> None:
        """Actualiza la posición cartesiana de un átomo.

        Raises:
            PreconditionError: Si la nueva posición no es finita.

        Side Effects:
            Modifica el objeto `Atom`.
        """
        atom.x, atom.y, atom.z = _check_position(atom.element, position)

    def update_atom_element(self, atom: Atom, element: str) -> None:
        """Cambia el elemento químico de un átomo."""
        if not element:
            raise PreconditionError("Element symbol cannot be empty")
        atom.element = element

    def positions(self) -> np.ndarray:
        """Matriz (n, 3) con las posiciones de todos los átomos."""
        if not self.atoms:
            return np.zeros((0, 3))
        return np.array([[a.x, a.y, a.z] for a in self.atoms], dtype=float)

    def fragments(self) -> List[List[Atom]]:
        """Componentes conexas del grafo, en orden de aparición.

        Returns:
            Lista de fragmentos; cada fragmento conserva el orden de `self.atoms`.
        """
        order = {atom.id: i for i, atom in enumerate(self.atoms)}
        seen: set[int] = set()
        fragments: List[List[Atom]] = []
        for atom in self.atoms:
            if atom.id in seen:
                continue
            component: List[Atom] = []
            stack = [atom]
            seen.add(atom.id)
            while stack:
                current = stack.pop()
                component.append(current)
                for neighbor in current.neighbors():
                    if neighbor.id not in seen:
                        seen.add(neighbor.id)
                        stack.append(neighbor)
            component.sort(key=lambda a: order[a.id])
            fragments.append(component)
        return fragments

    def clear(self) -> None:
        """Elimina todos los átomos y enlaces.

        Side Effects:
            Limpia `self.atoms`, `self.bonds` y reinicia el contador de IDs.
        """
        for atom in self.atoms:
            atom.bonds.clear()
        self.atoms = []
        self.bonds = []
        self._atoms_by_id = {}
        self.next_atom_id = 1

    def clear_bonds(self) -> int:
        """Elimina todos los enlaces conservando los átomos."""
        count = len(self.bonds)
        for atom in self.atoms:
            atom.bonds.clear()
        self.bonds = []
        return count

    def check_integrity(self) -> None:
        """Verifica los invariantes del grafo.

        Raises:
            InconsistencyError: Si un enlace referencia un átomo ausente, la
                adyacencia no coincide con la lista de enlaces o hay enlaces
                duplicados.
        """
        pairs: set[frozenset[int]] = set()
        for bond in self.bonds:
            for atom in (bond.atom1, bond.atom2):
                if not self.has_atom(atom):
                    raise InconsistencyError(f"Bond {bond.id} references missing atom {atom.id}")
                if bond not in atom.bonds:
                    raise InconsistencyError(f"Bond {bond.id} missing from adjacency of atom {atom.id}")
            key = frozenset((bond.atom1.id, bond.atom2.id))
            if key in pairs:
                raise InconsistencyError(f"Duplicate bond {bond.id}")
            pairs.add(key)
        bond_set = set(map(id, self.bonds))
        for atom in self.atoms:
            for bond in atom.bonds:
                if id(bond) not in bond_set:
                    raise InconsistencyError(f"Atom {atom.id} lists stale bond {bond.id}")

    # --- Instantáneas -----------------------------------------------------

    def to_snapshot(self) -> Dict[str, Any]:
        """Serializa la estructura en un diccionario JSON-compatible."""
        return {
            "name": self.name,
            "atoms": [
                {"id": a.id, "element": a.element, "x": a.x, "y": a.y, "z": a.z}
                for a in self.atoms
            ],
            "bonds": [
                {"atom1Id": b.atom1.id, "atom2Id": b.atom2.id, "order": b.order}
                for b in self.bonds
            ],
        }

    def from_snapshot(self, data: Dict[str, Any]) -> None:
        """Restaura la estructura desde una instantánea.

        Args:
            data: Diccionario producido por `to_snapshot`.

        Side Effects:
            Reemplaza átomos y enlaces; el contador de IDs queda en max(id) + 1.

        Raises:
            InconsistencyError: Si un enlace apunta a un ID de átomo ausente.
        """
        self.clear()
        if data.get("name"):
            self.name = data["name"]
        for atom_d in data.get("atoms", []):
            self.add_atom(
                atom_d["element"],
                (atom_d["x"], atom_d["y"], atom_d["z"]),
                atom_id=atom_d["id"],
            )
        for bond_d in data.get("bonds", []):
            atom1 = self._atoms_by_id.get(bond_d["atom1Id"])
            atom2 = self._atoms_by_id.get(bond_d["atom2Id"])
            if atom1 is None or atom2 is None:
                raise InconsistencyError(
                    f"Bond references missing atom: {bond_d['atom1Id']}-{bond_d['atom2Id']}"
                )
            self.add_bond(atom1, atom2, bond_d.get("order", 1))

    def copy(self) -> "Structure":
        clone = type(self)(self.name)
        clone.from_snapshot(self.to_snapshot())
        return clone


def add_atoms_and_bonds(
    structure,
    atoms: Iterable[Tuple[str, Sequence[float]]],
    bonds: Iterable[Tuple[int, int, int]],
) -> List[Atom]:
    """Inserta en bloque átomos y enlaces ya preparados.

    Los índices de `bonds` se refieren a la secuencia `atoms`. Todas las
    posiciones se validan antes de tocar la estructura.

    Returns:
        Lista de átomos nuevos en el orden de entrada.
    """
    staged = [(element, _check_position(element, pos)) for element, pos in atoms]
    staged_bonds = list(bonds)
    for i, j, order in staged_bonds:
        if not (0 <= i < len(staged) and 0 <= j < len(staged)) or i == j:
            raise PreconditionError(f"Invalid bond indices ({i}, {j})")
    new_atoms = [structure.add_atom(element, pos) for element, pos in staged]
    for i, j, order in staged_bonds:
        structure.add_bond(new_atoms[i], new_atoms[j], order)
    return new_atoms
