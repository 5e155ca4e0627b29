"""Modelo de cristal: grafo molecular + red periódica.

`Crystal` se construye por composición: posee una `Structure` y expone
sus operaciones por delegación, añadiendo la red (`Lattice`), la caché de
coordenadas fraccionarias por ID de átomo y metadatos cristalográficos.
El código que necesita distinguir cristales de moléculas consulta el
atributo `is_crystal`.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from core import vecmath
from core.errors import PreconditionError
from core.lattice import Lattice
from core.model import Atom, Bond, Structure

SUPERCELL_EPS = 1e-6


def wrap_unit(value: float) -> float:
    """Reduce una coordenada fraccionaria al intervalo [0, 1)."""
    wrapped = ((value % 1.0) + 1.0) % 1.0
    if wrapped >= 1.0:
        return 0.0
    return wrapped


def _is_strictly_diagonal(matrix: Sequence[Sequence[int]]) -> bool:
    return all(matrix[i][j] == 0 for i in range(3) for j in range(3) if i != j)


class Crystal:
    """Estructura periódica con celda unidad.

    Attributes:
        structure: Grafo molecular de la celda de referencia.
        lattice: Parámetros de red, o None si aún no se ha definido.
        space_group: Símbolo Hermann-Mauguin (informativo).
        space_group_number: Número de grupo espacial (informativo).
        frac_coords: Caché ID de átomo -> coordenadas fraccionarias.
        slab_info: Metadatos del generador de superficies, si aplica.
    """

    is_crystal = True

    def __init__(self, name: str = "Crystal", lattice: Optional[Lattice] = None) -> None:
        self.structure = Structure(name)
        self.lattice: Optional[Lattice] = lattice
        self.space_group: Optional[str] = None
        self.space_group_number: Optional[int] = None
        self.frac_coords: Dict[int, Tuple[float, float, float]] = {}
        self.slab_info: Optional[Dict[str, Any]] = None

    # --- Delegación al grafo ----------------------------------------------

    @property
    def name(self) -> str:
        return self.structure.name

    @name.setter
    def name(self, value: str) -> None:
        self.structure.name = value

    @property
    def atoms(self) -> List[Atom]:
        return self.structure.atoms

    @property
    def bonds(self) -> List[Bond]:
        return self.structure.bonds

    @property
    def next_atom_id(self) -> int:
        return self.structure.next_atom_id

    def __len__(self) -> int:
        return len(self.structure)

    def add_atom(self, element: str, position: Sequence[float], atom_id: Optional[int] = None) -> Atom:
        """Añade un átomo en coordenadas cartesianas.

        La coordenada fraccionaria se calcula de forma diferida con
        `get_frac_safe`.
        """
        return self.structure.add_atom(element, position, atom_id=atom_id)

    def add_bond(self, atom1: Atom, atom2: Atom, order: int = 1) -> Bond:
        return self.structure.add_bond(atom1, atom2, order)

    def remove_bond(self, bond: Bond) -> Bond:
        return self.structure.remove_bond(bond)

    def remove_atom(self, atom: Atom) -> tuple[Atom, List[Bond]]:
        """Elimina un átomo, sus enlaces y su entrada fraccionaria."""
        result = self.structure.remove_atom(atom)
        self.frac_coords.pop(atom.id, None)
        return result

    def get_bond(self, atom1: Atom, atom2: Atom) -> Optional[Bond]:
        return self.structure.get_bond(atom1, atom2)

    def get_atom(self, atom_id: int) -> Atom:
        return self.structure.get_atom(atom_id)

    def has_atom(self, atom: Atom) -> bool:
        return self.structure.has_atom(atom)

    def atom_at(self, index: int) -> Atom:
        return self.structure.atom_at(index)

    def index_of(self, atom: Atom) -> int:
        return self.structure.index_of(atom)

    def neighbors(self, atom: Atom) -> List[Atom]:
        return self.structure.neighbors(atom)

    def move_atom(self, atom: Atom, position: Sequence[float]) -> None:
        """Mueve un átomo e invalida su coordenada fraccionaria en caché."""
        self.structure.move_atom(atom, position)
        self.frac_coords.pop(atom.id, None)

    def update_atom_element(self, atom: Atom, element: str) -> None:
        self.structure.update_atom_element(atom, element)

    def positions(self) -> np.ndarray:
        return self.structure.positions()

    def fragments(self) -> List[List[Atom]]:
        return self.structure.fragments()

    def clear(self) -> None:
        self.structure.clear()
        self.frac_coords = {}

    def clear_bonds(self) -> int:
        return self.structure.clear_bonds()

    def check_integrity(self) -> None:
        self.structure.check_integrity()

    # --- Operaciones cristalinas ------------------------------------------

    def _require_lattice(self) -> Lattice:
        if self.lattice is None:
            raise PreconditionError("Crystal: lattice not set")
        return self.lattice

    def set_lattice(self, lattice: Lattice) -> None:
        """Reemplaza la red conservando las posiciones cartesianas.

        Side Effects:
            Vacía la caché fraccionaria; las coordenadas se recalculan bajo
            demanda con la nueva red.
        """
        self.lattice = lattice
        self.frac_coords = {}

    def add_atom_fractional(self, element: str, frac: Sequence[float]) -> Atom:
        """Añade un átomo a partir de coordenadas fraccionarias.

        Args:
            element: Símbolo del elemento.
            frac: Coordenadas (fx, fy, fz).

        Returns:
            El átomo creado, con su posición cartesiana calculada.

        Raises:
            PreconditionError: Si no hay red o las coordenadas no son finitas.
        """
        lattice = self._require_lattice()
        fx, fy, fz = (float(v) for v in frac)
        if not vecmath.is_finite((fx, fy, fz)):
            raise PreconditionError(f"Invalid fractional coordinates for {element}: ({fx}, {fy}, {fz})")
        atom = self.structure.add_atom(element, lattice.frac_to_cart((fx, fy, fz)))
        self.frac_coords[atom.id] = (fx, fy, fz)
        return atom

    def get_frac(self, atom: Atom) -> Optional[Tuple[float, float, float]]:
        return self.frac_coords.get(atom.id)

    def get_frac_safe(self, atom: Atom) -> Tuple[float, float, float]:
        """Coordenadas fraccionarias en caché o recalculadas desde la posición."""
        cached = self.get_frac(atom)
        if cached is not None:
            return cached
        frac = self._require_lattice().cart_to_frac(atom.position)
        return (float(frac[0]), float(frac[1]), float(frac[2]))

    def wrap_atoms(self) -> None:
        """Lleva todos los átomos a la celda [0, 1).

        Side Effects:
            Actualiza posiciones cartesianas y la caché fraccionaria.
        """
        if self.lattice is None:
            return
        staged = []
        for atom in self.atoms:
            frac = tuple(wrap_unit(v) for v in self.get_frac_safe(atom))
            staged.append((atom, frac, self.lattice.frac_to_cart(frac)))
        for atom, frac, cart in staged:
            self.structure.move_atom(atom, cart)
            self.frac_coords[atom.id] = frac

    def generate_supercell_matrix(self, matrix: Sequence[Sequence[int]]) -> "Crystal":
        """Genera una supercelda con una matriz entera 3x3 (forma por filas).

        Los nuevos vectores son aⁿ_i = Σ_j S[i][j]·a_j y las coordenadas
        fraccionarias se transforman con (Sᵀ)⁻¹.

        Args:
            matrix: Matriz de transformación S con entradas enteras.

        Returns:
            Un cristal nuevo; la estructura original no se modifica.

        Raises:
            PreconditionError: Si falta la red, la matriz no es 3x3 entera o
                |det S| < 0.1.
        """
        lattice = self._require_lattice()
        if len(matrix) != 3 or any(row is None or len(row) != 3 for row in matrix):
            raise PreconditionError("Transformation matrix must be 3×3")
        for row in matrix:
            for value in row:
                if float(value) != int(value):
                    raise PreconditionError(f"Transformation matrix must be integer, got {value}")
        s = np.array(matrix, dtype=float)
        det = vecmath.determinant(s)
        if abs(det) < 0.1:
            raise PreconditionError(f"Transformation matrix is singular (det = {det:.4f})")

        va, vb, vc = lattice.vectors()
        basis = np.array([va, vb, vc])
        new_vectors = s @ basis
        st_inv = vecmath.inverse(s.T)
        r = int(np.max(np.abs(s))) + 1

        ints = [[int(v) for v in row] for row in matrix]
        diagonal = _is_strictly_diagonal(ints)
        if diagonal:
            name = f"{self.name} {ints[0][0]}×{ints[1][1]}×{ints[2][2]}"
        else:
            name = f"{self.name} (matrix supercell)"

        supercell = Crystal(name, Lattice.from_vectors(*new_vectors))
        if diagonal:
            supercell.space_group = self.space_group
            supercell.space_group_number = self.space_group_number
        else:
            supercell.space_group = "P 1"
            supercell.space_group_number = 1

        offsets = range(-r, r + 1)
        for atom in self.atoms:
            frac = np.array(self.get_frac_safe(atom))
            for n1 in offsets:
                for n2 in offsets:
                    for n3 in offsets:
                        f_new = st_inv @ (frac + np.array([n1, n2, n3], dtype=float))
                        if np.all(f_new >= -SUPERCELL_EPS) and np.all(f_new < 1.0 - SUPERCELL_EPS):
                            supercell.add_atom_fractional(
                                atom.element, tuple(wrap_unit(float(v)) for v in f_new)
                            )
        return supercell

    def generate_supercell(self, na: int, nb: int, nc: int) -> "Crystal":
        """Repite la celda na×nb×nc veces a lo largo de a, b y c."""
        return self.generate_supercell_matrix([[na, 0, 0], [0, nb, 0], [0, 0, nc]])

    # --- Instantáneas -----------------------------------------------------

    def to_snapshot(self) -> Dict[str, Any]:
        """Serializa el cristal (grafo + extensión periódica)."""
        data = self.structure.to_snapshot()
        data.update(
            {
                "isCrystal": True,
                "lattice": self.lattice.to_dict() if self.lattice is not None else None,
                "spaceGroup": self.space_group,
                "spaceGroupNumber": self.space_group_number,
                "fracCoords": [
                    {"id": atom.id, "fx": f[0], "fy": f[1], "fz": f[2]}
                    for atom in self.atoms
                    if (f := self.frac_coords.get(atom.id)) is not None
                ],
            }
        )
        if self.slab_info is not None:
            data["slabInfo"] = dict(self.slab_info)
        return data

    def from_snapshot(self, data: Dict[str, Any]) -> None:
        """Restaura el cristal desde una instantánea."""
        self.structure.from_snapshot(data)
        lattice_d = data.get("lattice")
        self.lattice = Lattice.from_dict(lattice_d) if lattice_d else None
        self.space_group = data.get("spaceGroup")
        self.space_group_number = data.get("spaceGroupNumber")
        self.frac_coords = {
            fc["id"]: (fc["fx"], fc["fy"], fc["fz"]) for fc in data.get("fracCoords", [])
        }
        slab_info = data.get("slabInfo")
        self.slab_info = dict(slab_info) if slab_info else None

    def copy(self) -> "Crystal":
        clone = Crystal(self.name)
        clone.from_snapshot(self.to_snapshot())
        return clone

    @classmethod
    def from_structure(cls, structure: Structure, lattice: Lattice) -> "Crystal":
        """Convierte una molécula en cristal conservando IDs y enlaces."""
        crystal = cls(structure.name, lattice)
        crystal.structure.from_snapshot(structure.to_snapshot())
        return crystal
