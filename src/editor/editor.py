"""Contexto del editor: acciones sobre la estructura activa.

`Editor` agrupa opciones, estado (modo, selección, portapapeles) y el
gestor de estructuras. Cada acción completa su mutación antes de guardar
una instantánea en el historial; las acciones de varios pasos se ejecutan
dentro de `staged()`, que restaura la estructura si algo falla a mitad.
Los fallos esperados se lanzan como `ModelError` y el despachador de
comandos los convierte en `CommandResult`.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from contextlib import contextmanager
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from chemcalc import geometry
from chemcalc.autobond import auto_bond, rebond
from chemcalc.elements import is_element, normalize_symbol
from chemcalc.groups import FunctionalGroup, get_group
from chemcalc.placement import add_atom_smart, add_hydrogens, attach_group
from chemcalc.slab import generate_slab
from chemio import rdkit_io
from chemio.persistence import structure_from_snapshot
from chemio.poscar import read_poscar
from core.crystal import Crystal
from core.errors import ModelError, PreconditionError
from core.lattice import Lattice
from core.model import Atom
from editor.manager import MoleculeManager
from editor.options import EditorOptions
from editor.result import CommandResult
from editor.state import EditorState

logger = logging.getLogger(__name__)


def check_element(symbol: str) -> str:
    """Normaliza y valida un símbolo de elemento.

    Raises:
        PreconditionError: Si el símbolo no es un elemento conocido.
    """
    element = normalize_symbol(symbol)
    if not is_element(element):
        raise PreconditionError(f"Invalid element: {symbol}")
    return element


class Editor:
    """Contexto explícito del editor estructural.

    Attributes:
        options: Opciones de configuración.
        state: Modo, selección, portapapeles y preferencias activas.
        manager: Gestor de estructuras con nombre.
        bond_threshold: Factor de autoenlace vigente.
    """

    def __init__(self, options: Optional[EditorOptions] = None, executor: Optional[Executor] = None) -> None:
        self.options = options or EditorOptions()
        self.state = EditorState(self.options.default_element)
        self.manager = MoleculeManager(self.state, self.options)
        self.bond_threshold = self.options.bond_threshold
        self._executor = executor

    @property
    def structure(self):
        return self.manager.structure

    @property
    def history(self):
        return self.manager.active.history

    @property
    def selection(self):
        return self.state.selection

    @property
    def executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="smiles")
        return self._executor

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # --- Historial --------------------------------------------------------

    def save_state(self) -> None:
        self.manager.save_state()

    @contextmanager
    def staged(self):
        """Ejecuta una mutación de varios pasos de forma atómica.

        Si el bloque lanza `ModelError`, la estructura vuelve al estado
        previo y la excepción se propaga.
        """
        snapshot = self.structure.to_snapshot()
        try:
            yield self.structure
        except ModelError:
            self._restore(snapshot)
            raise

    def _restore(self, snapshot) -> None:
        structure = self.structure
        if bool(snapshot.get("isCrystal")) == structure.is_crystal:
            structure.from_snapshot(snapshot)
        else:
            self.manager.replace_structure(structure_from_snapshot(snapshot))
        self.selection.clear()

    def undo(self) -> CommandResult:
        snapshot = self.history.undo()
        if snapshot is None:
            return CommandResult.info("Nothing to undo")
        self._restore(snapshot)
        return CommandResult.success("Undid last action")

    def redo(self) -> CommandResult:
        snapshot = self.history.redo()
        if snapshot is None:
            return CommandResult.info("Nothing to redo")
        self._restore(snapshot)
        return CommandResult.success("Redid last action")

    # --- Selección --------------------------------------------------------

    def atoms_at(self, indices: Iterable[int]) -> List[Atom]:
        return [self.structure.atom_at(i) for i in indices]

    def select(self, atoms: Iterable[Atom]) -> int:
        self.selection.set(atoms)
        return len(self.selection)

    def select_fragment(self, index: int) -> List[Atom]:
        fragment = self.fragment(index)
        self.selection.set(fragment)
        return fragment

    def fragment(self, index: int) -> List[Atom]:
        fragments = self.structure.fragments()
        if not 0 <= index < len(fragments):
            raise PreconditionError(f"Invalid fragment index: {index} ({len(fragments)} fragments)")
        return fragments[index]

    # --- Restricciones geométricas ------------------------------------------

    def _apply_positions(self, atoms: Sequence[Atom], positions: Sequence[np.ndarray]) -> None:
        for atom, pos in zip(atoms, positions):
            self.structure.move_atom(atom, pos)

    def set_bond_length(self, target: float) -> CommandResult:
        """Ajusta la distancia entre los dos primeros átomos seleccionados.

        Se traslada el fragmento unido al segundo átomo sin atravesar el
        primero.

        Raises:
            PreconditionError: Si hay menos de dos átomos o la distancia no
                es positiva.
        """
        a1, a2 = self.selection.first(2)
        moving = geometry.moving_fragment(a1, a2)
        positions = geometry.positions_for_bond_length(
            a1.position, a2.position, [a.position for a in moving], target
        )
        self._apply_positions(moving, positions)
        self.save_state()
        return CommandResult.success(f"Bond length set to {target:.2f} Å")

    def set_angle(self, target: float) -> CommandResult:
        """Ajusta el ángulo A-B-C de los tres primeros átomos seleccionados.

        Gira alrededor de B el fragmento unido a C.
        """
        a1, pivot, a3 = self.selection.first(3)
        moving = geometry.moving_fragment(pivot, a3)
        positions = geometry.positions_for_angle(
            a1.position, pivot.position, a3.position, [a.position for a in moving], target
        )
        self._apply_positions(moving, positions)
        self.save_state()
        return CommandResult.success(f"Angle set to {target:.1f}°")

    def set_dihedral(self, target: float) -> CommandResult:
        """Ajusta el diedro de los cuatro primeros átomos seleccionados.

        Raises:
            PreconditionError: Si el cuarto átomo no pertenece al fragmento
                que gira alrededor del eje P2→P3.
        """
        a1, a2, a3, a4 = self.selection.first(4)
        moving = geometry.moving_fragment_for_dihedral(a2, a3, exclude=[a1])
        if a4 not in moving:
            raise PreconditionError("Invalid dihedral selection: atoms are not properly connected")
        positions = geometry.positions_for_dihedral(
            a1.position, a2.position, a3.position, a4.position, [a.position for a in moving], target
        )
        self._apply_positions(moving, positions)
        self.save_state()
        return CommandResult.success(f"Dihedral set to {target:.1f}°")

    def measure(self, atoms: Optional[Sequence[Atom]] = None) -> Tuple[str, float]:
        """Distancia, ángulo o diedro de 2, 3 o 4 átomos (por defecto la selección)."""
        if atoms is None:
            atoms = list(self.selection)
        return geometry.measure([a.position for a in atoms])

    # --- Edición de átomos y enlaces -----------------------------------------

    def add_atom(self, element: Optional[str] = None, position: Sequence[float] = (0.0, 0.0, 0.0)) -> Atom:
        element = check_element(element or self.state.default_element)
        atom = self.structure.add_atom(element, position)
        self.save_state()
        return atom

    def add_atom_bonded(self, anchor: Atom, element: Optional[str] = None) -> Atom:
        """Añade un átomo unido a `anchor` en la dirección VSEPR."""
        element = check_element(element or self.state.default_element)
        atom = add_atom_smart(self.structure, anchor, element)
        self.save_state()
        return atom

    def add_bond(self, atom1: Atom, atom2: Atom, order: int = 1):
        if self.structure.get_bond(atom1, atom2) is not None:
            raise PreconditionError("Bond already exists")
        bond = self.structure.add_bond(atom1, atom2, order)
        self.save_state()
        return bond

    def remove_bond(self, atom1: Atom, atom2: Atom) -> None:
        bond = self.structure.get_bond(atom1, atom2)
        if bond is None:
            raise PreconditionError("No bond found")
        self.structure.remove_bond(bond)
        self.save_state()

    def delete_atoms(self, atoms: Iterable[Atom]) -> int:
        """Elimina átomos (y sus enlaces) en un solo paso del historial."""
        atoms = list(dict.fromkeys(atoms))
        if not atoms:
            return 0
        with self.staged() as structure:
            for atom in atoms:
                structure.remove_atom(atom)
        self.selection.prune(self.structure.atoms)
        self.save_state()
        return len(atoms)

    def delete_selected(self) -> int:
        count = self.delete_atoms(list(self.selection))
        self.selection.clear()
        return count

    def clear_atoms(self) -> int:
        count = len(self.structure)
        self.structure.clear()
        self.selection.clear()
        self.save_state()
        return count

    def change_element(self, atom: Atom, element: str) -> None:
        self.structure.update_atom_element(atom, check_element(element))
        self.save_state()

    def add_hydrogens(self, atoms: Optional[Iterable[Atom]] = None) -> int:
        """Satura con hidrógenos (heurística VSEPR) los átomos dados o todos."""
        targets = list(atoms) if atoms is not None else list(self.structure.atoms)
        added = 0
        with self.staged() as structure:
            for atom in targets:
                added += len(add_hydrogens(structure, atom))
        if added:
            self.save_state()
        return added

    def add_explicit_hydrogens(self) -> int:
        """Añade los hidrógenos que infiere RDKit a partir de las valencias."""
        with self.staged() as structure:
            added = rdkit_io.add_explicit_hydrogens(structure)
        if added:
            self.save_state()
        return len(added)

    def resolve_group(self, name: str) -> FunctionalGroup:
        """Busca un grupo entre los definidos en la sesión y luego en la biblioteca.

        Raises:
            PreconditionError: Si el nombre no corresponde a ningún grupo.
        """
        custom = self.state.custom_groups
        lowered = {key.lower(): group for key, group in custom.items()}
        if name.lower() in lowered:
            return lowered[name.lower()]
        return get_group(name)

    def register_group(self, group: FunctionalGroup) -> FunctionalGroup:
        """Registra un grupo de sesión y lo deja seleccionado."""
        self.state.custom_groups[group.name] = group
        self.state.selected_group = group.name
        logger.info("Registered functional group %r", group.name)
        return group

    def define_group_from_smiles(self, smiles: str, name: Optional[str] = None) -> FunctionalGroup:
        """Crea un grupo desde un SMILES con punto de unión `*`.

        Raises:
            HelperError: Si RDKit no está disponible o el SMILES no sirve.
        """
        return self.register_group(rdkit_io.group_from_smiles(smiles, name))

    def attach_group(self, anchor: Atom, name: Optional[str] = None) -> List[Atom]:
        """Inserta un grupo (de la sesión o de la biblioteca) unido a `anchor`."""
        group_name = name or self.state.selected_group
        if not group_name:
            raise PreconditionError("No functional group selected")
        group = self.resolve_group(group_name)
        with self.staged() as structure:
            new_atoms = attach_group(structure, anchor, group)
        self.save_state()
        return new_atoms

    # --- Transformaciones rígidas -------------------------------------------

    def center(self) -> None:
        atoms = self.structure.atoms
        if not atoms:
            raise PreconditionError("No atoms")
        offset = -geometry.centroid(atoms)
        self._apply_positions(atoms, geometry.translated_positions((a.position for a in atoms), offset))
        self.save_state()

    def translate(self, atoms: Sequence[Atom], offset: Sequence[float]) -> None:
        self._apply_positions(atoms, geometry.translated_positions((a.position for a in atoms), offset))
        self.save_state()

    def rotate(self, atoms: Sequence[Atom], angles: Sequence[float], about_centroid: bool = False) -> None:
        """Rota átomos con ángulos de Euler XYZ (grados).

        Args:
            atoms: Átomos a rotar.
            angles: Ángulos (x, y, z) en grados.
            about_centroid: Si es True se rota alrededor del centroide de
                los átomos; si no, alrededor del origen.
        """
        center = geometry.centroid(atoms) if about_centroid else (0.0, 0.0, 0.0)
        x, y, z = angles
        positions = geometry.rotated_positions((a.position for a in atoms), x, y, z, center)
        self._apply_positions(atoms, positions)
        self.save_state()

    # --- Enlaces automáticos ------------------------------------------------

    def set_threshold(self, value: float) -> None:
        if not value > 0:
            raise PreconditionError("Invalid threshold")
        self.bond_threshold = float(value)

    def autobond(self) -> int:
        """Añade enlaces por distancia (PBC en cristales)."""
        before = len(self.structure.bonds)
        auto_bond(self.structure, self.bond_threshold)
        added = len(self.structure.bonds) - before
        if added:
            self.save_state()
        return added

    def rebond(self) -> int:
        count = rebond(self.structure, self.bond_threshold)
        self.save_state()
        return count

    # --- Operaciones cristalinas --------------------------------------------

    def _require_crystal(self) -> Crystal:
        structure = self.structure
        if not structure.is_crystal or structure.lattice is None:
            raise PreconditionError("Active structure is not a crystal")
        return structure

    def _crystal_source(self) -> Crystal:
        crystal = self._require_crystal()
        reference = self.manager.active.reference
        if self.options.fix_lattice and reference is not None:
            return structure_from_snapshot(reference)
        return crystal

    def set_cell(self, lattice: Lattice) -> Crystal:
        """Define la red de la estructura activa (la convierte en cristal)."""
        lattice.vectors()
        structure = self.structure
        if structure.is_crystal:
            structure.set_lattice(lattice)
        else:
            structure = Crystal.from_structure(structure, lattice)
            self.manager.replace_structure(structure)
        entry = self.manager.active
        if entry.reference is None:
            entry.reference = structure.to_snapshot()
        self.save_state()
        return structure

    def wrap(self) -> int:
        crystal = self._require_crystal()
        crystal.wrap_atoms()
        self.save_state()
        return len(crystal)

    def supercell(self, matrix: Sequence[Sequence[int]]) -> Crystal:
        """Reemplaza la estructura activa por una supercelda."""
        result = self._crystal_source().generate_supercell_matrix(matrix)
        self.manager.replace_structure(result)
        self.save_state()
        return result

    def slab(
        self,
        h: int,
        k: int,
        l: int,
        layers: Optional[int] = None,
        vacuum: Optional[float] = None,
        centered: Optional[bool] = None,
    ) -> Crystal:
        """Reemplaza la estructura activa por un slab (hkl)."""
        result = generate_slab(
            self._crystal_source(),
            h,
            k,
            l,
            layers=self.options.slab_layers if layers is None else layers,
            vacuum=self.options.slab_vacuum if vacuum is None else vacuum,
            centered=self.options.slab_centered if centered is None else centered,
        )
        self.manager.replace_structure(result)
        self.save_state()
        return result

    def load_poscar(self, filepath: str) -> Crystal:
        """Lee un POSCAR como estructura nueva y lo guarda como celda de referencia."""
        crystal = read_poscar(filepath)
        entry = self.manager.create(structure=crystal)
        entry.reference = crystal.to_snapshot()
        return crystal

    # --- Importación SMILES -------------------------------------------------

    def submit_smiles(self, smiles: str, add_hydrogens: bool = True) -> Future:
        """Lanza la generación 3D; el modelo no cambia hasta `install_import`."""
        return rdkit_io.submit_smiles_import(self.executor, smiles, add_hydrogens)

    def install_import(self, future: Future, min_distance: float = 2.0) -> List[Atom]:
        """Inserta en la estructura activa el resultado de una importación.

        El fragmento se desplaza en +z si se solapa con los átomos presentes.

        Raises:
            HelperError: Si la tarea falló.
        """
        fragment = future.result()
        positions = [pos for _, pos in fragment.atoms]
        current = [a.position for a in self.structure.atoms]
        offset = (0.0, 0.0, 0.0)
        if current and positions:
            offset = geometry.smart_offset(
                positions,
                current,
                min_distance,
                step=self.options.smart_offset_step,
                max_steps=self.options.smart_offset_max_steps,
            )
        new_atoms = rdkit_io.install_fragment(self.structure, fragment, offset)
        self.save_state()
        logger.info("Installed %d atoms from %s", len(new_atoms), fragment.name)
        return new_atoms

    def import_smiles(self, smiles: str, add_hydrogens: bool = True) -> List[Atom]:
        return self.install_import(self.submit_smiles(smiles, add_hydrogens))
