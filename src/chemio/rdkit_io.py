"""Puente con RDKit: SMILES a 3D, hidrógenos explícitos y exportación.

RDKit es opcional en tiempo de ejecución; las funciones que lo necesitan
lanzan `HelperError` si no está instalado. La generación 3D puede tardar,
por eso `submit_smiles_import` la ejecuta como tarea de un ejecutor y la
inserción en el modelo (`install_fragment`) es un paso síncrono aparte.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from chemcalc.elements import DUMMY_ELEMENT
from chemcalc.groups import FunctionalGroup
from core.errors import HelperError
from core.model import Atom, add_atoms_and_bonds

try:
    from rdkit import Chem
    from rdkit.Chem import AllChem
except Exception:  # pragma: no cover - optional dependency at runtime
    Chem = None
    AllChem = None

logger = logging.getLogger(__name__)

EMBED_SEED = 0xF00D


def _require_rdkit():
    if Chem is None or AllChem is None:
        raise HelperError("RDKit no disponible")


@dataclass
class ImportedFragment:
    """Lista etiquetada de átomos con coordenadas producida por el ayudante.

    Attributes:
        name: Texto de origen (p. ej., el SMILES).
        atoms: Lista de (elemento, (x, y, z)).
        bonds: Lista de (índice, índice, orden) sobre `atoms`.
    """
    name: str
    atoms: List[Tuple[str, Tuple[float, float, float]]] = field(default_factory=list)
    bonds: List[Tuple[int, int, int]] = field(default_factory=list)


def _bond_order(bond) -> int:
    if bond.GetBondType() == Chem.BondType.DOUBLE:
        return 2
    if bond.GetBondType() == Chem.BondType.TRIPLE:
        return 3
    return 1


def _embed(mol) -> None:
    params = AllChem.ETKDGv3()
    params.randomSeed = EMBED_SEED
    if AllChem.EmbedMolecule(mol, params) != 0:
        raise HelperError("3D embedding failed")
    try:
        AllChem.MMFFOptimizeMolecule(mol)
    except Exception as exc:
        logger.warning("MMFF optimization skipped: %s", exc)


def _mol_to_fragment(mol, name: str) -> ImportedFragment:
    Chem.Kekulize(mol, clearAromaticFlags=True)
    conf = mol.GetConformer()
    fragment = ImportedFragment(name)
    for atom in mol.GetAtoms():
        pos = conf.GetAtomPosition(atom.GetIdx())
        fragment.atoms.append((atom.GetSymbol(), (pos.x, pos.y, pos.z)))
    for bond in mol.GetBonds():
        fragment.bonds.append((bond.GetBeginAtomIdx(), bond.GetEndAtomIdx(), _bond_order(bond)))
    return fragment


def smiles_to_atoms(smiles: str, add_hydrogens: bool = True) -> ImportedFragment:
    """Genera una geometría 3D (ETKDG) a partir de un SMILES.

    Args:
        smiles: Cadena SMILES.
        add_hydrogens: Si es False, los hidrógenos se retiran tras el
            embebido (que siempre se hace con hidrógenos explícitos).

    Returns:
        Fragmento con átomos, coordenadas (Å) y enlaces.

    Raises:
        HelperError: Si RDKit no está disponible, el SMILES es inválido o
            falla el embebido.
    """
    _require_rdkit()
    mol = Chem.MolFromSmiles(smiles)
    if mol is None:
        raise HelperError(f"Invalid SMILES: {smiles}")
    mol = Chem.AddHs(mol)
    _embed(mol)
    if not add_hydrogens:
        mol = Chem.RemoveHs(mol)
    return _mol_to_fragment(mol, smiles)


def submit_smiles_import(executor: Executor, smiles: str, add_hydrogens: bool = True) -> Future:
    """Lanza la generación 3D como tarea; el modelo no se toca hasta instalar."""
    logger.info("Submitting SMILES import: %s", smiles)
    return executor.submit(smiles_to_atoms, smiles, add_hydrogens)


def install_fragment(structure, fragment: ImportedFragment, offset: Sequence[float] = (0.0, 0.0, 0.0)) -> List[Atom]:
    """Inserta un fragmento completo en la estructura en un solo paso.

    Side Effects:
        Añade átomos y enlaces a `structure`.
    """
    dx, dy, dz = (float(v) for v in offset)
    atoms = [(el, (x + dx, y + dy, z + dz)) for el, (x, y, z) in fragment.atoms]
    return add_atoms_and_bonds(structure, atoms, fragment.bonds)


def structure_to_rdkit_with_map(structure):
    """Convierte una estructura en `Chem.Mol` con conformero 3D.

    Returns:
        Tupla (mol, mapa ID de átomo -> índice RDKit).
    """
    _require_rdkit()
    rw = Chem.RWMol()
    id_map: Dict[int, int] = {}
    for atom in structure.atoms:
        if atom.element == DUMMY_ELEMENT:
            rd_atom = Chem.Atom(0)
        elif atom.element == "D":
            rd_atom = Chem.Atom("H")
            rd_atom.SetIsotope(2)
        else:
            rd_atom = Chem.Atom(atom.element)
        id_map[atom.id] = rw.AddAtom(rd_atom)

    for bond in structure.bonds:
        if bond.order == 2:
            bond_type = Chem.BondType.DOUBLE
        elif bond.order == 3:
            bond_type = Chem.BondType.TRIPLE
        else:
            bond_type = Chem.BondType.SINGLE
        rw.AddBond(id_map[bond.atom1.id], id_map[bond.atom2.id], bond_type)

    mol = rw.GetMol()
    conf = Chem.Conformer(mol.GetNumAtoms())
    for atom in structure.atoms:
        conf.SetAtomPosition(id_map[atom.id], (atom.x, atom.y, atom.z))
    mol.AddConformer(conf, assignId=True)
    return mol, id_map


def structure_to_smiles(structure) -> str:
    """SMILES canónico de la estructura (sin sanitizar valencias)."""
    mol, _ = structure_to_rdkit_with_map(structure)
    mol.UpdatePropertyCache(strict=False)
    return Chem.MolToSmiles(mol, canonical=True)


def add_explicit_hydrogens(structure) -> List[Atom]:
    """Añade los hidrógenos implícitos que infiere RDKit.

    Las posiciones nuevas se calculan sobre la geometría actual; los
    átomos existentes no se mueven.

    Returns:
        Lista de hidrógenos añadidos.

    Raises:
        HelperError: Si RDKit no está disponible o no puede interpretar
            las valencias de la estructura.
    """
    mol, id_map = structure_to_rdkit_with_map(structure)
    try:
        Chem.SanitizeMol(mol)
        mol_h = Chem.AddHs(mol, addCoords=True)
    except Exception as exc:
        raise HelperError(f"Hydrogen inference failed: {exc}") from exc

    rd_to_atom = {idx: structure.get_atom(atom_id) for atom_id, idx in id_map.items()}
    conf = mol_h.GetConformer()
    staged: List[Tuple[Atom, Tuple[float, float, float]]] = []
    for rd_atom in mol_h.GetAtoms():
        idx = rd_atom.GetIdx()
        if idx < mol.GetNumAtoms():
            continue
        parent_idx = rd_atom.GetNeighbors()[0].GetIdx()
        pos = conf.GetAtomPosition(idx)
        staged.append((rd_to_atom[parent_idx], (pos.x, pos.y, pos.z)))

    added = add_atoms_and_bonds(structure, [("H", pos) for _, pos in staged], [])
    for (parent, _), hydrogen in zip(staged, added):
        structure.add_bond(parent, hydrogen, 1)
    logger.info("Added %d explicit hydrogens", len(added))
    return added


def group_from_smiles(smiles: str, name: Optional[str] = None) -> FunctionalGroup:
    """Construye un grupo funcional desde un SMILES con punto de unión `*`.

    El punto de unión se sustituye por deuterio para que RDKit complete
    las valencias; tras el embebido el deuterio pasa a ser el ficticio.
    Si no hay `*`, se usa el primer hidrógeno.

    Raises:
        HelperError: Si RDKit no está disponible, el SMILES es inválido o
            no hay punto de unión utilizable.
    """
    _require_rdkit()
    processing = smiles.replace("[*]", "[2H]").replace("*", "[2H]")
    mol = Chem.MolFromSmiles(processing)
    if mol is None:
        raise HelperError(f"Invalid SMILES: {smiles}")
    mol = Chem.AddHs(mol)
    _embed(mol)
    fragment = _mol_to_fragment(mol, smiles)

    dummy = next(
        (a.GetIdx() for a in mol.GetAtoms() if a.GetSymbol() == "H" and a.GetIsotope() == 2),
        None,
    )
    if dummy is None:
        dummy = next((i for i, (el, _) in enumerate(fragment.atoms) if el == "H"), None)
    if dummy is None:
        raise HelperError(f"No attachment point in {smiles}")

    atoms = list(fragment.atoms)
    atoms[dummy] = (DUMMY_ELEMENT, atoms[dummy][1])
    return FunctionalGroup(name or smiles, atoms, fragment.bonds, dummy=dummy)
