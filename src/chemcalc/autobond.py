"""Detección automática de enlaces por distancia.

Un par de átomos se enlaza cuando su distancia es menor que
`threshold · (r_i + r_j)` con radios covalentes. En cristales se consideran
además las 26 imágenes vecinas de la celda; los enlaces se crean siempre
entre los átomos de la celda de referencia.
"""

from __future__ import annotations

import itertools
import logging

import numpy as np

from chemcalc.elements import covalent_radius
from core.errors import PreconditionError

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 1.1

_IMAGE_SHIFTS = np.array(list(itertools.product((-1, 0, 1), repeat=3)), dtype=float)


def _check_threshold(threshold: float) -> None:
    if not threshold > 0:
        raise PreconditionError(f"Bond threshold must be positive, got {threshold}")


def auto_bond_plain(structure, threshold: float = DEFAULT_THRESHOLD) -> int:
    """Crea enlaces simples entre pares cercanos sin condiciones periódicas.

    Args:
        structure: Estructura a enlazar.
        threshold: Factor aplicado a la suma de radios covalentes.

    Returns:
        Número de enlaces nuevos.

    Side Effects:
        Añade enlaces a la estructura; los existentes se conservan.
    """
    _check_threshold(threshold)
    atoms = structure.atoms
    if len(atoms) < 2:
        return 0
    positions = structure.positions()
    radii = np.array([covalent_radius(a.element) for a in atoms])
    added = 0
    for i in range(len(atoms)):
        dists = np.linalg.norm(positions[i + 1:] - positions[i], axis=1)
        limits = threshold * (radii[i] + radii[i + 1:])
        for offset in np.nonzero(dists < limits)[0]:
            j = i + 1 + int(offset)
            if structure.get_bond(atoms[i], atoms[j]) is None:
                structure.add_bond(atoms[i], atoms[j], 1)
                added += 1
    return added


def auto_bond_pbc(crystal, threshold: float = DEFAULT_THRESHOLD) -> int:
    """Crea enlaces considerando las imágenes periódicas {-1, 0, 1}³.

    Cada par no ordenado de átomos se enlaza como mucho una vez, aunque
    varias imágenes cumplan el criterio; no se crean autoenlaces.

    Args:
        crystal: Cristal con red definida.
        threshold: Factor aplicado a la suma de radios covalentes.

    Returns:
        Número de enlaces nuevos.

    Raises:
        PreconditionError: Si el cristal no tiene red.
    """
    _check_threshold(threshold)
    if crystal.lattice is None:
        raise PreconditionError("Crystal: lattice not set")
    atoms = crystal.atoms
    if len(atoms) < 2:
        return 0
    basis = np.array(crystal.lattice.vectors())
    translations = _IMAGE_SHIFTS @ basis
    positions = crystal.positions()
    radii = np.array([covalent_radius(a.element) for a in atoms])
    added = 0
    for i in range(len(atoms)):
        for j in range(i + 1, len(atoms)):
            limit = threshold * (radii[i] + radii[j])
            displacements = positions[j] + translations - positions[i]
            if np.min(np.linalg.norm(displacements, axis=1)) < limit:
                if crystal.get_bond(atoms[i], atoms[j]) is None:
                    crystal.add_bond(atoms[i], atoms[j], 1)
                    added += 1
    logger.debug("PBC autobond added %d bonds (threshold %.3f)", added, threshold)
    return added


def auto_bond(structure, threshold: float = DEFAULT_THRESHOLD) -> int:
    """Autoenlace con PBC para cristales y sin PBC para moléculas."""
    if getattr(structure, "is_crystal", False) and structure.lattice is not None:
        return auto_bond_pbc(structure, threshold)
    return auto_bond_plain(structure, threshold)


def rebond(structure, threshold: float = DEFAULT_THRESHOLD) -> int:
    """Elimina todos los enlaces y los vuelve a detectar.

    Returns:
        Número de enlaces resultantes.
    """
    _check_threshold(threshold)
    structure.clear_bonds()
    auto_bond(structure, threshold)
    return len(structure.bonds)
