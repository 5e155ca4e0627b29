"""Valencias típicas y máximas (comprobaciones orientativas).

La valencia no es un invariante del modelo: estas funciones solo informan
de átomos sobrecoordinados o de hidrógenos que faltan.
"""

from __future__ import annotations

from typing import Dict, List

from core.model import Atom

# Valencias típicas usadas para inferir H implícitos en cálculos sencillos.
TYPICAL_VALENCE: Dict[str, int] = {
    "H": 1,
    "C": 4,
    "N": 3,
    "O": 2,
    "F": 1,
    "Cl": 1,
    "Br": 1,
    "I": 1,
    "S": 2,
    "P": 3,
}

# Valencias máximas (suma de órdenes de enlace) antes de marcar error.
# Se usa un umbral permisivo para patrones comunes hipervalentes:
# - P(V/VI): fosfatos, fosforanos, PF6-
# - S(IV/VI): sulfóxidos/sulfonas/sulfatos, SF6
# - Halógenos(III/V/VII): interhalógenos, oxoácidos (p. ej., IF7, ClO4-)
MAX_VALENCE_MAP: Dict[str, int] = {
    "H": 1,
    "C": 4,
    "N": 4,
    "O": 3,
    "F": 1,
    "Cl": 7,
    "Br": 7,
    "I": 7,
    "P": 6,
    "S": 6,
    "Xe": 8,
    "Se": 6,
    "Te": 6,
    "As": 6,
    "Sb": 6,
    "Bi": 6,
    "Si": 6,
    "Ge": 6,
    "Sn": 6,
    "Pb": 6,
    "B": 4,
}


def bond_order_sum(atom: Atom) -> int:
    return sum(bond.order for bond in atom.bonds)


def implicit_h_count(atom: Atom) -> int:
    """Calcula los hidrógenos implícitos para un átomo.

    Args:
        atom: Átomo a evaluar (se usan sus enlaces explícitos).

    Returns:
        Número de H implícitos estimados (>= 0).

    Side Effects:
        No tiene efectos laterales.
    """
    typical = TYPICAL_VALENCE.get(atom.element)
    if typical is None:
        return 0
    implicit = typical - bond_order_sum(atom)
    if implicit < 0:
        return 0
    return int(implicit)


def validate_valence(structure) -> List[int]:
    """Valida valencias máximas según `MAX_VALENCE_MAP`.

    Calcula la suma de órdenes de enlace por átomo y reporta aquellos
    que superan la valencia máxima permitida.

    Returns:
        Lista de IDs de átomos que exceden la valencia permitida.

    Side Effects:
        No tiene efectos laterales; solo calcula y devuelve resultados.
    """
    errors: List[int] = []
    for atom in structure.atoms:
        expected = MAX_VALENCE_MAP.get(atom.element)
        if expected is None:
            continue
        if bond_order_sum(atom) > expected:
            errors.append(atom.id)
    return errors
