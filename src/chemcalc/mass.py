"""Cálculo de masas moleculares a partir de fórmulas."""

from __future__ import annotations

from typing import Dict

from core.errors import PreconditionError

# Pesos atómicos promedio (u) para cálculo aproximado de masa molecular.
ATOMIC_WEIGHTS: Dict[str, float] = {
    "H": 1.00794,
    "D": 2.014102,
    "He": 4.002602,
    "Li": 6.941,
    "B": 10.811,
    "C": 12.0107,
    "N": 14.0067,
    "O": 15.9994,
    "F": 18.998403,
    "Na": 22.98977,
    "Mg": 24.305,
    "Al": 26.981538,
    "Si": 28.0855,
    "P": 30.973761,
    "S": 32.065,
    "Cl": 35.453,
    "K": 39.0983,
    "Ca": 40.078,
    "Ti": 47.867,
    "Fe": 55.845,
    "Ni": 58.6934,
    "Cu": 63.546,
    "Zn": 65.409,
    "Ga": 69.723,
    "Ge": 72.64,
    "As": 74.9216,
    "Se": 78.96,
    "Br": 79.904,
    "Ag": 107.8682,
    "Sn": 118.71,
    "I": 126.90447,
    "Pt": 195.078,
    "Au": 196.96655,
}


def molecular_weight(formula_dict: Dict[str, int]) -> float:
    """Calcula el peso molecular a partir de una fórmula.

    Args:
        formula_dict: Diccionario de elemento -> conteo.

    Returns:
        Masa molecular aproximada en unidades atómicas (u).

    Raises:
        PreconditionError: Si el peso atómico de un elemento no está disponible.

    Side Effects:
        No tiene efectos laterales.
    """
    total = 0.0
    for element, count in formula_dict.items():
        weight = ATOMIC_WEIGHTS.get(element)
        if weight is None:
            raise PreconditionError(f"Atomic weight not available for {element}")
        total += weight * count
    return total
