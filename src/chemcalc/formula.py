"""Cálculo y formateo de fórmulas moleculares.

Este módulo agrega utilidades para contar elementos a partir de una
estructura y formatear la fórmula siguiendo el orden de Hill.
"""

from __future__ import annotations

from typing import Dict

from chemcalc.elements import DUMMY_ELEMENT
from .valence import implicit_h_count


def molecular_formula(structure, include_implicit_h: bool = False) -> Dict[str, int]:
    """Calcula la fórmula molecular como diccionario de elemento -> conteo.

    Args:
        structure: Estructura o cristal con átomos explícitos.
        include_implicit_h: Si es True, suma los H implícitos estimados por
            valencia típica para los átomos pesados.

    Returns:
        Diccionario con símbolos atómicos y sus cantidades totales. Los
        átomos ficticios "X" no se cuentan.

    Side Effects:
        No tiene efectos laterales; solo calcula y devuelve datos.
    """
    counts: Dict[str, int] = {}

    for atom in structure.atoms:
        if atom.element == DUMMY_ELEMENT:
            continue
        counts[atom.element] = counts.get(atom.element, 0) + 1

    if include_implicit_h:
        for atom in structure.atoms:
            if atom.element in ("H", DUMMY_ELEMENT):
                continue
            implicit = implicit_h_count(atom)
            if implicit:
                counts["H"] = counts.get("H", 0) + int(implicit)

    return {element: count for element, count in counts.items() if count > 0}


def format_formula(formula_dict: Dict[str, int]) -> str:
    """Formatea una fórmula usando el orden de Hill (C, H, luego alfabético).

    Args:
        formula_dict: Diccionario con símbolos de elementos y cantidades.

    Returns:
        Cadena con la fórmula formateada (p. ej., "C6H6O").

    Side Effects:
        No tiene efectos laterales.
    """
    if not formula_dict:
        return ""
    order = []
    if "C" in formula_dict:
        order.append("C")
        if "H" in formula_dict:
            order.append("H")
    for element in sorted(e for e in formula_dict.keys() if e not in order):
        order.append(element)

    parts = []
    for element in order:
        count = formula_dict.get(element, 0)
        if count <= 0:
            continue
        parts.append(element if count == 1 else f"{element}{count}")
    return "".join(parts)
