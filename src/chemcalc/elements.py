"""Datos por elemento usados por la colocación de átomos y el autoenlace."""

from __future__ import annotations

from typing import Dict, FrozenSet

# Representación de la tabla periódica como cuadrícula de símbolos.
ELEMENT_GRID = [
    ["H", None, None, None, None, None, None, None, None, None, None, None, None, None, None, None, None, "He"],
    ["Li", "Be", None, None, None, None, None, None, None, None, None, None, "B", "C", "N", "O", "F", "Ne"],
    ["Na", "Mg", None, None, None, None, None, None, None, None, None, None, "Al", "Si", "P", "S", "Cl", "Ar"],
    ["K", "Ca", "Sc", "Ti", "V", "Cr", "Mn", "Fe", "Co", "Ni", "Cu", "Zn", "Ga", "Ge", "As", "Se", "Br", "Kr"],
    ["Rb", "Sr", "Y", "Zr", "Nb", "Mo", "Tc", "Ru", "Rh", "Pd", "Ag", "Cd", "In", "Sn", "Sb", "Te", "I", "Xe"],
    ["Cs", "Ba", "La", "Hf", "Ta", "W", "Re", "Os", "Ir", "Pt", "Au", "Hg", "Tl", "Pb", "Bi", "Po", "At", "Rn"],
    ["Fr", "Ra", "Ac", "Rf", "Db", "Sg", "Bh", "Hs", "Mt", "Ds", "Rg", "Cn", "Nh", "Fl", "Mc", "Lv", "Ts", "Og"],
    [None, None, None, "La", "Ce", "Pr", "Nd", "Pm", "Sm", "Eu", "Gd", "Tb", "Dy", "Ho", "Er", "Tm", "Yb", "Lu"],
    [None, None, None, "Ac", "Th", "Pa", "U", "Np", "Pu", "Am", "Cm", "Bk", "Cf", "Es", "Fm", "Md", "No", "Lr"],
]

# "X" es el átomo ficticio de las plantillas de grupos funcionales.
DUMMY_ELEMENT = "X"

ELEMENT_SYMBOLS: FrozenSet[str] = frozenset(
    symbol for row in ELEMENT_GRID for symbol in row if symbol
) | {"D", DUMMY_ELEMENT}

# Radios covalentes (Å), valores de Cordero et al. (2008).
COVALENT_RADII: Dict[str, float] = {
    "H": 0.31, "D": 0.31, "He": 0.28,
    "Li": 1.28, "Be": 0.96, "B": 0.84, "C": 0.76, "N": 0.71, "O": 0.66, "F": 0.57, "Ne": 0.58,
    "Na": 1.66, "Mg": 1.41, "Al": 1.21, "Si": 1.11, "P": 1.07, "S": 1.05, "Cl": 1.02, "Ar": 1.06,
    "K": 2.03, "Ca": 1.76, "Sc": 1.70, "Ti": 1.60, "V": 1.53, "Cr": 1.39, "Mn": 1.39,
    "Fe": 1.32, "Co": 1.26, "Ni": 1.24, "Cu": 1.32, "Zn": 1.22, "Ga": 1.22, "Ge": 1.20,
    "As": 1.19, "Se": 1.20, "Br": 1.20, "Kr": 1.16,
    "Rb": 2.20, "Sr": 1.95, "Y": 1.90, "Zr": 1.75, "Nb": 1.64, "Mo": 1.54, "Tc": 1.47,
    "Ru": 1.46, "Rh": 1.42, "Pd": 1.39, "Ag": 1.45, "Cd": 1.44, "In": 1.42, "Sn": 1.39,
    "Sb": 1.39, "Te": 1.38, "I": 1.39, "Xe": 1.40,
    "Cs": 2.44, "Ba": 2.15, "La": 2.07, "Hf": 1.75, "Ta": 1.70, "W": 1.62, "Re": 1.51,
    "Os": 1.44, "Ir": 1.41, "Pt": 1.36, "Au": 1.36, "Hg": 1.32, "Tl": 1.45, "Pb": 1.46,
    "Bi": 1.48, "Po": 1.40, "At": 1.50, "Rn": 1.50,
}

DEFAULT_COVALENT_RADIUS = 0.76

# Valencia máxima usada al saturar con hidrógenos (heurística de colocación).
PLACEMENT_VALENCE: Dict[str, int] = {
    "H": 1, "C": 4, "N": 3, "O": 2, "F": 1, "Cl": 1, "Br": 1, "I": 1,
    "P": 5, "S": 6, "Si": 4, "B": 3,
}

DEFAULT_PLACEMENT_VALENCE = 4


def covalent_radius(element: str) -> float:
    """Radio covalente del elemento; el del carbono si no se conoce."""
    return COVALENT_RADII.get(element, DEFAULT_COVALENT_RADIUS)


def placement_valence(element: str) -> int:
    return PLACEMENT_VALENCE.get(element, DEFAULT_PLACEMENT_VALENCE)


def is_element(symbol: str) -> bool:
    return symbol in ELEMENT_SYMBOLS


def normalize_symbol(symbol: str) -> str:
    """Normaliza mayúsculas de un símbolo ("cl" -> "Cl")."""
    symbol = symbol.strip()
    if not symbol:
        return symbol
    return symbol[0].upper() + symbol[1:].lower()
