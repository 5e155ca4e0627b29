"""API pública de cálculos geométricos y químicos auxiliares."""

from .autobond import auto_bond, auto_bond_pbc, auto_bond_plain, rebond
from .elements import covalent_radius
from .formula import molecular_formula, format_formula
from .groups import FunctionalGroup, GROUP_LIBRARY, get_group
from .mass import molecular_weight
from .placement import add_atom_smart, add_hydrogens, attach_group, optimal_bond_direction
from .slab import generate_slab
from .valence import implicit_h_count, validate_valence, TYPICAL_VALENCE

__all__ = [
    "auto_bond",
    "auto_bond_pbc",
    "auto_bond_plain",
    "rebond",
    "covalent_radius",
    "molecular_formula",
    "format_formula",
    "FunctionalGroup",
    "GROUP_LIBRARY",
    "get_group",
    "molecular_weight",
    "add_atom_smart",
    "add_hydrogens",
    "attach_group",
    "optimal_bond_direction",
    "generate_slab",
    "implicit_h_count",
    "validate_valence",
    "TYPICAL_VALENCE",
]
