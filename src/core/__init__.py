"""API pública del núcleo estructural.

Reexpone las clases base del modelo (grafo, red y cristal) y la jerarquía
de errores para facilitar importaciones.
"""

from core.crystal import Crystal
from core.errors import (
    DegenerateGeometryError,
    HelperError,
    InconsistencyError,
    LayerCountError,
    ModelError,
    PreconditionError,
)
from core.lattice import Lattice
from core.model import Atom, Bond, Structure

__all__ = [
    "Atom",
    "Bond",
    "Crystal",
    "DegenerateGeometryError",
    "HelperError",
    "InconsistencyError",
    "Lattice",
    "LayerCountError",
    "ModelError",
    "PreconditionError",
    "Structure",
]
