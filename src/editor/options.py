"""Opciones de configuración del editor estructural."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Tuple

from core.errors import PreconditionError


@dataclass
class EditorOptions:
    """Opciones de control del editor y de sus operaciones por defecto."""

    # Factor sobre la suma de radios covalentes para el autoenlace.
    bond_threshold: float = 1.1
    # Tamaño del anillo de deshacer/rehacer.
    max_history: int = 50
    # Desplazamiento aplicado al pegar el portapapeles.
    paste_offset: Tuple[float, float, float] = (2.0, 2.0, 0.0)
    default_element: str = "C"
    smart_offset_step: float = 3.0
    smart_offset_max_steps: int = 50
    slab_layers: int = 4
    slab_vacuum: float = 10.0
    slab_centered: bool = True
    # Si está activo, supercelda y slab parten de la celda importada.
    fix_lattice: bool = False

    def __post_init__(self) -> None:
        self.paste_offset = tuple(float(v) for v in self.paste_offset)
        if len(self.paste_offset) != 3:
            raise PreconditionError("paste_offset must have three components")
        if self.bond_threshold <= 0:
            raise PreconditionError(f"bond_threshold must be positive, got {self.bond_threshold}")
        if self.max_history < 1:
            raise PreconditionError(f"max_history must be >= 1, got {self.max_history}")
        if self.smart_offset_step <= 0 or self.smart_offset_max_steps < 1:
            raise PreconditionError("Smart offset step and step count must be positive")
        if self.slab_layers < 1 or self.slab_vacuum < 0:
            raise PreconditionError("Slab defaults must have layers >= 1 and vacuum >= 0")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EditorOptions":
        """Crea opciones a partir de un diccionario.

        Raises:
            PreconditionError: Si hay claves desconocidas.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise PreconditionError(f"Unknown editor options: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def load(cls, filepath: str) -> "EditorOptions":
        """Lee opciones desde un archivo JSON."""
        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise PreconditionError(f"Options file {filepath} must contain a JSON object")
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["paste_offset"] = list(self.paste_offset)
        return data


LABEL_MODES = ("none", "symbol", "number", "both")
COLOR_SCHEMES = ("jmol", "cpk")


@dataclass
class StructureSettings:
    """Preferencias de visualización que viajan con cada estructura."""
    label_mode: str = "none"
    color_scheme: str = "jmol"
    atom_scale: float = 1.0
    bond_scale: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StructureSettings":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def copy(self) -> "StructureSettings":
        return StructureSettings(**asdict(self))

