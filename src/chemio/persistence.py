"""Persistencia del espacio de trabajo en archivos `.smpl`.

Este módulo serializa y deserializa todas las estructuras abiertas en el
gestor (instantáneas, preferencias por estructura y celda de referencia)
para reconstruir la sesión al abrir un archivo.
"""

from __future__ import annotations
import json
import logging
from typing import Any, Dict, TYPE_CHECKING

from core.crystal import Crystal
from core.model import Structure
from editor.options import StructureSettings

if TYPE_CHECKING:
    from editor.manager import MoleculeManager

logger = logging.getLogger(__name__)

APPLICATION = "Simpledit"


def structure_from_snapshot(data: Dict[str, Any]):
    """Crea la estructura adecuada (molécula o cristal) desde una instantánea.

    Args:
        data: Diccionario producido por `to_snapshot`.

    Returns:
        `Crystal` si la instantánea lleva `isCrystal`, si no `Structure`.
    """
    if data.get("isCrystal"):
        structure = Crystal(data.get("name") or "Crystal")
    else:
        structure = Structure(data.get("name") or "Molecule")
    structure.from_snapshot(data)
    return structure


class PersistenceManager:
    """Gestiona el guardado y carga de archivos `.smpl`."""

    VERSION = "0.1.0"

    @staticmethod
    def save_to_dict(manager: 'MoleculeManager') -> Dict[str, Any]:
        """Serializa todas las entradas del gestor en un diccionario.

        Args:
            manager: Gestor de estructuras activo.

        Returns:
            Diccionario serializable con las estructuras y sus preferencias.

        Side Effects:
            No tiene efectos laterales; solo lee el estado del gestor.
        """
        molecules = []
        for entry in manager.molecules:
            molecules.append({
                "structure": entry.structure.to_snapshot(),
                "settings": entry.settings.to_dict(),
                "reference": entry.reference,
            })
        return {
            "application": APPLICATION,
            "version": PersistenceManager.VERSION,
            "active": manager.active_index,
            "molecules": molecules,
        }

    @staticmethod
    def load_from_dict(data: Dict[str, Any], manager: 'MoleculeManager') -> None:
        """Restaura el gestor desde un diccionario.

        Args:
            data: Diccionario de estado (resultado de `save_to_dict`).
            manager: Gestor donde se cargarán las estructuras.

        Raises:
            ValueError: Si el archivo no corresponde a Simpledit o no
                contiene estructuras.

        Side Effects:
            Reemplaza todas las entradas del gestor; cada historial empieza
            con la instantánea cargada.
        """
        if data.get("application") != APPLICATION:
            raise ValueError("Not a valid Simpledit file")
        items = data.get("molecules", [])
        if not items:
            raise ValueError("Simpledit file contains no structures")

        # Se construye todo antes de tocar el gestor.
        loaded = []
        for item in items:
            structure = structure_from_snapshot(item["structure"])
            settings = StructureSettings.from_dict(item.get("settings", {}))
            loaded.append((structure, settings, item.get("reference")))

        manager.reset()
        for structure, settings, reference in loaded:
            entry = manager.create(structure=structure, unique=False)
            entry.settings = settings
            manager.state.settings = settings
            entry.reference = reference
        active = data.get("active", 0)
        if not 0 <= active < len(manager.molecules):
            active = 0
        manager.switch(active)
        logger.info("Loaded workspace with %d structure(s)", len(loaded))

    @staticmethod
    def save_to_file(filepath: str, manager: 'MoleculeManager') -> None:
        """Guarda el espacio de trabajo en un archivo `.smpl`.

        Side Effects:
            Escribe en disco el archivo indicado.
        """
        data = PersistenceManager.save_to_dict(manager)
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)

    @staticmethod
    def load_from_file(filepath: str, manager: 'MoleculeManager') -> None:
        """Carga un archivo `.smpl` y restaura el gestor.

        Side Effects:
            Lee desde disco y modifica el gestor.
        """
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)
        PersistenceManager.load_from_dict(data, manager)
