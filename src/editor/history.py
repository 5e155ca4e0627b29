"""Anillo acotado de instantáneas para deshacer/rehacer."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional

from core.errors import PreconditionError

logger = logging.getLogger(__name__)

Snapshot = Dict[str, Any]


class History:
    """Historial de instantáneas con índice actual.

    `push` descarta el futuro pendiente; cuando se supera la capacidad se
    elimina la instantánea más antigua.
    """

    def __init__(self, max_size: int = 50) -> None:
        if max_size < 1:
            raise PreconditionError(f"History size must be >= 1, got {max_size}")
        self.max_size = max_size
        self.states: List[Snapshot] = []
        self.index = -1

    def __len__(self) -> int:
        return len(self.states)

    def push(self, snapshot: Snapshot) -> None:
        """Añade una instantánea tras la posición actual.

        Side Effects:
            Recorta las instantáneas posteriores al índice actual.
        """
        if self.index < len(self.states) - 1:
            del self.states[self.index + 1:]
        self.states.append(copy.deepcopy(snapshot))
        if len(self.states) > self.max_size:
            self.states.pop(0)
        else:
            self.index += 1
        logger.debug("State saved. History size: %d, index: %d", len(self.states), self.index)

    def can_undo(self) -> bool:
        return self.index > 0

    def can_redo(self) -> bool:
        return self.index < len(self.states) - 1

    def undo(self) -> Optional[Snapshot]:
        """Retrocede una posición; None si no hay nada que deshacer."""
        if not self.can_undo():
            return None
        self.index -= 1
        return copy.deepcopy(self.states[self.index])

    def redo(self) -> Optional[Snapshot]:
        """Avanza una posición; None si no hay nada que rehacer."""
        if not self.can_redo():
            return None
        self.index += 1
        return copy.deepcopy(self.states[self.index])

    def current(self) -> Optional[Snapshot]:
        if self.index < 0:
            return None
        return copy.deepcopy(self.states[self.index])

    def clear(self) -> None:
        self.states = []
        self.index = -1
