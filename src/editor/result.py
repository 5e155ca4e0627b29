"""Resultados con valor para las acciones del editor y los comandos."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ResultStatus(str, Enum):
    """Categorías de respuesta mostradas al usuario."""
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class CommandResult:
    """Respuesta de una acción: estado, mensaje y datos opcionales."""
    status: ResultStatus
    message: str
    data: Optional[Any] = None

    @classmethod
    def success(cls, message: str, data: Any = None) -> "CommandResult":
        return cls(ResultStatus.SUCCESS, message, data)

    @classmethod
    def error(cls, message: str, data: Any = None) -> "CommandResult":
        return cls(ResultStatus.ERROR, message, data)

    @classmethod
    def warning(cls, message: str, data: Any = None) -> "CommandResult":
        return cls(ResultStatus.WARNING, message, data)

    @classmethod
    def info(cls, message: str, data: Any = None) -> "CommandResult":
        return cls(ResultStatus.INFO, message, data)

    @property
    def ok(self) -> bool:
        return self.status is not ResultStatus.ERROR

    def __str__(self) -> str:
        if self.status is ResultStatus.SUCCESS:
            return self.message
        return f"{self.status.value}: {self.message}"
