"""Excepciones específicas del modelo estructural."""


class ModelError(Exception):
    """Base de todos los errores del núcleo geométrico/químico."""


class PreconditionError(ModelError):
    """Se lanza cuando los argumentos o el estado no permiten la operación."""


class DegenerateGeometryError(ModelError):
    """Se lanza ante celdas singulares, normales nulas u otra degeneración."""


class LayerCountError(ModelError):
    """Se lanza cuando el generador de superficies encuentra pocas capas."""

    def __init__(self, found: int, requested: int) -> None:
        super().__init__(
            f"Only {found} atomic layers found, but {requested} requested. "
            "Try reducing layer count or increasing supercell size."
        )
        self.found = found
        self.requested = requested


class HelperError(ModelError):
    """Se lanza cuando falla el ayudante quimioinformático externo."""


class InconsistencyError(ModelError):
    """Se lanza ante enlaces colgantes o adyacencias desincronizadas."""
