"""Parámetros de red cristalina y conversiones de coordenadas.

La convención es la cristalográfica estándar: el vector a⃗ se alinea con
el eje x, b⃗ queda en el plano xy y c⃗ se deduce de las longitudes y
ángulos. Las coordenadas fraccionarias se expresan en la base (a⃗, b⃗, c⃗).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Sequence, Tuple

import numpy as np

from core.errors import DegenerateGeometryError, PreconditionError
from core import vecmath


@dataclass(frozen=True)
class Lattice:
    """Celda unidad definida por (a, b, c, α, β, γ).

    Las longitudes se expresan en Å y los ángulos en grados.
    """
    a: float = 5.0
    b: float = 5.0
    c: float = 5.0
    alpha: float = 90.0
    beta: float = 90.0
    gamma: float = 90.0

    def __post_init__(self) -> None:
        for name in ("a", "b", "c"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise PreconditionError(f"Lattice length {name} must be positive, got {value}")
        for name in ("alpha", "beta", "gamma"):
            value = getattr(self, name)
            if not math.isfinite(value) or not 0 < value < 180:
                raise PreconditionError(f"Lattice angle {name} must be in (0, 180), got {value}")

    def vectors(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Calcula los vectores de red (a⃗, b⃗, c⃗).

        Returns:
            Tupla con los tres vectores cartesianos (Å).

        Raises:
            DegenerateGeometryError: Si sin γ ≈ 0 o la componente z de c⃗ no
                es real (ángulos incompatibles).
        """
        al, be, ga = (math.radians(v) for v in (self.alpha, self.beta, self.gamma))
        sin_ga = math.sin(ga)
        if abs(sin_ga) < 1e-10:
            raise DegenerateGeometryError(f"Degenerate lattice: gamma = {self.gamma}° (sin γ ≈ 0)")
        va = vecmath.vec3(self.a, 0.0, 0.0)
        vb = vecmath.vec3(self.b * math.cos(ga), self.b * sin_ga, 0.0)
        cx = self.c * math.cos(be)
        cy = self.c * (math.cos(al) - math.cos(be) * math.cos(ga)) / sin_ga
        cz_sq = self.c * self.c - cx * cx - cy * cy
        if cz_sq <= 1e-12:
            raise DegenerateGeometryError(
                f"Degenerate lattice: angles ({self.alpha}, {self.beta}, {self.gamma}) "
                "do not define a cell with positive volume"
            )
        vc = vecmath.vec3(cx, cy, math.sqrt(cz_sq))
        return va, vb, vc

    def matrix(self) -> np.ndarray:
        """Matriz 3x3 con los vectores de red como columnas."""
        return vecmath.columns(*self.vectors())

    def frac_to_cart(self, frac: Sequence[float]) -> np.ndarray:
        """Convierte coordenadas fraccionarias a cartesianas."""
        va, vb, vc = self.vectors()
        fx, fy, fz = (float(v) for v in frac)
        return fx * va + fy * vb + fz * vc

    def cart_to_frac(self, point: Sequence[float]) -> np.ndarray:
        """Convierte coordenadas cartesianas a fraccionarias.

        Raises:
            DegenerateGeometryError: Si la matriz de red es singular.
        """
        m = self.matrix()
        if vecmath.determinant(m) == 0.0:
            raise DegenerateGeometryError("Singular lattice matrix: cannot convert Cartesian to fractional")
        try:
            inv = vecmath.inverse(m)
        except np.linalg.LinAlgError as exc:
            raise DegenerateGeometryError("Singular lattice matrix: cannot convert Cartesian to fractional") from exc
        return inv @ vecmath.as_vec3(point)

    def volume(self) -> float:
        va, vb, vc = self.vectors()
        return abs(vecmath.dot(va, vecmath.cross(vb, vc)))

    def minimum_image(self, displacement: Sequence[float]) -> np.ndarray:
        """Representante más corto de un desplazamiento bajo PBC.

        Args:
            displacement: Vector cartesiano (Å).

        Returns:
            El desplazamiento equivalente con cada componente fraccionaria
            en [-0.5, 0.5).
        """
        frac = self.cart_to_frac(displacement)
        frac = frac - np.floor(frac + 0.5)
        return self.frac_to_cart(frac)

    def reciprocal_vectors(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Vectores recíprocos (a*, b*, c*) sin el factor 2π."""
        va, vb, vc = self.vectors()
        vol = vecmath.dot(va, vecmath.cross(vb, vc))
        if abs(vol) < 1e-12:
            raise DegenerateGeometryError("Cannot build reciprocal lattice of a zero-volume cell")
        return (
            vecmath.cross(vb, vc) / vol,
            vecmath.cross(vc, va) / vol,
            vecmath.cross(va, vb) / vol,
        )

    @classmethod
    def from_vectors(cls, va: Sequence[float], vb: Sequence[float], vc: Sequence[float]) -> "Lattice":
        """Construye los parámetros de red a partir de tres vectores.

        Raises:
            DegenerateGeometryError: Si algún vector tiene longitud nula.
        """
        va, vb, vc = vecmath.as_vec3(va), vecmath.as_vec3(vb), vecmath.as_vec3(vc)
        a, b, c = vecmath.length(va), vecmath.length(vb), vecmath.length(vc)
        if min(a, b, c) < 1e-12:
            raise DegenerateGeometryError("Lattice vectors must have non-zero length")

        def _angle(u: np.ndarray, v: np.ndarray, nu: float, nv: float) -> float:
            ratio = max(-1.0, min(1.0, vecmath.dot(u, v) / (nu * nv)))
            return math.degrees(math.acos(ratio))

        return cls(
            a=a,
            b=b,
            c=c,
            alpha=_angle(vb, vc, b, c),
            beta=_angle(va, vc, a, c),
            gamma=_angle(va, vb, a, b),
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "a": self.a,
            "b": self.b,
            "c": self.c,
            "alpha": self.alpha,
            "beta": self.beta,
            "gamma": self.gamma,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Lattice":
        return cls(
            float(data["a"]),
            float(data["b"]),
            float(data["c"]),
            float(data["alpha"]),
            float(data["beta"]),
            float(data["gamma"]),
        )

    def __str__(self) -> str:
        return (
            f"a={self.a:.4f} b={self.b:.4f} c={self.c:.4f} "
            f"α={self.alpha:.2f}° β={self.beta:.2f}° γ={self.gamma:.2f}°"
        )
