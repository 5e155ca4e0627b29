"""Generación de superficies (slabs) a partir de índices de Miller.

Algoritmo:
    1. Normal de superficie desde la red recíproca (n̂ ∝ h·a* + k·b* + l·c*).
    2. Los dos vectores de red más cortos contenidos en el plano (hkl).
    3. Réplica temporal de la celda con suficientes planos atómicos.
    4. Proyección sobre n̂ y agrupación en capas.
    5. Conservación de las primeras capas y construcción de la celda del slab.
    6. Paso a coordenadas fraccionarias, envoltura en el plano y depuración
       de duplicados.
"""

from __future__ import annotations

import itertools
import logging
import math
from functools import reduce
from typing import List, Optional, Tuple

import numpy as np

from core import vecmath
from core.crystal import Crystal, wrap_unit
from core.errors import DegenerateGeometryError, LayerCountError, PreconditionError
from core.lattice import Lattice

logger = logging.getLogger(__name__)

MAX_IN_PLANE_INDEX = 4
MIN_REPEATS = 2
MAX_REPEATS = 8
FRAC_EPS = 2e-4
DEDUP_TOL = 1e-3


def normalize_miller(h: int, k: int, l: int) -> Tuple[int, int, int]:
    """Divide los índices de Miller por su máximo común divisor.

    Raises:
        PreconditionError: Si los índices no son enteros o son todos cero.
    """
    for value in (h, k, l):
        if float(value) != int(value):
            raise PreconditionError(f"Miller indices must be integers, got {value}")
    h, k, l = int(h), int(k), int(l)
    if h == 0 and k == 0 and l == 0:
        raise PreconditionError("Miller indices cannot all be zero")
    g = reduce(math.gcd, (abs(h), abs(k), abs(l))) or 1
    return h // g, k // g, l // g


def surface_normal(lattice: Lattice, h: int, k: int, l: int) -> Tuple[np.ndarray, float]:
    """Normal unitaria y espaciado interplanar d_hkl para (h, k, l)."""
    ra, rb, rc = lattice.reciprocal_vectors()
    g = h * ra + k * rb + l * rc
    g_len = vecmath.length(g)
    if g_len < 1e-12:
        raise DegenerateGeometryError("Zero-length surface normal")
    return g / g_len, 1.0 / g_len


def in_plane_vectors(
    lattice: Lattice,
    h: int,
    k: int,
    l: int,
    normal: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """Dos vectores de red cortos e independientes en el plano (hkl).

    Se buscan combinaciones enteras (i, j, m) con |·| ≤ 4 y
    i·h + j·k + m·l = 0. Los empates de longitud se resuelven prefiriendo
    los coeficientes positivos, y el par resultante es dextrógiro respecto
    de la normal.

    Raises:
        PreconditionError: Si no existe un par independiente.
    """
    va, vb, vc = lattice.vectors()
    span = range(-MAX_IN_PLANE_INDEX, MAX_IN_PLANE_INDEX + 1)
    candidates = []
    for i, j, m in itertools.product(span, span, span):
        if (i, j, m) == (0, 0, 0) or i * h + j * k + m * l != 0:
            continue
        v = i * va + j * vb + m * vc
        length = vecmath.length(v)
        if length > 0.01:
            candidates.append((round(length, 8), (-i, -j, -m), v))
    candidates.sort(key=lambda item: (item[0], item[1]))

    new_a: Optional[np.ndarray] = None
    new_b: Optional[np.ndarray] = None
    for _, _, v in candidates:
        if new_a is None:
            new_a = v
            continue
        cross = vecmath.cross(new_a, v)
        if abs(vecmath.dot(cross, normal)) > 1e-6 * vecmath.length(new_a) * vecmath.length(v):
            new_b = v
            break
    if new_a is None or new_b is None:
        raise PreconditionError(
            f"Cannot find in-plane cell vectors for ({h}{k}{l}). Try smaller Miller indices."
        )
    if vecmath.dot(vecmath.cross(new_a, new_b), normal) < 0:
        new_a, new_b = new_b, new_a
    return new_a, new_b


def _repeats(index: int, layers: int) -> int:
    if index == 0:
        return MIN_REPEATS
    return max(MIN_REPEATS, min(MAX_REPEATS, math.ceil(layers / abs(index)) + 2))


def group_layers(projections: List[float], tolerance: float) -> List[float]:
    """Agrupa proyecciones ordenadas en capas; devuelve la cota inferior de cada una."""
    layer_zs: List[float] = []
    for z in sorted(projections):
        if not layer_zs or z - layer_zs[-1] > tolerance:
            layer_zs.append(z)
    return layer_zs


def generate_slab(
    crystal: Crystal,
    h: int,
    k: int,
    l: int,
    layers: int = 4,
    vacuum: float = 10.0,
    centered: bool = True,
) -> Crystal:
    """Construye un slab de `layers` capas atómicas con vacío sobre (hkl).

    Args:
        crystal: Cristal masivo con red definida.
        h: Índice de Miller h.
        k: Índice de Miller k.
        l: Índice de Miller l.
        layers: Número de capas atómicas (>= 1).
        vacuum: Espesor de vacío en Å (>= 0).
        centered: Si es True, centra el slab dentro del vacío.

    Returns:
        Un cristal nuevo etiquetado "P 1" con `slab_info` informativo.

    Raises:
        PreconditionError: Entrada no cristalina, índices nulos, parámetros
            inválidos o ausencia de vectores en el plano.
        LayerCountError: Si se encuentran menos capas que las pedidas.
    """
    if not getattr(crystal, "is_crystal", False) or crystal.lattice is None:
        raise PreconditionError("Input is not a crystal structure")
    if int(layers) != layers or layers < 1:
        raise PreconditionError(f"Layer count must be a positive integer, got {layers}")
    if not math.isfinite(vacuum) or vacuum < 0:
        raise PreconditionError(f"Vacuum must be non-negative, got {vacuum}")
    layers = int(layers)
    h, k, l = normalize_miller(h, k, l)
    lattice = crystal.lattice
    if lattice.volume() < 1e-10:
        raise DegenerateGeometryError("Degenerate unit cell")

    normal, d_hkl = surface_normal(lattice, h, k, l)
    new_a, new_b = in_plane_vectors(lattice, h, k, l, normal)

    counts = (_repeats(h, layers), _repeats(k, layers), _repeats(l, layers))
    replicated: List[Tuple[str, np.ndarray]] = []
    for atom in crystal.atoms:
        base = np.array([wrap_unit(v) for v in crystal.get_frac_safe(atom)])
        for ia, ib, ic in itertools.product(*(range(n) for n in counts)):
            cart = lattice.frac_to_cart(base + np.array([ia, ib, ic], dtype=float))
            replicated.append((atom.element, cart))

    projections = [vecmath.dot(pos, normal) for _, pos in replicated]
    tolerance = max(0.02, 0.04 * d_hkl)
    layer_zs = group_layers(projections, tolerance)
    if len(layer_zs) < layers:
        raise LayerCountError(len(layer_zs), layers)

    z_min = layer_zs[0]
    z_top = layer_zs[layers - 1]
    if len(layer_zs) > layers:
        spacing = layer_zs[layers] - z_top
    elif layers > 1:
        spacing = (z_top - z_min) / (layers - 1)
    else:
        spacing = d_hkl
    slab_height = (z_top - z_min) + spacing
    total_c = slab_height + vacuum
    new_c = normal * total_c

    cell = vecmath.columns(new_a, new_b, new_c)
    try:
        cell_inv = vecmath.inverse(cell)
    except np.linalg.LinAlgError as exc:
        raise DegenerateGeometryError("Singular slab cell") from exc

    candidates: List[Tuple[str, float, float, float]] = []
    for (element, pos), z in zip(replicated, projections):
        if z < z_min - tolerance * 0.5 or z > z_top + tolerance * 0.5:
            continue
        frac = cell_inv @ (pos - normal * z_min)
        fx, fy, fz = wrap_unit(float(frac[0])), wrap_unit(float(frac[1])), float(frac[2])
        if fz < -FRAC_EPS or fz >= 1.0 - FRAC_EPS:
            continue
        candidates.append((element, fx, fy, max(0.0, fz)))

    unique: List[Tuple[str, float, float, float]] = []
    for cand in candidates:
        duplicate = False
        for other in unique:
            if other[0] != cand[0]:
                continue
            dx = abs(other[1] - cand[1])
            dy = abs(other[2] - cand[2])
            dx = min(dx, 1.0 - dx)
            dy = min(dy, 1.0 - dy)
            if dx < DEDUP_TOL and dy < DEDUP_TOL and abs(other[3] - cand[3]) < DEDUP_TOL:
                duplicate = True
                break
        if not duplicate:
            unique.append(cand)

    z_offset = vacuum / (2.0 * total_c) if centered else 0.0

    slab = Crystal(f"{crystal.name} ({h}{k}{l}) {layers}L", Lattice.from_vectors(new_a, new_b, new_c))
    slab.space_group = "P 1"
    slab.space_group_number = 1
    for element, fx, fy, fz in unique:
        slab.add_atom_fractional(element, (fx, fy, fz + z_offset))
    slab.slab_info = {
        "miller": [h, k, l],
        "d_spacing": d_hkl,
        "layers": layers,
        "slab_height": slab_height,
        "vacuum": vacuum,
        "centered": centered,
        "n_atoms": len(unique),
    }
    logger.info(
        "Slab (%d%d%d): %d layers, %d atoms, c = %.4f Å", h, k, l, layers, len(unique), total_c
    )
    return slab
