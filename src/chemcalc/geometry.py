"""Mediciones geométricas y transformaciones rígidas de conjuntos de átomos.

Las funciones de este módulo son puras: reciben posiciones y devuelven
posiciones nuevas, sin tocar el modelo. El editor decide qué átomos forman
el conjunto móvil (`moving_fragment`) y aplica el resultado de una vez.
"""

from __future__ import annotations

import math
from collections import deque
from typing import Iterable, List, Sequence, Tuple

import numpy as np

from core import vecmath
from core.errors import PreconditionError
from core.model import Atom

MIN_BOND_LENGTH = 1e-4
SMART_OFFSET_STEP = 3.0
SMART_OFFSET_MAX_STEPS = 50


def distance(p1: Sequence[float], p2: Sequence[float]) -> float:
    """Distancia euclídea entre dos puntos (Å)."""
    return vecmath.distance(p1, p2)


def angle(p1: Sequence[float], p2: Sequence[float], p3: Sequence[float]) -> float:
    """Ángulo P1-P2-P3 en grados (P2 es el vértice)."""
    v1 = vecmath.as_vec3(p1) - vecmath.as_vec3(p2)
    v2 = vecmath.as_vec3(p3) - vecmath.as_vec3(p2)
    return math.degrees(vecmath.angle_between(v1, v2))


def dihedral(
    p1: Sequence[float],
    p2: Sequence[float],
    p3: Sequence[float],
    p4: Sequence[float],
) -> float:
    """Ángulo diedro P1-P2-P3-P4 en grados, en (-180, 180].

    Usa la construcción estándar de cuatro puntos:
    φ = atan2(m₁·n₂, n₁·n₂) con m₁ = n₁ × b̂₂.
    """
    p1, p2, p3, p4 = (vecmath.as_vec3(p) for p in (p1, p2, p3, p4))
    b1 = p2 - p1
    b2 = p3 - p2
    b3 = p4 - p3
    n1 = vecmath.normalize(vecmath.cross(b1, b2))
    n2 = vecmath.normalize(vecmath.cross(b2, b3))
    m1 = vecmath.cross(n1, vecmath.normalize(b2))
    x = vecmath.dot(n1, n2)
    y = vecmath.dot(m1, n2)
    return math.degrees(math.atan2(y, x))


def normalize_angle_delta(delta: float) -> float:
    """Lleva un incremento angular (grados) al intervalo (-180, 180]."""
    while delta > 180.0:
        delta -= 360.0
    while delta <= -180.0:
        delta += 360.0
    return delta


def positions_for_bond_length(
    p1: Sequence[float],
    p2: Sequence[float],
    moving: Iterable[Sequence[float]],
    target: float,
) -> List[np.ndarray]:
    """Traslada el conjunto móvil para que |P1P2| sea `target`.

    Args:
        p1: Posición del átomo fijo.
        p2: Posición del átomo que define la distancia actual.
        moving: Posiciones del conjunto móvil.
        target: Distancia objetivo (Å, > 0).

    Returns:
        Posiciones nuevas en el mismo orden. Si |P1P2| < 1e-4 se devuelven
        copias sin cambios.

    Raises:
        PreconditionError: Si la distancia objetivo no es positiva.
    """
    if not math.isfinite(target) or target <= 0:
        raise PreconditionError(f"Invalid distance: {target}. Must be a positive number")
    p1 = vecmath.as_vec3(p1)
    p2 = vecmath.as_vec3(p2)
    moving = [vecmath.as_vec3(p) for p in moving]
    current = vecmath.distance(p1, p2)
    if current < MIN_BOND_LENGTH:
        return moving
    offset = vecmath.normalize(p2 - p1) * (target - current)
    return [p + offset for p in moving]


def positions_for_angle(
    p1: Sequence[float],
    pivot: Sequence[float],
    p3: Sequence[float],
    moving: Iterable[Sequence[float]],
    target_degrees: float,
) -> List[np.ndarray]:
    """Rota el conjunto móvil alrededor de `pivot` hasta el ángulo objetivo.

    El eje es (P1 - P2) × (P3 - P2); si los puntos son colineales se usa un
    eje perpendicular arbitrario a P1 - P2.

    Raises:
        PreconditionError: Si el ángulo objetivo no es finito.
    """
    if not math.isfinite(target_degrees):
        raise PreconditionError(f"Invalid angle: {target_degrees}")
    p1 = vecmath.as_vec3(p1)
    center = vecmath.as_vec3(pivot)
    p3 = vecmath.as_vec3(p3)
    v1 = vecmath.normalize(p1 - center)
    v2 = vecmath.normalize(p3 - center)
    axis = vecmath.cross(v1, v2)
    if vecmath.length(axis) ** 2 < 1e-4:
        axis = vecmath.perpendicular(v1)
    delta = math.radians(target_degrees) - vecmath.angle_between(v1, v2)
    q = vecmath.quat_from_axis_angle(axis, delta)
    return vecmath.rotate_about_point(moving, center, q)


def positions_for_dihedral(
    p1: Sequence[float],
    p2: Sequence[float],
    p3: Sequence[float],
    p4: Sequence[float],
    moving: Iterable[Sequence[float]],
    target_degrees: float,
) -> List[np.ndarray]:
    """Rota el conjunto móvil alrededor del eje P2→P3 hasta el diedro objetivo.

    El giro es -(objetivo - actual), normalizado a (-180, 180], con pivote
    en P3.

    Raises:
        PreconditionError: Si el diedro objetivo no es finito.
    """
    if not math.isfinite(target_degrees):
        raise PreconditionError(f"Invalid dihedral: {target_degrees}")
    delta = normalize_angle_delta(target_degrees - dihedral(p1, p2, p3, p4))
    axis = vecmath.as_vec3(p3) - vecmath.as_vec3(p2)
    q = vecmath.quat_from_axis_angle(axis, -math.radians(delta))
    return vecmath.rotate_about_point(moving, p3, q)


def centroid(atoms: Iterable[Atom]) -> np.ndarray:
    """Centro geométrico de una colección de átomos (origen si está vacía)."""
    return vecmath.centroid(atom.position for atom in atoms)


def rotated_positions(
    positions: Iterable[Sequence[float]],
    x_deg: float,
    y_deg: float,
    z_deg: float,
    center: Sequence[float] = (0.0, 0.0, 0.0),
) -> List[np.ndarray]:
    """Aplica una rotación de Euler XYZ (grados) alrededor de `center`."""
    rot = vecmath.euler_matrix_xyz(x_deg, y_deg, z_deg)
    c = vecmath.as_vec3(center)
    return [rot @ (vecmath.as_vec3(p) - c) + c for p in positions]


def translated_positions(positions: Iterable[Sequence[float]], offset: Sequence[float]) -> List[np.ndarray]:
    shift = vecmath.as_vec3(offset)
    return [vecmath.as_vec3(p) + shift for p in positions]


def smart_offset(
    incoming: Sequence[Sequence[float]],
    current: Sequence[Sequence[float]],
    min_distance: float,
    step: float = SMART_OFFSET_STEP,
    max_steps: int = SMART_OFFSET_MAX_STEPS,
) -> np.ndarray:
    """Menor desplazamiento +z que separa dos grupos de átomos.

    Args:
        incoming: Posiciones del grupo que se va a insertar.
        current: Posiciones ya presentes.
        min_distance: Distancia mínima entre cualquier par de ambos grupos.
        step: Paso del desplazamiento (Å).
        max_steps: Número máximo de pasos a probar.

    Returns:
        Vector (0, 0, dz). Si se agotan los pasos se devuelve el último
        desplazamiento probado.
    """
    if min_distance <= 0 or len(incoming) == 0 or len(current) == 0:
        return vecmath.vec3()
    inc = np.array([vecmath.as_vec3(p) for p in incoming])
    cur = np.array([vecmath.as_vec3(p) for p in current])
    offset_z = 0.0
    for _ in range(max_steps):
        shifted = inc + np.array([0.0, 0.0, offset_z])
        diffs = shifted[:, None, :] - cur[None, :, :]
        if np.min(np.linalg.norm(diffs, axis=2)) >= min_distance:
            return vecmath.vec3(0.0, 0.0, offset_z)
        offset_z += step
    return vecmath.vec3(0.0, 0.0, offset_z)


def alignment_rotation(
    target_anchor: Sequence[float],
    target_leaving: Sequence[float],
    source_anchor: Sequence[float],
    source_leaving: Sequence[float],
) -> np.ndarray:
    """Cuaternión que deja (ancla→saliente) de la fuente antiparalelo al destino."""
    target_vec = vecmath.normalize(vecmath.as_vec3(target_leaving) - vecmath.as_vec3(target_anchor))
    source_vec = vecmath.normalize(vecmath.as_vec3(source_leaving) - vecmath.as_vec3(source_anchor))
    return vecmath.quat_from_unit_vectors(source_vec, -target_vec)


def moving_fragment(pivot: Atom, direction: Atom, exclude: Iterable[Atom] = ()) -> List[Atom]:
    """Átomos alcanzables desde `direction` sin atravesar `pivot`.

    Returns:
        Lista en orden BFS; incluye `direction` y excluye `pivot`.
    """
    visited = {id(pivot)} | {id(a) for a in exclude}
    to_move: List[Atom] = []
    queue = deque([direction])
    while queue:
        current = queue.popleft()
        if id(current) in visited:
            continue
        visited.add(id(current))
        to_move.append(current)
        for neighbor in current.neighbors():
            if id(neighbor) not in visited:
                queue.append(neighbor)
    return to_move


def moving_fragment_for_dihedral(
    axis_start: Atom,
    axis_end: Atom,
    exclude: Iterable[Atom] = (),
) -> List[Atom]:
    """Átomos unidos a `axis_end` del lado opuesto a `axis_start`.

    Ambos extremos del eje quedan fijos.
    """
    visited = {id(axis_start), id(axis_end)} | {id(a) for a in exclude}
    to_move: List[Atom] = []
    queue = deque(n for n in axis_end.neighbors() if id(n) not in visited)
    while queue:
        current = queue.popleft()
        if id(current) in visited:
            continue
        visited.add(id(current))
        to_move.append(current)
        for neighbor in current.neighbors():
            if id(neighbor) not in visited:
                queue.append(neighbor)
    return to_move


def measure(positions: Sequence[Sequence[float]]) -> Tuple[str, float]:
    """Mide distancia, ángulo o diedro según el número de posiciones.

    Returns:
        Tupla (tipo, valor) con tipo en {"distance", "angle", "dihedral"}.

    Raises:
        PreconditionError: Si no se proporcionan 2, 3 o 4 posiciones.
    """
    n = len(positions)
    if n == 2:
        return "distance", distance(*positions)
    if n == 3:
        return "angle", angle(*positions)
    if n == 4:
        return "dihedral", dihedral(*positions)
    raise PreconditionError(f"Measurement needs 2, 3 or 4 atoms, got {n}")
