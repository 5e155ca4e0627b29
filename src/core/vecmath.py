"""
Utilidades de álgebra vectorial para el motor 3D.

Los vectores son arreglos `numpy` de forma (3,) tratados como valores:
ninguna función modifica sus argumentos y todas devuelven arreglos nuevos.
Los cuaterniones se representan como (w, x, y, z).
"""
from __future__ import annotations

import math
from typing import Iterable, Sequence

import numpy as np

EPSILON = 1e-12


def vec3(x: float = 0.0, y: float = 0.0, z: float = 0.0) -> np.ndarray:
    """Construye un vector 3D de punto flotante."""
    return np.array([x, y, z], dtype=float)


def as_vec3(value: Sequence[float]) -> np.ndarray:
    """Convierte una secuencia de tres números en un vector nuevo."""
    arr = np.array(value, dtype=float).reshape(3)
    return arr


def length(v: Sequence[float]) -> float:
    return float(np.linalg.norm(v))


def distance(p: Sequence[float], q: Sequence[float]) -> float:
    return float(np.linalg.norm(np.asarray(q, dtype=float) - np.asarray(p, dtype=float)))


def normalize(v: Sequence[float]) -> np.ndarray:
    """Devuelve el vector unitario; el vector nulo se devuelve como nulo."""
    arr = np.asarray(v, dtype=float)
    n = np.linalg.norm(arr)
    if n < EPSILON:
        return np.zeros(3)
    return arr / n


def cross(a: Sequence[float], b: Sequence[float]) -> np.ndarray:
    return np.cross(np.asarray(a, dtype=float), np.asarray(b, dtype=float))


def dot(a: Sequence[float], b: Sequence[float]) -> float:
    return float(np.dot(a, b))


def angle_between(a: Sequence[float], b: Sequence[float]) -> float:
    """Ángulo en radianes entre dos vectores (0 si alguno es nulo)."""
    na = np.linalg.norm(a)
    nb = np.linalg.norm(b)
    if na < EPSILON or nb < EPSILON:
        return 0.0
    cos_theta = float(np.dot(a, b) / (na * nb))
    return math.acos(max(-1.0, min(1.0, cos_theta)))


def perpendicular(v: Sequence[float]) -> np.ndarray:
    """Devuelve un vector unitario perpendicular a `v`."""
    unit = normalize(v)
    ref = vec3(0.0, 1.0, 0.0)
    if abs(float(np.dot(unit, ref))) > 0.9:
        ref = vec3(1.0, 0.0, 0.0)
    return normalize(np.cross(ref, unit))


def centroid(points: Iterable[Sequence[float]]) -> np.ndarray:
    """Promedio aritmético de puntos; origen si no hay puntos."""
    pts = [np.asarray(p, dtype=float) for p in points]
    if not pts:
        return np.zeros(3)
    return np.mean(pts, axis=0)


# --- Cuaterniones -----------------------------------------------------------

def quat_from_axis_angle(axis: Sequence[float], angle: float) -> np.ndarray:
    """Cuaternión unitario para una rotación de `angle` rad (regla de la mano derecha)."""
    unit = normalize(axis)
    half = 0.5 * angle
    s = math.sin(half)
    return np.array([math.cos(half), unit[0] * s, unit[1] * s, unit[2] * s])


def quat_from_unit_vectors(v_from: Sequence[float], v_to: Sequence[float]) -> np.ndarray:
    """Cuaternión que rota la dirección `v_from` sobre `v_to`.

    Para vectores antiparalelos se elige un eje perpendicular arbitrario.
    """
    a = normalize(v_from)
    b = normalize(v_to)
    r = float(np.dot(a, b)) + 1.0
    if r < 1e-9:
        axis = perpendicular(a)
        return np.array([0.0, axis[0], axis[1], axis[2]])
    c = np.cross(a, b)
    q = np.array([r, c[0], c[1], c[2]])
    return q / np.linalg.norm(q)


def quat_rotate(q: Sequence[float], v: Sequence[float]) -> np.ndarray:
    """Aplica el cuaternión unitario `q` al vector `v`."""
    w = q[0]
    u = np.array(q[1:4], dtype=float)
    vec = np.asarray(v, dtype=float)
    t = 2.0 * np.cross(u, vec)
    return vec + w * t + np.cross(u, t)


def rotate_axis_angle(v: Sequence[float], axis: Sequence[float], angle: float) -> np.ndarray:
    return quat_rotate(quat_from_axis_angle(axis, angle), v)


def rotate_about_point(
    points: Iterable[Sequence[float]],
    pivot: Sequence[float],
    q: Sequence[float],
) -> list[np.ndarray]:
    """Rota puntos alrededor de `pivot` con el cuaternión `q`."""
    center = np.asarray(pivot, dtype=float)
    return [quat_rotate(q, np.asarray(p, dtype=float) - center) + center for p in points]


# --- Matrices ---------------------------------------------------------------

def euler_matrix_xyz(x_deg: float, y_deg: float, z_deg: float) -> np.ndarray:
    """Matriz de rotación para ángulos de Euler intrínsecos en orden XYZ."""
    rx, ry, rz = (math.radians(x_deg), math.radians(y_deg), math.radians(z_deg))
    cx, sx = math.cos(rx), math.sin(rx)
    cy, sy = math.cos(ry), math.sin(ry)
    cz, sz = math.cos(rz), math.sin(rz)
    mx = np.array([[1.0, 0.0, 0.0], [0.0, cx, -sx], [0.0, sx, cx]])
    my = np.array([[cy, 0.0, sy], [0.0, 1.0, 0.0], [-sy, 0.0, cy]])
    mz = np.array([[cz, -sz, 0.0], [sz, cz, 0.0], [0.0, 0.0, 1.0]])
    return mx @ my @ mz


def columns(a: Sequence[float], b: Sequence[float], c: Sequence[float]) -> np.ndarray:
    """Matriz 3x3 con `a`, `b`, `c` como columnas."""
    return np.column_stack([as_vec3(a), as_vec3(b), as_vec3(c)])


def determinant(m: Sequence[Sequence[float]]) -> float:
    return float(np.linalg.det(np.asarray(m, dtype=float)))


def inverse(m: Sequence[Sequence[float]]) -> np.ndarray:
    """Inversa de una matriz 3x3; `numpy.linalg.LinAlgError` si es singular."""
    return np.linalg.inv(np.asarray(m, dtype=float))


def is_finite(v: Sequence[float]) -> bool:
    return bool(np.all(np.isfinite(np.asarray(v, dtype=float))))
