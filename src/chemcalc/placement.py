"""Colocación de átomos nuevos con heurísticas tipo VSEPR.

Incluye la dirección óptima para un vecino nuevo, las direcciones de
saturación con hidrógenos y la inserción de grupos funcionales mediante
alineación del átomo ficticio. Todas las operaciones calculan primero las
posiciones y solo después modifican la estructura.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence

import numpy as np

from chemcalc import geometry
from chemcalc.elements import covalent_radius, placement_valence
from chemcalc.groups import FunctionalGroup
from core import vecmath
from core.errors import PreconditionError
from core.model import Atom

TETRAHEDRAL_ANGLE = math.acos(-1.0 / 3.0)
_ANTIPARALLEL_THRESHOLD = 0.01
_SPHERE_SAMPLES = 240

# Geometrías canónicas para un centro sin vecinos, por coordinación total.
_ISOLATED_DIRECTIONS = {
    1: [(1.0, 0.0, 0.0)],
    2: [(1.0, 0.0, 0.0), (-1.0, 0.0, 0.0)],
    3: [(1.0, 0.0, 0.0), (-0.5, 0.866, 0.0), (-0.5, -0.866, 0.0)],
    4: [
        (1 / math.sqrt(3), 1 / math.sqrt(3), 1 / math.sqrt(3)),
        (1 / math.sqrt(3), -1 / math.sqrt(3), -1 / math.sqrt(3)),
        (-1 / math.sqrt(3), 1 / math.sqrt(3), -1 / math.sqrt(3)),
        (-1 / math.sqrt(3), -1 / math.sqrt(3), 1 / math.sqrt(3)),
    ],
    5: [(0.0, 0.0, 1.0), (0.0, 0.0, -1.0), (1.0, 0.0, 0.0), (-0.5, 0.866, 0.0), (-0.5, -0.866, 0.0)],
    6: [
        (1.0, 0.0, 0.0), (-1.0, 0.0, 0.0),
        (0.0, 1.0, 0.0), (0.0, -1.0, 0.0),
        (0.0, 0.0, 1.0), (0.0, 0.0, -1.0),
    ],
}


def bond_length(element1: str, element2: str) -> float:
    """Longitud de enlace estimada como suma de radios covalentes."""
    return covalent_radius(element1) + covalent_radius(element2)


def optimal_bond_direction(center: Sequence[float], neighbors: Sequence[Sequence[float]]) -> np.ndarray:
    """Dirección unitaria para un vecino nuevo según la regla VSEPR.

    Args:
        center: Posición del átomo central.
        neighbors: Posiciones de los vecinos existentes.

    Returns:
        +x sin vecinos; -v₁ con un vecino; la suma normalizada negada con
        dos o más (perpendicular si dos vecinos son antiparalelos).
    """
    c = vecmath.as_vec3(center)
    if len(neighbors) == 0:
        return vecmath.vec3(1.0, 0.0, 0.0)
    dirs = [vecmath.normalize(vecmath.as_vec3(n) - c) for n in neighbors]
    if len(dirs) == 1:
        return -dirs[0]
    total = np.sum(dirs, axis=0)
    if len(dirs) == 2 and vecmath.length(total) < _ANTIPARALLEL_THRESHOLD:
        return vecmath.perpendicular(dirs[0])
    return -vecmath.normalize(total)


def _fibonacci_sphere(n: int) -> List[np.ndarray]:
    golden = math.pi * (3.0 - math.sqrt(5.0))
    points = []
    for i in range(n):
        y = 1.0 - 2.0 * (i + 0.5) / n
        r = math.sqrt(max(0.0, 1.0 - y * y))
        theta = golden * i
        points.append(vecmath.vec3(math.cos(theta) * r, y, math.sin(theta) * r))
    return points


def _spread_directions(existing: Sequence[np.ndarray], count: int) -> List[np.ndarray]:
    """Elige direcciones que maximizan el ángulo mínimo con las ya ocupadas."""
    taken = list(existing)
    chosen: List[np.ndarray] = []
    candidates = _fibonacci_sphere(_SPHERE_SAMPLES)
    for _ in range(count):
        if not taken:
            best = vecmath.vec3(1.0, 0.0, 0.0)
        else:
            best = max(candidates, key=lambda c: min(vecmath.angle_between(c, t) for t in taken))
        chosen.append(best)
        taken.append(best)
    return chosen


def multiple_bond_directions(
    center: Sequence[float],
    neighbors: Sequence[Sequence[float]],
    count: int,
    total_coordination: int,
) -> List[np.ndarray]:
    """Direcciones unitarias para `count` vecinos nuevos.

    Con coordinación total 2, 3 o 4 devuelve geometrías lineal, trigonal
    plana o tetraédrica respecto de los vecinos existentes. Los casos sin
    plantilla se resuelven repartiendo direcciones sobre la esfera.

    Args:
        center: Posición del átomo central.
        neighbors: Posiciones de los vecinos existentes.
        count: Número de direcciones nuevas requeridas.
        total_coordination: Vecinos existentes + nuevos.

    Returns:
        Lista de `count` vectores unitarios.
    """
    if count <= 0:
        return []
    c = vecmath.as_vec3(center)
    existing = [vecmath.normalize(vecmath.as_vec3(n) - c) for n in neighbors]
    k = len(existing)
    directions: List[np.ndarray] = []

    if k == 0:
        template = _ISOLATED_DIRECTIONS.get(total_coordination)
        if template is not None:
            directions = [vecmath.normalize(d) for d in template[:count]]
    elif k == 1:
        bond_dir = existing[0]
        opposite = -bond_dir
        if count == 1:
            directions = [opposite]
        elif count == 2:
            ref = vecmath.vec3(0.0, 1.0, 0.0)
            if abs(vecmath.dot(opposite, ref)) > 0.9:
                ref = vecmath.vec3(1.0, 0.0, 0.0)
            perp2 = vecmath.normalize(vecmath.cross(opposite, ref))
            perp1 = vecmath.normalize(vecmath.cross(perp2, opposite))
            if total_coordination == 3:
                half = math.pi / 3.0
                directions = [
                    vecmath.rotate_axis_angle(opposite, perp2, half),
                    vecmath.rotate_axis_angle(opposite, perp2, -half),
                ]
            else:
                tilted = vecmath.rotate_axis_angle(bond_dir, perp1, TETRAHEDRAL_ANGLE)
                directions = [
                    vecmath.rotate_axis_angle(tilted, bond_dir, math.pi / 3.0),
                    vecmath.rotate_axis_angle(tilted, bond_dir, -math.pi / 3.0),
                ]
        elif count == 3:
            axis = vecmath.perpendicular(bond_dir)
            tilted = vecmath.rotate_axis_angle(bond_dir, axis, TETRAHEDRAL_ANGLE)
            directions = [
                vecmath.normalize(vecmath.rotate_axis_angle(tilted, bond_dir, i * 2.0 * math.pi / 3.0))
                for i in range(3)
            ]
    elif k == 2:
        avg = vecmath.normalize(existing[0] + existing[1])
        if vecmath.length(avg) < _ANTIPARALLEL_THRESHOLD:
            directions = []
        elif count == 1:
            directions = [-avg]
        elif count == 2:
            normal = vecmath.normalize(vecmath.cross(existing[0], existing[1]))
            bisector = -avg
            axis = vecmath.normalize(vecmath.cross(bisector, normal))
            half = TETRAHEDRAL_ANGLE / 2.0
            directions = [
                vecmath.rotate_axis_angle(bisector, axis, half),
                vecmath.rotate_axis_angle(bisector, axis, -half),
            ]
    elif k == 3 and count == 1:
        total = existing[0] + existing[1] + existing[2]
        if vecmath.length(total) >= _ANTIPARALLEL_THRESHOLD:
            directions = [-vecmath.normalize(total)]

    directions = [vecmath.normalize(d) for d in directions[:count]]
    if len(directions) < count:
        directions += _spread_directions(existing + directions, count - len(directions))
    return directions


def hydrogens_needed(atom: Atom) -> int:
    """Hidrógenos que faltan para completar la valencia de colocación."""
    used = sum(bond.order for bond in atom.bonds)
    return max(0, placement_valence(atom.element) - used)


def add_hydrogens(structure, atom: Atom) -> List[Atom]:
    """Satura con hidrógenos un átomo según su valencia de colocación.

    Args:
        structure: Estructura (o cristal) que contiene al átomo.
        atom: Átomo a saturar.

    Returns:
        Lista de hidrógenos añadidos (vacía si ya está saturado).

    Side Effects:
        Añade átomos H y sus enlaces a la estructura.
    """
    if atom.element in ("H", "D"):
        return []
    needed = hydrogens_needed(atom)
    if needed <= 0:
        return []
    neighbors = [n.position for n in atom.neighbors()]
    directions = multiple_bond_directions(atom.position, neighbors, needed, len(neighbors) + needed)
    length = bond_length(atom.element, "H")
    positions = [atom.position + d * length for d in directions]
    added = []
    for pos in positions:
        hydrogen = structure.add_atom("H", pos)
        structure.add_bond(atom, hydrogen, 1)
        added.append(hydrogen)
    return added


def add_atom_smart(
    structure,
    anchor: Atom,
    element: str,
    direction: Optional[Sequence[float]] = None,
    length: Optional[float] = None,
) -> Atom:
    """Añade un átomo enlazado a `anchor` en la dirección VSEPR.

    Args:
        structure: Estructura anfitriona.
        anchor: Átomo al que se une el nuevo.
        element: Elemento del átomo nuevo.
        direction: Dirección explícita (opcional).
        length: Longitud de enlace explícita (opcional).

    Returns:
        El átomo creado.
    """
    if direction is None:
        direction = optimal_bond_direction(anchor.position, [n.position for n in anchor.neighbors()])
    unit = vecmath.normalize(direction)
    if vecmath.length(unit) == 0.0:
        raise PreconditionError("Attachment direction cannot be zero")
    if length is None:
        length = bond_length(anchor.element, element)
    new_atom = structure.add_atom(element, anchor.position + unit * length)
    structure.add_bond(anchor, new_atom, 1)
    return new_atom


def group_positions(
    host_position: Sequence[float],
    group: FunctionalGroup,
    direction: Sequence[float],
    length: float,
) -> List[Optional[np.ndarray]]:
    """Posiciones finales de los átomos de un grupo (None para el ficticio).

    El ancla del grupo se coloca en `host + dirección·longitud` y el resto
    se rota para que (ficticio - ancla) quede antiparalelo a la dirección
    de anclaje.
    """
    anchor_idx = group.anchor_index()
    anchor_local = vecmath.as_vec3(group.atoms[anchor_idx][1])
    dummy_local = vecmath.as_vec3(group.atoms[group.dummy][1])
    group_dir = vecmath.normalize(anchor_local - dummy_local)
    if vecmath.length(group_dir) == 0.0:
        raise PreconditionError(f"Group {group.name}: dummy and anchor coincide")
    unit = vecmath.normalize(direction)
    anchor_pos = vecmath.as_vec3(host_position) + unit * length
    q = geometry.alignment_rotation(host_position, anchor_pos, anchor_local, dummy_local)
    positions: List[Optional[np.ndarray]] = []
    for i, (_, local) in enumerate(group.atoms):
        if i == group.dummy:
            positions.append(None)
            continue
        positions.append(anchor_pos + vecmath.quat_rotate(q, vecmath.as_vec3(local) - anchor_local))
    return positions


def attach_group(
    structure,
    host_anchor: Atom,
    group: FunctionalGroup,
    direction: Optional[Sequence[float]] = None,
    length: Optional[float] = None,
    exclude: Sequence[Atom] = (),
) -> List[Atom]:
    """Inserta un grupo funcional unido a `host_anchor`.

    Args:
        structure: Estructura anfitriona.
        host_anchor: Átomo del anfitrión donde se ancla el grupo.
        group: Plantilla con átomo ficticio.
        direction: Dirección de anclaje explícita; por defecto la VSEPR.
        length: Longitud del enlace de anclaje; por defecto suma de radios.
        exclude: Vecinos del anfitrión que no cuentan para la regla VSEPR
            (p. ej., el átomo saliente de una sustitución).

    Returns:
        Átomos insertados, en el orden de la plantilla sin el ficticio.

    Side Effects:
        Añade los átomos del grupo, el enlace de anclaje y los enlaces
        internos que no tocan al ficticio.
    """
    anchor_idx = group.anchor_index()
    if direction is None:
        skip = {id(a) for a in exclude}
        neighbors = [n.position for n in host_anchor.neighbors() if id(n) not in skip]
        direction = optimal_bond_direction(host_anchor.position, neighbors)
    if length is None:
        length = bond_length(host_anchor.element, group.atoms[anchor_idx][0])
    if not math.isfinite(length) or length <= 0:
        raise PreconditionError(f"Invalid bond length: {length}")
    positions = group_positions(host_anchor.position, group, direction, length)

    new_atoms: dict[int, Atom] = {}
    for i, ((element, _), pos) in enumerate(zip(group.atoms, positions)):
        if pos is not None:
            new_atoms[i] = structure.add_atom(element, pos)
    structure.add_bond(host_anchor, new_atoms[anchor_idx], group.anchor_bond_order())
    for i, j, order in group.bonds:
        if group.dummy in (i, j):
            continue
        structure.add_bond(new_atoms[i], new_atoms[j], order)
    return [new_atoms[i] for i in sorted(new_atoms)]
