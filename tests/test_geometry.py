"""Pruebas unitarias para test_geometry."""

import os
import sys
import math

import numpy as np
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))

from chemcalc import geometry
from core import vecmath
from core.errors import PreconditionError
from core.model import Structure


def test_bond_length_scenario():
    """Verifica bond length scenario.

    Returns:
        None.

    """
    h = (0.0, 0.0, 0.0)
    cl = (2.0, 0.0, 0.0)
    (new_cl,) = geometry.positions_for_bond_length(h, cl, [cl], 1.27)
    assert np.allclose(new_cl, (1.27, 0.0, 0.0))


def test_bond_length_rejects_non_positive_target():
    with pytest.raises(PreconditionError):
        geometry.positions_for_bond_length((0, 0, 0), (1, 0, 0), [(1, 0, 0)], 0.0)


def test_bond_length_coincident_atoms_unchanged():
    (moved,) = geometry.positions_for_bond_length((0, 0, 0), (0, 0, 0), [(0, 0, 0)], 1.0)
    assert np.allclose(moved, (0, 0, 0))


def test_angle_scenario():
    """Verifica angle scenario.

    Returns:
        None.

    """
    a, b, c = (1.0, 0.0, 0.0), (0.0, 0.0, 0.0), (0.0, 1.0, 0.0)
    (new_c,) = geometry.positions_for_angle(a, b, c, [c], 109.47)
    assert geometry.angle(a, b, new_c) == pytest.approx(109.47, abs=1e-6)
    assert geometry.distance(b, new_c) == pytest.approx(1.0, abs=1e-9)


def test_angle_collinear_uses_fallback_axis():
    a, b, c = (1.0, 0.0, 0.0), (0.0, 0.0, 0.0), (-1.0, 0.0, 0.0)
    (new_c,) = geometry.positions_for_angle(a, b, c, [c], 90.0)
    assert geometry.angle(a, b, new_c) == pytest.approx(90.0, abs=1e-6)


def test_dihedral_scenario():
    """Verifica dihedral scenario.

    Returns:
        None.

    """
    p1, p2, p3, p4 = (1.0, 0.0, 0.0), (0.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 1.0, 1.0)
    (new_p4,) = geometry.positions_for_dihedral(p1, p2, p3, p4, [p4], -60.0)
    assert geometry.dihedral(p1, p2, p3, new_p4) == pytest.approx(-60.0, abs=1e-6)


@pytest.mark.parametrize("target", [-179.0, -90.0, 0.0, 45.0, 135.0, 180.0])
def test_dihedral_reaches_any_target(target):
    p1, p2, p3, p4 = (1.0, 0.2, 0.0), (0.0, 0.0, 0.0), (0.0, 1.5, 0.0), (0.3, 2.0, 1.0)
    (new_p4,) = geometry.positions_for_dihedral(p1, p2, p3, p4, [p4], target)
    measured = geometry.dihedral(p1, p2, p3, new_p4)
    assert geometry.normalize_angle_delta(measured - target) == pytest.approx(0.0, abs=1e-6)


def test_measurements_invariant_under_rigid_motion():
    """Verifica measurements invariant under rigid motion.

    Returns:
        None.

    """
    points = [
        np.array([0.3, 0.1, -0.2]),
        np.array([1.4, 0.2, 0.1]),
        np.array([1.9, 1.5, 0.0]),
        np.array([3.1, 1.7, 0.9]),
    ]
    moved = geometry.rotated_positions(points, 31.0, -47.0, 112.0, center=(0.5, 0.5, 0.5))
    moved = geometry.translated_positions(moved, (4.0, -2.0, 7.5))
    for n in (2, 3, 4):
        kind, before = geometry.measure(points[:n])
        kind_after, after = geometry.measure(moved[:n])
        assert kind == kind_after
        assert after == pytest.approx(before, abs=1e-9)


def test_measure_requires_two_to_four_points():
    with pytest.raises(PreconditionError):
        geometry.measure([(0, 0, 0)])
    with pytest.raises(PreconditionError):
        geometry.measure([(0, 0, 0)] * 5)


def test_moving_fragment_stops_at_pivot():
    """Verifica moving fragment stops at pivot.

    Returns:
        None.

    """
    structure = Structure()
    a = structure.add_atom("C", (0.0, 0.0, 0.0))
    b = structure.add_atom("C", (1.5, 0.0, 0.0))
    c = structure.add_atom("O", (2.2, 1.2, 0.0))
    d = structure.add_atom("H", (-0.5, 0.9, 0.0))
    structure.add_bond(a, b)
    structure.add_bond(b, c)
    structure.add_bond(a, d)

    assert geometry.moving_fragment(a, b) == [b, c]
    assert geometry.moving_fragment_for_dihedral(a, b) == [c]
    assert geometry.moving_fragment_for_dihedral(b, a, exclude=[c]) == [d]


def test_smart_offset_separates_groups():
    """Verifica smart offset separates groups.

    Returns:
        None.

    """
    current = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0)]
    incoming = [(0.0, 0.0, 0.5), (1.0, 0.0, 0.5)]
    offset = geometry.smart_offset(incoming, current, 2.0)
    assert np.allclose(offset, (0.0, 0.0, 3.0))
    assert np.allclose(geometry.smart_offset(incoming, [], 2.0), (0.0, 0.0, 0.0))


def test_alignment_rotation_is_antiparallel():
    q = geometry.alignment_rotation((0, 0, 0), (1, 0, 0), (0, 0, 0), (0, 1, 0))
    rotated = vecmath.quat_rotate(q, (0.0, 1.0, 0.0))
    assert np.allclose(rotated, (-1.0, 0.0, 0.0), atol=1e-12)


def test_euler_rotation_about_z():
    (p,) = geometry.rotated_positions([(1.0, 0.0, 0.0)], 0.0, 0.0, 90.0)
    assert np.allclose(p, (0.0, 1.0, 0.0), atol=1e-12)
    assert math.isclose(float(np.linalg.norm(p)), 1.0)
