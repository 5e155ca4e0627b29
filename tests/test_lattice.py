"""Pruebas unitarias para test_lattice."""

import os
import sys
import itertools

import numpy as np
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))

from core.errors import DegenerateGeometryError, PreconditionError
from core.lattice import Lattice


TRICLINIC = Lattice(4.2, 5.1, 6.3, 78.0, 95.0, 104.0)


def test_cubic_vectors_and_volume():
    """Verifica cubic vectors and volume.

    Returns:
        None.

    """
    lattice = Lattice(10.0, 10.0, 10.0, 90.0, 90.0, 90.0)
    va, vb, vc = lattice.vectors()
    assert np.allclose(va, [10.0, 0.0, 0.0])
    assert np.allclose(vb, [0.0, 10.0, 0.0], atol=1e-12)
    assert np.allclose(vc, [0.0, 0.0, 10.0], atol=1e-12)
    assert lattice.volume() == pytest.approx(1000.0)


@pytest.mark.parametrize("point", [(0.0, 0.0, 0.0), (1.3, -2.7, 4.4), (12.5, 7.1, -3.3)])
def test_frac_cart_roundtrip(point):
    """Verifica frac cart roundtrip.

    Returns:
        None.

    """
    frac = TRICLINIC.cart_to_frac(point)
    assert np.allclose(TRICLINIC.frac_to_cart(frac), point, atol=1e-9)


def test_minimum_image_scenario():
    lattice = Lattice(10.0, 10.0, 10.0, 90.0, 90.0, 90.0)
    assert np.allclose(lattice.minimum_image((9.5, 0.0, 0.0)), (-0.5, 0.0, 0.0), atol=1e-12)


def test_minimum_image_invariant_under_lattice_translations():
    """Verifica minimum image invariant under lattice translations.

    Returns:
        None.

    """
    va, vb, vc = TRICLINIC.vectors()
    d = np.array([0.7, -1.1, 0.4])
    reference = TRICLINIC.minimum_image(d)
    for k1, k2, k3 in itertools.product((-2, 1, 3), repeat=3):
        shifted = d + k1 * va + k2 * vb + k3 * vc
        assert np.allclose(TRICLINIC.minimum_image(shifted), reference, atol=1e-9)


def test_degenerate_angles_raise():
    """Verifica degenerate angles raise.

    Returns:
        None.

    """
    with pytest.raises(DegenerateGeometryError):
        Lattice(5.0, 5.0, 5.0, 120.0, 120.0, 120.0).vectors()


@pytest.mark.parametrize(
    "params",
    [
        (0.0, 5.0, 5.0, 90.0, 90.0, 90.0),
        (5.0, -1.0, 5.0, 90.0, 90.0, 90.0),
        (5.0, 5.0, 5.0, 180.0, 90.0, 90.0),
        (5.0, 5.0, 5.0, 90.0, 0.0, 90.0),
    ],
)
def test_invalid_parameters_rejected(params):
    with pytest.raises(PreconditionError):
        Lattice(*params)


def test_from_vectors_recovers_parameters():
    """Verifica from vectors recovers parameters.

    Returns:
        None.

    """
    rebuilt = Lattice.from_vectors(*TRICLINIC.vectors())
    for name in ("a", "b", "c", "alpha", "beta", "gamma"):
        assert getattr(rebuilt, name) == pytest.approx(getattr(TRICLINIC, name), abs=1e-9)


def test_reciprocal_vectors_are_dual():
    direct = np.array(TRICLINIC.vectors())
    reciprocal = np.array(TRICLINIC.reciprocal_vectors())
    assert np.allclose(direct @ reciprocal.T, np.eye(3), atol=1e-12)


def test_dict_roundtrip_and_str():
    lattice = Lattice.from_dict(TRICLINIC.to_dict())
    assert lattice == TRICLINIC
    assert "a=4.2000" in str(lattice)
