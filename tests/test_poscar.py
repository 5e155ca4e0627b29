"""Pruebas unitarias para test_poscar."""

import os
import sys

import numpy as np
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))

from chemio.poscar import PoscarFormatError, format_poscar, parse_poscar, read_poscar, write_poscar
from core.crystal import Crystal
from core.errors import PreconditionError

NACL = """NaCl rocksalt
1.0
5.64 0.0 0.0
0.0 5.64 0.0
0.0 0.0 5.64
Na Cl
2 2
Direct
0.0 0.0 0.0
0.5 0.5 0.0
0.5 0.0 0.5
0.0 0.5 0.5
"""


def test_parse_vasp5_direct():
    """Verifica parse vasp5 direct.

    Returns:
        None.

    """
    crystal = parse_poscar(NACL)
    assert crystal.name == "NaCl rocksalt"
    assert crystal.lattice.a == pytest.approx(5.64)
    assert [a.element for a in crystal.atoms] == ["Na", "Na", "Cl", "Cl"]
    assert np.allclose(crystal.atoms[1].position, (2.82, 2.82, 0.0))
    assert crystal.get_frac(crystal.atoms[2]) == (0.5, 0.0, 0.5)


def test_parse_vasp4_cartesian_with_selective_dynamics():
    """Verifica parse vasp4 cartesian with selective dynamics.

    Returns:
        None.

    """
    text = "\n".join([
        "old format",
        "2.0",
        "2.0 0.0 0.0",
        "0.0 2.0 0.0",
        "0.0 0.0 2.0",
        "1 1",
        "Selective dynamics",
        "Cartesian",
        "0.0 0.0 0.0 T T T",
        "1.0 1.0 1.0 F F F",
    ])
    crystal = parse_poscar(text)
    assert crystal.lattice.a == pytest.approx(4.0)
    assert [a.element for a in crystal.atoms] == ["A", "B"]
    assert np.allclose(crystal.get_frac(crystal.atoms[1]), (0.5, 0.5, 0.5))


@pytest.mark.parametrize(
    "text",
    [
        "too\nshort\n",
        NACL.replace("5.64 0.0 0.0", "5.64 zero 0.0"),
        NACL.replace("2 2", "2 x"),
        NACL.replace("2 2", "2 2 2"),
        "\n".join(NACL.splitlines()[:-1]),
    ],
)
def test_malformed_files_raise(text):
    with pytest.raises(PoscarFormatError):
        parse_poscar(text)


def test_format_and_parse_roundtrip(tmp_path):
    """Verifica format and parse roundtrip.

    Returns:
        None.

    """
    original = parse_poscar(NACL)
    path = tmp_path / "POSCAR"
    write_poscar(str(path), original, comment="roundtrip")

    restored = read_poscar(str(path))

    assert restored.name == "roundtrip"
    assert restored.lattice.to_dict() == pytest.approx(original.lattice.to_dict())
    assert [a.element for a in restored.atoms] == [a.element for a in original.atoms]
    for a, b in zip(original.atoms, restored.atoms):
        assert np.allclose(a.position, b.position, atol=1e-8)


def test_format_groups_elements_by_first_appearance():
    crystal = parse_poscar(NACL)
    crystal.add_atom_fractional("Na", (0.25, 0.25, 0.25))
    lines = format_poscar(crystal).splitlines()
    assert lines[5].split() == ["Na", "Cl"]
    assert lines[6].split() == ["3", "2"]
    assert lines[7] == "Direct"


def test_format_requires_lattice():
    with pytest.raises(PreconditionError):
        format_poscar(Crystal("Bare"))


def test_cartesian_in_rotated_cell():
    """Verifica cartesian in rotated cell.

    Returns:
        None.

    """
    text = "\n".join([
        "Rotated",
        "1.0",
        "0.0 3.0 0.0",
        "-3.0 0.0 0.0",
        "0.0 0.0 3.0",
        "Si",
        "1",
        "Cartesian",
        "0.0 1.5 0.0",
    ])
    crystal = parse_poscar(text)
    assert np.allclose(crystal.get_frac(crystal.atoms[0]), (0.5, 0.0, 0.0))
    assert np.allclose(crystal.atoms[0].position, (1.5, 0.0, 0.0))


def test_left_handed_cell_keeps_chirality():
    text = "\n".join([
        "Mirror",
        "1.0",
        "3.0 0.0 0.0",
        "0.0 4.0 0.0",
        "0.0 0.0 -5.0",
        "O",
        "4",
        "Direct",
        "0.0 0.0 0.0",
        "0.5 0.0 0.0",
        "0.0 0.5 0.0",
        "0.0 0.0 0.5",
    ])
    crystal = parse_poscar(text)
    origin, p1, p2, p3 = (np.asarray(a.position) for a in crystal.atoms)
    d1, d2, d3 = p1 - origin, p2 - origin, p3 - origin
    assert [np.linalg.norm(d) for d in (d1, d2, d3)] == pytest.approx([1.5, 2.0, 2.5])
    assert np.linalg.det(np.array([d1, d2, d3])) == pytest.approx(-7.5)
