"""Pruebas unitarias para test_crystal."""

import os
import sys
import unittest

import numpy as np

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))

from core.crystal import Crystal, wrap_unit
from core.errors import PreconditionError
from core.lattice import Lattice
from core.model import Structure


def _cubic(a=3.0, name="Cubic"):
    return Crystal(name, Lattice(a, a, a, 90.0, 90.0, 90.0))


class CrystalTest(unittest.TestCase):
    """Casos de prueba para CrystalTest."""
    def test_add_atom_fractional_sets_cartesian_position(self):
        """Verifica add atom fractional sets cartesian position.

        Returns:
            None.

        """
        crystal = _cubic(4.0)
        atom = crystal.add_atom_fractional("Na", (0.5, 0.25, 0.0))
        self.assertTrue(np.allclose(atom.position, (2.0, 1.0, 0.0)))
        self.assertEqual(crystal.get_frac(atom), (0.5, 0.25, 0.0))

    def test_fractional_requires_lattice(self):
        """Verifica fractional requires lattice.

        Returns:
            None.

        """
        crystal = Crystal("Empty")
        with self.assertRaises(PreconditionError):
            crystal.add_atom_fractional("Na", (0.0, 0.0, 0.0))

    def test_move_atom_invalidates_fractional_cache(self):
        """Verifica move atom invalidates fractional cache.

        Returns:
            None.

        """
        crystal = _cubic(4.0)
        atom = crystal.add_atom_fractional("Na", (0.5, 0.5, 0.5))
        crystal.move_atom(atom, (1.0, 1.0, 1.0))
        self.assertIsNone(crystal.get_frac(atom))
        self.assertTrue(np.allclose(crystal.get_frac_safe(atom), (0.25, 0.25, 0.25)))

    def test_supercell_scenario(self):
        """Verifica supercell scenario.

        Returns:
            None.

        """
        crystal = _cubic(3.0)
        crystal.add_atom_fractional("C", (0.25, 0.25, 0.25))

        supercell = crystal.generate_supercell(2, 2, 2)

        self.assertEqual(len(supercell), 8)
        self.assertAlmostEqual(supercell.lattice.a, 6.0)
        fracs = {tuple(round(v, 6) for v in supercell.get_frac(a)) for a in supercell.atoms}
        expected = {(x, y, z) for x in (0.125, 0.625) for y in (0.125, 0.625) for z in (0.125, 0.625)}
        self.assertEqual(fracs, expected)
        self.assertEqual(supercell.name, "Cubic 2×2×2")
        self.assertEqual(len(crystal), 1)

    def test_supercell_count_and_range(self):
        """Verifica supercell count and range.

        Returns:
            None.

        """
        crystal = _cubic(3.5)
        crystal.add_atom_fractional("Na", (0.0, 0.0, 0.0))
        crystal.add_atom_fractional("Cl", (0.5, 0.5, 0.5))
        crystal.space_group = "F m -3 m"
        for n in (1, 2, 3):
            supercell = crystal.generate_supercell_matrix([[n, 0, 0], [0, n, 0], [0, 0, n]])
            self.assertEqual(len(supercell), n ** 3 * 2)
            self.assertEqual(supercell.space_group, "F m -3 m")
            for atom in supercell.atoms:
                for value in supercell.get_frac(atom):
                    self.assertGreaterEqual(value, 0.0)
                    self.assertLess(value, 1.0)

    def test_non_diagonal_supercell(self):
        """Verifica non diagonal supercell.

        Returns:
            None.

        """
        crystal = _cubic(3.0)
        crystal.add_atom_fractional("C", (0.1, 0.2, 0.3))

        supercell = crystal.generate_supercell_matrix([[1, 1, 0], [-1, 1, 0], [0, 0, 1]])

        self.assertEqual(len(supercell), 2)
        self.assertEqual(supercell.space_group, "P 1")
        self.assertEqual(supercell.name, "Cubic (matrix supercell)")
        self.assertAlmostEqual(supercell.lattice.volume(), 2 * crystal.lattice.volume())

    def test_supercell_rejects_bad_matrices(self):
        """Verifica supercell rejects bad matrices.

        Returns:
            None.

        """
        crystal = _cubic(3.0)
        crystal.add_atom_fractional("C", (0.0, 0.0, 0.0))
        with self.assertRaises(PreconditionError):
            crystal.generate_supercell_matrix([[1, 0, 0], [0, 1, 0], [0, 0, 0]])
        with self.assertRaises(PreconditionError):
            crystal.generate_supercell_matrix([[1.5, 0, 0], [0, 1, 0], [0, 0, 1]])
        with self.assertRaises(PreconditionError):
            crystal.generate_supercell_matrix([[1, 0], [0, 1]])

    def test_wrap_atoms_is_idempotent(self):
        """Verifica wrap atoms is idempotent.

        Returns:
            None.

        """
        crystal = _cubic(4.0)
        crystal.add_atom("O", (5.0, -1.0, 9.5))
        crystal.add_atom("H", (-0.4, 3.9, 4.0))

        crystal.wrap_atoms()
        first = crystal.positions().copy()
        crystal.wrap_atoms()

        self.assertTrue(np.allclose(crystal.positions(), first))
        for atom in crystal.atoms:
            for value in crystal.get_frac(atom):
                self.assertTrue(0.0 <= value < 1.0)

    def test_snapshot_roundtrip(self):
        """Verifica snapshot roundtrip.

        Returns:
            None.

        """
        crystal = _cubic(3.0)
        a = crystal.add_atom_fractional("Si", (0.0, 0.0, 0.0))
        b = crystal.add_atom_fractional("Si", (0.25, 0.25, 0.25))
        crystal.add_bond(a, b)
        crystal.space_group = "F d -3 m"
        crystal.space_group_number = 227

        snapshot = crystal.to_snapshot()
        restored = Crystal()
        restored.from_snapshot(snapshot)

        self.assertTrue(snapshot["isCrystal"])
        self.assertEqual(restored.to_snapshot(), snapshot)
        self.assertEqual(restored.lattice, crystal.lattice)

    def test_from_structure_keeps_ids_and_bonds(self):
        """Verifica from structure keeps ids and bonds.

        Returns:
            None.

        """
        structure = Structure("Water")
        o = structure.add_atom("O", (0.0, 0.0, 0.0))
        h = structure.add_atom("H", (0.96, 0.0, 0.0))
        structure.add_bond(o, h)

        crystal = Crystal.from_structure(structure, Lattice(10.0, 10.0, 10.0, 90.0, 90.0, 90.0))

        self.assertEqual(crystal.name, "Water")
        self.assertEqual([a.id for a in crystal.atoms], [o.id, h.id])
        self.assertEqual(len(crystal.bonds), 1)
        self.assertTrue(crystal.is_crystal)


def test_wrap_unit():
    assert wrap_unit(1.25) == 0.25
    assert wrap_unit(-0.25) == 0.75
    assert wrap_unit(1.0) == 0.0
    assert 0.0 <= wrap_unit(-1e-18) < 1.0


if __name__ == "__main__":
    unittest.main()
