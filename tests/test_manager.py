"""Pruebas unitarias para test_manager."""

import os
import sys
import unittest

import numpy as np

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))

from chemcalc.geometry import distance
from chemcalc.groups import get_group
from core.errors import PreconditionError
from core.model import Structure
from editor.manager import MoleculeManager, resolve_substitution_indices
from editor.options import EditorOptions
from editor.state import EditorState


def _manager():
    return MoleculeManager(EditorState(), EditorOptions())


class MoleculeManagerTest(unittest.TestCase):
    """Casos de prueba para MoleculeManagerTest."""
    def test_initial_entry_and_unique_names(self):
        """Verifica initial entry and unique names.

        Returns:
            None.

        """
        manager = _manager()
        self.assertEqual([e.name for e in manager.molecules], ["Molecule 1"])
        manager.create()
        manager.create("Water")
        manager.create("Water")
        self.assertEqual(
            [e.name for e in manager.molecules],
            ["Molecule 1", "Molecule 2", "Water", "Water_1"],
        )
        self.assertEqual(manager.active_index, 3)
        self.assertEqual(len(manager.active.history), 1)

    def test_resolve_by_index_and_name(self):
        """Verifica resolve by index and name.

        Returns:
            None.

        """
        manager = _manager()
        manager.create("Benzene")
        self.assertEqual(manager.resolve("Benzene"), 1)
        self.assertEqual(manager.resolve("0"), 0)
        with self.assertRaises(PreconditionError):
            manager.resolve(5)
        with self.assertRaises(PreconditionError):
            manager.resolve("Toluene")

    def test_remove_rules(self):
        """Verifica remove rules.

        Returns:
            None.

        """
        manager = _manager()
        with self.assertRaises(PreconditionError):
            manager.remove(0)
        manager.create("A")
        manager.create("B")
        manager.remove(2)
        self.assertEqual(manager.active.name, "A")
        manager.switch(1)
        manager.remove(0)
        self.assertEqual(manager.active_index, 0)
        self.assertEqual(manager.active.name, "A")

    def test_switch_swaps_settings_and_clears_selection(self):
        """Verifica switch swaps settings and clears selection.

        Returns:
            None.

        """
        manager = _manager()
        state = manager.state
        state.set_label_mode("number")
        state.selection.add(manager.structure.add_atom("C", (0.0, 0.0, 0.0)))
        manager.create("Other")

        self.assertEqual(state.settings.label_mode, "none")
        self.assertEqual(len(state.selection), 0)
        manager.switch(0)
        self.assertEqual(state.settings.label_mode, "number")

    def test_copy_paste_offsets_and_selects(self):
        """Verifica copy paste offsets and selects.

        Returns:
            None.

        """
        manager = _manager()
        structure = manager.structure
        c = structure.add_atom("C", (0.0, 0.0, 0.0))
        o = structure.add_atom("O", (1.2, 0.0, 0.0))
        structure.add_bond(c, o, order=2)
        manager.state.selection.set([c, o])

        manager.copy_selection()
        pasted = manager.paste()

        self.assertEqual(len(structure), 4)
        self.assertTrue(np.allclose(pasted[0].position, (2.0, 2.0, 0.0)))
        self.assertEqual(structure.get_bond(pasted[0], pasted[1]).order, 2)
        self.assertEqual(list(manager.state.selection), pasted)

    def test_paste_empty_clipboard(self):
        with self.assertRaises(PreconditionError):
            _manager().paste()

    def test_paste_with_min_distance(self):
        manager = _manager()
        structure = manager.structure
        structure.add_atom("C", (0.0, 0.0, 0.0))
        structure.add_atom("C", (2.0, 2.0, 0.0))
        manager.state.selection.set(structure.atoms[:1])
        manager.copy_selection()
        (pasted,) = manager.paste(min_distance=1.5)
        self.assertTrue(np.allclose(pasted.position, (2.0, 2.0, 3.0)))

    def test_merge_moves_atoms_and_removes_source(self):
        """Verifica merge moves atoms and removes source.

        Returns:
            None.

        """
        manager = _manager()
        manager.structure.add_atom("O", (0.0, 0.0, 0.0))
        manager.create("Source")
        h1 = manager.structure.add_atom("H", (0.0, 0.0, 0.0))
        h2 = manager.structure.add_atom("H", (0.74, 0.0, 0.0))
        manager.structure.add_bond(h1, h2)
        manager.switch(0)

        count, name = manager.merge("Source", min_distance=2.0)

        self.assertEqual((count, name), (2, "Source"))
        self.assertEqual(len(manager), 1)
        self.assertEqual([a.element for a in manager.structure.atoms], ["O", "H", "H"])
        self.assertEqual(len(manager.structure.bonds), 1)
        self.assertGreaterEqual(distance(manager.structure.atoms[0].position, manager.structure.atoms[1].position), 2.0)
        with self.assertRaises(PreconditionError):
            manager.merge(0)

    def test_substitute_with_library_group(self):
        """Verifica substitute with library group.

        Returns:
            None.

        """
        manager = _manager()
        structure = manager.structure
        c = structure.add_atom("C", (0.0, 0.0, 0.0))
        h = structure.add_atom("H", (1.09, 0.0, 0.0))
        structure.add_bond(c, h)

        new_atoms = manager.substitute([1, 0], get_group("OH"))

        self.assertEqual([a.element for a in structure.atoms], ["C", "O"])
        self.assertEqual(new_atoms, [structure.atoms[1]])
        self.assertTrue(np.allclose(new_atoms[0].position, (1.42, 0.0, 0.0)))
        self.assertIsNotNone(structure.get_bond(c, new_atoms[0]))
        structure.check_integrity()

    def test_substitute_from_other_structure(self):
        """Verifica substitute from other structure.

        Returns:
            None.

        """
        manager = _manager()
        host = manager.structure
        c = host.add_atom("C", (0.0, 0.0, 0.0))
        x = host.add_atom("X", (-1.0, 0.0, 0.0))
        host.add_bond(c, x)

        manager.create("Ethyl")
        src = manager.structure
        leaving = src.add_atom("H", (0.0, 0.0, 0.0))
        anchor = src.add_atom("C", (1.09, 0.0, 0.0))
        tail = src.add_atom("C", (2.6, 0.0, 0.0))
        src.add_bond(leaving, anchor)
        src.add_bond(anchor, tail)
        manager.switch(0)

        manager.substitute_from([0], "Ethyl", [0, 1])

        self.assertEqual(len(manager), 1)
        self.assertEqual(sorted(a.element for a in host.atoms), ["C", "C", "C"])
        self.assertEqual(len(host.bonds), 2)
        self.assertAlmostEqual(distance(host.atoms[0].position, host.atoms[1].position), 1.52)


class SubstitutionIndicesTest(unittest.TestCase):
    """Casos de prueba para SubstitutionIndicesTest."""
    def test_single_index_finds_terminal_dummy(self):
        structure = Structure()
        c = structure.add_atom("C", (0.0, 0.0, 0.0))
        x = structure.add_atom("X", (1.0, 0.0, 0.0))
        structure.add_bond(c, x)
        self.assertEqual(resolve_substitution_indices(structure, [0]), (x, c))

    def test_errors(self):
        """Verifica errors.

        Returns:
            None.

        """
        structure = Structure()
        c = structure.add_atom("C", (0.0, 0.0, 0.0))
        structure.add_atom("H", (1.0, 0.0, 0.0))
        with self.assertRaises(PreconditionError):
            resolve_substitution_indices(structure, [1, 0])
        with self.assertRaises(PreconditionError):
            resolve_substitution_indices(structure, [0])
        for k in range(2):
            structure.add_bond(c, structure.add_atom("X", (0.0, float(k + 1), 0.0)))
        with self.assertRaises(PreconditionError):
            resolve_substitution_indices(structure, [0])
        with self.assertRaises(PreconditionError):
            resolve_substitution_indices(structure, [0, 1, 2])


if __name__ == "__main__":
    unittest.main()
