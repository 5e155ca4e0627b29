"""Pruebas unitarias para test_history_state."""

import os
import sys
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))

from core.errors import PreconditionError
from core.model import Structure
from editor.history import History
from editor.options import EditorOptions, StructureSettings
from editor.state import Clipboard, EditorState, Selection


class HistoryTest(unittest.TestCase):
    """Casos de prueba para HistoryTest."""
    def test_undo_redo_walks_snapshots(self):
        """Verifica undo redo walks snapshots.

        Returns:
            None.

        """
        history = History(10)
        for n in range(3):
            history.push({"n": n})

        self.assertEqual(history.undo(), {"n": 1})
        self.assertEqual(history.undo(), {"n": 0})
        self.assertIsNone(history.undo())
        self.assertEqual(history.redo(), {"n": 1})

    def test_push_discards_future(self):
        """Verifica push discards future.

        Returns:
            None.

        """
        history = History(10)
        for n in range(3):
            history.push({"n": n})
        history.undo()
        history.push({"n": 99})

        self.assertIsNone(history.redo())
        self.assertEqual(history.current(), {"n": 99})
        self.assertEqual(len(history), 3)

    def test_capacity_drops_oldest(self):
        """Verifica capacity drops oldest.

        Returns:
            None.

        """
        history = History(3)
        for n in range(5):
            history.push({"n": n})

        self.assertEqual(len(history), 3)
        self.assertEqual(history.current(), {"n": 4})
        self.assertEqual(history.undo(), {"n": 3})
        self.assertEqual(history.undo(), {"n": 2})
        self.assertIsNone(history.undo())

    def test_snapshots_are_isolated(self):
        """Verifica snapshots are isolated.

        Returns:
            None.

        """
        history = History()
        snapshot = {"atoms": [1, 2]}
        history.push(snapshot)
        snapshot["atoms"].append(3)
        restored = history.current()
        restored["atoms"].append(4)

        self.assertEqual(history.current(), {"atoms": [1, 2]})

    def test_invalid_size(self):
        with self.assertRaises(PreconditionError):
            History(0)


class SelectionTest(unittest.TestCase):
    """Casos de prueba para SelectionTest."""
    def test_ordered_without_duplicates(self):
        """Verifica ordered without duplicates.

        Returns:
            None.

        """
        structure = Structure()
        a, b, c = (structure.add_atom("C", (float(i), 0.0, 0.0)) for i in range(3))
        selection = Selection()

        self.assertTrue(selection.add(b))
        self.assertTrue(selection.add(a))
        self.assertFalse(selection.add(b))
        self.assertTrue(selection.toggle(c))
        self.assertFalse(selection.toggle(a))

        self.assertEqual(list(selection), [b, c])
        self.assertIn(c, selection)
        self.assertNotIn(a, selection)

    def test_first_requires_enough_atoms(self):
        structure = Structure()
        selection = Selection()
        selection.add(structure.add_atom("C", (0.0, 0.0, 0.0)))
        with self.assertRaises(PreconditionError):
            selection.first(2)

    def test_prune_removes_dead_atoms(self):
        structure = Structure()
        a = structure.add_atom("C", (0.0, 0.0, 0.0))
        b = structure.add_atom("O", (1.2, 0.0, 0.0))
        selection = Selection()
        selection.set([a, b])
        structure.remove_atom(a)
        selection.prune(structure.atoms)
        self.assertEqual(list(selection), [b])


class EditorStateTest(unittest.TestCase):
    """Casos de prueba para EditorStateTest."""
    def test_modes_and_submodes(self):
        """Verifica modes and submodes.

        Returns:
            None.

        """
        state = EditorState()
        self.assertEqual((state.mode, state.submode), ("edit", "manual"))
        state.set_mode("move", "trackball")
        self.assertEqual(state.submode, "trackball")
        state.set_mode("select")
        self.assertEqual(state.submode, "lasso")
        with self.assertRaises(PreconditionError):
            state.set_mode("paint")
        with self.assertRaises(PreconditionError):
            state.set_mode("edit", "lasso")

    def test_display_settings(self):
        """Verifica display settings.

        Returns:
            None.

        """
        state = EditorState()
        self.assertEqual(state.cycle_label_mode(), "symbol")
        state.set_label_mode("both")
        state.set_projection_mode("ortho")
        state.set_scale("bond", 0.5)
        self.assertEqual(state.projection_mode, "orthographic")
        self.assertEqual(state.settings.bond_scale, 0.5)
        with self.assertRaises(PreconditionError):
            state.set_scale("atom", -1.0)
        with self.assertRaises(PreconditionError):
            state.set_camera_mode("fly")
        with self.assertRaises(PreconditionError):
            state.set_color_scheme("neon")

    def test_clipboard_copies_internal_bonds_only(self):
        """Verifica clipboard copies internal bonds only.

        Returns:
            None.

        """
        structure = Structure()
        a = structure.add_atom("C", (0.0, 0.0, 0.0))
        b = structure.add_atom("O", (1.2, 0.0, 0.0))
        c = structure.add_atom("H", (-1.0, 0.0, 0.0))
        structure.add_bond(a, b, order=2)
        structure.add_bond(a, c)

        clipboard = Clipboard.from_atoms(structure, [b, a])

        self.assertEqual([el for el, _ in clipboard.atoms], ["O", "C"])
        self.assertEqual(clipboard.bonds, [(1, 0, 2)])
        self.assertFalse(clipboard.is_empty())


class OptionsTest(unittest.TestCase):
    """Casos de prueba para OptionsTest."""
    def test_from_dict_rejects_unknown_keys(self):
        with self.assertRaises(PreconditionError):
            EditorOptions.from_dict({"bond_treshold": 1.2})

    def test_from_dict_and_validation(self):
        """Verifica from dict and validation.

        Returns:
            None.

        """
        options = EditorOptions.from_dict({"bond_threshold": 1.3, "paste_offset": [1, 0, 0]})
        self.assertEqual(options.paste_offset, (1.0, 0.0, 0.0))
        self.assertEqual(options.to_dict()["bond_threshold"], 1.3)
        with self.assertRaises(PreconditionError):
            EditorOptions(max_history=0)

    def test_structure_settings_roundtrip(self):
        settings = StructureSettings(label_mode="number", atom_scale=1.5)
        self.assertEqual(StructureSettings.from_dict(settings.to_dict()), settings)


if __name__ == "__main__":
    unittest.main()
