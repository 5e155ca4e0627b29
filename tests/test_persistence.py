"""Pruebas unitarias para test_persistence."""

import json
import os
import sys
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))

from chemio.persistence import APPLICATION, PersistenceManager, structure_from_snapshot
from core.crystal import Crystal
from core.lattice import Lattice
from core.model import Structure
from editor.manager import MoleculeManager
from editor.options import EditorOptions
from editor.state import EditorState


def _workspace():
    manager = MoleculeManager(EditorState(), EditorOptions())
    structure = manager.structure
    o = structure.add_atom("O", (0.0, 0.0, 0.0))
    h = structure.add_atom("H", (0.96, 0.0, 0.0))
    structure.add_bond(o, h)
    manager.state.set_label_mode("both")

    crystal = Crystal("Salt", Lattice(5.64, 5.64, 5.64, 90.0, 90.0, 90.0))
    crystal.add_atom_fractional("Na", (0.0, 0.0, 0.0))
    crystal.add_atom_fractional("Cl", (0.5, 0.5, 0.5))
    entry = manager.create(structure=crystal)
    entry.reference = crystal.to_snapshot()
    manager.state.set_label_mode("symbol")
    return manager


class PersistenceTest(unittest.TestCase):
    """Casos de prueba para PersistenceTest."""
    def test_dict_roundtrip_preserves_workspace(self):
        """Verifica dict roundtrip preserves workspace.

        Returns:
            None.

        """
        source = _workspace()
        data = PersistenceManager.save_to_dict(source)
        self.assertEqual(data["application"], APPLICATION)
        self.assertEqual(data["active"], 1)

        target = MoleculeManager(EditorState(), EditorOptions())
        PersistenceManager.load_from_dict(json.loads(json.dumps(data)), target)

        self.assertEqual([e.name for e in target.molecules], ["Molecule 1", "Salt"])
        self.assertEqual(target.active_index, 1)
        crystal = target.structure
        self.assertTrue(crystal.is_crystal)
        self.assertAlmostEqual(crystal.lattice.a, 5.64)
        self.assertEqual(crystal.get_frac(crystal.atoms[1]), (0.5, 0.5, 0.5))
        self.assertIsNotNone(target.active.reference)

        molecule = target.molecules[0]
        self.assertEqual(molecule.settings.label_mode, "both")
        self.assertEqual(len(molecule.structure.bonds), 1)
        self.assertEqual(len(molecule.history), 1)

    def test_each_entry_keeps_its_settings(self):
        target = MoleculeManager(EditorState(), EditorOptions())
        PersistenceManager.load_from_dict(PersistenceManager.save_to_dict(_workspace()), target)

        self.assertEqual(target.molecules[1].settings.label_mode, "symbol")
        self.assertEqual(target.state.settings.label_mode, "symbol")
        self.assertEqual(target.molecules[0].settings.label_mode, "both")
        target.switch(0)
        self.assertEqual(target.state.settings.label_mode, "both")
        self.assertEqual(target.molecules[1].settings.label_mode, "symbol")

    def test_rejects_foreign_or_empty_files(self):
        """Verifica rejects foreign or empty files.

        Returns:
            None.

        """
        manager = MoleculeManager(EditorState(), EditorOptions())
        with self.assertRaises(ValueError):
            PersistenceManager.load_from_dict({"application": "Other", "molecules": [{}]}, manager)
        with self.assertRaises(ValueError):
            PersistenceManager.load_from_dict({"application": APPLICATION, "molecules": []}, manager)
        self.assertEqual([e.name for e in manager.molecules], ["Molecule 1"])

    def test_out_of_range_active_falls_back_to_first(self):
        data = PersistenceManager.save_to_dict(_workspace())
        data["active"] = 7
        manager = MoleculeManager(EditorState(), EditorOptions(), create_initial=False)
        PersistenceManager.load_from_dict(data, manager)
        self.assertEqual(manager.active_index, 0)

    def test_structure_from_snapshot_picks_type(self):
        crystal = Crystal("C", Lattice(3.0, 3.0, 3.0, 90.0, 90.0, 90.0))
        self.assertIsInstance(structure_from_snapshot(crystal.to_snapshot()), Crystal)
        self.assertIsInstance(structure_from_snapshot(Structure("M").to_snapshot()), Structure)


def test_file_roundtrip(tmp_path):
    """Verifica file roundtrip.

    Returns:
        None.

    """
    path = tmp_path / "session.smpl"
    PersistenceManager.save_to_file(str(path), _workspace())

    manager = MoleculeManager(EditorState(), EditorOptions())
    PersistenceManager.load_from_file(str(path), manager)

    assert len(manager) == 2
    assert [a.element for a in manager.structure.atoms] == ["Na", "Cl"]
