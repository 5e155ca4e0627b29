"""Pruebas unitarias para test_commands."""

import os
import sys

import numpy as np
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))

from chemcalc.groups import FunctionalGroup
from core.errors import PreconditionError
from core.model import Bond
from editor.commands import CommandRegistry, parse_indices, parse_line
from editor.editor import Editor
from editor.result import ResultStatus


@pytest.fixture
def registry():
    return CommandRegistry(Editor())


def _run(registry, *lines):
    results = [registry.execute(line) for line in lines]
    for line, result in zip(lines, results):
        assert result is not None and result.ok, f"{line!r} -> {result}"
    return results[-1]


def test_parse_line_and_indices():
    """Verifica parse line and indices.

    Returns:
        None.

    """
    assert parse_line("   ") is None
    assert parse_line("# comentario") is None
    assert parse_line('ADD mol smi "C C"') == ("add", ["mol", "smi", "C C"])
    assert parse_indices(["0:2", "1", "4"], 5) == [0, 1, 2, 4]
    assert parse_indices([":"], 3) == [0, 1, 2]
    with pytest.raises(PreconditionError):
        parse_line('add atom "C')
    with pytest.raises(PreconditionError):
        parse_indices(["a:2"], 3)


def test_build_measure_and_set_distance(registry):
    """Verifica build measure and set distance.

    Returns:
        None.

    """
    _run(registry, "add atom C", "add atom O 1.5 0 0", "add bond 0 1 2")
    structure = registry.editor.structure
    assert structure.bonds[0].order == 2

    measured = registry.execute("measure 0 1")
    assert measured.message == "Distance: 1.500 Å"
    assert measured.data == pytest.approx(1.5)

    result = registry.execute("set dist 0 1 1.2")
    assert result.message == "Bond length set to 1.20 Å"
    assert np.allclose(structure.atoms[1].position, (1.2, 0.0, 0.0))

    duplicate = registry.execute("add bond 1 0")
    assert duplicate.status is ResultStatus.WARNING
    assert duplicate.message == "Bond already exists"


def test_delete_and_undo(registry):
    """Verifica delete and undo.

    Returns:
        None.

    """
    _run(registry, "add atom C", "add atom H 1.09 0 0", "add atom H -1.09 0 0")
    assert registry.execute("del atom 1:2").message == "Deleted 2 atom(s)"
    assert len(registry.editor.structure) == 1
    _run(registry, "undo")
    assert [a.element for a in registry.editor.structure.atoms] == ["C", "H", "H"]
    _run(registry, "redo")
    assert len(registry.editor.structure) == 1


@pytest.mark.parametrize(
    "line, message",
    [
        ("frobnicate", "Unknown command: frobnicate. Type 'help' for a list of commands"),
        ("del atom 7", "Invalid atom index: 7"),
        ("add atom Qq", "Invalid element: Qq"),
        ("set dist x 0 1.0", "Invalid index: x"),
        ("wrap", "Active structure is not a crystal"),
    ],
)
def test_errors_are_reported_as_results(registry, line, message):
    result = registry.execute(line)
    assert result.status is ResultStatus.ERROR
    assert result.message == message


def test_unclosed_quote_is_an_error(registry):
    result = registry.execute('add mol smi "CCO')
    assert result.status is ResultStatus.ERROR
    assert result.message.startswith("Cannot parse command")


def test_blank_and_comment_lines_return_none(registry):
    assert registry.execute("") is None
    assert registry.execute("# nada") is None


def test_aliases_and_help(registry):
    """Verifica aliases and help.

    Returns:
        None.

    """
    assert registry.get("rm") is registry.get("del")
    assert registry.get("Y") is registry.get("redo")
    text = registry.execute("help add").message
    assert "aliases: a" in text
    assert len(registry.execute("help").message.splitlines()) == len(registry.all_commands())


def test_select_label_and_list(registry):
    """Verifica select label and list.

    Returns:
        None.

    """
    _run(registry, "add atom C", "add atom C 1.5 0 0", "add atom C 3 0 0")
    assert registry.execute("select 0:2").message == "Selected 3 atom(s)"
    assert registry.execute("label -n").message == "Label mode: number"
    assert registry.editor.state.settings.label_mode == "number"

    listing = registry.execute("list mols").message.splitlines()
    assert listing[0] == "Loaded Molecules (1):"
    assert listing[1] == "* 0: Molecule 1 (3 atoms)"
    assert registry.execute("ls atoms").message.splitlines()[2] == "2: C (3.00, 0.00, 0.00)"


def test_time_uses_injected_sleep():
    calls = []
    registry = CommandRegistry(Editor(), sleep=calls.append)
    assert registry.execute("time 0.5").message == "Waited 0.5s"
    assert calls == [0.5]
    assert not registry.execute("time -1").ok


def test_run_script_and_stop_on_error(tmp_path):
    """Verifica run script and stop on error.

    Returns:
        None.

    """
    outputs = []
    registry = CommandRegistry(Editor(), output=outputs.append)
    script = tmp_path / "build.txt"
    script.write_text("# agua\nadd atom O\nadd atom H 0.96 0 0\n\nadd bond 0 1\n", encoding="utf-8")

    result = registry.execute(f"run {script}")

    assert result.message == f"Executed 3 command(s) from {script}"
    assert len(outputs) == 3
    assert len(registry.editor.structure.bonds) == 1

    broken = tmp_path / "broken.txt"
    broken.write_text("add atom C\nadd atom Qq\nadd atom N\n", encoding="utf-8")
    failed = registry.execute(f"run {broken}")
    assert failed.status is ResultStatus.ERROR
    assert failed.message == f"{broken}:2: Invalid element: Qq"
    assert [a.element for a in registry.editor.structure.atoms] == ["O", "H", "C"]


def test_missing_script_is_an_error(registry, tmp_path):
    assert not registry.execute(f"run {tmp_path / 'none.txt'}").ok


def test_cell_supercell_and_slab(registry):
    """Verifica cell supercell and slab.

    Returns:
        None.

    """
    assert registry.execute("cell").message == "No lattice defined"
    _run(registry, "add atom Fe", "cell 3 3 3 90 90 90")
    assert registry.editor.structure.is_crystal

    supercell = registry.execute("supercell 2 2 2")
    assert supercell.message.endswith(": 8 atoms")

    _run(registry, "undo")
    slab = registry.execute("slab 0 0 1 -l 2 -v 6")
    assert slab.ok
    assert slab.data["layers"] == 2
    assert slab.data["vacuum"] == pytest.approx(6.0)
    assert registry.editor.structure.lattice.c == pytest.approx(12.0)


def test_structure_manager_commands(registry):
    """Verifica structure manager commands.

    Returns:
        None.

    """
    _run(registry, "add atom O", "new Hydrogen", "add atom H", "add atom H 0.74 0 0", "rename H2")
    assert registry.editor.manager.active.name == "H2"
    _run(registry, "switch 0", "merge H2 --offset 2")
    assert len(registry.editor.manager) == 1
    assert [a.element for a in registry.editor.structure.atoms] == ["O", "H", "H"]
    assert not registry.execute("del mol 0").ok


def test_substitute_library_group(registry):
    _run(registry, "add atom C", "add atom H 1.09 0 0", "add bond 0 1", "sub grp 1 0 -g NH2")
    assert [a.element for a in registry.editor.structure.atoms] == ["C", "N"]


def test_session_groups_are_listed_and_selectable(registry):
    chloro = FunctionalGroup("Chloro", [("X", (-1.0, 0.0, 0.0)), ("Cl", (0.0, 0.0, 0.0))], [(0, 1, 1)])
    registry.editor.register_group(chloro)
    assert registry.execute("group").message.endswith(", Chloro")
    assert registry.execute("group chloro").message == "Selected group: Chloro"
    _run(registry, "add atom C", "add grp 0")
    assert [a.element for a in registry.editor.structure.atoms] == ["C", "Cl"]
    assert not registry.execute("group smi").ok


def test_group_defined_from_smiles(registry):
    pytest.importorskip("rdkit")
    result = _run(registry, "group smi *O hydroxy")
    assert result.message == "Defined group hydroxy (2 atoms)"
    assert registry.editor.state.selected_group == "hydroxy"
    _run(registry, "add atom C", "add grp 0")
    assert sorted(a.element for a in registry.editor.structure.atoms) == ["C", "H", "O"]


def test_formula_and_check(registry):
    """Verifica formula and check.

    Returns:
        None.

    """
    _run(registry, "add atom C", "addh")
    formula = registry.execute("formula")
    assert formula.data == "CH4"
    assert formula.message.startswith("CH4 (16.04")
    assert registry.execute("check").message == "Structure OK"


def test_formula_counts_implicit_hydrogens(registry):
    _run(registry, "add atom C", "add atom O --to 0")
    assert registry.execute("formula").data == "CO"
    assert registry.execute("formula -i").data == "CH4O"


def test_integrity_failure_is_reported_and_undo_recovers(registry):
    """Verifica integrity failure is reported and undo recovers.

    Returns:
        None.

    """
    _run(registry, "add atom C", "add atom O 1.2 0 0")
    structure = registry.editor.structure
    a, b = structure.atoms
    a.bonds.append(Bond(a, b))

    result = registry.execute("center")

    assert result.status is ResultStatus.ERROR
    assert "stale bond" in result.message
    _run(registry, "undo")
    registry.editor.structure.check_integrity()
    assert all(not atom.bonds for atom in registry.editor.structure.atoms)
