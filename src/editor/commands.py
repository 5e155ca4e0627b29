"""Superficie de comandos de texto del editor.

Cada comando recibe la lista de argumentos ya separada (con comillas al
estilo shell) y devuelve un `CommandResult`. Los índices de átomos son
0-based; `i:j` es un rango inclusivo y `:` selecciona todos los átomos.
"""

from __future__ import annotations

import json
import logging
import math
import shlex
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from chemcalc.formula import format_formula, molecular_formula
from chemcalc.groups import GROUP_LIBRARY
from chemcalc.mass import molecular_weight
from chemcalc.valence import validate_valence
from chemio.persistence import PersistenceManager
from chemio.poscar import format_poscar
from chemio import rdkit_io
from core.errors import ModelError, PreconditionError
from core.lattice import Lattice
from editor.editor import Editor, check_element
from editor.options import LABEL_MODES
from editor.result import CommandResult
from editor.state import SUBMODES

logger = logging.getLogger(__name__)

Handler = Callable[[List[str]], Optional[CommandResult]]

MAX_SCRIPT_DEPTH = 8

_LABEL_FLAGS = {
    "-s": "symbol", "--symbol": "symbol",
    "-n": "number", "--number": "number",
    "-a": "both", "--all": "both",
    "-o": "none", "--off": "none",
}


@dataclass
class Command:
    """Comando registrado con sus alias y su texto de ayuda."""
    name: str
    aliases: Tuple[str, ...]
    help: str
    handler: Handler
    destructive: bool = False


def parse_line(line: str) -> Optional[Tuple[str, List[str]]]:
    """Separa una línea en (comando, argumentos); None si está vacía.

    Raises:
        PreconditionError: Si hay comillas sin cerrar.
    """
    text = line.strip()
    if not text or text.startswith("#"):
        return None
    try:
        tokens = shlex.split(text)
    except ValueError as exc:
        raise PreconditionError(f"Cannot parse command: {exc}") from exc
    if not tokens:
        return None
    return tokens[0].lower(), tokens[1:]


def parse_int(text: str, what: str = "index") -> int:
    try:
        return int(text)
    except (TypeError, ValueError):
        raise PreconditionError(f"Invalid {what}: {text}") from None


def parse_float(text: str, what: str = "value") -> float:
    try:
        value = float(text)
    except (TypeError, ValueError):
        raise PreconditionError(f"Invalid {what}: {text}") from None
    if not math.isfinite(value):
        raise PreconditionError(f"Invalid {what}: {text}")
    return value


def parse_indices(args: Iterable[str], count: int) -> List[int]:
    """Expande índices, rangos inclusivos `i:j` y `:` (todos).

    Args:
        args: Tokens de índice.
        count: Número de átomos de la estructura (para `:`).

    Returns:
        Índices en el orden dado, sin duplicados.

    Raises:
        PreconditionError: Si algún token no es un índice o rango válido.
    """
    indices: List[int] = []
    for arg in args:
        if arg == ":":
            indices.extend(range(count))
        elif ":" in arg:
            start_text, end_text = arg.split(":", 1)
            start = parse_int(start_text, "range")
            end = parse_int(end_text, "range")
            indices.extend(range(start, end + 1))
        else:
            indices.append(parse_int(arg))
    return list(dict.fromkeys(indices))


def _pop_option(args: List[str], *names: str) -> Optional[str]:
    """Extrae `--opción valor` de la lista de argumentos."""
    for name in names:
        if name in args:
            i = args.index(name)
            if i + 1 >= len(args):
                raise PreconditionError(f"Missing value after {name}")
            value = args[i + 1]
            del args[i:i + 2]
            return value
    return None


def _pop_flag(args: List[str], *names: str) -> bool:
    found = False
    for name in names:
        while name in args:
            args.remove(name)
            found = True
    return found


def _vector(args: Sequence[str], what: str = "coordinates") -> Tuple[float, float, float]:
    if len(args) != 3:
        raise PreconditionError(f"Expected three {what}")
    x, y, z = (parse_float(v, what) for v in args)
    return x, y, z


class CommandRegistry:
    """Registro de comandos con alias y despacho de líneas de texto.

    Args:
        editor: Contexto del editor sobre el que actúan los comandos.
        output: Función que recibe los resultados intermedios de `run`.
        sleep: Función de espera usada por `time`.
    """

    def __init__(
        self,
        editor: Editor,
        output: Optional[Callable[[CommandResult], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.editor = editor
        self.commands: Dict[str, Command] = {}
        self.output = output
        self._sleep = sleep
        self._depth = 0
        self._register_defaults()

    def register(
        self,
        name: str,
        aliases: Sequence[str],
        help_text: str,
        handler: Handler,
        destructive: bool = False,
    ) -> Command:
        command = Command(name, tuple(aliases), help_text, handler, destructive)
        self.commands[name] = command
        for alias in aliases:
            self.commands[alias] = command
        return command

    def get(self, name: str) -> Optional[Command]:
        return self.commands.get(name.lower())

    def all_commands(self) -> List[Command]:
        seen: Dict[str, Command] = {}
        for command in self.commands.values():
            seen.setdefault(command.name, command)
        return list(seen.values())

    def execute(self, line: str) -> Optional[CommandResult]:
        """Ejecuta una línea de comando.

        Returns:
            El resultado del comando, o None para líneas vacías o comentarios.
            Los errores esperados (`ModelError`, entradas inválidas o de
            archivo) se devuelven como `CommandResult.error`.
        """
        try:
            parsed = parse_line(line)
        except PreconditionError as exc:
            return CommandResult.error(str(exc))
        if parsed is None:
            return None
        name, args = parsed
        command = self.get(name)
        if command is None:
            return CommandResult.error(f"Unknown command: {name}. Type 'help' for a list of commands")
        try:
            result = command.handler(args)
            if command.destructive:
                self.editor.structure.check_integrity()
        except (ModelError, ValueError, OSError) as exc:
            logger.debug("Command %r failed: %s", line, exc)
            return CommandResult.error(str(exc))
        return result

    def run_lines(self, lines: Iterable[str], source: str = "<script>") -> CommandResult:
        """Ejecuta varias líneas; se detiene en el primer error."""
        executed = 0
        for lineno, line in enumerate(lines, start=1):
            result = self.execute(line)
            if result is None:
                continue
            executed += 1
            if not result.ok:
                return CommandResult.error(f"{source}:{lineno}: {result.message}")
            if self.output is not None:
                self.output(result)
        return CommandResult.success(f"Executed {executed} command(s) from {source}")

    # --- Registro ---------------------------------------------------------

    def _register_defaults(self) -> None:
        r = self.register
        r("help", ["h"], "help [command] - Show commands", self._help)
        r("list", ["ls", "l"], "list <mols|atoms|frags> [-s] - List objects", self._list)
        r("add", ["a"], "add atom <el> [x y z] [--to idx] | add bond <i> <j> [order] | "
          "add mol smi <smiles> [-h] | add grp <idx> <group>", self._add, destructive=True)
        r("del", ["delete", "rm", "remove"], "del atom <indices> | del bond <i> <j> | del mol [index|name]",
          self._del, destructive=True)
        r("set", [], "set dist|angle|dihedral|threshold|scale ... - Set properties", self._set,
          destructive=True)
        r("measure", ["meas", "info"], "measure [idx...] - Measure distance, angle or dihedral", self._measure)
        r("rebond", ["rb"], "rebond - Recalculate bonds based on threshold", self._rebond, destructive=True)
        r("autobond", ["ab"], "autobond - Add bonds by distance (PBC on crystals)", self._autobond,
          destructive=True)
        r("center", ["cen"], "center - Move structure center to (0,0,0)", self._center, destructive=True)
        r("mv", ["move"], "mv atom|frag <index> <x> <y> <z> | mv mol <x> <y> <z> - Translate", self._mv,
          destructive=True)
        r("trans", ["tr", "translation"], "trans <x> <y> <z> - Translate structure (alias for mv mol)",
          lambda args: self._mv(["mol", *args]), destructive=True)
        r("rot", ["rotate"], "rot frag <index> <x> <y> <z> | rot mol <x> <y> <z> - Rotate (degrees)", self._rot,
          destructive=True)
        r("select", ["sel"], "select <indices|:|frag index> - Select atoms or fragment", self._select)
        r("substitute", ["sub"], "sub atom <idx> <el> | sub grp <target...> (-n name|-i index) <source...> | "
          "sub grp <target...> -g <group>", self._substitute, destructive=True)
        r("addh", ["add_hydrogens"], "addh [indices|:] [--rdkit] - Add explicit hydrogens", self._addh,
          destructive=True)
        r("supercell", ["sc"], "supercell <na> <nb> <nc> | supercell <9 integers> - Build supercell",
          self._supercell, destructive=True)
        r("wrap", [], "wrap - Wrap atoms into the unit cell", self._wrap, destructive=True)
        r("cell", [], "cell [a b c alpha beta gamma] - Show or set lattice", self._cell, destructive=True)
        r("slab", [], "slab <h> <k> <l> [-l layers] [-v vacuum] [--no-center] - Build surface slab",
          self._slab, destructive=True)
        r("lattice", [], "lattice fix on|off - Use the imported cell for supercell/slab", self._lattice)
        r("new", [], "new [name] - Create structure", self._new)
        r("switch", ["sw"], "switch <index|name> - Activate structure", self._switch)
        r("rename", ["rn"], "rename <name> - Rename active structure", self._rename)
        r("merge", ["mg"], "merge <index|name> [--offset d] - Merge structure into active", self._merge,
          destructive=True)
        r("copy", ["cp"], "copy - Copy selection", self._copy)
        r("paste", ["pa"], "paste [--offset d] - Paste clipboard", self._paste, destructive=True)
        r("cut", ["ct"], "cut - Copy and delete selection", self._cut, destructive=True)
        r("undo", ["u"], "undo - Undo last action", lambda args: self.editor.undo())
        r("redo", ["r", "y"], "redo - Redo last action", lambda args: self.editor.redo())
        r("label", ["lbl"], "label [-s|-n|-a|-o] - Label mode (cycles without option)", self._label)
        r("camera", ["cam"], "camera [orbit|trackball]", self._camera)
        r("projection", ["proj"], "projection [persp|ortho]", self._projection)
        r("mode", [], "mode <edit|select|move> [submode]", self._mode)
        r("element", ["el"], "element <symbol> - Default element for new atoms", self._element)
        r("group", ["grp"], "group [name] | group smi <smiles> [name] - Select, list or define functional groups",
          self._group)
        r("formula", ["fm"], "formula [-i] - Molecular formula and weight (-i: add implicit H)", self._formula)
        r("check", [], "check - Check graph integrity and valences", self._check)
        r("read", [], "read <file> - Read a POSCAR file as a new structure", self._read)
        r("save", [], "save <file.smpl> - Save workspace", self._save)
        r("load", [], "load <file.smpl> - Load workspace", self._load)
        r("export", ["exp"], "export poscar|smi|json [-f file] - Export active structure", self._export)
        r("run", [], "run <file> - Execute commands from a file", self._run)
        r("time", ["sleep"], "time <sec> - Wait", self._time)

    # --- Ayuda y listados ---------------------------------------------------

    def _help(self, args: List[str]) -> CommandResult:
        if args:
            command = self.get(args[0])
            if command is None:
                return CommandResult.error(f"Unknown command: {args[0]}")
            aliases = f" (aliases: {', '.join(command.aliases)})" if command.aliases else ""
            return CommandResult.info(f"{command.help}{aliases}")
        lines = [command.help for command in sorted(self.all_commands(), key=lambda c: c.name)]
        return CommandResult.info("\n".join(lines))

    def _list(self, args: List[str]) -> CommandResult:
        if not args:
            return CommandResult.error("Usage: list <mols|atoms|frags>")
        kind = args[0].lower()
        structure = self.editor.structure
        if kind in ("mols", "mol", "molecule", "molecules"):
            manager = self.editor.manager
            lines = [f"Loaded Molecules ({len(manager)}):"]
            for i, entry in enumerate(manager.molecules):
                active = "*" if i == manager.active_index else " "
                lines.append(f"{active} {i}: {entry.name} ({len(entry.structure)} atoms)")
            return CommandResult.info("\n".join(lines))
        if kind in ("frags", "frag", "fragment", "fragments"):
            fragments = structure.fragments()
            if not fragments:
                return CommandResult.info("No fragments")
            lines = []
            for i, fragment in enumerate(fragments):
                indices = ",".join(str(structure.index_of(a)) for a in fragment)
                lines.append(f"Fragment {i}: atoms [{indices}] ({len(fragment)} atoms)")
            return CommandResult.info("\n".join(lines))
        if kind in ("atoms", "atom"):
            selected_only = "-s" in args or "--selected" in args
            atoms = list(self.editor.selection) if selected_only else structure.atoms
            if not atoms:
                return CommandResult.info("No atoms")
            lines = [
                f"{structure.index_of(a)}: {a.element} ({a.x:.2f}, {a.y:.2f}, {a.z:.2f})" for a in atoms
            ]
            return CommandResult.info("\n".join(lines))
        return CommandResult.error(f"Unknown list type: {kind}. Use 'mols', 'atoms', or 'frags'.")

    # --- Edición ----------------------------------------------------------

    def _add(self, args: List[str]) -> CommandResult:
        if not args:
            return CommandResult.error("Usage: add [atom|bond|mol|grp] ...")
        sub = args[0].lower()
        rest = list(args[1:])
        editor = self.editor

        if sub == "atom":
            anchor_text = _pop_option(rest, "--to", "-t")
            if not rest:
                return CommandResult.error("Usage: add atom <element> [x] [y] [z] [--to idx]")
            element = check_element(rest[0])
            if anchor_text is not None:
                anchor = editor.structure.atom_at(parse_int(anchor_text))
                atom = editor.add_atom_bonded(anchor, element)
                return CommandResult.success(
                    f"Added {element} bonded to atom {anchor_text} (index {editor.structure.index_of(atom)})"
                )
            position = (0.0, 0.0, 0.0)
            if len(rest) >= 4:
                position = _vector(rest[1:4])
            editor.add_atom(element, position)
            x, y, z = position
            return CommandResult.success(f"Added {element} at ({x:g}, {y:g}, {z:g})")

        if sub == "bond":
            if len(rest) not in (2, 3):
                return CommandResult.error("Usage: add bond <idx1> <idx2> [order]")
            i, j = parse_int(rest[0]), parse_int(rest[1])
            order = parse_int(rest[2], "bond order") if len(rest) == 3 else 1
            atom1, atom2 = editor.atoms_at((i, j))
            if editor.structure.get_bond(atom1, atom2) is not None:
                return CommandResult.warning("Bond already exists")
            editor.add_bond(atom1, atom2, order)
            return CommandResult.success(f"Created bond {i}-{j}")

        if sub in ("mol", "molecule"):
            add_h = _pop_flag(rest, "-h", "--hydrogens")
            _pop_flag(rest, "-3d")
            if len(rest) < 2:
                return CommandResult.error("Usage: add mol smi <smiles> [-h]")
            fmt = rest[0].lower()
            if fmt not in ("smi", "smiles"):
                return CommandResult.error(f"Unknown format: {fmt}. Supported: smi")
            smiles = " ".join(rest[1:])
            new_atoms = editor.import_smiles(smiles, add_hydrogens=add_h)
            return CommandResult.success(f"Imported {len(new_atoms)} atoms from SMILES")

        if sub in ("grp", "group"):
            if len(rest) < 1:
                return CommandResult.error("Usage: add grp <idx> [group]")
            anchor = editor.structure.atom_at(parse_int(rest[0]))
            new_atoms = editor.attach_group(anchor, rest[1] if len(rest) > 1 else None)
            return CommandResult.success(f"Attached group ({len(new_atoms)} atoms)")

        return CommandResult.error(f"Unknown subcommand: {sub}. Use 'atom', 'bond', 'mol' or 'grp'.")

    def _del(self, args: List[str]) -> CommandResult:
        if not args:
            return CommandResult.error("Usage: del [atom|mol|bond] ...")
        sub = args[0].lower()
        editor = self.editor

        if sub in ("mol", "molecule", "mols"):
            manager = editor.manager
            target = " ".join(args[1:]) if len(args) > 1 else manager.active_index
            removed = manager.remove(manager.resolve(target))
            return CommandResult.success(f'Removed molecule "{removed.name}"')

        if sub == "bond":
            if len(args) != 3:
                return CommandResult.error("Usage: del bond <idx1> <idx2>")
            i, j = parse_int(args[1]), parse_int(args[2])
            editor.remove_bond(*editor.atoms_at((i, j)))
            return CommandResult.success(f"Removed bond {i}-{j}")

        if sub in ("atom", "atoms"):
            if args[1:] == [":"]:
                if not len(editor.structure):
                    return CommandResult.info("No atoms")
                count = editor.clear_atoms()
                return CommandResult.success(f"Deleted all {count} atoms")
            indices = parse_indices(args[1:], len(editor.structure))
            if not indices:
                return CommandResult.error("No valid indices provided")
            count = editor.delete_atoms(editor.atoms_at(indices))
            return CommandResult.success(f"Deleted {count} atom(s)")

        return CommandResult.error(f"Unknown subcommand: {sub}. Use 'atom', 'bond', or 'mol'.")

    def _set(self, args: List[str]) -> CommandResult:
        if len(args) < 2:
            return CommandResult.error("Usage: set [property] [values...]")
        prop = args[0].lower()
        vals = args[1:]
        editor = self.editor

        geometry_props = {"dist": 2, "distance": 2, "angle": 3, "dihedral": 4}
        if prop in geometry_props:
            n = geometry_props[prop]
            if len(vals) != n + 1:
                names = " ".join(f"<idx{k + 1}>" for k in range(n))
                return CommandResult.error(f"Usage: set {prop} {names} <val>")
            atoms = editor.atoms_at(parse_int(v) for v in vals[:n])
            target = parse_float(vals[n], prop)
            editor.select(atoms)
            if n == 2:
                return editor.set_bond_length(target)
            if n == 3:
                return editor.set_angle(target)
            return editor.set_dihedral(target)

        if prop == "threshold":
            value = parse_float(vals[0], "threshold")
            editor.set_threshold(value)
            return CommandResult.success(f"Threshold set to {value}")

        if prop == "scale":
            if len(vals) != 2:
                return CommandResult.error("Usage: set scale [atom|bond] <value>")
            target = vals[0].lower().rstrip("s")
            value = parse_float(vals[1], "scale value")
            editor.state.set_scale(target, value)
            return CommandResult.success(f"{target.capitalize()} scale set to {value}")

        return CommandResult.error(f"Unknown property: {prop}")

    def _measure(self, args: List[str]) -> CommandResult:
        editor = self.editor
        structure = editor.structure
        if not args:
            selected = list(editor.selection)
            if not selected:
                return CommandResult.info("No atoms selected")
            lines = [
                f"{structure.index_of(a)}: {a.element} ({a.x:.2f}, {a.y:.2f}, {a.z:.2f})" for a in selected
            ]
            return CommandResult.info("\n".join(lines))
        atoms = editor.atoms_at(parse_int(a) for a in args)
        kind, value = editor.measure(atoms)
        if kind == "distance":
            return CommandResult.info(f"Distance: {value:.3f} Å", data=value)
        return CommandResult.info(f"{kind.capitalize()}: {value:.2f}°", data=value)

    def _rebond(self, args: List[str]) -> CommandResult:
        count = self.editor.rebond()
        return CommandResult.success(f"Rebonded: {count} bonds created")

    def _autobond(self, args: List[str]) -> CommandResult:
        added = self.editor.autobond()
        return CommandResult.success(f"Auto-bond: {added} bonds added")

    def _center(self, args: List[str]) -> CommandResult:
        if not len(self.editor.structure):
            return CommandResult.info("No atoms")
        self.editor.center()
        return CommandResult.success("Molecule centered")

    def _mv(self, args: List[str]) -> CommandResult:
        if len(args) < 4:
            return CommandResult.error("Usage: mv [atom|frag|mol] [index] <x> <y> <z>")
        kind = args[0].lower()
        editor = self.editor
        if kind in ("mol", "molecule"):
            offset = _vector(args[1:4])
            editor.translate(list(editor.structure.atoms), offset)
            return CommandResult.success(f"Moved molecule by ({offset[0]:g}, {offset[1]:g}, {offset[2]:g})")
        if kind in ("atom", "frag", "fragment"):
            if len(args) < 5:
                return CommandResult.error(f"Usage: mv {kind} <index> <x> <y> <z>")
            index = parse_int(args[1])
            offset = _vector(args[2:5])
            if kind == "atom":
                editor.translate([editor.structure.atom_at(index)], offset)
            else:
                editor.translate(editor.fragment(index), offset)
                kind = "fragment"
            return CommandResult.success(
                f"Moved {kind} {index} by ({offset[0]:g}, {offset[1]:g}, {offset[2]:g})"
            )
        return CommandResult.error("Invalid type. Use: atom, frag, or mol")

    def _rot(self, args: List[str]) -> CommandResult:
        if len(args) < 4:
            return CommandResult.error("Usage: rot [frag|mol] [index] <x> <y> <z>")
        kind = args[0].lower()
        editor = self.editor
        if kind in ("mol", "molecule"):
            angles = _vector(args[1:4], "angles")
            editor.rotate(list(editor.structure.atoms), angles)
            return CommandResult.success(f"Rotated molecule by ({angles[0]:g}, {angles[1]:g}, {angles[2]:g})")
        if kind in ("frag", "fragment"):
            if len(args) < 5:
                return CommandResult.error("Usage: rot frag <index> <x> <y> <z>")
            index = parse_int(args[1])
            angles = _vector(args[2:5], "angles")
            editor.rotate(editor.fragment(index), angles, about_centroid=True)
            return CommandResult.success(
                f"Rotated fragment {index} by ({angles[0]:g}, {angles[1]:g}, {angles[2]:g})"
            )
        return CommandResult.error("Invalid type. Use: frag or mol (atom rotation not supported)")

    def _select(self, args: List[str]) -> CommandResult:
        if not args:
            return CommandResult.error("Usage: select <indices> or select frag <index>")
        editor = self.editor
        if args[0].lower() in ("frag", "fragment"):
            if len(args) < 2:
                return CommandResult.error("Usage: select frag <index>")
            index = parse_int(args[1], "fragment index")
            fragment = editor.select_fragment(index)
            return CommandResult.success(f"Selected fragment {index} ({len(fragment)} atoms)")
        if args == [":"]:
            editor.select(editor.structure.atoms)
            return CommandResult.success("Selected all")
        indices = parse_indices(args, len(editor.structure))
        count = editor.select(editor.atoms_at(indices))
        return CommandResult.success(f"Selected {count} atom(s)")

    def _substitute(self, args: List[str]) -> CommandResult:
        if len(args) < 2:
            return CommandResult.error("Usage: sub atom <idx> <elem> OR sub grp ...")
        sub = args[0].lower()
        editor = self.editor

        if sub == "atom":
            if len(args) < 3:
                return CommandResult.error("Usage: sub atom <index> <element>")
            atom = editor.structure.atom_at(parse_int(args[1]))
            editor.change_element(atom, args[2])
            return CommandResult.success(f"Changed atom {args[1]} to {atom.element}")

        if sub in ("grp", "group"):
            target: List[int] = []
            source_idx: List[int] = []
            source = None
            library = None
            rest = list(args[1:])
            parsing_target = True
            while rest:
                arg = rest.pop(0)
                if arg in ("-n", "--name", "-i", "--index", "-g", "--group"):
                    if not rest:
                        return CommandResult.error(f"Missing value after {arg}")
                    value = rest.pop(0)
                    if arg in ("-g", "--group"):
                        library = value
                    else:
                        source = value
                    parsing_target = False
                elif parsing_target:
                    target.append(parse_int(arg))
                else:
                    source_idx.append(parse_int(arg))
            if library is not None:
                new_atoms = editor.manager.substitute(target, editor.resolve_group(library))
                return CommandResult.success(f"Substituted group {library} ({len(new_atoms)} atoms)")
            if source is None:
                return CommandResult.error("Source molecule not found")
            name = editor.manager.molecules[editor.manager.resolve(source)].name
            editor.manager.substitute_from(target, source, source_idx)
            return CommandResult.success(f"Substituted group from {name}")

        return CommandResult.error(f"Unknown subcommand: {sub}")

    def _addh(self, args: List[str]) -> CommandResult:
        rest = list(args)
        use_rdkit = _pop_flag(rest, "--rdkit", "-r")
        editor = self.editor
        if use_rdkit:
            added = editor.add_explicit_hydrogens()
        else:
            atoms = None
            if rest:
                atoms = editor.atoms_at(parse_indices(rest, len(editor.structure)))
            added = editor.add_hydrogens(atoms)
        return CommandResult.success(f"Added {added} hydrogen(s)")

    # --- Cristales --------------------------------------------------------

    def _supercell(self, args: List[str]) -> CommandResult:
        if len(args) == 3:
            na, nb, nc = (parse_int(a, "repeat count") for a in args)
            matrix = [[na, 0, 0], [0, nb, 0], [0, 0, nc]]
        elif len(args) == 9:
            values = [parse_int(a, "matrix element") for a in args]
            matrix = [values[0:3], values[3:6], values[6:9]]
        else:
            return CommandResult.error("Usage: supercell <na> <nb> <nc> | supercell <9 integers>")
        result = self.editor.supercell(matrix)
        return CommandResult.success(f"Supercell {result.name}: {len(result)} atoms")

    def _wrap(self, args: List[str]) -> CommandResult:
        count = self.editor.wrap()
        return CommandResult.success(f"Wrapped {count} atoms into the unit cell")

    def _cell(self, args: List[str]) -> CommandResult:
        structure = self.editor.structure
        if not args:
            if not structure.is_crystal or structure.lattice is None:
                return CommandResult.info("No lattice defined")
            return CommandResult.info(str(structure.lattice))
        if len(args) != 6:
            return CommandResult.error("Usage: cell <a> <b> <c> <alpha> <beta> <gamma>")
        lattice = Lattice(*(parse_float(a, "lattice parameter") for a in args))
        self.editor.set_cell(lattice)
        return CommandResult.success(f"Lattice set: {lattice}")

    def _slab(self, args: List[str]) -> CommandResult:
        rest = list(args)
        layers_text = _pop_option(rest, "-l", "--layers")
        vacuum_text = _pop_option(rest, "-v", "--vacuum")
        no_center = _pop_flag(rest, "--no-center")
        if len(rest) != 3:
            return CommandResult.error("Usage: slab <h> <k> <l> [-l layers] [-v vacuum] [--no-center]")
        h, k, l = (parse_int(a, "Miller index") for a in rest)
        result = self.editor.slab(
            h,
            k,
            l,
            layers=parse_int(layers_text, "layer count") if layers_text is not None else None,
            vacuum=parse_float(vacuum_text, "vacuum") if vacuum_text is not None else None,
            centered=False if no_center else None,
        )
        return CommandResult.success(f"Slab {result.name}: {len(result)} atoms", data=result.slab_info)

    def _lattice(self, args: List[str]) -> CommandResult:
        if len(args) != 2 or args[0].lower() != "fix" or args[1].lower() not in ("on", "off"):
            return CommandResult.error("Usage: lattice fix on|off")
        self.editor.options.fix_lattice = args[1].lower() == "on"
        return CommandResult.success(f"Lattice fix: {args[1].lower()}")

    # --- Gestor de estructuras ----------------------------------------------

    def _new(self, args: List[str]) -> CommandResult:
        entry = self.editor.manager.create(" ".join(args) or None)
        return CommandResult.success(f"Created {entry.name}")

    def _switch(self, args: List[str]) -> CommandResult:
        if not args:
            return CommandResult.error("Usage: switch <index|name>")
        entry = self.editor.manager.switch(" ".join(args))
        return CommandResult.success(f'Switched to "{entry.name}"')

    def _rename(self, args: List[str]) -> CommandResult:
        manager = self.editor.manager
        old, new = manager.rename(manager.active_index, " ".join(args))
        return CommandResult.success(f'Renamed "{old}" to "{new}"')

    def _merge(self, args: List[str]) -> CommandResult:
        rest = list(args)
        offset_text = _pop_option(rest, "--offset", "-o")
        if not rest:
            return CommandResult.error("Usage: merge <index|name> [--offset d]")
        min_distance = parse_float(offset_text, "offset") if offset_text is not None else 0.0
        manager = self.editor.manager
        target = manager.active.name
        count, source = manager.merge(" ".join(rest), min_distance)
        return CommandResult.success(f'Merged {count} atoms from "{source}" into "{target}"')

    def _copy(self, args: List[str]) -> CommandResult:
        clipboard = self.editor.manager.copy_selection()
        return CommandResult.success(f"Copied {len(clipboard.atoms)} atom(s) to clipboard")

    def _paste(self, args: List[str]) -> CommandResult:
        rest = list(args)
        offset_text = _pop_option(rest, "--offset", "-o")
        min_distance = parse_float(offset_text, "offset") if offset_text is not None else 0.0
        new_atoms = self.editor.manager.paste(min_distance)
        return CommandResult.success(f"Pasted {len(new_atoms)} atom(s)")

    def _cut(self, args: List[str]) -> CommandResult:
        self.editor.manager.copy_selection()
        count = self.editor.delete_selected()
        return CommandResult.success(f"Cut {count} selected atom(s)")

    # --- Preferencias -----------------------------------------------------

    def _label(self, args: List[str]) -> CommandResult:
        state = self.editor.state
        if not args:
            return CommandResult.success(f"Label mode: {state.cycle_label_mode()}")
        mode = _LABEL_FLAGS.get(args[0], args[0].lower())
        if mode not in LABEL_MODES:
            return CommandResult.error(f"Unknown option: {args[0]}. Use: -s, -n, -a, or -o")
        state.set_label_mode(mode)
        return CommandResult.success(f"Label mode: {mode}")

    def _camera(self, args: List[str]) -> CommandResult:
        if not args:
            return CommandResult.error("Usage: camera [orbit|trackball]")
        self.editor.state.set_camera_mode(args[0].lower())
        return CommandResult.success(f"Camera: {self.editor.state.camera_mode}")

    def _projection(self, args: List[str]) -> CommandResult:
        if not args:
            return CommandResult.error("Usage: projection [persp|ortho]")
        self.editor.state.set_projection_mode(args[0].lower())
        return CommandResult.success(f"Projection: {self.editor.state.projection_mode}")

    def _mode(self, args: List[str]) -> CommandResult:
        state = self.editor.state
        if not args:
            return CommandResult.info(f"Mode: {state.mode} ({state.submode})")
        if len(args) > 2:
            modes = ", ".join(f"{m} [{'|'.join(s)}]" for m, s in SUBMODES.items())
            return CommandResult.error(f"Usage: mode <mode> [submode]. Modes: {modes}")
        state.set_mode(args[0].lower(), args[1].lower() if len(args) == 2 else None)
        return CommandResult.success(f"Mode: {state.mode} ({state.submode})")

    def _element(self, args: List[str]) -> CommandResult:
        if not args:
            return CommandResult.info(f"Default element: {self.editor.state.default_element}")
        self.editor.state.default_element = check_element(args[0])
        return CommandResult.success(f"Default element: {self.editor.state.default_element}")

    def _group(self, args: List[str]) -> CommandResult:
        if not args:
            names = list(GROUP_LIBRARY) + list(self.editor.state.custom_groups)
            return CommandResult.info("Groups: " + ", ".join(names))
        if args[0].lower() in ("smi", "smiles"):
            if len(args) < 2:
                return CommandResult.error("Usage: group smi <smiles> [name]")
            name = args[2] if len(args) > 2 else None
            group = self.editor.define_group_from_smiles(args[1], name)
            return CommandResult.success(f"Defined group {group.name} ({len(group.atoms) - 1} atoms)")
        group = self.editor.resolve_group(args[0])
        self.editor.state.selected_group = group.name
        return CommandResult.success(f"Selected group: {group.name}")

    # --- Química consultiva ---------------------------------------------------

    def _formula(self, args: List[str]) -> CommandResult:
        implicit = _pop_flag(args, "-i", "--implicit")
        counts = molecular_formula(self.editor.structure, include_implicit_h=implicit)
        if not counts:
            return CommandResult.info("No atoms")
        formula = format_formula(counts)
        weight = molecular_weight(counts)
        return CommandResult.info(f"{formula} ({weight:.3f} g/mol)", data=formula)

    def _check(self, args: List[str]) -> CommandResult:
        structure = self.editor.structure
        structure.check_integrity()
        over = validate_valence(structure)
        if over:
            indices = ", ".join(str(structure.index_of(structure.get_atom(i))) for i in over)
            return CommandResult.warning(f"Over-coordinated atoms: {indices}", data=over)
        return CommandResult.success("Structure OK")

    # --- Archivos ---------------------------------------------------------

    def _read(self, args: List[str]) -> CommandResult:
        if not args:
            return CommandResult.error("Usage: read <filename>")
        crystal = self.editor.load_poscar(args[0])
        return CommandResult.success(f"Read {len(crystal)} atoms from {args[0]} as {crystal.name}")

    def _save(self, args: List[str]) -> CommandResult:
        if not args:
            return CommandResult.error("Usage: save <file.smpl>")
        PersistenceManager.save_to_file(args[0], self.editor.manager)
        return CommandResult.success(f"Saved workspace to {args[0]}")

    def _load(self, args: List[str]) -> CommandResult:
        if not args:
            return CommandResult.error("Usage: load <file.smpl>")
        PersistenceManager.load_from_file(args[0], self.editor.manager)
        return CommandResult.success(f"Loaded {len(self.editor.manager)} structure(s) from {args[0]}")

    def _export(self, args: List[str]) -> CommandResult:
        rest = list(args)
        filepath = _pop_option(rest, "-f", "--file")
        if not rest:
            return CommandResult.error("Usage: export <poscar|smi|json> [-f file]")
        fmt = rest[0].lower()
        structure = self.editor.structure
        if fmt in ("poscar", "vasp"):
            if not structure.is_crystal:
                return CommandResult.error("Active structure is not a crystal")
            text = format_poscar(structure)
        elif fmt in ("smi", "smiles"):
            text = rdkit_io.structure_to_smiles(structure)
        elif fmt == "json":
            text = json.dumps(structure.to_snapshot(), indent=2)
        else:
            return CommandResult.error(f"Unknown format: {fmt}. Supported: poscar, smi, json")
        if filepath is None:
            return CommandResult.info(text, data=text)
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(text)
        return CommandResult.success(f"Exported {fmt} to {filepath}")

    def _run(self, args: List[str]) -> CommandResult:
        if not args:
            return CommandResult.error("Usage: run <filename>")
        if self._depth >= MAX_SCRIPT_DEPTH:
            return CommandResult.error("Script nesting too deep")
        with open(args[0], "r", encoding="utf-8") as f:
            lines = f.read().splitlines()
        self._depth += 1
        try:
            return self.run_lines(lines, source=args[0])
        finally:
            self._depth -= 1

    def _time(self, args: List[str]) -> CommandResult:
        if not args:
            return CommandResult.error("Usage: time <sec>")
        seconds = parse_float(args[0], "time value")
        if seconds < 0:
            return CommandResult.error("Invalid time value")
        self._sleep(seconds)
        return CommandResult.info(f"Waited {seconds:g}s")
