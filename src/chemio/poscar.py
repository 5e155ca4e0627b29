"""Lectura y escritura de archivos POSCAR/CONTCAR de VASP.

Variantes admitidas en lectura:
    - VASP 5: símbolos en la línea 6 y recuentos en la línea 7.
    - VASP 4: recuentos en la línea 6 (elementos sintéticos A, B, C...).
    - Coordenadas Direct (fraccionarias) o Cartesian.
    - Bloque "Selective dynamics" (se ignora).
    - Factor de escala negativo (se usa su valor absoluto como aproximación).

La escritura produce siempre VASP 5 en coordenadas Direct.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

import numpy as np

from core import vecmath
from core.crystal import Crystal
from core.errors import ModelError, PreconditionError
from core.lattice import Lattice

logger = logging.getLogger(__name__)

FRACTION_DIGITS = 10


class PoscarFormatError(ValueError):
    """Se lanza cuando el contenido no es un POSCAR válido."""


def _floats(line: str, count: int, what: str) -> List[float]:
    parts = line.split()
    if len(parts) < count:
        raise PoscarFormatError(f"POSCAR: expected {count} numbers for {what}, got {line!r}")
    try:
        return [float(p) for p in parts[:count]]
    except ValueError as exc:
        raise PoscarFormatError(f"POSCAR: invalid number in {what}: {line!r}") from exc


def _is_number(token: str) -> bool:
    try:
        float(token)
    except ValueError:
        return False
    return True


def parse_poscar(content: str, name: Optional[str] = None) -> Crystal:
    """Convierte texto POSCAR en un `Crystal`.

    Args:
        content: Texto completo del archivo.
        name: Nombre alternativo; por defecto la línea de comentario.

    Returns:
        Cristal con red y átomos en coordenadas fraccionarias.

    Raises:
        PoscarFormatError: Si el archivo está truncado o mal formado.
    """
    lines = [line.rstrip() for line in content.splitlines()]
    if len(lines) < 8:
        raise PoscarFormatError("POSCAR: file too short")

    title = name or lines[0].strip() or "POSCAR"
    scale = _floats(lines[1], 1, "scale factor")[0] or 1.0
    if scale < 0:
        scale = abs(scale)

    vectors = [[v * scale for v in _floats(lines[i], 3, f"lattice vector {i - 1}")] for i in (2, 3, 4)]
    cell = vecmath.columns(*vectors)
    det = vecmath.determinant(cell)
    if abs(det) < 1e-10:
        raise PoscarFormatError("POSCAR: invalid lattice (singular cell)")
    cell_inv = vecmath.inverse(cell)
    # La red se guarda por parámetros en orientación estándar (dextrógira);
    # una celda levógira se representa intercambiando a y b.
    swap_ab = det < 0
    if swap_ab:
        logger.warning("POSCAR: left-handed cell, swapping a and b")
        vectors[0], vectors[1] = vectors[1], vectors[0]
    try:
        lattice = Lattice.from_vectors(*vectors)
        lattice.vectors()
    except ModelError as exc:
        raise PoscarFormatError(f"POSCAR: invalid lattice ({exc})") from exc

    tokens = lines[5].split()
    if not tokens:
        raise PoscarFormatError("POSCAR: missing species line")
    if _is_number(tokens[0]):
        counts_tokens = tokens
        elements = [chr(65 + i) for i in range(len(tokens))]
        offset = 6
    else:
        elements = tokens
        counts_tokens = lines[6].split()
        offset = 7
    try:
        counts = [int(c) for c in counts_tokens]
    except ValueError as exc:
        raise PoscarFormatError(f"POSCAR: invalid atom counts {counts_tokens!r}") from exc
    if len(counts) != len(elements):
        raise PoscarFormatError(
            f"POSCAR: {len(elements)} species but {len(counts)} counts"
        )

    if offset >= len(lines):
        raise PoscarFormatError("POSCAR: missing coordinate mode line")
    mode = lines[offset].strip().lower()
    if mode.startswith("s"):
        offset += 1
        if offset >= len(lines):
            raise PoscarFormatError("POSCAR: missing coordinate mode line")
        mode = lines[offset].strip().lower()
    offset += 1
    direct = not (mode.startswith("c") or mode.startswith("k"))

    crystal = Crystal(title, lattice)
    total = sum(counts)
    if offset + total > len(lines):
        raise PoscarFormatError(
            f"POSCAR: expected {total} coordinate lines, found {max(0, len(lines) - offset)}"
        )
    row = offset
    for element, count in zip(elements, counts):
        for _ in range(count):
            p = _floats(lines[row], 3, f"atom position (line {row + 1})")
            if direct:
                frac = [float(v) for v in p]
            else:
                frac = [float(v) for v in cell_inv @ (np.asarray(p, dtype=float) * scale)]
            if swap_ab:
                frac[0], frac[1] = frac[1], frac[0]
            crystal.add_atom_fractional(element, tuple(frac))
            row += 1
    logger.info("Parsed POSCAR %r: %d atoms", title, total)
    return crystal


def _fmt(value: float, digits: int = FRACTION_DIGITS) -> str:
    return f"{value:.{digits}f}".rjust(digits + 4)


def format_poscar(crystal: Crystal, comment: Optional[str] = None) -> str:
    """Genera texto POSCAR (VASP 5, coordenadas Direct).

    Los átomos se agrupan por elemento en orden de primera aparición.

    Raises:
        PreconditionError: Si la estructura no tiene red.
    """
    if getattr(crystal, "lattice", None) is None:
        raise PreconditionError("Crystal has no lattice parameters")
    va, vb, vc = crystal.lattice.vectors()
    groups: Dict[str, list] = {}
    for atom in crystal.atoms:
        groups.setdefault(atom.element, []).append(atom)

    lines = [comment or crystal.name or "Structure", "   1.0"]
    for v in (va, vb, vc):
        lines.append(f"{_fmt(v[0])}  {_fmt(v[1])}  {_fmt(v[2])}")
    lines.append("   " + "   ".join(groups))
    lines.append("   " + "   ".join(str(len(atoms)) for atoms in groups.values()))
    lines.append("Direct")
    for element, atoms in groups.items():
        for atom in atoms:
            fx, fy, fz = crystal.get_frac_safe(atom)
            lines.append(f"{_fmt(fx)}  {_fmt(fy)}  {_fmt(fz)}   {element}")
    return "\n".join(lines) + "\n"


def read_poscar(filepath: str) -> Crystal:
    """Lee un archivo POSCAR desde disco."""
    with open(filepath, "r", encoding="utf-8") as f:
        return parse_poscar(f.read())


def write_poscar(filepath: str, crystal: Crystal, comment: Optional[str] = None) -> None:
    """Escribe un cristal en formato POSCAR.

    Side Effects:
        Escribe en disco el archivo indicado.
    """
    text = format_poscar(crystal, comment)
    with open(filepath, "w", encoding="utf-8") as f:
        f.write(text)
