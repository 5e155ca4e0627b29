"""Punto de entrada del editor estructural Simpledit.

Lee comandos de un archivo de script o de la entrada estándar, los ejecuta
sobre un `Editor` y muestra cada resultado. Es el archivo que se ejecuta al
iniciar la aplicación.
"""

import argparse
import logging
import os
import sys

# Aseguramos que Python encuentre los módulos dentro de `src` al ejecutar
# el archivo directamente.
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from core.errors import ModelError
from editor.commands import CommandRegistry
from editor.editor import Editor
from editor.options import EditorOptions
from editor.result import CommandResult

logger = logging.getLogger(__name__)

PROMPT = "simpledit> "


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="simpledit", description="Editor de estructuras moleculares y cristalinas")
    parser.add_argument("script", nargs="?", help="Archivo de comandos (por defecto, entrada estándar)")
    parser.add_argument("--options", help="Archivo JSON con opciones del editor")
    parser.add_argument("-v", "--verbose", action="store_true", help="Activa los mensajes de depuración")
    return parser


def print_result(result: CommandResult) -> None:
    stream = sys.stderr if not result.ok else sys.stdout
    print(result, file=stream)


def main(argv=None) -> int:
    """
    Configura el registro, crea el editor y ejecuta los comandos.

    Returns:
        Código de salida: 0 si todo fue bien, 1 si un script falló o las
        opciones no son válidas.

    Side Effects:
        Lee el script o la entrada estándar y escribe los resultados en la
        salida estándar (los errores en la de error).
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        options = EditorOptions.load(args.options) if args.options else EditorOptions()
    except (ModelError, ValueError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    editor = Editor(options)
    registry = CommandRegistry(editor, output=print_result)
    try:
        if args.script:
            try:
                with open(args.script, "r", encoding="utf-8") as f:
                    lines = f.read().splitlines()
            except OSError as exc:
                print(f"error: {exc}", file=sys.stderr)
                return 1
            result = registry.run_lines(lines, source=args.script)
            print_result(result)
            return 0 if result.ok else 1

        interactive = sys.stdin.isatty()
        while True:
            if interactive:
                print(PROMPT, end="", flush=True)
            line = sys.stdin.readline()
            if not line:
                break
            if line.strip() in ("exit", "quit"):
                break
            result = registry.execute(line)
            if result is not None:
                print_result(result)
        return 0
    finally:
        editor.shutdown()


if __name__ == "__main__":
    sys.exit(main())
