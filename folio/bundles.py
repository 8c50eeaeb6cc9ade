"""Stylesheet bundle compilation for Folio.

Templates register stylesheet inputs with ``stylesheet()`` during the
discovery pass. The inputs are compiled here into one ``index.css`` per
target and content-hashed so the final pass can link it with a cache-busting
query string.

A bundle of plain ``.css`` inputs is concatenated as is. Once any ``.scss`` or
``.sass`` input is registered, the whole bundle goes through a single run of
the ``sass`` executable (Dart Sass), found on PATH or in the project's
``node_modules/.bin``. Inputs are imported in sorted path order, so variables
and mixins from one input are visible to the inputs after it.
"""

from __future__ import annotations

import hashlib
import shutil
import subprocess
from collections.abc import Iterable
from pathlib import Path

from .errors import BuildIOError, RenderError

SASS_SUFFIXES = (".scss", ".sass")


def find_executable(name: str, project_root: Path | None = None) -> str | None:
    """Find an executable in PATH or local node_modules.

    Args:
        name: Name of the executable to find (e.g., 'sass').
        project_root: Optional project root whose node_modules/.bin is
            searched after PATH.

    Returns:
        Full path to the executable if found, None otherwise.
    """
    found = shutil.which(name)
    if found:
        return found
    if project_root is not None:
        local = project_root / "node_modules" / ".bin" / name
        if local.exists():
            return str(local)
    return None


def is_sass(path: Path) -> bool:
    return path.suffix.lower() in SASS_SUFFIXES


def _read_stylesheet(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise BuildIOError(path, f"Cannot read stylesheet: {exc}", exc) from exc
    except UnicodeDecodeError as exc:
        raise BuildIOError(path, f"Stylesheet is not valid UTF-8: {exc}", exc) from exc


def _sass_string(path: Path) -> str:
    text = path.resolve().as_posix().replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def sass_entry(inputs: Iterable[Path]) -> str:
    """Build the SCSS entry point that imports every input in order.

    Sass inputs are imported by absolute path. Plain CSS inputs are inlined,
    since a Sass ``@import`` of a ``.css`` file would stay a runtime import.
    """
    lines: list[str] = []
    for path in inputs:
        if is_sass(path):
            if not path.is_file():
                raise BuildIOError(path, "Cannot read stylesheet: file not found")
            lines.append(f"@import {_sass_string(path)};")
        else:
            lines.append(_read_stylesheet(path).rstrip("\n"))
    return "\n".join(lines) + "\n"


def compile_sass(inputs: list[Path], project_root: Path | None = None) -> str:
    """Compile ordered stylesheet inputs to CSS in one Sass run.

    Raises:
        RenderError: If no Sass compiler is installed or compilation fails.
        BuildIOError: If an input cannot be read.
    """
    first_sass = next((path for path in inputs if is_sass(path)), None)
    sass_bin = find_executable("sass", project_root)
    if sass_bin is None:
        raise RenderError(
            first_sass,
            "Sass compiler not found: install the `sass` executable (Dart Sass) "
            "on PATH or in node_modules/.bin",
        )
    entry = sass_entry(inputs)
    cmd = [sass_bin, "--no-source-map", "--stdin"]
    result = subprocess.run(cmd, input=entry, capture_output=True, text=True)
    if result.returncode != 0:
        raise RenderError(first_sass, f"Sass compilation failed: {result.stderr.strip()}")
    return result.stdout


def compile_bundle(inputs: Iterable[Path], project_root: Path | None = None) -> str:
    """Compile stylesheet inputs, in sorted path order, into one stylesheet."""
    ordered = sorted(inputs)
    if not ordered:
        return ""
    if any(is_sass(path) for path in ordered):
        return compile_sass(ordered, project_root).rstrip("\n") + "\n"
    parts = [_read_stylesheet(path) for path in ordered]
    return "\n".join(part.rstrip("\n") for part in parts) + "\n"


def bundle_hash(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


def write_bundle(
    inputs: Iterable[Path], dest: Path, project_root: Path | None = None
) -> str:
    """Compile the inputs, write them to ``dest`` and return the SHA-1 digest.

    Raises:
        BuildIOError: If an input cannot be read or the bundle written.
        RenderError: If Sass compilation fails or no compiler is installed.
    """
    data = compile_bundle(inputs, project_root).encode("utf-8")
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(data)
    except OSError as exc:
        raise BuildIOError(dest, f"Cannot write stylesheet bundle: {exc}", exc) from exc
    return bundle_hash(data)
