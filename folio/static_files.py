"""Static asset copying and content hashing for Folio.

The static directory is mirrored into the output tree with symbolic links
replaced by their targets, then every copied file is hashed so templates can
emit cache-busting references.
"""

from __future__ import annotations

import hashlib
import shutil
import warnings
from pathlib import Path

from .config import BuildConfig
from .errors import BuildIOError, SymlinkCycleWarning

CHUNK_SIZE = 64 * 1024


def copy_tree(source: Path, dest: Path) -> None:
    """Copy ``source`` into ``dest``, following symbolic links.

    A directory link that leads back to one of its own ancestors is skipped
    with a SymlinkCycleWarning.
    """
    _copy_dir(source, dest, {source.resolve()})


def _copy_dir(source: Path, dest: Path, ancestors: set[Path]) -> None:
    dest.mkdir(parents=True, exist_ok=True)
    for item in sorted(source.iterdir()):
        target = dest / item.name
        if item.is_dir():
            resolved = item.resolve()
            if resolved in ancestors:
                warnings.warn(
                    f"Skipping {item}: symbolic link cycle back to {resolved}",
                    SymlinkCycleWarning,
                    stacklevel=2,
                )
                continue
            _copy_dir(item, target, ancestors | {resolved})
        elif item.is_file():
            shutil.copy2(item, target)


def hash_file(path: Path) -> str:
    """Return the hex SHA-1 digest of a file's bytes."""
    digest = hashlib.sha1()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def hash_tree(root: Path, relative_to: Path) -> dict[str, str]:
    """Hash every regular file under ``root``.

    Keys are POSIX paths relative to ``relative_to``.
    """
    hashes: dict[str, str] = {}
    if not root.exists():
        return hashes
    for path in sorted(root.rglob("*")):
        if path.is_file():
            hashes[path.relative_to(relative_to).as_posix()] = hash_file(path)
    return hashes


def build_static(config: BuildConfig) -> dict[str, str]:
    """Copy the static directory into the output and hash the result.

    Args:
        config: Build configuration.

    Returns:
        Mapping of output-relative path to SHA-1 digest; empty when the
        project has no static directory.

    Raises:
        BuildIOError: If copying or hashing fails.
    """
    static_dir = config.static_dir
    if not static_dir.is_dir():
        return {}
    try:
        copy_tree(static_dir, config.static_output_dir)
        return hash_tree(config.static_output_dir, config.output_dir)
    except OSError as exc:
        failed = Path(exc.filename) if exc.filename else static_dir
        raise BuildIOError(failed, f"Failed to copy static files: {exc}", exc) from exc
