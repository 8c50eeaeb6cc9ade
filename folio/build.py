"""Site building functionality for Folio.

This module ties the pipeline together: it loads configuration, discovers and
validates targets, copies static assets and renders every target.

Key functions:
- build_site: Main function to build the entire site.
- ensure_clean_dir: Empties (or creates) the output directory.
"""

from __future__ import annotations

import shutil
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from pathlib import Path

from .config import BuildConfig
from .errors import BuildIOError
from .renderer import render_target
from .static_files import build_static
from .targets import Target, discover_targets


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        targets: Targets that were rendered, in discovery order.
        output_dir: Directory where the site was built.
        static_hashes: Output-relative static path to SHA-1 digest.
    """

    targets: list[Target]
    output_dir: Path
    static_hashes: dict[str, str]


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    Args:
        path: Directory path to clean or create.

    Raises:
        BuildIOError: If the directory cannot be emptied or created.
    """
    try:
        if path.exists():
            shutil.rmtree(path)
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise BuildIOError(path, f"Cannot prepare output directory: {exc}", exc) from exc


def build_site(
    project_root: Path,
    output_dir_override: Path | None = None,
    jobs: int = 1,
    config: BuildConfig | None = None,
) -> BuildResult:
    """Build the entire static site.

    Targets are discovered and validated before the output directory is
    touched, so a conflicting or malformed marker leaves the previous output
    in place.

    Args:
        project_root: Root directory of the project.
        output_dir_override: Optional path to write the build output instead
            of the configured output directory.
        jobs: Number of targets rendered concurrently.
        config: Already loaded configuration; read from folio.yaml if omitted.

    Returns:
        BuildResult containing the targets, output directory and static hashes.
    """
    if config is None:
        config = BuildConfig.load(project_root)
    if output_dir_override is not None:
        config = replace(config, output_dir=output_dir_override)

    targets = discover_targets(config)
    ensure_clean_dir(config.output_dir)
    static_hashes = build_static(config)

    if jobs > 1 and len(targets) > 1:
        with ThreadPoolExecutor(max_workers=jobs) as pool:
            futures = [
                pool.submit(render_target, target, config, static_hashes)
                for target in targets
            ]
            for future in futures:
                future.result()
    else:
        for target in targets:
            render_target(target, config, static_hashes)

    return BuildResult(
        targets=targets, output_dir=config.output_dir, static_hashes=static_hashes
    )
