"""Build target discovery for Folio.

A target is one page of the site. It is declared by a marker file (by default
``index.toml``) somewhere under the source root:

    path = "/about"
    template = "page.html"

The marker's directory is the target directory: ``~/`` template names and
``blocks()`` paths resolve against it.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from .config import BuildConfig
from .errors import BuildIOError, ConfigError, ConflictError


@dataclass(frozen=True)
class Target:
    """One page to render.

    Attributes:
        source_config_path: Path to the marker file.
        destination_route: Route from the marker, as written.
        template_name: Template that renders the page.
    """

    source_config_path: Path
    destination_route: str
    template_name: str

    @property
    def source_dir(self) -> Path:
        return self.source_config_path.parent

    @property
    def route(self) -> str:
        """Route with leading and trailing slashes removed."""
        return self.destination_route.strip("/")

    def output_dir(self, output_root: Path) -> Path:
        return output_root / self.route if self.route else output_root


def load_target(path: Path) -> Target:
    """Parse a marker file.

    Raises:
        ConfigError: If the file is not UTF-8 TOML or lacks a string field.
    """
    try:
        with open(path, "rb") as f:
            table = tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(path, f"Invalid TOML: {exc}", exc) from exc
    except UnicodeDecodeError as exc:
        raise ConfigError(path, f"Target file is not valid UTF-8: {exc}", exc) from exc
    except OSError as exc:
        raise BuildIOError(path, f"Cannot read target file: {exc}", exc) from exc
    for key in ("path", "template"):
        if key not in table:
            raise ConfigError(path, f"Missing required field `{key}`")
        if not isinstance(table[key], str):
            raise ConfigError(path, f"Field `{key}` must be a string")
    return Target(path, table["path"], table["template"])


def locate_targets(config: BuildConfig) -> list[Target]:
    """Find and parse every marker file under the source root, in path order."""
    source = config.source_dir
    if not source.is_dir():
        raise ConfigError(source, "Source directory not found")
    return [
        load_target(path)
        for path in sorted(source.rglob("*"))
        if path.name == config.index_name and path.is_file()
    ]


def validate_targets(targets: list[Target]) -> None:
    """Reject two targets that write to the same route.

    Raises:
        ConflictError: Naming the route and both marker files.
    """
    seen: dict[str, Target] = {}
    for target in targets:
        first = seen.get(target.route)
        if first is not None:
            raise ConflictError(
                target.destination_route,
                first.source_config_path,
                target.source_config_path,
            )
        seen[target.route] = target


def discover_targets(config: BuildConfig) -> list[Target]:
    targets = locate_targets(config)
    validate_targets(targets)
    return targets
