"""Project configuration for Folio.

Configuration lives in ``folio.yaml`` at the project root. Every key is
optional; missing keys fall back to DEFAULT_CONFIG.

Key pieces:
- load_config: Reads folio.yaml into a plain dict with defaults applied.
- BuildConfig: Resolved, typed view of that dict used by the build.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

CONFIG_FILENAME = "folio.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "source": "site",
    "index_name": "index.toml",
    "output": "output",
    "prefix": "/",
    "static_path": "static",
    "static_output": "static",
    "strict_undefined": False,
    "port": 4000,
}


def load_config(project_root: Path) -> dict[str, Any]:
    """Load project configuration from folio.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping.
    """
    config_path = project_root / CONFIG_FILENAME
    config = DEFAULT_CONFIG.copy()
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(config_path, f"Invalid YAML: {exc}", exc) from exc
        except UnicodeDecodeError as exc:
            raise ConfigError(config_path, f"Configuration is not valid UTF-8: {exc}", exc) from exc
        if not isinstance(loaded, dict):
            raise ConfigError(config_path, "Configuration must be a mapping")
        config.update(loaded)
    return config


@dataclass(frozen=True)
class BuildConfig:
    """Resolved build configuration.

    Attributes:
        project_root: Directory containing folio.yaml.
        source_dir: Content source root scanned for targets and templates.
        index_name: File name of target marker files.
        output_dir: Directory the site is written to.
        prefix: URL prefix for generated references.
        static_dir: Static asset source directory.
        static_output: Sub-path of the output that receives static assets.
        strict_undefined: Raise on undefined template variables.
        port: Dev server HTTP port.
        ws_port: Dev server live reload websocket port.
    """

    project_root: Path
    source_dir: Path
    index_name: str
    output_dir: Path
    prefix: str
    static_dir: Path
    static_output: str
    strict_undefined: bool = False
    port: int = 4000
    ws_port: int = 4001

    @classmethod
    def from_mapping(
        cls, project_root: Path, mapping: dict[str, Any]
    ) -> BuildConfig:
        """Build a config from a mapping such as load_config's result.

        Relative paths resolve against ``project_root``.
        """
        values = {**DEFAULT_CONFIG, **mapping}
        for key in ("source", "index_name", "output", "prefix", "static_path", "static_output"):
            if not isinstance(values[key], str):
                raise ConfigError(
                    project_root / CONFIG_FILENAME, f"`{key}` must be a string"
                )
        try:
            port = int(values["port"])
            ws_port = int(values.get("ws_port") or port + 1)
        except (TypeError, ValueError) as exc:
            raise ConfigError(
                project_root / CONFIG_FILENAME, f"Invalid port: {exc}", exc
            ) from exc
        prefix = values["prefix"]
        if not prefix.startswith("/"):
            prefix = f"/{prefix}"
        return cls(
            project_root=project_root,
            source_dir=project_root / values["source"],
            index_name=values["index_name"],
            output_dir=project_root / values["output"],
            prefix=prefix,
            static_dir=project_root / values["static_path"],
            static_output=values["static_output"].strip("/"),
            strict_undefined=bool(values["strict_undefined"]),
            port=port,
            ws_port=ws_port,
        )

    @classmethod
    def load(cls, project_root: Path, **overrides: Any) -> BuildConfig:
        """Load folio.yaml and apply overrides whose value is not None."""
        mapping = load_config(project_root)
        mapping.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_mapping(project_root, mapping)

    @property
    def static_output_dir(self) -> Path:
        return self.output_dir / self.static_output
