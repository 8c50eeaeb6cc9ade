"""Per-pass render state for Folio.

A RenderContext is created for every render pass of a target and bound into
that pass's Jinja environment. Template functions read the static hash index
through it and record stylesheet requests in its BundleRegistry. Only the
bundle hash is carried from one pass into the next.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .config import BuildConfig
from .targets import Target

BUNDLE_NAME = "index.css"


@dataclass
class BundleRegistry:
    """Stylesheet bundle requests made during one render pass.

    Attributes:
        inputs: Stylesheet source files registered by templates.
        requested: Whether a template asked for the bundle link.
        hash: Digest of the compiled bundle, known only in the final pass.
    """

    inputs: set[Path] = field(default_factory=set)
    requested: bool = False
    hash: str | None = None


class RenderContext:
    """State visible to template functions during a single render pass.

    Attributes:
        config: Build configuration snapshot.
        target: Target being rendered.
        static_hashes: Output-relative static path to SHA-1 digest.
        bundle: Stylesheet bundle registry for this pass.
    """

    def __init__(
        self,
        config: BuildConfig,
        target: Target,
        static_hashes: dict[str, str],
        bundle_hash: str | None = None,
    ):
        self.config = config
        self.target = target
        self.static_hashes = static_hashes
        self.bundle = BundleRegistry(hash=bundle_hash)

    @property
    def target_dir(self) -> Path:
        return self.target.source_dir

    @property
    def output_dir(self) -> Path:
        return self.target.output_dir(self.config.output_dir)

    @property
    def route_prefix(self) -> str:
        """URL path of the target's output directory, ending with a slash."""
        prefix = self.config.prefix.rstrip("/")
        route = self.target.route
        return f"{prefix}/{route}/" if route else f"{prefix}/"

    def register_stylesheet(self, path: Path) -> None:
        self.bundle.inputs.add(path)

    def request_bundle(self) -> str:
        """Mark the bundle as requested and return its cache-busted URL."""
        self.bundle.requested = True
        return f"{self.route_prefix}{BUNDLE_NAME}?hash={self.bundle.hash or ''}"
