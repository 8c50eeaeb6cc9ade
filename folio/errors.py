"""Error taxonomy for Folio.

Every failure that aborts a build derives from BuildError, which carries the
source file that caused it so the CLI can point at it. Non-fatal diagnostics
are warnings derived from BuildWarning.
"""

from __future__ import annotations

from pathlib import Path


class BuildError(Exception):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error, if known.
        message: Human-readable error message.
        original_error: The original exception that was caught.
        route: Route of the target being rendered when the error surfaced.
        target_path: Marker file of that target.
    """

    route: str | None = None
    target_path: Path | None = None

    def __init__(
        self,
        source_path: Path | None,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(source_path, message)

    def __str__(self) -> str:
        prefix = f"{self.source_path}: " if self.source_path is not None else ""
        text = f"{prefix}{self.message}"
        if self.target_path is not None and self.target_path != self.source_path:
            text += f" (in target `/{self.route}` from {self.target_path})"
        return text

    def set_target(self, target_path: Path, route: str) -> None:
        """Record the target being rendered; the innermost target is kept."""
        if self.target_path is None:
            self.target_path = target_path
        if self.route is None:
            self.route = route


class ConfigError(BuildError):
    """Malformed configuration data or a missing required field."""


class ConflictError(BuildError):
    """Two targets claim the same destination route.

    Attributes:
        route: The contested destination route.
        first_source: Marker file that reserved the route first.
        second_source: Marker file that attempted to reserve it again.
    """

    def __init__(self, route: str, first_source: Path, second_source: Path):
        self.route = route
        self.first_source = first_source
        self.second_source = second_source
        super().__init__(
            second_source,
            f"Conflicting destination `{route}`. first reserved in: "
            f"`{first_source}`, attempted to reserve in: `{second_source}`",
        )


class ParseError(BuildError):
    """Malformed markdown document structure."""


class InternalParseError(ParseError):
    """The document compiler reached a state its transitions rule out."""


class MissingTemplateError(BuildError):
    """No template was named by frontmatter or by the caller."""


class UnknownTemplateError(BuildError):
    """A template name could not be resolved by the loader."""


class RenderError(BuildError):
    """Template execution failed.

    Attributes:
        route: Destination route of the target being rendered, if known.
    """

    def __init__(
        self,
        source_path: Path | None,
        message: str,
        original_error: Exception | None = None,
        route: str | None = None,
    ):
        self.route = route
        if route is not None:
            message = f"[{route}] {message}"
        super().__init__(source_path, message, original_error)


class BuildIOError(BuildError):
    """Reading, writing or copying a file failed."""


class BuildWarning(UserWarning):
    """Base class for non-fatal build diagnostics."""


class HashLookupWarning(BuildWarning):
    """A static asset was referenced but has no recorded content hash."""


class SymlinkCycleWarning(BuildWarning):
    """A symbolic link in the static tree points back at one of its parents."""
