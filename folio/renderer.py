"""Two-pass target rendering for Folio.

A template can register stylesheet inputs as a side effect of rendering, and
it also embeds the hash of the bundle built from those inputs. So every
target renders twice:

1. Discovery pass: render, discard the output, keep the bundle registry.
2. Bundle: if requested, compile the registered inputs and hash the result.
3. Final pass: render again with the hash known and write ``index.html``.

The input set must not depend on the hash. A final pass that registers a
different set than the discovery pass is reported as a RenderError.
"""

from __future__ import annotations

from pathlib import Path

from jinja2 import TemplateNotFound, TemplateSyntaxError

from .bundles import write_bundle
from .config import BuildConfig
from .errors import BuildError, BuildIOError, RenderError, UnknownTemplateError
from .render_context import BUNDLE_NAME, BundleRegistry, RenderContext
from .targets import Target
from .templates import create_environment

OUTPUT_NAME = "index.html"


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    error_type = type(exc).__name__
    error_msg = str(exc)

    if isinstance(exc, TemplateSyntaxError):
        where = exc.name or exc.filename or "template"
        return f"Template syntax error in {where} on line {exc.lineno}: {exc.message}"
    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"

    return f"{error_type}: {error_msg}"


def render_pass(
    target: Target,
    config: BuildConfig,
    static_hashes: dict[str, str],
    bundle_hash: str | None = None,
) -> tuple[str, BundleRegistry]:
    """Render a target once with a fresh RenderContext.

    Returns:
        The rendered output and the pass's bundle registry.

    Raises:
        UnknownTemplateError: If the target's template cannot be found.
        RenderError: If template execution fails.
    """
    context = RenderContext(config, target, static_hashes, bundle_hash)
    env = create_environment(context)
    try:
        template = env.get_template(target.template_name)
    except TemplateNotFound as exc:
        raise UnknownTemplateError(
            target.source_config_path,
            f"Unknown template `{target.template_name}`",
            exc,
        ) from exc
    except TemplateSyntaxError as exc:
        raise RenderError(
            target.source_config_path, _format_error_message(exc), exc, route=target.route
        ) from exc
    except UnicodeDecodeError as exc:
        raise BuildIOError(
            target.source_config_path,
            f"Template `{target.template_name}` is not valid UTF-8: {exc}",
            exc,
        ) from exc
    try:
        output = template.render()
    except BuildError as exc:
        exc.set_target(target.source_config_path, target.route)
        raise
    except TemplateNotFound as exc:
        raise UnknownTemplateError(
            target.source_config_path, f"Unknown template `{exc.name}`", exc
        ) from exc
    except Exception as exc:
        raise RenderError(
            target.source_config_path, _format_error_message(exc), exc, route=target.route
        ) from exc
    return output, context.bundle


def render_target(
    target: Target, config: BuildConfig, static_hashes: dict[str, str]
) -> Path:
    """Render a target to ``<output>/<route>/index.html``.

    Args:
        target: Target to render.
        config: Build configuration.
        static_hashes: Index built by the static asset copy.

    Returns:
        Path of the written file.

    Raises:
        BuildError: Any build failure, annotated with the target's marker
            path and route.
    """
    try:
        return _render_target(target, config, static_hashes)
    except BuildError as exc:
        exc.set_target(target.source_config_path, target.route)
        raise


def _render_target(
    target: Target, config: BuildConfig, static_hashes: dict[str, str]
) -> Path:
    _, discovered = render_pass(target, config, static_hashes)

    out_dir = target.output_dir(config.output_dir)
    digest = None
    if discovered.requested:
        digest = write_bundle(
            discovered.inputs, out_dir / BUNDLE_NAME, config.project_root
        )

    output, final = render_pass(target, config, static_hashes, digest)
    if final.inputs != discovered.inputs or final.requested != discovered.requested:
        raise RenderError(
            target.source_config_path,
            "Stylesheet requests changed once the bundle hash was known; "
            "stylesheet() calls must not depend on the bundle hash",
            route=target.route,
        )

    dest = out_dir / OUTPUT_NAME
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        dest.write_text(output, encoding="utf-8")
    except OSError as exc:
        raise BuildIOError(dest, f"Cannot write output: {exc}", exc) from exc
    return dest
