"""Template engine wiring for Folio.

Every render pass gets its own Jinja2 environment bound to that pass's
RenderContext, so template functions never share state across passes or
targets.

Template names starting with ``~/`` resolve against the target directory;
other names resolve against the source root first, then the target directory.

Globals installed per pass:
- blocks(dir, default_template=None): render every markdown/HTML block in dir.
- static(file): cache-busted URL of a static asset.
- stylesheet(path): register a stylesheet for the target's bundle.
- stylesheet_link(): ``<link>`` element for the compiled bundle.
- pygments_css(): CSS for highlighted code blocks.

Filters:
- try_add_class: append classes to the top-level elements of a fragment.
"""

from __future__ import annotations

import posixpath
import warnings
from pathlib import Path
from typing import Any

from jinja2 import (
    ChainableUndefined,
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PrefixLoader,
    StrictUndefined,
    TemplateNotFound,
    TemplateRuntimeError,
    pass_context,
    select_autoescape,
)
from jinja2.runtime import Context as TemplateContext
from markupsafe import Markup, escape
from pygments.formatters import HtmlFormatter

from .compiler import compile_document
from .errors import BuildIOError, HashLookupWarning, UnknownTemplateError
from .html_utils import try_add_class
from .render_context import RenderContext
from .value_tree import Record, ValueTree

BLOCK_SUFFIXES = (".md", ".html")
TARGET_PREFIX = "~/"


class ContentEnvironment(Environment):
    """Environment where ``a.b`` on compiled content looks up child ``b``.

    Jinja prefers Python attributes for dotted access; for Records and
    ValueTrees the heading names come first so ``data.intro`` works even for
    names like ``get`` or ``items``.
    """

    def getattr(self, obj: Any, attribute: str) -> Any:
        if isinstance(obj, (Record, ValueTree)):
            try:
                return obj[attribute]
            except (KeyError, TypeError):
                pass
        return super().getattr(obj, attribute)


def create_loader(source_dir: Path, target_dir: Path) -> ChoiceLoader:
    return ChoiceLoader(
        [
            PrefixLoader({"~": FileSystemLoader(str(target_dir))}),
            FileSystemLoader([str(source_dir), str(target_dir)]),
        ]
    )


def create_environment(context: RenderContext) -> ContentEnvironment:
    """Build the Jinja environment for one render pass.

    Args:
        context: State of the pass; template functions are bound to it.

    Returns:
        Environment with loader, globals and filters installed.
    """
    env = ContentEnvironment(
        loader=create_loader(context.config.source_dir, context.target_dir),
        autoescape=select_autoescape(["html", "xml"]),
        undefined=StrictUndefined if context.config.strict_undefined else ChainableUndefined,
    )
    TemplateFunctions(context, env).install()
    return env


def pygments_css() -> str:
    """Return Pygments CSS styles for the .highlight class."""
    return HtmlFormatter().get_style_defs(".highlight")


class TemplateFunctions:
    """Template globals bound to one RenderContext.

    Attributes:
        context: State of the current render pass.
        env: Environment the functions are installed into.
    """

    def __init__(self, context: RenderContext, env: Environment):
        self.context = context
        self.env = env

    def install(self) -> None:
        self.env.globals["blocks"] = self.blocks
        self.env.globals["static"] = self.static
        self.env.globals["stylesheet"] = self.stylesheet
        self.env.globals["stylesheet_link"] = self.stylesheet_link
        self.env.globals["pygments_css"] = pygments_css
        self.env.filters["try_add_class"] = try_add_class

    def render_string(self, source: str) -> str:
        """Render text as a standalone template with no extra variables."""
        return self.env.from_string(source).render()

    @pass_context
    def blocks(
        self,
        ctx: TemplateContext,
        directory: str,
        default_template: str | None = None,
    ) -> Markup:
        """Render every ``.md`` and ``.html`` file of a directory.

        Files are taken in name order. HTML files are rendered as templates;
        markdown files are compiled and rendered with their own template.

        Args:
            ctx: Calling template's context.
            directory: Directory relative to the target directory, or to the
                calling template's directory when it starts with ``./``.
            default_template: Template for documents whose frontmatter names
                none.

        Returns:
            The rendered blocks joined by newlines.
        """
        if directory.startswith("./"):
            current = ctx.name or ""
            if current.startswith(TARGET_PREFIX):
                current = current[len(TARGET_PREFIX):]
            directory = posixpath.normpath(
                posixpath.join(posixpath.dirname(current), directory)
            )
        target_dir = self.context.target_dir
        blocks_dir = target_dir / directory
        if not blocks_dir.exists():
            raise TemplateRuntimeError(f"Blocks directory `{blocks_dir}` not found.")
        if not blocks_dir.is_dir():
            raise TemplateRuntimeError(
                f"Blocks directory `{blocks_dir}` is not a directory."
            )

        files = sorted(
            path
            for path in blocks_dir.iterdir()
            if path.is_file() and path.suffix in BLOCK_SUFFIXES
        )
        results: list[str] = []
        for path in files:
            if path.suffix == ".html":
                name = TARGET_PREFIX + path.relative_to(target_dir).as_posix()
                results.append(self.env.get_template(name).render())
            else:
                results.append(self._render_document(path, default_template))
        return Markup("\n".join(results))

    def _render_document(self, path: Path, default_template: str | None) -> str:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise BuildIOError(path, f"Cannot read document: {exc}", exc) from exc
        except UnicodeDecodeError as exc:
            raise BuildIOError(path, f"Document is not valid UTF-8: {exc}", exc) from exc
        document = compile_document(
            text,
            default_template=default_template,
            render_string=self.render_string,
            path=path,
        )
        try:
            template = self.env.get_template(document.template)
        except TemplateNotFound as exc:
            raise UnknownTemplateError(
                path, f"Unknown template `{document.template}`", exc
            ) from exc
        return template.render(document.as_template_vars())

    def static(self, file: str) -> str:
        """Return ``<prefix><static_output>/<file>?hash=<sha1>``.

        When no hash is recorded the bare path is returned and a
        HashLookupWarning is emitted.
        """
        config = self.context.config
        static_file = posixpath.join(config.static_output, file.lstrip("/"))
        url = f"{config.prefix.rstrip('/')}/{static_file}"
        digest = self.context.static_hashes.get(static_file)
        if digest is None:
            warnings.warn(
                f"Can not find hash for static file {static_file}",
                HashLookupWarning,
                stacklevel=2,
            )
            return url
        return f"{url}?hash={digest}"

    def stylesheet(self, path: str) -> str:
        """Register a stylesheet input for the target's bundle.

        Paths starting with ``/`` are relative to the source root, others to
        the target directory.
        """
        if path.startswith("/"):
            source = self.context.config.source_dir / path.lstrip("/")
        else:
            source = self.context.target_dir / path
        self.context.register_stylesheet(source)
        return ""

    def stylesheet_link(self) -> Markup:
        href = self.context.request_bundle()
        return Markup(f'<link rel="stylesheet" href="{escape(href)}">')
