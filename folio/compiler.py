"""Markdown document compiler for Folio.

Compiles one markdown document into a Context: the template to render it with,
the frontmatter config table, and a ValueTree built from its headings.

Headings are structure, not prose. Each heading opens a named entry under the
heading one level above it; the text that follows it becomes that entry's
literal value. Repeating a heading name at the same level appends another
entry to the same list:

    # intro
    Hello
    # intro
    World

compiles to ``data.intro == ["Hello", "World"]``.

A heading carrying the ``{html}`` flag stores its section as rendered HTML
instead of the verbatim markdown source.
"""

from __future__ import annotations

import tomllib
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from .errors import (
    ConfigError,
    InternalParseError,
    MissingTemplateError,
    ParseError,
    RenderError,
)
from .markdown import Event, EventKind, MarkdownParser, default_parser, normalize_source
from .value_tree import Cursor, Record


class SectionType(Enum):
    LITERAL = "literal"
    HTML = "html"


@dataclass
class HeadingNode:
    name: str
    depth: int
    section_type: SectionType


@dataclass
class Context:
    """Result of compiling a document.

    Attributes:
        template: Name of the template to render the document with.
        config: Frontmatter table without the reserved ``template`` key.
        data: Root record of the document's value tree.
    """

    template: str
    config: dict[str, Any]
    data: Record

    def as_template_vars(self) -> dict[str, Any]:
        return {"template": self.template, "config": self.config, "data": self.data}


# Parsing modes. Each holds only what its transitions need.


@dataclass
class NoneState:
    pass


@dataclass
class FrontmatterState:
    style: str
    events: list[Event] = field(default_factory=list)


@dataclass
class HeadingState:
    section_type: SectionType
    level: int
    events: list[Event] = field(default_factory=list)


@dataclass
class TextState:
    events: list[Event] = field(default_factory=list)
    span: tuple[int, int] | None = None


class DocumentCompiler:
    """Single-pass state machine turning parse events into a Context.

    Attributes:
        source: Normalized document text the event spans index into.
        template: Template chosen so far (caller default, then frontmatter).
        config: Frontmatter table, once seen.
        cursor: Write position in the value tree.
        headings: Currently open headings, outermost first.
    """

    def __init__(
        self,
        source: str,
        default_template: str | None = None,
        parser: MarkdownParser | None = None,
        path: Path | None = None,
    ):
        self.source = source
        self.template = default_template
        self.parser = parser or default_parser
        self.path = path
        self.config: dict[str, Any] | None = None
        self.cursor = Cursor()
        self.headings: list[HeadingNode] = []
        self.state: NoneState | FrontmatterState | HeadingState | TextState = NoneState()

    def feed(self, events: Iterable[Event]) -> None:
        for event in events:
            self.handle(event)

    def handle(self, event: Event) -> None:
        kind = event.kind
        if kind is EventKind.METADATA_START:
            self._finalize_state()
            self.state = FrontmatterState(style=event.style)
        elif kind is EventKind.METADATA_END:
            self._end_frontmatter(event)
        elif kind is EventKind.HEADING_START:
            self._finalize_state()
            section_type = SectionType.HTML if "html" in event.flags else SectionType.LITERAL
            self.state = HeadingState(section_type=section_type, level=event.level)
        elif kind is EventKind.HEADING_END:
            self._end_heading(event)
        elif kind is EventKind.SOFT_BREAK:
            pass
        else:
            self._append(event)

    def finish(self, render_string: Callable[[str], str] | None = None) -> Context:
        """Close the last section and build the Context.

        Args:
            render_string: Renders one literal as a standalone template. Every
                literal in the tree goes through it once.

        Raises:
            RenderError: If rendering a literal fails.
            MissingTemplateError: If no template was chosen.
        """
        self._finalize_state()
        data = self.cursor.root()
        if render_string is not None:
            try:
                data = data.map_literals(render_string)
            except Exception as exc:
                raise RenderError(
                    self.path, f"Failed to render section text: {exc}", exc
                ) from exc
        if not self.template:
            raise MissingTemplateError(
                self.path,
                "No template specified: set `template` in the frontmatter "
                "or pass a default template.",
            )
        return Context(template=self.template, config=self.config or {}, data=data)

    # Transitions

    def _end_frontmatter(self, event: Event) -> None:
        state = self.state
        if not isinstance(state, FrontmatterState):
            raise InternalParseError(self.path, "Frontmatter ending without start")
        if state.style != event.style:
            raise InternalParseError(self.path, "Frontmatter style mismatch")
        self._finalize_state()

    def _end_heading(self, event: Event) -> None:
        state = self.state
        if not isinstance(state, HeadingState):
            raise InternalParseError(self.path, "Heading ending without start")
        if state.level != event.level:
            raise InternalParseError(self.path, "Heading level mismatch")
        self._finalize_state()
        self.state = TextState()

    def _append(self, event: Event) -> None:
        state = self.state
        if isinstance(state, TextState):
            state.events.append(event)
            if event.span is not None:
                if state.span is None:
                    state.span = event.span
                else:
                    state.span = (state.span[0], max(state.span[1], event.span[1]))
        elif isinstance(state, (FrontmatterState, HeadingState)):
            state.events.append(event)
        else:
            raise InternalParseError(
                self.path,
                "Encountered content outside of any section; "
                "content must follow a heading",
            )

    # Finalizers

    def _finalize_state(self) -> None:
        state, self.state = self.state, NoneState()
        if isinstance(state, FrontmatterState):
            self._finalize_frontmatter(state)
        elif isinstance(state, HeadingState):
            self._finalize_heading(state)
        elif isinstance(state, TextState):
            self._finalize_text(state)

    def _finalize_frontmatter(self, state: FrontmatterState) -> None:
        if self.config is not None:
            raise ParseError(self.path, "Duplicate frontmatter block")
        parts: list[str] = []
        for event in state.events:
            if event.kind is not EventKind.TEXT:
                raise ParseError(self.path, f"Invalid event in frontmatter: {event.kind.value}")
            parts.append(event.text)
        table = _parse_table("".join(parts), state.style, self.path)
        if "template" in table:
            template = table.pop("template")
            if not isinstance(template, str):
                raise ConfigError(self.path, "Frontmatter `template` must be a string")
            self.template = template
        self.config = table

    def _finalize_heading(self, state: HeadingState) -> None:
        depth = state.level - 1
        if len(self.headings) < depth:
            raise ParseError(
                self.path,
                f"Heading level {state.level} skips a level; "
                f"only {len(self.headings)} heading(s) are open",
            )
        parts: list[str] = []
        for event in state.events:
            if event.kind is not EventKind.TEXT:
                raise ParseError(self.path, "Heading must contain only text")
            parts.append(event.text)
        name = "".join(parts).strip()
        if not name:
            raise ParseError(self.path, "Heading must not be empty")

        del self.headings[depth:]
        self.cursor.truncate(depth)
        self.cursor.descend(name)
        self.headings.append(HeadingNode(name, depth, state.section_type))

    def _finalize_text(self, state: TextState) -> None:
        if state.span is None:
            if state.events:
                raise InternalParseError(self.path, "Empty range in text section")
            return
        if not self.headings:
            raise InternalParseError(self.path, "No section set for entry")
        if self.headings[-1].section_type is SectionType.HTML:
            value = self.parser.render_html(state.events)
        else:
            start, end = state.span
            value = self.source[start:end].rstrip("\n")
        self.cursor.set(value)


def _parse_table(text: str, style: str, path: Path | None) -> dict[str, Any]:
    if style == "+++":
        try:
            return tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(path, f"Invalid TOML frontmatter: {exc}", exc) from exc
    try:
        table = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(path, f"Invalid YAML frontmatter: {exc}", exc) from exc
    if table is None:
        return {}
    if not isinstance(table, dict):
        raise ConfigError(path, "Frontmatter must be a table of key/value pairs")
    return table


def compile_document(
    text: str,
    default_template: str | None = None,
    render_string: Callable[[str], str] | None = None,
    path: Path | None = None,
    parser: MarkdownParser | None = None,
) -> Context:
    """Compile markdown text into a Context.

    Args:
        text: Markdown source.
        default_template: Template used unless the frontmatter names one.
        render_string: Applied to every literal in the finished tree.
        path: Source file, for error messages.
        parser: Markdown parser; the module default when omitted.

    Returns:
        The compiled Context.
    """
    source = normalize_source(text)
    compiler = DocumentCompiler(source, default_template, parser=parser, path=path)
    compiler.feed(compiler.parser.iter_events(source))
    return compiler.finish(render_string)
