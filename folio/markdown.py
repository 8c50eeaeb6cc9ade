"""Markdown event stream for Folio.

This module wraps markdown-it-py and flattens its token stream into the events
the document compiler consumes. Every event carries the character span of the
source lines it came from, so literal sections can be cut verbatim out of the
original text.

Key pieces:
- Event / EventKind: one parse event with its source span.
- MarkdownParser: configured markdown-it instance; produces events and renders
  buffered events back to HTML.
- metadata_block_plugin: ``+++`` (TOML) and ``---`` (YAML) frontmatter blocks.
- heading_attributes_plugin: trailing ``{#id .class key=value flag}`` on headings.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum

from markdown_it import MarkdownIt
from markdown_it.rules_block import StateBlock
from markdown_it.rules_core import StateCore
from markdown_it.token import Token
from markupsafe import escape
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

METADATA_FENCES = {"+++": "toml", "---": "yaml"}

HEADING_ATTRS_RE = re.compile(r"\s*\{([^{}]*)\}\s*$")
NEWLINE_RE = re.compile(r"\r\n?")


class EventKind(Enum):
    METADATA_START = "metadata_start"
    METADATA_END = "metadata_end"
    HEADING_START = "heading_start"
    HEADING_END = "heading_end"
    TEXT = "text"
    SOFT_BREAK = "soft_break"
    OTHER = "other"


@dataclass(frozen=True)
class Event:
    """A single markdown parse event.

    Attributes:
        kind: What the event marks.
        span: ``(start, end)`` character offsets in the normalized source, or
            None when the underlying token carries no source map.
        text: Text payload for TEXT events.
        level: Heading level (1-6) for heading events.
        style: Fence of a metadata block (``+++`` or ``---``).
        flags: Bare attribute names given on a heading, e.g. ``("html",)``.
        token: The markdown-it token for OTHER events.
    """

    kind: EventKind
    span: tuple[int, int] | None = None
    text: str = ""
    level: int = 0
    style: str = ""
    flags: tuple[str, ...] = ()
    token: Token | None = None


def normalize_source(text: str) -> str:
    """Apply markdown-it's input normalization so offsets line up."""
    return NEWLINE_RE.sub("\n", text).replace("\0", "�")


def metadata_block_plugin(md: MarkdownIt) -> None:
    """Recognize a fenced metadata block on the first line of a document."""
    md.block.ruler.before("table", "metadata_block", _metadata_block)
    md.add_render_rule("metadata_block", lambda *args, **kwargs: "")


def _line_text(state: StateBlock, line: int) -> str:
    return state.src[state.bMarks[line] + state.tShift[line] : state.eMarks[line]]


def _metadata_block(
    state: StateBlock, start_line: int, end_line: int, silent: bool
) -> bool:
    if start_line != 0 or state.parentType != "root" or state.tShift[0] != 0:
        return False
    fence = _line_text(state, start_line).rstrip()
    if fence not in METADATA_FENCES:
        return False

    close_line = start_line + 1
    while close_line < end_line:
        if state.tShift[close_line] == 0 and _line_text(state, close_line).rstrip() == fence:
            break
        close_line += 1
    else:
        return False

    if silent:
        return True

    token = state.push("metadata_block", "", 0)
    token.block = True
    token.hidden = True
    token.markup = fence
    token.info = METADATA_FENCES[fence]
    token.content = state.src[state.bMarks[start_line + 1] : state.bMarks[close_line]]
    token.map = [start_line, close_line + 1]
    state.line = close_line + 1
    return True


def heading_attributes_plugin(md: MarkdownIt) -> None:
    """Strip a trailing attribute block from headings onto the open token."""
    md.core.ruler.after("inline", "heading_attributes", _heading_attributes)


def _heading_attributes(state: StateCore) -> None:
    tokens = state.tokens
    for index, token in enumerate(tokens):
        if token.type != "heading_open" or index + 1 >= len(tokens):
            continue
        inline = tokens[index + 1]
        children = inline.children
        if not children or children[-1].type != "text":
            continue
        match = HEADING_ATTRS_RE.search(children[-1].content)
        if not match:
            continue
        last = children[-1]
        last.content = last.content[: match.start()]
        if not last.content:
            children.pop()
        inline.content = HEADING_ATTRS_RE.sub("", inline.content)
        _apply_attributes(token, match.group(1))


def _apply_attributes(token: Token, attrs: str) -> None:
    classes: list[str] = []
    flags: list[str] = []
    for part in attrs.split():
        if part.startswith("#") and len(part) > 1:
            token.attrSet("id", part[1:])
        elif part.startswith(".") and len(part) > 1:
            classes.append(part[1:])
        elif "=" in part:
            key, _, value = part.partition("=")
            token.attrSet(key, value.strip("\"'"))
        else:
            flags.append(part)
    if classes:
        token.attrSet("class", " ".join(classes))
    token.meta["flags"] = tuple(flags)


def _highlight_code(code: str, lang: str, attrs: str) -> str:
    """Highlight a fenced code block with Pygments.

    Returns an empty string when the language is unknown so markdown-it falls
    back to its escaped ``<pre><code>`` output.
    """
    if not lang:
        return ""
    try:
        lexer = get_lexer_by_name(lang, stripall=True)
    except ClassNotFound:
        return ""
    body = highlight(code, lexer, HtmlFormatter(nowrap=True))
    return f'<pre class="highlight"><code class="language-{escape(lang)}">{body}</code></pre>'


def create_markdown() -> MarkdownIt:
    """Build the markdown-it instance used for content documents."""
    md = MarkdownIt(
        "commonmark", {"typographer": True, "highlight": _highlight_code}
    )
    md.enable(["table", "replacements", "smartquotes"])
    md.use(metadata_block_plugin)
    md.use(heading_attributes_plugin)
    return md


class MarkdownParser:
    """Turns markdown text into compiler events and events back into HTML.

    Attributes:
        md: The configured markdown-it instance.
    """

    def __init__(self, md: MarkdownIt | None = None):
        self.md = md or create_markdown()

    def iter_events(self, source: str) -> Iterator[Event]:
        """Yield the events of a document in order.

        ``source`` must already be normalized with ``normalize_source``; spans
        index into it.
        """
        offsets = _line_offsets(source)
        in_heading = False
        for token in self.md.parse(source):
            span = _span(token, offsets)
            if token.type == "metadata_block":
                yield Event(EventKind.METADATA_START, span, style=token.markup)
                yield Event(EventKind.TEXT, span, text=token.content)
                yield Event(EventKind.METADATA_END, span, style=token.markup)
            elif token.type == "heading_open":
                in_heading = True
                yield Event(
                    EventKind.HEADING_START,
                    span,
                    level=int(token.tag[1:]),
                    flags=tuple(token.meta.get("flags", ())),
                )
            elif token.type == "heading_close":
                in_heading = False
                yield Event(EventKind.HEADING_END, span, level=int(token.tag[1:]))
            elif in_heading and token.type == "inline":
                yield from _inline_events(token)
            else:
                yield Event(EventKind.OTHER, span, token=token)

    def render_html(self, events: Iterable[Event]) -> str:
        """Serialize buffered events back to HTML."""
        tokens = [event.token for event in events if event.token is not None]
        return self.md.renderer.render(tokens, self.md.options, {})


def _inline_events(inline: Token) -> Iterator[Event]:
    for child in inline.children or []:
        if child.type == "text":
            yield Event(EventKind.TEXT, text=child.content)
        elif child.type == "softbreak":
            yield Event(EventKind.SOFT_BREAK)
        else:
            yield Event(EventKind.OTHER, token=child)


def _line_offsets(source: str) -> list[int]:
    offsets = [0]
    offsets.extend(match.end() for match in re.finditer("\n", source))
    offsets.append(len(source))
    return offsets


def _span(token: Token, offsets: list[int]) -> tuple[int, int] | None:
    if not token.map:
        return None
    last = len(offsets) - 1
    start, end = token.map
    return offsets[min(start, last)], offsets[min(end, last)]


default_parser = MarkdownParser()
