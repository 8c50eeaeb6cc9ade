from folio.markdown import EventKind, MarkdownParser, default_parser, normalize_source


def kinds(source):
    return [event.kind for event in default_parser.iter_events(source)]


def test_normalize_source():
    assert normalize_source("a\r\nb\rc\0") == "a\nb\nc�"


def test_toml_metadata_block_events():
    source = '+++\ntemplate = "page"\n+++\n# intro\nHello\n'
    events = list(default_parser.iter_events(source))
    assert [e.kind for e in events[:3]] == [
        EventKind.METADATA_START,
        EventKind.TEXT,
        EventKind.METADATA_END,
    ]
    assert events[0].style == "+++"
    assert events[1].text == 'template = "page"\n'
    assert events[3].kind is EventKind.HEADING_START
    assert events[3].level == 1


def test_yaml_metadata_block_style():
    events = list(default_parser.iter_events("---\ntitle: Hi\n---\n# a\n"))
    assert events[0].kind is EventKind.METADATA_START
    assert events[0].style == "---"
    assert events[1].text == "title: Hi\n"


def test_metadata_block_only_at_document_start():
    source = "# a\n\n+++\nx = 1\n+++\n"
    assert EventKind.METADATA_START not in kinds(source)


def test_unclosed_metadata_block_is_plain_text():
    assert EventKind.METADATA_START not in kinds("+++\nx = 1\n")


def test_heading_text_and_flags():
    events = list(default_parser.iter_events("## Body {html .lead}\n"))
    start = events[0]
    assert start.kind is EventKind.HEADING_START
    assert start.level == 2
    assert start.flags == ("html",)
    assert events[1].kind is EventKind.TEXT
    assert events[1].text == "Body"
    assert events[-1].kind is EventKind.HEADING_END


def test_heading_attributes_rendered_on_tag():
    html = default_parser.md.render("# Title {#main .big}\n")
    assert html == '<h1 id="main" class="big">Title</h1>\n'


def test_heading_markup_yields_non_text_event():
    events = list(default_parser.iter_events("# a **b**\n"))
    inner = events[1:-1]
    assert any(event.kind is EventKind.OTHER for event in inner)


def test_body_events_carry_line_spans():
    source = "# a\nfirst line\nsecond line\n\nnext\n"
    events = list(default_parser.iter_events(source))
    spans = [e.span for e in events if e.kind is EventKind.OTHER and e.span]
    start, end = spans[0]
    assert source[start:end] == "first line\nsecond line\n"
    assert source[spans[-1][0]:spans[-1][1]] == "next\n"


def test_render_html_from_events():
    parser = MarkdownParser()
    events = [
        e
        for e in parser.iter_events("# a\nSome *emph* text\n")
        if e.kind is EventKind.OTHER
    ]
    assert parser.render_html(events) == "<p>Some <em>emph</em> text</p>\n"


def test_fenced_code_is_highlighted():
    html = default_parser.md.render("```python\nx = 1\n```\n")
    assert html.startswith('<pre class="highlight"><code class="language-python">')
    assert "<span" in html


def test_unknown_code_language_falls_back():
    html = default_parser.md.render("```nosuchlang\nx\n```\n")
    assert "<pre><code" in html
