import hashlib
from pathlib import Path

import pytest

from folio.config import BuildConfig
from folio.errors import BuildIOError, ParseError, RenderError, UnknownTemplateError
from folio.renderer import _format_error_message, render_pass, render_target
from folio.targets import Target


def make_target(tmp_path: Path, template_body: str, route: str = "/page") -> tuple[Target, BuildConfig]:
    site = tmp_path / "site"
    target_dir = site / "page"
    target_dir.mkdir(parents=True, exist_ok=True)
    marker = target_dir / "index.toml"
    marker.write_text(f'path = "{route}"\ntemplate = "~/page.html"\n', encoding="utf-8")
    (target_dir / "page.html").write_text(template_body, encoding="utf-8")
    return Target(marker, route, "~/page.html"), BuildConfig.from_mapping(tmp_path, {})


def test_discovery_pass_collects_inputs_without_hash(tmp_path):
    target, config = make_target(
        tmp_path, "{{ stylesheet('a.css') }}{{ stylesheet('b.css') }}{{ stylesheet_link() }}"
    )
    output, registry = render_pass(target, config, {})
    assert registry.requested is True
    assert registry.inputs == {target.source_dir / "a.css", target.source_dir / "b.css"}
    assert registry.hash is None
    assert "hash=\"" in output


def test_two_pass_render_embeds_bundle_hash(tmp_path):
    target, config = make_target(
        tmp_path,
        "<head>{{ stylesheet('b.css') }}{{ stylesheet('a.css') }}{{ stylesheet_link() }}</head>",
    )
    (target.source_dir / "a.css").write_text("a {}\n", encoding="utf-8")
    (target.source_dir / "b.css").write_text("b {}\n", encoding="utf-8")

    dest = render_target(target, config, {})

    bundle = tmp_path / "output" / "page" / "index.css"
    assert bundle.read_text(encoding="utf-8") == "a {}\nb {}\n"
    digest = hashlib.sha1(bundle.read_bytes()).hexdigest()
    assert dest == tmp_path / "output" / "page" / "index.html"
    assert dest.read_text(encoding="utf-8") == (
        f'<head><link rel="stylesheet" href="/page/index.css?hash={digest}"></head>'
    )


def test_no_bundle_when_not_requested(tmp_path):
    target, config = make_target(tmp_path, "{{ stylesheet('a.css') }}plain")
    dest = render_target(target, config, {})
    assert dest.read_text(encoding="utf-8") == "plain"
    assert not (dest.parent / "index.css").exists()


def test_root_route_writes_to_output_root(tmp_path):
    target, config = make_target(tmp_path, "home", route="/")
    assert render_target(target, config, {}) == tmp_path / "output" / "index.html"


def test_hash_dependent_inputs_are_rejected(tmp_path):
    target, config = make_target(
        tmp_path,
        "{% set link = stylesheet_link() %}"
        "{% if not link.endswith('hash=\">') %}{{ stylesheet('late.css') }}{% endif %}"
        "{{ stylesheet('a.css') }}",
    )
    (target.source_dir / "a.css").write_text("a {}", encoding="utf-8")
    with pytest.raises(RenderError, match="bundle hash") as excinfo:
        render_target(target, config, {})
    assert excinfo.value.route == "page"


def test_unknown_template(tmp_path):
    target, config = make_target(tmp_path, "")
    missing = Target(target.source_config_path, "/page", "nope.html")
    with pytest.raises(UnknownTemplateError) as excinfo:
        render_target(missing, config, {})
    assert excinfo.value.source_path == target.source_config_path


def test_template_failure_is_render_error_with_route(tmp_path):
    target, config = make_target(tmp_path, "{{ 1 / 0 }}")
    with pytest.raises(RenderError) as excinfo:
        render_target(target, config, {})
    error = excinfo.value
    assert error.route == "page"
    assert "[page]" in str(error)
    assert str(target.source_config_path) in str(error)
    assert isinstance(error.__cause__, ZeroDivisionError)


def test_syntax_error_is_render_error(tmp_path):
    target, config = make_target(tmp_path, "{% if %}")
    with pytest.raises(RenderError, match="syntax error"):
        render_target(target, config, {})


def test_included_template_missing(tmp_path):
    target, config = make_target(tmp_path, "{% include 'partial.html' %}")
    with pytest.raises(UnknownTemplateError, match="partial.html"):
        render_target(target, config, {})


def test_format_error_message():
    assert _format_error_message(TypeError("bad")) == "Type error: bad"
    assert _format_error_message(AttributeError("x")) == "Attribute error: x"
    assert _format_error_message(KeyError("k")) == "KeyError: 'k'"


def test_block_errors_name_the_target(tmp_path):
    target, config = make_target(
        tmp_path, "{{ blocks('blocks', 'block.html') }}", route="/about/"
    )
    blocks = target.source_dir / "blocks"
    blocks.mkdir()
    (blocks / "a.md").write_text("# a **b**\n", encoding="utf-8")

    with pytest.raises(ParseError) as excinfo:
        render_target(target, config, {})
    error = excinfo.value
    assert error.source_path == blocks / "a.md"
    assert error.route == "about"
    assert error.target_path == target.source_config_path
    assert "Heading must contain only text" in str(error)
    assert f"in target `/about` from {target.source_config_path}" in str(error)


def test_bundle_errors_name_the_target(tmp_path):
    target, config = make_target(
        tmp_path, "{{ stylesheet('bad.css') }}{{ stylesheet_link() }}"
    )
    (target.source_dir / "bad.css").write_bytes(b"a { content: '\xff'; }")

    with pytest.raises(BuildIOError) as excinfo:
        render_target(target, config, {})
    assert excinfo.value.source_path == target.source_dir / "bad.css"
    assert excinfo.value.route == "page"
    assert excinfo.value.target_path == target.source_config_path


def test_template_with_invalid_utf8(tmp_path):
    target, config = make_target(tmp_path, "")
    (target.source_dir / "page.html").write_bytes(b"<p>\xff</p>")
    with pytest.raises(BuildIOError, match="not valid UTF-8") as excinfo:
        render_target(target, config, {})
    assert excinfo.value.source_path == target.source_config_path
