from pathlib import Path

import pytest

from folio.config import BuildConfig
from folio.errors import ConfigError, ConflictError
from folio.targets import Target, discover_targets, load_target, locate_targets, validate_targets


def write_marker(directory: Path, route: str, template: str = "page.html") -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    marker = directory / "index.toml"
    marker.write_text(f'path = "{route}"\ntemplate = "{template}"\n', encoding="utf-8")
    return marker


def make_config(tmp_path: Path) -> BuildConfig:
    (tmp_path / "site").mkdir(exist_ok=True)
    return BuildConfig.from_mapping(tmp_path, {})


def test_locate_targets_in_path_order(tmp_path):
    config = make_config(tmp_path)
    write_marker(tmp_path / "site" / "b", "/b")
    write_marker(tmp_path / "site" / "a", "/a")
    write_marker(tmp_path / "site", "/")
    (tmp_path / "site" / "a" / "other.toml").write_text("x = 1", encoding="utf-8")

    targets = locate_targets(config)
    assert [t.destination_route for t in targets] == ["/a", "/b", "/"]
    assert targets[0].source_dir == tmp_path / "site" / "a"
    assert targets[0].template_name == "page.html"


def test_custom_index_name(tmp_path):
    (tmp_path / "site").mkdir()
    (tmp_path / "site" / "page.toml").write_text(
        'path = "/x"\ntemplate = "t.html"\n', encoding="utf-8"
    )
    config = BuildConfig.from_mapping(tmp_path, {"index_name": "page.toml"})
    assert [t.route for t in locate_targets(config)] == ["x"]


def test_conflicting_routes_name_both_sources(tmp_path):
    config = make_config(tmp_path)
    first = write_marker(tmp_path / "site" / "a", "/about")
    second = write_marker(tmp_path / "site" / "b", "about/")

    with pytest.raises(ConflictError) as excinfo:
        discover_targets(config)
    error = excinfo.value
    assert error.first_source == first
    assert error.second_source == second
    assert str(first) in str(error)
    assert str(second) in str(error)


def test_validate_accepts_distinct_routes():
    validate_targets(
        [
            Target(Path("a/index.toml"), "/a", "t"),
            Target(Path("b/index.toml"), "/b", "t"),
        ]
    )


def test_missing_field_raises_config_error(tmp_path):
    marker = tmp_path / "index.toml"
    marker.write_text('path = "/"\n', encoding="utf-8")
    with pytest.raises(ConfigError, match="template"):
        load_target(marker)


def test_non_string_field_raises_config_error(tmp_path):
    marker = tmp_path / "index.toml"
    marker.write_text('path = 1\ntemplate = "t"\n', encoding="utf-8")
    with pytest.raises(ConfigError, match="path"):
        load_target(marker)


def test_invalid_toml_raises_config_error(tmp_path):
    marker = tmp_path / "index.toml"
    marker.write_text("path = \n", encoding="utf-8")
    with pytest.raises(ConfigError) as excinfo:
        load_target(marker)
    assert excinfo.value.source_path == marker


def test_missing_source_dir_raises(tmp_path):
    config = BuildConfig.from_mapping(tmp_path, {})
    with pytest.raises(ConfigError):
        locate_targets(config)


def test_target_output_dir(tmp_path):
    assert Target(Path("x"), "/", "t").output_dir(tmp_path) == tmp_path
    assert Target(Path("x"), "/docs/api/", "t").output_dir(tmp_path) == tmp_path / "docs" / "api"


def test_marker_with_invalid_utf8_raises_config_error(tmp_path):
    marker = tmp_path / "index.toml"
    marker.write_bytes(b'path = "/a\xff"\ntemplate = "page.html"\n')
    with pytest.raises(ConfigError, match="not valid UTF-8") as excinfo:
        load_target(marker)
    assert excinfo.value.source_path == marker
    assert isinstance(excinfo.value.original_error, UnicodeDecodeError)
