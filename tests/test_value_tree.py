import pytest

from folio.value_tree import Cursor, Record, ValueTree


def test_single_entry_resolves_to_record():
    record = Record(children={"intro": ValueTree([Record("Hello")])})
    assert isinstance(record["intro"], Record)
    assert record["intro"].literal == "Hello"
    assert record["intro"][0] is record["intro"]


def test_multiple_entries_resolve_to_tree():
    tree = ValueTree([Record("Hello"), Record("World")])
    record = Record(children={"intro": tree})
    assert record["intro"] is tree
    assert [str(entry) for entry in record["intro"]] == ["Hello", "World"]
    assert record["intro"][1].literal == "World"


def test_record_index_other_than_zero_raises():
    with pytest.raises(IndexError):
        Record("x")[1]


def test_tree_rejects_name_lookup():
    with pytest.raises(TypeError):
        ValueTree([Record()])["intro"]


def test_missing_name_raises_key_error_and_get_defaults():
    record = Record()
    with pytest.raises(KeyError):
        record["nope"]
    assert record.get("nope", "fallback") == "fallback"


def test_record_truthiness_and_str():
    assert not Record()
    assert Record("")
    nested = Record(children={"a": ValueTree([Record("1")])})
    assert nested
    assert str(nested) == "{'a': [1]}"


def test_html_returns_literal_unescaped():
    assert Record("<em>x</em>").__html__() == "<em>x</em>"
    assert "&lt;" in Record(children={"a": ValueTree([Record("<b>")])}).__html__()


def test_cursor_appends_repeated_names():
    cursor = Cursor()
    cursor.descend("intro")
    cursor.set("Hello")
    cursor.truncate(0)
    cursor.descend("intro")
    cursor.set("World")

    root = cursor.root()
    assert root.to_python() == {"intro": ["Hello", "World"]}


def test_cursor_truncate_closes_nested_scopes():
    cursor = Cursor()
    cursor.descend("a")
    cursor.descend("b")
    cursor.set("deep")
    assert cursor.depth == 2
    cursor.truncate(0)
    cursor.descend("c")
    cursor.set("top")

    root = cursor.root()
    assert root["a"]["b"].literal == "deep"
    assert "c" not in root["a"]
    assert root["c"].literal == "top"


def test_cursor_step_out_restores_entry():
    cursor = Cursor()
    cursor.descend("list")
    cursor.truncate(0)
    cursor.descend("list")
    cursor.descend("child")
    cursor.step_out()
    cursor.set("second")
    assert cursor.root()["list"][1].literal == "second"


def test_map_literals_returns_copy():
    record = Record("a", {"b": ValueTree([Record("c"), Record(None)])})
    upper = record.map_literals(str.upper)
    assert upper.to_python() == {"_literal": "A", "b": ["C", None]}
    assert record.literal == "a"


def test_equality():
    assert Record("x") == Record("x")
    assert ValueTree([Record("x")]) == ValueTree([Record("x")])
    assert Record("x") != Record("y")
