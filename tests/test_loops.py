from arbor.compiler.loops import (
    INDEX_NAME,
    KEY_NAME,
    VALUE_NAME,
    MappingEntry,
    build_item_context,
    normalize_source,
)
from arbor.core.element import DirectiveValue


def test_normalize_source():
    assert normalize_source([1, 2]) == [1, 2]
    assert normalize_source((1, 2)) == [1, 2]
    assert normalize_source(3) == [0, 1, 2]
    assert normalize_source("2") == [0, 1]
    assert normalize_source(2.0) == [0, 1]
    assert normalize_source(-1) == []
    assert normalize_source(True) == []
    assert normalize_source("abc") == []
    assert normalize_source(None) == []
    assert normalize_source({"a": 1, "b": 2}) == [MappingEntry("a", 1), MappingEntry("b", 2)]
    assert normalize_source(x for x in "ab") == ["a", "b"]


def test_scalar_item_context():
    ctx = build_item_context(DirectiveValue(get="items"), "x", 2)
    assert ctx == {VALUE_NAME: "x", INDEX_NAME: 2}


def test_mapping_entry_context():
    ctx = build_item_context(DirectiveValue(get="scores"), MappingEntry("ann", 3), 0)
    assert ctx == {KEY_NAME: "ann", VALUE_NAME: 3, INDEX_NAME: 0}


def test_mapping_item_fields_are_flattened():
    ctx = build_item_context(DirectiveValue(get="users"), {"name": "ann"}, 1)
    assert ctx == {"name": "ann", INDEX_NAME: 1}


def test_alias_and_index_name():
    value = DirectiveValue(get="users", arg="user", index="i")
    ctx = build_item_context(value, {"name": "ann"}, 4)
    assert ctx == {"user": {"name": "ann"}, "i": 4}


def test_alias_wins_over_same_named_item_field():
    # The item itself has a field called like the alias
    value = DirectiveValue(get="rows", arg="row")
    item = {"row": "field value", "other": 1}
    ctx = build_item_context(value, item, 0)

    assert ctx["row"] is item
    assert "other" not in ctx
