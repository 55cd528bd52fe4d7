import pytest

from generators.lua_naming import (
    LUA_KEYWORDS, escape_keyword, normalized_name, normalized_meta_name, make_camel, accessor_name, argument_name,
)
from schema_model import StructDef, FieldDef, Type, BaseType


def test_all_lua_keywords_are_escaped():
    assert len(LUA_KEYWORDS) == 22
    for keyword in LUA_KEYWORDS:
        assert escape_keyword(keyword) == "_" + keyword


@pytest.mark.parametrize("name", ["Monster", "self", "type", "End", "ends", "_end", "print"])
def test_non_keywords_are_unchanged(name):
    assert escape_keyword(name) == name


def test_escaped_keyword_collides_with_underscore_name():
    # Not detected; both spellings map to the same identifier.
    assert escape_keyword("end") == escape_keyword("_end")


def test_normalized_and_meta_names():
    assert normalized_name(StructDef("Monster")) == "Monster"
    assert normalized_meta_name(StructDef("Monster")) == "Monster_mt"
    assert normalized_name(StructDef("repeat")) == "_repeat"
    assert normalized_meta_name(StructDef("repeat")) == "_repeat_mt"


@pytest.mark.parametrize("name, first, expected", [
    ("test_type", True, "TestType"),
    ("test_type", False, "testType"),
    ("testarrayofstring", True, "Testarrayofstring"),
    ("max_speed_", True, "MaxSpeed_"),
    ("_end", False, "End"),
    ("a__b", True, "A_b"),
    ("_end", True, "_end"),
    ("", True, ""),
])
def test_make_camel(name, first, expected):
    assert make_camel(name, first) == expected


def test_field_accessor_and_argument_names():
    field = FieldDef("max_speed", Type(BaseType.FLOAT))
    assert accessor_name(field) == "MaxSpeed"
    assert argument_name(field) == "maxSpeed"
    keyword = FieldDef("function", Type(BaseType.STRING))
    assert accessor_name(keyword) == "_function"
    assert argument_name(keyword) == "Function"
