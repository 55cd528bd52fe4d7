"""
Tests for schema loading: include handling, name resolution, defaults and the layout values
(struct offsets, padding, sizes, table slots) the Lua generator relies on.
"""
import os
import pytest

from schema_loader import SchemaError, load_schema_file, load_schema_text
from schema_model import BaseType
from tests.test_utils import load_fixture, lookup, field_of, fbs_path


def test_monster_fixture_loads():
    schema = load_fixture("monster.fbs")
    assert schema.root_type is lookup(schema, "MyGame.Example.Monster")
    assert schema.file_identifier == "MONS"
    assert len(schema.includes) == 1
    assert schema.includes[0].endswith("weapon.fbs")


def test_included_definitions_are_marked_generated():
    schema = load_fixture("monster.fbs")
    weapon = lookup(schema, "MyGame.Shared.Weapon")
    monster = lookup(schema, "MyGame.Example.Monster")
    assert weapon.generated
    assert not monster.generated


def test_declaration_order_is_kept():
    schema = load_fixture("monster.fbs")
    assert [e.name for e in schema.enums] == ["Color", "Race", "Any", "Named"]
    assert [s.name for s in schema.structs] == ["Weapon", "Test", "Vec3", "Monster"]


def test_struct_layout_matches_flatbuffers():
    schema = load_fixture("monster.fbs")
    test = lookup(schema, "MyGame.Example.Test")
    assert (test.minalign, test.bytesize) == (2, 4)
    assert [(f.name, f.offset, f.padding) for f in test.fields] == [("a", 0, 0), ("b", 2, 1)]

    vec3 = lookup(schema, "MyGame.Example.Vec3")
    assert (vec3.minalign, vec3.bytesize) == (8, 32)
    layout = [(f.name, f.offset, f.padding) for f in vec3.fields]
    assert layout == [
        ("x", 0, 0),
        ("y", 4, 0),
        ("z", 8, 4),
        ("test1", 16, 0),
        ("test2", 24, 1),
        ("test3", 26, 2),
    ]


def test_array_struct_layout():
    schema = load_fixture("arrays.fbs")
    nested = lookup(schema, "MyGame.Arrays.NestedStruct")
    assert (nested.minalign, nested.bytesize) == (8, 32)
    assert [(f.name, f.offset) for f in nested.fields] == [("a", 0), ("b", 8), ("c", 9), ("d", 16)]
    assert field_of(schema, "MyGame.Arrays.NestedStruct", "c").padding == 5

    array_struct = lookup(schema, "MyGame.Arrays.ArrayStruct")
    assert (array_struct.minalign, array_struct.bytesize) == (8, 160)
    b = field_of(schema, "MyGame.Arrays.ArrayStruct", "b")
    assert b.type.base_type == BaseType.ARRAY
    assert b.type.element == BaseType.INT
    assert b.type.fixed_length == 15


def test_table_slot_offsets():
    schema = load_fixture("monster.fbs")
    monster = lookup(schema, "MyGame.Example.Monster")
    for index, field in enumerate(monster.fields):
        assert field.offset == 4 + 2 * index, field.name


def test_union_type_field_is_injected_before_union():
    schema = load_fixture("monster.fbs")
    monster = lookup(schema, "MyGame.Example.Monster")
    names = [f.name for f in monster.fields]
    assert names.index("test_type") == names.index("test") - 1
    assert names.index("arsenal_type") == names.index("arsenal") - 1
    test_type = monster.find_field("test_type")
    assert test_type.type.base_type == BaseType.UTYPE
    assert test_type.type.enum_def is lookup(schema, "MyGame.Example.Any")
    arsenal_type = monster.find_field("arsenal_type")
    assert arsenal_type.type.base_type == BaseType.VECTOR
    assert arsenal_type.type.element == BaseType.UTYPE


def test_union_values():
    schema = load_fixture("monster.fbs")
    any_union = lookup(schema, "MyGame.Example.Any")
    assert any_union.is_union
    assert any_union.underlying_type == BaseType.UTYPE
    assert [(v.name, v.value) for v in any_union.values] == [("NONE", 0), ("Monster", 1), ("Weapon", 2), ("Vec3", 3)]
    named = lookup(schema, "MyGame.Example.Named")
    label = named.find_by_name("Label")
    assert label.union_type.base_type == BaseType.STRING


def test_enum_values_and_bit_flags():
    schema = load_fixture("monster.fbs")
    color = lookup(schema, "MyGame.Example.Color")
    assert [(v.name, v.value) for v in color.values] == [("Red", 1), ("Green", 2), ("Blue", 8)]
    assert color.underlying_type == BaseType.UCHAR
    assert color.doc == ["Composite components of Monster color."]
    race = lookup(schema, "MyGame.Example.Race")
    assert [(v.name, v.value) for v in race.values] == [("None", -1), ("Human", 0), ("Dwarf", 1), ("Elf", 2)]


def test_defaults():
    schema = load_fixture("monster.fbs")
    owner = "MyGame.Example.Monster"
    assert field_of(schema, owner, "mana").constant == "150"
    assert field_of(schema, owner, "name").constant == "0"
    assert field_of(schema, owner, "color").constant == "8"
    assert field_of(schema, owner, "race").constant == "-1"
    assert field_of(schema, owner, "testbool").constant == "1"
    assert field_of(schema, owner, "friendly").constant == "0"
    assert field_of(schema, owner, "friendly").deprecated
    assert field_of(schema, owner, "max_speed").constant == "12.5"


def test_float_defaults():
    schema = load_schema_text('''
    table T {
        a:float;
        b:double = 1;
        c:float = inf;
        d:double = -inf;
        e:float = nan;
    }
    ''')
    t = lookup(schema, "T")
    assert [f.constant for f in t.fields] == ["0.0", "1.0", "math.huge", "-math.huge", "0/0"]


def test_field_docs():
    schema = load_fixture("monster.fbs")
    field = field_of(schema, "MyGame.Example.Monster", "testarrayoftables")
    assert field.doc == [
        "an example documentation comment: this will end up in the generated code",
        "multiline too",
    ]


def test_namespace_resolution_searches_outwards():
    schema = load_schema_text('''
    namespace A;
    table Outer { x:int; }
    namespace A.B;
    table Inner { o:Outer; q:A.Outer; }
    ''')
    outer = lookup(schema, "A.Outer")
    inner = lookup(schema, "A.B.Inner")
    assert inner.find_field("o").type.struct_def is outer
    assert inner.find_field("q").type.struct_def is outer


def test_include_dirs(temp_dir):
    schema_path = os.path.join(temp_dir, "main.fbs")
    with open(schema_path, "w") as f:
        f.write('include "weapon.fbs";\nnamespace Main;\ntable Holder { w:MyGame.Shared.Weapon; }\n')
    schema = load_schema_file(schema_path, include_dirs=[os.path.dirname(fbs_path("include/weapon.fbs"))])
    holder = lookup(schema, "Main.Holder")
    assert holder.find_field("w").type.struct_def is lookup(schema, "MyGame.Shared.Weapon")


@pytest.mark.parametrize("text, message", [
    ('table T { a:Missing; }', "Unknown type 'Missing'"),
    ('table T { a:int; }\ntable T { b:int; }', "Duplicate definition 'T'"),
    ('table T { a:int; a:short; }', "Duplicate field 'a'"),
    ('struct S { name:string; }', "variable-size type"),
    ('struct S { a:int = 3; }', "cannot have a default"),
    ('enum E : byte { A }\ntable T { e:E = Z; }', "Unknown enum value 'Z'"),
    ('enum E : byte { A = 1 }\ntable T { e:E; }', "Default value 0"),
    ('enum E : float { A }', "integer underlying type"),
    ('enum E : byte { A = 200 }', "does not fit in byte"),
    ('table T { a:[int:3]; }', "only allowed in structs"),
    ('struct S (force_align: 3) { a:int; }', "force_align"),
    ('struct S { s:S; }', "contains itself"),
    ('table T { a:int (id: 0); }', "id attribute"),
    ('file_identifier "TOOLONG";', "exactly 4 characters"),
    ('table T { a:int; }\nroot_type Missing;', "Unknown type 'Missing'"),
    ('struct S { a:int; }\nroot_type S;', "must be a table"),
    ('table T { a:int }', "Syntax error"),
])
def test_schema_errors(text, message):
    with pytest.raises(SchemaError) as excinfo:
        load_schema_text(text)
    assert message in str(excinfo.value)


def test_schema_error_carries_location():
    with pytest.raises(SchemaError) as excinfo:
        load_schema_text('namespace N;\n\ntable T {\n  a:Missing;\n}\n', file="broken.fbs")
    assert excinfo.value.file == "broken.fbs"
    assert excinfo.value.line == 4
    assert str(excinfo.value).startswith("broken.fbs:4: ")


def test_missing_include():
    with pytest.raises(SchemaError) as excinfo:
        load_schema_text('include "does_not_exist.fbs";')
    assert "Unable to locate include file" in str(excinfo.value)


def test_verbose_loading_prints_debug(capsys):
    load_fixture("monster.fbs", verbose=True)
    out = capsys.readouterr().out
    assert "[DEBUG] Parsing schema:" in out
    assert "weapon.fbs" in out


if __name__ == "__main__":
    pytest.main([__file__])
