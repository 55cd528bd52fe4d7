import os
import json

from schema_debug import format_schema, pretty_print_schema, schema_to_dict
from tests.test_utils import load_fixture


def test_format_schema_lists_definitions():
    text = format_schema(load_fixture("monster.fbs"))
    assert text.splitlines()[0].startswith("Schema: ")
    assert "root_type: MyGame.Example.Monster" in text
    assert "file_identifier: MONS" in text
    assert "Struct: MyGame.Example.Vec3 [minalign=8, bytesize=32]" in text
    assert "Table: MyGame.Shared.Weapon (included)" in text
    assert "  Field: test3: MyGame.Example.Test (offset=26, default=0, padding=2)" in text
    assert "  Field: friendly: bool (offset=12, default=0, deprecated)" in text
    assert "  Field: inventory: [ubyte] (offset=14, default=0)" in text
    assert "Union: MyGame.Example.Any : utype" in text
    assert "  Value: Weapon = 2 -> MyGame.Shared.Weapon" in text
    assert "  Value: Label = 1 -> string" in text
    assert "  Value: Blue = 8" in text


def test_format_schema_arrays():
    text = format_schema(load_fixture("arrays.fbs"))
    assert "  Field: b: [int:15] (offset=4, default=0)" in text
    assert "  Field: d: [MyGame.Arrays.NestedStruct:2] (offset=72, default=0)" in text
    assert "  Field: c: [MyGame.Arrays.TestEnum(byte):2] (offset=9, default=0, padding=5)" in text


def test_schema_to_dict_references_by_name():
    data = schema_to_dict(load_fixture("monster.fbs"))
    monster = next(s for s in data['structs'] if s['name'] == "MyGame.Example.Monster")
    enemy = next(f for f in monster['fields'] if f['name'] == "enemy")
    assert enemy['type'] == {'base_type': 'STRUCT', 'struct': "MyGame.Example.Monster"}
    assert 'minalign' not in monster
    # The dump must be plain JSON
    json.dumps(data)


def test_pretty_print_schema_writes_json(temp_dir, capsys):
    path = pretty_print_schema(load_fixture("monster.fbs"), "monster_schema.json", temp_dir)
    assert path == os.path.join(temp_dir, "monster_schema.json")
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    assert data['root_type'] == "MyGame.Example.Monster"
    assert data['file_identifier'] == "MONS"
    assert "[DEBUG] Schema pretty-printed to" in capsys.readouterr().out
