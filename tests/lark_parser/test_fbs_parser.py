import pytest
from lark.exceptions import UnexpectedInput

from lark_parser import parse_fbs, Metadata


def _by_kind(decls, kind):
    return [decl for decl in decls if decl['kind'] == kind]


def test_top_level_declarations():
    text = '''
    include "other.fbs";
    namespace MyGame.Example;
    attribute "priority";
    root_type Monster;
    file_identifier "MONS";
    file_extension "mon";
    '''
    decls = parse_fbs(text)
    kinds = [decl['kind'] for decl in decls]
    assert kinds == ['include', 'namespace', 'attribute', 'root_type', 'file_identifier', 'file_extension']
    assert decls[0]['path'] == 'other.fbs'
    assert decls[1]['components'] == ['MyGame', 'Example']
    assert decls[2]['name'] == 'priority'
    assert decls[3]['name'] == 'Monster'
    assert decls[4]['value'] == 'MONS'


def test_table_fields_defaults_and_metadata():
    text = '''
    table Monster {
        mana:short = 150;
        name:string;
        friendly:bool = false (deprecated, priority: 1);
        inventory:[ubyte];
        pos:MyGame.Vec3;
        speed:float = -1.5e3;
        flags:uint = 0xFF;
    }
    '''
    table = parse_fbs(text)[0]
    assert table['kind'] == 'table'
    assert table['name'] == 'Monster'
    fields = {field['name']: field for field in table['fields']}
    assert fields['mana']['type'] == {'kind': 'named', 'name': 'short'}
    assert fields['mana']['default'] == '150'
    assert fields['name']['default'] is None
    assert fields['friendly']['default'] == 'false'
    assert isinstance(fields['friendly']['attributes'], Metadata)
    assert fields['friendly']['attributes'] == {'deprecated': None, 'priority': '1'}
    assert fields['inventory']['type'] == {'kind': 'vector', 'name': 'ubyte'}
    assert fields['pos']['type']['name'] == 'MyGame.Vec3'
    assert fields['speed']['default'] == '-1.5e3'
    assert fields['flags']['default'] == '0xFF'


def test_struct_with_arrays_and_force_align():
    text = '''
    struct Vec3 (force_align: 16) {
        x:float;
        m:[int:4];
    }
    '''
    struct = parse_fbs(text)[0]
    assert struct['kind'] == 'struct'
    assert struct['attributes'] == {'force_align': '16'}
    assert struct['fields'][1]['type'] == {'kind': 'array', 'name': 'int', 'length': '4'}


def test_enum_values_and_trailing_comma():
    text = '''
    enum Color : ubyte (bit_flags) {
        Red = 0,
        Green,
        Blue = 3,
    }
    enum Race : byte { None = -1, Human }
    '''
    color, race = parse_fbs(text)
    assert color['underlying'] == 'ubyte'
    assert 'bit_flags' in color['attributes']
    assert [(v['name'], v['value']) for v in color['values']] == [('Red', '0'), ('Green', None), ('Blue', '3')]
    assert [(v['name'], v['value']) for v in race['values']] == [('None', '-1'), ('Human', None)]


def test_union_members_and_aliases():
    text = 'union Any { Monster, Shared.Weapon, Label: string }'
    union = parse_fbs(text)[0]
    assert union['kind'] == 'union'
    members = [(m['name'], m['type']) for m in union['members']]
    assert members == [(None, 'Monster'), (None, 'Shared.Weapon'), ('Label', 'string')]


def test_empty_table():
    decls = parse_fbs('table Empty {}')
    assert decls[0]['fields'] == []


def test_doc_comments_attach_to_following_declaration():
    text = '''// plain comment, not documentation
/// The monster.
/// Second line.
table Monster {
    /// Hit points.
    hp:short;
    // not a doc comment
    mana:short;
}
/* block comment */
enum Color : byte {
    /// The red one.
    Red
}
'''
    monster, color = parse_fbs(text)
    assert monster['doc'] == ['The monster.', 'Second line.']
    assert monster['fields'][0]['doc'] == ['Hit points.']
    assert monster['fields'][1]['doc'] == []
    assert color['doc'] == []
    assert color['values'][0]['doc'] == ['The red one.']


def test_line_numbers():
    text = 'namespace A;\n\ntable T {\n  a:int;\n}\n'
    namespace, table = parse_fbs(text)
    assert namespace['line'] == 1
    assert table['line'] == 3
    assert table['fields'][0]['line'] == 4


@pytest.mark.parametrize("text", [
    "table T { a int; }",
    "table T { a:int }",
    "struct { a:int; }",
    "enum E { A }",
])
def test_syntax_errors_raise(text):
    with pytest.raises(UnexpectedInput):
        parse_fbs(text)


if __name__ == "__main__":
    pytest.main([__file__])
