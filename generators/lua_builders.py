"""
Builder emission.
Fixed structs get a single Create<Name> function that writes the struct inline back to front;
tables get Start/Add<Field>/Start<Field>Vector/End wrappers around the builder's slot API.
"""
from typing import List, Sequence

from schema_model import StructDef, FieldDef, BaseType, is_struct, is_array, inline_size, inline_alignment
from generators.lua_naming import normalized_name, accessor_name, argument_name
from generators.generator_utils import INDENT, END, UnsupportedTypeError, gen_method, gen_constant

LOOP_VARS = "jklmnopq"


def loop_var(depth: int) -> str:
    """Loop variable for the given array nesting level: _j, _k, _l, ..."""
    if depth >= len(LOOP_VARS):
        raise UnsupportedTypeError(f"Array nesting depth {depth} is too deep")
    return "_" + LOOP_VARS[depth]


def nested_prefix(prefix: str, field: FieldDef) -> str:
    return prefix + normalized_name(field) + "_"


def is_array_of_struct(field: FieldDef) -> bool:
    return is_array(field.type) and field.type.element == BaseType.STRUCT


# --- Fixed structs ---
def struct_builder_args(struct_def: StructDef, prefix: str = "") -> List[str]:
    """
    Flattened argument names of Create<Name>, in declaration order.
    Nested structs (and arrays of structs) are expanded in place, their leaves prefixed with the
    path of field names leading to them, e.g. 'pos_x' for field x of the struct in field pos.
    """
    args = []
    for field in struct_def.fields:
        if is_struct(field.type) or is_array_of_struct(field):
            args += struct_builder_args(field.type.struct_def, nested_prefix(prefix, field))
        else:
            args.append(prefix + argument_name(field))
    return args


def struct_builder_body(struct_def: StructDef, prefix: str = "", indices: Sequence[str] = (),
                        depth: int = 1) -> List[str]:
    indent = INDENT * depth
    lines = [f"{indent}builder:Prep({struct_def.minalign}, {struct_def.bytesize})"]
    subscript = ''.join(f"[{index}]" for index in indices)
    for field in reversed(struct_def.fields):
        if field.padding:
            lines.append(f"{indent}builder:Pad({field.padding})")
        if is_struct(field.type):
            lines += struct_builder_body(field.type.struct_def, nested_prefix(prefix, field), indices, depth)
        elif is_array(field.type):
            lines += array_builder_body(field, prefix, indices, depth)
        else:
            lines.append(f"{indent}builder:Prepend{gen_method(field.type)}({prefix}{argument_name(field)}{subscript})")
    return lines


def array_builder_body(field: FieldDef, prefix: str, indices: Sequence[str], depth: int) -> List[str]:
    indent = INDENT * depth
    var = loop_var(len(indices))
    inner = tuple(indices) + (var,)
    element_type = field.type.vector_type()
    lines = [f"{indent}for {var} = {field.type.fixed_length}, 1, -1 do"]
    if element_type.base_type == BaseType.STRUCT:
        lines += struct_builder_body(field.type.struct_def, nested_prefix(prefix, field), inner, depth + 1)
    else:
        subscript = ''.join(f"[{index}]" for index in inner)
        lines.append(f"{indent}{INDENT}builder:Prepend{gen_method(element_type)}"
                     f"({prefix}{argument_name(field)}{subscript})")
    lines.append(f"{indent}{END}")
    return lines


def gen_struct_builder(struct_def: StructDef) -> List[str]:
    name = normalized_name(struct_def)
    args = ''.join(", " + arg for arg in struct_builder_args(struct_def))
    lines = [f"function {name}.Create{name}(builder{args})"]
    lines += struct_builder_body(struct_def)
    lines += [f"{INDENT}return builder:Offset()", END]
    return lines


# --- Tables ---
def get_start_of_table(struct_def: StructDef) -> str:
    # The slot count includes deprecated fields so that indices stay stable.
    return f"function {normalized_name(struct_def)}.Start(builder) builder:StartObject({len(struct_def.fields)}) end"


def build_field_of_table(struct_def: StructDef, field: FieldDef, index: int) -> str:
    arg = argument_name(field)
    return (f"function {normalized_name(struct_def)}.Add{accessor_name(field)}(builder, {arg}) "
            f"builder:Prepend{gen_method(field.type)}Slot({index}, {arg}, {gen_constant(field.constant)}) end")


def build_vector_of_table(struct_def: StructDef, field: FieldDef) -> str:
    vector_type = field.type.vector_type()
    return (f"function {normalized_name(struct_def)}.Start{accessor_name(field)}Vector(builder, numElems) "
            f"return builder:StartVector({inline_size(vector_type)}, numElems, {inline_alignment(vector_type)}) end")


def get_end_offset_on_table(struct_def: StructDef) -> str:
    return f"function {normalized_name(struct_def)}.End(builder) return builder:EndObject() end"


def gen_table_builders(struct_def: StructDef) -> List[str]:
    lines = [get_start_of_table(struct_def)]
    for index, field in enumerate(struct_def.fields):
        if field.deprecated:
            continue
        if field.type.base_type == BaseType.ARRAY:
            raise UnsupportedTypeError(f"Array field {struct_def.name}.{field.name} in a table")
        lines.append(build_field_of_table(struct_def, field, index))
        if field.type.base_type == BaseType.VECTOR:
            lines.append(build_vector_of_table(struct_def, field))
    lines.append(get_end_offset_on_table(struct_def))
    return lines


def gen_builders(struct_def: StructDef) -> List[str]:
    if struct_def.fixed:
        return gen_struct_builder(struct_def)
    return gen_table_builders(struct_def)
