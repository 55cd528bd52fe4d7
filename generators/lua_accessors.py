"""
Accessor emission: one read method per non-deprecated field, chosen by the field's type variant and
by whether the owning record is a fixed struct (inline, no presence checks) or a table (slot lookup
through the vtable, guarded by a presence check).
"""
from typing import List

from schema_model import StructDef, FieldDef, BaseType, is_scalar, inline_size
from generators.lua_naming import normalized_meta_name, accessor_name
from generators.generator_utils import (
    INDENT, END, SELF_DATA, SELF_DATA_POS, SELF_DATA_BYTES,
    UnsupportedTypeError, gen_getter, gen_comment, field_module_path, gen_constant,
)

I2 = INDENT * 2


def gen_receiver(struct_def: StructDef, method: str, params: str = "") -> str:
    return f"function {normalized_meta_name(struct_def)}:{method}({params})"


def offset_prefix(field: FieldDef) -> List[str]:
    """Resolve the field's slot once and open the presence branch."""
    return [
        f"{INDENT}local o = {SELF_DATA}:Offset({field.offset})",
        f"{INDENT}if o ~= 0 then",
    ]


def default_literal(field: FieldDef) -> str:
    if field.type.base_type == BaseType.BOOL:
        return "false" if field.constant == "0" else "true"
    return gen_constant(field.constant)


def get_scalar_field_of_struct(struct_def: StructDef, field: FieldDef) -> List[str]:
    getter = gen_getter(field.type)
    return [
        gen_receiver(struct_def, accessor_name(field)),
        f"{INDENT}return {getter}{SELF_DATA_POS} + {field.offset})",
        END,
    ]


def get_scalar_field_of_table(struct_def: StructDef, field: FieldDef) -> List[str]:
    getter = f"{gen_getter(field.type)}o + {SELF_DATA_POS})"
    if field.type.base_type == BaseType.BOOL:
        getter = f"({getter} ~= 0)"
    lines = [gen_receiver(struct_def, accessor_name(field))]
    lines += offset_prefix(field)
    lines += [
        f"{I2}return {getter}",
        f"{INDENT}{END}",
        f"{INDENT}return {default_literal(field)}",
        END,
    ]
    return lines


def get_struct_field_of_struct(struct_def: StructDef, field: FieldDef) -> List[str]:
    # Nested structs are laid out inline: no indirection, the address is static.
    return [
        gen_receiver(struct_def, accessor_name(field), "obj"),
        f"{INDENT}obj = obj or require('{field_module_path(field)}').New()",
        f"{INDENT}obj:Init({SELF_DATA_BYTES}, {SELF_DATA_POS} + {field.offset})",
        f"{INDENT}return obj",
        END,
    ]


def get_struct_field_of_table(struct_def: StructDef, field: FieldDef) -> List[str]:
    lines = [gen_receiver(struct_def, accessor_name(field))]
    lines += offset_prefix(field)
    if field.type.struct_def.fixed:
        lines.append(f"{I2}local x = o + {SELF_DATA_POS}")
    else:
        lines.append(f"{I2}local x = {SELF_DATA}:Indirect(o + {SELF_DATA_POS})")
    lines += [
        f"{I2}local obj = require('{field_module_path(field)}').New()",
        f"{I2}obj:Init({SELF_DATA_BYTES}, x)",
        f"{I2}return obj",
        f"{INDENT}{END}",
        END,
    ]
    return lines


def get_string_field(struct_def: StructDef, field: FieldDef) -> List[str]:
    # No return after the branch: an absent string reads as nil.
    lines = [gen_receiver(struct_def, accessor_name(field))]
    lines += offset_prefix(field)
    lines += [
        f"{I2}return {gen_getter(field.type)}o + {SELF_DATA_POS})",
        f"{INDENT}{END}",
        END,
    ]
    return lines


def get_union_field(struct_def: StructDef, field: FieldDef) -> List[str]:
    lines = [gen_receiver(struct_def, accessor_name(field))]
    lines += offset_prefix(field)
    lines += [
        f"{I2}local obj = flatbuffers.view.New(require('flatbuffers.binaryarray').New(0), 0)",
        f"{I2}{gen_getter(field.type)}obj, o)",
        f"{I2}return obj",
        f"{INDENT}{END}",
        END,
    ]
    return lines


def get_member_of_vector_of_struct(struct_def: StructDef, field: FieldDef) -> List[str]:
    vector_type = field.type.vector_type()
    lines = [gen_receiver(struct_def, accessor_name(field), "j")]
    lines += offset_prefix(field)
    lines += [
        f"{I2}local x = {SELF_DATA}:Vector(o)",
        f"{I2}x = x + ((j-1) * {inline_size(vector_type)})",
    ]
    if not vector_type.struct_def.fixed:
        lines.append(f"{I2}x = {SELF_DATA}:Indirect(x)")
    lines += [
        f"{I2}local obj = require('{field_module_path(field)}').New()",
        f"{I2}obj:Init({SELF_DATA_BYTES}, x)",
        f"{I2}return obj",
        f"{INDENT}{END}",
        END,
    ]
    return lines


def get_member_of_vector_of_union(struct_def: StructDef, field: FieldDef) -> List[str]:
    # Each element is an offset to the payload; the returned view sits on the payload itself.
    lines = [gen_receiver(struct_def, accessor_name(field), "j")]
    lines += offset_prefix(field)
    lines += [
        f"{I2}local x = {SELF_DATA}:Vector(o)",
        f"{I2}x = x + ((j-1) * {inline_size(field.type.vector_type())})",
        f"{I2}return flatbuffers.view.New({SELF_DATA_BYTES}, {SELF_DATA}:Indirect(x))",
        f"{INDENT}{END}",
        END,
    ]
    return lines


def get_member_of_vector_of_non_struct(struct_def: StructDef, field: FieldDef) -> List[str]:
    vector_type = field.type.vector_type()
    lines = [gen_receiver(struct_def, accessor_name(field), "j")]
    lines += offset_prefix(field)
    lines += [
        f"{I2}local a = {SELF_DATA}:Vector(o)",
        f"{I2}return {gen_getter(field.type)}a + ((j-1) * {inline_size(vector_type)}))",
        f"{INDENT}{END}",
    ]
    if vector_type.base_type == BaseType.STRING:
        lines.append(f"{INDENT}return ''")
    else:
        lines.append(f"{INDENT}return 0")
    lines.append(END)
    return lines


def get_member_of_array(struct_def: StructDef, field: FieldDef) -> List[str]:
    element_type = field.type.vector_type()
    address = f"{SELF_DATA_POS} + {field.offset} + ((j-1) * {inline_size(element_type)})"
    lines = [gen_receiver(struct_def, accessor_name(field), "j")]
    if element_type.base_type == BaseType.STRUCT:
        lines += [
            f"{INDENT}local obj = require('{field_module_path(field)}').New()",
            f"{INDENT}obj:Init({SELF_DATA_BYTES}, {address})",
            f"{INDENT}return obj",
        ]
    elif is_scalar(element_type.base_type):
        lines.append(f"{INDENT}return {gen_getter(element_type)}{address})")
    else:
        raise UnsupportedTypeError(f"Array of {element_type.base_type.name} in {struct_def.name}.{field.name}")
    lines.append(END)
    return lines


def get_vector_len(struct_def: StructDef, field: FieldDef) -> List[str]:
    lines = [gen_receiver(struct_def, accessor_name(field) + "Length")]
    lines += offset_prefix(field)
    lines += [
        f"{I2}return {SELF_DATA}:VectorLen(o)",
        f"{INDENT}{END}",
        f"{INDENT}return 0",
        END,
    ]
    return lines


def gen_struct_accessor(struct_def: StructDef, field: FieldDef) -> List[str]:
    """All read methods for one field, or nothing for a deprecated field."""
    if field.deprecated:
        return []
    lines = gen_comment(field.doc)
    base_type = field.type.base_type
    if is_scalar(base_type):
        if struct_def.fixed:
            lines += get_scalar_field_of_struct(struct_def, field)
        else:
            lines += get_scalar_field_of_table(struct_def, field)
    elif base_type == BaseType.STRUCT:
        if struct_def.fixed:
            lines += get_struct_field_of_struct(struct_def, field)
        else:
            lines += get_struct_field_of_table(struct_def, field)
    elif base_type == BaseType.STRING:
        lines += get_string_field(struct_def, field)
    elif base_type == BaseType.VECTOR:
        element = field.type.element
        if element == BaseType.STRUCT:
            lines += get_member_of_vector_of_struct(struct_def, field)
        elif element == BaseType.UNION:
            lines += get_member_of_vector_of_union(struct_def, field)
        elif element == BaseType.STRING or is_scalar(element):
            lines += get_member_of_vector_of_non_struct(struct_def, field)
        else:
            raise UnsupportedTypeError(f"Vector of {element.name} in {struct_def.name}.{field.name}")
        lines += get_vector_len(struct_def, field)
    elif base_type == BaseType.UNION:
        lines += get_union_field(struct_def, field)
    elif base_type == BaseType.ARRAY:
        lines += get_member_of_array(struct_def, field)
    else:
        raise UnsupportedTypeError(f"Field {struct_def.name}.{field.name} has unhandled type {base_type.name}")
    return lines
