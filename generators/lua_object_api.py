"""
Object-based API emission.
Adds a plain-data mirror (<Name>.T) to every struct and table together with UnPack/UnPackTo
(zero-copy view -> mirror) and Pack (mirror -> builder), and a discriminant table plus a
union wrapper to every union.
"""
from typing import List, Optional

from schema_model import StructDef, FieldDef, EnumDef, BaseType, is_scalar, is_struct
from generators.lua_naming import (
    normalized_name, normalized_meta_name, accessor_name, argument_name, escape_keyword,
)
from generators.generator_utils import (
    INDENT, END, UnsupportedTypeError, gen_method, gen_constant, require_expr, type_module_path, is_enum_scalar,
)
from generators.lua_builders import (
    loop_var, nested_prefix, is_array_of_struct, struct_builder_args,
)

I2 = INDENT * 2
I3 = INDENT * 3

# Reads the length-prefixed string a union payload view points at.
STRING_PAYLOAD = "d.bytes:Slice(d.pos + 4, d.pos + 4 + flatbuffers.N.UOffsetT:Unpack(d.bytes, d.pos))"


def union_type_field(struct_def: StructDef, field: FieldDef) -> FieldDef:
    """The discriminant field the loader injects right before every union (or vector of unions)."""
    index = struct_def.field_index(field)
    if index == 0:
        raise UnsupportedTypeError(f"Union field {struct_def.name}.{field.name} has no type field")
    return struct_def.fields[index - 1]


def local_name(field: FieldDef) -> str:
    return "_" + normalized_name(field)


# --- Defaults ---
def gen_enum_default_value(field: FieldDef) -> str:
    enum_def = field.type.enum_def
    enum_val = enum_def.find_by_value(field.constant)
    if enum_val is None:
        return gen_constant(field.constant)
    return f"{require_expr(field.type)}.{escape_keyword(enum_val.name)}"


def gen_default_value(field: FieldDef, set_empty_vectors_to_null: bool = False) -> Optional[str]:
    """Initial value of a mirror field, or None for fields the mirror does not carry."""
    base_type = field.type.base_type
    if base_type == BaseType.STRUCT:
        return "nil"
    if base_type == BaseType.STRING:
        return '""'
    if base_type == BaseType.UTYPE or (base_type == BaseType.VECTOR and field.type.element == BaseType.UTYPE):
        # Carried by the union wrapper's Type.
        return None
    if base_type in (BaseType.VECTOR, BaseType.ARRAY):
        return "nil" if set_empty_vectors_to_null else "{}"
    if base_type == BaseType.UNION:
        return f"{require_expr(field.type)}.Union()"
    if is_enum_scalar(field.type):
        return gen_enum_default_value(field)
    if base_type == BaseType.BOOL:
        return "false" if field.constant == "0" else "true"
    if is_scalar(base_type):
        return gen_constant(field.constant)
    raise UnsupportedTypeError(f"No default for field {field.name} of type {field.type!r}")


def gen_object_decl(struct_def: StructDef, set_empty_vectors_to_null: bool = False) -> List[str]:
    lines = [f"function {normalized_name(struct_def)}.T()", f"{INDENT}local o = {{}}"]
    for field in struct_def.fields:
        if field.deprecated:
            continue
        value = gen_default_value(field, set_empty_vectors_to_null)
        if value is not None:
            lines.append(f"{INDENT}o.{accessor_name(field)} = {value}")
    lines += [f"{INDENT}return o", END]
    return lines


# --- UnPack ---
def gen_union_unpack(struct_def: StructDef, field: FieldDef, target: str, index: str, indent: str) -> List[str]:
    """Fill the union wrapper held in `target` from the payload at `index` ('' for a single union)."""
    union = require_expr(field.type)
    type_accessor = accessor_name(union_type_field(struct_def, field))
    name = accessor_name(field)
    return [
        f"{indent}{target}.Type = self:{type_accessor}({index})",
        f"{indent}local t = {union}.__dataTypeToClass[{target}.Type]",
        f"{indent}if t ~= nil then",
        f"{indent}{INDENT}local d = self:{name}({index})",
        f"{indent}{INDENT}if d ~= nil then",
        f"{indent}{I2}if t == string then",
        f"{indent}{I3}{target}.Value = {STRING_PAYLOAD}",
        f"{indent}{I2}else",
        f"{indent}{I3}local v = t.New()",
        f"{indent}{I3}v:Init(d.bytes, d.pos)",
        f"{indent}{I3}{target}.Value = v:UnPack()",
        f"{indent}{I2}{END}",
        f"{indent}{INDENT}{END}",
        f"{indent}{END}",
    ]


def gen_unpack_field(struct_def: StructDef, field: FieldDef) -> List[str]:
    t = field.type
    name = accessor_name(field)
    start = f"{INDENT}o.{name} = "
    if t.base_type == BaseType.STRUCT:
        if struct_def.fixed and t.struct_def.fixed:
            return [f"{start}self:{name}():UnPack()"]
        return [f"{INDENT}ref = self:{name}()", f"{start}ref ~= nil and ref:UnPack() or nil"]
    if t.base_type == BaseType.ARRAY:
        item = "item:UnPack()" if t.element == BaseType.STRUCT else "item"
        return [
            f"{start}{{}}",
            f"{INDENT}for _j = 1, {t.fixed_length} do",
            f"{I2}local item = self:{name}(_j)",
            f"{I2}o.{name}[_j] = {item}",
            f"{INDENT}{END}",
        ]
    if t.base_type == BaseType.VECTOR:
        if t.element == BaseType.UTYPE:
            # Filled in alongside the union vector it describes.
            return []
        lines = [f"{INDENT}length = self:{name}Length()", f"{start}{{}}", f"{INDENT}for _j = 1, length do"]
        if t.element == BaseType.UNION:
            lines.append(f"{I2}local u = {require_expr(t)}.Union()")
            lines += gen_union_unpack(struct_def, field, "u", "_j", I2)
            lines.append(f"{I2}o.{name}[_j] = u")
        else:
            item = "item ~= nil and item:UnPack() or nil" if t.element == BaseType.STRUCT else "item"
            lines += [f"{I2}local item = self:{name}(_j)", f"{I2}o.{name}[_j] = {item}"]
        lines.append(f"{INDENT}{END}")
        return lines
    if t.base_type == BaseType.UTYPE:
        return []
    if t.base_type == BaseType.UNION:
        lines = [f"{start}{require_expr(t)}.Union()", f"{INDENT}do"]
        lines += gen_union_unpack(struct_def, field, f"o.{name}", "", I2)
        lines.append(f"{INDENT}{END}")
        return lines
    if is_scalar(t.base_type) or t.base_type == BaseType.STRING:
        return [f"{start}self:{name}()"]
    raise UnsupportedTypeError(f"Cannot unpack {struct_def.name}.{field.name} of type {t!r}")


def gen_unpack(struct_def: StructDef) -> List[str]:
    meta_name = normalized_meta_name(struct_def)
    lines = [
        f"function {meta_name}:UnPack()",
        f"{INDENT}local o = {normalized_name(struct_def)}.T()",
        f"{INDENT}self:UnPackTo(o)",
        f"{INDENT}return o",
        END,
        "",
        f"function {meta_name}:UnPackTo(o)",
        f"{INDENT}local length = 0",
    ]
    if not struct_def.fixed and any(f.type.base_type == BaseType.STRUCT and not f.deprecated
                                    for f in struct_def.fields):
        lines.append(f"{INDENT}local ref")
    for field in struct_def.fields:
        if not field.deprecated:
            lines += gen_unpack_field(struct_def, field)
    lines.append(END)
    return lines


# --- Pack ---
def gen_pack_vector(struct_def: StructDef, field: FieldDef) -> List[str]:
    """Phase one for a vector field: build it and leave its offset in _<field>."""
    class_name = normalized_name(struct_def)
    t = field.type
    name = accessor_name(field)
    var = local_name(field)
    length = f"{var}_length"
    array = f"{var}_array"
    element_type = t.vector_type()

    lines = [f"{INDENT}local {var} = 0"]
    if t.element == BaseType.UNION:
        type_field = union_type_field(struct_def, field)
        type_var = local_name(type_field)
        lines.insert(0, f"{INDENT}local {type_var} = 0")
    lines += [f"{INDENT}if o.{name} ~= nil then", f"{I2}local {length} = #o.{name}"]

    if is_scalar(t.element):
        lines += [
            f"{I2}{class_name}.Start{name}Vector(builder, {length})",
            f"{I2}for _j = {length}, 1, -1 do",
            f"{I3}builder:Prepend{gen_method(element_type)}(o.{name}[_j])",
            f"{I2}{END}",
        ]
    elif is_struct(element_type):
        # Structs are written inline, each Pack call places one element.
        lines += [
            f"{I2}{class_name}.Start{name}Vector(builder, {length})",
            f"{I2}for _j = {length}, 1, -1 do",
            f"{I3}{require_expr(element_type)}.Pack(builder, o.{name}[_j])",
            f"{I2}{END}",
        ]
    else:
        if t.element == BaseType.STRING:
            create = f"builder:CreateString(o.{name}[_j])"
        elif t.element == BaseType.STRUCT:
            create = f"{require_expr(element_type)}.Pack(builder, o.{name}[_j])"
        elif t.element == BaseType.UNION:
            create = f"{require_expr(element_type)}.PackUnion(builder, o.{name}[_j])"
        else:
            raise UnsupportedTypeError(f"Cannot pack vector {struct_def.name}.{field.name} of type {t!r}")
        lines += [
            f"{I2}local {array} = {{}}",
            f"{I2}for _j = 1, {length} do",
            f"{I3}{array}[_j] = {create}",
            f"{I2}{END}",
        ]
        if t.element == BaseType.UNION:
            lines += [
                f"{I2}{class_name}.Start{accessor_name(type_field)}Vector(builder, {length})",
                f"{I2}for _j = {length}, 1, -1 do",
                f"{I3}builder:PrependUint8(o.{name}[_j].Type)",
                f"{I2}{END}",
                f"{I2}{type_var} = builder:EndVector({length})",
            ]
        lines += [
            f"{I2}{class_name}.Start{name}Vector(builder, {length})",
            f"{I2}for _j = {length}, 1, -1 do",
            f"{I3}builder:PrependUOffsetTRelative({array}[_j])",
            f"{I2}{END}",
        ]
    lines += [f"{I2}{var} = builder:EndVector({length})", f"{INDENT}{END}"]
    return lines


def gen_pack_offsets(struct_def: StructDef, field: FieldDef) -> List[str]:
    """Phase one of a table's Pack: out-of-line children are created before Start."""
    t = field.type
    name = accessor_name(field)
    var = local_name(field)
    if t.base_type == BaseType.STRUCT and not t.struct_def.fixed:
        return [f"{INDENT}local {var} = o.{name} == nil and 0 or {require_expr(t)}.Pack(builder, o.{name})"]
    if t.base_type == BaseType.STRING:
        return [f"{INDENT}local {var} = o.{name} == nil and 0 or builder:CreateString(o.{name})"]
    if t.base_type == BaseType.VECTOR and t.element != BaseType.UTYPE:
        return gen_pack_vector(struct_def, field)
    if t.base_type == BaseType.UNION:
        type_var = local_name(union_type_field(struct_def, field))
        return [
            f"{INDENT}local {type_var} = o.{name} == nil and 0 or o.{name}.Type",
            f"{INDENT}local {var} = o.{name} == nil and 0 or {require_expr(t)}.PackUnion(builder, o.{name})",
        ]
    return []


def gen_pack_add(struct_def: StructDef, field: FieldDef) -> List[str]:
    """Phase two of a table's Pack: one Add per field, in declaration order."""
    class_name = normalized_name(struct_def)
    t = field.type
    name = accessor_name(field)
    add = f"{INDENT}{class_name}.Add{name}(builder, "
    if t.base_type == BaseType.UTYPE or (t.base_type == BaseType.VECTOR and t.element == BaseType.UTYPE):
        # Added together with the union it describes.
        return []
    if t.base_type == BaseType.STRUCT and t.struct_def.fixed:
        return [f"{add}o.{name} ~= nil and {require_expr(t)}.Pack(builder, o.{name}) or 0)"]
    if t.base_type in (BaseType.STRUCT, BaseType.STRING, BaseType.VECTOR):
        if t.base_type == BaseType.VECTOR and t.element == BaseType.UNION:
            type_field = union_type_field(struct_def, field)
            return [
                f"{INDENT}{class_name}.Add{accessor_name(type_field)}(builder, {local_name(type_field)})",
                f"{add}{local_name(field)})",
            ]
        return [f"{add}{local_name(field)})"]
    if t.base_type == BaseType.UNION:
        type_field = union_type_field(struct_def, field)
        return [
            f"{INDENT}{class_name}.Add{accessor_name(type_field)}(builder, {local_name(type_field)})",
            f"{add}{local_name(field)})",
        ]
    if is_scalar(t.base_type):
        return [f"{add}o.{name})"]
    raise UnsupportedTypeError(f"Cannot pack {struct_def.name}.{field.name} of type {t!r}")


def gen_leaf_sequences(struct_def: StructDef, prefix: str, access: str, subscript: List[str],
                       depth: int) -> List[str]:
    """Copy every leaf of an array-of-structs element into the per-leaf sequences Create<Name> expects."""
    indent = INDENT * depth
    target = ''.join(subscript)
    lines = []
    for field in struct_def.fields:
        value = f"{access}.{accessor_name(field)}"
        if is_struct(field.type):
            lines += gen_leaf_sequences(field.type.struct_def, nested_prefix(prefix, field), value, subscript, depth)
        elif is_array_of_struct(field):
            lines += gen_array_of_struct_leaves(field, prefix, value, subscript, depth)
        else:
            lines.append(f"{indent}_{prefix}{argument_name(field)}{target} = {value}")
    return lines


def gen_array_of_struct_leaves(field: FieldDef, prefix: str, access: str, subscript: List[str],
                               depth: int) -> List[str]:
    indent = INDENT * depth
    leaf_prefix = nested_prefix(prefix, field)
    var = loop_var(len(subscript))
    declare = "local " if not subscript else ""
    target = ''.join(subscript)
    lines = [f"{indent}{declare}_{leaf}{target} = {{}}"
             for leaf in struct_builder_args(field.type.struct_def, leaf_prefix)]
    lines.append(f"{indent}for {var} = 1, {field.type.fixed_length} do")
    lines += gen_leaf_sequences(field.type.struct_def, leaf_prefix, f"{access}[{var}]",
                                list(subscript) + [f"[{var}]"], depth + 1)
    lines.append(f"{indent}{END}")
    return lines


def gen_pack_struct_args(struct_def: StructDef, prefix: str, access: str, prelude: List[str]) -> List[str]:
    """Values passed to Create<Name>, in the same order as its flattened arguments."""
    args = []
    for field in struct_def.fields:
        value = f"{access}.{accessor_name(field)}"
        if is_struct(field.type):
            args += gen_pack_struct_args(field.type.struct_def, nested_prefix(prefix, field), value, prelude)
        elif is_array_of_struct(field):
            prelude += gen_array_of_struct_leaves(field, prefix, value, [], 1)
            args += ["_" + leaf for leaf in struct_builder_args(field.type.struct_def, nested_prefix(prefix, field))]
        else:
            args.append(value)
    return args


def gen_pack(struct_def: StructDef) -> List[str]:
    class_name = normalized_name(struct_def)
    lines = [f"function {class_name}.Pack(builder, o)"]
    if struct_def.fixed:
        prelude = []
        args = gen_pack_struct_args(struct_def, "", "o", prelude)
        lines += prelude
        lines.append(f"{INDENT}return {class_name}.Create{class_name}(builder{''.join(', ' + arg for arg in args)})")
    else:
        for field in struct_def.fields:
            if not field.deprecated:
                lines += gen_pack_offsets(struct_def, field)
        lines.append(f"{INDENT}{class_name}.Start(builder)")
        for field in struct_def.fields:
            if not field.deprecated:
                lines += gen_pack_add(struct_def, field)
        lines.append(f"{INDENT}return {class_name}.End(builder)")
    lines.append(END)
    return lines


def gen_struct_object_api(struct_def: StructDef, set_empty_vectors_to_null: bool = False) -> List[str]:
    lines = ["", "-- Object API"]
    lines += gen_object_decl(struct_def, set_empty_vectors_to_null)
    lines.append("")
    lines += gen_unpack(struct_def)
    lines.append("")
    lines += gen_pack(struct_def)
    return lines


# --- Unions ---
def gen_union_object_api(enum_def: EnumDef) -> List[str]:
    """Discriminant table, union wrapper and PackUnion for a union; nothing for a plain enum."""
    if not enum_def.is_union:
        return []
    name = normalized_name(enum_def)
    union_mt = f"{name}_union_mt"
    lines = [
        "",
        f"local {union_mt} = {{}}",
        f"function {union_mt}:As(type)",
        f"{INDENT}if self.Type == type then",
        f"{I2}return self.Value",
        f"{INDENT}{END}",
        END,
        "",
        "local dataTypeToClass = {}",
    ]
    for enum_val in enum_def.values:
        if enum_val.is_zero():
            continue
        if enum_val.union_type.base_type == BaseType.STRING:
            lines.append(f"dataTypeToClass[{enum_val.value}] = string")
        else:
            lines.append(f"dataTypeToClass[{enum_val.value}] = require('{type_module_path(enum_val.union_type)}')")
    lines += [
        f"{name}.__dataTypeToClass = dataTypeToClass",
        "",
        f"function {name}.Union()",
        f"{INDENT}local o = {{}}",
        f"{INDENT}o.Type = 0",
        f"{INDENT}o.Value = nil",
        f"{INDENT}setmetatable(o, {{__index = {union_mt}}})",
        f"{INDENT}return o",
        END,
        "",
        f"function {name}.PackUnion(builder, u)",
        f"{INDENT}if u == nil or u.Value == nil then",
        f"{I2}return 0",
        f"{INDENT}{END}",
        f"{INDENT}local t = dataTypeToClass[u.Type]",
        f"{INDENT}if t == nil then",
        f"{I2}return 0",
        f"{INDENT}{END}",
        f"{INDENT}if t == string then",
        f"{I2}return builder:CreateString(u.Value)",
        f"{INDENT}{END}",
        f"{INDENT}return t.Pack(builder, u.Value)",
        END,
    ]
    return lines
