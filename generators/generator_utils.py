"""
Shared utilities for the Lua generator.
Handles runtime type naming, getter/prepend method selection and module path resolution.
"""
from typing import List

from schema_model import BaseType, Type, FieldDef, Definition, is_scalar, is_struct
from generators.lua_naming import make_camel, normalized_name

INDENT = "    "
COMMENT = "-- "
END = "end"
SELF_DATA = "self.view"
SELF_DATA_POS = "self.view.pos"
SELF_DATA_BYTES = "self.view.bytes"


class UnsupportedTypeError(RuntimeError):
    """A type variant reached a dispatch point that has no case for it."""
    pass


# --- Type Mapping ---
# Names understood by the Lua runtime's number types (flatbuffers.N) and builder Prepend methods.
LUA_BASIC_TYPE = {
    BaseType.NONE: 'uint8',
    BaseType.UTYPE: 'uint8',
    BaseType.BOOL: 'bool',
    BaseType.CHAR: 'int8',
    BaseType.UCHAR: 'uint8',
    BaseType.SHORT: 'int16',
    BaseType.USHORT: 'uint16',
    BaseType.INT: 'int32',
    BaseType.UINT: 'uint32',
    BaseType.LONG: 'int64',
    BaseType.ULONG: 'uint64',
    BaseType.FLOAT: 'float32',
    BaseType.DOUBLE: 'float64',
}


def gen_type_basic(base_type: BaseType) -> str:
    if base_type not in LUA_BASIC_TYPE:
        raise UnsupportedTypeError(f"No scalar runtime type for {base_type.name}")
    return LUA_BASIC_TYPE[base_type]


def runtime_type(base_type: BaseType) -> str:
    """e.g. INT -> 'Int32', as used in flatbuffers.N.Int32 and builder:PrependInt32."""
    return make_camel(gen_type_basic(base_type))


def gen_getter(t: Type) -> str:
    """Opening of the expression that reads a value of the given type; the caller appends 'addr)'."""
    if t.base_type == BaseType.STRING:
        return f"{SELF_DATA}:String("
    if t.base_type == BaseType.UNION:
        return f"{SELF_DATA}:Union("
    if t.base_type in (BaseType.VECTOR, BaseType.ARRAY):
        return gen_getter(t.vector_type())
    if is_scalar(t.base_type):
        return f"{SELF_DATA}:Get(flatbuffers.N.{runtime_type(t.base_type)}, "
    raise UnsupportedTypeError(f"No getter for {t!r}")


def gen_method(t: Type) -> str:
    """Suffix of the builder method used to write a value of the given type into a table slot."""
    if is_scalar(t.base_type):
        return runtime_type(t.base_type)
    if is_struct(t):
        return "Struct"
    return "UOffsetTRelative"


# --- Name Resolution ---
def module_path(definition: Definition) -> str:
    """Dotted module path a generated unit is loaded by, e.g. 'MyGame.Example.Monster'."""
    return '.'.join(definition.namespace.components + [normalized_name(definition)])


def type_module_path(t: Type) -> str:
    if t.struct_def is not None:
        return module_path(t.struct_def)
    if t.enum_def is not None:
        return module_path(t.enum_def)
    raise UnsupportedTypeError(f"{t!r} does not reference a definition")


def require_expr(t: Type) -> str:
    return f"require('{type_module_path(t)}')"


def field_module_path(field: FieldDef) -> str:
    return type_module_path(field.type)


def is_enum_scalar(t: Type) -> bool:
    return t.enum_def is not None and is_scalar(t.base_type) and t.base_type != BaseType.UTYPE


# --- Constants ---
# Largest integer Lua 5.3+ reads as an integer; a larger decimal literal becomes a float.
LUA_MAX_INTEGER = 2 ** 63 - 1


def gen_constant(value) -> str:
    """
    Lua literal for a resolved default or enum value.
    Integers above the signed 64-bit range are written in hex, which Lua wraps to the same 64 bits.
    """
    text = str(value)
    try:
        number = int(text)
    except ValueError:
        return text
    if number > LUA_MAX_INTEGER:
        return f"0x{number:X}"
    return text


# --- Comments ---
def gen_comment(doc: List[str], indent: str = "") -> List[str]:
    lines = []
    for line in doc or []:
        lines.append(f"{indent}{COMMENT}{line}".rstrip())
    return lines
