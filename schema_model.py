"""
schema_model.py
Resolved, generator-ready representation of a FlatBuffers schema. All type references point at
their definitions and all layout values (offsets, padding, sizes) are filled in by the loader.
"""
from enum import Enum
from typing import List, Optional


class BaseType(Enum):
    NONE = "none"
    UTYPE = "utype"
    BOOL = "bool"
    CHAR = "byte"
    UCHAR = "ubyte"
    SHORT = "short"
    USHORT = "ushort"
    INT = "int"
    UINT = "uint"
    LONG = "long"
    ULONG = "ulong"
    FLOAT = "float"
    DOUBLE = "double"
    STRING = "string"
    VECTOR = "vector"
    STRUCT = "struct"
    UNION = "union"
    ARRAY = "array"


SCALAR_SIZES = {
    BaseType.NONE: 1,
    BaseType.UTYPE: 1,
    BaseType.BOOL: 1,
    BaseType.CHAR: 1,
    BaseType.UCHAR: 1,
    BaseType.SHORT: 2,
    BaseType.USHORT: 2,
    BaseType.INT: 4,
    BaseType.UINT: 4,
    BaseType.LONG: 8,
    BaseType.ULONG: 8,
    BaseType.FLOAT: 4,
    BaseType.DOUBLE: 8,
}

# Size of an offset to out-of-line data (uoffset_t).
OFFSET_SIZE = 4


def is_scalar(base_type: BaseType) -> bool:
    return base_type in SCALAR_SIZES


def is_float(base_type: BaseType) -> bool:
    return base_type in (BaseType.FLOAT, BaseType.DOUBLE)


def is_integer(base_type: BaseType) -> bool:
    return is_scalar(base_type) and not is_float(base_type) and base_type != BaseType.BOOL


class Namespace:
    """Ordered namespace components, e.g. ['MyGame', 'Example']."""
    def __init__(self, components: Optional[List[str]] = None):
        self.components = list(components or [])

    def fully_qualified_name(self, name: str) -> str:
        return '.'.join(self.components + [name])

    def last_part(self) -> str:
        return self.components[-1] if self.components else ''

    def __eq__(self, other):
        return isinstance(other, Namespace) and self.components == other.components

    def __hash__(self):
        return hash(tuple(self.components))

    def __repr__(self):
        return f"Namespace({'.'.join(self.components)!r})"


class Definition:
    def __init__(self, name: str, namespace: Optional[Namespace] = None, doc: Optional[List[str]] = None,
                 generated: bool = False, file: Optional[str] = None, line: Optional[int] = None):
        self.name = name
        self.namespace = namespace or Namespace()
        self.doc = doc or []
        # True for definitions that came from an included file.
        self.generated = generated
        self.file = file
        self.line = line

    @property
    def qualified_name(self) -> str:
        return self.namespace.fully_qualified_name(self.name)


class Type:
    """
    A field type. base_type selects the variant; the remaining attributes are the payload of that
    variant: element for VECTOR/ARRAY, struct_def for STRUCT (or vectors/arrays of structs),
    enum_def for UNION/UTYPE and enum-typed scalars, fixed_length for ARRAY.
    """
    def __init__(self, base_type: BaseType, element: BaseType = BaseType.NONE, struct_def: 'StructDef' = None,
                 enum_def: 'EnumDef' = None, fixed_length: int = 0):
        self.base_type = base_type
        self.element = element
        self.struct_def = struct_def
        self.enum_def = enum_def
        self.fixed_length = fixed_length

    def vector_type(self) -> 'Type':
        return Type(self.element, struct_def=self.struct_def, enum_def=self.enum_def)

    def __repr__(self):
        if self.base_type in (BaseType.VECTOR, BaseType.ARRAY):
            return f"Type({self.base_type.name}<{self.element.name}>)"
        return f"Type({self.base_type.name})"


def is_struct(t: Type) -> bool:
    return t.base_type == BaseType.STRUCT and t.struct_def is not None and t.struct_def.fixed


def is_vector(t: Type) -> bool:
    return t.base_type == BaseType.VECTOR


def is_array(t: Type) -> bool:
    return t.base_type == BaseType.ARRAY


def inline_size(t: Type) -> int:
    if t.base_type == BaseType.STRUCT and t.struct_def is not None and t.struct_def.fixed:
        return t.struct_def.bytesize
    if t.base_type == BaseType.ARRAY:
        return inline_size(t.vector_type()) * t.fixed_length
    if is_scalar(t.base_type):
        return SCALAR_SIZES[t.base_type]
    return OFFSET_SIZE


def inline_alignment(t: Type) -> int:
    if t.base_type == BaseType.STRUCT and t.struct_def is not None and t.struct_def.fixed:
        return t.struct_def.minalign
    if t.base_type == BaseType.ARRAY:
        return inline_alignment(t.vector_type())
    if is_scalar(t.base_type):
        return SCALAR_SIZES[t.base_type]
    return OFFSET_SIZE


class FieldDef:
    def __init__(self, name: str, type: Type, offset: int = 0, constant: str = "0", deprecated: bool = False,
                 padding: int = 0, doc: Optional[List[str]] = None, line: Optional[int] = None):
        self.name = name
        self.type = type
        # Byte offset inside a struct, or vtable slot offset inside a table.
        self.offset = offset
        self.constant = constant
        self.deprecated = deprecated
        self.padding = padding
        self.doc = doc or []
        self.line = line

    def __repr__(self):
        return f"FieldDef(name={self.name!r}, type={self.type!r}, offset={self.offset})"


class StructDef(Definition):
    def __init__(self, name: str, fixed: bool = False, fields: Optional[List[FieldDef]] = None, **kwargs):
        super().__init__(name, **kwargs)
        self.fixed = fixed
        self.fields = fields or []
        self.minalign = 1
        self.bytesize = 0

    def field_index(self, field: FieldDef) -> int:
        for index, candidate in enumerate(self.fields):
            if candidate is field:
                return index
        raise ValueError(f"Field {field.name!r} does not belong to {self.name!r}")

    def find_field(self, name: str) -> Optional[FieldDef]:
        for field in self.fields:
            if field.name == name:
                return field
        return None

    def __repr__(self):
        kind = 'struct' if self.fixed else 'table'
        return f"StructDef({kind} {self.qualified_name!r})"


class EnumVal:
    def __init__(self, name: str, value: int, union_type: Optional[Type] = None, doc: Optional[List[str]] = None):
        self.name = name
        self.value = value
        # Payload type of a union member.
        self.union_type = union_type or Type(BaseType.NONE)
        self.doc = doc or []

    def is_zero(self) -> bool:
        return self.value == 0

    def __repr__(self):
        return f"EnumVal({self.name!r}, {self.value})"


class EnumDef(Definition):
    def __init__(self, name: str, values: Optional[List[EnumVal]] = None, is_union: bool = False,
                 underlying_type: BaseType = BaseType.INT, **kwargs):
        super().__init__(name, **kwargs)
        self.values = values or []
        self.is_union = is_union
        self.underlying_type = BaseType.UTYPE if is_union else underlying_type

    def find_by_value(self, constant: str) -> Optional[EnumVal]:
        try:
            number = int(constant)
        except (TypeError, ValueError):
            return None
        for value in self.values:
            if value.value == number:
                return value
        return None

    def find_by_name(self, name: str) -> Optional[EnumVal]:
        for value in self.values:
            if value.name == name:
                return value
        return None

    def __repr__(self):
        kind = 'union' if self.is_union else 'enum'
        return f"EnumDef({kind} {self.qualified_name!r})"


class Schema:
    def __init__(self, file: Optional[str] = None, enums: Optional[List[EnumDef]] = None,
                 structs: Optional[List[StructDef]] = None, root_type: Optional[StructDef] = None,
                 file_identifier: Optional[str] = None, includes: Optional[List[str]] = None):
        self.file = file
        self.enums = enums or []
        self.structs = structs or []
        self.root_type = root_type
        self.file_identifier = file_identifier
        self.includes = includes or []

    def lookup(self, qualified_name: str):
        for definition in list(self.structs) + list(self.enums):
            if definition.qualified_name == qualified_name:
                return definition
        return None
