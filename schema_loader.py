# schema_loader.py
# Reads .fbs files, follows includes and builds the resolved Schema the Lua generator consumes.
import os
from typing import Dict, List, Optional

from lark.exceptions import UnexpectedInput

from lark_parser import parse_fbs
from namespace_resolver import resolve_reference_hierarchically
from schema_model import (
    BaseType, Namespace, Type, FieldDef, StructDef, EnumVal, EnumDef, Schema,
    is_scalar, is_float, is_integer, inline_size, inline_alignment,
)

SCALAR_TYPES = {
    'bool': BaseType.BOOL,
    'byte': BaseType.CHAR,
    'int8': BaseType.CHAR,
    'ubyte': BaseType.UCHAR,
    'uint8': BaseType.UCHAR,
    'short': BaseType.SHORT,
    'int16': BaseType.SHORT,
    'ushort': BaseType.USHORT,
    'uint16': BaseType.USHORT,
    'int': BaseType.INT,
    'int32': BaseType.INT,
    'uint': BaseType.UINT,
    'uint32': BaseType.UINT,
    'long': BaseType.LONG,
    'int64': BaseType.LONG,
    'ulong': BaseType.ULONG,
    'uint64': BaseType.ULONG,
    'float': BaseType.FLOAT,
    'float32': BaseType.FLOAT,
    'double': BaseType.DOUBLE,
    'float64': BaseType.DOUBLE,
}

INTEGER_RANGES = {
    BaseType.CHAR: (-2 ** 7, 2 ** 7 - 1),
    BaseType.UCHAR: (0, 2 ** 8 - 1),
    BaseType.SHORT: (-2 ** 15, 2 ** 15 - 1),
    BaseType.USHORT: (0, 2 ** 16 - 1),
    BaseType.INT: (-2 ** 31, 2 ** 31 - 1),
    BaseType.UINT: (0, 2 ** 32 - 1),
    BaseType.LONG: (-2 ** 63, 2 ** 63 - 1),
    BaseType.ULONG: (0, 2 ** 64 - 1),
    BaseType.UTYPE: (0, 2 ** 8 - 1),
}

# Float defaults that have no Lua literal
FLOAT_SPECIALS = {
    'inf': 'math.huge',
    '+inf': 'math.huge',
    'infinity': 'math.huge',
    '-inf': '-math.huge',
    '-infinity': '-math.huge',
    'nan': '0/0',
    '+nan': '0/0',
    '-nan': '0/0',
}

MAX_FORCE_ALIGN = 32
UNION_TYPE_SUFFIX = "_type"


class SchemaError(Exception):
    """A schema that cannot be parsed or resolved. Carries the file and line it refers to."""

    def __init__(self, message: str, file: Optional[str] = None, line: Optional[int] = None):
        self.message = message
        self.file = file
        self.line = line
        location = ""
        if file:
            location = f"{file}:{line}: " if line else f"{file}: "
        super().__init__(location + message)


def _parse_int(text: str, file: str, line: int) -> int:
    try:
        return int(text, 0) if text.lstrip('+-').lower().startswith('0x') else int(text)
    except ValueError:
        raise SchemaError(f"Expected an integer, got '{text}'", file, line)


def _check_range(value: int, base_type: BaseType, what: str, file: str, line: int):
    low, high = INTEGER_RANGES[base_type]
    if not low <= value <= high:
        raise SchemaError(f"{what} {value} does not fit in {base_type.value}", file, line)


class _Declaration:
    """A parsed declaration together with where it was found."""
    def __init__(self, raw: dict, namespace: List[str], file: str, generated: bool):
        self.raw = raw
        self.namespace = namespace
        self.file = file
        self.generated = generated
        self.definition = None

    @property
    def line(self):
        return self.raw['line']


class SchemaLoader:
    """
    Loads a schema and everything it includes. Definitions from included files are kept
    (they can be referenced) but marked generated, so the generator skips them by default.
    """

    def __init__(self, include_dirs: Optional[List[str]] = None, verbose: bool = False):
        self.include_dirs = list(include_dirs or [])
        self.verbose = verbose
        self.declarations = []  # type: List[_Declaration]
        self.definitions = {}  # type: Dict[str, object]
        self.loaded_files = set()
        self.includes = []
        self.root_type_decl = None
        self.file_identifier = None
        self._laying_out = set()
        self.bit_flag_enums = set()

    # --- Reading files ---
    def _find_include(self, path: str, including_file: str, line: int) -> str:
        candidates = [os.path.join(os.path.dirname(including_file), path)]
        candidates += [os.path.join(include_dir, path) for include_dir in self.include_dirs]
        candidates.append(path)
        for candidate in candidates:
            if os.path.isfile(candidate):
                return os.path.abspath(candidate)
        raise SchemaError(f"Unable to locate include file '{path}'", including_file, line)

    def _read_text(self, text: str, file: str, generated: bool):
        if self.verbose:
            print(f"[DEBUG] Parsing schema: {file}")
        try:
            decls = parse_fbs(text)
        except UnexpectedInput as e:
            raise SchemaError(f"Syntax error: {str(e).splitlines()[0]}", file, e.line if e.line > 0 else None)

        namespace = []
        for raw in decls:
            kind = raw['kind']
            if kind == 'include':
                include_path = self._find_include(raw['path'], file, raw['line'])
                if include_path not in self.loaded_files:
                    self.includes.append(include_path)
                    self._read_file(include_path, generated=True)
            elif kind == 'namespace':
                namespace = raw['components']
            elif kind == 'root_type':
                if not generated:
                    self.root_type_decl = _Declaration(raw, namespace, file, generated)
            elif kind == 'file_identifier':
                if not generated:
                    if len(raw['value']) != 4:
                        raise SchemaError(f"file_identifier must be exactly 4 characters: '{raw['value']}'",
                                          file, raw['line'])
                    self.file_identifier = raw['value']
            elif kind in ('table', 'struct', 'enum', 'union'):
                self.declarations.append(_Declaration(raw, namespace, file, generated))
            elif self.verbose:
                print(f"[DEBUG] Ignoring {kind} declaration in {file}:{raw['line']}")

    def _read_file(self, path: str, generated: bool):
        self.loaded_files.add(os.path.abspath(path))
        try:
            with open(path, 'r', encoding='utf-8') as f:
                text = f.read()
        except OSError as e:
            raise SchemaError(f"Unable to read schema: {e}", path)
        self._read_text(text, path, generated)

    # --- Resolution ---
    def _declare(self):
        for decl in self.declarations:
            raw = decl.raw
            common = dict(namespace=Namespace(decl.namespace), doc=raw['doc'], generated=decl.generated,
                          file=decl.file, line=decl.line)
            if raw['kind'] in ('table', 'struct'):
                definition = StructDef(raw['name'], fixed=raw['kind'] == 'struct', **common)
            else:
                definition = EnumDef(raw['name'], is_union=raw['kind'] == 'union', **common)
            if definition.qualified_name in self.definitions:
                raise SchemaError(f"Duplicate definition '{definition.qualified_name}'", decl.file, decl.line)
            self.definitions[definition.qualified_name] = definition
            decl.definition = definition

    def _lookup(self, name: str, decl: _Declaration, line: int):
        definition = resolve_reference_hierarchically(name, decl.namespace, self.definitions)
        if definition is None:
            raise SchemaError(f"Unknown type '{name}'", decl.file, line)
        return definition

    def _resolve_enum(self, decl: _Declaration):
        raw = decl.raw
        enum_def = decl.definition
        underlying = SCALAR_TYPES.get(raw['underlying'])
        if underlying is None or not is_integer(underlying):
            raise SchemaError(f"Enum '{raw['name']}' must have an integer underlying type, got '{raw['underlying']}'",
                              decl.file, decl.line)
        enum_def.underlying_type = underlying
        bit_flags = 'bit_flags' in raw['attributes']
        if bit_flags:
            self.bit_flag_enums.add(enum_def)
        next_value = 0
        for raw_val in raw['values']:
            if enum_def.find_by_name(raw_val['name']) is not None:
                raise SchemaError(f"Duplicate enum value '{raw_val['name']}' in '{raw['name']}'",
                                  decl.file, raw_val['line'])
            if raw_val['value'] is not None:
                next_value = _parse_int(raw_val['value'], decl.file, raw_val['line'])
            value = 1 << next_value if bit_flags else next_value
            _check_range(value, underlying, f"Enum value {raw_val['name']} =", decl.file, raw_val['line'])
            enum_def.values.append(EnumVal(raw_val['name'], value, doc=raw_val['doc']))
            next_value += 1
        if not enum_def.values:
            raise SchemaError(f"Enum '{raw['name']}' has no values", decl.file, decl.line)

    def _resolve_union(self, decl: _Declaration):
        raw = decl.raw
        enum_def = decl.definition
        enum_def.values.append(EnumVal("NONE", 0))
        for value, member in enumerate(raw['members'], start=1):
            if member['type'] == 'string':
                union_type = Type(BaseType.STRING)
                default_name = 'string'
            else:
                target = self._lookup(member['type'], decl, member['line'])
                if not isinstance(target, StructDef):
                    raise SchemaError(f"Union member '{member['type']}' must be a table, struct or string",
                                      decl.file, member['line'])
                union_type = Type(BaseType.STRUCT, struct_def=target)
                default_name = target.name
            name = member['name'] or default_name
            if enum_def.find_by_name(name) is not None:
                raise SchemaError(f"Duplicate union member '{name}' in '{raw['name']}'", decl.file, member['line'])
            enum_def.values.append(EnumVal(name, value, union_type=union_type, doc=member['doc']))
        _check_range(len(enum_def.values) - 1, BaseType.UTYPE, "Union member count", decl.file, decl.line)

    def _resolve_named_type(self, name: str, decl: _Declaration, line: int) -> Type:
        if name in SCALAR_TYPES:
            return Type(SCALAR_TYPES[name])
        if name == 'string':
            return Type(BaseType.STRING)
        definition = self._lookup(name, decl, line)
        if isinstance(definition, StructDef):
            return Type(BaseType.STRUCT, struct_def=definition)
        if definition.is_union:
            return Type(BaseType.UNION, enum_def=definition)
        return Type(definition.underlying_type, enum_def=definition)

    def _resolve_type(self, raw_type: dict, decl: _Declaration, line: int) -> Type:
        t = self._resolve_named_type(raw_type['name'], decl, line)
        if raw_type['kind'] == 'named':
            return t
        if raw_type['kind'] == 'vector':
            return Type(BaseType.VECTOR, element=t.base_type, struct_def=t.struct_def, enum_def=t.enum_def)
        length = _parse_int(raw_type['length'], decl.file, line)
        if length <= 0:
            raise SchemaError(f"Array length must be positive, got {length}", decl.file, line)
        if not (is_scalar(t.base_type) or (t.base_type == BaseType.STRUCT and t.struct_def.fixed)):
            raise SchemaError(f"Arrays may only hold scalars and structs, not '{raw_type['name']}'", decl.file, line)
        return Type(BaseType.ARRAY, element=t.base_type, struct_def=t.struct_def, enum_def=t.enum_def,
                    fixed_length=length)

    def _resolve_default(self, raw_field: dict, t: Type, decl: _Declaration, in_table: bool) -> str:
        text = raw_field['default']
        line = raw_field['line']
        if not is_scalar(t.base_type):
            if text is not None:
                raise SchemaError(f"Field '{raw_field['name']}' of non-scalar type cannot have a default",
                                  decl.file, line)
            return "0"
        if t.base_type == BaseType.BOOL:
            if text is None or text == 'false':
                return "0"
            if text == 'true':
                return "1"
            return "0" if _parse_int(text, decl.file, line) == 0 else "1"
        if is_float(t.base_type):
            if text is None:
                return "0.0"
            if text.lower() in FLOAT_SPECIALS:
                return FLOAT_SPECIALS[text.lower()]
            try:
                value = float.fromhex(text) if 'x' in text.lower() else float(text)
            except ValueError:
                raise SchemaError(f"Invalid float default '{text}' for field '{raw_field['name']}'", decl.file, line)
            return repr(value)
        if text is None:
            value = 0
        elif text[0].isalpha() or text[0] == '_':
            enum_val = t.enum_def.find_by_name(text) if t.enum_def is not None else None
            if enum_val is None:
                raise SchemaError(f"Unknown enum value '{text}' for field '{raw_field['name']}'", decl.file, line)
            value = enum_val.value
        else:
            value = _parse_int(text, decl.file, line)
        _check_range(value, t.base_type, f"Default of '{raw_field['name']}'", decl.file, line)
        enum_def = t.enum_def
        if (in_table and text is None and enum_def is not None and not enum_def.is_union
                and enum_def not in self.bit_flag_enums and enum_def.find_by_value(str(value)) is None):
            raise SchemaError(f"Default value 0 of field '{raw_field['name']}' is not part of enum "
                              f"'{enum_def.name}'; give an explicit default", decl.file, line)
        return str(value)

    def _resolve_fields(self, decl: _Declaration):
        raw = decl.raw
        struct_def = decl.definition
        for raw_field in raw['fields']:
            line = raw_field['line']
            if 'id' in raw_field['attributes']:
                raise SchemaError(f"The id attribute is not supported (field '{raw_field['name']}')", decl.file, line)
            t = self._resolve_type(raw_field['type'], decl, line)
            deprecated = 'deprecated' in raw_field['attributes']
            if struct_def.fixed:
                self._check_struct_member(raw_field, t, decl)
            elif t.base_type == BaseType.ARRAY:
                raise SchemaError(f"Arrays are only allowed in structs (field '{raw_field['name']}')", decl.file, line)
            if t.base_type == BaseType.UNION or (t.base_type == BaseType.VECTOR and t.element == BaseType.UNION):
                if t.base_type == BaseType.UNION:
                    type_field_type = Type(BaseType.UTYPE, enum_def=t.enum_def)
                else:
                    type_field_type = Type(BaseType.VECTOR, element=BaseType.UTYPE, enum_def=t.enum_def)
                self._add_field(struct_def, FieldDef(raw_field['name'] + UNION_TYPE_SUFFIX, type_field_type,
                                                     deprecated=deprecated, line=line), decl)
            constant = self._resolve_default(raw_field, t, decl, not struct_def.fixed)
            field = FieldDef(raw_field['name'], t, constant=constant,
                             deprecated=deprecated, doc=raw_field['doc'], line=line)
            self._add_field(struct_def, field, decl)

    def _check_struct_member(self, raw_field: dict, t: Type, decl: _Declaration):
        name = raw_field['name']
        if 'deprecated' in raw_field['attributes']:
            raise SchemaError(f"Struct field '{name}' cannot be deprecated", decl.file, raw_field['line'])
        if raw_field['default'] is not None:
            raise SchemaError(f"Struct field '{name}' cannot have a default", decl.file, raw_field['line'])
        fixed = is_scalar(t.base_type) or t.base_type == BaseType.ARRAY or (
            t.base_type == BaseType.STRUCT and t.struct_def.fixed)
        if not fixed:
            raise SchemaError(f"Struct field '{name}' has variable-size type; structs may only contain "
                              f"scalars, structs and arrays", decl.file, raw_field['line'])

    def _add_field(self, struct_def: StructDef, field: FieldDef, decl: _Declaration):
        if struct_def.find_field(field.name) is not None:
            raise SchemaError(f"Duplicate field '{field.name}' in '{struct_def.name}'", decl.file, field.line)
        if not struct_def.fixed:
            field.offset = 4 + 2 * len(struct_def.fields)
        struct_def.fields.append(field)

    # --- Struct layout ---
    def _layout_struct(self, decl: _Declaration):
        struct_def = decl.definition
        if struct_def in self._laying_out:
            raise SchemaError(f"Struct '{struct_def.name}' contains itself", decl.file, decl.line)
        if struct_def.bytesize:
            return
        self._laying_out.add(struct_def)
        for field in struct_def.fields:
            nested = field.type.struct_def
            if nested is not None and nested.fixed:
                self._layout_struct(self._declaration_of(nested))
        bytesize = 0
        minalign = 1
        previous = None
        for field in struct_def.fields:
            size = inline_size(field.type)
            alignment = inline_alignment(field.type)
            minalign = max(minalign, alignment)
            padding = -bytesize % alignment
            if previous is not None:
                previous.padding = padding
            bytesize += padding
            field.offset = bytesize
            bytesize += size
            previous = field
        force_align = decl.raw['attributes'].get('force_align')
        if force_align is not None:
            align = _parse_int(force_align, decl.file, decl.line)
            if align < minalign or align > MAX_FORCE_ALIGN or align & (align - 1):
                raise SchemaError(f"force_align must be a power of two between {minalign} and {MAX_FORCE_ALIGN}",
                                  decl.file, decl.line)
            minalign = align
        if bytesize == 0:
            raise SchemaError(f"Struct '{struct_def.name}' has size 0", decl.file, decl.line)
        tail = -bytesize % minalign
        previous.padding += tail
        struct_def.minalign = minalign
        struct_def.bytesize = bytesize + tail
        self._laying_out.discard(struct_def)

    def _declarations_of_kind(self, *kinds) -> List[_Declaration]:
        return [decl for decl in self.declarations if decl.raw['kind'] in kinds]

    def _declaration_of(self, definition) -> _Declaration:
        for decl in self.declarations:
            if decl.definition is definition:
                return decl
        raise ValueError(f"No declaration for {definition!r}")

    def build(self, file: str) -> Schema:
        self._declare()
        for decl in self._declarations_of_kind('enum'):
            self._resolve_enum(decl)
        for decl in self._declarations_of_kind('union'):
            self._resolve_union(decl)
        for decl in self._declarations_of_kind('table', 'struct'):
            self._resolve_fields(decl)
        for decl in self._declarations_of_kind('struct'):
            self._layout_struct(decl)

        root_type = None
        if self.root_type_decl is not None:
            root_type = self._lookup(self.root_type_decl.raw['name'], self.root_type_decl, self.root_type_decl.line)
            if not isinstance(root_type, StructDef) or root_type.fixed:
                raise SchemaError(f"root_type '{self.root_type_decl.raw['name']}' must be a table",
                                  self.root_type_decl.file, self.root_type_decl.line)

        schema = Schema(
            file=file,
            enums=[decl.definition for decl in self._declarations_of_kind('enum', 'union')],
            structs=[decl.definition for decl in self._declarations_of_kind('table', 'struct')],
            root_type=root_type,
            file_identifier=self.file_identifier,
            includes=self.includes,
        )
        if self.verbose:
            print(f"[DEBUG] Loaded {len(schema.enums)} enum(s) and {len(schema.structs)} struct(s)/table(s) "
                  f"from {file} ({len(self.includes)} include(s))")
        return schema


def load_schema_file(path: str, include_dirs: Optional[List[str]] = None, verbose: bool = False) -> Schema:
    """Load a .fbs file and everything it includes into a resolved Schema."""
    loader = SchemaLoader(include_dirs, verbose)
    loader._read_file(path, generated=False)
    return loader.build(path)


def load_schema_text(text: str, file: str = "<string>", include_dirs: Optional[List[str]] = None,
                     verbose: bool = False) -> Schema:
    """Load schema text; includes are looked up relative to the current directory and include_dirs."""
    loader = SchemaLoader(include_dirs, verbose)
    loader._read_text(text, file, generated=False)
    return loader.build(file)
