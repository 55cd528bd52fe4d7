"""
schema_debug.py
Pretty-print and debug dump utilities for resolved LuaWrangler schemas.
"""
import os
import json

from schema_model import Schema, StructDef, EnumDef, FieldDef, Type, BaseType


def _type_to_dict(t: Type) -> dict:
    # Definitions are referenced by name; the dump would be cyclic otherwise.
    info = {'base_type': t.base_type.name}
    if t.base_type in (BaseType.VECTOR, BaseType.ARRAY):
        info['element'] = t.element.name
    if t.base_type == BaseType.ARRAY:
        info['fixed_length'] = t.fixed_length
    if t.struct_def is not None:
        info['struct'] = t.struct_def.qualified_name
    if t.enum_def is not None:
        info['enum'] = t.enum_def.qualified_name
    return info


def _field_to_dict(field: FieldDef) -> dict:
    return {
        'name': field.name,
        'type': _type_to_dict(field.type),
        'offset': field.offset,
        'default': field.constant,
        'deprecated': field.deprecated,
        'padding': field.padding,
        'doc': field.doc,
        'line': field.line,
    }


def schema_to_dict(schema: Schema) -> dict:
    enums = []
    for enum_def in schema.enums:
        enums.append({
            'name': enum_def.qualified_name,
            'kind': 'union' if enum_def.is_union else 'enum',
            'underlying_type': enum_def.underlying_type.name,
            'generated': enum_def.generated,
            'file': enum_def.file,
            'line': enum_def.line,
            'doc': enum_def.doc,
            'values': [
                {'name': v.name, 'value': v.value, 'union_type': _type_to_dict(v.union_type), 'doc': v.doc}
                if enum_def.is_union else {'name': v.name, 'value': v.value, 'doc': v.doc}
                for v in enum_def.values
            ],
        })
    structs = []
    for struct_def in schema.structs:
        entry = {
            'name': struct_def.qualified_name,
            'kind': 'struct' if struct_def.fixed else 'table',
            'generated': struct_def.generated,
            'file': struct_def.file,
            'line': struct_def.line,
            'doc': struct_def.doc,
            'fields': [_field_to_dict(field) for field in struct_def.fields],
        }
        if struct_def.fixed:
            entry['minalign'] = struct_def.minalign
            entry['bytesize'] = struct_def.bytesize
        structs.append(entry)
    return {
        'file': schema.file,
        'root_type': schema.root_type.qualified_name if schema.root_type else None,
        'file_identifier': schema.file_identifier,
        'includes': schema.includes,
        'enums': enums,
        'structs': structs,
    }


def pretty_print_schema(schema: Schema, file_path: str = None, out_dir: str = "./generated/schema"):
    """
    Pretty-print the resolved schema to a file (as JSON) for inspection.
    If file_path is not given, use out_dir/schema_debug_dump.json.
    """
    if file_path is None:
        file_path = os.path.join(out_dir, "schema_debug_dump.json")
    else:
        file_path = os.path.join(out_dir, file_path)

    os.makedirs(os.path.dirname(file_path), exist_ok=True)
    with open(file_path, "w", encoding="utf-8") as f:
        json.dump(schema_to_dict(schema), f, indent=2)
    print(f"[DEBUG] Schema pretty-printed to {file_path}")
    return file_path


def _format_type(t: Type) -> str:
    if t.base_type == BaseType.VECTOR:
        return f"[{_format_element(t)}]"
    if t.base_type == BaseType.ARRAY:
        return f"[{_format_element(t)}:{t.fixed_length}]"
    return _format_element(t, t.base_type)


def _format_element(t: Type, base_type: BaseType = None) -> str:
    base_type = base_type or t.element
    if base_type == BaseType.STRUCT and t.struct_def is not None:
        return t.struct_def.qualified_name
    if t.enum_def is not None and base_type != BaseType.NONE:
        return f"{t.enum_def.qualified_name}({base_type.value})"
    return base_type.value


def _format_struct(struct_def: StructDef, add_line):
    kind = 'Struct' if struct_def.fixed else 'Table'
    layout = f" [minalign={struct_def.minalign}, bytesize={struct_def.bytesize}]" if struct_def.fixed else ""
    generated = " (included)" if struct_def.generated else ""
    add_line(f"{kind}: {struct_def.qualified_name}{layout}{generated} (file='{struct_def.file}', line={struct_def.line})")
    for field in struct_def.fields:
        details = [f"offset={field.offset}", f"default={field.constant}"]
        if field.padding:
            details.append(f"padding={field.padding}")
        if field.deprecated:
            details.append("deprecated")
        add_line(f"  Field: {field.name}: {_format_type(field.type)} ({', '.join(details)})")


def _format_enum(enum_def: EnumDef, add_line):
    kind = 'Union' if enum_def.is_union else 'Enum'
    generated = " (included)" if enum_def.generated else ""
    add_line(f"{kind}: {enum_def.qualified_name} : {enum_def.underlying_type.value}{generated} "
             f"(file='{enum_def.file}', line={enum_def.line})")
    for value in enum_def.values:
        payload = f" -> {_format_type(value.union_type)}" if enum_def.is_union and not value.is_zero() else ""
        add_line(f"  Value: {value.name} = {value.value}{payload}")


def format_schema(schema: Schema) -> str:
    """Indented text tree of a resolved schema, used for verbose output."""
    lines = []
    add_line = lines.append
    add_line(f"Schema: {schema.file}")
    if schema.root_type is not None:
        add_line(f"root_type: {schema.root_type.qualified_name}")
    if schema.file_identifier:
        add_line(f"file_identifier: {schema.file_identifier}")
    for include in schema.includes:
        add_line(f"include: {include}")
    for enum_def in schema.enums:
        _format_enum(enum_def, add_line)
    for struct_def in schema.structs:
        _format_struct(struct_def, add_line)
    return "\n".join(lines)
