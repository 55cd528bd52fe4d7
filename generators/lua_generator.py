"""
Lua Generator

Turns a resolved FlatBuffers schema into one Lua module per enum, union, struct and table.
Each module is self-contained: references to other definitions are resolved by module path with
require(), which the generated code only calls lazily (inside functions), except for the
discriminant tables of unions, which are filled in at load time.
"""
import os
import re
from typing import List, Tuple

from schema_model import Schema, StructDef, EnumDef, Definition
from namespace_resolver import unit_path, last_namespace_part
from generators.lua_naming import normalized_name, normalized_meta_name, escape_keyword
from generators.generator_utils import INDENT, END, COMMENT, SELF_DATA, gen_comment, gen_constant
from generators.lua_accessors import gen_struct_accessor
from generators.lua_builders import gen_builders
from generators.lua_object_api import gen_struct_object_api, gen_union_object_api

FLATBUFFERS_GENERATED_WARNING = "automatically generated by the FlatBuffers compiler, do not modify"

# A use of the runtime module, as opposed to a require path that merely starts with 'flatbuffers.'.
RUNTIME_REFERENCE = re.compile(r"(?<![\w.'\"])flatbuffers\.")


class LuaGeneratorOptions:
    """Flags that change what the generator emits."""

    def __init__(self, generate_object_based_api: bool = False, set_empty_vectors_to_null: bool = False,
                 generate_all: bool = False):
        self.generate_object_based_api = generate_object_based_api
        self.set_empty_vectors_to_null = set_empty_vectors_to_null
        # Also emit definitions that came from included files.
        self.generate_all = generate_all

    def __repr__(self):
        return (f"LuaGeneratorOptions(generate_object_based_api={self.generate_object_based_api}, "
                f"set_empty_vectors_to_null={self.set_empty_vectors_to_null}, generate_all={self.generate_all})")


# --- Enums ---
def gen_enum(enum_def: EnumDef, options: LuaGeneratorOptions) -> List[str]:
    lines = gen_comment(enum_def.doc)
    lines.append(f"local {normalized_name(enum_def)} = {{")
    for enum_val in enum_def.values:
        lines += gen_comment(enum_val.doc, INDENT)
        lines.append(f"{INDENT}{escape_keyword(enum_val.name)} = {gen_constant(enum_val.value)},")
    lines.append("}")
    if options.generate_object_based_api:
        lines += gen_union_object_api(enum_def)
    return lines


# --- Structs and tables ---
def begin_class(struct_def: StructDef) -> List[str]:
    return [
        f"local {normalized_name(struct_def)} = {{}} {COMMENT}the module",
        f"local {normalized_meta_name(struct_def)} = {{}} {COMMENT}the class metatable",
    ]


def gen_new_object_prototype(struct_def: StructDef) -> List[str]:
    return [
        f"function {normalized_name(struct_def)}.New()",
        f"{INDENT}local o = {{}}",
        f"{INDENT}setmetatable(o, {{__index = {normalized_meta_name(struct_def)}}})",
        f"{INDENT}return o",
        END,
    ]


def gen_root_type_from_buffer(struct_def: StructDef) -> List[str]:
    name = normalized_name(struct_def)
    return [
        f"function {name}.GetRootAs{name}(buf, offset)",
        f"{INDENT}local n = flatbuffers.N.UOffsetT:Unpack(buf, offset)",
        f"{INDENT}local o = {name}.New()",
        f"{INDENT}o:Init(buf, n + offset)",
        f"{INDENT}return o",
        END,
    ]


def gen_initialize_existing(struct_def: StructDef) -> List[str]:
    # Lets a caller reuse one accessor object for many positions.
    return [
        f"function {normalized_meta_name(struct_def)}:Init(buf, pos)",
        f"{INDENT}{SELF_DATA} = flatbuffers.view.New(buf, pos)",
        END,
    ]


def gen_struct(struct_def: StructDef, options: LuaGeneratorOptions) -> List[str]:
    lines = gen_comment(struct_def.doc)
    lines += begin_class(struct_def)
    blocks = [gen_new_object_prototype(struct_def)]
    if not struct_def.fixed:
        blocks.append(gen_root_type_from_buffer(struct_def))
    blocks.append(gen_initialize_existing(struct_def))
    for field in struct_def.fields:
        blocks.append(gen_struct_accessor(struct_def, field))
    blocks.append(gen_builders(struct_def))
    for block in blocks:
        # Deprecated fields produce no block.
        if block:
            lines.append("")
            lines += block
    if options.generate_object_based_api:
        lines += gen_struct_object_api(struct_def, options.set_empty_vectors_to_null)
    return lines


# --- Units ---
def needs_runtime_import(body: str) -> bool:
    return RUNTIME_REFERENCE.search(body) is not None


def begin_file(namespace_name: str, needs_imports: bool) -> List[str]:
    lines = [f"{COMMENT}{FLATBUFFERS_GENERATED_WARNING}", "", f"{COMMENT}namespace: {namespace_name}", ""]
    if needs_imports:
        lines += ["local flatbuffers = require('flatbuffers')", ""]
    return lines


def assemble_unit(definition: Definition, body: List[str]) -> str:
    """Wrap a definition's generated code with the banner, the runtime import (if used) and the export."""
    body_text = "\n".join(body)
    lines = begin_file(last_namespace_part(definition), needs_runtime_import(body_text))
    lines.append(body_text)
    lines.append("")
    lines.append(f"return {normalized_name(definition)} {COMMENT}return the module")
    return "\n".join(lines) + "\n"


class LuaGenerator:
    """
    Generates one Lua module per top-level definition of a schema.
    """

    def __init__(self, schema: Schema, output_dir: str, options: LuaGeneratorOptions = None, verbose: bool = False):
        """
        Initialize the generator with the resolved schema and output directory.

        Args:
            schema: The resolved schema to generate code from
            output_dir: Root directory; units are placed under one subdirectory per namespace component
            options: Output-affecting flags (default: all off)
            verbose: Whether to print debug information (default: False)
        """
        self.schema = schema
        self.output_dir = output_dir
        self.options = options if options else LuaGeneratorOptions()
        self.verbose = verbose

    def should_generate(self, definition: Definition) -> bool:
        return self.options.generate_all or not definition.generated

    def generate_units(self) -> List[Tuple[str, str]]:
        """
        Build the text of every unit without touching the file system.

        Returns:
            List of (output path, unit text), enums first, each group in declaration order
        """
        units = []
        for enum_def in self.schema.enums:
            if not self.should_generate(enum_def):
                continue
            if self.verbose:
                print(f"[DEBUG] Generating enum {enum_def.qualified_name}")
            units.append((unit_path(self.output_dir, enum_def), assemble_unit(enum_def, gen_enum(enum_def, self.options))))
        for struct_def in self.schema.structs:
            if not self.should_generate(struct_def):
                continue
            if self.verbose:
                kind = 'struct' if struct_def.fixed else 'table'
                print(f"[DEBUG] Generating {kind} {struct_def.qualified_name}")
            units.append((unit_path(self.output_dir, struct_def),
                          assemble_unit(struct_def, gen_struct(struct_def, self.options))))
        return units

    def write_unit(self, path: str, text: str) -> bool:
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, 'w', newline='\n') as f:
                f.write(text)
        except OSError as e:
            print(f"Error writing {path}: {str(e)}")
            return False
        if self.verbose:
            print(f"[DEBUG] Generated Lua file: {path}")
        return True

    def generate(self) -> bool:
        """
        Generate and write all units. Nothing is written if any unit fails to generate.
        Writing stops at the first unit that cannot be written; units written before it stay on disk.

        Returns:
            bool: True if generation was successful, False otherwise
        """
        print(f"Generating Lua output in: {self.output_dir}")
        units = self.generate_units()
        for path, text in units:
            if not self.write_unit(path, text):
                return False
        print(f"Generated {len(units)} Lua file(s)")
        return True
