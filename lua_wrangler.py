#!/usr/bin/env python3
"""
LuaWrangler

This script reads a FlatBuffers schema (.fbs) and generates Lua modules for it: one module per
enum, union, struct and table, with zero-copy accessors, builder helpers and, optionally, an
object-based API (plain Lua tables plus Pack/UnPack).

Usage:
    python lua_wrangler.py --input <schema.fbs> --output <output_dir> [--gen-object-api] [--gen-all]
                           [--empty-vectors-null] [--include-dir <dir>]... [--dump-schema] [--verbose]

Arguments:
    --input, -i          : Path to the schema file
    --output, -o         : Directory where the Lua modules will be generated; each namespace
                           component becomes a subdirectory
    --gen-object-api     : Also generate the object-based API (T, UnPack, UnPackTo, Pack)
    --gen-all            : Also generate modules for definitions from included files
    --empty-vectors-null : Object-API vectors default to nil instead of {}
    --include-dir, -I    : Additional directory to search for included schemas (repeatable)
    --dump-schema        : Write a JSON dump of the resolved schema to the output directory
    --verbose, -v        : Print debug information
    --help, -h           : Show this help message

Environment overrides:
    LW_INPUT_FILE, LW_OUTPUT_DIR, LW_GEN_OBJECT_API, LW_GEN_ALL, LW_EMPTY_VECTORS_NULL, LW_VERBOSE

Example:
    python lua_wrangler.py --input monster.fbs --output ./generated
    python lua_wrangler.py --input monster.fbs --output ./generated --gen-object-api -I ./schemas
"""

import argparse
import os
import sys
from typing import List, Optional

from schema_loader import SchemaError, load_schema_file
from schema_debug import format_schema, pretty_print_schema
from generators.generator_utils import UnsupportedTypeError
from generators.lua_generator import LuaGenerator, LuaGeneratorOptions


class SchemaToLuaConverter:
    """
    Handles the conversion of a FlatBuffers schema to Lua modules.
    """

    def __init__(self, input_file: str, output_dir: str, options: LuaGeneratorOptions = None,
                 include_dirs: Optional[List[str]] = None, verbose: bool = False):
        """
        Initialize the converter with input file and output directory.

        Args:
            input_file: Path to the schema file
            output_dir: Directory where output files will be generated
            options: Generator options (default: all off)
            include_dirs: Additional include search directories
            verbose: Whether to print debug information (default: False)
        """
        self.input_file = input_file
        self.output_dir = output_dir
        self.options = options if options else LuaGeneratorOptions()
        self.include_dirs = include_dirs or []
        self.schema = None
        self.verbose = verbose

    def parse_input_file(self) -> bool:
        """
        Load and resolve the schema file.

        Returns:
            bool: True if loading was successful, False otherwise
        """
        try:
            self.schema = load_schema_file(self.input_file, self.include_dirs, self.verbose)
        except SchemaError as e:
            print(f"Error: {e}")
            return False

        if self.verbose:
            print("[DEBUG] Resolved schema:")
            print(format_schema(self.schema))
        return True

    def dump_schema(self) -> bool:
        if not self.schema:
            print("Error: No schema available. Parse input file first.")
            return False
        dump_name = os.path.splitext(os.path.basename(self.input_file))[0] + "_schema.json"
        try:
            pretty_print_schema(self.schema, dump_name, self.output_dir)
        except OSError as e:
            print(f"Error writing schema dump: {str(e)}")
            return False
        return True

    def generate_lua_output(self) -> bool:
        """
        Generate the Lua modules for the loaded schema.

        Returns:
            bool: True if generation was successful, False otherwise
        """
        if not self.schema:
            print("Error: No schema available. Parse input file first.")
            return False

        generator = LuaGenerator(self.schema, self.output_dir, self.options, self.verbose)
        try:
            return generator.generate()
        except UnsupportedTypeError as e:
            print(f"Error generating Lua output: {str(e)}")
            return False


def parse_arguments(argv: Optional[List[str]] = None):
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace: Parsed command line arguments
    """
    parser = argparse.ArgumentParser(
        description="Generate Lua modules from a FlatBuffers schema",
        formatter_class=argparse.RawTextHelpFormatter
    )

    parser.add_argument('--input', '-i', required=True, help='Path to the schema file')
    parser.add_argument('--output', '-o', required=True, help='Directory where output files will be generated')
    parser.add_argument('--gen-object-api', action='store_true', help='Also generate the object-based API')
    parser.add_argument('--gen-all', action='store_true', help='Also generate modules for included definitions')
    parser.add_argument('--empty-vectors-null', action='store_true',
                        help='Object-API vectors default to nil instead of an empty table')
    parser.add_argument('--include-dir', '-I', action='append', default=[],
                        help='Additional directory to search for included schemas (repeatable)')
    parser.add_argument('--dump-schema', action='store_true',
                        help='Write a JSON dump of the resolved schema to the output directory')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose output for debugging')

    return parser.parse_args(argv)


def env_flag(name: str, default: bool) -> bool:
    if name not in os.environ:
        return default
    return os.environ[name].strip().lower() in ('1', 'true', 'yes', 'on')


def main(argv: Optional[List[str]] = None):
    """
    Main entry point of the script.
    """
    args = parse_arguments(argv)

    # Override with environment variables if set
    input_file = os.environ.get('LW_INPUT_FILE', args.input)
    output_dir = os.environ.get('LW_OUTPUT_DIR', args.output)
    options = LuaGeneratorOptions(
        generate_object_based_api=env_flag('LW_GEN_OBJECT_API', args.gen_object_api),
        set_empty_vectors_to_null=env_flag('LW_EMPTY_VECTORS_NULL', args.empty_vectors_null),
        generate_all=env_flag('LW_GEN_ALL', args.gen_all),
    )
    verbose = env_flag('LW_VERBOSE', args.verbose)
    if verbose:
        print(f"[DEBUG] {options!r}")

    converter = SchemaToLuaConverter(input_file, output_dir, options, args.include_dir, verbose)

    if not converter.parse_input_file():
        sys.exit(1)

    success = True

    if args.dump_schema:
        if not converter.dump_schema():
            success = False

    if not converter.generate_lua_output():
        success = False

    if success:
        print("Lua generation completed successfully.")
    else:
        print("Lua generation completed with errors.")
        sys.exit(1)


if __name__ == '__main__':
    main()
