"""
namespace_resolver.py
Namespace and qualified-name resolution for LuaWrangler, following the FlatBuffers lookup rules,
plus the mapping from a definition's namespace to its generated unit's location.
"""
import os
from typing import Dict, List, Optional

from schema_model import Definition
from generators.lua_naming import normalized_name


def resolve_reference_hierarchically(ref_name: str, current_namespace: List[str], definitions: Dict[str, Definition]):
    """
    Resolve a type reference according to the FlatBuffers namespace hierarchy rules.
    - ref_name: the (possibly qualified) name to resolve, e.g. 'Vec3' or 'MyGame.Example.Vec3'
    - current_namespace: the namespace components the reference appears in, e.g. ['MyGame', 'Example']
    - definitions: every known definition keyed by qualified name
    Returns the definition if found, else None.
    """
    # Search from the innermost enclosing namespace outwards; the last candidate is ref_name as written
    for i in range(len(current_namespace), -1, -1):
        candidate = '.'.join(list(current_namespace[:i]) + [ref_name])
        if candidate in definitions:
            return definitions[candidate]
    return None


def namespace_path(definition: Definition) -> List[str]:
    """Directory components a definition's unit is placed under."""
    return list(definition.namespace.components)


def unit_path(output_dir: str, definition: Definition, extension: str = ".lua") -> str:
    """e.g. out/MyGame/Example/Monster.lua"""
    return os.path.join(output_dir, *namespace_path(definition), normalized_name(definition) + extension)


def last_namespace_part(definition: Optional[Definition]) -> str:
    if definition is None:
        return ''
    return definition.namespace.last_part()
