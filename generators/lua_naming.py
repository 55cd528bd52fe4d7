"""
Identifier normalization for generated Lua code.
Reserved words get a '_' prefix; every emitted name (accessors, builders, require paths, file names)
goes through here so that lookups in the generated code resolve to the same spelling.
"""

LUA_KEYWORDS = {
    "and", "break", "do", "else", "elseif", "end", "false", "for",
    "function", "goto", "if", "in", "local", "nil", "not", "or",
    "repeat", "return", "then", "true", "until", "while",
}

KEYWORD_PREFIX = "_"
META_SUFFIX = "_mt"


def escape_keyword(name: str) -> str:
    # A schema name spelled '_end' collides with the escaped 'end'; this is not detected.
    return KEYWORD_PREFIX + name if name in LUA_KEYWORDS else name


def normalized_name(definition) -> str:
    """Public name of a definition, field or enum value."""
    return escape_keyword(definition.name)


def normalized_meta_name(definition) -> str:
    """Name of the private metatable that carries a definition's instance methods."""
    return normalized_name(definition) + META_SUFFIX


def make_camel(name: str, first: bool = True) -> str:
    """
    Convert snake_case to CamelCase (or camelCase when first is False).
    The character following each '_' is upper-cased and the '_' dropped; a trailing '_' is kept.
    """
    out = []
    i = 0
    while i < len(name):
        ch = name[i]
        if i == 0 and first:
            out.append(ch.upper())
        elif ch == '_' and i + 1 < len(name):
            i += 1
            out.append(name[i].upper())
        else:
            out.append(ch)
        i += 1
    return ''.join(out)


def accessor_name(field) -> str:
    return make_camel(normalized_name(field))


def argument_name(field) -> str:
    return make_camel(normalized_name(field), False)
