from lark import Lark, Transformer, v_args


# Grammar for the supported FlatBuffers schema subset
grammar = r"""
    start: _decl*

    _decl: include
         | namespace_decl
         | root_decl
         | file_identifier_decl
         | file_extension_decl
         | attribute_decl
         | table_decl
         | struct_decl
         | enum_decl
         | union_decl

    include: "include" STRING ";"
    namespace_decl: "namespace" dotted_name ";"
    root_decl: "root_type" dotted_name ";"
    file_identifier_decl: "file_identifier" STRING ";"
    file_extension_decl: "file_extension" STRING ";"
    attribute_decl: "attribute" (STRING | NAME) ";"

    table_decl: "table" NAME metadata? "{" field_decl* "}"
    struct_decl: "struct" NAME metadata? "{" field_decl* "}"
    enum_decl: "enum" NAME ":" dotted_name metadata? "{" [enum_val ("," enum_val)* ","?] "}"
    union_decl: "union" NAME metadata? "{" [union_val ("," union_val)* ","?] "}"

    field_decl: NAME ":" type ("=" scalar)? metadata? ";"
    enum_val: NAME ("=" NUMBER)?
    union_val: NAME ":" dotted_name -> aliased_union_val
             | dotted_name          -> union_val

    type: "[" dotted_name "]"            -> vector_type
        | "[" dotted_name ":" NUMBER "]" -> array_type
        | dotted_name                    -> named_type

    metadata: "(" [meta_item ("," meta_item)*] ")"
    meta_item: NAME (":" scalar)?

    scalar: NUMBER | NAME | STRING | SIGNED_SPECIAL
    dotted_name: NAME ("." NAME)*

    NAME: /[a-zA-Z_][a-zA-Z0-9_]*/
    NUMBER: /[-+]?(0[xX][0-9a-fA-F]+|([0-9]+\.?[0-9]*|\.[0-9]+)([eE][-+]?[0-9]+)?)/
    STRING: /"(\\.|[^"\\])*"/
    SIGNED_SPECIAL: /[-+](infinity|inf|nan)/i
    COMMENT: /\/\/[^\n]*/
    BLOCK_COMMENT: /\/\*[\s\S]*?\*\//

    %import common.WS
    %ignore WS
    %ignore COMMENT
    %ignore BLOCK_COMMENT
"""

DOC_PREFIX = "///"


def _make_parser(comments):
    # Comments are dropped from the tree; the callback keeps them so doc comments can be attached by line.
    return Lark(
        grammar,
        start='start',
        parser='lalr',
        propagate_positions=True,
        lexer_callbacks={'COMMENT': comments.append},
    )


class Metadata(dict):
    """Attributes attached to a declaration, e.g. (deprecated) or (force_align: 16)."""
    pass


def _unquote(token):
    return str(token)[1:-1]


@v_args(meta=True)
class SchemaTransformer(Transformer):
    """Turns the parse tree into plain declaration dictionaries, one per top-level statement."""

    def start(self, meta, items):
        return list(items)

    def dotted_name(self, meta, items):
        return '.'.join(str(item) for item in items)

    def scalar(self, meta, items):
        token = items[0]
        if token.type == 'STRING':
            return _unquote(token)
        return str(token)

    def meta_item(self, meta, items):
        value = items[1] if len(items) > 1 else None
        return str(items[0]), value

    def metadata(self, meta, items):
        return Metadata(item for item in items if item is not None)

    def include(self, meta, items):
        return {'kind': 'include', 'path': _unquote(items[0]), 'line': meta.line}

    def namespace_decl(self, meta, items):
        return {'kind': 'namespace', 'components': items[0].split('.'), 'line': meta.line}

    def root_decl(self, meta, items):
        return {'kind': 'root_type', 'name': items[0], 'line': meta.line}

    def file_identifier_decl(self, meta, items):
        return {'kind': 'file_identifier', 'value': _unquote(items[0]), 'line': meta.line}

    def file_extension_decl(self, meta, items):
        return {'kind': 'file_extension', 'value': _unquote(items[0]), 'line': meta.line}

    def attribute_decl(self, meta, items):
        token = items[0]
        name = _unquote(token) if token.type == 'STRING' else str(token)
        return {'kind': 'attribute', 'name': name, 'line': meta.line}

    def vector_type(self, meta, items):
        return {'kind': 'vector', 'name': items[0]}

    def array_type(self, meta, items):
        return {'kind': 'array', 'name': items[0], 'length': str(items[1])}

    def named_type(self, meta, items):
        return {'kind': 'named', 'name': items[0]}

    def field_decl(self, meta, items):
        field = {'name': str(items[0]), 'type': items[1], 'default': None, 'attributes': {},
                 'line': meta.line, 'doc': []}
        for item in items[2:]:
            if isinstance(item, Metadata):
                field['attributes'] = item
            elif item is not None:
                field['default'] = item
        return field

    def _record(self, kind, meta, items):
        attributes = {}
        fields = []
        for item in items[1:]:
            if item is None:
                continue
            if isinstance(item, Metadata):
                attributes = item
            else:
                fields.append(item)
        return {'kind': kind, 'name': str(items[0]), 'attributes': attributes, 'fields': fields,
                'line': meta.line, 'doc': []}

    def table_decl(self, meta, items):
        return self._record('table', meta, items)

    def struct_decl(self, meta, items):
        return self._record('struct', meta, items)

    def enum_val(self, meta, items):
        value = str(items[1]) if len(items) > 1 and items[1] is not None else None
        return {'name': str(items[0]), 'value': value, 'line': meta.line, 'doc': []}

    def enum_decl(self, meta, items):
        attributes = {}
        values = []
        for item in items[2:]:
            if item is None:
                continue
            if isinstance(item, Metadata):
                attributes = item
            else:
                values.append(item)
        return {'kind': 'enum', 'name': str(items[0]), 'underlying': items[1], 'attributes': attributes,
                'values': values, 'line': meta.line, 'doc': []}

    def union_val(self, meta, items):
        return {'name': None, 'type': items[0], 'line': meta.line, 'doc': []}

    def aliased_union_val(self, meta, items):
        return {'name': str(items[0]), 'type': items[1], 'line': meta.line, 'doc': []}

    def union_decl(self, meta, items):
        attributes = {}
        members = []
        for item in items[1:]:
            if item is None:
                continue
            if isinstance(item, Metadata):
                attributes = item
            else:
                members.append(item)
        return {'kind': 'union', 'name': str(items[0]), 'attributes': attributes, 'members': members,
                'line': meta.line, 'doc': []}


def _doc_lines(comments):
    docs = {}
    for token in comments:
        text = str(token)
        if text.startswith(DOC_PREFIX):
            line = text[len(DOC_PREFIX):]
            docs[token.line] = line[1:] if line.startswith(' ') else line
    return docs


def _attach_doc(node, docs):
    """A doc comment belongs to the node if it sits on the lines directly above it."""
    lines = []
    line = node['line'] - 1
    while line in docs:
        lines.insert(0, docs[line])
        line -= 1
    node['doc'] = lines


def attach_doc_comments(decls, comments):
    docs = _doc_lines(comments)
    for decl in decls:
        if 'doc' not in decl:
            continue
        _attach_doc(decl, docs)
        for child in decl.get('fields', []) + decl.get('values', []) + decl.get('members', []):
            _attach_doc(child, docs)
    return decls


def parse_fbs(text):
    """Parse FlatBuffers schema text into a list of declaration dictionaries."""
    comments = []
    tree = _make_parser(comments).parse(text)
    decls = SchemaTransformer().transform(tree)
    return attach_doc_comments(decls, comments)
