"""
Declaration & directive extraction (extract.py).

For one Go file:
1) Classify each top-level declaration (func, struct type, map table, const
   group, anything else) into a Declaration record with its byte position.
2) Collect `//#RouterMap`, `//#Router k...`, `//#MappingMap`, `//#Mapping k...`
   comments as Directive records.
3) Feed the package-wide indices on the ScanContext (enum types and their
   members, tables by name, function/struct targets by name).
"""

import re
from pathlib import Path
from typing import List, Optional

from gosource import func_type_string, node_text, parse_tree_strict, read_source, type_string
from registry import (
    DECL_CONST,
    DECL_FUNCTION,
    DECL_OTHER,
    DECL_STRUCT,
    DECL_TABLE,
    MAPPING,
    MAPPING_MAP,
    ROUTER,
    ROUTER_MAP,
    TARGET_KINDS,
    Declaration,
    Directive,
    EnumType,
    ScanContext,
    TableDecl,
)

DIRECTIVE_RE = re.compile(
    r"^//\s*#(?P<kind>RouterMap|Router|MappingMap|Mapping)\b(?P<rest>.*)$",
    re.IGNORECASE,
)

_KINDS = {k.lower(): k for k in (ROUTER_MAP, ROUTER, MAPPING_MAP, MAPPING)}


def _line(node) -> int:
    return node.start_point[0] + 1


def parse_directive(text: str) -> Optional[tuple]:
    m = DIRECTIVE_RE.match(text.strip())
    if m is None:
        return None
    kind = _KINDS[m.group("kind").lower()]
    if kind in TARGET_KINDS:
        return kind, m.group("rest").split()
    return kind, []


def find_directives(tree, code: bytes, path: Path) -> List[Directive]:
    out: List[Directive] = []

    def traverse(node):
        if node.type == "comment":
            parsed = parse_directive(node_text(code, node))
            if parsed is not None:
                kind, keys = parsed
                out.append(Directive(kind=kind, path=path, line=_line(node), pos=node.start_byte, keys=keys))
            return
        for child in node.children:
            traverse(child)

    traverse(tree.root_node)
    return out


def _enum(context: ScanContext, name: str) -> EnumType:
    enum = context.enum_types.get(name)
    if enum is None:
        enum = EnumType(name=name, underlying="")
        context.enum_types[name] = enum
    return enum


def _spec_names(spec, code: bytes) -> List[str]:
    # the name field also spans the ',' separators
    return [node_text(code, n) for n in spec.children_by_field_name("name") if n.type == "identifier"]


def _index(context: ScanContext, index: dict, name: str, record) -> None:
    first = index.setdefault(name, record)
    if first is not record:
        context.warn(
            f"{name} is also declared at {first.path}:{first.line}; directives bind to the declaration they precede",
            record.path,
            record.line,
        )


def _map_type_of_spec(spec, code: bytes):
    declared = spec.child_by_field_name("type")
    if declared is not None:
        return declared if declared.type == "map_type" else None

    values = spec.child_by_field_name("value")
    if values is None:
        return None
    for value in values.named_children:
        if value.type == "call_expression":
            fn = value.child_by_field_name("function")
            args = value.child_by_field_name("arguments")
            if fn is None or args is None or fn.type != "identifier":
                continue
            if node_text(code, fn) != "make" or not args.named_children:
                continue
            if args.named_children[0].type == "map_type":
                return args.named_children[0]
        elif value.type == "composite_literal":
            literal_type = value.child_by_field_name("type")
            if literal_type is not None and literal_type.type == "map_type":
                return literal_type
    return None


def _var_specs(decl_node):
    for child in decl_node.named_children:
        if child.type == "var_spec":
            yield child
        elif child.type == "var_spec_list":
            for spec in child.named_children:
                if spec.type == "var_spec":
                    yield spec


def _var_declaration(node, code: bytes, path: Path, context: ScanContext) -> Declaration:
    found: Optional[Declaration] = None
    for spec in _var_specs(node):
        map_node = _map_type_of_spec(spec, code)
        if map_node is None:
            continue
        name = _spec_names(spec, code)[0]
        table = TableDecl(
            name=name,
            key_type=type_string(map_node.child_by_field_name("key"), code),
            value_type=type_string(map_node.child_by_field_name("value"), code),
            path=path,
            line=_line(spec),
            pos=node.start_byte,
        )
        _index(context, context.tables, name, table)
        # grouped `var (...)`: the last map spec represents the group
        found = Declaration(kind=DECL_TABLE, name=name, path=path, line=_line(spec), pos=node.start_byte, table=table)
    if found is not None:
        return found
    return Declaration(kind=DECL_OTHER, name="var", path=path, line=_line(node), pos=node.start_byte)


def _type_declaration(node, code: bytes, path: Path, context: ScanContext) -> Declaration:
    found: Optional[Declaration] = None
    for spec in node.named_children:
        if spec.type != "type_spec":
            continue
        name = node_text(code, spec.child_by_field_name("name"))
        underlying = spec.child_by_field_name("type")
        if underlying is None:
            continue
        if underlying.type == "struct_type":
            decl = Declaration(
                kind=DECL_STRUCT,
                name=name,
                path=path,
                line=_line(spec),
                pos=node.start_byte,
                generic=spec.child_by_field_name("type_parameters") is not None,
            )
            _index(context, context.targets, name, decl)
            # grouped `type (...)`: the last struct represents the group
            found = decl
        elif underlying.type in ("type_identifier", "qualified_type"):
            _enum(context, name).underlying = type_string(underlying, code)
    if found is not None:
        return found
    return Declaration(kind=DECL_OTHER, name="type", path=path, line=_line(node), pos=node.start_byte)


def _const_declaration(node, code: bytes, path: Path, context: ScanContext) -> Declaration:
    decl = Declaration(kind=DECL_CONST, name="const", path=path, line=_line(node), pos=node.start_byte)
    current: Optional[str] = None
    for spec in node.named_children:
        if spec.type != "const_spec":
            continue
        declared = spec.child_by_field_name("type")
        if declared is not None:
            current = type_string(declared, code)
        elif spec.child_by_field_name("value") is not None:
            # untyped constant, e.g. `AA = 1`
            current = None
        if current is None:
            continue
        members = _enum(context, current).members
        members.extend(m for m in _spec_names(spec, code) if m != "_")
    return decl


def _function_declaration(node, code: bytes, path: Path, context: ScanContext) -> Declaration:
    decl = Declaration(
        kind=DECL_FUNCTION,
        name=node_text(code, node.child_by_field_name("name")),
        path=path,
        line=_line(node),
        pos=node.start_byte,
        signature=func_type_string(node.child_by_field_name("parameters"), node.child_by_field_name("result"), code),
        has_receiver=node.type == "method_declaration",
        generic=node.child_by_field_name("type_parameters") is not None,
    )
    if not decl.has_receiver:
        _index(context, context.targets, decl.name, decl)
    return decl


def extract_declarations(tree, code: bytes, path: Path, context: ScanContext) -> List[Declaration]:
    out: List[Declaration] = []
    for node in tree.root_node.named_children:
        if node.type in ("function_declaration", "method_declaration"):
            out.append(_function_declaration(node, code, path, context))
        elif node.type == "type_declaration":
            out.append(_type_declaration(node, code, path, context))
        elif node.type == "var_declaration":
            out.append(_var_declaration(node, code, path, context))
        elif node.type == "const_declaration":
            out.append(_const_declaration(node, code, path, context))
        elif node.type == "import_declaration":
            out.append(Declaration(kind=DECL_OTHER, name="import", path=path, line=_line(node), pos=node.start_byte))
    return out


def package_name_of(tree, code: bytes) -> str:
    for node in tree.root_node.named_children:
        if node.type == "package_clause":
            for child in node.named_children:
                if child.type in ("package_identifier", "identifier"):
                    return node_text(code, child)
    return ""


def scan_file(path: Path, context: ScanContext) -> bool:
    """Extract one file into the context; False when the file belongs to another package."""
    code = read_source(path)
    tree = parse_tree_strict(code, path)

    package = package_name_of(tree, code)
    if not context.package_name:
        context.package_name = package
    elif package != context.package_name:
        context.warn(
            f"package {package!r} differs from {context.package_name!r}, file skipped",
            path,
            1,
        )
        return False

    directives = find_directives(tree, code, path)
    declarations = extract_declarations(tree, code, path, context)
    context.records[path] = [*declarations, *directives]
    return True
