"""
Go source access for noterouter (gosource.py).

Responsibilities:
1) Build the tree_sitter Go parser.
2) Decode Go source files and parse them strictly (broken trees are errors).
3) Render type expressions as canonical descriptor strings, e.g.
   map[Kind]func(int)(error), so declared tables and functions compare as text.
"""

import codecs
from pathlib import Path
from typing import List, Optional

import tree_sitter_go as tsgo
from tree_sitter import Language, Parser

from registry import SourceParseError


def build_go_language():
    # tree_sitter_go exposes the grammar as a capsule from language()
    try:
        return Language(tsgo.language())
    except (AttributeError, TypeError, ValueError):
        return None


def build_go_parser(language):
    if language is None:
        return None
    parser = Parser(language)
    # a grammar built for an incompatible ABI fails on this first parse, not mid-scan
    try:
        parser.parse(b"package p\n\nfunc f() {}\n")
    except ValueError:
        return None
    return parser


GO_LANGUAGE = build_go_language()
go_parser = build_go_parser(GO_LANGUAGE)


def read_source(path: Path) -> bytes:
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise SourceParseError(f"{path}: cannot read Go source: {e}") from e
    if raw.startswith(codecs.BOM_UTF8):
        raw = raw[len(codecs.BOM_UTF8):]
    try:
        raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise SourceParseError(f"{path}: Go source is not valid UTF-8 ({e.reason} at byte {e.start})") from e
    return raw


def _first_broken_node(node):
    if node.type == "ERROR" or node.is_missing:
        return node
    for child in node.children:
        if child.has_error or child.is_missing:
            found = _first_broken_node(child)
            if found is not None:
                return found
    return None


def parse_tree_strict(code: bytes, path: Optional[Path] = None):
    where = str(path) if path is not None else "<source>"
    if go_parser is None:
        raise SourceParseError("tree_sitter Go parser is unavailable.")
    try:
        tree = go_parser.parse(code)
    except Exception as e:
        raise SourceParseError(f"{where}: tree_sitter Go parse failed: {e}") from e

    if tree.root_node.has_error:
        broken = _first_broken_node(tree.root_node) or tree.root_node
        line = broken.start_point[0] + 1
        raise SourceParseError(f"{where}:{line}: syntax error near {node_text(code, broken)[:40]!r}")
    return tree


def node_text(code: bytes, node) -> str:
    return code[node.start_byte:node.end_byte].decode("utf-8", errors="ignore")


def _collapse(text: str) -> str:
    return " ".join(text.split())


def type_string(node, code: bytes) -> str:
    if node is None:
        return ""
    kind = node.type
    if kind in ("type_identifier", "identifier", "qualified_type"):
        return node_text(code, node).replace(" ", "")
    if kind == "pointer_type":
        return "*" + type_string(node.named_children[-1], code)
    if kind == "parenthesized_type":
        return type_string(node.named_children[0], code)
    if kind == "slice_type":
        return "[]" + type_string(node.child_by_field_name("element"), code)
    if kind == "array_type":
        length = _collapse(node_text(code, node.child_by_field_name("length")))
        return f"[{length}]" + type_string(node.child_by_field_name("element"), code)
    if kind == "map_type":
        key = type_string(node.child_by_field_name("key"), code)
        value = type_string(node.child_by_field_name("value"), code)
        return f"map[{key}]{value}"
    if kind == "channel_type":
        prefix = _collapse(node_text(code, node)[: node.child_by_field_name("value").start_byte - node.start_byte])
        return f"{prefix} " + type_string(node.child_by_field_name("value"), code)
    if kind == "function_type":
        return func_type_string(node.child_by_field_name("parameters"), node.child_by_field_name("result"), code)
    if kind == "interface_type":
        elems = [c for c in node.named_children if c.type != "comment"]
        if not elems:
            return "interface{}"
    return _collapse(node_text(code, node))


def _parameter_types(param_list, code: bytes) -> List[str]:
    out: List[str] = []
    for child in param_list.named_children:
        if child.type == "parameter_declaration":
            t = type_string(child.child_by_field_name("type"), code)
            names = child.children_by_field_name("name")
            out.extend([t] * max(1, len(names)))
        elif child.type == "variadic_parameter_declaration":
            out.append("..." + type_string(child.child_by_field_name("type"), code))
    return out


def func_type_string(params, result, code: bytes) -> str:
    param_types = _parameter_types(params, code) if params is not None else []
    if result is None:
        result_types = []
    elif result.type == "parameter_list":
        result_types = _parameter_types(result, code)
    else:
        result_types = [type_string(result, code)]

    head = "func(" + ",".join(param_types) + ")"
    if not result_types:
        return head
    return head + "(" + ",".join(result_types) + ")"
