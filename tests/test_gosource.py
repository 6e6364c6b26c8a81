from pathlib import Path

import pytest

from gosource import func_type_string, go_parser, read_source, type_string
from registry import SourceParseError


def _var_type(parse_go, decl: str) -> str:
    tree, code = parse_go(f"package p\n\nvar x {decl}\n")
    var_decl = [n for n in tree.root_node.named_children if n.type == "var_declaration"][0]
    spec = [n for n in var_decl.named_children if n.type in ("var_spec", "var_spec_list")][0]
    if spec.type == "var_spec_list":
        spec = spec.named_children[0]
    return type_string(spec.child_by_field_name("type"), code)


def test_parser_is_available():
    assert go_parser is not None


@pytest.mark.parametrize(
    "decl, expected",
    [
        ("int", "int"),
        ("*Kind", "*Kind"),
        ("pkg.Kind", "pkg.Kind"),
        ("[]*pkg.Kind", "[]*pkg.Kind"),
        ("[4]byte", "[4]byte"),
        ("map[Kind]interface{}", "map[Kind]interface{}"),
        ("map[Kind]*interface{}", "map[Kind]*interface{}"),
        ("chan int", "chan int"),
        ("func()", "func()"),
        ("func() error", "func()(error)"),
        ("func(a, b int, rest ...string) (int, error)", "func(int,int,...string)(int,error)"),
    ],
)
def test_type_string(parse_go, decl, expected):
    assert _var_type(parse_go, decl) == expected


def test_non_empty_interface_keeps_its_methods(parse_go):
    assert _var_type(parse_go, "interface{ Run() }") == "interface{ Run() }"


def test_declared_function_matches_func_typed_value(parse_go):
    tree, code = parse_go(
        """
        package p

        func handler(name, kind string, n int) (bool, error) { return false, nil }
        """
    )
    fn = tree.root_node.named_children[-1]
    signature = func_type_string(fn.child_by_field_name("parameters"), fn.child_by_field_name("result"), code)
    assert signature == _var_type(parse_go, "func(string, string, int) (bool, error)")


def test_syntax_error_raises(parse_go):
    with pytest.raises(SourceParseError, match="syntax error"):
        parse_go("package p\n\nfunc broken( {\n")


def test_read_source_strips_bom(tmp_path: Path):
    path = tmp_path / "bom.go"
    path.write_bytes(b"\xef\xbb\xbfpackage p\n")
    assert read_source(path) == b"package p\n"


def test_read_source_rejects_non_utf8(tmp_path: Path):
    path = tmp_path / "latin.go"
    path.write_bytes(b"package p\n// caf\xe9\n")
    with pytest.raises(SourceParseError, match="not valid UTF-8"):
        read_source(path)
