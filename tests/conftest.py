import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from extract import scan_file
from gosource import parse_tree_strict
from registry import ScanContext

DEMO_SOURCE = """
package demo

import "fmt"

type ConstType int

const (
    Const0 ConstType = iota
    Const1
    Const2
    Const3
)

const (
    AA = 1
)

//#RouterMap
var m = make(map[ConstType]func())

//#MappingMap
var mm = make(map[ConstType]interface{})

//#Router Const1
func f1() {
    fmt.Println("Const1 -> f1")
}

//#Router Const2 Const3
func f2() {
    fmt.Println("Const2 Const3 -> f2")
}

//#Mapping Const1
type SSS struct {
}
"""


def go_source(source: str) -> str:
    return textwrap.dedent(source).lstrip()


@pytest.fixture
def write_go(tmp_path: Path) -> Callable[[str, str], Path]:
    def _write_go(name: str, source: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(go_source(source), encoding="utf-8")
        return path

    return _write_go


@pytest.fixture
def context(tmp_path: Path) -> ScanContext:
    return ScanContext(root=tmp_path, verbose=False)


@pytest.fixture
def parse_go() -> Callable[[str], tuple]:
    def _parse_go(source: str) -> tuple:
        code = go_source(source).encode("utf-8")
        return parse_tree_strict(code), code

    return _parse_go


@pytest.fixture
def scan(write_go, context) -> Callable[..., ScanContext]:
    """Write each (name, source) pair and scan them in order into the shared context."""

    def _scan(*files: tuple) -> ScanContext:
        for name, source in files:
            scan_file(write_go(name, source), context)
        return context

    return _scan


@pytest.fixture
def demo_package(write_go, tmp_path: Path) -> Path:
    write_go("demo.go", DEMO_SOURCE)
    return tmp_path
