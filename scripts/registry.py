"""
Scan data model for noterouter (registry.py).

Everything one generation run knows lives on a ScanContext that the driver
creates fresh per run and threads through extract -> binder -> validate -> emit.
"""

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional


class GenerationError(RuntimeError):
    """Fatal condition: the run stops and the previous artifact is left untouched."""


class SourceParseError(GenerationError):
    pass


# Directive kinds, as written after '//#'.
ROUTER_MAP = "RouterMap"
ROUTER = "Router"
MAPPING_MAP = "MappingMap"
MAPPING = "Mapping"

MARKER_KINDS = (ROUTER_MAP, MAPPING_MAP)
TARGET_KINDS = (ROUTER, MAPPING)

# Declaration kinds.
DECL_FUNCTION = "function"
DECL_STRUCT = "struct"
DECL_TABLE = "table"
DECL_CONST = "const"
DECL_OTHER = "other"


@dataclass
class EnumType:
    name: str
    underlying: str
    members: List[str] = field(default_factory=list)


@dataclass
class TableDecl:
    name: str
    key_type: str
    value_type: str
    path: Path
    line: int
    pos: int


@dataclass
class Declaration:
    kind: str
    name: str
    path: Path
    line: int
    pos: int
    signature: str = ""
    has_receiver: bool = False
    generic: bool = False
    table: Optional[TableDecl] = None


@dataclass
class Directive:
    kind: str
    path: Path
    line: int
    pos: int
    keys: List[str] = field(default_factory=list)


@dataclass
class Binding:
    directive: Directive
    declaration: Declaration
    key: str


@dataclass
class Diagnostic:
    level: str
    message: str
    path: Optional[Path] = None
    line: int = 0

    def __str__(self) -> str:
        if self.path is None:
            return f"{self.level}: {self.message}"
        return f"{self.level}: {self.path}:{self.line}: {self.message}"


@dataclass
class ScanContext:
    root: Path
    package_name: str = ""
    # per-file declarations and directives, in traversal order of the files
    records: Dict[Path, List[object]] = field(default_factory=dict)
    enum_types: Dict[str, EnumType] = field(default_factory=dict)
    tables: Dict[str, TableDecl] = field(default_factory=dict)
    targets: Dict[str, Declaration] = field(default_factory=dict)
    router_table: Optional[TableDecl] = None
    mapping_table: Optional[TableDecl] = None
    router_bindings: List[Binding] = field(default_factory=list)
    mapping_bindings: List[Binding] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    verbose: bool = True

    def info(self, message: str) -> None:
        if self.verbose:
            print(f"[noterouter] {message}")

    def warn(self, message: str, path: Optional[Path] = None, line: int = 0) -> Diagnostic:
        diag = Diagnostic("warning", message, path, line)
        self.diagnostics.append(diag)
        print(str(diag), file=sys.stderr)
        return diag

    def error(self, message: str, path: Optional[Path] = None, line: int = 0) -> Diagnostic:
        diag = Diagnostic("error", message, path, line)
        self.diagnostics.append(diag)
        print(str(diag), file=sys.stderr)
        return diag

    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.level == "warning"]

    def directive_count(self) -> int:
        return sum(1 for recs in self.records.values() for r in recs if isinstance(r, Directive))
