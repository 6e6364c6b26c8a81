"""
Directive binder (binder.py).

Per file, declarations and directives are merged into one list ordered by byte
position. A directive binds to the record right after it and to nothing else:
no skipping ahead to find a better-shaped declaration.
"""

from pathlib import Path
from typing import List, Optional

from registry import (
    DECL_FUNCTION,
    DECL_STRUCT,
    DECL_TABLE,
    MAPPING,
    MAPPING_MAP,
    MARKER_KINDS,
    ROUTER,
    ROUTER_MAP,
    Binding,
    Declaration,
    Directive,
    ScanContext,
)

_EXPECTED = {
    ROUTER_MAP: "map variable",
    MAPPING_MAP: "map variable",
    ROUTER: "function",
    MAPPING: "struct type",
}


def merge_records(records: List[object]) -> List[object]:
    return sorted(records, key=lambda r: r.pos)


def _describe(record: Optional[object]) -> str:
    if record is None:
        return "end of file"
    if isinstance(record, Directive):
        return f"another #{record.kind} directive (line {record.line})"
    return f"{record.kind} declaration (line {record.line})"


def _mismatch(context: ScanContext, directive: Directive, nxt: Optional[object]) -> None:
    context.warn(
        f"#{directive.kind} expects a {_EXPECTED[directive.kind]} on the next declaration, found {_describe(nxt)}",
        directive.path,
        directive.line,
    )


def _bind_marker(context: ScanContext, directive: Directive, decl: Declaration) -> None:
    role = "router_table" if directive.kind == ROUTER_MAP else "mapping_table"
    current = getattr(context, role)
    if current is not None:
        # first marker wins
        context.warn(
            f"#{directive.kind} duplicated, already defined at {current.path}:{current.line} ({current.name}); ignored",
            directive.path,
            directive.line,
        )
        return
    setattr(context, role, decl.table)
    context.info(f"{role.replace('_', ' ')} {decl.table.name} map[{decl.table.key_type}]{decl.table.value_type}")


def _bind_target(context: ScanContext, directive: Directive, decl: Declaration) -> None:
    if decl.has_receiver:
        context.warn(
            f"#{directive.kind} target {decl.name} is a method; only package-level functions can be routed",
            directive.path,
            directive.line,
        )
        return
    if decl.generic:
        context.warn(
            f"#{directive.kind} target {decl.name} has type parameters and cannot be referenced uninstantiated",
            directive.path,
            directive.line,
        )
        return

    bucket = context.router_bindings if directive.kind == ROUTER else context.mapping_bindings
    for key in directive.keys:
        bucket.append(Binding(directive=directive, declaration=decl, key=key))


def bind_file(context: ScanContext, path: Path) -> None:
    ordered = merge_records(context.records[path])
    for i, record in enumerate(ordered):
        if not isinstance(record, Directive):
            continue
        nxt = ordered[i + 1] if i + 1 < len(ordered) else None
        if not isinstance(nxt, Declaration):
            _mismatch(context, record, nxt)
            continue

        if record.kind in MARKER_KINDS:
            if nxt.kind != DECL_TABLE:
                _mismatch(context, record, nxt)
                continue
            _bind_marker(context, record, nxt)
        elif record.kind == ROUTER:
            if nxt.kind != DECL_FUNCTION:
                _mismatch(context, record, nxt)
                continue
            _bind_target(context, record, nxt)
        elif record.kind == MAPPING:
            if nxt.kind != DECL_STRUCT:
                _mismatch(context, record, nxt)
                continue
            _bind_target(context, record, nxt)


def bind_all(context: ScanContext) -> None:
    """Bind every scanned file, in scan order, so "first" table roles follow traversal order."""
    for path in context.records:
        bind_file(context, path)
