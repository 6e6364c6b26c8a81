"""
noterouter: annotation routing for Go packages (noterouter.py).

Scans the Go package in the working directory for

    //#RouterMap            the next map variable receives function routes
    //#Router Key1 Key2     the next function is routed from each key
    //#MappingMap           the next map variable receives struct mappings
    //#Mapping Key1 Key2    the next struct type is mapped from each key

and regenerates NodeRouterAutomation.go with a func init() that fills those
maps. Run it from the directory holding the annotated sources, before `go build`:

    noterouter --fail-on-change && go build ./...

A rewritten artifact means the package must be compiled again for the new
tables to take effect; --fail-on-change reports that as exit status 3.
"""

import argparse
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

from binder import bind_all
from emit import emit
from extract import scan_file
from registry import GenerationError, ScanContext
from validate import validate

DEFAULT_OUTPUT_NAME = "NodeRouterAutomation.go"
SKIPPED_DIRS = ("vendor", "testdata")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CHANGED = 3


@dataclass
class GenerateResult:
    written: bool
    reason: str
    path: Path
    context: ScanContext


def walk_sources(root: Path, skip: Optional[Path] = None) -> Iterator[Path]:
    """Yield *.go files under root in a stable order (sorted, depth first)."""
    skip_resolved = skip.resolve() if skip is not None else None
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith(".") and d not in SKIPPED_DIRS)
        for name in sorted(filenames):
            if not name.endswith(".go"):
                continue
            path = Path(dirpath) / name
            if skip_resolved is not None and path.resolve() == skip_resolved:
                continue
            yield path


def generate(root=".", out_name: str = DEFAULT_OUTPUT_NAME, verbose: bool = True) -> GenerateResult:
    root = Path(root)
    out_path = root / out_name
    context = ScanContext(root=root, verbose=verbose)

    try:
        for path in walk_sources(root, skip=out_path):
            scan_file(path, context)

        if not context.records:
            return GenerateResult(False, "no Go sources found", out_path, context)
        context.info(f"scanned {len(context.records)} file(s), {context.directive_count()} directive(s)")

        bind_all(context)
        nothing_bound = not context.router_bindings and not context.mapping_bindings
        if nothing_bound and context.router_table is None and context.mapping_table is None:
            return GenerateResult(False, "no routing directives found", out_path, context)

        tables = validate(context)
        result = emit(context, tables, out_path)
    except GenerationError as e:
        context.error(str(e))
        raise

    return GenerateResult(result.written, result.reason, out_path, context)


def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="noterouter", description="Generate Go routing tables from //# directives.")
    p.add_argument(
        "root",
        nargs="?",
        default=".",
        help="Directory holding the annotated Go package (default: current directory)",
    )
    p.add_argument("--out", default=DEFAULT_OUTPUT_NAME, help="Generated file name, relative to root")
    p.add_argument(
        "--fail-on-change",
        action="store_true",
        help=f"Exit with status {EXIT_CHANGED} when the generated file was rewritten",
    )
    p.add_argument("--quiet", action="store_true", help="Only print warnings and errors")
    args = p.parse_args(argv)

    try:
        result = generate(args.root, out_name=args.out, verbose=not args.quiet)
    except GenerationError:
        return EXIT_ERROR

    if result.written and args.fail_on_change:
        return EXIT_CHANGED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
