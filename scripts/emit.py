"""
Artifact emitter (emit.py).

Renders the generated init() for the validated tables, fingerprints it and
rewrites the artifact only when the fingerprint changed:

    // Code generated by noterouter. DO NOT EDIT.

    package demo

    func init() {
    	// router table m
    	m[Const1] = f1
    	// router table end
    }
    //Hash:<md5 of everything above>
"""

import hashlib
import os
import re
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from registry import GenerationError, ScanContext
from validate import ValidatedTables

HEADER = "// Code generated by noterouter. DO NOT EDIT."
HASH_PREFIX = "//Hash:"
HASH_RE = re.compile(r"^//Hash:(?P<digest>[0-9a-fA-F]+)\s*$", re.MULTILINE)


@dataclass
class EmitResult:
    written: bool
    reason: str
    path: Path
    fingerprint: str = ""


def render_body(context: ScanContext, tables: ValidatedTables) -> str:
    lines: List[str] = [HEADER, "", f"package {context.package_name}", "", "func init() {"]

    router = context.router_table
    routed = router is not None and len(context.router_bindings) > 0
    if routed:
        lines.append(f"\t// router table {router.name}")
        for key, target in tables.router:
            lines.append(f"\t{router.name}[{key}] = {target}")
            context.info(f"reg {router.name}[{key}] <- {target}")
        lines.append("\t// router table end")

    mapping = context.mapping_table
    if mapping is not None and context.mapping_bindings:
        if routed:
            lines.append("")
        lines.append(f"\t// mapping table {mapping.name}")
        for key, target in tables.mapping:
            lines.append(f"\t{mapping.name}[{key}] = {target}{{}}")
            context.info(f"reg {mapping.name}[{key}] <- {target}{{}}")
        lines.append("\t// mapping table end")

    lines.append("}")
    return "\n".join(lines) + "\n"


def fingerprint(body: str) -> str:
    return hashlib.md5(body.encode("utf-8")).hexdigest()


def read_fingerprint(path: Path) -> Optional[str]:
    try:
        text = path.read_text(encoding="utf-8", errors="ignore")
    except FileNotFoundError:
        return None
    except OSError as e:
        raise GenerationError(f"cannot read previous artifact {path}: {e}") from e
    found = HASH_RE.findall(text)
    return found[-1].lower() if found else None


def artifact_mode(path: Path) -> int:
    """Keep the mode of an existing artifact, otherwise what the umask gives a new file."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def write_artifact(path: Path, text: str) -> None:
    # temp file + replace: a failed write never leaves a half-written artifact
    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=".noterouter-", suffix=".tmp", dir=str(path.parent))
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
        os.chmod(tmp_name, artifact_mode(path))
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise GenerationError(f"writing {path} failed: {e}") from e


def emit(context: ScanContext, tables: ValidatedTables, path: Path) -> EmitResult:
    body = render_body(context, tables)
    digest = fingerprint(body)

    if read_fingerprint(path) == digest:
        return EmitResult(written=False, reason="artifact is up to date", path=path, fingerprint=digest)

    write_artifact(path, body + HASH_PREFIX + digest + "\n")
    context.info(f"generated {path.name}, rebuild required for the new tables to take effect")
    return EmitResult(written=True, reason="artifact changed, rebuild required", path=path, fingerprint=digest)
