import stat
from pathlib import Path

import pytest

import emit as emit_module
from emit import HASH_PREFIX, emit, fingerprint, read_fingerprint, render_body
from registry import GenerationError, ScanContext, TableDecl
from validate import ValidatedTables


def _context(tmp_path: Path, router: bool = True, mapping: bool = True) -> ScanContext:
    context = ScanContext(root=tmp_path, package_name="demo", verbose=False)
    if router:
        context.router_table = TableDecl("m", "Kind", "interface{}", tmp_path / "a.go", 3, 10)
        context.router_bindings = [object()]
    if mapping:
        context.mapping_table = TableDecl("mm", "Kind", "interface{}", tmp_path / "a.go", 6, 40)
        context.mapping_bindings = [object()]
    return context


TABLES = ValidatedTables(router=[("KindA", "f1"), ("KindB", "f2")], mapping=[("KindA", "Payload")])


def test_render_body(tmp_path):
    body = render_body(_context(tmp_path), TABLES)
    assert body == (
        "// Code generated by noterouter. DO NOT EDIT.\n"
        "\n"
        "package demo\n"
        "\n"
        "func init() {\n"
        "\t// router table m\n"
        "\tm[KindA] = f1\n"
        "\tm[KindB] = f2\n"
        "\t// router table end\n"
        "\n"
        "\t// mapping table mm\n"
        "\tmm[KindA] = Payload{}\n"
        "\t// mapping table end\n"
        "}\n"
    )


def test_render_body_omits_unresolved_sections(tmp_path):
    body = render_body(_context(tmp_path, router=False), TABLES)
    assert "router table" not in body
    assert "\tmm[KindA] = Payload{}\n" in body


def test_emit_writes_then_noops(tmp_path):
    context = _context(tmp_path)
    out = tmp_path / "NodeRouterAutomation.go"

    first = emit(context, TABLES, out)
    assert first.written
    text = out.read_text(encoding="utf-8")
    assert text.endswith(f"{HASH_PREFIX}{first.fingerprint}\n")
    assert first.fingerprint == fingerprint(text[: text.rindex(HASH_PREFIX)])

    second = emit(context, TABLES, out)
    assert not second.written
    assert second.reason == "artifact is up to date"
    assert out.read_text(encoding="utf-8") == text


def test_emit_rewrites_when_content_changes(tmp_path):
    out = tmp_path / "NodeRouterAutomation.go"
    emit(_context(tmp_path), TABLES, out)

    changed = ValidatedTables(router=[("KindA", "f1")], mapping=TABLES.mapping)
    result = emit(_context(tmp_path), changed, out)
    assert result.written
    assert "f2" not in out.read_text(encoding="utf-8")


def test_read_fingerprint_takes_last_marker(tmp_path):
    path = tmp_path / "gen.go"
    assert read_fingerprint(path) is None
    path.write_text("//Hash:aaaa\npackage x\n//Hash:BBBB\n", encoding="utf-8")
    assert read_fingerprint(path) == "bbbb"


def test_write_failure_keeps_previous_artifact(tmp_path, monkeypatch):
    out = tmp_path / "NodeRouterAutomation.go"
    out.write_text("previous\n", encoding="utf-8")

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(emit_module.os, "replace", broken_replace)
    with pytest.raises(GenerationError, match="disk full"):
        emit(_context(tmp_path), TABLES, out)

    assert out.read_text(encoding="utf-8") == "previous\n"
    assert [p.name for p in tmp_path.iterdir()] == ["NodeRouterAutomation.go"]


def test_new_artifact_gets_regular_file_mode(tmp_path):
    sibling = tmp_path / "a.go"
    sibling.write_text("package demo\n", encoding="utf-8")
    out = tmp_path / "NodeRouterAutomation.go"

    emit(_context(tmp_path), TABLES, out)
    assert stat.S_IMODE(out.stat().st_mode) == stat.S_IMODE(sibling.stat().st_mode)


def test_rewrite_keeps_artifact_mode(tmp_path):
    out = tmp_path / "NodeRouterAutomation.go"
    out.write_text("previous\n", encoding="utf-8")
    out.chmod(0o640)

    assert emit(_context(tmp_path), TABLES, out).written
    assert stat.S_IMODE(out.stat().st_mode) == 0o640
