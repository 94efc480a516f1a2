"""archive.py 归档读写单元测试"""

from __future__ import annotations

import io
import tarfile
from pathlib import Path

import pytest

from pkgadd.core.archive import (
    MANIFEST_NAME,
    TarArchiveReader,
    create_package,
    is_metadata_name,
    parse_manifest,
)
from pkgadd.core.exceptions import ArchiveError
from pkgadd.core.models import DepState, ExecPhase, ScriptPhase


def _write_tar(dest: Path, members: list[tuple[str, bytes]]) -> Path:
    with tarfile.open(dest, "w:gz") as tar:
        for name, data in members:
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return dest


# =========================================================================
# 元数据解析
# =========================================================================


class TestParseManifest:
    def test_full_manifest(self) -> None:
        text = """
name: foo
version: "1.2"
origin: misc/foo
comment: 测试包
deps:
  - {name: bar, version: "2.0", origin: misc/bar}
exec:
  - echo installed
unexec:
  - echo removed
"""
        pkg = parse_manifest(text)
        assert pkg.identity.label == "foo-1.2"
        assert pkg.key == "misc/foo"
        assert pkg.comment == "测试包"
        assert [d.key for d in pkg.dependencies] == ["misc/bar"]
        assert pkg.dependencies[0].state == DepState.UNRESOLVED
        assert [(e.phase, e.command) for e in pkg.execs] == [
            (ExecPhase.EXEC, "echo installed"),
            (ExecPhase.UNEXEC, "echo removed"),
        ]

    def test_origin_defaults_to_name(self) -> None:
        pkg = parse_manifest("name: foo\nversion: 1\n")
        assert pkg.key == "foo"
        assert pkg.version == "1"

    @pytest.mark.parametrize("text", [
        "version: 1.0\n",
        "name: foo\n",
        "name: ''\nversion: 1.0\n",
        "- not\n- a dict\n",
        "name: [broken\n",
    ])
    def test_invalid_manifest(self, text: str) -> None:
        with pytest.raises(ArchiveError):
            parse_manifest(text)

    def test_deps_must_be_list(self) -> None:
        with pytest.raises(ArchiveError, match="deps"):
            parse_manifest("name: foo\nversion: 1\ndeps: bar\n")

    def test_scripts_from_files_then_inline(self) -> None:
        pkg = parse_manifest(
            "name: foo\nversion: 1\nscripts:\n  post_install: echo inline\n",
            [("+PRE_INSTALL", "echo pre"), ("+CONTENTS", "ignored")],
        )
        assert [(s.phase, s.body) for s in pkg.scripts] == [
            (ScriptPhase.PRE_INSTALL, "echo pre"),
            (ScriptPhase.POST_INSTALL, "echo inline"),
        ]

    def test_unknown_inline_phase(self) -> None:
        with pytest.raises(ArchiveError, match="未知脚本阶段"):
            parse_manifest("name: foo\nversion: 1\nscripts:\n  bogus: echo\n")


class TestIsMetadataName:
    @pytest.mark.parametrize(("name", "expected"), [
        ("+MANIFEST", True),
        ("./+INSTALL", True),
        ("etc/+foo", False),
        ("bin/foo", False),
    ])
    def test_names(self, name: str, expected: bool) -> None:
        assert is_metadata_name(name) is expected


# =========================================================================
# 读取
# =========================================================================


class TestTarArchiveReader:
    def test_open_positions_on_first_payload(self, make_pkg) -> None:
        path = make_pkg("foo", files={"bin/foo": "#!/bin/sh\n"})
        pkg, cursor = TarArchiveReader().open(str(path))
        with cursor:
            assert pkg.key == "misc/foo"
            assert pkg.archive_path == str(path)
            assert not cursor.at_end
            assert cursor.entry_path(cursor.current) == "bin"

    def test_metadata_only(self, make_pkg) -> None:
        path = make_pkg("empty", files={})
        _, cursor = TarArchiveReader().open(str(path))
        with cursor:
            assert cursor.at_end
            assert cursor.current is None

    def test_scripts_read_in_archive_order(self, make_pkg) -> None:
        path = make_pkg("foo", scripts={
            "POST_INSTALL": "echo post",
            "INSTALL": "echo install",
            "PRE_INSTALL": "echo pre",
        })
        pkg, cursor = TarArchiveReader().open(str(path))
        cursor.close()
        assert [s.phase for s in pkg.scripts] == [
            ScriptPhase.PRE_INSTALL, ScriptPhase.INSTALL, ScriptPhase.POST_INSTALL,
        ]

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ArchiveError, match="归档不存在"):
            TarArchiveReader().open(str(tmp_path / "nope.tgz"))

    def test_not_a_tar(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.tgz"
        bad.write_text("plain text", encoding="utf-8")
        with pytest.raises(ArchiveError, match="无法打开归档"):
            TarArchiveReader().open(str(bad))

    def test_missing_manifest(self, tmp_path: Path) -> None:
        path = _write_tar(tmp_path / "nomani.tgz", [("bin/foo", b"x")])
        with pytest.raises(ArchiveError, match=MANIFEST_NAME):
            TarArchiveReader().open(str(path))

    def test_manifest_after_payload_is_not_metadata(self, tmp_path: Path) -> None:
        path = _write_tar(tmp_path / "late.tgz", [
            ("bin/foo", b"x"),
            (MANIFEST_NAME, b"name: foo\nversion: 1\n"),
        ])
        with pytest.raises(ArchiveError):
            TarArchiveReader().open(str(path))

    def test_extract_rejects_unsafe_path(self, tmp_path: Path) -> None:
        from pkgadd.core.exceptions import ExtractionError

        path = _write_tar(tmp_path / "evil.tgz", [
            (MANIFEST_NAME, b"name: evil\nversion: 1\n"),
            ("../escape", b"x"),
        ])
        _, cursor = TarArchiveReader().open(str(path))
        with cursor, pytest.raises(ExtractionError, match="不安全"):
            cursor.extract(cursor.current, tmp_path / "root")
        assert not (tmp_path / "escape").exists()


# =========================================================================
# 创建
# =========================================================================


class TestCreatePackage:
    @pytest.mark.parametrize(("ext", "mode"), [
        (".tgz", "r:gz"),
        (".tar.bz2", "r:bz2"),
        (".txz", "r:xz"),
        (".tar", "r:"),
    ])
    def test_compression_by_suffix(self, tmp_path: Path, ext: str, mode: str) -> None:
        dest = create_package({"name": "foo", "version": "1"}, None, tmp_path / f"foo-1{ext}")
        with tarfile.open(dest, mode) as tar:
            assert tar.getnames() == [MANIFEST_NAME]

    def test_layout_and_owner(self, tmp_path: Path) -> None:
        payload = tmp_path / "payload"
        (payload / "etc").mkdir(parents=True)
        (payload / "etc" / "foo.conf.pkgconf").write_text("a=1\n", encoding="utf-8")
        dest = create_package(
            {"name": "foo", "version": "1"}, payload, tmp_path / "foo-1.tgz",
            scripts={"install": "echo hi"},
        )
        with tarfile.open(dest) as tar:
            members = tar.getmembers()
        assert [m.name for m in members] == [
            MANIFEST_NAME, "+INSTALL", "etc", "etc/foo.conf.pkgconf",
        ]
        assert members[1].mode == 0o755
        assert all(m.uid == 0 and m.uname == "root" for m in members)

    def test_invalid_manifest_writes_nothing(self, tmp_path: Path) -> None:
        dest = tmp_path / "bad-1.tgz"
        with pytest.raises(ArchiveError):
            create_package({"version": "1"}, None, dest)
        assert not dest.exists()

    def test_unknown_script_phase(self, tmp_path: Path) -> None:
        dest = tmp_path / "foo-1.tgz"
        with pytest.raises(ArchiveError, match="未知脚本阶段"):
            create_package({"name": "foo", "version": "1"}, None, dest, scripts={"BOGUS": ""})
        assert not dest.exists()
