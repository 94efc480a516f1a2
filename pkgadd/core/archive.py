"""tar 格式软件包归档的读取与创建

归档布局:
  +MANIFEST            YAML 元数据（必须，且位于最前面的元数据区）
  +INSTALL ...         生命周期脚本，文件名即阶段
  etc/foo.conf.pkgconf 之后全部是载荷（待释放文件）

读取器打开归档时把元数据全部读完，游标停在第一个非元数据条目上；
没有任何载荷条目时游标直接处于末尾（"无可释放内容"，不是错误）。
"""

from __future__ import annotations

import io
import logging
import tarfile
from pathlib import Path, PurePosixPath
from typing import Any

import yaml

from pkgadd.core.exceptions import ArchiveError, ExtractionError
from pkgadd.core.models import (
    DeclaredDependency,
    ExecEntry,
    ExecPhase,
    PackageDescriptor,
    PackageIdentity,
    ScriptEntry,
    ScriptPhase,
)
from pkgadd.utils.yaml_io import dump_yaml, parse_yaml_text

logger = logging.getLogger(__name__)

MANIFEST_NAME = "+MANIFEST"

# 创建归档时脚本元数据的写入顺序（读取时按归档顺序执行）
SCRIPT_WRITE_ORDER = (
    ScriptPhase.PRE_INSTALL, ScriptPhase.INSTALL, ScriptPhase.POST_INSTALL,
    ScriptPhase.PRE_DEINSTALL, ScriptPhase.DEINSTALL, ScriptPhase.POST_DEINSTALL,
    ScriptPhase.PRE_UPGRADE, ScriptPhase.UPGRADE, ScriptPhase.POST_UPGRADE,
)

# 写归档时按目标文件后缀选择压缩方式
_WRITE_MODES = {
    ".tgz": "w:gz", ".gz": "w:gz",
    ".tbz": "w:bz2", ".bz2": "w:bz2",
    ".txz": "w:xz", ".xz": "w:xz",
}


def _normalize(name: str) -> str:
    while name.startswith("./"):
        name = name[2:]
    return name.rstrip("/")


def is_metadata_name(name: str) -> bool:
    """顶层且以 '+' 开头的条目是元数据"""
    name = _normalize(name)
    return name.startswith("+") and "/" not in name


def _check_safe_path(name: str) -> None:
    p = PurePosixPath(name)
    if not name or p.is_absolute() or ".." in p.parts:
        raise ExtractionError(f"归档条目路径不安全: {name!r}")


# =========================================================================
# 元数据解析
# =========================================================================


def _require_str(data: dict[str, Any], key: str, source: str) -> str:
    value = data.get(key)
    if value is None or isinstance(value, (bool, dict, list)) or str(value) == "":
        raise ArchiveError(f"{source}: 缺少字段 '{key}'")
    return str(value)


def _parse_deps(raw: Any, source: str) -> list[DeclaredDependency]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ArchiveError(f"{source}: deps 必须是列表")
    deps: list[DeclaredDependency] = []
    for item in raw:
        if not isinstance(item, dict):
            raise ArchiveError(f"{source}: 依赖项格式无效: {item!r}")
        deps.append(DeclaredDependency(PackageIdentity(
            name=_require_str(item, "name", source),
            version=_require_str(item, "version", source),
            origin=str(item.get("origin") or ""),
        )))
    return deps


def _parse_execs(data: dict[str, Any], source: str) -> list[ExecEntry]:
    execs: list[ExecEntry] = []
    for phase in ExecPhase:
        raw = data.get(phase.value) or []
        if not isinstance(raw, list):
            raise ArchiveError(f"{source}: {phase.value} 必须是命令列表")
        execs.extend(ExecEntry(phase, str(cmd)) for cmd in raw)
    return execs


def _script_phase(name: str) -> ScriptPhase | None:
    try:
        return ScriptPhase(name.lstrip("+").upper())
    except ValueError:
        return None


def parse_manifest(
    manifest: bytes | str,
    script_files: list[tuple[str, str]] | None = None,
    *,
    source: str = MANIFEST_NAME,
) -> PackageDescriptor:
    """把 +MANIFEST 与脚本元数据文件解析为 PackageDescriptor

    script_files 为 (元数据文件名, 脚本内容) 列表，保持归档顺序；
    清单内联的 scripts 段排在文件脚本之后。
    """
    try:
        data = parse_yaml_text(manifest, source=source)
    except (yaml.YAMLError, ValueError) as e:
        raise ArchiveError(f"{source} 解析失败: {e}") from e

    identity = PackageIdentity(
        name=_require_str(data, "name", source),
        version=_require_str(data, "version", source),
        origin=str(data.get("origin") or ""),
    )

    scripts: list[ScriptEntry] = []
    for fname, body in script_files or []:
        phase = _script_phase(fname)
        if phase is None:
            logger.debug("忽略未知元数据文件: %s", fname)
            continue
        scripts.append(ScriptEntry(phase, body))
    inline = data.get("scripts") or {}
    if not isinstance(inline, dict):
        raise ArchiveError(f"{source}: scripts 必须是 阶段 -> 脚本 的映射")
    for phase_name, body in inline.items():
        phase = _script_phase(str(phase_name))
        if phase is None:
            raise ArchiveError(f"{source}: 未知脚本阶段 '{phase_name}'")
        scripts.append(ScriptEntry(phase, str(body)))

    return PackageDescriptor(
        identity=identity,
        comment=str(data.get("comment") or ""),
        desc=str(data.get("desc") or ""),
        prefix=str(data.get("prefix") or ""),
        dependencies=_parse_deps(data.get("deps"), source),
        scripts=scripts,
        execs=_parse_execs(data, source),
    )


# =========================================================================
# 读取
# =========================================================================


class TarEntryCursor:
    """tar 载荷游标，显式持有 TarFile，由 Open 传到 Extract"""

    def __init__(self, tar: tarfile.TarFile, first: tarfile.TarInfo | None) -> None:
        self._tar = tar
        self._current = first

    @property
    def current(self) -> tarfile.TarInfo | None:
        return self._current

    @property
    def at_end(self) -> bool:
        return self._current is None

    def next_entry(self) -> tarfile.TarInfo | None:
        try:
            self._current = self._tar.next()
        except (tarfile.TarError, OSError) as e:
            raise ExtractionError(f"读取归档条目失败: {e}") from e
        return self._current

    def entry_path(self, entry: tarfile.TarInfo) -> str:
        return _normalize(entry.name)

    def extract(
        self, entry: tarfile.TarInfo, root: Path, pathname: str | None = None,
    ) -> Path:
        """释放单个条目，保留属主（以 root 运行时）、权限位和时间戳"""
        name = pathname or self.entry_path(entry)
        _check_safe_path(name)
        member = entry if name == entry.name else entry.replace(name=name, deep=False)
        try:
            self._tar.extract(
                member, path=str(root), set_attrs=True, filter="fully_trusted",
            )
        except (tarfile.TarError, OSError) as e:
            raise ExtractionError(f"释放 {name} 失败: {e}") from e
        return root / name

    def close(self) -> None:
        self._tar.close()

    def __enter__(self) -> TarEntryCursor:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class TarArchiveReader:
    """tar 归档读取器（支持 gzip / bzip2 / xz 压缩）"""

    def open(self, path: str) -> tuple[PackageDescriptor, TarEntryCursor]:
        p = Path(path)
        if not p.is_file():
            raise ArchiveError(f"归档不存在: {path}")
        try:
            tar = tarfile.open(p, "r:*")
        except (tarfile.TarError, OSError) as e:
            raise ArchiveError(f"无法打开归档 {path}: {e}") from e

        try:
            manifest, script_files, first = self._read_metadata(tar, path)
            descriptor = parse_manifest(
                manifest, script_files, source=f"{path}:{MANIFEST_NAME}",
            )
        except ArchiveError:
            tar.close()
            raise
        descriptor.archive_path = str(p)
        logger.debug(
            "已打开归档 %s: %s (%s)", path, descriptor.identity,
            "无载荷" if first is None else "含载荷",
        )
        return descriptor, TarEntryCursor(tar, first)

    @staticmethod
    def _read_metadata(
        tar: tarfile.TarFile, path: str,
    ) -> tuple[bytes, list[tuple[str, str]], tarfile.TarInfo | None]:
        manifest: bytes | None = None
        script_files: list[tuple[str, str]] = []
        try:
            member = tar.next()
            while member is not None and is_metadata_name(member.name):
                name = _normalize(member.name)
                f = tar.extractfile(member) if member.isfile() else None
                if f is not None:
                    data = f.read()
                    if name == MANIFEST_NAME:
                        manifest = data
                    else:
                        script_files.append((name, data.decode("utf-8")))
                member = tar.next()
        except (tarfile.TarError, OSError, UnicodeDecodeError) as e:
            raise ArchiveError(f"读取元数据失败 {path}: {e}") from e
        if manifest is None:
            raise ArchiveError(f"{path} 中缺少 {MANIFEST_NAME}")
        return manifest, script_files, member


# =========================================================================
# 创建
# =========================================================================


def _owner_filter(info: tarfile.TarInfo) -> tarfile.TarInfo:
    info.uid = info.gid = 0
    info.uname = info.gname = "root"
    return info


def _add_bytes(tar: tarfile.TarFile, name: str, data: bytes, mode: int = 0o644) -> None:
    info = _owner_filter(tarfile.TarInfo(name))
    info.size = len(data)
    info.mode = mode
    tar.addfile(info, io.BytesIO(data))


def create_package(
    manifest: dict[str, Any],
    payload_dir: str | Path | None,
    dest: str | Path,
    scripts: dict[str, str] | None = None,
) -> Path:
    """按本模块的布局创建软件包归档

    参数:
        manifest: +MANIFEST 内容（至少包含 name / version）
        payload_dir: 载荷根目录，其下文件按相对路径排序写入；None 表示只有元数据
        dest: 目标归档路径，后缀决定压缩方式
        scripts: 阶段名 -> 脚本内容，写成 +<阶段> 元数据文件
    """
    manifest_text = dump_yaml(manifest)
    # 写之前先按读取规则校验一遍，避免产出打不开的归档
    parse_manifest(manifest_text)

    phased: list[tuple[ScriptPhase, str]] = []
    for phase_name, body in (scripts or {}).items():
        phase = _script_phase(phase_name)
        if phase is None:
            raise ArchiveError(f"未知脚本阶段 '{phase_name}'")
        phased.append((phase, body))
    phased.sort(key=lambda item: SCRIPT_WRITE_ORDER.index(item[0]))

    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    mode = "w"
    for suffix in reversed(dest.suffixes):
        if suffix in _WRITE_MODES:
            mode = _WRITE_MODES[suffix]
            break

    with tarfile.open(dest, mode) as tar:
        _add_bytes(tar, MANIFEST_NAME, manifest_text.encode("utf-8"))
        for phase, body in phased:
            _add_bytes(tar, f"+{phase.value}", body.encode("utf-8"), mode=0o755)
        if payload_dir is not None:
            base = Path(payload_dir)
            for item in sorted(base.rglob("*")):
                rel = item.relative_to(base).as_posix()
                tar.add(str(item), arcname=rel, recursive=False, filter=_owner_filter)

    logger.info("已创建归档: %s", dest)
    return dest
