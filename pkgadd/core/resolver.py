"""依赖解析器

resolve 每次从头重新推导：数据库中命中即 SATISFIED_INSTALLED，否则 UNRESOLVED。
依赖声明了 origin 时按 origin 精确匹配；未声明 origin 时先按包名作键匹配，再按已登记记录的包名匹配，
因此登记为 devel/b 的包能满足只写了 `name: b` 的依赖。
依赖缺失是正常的解析结果，不是错误；把 UNRESOLVED 变成递归安装是安装事务的职责。

locate_candidate 在包自身归档所在目录查找 `<name>-<version><扩展名>` 形式的候选归档。
扩展名取自包自身的归档文件名。注意复合后缀是整体保留的：a-1.0.tar.gz 对应
b-1.0.tar.gz，而不是只取最后一个点之后部分得到的 b-1.0.gz。
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pkgadd.core.exceptions import ValidationError
from pkgadd.core.models import (
    DeclaredDependency,
    DepState,
    InstalledPackageRecord,
    PackageDescriptor,
)
from pkgadd.core.protocols import PackageDatabase

logger = logging.getLogger(__name__)

# 视为整体的复合后缀
COMPOUND_SUFFIXES = (".tar.gz", ".tar.bz2", ".tar.xz")


def archive_extension(path: str | Path) -> str:
    """取归档扩展名；复合 tar 后缀整体保留，否则取最后一个后缀

    异常:
        ValidationError: 文件名没有扩展名
    """
    name = Path(path).name
    for suffix in COMPOUND_SUFFIXES:
        if name.endswith(suffix) and len(name) > len(suffix):
            return suffix
    ext = Path(name).suffix
    if not ext:
        raise ValidationError(f"{path} 没有扩展名")
    return ext


class DependencyResolver:
    """依赖解析器 - 只查询，不安装"""

    def __init__(self, db: PackageDatabase) -> None:
        self.db = db

    def resolve(
        self, pkg: PackageDescriptor, db: PackageDatabase | None = None,
    ) -> dict[str, DepState]:
        """重新解析全部声明依赖，更新各依赖的状态并返回 {依赖键: 状态}

        db 缺省时使用构造时注入的数据库。
        """
        if db is None:
            db = self.db
        states: dict[str, DepState] = {}
        for dep in pkg.dependencies:
            if self._lookup(dep, db) is not None:
                dep.state = DepState.SATISFIED_INSTALLED
            else:
                dep.state = DepState.UNRESOLVED
            dep.path = ""
            states[dep.key] = dep.state
        unresolved = [k for k, s in states.items() if s == DepState.UNRESOLVED]
        if unresolved:
            logger.debug("%s 未满足的依赖: %s", pkg.identity, ", ".join(unresolved))
        return states

    @staticmethod
    def _lookup(
        dep: DeclaredDependency, db: PackageDatabase,
    ) -> InstalledPackageRecord | None:
        """按 origin 精确匹配；未声明 origin 的依赖退回按包名匹配"""
        record = db.query_exact(dep.key)
        if record is None and not dep.identity.origin:
            record = db.query_name(dep.identity.name)
        return record

    @staticmethod
    def candidate_path(dep: DeclaredDependency, archive_path: str | Path) -> Path:
        """构造同目录候选归档路径"""
        base = Path(archive_path).parent
        ext = archive_extension(archive_path)
        return base / f"{dep.identity.name}-{dep.identity.version}{ext}"

    def locate_candidate(
        self, dep: DeclaredDependency, archive_path: str | Path,
    ) -> Path | None:
        """查找候选归档；存在则标记 SATISFIED_BY_PATH 并返回路径"""
        candidate = self.candidate_path(dep, archive_path)
        if not os.path.exists(candidate):
            logger.info("未找到依赖归档: %s", candidate)
            return None
        dep.state = DepState.SATISFIED_BY_PATH
        dep.path = str(candidate)
        return candidate
