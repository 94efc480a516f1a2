"""安装事务 - 单个归档的安装状态机

步骤顺序（任一步失败即终止，后续步骤全部跳过）:
1. open              - 解析归档元数据，游标停在第一个载荷条目
2. cycle_check       - 包已在当前递归栈中 → 依赖环
3. duplicate_check   - 数据库已有同一标识 → 已安装
4. resolve_deps      - 解析依赖，缺失的依赖从同目录归档递归安装
5. pre_install       - INSTALL(INSTALL) / PRE_INSTALL 脚本
6. extract           - 释放载荷（无载荷时跳过）
7. post_install      - INSTALL(POST-INSTALL) / POST_INSTALL 脚本
8. exec              - @exec 指令
9. register          - 登记到数据库，唯一修改持久状态的步骤

无论结果如何，归档游标都在 finally 中释放；未成功时包描述直接丢弃。
已释放的文件不会回滚。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from pkgadd.core.exceptions import (
    AlreadyInstalledError,
    DependencyCycleError,
    DependencyInstallError,
    MissingDependencyError,
    PkgAddError,
    ValidationError,
)
from pkgadd.core.extractor import Extractor
from pkgadd.core.models import (
    DepState,
    InstallOutcome,
    OutcomeStatus,
    PackageDescriptor,
)
from pkgadd.core.protocols import ArchiveReader, EntryCursor, PackageDatabase
from pkgadd.core.resolver import DependencyResolver
from pkgadd.core.scripts import ScriptRunner

logger = logging.getLogger(__name__)

_STATUS_BY_CODE = {status.value: status for status in OutcomeStatus}


@dataclass
class _TxContext:
    """单次事务的执行上下文"""

    path: str
    stack: tuple[str, ...]
    step: str = ""
    pkg: PackageDescriptor | None = None
    cursor: EntryCursor | None = None
    steps: list[dict[str, Any]] = field(default_factory=list)
    installed: list[str] = field(default_factory=list)

    def record(self, status: str, **detail: Any) -> None:
        self.steps.append({"step": self.step, "status": status, **detail})

    @property
    def log_extra(self) -> dict[str, str]:
        return {"pkg": self.pkg.key if self.pkg else self.path, "step": self.step}


class InstallTransaction:
    """安装事务（同步、单线程，对缺失依赖递归调用自身）

    open 产出包描述和游标；其余步骤都以 (ctx, pkg) 调用。
    """

    def __init__(
        self,
        reader: ArchiveReader,
        db: PackageDatabase,
        extractor: Extractor,
        scripts: ScriptRunner,
        resolver: DependencyResolver | None = None,
    ) -> None:
        self.reader = reader
        self.db = db
        self.extractor = extractor
        self.scripts = scripts
        self.resolver = resolver or DependencyResolver(db)
        self._pipeline: tuple[
            tuple[str, Callable[[_TxContext, PackageDescriptor], None]], ...
        ] = (
            ("cycle_check", self._check_cycle),
            ("duplicate_check", self._check_duplicate),
            ("resolve_deps", self._resolve_dependencies),
            ("pre_install", self._pre_install),
            ("extract", self._extract),
            ("post_install", self._post_install),
            ("exec", self._exec),
            ("register", self._register),
        )

    def install(self, path: str) -> InstallOutcome:
        """安装指定归档，返回终态结果"""
        return self._install(path, ())

    def _install(self, path: str, stack: tuple[str, ...]) -> InstallOutcome:
        ctx = _TxContext(path=path, stack=stack)
        try:
            ctx.step = "open"
            pkg = self._open(ctx)
            for index, (name, step) in enumerate(self._pipeline, start=2):
                ctx.step = name
                step(ctx, pkg)
                logger.debug("[Step %d] %s 完成", index, name, extra=ctx.log_extra)
        except PkgAddError as e:
            ctx.record("failed", error=str(e))
            return self._failure(ctx, e)
        finally:
            if ctx.cursor is not None:
                ctx.cursor.close()

        logger.info("安装成功: %s", pkg.identity, extra=ctx.log_extra)
        return InstallOutcome(
            status=OutcomeStatus.SUCCESS,
            identity=pkg.key,
            message=f"已安装 {pkg.identity}",
            descriptor=pkg,
            steps=ctx.steps,
            installed=ctx.installed,
        )

    @staticmethod
    def _failure(ctx: _TxContext, exc: PkgAddError) -> InstallOutcome:
        status = _STATUS_BY_CODE.get(exc.code, OutcomeStatus.FATAL)
        identity = getattr(exc, "identity", "") or (ctx.pkg.key if ctx.pkg else "")
        if status == OutcomeStatus.ALREADY_INSTALLED:
            logger.info("%s", exc, extra=ctx.log_extra)
        else:
            logger.error("安装失败 [%s] %s: %s", ctx.step, ctx.path, exc, extra=ctx.log_extra)
        return InstallOutcome(
            status=status,
            identity=identity,
            message=str(exc),
            cause=getattr(exc, "cause", None),
            steps=ctx.steps,
            installed=ctx.installed,
        )

    # ---- 步骤 ----

    def _open(self, ctx: _TxContext) -> PackageDescriptor:
        if not ctx.path or not isinstance(ctx.path, str):
            raise ValidationError(f"path 参数无效: {ctx.path!r}")
        pkg, ctx.cursor = self.reader.open(ctx.path)
        ctx.pkg = pkg
        has_payload = not ctx.cursor.at_end
        ctx.record("done", package=str(pkg.identity), payload=has_payload)
        logger.info(
            "[Step 1] 已打开 %s: %s%s", ctx.path, pkg.identity,
            "" if has_payload else "（无可释放内容）", extra=ctx.log_extra,
        )
        return pkg

    def _check_cycle(self, ctx: _TxContext, pkg: PackageDescriptor) -> None:
        if pkg.key in ctx.stack:
            raise DependencyCycleError(pkg.key, list(ctx.stack))
        ctx.record("done")

    def _check_duplicate(self, ctx: _TxContext, pkg: PackageDescriptor) -> None:
        if self.db.query_exact(pkg.key) is not None:
            raise AlreadyInstalledError(pkg.key)
        ctx.record("done")

    def _resolve_dependencies(self, ctx: _TxContext, pkg: PackageDescriptor) -> None:
        if not pkg.dependencies:
            ctx.record("skipped")
            return

        self.resolver.resolve(pkg, self.db)
        installed_deps: list[str] = []
        for dep in pkg.dependencies:
            # 每次递归成功后都会重新解析，这里读到的是最新状态
            if dep.state != DepState.UNRESOLVED:
                continue
            candidate = self.resolver.locate_candidate(dep, ctx.path)
            if candidate is None:
                raise MissingDependencyError(dep.key, dep.identity.label)

            logger.info(
                "[Step 4] 安装依赖 %s <- %s", dep.identity, candidate,
                extra=ctx.log_extra,
            )
            nested = self._install(str(candidate), (*ctx.stack, pkg.key))
            if not nested.success:
                raise DependencyInstallError(dep.key, str(candidate), nested)
            ctx.installed.extend(nested.installed)
            installed_deps.append(dep.key)
            self.resolver.resolve(pkg, self.db)
            if dep.state == DepState.UNRESOLVED:
                # 候选归档登记的标识与依赖声明不一致
                raise MissingDependencyError(
                    dep.key,
                    f"{dep.identity.label}（{candidate.name} 登记为 {nested.identity}，"
                    f"与依赖标识 {dep.key} 不一致）",
                )

        ctx.record("done", installed=installed_deps)

    def _pre_install(self, ctx: _TxContext, pkg: PackageDescriptor) -> None:
        ran = self.scripts.run_pre_install(pkg)
        ctx.record("done" if ran else "skipped", scripts=len(ran))

    def _extract(self, ctx: _TxContext, pkg: PackageDescriptor) -> None:
        if ctx.cursor is None or ctx.cursor.at_end:
            ctx.record("skipped", detail="无可释放内容")
            return
        pkg.files = self.extractor.extract(ctx.cursor)
        ctx.record("done", files=len(pkg.files))
        logger.info(
            "[Step 6] 已释放 %d 个路径", len(pkg.files), extra=ctx.log_extra,
        )

    def _post_install(self, ctx: _TxContext, pkg: PackageDescriptor) -> None:
        ran = self.scripts.run_post_install(pkg)
        ctx.record("done" if ran else "skipped", scripts=len(ran))

    def _exec(self, ctx: _TxContext, pkg: PackageDescriptor) -> None:
        count = self.scripts.run_execs(pkg)
        ctx.record("done" if count else "skipped", execs=count)

    def _register(self, ctx: _TxContext, pkg: PackageDescriptor) -> None:
        self.db.register(pkg)
        ctx.installed.append(pkg.key)
        ctx.record("done")
