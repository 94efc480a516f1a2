"""生命周期脚本与 @exec 指令

执行顺序（由安装事务调用）:
  释放前: INSTALL（参数 INSTALL）、PRE_INSTALL，按归档顺序
  释放后: INSTALL（参数 POST-INSTALL）、POST_INSTALL，按归档顺序
  最后:   @exec 指令（不含 @unexec），按声明顺序

每个脚本前面拼接 `set -- <name>-<version> [标记]`，脚本内可用 $1 / $2 读取。
默认退出码只记录不影响事务；strict_scripts=True 时首个失败抛 ScriptError。
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pkgadd.core.exceptions import ExecutionError, ScriptError
from pkgadd.core.models import ExecPhase, PackageDescriptor, ScriptEntry, ScriptPhase
from pkgadd.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)

# 阶段 -> 传给脚本的标记（None 表示只传包标识）
PRE_EXTRACT_PHASES: dict[ScriptPhase, str | None] = {
    ScriptPhase.INSTALL: "INSTALL",
    ScriptPhase.PRE_INSTALL: None,
}
POST_EXTRACT_PHASES: dict[ScriptPhase, str | None] = {
    ScriptPhase.INSTALL: "POST-INSTALL",
    ScriptPhase.POST_INSTALL: None,
}


def render_script(pkg: PackageDescriptor, body: str, marker: str | None = None) -> str:
    """拼接脚本上下文头"""
    args = pkg.identity.label if marker is None else f"{pkg.identity.label} {marker}"
    return f"set -- {args}\n{body}"


class ScriptRunner:
    """脚本 / @exec 执行器"""

    def __init__(
        self,
        executor: CommandExecutor,
        root_dir: str | Path = "/",
        *,
        strict: bool = False,
        timeout: int | None = None,
    ) -> None:
        self.executor = executor
        self.root = Path(root_dir)
        self.strict = strict
        self.timeout = timeout

    def _env(self, pkg: PackageDescriptor) -> dict[str, str]:
        return {
            **os.environ,
            "PKG_NAME": pkg.name,
            "PKG_VERSION": pkg.version,
            "PKG_ORIGIN": pkg.key,
            "PKG_ROOTDIR": str(self.root),
        }

    def _run(self, pkg: PackageDescriptor, cmd: str, label: str) -> None:
        try:
            result = self.executor.execute(
                cmd, cwd=str(self.root), env=self._env(pkg), timeout=self.timeout,
            )
        except ExecutionError as e:
            if self.strict:
                raise ScriptError(f"{pkg.identity} {label} 执行失败: {e}") from e
            logger.warning("%s %s 无法执行（已忽略）: %s", pkg.identity, label, e)
            return
        if result.success:
            logger.info("%s %s 完成", pkg.identity, label)
            return
        if self.strict:
            raise ScriptError(
                f"{pkg.identity} {label} 退出码 {result.returncode}: "
                f"{result.stderr.strip()[:500]}"
            )
        logger.warning(
            "%s %s 退出码 %d（已忽略）", pkg.identity, label, result.returncode,
        )

    def _run_scripts(
        self, pkg: PackageDescriptor, phases: dict[ScriptPhase, str | None],
    ) -> list[ScriptEntry]:
        ran: list[ScriptEntry] = []
        for script in pkg.scripts:
            if script.phase not in phases:
                continue
            marker = phases[script.phase]
            label = f"脚本 {script.phase.value}" + (f" ({marker})" if marker else "")
            self._run(pkg, render_script(pkg, script.body, marker), label)
            ran.append(script)
        return ran

    def run_pre_install(self, pkg: PackageDescriptor) -> list[ScriptEntry]:
        return self._run_scripts(pkg, PRE_EXTRACT_PHASES)

    def run_post_install(self, pkg: PackageDescriptor) -> list[ScriptEntry]:
        return self._run_scripts(pkg, POST_EXTRACT_PHASES)

    def run_execs(self, pkg: PackageDescriptor) -> int:
        """执行 @exec 指令，返回执行条数"""
        count = 0
        for entry in pkg.execs:
            if entry.phase != ExecPhase.EXEC:
                continue
            self._run(pkg, entry.command, f"@exec {entry.command}")
            count += 1
        return count
