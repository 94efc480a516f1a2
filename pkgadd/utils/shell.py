"""Shell 命令执行工具

通过 CommandExecutor 协议抽象子进程执行。生命周期脚本和 @exec 指令都是
shell 文本，因此默认实现 ShellExecutor 用 `<shell> -c <text>` 执行。
测试时可注入记录型实现，无需 patch subprocess。
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Protocol

from pkgadd.core.exceptions import ExecutionError

logger = logging.getLogger(__name__)


# =========================================================================
# 命令执行结果
# =========================================================================

@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0


# =========================================================================
# 命令执行器协议
# =========================================================================

class CommandExecutor(Protocol):
    """命令执行器协议

    execute 返回退出状态；命令无法启动或超时时抛 ExecutionError。
    是否把非零退出视为失败由调用方决定。
    """

    def execute(
        self,
        cmd: str,
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        ...


# =========================================================================
# 默认实现: 本地 Shell 执行器
# =========================================================================

class ShellExecutor:
    """本地 Shell 执行器（同步阻塞）"""

    def __init__(self, shell: str = "/bin/sh") -> None:
        self.shell = shell

    def execute(
        self,
        cmd: str,
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        try:
            r = subprocess.run(
                [self.shell, "-c", cmd], capture_output=True, text=True,
                cwd=cwd, env=env, check=False, timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ExecutionError(f"命令超时 ({timeout}s): {cmd[:200]}") from e
        except OSError as e:
            raise ExecutionError(f"命令无法启动: {e}") from e
        if r.stdout:
            logger.debug("stdout: %s", r.stdout.rstrip())
        if r.stderr:
            logger.debug("stderr: %s", r.stderr.rstrip())
        return CommandResult(
            returncode=r.returncode,
            stdout=r.stdout,
            stderr=r.stderr,
        )
