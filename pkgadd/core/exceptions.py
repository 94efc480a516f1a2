"""统一异常体系

所有业务异常继承 PkgAddError，每个子类带有 code。
安装事务在边界处捕获 PkgAddError，按 code 映射为 OutcomeStatus；
CLI 层据此输出友好提示。
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pkgadd.core.models import InstallOutcome


class PkgAddError(Exception):
    """基础异常"""

    code: str = "FATAL"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(PkgAddError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(PkgAddError):
    """参数校验失败"""

    code = "FATAL"


class ArchiveError(PkgAddError):
    """归档无法打开、格式错误或元数据解析失败"""

    code = "OPEN_FAILED"


class AlreadyInstalledError(PkgAddError):
    """同一标识的包已登记"""

    code = "ALREADY_INSTALLED"

    def __init__(self, identity: str) -> None:
        super().__init__(f"软件包已安装: {identity}")
        self.identity = identity


class MissingDependencyError(PkgAddError):
    """依赖未安装，且同目录下找不到候选归档"""

    code = "MISSING_DEPENDENCY"

    def __init__(self, identity: str, label: str = "") -> None:
        super().__init__(f"缺少依赖 {label or identity}")
        self.identity = identity
        self.label = label or identity


class DependencyInstallError(PkgAddError):
    """递归安装依赖失败，包装内层结果"""

    code = "DEPENDENCY_INSTALL_FAILED"

    def __init__(self, identity: str, path: str, cause: InstallOutcome) -> None:
        super().__init__(
            f"安装依赖 {identity} ({path}) 失败: {cause.message}"
        )
        self.identity = identity
        self.path = path
        self.cause = cause


class DependencyCycleError(PkgAddError):
    """依赖成环：包在当前递归栈中已处于安装过程"""

    code = "DEPENDENCY_CYCLE"

    def __init__(self, identity: str, chain: list[str]) -> None:
        super().__init__(
            f"检测到依赖环: {' -> '.join([*chain, identity])}"
        )
        self.identity = identity
        self.chain = chain


class ExtractionError(PkgAddError):
    """归档释放到文件系统失败（不回滚已释放文件）"""

    code = "EXTRACTION_FAILED"


class ScriptError(PkgAddError):
    """严格模式下脚本或 @exec 指令执行失败"""

    code = "FATAL"


class DatabaseError(PkgAddError):
    """包数据库读写失败"""

    code = "FATAL"


class ExecutionError(PkgAddError):
    """命令无法启动或执行超时"""

    code = "FATAL"
