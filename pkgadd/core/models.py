"""核心数据模型

包描述、依赖声明、脚本 / @exec 条目、已安装记录以及安装结果集中定义在此，
其他模块统一从这里导入。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# =========================================================================
# 包标识
# =========================================================================


@dataclass(frozen=True)
class PackageIdentity:
    """包标识 (name, version, origin)，origin 是数据库中的唯一键"""

    name: str
    version: str
    origin: str = ""

    @property
    def key(self) -> str:
        """数据库键：origin，未声明时退化为 name"""
        return self.origin or self.name

    @property
    def label(self) -> str:
        """name-version 形式，用于脚本参数和归档文件名"""
        return f"{self.name}-{self.version}"

    def __str__(self) -> str:
        return self.label


# =========================================================================
# 依赖声明
# =========================================================================


class DepState(str, Enum):
    """依赖解析状态"""

    UNRESOLVED = "unresolved"
    SATISFIED_INSTALLED = "satisfied_installed"
    SATISFIED_BY_PATH = "satisfied_by_path"


@dataclass
class DeclaredDependency:
    """声明的依赖：按 name+version(+origin) 引用另一个包

    state / path 只由 DependencyResolver 修改，每轮解析从头重新推导。
    """

    identity: PackageIdentity
    state: DepState = DepState.UNRESOLVED
    path: str = ""

    @property
    def key(self) -> str:
        return self.identity.key


# =========================================================================
# 生命周期脚本 & @exec
# =========================================================================


class ScriptPhase(str, Enum):
    """脚本阶段，值对应归档中的元数据文件名（去掉 '+'）"""

    INSTALL = "INSTALL"
    PRE_INSTALL = "PRE_INSTALL"
    POST_INSTALL = "POST_INSTALL"
    DEINSTALL = "DEINSTALL"
    PRE_DEINSTALL = "PRE_DEINSTALL"
    POST_DEINSTALL = "POST_DEINSTALL"
    UPGRADE = "UPGRADE"
    PRE_UPGRADE = "PRE_UPGRADE"
    POST_UPGRADE = "POST_UPGRADE"


@dataclass(frozen=True)
class ScriptEntry:
    phase: ScriptPhase
    body: str


class ExecPhase(str, Enum):
    EXEC = "exec"
    UNEXEC = "unexec"


@dataclass(frozen=True)
class ExecEntry:
    phase: ExecPhase
    command: str


# =========================================================================
# 包描述 & 已安装记录
# =========================================================================


@dataclass
class PackageDescriptor:
    """从归档元数据解析出的包描述

    注册前由打开它的安装事务独占；注册后逻辑所有权转移给数据库。
    """

    identity: PackageIdentity
    comment: str = ""
    desc: str = ""
    prefix: str = ""
    dependencies: list[DeclaredDependency] = field(default_factory=list)
    scripts: list[ScriptEntry] = field(default_factory=list)
    execs: list[ExecEntry] = field(default_factory=list)
    archive_path: str = ""
    files: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def version(self) -> str:
        return self.identity.version

    @property
    def key(self) -> str:
        return self.identity.key


@dataclass
class InstalledPackageRecord:
    """数据库中的已安装记录，每个 origin 至多一条"""

    name: str
    version: str
    origin: str
    comment: str = ""
    deps: list[str] = field(default_factory=list)
    files: list[str] = field(default_factory=list)
    installed_at: str = ""

    @property
    def key(self) -> str:
        return self.origin or self.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "origin": self.origin,
            "comment": self.comment,
            "deps": list(self.deps),
            "files": list(self.files),
            "installed_at": self.installed_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InstalledPackageRecord:
        return cls(
            name=data["name"],
            version=data["version"],
            origin=data.get("origin", data["name"]),
            comment=data.get("comment", ""),
            deps=list(data.get("deps", [])),
            files=list(data.get("files", [])),
            installed_at=data.get("installed_at", ""),
        )


# =========================================================================
# 安装结果
# =========================================================================


class OutcomeStatus(str, Enum):
    """安装事务的终态"""

    SUCCESS = "SUCCESS"
    ALREADY_INSTALLED = "ALREADY_INSTALLED"
    MISSING_DEPENDENCY = "MISSING_DEPENDENCY"
    DEPENDENCY_INSTALL_FAILED = "DEPENDENCY_INSTALL_FAILED"
    DEPENDENCY_CYCLE = "DEPENDENCY_CYCLE"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    OPEN_FAILED = "OPEN_FAILED"
    FATAL = "FATAL"


@dataclass
class InstallOutcome:
    """一次安装事务的结果（不持久化）

    descriptor 仅在 SUCCESS 时提供；cause 是依赖安装失败时的内层结果；
    installed 按注册顺序记录本次调用（含递归）登记的包键。
    """

    status: OutcomeStatus
    identity: str = ""
    message: str = ""
    descriptor: PackageDescriptor | None = None
    cause: InstallOutcome | None = None
    steps: list[dict[str, Any]] = field(default_factory=list)
    installed: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    def root_cause(self) -> InstallOutcome:
        """沿 cause 链找到最内层的失败结果"""
        outcome = self
        while outcome.cause is not None:
            outcome = outcome.cause
        return outcome
