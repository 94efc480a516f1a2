"""协作方协议定义

安装事务只依赖这些抽象：归档读取、包数据库、命令执行（见 utils/shell.py）。
使用 typing.Protocol，现有实现无需继承即可满足协议，测试可注入替身。
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol

from pkgadd.core.models import InstalledPackageRecord, PackageDescriptor


# =========================================================================
# 归档读取协议
# =========================================================================

class EntryCursor(Protocol):
    """归档条目游标：显式持有的顺序迭代器

    open() 之后 current 指向第一个非元数据条目；没有可安装条目时 at_end 为 True。
    """

    @property
    def current(self) -> Any | None:
        """当前条目；到达末尾时为 None"""
        ...

    @property
    def at_end(self) -> bool:
        ...

    def next_entry(self) -> Any | None:
        """前进到下一个条目并返回它，末尾返回 None；读取失败抛 ExtractionError"""
        ...

    def entry_path(self, entry: Any) -> str:
        """条目在归档内保存的路径"""
        ...

    def extract(self, entry: Any, root: Path, pathname: str | None = None) -> Path:
        """按完整元数据释放条目到 root 下（pathname 覆盖保存路径），返回目标路径"""
        ...

    def close(self) -> None:
        ...


class ArchiveReader(Protocol):
    """归档读取器协议"""

    def open(self, path: str) -> tuple[PackageDescriptor, EntryCursor]:
        """解析元数据并定位到第一个非元数据条目；失败抛 ArchiveError"""
        ...


# =========================================================================
# 包数据库协议
# =========================================================================

class PackageDatabase(Protocol):
    """包数据库协议

    register 完成后必须对同进程内后续 query_exact 立即可见。
    """

    def query_exact(self, key: str) -> InstalledPackageRecord | None:
        """按标识精确匹配，返回零或一条记录"""
        ...

    def query_name(self, name: str) -> InstalledPackageRecord | None:
        """按包名匹配（供未声明 origin 的依赖使用），返回最早登记的一条"""
        ...

    def register(self, descriptor: PackageDescriptor) -> InstalledPackageRecord:
        """登记新包；失败抛 DatabaseError"""
        ...
