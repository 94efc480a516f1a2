"""服务容器：统一装配安装事务及其协作方

依赖关系图（→ 表示依赖）:
  installer → reader, db, extractor, scripts, resolver
  extractor → conffile
  scripts   → executor
  resolver  → db

同一容器内的实例共享状态；尤其是 db，整棵递归安装共用同一个句柄。

用法:
    container = ServiceContainer(config=Config(root_dir="/tmp/root", db_path="/tmp/db.json"))
    outcome = container.installer.install("/pkgs/foo-1.0.tgz")

    # 测试中替换命令执行器
    container = ServiceContainer(config=cfg, executor=RecordingExecutor())
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pkgadd.core.archive import TarArchiveReader
    from pkgadd.core.conffile import ConfigFilePolicy
    from pkgadd.core.config import Config
    from pkgadd.core.extractor import Extractor
    from pkgadd.core.pkgdb import JsonPackageDB
    from pkgadd.core.resolver import DependencyResolver
    from pkgadd.core.scripts import ScriptRunner
    from pkgadd.core.transaction import InstallTransaction
    from pkgadd.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器"""

    def __init__(
        self,
        config: Config | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        self._instances: dict[str, object] = {}
        if config is None:
            from pkgadd.core.config import get_config
            config = get_config()
        self._config = config
        if executor is not None:
            self._instances["executor"] = executor

    @property
    def config(self) -> Config:
        return self._config

    @property
    def executor(self) -> CommandExecutor:
        if "executor" not in self._instances:
            from pkgadd.utils.shell import ShellExecutor
            self._instances["executor"] = ShellExecutor(shell=self._config.shell)
        return self._instances["executor"]  # type: ignore[return-value]

    @property
    def db(self) -> JsonPackageDB:
        if "db" not in self._instances:
            from pkgadd.core.pkgdb import JsonPackageDB
            self._instances["db"] = JsonPackageDB(self._config.db_path)
        return self._instances["db"]  # type: ignore[return-value]

    @property
    def reader(self) -> TarArchiveReader:
        if "reader" not in self._instances:
            from pkgadd.core.archive import TarArchiveReader
            self._instances["reader"] = TarArchiveReader()
        return self._instances["reader"]  # type: ignore[return-value]

    @property
    def conffile(self) -> ConfigFilePolicy:
        if "conffile" not in self._instances:
            from pkgadd.core.conffile import ConfigFilePolicy
            self._instances["conffile"] = ConfigFilePolicy(self._config.conf_suffix)
        return self._instances["conffile"]  # type: ignore[return-value]

    @property
    def extractor(self) -> Extractor:
        if "extractor" not in self._instances:
            from pkgadd.core.extractor import Extractor
            self._instances["extractor"] = Extractor(
                root_dir=self._config.root_dir, policy=self.conffile,
            )
        return self._instances["extractor"]  # type: ignore[return-value]

    @property
    def scripts(self) -> ScriptRunner:
        if "scripts" not in self._instances:
            from pkgadd.core.scripts import ScriptRunner
            self._instances["scripts"] = ScriptRunner(
                self.executor,
                root_dir=self._config.root_dir,
                strict=self._config.strict_scripts,
                timeout=self._config.script_timeout,
            )
        return self._instances["scripts"]  # type: ignore[return-value]

    @property
    def resolver(self) -> DependencyResolver:
        if "resolver" not in self._instances:
            from pkgadd.core.resolver import DependencyResolver
            self._instances["resolver"] = DependencyResolver(self.db)
        return self._instances["resolver"]  # type: ignore[return-value]

    @property
    def installer(self) -> InstallTransaction:
        if "installer" not in self._instances:
            from pkgadd.core.transaction import InstallTransaction
            self._instances["installer"] = InstallTransaction(
                reader=self.reader,
                db=self.db,
                extractor=self.extractor,
                scripts=self.scripts,
                resolver=self.resolver,
            )
        return self._instances["installer"]  # type: ignore[return-value]


# ---- 全局单例 ----

_global: ServiceContainer | None = None
_global_lock = threading.Lock()


def get_container() -> ServiceContainer:
    """获取全局 ServiceContainer 单例"""
    global _global  # noqa: PLW0603
    if _global is not None:
        return _global
    with _global_lock:
        if _global is None:
            _global = ServiceContainer()
        return _global


def set_container(container: ServiceContainer) -> None:
    """替换全局容器（CLI 按命令行选项构造后注入）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = container


def reset_container() -> None:
    """重置全局容器（仅用于测试）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = None
