"""pkgadd 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

from __future__ import annotations

import click

from pkgadd import __version__
from pkgadd.core.config import Config
from pkgadd.core.exceptions import PkgAddError
from pkgadd.services.container import ServiceContainer, set_container
from pkgadd.utils.logger import setup_from_env


def _parse_kv_pairs(pairs: tuple[str, ...]) -> dict[str, str]:
    """解析 key=value 参数对"""
    result: dict[str, str] = {}
    for p in pairs:
        if "=" in p:
            k, v = p.split("=", 1)
            result[k.strip()] = v.strip()
    return result


def _build_container(
    config_path: str,
    *,
    root: str | None = None,
    db: str | None = None,
    strict_scripts: bool = False,
) -> ServiceContainer:
    """按配置文件 + 命令行覆盖构造服务容器，并设为全局容器

    包数据库在这里先加载一次，文件损坏时以命令行错误退出。
    """
    try:
        cfg = Config.from_file(config_path).override(
            root_dir=root,
            db_path=db,
            strict_scripts=True if strict_scripts else None,
        )
        container = ServiceContainer(config=cfg)
        _ = container.db
    except PkgAddError as e:
        raise click.ClickException(str(e)) from e
    set_container(container)
    return container


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """pkgadd - 软件包安装工具"""
    setup_from_env()


# 注册各领域子命令
from pkgadd.cli.cmd_install import register as _reg_install  # noqa: E402
from pkgadd.cli.cmd_info import register as _reg_info  # noqa: E402
from pkgadd.cli.cmd_create import register as _reg_create  # noqa: E402

_reg_install(main)
_reg_info(main)
_reg_create(main)
