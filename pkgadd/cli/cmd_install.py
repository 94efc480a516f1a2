"""安装命令"""

from __future__ import annotations

import click

from pkgadd.core.config import DEFAULT_CONFIG_FILE
from pkgadd.core.models import InstallOutcome, OutcomeStatus


def register(main: click.Group) -> None:
    main.add_command(install)


def _echo_failure(outcome: InstallOutcome) -> None:
    click.echo(f"安装失败 [{outcome.status.value}]: {outcome.message}", err=True)
    depth = 1
    cause = outcome.cause
    while cause is not None:
        click.echo(
            f"{'  ' * depth}<- [{cause.status.value}] {cause.message}", err=True,
        )
        cause = cause.cause
        depth += 1
    extracted = any(
        s["step"] == "extract" and s["status"] != "skipped"
        for s in outcome.root_cause().steps
    )
    if extracted:
        click.echo("注意: 已释放的文件不会回滚，请手动检查安装根目录。", err=True)


@click.command()
@click.argument("path", type=click.Path(dir_okay=False))
@click.option("--root", default=None, help="安装根目录（覆盖配置 root_dir）")
@click.option("--db", default=None, help="包数据库文件（覆盖配置 db_path）")
@click.option("--config", "-c", default=DEFAULT_CONFIG_FILE, help="配置文件路径")
@click.option("--strict-scripts", is_flag=True, help="脚本或 @exec 失败时终止安装")
def install(
    path: str, root: str | None, db: str | None, config: str, strict_scripts: bool,
) -> None:
    """从归档安装软件包（缺失的依赖从同目录归档递归安装）"""
    from pkgadd.cli import _build_container

    c = _build_container(config, root=root, db=db, strict_scripts=strict_scripts)
    outcome = c.installer.install(path)

    if outcome.success:
        for key in outcome.installed:
            click.echo(f"已安装: {key}")
        return
    if outcome.status == OutcomeStatus.ALREADY_INSTALLED:
        click.echo(f"已安装，跳过: {outcome.identity}")
        return
    _echo_failure(outcome)
    raise SystemExit(1)
