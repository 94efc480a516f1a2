"""已安装包查询命令"""

from __future__ import annotations

import click

from pkgadd.core.config import DEFAULT_CONFIG_FILE


def register(main: click.Group) -> None:
    main.add_command(info)


@click.command()
@click.argument("origin", required=False)
@click.option("--db", default=None, help="包数据库文件（覆盖配置 db_path）")
@click.option("--config", "-c", default=DEFAULT_CONFIG_FILE, help="配置文件路径")
@click.option("--files", "show_files", is_flag=True, help="同时列出已安装文件")
def info(origin: str | None, db: str | None, config: str, show_files: bool) -> None:
    """列出已安装的包，或显示指定包的详情"""
    from pkgadd.cli import _build_container

    c = _build_container(config, db=db)
    if origin is None:
        records = c.db.list_installed()
        if not records:
            click.echo("没有已安装的包。")
            return
        for r in records:
            click.echo(f"  {r.name + '-' + r.version:30s} {r.origin:24s} {r.comment}")
        return

    record = c.db.query_exact(origin)
    if record is None:
        click.echo(f"未安装: {origin}", err=True)
        raise SystemExit(1)
    click.echo(f"名称:     {record.name}")
    click.echo(f"版本:     {record.version}")
    click.echo(f"来源:     {record.origin}")
    click.echo(f"说明:     {record.comment}")
    click.echo(f"依赖:     {', '.join(record.deps) or '-'}")
    click.echo(f"安装时间: {record.installed_at}")
    if show_files:
        for f in record.files:
            click.echo(f"  {f}")
