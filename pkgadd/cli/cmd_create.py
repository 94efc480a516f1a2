"""归档创建命令"""

from __future__ import annotations

from pathlib import Path

import click
import yaml

from pkgadd.core.archive import create_package
from pkgadd.core.exceptions import PkgAddError
from pkgadd.utils.yaml_io import load_yaml


def register(main: click.Group) -> None:
    main.add_command(create)


@click.command()
@click.argument("manifest", type=click.Path(exists=True, dir_okay=False))
@click.argument("payload_dir", required=False, type=click.Path(exists=True, file_okay=False))
@click.option("--output", "-o", required=True, help="输出归档路径，如 foo-1.0.tgz")
@click.option("--script", multiple=True, help="阶段=脚本文件，如 POST_INSTALL=post.sh（可多次指定）")
def create(manifest: str, payload_dir: str | None, output: str, script: tuple[str, ...]) -> None:
    """由清单和载荷目录创建软件包归档"""
    from pkgadd.cli import _parse_kv_pairs

    try:
        data = load_yaml(manifest)
    except (yaml.YAMLError, ValueError) as e:
        raise click.ClickException(f"清单无法解析: {e}") from e
    scripts = {
        phase: Path(f).read_text(encoding="utf-8")
        for phase, f in _parse_kv_pairs(script).items()
    }
    try:
        dest = create_package(data, payload_dir, output, scripts=scripts)
    except PkgAddError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"已创建: {dest}")
