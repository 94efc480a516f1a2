"""测试公共夹具：在临时目录中构造软件包归档、配置和服务容器"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import pytest

from pkgadd.core.archive import create_package
from pkgadd.core.config import Config
from pkgadd.services.container import ServiceContainer, reset_container
from pkgadd.utils.shell import CommandResult


@dataclass
class RecordingExecutor:
    """记录型命令执行器：不真正执行，只记录命令文本

    probe 指向一个文件时，同时记录执行那一刻该文件是否存在，
    用来确认脚本相对于释放步骤的先后顺序。
    """

    returncode: int = 0
    probe: Path | None = None
    calls: list[dict[str, Any]] = field(default_factory=list)

    def execute(
        self,
        cmd: str,
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        self.calls.append({
            "cmd": cmd,
            "cwd": cwd,
            "env": env or {},
            "probe": self.probe is not None and os.path.lexists(self.probe),
        })
        return CommandResult(returncode=self.returncode)

    @property
    def commands(self) -> list[str]:
        return [c["cmd"] for c in self.calls]


@pytest.fixture(autouse=True)
def _isolate_container():
    reset_container()
    yield
    reset_container()


@pytest.fixture()
def pkg_dir(tmp_path: Path) -> Path:
    d = tmp_path / "pkgs"
    d.mkdir()
    return d


@pytest.fixture()
def make_pkg(pkg_dir: Path, tmp_path: Path) -> Callable[..., Path]:
    """构造软件包归档，返回归档路径

    files=None 时放一个默认 README；files={} 时只有元数据。
    deps 为 (name, version[, origin]) 元组序列；origin 缺省为 misc/<name>，空串表示不声明。
    """

    def _make(
        name: str,
        version: str = "1.0",
        *,
        deps: tuple[tuple[str, ...], ...] | list[tuple[str, ...]] = (),
        files: dict[str, str] | None = None,
        scripts: dict[str, str] | None = None,
        execs: tuple[str, ...] | list[str] = (),
        unexec: tuple[str, ...] | list[str] = (),
        origin: str | None = None,
        ext: str = ".tgz",
    ) -> Path:
        if files is None:
            files = {f"share/{name}/README": f"{name} {version}\n"}
        payload = tmp_path / "payload" / f"{name}-{version}"
        payload.mkdir(parents=True)
        for rel, content in files.items():
            target = payload / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")

        manifest: dict[str, Any] = {
            "name": name,
            "version": version,
            "origin": origin if origin is not None else f"misc/{name}",
            "comment": f"{name} 测试包",
        }
        if deps:
            manifest["deps"] = []
            for n, v, *rest in deps:
                dep: dict[str, str] = {"name": n, "version": v}
                dep_origin = rest[0] if rest else f"misc/{n}"
                if dep_origin:
                    dep["origin"] = dep_origin
                manifest["deps"].append(dep)
        if execs:
            manifest["exec"] = list(execs)
        if unexec:
            manifest["unexec"] = list(unexec)
        return create_package(
            manifest,
            payload if files else None,
            pkg_dir / f"{name}-{version}{ext}",
            scripts=scripts,
        )

    return _make


@pytest.fixture()
def config(tmp_path: Path) -> Config:
    root = tmp_path / "root"
    root.mkdir()
    return Config(root_dir=str(root), db_path=str(tmp_path / "db" / "local.json"))


@pytest.fixture()
def recorder() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture()
def container(config: Config, recorder: RecordingExecutor) -> ServiceContainer:
    return ServiceContainer(config=config, executor=recorder)
