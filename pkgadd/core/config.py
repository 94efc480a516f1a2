"""集中配置管理

支持从 YAML 文件加载 + 编程式覆盖（CLI 选项）。
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any

import yaml

from pkgadd.core.exceptions import ConfigError
from pkgadd.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "/etc/pkgadd.yml"


@dataclass
class Config:
    """全局配置"""

    # 安装根目录：归档内的相对路径都释放到这里
    root_dir: str = "/"
    db_path: str = "/var/db/pkgadd/local.json"

    # 配置模板后缀：etc/foo.conf.pkgconf -> etc/foo.conf
    conf_suffix: str = "pkgconf"

    # 脚本 / @exec
    strict_scripts: bool = False
    shell: str = "/bin/sh"
    script_timeout: int | None = None

    extra: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.conf_suffix or "/" in self.conf_suffix:
            raise ConfigError(f"conf_suffix 无效: {self.conf_suffix!r}")
        self.conf_suffix = self.conf_suffix.lstrip(".")
        if self.script_timeout is not None and self.script_timeout <= 0:
            raise ConfigError(f"script_timeout 必须为正数: {self.script_timeout}")

    @classmethod
    def from_file(cls, path: str = DEFAULT_CONFIG_FILE) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        try:
            data = load_yaml(path)
        except (yaml.YAMLError, ValueError) as e:
            raise ConfigError(f"配置文件无法解析: {path}: {e}") from e
        if not data:
            return cls()
        known = {f.name for f in fields(cls)} - {"extra"}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        try:
            cfg = cls(**matched)
        except TypeError as e:
            raise ConfigError(f"配置文件内容无效: {path}: {e}") from e
        cfg.extra = extra
        return cfg

    def override(self, **changes: Any) -> Config:
        """返回覆盖了非 None 字段的新配置"""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def to_dict(self) -> dict:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = DEFAULT_CONFIG_FILE) -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current
