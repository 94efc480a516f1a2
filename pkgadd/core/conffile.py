"""配置文件模板识别

归档中 `etc/foo.conf.<suffix>` 表示 `etc/foo.conf` 的默认内容（配置模板）。
classify 是纯函数：不做 I/O，对任意字符串都有定义，不匹配时一律返回 Plain。
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Plain:
    """普通文件"""

    path: str


@dataclass(frozen=True)
class Template:
    """配置模板，real_path 是去掉后缀后的真实配置路径"""

    path: str
    real_path: str


class ConfigFilePolicy:
    """按文件名后缀识别配置模板"""

    def __init__(self, suffix: str = "pkgconf") -> None:
        self.suffix = "." + suffix.lstrip(".")

    def classify(self, path: str) -> Plain | Template:
        if not path.endswith(self.suffix):
            return Plain(path)
        real_path = path[: -len(self.suffix)]
        # 只有后缀本身（如 "etc/.pkgconf"）时不是模板
        basename = real_path.rsplit("/", 1)[-1]
        if not basename:
            return Plain(path)
        return Template(path, real_path)
