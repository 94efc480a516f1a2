"""YAML / 文件统一读写工具

集中管理配置文件与包清单 (+MANIFEST) 的 YAML 解析，以及数据库文件的原子写入。
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# YAML 文件最大大小限制 (10MB)
MAX_YAML_SIZE = 10 * 1024 * 1024


def atomic_write(path: Path, content: str) -> None:
    """原子写入文件：同目录临时文件 + os.replace，失败时清理临时文件"""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp, str(path))
    except Exception:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def parse_yaml_text(text: str | bytes, *, source: str = "<string>") -> dict[str, Any]:
    """解析 YAML 文本，结果必须是字典

    异常:
        yaml.YAMLError: 语法错误
        ValueError: 内容过大或顶层不是字典
    """
    if len(text) > MAX_YAML_SIZE:
        raise ValueError(f"YAML 内容过大: {source} ({len(text)} 字节)")
    result = yaml.safe_load(text)
    if result is None:
        return {}
    if not isinstance(result, dict):
        raise ValueError(
            f"{source} 顶层必须是字典 (实际类型: {type(result).__name__})"
        )
    return result


def load_yaml(path: str | Path) -> dict[str, Any]:
    """读取 YAML 文件（配置文件、create 命令的清单）

    文件不存在或为空时返回空字典；顶层不是字典时记录警告并返回空字典。

    异常:
        yaml.YAMLError: 语法错误
        ValueError: 文件超过 MAX_YAML_SIZE
    """
    p = Path(path)
    if not p.exists():
        return {}
    if p.stat().st_size > MAX_YAML_SIZE:
        raise ValueError(f"YAML 文件过大: {p} (限制 {MAX_YAML_SIZE} 字节)")

    text = p.read_text(encoding="utf-8")
    try:
        return parse_yaml_text(text, source=str(p))
    except yaml.YAMLError as e:
        logger.error("解析 YAML 文件失败: %s, 错误: %s", p, e)
        raise
    except ValueError as e:
        logger.warning("%s，按空字典处理", e)
        return {}


def dump_yaml(data: Any) -> str:
    """序列化为 YAML 文本（保持键顺序，允许 Unicode）"""
    return yaml.dump(
        data, default_flow_style=False,
        allow_unicode=True, sort_keys=False,
    )


def save_yaml(path: str | Path, data: Any) -> None:
    """原子写入 YAML 文件"""
    atomic_write(Path(path), dump_yaml(data))
