"""pkgadd 日志配置

支持人类可读文本和结构化 JSON 两种输出格式。
安装事务通过 extra={"pkg": ..., "step": ...} 附带上下文，JSON 格式会原样输出这两个字段。
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone

# 事务日志可携带的上下文字段
CONTEXT_FIELDS = ("pkg", "step")


class JSONFormatter(logging.Formatter):
    """结构化 JSON 日志格式器

    输出格式:
        {
            "timestamp": "2024-01-01T12:00:00+00:00",
            "level": "INFO",
            "logger": "pkgadd.core.transaction",
            "message": "...",
            "pkg": "misc/foo",      (仅在事务日志中)
            "step": "extract",      (仅在事务日志中)
            "exception": "..."      (仅在有异常时)
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """配置根日志器，输出到 stderr

    参数:
        level: 日志级别字符串（DEBUG, INFO, WARNING, ERROR）
        json_output: 为 True 时使用 JSON 格式，否则使用人类可读格式

    重复调用时会先清理已有 handlers，避免重复输出。
    """
    reset_logging()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        fmt = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"
        handler.setFormatter(logging.Formatter(fmt))
    root.addHandler(handler)


def setup_from_env() -> None:
    """按环境变量 PKGADD_LOG_LEVEL / PKGADD_LOG_JSON 配置日志"""
    setup_logging(
        level=os.getenv("PKGADD_LOG_LEVEL", "INFO"),
        json_output=os.getenv("PKGADD_LOG_JSON", "") == "1",
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def reset_logging() -> None:
    """清理根日志器上所有已注册的 handlers（测试中常用）"""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
