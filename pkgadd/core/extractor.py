"""载荷释放器

按归档顺序逐条释放到安装根目录：
  1. 原样释放到保存路径（任何失败立即终止，不重试、不回滚）
  2. 若保存路径是配置模板且真实配置文件不存在，再用同一条目内容释放一次到真实路径；
     真实文件已存在则不动它，保留管理员的修改
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pkgadd.core.conffile import ConfigFilePolicy, Template
from pkgadd.core.protocols import EntryCursor

logger = logging.getLogger(__name__)


class Extractor:
    """载荷释放器"""

    def __init__(self, root_dir: str | Path, policy: ConfigFilePolicy) -> None:
        self.root = Path(root_dir)
        self.policy = policy

    def extract(self, cursor: EntryCursor) -> list[str]:
        """从游标当前位置释放到归档末尾，返回已写入的相对路径（含新生成的配置文件）

        异常:
            ExtractionError: 任一条目释放或归档读取失败
        """
        written: list[str] = []
        entry = cursor.current
        while entry is not None:
            stored = cursor.entry_path(entry)
            cursor.extract(entry, self.root)
            written.append(stored)

            kind = self.policy.classify(stored)
            if isinstance(kind, Template):
                target = self.root / kind.real_path
                if os.path.lexists(target):
                    logger.info("配置文件已存在，保留: %s", target)
                else:
                    cursor.extract(entry, self.root, pathname=kind.real_path)
                    written.append(kind.real_path)
                    logger.info("由模板生成配置文件: %s", target)

            entry = cursor.next_entry()

        logger.debug("释放完成: %d 个路径 -> %s", len(written), self.root)
        return written
