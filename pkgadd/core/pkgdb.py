"""本地包数据库 - JSON 文件实现

文件结构: {"packages": {<origin>: <记录>}}，按注册顺序保存。
构造时加载一次；每次 register 都原子写回文件，同进程内后续查询立即可见。
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from pkgadd.core.exceptions import DatabaseError
from pkgadd.core.models import InstalledPackageRecord, PackageDescriptor
from pkgadd.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)


class JsonPackageDB:
    """JSON 文件包数据库"""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._records: dict[str, InstalledPackageRecord] = self._load()

    def _load(self) -> dict[str, InstalledPackageRecord]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise DatabaseError(f"读取包数据库失败: {self.path}: {e}") from e
        packages = data.get("packages", {}) if isinstance(data, dict) else {}
        try:
            return {
                key: InstalledPackageRecord.from_dict(info)
                for key, info in packages.items()
            }
        except (KeyError, TypeError) as e:
            raise DatabaseError(f"包数据库记录格式错误: {self.path}: {e}") from e

    def _save(self) -> None:
        content = json.dumps(
            {"packages": {k: r.to_dict() for k, r in self._records.items()}},
            indent=2, ensure_ascii=False,
        )
        try:
            atomic_write(self.path, content + "\n")
        except OSError as e:
            raise DatabaseError(f"写入包数据库失败: {self.path}: {e}") from e

    def query_exact(self, key: str) -> InstalledPackageRecord | None:
        return self._records.get(key)

    def query_name(self, name: str) -> InstalledPackageRecord | None:
        return next((r for r in self._records.values() if r.name == name), None)

    def register(self, descriptor: PackageDescriptor) -> InstalledPackageRecord:
        key = descriptor.key
        if key in self._records:
            raise DatabaseError(f"重复登记: {key}")
        record = InstalledPackageRecord(
            name=descriptor.name,
            version=descriptor.version,
            origin=key,
            comment=descriptor.comment,
            deps=[d.key for d in descriptor.dependencies],
            files=list(descriptor.files),
            installed_at=datetime.now(timezone.utc).isoformat(),
        )
        self._records[key] = record
        try:
            self._save()
        except DatabaseError:
            del self._records[key]
            raise
        logger.info("已登记: %s (%s)", key, descriptor.identity)
        return record

    def list_installed(self) -> list[InstalledPackageRecord]:
        """按注册顺序返回全部记录"""
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._records
