"""持久化存储槽。

一个存储槽就是一个键对应一段 UTF-8 字符串，整体读写。
写入超出配额时抛出 StorageQuotaError，由上层决定淘汰策略。
"""

import errno
import os
from pathlib import Path
from typing import Optional, Protocol
from uuid import uuid4

from telecom_qa.domain.exceptions import StorageQuotaError, StorageReadError, StorageWriteError


_QUOTA_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class StorageSlot(Protocol):
    key: str

    def read(self) -> Optional[str]:
        ...

    def write(self, value: str) -> None:
        ...


class FileSlot:
    """以单个 JSON 文件实现的存储槽，写入采用临时文件 + 原子替换。"""

    def __init__(self, root: str | Path, key: str, quota_bytes: int):
        self.key = key
        self.quota_bytes = quota_bytes
        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._path = self._root / f"{key}.json"

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> Optional[str]:
        if not self._path.exists():
            return None
        try:
            return self._path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageReadError(code="STORE_READ_ERROR", message=str(e), slot=self.key)

    def write(self, value: str) -> None:
        data = value.encode("utf-8")
        if len(data) > self.quota_bytes:
            raise StorageQuotaError(
                code="STORE_QUOTA_EXCEEDED",
                message=f"{len(data)} bytes exceeds quota of {self.quota_bytes}",
                slot=self.key,
            )
        tmp_path = self._root / f"{self.key}.{uuid4().hex}.json.tmp"
        try:
            tmp_path.write_bytes(data)
            os.replace(tmp_path, self._path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            if e.errno in _QUOTA_ERRNOS:
                raise StorageQuotaError(code="STORE_QUOTA_EXCEEDED", message=str(e), slot=self.key)
            raise StorageWriteError(code="STORE_WRITE_ERROR", message=str(e), slot=self.key)
