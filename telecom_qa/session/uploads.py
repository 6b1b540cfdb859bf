"""本地上传的文件与图片。

上传内容只保留在本地会话中用于展示，发送消息时仅使用文件名；
二进制内容不会转发给远程补全服务。
"""

import base64
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Literal, Optional

from telecom_qa.domain.exceptions import StorageReadError, ValidationError


UploadKind = Literal["file", "image"]


@dataclass(frozen=True)
class UploadedFile:
    name: str
    size: int
    type: str
    data_url: Optional[str] = None


def _stat(path: Path) -> tuple[str, int, str]:
    try:
        size = path.stat().st_size
    except OSError as e:
        raise StorageReadError(code="UPLOAD_READ_ERROR", message=str(e), path=str(path))
    mime, _ = mimetypes.guess_type(path.name)
    return path.name, size, mime or "application/octet-stream"


def describe_file(path: str | Path) -> UploadedFile:
    name, size, mime = _stat(Path(path))
    return UploadedFile(name=name, size=size, type=mime)


def read_image(path: str | Path) -> UploadedFile:
    """读取图片内容并编码为 data URL。"""
    p = Path(path)
    name, size, mime = _stat(p)
    try:
        encoded = base64.b64encode(p.read_bytes()).decode("ascii")
    except OSError as e:
        raise StorageReadError(code="UPLOAD_READ_ERROR", message=str(e), path=str(p))
    return UploadedFile(name=name, size=size, type=mime, data_url=f"data:{mime};base64,{encoded}")


class UploadTray:
    """文件与图片各自最多 limit 个。"""

    def __init__(self, limit: int = 3):
        self.limit = limit
        self.files: List[UploadedFile] = []
        self.images: List[UploadedFile] = []

    def _bucket(self, kind: UploadKind) -> List[UploadedFile]:
        if kind == "file":
            return self.files
        if kind == "image":
            return self.images
        raise ValidationError(code="UPLOAD_KIND", message=f"unknown upload kind: {kind!r}")

    def remaining(self, kind: UploadKind) -> int:
        return max(0, self.limit - len(self._bucket(kind)))

    def add(self, kind: UploadKind, items: Iterable[UploadedFile]) -> List[UploadedFile]:
        """加入上传项，超出剩余名额的部分被截掉；已满时报错。"""
        remaining = self.remaining(kind)
        if remaining <= 0:
            raise ValidationError(code="UPLOAD_LIMIT", message=f"at most {self.limit} {kind}s")
        accepted = list(items)[:remaining]
        self._bucket(kind).extend(accepted)
        return accepted

    def remove(self, kind: UploadKind, index: int) -> UploadedFile:
        bucket = self._bucket(kind)
        if not 0 <= index < len(bucket):
            raise ValidationError(code="UPLOAD_INDEX", message=f"no {kind} at index {index}")
        return bucket.pop(index)

    def names(self, kind: UploadKind) -> List[str]:
        return [u.name for u in self._bucket(kind)]

    def is_empty(self) -> bool:
        return not self.files and not self.images

    def clear(self) -> None:
        self.files.clear()
        self.images.clear()
