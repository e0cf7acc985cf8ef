"""本地目录输出。"""

from __future__ import annotations

import logging
from pathlib import Path

from image_uploader.core.exceptions import ContainerCreationError, UploadFailed
from image_uploader.sinks.base import OutputSink

LOGGER = logging.getLogger(__name__)


class FilesystemSink(OutputSink):
    """将编码结果写入本地目录结构。"""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir.expanduser().resolve()

    def describe(self) -> str:
        return str(self.output_dir)

    def ensure_container(self, relative_path: str = "") -> None:
        target = self._resolve(relative_path)
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ContainerCreationError(f"无法创建目录: {target}") from exc

    def materialize(self, relative_path: str, payload: bytes) -> None:
        destination = self._resolve(relative_path)
        try:
            destination.write_bytes(payload)
        except OSError as exc:
            raise UploadFailed(f"写入文件失败: {destination}") from exc
        LOGGER.debug("已写入 %s (%d 字节)", destination, len(payload))

    def _resolve(self, relative_path: str) -> Path:
        if not relative_path:
            return self.output_dir
        return self.output_dir.joinpath(*relative_path.split("/"))
