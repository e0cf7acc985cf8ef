"""文件扫描与筛选逻辑。"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator

from image_uploader.core.config import SUPPORTED_EXTENSIONS
from image_uploader.core.models import SourceImage


def _iter_candidate_files(folder: Path) -> Iterator[Path]:
    """遍历目录下的文件（不递归）。"""

    for candidate in sorted(folder.iterdir(), key=lambda p: p.name.lower()):
        if candidate.is_file():
            yield candidate


def _normalize_extensions(extensions: Iterable[str]) -> set[str]:
    normalized = set()
    for ext in extensions:
        ext = ext.strip().lower()
        if not ext:
            continue
        normalized.add(ext if ext.startswith(".") else f".{ext}")
    return normalized


def collect_source_images(folder: Path, extensions: Iterable[str] = SUPPORTED_EXTENSIONS) -> list[SourceImage]:
    """扫描输入目录，返回扩展名匹配的图片列表。

    顺序在列出目录时按文件名确定，之后不再调整。
    """

    allowed = _normalize_extensions(extensions)
    return [
        SourceImage(source_path=candidate)
        for candidate in _iter_candidate_files(folder)
        if candidate.suffix.lower() in allowed
    ]
