"""单个源文件的处理单元。"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from PIL import Image

from image_uploader.core.config import RenditionPolicy
from image_uploader.core.exceptions import (
    ConnectionLostError,
    ContainerCreationError,
    EncodeError,
    ProcessingAborted,
    SinkError,
)
from image_uploader.core.models import FileOutcome, SourceImage
from image_uploader.processing.encoder import container_path, render
from image_uploader.processing.image_loader import ImageLoadingError, load_image
from image_uploader.sinks.base import OutputSink

LOGGER = logging.getLogger(__name__)


def process_source(
    source: SourceImage,
    sink: OutputSink,
    policy: RenditionPolicy,
    cancel_event: Optional[threading.Event] = None,
    label: str = "",
) -> FileOutcome:
    """解码一次，然后为每个档位编码并写入目标。

    任何档位失败都会让整个文件失败，已写出的档位不回滚。
    连接中断（ConnectionLostError）与取消（ProcessingAborted）向上抛出，由调用方终止整个任务。
    """

    base_name = source.base_name
    relative_dir = base_name if policy.layout == "per-image" else ""

    try:
        image = load_image(source.source_path)
    except ImageLoadingError as exc:
        LOGGER.warning("处理 %s 失败: %s", source.file_name, exc)
        return FileOutcome(source_path=source.source_path, status="error-load", message=str(exc))
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("加载 %s 时发生异常", source.file_name)
        return FileOutcome(source_path=source.source_path, status="error-load", message=str(exc))

    written = 0
    try:
        if policy.layout == "per-image":
            try:
                sink.ensure_container(relative_dir)
            except ConnectionLostError:
                raise
            except SinkError as exc:
                return _failed(source, "error-container", relative_dir, written, exc)

        for tier in policy.tiers:
            if cancel_event is not None and cancel_event.is_set():
                raise ProcessingAborted(f"在处理 {source.file_name} 时被取消")

            try:
                if policy.layout == "per-tier":
                    sink.ensure_container(container_path(base_name, tier, policy))
                rendition = render(image, base_name, tier, policy, label)
                sink.materialize(rendition.relative_path, rendition.payload)
            except EncodeError as exc:
                return _failed(source, "error-encode", relative_dir, written, exc)
            except ConnectionLostError:
                raise
            except ContainerCreationError as exc:
                return _failed(source, "error-container", relative_dir, written, exc)
            except SinkError as exc:
                return _failed(source, "error-upload", relative_dir, written, exc)
            except Exception as exc:  # noqa: BLE001
                return _failed(source, "error-worker", relative_dir, written, exc)

            written += 1
            width, height = rendition.size
            LOGGER.debug(
                "%s -> %s (%dx%d, q=%d)", source.file_name, rendition.relative_path, width, height, rendition.quality
            )
    finally:
        _close_if_needed(image)

    return FileOutcome(
        source_path=source.source_path,
        status="processed",
        relative_dir=relative_dir,
        renditions=written,
    )


def _failed(source: SourceImage, status: str, relative_dir: str, written: int, exc: Exception) -> FileOutcome:
    LOGGER.warning("处理 %s 失败: %s", source.file_name, exc)
    return FileOutcome(
        source_path=source.source_path,
        status=status,
        relative_dir=relative_dir,
        renditions=written,
        message=str(exc),
    )


def _close_if_needed(*images: Optional[Image.Image]) -> None:
    for img in images:
        if img is not None:
            img.close()
