"""图片加载与基础预处理实现。"""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from image_uploader.core.exceptions import ImageUploaderError

LOGGER = logging.getLogger(__name__)


class ImageLoadingError(ImageUploaderError):
    """图片加载失败。"""


def load_image(path: Path) -> Image.Image:
    """加载单张图片并执行 EXIF 旋转与模式归一化。

    返回值为新的 Image 对象，调用者负责关闭。多帧图片（GIF/TIFF）只取第一帧。
    """

    try:
        with Image.open(path) as img:
            img.load()

            # EXIF Orientation 校正
            img = ImageOps.exif_transpose(img)

            if img.mode not in {"RGB", "RGBA"}:
                img = _normalize_mode(img)

            return img.copy()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        LOGGER.debug("无法识别图像文件 %s: %s", path, exc)
        raise ImageLoadingError(f"无法加载图像: {path.name}") from exc


def _normalize_mode(img: Image.Image) -> Image.Image:
    """将任意模式转换为 RGB，带透明信息的转换为 RGBA。"""

    if img.mode in {"LA", "PA"}:
        return img.convert("RGBA")

    if img.mode == "P":
        if "transparency" in img.info:
            return img.convert("RGBA")
        return img.convert("RGB")

    if img.mode == "CMYK":
        return img.convert("RGB")

    # 其他模式（L、I;16、F 等）直接转换
    return img.convert("RGB")
