"""尺寸档位的缩放与编码。"""

from __future__ import annotations

import io
import logging

from PIL import Image

from image_uploader.core.config import ImageTier, RenditionPolicy
from image_uploader.core.exceptions import EncodeError, InvalidConfigurationError
from image_uploader.core.models import Rendition
from image_uploader.processing.geometry import resolve_quality, target_dimensions

LOGGER = logging.getLogger(__name__)

_RESAMPLING = getattr(Image, "Resampling", Image)

SUPPORTED_FORMATS = {"WEBP", "JPEG"}


def rendition_path(base_name: str, tier: ImageTier, policy: RenditionPolicy, label: str = "") -> str:
    """根据档位与布局生成相对输出路径（使用 / 作为分隔符）。"""

    if policy.layout == "per-image":
        return f"{base_name}/{base_name}_{tier.name}.{policy.extension}"
    if policy.layout == "per-tier":
        stem = f"{base_name}_{label}" if label else base_name
        return f"{tier.name}/{stem}_{tier.suffix or tier.name}.{policy.extension}"
    raise InvalidConfigurationError(f"未知的输出布局: {policy.layout}")


def container_path(base_name: str, tier: ImageTier, policy: RenditionPolicy) -> str:
    """渲染结果所在的相对目录。"""

    if policy.layout == "per-tier":
        return tier.name
    return base_name


def encode_tier(image: Image.Image, tier: ImageTier, policy: RenditionPolicy) -> bytes:
    """缩放并编码单个档位，返回字节数据。

    输入图片不会被修改，同一张图片会被所有档位复用。
    """

    image_format = policy.image_format.upper()
    if image_format not in SUPPORTED_FORMATS:
        raise InvalidConfigurationError(f"不支持的输出格式: {policy.image_format}")

    new_size = target_dimensions(image.size, tier, policy)
    quality = resolve_quality(tier, policy)

    try:
        if new_size == image.size:
            resized = image.copy()
        else:
            resized = image.resize(new_size, _RESAMPLING.LANCZOS)

        if image_format == "JPEG" and resized.mode != "RGB":
            resized = _flatten_to_rgb(resized)

        buffer = io.BytesIO()
        resized.save(buffer, format=image_format, quality=quality)
    except (OSError, ValueError) as exc:
        LOGGER.debug("编码 %s 档位失败: %s", tier.name, exc)
        raise EncodeError(f"无法编码 {tier.name} 档位: {exc}") from exc

    return buffer.getvalue()


def render(
    image: Image.Image,
    base_name: str,
    tier: ImageTier,
    policy: RenditionPolicy,
    label: str = "",
) -> Rendition:
    """生成单个档位的 Rendition。"""

    payload = encode_tier(image, tier, policy)
    return Rendition(
        relative_path=rendition_path(base_name, tier, policy, label),
        payload=payload,
        size=target_dimensions(image.size, tier, policy),
        quality=resolve_quality(tier, policy),
    )


def _flatten_to_rgb(img: Image.Image) -> Image.Image:
    """JPEG 不支持透明通道，通过白色背景混合生成 RGB。"""

    if img.mode in {"RGBA", "LA"}:
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img.convert("RGBA"), mask=img.convert("RGBA").split()[-1])
        return background
    return img.convert("RGB")
