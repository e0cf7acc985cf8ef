"""尺寸与编码质量策略：纯函数，无外部依赖。"""

from __future__ import annotations

from image_uploader.core.config import ImageTier, RenditionPolicy


def compute_dimensions(orig_width: int, orig_height: int, max_dimension: int) -> tuple[int, int]:
    """按最长边限制等比缩小，从不放大。

    较长的一边被限制为 ``max_dimension``，另一边按宽高比计算后向下取整（至少为 1）。
    """

    if orig_width <= max_dimension and orig_height <= max_dimension:
        return orig_width, orig_height

    aspect_ratio = orig_width / orig_height
    if orig_width > orig_height:
        return max_dimension, max(1, int(max_dimension / aspect_ratio))
    return max(1, int(max_dimension * aspect_ratio)), max_dimension


def compute_width_bound_dimensions(orig_width: int, orig_height: int, max_width: int) -> tuple[int, int]:
    """只限制宽度的等比缩小，高度随宽高比变化，从不放大。"""

    if orig_width <= max_width:
        return orig_width, orig_height
    return max_width, max(1, int(max_width * orig_height / orig_width))


def quality_for_tier(max_dimension: int) -> int:
    """根据档位的最大尺寸给出编码质量。"""

    if max_dimension <= 800:
        return 75
    if max_dimension <= 1200:
        return 85
    return 90


def target_dimensions(size: tuple[int, int], tier: ImageTier, policy: RenditionPolicy) -> tuple[int, int]:
    width, height = size
    if policy.bound == "width":
        return compute_width_bound_dimensions(width, height, tier.max_dimension)
    return compute_dimensions(width, height, tier.max_dimension)


def resolve_quality(tier: ImageTier, policy: RenditionPolicy) -> int:
    if policy.fixed_quality is not None:
        return policy.fixed_quality
    return quality_for_tier(tier.max_dimension)
