"""几何缩放：拉伸到精确的目标尺寸。"""

from __future__ import annotations

import logging

from PIL import Image

from batch_resizer.core.exceptions import ResizeError
from batch_resizer.core.models import ImageDocument
from batch_resizer.core.units import to_pixels

LOGGER = logging.getLogger(__name__)

RESAMPLE = Image.BICUBIC


def resize_document(document: ImageDocument, target_width: float, target_height: float) -> ImageDocument:
    """按当前标尺单位将图片拉伸到目标宽高（不保持比例、不裁剪）。

    返回新的 ImageDocument，输入文档保持不变。
    """

    if target_width <= 0 or target_height <= 0:
        raise ResizeError(f"目标尺寸必须为正数: {target_width}x{target_height}")

    dpi_x, dpi_y = document.dpi
    size = (to_pixels(target_width, dpi_x), to_pixels(target_height, dpi_y))
    if size[0] <= 0 or size[1] <= 0:
        raise ResizeError(f"换算后的像素尺寸无效: {size[0]}x{size[1]}")

    try:
        resized = document.image.resize(size, RESAMPLE)
    except (ValueError, OSError, MemoryError) as exc:
        raise ResizeError(f"缩放 {document.source_path.name} 失败: {exc}") from exc

    LOGGER.debug("%s: %dx%d -> %dx%d", document.source_path.name, *document.size, *size)
    return ImageDocument(
        image=resized,
        source_path=document.source_path,
        format_tag=document.format_tag,
        dpi=document.dpi,
    )
