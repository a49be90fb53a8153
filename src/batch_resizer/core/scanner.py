"""文件扫描与筛选逻辑。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

from batch_resizer.core.exceptions import FolderError

LOGGER = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".tif", ".tiff", ".psd", ".gif"})


def is_supported(path: Path) -> bool:
    """扩展名（不区分大小写）是否在支持列表中。"""

    return path.suffix.lower() in SUPPORTED_EXTENSIONS


def _iter_candidate_files(folder: Path) -> Iterator[Path]:
    """遍历目录下一层的文件，不递归。"""

    for candidate in folder.iterdir():
        if candidate.is_file():
            yield candidate


def collect_source_images(folder: Path) -> list[Path]:
    """扫描源文件夹，返回按文件名排序的图片列表。

    扫描只在批处理开始时执行一次。
    """

    resolved = folder.expanduser().resolve()
    if not resolved.exists():
        raise FolderError(f"文件夹不存在: {folder}")
    if not resolved.is_dir():
        raise FolderError(f"不是文件夹: {folder}")

    try:
        candidates = list(_iter_candidate_files(resolved))
    except OSError as exc:
        raise FolderError(f"无法读取文件夹 {folder}: {exc}") from exc

    collected = [candidate for candidate in candidates if is_supported(candidate)]
    skipped = len(candidates) - len(collected)
    if skipped:
        LOGGER.debug("忽略 %d 个不支持的文件", skipped)

    collected.sort(key=lambda path: (path.name.lower(), path.name))
    return collected
