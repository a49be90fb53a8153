"""单个文件的处理单元：解码 → 缩放 → 命名 → 编码。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from batch_resizer.core.config import ResizeConfig, ResizeMode
from batch_resizer.core.exceptions import CleanupError, FileProcessingError
from batch_resizer.core.models import STATUS_PROCESSED, FileOutcome, ImageDocument
from batch_resizer.core.naming import resolve_output_path
from batch_resizer.processing.codecs import CodecRegistry
from batch_resizer.processing.resizer import resize_document

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ResizeTask:
    """描述单个图片处理任务。"""

    source_path: Path
    config: ResizeConfig
    registry: CodecRegistry


def run_task(task: ResizeTask) -> FileOutcome:
    """执行完整的单文件流程，任何异常都不会越过此边界。"""

    name = task.source_path.name
    document: Optional[ImageDocument] = None
    resized: Optional[ImageDocument] = None

    try:
        # 编码格式由原文件扩展名决定
        codec = task.registry.for_path(task.source_path)
        document = codec.decode(task.source_path)
        resized = resize_document(document, task.config.target_width, task.config.target_height)
        output_path = resolve_output_path(task.source_path, task.config.mode)
        codec.encode(resized, output_path, overwrite=task.config.mode is ResizeMode.REPLACE)
    except FileProcessingError as exc:
        LOGGER.warning("处理 %s 失败: %s", name, exc)
        return FileOutcome(
            source_path=task.source_path,
            status=exc.status,
            message=f"{name}: {exc}",
        )
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("处理 %s 时出现未预期的异常", name)
        return FileOutcome(
            source_path=task.source_path,
            status="error-unexpected",
            message=f"{name}: {type(exc).__name__}: {exc}",
        )
    finally:
        _release(resized, document)

    return FileOutcome(source_path=task.source_path, status=STATUS_PROCESSED, output_path=output_path)


def _release(*documents: Optional[ImageDocument]) -> None:
    """尽力释放像素缓冲区，释放失败只记录日志。"""

    for document in documents:
        if document is None:
            continue
        try:
            _close_document(document)
        except CleanupError as exc:
            LOGGER.warning("%s", exc)


def _close_document(document: ImageDocument) -> None:
    try:
        document.close()
    except Exception as exc:  # noqa: BLE001
        raise CleanupError(f"释放 {document.source_path.name} 的图像资源失败: {exc}") from exc
