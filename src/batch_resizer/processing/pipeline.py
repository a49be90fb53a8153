"""处理流水线：扫描文件夹并逐个执行缩放。"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from batch_resizer.core.config import ResizeConfig
from batch_resizer.core.models import BatchSummary
from batch_resizer.core.progress import ProgressCallback, ProgressEvent, log_progress
from batch_resizer.core.scanner import collect_source_images
from batch_resizer.core.units import PIXELS, ruler_units
from batch_resizer.processing.codecs import CodecRegistry, default_registry
from batch_resizer.processing.worker import ResizeTask, run_task

LOGGER = logging.getLogger(__name__)


class BatchRunner:
    """顺序处理文件夹中的图片，单个文件失败不会中断整批任务。

    上一个文件的图像资源释放后才开始下一个文件；取消请求只在文件之间生效。
    """

    def __init__(
        self,
        registry: Optional[CodecRegistry] = None,
        progress_callback: ProgressCallback = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.registry = registry or default_registry()
        self.progress_callback = progress_callback or log_progress
        self.cancel_event = cancel_event

    def run(self, folder: Path, config: ResizeConfig) -> BatchSummary:
        config.validate()
        folder = Path(folder)

        with ruler_units(PIXELS):
            LOGGER.info("开始扫描文件夹 %s", folder)
            sources = collect_source_images(folder)
            total = len(sources)
            summary = BatchSummary(folder=folder, eligible=total)

            if total == 0:
                LOGGER.info("没有需要处理的图片")
                return summary

            LOGGER.info(
                "发现 %d 个图片文件，目标尺寸 %dx%d，模式 %s",
                total,
                config.target_width,
                config.target_height,
                config.mode.value,
            )
            for index, source in enumerate(sources, start=1):
                if self._cancel_requested():
                    LOGGER.info("任务已取消，剩余 %d 个文件未处理", total - index + 1)
                    summary.cancelled = True
                    break

                self.progress_callback(ProgressEvent(index, total, source.name))
                outcome = run_task(ResizeTask(source_path=source, config=config, registry=self.registry))
                summary.outcomes.append(outcome)

        LOGGER.info(
            "处理结束：成功 %d 个，失败 %d 个，共 %d 个",
            summary.succeeded,
            len(summary.failures),
            summary.attempted,
        )
        return summary

    def _cancel_requested(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()


def process_batch(
    folder: Path,
    config: ResizeConfig,
    progress_callback: ProgressCallback = None,
    *,
    registry: Optional[CodecRegistry] = None,
    cancel_event: Optional[threading.Event] = None,
) -> BatchSummary:
    """批量缩放入口。"""

    runner = BatchRunner(registry=registry, progress_callback=progress_callback, cancel_event=cancel_event)
    return runner.run(folder, config)
