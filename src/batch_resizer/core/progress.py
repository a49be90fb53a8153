"""进度事件的数据模型与日志输出。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ProgressEvent:
    """每个文件开始处理前发出的进度信息（序号从 1 开始）。"""

    current_index: int
    total_count: int
    current_file_name: str


ProgressCallback = Optional[Callable[[ProgressEvent], None]]


def log_progress(event: ProgressEvent) -> None:
    """将进度写入日志的默认输出端。"""

    LOGGER.info(
        "[%d/%d] 正在处理 %s",
        event.current_index,
        event.total_count,
        event.current_file_name,
    )
