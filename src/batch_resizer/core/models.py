"""核心数据模型定义。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from PIL import Image

DEFAULT_DPI = (72.0, 72.0)

STATUS_PROCESSED = "processed"

SUMMARY_NO_ELIGIBLE_FILES = "no-eligible-files"
SUMMARY_COMPLETED = "completed"
SUMMARY_PARTIAL = "partial"
SUMMARY_FAILED = "failed"
SUMMARY_CANCELLED = "cancelled"


@dataclass(slots=True)
class ImageDocument:
    """解码后的内存图像，只属于单个文件的处理过程。"""

    image: Image.Image
    source_path: Path
    format_tag: str
    dpi: tuple[float, float] = DEFAULT_DPI
    released: bool = False

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def close(self) -> None:
        """释放像素缓冲区，可重复调用。"""

        if self.released:
            return
        self.image.close()
        self.released = True


@dataclass(slots=True)
class FileOutcome:
    """记录单个文件的处理结果（用于汇总/报告）。"""

    source_path: Path
    status: str
    output_path: Optional[Path] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_PROCESSED


@dataclass(slots=True)
class BatchSummary:
    """一次批处理的最终汇总。"""

    folder: Path
    eligible: int
    outcomes: list[FileOutcome] = field(default_factory=list)
    cancelled: bool = False

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failures(self) -> list[tuple[str, str]]:
        """按处理顺序返回 (文件名, 错误信息)。"""

        return [
            (outcome.source_path.name, outcome.message or outcome.status)
            for outcome in self.outcomes
            if not outcome.ok
        ]

    @property
    def status(self) -> str:
        """区分“没有可处理文件”“全部失败”“全部成功”等情形。"""

        if self.eligible == 0:
            return SUMMARY_NO_ELIGIBLE_FILES
        if self.cancelled:
            return SUMMARY_CANCELLED
        succeeded = self.succeeded
        if succeeded == self.attempted:
            return SUMMARY_COMPLETED
        if succeeded == 0:
            return SUMMARY_FAILED
        return SUMMARY_PARTIAL
