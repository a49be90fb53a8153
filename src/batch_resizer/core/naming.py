"""输出文件命名。"""

from __future__ import annotations

from pathlib import Path

from batch_resizer.core.config import ResizeMode

COPY_SUFFIX = "_resized"


def resolve_output_path(input_path: Path, mode: ResizeMode) -> Path:
    """根据输出模式计算目标路径。

    REPLACE 直接返回原路径；COPY 在同目录生成 ``<名称>_resized.<小写扩展名>``。
    纯函数，不访问文件系统，冲突检测在写入阶段完成。
    """

    if mode is ResizeMode.REPLACE:
        return input_path

    extension = input_path.suffix.lower()
    return input_path.with_name(f"{input_path.stem}{COPY_SUFFIX}{extension}")
