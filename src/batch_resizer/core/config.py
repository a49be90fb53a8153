"""批量缩放任务的配置模型。"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from batch_resizer.core.exceptions import ConfigError


class ResizeMode(str, Enum):
    """输出方式：生成副本或覆盖原文件。"""

    COPY = "copy"
    REPLACE = "replace"


RawDimension = Union[int, str]


@dataclass(slots=True, frozen=True)
class ResizeConfig:
    """单次批处理的目标尺寸与输出方式。

    构造时即校验，非法配置会在任何文件 I/O 之前抛出 ConfigError。
    """

    target_width: int
    target_height: int
    mode: ResizeMode = ResizeMode.COPY

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """检查宽高为正整数、模式合法。"""

        for label, value in (("宽度", self.target_width), ("高度", self.target_height)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{label}必须为整数: {value!r}")
            if value <= 0:
                raise ConfigError(f"{label}必须大于 0: {value}")
        if not isinstance(self.mode, ResizeMode):
            raise ConfigError(f"未知的输出模式: {self.mode!r}")

    @classmethod
    def parse(
        cls,
        width: RawDimension,
        height: RawDimension,
        mode: Union[ResizeMode, str] = ResizeMode.COPY,
    ) -> "ResizeConfig":
        """解析来自对话框或命令行的原始输入。"""

        return cls(
            target_width=_parse_dimension("宽度", width),
            target_height=_parse_dimension("高度", height),
            mode=_parse_mode(mode),
        )


def _parse_dimension(label: str, value: RawDimension) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{label}必须为整数: {value!r}")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    try:
        return int(text)
    except ValueError as exc:
        raise ConfigError(f"{label}必须为整数: {value!r}") from exc


def _parse_mode(value: Union[ResizeMode, str]) -> ResizeMode:
    if isinstance(value, ResizeMode):
        return value
    try:
        return ResizeMode(str(value).strip().lower())
    except ValueError as exc:
        choices = ", ".join(m.value for m in ResizeMode)
        raise ConfigError(f"未知的输出模式: {value!r}（可选 {choices}）") from exc
