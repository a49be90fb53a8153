"""进程级标尺单位设置。

目标尺寸按当前标尺单位解释。批处理期间通过 ``ruler_units`` 独占该设置，
并在任何退出路径上恢复原值。
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from batch_resizer.core.exceptions import ConfigError

LOGGER = logging.getLogger(__name__)

PIXELS = "px"

# 每单位对应的英寸数
UNIT_INCHES = {
    "in": 1.0,
    "cm": 1 / 2.54,
    "mm": 1 / 25.4,
}
RULER_UNITS = {PIXELS, *UNIT_INCHES}

_lock = threading.RLock()
_preferences = {"ruler_units": PIXELS}


def get_ruler_units() -> str:
    return _preferences["ruler_units"]


def set_ruler_units(unit: str) -> None:
    """修改全局标尺单位。"""

    normalized = unit.strip().lower()
    if normalized not in RULER_UNITS:
        raise ConfigError(f"未知的标尺单位: {unit}")
    with _lock:
        _preferences["ruler_units"] = normalized


@contextmanager
def ruler_units(unit: str = PIXELS) -> Iterator[str]:
    """在整个批处理期间切换标尺单位，退出时恢复，返回原单位。"""

    with _lock:
        previous = get_ruler_units()
        set_ruler_units(unit)
        LOGGER.debug("标尺单位 %s -> %s", previous, unit)
        try:
            yield previous
        finally:
            _preferences["ruler_units"] = previous
            LOGGER.debug("标尺单位已恢复为 %s", previous)


def to_pixels(value: float, dpi: float) -> int:
    """按当前标尺单位把长度换算为像素。"""

    unit = get_ruler_units()
    if unit == PIXELS:
        return int(round(value))
    return int(round(value * UNIT_INCHES[unit] * dpi))
