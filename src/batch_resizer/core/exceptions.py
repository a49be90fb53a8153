"""项目内使用的自定义异常定义。"""


class BatchResizeError(Exception):
    """基础异常类型。"""


class ConfigError(BatchResizeError):
    """配置不合法时抛出（批处理开始前）。"""


class FolderError(BatchResizeError):
    """源文件夹不存在或无法读取。"""


class FileProcessingError(BatchResizeError):
    """单个文件处理失败，可恢复。"""

    status = "error"


class DecodeError(FileProcessingError):
    """图片无法按其扩展名对应的格式解析。"""

    status = "error-decode"


class ResizeError(FileProcessingError):
    """缩放失败。"""

    status = "error-resize"


class EncodeError(FileProcessingError):
    """输出写入失败。"""

    status = "error-encode"


class CleanupError(BatchResizeError):
    """释放图像资源失败；只记录日志，不作为主要错误。"""
