"""各容器格式的解码/编码适配器与按扩展名分派的注册表。"""

from __future__ import annotations

import logging
import os
import shutil
import struct
import tempfile
from pathlib import Path
from typing import BinaryIO, Callable, Iterable, Optional

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from batch_resizer.core.exceptions import DecodeError, EncodeError
from batch_resizer.core.models import DEFAULT_DPI, ImageDocument

LOGGER = logging.getLogger(__name__)

KEPT_MODES = {"L", "RGB", "RGBA"}
ALPHA_MODES = {"LA", "La", "PA", "RGBa"}

DECODE_ERRORS = (UnidentifiedImageError, OSError, EOFError, ValueError, Image.DecompressionBombError)


class ImageCodec:
    """单一容器格式的解码与编码。

    子类声明 ``format_name``（Pillow 格式名）、``extensions`` 与
    ``decode_formats``（解码时允许的 Pillow 格式，``None`` 表示不限）。
    """

    format_name: str = ""
    extensions: tuple[str, ...] = ()
    decode_formats: Optional[tuple[str, ...]] = None

    def decode(self, path: Path) -> ImageDocument:
        """读取图片并返回与文件句柄分离的 ImageDocument，调用者负责 close。"""

        try:
            with Image.open(path, formats=self.decode_formats) as opened:
                opened.load()
                format_tag = opened.format or self.format_name
                dpi = _read_dpi(opened)

                # EXIF Orientation 校正
                oriented = ImageOps.exif_transpose(opened)
                normalized = _normalize_mode(oriented)
                image = normalized.copy()
        except DECODE_ERRORS as exc:
            LOGGER.debug("无法解码图像文件 %s: %s", path, exc)
            raise DecodeError(f"无法解码图像 {path.name}: {exc}") from exc

        return ImageDocument(image=image, source_path=path, format_tag=format_tag, dpi=dpi)

    def encode(self, document: ImageDocument, output_path: Path, *, overwrite: bool = False) -> None:
        """写出图片。

        ``overwrite=False`` 时以独占方式创建文件，目标已存在即失败；
        ``overwrite=True`` 时先写临时文件再原子替换目标。
        """

        image = self.prepare(document.image)
        try:
            if overwrite:
                _write_replacing(output_path, lambda handle: self.write(image, handle))
            else:
                _write_exclusive(output_path, lambda handle: self.write(image, handle))
        except FileExistsError as exc:
            raise EncodeError(f"目标文件已存在，拒绝覆盖: {output_path.name}") from exc
        except (OSError, ValueError) as exc:
            raise EncodeError(f"写入文件失败 {output_path.name}: {exc}") from exc
        finally:
            if image is not document.image:
                image.close()

    def prepare(self, image: Image.Image) -> Image.Image:
        """转换为该格式可写入的像素模式。"""

        if image.mode not in KEPT_MODES:
            return image.convert("RGB")
        return image

    def save_options(self) -> dict:
        return {}

    def write(self, image: Image.Image, handle: BinaryIO) -> None:
        image.save(handle, format=self.format_name, **self.save_options())


class JpegCodec(ImageCodec):
    format_name = "JPEG"
    extensions = (".jpg", ".jpeg")
    decode_formats = ("JPEG",)

    def prepare(self, image: Image.Image) -> Image.Image:
        if image.mode == "RGBA":
            # JPEG 不支持透明度，通过白色背景合成。
            background = Image.new("RGB", image.size, (255, 255, 255))
            background.paste(image, mask=image.split()[-1])
            return background
        if image.mode not in {"RGB", "L"}:
            return image.convert("RGB")
        return image

    def save_options(self) -> dict:
        return {"quality": 95, "subsampling": 1, "optimize": True}


class PngCodec(ImageCodec):
    format_name = "PNG"
    extensions = (".png",)
    decode_formats = ("PNG",)

    def save_options(self) -> dict:
        return {"optimize": True}


class TiffCodec(ImageCodec):
    format_name = "TIFF"
    extensions = (".tif", ".tiff")
    decode_formats = ("TIFF",)


class GifCodec(ImageCodec):
    """GIF 只保留第一帧，RGB/RGBA 由 Pillow 量化为调色板。"""

    format_name = "GIF"
    extensions = (".gif",)
    decode_formats = ("GIF",)


class PsdCodec(ImageCodec):
    """PSD：解码合并后的图像，编码为单层、无压缩的扁平文件。"""

    format_name = "PSD"
    extensions = (".psd",)
    decode_formats = ("PSD",)

    SIGNATURE = b"8BPS"
    COLOR_MODES = {"L": 1, "RGB": 3, "RGBA": 3}
    # 版本 1 的 PSD 每边最多 30000 像素
    MAX_SIDE = 30000

    def write(self, image: Image.Image, handle: BinaryIO) -> None:
        if image.width > self.MAX_SIDE or image.height > self.MAX_SIDE:
            raise EncodeError(
                f"PSD 尺寸超出上限 {self.MAX_SIDE}px: {image.width}x{image.height}"
            )
        pixels = np.asarray(image, dtype=np.uint8)
        if pixels.ndim == 2:
            planes = pixels[np.newaxis, :, :]
        else:
            planes = pixels.transpose(2, 0, 1)
        channels = planes.shape[0]

        handle.write(
            struct.pack(
                ">4sH6xHIIHH",
                self.SIGNATURE,
                1,
                channels,
                image.height,
                image.width,
                8,
                self.COLOR_MODES[image.mode],
            )
        )
        # 颜色模式数据、图像资源、图层与蒙版信息均为空段。
        handle.write(struct.pack(">III", 0, 0, 0))
        handle.write(struct.pack(">H", 0))
        handle.write(np.ascontiguousarray(planes).tobytes())


class NativeCodec(PngCodec):
    """未知扩展名的后备：可解码任意 Pillow 支持的格式，统一以无损 PNG 写出。"""

    extensions = ()
    decode_formats = None


class CodecRegistry:
    """按规范化扩展名查找编解码器，未知扩展名回退到 ``fallback``。"""

    def __init__(self, codecs: Iterable[ImageCodec] = (), fallback: Optional[ImageCodec] = None) -> None:
        self._codecs: dict[str, ImageCodec] = {}
        self.fallback = fallback or NativeCodec()
        for codec in codecs:
            self.register(codec)

    def register(self, codec: ImageCodec) -> None:
        for extension in codec.extensions:
            self._codecs[normalize_extension(extension)] = codec

    def for_extension(self, extension: str) -> ImageCodec:
        codec = self._codecs.get(normalize_extension(extension))
        if codec is None:
            LOGGER.debug("扩展名 %s 没有对应的编解码器，使用 %s", extension, self.fallback.format_name)
            return self.fallback
        return codec

    def for_path(self, path: Path) -> ImageCodec:
        return self.for_extension(path.suffix)

    @property
    def extensions(self) -> frozenset[str]:
        return frozenset(self._codecs)


def default_registry() -> CodecRegistry:
    return CodecRegistry([JpegCodec(), PngCodec(), TiffCodec(), PsdCodec(), GifCodec()])


def normalize_extension(extension: str) -> str:
    extension = extension.strip().lower()
    if extension and not extension.startswith("."):
        extension = "." + extension
    return extension


def _normalize_mode(image: Image.Image) -> Image.Image:
    """统一为 L / RGB / RGBA，保留透明度。"""

    if image.mode in KEPT_MODES:
        return image
    if image.mode in ALPHA_MODES or (image.mode == "P" and "transparency" in image.info):
        return image.convert("RGBA")
    return image.convert("RGB")


def _read_dpi(image: Image.Image) -> tuple[float, float]:
    dpi = image.info.get("dpi")
    try:
        x_dpi, y_dpi = (float(value) for value in dpi)
    except (TypeError, ValueError):
        return DEFAULT_DPI
    if x_dpi <= 0 or y_dpi <= 0:
        return DEFAULT_DPI
    return x_dpi, y_dpi


def _write_exclusive(path: Path, writer: Callable[[BinaryIO], None]) -> None:
    handle = path.open("xb")
    try:
        with handle:
            writer(handle)
    except BaseException:
        path.unlink(missing_ok=True)
        raise


def _write_replacing(path: Path, writer: Callable[[BinaryIO], None]) -> None:
    # 符号链接写入其指向的真实文件
    target = path.resolve()
    fd, temp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            writer(handle)
        if target.exists():
            shutil.copymode(target, temp_path)
        os.replace(temp_path, target)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise
