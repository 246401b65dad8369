from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from PIL import Image, ImageOps

from .errors import CompressionError
from .results import Attempt
from .settings import EncoderSettings


logger = logging.getLogger(__name__)

QUALITY_MIN = 1
QUALITY_MAX = 100


class OutputFormat(Enum):
    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"

    @property
    def pillow_name(self) -> str:
        return self.value.upper()

    @property
    def extension(self) -> str:
        return FORMAT_TO_EXT[self]


EXT_TO_FORMAT = {
    ".jpg": OutputFormat.JPEG,
    ".jpeg": OutputFormat.JPEG,
    ".png": OutputFormat.PNG,
    ".webp": OutputFormat.WEBP,
}

FORMAT_TO_EXT = {
    OutputFormat.JPEG: ".jpg",
    OutputFormat.PNG: ".png",
    OutputFormat.WEBP: ".webp",
}


@dataclass(frozen=True)
class CompressedFile:
    path: Path
    format: OutputFormat
    size_bytes: int


def resolve_format(extension: str) -> OutputFormat:
    """gif, bmp, tiff and anything else without a native encoder become JPEG."""
    ext = extension.lower()
    if not ext.startswith("."):
        ext = "." + ext
    return EXT_TO_FORMAT.get(ext, OutputFormat.JPEG)


def is_native(extension: str) -> bool:
    return extension.lower() in EXT_TO_FORMAT


def clamp_quality(quality: int) -> int:
    return max(QUALITY_MIN, min(QUALITY_MAX, int(quality)))


def compress(
    source: Path,
    destination: Path,
    extension: str,
    quality: int,
    encoder: Optional[EncoderSettings] = None,
) -> CompressedFile:
    """
    Re-encode source into destination.

    The image is written to a temp file beside destination and renamed over
    it, so destination is either untouched or complete. Every failure is
    raised as CompressionError.
    """
    source = Path(source)
    destination = Path(destination)
    encoder = encoder or EncoderSettings()
    fmt = resolve_format(extension)

    if not QUALITY_MIN <= quality <= QUALITY_MAX:
        raise CompressionError(source, f"quality {quality} is outside {QUALITY_MIN}-{QUALITY_MAX}")

    try:
        with Image.open(source) as im:
            im.load()
            im = _prepare(im, fmt, encoder)
            tmp_path = _save_to_temp(im, destination, fmt, quality, encoder)
    except CompressionError:
        raise
    except Exception as exc:
        # Pillow reports corrupt, truncated or unsupported data through many exception types.
        raise CompressionError(source, str(exc) or exc.__class__.__name__) from exc

    try:
        os.replace(tmp_path, destination)
    except OSError as exc:
        _discard(tmp_path)
        raise CompressionError(destination, exc.strerror or str(exc)) from exc

    size = _file_size(destination)
    logger.debug("Encoded %s -> %s as %s (%d bytes)", source, destination, fmt.name, size)
    return CompressedFile(path=destination, format=fmt, size_bytes=size)


def compress_file(
    source: Path,
    destination: Path,
    extension: str,
    quality: int,
    encoder: Optional[EncoderSettings] = None,
) -> Attempt[CompressedFile]:
    try:
        return Attempt.success(compress(source, destination, extension, quality, encoder))
    except CompressionError as exc:
        return Attempt.failure(exc)


def _prepare(im: Image.Image, fmt: OutputFormat, encoder: EncoderSettings) -> Image.Image:
    # Animated sources (gif/webp) keep only their first frame.
    if getattr(im, "n_frames", 1) > 1:
        im.seek(0)
        im = im.copy()

    im = ImageOps.exif_transpose(im)

    if fmt is OutputFormat.JPEG:
        if _has_alpha(im):
            return _flatten_alpha(im, encoder.jpeg_background)
        if im.mode not in ("RGB", "L", "CMYK"):
            return im.convert("RGB")
        return im

    if fmt is OutputFormat.WEBP and im.mode not in ("RGB", "RGBA"):
        return im.convert("RGBA" if _has_alpha(im) else "RGB")

    return im


def _save_to_temp(
    im: Image.Image,
    destination: Path,
    fmt: OutputFormat,
    quality: int,
    encoder: EncoderSettings,
) -> Path:
    # Temp file in the destination dir so the final rename stays on one filesystem.
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=".bic_", suffix=fmt.extension, dir=str(destination.parent))
    except OSError as exc:
        raise CompressionError(destination, exc.strerror or str(exc)) from exc
    os.close(fd)
    tmp_path = Path(tmp_name)

    try:
        if fmt is OutputFormat.PNG and quality < QUALITY_MAX:
            im = _quantize(im, _palette_size(quality))
        im.save(tmp_path, format=fmt.pillow_name, **_build_save_kwargs(fmt, quality, encoder))
    except BaseException:
        _discard(tmp_path)
        raise

    return tmp_path


def _build_save_kwargs(fmt: OutputFormat, quality: int, encoder: EncoderSettings) -> dict:
    kwargs: dict = {}

    if fmt is OutputFormat.JPEG:
        kwargs["quality"] = int(quality)
        kwargs["optimize"] = bool(encoder.jpeg_optimize)
        kwargs["progressive"] = bool(encoder.jpeg_progressive)

    elif fmt is OutputFormat.PNG:
        kwargs["compress_level"] = int(encoder.png_compress_level)
        kwargs["optimize"] = True

    elif fmt is OutputFormat.WEBP:
        kwargs["quality"] = int(quality)
        kwargs["method"] = int(encoder.webp_method)

    return kwargs


def _palette_size(quality: int) -> int:
    return max(16, min(256, int(256 * quality / 100)))


def _quantize(im: Image.Image, colors: int) -> Image.Image:
    if im.mode in ("RGBA", "LA") or (im.mode == "P" and "transparency" in im.info):
        return im.convert("RGBA").quantize(colors=colors, method=Image.Quantize.FASTOCTREE)
    return im.convert("RGB").quantize(colors=colors, method=Image.Quantize.MEDIANCUT)


def _flatten_alpha(im: Image.Image, background_rgb: tuple[int, int, int]) -> Image.Image:
    rgba = im.convert("RGBA")
    bg = Image.new("RGBA", rgba.size, background_rgb + (255,))
    comp = Image.alpha_composite(bg, rgba)
    return comp.convert("RGB")


def _has_alpha(im: Image.Image) -> bool:
    if im.mode in ("RGBA", "LA", "PA"):
        return True
    if im.mode == "P" and "transparency" in im.info:
        return True
    return False


def _discard(p: Path) -> None:
    try:
        p.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove temp file %s: %s", p, exc)


def _file_size(p: Path) -> int:
    try:
        return p.stat().st_size
    except FileNotFoundError:
        return 0
