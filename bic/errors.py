from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


PathLike = Union[str, Path]


class BicError(Exception):
    """Base class for every error raised by the compressor."""

    def __init__(self, path: PathLike, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = Path(path)
        self.message = message


class ScanError(BicError):
    """Listing or stat-ing a path failed; the whole scan is abandoned."""

    def __init__(self, path: PathLike, cause: Optional[BaseException] = None, message: str = "") -> None:
        self.cause = cause
        super().__init__(path, message or _describe(cause))


class OutputWriteError(BicError):
    """The destination directory for one item could not be prepared."""

    def __init__(self, path: PathLike, cause: Optional[BaseException] = None, message: str = "") -> None:
        self.cause = cause
        super().__init__(path, message or _describe(cause))


class CompressionError(BicError):
    """Decode, encode or write failure for a single image."""


class ExportError(BicError):
    """The failed-files report could not be written."""

    def __init__(self, path: PathLike, cause: Optional[BaseException] = None) -> None:
        self.cause = cause
        super().__init__(path, _describe(cause))


def _describe(cause: Optional[BaseException]) -> str:
    if cause is None:
        return "unknown error"
    if isinstance(cause, OSError) and cause.strerror:
        return cause.strerror
    return str(cause) or cause.__class__.__name__
