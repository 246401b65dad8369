from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Set, Tuple

from .errors import ScanError


logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".tiff"})


@dataclass(frozen=True)
class ImageEntry:
    """One image discovered by a scan."""

    absolute_path: Path
    relative_path: str  # root-relative, "/"-separated
    name: str
    size_bytes: int
    extension: str  # lower-case, with leading dot

    def to_dict(self) -> dict:
        return {
            "absolute_path": str(self.absolute_path),
            "relative_path": self.relative_path,
            "name": self.name,
            "size_bytes": self.size_bytes,
            "extension": self.extension,
        }


def is_image_name(name: str) -> bool:
    return os.path.splitext(name)[1].lower() in IMAGE_EXTENSIONS


def scan(
    root: Path,
    exclude_dir: Optional[Path] = None,
    skip_errors: bool = False,
) -> List[ImageEntry]:
    """
    Recursively collect supported images below root.

    Any listing or stat failure raises ScanError for the offending path and
    nothing is returned. With skip_errors=True the offending entry (or
    subtree) is logged and skipped instead.

    exclude_dir:
        Directory whose contents are left out, e.g. an output directory
        that lives inside root.
    """
    root = Path(root).absolute()

    try:
        root_st = os.stat(root)
    except (OSError, ValueError) as exc:
        raise ScanError(root, exc) from exc

    if not stat.S_ISDIR(root_st.st_mode):
        raise ScanError(root, message="not a directory")

    try:
        excluded = _resolve_or_none(exclude_dir)
    except (OSError, ValueError) as exc:
        raise ScanError(exclude_dir, exc) from exc

    entries: List[ImageEntry] = []
    seen: Set[Tuple[int, int]] = {(root_st.st_dev, root_st.st_ino)}

    _walk(root, root, entries, seen, excluded, skip_errors)

    logger.debug("Scanned %s: %d image(s)", root, len(entries))
    return entries


def _walk(
    directory: Path,
    root: Path,
    out: List[ImageEntry],
    seen: Set[Tuple[int, int]],
    excluded: Optional[Path],
    skip_errors: bool,
) -> None:
    try:
        with os.scandir(directory) as it:
            names = sorted(e.name for e in it)
    except (OSError, ValueError) as exc:
        _fail(directory, exc, skip_errors)
        return

    for name in names:
        path = directory / name

        try:
            # Follows symlinks; a dangling link is an error like any other.
            st = os.stat(path)
        except (OSError, ValueError) as exc:
            _fail(path, exc, skip_errors)
            continue

        if stat.S_ISDIR(st.st_mode):
            key = (st.st_dev, st.st_ino)
            if key in seen:
                logger.debug("Skipping already visited directory %s", path)
                continue
            if excluded is not None and path.resolve() == excluded:
                logger.debug("Skipping excluded directory %s", path)
                continue
            seen.add(key)
            _walk(path, root, out, seen, excluded, skip_errors)
            continue

        if not stat.S_ISREG(st.st_mode) or not is_image_name(name):
            continue

        out.append(
            ImageEntry(
                absolute_path=path,
                relative_path=path.relative_to(root).as_posix(),
                name=name,
                size_bytes=st.st_size,
                extension=os.path.splitext(name)[1].lower(),
            )
        )


def _fail(path: Path, exc: Exception, skip_errors: bool) -> None:
    if not skip_errors:
        raise ScanError(path, exc) from exc
    logger.warning("Skipping unreadable path %s: %s", path, exc)


def _resolve_or_none(p: Optional[Path]) -> Optional[Path]:
    if p is None:
        return None
    return Path(p).resolve()
