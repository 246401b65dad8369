from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath

from .errors import OutputWriteError
from .results import Attempt


logger = logging.getLogger(__name__)


def destination_for(output_root: Path, relative_path: str) -> Path:
    """Join relative_path onto output_root, refusing anything that escapes it."""
    rel = PurePosixPath(str(relative_path).replace("\\", "/"))

    if rel.is_absolute() or not rel.parts:
        raise OutputWriteError(output_root / str(relative_path), message="invalid relative path")
    if ".." in rel.parts:
        raise OutputWriteError(output_root / str(relative_path), message="relative path escapes the output root")

    return Path(output_root).joinpath(*rel.parts)


def ensure_destination(output_root: Path, relative_path: str) -> Path:
    """
    Return the destination for relative_path, creating its parent directories.

    Safe to call repeatedly for files that share a directory.
    """
    dest = destination_for(output_root, relative_path)
    parent = dest.parent

    try:
        parent.mkdir(parents=True, exist_ok=True)
    except (OSError, ValueError) as exc:
        raise OutputWriteError(parent, exc) from exc

    return dest


def materialize(output_root: Path, relative_path: str) -> Attempt[Path]:
    try:
        return Attempt.success(ensure_destination(output_root, relative_path))
    except OutputWriteError as exc:
        logger.debug("Could not prepare %s: %s", exc.path, exc.message)
        return Attempt.failure(exc)
