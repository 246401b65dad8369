"""
Request/response operations for a presentation layer.

Each call returns a plain dict with an "ok" flag so it can cross any
transport (IPC, HTTP, a GUI thread queue). Batch-level failures become
{"ok": False, "error": ...}; per-image failures stay inside the outcomes.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Union

from .batch import ProgressSink, build_requests, run_batch
from .errors import ExportError, ScanError
from .report import write_failure_report
from .scanner import ImageEntry, scan
from .settings import CompressSettings


logger = logging.getLogger(__name__)

EntryInput = Union[ImageEntry, Mapping[str, Any]]


def scan_directory(root: Union[str, Path]) -> dict:
    try:
        entries = scan(Path(root))
    except ScanError as exc:
        logger.error("Scan failed: %s", exc)
        return {"ok": False, "error": str(exc)}
    return {"ok": True, "entries": [e.to_dict() for e in entries]}


def compress_batch(
    entries: Sequence[EntryInput],
    quality: Union[int, float, str],
    output_root: Union[str, Path],
    on_progress: Optional[ProgressSink] = None,
    settings: Optional[CompressSettings] = None,
) -> dict:
    """
    Compress the selected entries into output_root.

    Progress is reported through on_progress with a 1-based count.
    """
    try:
        image_entries = [to_entry(e) for e in entries]
        requests = build_requests(image_entries, quality, Path(output_root))
    except (KeyError, TypeError, ValueError, OverflowError) as exc:
        logger.error("Rejected batch request: %s", exc)
        return {"ok": False, "error": str(exc)}

    outcomes = run_batch(requests, on_progress=on_progress, settings=settings)
    return {"ok": True, "outcomes": [o.to_dict() for o in outcomes]}


def export_failure_report(failed_lines: str, output_root: Union[str, Path]) -> dict:
    try:
        path = write_failure_report(failed_lines, Path(output_root))
    except ExportError as exc:
        logger.error("Could not save failure report: %s", exc)
        return {"ok": False, "error": str(exc)}
    return {"ok": True, "path": str(path)}


def to_entry(item: EntryInput) -> ImageEntry:
    """
    Accept an ImageEntry or the minimal dict a caller sends back:
    absolute_path (or path), relative_path and optionally extension.
    """
    if isinstance(item, ImageEntry):
        return item

    if not isinstance(item, Mapping):
        raise TypeError(f"Unsupported entry: {item!r}")

    raw_path = item.get("absolute_path", item.get("path"))
    if not raw_path:
        raise KeyError("entry is missing absolute_path")
    if "relative_path" not in item:
        raise KeyError(f"entry {raw_path} is missing relative_path")

    absolute = Path(raw_path)
    extension = item.get("extension") or absolute.suffix
    return ImageEntry(
        absolute_path=absolute,
        relative_path=str(item["relative_path"]).replace("\\", "/"),
        name=item.get("name") or absolute.name,
        size_bytes=int(item.get("size_bytes", 0)),
        extension=str(extension).lower(),
    )

