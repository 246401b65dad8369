from __future__ import annotations

import csv
import json
import logging
import re
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional

from .errors import ExportError
from .results import BatchSummary, CompressionOutcome


logger = logging.getLogger(__name__)

FAILED_REPORT_NAME = "failed_files.txt"
_LINE_BREAKS = re.compile(r"[\r\n]+")


def failure_lines(outcomes: Iterable[CompressionOutcome]) -> List[str]:
    return [
        f"{o.source_path} - error: {_one_line(o.detail) or 'unknown error'}"
        for o in outcomes
        if not o.succeeded
    ]


def _one_line(text: str) -> str:
    return _LINE_BREAKS.sub(" ", text or "").strip()


def write_failure_report(content: str, output_root: Path) -> Path:
    """Write content as failed_files.txt at the top of output_root."""
    path = Path(output_root) / FAILED_REPORT_NAME
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except (OSError, ValueError) as exc:
        raise ExportError(path, exc) from exc
    return path


def export_failures(outcomes: Iterable[CompressionOutcome], output_root: Path) -> Optional[Path]:
    """
    Write one line per failed outcome, in batch order.

    Returns None (and writes nothing) when every item succeeded.
    """
    lines = failure_lines(outcomes)
    if not lines:
        return None

    path = write_failure_report("\n".join(lines) + "\n", output_root)
    logger.info("Wrote %d failure(s) to %s", len(lines), path)
    return path


# ----- Full batch report (JSON / CSV) -----

@dataclass(frozen=True)
class BatchReport:
    created_utc: str
    summary: dict
    files: List[dict]


CSV_FIELDS = [
    "source_path",
    "destination_path",
    "original_size_bytes",
    "compressed_size_bytes",
    "saved_percentage",
    "succeeded",
    "detail",
]


def build_report(outcomes: List[CompressionOutcome], summary: BatchSummary) -> BatchReport:
    created_utc = datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")
    return BatchReport(
        created_utc=created_utc,
        summary=summary.to_dict(),
        files=[o.to_dict() for o in outcomes],
    )


def save_report_json(report: BatchReport, path: Path) -> None:
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            json.dump(asdict(report), f, indent=2, ensure_ascii=False)
    except OSError as exc:
        raise ExportError(path, exc) from exc


def save_report_csv(report: BatchReport, path: Path) -> None:
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
            writer.writeheader()
            for row in report.files:
                writer.writerow({k: row.get(k) for k in CSV_FIELDS})
    except OSError as exc:
        raise ExportError(path, exc) from exc
