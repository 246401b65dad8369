from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable, List, Optional, Sequence, Union

from .engine import CompressedFile, clamp_quality, compress_file, is_native, FORMAT_TO_EXT, OutputFormat
from .paths import materialize
from .results import Attempt, CompressionOutcome
from .scanner import ImageEntry
from .settings import CompressSettings, EncoderSettings


logger = logging.getLogger(__name__)

# Receives the 1-based count of processed items.
ProgressSink = Callable[[int], None]


class BatchState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class CompressionRequest:
    entry: ImageEntry
    quality: int
    output_root: Path

    def __post_init__(self) -> None:
        # Callers may hand over "80" or 80.0; the runner only ever sees ints.
        object.__setattr__(self, "quality", coerce_quality(self.quality))


def coerce_quality(value: Union[int, float, str]) -> int:
    """Turn a caller-supplied quality ("80", 80.0, 80) into an int."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid quality: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return _finite_int(value, value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            raise ValueError(f"Invalid quality: {value!r}") from None
        return _finite_int(number, value)
    raise ValueError(f"Invalid quality: {value!r}")


def _finite_int(number: float, raw: object) -> int:
    if not math.isfinite(number):
        raise ValueError(f"Invalid quality: {raw!r}")
    return int(number)


def build_requests(
    entries: Iterable[ImageEntry],
    quality: Union[int, float, str],
    output_root: Path,
) -> List[CompressionRequest]:
    q = coerce_quality(quality)
    root = Path(output_root)
    return [CompressionRequest(entry=e, quality=q, output_root=root) for e in entries]


class BatchRunner:
    """
    Runs one batch of compression requests, strictly in order.

    A failure on one item becomes a failed outcome for that item and the loop
    moves on; run() always returns one outcome per request. The progress sink
    is called once per item, after its outcome is recorded.
    """

    def __init__(
        self,
        settings: Optional[CompressSettings] = None,
        on_progress: Optional[ProgressSink] = None,
    ) -> None:
        self.settings = settings
        self.on_progress = on_progress
        self.state = BatchState.IDLE

    @property
    def encoder(self) -> EncoderSettings:
        return self.settings.encoder if self.settings else EncoderSettings()

    def run(self, requests: Sequence[CompressionRequest]) -> List[CompressionOutcome]:
        if self.state is not BatchState.IDLE:
            raise RuntimeError(f"BatchRunner is single-use (state: {self.state.value})")

        self.state = BatchState.RUNNING
        total = len(requests)
        logger.info("Compressing %d image(s)", total)

        outcomes: List[CompressionOutcome] = []
        for idx, request in enumerate(requests, start=1):
            outcome = self._process(request)
            outcomes.append(outcome)

            if not outcome.succeeded:
                logger.warning("Failed to compress %s: %s", outcome.source_path, outcome.detail)

            if self.on_progress:
                self.on_progress(idx)

        self.state = BatchState.COMPLETED
        failed = sum(1 for o in outcomes if not o.succeeded)
        logger.info("Batch finished: %d succeeded, %d failed", total - failed, failed)
        return outcomes

    def abort(self) -> None:
        """Mark a batch that never started, e.g. because its scan failed."""
        if self.state is not BatchState.IDLE:
            raise RuntimeError(f"Cannot abort a batch in state {self.state.value}")
        self.state = BatchState.ABORTED

    def _process(self, request: CompressionRequest) -> CompressionOutcome:
        entry = request.entry
        source = str(entry.absolute_path)
        quality = self._quality(request.quality)

        target = materialize(request.output_root, self._relative_destination(entry))
        if not target.ok:
            return CompressionOutcome.failure(source, _describe(target.error, source))

        try:
            original_size = os.stat(entry.absolute_path).st_size
        except (OSError, ValueError) as exc:
            # ValueError: the path itself is unusable, e.g. an embedded NUL.
            return CompressionOutcome.failure(source, getattr(exc, "strerror", None) or str(exc))

        result: Attempt[CompressedFile] = compress_file(
            entry.absolute_path, target.value, entry.extension, quality, self.encoder
        )
        if not result.ok:
            return CompressionOutcome.failure(source, _describe(result.error, source))

        return CompressionOutcome.success(
            source_path=source,
            destination_path=str(result.value.path),
            original_size_bytes=original_size,
            compressed_size_bytes=result.value.size_bytes,
            quality=quality,
        )

    def _quality(self, quality: int) -> int:
        if self.settings and self.settings.clamp_quality:
            return clamp_quality(quality)
        return quality

    def _relative_destination(self, entry: ImageEntry) -> str:
        if not (self.settings and self.settings.normalize_extension) or is_native(entry.extension):
            return entry.relative_path
        rel = PurePosixPath(entry.relative_path)
        if not rel.name:
            return entry.relative_path
        return str(rel.with_suffix(FORMAT_TO_EXT[OutputFormat.JPEG]))


def run_batch(
    requests: Sequence[CompressionRequest],
    on_progress: Optional[ProgressSink] = None,
    settings: Optional[CompressSettings] = None,
) -> List[CompressionOutcome]:
    return BatchRunner(settings=settings, on_progress=on_progress).run(requests)


def _describe(error: Exception, source: str) -> str:
    # Drop the path prefix when it only repeats the source.
    path = getattr(error, "path", None)
    message = getattr(error, "message", None)
    if message and path is not None and str(path) == source:
        return message
    return str(error)
