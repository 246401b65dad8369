from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Generic, Iterable, Optional, TypeVar

from .errors import BicError


T = TypeVar("T")


@dataclass(frozen=True)
class Attempt(Generic[T]):
    """Outcome of one pipeline step: either a value or the error that stopped it."""

    value: Optional[T] = None
    error: Optional[BicError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Attempt[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BicError) -> "Attempt[T]":
        return cls(error=error)


def saved_percentage(original_bytes: int, compressed_bytes: int) -> float:
    if original_bytes <= 0:
        return 0.0
    return round((original_bytes - compressed_bytes) / original_bytes * 100.0, 2)


@dataclass(frozen=True)
class CompressionOutcome:
    """
    Result of compressing a single image.

    Failed outcomes carry no destination and zero sizes, so they never skew
    the batch totals.
    """
    source_path: str
    destination_path: str  # "" when the item failed
    original_size_bytes: int
    compressed_size_bytes: int
    saved_percentage: float
    succeeded: bool
    detail: str

    @classmethod
    def success(
        cls,
        source_path: str,
        destination_path: str,
        original_size_bytes: int,
        compressed_size_bytes: int,
        quality: int,
    ) -> "CompressionOutcome":
        pct = saved_percentage(original_size_bytes, compressed_size_bytes)
        return cls(
            source_path=source_path,
            destination_path=destination_path,
            original_size_bytes=original_size_bytes,
            compressed_size_bytes=compressed_size_bytes,
            saved_percentage=pct,
            succeeded=True,
            detail=f"compressed at quality {quality}, saved {pct:.2f}%",
        )

    @classmethod
    def failure(cls, source_path: str, detail: str) -> "CompressionOutcome":
        return cls(
            source_path=source_path,
            destination_path="",
            original_size_bytes=0,
            compressed_size_bytes=0,
            saved_percentage=0.0,
            succeeded=False,
            detail=detail,
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class BatchSummary:
    total_count: int
    success_count: int
    failure_count: int
    total_original_bytes: int
    total_compressed_bytes: int

    @property
    def saved_bytes(self) -> int:
        return self.total_original_bytes - self.total_compressed_bytes

    @property
    def saved_percentage(self) -> float:
        return saved_percentage(self.total_original_bytes, self.total_compressed_bytes)

    def to_dict(self) -> dict:
        return {
            "total_count": self.total_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "total_original_bytes": self.total_original_bytes,
            "total_compressed_bytes": self.total_compressed_bytes,
            "saved_bytes": self.saved_bytes,
            "saved_percentage": self.saved_percentage,
        }


def summarize(outcomes: Iterable[CompressionOutcome]) -> BatchSummary:
    total = 0
    succeeded = 0
    total_original = 0
    total_compressed = 0

    for o in outcomes:
        total += 1
        if o.succeeded:
            succeeded += 1
            total_original += o.original_size_bytes
            total_compressed += o.compressed_size_bytes

    return BatchSummary(
        total_count=total,
        success_count=succeeded,
        failure_count=total - succeeded,
        total_original_bytes=total_original,
        total_compressed_bytes=total_compressed,
    )
