from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Optional


class DateMode(str, Enum):
    """
    File timestamp handling requested by callers.

    Carried on the settings so requests keep their shape; compression does
    not consume it yet.
    """

    PRESERVE = "preserve"
    CURRENT = "current"
    CUSTOM = "custom"


@dataclass(frozen=True)
class EncoderSettings:
    """Per-format encoder knobs that sit beside the single quality value."""

    # ----- JPEG -----
    jpeg_optimize: bool = True
    jpeg_progressive: bool = True
    # Background used when a transparent source has to become JPEG.
    jpeg_background: tuple[int, int, int] = (255, 255, 255)

    # ----- PNG -----
    # Pillow uses "compress_level" (0-9). Higher = smaller but slower.
    png_compress_level: int = 9

    # ----- WebP -----
    webp_method: int = 4  # 0-6, higher = smaller but slower


@dataclass(frozen=True)
class CompressSettings:
    """
    All user-configurable knobs for one batch.

    Kept as a pure data object so the CLI, a settings file and presets can
    all produce one.
    """

    # ----- Output handling -----
    output_dir: Path
    quality: int = 80

    # Out-of-range quality is clamped to 1-100 instead of failing the item.
    clamp_quality: bool = False

    # gif/bmp/tiff are re-encoded as JPEG; rename their outputs to .jpg.
    normalize_extension: bool = False

    write_failure_report: bool = True

    encoder: EncoderSettings = field(default_factory=EncoderSettings)

    # ----- Dates (accepted, not applied) -----
    date_mode: DateMode = DateMode.PRESERVE
    custom_timestamp: Optional[str] = None


def load_settings(path: Path, **overrides: Any) -> CompressSettings:
    """
    Build CompressSettings from a JSON file.

    Keys mirror the dataclass fields; an "encoder" object maps onto
    EncoderSettings. Keyword overrides win over the file.
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"{path}: settings file must contain a JSON object")

    data = {**raw, **{k: v for k, v in overrides.items() if v is not None}}
    return settings_from_dict(data)


def settings_from_dict(data: dict) -> CompressSettings:
    known = {f.name for f in fields(CompressSettings)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")

    if "output_dir" not in data:
        raise ValueError("Settings require an output_dir")

    kwargs = dict(data)
    kwargs["output_dir"] = Path(kwargs["output_dir"])

    if "quality" in kwargs:
        kwargs["quality"] = int(kwargs["quality"])

    encoder = kwargs.get("encoder")
    if isinstance(encoder, dict):
        if "jpeg_background" in encoder:
            encoder = {**encoder, "jpeg_background": tuple(encoder["jpeg_background"])}
        kwargs["encoder"] = EncoderSettings(**encoder)

    if "date_mode" in kwargs:
        kwargs["date_mode"] = DateMode(kwargs["date_mode"])

    return CompressSettings(**kwargs)
