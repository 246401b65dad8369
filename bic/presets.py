from __future__ import annotations

from dataclasses import replace

from .settings import CompressSettings, EncoderSettings


PRESET_NAMES = ("high", "balanced", "small", "archive")


def apply_preset(name: str, base: CompressSettings) -> CompressSettings:
    name = name.lower()

    if name == "high":
        return replace(base, quality=90)

    if name == "balanced":
        return replace(base, quality=80)

    if name == "small":
        return replace(
            base,
            quality=60,
            encoder=replace(base.encoder, webp_method=6),
        )

    if name == "archive":
        # Slow, thorough encoders; PNG stays lossless at quality 100.
        return replace(
            base,
            quality=100,
            encoder=EncoderSettings(
                jpeg_optimize=True,
                jpeg_progressive=True,
                jpeg_background=base.encoder.jpeg_background,
                png_compress_level=9,
                webp_method=6,
            ),
        )

    raise ValueError(f"Unknown preset: {name}")
