from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image


def _write_image(path: Path, size=(48, 32), mode: str = "RGB", fmt: str | None = None, **save_kwargs) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    # Noise gives the encoders something to work on.
    noise = Image.effect_noise(size, 48)
    if mode == "RGBA":
        im = Image.merge("RGBA", (noise, noise, noise, Image.new("L", size, 128)))
    elif mode == "P":
        im = noise.convert("RGB").convert("P")
    else:
        im = noise.convert(mode)

    im.save(path, format=fmt, **save_kwargs)
    return path


@pytest.fixture
def make_image():
    return _write_image


@pytest.fixture
def corrupt_file():
    def _corrupt(path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"this is not an image at all" * 10)
        return path

    return _corrupt


@pytest.fixture
def image_tree(tmp_path: Path, make_image) -> Path:
    """
    src/
      a/x.jpg
      a/b/y.png
      top.webp
      notes.txt
    """
    root = tmp_path / "src"
    make_image(root / "a" / "x.jpg", size=(120, 90))
    make_image(root / "a" / "b" / "y.png", size=(80, 80))
    make_image(root / "top.webp", size=(64, 48))
    (root / "notes.txt").write_text("not an image", encoding="utf-8")
    return root
