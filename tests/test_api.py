from __future__ import annotations

from pathlib import Path

import pytest

from bic.api import compress_batch, export_failure_report, scan_directory, to_entry
from bic.report import FAILED_REPORT_NAME
from bic.scanner import scan


def test_scan_directory_empty(tmp_path: Path):
    assert scan_directory(tmp_path) == {"ok": True, "entries": []}


def test_scan_directory_lists_entries(image_tree: Path):
    res = scan_directory(str(image_tree))

    assert res["ok"] is True
    assert sorted(e["relative_path"] for e in res["entries"]) == ["a/b/y.png", "a/x.jpg", "top.webp"]


def test_scan_directory_error(tmp_path: Path):
    res = scan_directory(tmp_path / "missing")

    assert res["ok"] is False
    assert "missing" in res["error"]


def test_compress_batch_with_scanned_dicts(image_tree: Path, tmp_path: Path):
    entries = scan_directory(image_tree)["entries"]
    progress = []

    res = compress_batch(entries, "60", tmp_path / "out", on_progress=progress.append)

    assert res["ok"] is True
    assert len(res["outcomes"]) == 3
    assert all(o["succeeded"] for o in res["outcomes"])
    assert progress == [1, 2, 3]


def test_compress_batch_minimal_entry(tmp_path: Path, make_image):
    src = make_image(tmp_path / "src" / "deep" / "pic.png")
    entry = {"path": str(src), "relative_path": "deep/pic.png"}

    res = compress_batch([entry], 80, tmp_path / "out")

    [outcome] = res["outcomes"]
    assert outcome["destination_path"] == str(tmp_path / "out" / "deep" / "pic.png")


def test_compress_batch_selected_subset(image_tree: Path, tmp_path: Path):
    selected = [e for e in scan(image_tree) if e.extension == ".png"]

    res = compress_batch(selected, 80, tmp_path / "out")

    assert [o["source_path"] for o in res["outcomes"]] == [str(image_tree / "a" / "b" / "y.png")]


def test_compress_batch_rejects_bad_quality(image_tree: Path, tmp_path: Path):
    res = compress_batch(scan(image_tree), "very high", tmp_path / "out")

    assert res["ok"] is False
    assert "quality" in res["error"]
    assert not (tmp_path / "out").exists()


def test_compress_batch_rejects_malformed_entry(tmp_path: Path):
    res = compress_batch([{"relative_path": "x.jpg"}], 80, tmp_path / "out")
    assert res["ok"] is False


def test_to_entry_derives_fields(tmp_path: Path):
    e = to_entry({"absolute_path": str(tmp_path / "A.JPG"), "relative_path": "sub\\A.JPG"})

    assert e.name == "A.JPG"
    assert e.extension == ".jpg"
    assert e.relative_path == "sub/A.JPG"
    assert e.size_bytes == 0


def test_export_failure_report(tmp_path: Path):
    res = export_failure_report("/in/x.jpg - error: boom\n", tmp_path)

    assert res == {"ok": True, "path": str(tmp_path / FAILED_REPORT_NAME)}
    assert (tmp_path / FAILED_REPORT_NAME).read_text(encoding="utf-8") == "/in/x.jpg - error: boom\n"


def test_export_failure_report_error(tmp_path: Path):
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")

    res = export_failure_report("line\n", blocker)

    assert res["ok"] is False
    assert res["error"]


@pytest.mark.parametrize("quality", ["inf", "nan", float("inf"), float("-inf")])
def test_compress_batch_rejects_non_finite_quality(image_tree: Path, tmp_path: Path, quality):
    res = compress_batch(scan(image_tree), quality, tmp_path / "out")

    assert res["ok"] is False
    assert "quality" in res["error"]


def test_compress_batch_isolates_unusable_paths(tmp_path: Path, make_image):
    good = make_image(tmp_path / "src" / "ok.jpg")
    entries = [
        {"absolute_path": str(good), "relative_path": "bad\x00dir/x.jpg"},
        {"absolute_path": str(good), "relative_path": "ok.jpg"},
    ]
    progress = []

    res = compress_batch(entries, 80, tmp_path / "out", on_progress=progress.append)

    assert res["ok"] is True
    assert [o["succeeded"] for o in res["outcomes"]] == [False, True]
    assert progress == [1, 2]


def test_scan_directory_unusable_root(tmp_path: Path):
    res = scan_directory(str(tmp_path) + "\x00x")

    assert res["ok"] is False
    assert res["error"]


def test_export_failure_report_unusable_root(tmp_path: Path):
    res = export_failure_report("line\n", str(tmp_path) + "\x00x")
    assert res["ok"] is False
