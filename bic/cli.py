from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from .batch import BatchRunner, build_requests
from .errors import ExportError, ScanError
from .presets import PRESET_NAMES, apply_preset
from .report import build_report, export_failures, save_report_csv, save_report_json
from .results import summarize
from .scanner import scan
from .settings import CompressSettings, DateMode, load_settings


logger = logging.getLogger("bic")

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_ERROR = 2


class ConsoleProgress:
    """Progress sink backed by a tqdm bar; the batch reports absolute counts."""

    def __init__(self, total: int, stream=None) -> None:
        self.total = total
        self.bar = tqdm(
            total=total,
            desc="Compressing",
            unit="file",
            file=stream if stream is not None else sys.stderr,
            leave=True,
        )

    def __call__(self, count: int) -> None:
        if count > self.bar.n:
            self.bar.update(count - self.bar.n)

    def close(self) -> None:
        self.bar.close()

    def __enter__(self) -> "ConsoleProgress":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="bic",
        description="Bulk Image Compressor: mirror a folder tree of images at a chosen quality",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    sc = sub.add_parser("scan", help="List the images found under a folder")
    sc.add_argument("root", help="Folder to scan")
    sc.add_argument("--json", action="store_true", help="Print the manifest as JSON")
    sc.add_argument("--skip-errors", action="store_true", help="Skip unreadable paths instead of failing")

    c = sub.add_parser("compress", help="Compress every image under a folder")
    c.add_argument("root", help="Folder to scan")
    c.add_argument("--out", required=True, help="Output directory (input structure is mirrored)")
    c.add_argument("--quality", type=int, default=None, help="Encoder quality (1-100), default 80")
    c.add_argument("--preset", choices=PRESET_NAMES, default=None, help="Named quality preset")
    c.add_argument("--config", default=None, help="JSON settings file")
    c.add_argument("--clamp-quality", action="store_true", help="Clamp quality to 1-100 instead of failing items")
    c.add_argument("--normalize-ext", action="store_true", help="Give gif/bmp/tiff outputs a .jpg extension")
    c.add_argument("--skip-errors", action="store_true", help="Skip unreadable paths while scanning")
    c.add_argument("--report", action="store_true", help="Also write report.json and report.csv")
    c.add_argument(
        "--date",
        choices=[m.value for m in DateMode],
        default=None,
        help="Timestamp handling for outputs (accepted, not applied yet)",
    )
    c.add_argument("--no-failure-report", action="store_true", help="Do not write the failed files list")

    return p


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(bool(args.verbose))

    if args.command == "scan":
        return _cmd_scan(args)

    if args.command == "compress":
        return _cmd_compress(args)

    parser.print_help()
    return EXIT_ERROR


def _cmd_scan(args: argparse.Namespace) -> int:
    try:
        entries = scan(Path(args.root), skip_errors=bool(args.skip_errors))
    except ScanError as exc:
        logger.error("Scan failed: %s", exc)
        return EXIT_ERROR

    if args.json:
        print(json.dumps([e.to_dict() for e in entries], indent=2, ensure_ascii=False))
        return EXIT_OK

    for e in entries:
        print(f"{e.size_bytes:>12}  {e.relative_path}")
    print(f"\n{len(entries)} image(s), {sum(e.size_bytes for e in entries)} bytes")
    return EXIT_OK


def _build_settings(args: argparse.Namespace) -> CompressSettings:
    out_dir = Path(args.out)

    if args.config:
        settings = load_settings(Path(args.config), output_dir=str(out_dir))
    else:
        settings = CompressSettings(output_dir=out_dir)

    if args.preset:
        settings = apply_preset(args.preset, settings)

    overrides: dict = {}
    if args.quality is not None:
        overrides["quality"] = int(args.quality)
    if args.clamp_quality:
        overrides["clamp_quality"] = True
    if args.normalize_ext:
        overrides["normalize_extension"] = True
    if args.no_failure_report:
        overrides["write_failure_report"] = False
    if args.date:
        overrides["date_mode"] = DateMode(args.date)

    return replace(settings, **overrides) if overrides else settings


def _cmd_compress(args: argparse.Namespace) -> int:
    try:
        settings = _build_settings(args)
    except (OSError, ValueError, TypeError) as exc:
        logger.error("Invalid settings: %s", exc)
        return EXIT_ERROR

    out_dir = settings.output_dir
    runner = BatchRunner(settings=settings)

    try:
        entries = scan(Path(args.root), exclude_dir=out_dir, skip_errors=bool(args.skip_errors))
    except ScanError as exc:
        runner.abort()
        logger.error("Scan failed, nothing compressed: %s", exc)
        return EXIT_ERROR

    requests = build_requests(entries, settings.quality, out_dir)
    # Log records are written through tqdm while the bar is live.
    with ConsoleProgress(len(requests)) as progress, logging_redirect_tqdm():
        runner.on_progress = progress
        outcomes = runner.run(requests)
    summary = summarize(outcomes)

    print("\n=== Batch Summary ===")
    print("Total      :", summary.total_count)
    print("Succeeded  :", summary.success_count)
    print("Failed     :", summary.failure_count)
    print(f"Saved      : {summary.saved_bytes} bytes ({summary.saved_percentage:.2f}%)")

    if settings.write_failure_report:
        try:
            failed_path = export_failures(outcomes, out_dir)
        except ExportError as exc:
            logger.error("Could not write failure report: %s", exc)
        else:
            if failed_path:
                print("Failures   :", failed_path)

    if args.report:
        report = build_report(outcomes, summary)
        try:
            save_report_json(report, out_dir / "report.json")
            save_report_csv(report, out_dir / "report.csv")
        except ExportError as exc:
            logger.error("Could not write report: %s", exc)
        else:
            print("Report     :", out_dir / "report.json")
            print("CSV        :", out_dir / "report.csv")

    return EXIT_FAILURES if summary.failure_count else EXIT_OK
