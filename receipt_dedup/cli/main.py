#!/usr/bin/env python3
"""
Main CLI entrypoint for receipt duplicate detection.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List

from receipt_dedup.core.batch import UploadBatch, UploadedFile
from receipt_dedup.core.models import Confidence, DuplicateImageWarning, DuplicateReceiptGroup
from receipt_dedup.core.parsers import load_records
from receipt_dedup.core.records import find_duplicates
from receipt_dedup.core.settings import SettingsError, load_settings, resolve_settings_path
from receipt_dedup.core.utils import is_image_file, money_fmt, percent_fmt

# ANSI color codes
YELLOW = '\033[93m'
RED = '\033[91m'
BOLD = '\033[1m'
RESET = '\033[0m'


def discover_images(dirs: List[Path]) -> List[Path]:
    """Image files directly inside the given directories, sorted by name."""
    files = []
    for d in dirs:
        if not d.is_dir():
            print(f"[WARN] Not a directory, skipping: {d}")
            continue
        files.extend(p for p in d.iterdir() if is_image_file(p))
    return sorted(files, key=lambda p: p.name)


def print_image_warnings(warnings: List[DuplicateImageWarning]):
    if not warnings:
        print("[OK] No duplicate images found")
        return
    print(f"{YELLOW}{BOLD}[WARN] Found {len(warnings)} potential duplicate image(s):{RESET}")
    for w in warnings:
        print(f"{RED}  ⚠ {w.file_name_a} ↔ {w.file_name_b} "
              f"({percent_fmt(w.confidence_percent)} similar){RESET}")


def print_record_groups(groups: List[DuplicateReceiptGroup]):
    if not groups:
        print("[OK] No duplicate receipts found")
        return
    print(f"{YELLOW}{BOLD}[WARN] Found {len(groups)} potential duplicate receipt(s):{RESET}")
    for g in groups:
        color = RED if g.confidence == Confidence.HIGH else YELLOW
        print(f"{color}  ⚠ [{g.confidence.value.upper()} CONFIDENCE] {g.reason}{RESET}")
        for idx, rec in zip(g.indices, g.records):
            print(f"    Receipt #{idx + 1}: {rec.store_name} | {rec.datetime or '(no date)'} | "
                  f"{money_fmt(rec.total_price, rec.currency)}")


def run_images(dirs: List[Path], settings, workers: int, verbose: bool) -> List[DuplicateImageWarning]:
    paths = discover_images(dirs)
    print(f"[INFO] Found {len(paths)} image file(s)")
    if not paths:
        return []

    uploads = []
    for p in paths:
        try:
            uploads.append(UploadedFile.from_path(p))
        except OSError as e:
            print(f"[ERROR] Failed to read {p.name}: {e}")

    batch = UploadBatch(thresholds=settings.image, max_workers=workers, verbose=verbose)
    batch.add_files(uploads)
    if batch.undecodable:
        print(f"[INFO] {len(batch.undecodable)} file(s) excluded from comparison")
    return list(batch.warnings)


def run_records(path: Path, settings, verbose: bool) -> List[DuplicateReceiptGroup]:
    records = load_records(path)
    print(f"[INFO] Loaded {len(records)} receipt record(s) from {path}")
    if verbose:
        for i, r in enumerate(records, 1):
            print(f"  [DEBUG] #{i}: {r.store_name or '(no store)'} | {r.datetime or '(no date)'} | "
                  f"{money_fmt(r.total_price, r.currency)} | {len(r.items)} item(s)")
    return find_duplicates(records, settings.records)


def main(argv=None):
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        description="Flag likely duplicate receipts before and after extraction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Compare all receipt images in a folder
  receipt-dedup --images ./uploads

  # Check extracted receipt records for double-counting
  receipt-dedup --records ./receipts.json

  # Custom thresholds, machine-readable output
  receipt-dedup --images ./uploads --settings ./strict.json --json
        """
    )
    parser.add_argument("--images", nargs="+", metavar="DIR",
                        help="Folder(s) with uploaded receipt images")
    parser.add_argument("--records", metavar="FILE",
                        help="JSON file with extracted receipt records")
    parser.add_argument("--settings",
                        help="Threshold settings JSON (default: ./dedup_settings.json, "
                             "or RECEIPT_DEDUP_SETTINGS env var)")
    parser.add_argument("--workers", type=int, default=4,
                        help="Threads used to decode images (default: 4)")
    parser.add_argument("--json", action="store_true",
                        help="Print results as JSON")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Show per-file debugging information")

    args = parser.parse_args(argv)

    if not args.images and not args.records:
        parser.print_usage()
        print("[ERROR] Nothing to do: pass --images and/or --records")
        return 1

    settings_path = resolve_settings_path(args.settings)
    try:
        settings = load_settings(settings_path)
    except SettingsError as e:
        print(f"[ERROR] {e}")
        return 1
    if args.verbose and settings_path.exists():
        print(f"[INFO] Using settings from {settings_path}")

    result = {}

    if args.images:
        warnings = run_images([Path(d) for d in args.images], settings, args.workers, args.verbose)
        result["images"] = [w.to_dict() for w in warnings]
        if not args.json:
            print_image_warnings(warnings)

    if args.records:
        try:
            groups = run_records(Path(args.records), settings, args.verbose)
        except (OSError, ValueError) as e:
            print(f"[ERROR] Could not load records: {e}")
            return 1
        result["records"] = [
            {"indices": list(g.indices), "reason": g.reason, "confidence": g.confidence.value}
            for g in groups
        ]
        if not args.json:
            print_record_groups(groups)

    if args.json:
        print(json.dumps(result, indent=2, ensure_ascii=False))

    return 0


if __name__ == "__main__":
    sys.exit(main())
