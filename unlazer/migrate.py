#!/usr/bin/env python3
# SPDX-License-Identifier: GPL-3.0-or-later
"""
unlazer migration script

Copies or links every beatmap set of an osu!lazer library into the Songs
folder of an osu!(stable) install:
- Reads the lazer database read-only and rebuilds one folder per beatmap set
- Copy mode duplicates files; symlink mode links back into the lazer store
- Files already present in the Songs folder are left alone, so re-running
  finishes an interrupted migration
- Per-file failures are logged and counted without stopping the run

Copyright (C) 2024 unlazer Contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.
"""

import argparse
import logging
import signal
import sqlite3
import sys
from contextlib import nullcontext
from pathlib import Path

from .core.database import (
    connect_db_readonly,
    detect_lazer_structure,
    get_library_counts,
    journal_mode,
)
from .core.export import export_path_list
from .core.migration import MigrationState, resolve_library, run_migration
from .core.transfer import COPY, SYMLINK, normalize_mode
from .core.utils import (
    TqdmProgress,
    default_lazer_dir,
    default_stable_dir,
    format_size,
    setup_logging,
)
from .core.verification import verify_source_availability

logger = logging.getLogger("unlazer")

# ERROR_CANCELLED, what the Windows shell reports for a declined operation
EXIT_DECLINED = 1223

migration_state = MigrationState()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="unlazer",
        description="Migrate an osu!lazer beatmap library into an osu!(stable) Songs folder",
        epilog="""
Modes:
  copy (default): Makes a copy of all files, uses more space, takes longer, but stable.
  symlink: Links files to the osu!lazer library, faster, no duplication,
           but editing files may break stuff. Any mode other than "copy" means symlink.

Re-running the same command finishes an interrupted migration: files that
already exist in the Songs folder are skipped.
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "lazer_dir",
        nargs="?",
        type=Path,
        default=default_lazer_dir(),
        help="osu!lazer data directory containing client.db and files/ (default: %(default)s)",
    )
    parser.add_argument(
        "stable_dir",
        nargs="?",
        type=Path,
        default=default_stable_dir(),
        help="osu!(stable) directory; beatmaps go to its Songs folder (default: %(default)s)",
    )
    parser.add_argument(
        "--mode",
        default=COPY,
        help="Transfer mode: copy or symlink (default: copy)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of files transferred in parallel (default: 1)",
    )
    parser.add_argument(
        "--progress-interval",
        type=int,
        default=128,
        help="Refresh the progress bar every N files (default: 128)",
    )
    parser.add_argument(
        "--list-only",
        action="store_true",
        help="Print every source -> destination pair without transferring",
    )
    parser.add_argument(
        "--export-paths",
        type=Path,
        help="Write the resolved path list to a .csv or .json file",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Check that the lazer file store holds the referenced files (no transfer)",
    )
    parser.add_argument(
        "--verify-sample",
        type=int,
        default=100,
        help="Number of files to sample for verification (default: 100, 0 = all files)",
    )
    parser.add_argument(
        "--stats", action="store_true", help="Show library statistics and exit"
    )
    parser.add_argument(
        "-y", "--yes", action="store_true", help="Do not ask for confirmation"
    )
    parser.add_argument(
        "--no-journal-toggle",
        action="store_true",
        help="Leave the database journal mode alone during the run",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Detailed log file (default: <lazer_dir>/unlazer.log)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Show log messages on the console"
    )
    return parser


def confirm(message: str) -> bool:
    try:
        answer = input(f"{message} [Yes] ").strip() or "yes"
    except EOFError:
        return False
    return answer.lower() == "yes"


def print_summary(result, mode: str, log_file: Path) -> None:
    report = result.report
    skipped_rows = len(result.resolution.skipped)

    print()
    print(f"✅ Completed {mode} operations: {report.completed}/{report.total} files")
    for action, count in sorted(report.actions.items()):
        print(f"   {action.capitalize()}: {count}")
    if report.bytes_transferred:
        print(f"   Data copied: {format_size(report.bytes_transferred)}")

    if report.errors:
        print(f"⚠️  {report.errors} files could not be transferred")
    if skipped_rows:
        print(f"⚠️  {skipped_rows} database rows could not be resolved to a path")
    if report.errors or skipped_rows:
        print(f"   See {log_file} for details")

    print("\nStart osu! and hit F5 to scan for the beatmaps.\n")


def main():
    # Register signal handler for graceful interrupts
    signal.signal(signal.SIGINT, migration_state.signal_handler)

    parser = build_parser()
    args = parser.parse_args()

    lazer_dir = args.lazer_dir
    if not lazer_dir.is_dir():
        print(f"❌ osu!lazer directory not found: {lazer_dir}")
        sys.exit(1)

    log_file = args.log_file or lazer_dir / "unlazer.log"
    setup_logging(log_file, args.verbose)
    logger.debug("Starting")
    logger.debug(f"Setting lazer directory to: {lazer_dir}")

    db_path, files_dir = detect_lazer_structure(lazer_dir)
    if not db_path:
        print(f"❌ Could not detect osu!lazer structure in: {lazer_dir}")
        print("Expected structure: client.db and files/")
        sys.exit(1)

    stable_dir = args.stable_dir
    songs_dir = stable_dir / "Songs"
    logger.debug(f"Setting stable directory to: {stable_dir}")

    mode = normalize_mode(args.mode)
    if args.mode.strip().lower() not in (COPY, SYMLINK):
        print(f"ℹ️  Unknown mode '{args.mode}', using {SYMLINK}")
    logger.debug(f"Running in {mode} mode")

    inspect_only = args.stats or args.list_only or args.export_paths or args.verify
    if args.no_journal_toggle or inspect_only:
        journal = nullcontext()
    else:
        journal = journal_mode(db_path, "OFF", restore="WAL")

    try:
        with journal:
            run(args, db_path, files_dir, songs_dir, mode, log_file)
    except sqlite3.Error as e:
        logger.critical(f"Database error: {e}")
        print(f"❌ Could not use database {db_path}: {e}")
        print("   Close osu!lazer and try again, or pass --no-journal-toggle")
        sys.exit(1)

    logger.debug("Exiting")


def run(args, db_path: Path, files_dir: Path, songs_dir: Path, mode: str, log_file: Path):
    with connect_db_readonly(db_path) as conn:
        counts = get_library_counts(conn)
    logger.info(f"Using {db_path}")
    print(
        f"This osu!lazer install has {counts['sets']} mapsets with "
        f"{counts['maps']} beatmaps and {counts['files']} files."
    )

    if args.stats:
        return

    if args.list_only or args.export_paths or args.verify:
        resolution = resolve_library(db_path, files_dir, songs_dir)

        if args.list_only:
            for pair in resolution:
                print(f"{pair.source} -> {pair.destination}")
            print(f"\n{len(resolution)} files, {len(resolution.skipped)} unresolved rows")

        if args.export_paths:
            output = export_path_list(resolution, args.export_paths)
            print(f"📄 Path list written to {output}")

        if args.verify:
            verification = verify_source_availability(resolution.pairs, args.verify_sample)
            print(
                f"Available: {verification['files_found']}/{verification['sample_size']} "
                f"({verification['availability_rate']:.1f}%)"
            )
            print(f"Missing: {verification['missing_count']}/{verification['sample_size']}")
            print(f"Available data: {format_size(verification['available_size'])}")
        return

    print(f"\n{mode.capitalize()}ing {counts['files']} files from {files_dir} to {songs_dir}\n")
    if not args.yes and not confirm("Continue?"):
        logger.critical("Exiting")
        sys.exit(EXIT_DECLINED)

    try:
        with TqdmProgress(counts["files"], desc=f"{mode.upper()}ING") as progress:
            result = run_migration(
                db_path,
                files_dir,
                songs_dir,
                mode,
                progress=progress,
                workers=args.workers,
                progress_interval=args.progress_interval,
                state=migration_state,
            )
    except OSError as e:
        logger.critical(f"Could not prepare {songs_dir}: {e}")
        print(f"❌ Could not create Songs folder {songs_dir}: {e}")
        sys.exit(1)

    print_summary(result, mode, log_file)


if __name__ == "__main__":
    main()
