# SPDX-License-Identifier: GPL-3.0-or-later
"""
Migration pipeline for unlazer.

Resolves the whole path list from the database, releases the database and
then transfers every pair:

    idle -> resolving -> transferring -> reporting -> done

Copyright (C) 2024 unlazer Contributors
Licensed under GPL-3.0-or-later
"""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .database import connect_db_readonly
from .paths import ResolutionResult, resolve_paths
from .transfer import ProgressSink, TransferReport, execute_transfers, normalize_mode

logger = logging.getLogger(__name__)

IDLE = "idle"
RESOLVING = "resolving"
TRANSFERRING = "transferring"
REPORTING = "reporting"
DONE = "done"


class MigrationState:
    """Tracks the stage of a run and handles interrupts."""

    def __init__(self):
        self.stage = IDLE
        self.total_files = 0

    def advance(self, stage: str) -> None:
        logger.debug(f"Stage {self.stage} -> {stage}")
        self.stage = stage

    def signal_handler(self, signum, frame):
        """Handle keyboard interrupt gracefully."""
        print(f"\n\n⚠️  Migration interrupted by user (Ctrl+C)")
        print(f"   Stage: {self.stage}")
        print(f"   Files planned: {self.total_files}")
        print(f"\n💡 Run the same command again to finish the migration.")
        print(f"   Files that already exist in the Songs folder are skipped.")
        logger.warning(f"Interrupted during {self.stage}")
        sys.exit(130)


@dataclass
class MigrationResult:
    resolution: ResolutionResult
    report: TransferReport


def prepare_destination_root(destination_root: Path) -> Path:
    """
    Create the Songs folder.

    Raises:
        OSError: the folder cannot be created; the run must not start
    """
    destination_root = Path(destination_root)
    destination_root.mkdir(parents=True, exist_ok=True)
    return destination_root


def resolve_library(
    db_path: Path, content_root: Path, destination_root: Path
) -> ResolutionResult:
    """Open the database read-only, resolve all paths and close it again."""
    logger.debug(f"Attempting to connect to: {db_path}")
    with connect_db_readonly(db_path) as conn:
        return resolve_paths(conn, content_root, destination_root)


def run_migration(
    db_path: Path,
    content_root: Path,
    destination_root: Path,
    mode: str = "copy",
    progress: Optional[ProgressSink] = None,
    workers: int = 1,
    progress_interval: int = 128,
    state: Optional[MigrationState] = None,
) -> MigrationResult:
    """
    Migrate the library in one pass.

    Raises:
        OSError: the destination root cannot be created
        sqlite3.Error: the database cannot be opened or queried
    """
    state = state or MigrationState()
    mode = normalize_mode(mode)

    prepare_destination_root(destination_root)

    state.advance(RESOLVING)
    resolution = resolve_library(db_path, content_root, destination_root)
    state.total_files = len(resolution)

    state.advance(TRANSFERRING)
    report = execute_transfers(
        resolution.pairs,
        mode,
        progress=progress,
        workers=workers,
        progress_interval=progress_interval,
    )

    state.advance(REPORTING)
    if resolution.skipped:
        logger.warning(f"{len(resolution.skipped)} database rows could not be resolved")
    if report.errors:
        logger.warning(f"{report.errors} of {report.total} files failed to {mode}")
    else:
        logger.info(f"Completed {mode} operations successfully.")

    state.advance(DONE)
    return MigrationResult(resolution, report)
