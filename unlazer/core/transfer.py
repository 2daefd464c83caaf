# SPDX-License-Identifier: GPL-3.0-or-later
"""
File operations for unlazer.

Materializes resolved path pairs in the Songs folder by copying or linking,
tolerating per-file failures and reporting progress.

Copyright (C) 2024 unlazer Contributors
Licensed under GPL-3.0-or-later
"""

import errno
import logging
import os
import shutil
import tempfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

COPY = "copy"
SYMLINK = "symlink"

ProgressSink = Callable[[int, int], None]


@dataclass(frozen=True)
class TransferFailure:
    """Log record for a pair that could not be transferred."""

    source: Path
    destination: Path
    cause: str


@dataclass
class TransferOutcome:
    """Result of transferring one pair."""

    source: Path
    destination: Path
    action: Optional[str] = None
    size: int = 0
    error: Optional[OSError] = None


@dataclass
class TransferReport:
    """Aggregate result of a transfer run."""

    mode: str
    total: int = 0
    completed: int = 0
    errors: int = 0
    bytes_transferred: int = 0
    actions: Dict[str, int] = field(default_factory=dict)
    failures: List[TransferFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.errors == 0

    def record(self, outcome: TransferOutcome) -> None:
        self.completed += 1
        if outcome.error is not None:
            self.errors += 1
            self.failures.append(
                TransferFailure(outcome.source, outcome.destination, str(outcome.error))
            )
            return
        self.actions[outcome.action] = self.actions.get(outcome.action, 0) + 1
        self.bytes_transferred += outcome.size


def normalize_mode(mode: Optional[str]) -> str:
    """Anything other than "copy" means symlink mode."""
    if mode is not None and mode.strip().lower() == COPY:
        return COPY
    return SYMLINK


def _destination_exists(dest: Path) -> bool:
    # lexists: a dangling link from an earlier run still counts as present
    return os.path.lexists(dest)


def _require_source(source: Path) -> None:
    if not source.is_file():
        raise FileNotFoundError(
            errno.ENOENT, "Source file missing from content store", str(source)
        )


def copy_file(source: Path, dest: Path) -> Tuple[str, int]:
    """
    Copy a file into place unless the destination already exists.

    The bytes are written to a uniquely named ``.partial`` sibling first and
    renamed, so an existing destination is always a complete file.

    Returns:
        Tuple of (action, bytes_copied) where action is "copied" or "skipped"

    Raises:
        OSError: missing source, directory creation or copy failure
    """
    if _destination_exists(dest):
        return "skipped", 0

    _require_source(source)
    dest.parent.mkdir(parents=True, exist_ok=True)

    fd, partial = tempfile.mkstemp(
        prefix=f".{dest.name}.", suffix=".partial", dir=dest.parent
    )
    os.close(fd)
    try:
        shutil.copy2(source, partial)
        os.replace(partial, dest)
    except OSError:
        try:
            os.unlink(partial)
        except FileNotFoundError:
            pass
        raise

    return "copied", dest.stat().st_size


def link_file(source: Path, dest: Path) -> Tuple[str, int]:
    """
    Link a file into place unless the destination already exists.

    Symbolic links are preferred; when the platform refuses them (e.g. Windows
    without the symlink privilege) a hard link is created instead.

    Returns:
        Tuple of (action, 0) where action is "symlinked", "hardlinked" or "skipped"

    Raises:
        OSError: missing source, directory creation or link failure
    """
    if _destination_exists(dest):
        return "skipped", 0

    _require_source(source)
    dest.parent.mkdir(parents=True, exist_ok=True)

    target = source.absolute()
    try:
        dest.symlink_to(target)
        return "symlinked", 0
    except FileExistsError:
        return "skipped", 0
    except OSError as symlink_error:
        logger.debug(f"Symlink {dest} failed ({symlink_error}), trying a hard link")
        try:
            os.link(target, dest)
        except FileExistsError:
            return "skipped", 0
        except OSError as link_error:
            raise link_error from symlink_error
        return "hardlinked", 0


OPERATIONS = {COPY: copy_file, SYMLINK: link_file}


def _destination_key(dest) -> str:
    return os.path.normcase(os.path.abspath(dest))


def transfer_pair(source: Path, dest: Path, mode: str) -> TransferOutcome:
    """Apply the operation to one pair, capturing any failure as data."""
    operation = OPERATIONS[normalize_mode(mode)]
    source = Path(source)
    dest = Path(dest)
    try:
        action, size = operation(source, dest)
    except OSError as e:
        logger.warning(f"Failed to {mode} {source} to {dest}: {e}")
        return TransferOutcome(source, dest, error=e)

    logger.debug(f"{action} {source} -> {dest}")
    return TransferOutcome(source, dest, action=action, size=size)


def transfer_group(group: Sequence[Tuple[Path, Path]], mode: str) -> List[TransferOutcome]:
    """Transfer pairs sharing one destination in order; the first one wins."""
    return [transfer_pair(source, dest, mode) for source, dest in group]


def execute_transfers(
    path_pairs: Sequence[Tuple[Path, Path]],
    mode: str = COPY,
    progress: Optional[ProgressSink] = None,
    workers: int = 1,
    progress_interval: int = 128,
) -> TransferReport:
    """
    Copy or link every pair, continuing past individual failures.

    Args:
        path_pairs: Resolved (source, destination) pairs
        mode: "copy" or "symlink" (anything else is treated as symlink)
        progress: Optional sink called with (completed, total)
        workers: Worker threads; 1 processes the pairs in order
        progress_interval: Notify the sink every this many pairs

    Returns:
        TransferReport where completed always equals total
    """
    mode = normalize_mode(mode)
    pairs = list(path_pairs)
    report = TransferReport(mode=mode, total=len(pairs))
    interval = max(1, progress_interval)

    logger.info(f"Running in {mode} mode over {report.total} files with {workers} worker(s)")

    def notify():
        if progress is not None:
            progress(report.completed, report.total)

    def fold(outcome: TransferOutcome):
        report.record(outcome)
        if report.completed % interval == 0 and report.completed != report.total:
            notify()

    notify()

    if workers <= 1:
        for source, dest in pairs:
            fold(transfer_pair(source, dest, mode))
    else:
        # One task per destination, so pairs that share a destination never
        # race and the outcome matches a sequential run
        groups: Dict[str, List[Tuple[Path, Path]]] = {}
        for source, dest in pairs:
            groups.setdefault(_destination_key(dest), []).append((source, dest))

        # Workers only return outcomes; this thread is the single aggregator
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(transfer_group, group, mode)
                for group in groups.values()
            ]
            for future in as_completed(futures):
                for outcome in future.result():
                    fold(outcome)

    notify()

    logger.info(
        f"Completed {report.completed}/{report.total} {mode} operations "
        f"with {report.errors} errors"
    )
    return report
