# SPDX-License-Identifier: GPL-3.0-or-later
"""
Utility functions for unlazer.

General-purpose helpers used across the toolkit: size formatting, default
osu! locations, logging setup and the progress bar sink.

Copyright (C) 2024 unlazer Contributors
Licensed under GPL-3.0-or-later
"""

import logging
import os
from pathlib import Path
from typing import Optional

from tqdm import tqdm

LOG_FILE_FORMAT = "[%(asctime)s] %(levelname)s: %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"


def format_size(size_bytes: int) -> str:
    """Format file size in human readable format."""
    if size_bytes == 0:
        return "0 B"

    size_names = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while size_bytes >= 1024 and i < len(size_names) - 1:
        size_bytes /= 1024.0
        i += 1

    return f"{size_bytes:.1f} {size_names[i]}"


def default_lazer_dir() -> Path:
    """osu!lazer data directory (``%APPDATA%/osu``)."""
    appdata = os.environ.get("APPDATA")
    if appdata:
        return Path(appdata) / "osu"
    # Non-Windows installs keep their data under XDG data home
    return Path.home() / ".local" / "share" / "osu"


def default_stable_dir() -> Path:
    """osu!(stable) install directory (``%LOCALAPPDATA%/osu!``)."""
    localappdata = os.environ.get("LOCALAPPDATA")
    if localappdata:
        return Path(localappdata) / "osu!"
    return Path.home() / "osu!"


def setup_logging(log_file: Optional[Path] = None, verbose: bool = False) -> logging.Logger:
    """
    Configure the ``unlazer`` logger.

    Everything down to DEBUG goes to the log file; the console only shows
    errors unless verbose (or ``UNLAZER_DEBUG``) is set.
    """
    if os.environ.get("UNLAZER_DEBUG"):
        verbose = True

    logger = logging.getLogger("unlazer")
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(logging.INFO if verbose else logging.ERROR)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


class TqdmProgress:
    """Progress sink that renders (completed, total) updates on a tqdm bar."""

    def __init__(self, total: int, desc: str = "", **kwargs):
        self.bar = tqdm(
            total=total,
            desc=desc,
            unit="files",
            dynamic_ncols=True,
            bar_format="{desc}: {percentage:3.0f}%|{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}, {rate_fmt}]",
            **kwargs,
        )

    def __call__(self, completed: int, total: int) -> None:
        if self.bar.total != total:
            self.bar.total = total
        if completed > self.bar.n:
            self.bar.update(completed - self.bar.n)
        else:
            self.bar.refresh()

    def close(self) -> None:
        self.bar.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
