# SPDX-License-Identifier: GPL-3.0-or-later
"""
Path reconstruction for unlazer.

Turns osu!lazer database rows into the (source, destination) pairs that
project the content-addressed store onto the osu!(stable) Songs layout.

    files/9/9d/9d1ab9ad1c...  ->  Songs/<online id> <artist> - <title> [<mapper>]/<filename>

Copyright (C) 2024 unlazer Contributors
Licensed under GPL-3.0-or-later
"""

import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Dict, Iterator, List, NamedTuple, Optional

from .database import iter_beatmap_sets, iter_set_files

logger = logging.getLogger(__name__)

RESERVED_CHARACTERS = '<>:"/\\|?*'
_RESERVED_TABLE = str.maketrans({char: "-" for char in RESERVED_CHARACTERS})


class PathPair(NamedTuple):
    """A single transfer instruction."""

    source: Path
    destination: Path


@dataclass(frozen=True)
class BeatmapSetRecord:
    """Folder naming fields of one beatmap set."""

    id: int
    online_id: Optional[int] = None
    artist: Optional[str] = None
    title: Optional[str] = None
    author: Optional[str] = None

    @property
    def folder_name(self) -> str:
        return compute_folder_name(self.online_id, self.artist, self.title, self.author)


@dataclass(frozen=True)
class SkippedRow:
    """A file row rejected during resolution."""

    set_id: Optional[int]
    filename: Optional[str]
    file_hash: Optional[str]
    reason: str


@dataclass
class ResolutionResult:
    """Resolved path pairs plus the rows that could not be resolved."""

    pairs: List[PathPair] = field(default_factory=list)
    skipped: List[SkippedRow] = field(default_factory=list)

    def __iter__(self) -> Iterator[PathPair]:
        return iter(self.pairs)

    def __len__(self) -> int:
        return len(self.pairs)


def _text(value) -> str:
    return "" if value is None else str(value)


def compute_folder_name(
    online_id: Optional[int],
    artist: Optional[str],
    title: Optional[str],
    author: Optional[str],
) -> str:
    """
    Build the osu!(stable) folder name for a beatmap set.

    Missing fields contribute nothing; the mapper bracket only appears when an
    author is known. Reserved filesystem characters each become a single "-",
    so the result is always one path component.

    >>> compute_folder_name(100, "A", "B", None)
    '100 A - B'
    """
    name = f"{_text(online_id)} {_text(artist)} - {_text(title)}"
    if author is not None:
        name += f" [{author}]"
    return name.strip().translate(_RESERVED_TABLE)


def hash_to_path(file_hash: str) -> PurePath:
    """
    Relative location of a hash in the content store.

    hash: ``9d1ab9ad1c...`` -> path: ``9/9d/9d1ab9ad1c...``
    """
    if not isinstance(file_hash, str):
        raise ValueError(f"Hash is not text: {file_hash!r}")
    if len(file_hash) < 2:
        raise ValueError(f"Hash too short for the content store: {file_hash!r}")
    return PurePath(file_hash[0], file_hash[:2], file_hash)


def _check_filename(filename: Optional[str]) -> Optional[str]:
    """Return why a stored filename cannot be placed under its set folder."""
    if not filename:
        return "empty filename"
    if not isinstance(filename, str):
        return "filename is not text"

    relative = PurePath(filename)
    if relative.is_absolute() or relative.anchor:
        return "absolute filename"

    depth = 0
    for part in relative.parts:
        depth += -1 if part == ".." else (0 if part == "." else 1)
        if depth < 0:
            return "filename escapes the beatmap set folder"
    return None


def get_folder_names(conn: sqlite3.Connection) -> Dict[int, str]:
    """Map every beatmap set ID to its folder name (last row wins)."""
    folder_names = {}
    for set_id, online_id, artist, author, title in iter_beatmap_sets(conn):
        record = BeatmapSetRecord(set_id, online_id, artist, title, author)
        folder_names[set_id] = record.folder_name
    logger.debug(f"Computed {len(folder_names)} folder names")
    return folder_names


def resolve_paths(
    conn: sqlite3.Connection, content_root: Path, destination_root: Path
) -> ResolutionResult:
    """
    Resolve every beatmap set file into a (source, destination) pair.

    Args:
        conn: Open osu!lazer database connection (only read)
        content_root: The content store directory (``<lazer>/files``)
        destination_root: The osu!(stable) Songs directory

    Returns:
        ResolutionResult with pairs in query order. Rows with a malformed hash,
        an unknown beatmap set or an unusable filename are skipped and
        recorded instead of aborting the resolution.
    """
    content_root = Path(content_root)
    destination_root = Path(destination_root)

    folder_names = get_folder_names(conn)
    result = ResolutionResult()

    for set_id, filename, file_hash in iter_set_files(conn):
        try:
            source = content_root / hash_to_path(file_hash)
        except ValueError as e:
            reason = str(e)
        else:
            folder_name = folder_names.get(set_id)
            if folder_name is None:
                reason = f"no folder name for beatmap set {set_id}"
            else:
                reason = _check_filename(filename)

        if reason:
            logger.warning(f"Skipping {filename!r} (set {set_id}, hash {file_hash!r}): {reason}")
            result.skipped.append(SkippedRow(set_id, filename, file_hash, reason))
            continue

        result.pairs.append(PathPair(source, destination_root / folder_name / filename))

    logger.info(
        f"Resolved {len(result.pairs)} paths, skipped {len(result.skipped)} rows"
    )
    return result
