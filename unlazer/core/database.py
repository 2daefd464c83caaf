# SPDX-License-Identifier: GPL-3.0-or-later
"""
Database operations for unlazer.

Handles osu!lazer database connections, structure detection, row counts and
the queries the path resolver is built on.

Copyright (C) 2024 unlazer Contributors
Licensed under GPL-3.0-or-later
"""

import logging
import shutil
import sqlite3
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)

JOURNAL_MODES = {"DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF"}

# One row per beatmap set. GROUP BY collapses sets whose metadata join
# yields several rows; SQLite picks the representative row.
BEATMAP_SETS_QUERY = """
SELECT BeatmapSetInfo.ID AS ID, OnlineBeatmapSetID, Artist, Author, Title
FROM BeatmapSetInfo
INNER JOIN BeatmapMetadata ON BeatmapMetadata.ID = BeatmapSetInfo.MetadataID
GROUP BY BeatmapSetInfo.ID
"""

SET_FILES_QUERY = """
SELECT BeatmapSetInfoID, Filename, Hash
FROM BeatmapSetFileInfo
INNER JOIN FileInfo ON FileInfo.ID = BeatmapSetFileInfo.FileInfoID
"""


def detect_lazer_structure(root_path: Path) -> Tuple[Optional[Path], Optional[Path]]:
    """
    Auto-detect the osu!lazer database and content store under a data directory.

    Returns:
        Tuple of (db_path, files_path) or (None, None) if not found
    """
    root_path = Path(root_path)

    db_path = root_path / "client.db"
    files_path = root_path / "files"

    if db_path.is_file() and files_path.is_dir():
        logger.debug(f"Detected osu!lazer structure in {root_path}")
        return db_path, files_path

    logger.debug(f"No osu!lazer structure found in {root_path}")
    return None, None


class ReadOnlyConnection:
    """
    Read-only handle on ``client.db``.

    Behaves like the underlying ``sqlite3.Connection``. When the database had
    to be copied aside to be read, the copy lives exactly as long as this
    handle and is deleted by ``close()``.
    """

    def __init__(self, conn: sqlite3.Connection, snapshot: Optional[Path] = None):
        self.conn = conn
        self.snapshot = snapshot

    @property
    def is_snapshot(self) -> bool:
        return self.snapshot is not None

    def __getattr__(self, name):
        if self.conn is None:
            raise sqlite3.ProgrammingError("Cannot operate on a closed database.")
        return getattr(self.conn, name)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        """Close the connection and discard the snapshot; safe to call twice."""
        conn, self.conn = self.conn, None
        if conn is not None:
            conn.close()

        snapshot, self.snapshot = self.snapshot, None
        if snapshot is not None:
            try:
                snapshot.unlink()
            except FileNotFoundError:
                logger.debug(f"Snapshot {snapshot} was already gone")


def connect_db_readonly(db_path: Path) -> ReadOnlyConnection:
    """
    Connect to the osu!lazer database in read-only mode.

    Falls back to querying a temporary copy when the read-only URI cannot be
    opened in place (for example when the game holds the WAL files).

    Raises:
        sqlite3.Error: the database cannot be opened at all
    """
    db_path = Path(db_path)

    try:
        conn = sqlite3.connect(f"{db_path.resolve().as_uri()}?mode=ro", uri=True)
        conn.row_factory = sqlite3.Row
        # Test if we can actually query the database
        conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' LIMIT 1"
        ).fetchone()
        logger.debug(f"Opened {db_path} read-only")
        return ReadOnlyConnection(conn)
    except sqlite3.Error as e:
        logger.debug(f"Read-only open of {db_path} failed ({e}), trying a copy")

    if not db_path.exists():
        raise sqlite3.Error(f"Database file does not exist: {db_path}")

    try:
        with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as tmp_file:
            shutil.copy2(db_path, tmp_file.name)
        conn = sqlite3.connect(tmp_file.name)
        conn.row_factory = sqlite3.Row
        logger.debug(f"Opened temporary copy of {db_path} at {tmp_file.name}")
        return ReadOnlyConnection(conn, Path(tmp_file.name))
    except (OSError, shutil.Error) as e:
        raise sqlite3.Error(f"Cannot access database: {e}") from e


def row_count(conn: sqlite3.Connection, table_name: str) -> int:
    """
    Count the rows of a table.

    Raises:
        sqlite3.OperationalError: the table does not exist
    """
    logger.debug(f"Getting row count for {table_name}")
    exists = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name = ?", (table_name,)
    ).fetchone()
    if not exists:
        logger.error(f"Could not find database table: {table_name}")
        raise sqlite3.OperationalError(f"no such table: {table_name}")

    return conn.execute(f'SELECT COUNT(*) FROM "{table_name}"').fetchone()[0]


def get_library_counts(conn: sqlite3.Connection) -> Dict[str, int]:
    """Get beatmap, beatmap set and file counts for the library."""
    return {
        "maps": row_count(conn, "BeatmapInfo"),
        "sets": row_count(conn, "BeatmapSetInfo"),
        "files": row_count(conn, "BeatmapSetFileInfo"),
    }


def iter_beatmap_sets(conn: sqlite3.Connection) -> Iterator[tuple]:
    """Yield (ID, OnlineBeatmapSetID, Artist, Author, Title) per beatmap set."""
    for row in conn.execute(BEATMAP_SETS_QUERY):
        yield tuple(row)


def iter_set_files(conn: sqlite3.Connection) -> Iterator[tuple]:
    """Yield (BeatmapSetInfoID, Filename, Hash) per beatmap set file."""
    for row in conn.execute(SET_FILES_QUERY):
        yield tuple(row)


def set_journal_mode(db_path: Path, mode: str) -> str:
    """
    Set the SQLite journal mode of the database file.

    Returns:
        The journal mode reported by SQLite after the change
    """
    mode = mode.upper()
    if mode not in JOURNAL_MODES:
        raise ValueError(f"Unknown journal mode: {mode}")

    logger.debug(f"Setting journal_mode to {mode}")
    conn = sqlite3.connect(db_path)
    try:
        # PRAGMA values cannot be bound as parameters
        result = conn.execute(f"PRAGMA journal_mode = {mode}").fetchone()
    finally:
        conn.close()
    return str(result[0]).upper() if result else mode


@contextmanager
def journal_mode(db_path: Path, mode: str = "OFF", restore: str = "WAL"):
    """Hold the database in ``mode`` for the duration of the block."""
    set_journal_mode(db_path, mode)
    try:
        yield
    finally:
        try:
            set_journal_mode(db_path, restore)
        except sqlite3.Error as e:
            logger.error(f"Could not restore journal_mode {restore} on {db_path}: {e}")
