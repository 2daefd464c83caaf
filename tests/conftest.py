"""Pytest configuration and fixtures for unlazer tests."""

import sqlite3
import tempfile
from pathlib import Path

import pytest

from unlazer.core.paths import hash_to_path


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_lazer_structure(temp_dir):
    """Create a mock osu!lazer data directory and an empty stable install."""
    lazer_dir = temp_dir / "osu"
    files_dir = lazer_dir / "files"
    stable_dir = temp_dir / "osu!"

    files_dir.mkdir(parents=True)
    stable_dir.mkdir()

    return {
        "root": lazer_dir,
        "files": files_dir,
        "db": lazer_dir / "client.db",
        "stable": stable_dir,
        "songs": stable_dir / "Songs",
    }


def create_lazer_schema(conn):
    """Create the subset of the osu!lazer schema the migration reads."""
    conn.executescript(
        """
        CREATE TABLE BeatmapMetadata(
            ID INTEGER PRIMARY KEY,
            Artist TEXT,
            ArtistUnicode TEXT,
            Author TEXT,
            Title TEXT,
            TitleUnicode TEXT,
            AudioFile TEXT,
            BackgroundFile TEXT
        );
        CREATE TABLE BeatmapSetInfo(
            ID INTEGER PRIMARY KEY,
            OnlineBeatmapSetID INTEGER UNIQUE,
            MetadataID INTEGER REFERENCES BeatmapMetadata(ID),
            DeletePending INTEGER NOT NULL DEFAULT 0,
            Hash TEXT,
            Protected INTEGER NOT NULL DEFAULT 0
        );
        CREATE TABLE BeatmapInfo(
            ID INTEGER PRIMARY KEY,
            BeatmapSetInfoID INTEGER NOT NULL REFERENCES BeatmapSetInfo(ID),
            MetadataID INTEGER REFERENCES BeatmapMetadata(ID),
            Version TEXT
        );
        CREATE TABLE FileInfo(
            ID INTEGER PRIMARY KEY,
            Hash TEXT,
            ReferenceCount INTEGER NOT NULL DEFAULT 1
        );
        CREATE TABLE BeatmapSetFileInfo(
            ID INTEGER PRIMARY KEY,
            BeatmapSetInfoID INTEGER NOT NULL REFERENCES BeatmapSetInfo(ID),
            FileInfoID INTEGER NOT NULL REFERENCES FileInfo(ID),
            Filename TEXT NOT NULL
        );
        """
    )


def populate_library(conn, sets, files):
    """
    Insert beatmap sets and files.

    Args:
        sets: (set_id, online_id, artist, title, author) tuples
        files: (set_id, filename, hash) tuples
    """
    for set_id, online_id, artist, title, author in sets:
        conn.execute(
            "INSERT INTO BeatmapMetadata (ID, Artist, Author, Title) VALUES (?, ?, ?, ?)",
            (set_id, artist, author, title),
        )
        conn.execute(
            "INSERT INTO BeatmapSetInfo (ID, OnlineBeatmapSetID, MetadataID) VALUES (?, ?, ?)",
            (set_id, online_id, set_id),
        )
        conn.execute(
            "INSERT INTO BeatmapInfo (BeatmapSetInfoID, MetadataID, Version) VALUES (?, ?, ?)",
            (set_id, set_id, "Normal"),
        )

    for file_id, (set_id, filename, file_hash) in enumerate(files, start=1):
        conn.execute("INSERT INTO FileInfo (ID, Hash) VALUES (?, ?)", (file_id, file_hash))
        conn.execute(
            "INSERT INTO BeatmapSetFileInfo (BeatmapSetInfoID, FileInfoID, Filename) VALUES (?, ?, ?)",
            (set_id, file_id, filename),
        )
    conn.commit()


SAMPLE_SETS = [
    (1, 100, "Camellia", "Exit This Earth's Atomosphere", "Mapper"),
    (2, 200, "xi", "FREEDOM DiVE", "Nakagawa-Kanon"),
    (3, None, "Local", "Unsubmitted", None),
]

SAMPLE_FILES = [
    (1, "audio.mp3", "a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2"),
    (1, "bg.jpg", "b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3"),
    (1, "Camellia - Exit (Mapper) [Extra].osu", "c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4"),
    (2, "audio.mp3", "d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5"),
    (2, "sb/star.png", "e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6"),
    (3, "song.ogg", "f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1"),
]


@pytest.fixture
def sample_sets():
    return list(SAMPLE_SETS)


@pytest.fixture
def sample_files():
    return list(SAMPLE_FILES)


@pytest.fixture
def mock_database(mock_lazer_structure):
    """Create a mock client.db with the sample library."""
    db_path = mock_lazer_structure["db"]

    conn = sqlite3.connect(db_path)
    create_lazer_schema(conn)
    populate_library(conn, SAMPLE_SETS, SAMPLE_FILES)
    conn.close()

    return db_path


@pytest.fixture
def db_conn(mock_database):
    """Open connection to the mock database with row access by name."""
    conn = sqlite3.connect(mock_database)
    conn.row_factory = sqlite3.Row
    yield conn
    conn.close()


@pytest.fixture
def empty_db_conn():
    """In-memory database with the lazer schema and no rows."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    create_lazer_schema(conn)
    yield conn
    conn.close()


def write_store_file(files_dir: Path, file_hash: str, content: bytes) -> Path:
    """Place content in the content store under its hash path."""
    path = files_dir / hash_to_path(file_hash)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


@pytest.fixture
def mock_files(mock_lazer_structure):
    """Write every sample file into the content store."""
    files_dir = mock_lazer_structure["files"]
    created = {}
    for set_id, filename, file_hash in SAMPLE_FILES:
        content = f"{set_id}:{filename}".encode("utf-8")
        created[file_hash] = write_store_file(files_dir, file_hash, content)
    return created
