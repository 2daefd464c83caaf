# SPDX-License-Identifier: GPL-3.0-or-later
"""
unlazer Core Modules

Path reconstruction and transfer engine for the unlazer toolkit.

Copyright (C) 2024 unlazer Contributors
Licensed under GPL-3.0-or-later
"""

__version__ = "1.0.0"
__license__ = "GPL-3.0-or-later"

# Import main functionality for easy access
from .database import (
    connect_db_readonly,
    detect_lazer_structure,
    get_library_counts,
    journal_mode,
    row_count,
    set_journal_mode,
)
from .export import export_path_list
from .migration import MigrationResult, MigrationState, run_migration
from .paths import (
    BeatmapSetRecord,
    PathPair,
    ResolutionResult,
    SkippedRow,
    compute_folder_name,
    hash_to_path,
    resolve_paths,
)
from .transfer import (
    TransferFailure,
    TransferReport,
    copy_file,
    execute_transfers,
    link_file,
    normalize_mode,
)
from .utils import TqdmProgress, format_size, setup_logging
from .verification import verify_source_availability

__all__ = [
    "connect_db_readonly",
    "detect_lazer_structure",
    "get_library_counts",
    "journal_mode",
    "row_count",
    "set_journal_mode",
    "export_path_list",
    "MigrationResult",
    "MigrationState",
    "run_migration",
    "BeatmapSetRecord",
    "PathPair",
    "ResolutionResult",
    "SkippedRow",
    "compute_folder_name",
    "hash_to_path",
    "resolve_paths",
    "TransferFailure",
    "TransferReport",
    "copy_file",
    "execute_transfers",
    "link_file",
    "normalize_mode",
    "TqdmProgress",
    "format_size",
    "setup_logging",
    "verify_source_availability",
]
