# SPDX-License-Identifier: GPL-3.0-or-later
"""
Verification functionality for unlazer.

Checks that the content store actually holds the files the database refers
to, before anything is copied or linked.

Copyright (C) 2024 unlazer Contributors
Licensed under GPL-3.0-or-later
"""

import logging
import random
from typing import Any, Dict, Sequence

from .paths import PathPair

logger = logging.getLogger(__name__)


def verify_source_availability(
    pairs: Sequence[PathPair], sample_size: int = 100
) -> Dict[str, Any]:
    """
    Verify that source files exist in the content store.

    Args:
        pairs: Resolved path pairs
        sample_size: Number of pairs to check (0 checks all of them)

    Returns:
        Dictionary with total_files, sample_size, files_found, missing_count,
        missing (list of source paths), available_size and availability_rate
    """
    total_files = len(pairs)
    if sample_size and sample_size < total_files:
        sample = random.sample(list(pairs), sample_size)
    else:
        sample = list(pairs)

    files_found = 0
    available_size = 0
    missing = []

    for pair in sample:
        if pair.source.is_file():
            files_found += 1
            available_size += pair.source.stat().st_size
        else:
            logger.debug(f"Missing from content store: {pair.source} (for {pair.destination})")
            missing.append(pair.source)

    checked = len(sample)
    return {
        "total_files": total_files,
        "sample_size": checked,
        "files_found": files_found,
        "missing_count": len(missing),
        "missing": missing,
        "available_size": available_size,
        "availability_rate": (files_found / checked) * 100 if checked else 0.0,
    }
