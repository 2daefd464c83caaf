# SPDX-License-Identifier: GPL-3.0-or-later
"""
Path list export for unlazer.

Writes the resolved transfer plan to CSV or JSON so a run can be audited
before (or instead of) touching the Songs folder.

Copyright (C) 2024 unlazer Contributors
Licensed under GPL-3.0-or-later
"""

import csv
import json
import logging
from datetime import datetime
from pathlib import Path

from .paths import ResolutionResult

logger = logging.getLogger(__name__)


def export_path_list(resolution: ResolutionResult, output_file: Path) -> Path:
    """
    Export resolved pairs to ``output_file``.

    A ``.json`` suffix writes pairs and skipped rows as JSON; anything else
    writes a ``source,destination`` CSV.
    """
    output_file = Path(output_file)
    output_file.parent.mkdir(parents=True, exist_ok=True)

    if output_file.suffix.lower() == ".json":
        data = {
            "generated": datetime.now().isoformat(timespec="seconds"),
            "pairs": [
                {"source": str(pair.source), "destination": str(pair.destination)}
                for pair in resolution.pairs
            ],
            "skipped": [
                {
                    "set_id": row.set_id,
                    "filename": row.filename,
                    "hash": row.file_hash,
                    "reason": row.reason,
                }
                for row in resolution.skipped
            ],
        }
        with open(output_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
    else:
        with open(output_file, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(["source", "destination"])
            for pair in resolution.pairs:
                writer.writerow([str(pair.source), str(pair.destination)])

    logger.info(f"Exported {len(resolution.pairs)} paths to {output_file}")
    return output_file
