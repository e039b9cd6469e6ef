"""
CSV input/output — reads the seed list and writes the flat hierarchy report.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable

from ..models import REPORT_COLUMNS, ReportRow

SEED_COLUMN = "GroupGUID"


class InputFormatError(Exception):
    """Raised when the seed file is missing its required column."""
    pass


def read_seeds(input_path: Path) -> list[str]:
    """
    Read seed group ids from the GroupGUID column, in file order.
    Blank cells are ignored; duplicates are kept.
    """
    with open(input_path, "r", newline="", encoding="utf-8-sig") as fh:
        reader = csv.DictReader(fh)
        fieldnames = [f.strip() for f in (reader.fieldnames or [])]
        if SEED_COLUMN not in fieldnames:
            raise InputFormatError(
                f"{input_path} has no '{SEED_COLUMN}' column "
                f"(found: {', '.join(fieldnames) or 'none'})"
            )
        reader.fieldnames = fieldnames
        seeds = []
        for row in reader:
            value = (row.get(SEED_COLUMN) or "").strip()
            if value:
                seeds.append(value)
    return seeds


def export_csv(rows: Iterable[ReportRow], output_path: Path) -> Path:
    """
    Write report rows with the fixed column order.

    Returns:
        Path to the created CSV file.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", newline="", encoding="utf-8-sig") as fh:
        writer = csv.DictWriter(fh, fieldnames=REPORT_COLUMNS)
        writer.writeheader()
        for row in rows:
            writer.writerow(row.to_record())

    return output_path
