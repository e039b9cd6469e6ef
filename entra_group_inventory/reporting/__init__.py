"""Reporting package — seed input and report output."""

from .csv_export import export_csv, read_seeds, InputFormatError
from .json_export import export_json

__all__ = [
    "export_csv",
    "read_seeds",
    "InputFormatError",
    "export_json",
]
