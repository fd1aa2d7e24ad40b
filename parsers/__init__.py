"""
CSV parsers module.
"""

from parsers.csv_parser import (
    RawRow,
    parse_csv,
    read_csv_file,
    find_column,
)

__all__ = [
    "RawRow",
    "parse_csv",
    "read_csv_file",
    "find_column",
]
