"""
Delimited-text parser for Shopify exports and shipping CSVs.

Turns raw CSV content into a list of row dicts keyed by header name.

Quoting:
    - a double quote toggles quoting wherever it appears in a field,
      so `Big "Soy, Jar" Candle` is one field: Big Soy, Jar Candle
    - inside quotes, a doubled quote is a literal quote
    - commas and newlines inside quotes belong to the value
    - an unterminated quote runs to the end of the content

Tolerances:
    - header names and values are trimmed
    - blank rows are dropped
    - short (ragged) rows are padded with ""
    - fields beyond the header width are dropped (logged)
    - a repeated header name keeps the last column's value (logged)
    - empty or header-only content yields []
"""

from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

import structlog

from exceptions import ImportFileError

logger = structlog.get_logger(__name__)

RawRow = dict[str, str]

QUOTE = '"'
DELIMITER = ","


def parse_csv(content: Union[str, bytes]) -> list[RawRow]:
    """
    Parse CSV content into row dicts.

    Args:
        content: CSV text, or UTF-8 bytes (BOM allowed)

    Returns:
        One dict per data row, in file order
    """
    trimmed = (
        (line, [value.strip() for value in fields])
        for line, fields in _split_records(_decode(content))
    )
    records = ((line, fields) for line, fields in trimmed if any(fields))

    first = next(records, None)
    if first is None:
        return []

    header = first[1]
    width = len(header)
    duplicates = sorted({name for name in header if header.count(name) > 1})
    if duplicates:
        logger.warning("csv_duplicate_columns", columns=duplicates, kept="last")

    rows: list[RawRow] = []
    for line, fields in records:
        if len(fields) > width:
            logger.warning(
                "csv_extra_fields_dropped",
                line=line,
                expected=width,
                found=len(fields),
                dropped=fields[width:]
            )
        row: RawRow = {}
        for index, name in enumerate(header):
            row[name] = fields[index] if index < len(fields) else ""
        rows.append(row)

    logger.debug("csv_parsed", rows=len(rows), columns=width)
    return rows


def read_csv_file(path: Union[str, Path]) -> list[RawRow]:
    """
    Read and parse a CSV file from disk.

    Raises:
        ImportFileError: If the file cannot be read
    """
    try:
        raw = Path(path).read_bytes()
    except OSError as e:
        raise ImportFileError(str(path), str(e)) from e
    return parse_csv(raw)


def find_column(headers: Iterable[str], aliases: Iterable[str]) -> Optional[str]:
    """
    Find the first header matching any alias, ignoring case.

    Aliases are tried in order, so the preferred spelling goes first.

    Returns:
        The header as it appears in the file, or None
    """
    by_lower = {h.strip().lower(): h for h in headers}
    for alias in aliases:
        match = by_lower.get(alias.strip().lower())
        if match is not None:
            return match
    return None


def _split_records(text: str) -> Iterator[tuple[int, list[str]]]:
    """Yield (starting line number, raw fields) for each record."""
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    line = start = 1
    i, n = 0, len(text)

    while i < n:
        char = text[i]
        if char == QUOTE:
            if in_quotes and i + 1 < n and text[i + 1] == QUOTE:
                current.append(QUOTE)
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == DELIMITER and not in_quotes:
            fields.append("".join(current))
            current = []
        elif char in "\r\n":
            if char == "\r" and i + 1 < n and text[i + 1] == "\n":
                i += 1
                if in_quotes:
                    current.append("\r")
            line += 1
            if in_quotes:
                current.append("\n")
            else:
                fields.append("".join(current))
                yield start, fields
                fields, current = [], []
                start = line
        else:
            current.append(char)
        i += 1

    if fields or current:
        fields.append("".join(current))
        yield start, fields


def _decode(content: Union[str, bytes]) -> str:
    if isinstance(content, bytes):
        return content.decode("utf-8-sig", errors="replace")
    if content.startswith("\ufeff"):
        return content[1:]
    return content
