"""
Row grouping for multi-row exports.

Shopify writes one physical row per variant (products) or per line item
(orders). Only the first row of a group carries the identifying columns;
the rows after it leave the key blank. group_rows() folds those rows
into one aggregate per natural key.

How each field is merged is declared per entity type as a merge policy:

    {
        "title": FieldPolicy(MergeStrategy.FIRST),
        "price": FieldPolicy(MergeStrategy.FIRST_POSITIVE),
        "images": FieldPolicy(MergeStrategy.APPEND, dedupe_by="url"),
    }
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Optional, Sequence, TypeVar

import structlog

from parsers.csv_parser import RawRow

logger = structlog.get_logger(__name__)

E = TypeVar("E")


class MergeStrategy(str, Enum):
    """How a row's value for a field is folded into the aggregate."""
    FIRST = "first"                    # first row of the group wins
    FIRST_POSITIVE = "first_positive"  # first row whose gate value is > 0 wins
    APPEND = "append"                  # child record appended in row order


@dataclass(frozen=True)
class FieldPolicy:
    strategy: MergeStrategy
    gate: Optional[str] = None       # FIRST_POSITIVE: contribution field to test (default: the field)
    dedupe_by: Optional[str] = None  # APPEND: child attribute identifying duplicates


MergePolicy = dict[str, FieldPolicy]


def group_rows(
    rows: Sequence[RawRow],
    key_columns: Sequence[str],
    factory: Callable[[str], E],
    map_row: Callable[[RawRow], dict[str, Any]],
    policy: MergePolicy,
    normalize_key: Callable[[str], str] = str.strip,
    fallback_key: Optional[Callable[[RawRow], Optional[str]]] = None,
) -> dict[str, E]:
    """
    Fold rows into one aggregate per natural key.

    Args:
        rows: Parsed rows of one export file, in file order
        key_columns: Candidate key columns; the first non-empty one is used
        factory: Builds an empty aggregate for a new key
        map_row: Turns a row into {field: value} contributions
        policy: Merge policy for the contributed fields
        normalize_key: Applied to the raw key value
        fallback_key: Derives a key for a keyless row when no group is open

    Returns:
        Aggregates keyed by natural key, in first-seen order
    """
    groups: dict[str, E] = {}
    settled: dict[str, set[str]] = {}
    current: Optional[str] = None
    skipped = 0

    for row in rows:
        key = _row_key(row, key_columns, normalize_key)

        if key is None and current is None and fallback_key is not None:
            derived = fallback_key(row)
            key = normalize_key(derived) if derived else None

        if key is None:
            if current is None:
                skipped += 1
                continue
            key = current  # continuation row

        first = key not in groups
        if first:
            groups[key] = factory(key)
            settled[key] = set()

        apply_merge(groups[key], map_row(row), policy, first, settled[key])
        current = key

    if skipped:
        logger.debug("keyless_rows_skipped", count=skipped, key_columns=list(key_columns))

    return groups


def apply_merge(
    entity: Any,
    contribution: dict[str, Any],
    policy: MergePolicy,
    first: bool,
    settled: set[str],
) -> None:
    """
    Merge one row's contribution into an aggregate according to policy.

    `settled` holds the FIRST_POSITIVE fields already decided for this
    aggregate, so a later row cannot overwrite them.
    """
    for name, rule in policy.items():
        if name not in contribution:
            continue
        value = contribution[name]

        if rule.strategy == MergeStrategy.FIRST:
            if first:
                setattr(entity, name, value)

        elif rule.strategy == MergeStrategy.FIRST_POSITIVE:
            if name in settled:
                continue
            gate_value = contribution.get(rule.gate or name)
            if isinstance(gate_value, (int, float, Decimal)) and gate_value > 0:
                setattr(entity, name, value)
                settled.add(name)

        elif rule.strategy == MergeStrategy.APPEND:
            if value is None:
                continue
            children = getattr(entity, name)
            if rule.dedupe_by and any(
                getattr(child, rule.dedupe_by) == getattr(value, rule.dedupe_by)
                for child in children
            ):
                continue
            children.append(value)


def _row_key(
    row: RawRow,
    key_columns: Sequence[str],
    normalize_key: Callable[[str], str],
) -> Optional[str]:
    for column in key_columns:
        raw = (row.get(column) or "").strip()
        if raw:
            key = normalize_key(raw)
            if key:
                return key
    return None
