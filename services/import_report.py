"""
Run reporter for the Shopify import.

Counts imported / skipped / errored per entity type, prints one marker
line per entity and a tally per type, then a grand summary. Nothing is
persisted.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional

from models.shopify_import import EntityType, OutcomeStatus, WriteOutcome

SEPARATOR = "=" * 61


@dataclass
class EntityTally:
    """Counters for one entity type."""
    entity_type: EntityType
    found_rows: int = 0
    imported: int = 0
    skipped: int = 0
    errored: int = 0
    partial: int = 0
    errors: list[dict] = field(default_factory=list)   # [{key, label, reason}]

    def to_dict(self) -> dict:
        return {
            "entity_type": self.entity_type.value,
            "found_rows": self.found_rows,
            "imported": self.imported,
            "skipped": self.skipped,
            "errored": self.errored,
            "partial": self.partial,
            "errors": self.errors,
        }


class ImportRunReport:
    """
    Accumulates outcomes for one run and prints progress.

    Args:
        echo: Line printer (defaults to print)
    """

    def __init__(self, echo: Optional[Callable[[str], None]] = None):
        self.echo = echo or print
        self.tallies: dict[EntityType, EntityTally] = {}

    def tally(self, entity_type: EntityType) -> EntityTally:
        if entity_type not in self.tallies:
            self.tallies[entity_type] = EntityTally(entity_type)
        return self.tallies[entity_type]

    # ===================
    # PROGRESS
    # ===================

    def start(self, entity_type: EntityType, found_rows: int) -> None:
        self.tally(entity_type).found_rows = found_rows
        self.echo("")
        self.echo(f"Importing {entity_type.label}...")
        self.echo(f"  Found {found_rows} rows")

    def missing_file(self, entity_type: EntityType) -> None:
        self.echo("")
        self.echo(f"Importing {entity_type.label}...")
        self.echo(f"  No {entity_type.value} file found, skipping")

    def file_failed(self, entity_type: EntityType, file_name: str, reason: str) -> None:
        """Count an unreadable export as one errored entity."""
        tally = self.tally(entity_type)
        tally.errored += 1
        tally.errors.append({"key": file_name, "label": file_name, "reason": reason})
        self.echo("")
        self.echo(f"Importing {entity_type.label}...")
        self.echo(f"  X Could not read {file_name}: {reason}")

    def record(self, outcome: WriteOutcome) -> None:
        """Count one entity outcome; called exactly once per entity."""
        tally = self.tally(outcome.entity_type)

        if outcome.status == OutcomeStatus.IMPORTED:
            tally.imported += 1
            if outcome.partial:
                tally.partial += 1
                self.echo(f"  + Imported: {outcome.label} "
                          f"({outcome.failed_children} child records failed)")
            else:
                self.echo(f"  + Imported: {outcome.label}")
        elif outcome.status == OutcomeStatus.SKIPPED:
            tally.skipped += 1
            self.echo(f"  - Skipping existing: {outcome.label}")
        else:
            tally.errored += 1
            tally.errors.append({
                "key": outcome.key,
                "label": outcome.label,
                "reason": outcome.reason,
            })
            self.echo(f"  X Error importing {outcome.label}: {outcome.reason}")

    def finish(self, entity_type: EntityType) -> None:
        tally = self.tally(entity_type)
        self.echo(
            f"  {entity_type.label}: {tally.imported} imported, "
            f"{tally.skipped} skipped, {tally.errored} errored"
        )

    def print_summary(self) -> None:
        self.echo("")
        self.echo(SEPARATOR)
        self.echo("  IMPORT SUMMARY")
        self.echo(SEPARATOR)
        for tally in self.tallies.values():
            line = (
                f"  {tally.entity_type.label + ':':<12} {tally.imported:>5} imported"
                f" {tally.skipped:>5} skipped {tally.errored:>5} errored"
            )
            if tally.partial:
                line += f" ({tally.partial} partially written)"
            self.echo(line)
        self.echo(SEPARATOR)
        if self.has_errors:
            self.echo(f"  Completed with {self.total_errored} error(s)")
        else:
            self.echo("  Import complete")

    # ===================
    # RESULTS
    # ===================

    @property
    def total_imported(self) -> int:
        return sum(t.imported for t in self.tallies.values())

    @property
    def total_skipped(self) -> int:
        return sum(t.skipped for t in self.tallies.values())

    @property
    def total_errored(self) -> int:
        return sum(t.errored for t in self.tallies.values())

    @property
    def has_errors(self) -> bool:
        return self.total_errored > 0

    @property
    def exit_code(self) -> int:
        """Process exit status: 1 if any entity errored."""
        return 1 if self.has_errors else 0

    def to_dict(self) -> dict:
        return {
            "imported": self.total_imported,
            "skipped": self.total_skipped,
            "errored": self.total_errored,
            "entities": [t.to_dict() for t in self.tallies.values()],
        }
