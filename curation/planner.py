"""Per-system curation plan.

Turns scanned ROMs into tagged records, groups and classifies them, and
lays the results out as output destinations with counters for the report.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, fields

from .catalog import find_metadata
from .classifier import classify_group
from .grouping import group_records
from .parser import build_record
from .records import (
    COLLECTION,
    DUPLICATE,
    HACK,
    MAIN,
    PROTOTYPE,
    REGIONAL,
    ClassificationResult,
    GameMetadata,
    Preferences,
    RomDestination,
    TaggedRecord,
)
from .scanner import ScanResult, ScannedRom

logger = logging.getLogger(__name__)


@dataclass
class SystemStats:
    total_roms: int = 0
    unique_titles: int = 0
    kept: int = 0
    regional: int = 0
    prototypes: int = 0
    hacks: int = 0
    duplicates_removed: int = 0
    collections: int = 0

    def add(self, other: "SystemStats") -> None:
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))


# Destination kind -> SystemStats counter
_KIND_COUNTERS = {
    MAIN: "kept",
    REGIONAL: "regional",
    PROTOTYPE: "prototypes",
    HACK: "hacks",
    DUPLICATE: "duplicates_removed",
}


@dataclass
class SystemPlan:
    destinations: list[RomDestination] = field(default_factory=list)
    stats: SystemStats = field(default_factory=SystemStats)

    def by_kind(self, kind: str) -> list[RomDestination]:
        return [d for d in self.destinations if d.kind == kind]


def _record_for(
    rom: ScannedRom, lookup: dict[str, GameMetadata], collection: str | None = None
) -> TaggedRecord:
    metadata = find_metadata(lookup, rom.relative_path, rom.filename)
    return build_record(
        rom.filename,
        full_path=rom.full_path,
        relative_path=rom.relative_path,
        file_size=rom.file_size,
        metadata=metadata,
        collection=collection,
    )


def build_records(scan: ScanResult, lookup: dict[str, GameMetadata]) -> list[TaggedRecord]:
    """Parse every scanned ROM, attaching its gamelist metadata when found."""
    records = [_record_for(rom, lookup) for rom in scan.roms]
    for name, roms in scan.collections.items():
        records.extend(_record_for(rom, lookup, collection=name) for rom in roms)
    return records


def result_to_destinations(result: ClassificationResult) -> list[RomDestination]:
    """Lay out a classification result as output destinations."""
    destinations = []
    if result.winner is not None:
        destinations.append(
            RomDestination(record=result.winner, kind=MAIN, output_path=result.winner.filename)
        )
    for region, records in result.regional.items():
        for record in records:
            destinations.append(
                RomDestination(
                    record=record,
                    kind=REGIONAL,
                    output_path=f"regional/{region}/{record.filename}",
                    region_folder=region,
                )
            )
    for record in result.prototypes:
        destinations.append(
            RomDestination(record=record, kind=PROTOTYPE, output_path=f"prototypes/{record.filename}")
        )
    for record in result.hacks:
        destinations.append(
            RomDestination(record=record, kind=HACK, output_path=f"hacks/{record.filename}")
        )
    for record in result.duplicates:
        destinations.append(RomDestination(record=record, kind=DUPLICATE))
    return destinations


def collection_destinations(records: list[TaggedRecord]) -> list[RomDestination]:
    """Collection ROMs are copied as-is under collections/<name>/."""
    return [
        RomDestination(
            record=record,
            kind=COLLECTION,
            output_path=f"collections/{record.collection}/{record.filename}",
            collection_name=record.collection,
        )
        for record in records
    ]


def plan_system(
    records: list[TaggedRecord], preferences: Preferences, workers: int = 1
) -> SystemPlan:
    """
    Decide a destination for every record of one system.

    Args:
        records: Tagged records, collection ROMs included
        preferences: Region/language preferences
        workers: Threads used to classify groups; destinations always
            follow group order

    Returns:
        SystemPlan with collection destinations first, then one block of
        destinations per identity group
    """
    plan = SystemPlan()
    plan.stats.total_roms = len(records)

    collection_records = [r for r in records if r.collection]
    plan.destinations.extend(collection_destinations(collection_records))
    plan.stats.collections = len(collection_records)

    groups = group_records(records)
    plan.stats.unique_titles = len(groups)

    if workers > 1 and len(groups) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(lambda g: classify_group(g, preferences), groups))
    else:
        results = [classify_group(group, preferences) for group in groups]

    for result in results:
        for destination in result_to_destinations(result):
            plan.destinations.append(destination)
            counter = _KIND_COUNTERS[destination.kind]
            setattr(plan.stats, counter, getattr(plan.stats, counter) + 1)

    logger.info(
        "Planned %d ROMs in %d groups: %d kept, %d regional, %d prototypes, "
        "%d hacks, %d duplicates, %d in collections",
        plan.stats.total_roms,
        plan.stats.unique_titles,
        plan.stats.kept,
        plan.stats.regional,
        plan.stats.prototypes,
        plan.stats.hacks,
        plan.stats.duplicates_removed,
        plan.stats.collections,
    )
    return plan
