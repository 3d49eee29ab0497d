"""Human-readable curation report.

The report goes to an output stream (the management command's stdout) and,
when a report file is configured, is also collected and written to that
file at the end of the run.
"""

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

from django.utils import timezone

from .config import CurationConfig
from .lexicon import UNKNOWN_REGION
from .planner import SystemStats
from .records import COLLECTION, DUPLICATE, HACK, MAIN, PROTOTYPE, REGIONAL, RomDestination
from .transfer import SizeStats, format_bytes

logger = logging.getLogger(__name__)

RULE_WIDTH = 60

# Filenames listed per section in verbose mode
LIST_LIMIT = 10
REGION_LIST_LIMIT = 5

SD_CARD_SIZES_GB = [8, 16, 32, 64, 128]

GIB = 1024**3


@dataclass
class SystemSummary:
    system: str
    stats: SystemStats
    input_size: SizeStats = field(default_factory=SizeStats)
    output_size: SizeStats = field(default_factory=SizeStats)


@dataclass
class ScreenScraperStats:
    user_level_name: str = ""
    max_threads: int = 1
    lookups_attempted: int = 0
    lookups_successful: int = 0
    media_downloaded: int = 0
    requests_used: int = 0
    max_requests_per_day: int = 0


def _percent(part: int, whole: int) -> str:
    return f"{part / whole * 100:.1f}" if whole > 0 else "0"


class ReportWriter:
    """Writes report lines to a stream and, optionally, a report file."""

    def __init__(self, stream: TextIO, report_file: str | Path | None = None):
        self.stream = stream
        self.report_file = Path(report_file).resolve() if report_file else None
        self._buffer: list[str] = []

    def line(self, text: str = "") -> None:
        self.stream.write(text + "\n")
        if self.report_file is not None:
            self._buffer.append(text + "\n")

    def rule(self, char: str = "=") -> None:
        self.line(char * RULE_WIDTH)

    def title(self, text: str) -> None:
        self.line("")
        self.rule()
        self.line(text)
        self.rule()

    def flush(self) -> None:
        """Write the collected report to the report file, if any."""
        if self.report_file is None:
            return
        self.report_file.parent.mkdir(parents=True, exist_ok=True)
        self.report_file.write_text("".join(self._buffer), encoding="utf-8")
        logger.info("Report written to %s", self.report_file)

    def write_header(self, config: CurationConfig) -> None:
        mode = "DRY RUN" if config.dry_run else "LIVE"
        self.rule()
        self.line(f"ROM Curator - {mode}")
        self.rule()
        self.line("")
        self.line(f"Started: {timezone.now():%Y-%m-%d %H:%M:%S %Z}")
        self.line(f"Input:  {config.input_folder}")
        self.line(f"Output: {config.output_folder}")
        systems = config.systems if config.systems == "all" else ", ".join(config.systems)
        self.line(f"Systems: {systems}")
        self.line(f"Preferred regions: {', '.join(config.preferred_regions)}")
        self.line(f"Preferred languages: {', '.join(config.preferred_languages)}")
        if config.ignore_regions:
            self.line(f"Ignored regions: {', '.join(config.ignore_regions)}")
        if config.ignore_languages:
            self.line(f"Ignored languages: {', '.join(config.ignore_languages)}")
        self.line(f"Media types: {', '.join(config.media_types) or 'none'}")
        self.line("")

    def write_system_start(self, system: str, rom_count: int) -> None:
        self.rule("-")
        self.line(f"System: {system}")
        self.rule("-")
        self.line(f"  Found {rom_count:,} ROM files")

    def _list_filenames(self, destinations: list[RomDestination], limit: int, indent: str) -> None:
        for destination in destinations[:limit]:
            self.line(f"{indent}- {destination.record.filename}")
        if len(destinations) > limit:
            self.line(f"{indent}... and {len(destinations) - limit} more")

    def write_destinations(self, destinations: list[RomDestination], verbose: bool = False) -> None:
        """Write destination counts per kind, with filenames when verbose."""
        by_kind: dict[str, list[RomDestination]] = {}
        for destination in destinations:
            by_kind.setdefault(destination.kind, []).append(destination)

        main = by_kind.get(MAIN, [])
        self.line("")
        self.line(f"  KEEP (main folder): {len(main):,}")
        if verbose:
            self._list_filenames(main, LIST_LIMIT, "    ")

        regional = by_kind.get(REGIONAL, [])
        if regional:
            self.line("")
            self.line(f"  REGIONAL (subfolders): {len(regional):,}")
            by_region: dict[str, list[RomDestination]] = {}
            for destination in regional:
                by_region.setdefault(destination.region_folder or UNKNOWN_REGION, []).append(
                    destination
                )
            for region, region_destinations in by_region.items():
                self.line(f"    {region}: {len(region_destinations)}")
                if verbose:
                    self._list_filenames(region_destinations, REGION_LIST_LIMIT, "      ")

        for kind, label in ((PROTOTYPE, "PROTOTYPES"), (HACK, "HACKS/PIRATES")):
            kind_destinations = by_kind.get(kind, [])
            if kind_destinations:
                self.line("")
                self.line(f"  {label}: {len(kind_destinations):,}")
                if verbose:
                    self._list_filenames(kind_destinations, LIST_LIMIT, "    ")

        collections = by_kind.get(COLLECTION, [])
        if collections:
            self.line("")
            self.line(f"  COLLECTIONS: {len(collections):,}")
            by_collection: dict[str, int] = {}
            for destination in collections:
                name = destination.collection_name or UNKNOWN_REGION
                by_collection[name] = by_collection.get(name, 0) + 1
            for name, count in by_collection.items():
                self.line(f"    {name}: {count}")

        duplicates = by_kind.get(DUPLICATE, [])
        if duplicates:
            self.line("")
            self.line(f"  DUPLICATES REMOVED: {len(duplicates):,}")
            if verbose:
                self._list_filenames(duplicates, LIST_LIMIT, "    ")

    def write_system_summary(self, summary: SystemSummary) -> None:
        stats = summary.stats
        self.line("")
        self.line(f"  Summary for {summary.system}:")
        self.line(f"    Total ROMs: {stats.total_roms:,}")
        self.line(f"    Unique titles: {stats.unique_titles:,}")
        self.line(f"    Kept: {stats.kept:,}")
        self.line(f"    Regional: {stats.regional:,}")
        self.line(f"    Prototypes: {stats.prototypes:,}")
        self.line(f"    Hacks/Pirates: {stats.hacks:,}")
        self.line(f"    Collections: {stats.collections:,}")
        self.line(f"    Duplicates removed: {stats.duplicates_removed:,}")

        savings = summary.input_size.total - summary.output_size.total
        self.line("")
        self.line("  Size breakdown:")
        self.line(f"    Input total:  {format_bytes(summary.input_size.total)}")
        self.line(f"    Output total: {format_bytes(summary.output_size.total)}")
        self.line(
            f"    Savings:      {format_bytes(savings)} "
            f"({_percent(savings, summary.input_size.total)}%)"
        )

    def write_final_summary(self, summaries: list[SystemSummary], dry_run: bool) -> None:
        totals = SystemStats()
        input_size = SizeStats()
        output_size = SizeStats()
        for summary in summaries:
            totals.add(summary.stats)
            input_size = input_size + summary.input_size
            output_size = output_size + summary.output_size

        self.title("FINAL SUMMARY")
        self.line("")
        self.line(f"Systems processed: {len(summaries)}")
        self.line(f"Total ROMs scanned: {totals.total_roms:,}")
        self.line(f"Unique titles: {totals.unique_titles:,}")
        self.line("")
        self.line(f"Kept (main): {totals.kept:,}")
        self.line(f"Regional: {totals.regional:,}")
        self.line(f"Prototypes: {totals.prototypes:,}")
        self.line(f"Hacks/Pirates: {totals.hacks:,}")
        self.line(f"Collections: {totals.collections:,}")
        self.line(f"Duplicates removed: {totals.duplicates_removed:,}")
        self.line("")

        output_count = totals.total_roms - totals.duplicates_removed
        reduction = _percent(totals.duplicates_removed, totals.total_roms)
        self.line(f"Output ROMs: {output_count:,} ({reduction}% reduction)")

        if dry_run:
            self.line("")
            self.line("NOTE: This was a DRY RUN. No files were copied.")
            self.line("Run with --apply (or dryRun: false) to copy files.")

        self.write_size_summary(input_size, output_size)

    def _write_size_block(self, heading: str, size: SizeStats) -> None:
        self.line(heading)
        self.line(f"  ROMs:    {format_bytes(size.roms):>12}")
        self.line(f"  Images:  {format_bytes(size.images):>12}")
        self.line(f"  Videos:  {format_bytes(size.videos):>12}")
        self.line(f"  Manuals: {format_bytes(size.manual):>12}")
        self.line("  " + "-" * 21)
        self.line(f"  Total:   {format_bytes(size.total):>12}")

    def write_size_summary(self, input_size: SizeStats, output_size: SizeStats) -> None:
        self.title("SIZE SUMMARY")
        self.line("")
        self._write_size_block("Input Size (all scanned files):", input_size)
        self.line("")
        self._write_size_block("Output Size (files to copy):", output_size)

        savings = input_size.total - output_size.total
        self.line("")
        self.line(
            f"Space Savings: {format_bytes(savings)} "
            f"({_percent(savings, input_size.total)}% reduction)"
        )

        self.line("")
        self.line("SD Card Compatibility:")
        output_gb = output_size.total / GIB
        for card_gb in SD_CARD_SIZES_GB:
            if output_gb <= card_gb:
                self.line(f"  [OK] Fits on {card_gb}GB SD card")
        if output_gb > SD_CARD_SIZES_GB[-1]:
            self.line(f"  [!] Requires {math.ceil(output_gb)}GB+ storage")

    def write_system_breakdown(self, summaries: list[SystemSummary]) -> None:
        self.line("")
        self.line("Breakdown by system:")
        self.line("")
        for summary in sorted(summaries, key=lambda s: s.system):
            stats = summary.stats
            self.line(
                f"  {summary.system:<15} "
                f"Kept: {stats.kept:>5}, "
                f"Regional: {stats.regional:>5}, "
                f"Proto: {stats.prototypes:>4}, "
                f"Hacks: {stats.hacks:>4}, "
                f"Removed: {stats.duplicates_removed:>5}"
            )

    def write_screenscraper_stats(self, stats: ScreenScraperStats) -> None:
        """Only written for runs with ScreenScraper enabled."""
        self.title("SCREENSCRAPER STATISTICS")
        self.line("")

        self.line(f"Account Level: {stats.user_level_name}")
        self.line(f"Max Threads: {stats.max_threads}")
        self.line("")
        self.line("API Usage:")
        self.line(f"  Lookups attempted: {stats.lookups_attempted:,}")
        self.line(f"  Lookups successful: {stats.lookups_successful:,}")
        self.line(
            f"  Success rate: {_percent(stats.lookups_successful, stats.lookups_attempted)}%"
        )
        self.line("")
        self.line(f"  Media files downloaded: {stats.media_downloaded:,}")
        self.line("")

        remaining = max(0, stats.max_requests_per_day - stats.requests_used)
        self.line("Daily Quota:")
        self.line(
            f"  Requests used: {stats.requests_used:,} / {stats.max_requests_per_day:,} "
            f"({_percent(stats.requests_used, stats.max_requests_per_day)}%)"
        )
        self.line(f"  Requests remaining: {remaining:,}")
