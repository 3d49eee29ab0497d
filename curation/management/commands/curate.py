"""
Management command to curate a ROM library.

Keeps one preferred copy of every game per system, files regional
variants, prototypes and hacks into subfolders, and drops duplicates.
Runs as a dry run (report only) unless --apply is given or the
configuration sets dryRun to false.
"""

import logging
from dataclasses import replace
from pathlib import Path

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from curation.catalog import GAMELIST_FILENAME, build_lookup, parse_gamelist, write_gamelist
from curation.config import ConfigError, CurationConfig, apply_overrides, load_config
from curation.metadata.screenscraper import (
    QuotaState,
    ScreenScraperClient,
    fetch_game_data_batch,
    get_system_id,
)
from curation.parser import build_record
from curation.planner import SystemStats, build_records, plan_system
from curation.records import DESTINATION_KINDS, DUPLICATE, TaggedRecord
from curation.report import ReportWriter, ScreenScraperStats, SystemSummary
from curation.scanner import get_system_folders, scan_system_folder
from curation.transfer import attach_media, calculate_size_stats, copy_destinations

logger = logging.getLogger(__name__)

COPIED_KINDS = [kind for kind in DESTINATION_KINDS if kind != DUPLICATE]


class Command(BaseCommand):
    help = "Curate a ROM library: keep preferred versions and sort the rest into subfolders"

    def add_arguments(self, parser):
        parser.add_argument(
            "--config",
            default=settings.ROM_CURATOR_CONFIG,
            help="Path to the JSON configuration file",
        )
        mode = parser.add_mutually_exclusive_group()
        mode.add_argument(
            "--dry-run",
            action="store_true",
            help="Only report what would be copied",
        )
        mode.add_argument(
            "--apply",
            action="store_true",
            help="Copy files to the output folder",
        )
        parser.add_argument(
            "--systems",
            help="Comma-separated system folders to process (default: from config)",
        )
        parser.add_argument("--output", help="Override the output folder")
        parser.add_argument("--report", help="Also write the report to this file")
        parser.add_argument(
            "--workers",
            type=int,
            default=settings.ROM_CURATOR_WORKERS,
            help="Threads used to classify groups",
        )

    def handle(self, *args, **options):
        try:
            config = load_config(options["config"])
        except ConfigError as e:
            raise CommandError(str(e))

        dry_run = None
        if options["dry_run"]:
            dry_run = True
        elif options["apply"]:
            dry_run = False

        systems = None
        if options["systems"]:
            systems = [s.strip() for s in options["systems"].split(",") if s.strip()]

        config = apply_overrides(
            config,
            dry_run=dry_run,
            systems=systems,
            output_folder=options["output"],
            report_file=options["report"],
        )

        if not Path(config.input_folder).is_dir():
            raise CommandError(f"Input folder not found: {config.input_folder}")

        verbose = options["verbosity"] >= 1
        workers = max(1, options["workers"])

        writer = ReportWriter(self.stdout, config.report_file)
        writer.write_header(config)

        system_names = get_system_folders(config.input_folder, config.systems)
        if not system_names:
            writer.line("No systems found to process.")
            writer.flush()
            return

        writer.line(f"Found {len(system_names)} system(s) to process: {', '.join(system_names)}")
        writer.line("")

        client = None
        ss_stats = ScreenScraperStats()
        if config.screenscraper_enabled:
            client = ScreenScraperClient(config.screenscraper, QuotaState())

        summaries = []
        for system in system_names:
            try:
                summaries.append(
                    self._process_system(config, system, writer, client, ss_stats, verbose, workers)
                )
            except Exception as e:
                logger.exception(f"Failed to process system {system}")
                writer.line(f"  ERROR processing {system}: {e}")

        writer.write_final_summary(summaries, config.dry_run)
        writer.write_system_breakdown(summaries)

        if client is not None:
            ss_stats.user_level_name = client.quota.user_level_name
            ss_stats.max_threads = client.quota.max_threads
            ss_stats.requests_used = client.quota.requests_today
            ss_stats.max_requests_per_day = client.quota.max_requests_per_day
            writer.write_screenscraper_stats(ss_stats)

        writer.flush()
        self.stdout.write(self.style.SUCCESS("Done!"))

    def _process_system(
        self,
        config: CurationConfig,
        system: str,
        writer: ReportWriter,
        client: ScreenScraperClient | None,
        ss_stats: ScreenScraperStats,
        verbose: bool,
        workers: int,
    ) -> SystemSummary:
        input_system = Path(config.input_folder) / system
        output_system = Path(config.output_folder) / system

        scan = scan_system_folder(input_system)
        writer.write_system_start(system, scan.total)
        if scan.total == 0:
            writer.line("  No ROMs found, skipping")
            return SystemSummary(system=system, stats=SystemStats())

        gamelist = parse_gamelist(input_system / GAMELIST_FILENAME)
        if gamelist.games:
            writer.line(f"  Loaded {len(gamelist.games):,} entries from {GAMELIST_FILENAME}")
        records = build_records(scan, build_lookup(gamelist))

        if client is not None and get_system_id(system) is not None:
            records = self._enrich_records(client, system, input_system, records, writer, ss_stats)

        plan = plan_system(records, config.preferences, workers=workers)
        attach_media(plan.destinations, input_system, config.media_types)

        summary = SystemSummary(
            system=system,
            stats=plan.stats,
            input_size=calculate_size_stats(plan.destinations, DESTINATION_KINDS),
            output_size=calculate_size_stats(plan.destinations, COPIED_KINDS),
        )
        writer.write_destinations(plan.destinations, verbose)
        writer.write_system_summary(summary)

        if not config.dry_run:
            transfer = copy_destinations(
                plan.destinations, input_system, output_system, config.media_types
            )
            writer.line("")
            writer.line(f"  Copied {transfer.copied:,} ROMs ({transfer.failed} failed)")
            for media_type, count in transfer.media_copied.items():
                if count:
                    writer.line(f"    {media_type}: {count:,}")

            count = write_gamelist(
                output_system / GAMELIST_FILENAME,
                plan.destinations,
                config.media_types,
                provider=gamelist.provider,
            )
            writer.line(f"  Wrote {GAMELIST_FILENAME} with {count:,} entries")

        return summary

    def _enrich_records(
        self,
        client: ScreenScraperClient,
        system: str,
        input_system: Path,
        records: list[TaggedRecord],
        writer: ReportWriter,
        ss_stats: ScreenScraperStats,
    ) -> list[TaggedRecord]:
        """Look up ROMs without gamelist metadata and re-parse the ones found."""
        missing = [r for r in records if r.metadata is None]
        if not missing:
            return records

        writer.line(f"  Looking up {len(missing):,} ROMs on ScreenScraper...")
        results = fetch_game_data_batch(
            client,
            system,
            [(r.full_path, r.filename) for r in missing],
            input_system / "media",
        )

        ss_stats.lookups_attempted += len(results)
        enriched = []
        for record in records:
            result = results.get(record.full_path)
            if result is None or result.metadata is None:
                enriched.append(record)
                continue

            ss_stats.lookups_successful += 1
            ss_stats.media_downloaded += len(result.downloaded_media)
            metadata = replace(result.metadata, path=f"./{record.relative_path}")
            enriched.append(
                build_record(
                    record.filename,
                    full_path=record.full_path,
                    relative_path=record.relative_path,
                    file_size=record.file_size,
                    metadata=metadata,
                    collection=record.collection,
                )
            )

        found = sum(1 for r in results.values() if r.metadata is not None)
        writer.line(f"  ScreenScraper: found {found:,} of {len(results):,}")
        return enriched
