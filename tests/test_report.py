"""Tests for the curation report."""

import io

from curation.config import config_from_dict
from curation.parser import build_record
from curation.planner import SystemStats
from curation.records import COLLECTION, DUPLICATE, MAIN, REGIONAL, RomDestination
from curation.report import ReportWriter, ScreenScraperStats, SystemSummary
from curation.transfer import SizeStats

GIB = 1024**3


def _writer(report_file=None):
    stream = io.StringIO()
    return ReportWriter(stream, report_file), stream


def _destination(filename, kind, **kwargs):
    return RomDestination(record=build_record(filename), kind=kind, **kwargs)


class TestReportWriter:
    def test_header(self):
        writer, stream = _writer()
        config = config_from_dict(
            {
                "inputFolder": "/roms",
                "outputFolder": "/curated",
                "systems": ["snes", "n64"],
                "ignoreRegions": ["Japan"],
            }
        )

        writer.write_header(config)

        output = stream.getvalue()
        assert "ROM Curator - DRY RUN" in output
        assert "Input:  /roms" in output
        assert "Systems: snes, n64" in output
        assert "Preferred regions: USA, World, Europe, Australia" in output
        assert "Ignored regions: Japan" in output
        assert "Ignored languages" not in output

    def test_destinations(self):
        writer, stream = _writer()
        destinations = [
            _destination("Game (USA).sfc", MAIN, output_path="Game (USA).sfc"),
            _destination("Game (Japan).sfc", REGIONAL, region_folder="Japan"),
            _destination("Other (Korea).sfc", REGIONAL, region_folder="Korea"),
            _destination("Best (USA).sfc", COLLECTION, collection_name="top100"),
            _destination("Game (Europe).sfc", DUPLICATE),
        ]

        writer.write_destinations(destinations, verbose=True)

        output = stream.getvalue()
        assert "KEEP (main folder): 1" in output
        assert "    - Game (USA).sfc" in output
        assert "REGIONAL (subfolders): 2" in output
        assert "    Japan: 1" in output
        assert "    Korea: 1" in output
        assert "COLLECTIONS: 1" in output
        assert "    top100: 1" in output
        assert "DUPLICATES REMOVED: 1" in output
        assert "PROTOTYPES" not in output

    def test_destinations_listing_limit(self):
        writer, stream = _writer()
        destinations = [
            _destination(f"Game {i} (USA).sfc", MAIN, output_path=f"Game {i} (USA).sfc")
            for i in range(12)
        ]

        writer.write_destinations(destinations, verbose=True)

        output = stream.getvalue()
        assert "- Game 9 (USA).sfc" in output
        assert "- Game 10 (USA).sfc" not in output
        assert "... and 2 more" in output

    def test_not_verbose_hides_filenames(self):
        writer, stream = _writer()
        writer.write_destinations(
            [_destination("Game (USA).sfc", MAIN, output_path="Game (USA).sfc")], verbose=False
        )
        assert "Game (USA).sfc" not in stream.getvalue()

    def test_final_summary(self):
        writer, stream = _writer()
        summaries = [
            SystemSummary(
                "snes",
                SystemStats(total_roms=10, unique_titles=6, kept=5, duplicates_removed=4, regional=1),
                input_size=SizeStats(roms=1000),
                output_size=SizeStats(roms=600),
            ),
            SystemSummary(
                "gba",
                SystemStats(total_roms=10, unique_titles=10, kept=10),
                input_size=SizeStats(roms=1000),
                output_size=SizeStats(roms=1000),
            ),
        ]

        writer.write_final_summary(summaries, dry_run=True)
        writer.write_system_breakdown(summaries)

        output = stream.getvalue()
        assert "FINAL SUMMARY" in output
        assert "Systems processed: 2" in output
        assert "Total ROMs scanned: 20" in output
        assert "Duplicates removed: 4" in output
        assert "Output ROMs: 16 (20.0% reduction)" in output
        assert "NOTE: This was a DRY RUN. No files were copied." in output
        assert "Space Savings: 400 B (20.0% reduction)" in output
        assert "[OK] Fits on 8GB SD card" in output
        assert output.index("  gba ") < output.index("  snes ")

    def test_size_summary_too_big_for_sd_cards(self):
        writer, stream = _writer()
        writer.write_size_summary(SizeStats(roms=200 * GIB), SizeStats(roms=150 * GIB))

        output = stream.getvalue()
        assert "[OK]" not in output
        assert "[!] Requires 150GB+ storage" in output

    def test_size_summary_lists_every_fitting_card(self):
        writer, stream = _writer()
        writer.write_size_summary(SizeStats(roms=40 * GIB), SizeStats(roms=20 * GIB))

        output = stream.getvalue()
        assert "[OK] Fits on 8GB SD card" not in output
        assert "[OK] Fits on 32GB SD card" in output
        assert "[OK] Fits on 128GB SD card" in output

    def test_screenscraper_stats(self):
        writer, stream = _writer()
        writer.write_screenscraper_stats(
            ScreenScraperStats(
                user_level_name="Member",
                max_threads=1,
                lookups_attempted=10,
                lookups_successful=8,
                media_downloaded=5,
                requests_used=50,
                max_requests_per_day=200,
            )
        )

        output = stream.getvalue()
        assert "Account Level: Member" in output
        assert "Success rate: 80.0%" in output
        assert "Requests used: 50 / 200 (25.0%)" in output
        assert "Requests remaining: 150" in output

    def test_report_file(self, tmp_path):
        report = tmp_path / "reports" / "run.txt"
        writer, stream = _writer(report)

        writer.line("hello")
        writer.rule()
        writer.flush()

        assert report.read_text(encoding="utf-8") == stream.getvalue()
        assert report.read_text(encoding="utf-8").startswith("hello\n")

    def test_flush_without_report_file(self):
        writer, _ = _writer()
        writer.line("hello")
        writer.flush()
        assert writer._buffer == []
