"""Tests for the curate management command."""

import xml.etree.ElementTree as ET
from io import StringIO
from unittest.mock import patch

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from curation.metadata.screenscraper import FetchResult
from curation.records import GameMetadata
from curation.scanner import scan_system_folder


def _run(config_path, **options):
    out = StringIO()
    call_command("curate", config=str(config_path), stdout=out, **options)
    return out.getvalue()


class TestCurateCommand:
    def test_dry_run_reports_without_copying(self, rom_library, write_config, tmp_path):
        config = write_config()

        output = _run(config)

        assert "ROM Curator - DRY RUN" in output
        assert "Found 2 system(s) to process: megadrive, snes" in output
        assert "System: megadrive" in output
        assert "System: snes" in output
        assert "System: bios" not in output
        assert "Found 6 ROM files" in output
        assert "Loaded 2 entries from gamelist.xml" in output
        assert "Systems processed: 2" in output
        assert "Total ROMs scanned: 8" in output
        assert "Duplicates removed: 2" in output
        assert "NOTE: This was a DRY RUN" in output
        assert "ScreenScraper" not in output
        assert "Done!" in output
        assert not (tmp_path / "curated").exists()

    def test_apply_copies_files_and_writes_gamelist(self, rom_library, write_config, tmp_path):
        config = write_config()

        output = _run(config, apply=True)

        assert "ROM Curator - LIVE" in output
        megadrive = tmp_path / "curated" / "megadrive"
        assert (megadrive / "Sonic (USA).md").exists()
        assert (megadrive / "regional" / "Japan" / "Sonic (Japan).md").exists()
        assert (megadrive / "regional" / "Japan" / "Shinobi (Japan).md").exists()
        assert (megadrive / "prototypes" / "Streets of Rage (USA) (Proto).md").exists()
        assert (megadrive / "collections" / "# Best Of #" / "Columns (USA).md").exists()
        assert not (megadrive / "Sonic (Europe).md").exists()
        assert (megadrive / "media" / "images" / "Sonic (USA).png").exists()

        snes = tmp_path / "curated" / "snes"
        assert (snes / "Zelda (USA).sfc").exists()
        assert not (snes / "Zelda (Europe) [b].sfc").exists()

        root = ET.parse(megadrive / "gamelist.xml").getroot()
        assert root.findtext("provider/System") == "Mega Drive"
        paths = {game.findtext("path"): game for game in root.findall("game")}
        assert len(paths) == 5
        sonic = paths["./Sonic (USA).md"]
        assert sonic.get("id") == "1001"
        assert sonic.findtext("image") == "./media/images/Sonic (USA).png"
        assert "./regional/Japan/Sonic (Japan).md" in paths

    def test_dry_run_flag_overrides_config(self, rom_library, write_config, tmp_path):
        config = write_config(dryRun=False)

        output = _run(config, dry_run=True)

        assert "ROM Curator - DRY RUN" in output
        assert not (tmp_path / "curated").exists()

    def test_systems_option(self, rom_library, write_config):
        output = _run(write_config(), systems="snes")

        assert "System: snes" in output
        assert "System: megadrive" not in output
        assert "Systems processed: 1" in output

    def test_output_option(self, rom_library, write_config, tmp_path):
        _run(write_config(), apply=True, systems="snes", output=str(tmp_path / "elsewhere"))

        assert (tmp_path / "elsewhere" / "snes" / "Zelda (USA).sfc").exists()

    def test_report_file(self, rom_library, write_config, tmp_path):
        report = tmp_path / "report.txt"

        output = _run(write_config(), report=str(report))

        content = report.read_text(encoding="utf-8")
        assert "FINAL SUMMARY" in content
        assert content in output

    def test_verbose_listing(self, rom_library, write_config):
        output = _run(write_config(), systems="snes", verbosity=1)
        assert "- Zelda (USA).sfc" in output

        quiet = _run(write_config(), systems="snes", verbosity=0)
        assert "- Zelda (USA).sfc" not in quiet

    def test_workers_option(self, rom_library, write_config):
        serial = _run(write_config(), workers=1)
        threaded = _run(write_config(), workers=4)

        def summary(text):
            return text[text.index("FINAL SUMMARY") :]

        assert summary(serial) == summary(threaded)

    def test_no_systems(self, rom_library, write_config):
        output = _run(write_config(systems=["n64"]))
        assert "No systems found to process." in output

    def test_missing_config(self, tmp_path):
        with pytest.raises(CommandError, match="Configuration file not found"):
            _run(tmp_path / "missing.json")

    def test_invalid_config(self, write_config):
        with pytest.raises(CommandError, match="dryRun must be a boolean"):
            _run(write_config(dryRun="maybe"))

    def test_missing_input_folder(self, write_config):
        with pytest.raises(CommandError, match="Input folder not found"):
            _run(write_config())

    def test_system_failure_does_not_stop_run(self, rom_library, write_config):
        with patch(
            "curation.management.commands.curate.scan_system_folder",
            side_effect=[PermissionError("denied"), scan_system_folder(rom_library / "snes")],
        ):
            output = _run(write_config())

        assert "ERROR processing megadrive: denied" in output
        assert "Systems processed: 1" in output


class TestCurateWithScreenScraper:
    def test_enriches_records_without_metadata(self, rom_library, write_config):
        config = write_config(
            systems=["megadrive"],
            screenScraper={"enabled": True, "devId": "dev", "devPassword": "secret"},
        )
        europe_path = str(rom_library / "megadrive" / "Sonic (Europe).md")
        fetched = {
            europe_path: FetchResult(
                metadata=GameMetadata(id="1001", source="ScreenScraper.fr", name="Sonic the Hedgehog")
            )
        }

        with patch(
            "curation.management.commands.curate.fetch_game_data_batch", return_value=fetched
        ) as mock_fetch:
            output = _run(config)

        roms = mock_fetch.call_args[0][2]
        assert (europe_path, "Sonic (Europe).md") in roms
        assert all(filename != "Sonic (USA).md" for _, filename in roms)

        assert "Looking up 4 ROMs on ScreenScraper..." in output
        assert "ScreenScraper: found 1 of 1" in output
        assert "SCREENSCRAPER STATISTICS" in output
        assert "Lookups successful: 1" in output
        assert "Duplicates removed: 1" in output

    def test_unknown_system_skips_lookup(self, tmp_path, write_config):
        (tmp_path / "roms" / "homebrew").mkdir(parents=True)
        (tmp_path / "roms" / "homebrew" / "Demo (World).zip").write_bytes(b"x")
        config = write_config(
            screenScraper={"enabled": True, "devId": "dev", "devPassword": "secret"}
        )

        with patch("curation.management.commands.curate.fetch_game_data_batch") as mock_fetch:
            output = _run(config)

        mock_fetch.assert_not_called()
        assert "Lookups attempted: 0" in output
