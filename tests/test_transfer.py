"""Tests for ROM and media copying."""

from unittest.mock import patch

import pytest

from curation.parser import build_record
from curation.records import DUPLICATE, MAIN, REGIONAL, GameMetadata, MediaFile, RomDestination
from curation.transfer import (
    SizeStats,
    attach_media,
    calculate_size_stats,
    copy_destinations,
    find_media_file,
    format_bytes,
)
from tests.conftest import create_file


def _record(system_folder, relative_path, metadata=None, size=0):
    filename = relative_path.rsplit("/", 1)[-1]
    return build_record(
        filename,
        full_path=str(system_folder / relative_path),
        relative_path=relative_path,
        file_size=size,
        metadata=metadata,
    )


class TestFormatBytes:
    @pytest.mark.parametrize(
        "num_bytes,expected",
        [
            (0, "0 B"),
            (-5, "0 B"),
            (512, "512 B"),
            (1536, "1.50 KB"),
            (1024**2, "1.00 MB"),
            (2 * 1024**3, "2.00 GB"),
        ],
    )
    def test_format_bytes(self, num_bytes, expected):
        assert format_bytes(num_bytes) == expected


class TestSizeStats:
    def test_total_and_add(self):
        combined = SizeStats(roms=10, images=5) + SizeStats(roms=1, videos=2, manual=3)
        assert combined == SizeStats(roms=11, images=5, videos=2, manual=3)
        assert combined.total == 21


class TestFindMediaFile:
    def test_uses_gamelist_path(self, tmp_path):
        image = create_file(tmp_path / "custom" / "cover.jpg")
        record = _record(tmp_path, "Game (USA).md", GameMetadata(image="./custom/cover.jpg"))

        assert find_media_file(record, tmp_path, "images") == image

    def test_searches_media_folders_by_stem(self, tmp_path):
        video = create_file(tmp_path / "videos" / "Game (USA).mp4")
        record = _record(tmp_path, "Game (USA).md")

        assert find_media_file(record, tmp_path, "videos") == video

    def test_falls_back_when_gamelist_file_missing(self, tmp_path):
        image = create_file(tmp_path / "media" / "images" / "Game (USA).png")
        record = _record(tmp_path, "Game (USA).md", GameMetadata(image="./gone.png"))

        assert find_media_file(record, tmp_path, "images") == image

    def test_searches_rom_subfolder(self, tmp_path):
        manual = create_file(tmp_path / "manuals" / "G" / "Game (USA).pdf")
        record = _record(tmp_path, "G/Game (USA).md")

        assert find_media_file(record, tmp_path, "manual") == manual

    def test_not_found(self, tmp_path):
        record = _record(tmp_path, "Game (USA).md")
        assert find_media_file(record, tmp_path, "images") is None
        assert find_media_file(record, tmp_path, "unknown") is None


class TestSizes:
    def test_attach_media_and_sizes(self, tmp_path):
        create_file(tmp_path / "images" / "Game (USA).png", b"x" * 40)
        usa = _record(tmp_path, "Game (USA).md", size=100)
        japan = _record(tmp_path, "Game (Japan).md", size=70)
        destinations = [
            RomDestination(record=usa, kind=MAIN, output_path="Game (USA).md"),
            RomDestination(record=japan, kind=DUPLICATE),
        ]

        attach_media(destinations, tmp_path, ["images", "videos"])

        assert list(destinations[0].media) == ["images"]
        assert destinations[0].media["images"].size == 40
        assert destinations[1].media == {}

        everything = calculate_size_stats(destinations, [MAIN, DUPLICATE])
        copied = calculate_size_stats(destinations, [MAIN])
        assert everything == SizeStats(roms=170, images=40)
        assert copied == SizeStats(roms=100, images=40)


class TestCopyDestinations:
    def test_copies_roms_and_media(self, tmp_path):
        system = tmp_path / "in" / "snes"
        create_file(system / "Game (USA).sfc", b"usa")
        create_file(system / "Game (Japan).sfc", b"jap")
        create_file(system / "Game (Europe).sfc", b"eur")
        create_file(system / "media" / "images" / "Game (Japan).png", b"img")
        output = tmp_path / "out" / "snes"

        destinations = [
            RomDestination(
                record=_record(system, "Game (USA).sfc"), kind=MAIN, output_path="Game (USA).sfc"
            ),
            RomDestination(
                record=_record(system, "Game (Japan).sfc"),
                kind=REGIONAL,
                output_path="regional/Japan/Game (Japan).sfc",
                region_folder="Japan",
            ),
            RomDestination(record=_record(system, "Game (Europe).sfc"), kind=DUPLICATE),
        ]
        attach_media(destinations, system, ["images"])

        result = copy_destinations(destinations, system, output, ["images"])

        assert result.copied == 2
        assert result.failed == 0
        assert result.media_copied == {"images": 1}
        assert (output / "Game (USA).sfc").read_bytes() == b"usa"
        assert (output / "regional" / "Japan" / "Game (Japan).sfc").read_bytes() == b"jap"
        assert (output / "regional" / "Japan" / "media" / "images" / "Game (Japan).png").exists()
        assert not (output / "Game (Europe).sfc").exists()

    def test_missing_source_counts_as_failed(self, tmp_path):
        system = tmp_path / "in"
        destinations = [
            RomDestination(
                record=_record(system, "Ghost (USA).sfc"), kind=MAIN, output_path="Ghost (USA).sfc"
            )
        ]

        result = copy_destinations(destinations, system, tmp_path / "out", [])

        assert result.copied == 0
        assert result.failed == 1

    def test_media_failure_does_not_fail_rom(self, tmp_path):
        system = tmp_path / "in"
        create_file(system / "Game (USA).sfc", b"usa")
        destination = RomDestination(
            record=_record(system, "Game (USA).sfc"),
            kind=MAIN,
            output_path="Game (USA).sfc",
            media={"images": MediaFile(path=str(system / "missing.png"), size=3)},
        )

        with patch("curation.transfer.logger") as mock_logger:
            result = copy_destinations([destination], system, tmp_path / "out", ["images"])

        assert result.copied == 1
        assert result.media_copied == {"images": 0}
        mock_logger.warning.assert_called_once()
