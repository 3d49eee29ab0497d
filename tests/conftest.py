"""Pytest configuration and shared fixtures for Django tests."""

import json
import os
from pathlib import Path
from unittest.mock import MagicMock

import django
import pytest


def pytest_configure(config):
    """Configure Django settings before running tests."""
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "romcurator.settings")
    django.setup()


# -----------------------------------------------------------------------------
# ROM library helpers
# -----------------------------------------------------------------------------


def create_file(path: Path, content: bytes = b"\x00" * 16) -> Path:
    """Create a file (and its parent folders) with the given content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


GAMELIST_XML = """<?xml version="1.0" encoding="utf-8"?>
<gameList>
  <provider>
    <System>Mega Drive</System>
    <software>Skraper</software>
  </provider>
  <game id="1001" source="ScreenScraper.fr">
    <path>./Sonic (USA).md</path>
    <name>Sonic the Hedgehog</name>
    <desc>Blue hedgehog.</desc>
    <image>./media/images/Sonic (USA).png</image>
    <rating>0.9</rating>
  </game>
  <game id="1001" source="ScreenScraper.fr">
    <path>./Sonic (Japan).md</path>
    <name>Sonic the Hedgehog</name>
  </game>
</gameList>
"""


# -----------------------------------------------------------------------------
# ROM library fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def rom_library(tmp_path):
    """Create an input folder with a small Mega Drive and SNES library.

    megadrive/
        Sonic (USA).md, Sonic (Japan).md, Sonic (Europe).md
        Streets of Rage (USA) (Proto).md
        S/Shinobi (Japan).md          (regular subfolder, only letter folders are read)
        # Best Of #/Columns (USA).md  (collection)
        media/images/Sonic (USA).png
        gamelist.xml
    snes/
        Zelda (USA).sfc, Zelda (Europe) [b].sfc
    bios/
        bios.bin
    """
    input_folder = tmp_path / "roms"
    megadrive = input_folder / "megadrive"
    create_file(megadrive / "Sonic (USA).md", b"usa" * 100)
    create_file(megadrive / "Sonic (Japan).md", b"jap" * 100)
    create_file(megadrive / "Sonic (Europe).md", b"eur" * 100)
    create_file(megadrive / "Streets of Rage (USA) (Proto).md", b"proto")
    create_file(megadrive / "Extra" / "S" / "Shinobi (Japan).md", b"shinobi")
    create_file(megadrive / "Extra" / "notes.md", b"ignored")
    create_file(megadrive / "# Best Of #" / "Columns (USA).md", b"columns")
    create_file(megadrive / "media" / "images" / "Sonic (USA).png", b"png" * 10)
    (megadrive / "gamelist.xml").write_text(GAMELIST_XML, encoding="utf-8")

    snes = input_folder / "snes"
    create_file(snes / "Zelda (USA).sfc", b"zelda-usa")
    create_file(snes / "Zelda (Europe) [b].sfc", b"zelda-eur")

    create_file(input_folder / "bios" / "bios.bin", b"bios")
    return input_folder


@pytest.fixture
def write_config(tmp_path):
    """Factory writing a JSON configuration file and returning its path."""

    def _write_config(**values):
        data = {
            "inputFolder": str(tmp_path / "roms"),
            "outputFolder": str(tmp_path / "curated"),
        }
        data.update(values)
        path = tmp_path / "config.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write_config


# -----------------------------------------------------------------------------
# HTTP mock helpers
# -----------------------------------------------------------------------------


@pytest.fixture
def mock_http_response():
    """Factory for creating mock HTTP responses."""

    def _make_response(json_data=None, status_code=200, content=b"", headers=None):
        mock_response = MagicMock()
        mock_response.headers = headers or {}
        mock_response.content = content
        mock_response.status_code = status_code
        mock_response.json.return_value = json_data
        mock_response.raise_for_status = MagicMock()
        mock_response.iter_content.return_value = [content] if content else []
        return mock_response

    return _make_response
