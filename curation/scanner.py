"""ROM directory scanner.

Walks an input folder laid out one subfolder per system and lists the
ROM files of each system. ROMs below a collection folder ("# Best Of #",
"top100", ...) are kept apart so they can be copied untouched.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from .parser import is_rom_file

logger = logging.getLogger(__name__)

# Curated collection folders that are preserved as-is
COLLECTION_PATTERNS = [
    re.compile(r"^#\s*.+\s*#$"),  # "# Collection Name #"
    re.compile(r"^Featured Games$", re.IGNORECASE),
    re.compile(r"^Classic Game$", re.IGNORECASE),
    re.compile(r"^top\d+$", re.IGNORECASE),  # top100, etc.
]

LETTER_FOLDER_PATTERN = re.compile(r"^[A-Z]$")

# Media and backup folders never contain ROMs to curate
SKIP_FOLDER_PATTERNS = [
    LETTER_FOLDER_PATTERN,
    re.compile(
        r"^(media|images|videos|manual|backup|downloaded_images|downloaded_videos|snap|boxart)$",
        re.IGNORECASE,
    ),
]

# Top-level input folders that are not systems
NON_SYSTEM_FOLDERS = {"bios", "themes", "tools", "launchimages", "bgmusic", "movies"}


@dataclass(frozen=True)
class ScannedRom:
    filename: str
    full_path: str
    relative_path: str  # Relative to the system folder, "/"-separated
    file_size: int = 0


@dataclass
class ScanResult:
    roms: list[ScannedRom] = field(default_factory=list)
    collections: dict[str, list[ScannedRom]] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.roms) + sum(len(r) for r in self.collections.values())


def is_collection_folder(name: str) -> bool:
    return any(p.match(name) for p in COLLECTION_PATTERNS)


def should_skip_folder(name: str) -> bool:
    return any(p.match(name) for p in SKIP_FOLDER_PATTERNS)


def _sorted_entries(directory: str) -> list[os.DirEntry]:
    with os.scandir(directory) as it:
        return sorted(it, key=lambda e: e.name)


def _join(relative_path: str, name: str) -> str:
    return f"{relative_path}/{name}" if relative_path else name


def scan_system_folder(system_folder: str | Path) -> ScanResult:
    """
    Scan a system folder for ROM files.

    Files directly in the folder are ROMs. A regular subfolder is only
    entered through its single-letter (A-Z) subfolders; collection folders
    are scanned fully and their ROMs grouped by collection name.

    Args:
        system_folder: Path to one system's folder (e.g. "/roms/snes")

    Returns:
        ScanResult with regular ROMs and collection ROMs, in name order
    """
    result = ScanResult()

    def scan_dir(directory: str, relative_path: str, collection: str | None) -> None:
        for entry in _sorted_entries(directory):
            if entry.is_dir():
                if should_skip_folder(entry.name):
                    continue
                if is_collection_folder(entry.name):
                    scan_dir(entry.path, entry.name, entry.name)
                elif collection:
                    scan_dir(entry.path, _join(relative_path, entry.name), collection)
                else:
                    # Alphabetical layout: <folder>/A/..., <folder>/B/...
                    for sub_entry in _sorted_entries(entry.path):
                        if sub_entry.is_dir() and LETTER_FOLDER_PATTERN.match(sub_entry.name):
                            scan_dir(
                                sub_entry.path,
                                _join(_join(relative_path, entry.name), sub_entry.name),
                                None,
                            )
            elif entry.is_file() and is_rom_file(entry.name):
                rom = ScannedRom(
                    filename=entry.name,
                    full_path=entry.path,
                    relative_path=_join(relative_path, entry.name),
                    file_size=entry.stat().st_size,
                )
                if collection:
                    result.collections.setdefault(collection, []).append(rom)
                else:
                    result.roms.append(rom)

    scan_dir(str(system_folder), "", None)

    logger.info(
        "Scanned %s: %d ROMs, %d collections",
        system_folder,
        len(result.roms),
        len(result.collections),
    )
    return result


def get_system_folders(input_folder: str | Path, systems: list[str] | str = "all") -> list[str]:
    """List system folder names in the input folder.

    Args:
        input_folder: Folder with one subfolder per system
        systems: "all", or the folder names to keep

    Returns:
        Sorted folder names, minus bios/themes/tools and similar folders
    """
    folders = [
        entry.name
        for entry in _sorted_entries(str(input_folder))
        if entry.is_dir() and entry.name.lower() not in NON_SYSTEM_FOLDERS
    ]
    if systems == "all":
        return folders
    return [f for f in folders if f in systems]
