"""Copying curated ROMs and their media into the output folder."""

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from .catalog import original_media_path, output_media_path
from .parser import get_stem_and_extension
from .records import MediaFile, RomDestination, TaggedRecord

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = [".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp"]
VIDEO_EXTENSIONS = [".mp4", ".avi", ".mkv", ".webm", ".mov", ".m4v"]
MANUAL_EXTENSIONS = [".pdf"]

# Media type -> (extensions, folders searched below the system folder)
MEDIA_SEARCH = {
    "images": (
        IMAGE_EXTENSIONS,
        ["media/images", "images", "boxart", "miximages", "downloaded_images", "snap"],
    ),
    "videos": (VIDEO_EXTENSIONS, ["media/videos", "videos", "mixvideos", "snap"]),
    "manual": (MANUAL_EXTENSIONS, ["media/manual", "manual", "manuals"]),
}


@dataclass
class SizeStats:
    roms: int = 0
    images: int = 0
    videos: int = 0
    manual: int = 0

    @property
    def total(self) -> int:
        return self.roms + self.images + self.videos + self.manual

    def __add__(self, other: "SizeStats") -> "SizeStats":
        return SizeStats(
            roms=self.roms + other.roms,
            images=self.images + other.images,
            videos=self.videos + other.videos,
            manual=self.manual + other.manual,
        )


@dataclass
class TransferResult:
    copied: int = 0
    failed: int = 0
    media_copied: dict[str, int] = field(default_factory=dict)


def format_bytes(num_bytes: int) -> str:
    """Format a byte count for display: 0 B, 512 B, 1.50 KB, 2.00 GB."""
    if num_bytes <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(num_bytes)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{value:.{2 if i > 0 else 0}f} {units[i]}"


def find_media_file(
    record: TaggedRecord, system_folder: str | Path, media_type: str
) -> Path | None:
    """Locate a media file for a ROM.

    The gamelist path is used when it exists on disk; otherwise the usual
    media folders are searched for "<rom stem><ext>", at the system root and
    under the ROM's own subfolder.
    """
    system_folder = Path(system_folder)

    metadata_path = original_media_path(record.metadata, media_type, system_folder)
    if metadata_path is not None and metadata_path.is_file():
        return metadata_path

    if media_type not in MEDIA_SEARCH:
        return None
    extensions, folders = MEDIA_SEARCH[media_type]

    stem, _ = get_stem_and_extension(record.filename)
    rom_subdir = Path(record.relative_path).parent

    search_paths = []
    for folder in folders:
        search_paths.append(system_folder / folder)
        if rom_subdir != Path("."):
            search_paths.append(system_folder / folder / rom_subdir)

    for search_path in search_paths:
        for ext in extensions:
            candidate = search_path / f"{stem}{ext}"
            if candidate.is_file():
                return candidate
    return None


def attach_media(
    destinations: list[RomDestination], system_folder: str | Path, media_types: list[str]
) -> None:
    """Record the media files (and their sizes) found for each destination."""
    for destination in destinations:
        destination.media = {}
        for media_type in media_types:
            media_path = find_media_file(destination.record, system_folder, media_type)
            if media_path is not None:
                destination.media[media_type] = MediaFile(
                    path=str(media_path), size=media_path.stat().st_size
                )


def calculate_size_stats(destinations: list[RomDestination], kinds: list[str]) -> SizeStats:
    """Sum ROM and media sizes over the destinations of the given kinds."""
    stats = SizeStats()
    for destination in destinations:
        if destination.kind not in kinds:
            continue
        stats.roms += destination.record.file_size
        for media_type, media_file in destination.media.items():
            setattr(stats, media_type, getattr(stats, media_type) + media_file.size)
    return stats


def _copy_file(source: str | Path, target: Path) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, target)


def copy_destinations(
    destinations: list[RomDestination],
    input_folder: str | Path,
    output_folder: str | Path,
    media_types: list[str],
) -> TransferResult:
    """Copy every non-duplicate ROM, then its media, into the output folder.

    A failed ROM copy is counted and skipped; a failed media copy does not
    fail the ROM.
    """
    output_folder = Path(output_folder)
    result = TransferResult(media_copied={media_type: 0 for media_type in media_types})

    to_copy = [d for d in destinations if d.is_copied]
    for index, destination in enumerate(to_copy, start=1):
        source = destination.record.full_path
        target = output_folder / destination.output_path
        logger.debug("Copying [%d/%d] %s", index, len(to_copy), destination.record.filename)

        try:
            _copy_file(source, target)
        except OSError as e:
            logger.warning(f"Failed to copy ROM {source} -> {target}: {e}")
            result.failed += 1
            continue
        result.copied += 1

        for media_type in media_types:
            media_file = destination.media.get(media_type)
            if media_file is None:
                found = find_media_file(destination.record, input_folder, media_type)
                if found is None:
                    continue
                media_file = MediaFile(path=str(found))

            extension = Path(media_file.path).suffix
            media_target = output_folder / output_media_path(
                destination.output_path, media_type, extension
            )
            try:
                _copy_file(media_file.path, media_target)
            except OSError as e:
                logger.warning(f"Failed to copy media {media_file.path} -> {media_target}: {e}")
                continue
            result.media_copied[media_type] += 1

    logger.info(
        "Copied %d ROMs to %s (%d failed)", result.copied, output_folder, result.failed
    )
    return result
