"""In-memory data types shared by the curation pipeline."""

from dataclasses import dataclass, field
from typing import Iterator

# Media types that can travel with a ROM
MEDIA_TYPES = ("images", "videos", "manual")


@dataclass(frozen=True)
class GameMetadata:
    """Catalog entry for one ROM, as found in gamelist.xml or fetched online."""

    path: str = ""
    id: str | None = None  # Catalog / ScreenScraper game ID
    source: str | None = None  # e.g. "ScreenScraper.fr"
    name: str | None = None
    desc: str | None = None
    rating: str | None = None  # 0-1 as a string
    releasedate: str | None = None  # YYYYMMDDTHHMMSS
    developer: str | None = None
    publisher: str | None = None
    genre: str | None = None
    players: str | None = None
    hash: str | None = None
    image: str | None = None
    video: str | None = None
    manual: str | None = None
    genreid: str | None = None

    def media_path(self, media_type: str) -> str | None:
        """Return the catalog path for a media type ("images", "videos", "manual")."""
        return {
            "images": self.image,
            "videos": self.video,
            "manual": self.manual,
        }.get(media_type)


@dataclass(frozen=True)
class TaggedRecord:
    """Everything the curation core knows about one ROM file."""

    filename: str
    base_name: str
    normalized_name: str
    regions: tuple[str, ...] = ()
    languages: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    revision: int = 0
    is_prototype: bool = False
    is_hack: bool = False
    full_path: str = ""
    relative_path: str = ""
    file_size: int = 0
    catalog_id: str | None = None
    metadata: GameMetadata | None = None
    collection: str | None = None  # Set only for ROMs from a collection folder

    @property
    def has_catalog_id(self) -> bool:
        """True when catalog_id identifies a game ("0" means unidentified)."""
        return bool(self.catalog_id) and self.catalog_id != "0"

    @property
    def is_regular(self) -> bool:
        return not self.is_prototype and not self.is_hack


@dataclass
class Preferences:
    """User region/language preferences. All comparisons are case-insensitive."""

    preferred_regions: list[str] = field(
        default_factory=lambda: ["USA", "World", "Europe", "Australia"]
    )
    preferred_languages: list[str] = field(default_factory=lambda: ["En"])
    ignore_regions: list[str] = field(default_factory=list)
    ignore_languages: list[str] = field(default_factory=list)


@dataclass
class IdentityGroup:
    """Records believed to be the same game.

    The key is "id:<catalog id>" for catalog-identified groups and
    "name:<normalized name>" for groups matched by name only.
    """

    key: str
    records: list[TaggedRecord] = field(default_factory=list)

    @property
    def is_id_group(self) -> bool:
        return self.key.startswith("id:")

    @property
    def title(self) -> str:
        return self.records[0].base_name if self.records else ""

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[TaggedRecord]:
        return iter(self.records)


@dataclass
class ClassificationResult:
    """Destination split for one identity group."""

    winner: TaggedRecord | None = None
    regional: dict[str, list[TaggedRecord]] = field(default_factory=dict)
    prototypes: list[TaggedRecord] = field(default_factory=list)
    hacks: list[TaggedRecord] = field(default_factory=list)
    duplicates: list[TaggedRecord] = field(default_factory=list)

    def members(self) -> list[TaggedRecord]:
        """Every record in the result, winner first."""
        members = [self.winner] if self.winner is not None else []
        for records in self.regional.values():
            members.extend(records)
        members.extend(self.prototypes)
        members.extend(self.hacks)
        members.extend(self.duplicates)
        return members


@dataclass(frozen=True)
class MediaFile:
    """A media file found for a ROM in the input folder."""

    path: str
    size: int = 0


# Destination kinds, in report order
MAIN = "main"
REGIONAL = "regional"
PROTOTYPE = "prototype"
HACK = "hack"
COLLECTION = "collection"
DUPLICATE = "duplicate"

DESTINATION_KINDS = (MAIN, REGIONAL, PROTOTYPE, HACK, COLLECTION, DUPLICATE)


@dataclass
class RomDestination:
    """Where one ROM ends up in the output folder.

    output_path is relative to the system's output folder and empty for
    duplicates, which are not copied.
    """

    record: TaggedRecord
    kind: str
    output_path: str = ""
    region_folder: str | None = None
    collection_name: str | None = None
    media: dict[str, MediaFile] = field(default_factory=dict)

    @property
    def is_copied(self) -> bool:
        return self.kind != DUPLICATE
