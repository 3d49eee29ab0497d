"""EmulationStation gamelist.xml reading and writing."""

import logging
import posixpath
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, fields, replace
from pathlib import Path

from .parser import get_stem_and_extension
from .records import GameMetadata, RomDestination

logger = logging.getLogger(__name__)

GAMELIST_FILENAME = "gamelist.xml"

# <game> attributes; every other GameMetadata field is a child element
GAME_ATTRIBUTES = ("id", "source")
GAME_ELEMENTS = tuple(f.name for f in fields(GameMetadata) if f.name not in GAME_ATTRIBUTES)

PROVIDER_ELEMENTS = ("System", "software", "database", "web")

# Media type -> GameMetadata field
MEDIA_FIELDS = {"images": "image", "videos": "video", "manual": "manual"}


@dataclass
class Gamelist:
    provider: dict[str, str] | None = None
    games: list[GameMetadata] = field(default_factory=list)


def _normalize_path(path: str) -> str:
    path = path.replace("\\", "/")
    if path.startswith("./"):
        path = path[2:]
    return path


def _child_text(element: ET.Element, tag: str) -> str | None:
    child = element.find(tag)
    if child is None or child.text is None:
        return None
    return child.text.strip() or None


def parse_gamelist(path: str | Path) -> Gamelist:
    """Read a gamelist.xml file.

    A missing, unreadable or malformed file yields an empty Gamelist.
    """
    path = Path(path)
    if not path.exists():
        logger.debug("No gamelist at %s", path)
        return Gamelist()

    try:
        root = ET.parse(path).getroot()
    except (ET.ParseError, OSError) as e:
        logger.warning(f"Could not read gamelist {path}: {e}")
        return Gamelist()

    if root.tag != "gameList":
        logger.warning(f"Unexpected root element <{root.tag}> in {path}")
        return Gamelist()

    gamelist = Gamelist()

    provider = root.find("provider")
    if provider is not None:
        gamelist.provider = {}
        for tag in PROVIDER_ELEMENTS:
            text = _child_text(provider, tag)
            if text is not None:
                gamelist.provider[tag] = text

    for game in root.iter("game"):
        values = {tag: _child_text(game, tag) for tag in GAME_ELEMENTS}
        values["path"] = values["path"] or ""
        gamelist.games.append(
            GameMetadata(id=game.get("id"), source=game.get("source"), **values)
        )

    logger.debug("Read %d games from %s", len(gamelist.games), path)
    return gamelist


def build_lookup(gamelist: Gamelist) -> dict[str, GameMetadata]:
    """Index gamelist entries by normalized path, and by bare filename as a fallback."""
    lookup: dict[str, GameMetadata] = {}
    for game in gamelist.games:
        if not game.path:
            continue
        normalized = _normalize_path(game.path)
        lookup[normalized] = game
        lookup.setdefault(posixpath.basename(normalized), game)
    return lookup


def find_metadata(
    lookup: dict[str, GameMetadata], relative_path: str, filename: str
) -> GameMetadata | None:
    """Find metadata for a ROM: by relative path, then without "./", then by filename."""
    path = relative_path.replace("\\", "/")
    if path in lookup:
        return lookup[path]
    path = _normalize_path(path)
    if path in lookup:
        return lookup[path]
    return lookup.get(filename)


def original_media_path(
    metadata: GameMetadata | None, media_type: str, system_folder: str | Path
) -> Path | None:
    """Resolve a metadata media path against the system folder."""
    if metadata is None:
        return None
    media_path = metadata.media_path(media_type)
    if not media_path:
        return None
    return Path(system_folder) / _normalize_path(media_path)


def output_media_path(rom_output_path: str, media_type: str, extension: str) -> str:
    """Media location next to a copied ROM: <rom dir>/media/<type>/<rom stem><ext>."""
    rom_output_path = rom_output_path.replace("\\", "/")
    stem, _ = get_stem_and_extension(rom_output_path)
    rom_dir = posixpath.dirname(rom_output_path)
    return posixpath.join(rom_dir, "media", media_type, stem + extension)


def _relocate_metadata(
    metadata: GameMetadata, rom_output_path: str, media_types: list[str]
) -> GameMetadata:
    """Point ROM and media paths at their output location.

    Media of types that are not copied is dropped.
    """
    changes = {"path": f"./{rom_output_path}"}
    for media_type, attr in MEDIA_FIELDS.items():
        current = getattr(metadata, attr)
        if current and media_type in media_types:
            extension = posixpath.splitext(current.replace("\\", "/"))[1]
            changes[attr] = "./" + output_media_path(rom_output_path, media_type, extension)
        else:
            changes[attr] = None
    return replace(metadata, **changes)


def _game_element(destination: RomDestination, media_types: list[str]) -> ET.Element:
    record = destination.record
    output_path = destination.output_path.replace("\\", "/")
    game = ET.Element("game")

    if record.metadata is not None:
        metadata = _relocate_metadata(record.metadata, output_path, media_types)
        if metadata.id:
            game.set("id", metadata.id)
        if metadata.source:
            game.set("source", metadata.source)
    else:
        metadata = GameMetadata(path=f"./{output_path}")

    ET.SubElement(game, "path").text = metadata.path
    ET.SubElement(game, "name").text = metadata.name or record.base_name
    for tag in GAME_ELEMENTS:
        if tag in ("path", "name"):
            continue
        value = getattr(metadata, tag)
        if value:
            ET.SubElement(game, tag).text = value
    return game


def write_gamelist(
    path: str | Path,
    destinations: list[RomDestination],
    media_types: list[str],
    provider: dict[str, str] | None = None,
) -> int:
    """Write a gamelist.xml for every copied destination, sorted by name.

    Returns:
        Number of games written.
    """
    games = [
        _game_element(dest, media_types) for dest in destinations if dest.is_copied
    ]
    games.sort(key=lambda g: (g.findtext("name") or "").lower())

    root = ET.Element("gameList")
    if provider:
        provider_element = ET.SubElement(root, "provider")
        for tag, value in provider.items():
            ET.SubElement(provider_element, tag).text = value
    root.extend(games)

    ET.indent(root, space="  ")
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    ET.ElementTree(root).write(path, encoding="utf-8", xml_declaration=True)

    logger.info("Wrote %d games to %s", len(games), path)
    return len(games)
