"""ROM filename parser.

Parses No-Intro style ROM filenames into tagged records (regions,
languages, revision, prototype/hack flags, tags, display and matching
names). A catalog name can be supplied as a fallback source of tags.
"""

import logging
import re
import unicodedata
from dataclasses import replace
from pathlib import Path

from .lexicon import (
    HACK_KEYWORDS,
    PROTOTYPE_KEYWORDS,
    REGION_PHRASES,
    SPECIAL_KEYWORDS,
    canonical_language,
    canonical_region,
)
from .records import GameMetadata, TaggedRecord

logger = logging.getLogger(__name__)

# Non-nested (content) and [content] groups
PAREN_PATTERN = re.compile(r"\(([^()]+)\)")
BRACKET_PATTERN = re.compile(r"\[([^\[\]]+)\]")

# MAME-style date codes: (900227)
DATE_CODE_PATTERN = re.compile(r"^\d{6}$")

# Revision tags: (Rev 1), (Rev A), (v1.1)
REVISION_PATTERN = re.compile(r"^rev\s*(\d+|[a-z])$", re.IGNORECASE)
VERSION_PATTERN = re.compile(r"^v(\d+)\.(\d+)$", re.IGNORECASE)

# Region name followed by a MAME suffix: "World 900227", "US set 2"
REGION_SUFFIX_PATTERN = re.compile(r"^(.+?)\s+(?:\d+|set\b.*)$", re.IGNORECASE)

# Compound extensions that end with an image suffix but are ROMs
COMPOUND_EXTENSIONS = {".p8.png"}

ROM_EXTENSIONS = {
    ".zip",
    ".7z",
    ".rar",
    ".nes",
    ".snes",
    ".smc",
    ".sfc",
    ".gb",
    ".gbc",
    ".gba",
    ".nds",
    ".3ds",
    ".cia",
    ".iso",
    ".bin",
    ".cue",
    ".img",
    ".md",
    ".gen",
    ".sms",
    ".gg",
    ".pce",
    ".ngp",
    ".ngc",
    ".n64",
    ".v64",
    ".z64",
    ".chd",
    ".pbp",
    ".cso",
    ".p8",
    ".p8.png",
}


def get_stem_and_extension(filename: str) -> tuple[str, str]:
    """Get filename stem and extension, handling compound extensions.

    A trailing ".something" that contains whitespace ("Super Mario Bros. 3")
    is part of the name, not an extension.
    """
    basename = Path(filename).name
    filename_lower = basename.lower()
    for compound in COMPOUND_EXTENSIONS:
        if filename_lower.endswith(compound):
            return basename[: -len(compound)], compound
    suffix = Path(basename).suffix
    if not suffix or any(c.isspace() for c in suffix):
        return basename, ""
    return basename[: -len(suffix)], suffix.lower()


def is_rom_file(filename: str) -> bool:
    """Check if a file is a ROM based on its extension."""
    _, extension = get_stem_and_extension(filename)
    return extension in ROM_EXTENSIONS


def normalize_name(name: str) -> str:
    """Normalize a display name into a matching key.

    Lowercases, unifies quotes and apostrophes, turns "&" into "and",
    folds accents, drops anything that is not a letter, digit or space
    and collapses whitespace.
    """
    name = name.lower()
    name = re.sub(r"[‘’‛`´]", "'", name)
    name = re.sub(r"[“”„]", '"', name)
    name = name.replace("&", "and")

    name = unicodedata.normalize("NFKD", name)
    name = "".join(c for c in name if not unicodedata.combining(c))
    name = "".join(c for c in name if c.isalnum() or c.isspace())

    return re.sub(r"\s+", " ", name).strip()


def extract_base_name(filename: str) -> str:
    """Strip the extension and every (...) / [...] group from a filename."""
    stem, _ = get_stem_and_extension(filename)
    base_name = BRACKET_PATTERN.sub(" ", PAREN_PATTERN.sub(" ", stem))
    base_name = re.sub(r"\s+", " ", base_name).strip()
    # Name made only of tags (e.g. "[BIOS] (USA)"): keep the stem
    return base_name or stem.strip()


def _paren_groups(source: str) -> list[str]:
    return [g.strip() for g in PAREN_PATTERN.findall(source) if g.strip()]


def _bracket_groups(source: str) -> list[str]:
    return [g.strip() for g in BRACKET_PATTERN.findall(source) if g.strip()]


def _split_parts(group: str) -> list[str]:
    return [part.strip() for part in group.split(",") if part.strip()]


def _unique(values) -> list[str]:
    """Deduplicate case-insensitively, keeping the first spelling and order."""
    seen = set()
    result = []
    for value in values:
        key = value.lower()
        if key not in seen:
            seen.add(key)
            result.append(value)
    return result


def _match_region_token(part: str) -> str | None:
    """Resolve one comma-separated part to a canonical region, if it is one."""
    region = canonical_region(part)
    if region:
        return region
    suffix_match = REGION_SUFFIX_PATTERN.match(part)
    if suffix_match and len(suffix_match.group(1).strip()) >= 2:
        return canonical_region(suffix_match.group(1))
    return None


def _find_region_phrases(group: str) -> list[str]:
    lower = group.lower()
    return [region for phrase, region in REGION_PHRASES.items() if phrase in lower]


def _is_language_group(parts: list[str]) -> bool:
    return bool(parts) and all(canonical_language(part) for part in parts)


def extract_regions_and_languages(source: str) -> tuple[list[str], list[str]]:
    """Extract canonical regions and languages from the (...) groups of a name.

    A group made only of language codes is a language group. Otherwise, a
    group with at least one region token or alias phrase is a region group,
    and its remaining parts are scanned for embedded language codes.
    """
    regions: list[str] = []
    languages: list[str] = []

    for group in _paren_groups(source):
        if DATE_CODE_PATTERN.match(group):
            continue

        parts = _split_parts(group)
        if _is_language_group(parts):
            languages.extend(canonical_language(part) for part in parts)
            continue

        token_regions = [r for r in (_match_region_token(p) for p in parts) if r]
        phrase_regions = _find_region_phrases(group)
        if not token_regions and not phrase_regions:
            continue

        regions.extend(token_regions)
        regions.extend(phrase_regions)

        for part in parts:
            if DATE_CODE_PATTERN.match(part) or _match_region_token(part):
                continue
            language = canonical_language(part)
            if language:
                languages.append(language)

    return _unique(regions), _unique(languages)


def extract_revision(groups: list[str]) -> tuple[int, str]:
    """Find the first revision tag in a list of (...) groups.

    Returns:
        (revision number, literal tag). "Rev 2" -> 2, "Rev B" -> 2,
        "v1.1" -> 11. (0, "") when there is no revision tag.
    """
    for group in groups:
        rev_match = REVISION_PATTERN.match(group)
        if rev_match:
            rev = rev_match.group(1)
            if rev.isdigit():
                return int(rev), group
            return ord(rev.upper()) - ord("A") + 1, group

        version_match = VERSION_PATTERN.match(group)
        if version_match:
            major, minor = int(version_match.group(1)), int(version_match.group(2))
            return major * 10 + minor, group

    return 0, ""


def _contains_keyword(groups: list[str], keywords: list[str]) -> bool:
    return any(k.lower() in g.lower() for g in groups for k in keywords)


def _extract_tags(
    paren_groups: list[str], bracket_groups: list[str], revision_tag: str
) -> list[str]:
    tags = []
    for group in paren_groups + bracket_groups:
        lower = group.lower()
        tags.extend(k for k in SPECIAL_KEYWORDS if k.lower() in lower)
        tags.extend(k for k in PROTOTYPE_KEYWORDS if k.lower() in lower)
    if revision_tag:
        tags.append(revision_tag)
    # Dump markers like [b] and [!] are kept verbatim
    tags.extend(bracket_groups)
    return _unique(tags)


def parse_rom_filename(filename: str, fallback_name: str | None = None) -> TaggedRecord:
    """
    Parse a ROM filename into a TaggedRecord.

    Args:
        filename: The ROM filename (e.g., "Sonic the Hedgehog (USA, Europe).md")
        fallback_name: Optional catalog name, searched for regions when the
            filename has none, and always for revision/prototype/hack tags

    Returns:
        TaggedRecord without location, size or catalog fields; callers attach
        those (see build_record).
    """
    paren_groups = _paren_groups(filename)
    bracket_groups = _bracket_groups(filename)

    regions, languages = extract_regions_and_languages(filename)

    if fallback_name:
        if not regions:
            fallback_regions, fallback_languages = extract_regions_and_languages(
                fallback_name
            )
            regions = fallback_regions
            if not languages:
                languages = fallback_languages
        paren_groups = paren_groups + _paren_groups(fallback_name)
        bracket_groups = bracket_groups + _bracket_groups(fallback_name)

    all_groups = paren_groups + bracket_groups
    revision, revision_tag = extract_revision(paren_groups)
    base_name = extract_base_name(filename)

    record = TaggedRecord(
        filename=filename,
        base_name=base_name,
        normalized_name=normalize_name(base_name),
        regions=tuple(regions),
        languages=tuple(languages),
        tags=tuple(_extract_tags(paren_groups, bracket_groups, revision_tag)),
        revision=revision,
        is_prototype=_contains_keyword(all_groups, PROTOTYPE_KEYWORDS),
        is_hack=_contains_keyword(all_groups, HACK_KEYWORDS),
    )

    logger.debug(
        "Parsed '%s': name=%s, regions=%s, languages=%s, revision=%d, proto=%s, hack=%s",
        filename,
        record.base_name,
        ",".join(record.regions) or "(none)",
        ",".join(record.languages) or "(none)",
        record.revision,
        record.is_prototype,
        record.is_hack,
    )

    return record


def build_record(
    filename: str,
    full_path: str = "",
    relative_path: str = "",
    file_size: int = 0,
    metadata: GameMetadata | None = None,
    collection: str | None = None,
) -> TaggedRecord:
    """Parse a scanned ROM and attach its location, size and catalog data.

    The catalog name (if any) is the fallback tag source; the catalog ID
    becomes the record's identity key.
    """
    record = parse_rom_filename(filename, metadata.name if metadata else None)
    return replace(
        record,
        full_path=full_path,
        relative_path=relative_path or filename,
        file_size=file_size,
        catalog_id=(metadata.id or None) if metadata else None,
        metadata=metadata,
        collection=collection,
    )
