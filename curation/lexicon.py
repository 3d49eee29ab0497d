"""Tag vocabulary for No-Intro style ROM filenames.

Static reference data used by the filename parser and the classifier:
region names and their aliases, language codes, and the keyword lists
that flag prototypes, hacks and special versions.
"""

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# Canonical region names, in the order they are documented
KNOWN_REGIONS = [
    "USA",
    "Europe",
    "Japan",
    "World",
    "Australia",
    "France",
    "Germany",
    "Spain",
    "Italy",
    "Netherlands",
    "Sweden",
    "Norway",
    "Denmark",
    "Finland",
    "Brazil",
    "Korea",
    "China",
    "Taiwan",
    "Hong Kong",
    "Asia",
    "Russia",
    "Poland",
    "Greece",
    "Portugal",
    "Canada",
    "Mexico",
    "Argentina",
    "UK",
]

# Used when regions.json is missing or unreadable
_DEFAULT_REGION_ALIASES = {
    "usa": "USA",
    "us": "USA",
    "u": "USA",
    "europe": "Europe",
    "eu": "Europe",
    "e": "Europe",
    "japan": "Japan",
    "jp": "Japan",
    "j": "Japan",
    "world": "World",
}

_DEFAULT_REGION_PHRASES = {
    "chinese": "China",
    "pt-br": "Brazil",
    "euro": "Europe",
}


def _load_region_config() -> tuple[dict[str, str], dict[str, str]]:
    """Load region aliases and alias phrases from regions.json."""
    config_path = Path(__file__).parent / "regions.json"
    try:
        with open(config_path, encoding="utf-8") as f:
            data = json.load(f)
        aliases = {k.lower(): v for k, v in data.get("region_aliases", {}).items()}
        phrases = {k.lower(): v for k, v in data.get("region_phrases", {}).items()}
        return aliases, phrases
    except (FileNotFoundError, json.JSONDecodeError) as e:
        logger.warning(f"Could not load regions.json: {e}, using defaults")
        return dict(_DEFAULT_REGION_ALIASES), dict(_DEFAULT_REGION_PHRASES)


_aliases, REGION_PHRASES = _load_region_config()

# Exact-token lookup: lowercase token -> canonical region name.
# Canonical names always resolve to themselves.
REGION_ALIASES = {region.lower(): region for region in KNOWN_REGIONS}
REGION_ALIASES.update(_aliases)

# Canonical language codes (No-Intro two-letter style)
KNOWN_LANGUAGES = [
    "En",
    "Fr",
    "De",
    "Es",
    "It",
    "Nl",
    "Pt",
    "Sv",
    "No",
    "Da",
    "Fi",
    "Ja",
    "Ko",
    "Zh",
    "Ru",
    "Pl",
    "El",
    "Ca",
    "Cs",
    "Hu",
    "Tr",
]

LANGUAGE_CODES = {code.lower(): code for code in KNOWN_LANGUAGES}

# Substrings that mark prototype/beta/demo dumps
PROTOTYPE_KEYWORDS = ["Proto", "Beta", "Demo", "Sample", "Kiosk", "Debug", "Preview"]

# Substrings that mark hacks and unauthorized releases
HACK_KEYWORDS = ["Hack", "Pirate", "Bootleg", "Cracked", "Trained"]

# Special versions that are kept as tags (they are not duplicates)
SPECIAL_KEYWORDS = [
    "SGB Enhanced",
    "GB Compatible",
    "Rumble Version",
    "Virtual Console",
    "Unl",
    "Aftermarket",
    "Pirate",
    "Hack",
    "Alt",
    "NDSi Enhanced",
    "DSi Enhanced",
]

# Tie-break order when a record with several regions goes to a regional folder
PRIMARY_REGION_ORDER = [
    "USA",
    "World",
    "Europe",
    "Australia",
    "Japan",
    "Asia",
    "Brazil",
    "China",
    "Korea",
]

UNKNOWN_REGION = "Unknown"

# Tags that mark a known bad dump
BAD_DUMP_MARKERS = {"b", "[b]"}


def canonical_region(token: str) -> str | None:
    """Resolve a single region token (any case, any alias) to its canonical name."""
    return REGION_ALIASES.get(token.strip().lower())


def canonical_language(token: str) -> str | None:
    """Resolve a language code (any case) to its canonical spelling."""
    return LANGUAGE_CODES.get(token.strip().lower())
