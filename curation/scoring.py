"""Preference scoring for ROMs within one identity group.

Scores are additive and only meaningful when comparing records of the
same group. Higher score = better candidate for the main folder.
"""

from .lexicon import BAD_DUMP_MARKERS
from .records import Preferences, TaggedRecord

# Region/language rank weights: first preference gets len(list) * weight
PREFERRED_REGION_WEIGHT = 20
PREFERRED_LANGUAGE_WEIGHT = 10

MULTI_REGION_BONUS = 5      # Flat, once per record with a preferred region among several
IMPLICIT_ENGLISH_BONUS = 8  # USA release with no language tag
REVISION_WEIGHT = 5         # Per revision step

IGNORED_REGION_PENALTY = -100    # Per matching region, not capped
IGNORED_LANGUAGE_PENALTY = -50   # Per matching language
BAD_DUMP_PENALTY = -200


def _rank(values: list[str], value: str) -> int | None:
    """Index of value in values (case-insensitive), or None."""
    lowered = [v.lower() for v in values]
    try:
        return lowered.index(value.lower())
    except ValueError:
        return None


def _contains(values: list[str], value: str) -> bool:
    return _rank(values, value) is not None


def get_region_score(record: TaggedRecord, preferences: Preferences) -> int:
    """Preferred-region bonus plus the multi-region bonus."""
    preferred = preferences.preferred_regions
    score = 0
    has_preferred = False
    for region in record.regions:
        rank = _rank(preferred, region)
        if rank is not None:
            score += (len(preferred) - rank) * PREFERRED_REGION_WEIGHT
            has_preferred = True

    if has_preferred and len(record.regions) > 1:
        score += MULTI_REGION_BONUS
    return score


def get_language_score(record: TaggedRecord, preferences: Preferences) -> int:
    """Preferred-language bonus plus the implicit-English bonus for USA releases."""
    preferred = preferences.preferred_languages
    score = 0
    for language in record.languages:
        rank = _rank(preferred, language)
        if rank is not None:
            score += (len(preferred) - rank) * PREFERRED_LANGUAGE_WEIGHT

    if not record.languages and any(r.lower() == "usa" for r in record.regions):
        score += IMPLICIT_ENGLISH_BONUS
    return score


def get_penalty(record: TaggedRecord, preferences: Preferences) -> int:
    """Ignored region/language penalties and the bad-dump penalty."""
    penalty = 0
    for region in record.regions:
        if _contains(preferences.ignore_regions, region):
            penalty += IGNORED_REGION_PENALTY
    for language in record.languages:
        if _contains(preferences.ignore_languages, language):
            penalty += IGNORED_LANGUAGE_PENALTY
    if any(tag.lower() in BAD_DUMP_MARKERS for tag in record.tags):
        penalty += BAD_DUMP_PENALTY
    return penalty


def calculate_score(record: TaggedRecord, preferences: Preferences) -> int:
    """Calculate the preference score for a record.

    A region or language in both a preferred and an ignore list gets both
    the bonus and the penalty.
    """
    score = 0
    score += get_region_score(record, preferences)
    score += get_language_score(record, preferences)
    score += record.revision * REVISION_WEIGHT
    score += get_penalty(record, preferences)
    return score
