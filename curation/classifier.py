"""Destination classification for identity groups.

Picks the copy of a game that goes to the main folder and sends every
other copy to exactly one of: a regional folder, prototypes, hacks, or
duplicates (not copied).
"""

import logging

from .lexicon import PRIMARY_REGION_ORDER, UNKNOWN_REGION
from .records import ClassificationResult, IdentityGroup, Preferences, TaggedRecord
from .scoring import calculate_score

logger = logging.getLogger(__name__)


class EmptyGroupError(ValueError):
    """Raised when an identity group with no records is classified."""


def _lowered(values: list[str]) -> set[str]:
    return {v.lower() for v in values}


def should_ignore(record: TaggedRecord, preferences: Preferences) -> bool:
    """Check if a record is explicitly unwanted.

    Ignored when all of its regions are ignored, or when it has no regions
    and all of its languages are ignored. A record with regions is never
    ignored on languages alone, and a record with neither is never ignored.
    """
    ignore_regions = _lowered(preferences.ignore_regions)
    ignore_languages = _lowered(preferences.ignore_languages)

    if record.regions and all(r.lower() in ignore_regions for r in record.regions):
        return True

    if (
        record.languages
        and not record.regions
        and all(lang.lower() in ignore_languages for lang in record.languages)
    ):
        return True

    return False


def has_preferred_region(record: TaggedRecord, preferences: Preferences) -> bool:
    preferred = _lowered(preferences.preferred_regions)
    return any(r.lower() in preferred for r in record.regions)


def has_preferred_language(record: TaggedRecord, preferences: Preferences) -> bool:
    """Any preferred language, or a USA release with no language tag (assumed English)."""
    if not record.languages and any(r.lower() == "usa" for r in record.regions):
        return True
    preferred = _lowered(preferences.preferred_languages)
    return any(lang.lower() in preferred for lang in record.languages)


def get_primary_region(record: TaggedRecord) -> str:
    """Regional folder name for a record with several (or no) regions."""
    regions = {r.lower() for r in record.regions}
    for region in PRIMARY_REGION_ORDER:
        if region.lower() in regions:
            return region
    if record.regions:
        return record.regions[0]
    return UNKNOWN_REGION


def _is_regional(record: TaggedRecord, preferences: Preferences) -> bool:
    return not has_preferred_region(record, preferences) and not has_preferred_language(
        record, preferences
    )


def classify_single(record: TaggedRecord, preferences: Preferences) -> ClassificationResult:
    """Resolve a one-record group without scoring."""
    if should_ignore(record, preferences):
        return ClassificationResult(duplicates=[record])
    if record.is_hack:
        return ClassificationResult(hacks=[record])
    if record.is_prototype:
        return ClassificationResult(prototypes=[record])
    if _is_regional(record, preferences):
        return ClassificationResult(regional={get_primary_region(record): [record]})
    return ClassificationResult(winner=record)


def select_winner(
    records: list[TaggedRecord], preferences: Preferences
) -> ClassificationResult:
    """Select the winner from several copies of the same game.

    Both-flagged records (prototype hacks) count as hacks and follow the
    pure hacks. When every
    regular record is ignored, the first regular record (else the first
    prototype, else the first hack) is kept so the game is not lost.
    """
    if not records:
        raise EmptyGroupError("Cannot select a winner from an empty group")

    prototypes = [r for r in records if r.is_prototype and not r.is_hack]
    hacks = [r for r in records if r.is_hack and not r.is_prototype] + [
        r for r in records if r.is_hack and r.is_prototype
    ]
    regular = [r for r in records if r.is_regular]

    considered = [r for r in regular if not should_ignore(r, preferences)]
    ignored = [r for r in regular if should_ignore(r, preferences)]

    if not considered:
        # Winner is taken out of its list so it is reported once
        for candidates in (ignored, prototypes, hacks):
            if candidates:
                winner = candidates.pop(0)
                break
        return ClassificationResult(
            winner=winner,
            prototypes=prototypes,
            hacks=hacks,
            duplicates=ignored,
        )

    # Stable: equal scores keep group order
    scored = [(r, calculate_score(r, preferences)) for r in considered]
    scored.sort(key=lambda x: x[1], reverse=True)

    result = ClassificationResult(
        winner=scored[0][0],
        prototypes=prototypes,
        hacks=hacks,
        duplicates=list(ignored),
    )

    for record, _ in scored[1:]:
        if _is_regional(record, preferences):
            result.regional.setdefault(get_primary_region(record), []).append(record)
        else:
            result.duplicates.append(record)

    return result


def classify_group(group: IdentityGroup, preferences: Preferences) -> ClassificationResult:
    """Classify every record of an identity group.

    Raises:
        EmptyGroupError: The group has no records.
    """
    if not group.records:
        raise EmptyGroupError(f"Identity group {group.key!r} has no records")

    if len(group.records) == 1:
        result = classify_single(group.records[0], preferences)
    else:
        result = select_winner(group.records, preferences)

    logger.debug(
        "Classified %s: winner=%s, regional=%d, prototypes=%d, hacks=%d, duplicates=%d",
        group.key,
        result.winner.filename if result.winner else "(none)",
        sum(len(v) for v in result.regional.values()),
        len(result.prototypes),
        len(result.hacks),
        len(result.duplicates),
    )
    return result
