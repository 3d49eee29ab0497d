"""Identity grouping: decide which ROM files are the same game.

Records with a catalog ID are grouped by that ID. The rest are grouped by
normalized name, and a name group joins the first ID group whose first
member has the same normalized name.
"""

import logging

from .records import IdentityGroup, TaggedRecord

logger = logging.getLogger(__name__)


def group_records(records: list[TaggedRecord]) -> list[IdentityGroup]:
    """Group records into identity groups.

    Records from collection folders are skipped; the caller copies those
    as-is.

    Returns:
        ID groups in creation order (with merged name groups appended to
        their members), followed by unmerged name groups in creation order.
    """
    id_groups: dict[str, list[TaggedRecord]] = {}
    name_groups: dict[str, list[TaggedRecord]] = {}

    for record in records:
        if record.collection:
            continue
        if record.has_catalog_id:
            id_groups.setdefault(record.catalog_id, []).append(record)
        else:
            name_groups.setdefault(record.normalized_name, []).append(record)

    # First ID group per normalized name of its first member
    id_key_by_name: dict[str, str] = {}
    for catalog_id, members in id_groups.items():
        id_key_by_name.setdefault(members[0].normalized_name, catalog_id)

    merged: dict[str, list[TaggedRecord]] = {
        catalog_id: list(members) for catalog_id, members in id_groups.items()
    }
    standalone: list[IdentityGroup] = []
    merge_count = 0

    for normalized_name, members in name_groups.items():
        catalog_id = id_key_by_name.get(normalized_name)
        if catalog_id is not None:
            merged[catalog_id].extend(members)
            merge_count += 1
        else:
            standalone.append(IdentityGroup(key=f"name:{normalized_name}", records=members))

    groups = [
        IdentityGroup(key=f"id:{catalog_id}", records=members)
        for catalog_id, members in merged.items()
    ]
    groups.extend(standalone)

    logger.debug(
        "Grouped %d records into %d groups (%d by ID, %d by name, %d name groups merged)",
        sum(len(g) for g in groups),
        len(groups),
        len(merged),
        len(standalone),
        merge_count,
    )
    return groups
