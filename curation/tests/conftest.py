"""Shared fixtures for the curation core tests."""

import pytest

from curation.parser import build_record
from curation.records import GameMetadata, Preferences


@pytest.fixture
def preferences():
    """Default preferences: USA, World, Europe, Australia / En."""
    return Preferences()


@pytest.fixture
def make_record():
    """Factory for tagged records, optionally with a catalog entry."""

    def _make_record(filename, catalog_id=None, catalog_name=None, collection=None, size=0):
        metadata = None
        if catalog_id is not None or catalog_name is not None:
            metadata = GameMetadata(path=f"./{filename}", id=catalog_id, name=catalog_name)
        return build_record(
            filename,
            full_path=f"/roms/test/{filename}",
            file_size=size,
            metadata=metadata,
            collection=collection,
        )

    return _make_record
