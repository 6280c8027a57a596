"""テスト共通フィクスチャ."""

import pytest

from launchfeed.db import MemoryStore


@pytest.fixture
def store() -> MemoryStore:
    """空のインメモリストア."""
    return MemoryStore()
