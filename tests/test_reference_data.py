from __future__ import annotations

import json
from collections import Counter
from typing import Dict

import pytest

from fixology_chat.reference_data import DATASET_FILES, ReferenceDataCache, file_reader

from .conftest import DATA_DIR


class CountingReader:
    def __init__(self, documents: Dict[str, object], failures: int = 0) -> None:
        self.documents = documents
        self.failures = failures
        self.reads: Counter = Counter()

    def __call__(self, name: str) -> bytes:
        self.reads[name] += 1
        if self.failures > 0:
            self.failures -= 1
            raise OSError("storage unavailable")
        if name not in self.documents:
            raise FileNotFoundError(name)
        return json.dumps(self.documents[name]).encode("utf-8")


def test_second_get_is_served_from_memory() -> None:
    reader = CountingReader({"devices": {"total_models": 3}})
    cache = ReferenceDataCache(reader)

    first = cache.get("devices")
    second = cache.get("devices")

    assert first == {"total_models": 3}
    assert second is first
    assert reader.reads["devices"] == 1


def test_failed_load_is_not_cached() -> None:
    reader = CountingReader({"rewards": {"tiers": []}}, failures=1)
    cache = ReferenceDataCache(reader)

    assert cache.get("rewards") is None
    assert not cache.is_loaded("rewards")
    assert cache.get("rewards") == {"tiers": []}
    assert reader.reads["rewards"] == 2


def test_invalid_json_returns_none() -> None:
    cache = ReferenceDataCache(lambda name: b"{not json")
    assert cache.get("pricing") is None


def test_utf8_bom_is_accepted() -> None:
    cache = ReferenceDataCache(lambda name: b"\xef\xbb\xbf" + b'{"plans": []}')
    assert cache.get("pricing") == {"plans": []}


def test_unknown_dataset_name() -> None:
    cache = ReferenceDataCache(CountingReader({}))
    with pytest.raises(KeyError):
        cache.get("shops")


@pytest.mark.asyncio
async def test_load_all_keeps_going_when_one_dataset_fails() -> None:
    reader = CountingReader({"devices": {"a": 1}, "symptoms": {"b": 2}, "pricing": {"c": 3}})
    cache = ReferenceDataCache(reader)

    data = await cache.load_all()

    assert data.devices == {"a": 1}
    assert data.symptoms == {"b": 2}
    assert data.pricing == {"c": 3}
    assert data.rewards is None
    assert data.present() == ["devices", "symptoms", "pricing"]

    await cache.load_all()
    assert reader.reads["devices"] == 1
    assert reader.reads["rewards"] == 2


def test_packaged_datasets_parse() -> None:
    cache = ReferenceDataCache(file_reader(DATA_DIR))
    for name in DATASET_FILES:
        assert isinstance(cache.get(name), dict)
