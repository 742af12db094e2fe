from __future__ import annotations

from typing import List, Optional

import pytest

from zotvid.config import ARCHIVE_LOCATION_PREFIX, TOPIC_COLLECTIONS
from zotvid.errors import CollectionCreateFailed, ReconciliationFailed
from zotvid.mapper import SeriesResolver, build_extra, format_creators, format_item, format_items

TEMPLATE = {"itemType": "videoRecording", "title": "", "creators": [], "tags": [], "collections": [], "relations": {}}


def _video(**kw):
    base = {
        "recordId": "recAAAAAAAAAAAAAA",
        "esovdbId": "1234",
        "title": "Plate Tectonics 101",
        "desc": "Intro lecture",
        "presenters": [{"firstName": "Ada", "lastName": "Lovelace"}],
        "format": "Lecture",
        "year": 2019,
        "url": "https://youtu.be/x",
    }
    base.update(kw)
    return base


def test_unknown_presenters_dropped_and_partial_names_merged():
    creators = format_creators([
        {"firstName": "Ada", "lastName": "Lovelace"},
        {"firstName": "Somebody", "lastName": "Unknown"},
        {"firstName": "Cher"},
        {"lastName": "Plato"},
        {},
    ])
    assert creators == [
        {"creatorType": "contributor", "firstName": "Ada", "lastName": "Lovelace"},
        {"creatorType": "contributor", "name": "Cher"},
        {"creatorType": "contributor", "name": "Plato"},
    ]


def test_missing_presenters_give_no_creators():
    assert format_creators(None) == []
    assert format_item(_video(presenters=[]), TEMPLATE)["creators"] == []


def test_extra_lines_in_order_skipping_blanks():
    extra = build_extra({"topic": "Plate Tectonics", "location": "  ", "plusCode": "8FVC9G8F+6X", "learnMore": "https://x"})
    assert extra == "Topic: Plate Tectonics\nPlus Code: 8FVC9G8F+6X\nLearn More: https://x"
    assert build_extra({}) == ""


def test_unmapped_topic_gives_no_collections():
    item = format_item(_video(topic="Underwater Basket Weaving"), TEMPLATE)
    assert item["collections"] == []


def test_mapped_topic_gives_its_collection():
    item = format_item(_video(topic="Plate Tectonics"), TEMPLATE)
    assert item["collections"] == [TOPIC_COLLECTIONS["Plate Tectonics"]]


def test_payload_fields():
    item = format_item(_video(vol=2, no=5, seriesCount=12, series="Deep Time", provider="YouTube"), TEMPLATE)
    assert item["itemType"] == "videoRecording"
    assert item["archiveLocation"] == ARCHIVE_LOCATION_PREFIX + "recAAAAAAAAAAAAAA"
    assert item["volume"] == "2:5"
    assert item["numberOfVolumes"] == "12"
    assert item["seriesTitle"] == "Deep Time"
    assert item["place"] == "YouTube"
    assert item["date"] == "2019"
    assert item["callNumber"] == "1234"
    single = format_item(_video(no=3, seriesCount=1), TEMPLATE)
    assert single["volume"] == "3"
    assert single["numberOfVolumes"] == ""


def test_key_and_version_travel_together():
    update = format_item(_video(zoteroKey="ABCD1234", zoteroVersion=7), TEMPLATE)
    assert update["key"] == "ABCD1234" and update["version"] == 7

    for partial in (_video(zoteroKey="ABCD1234"), _video(zoteroVersion=7), _video()):
        item = format_item(partial, {**TEMPLATE, "key": "STALE", "version": 1})
        assert "key" not in item and "version" not in item


class _Collections:
    def __init__(self, fail: bool = False):
        self.calls: List[tuple] = []
        self.fail = fail

    def __call__(self, name: str, parent: Optional[str]) -> str:
        self.calls.append((name, parent))
        if self.fail:
            raise CollectionCreateFailed("nope")
        return f"COLL{len(self.calls):04d}"


def test_series_collection_created_once_per_run():
    create = _Collections()
    writes = []
    resolver = SeriesResolver(create, lambda table, updates: writes.append((table, updates)) or 1, parent="PARENT01")
    videos = [
        _video(recordId="recAAAAAAAAAAAAA1", series="Deep Time", seriesId="recSERIESAAAAAAA"),
        _video(recordId="recAAAAAAAAAAAAA2", series="Deep Time", seriesId="recSERIESAAAAAAA"),
        _video(recordId="recAAAAAAAAAAAAA3"),
    ]
    items = format_items(videos, TEMPLATE, resolver)

    assert create.calls == [("Deep Time", "PARENT01")]
    assert items[0]["collections"] == ["COLL0001"]
    assert items[1]["collections"] == ["COLL0001"]
    assert items[2]["collections"] == []
    assert writes == [("series", [{"id": "recSERIESAAAAAAA", "fields": {"Zotero Key": "COLL0001"}}])]
    assert resolver.cache == {"Deep Time": "COLL0001"}


def test_known_series_key_reused_without_create():
    create = _Collections()
    resolver = SeriesResolver(create)
    resolver.seed([_video(series="Deep Time", zoteroSeries="KNOWN001")])
    item = format_item(_video(series="Deep Time"), TEMPLATE, resolver)
    assert item["collections"] == ["KNOWN001"]
    assert create.calls == []


def test_series_create_failure_degrades_to_no_membership():
    resolver = SeriesResolver(_Collections(fail=True))
    item = format_item(_video(series="Deep Time", topic="Plate Tectonics"), TEMPLATE, resolver)
    assert item["collections"] == [TOPIC_COLLECTIONS["Plate Tectonics"]]


def test_series_write_back_failure_keeps_key():
    def write_back(table, updates):
        raise ReconciliationFailed("proxy down")

    create = _Collections()
    resolver = SeriesResolver(create, write_back)
    a = format_item(_video(series="Deep Time", seriesId="recSERIESAAAAAAA"), TEMPLATE, resolver)
    b = format_item(_video(series="Deep Time", seriesId="recSERIESAAAAAAA"), TEMPLATE, resolver)
    assert a["collections"] == b["collections"] == ["COLL0001"]
    assert len(create.calls) == 1


@pytest.mark.parametrize("value", [None, float("nan"), "", "   "])
def test_blank_values_become_empty_strings(value):
    item = format_item(_video(desc=value, language=value), TEMPLATE)
    assert item["abstractNote"] == ""
    assert item["language"] == ""


def test_unparseable_version_drops_key_too():
    item = format_item(_video(zoteroKey="ABCD1234", zoteroVersion="v3"), TEMPLATE)
    assert "key" not in item and "version" not in item
    item = format_item(_video(zoteroKey="ABCD1234", zoteroVersion="3"), TEMPLATE)
    assert item["key"] == "ABCD1234" and item["version"] == 3


def test_volume_without_number():
    assert format_item(_video(vol=2), TEMPLATE)["volume"] == "2"
    assert format_item(_video(), TEMPLATE)["volume"] == ""
