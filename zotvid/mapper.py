from __future__ import annotations

import math
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from zotvid.config import (
    ARCHIVE,
    ARCHIVE_LOCATION_PREFIX,
    ESOVDB,
    FIELDS,
    ITEM_TYPE,
    SERIES_PARENT_COLLECTION,
    TOPIC_COLLECTIONS,
)
from zotvid.errors import CollectionCreateFailed, ReconciliationFailed
from zotvid.output import Reporter

UNKNOWN_SURNAME = "Unknown"

EXTRA_FIELDS = (
    ("topic", "Topic"),
    ("location", "Location"),
    ("plusCode", "Plus Code"),
    ("learnMore", "Learn More"),
)


def _is_null(v: Any) -> bool:
    if v is None:
        return True
    if isinstance(v, float) and math.isnan(v):
        return True
    if isinstance(v, str):
        return v.strip() == ""
    if isinstance(v, (list, dict, tuple)):
        return False
    try:
        return bool(pd.isna(v))
    except (TypeError, ValueError):
        return False


def _value(video: Mapping[str, Any], field: str, default: Any = "") -> Any:
    v = video.get(field)
    return default if _is_null(v) else v


def format_creators(presenters: Optional[Iterable[Mapping[str, Any]]]) -> List[Dict[str, str]]:
    """Map ESOVDB presenters to Zotero contributor entries.

    Presenters with the "Unknown" surname are dropped. A presenter missing a
    first or last name becomes a single-field ``name`` entry.
    """
    creators: List[Dict[str, str]] = []
    for presenter in presenters or []:
        first = _value(presenter, "firstName")
        last = _value(presenter, "lastName")
        if last == UNKNOWN_SURNAME:
            continue
        if not first and not last:
            continue
        if not first or not last:
            creators.append({"creatorType": "contributor", "name": str(first or last)})
        else:
            creators.append({"creatorType": "contributor", "firstName": str(first), "lastName": str(last)})
    return creators


def build_extra(video: Mapping[str, Any]) -> str:
    lines = []
    for field, label in EXTRA_FIELDS:
        v = _value(video, field)
        if v:
            lines.append(f"{label}: {v}")
    return "\n".join(lines)


def topic_collection(topic: Any) -> Optional[str]:
    if _is_null(topic):
        return None
    return TOPIC_COLLECTIONS.get(str(topic).strip())


def archive_location(record_id: str) -> str:
    return f"{ARCHIVE_LOCATION_PREFIX}{record_id}"


class SeriesResolver:
    """Resolve ESOVDB series to Zotero collection keys for one run.

    The cache maps series name -> collection key. A series seen for the first
    time without a key gets a new collection under the series parent, and the
    key is written back to the series record so later runs reuse it. Callers
    must resolve records one at a time so a series is only created once.
    """

    def __init__(
        self,
        create_collection: Callable[[str, Optional[str]], str],
        write_back: Optional[Callable[[str, List[Dict[str, Any]]], int]] = None,
        *,
        parent: Optional[str] = SERIES_PARENT_COLLECTION,
        series_table: str = ESOVDB["SERIES_TABLE"],
        cache: Optional[Dict[str, str]] = None,
        reporter: Optional[Reporter] = None,
    ):
        self._create = create_collection
        self._write_back = write_back
        self.parent = parent
        self.series_table = series_table
        self.cache: Dict[str, str] = cache if cache is not None else {}
        self.created: List[str] = []
        self.reporter = reporter or Reporter(silent=True)

    def seed(self, videos: Iterable[Mapping[str, Any]]) -> None:
        for video in videos:
            name = _value(video, "series")
            key = _value(video, "zoteroSeries")
            if name and key:
                self.cache.setdefault(str(name), str(key))

    def resolve(self, video: Mapping[str, Any]) -> Optional[str]:
        name = _value(video, "series")
        if not name:
            return None
        name = str(name)
        known = _value(video, "zoteroSeries")
        if known:
            self.cache.setdefault(name, str(known))
            return self.cache[name]
        if name in self.cache:
            return self.cache[name]

        try:
            key = self._create(name, self.parent)
        except CollectionCreateFailed as e:
            self.reporter.error(f"Couldn't create collection for series '{name}': {e}")
            return None

        self.cache[name] = key
        self.created.append(key)
        self.reporter.success(f"Created collection '{name}' ({key}).")

        series_id = _value(video, "seriesId")
        if self._write_back and series_id:
            update = [{"id": str(series_id), "fields": {FIELDS["ZOTERO_KEY"]: key}}]
            try:
                self._write_back(self.series_table, update)
            except ReconciliationFailed as e:
                self.reporter.warn(f"Couldn't save collection key for series '{name}': {e}")
        return key


def format_item(
    video: Mapping[str, Any],
    template: Mapping[str, Any],
    series: Optional[SeriesResolver] = None,
) -> Dict[str, Any]:
    """Build a Zotero videoRecording payload from an ESOVDB record.

    A record that already carries both a Zotero key and version becomes an
    update of that item; otherwise neither is set and the item is created.
    """
    collections: List[str] = []
    topic_key = topic_collection(video.get("topic"))
    if topic_key:
        collections.append(topic_key)
    if series is not None:
        series_key = series.resolve(video)
        if series_key and series_key not in collections:
            collections.append(series_key)

    vol = _value(video, "vol")
    no = _value(video, "no")
    series_count = _value(video, "seriesCount", 0)
    try:
        series_count = int(series_count)
    except (TypeError, ValueError):
        series_count = 0

    item: Dict[str, Any] = {
        **template,
        "itemType": ITEM_TYPE,
        "title": _value(video, "title"),
        "creators": format_creators(video.get("presenters")),
        "abstractNote": _value(video, "desc"),
        "videoRecordingFormat": _value(video, "format"),
        "seriesTitle": _value(video, "series"),
        "volume": ":".join(str(v) for v in (vol, no) if v != ""),
        "numberOfVolumes": str(series_count) if series_count > 1 else "",
        "place": _value(video, "provider"),
        "studio": _value(video, "publisher"),
        "date": str(_value(video, "year")),
        "runningTime": _value(video, "runningTime"),
        "language": _value(video, "language"),
        "ISBN": "",
        "shortTitle": "",
        "url": _value(video, "url"),
        "accessDate": _value(video, "accessDate"),
        "archive": ARCHIVE,
        "archiveLocation": archive_location(str(video.get("recordId", ""))),
        "libraryCatalog": "",
        "callNumber": _value(video, "esovdbId"),
        "rights": "",
        "extra": build_extra(video),
        "tags": [],
        "collections": collections,
        "relations": {},
    }

    # Template never carries identity; key and version travel together or not at all
    item.pop("key", None)
    item.pop("version", None)
    key = _value(video, "zoteroKey")
    version = _value(video, "zoteroVersion")
    try:
        version = int(version)
    except (TypeError, ValueError):
        version = None
    if key and version is not None:
        item["key"] = str(key)
        item["version"] = version
    return item


def format_items(
    videos: Iterable[Mapping[str, Any]],
    template: Mapping[str, Any],
    series: Optional[SeriesResolver] = None,
) -> List[Dict[str, Any]]:
    # One record at a time so a series created for one record is reused by the next
    return [format_item(video, template, series) for video in videos]
