from __future__ import annotations

import re
from typing import Any, Callable, Dict, List, Optional

from zotvid.config import ESOVDB, FIELDS

RECORD_ID_RE = re.compile(r"(rec[A-Za-z0-9]{14})/?$")


def extract_record_id(location: Any) -> Optional[str]:
    """Return the ESOVDB record id at the end of an archiveLocation URL."""
    if not isinstance(location, str):
        return None
    m = RECORD_ID_RE.search(location.strip())
    return m.group(1) if m else None


def plan_updates(successful: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Compute {id, fields} updates carrying each item's Zotero key and version.

    Items whose archiveLocation does not end in a record id are skipped. Does
    not perform any network I/O.
    """
    updates: Dict[str, Dict[str, Any]] = {}
    for item in successful:
        data = item.get("data") or {}
        payload = item.get("payload") or {}
        rid = extract_record_id(data.get("archiveLocation") or payload.get("archiveLocation"))
        key = item.get("key") or data.get("key")
        version = item.get("version", data.get("version"))
        if not rid or not key or version is None:
            continue
        # Last write wins if the same record shows up twice
        updates[rid] = {
            "id": rid,
            "fields": {FIELDS["ZOTERO_KEY"]: key, FIELDS["ZOTERO_VERSION"]: version},
        }
    return list(updates.values())


def sync_updates(
    update: Callable[[str, List[Dict[str, Any]]], int],
    successful: List[Dict[str, Any]],
    *,
    table: str = ESOVDB["VIDEOS_TABLE"],
) -> int:
    """Write Zotero keys/versions back to the ESOVDB in one batched call.

    Returns the number of records updated.
    """
    updates = plan_updates(successful)
    if not updates:
        return 0
    return update(table, updates)
