from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd
import requests
from requests import RequestException

from zotvid.config import DEFAULTS, ESOVDB, USER_AGENT
from zotvid.errors import ReconciliationFailed, SourceUnavailable


@dataclass
class EsovdbConfig:
    base_url: str
    timeout: int = DEFAULTS["TIMEOUT"]

    @classmethod
    def from_env(cls) -> "EsovdbConfig":
        return cls(base_url=ESOVDB["BASE_URL"])

    def url(self, *segments: str) -> str:
        return "/".join([self.base_url.rstrip("/"), *[s.strip("/") for s in segments]])


@dataclass
class ListFilter:
    max_records: Optional[int] = None
    page_size: Optional[int] = None
    created_after: Optional[str] = None
    modified_after: Optional[str] = None

    @property
    def has_date_conflict(self) -> bool:
        return bool(self.created_after and self.modified_after)


def _headers() -> Dict[str, str]:
    return {"User-Agent": USER_AGENT}


def format_locale_datetime(ts: datetime) -> str:
    """Render a timestamp the way the proxy expects it, e.g. ``12/31/2020, 12:00:00 AM``."""
    hour = ts.hour % 12 or 12
    meridiem = "AM" if ts.hour < 12 else "PM"
    return f"{ts.month}/{ts.day}/{ts.year}, {hour}:{ts.minute:02d}:{ts.second:02d} {meridiem}"


def parse_date_filter(value: str, *, now: Optional[datetime] = None) -> str:
    """Parse a user-supplied date into a locale datetime string.

    Unparseable input falls back to the current time.
    """
    ts = pd.to_datetime(value, errors="coerce")
    if ts is None or pd.isna(ts):
        ts = now or datetime.now()
    else:
        ts = ts.to_pydatetime()
    return format_locale_datetime(ts)


def build_list_params(filt: ListFilter) -> Dict[str, Any]:
    """Build the query parameters for the videos list endpoint.

    - pageSize is clamped to 1..100.
    - Non-positive maxRecords is treated as "all records".
    - Only one date filter is ever sent; modifiedAfter wins over createdAfter.
    """
    params: Dict[str, Any] = {}
    if filt.max_records is not None and filt.max_records > 0:
        params["maxRecords"] = int(filt.max_records)
    if filt.page_size is not None:
        params["pageSize"] = max(1, min(DEFAULTS["MAX_PAGE_SIZE"], int(filt.page_size)))
    if filt.modified_after:
        params["modifiedAfter"] = filt.modified_after
    elif filt.created_after:
        params["createdAfter"] = filt.created_after
    return params


def list_videos(cfg: EsovdbConfig, filt: ListFilter, *, table: str = ESOVDB["VIDEOS_TABLE"]) -> List[Dict[str, Any]]:
    """Fetch video records from the ESOVDB proxy list endpoint.

    Returns the JSON array the proxy responds with (already paged through).
    """
    url = cfg.url(table, "list")
    try:
        resp = requests.get(url, headers=_headers(), params=build_list_params(filt), timeout=cfg.timeout)
    except RequestException as e:
        raise SourceUnavailable(f"ESOVDB request failed: {e}") from e
    if resp.status_code >= 400:
        raise SourceUnavailable(f"HTTP {resp.status_code}: {resp.text[:1000]}")
    try:
        payload = resp.json()
    except ValueError as e:
        raise SourceUnavailable(f"ESOVDB returned invalid JSON: {e}") from e
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise SourceUnavailable(f"Unexpected ESOVDB response: {str(payload)[:200]}")
    return payload


def update_records(cfg: EsovdbConfig, table: str, updates: List[Dict[str, Any]]) -> int:
    """Write {id, fields} updates to an ESOVDB table in a single batched call.

    Returns the number of records the proxy reports as updated.
    """
    if not updates:
        return 0
    url = cfg.url(table, "update")
    headers = {**_headers(), "Content-Type": "application/json"}
    try:
        resp = requests.post(url, headers=headers, json=updates, timeout=cfg.timeout)
    except RequestException as e:
        raise ReconciliationFailed(f"ESOVDB update failed: {e}") from e
    if resp.status_code >= 400:
        raise ReconciliationFailed(f"HTTP {resp.status_code}: {resp.text[:1000]}")
    try:
        payload = resp.json()
    except ValueError as e:
        raise ReconciliationFailed(f"ESOVDB update returned invalid JSON: {e}") from e
    if not payload:
        raise ReconciliationFailed(f"ESOVDB returned no updated records for table '{table}'")
    return len(payload) if isinstance(payload, list) else len(updates)
