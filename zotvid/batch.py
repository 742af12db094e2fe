from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from zotvid.config import DEFAULTS
from zotvid.errors import ChunkSubmitFailed
from zotvid.output import Reporter, plural


@dataclass
class OutcomeSet:
    """Per-item outcome of one bulk write.

    Each entry keeps the submitted payload next to what Zotero said about it:
    ``successful`` entries carry ``key``, ``version`` and the echoed ``data``,
    ``unchanged`` entries carry ``key``, ``failed`` entries carry ``code`` and
    ``message``.
    """

    successful: List[Dict[str, Any]] = field(default_factory=list)
    unchanged: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.successful) + len(self.unchanged) + len(self.failed)


@dataclass
class RunSummary:
    successful: List[Dict[str, Any]] = field(default_factory=list)
    unchanged: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)
    chunks: int = 0

    def add(self, outcome: OutcomeSet) -> None:
        self.successful.extend(outcome.successful)
        self.unchanged.extend(outcome.unchanged)
        self.failed.extend(outcome.failed)
        self.chunks += 1

    @property
    def total(self) -> int:
        return len(self.successful) + len(self.unchanged) + len(self.failed)

    def counts(self) -> Dict[str, int]:
        return {
            "successful": len(self.successful),
            "unchanged": len(self.unchanged),
            "failed": len(self.failed),
        }


def chunked(items: Sequence[Any], size: int) -> List[List[Any]]:
    if size < 1:
        raise ValueError(f"chunk size must be >= 1, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def _as_index_map(value: Any) -> Dict[int, Any]:
    if not value:
        return {}
    if isinstance(value, dict):
        return {int(k): v for k, v in value.items()}
    if isinstance(value, list):
        return dict(enumerate(value))
    raise ChunkSubmitFailed(f"Unexpected write response section: {str(value)[:200]}")


def partition_response(chunk: Sequence[Dict[str, Any]], response: Dict[str, Any]) -> OutcomeSet:
    """Split a Zotero write response into successful/unchanged/failed outcomes.

    Every submitted item lands in exactly one bucket. An item the response
    reports twice is an error; an item it does not report at all is counted as
    failed.
    """
    successful = _as_index_map(response.get("successful"))
    unchanged = _as_index_map(response.get("unchanged"))
    failed = _as_index_map(response.get("failed"))

    seen: Dict[int, str] = {}
    for bucket, entries in (("successful", successful), ("unchanged", unchanged), ("failed", failed)):
        for idx in entries:
            if idx < 0 or idx >= len(chunk):
                raise ChunkSubmitFailed(f"Write response refers to item {idx}, chunk has {len(chunk)}")
            if idx in seen:
                raise ChunkSubmitFailed(f"Item {idx} reported as both {seen[idx]} and {bucket}")
            seen[idx] = bucket

    outcome = OutcomeSet()
    for idx, payload in enumerate(chunk):
        if idx in successful:
            res = successful[idx] or {}
            outcome.successful.append({
                "index": idx,
                "payload": payload,
                "key": res.get("key"),
                "version": res.get("version"),
                "data": res.get("data") or {},
            })
        elif idx in unchanged:
            outcome.unchanged.append({"index": idx, "payload": payload, "key": unchanged[idx]})
        elif idx in failed:
            res = failed[idx] or {}
            outcome.failed.append({
                "index": idx,
                "payload": payload,
                "key": res.get("key"),
                "code": res.get("code"),
                "message": res.get("message"),
            })
        else:
            outcome.failed.append({
                "index": idx,
                "payload": payload,
                "key": None,
                "code": None,
                "message": "missing from write response",
            })
    return outcome


def write_failed(failed: List[Dict[str, Any]], path: str) -> None:
    folder = os.path.dirname(path)
    if folder:
        os.makedirs(folder, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(failed, f, indent=2, ensure_ascii=False)


def submit_items(
    post: Callable[[List[Dict[str, Any]]], Dict[str, Any]],
    items: Sequence[Dict[str, Any]],
    chunk_size: int = DEFAULTS["CHUNK_SIZE"],
    wait_secs: float = DEFAULTS["WAIT_SECS"],
    *,
    failed_path: Optional[str] = DEFAULTS["FAILED_PATH"],
    reporter: Optional[Reporter] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RunSummary:
    """Submit items in order, ``chunk_size`` at a time, pausing between chunks.

    ``post`` performs one bulk write and returns the raw response. A transport
    failure stops the run with ChunkSubmitFailed carrying the summary so far.
    Failed items are written to ``failed_path`` for inspection.
    """
    reporter = reporter or Reporter(silent=True)
    chunk_size = max(1, min(DEFAULTS["MAX_CHUNK_SIZE"], int(chunk_size)))
    chunks = chunked(items, chunk_size)
    summary = RunSummary()
    queue = len(items)

    for i, chunk in enumerate(chunks):
        start = i * chunk_size + 1
        end = start + len(chunk) - 1
        span = f"{start}-{end}" if len(chunk) > 1 else f"{start}"
        reporter.info(f"Adding item{'s' if len(chunk) > 1 else ''} {span} of {queue} total to Zotero...")

        try:
            outcome = partition_response(chunk, post(chunk))
        except ChunkSubmitFailed as e:
            e.summary = summary
            raise
        summary.add(outcome)

        if outcome.successful:
            reporter.success(f"Successfully added {plural(len(outcome.successful), 'item')}.")
        if outcome.unchanged:
            reporter.info(f"{plural(len(outcome.unchanged), 'item')} unchanged.")
        if outcome.failed:
            reporter.error(f"Failed to add {plural(len(outcome.failed), 'item')}.")
            if failed_path:
                write_failed(summary.failed, failed_path)

        if i < len(chunks) - 1:
            sleep(wait_secs)

    return summary
