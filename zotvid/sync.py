from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from zotvid import esovdb, zotero
from zotvid.batch import RunSummary, submit_items
from zotvid.config import DEFAULTS, ESOVDB, SERIES_PARENT_COLLECTION, TABLE_NAMES
from zotvid.errors import ChunkSubmitFailed, ReconciliationFailed, SourceUnavailable, ZotvidError
from zotvid.mapper import SeriesResolver, format_items
from zotvid.output import Reporter, plural
from zotvid.reconcile import sync_updates


class RunState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    RAW_DUMP = "raw_dump"
    MAPPING = "mapping"
    SUBMITTING = "submitting"
    RECONCILING = "reconciling"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class SyncOptions:
    max_records: Optional[int] = None
    page_size: Optional[int] = None
    chunk_size: int = DEFAULTS["CHUNK_SIZE"]
    wait_secs: float = DEFAULTS["WAIT_SECS"]
    created_after: Optional[str] = None
    modified_after: Optional[str] = None
    raw_json: bool = False
    dump_path: str = DEFAULTS["DUMP_PATH"]
    failed_path: Optional[str] = DEFAULTS["FAILED_PATH"]


@dataclass
class SyncResult:
    state: RunState
    fetched: int = 0
    summary: RunSummary = field(default_factory=RunSummary)
    reconciled: int = 0
    dump_path: Optional[str] = None


def write_dump(videos: List[Dict[str, Any]], path: str) -> None:
    folder = os.path.dirname(path)
    if folder:
        os.makedirs(folder, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(videos, f, ensure_ascii=False)


def _table_label(table: str) -> str:
    return TABLE_NAMES.get(table, table)


class SyncRun:
    """One ESOVDB -> Zotero sync.

    Walks idle -> fetching -> (raw_dump | mapping -> submitting ->
    reconciling) -> done. Any fatal error moves the run to aborted and is
    re-raised to the caller.
    """

    def __init__(
        self,
        options: SyncOptions,
        esovdb_cfg: esovdb.EsovdbConfig,
        zotero_cfg: Optional[zotero.ZoteroConfig] = None,
        *,
        reporter: Optional[Reporter] = None,
        sleep: Callable[[float], None] = time.sleep,
        videos_table: str = ESOVDB["VIDEOS_TABLE"],
        series_table: str = ESOVDB["SERIES_TABLE"],
    ):
        self.options = options
        self.esovdb_cfg = esovdb_cfg
        self.zotero_cfg = zotero_cfg
        self.reporter = reporter or Reporter()
        self.sleep = sleep
        self.videos_table = videos_table
        self.series_table = series_table
        self.state = RunState.IDLE
        self.series_cache: Dict[str, str] = {}

    def run(self) -> SyncResult:
        try:
            return self._run()
        except ZotvidError:
            self.state = RunState.ABORTED
            raise

    def _describe_filter(self, filt: esovdb.ListFilter) -> str:
        parts = [
            f"Retrieving {filt.max_records if filt.max_records else 'all'} videos",
            f"{filt.page_size or DEFAULTS['PAGE_SIZE']} per page",
        ]
        if filt.modified_after:
            parts.append(f"modified after {filt.modified_after}")
        elif filt.created_after:
            parts.append(f"created after {filt.created_after}")
        return ", ".join(parts) + "..."

    def _run(self) -> SyncResult:
        opts = self.options
        self.state = RunState.FETCHING
        filt = esovdb.ListFilter(
            max_records=opts.max_records,
            page_size=opts.page_size,
            created_after=opts.created_after,
            modified_after=opts.modified_after,
        )
        if filt.has_date_conflict:
            self.reporter.warn("Both created-after and modified-after given; using modified-after only.")
        self.reporter.info(self._describe_filter(filt))
        videos = esovdb.list_videos(self.esovdb_cfg, filt, table=self.videos_table)
        self.reporter.success(f"Successfully retrieved {plural(len(videos), 'video')}.")

        if opts.raw_json:
            self.state = RunState.RAW_DUMP
            write_dump(videos, opts.dump_path)
            self.reporter.success(f"Wrote {plural(len(videos), 'video')} to {opts.dump_path}.")
            return SyncResult(state=self.state, fetched=len(videos), dump_path=opts.dump_path)

        if not videos:
            raise SourceUnavailable("No videos retrieved.")
        if self.zotero_cfg is None:
            raise ZotvidError("Zotero is not configured.")

        self.state = RunState.MAPPING
        self.reporter.info("Retrieving template from Zotero...")
        template = zotero.get_template(self.zotero_cfg)
        self.reporter.success("Successfully retrieved template.")

        resolver = SeriesResolver(
            lambda name, parent: zotero.create_collection(self.zotero_cfg, name, parent),
            lambda table, updates: esovdb.update_records(self.esovdb_cfg, table, updates),
            parent=SERIES_PARENT_COLLECTION,
            series_table=self.series_table,
            cache=self.series_cache,
            reporter=self.reporter,
        )
        resolver.seed(videos)
        items = format_items(videos, template, resolver)

        self.state = RunState.SUBMITTING
        try:
            summary = submit_items(
                lambda chunk: zotero.post_items(self.zotero_cfg, chunk),
                items,
                opts.chunk_size,
                opts.wait_secs,
                failed_path=opts.failed_path,
                reporter=self.reporter,
                sleep=self.sleep,
            )
        except ChunkSubmitFailed as e:
            if e.summary is not None and e.summary.successful:
                self.reporter.warn("Zotero write failed; re-syncing items added so far before stopping.")
                self._reconcile(e.summary)
            raise

        reconciled = 0
        if summary.successful:
            reconciled = self._reconcile(summary)

        self.state = RunState.DONE
        counts = summary.counts()
        self.reporter.success(
            f"Added or updated {plural(counts['successful'], 'item')} in Zotero from the ESOVDB "
            f"({counts['unchanged']} unchanged, {counts['failed']} failed); "
            f"{plural(reconciled, 'record')} re-synced."
        )
        return SyncResult(state=self.state, fetched=len(videos), summary=summary, reconciled=reconciled)

    def _reconcile(self, summary: RunSummary) -> int:
        self.state = RunState.RECONCILING
        label = _table_label(self.videos_table)
        self.reporter.info(f"Updating Zotero keys and versions in ESOVDB table '{label}'...")
        try:
            updated = sync_updates(
                lambda table, updates: esovdb.update_records(self.esovdb_cfg, table, updates),
                summary.successful,
                table=self.videos_table,
            )
        except ReconciliationFailed as e:
            self.reporter.error(f"Couldn't re-sync Zotero keys with the ESOVDB: {e}")
            return 0
        self.reporter.success(f"Updated {plural(updated, 'record')} in '{label}'.")
        return updated
