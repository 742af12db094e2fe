from __future__ import annotations

import types
from datetime import datetime
from typing import Any

import pytest
import requests

import zotvid.esovdb as mod
from zotvid.errors import ReconciliationFailed, SourceUnavailable


class _Resp:
    def __init__(self, status: int, payload: Any):
        self.status_code = status
        self._payload = payload
        self.text = str(payload)

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise RuntimeError(f"HTTP {self.status_code}")


CFG = mod.EsovdbConfig(base_url="https://proxy.example/esovdb/")


def test_page_size_is_clamped_and_blank_max_dropped():
    params = mod.build_list_params(mod.ListFilter(max_records=0, page_size=500))
    assert params == {"pageSize": 100}
    params = mod.build_list_params(mod.ListFilter(max_records=9, page_size=0))
    assert params == {"maxRecords": 9, "pageSize": 1}


def test_modified_after_wins_over_created_after():
    filt = mod.ListFilter(created_after="1/1/2020, 12:00:00 AM", modified_after="2/1/2020, 12:00:00 AM")
    assert filt.has_date_conflict
    params = mod.build_list_params(filt)
    assert params == {"modifiedAfter": "2/1/2020, 12:00:00 AM"}


def test_single_date_filters_are_sent_as_given():
    assert mod.build_list_params(mod.ListFilter(created_after="x")) == {"createdAfter": "x"}
    assert mod.build_list_params(mod.ListFilter(modified_after="y")) == {"modifiedAfter": "y"}
    assert mod.build_list_params(mod.ListFilter()) == {}


def test_parse_date_filter_renders_locale_string():
    assert mod.parse_date_filter("2020-12-31 00:00") == "12/31/2020, 12:00:00 AM"
    assert mod.parse_date_filter("2021-03-05 13:07:09") == "3/5/2021, 1:07:09 PM"
    assert mod.parse_date_filter("2021-03-05 12:30") == "3/5/2021, 12:30:00 PM"


def test_parse_date_filter_falls_back_to_now():
    now = datetime(2022, 1, 2, 3, 4, 5)
    assert mod.parse_date_filter("not a date", now=now) == "1/2/2022, 3:04:05 AM"


def test_list_videos_hits_list_endpoint(monkeypatch):
    calls = []

    def get(url, headers=None, params=None, timeout=None):
        calls.append((url, params, headers))
        return _Resp(200, [{"recordId": "rec1"}, {"recordId": "rec2"}])

    monkeypatch.setattr(mod, "requests", types.SimpleNamespace(get=get))
    videos = mod.list_videos(CFG, mod.ListFilter(max_records=2, page_size=150))
    assert [v["recordId"] for v in videos] == ["rec1", "rec2"]
    url, params, headers = calls[0]
    assert url == "https://proxy.example/esovdb/videos/list"
    assert params == {"maxRecords": 2, "pageSize": 100}
    assert headers["User-Agent"].startswith("zotvid/")


def test_list_videos_http_error_is_source_unavailable(monkeypatch):
    monkeypatch.setattr(mod, "requests", types.SimpleNamespace(get=lambda *a, **k: _Resp(502, "bad gateway")))
    with pytest.raises(SourceUnavailable, match="HTTP 502"):
        mod.list_videos(CFG, mod.ListFilter())


def test_list_videos_transport_error_is_source_unavailable(monkeypatch):
    def get(*a, **k):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(mod, "requests", types.SimpleNamespace(get=get))
    with pytest.raises(SourceUnavailable, match="refused"):
        mod.list_videos(CFG, mod.ListFilter())


def test_update_records_posts_batch(monkeypatch):
    sent = {}

    def post(url, headers=None, json=None, timeout=None):
        sent["url"] = url
        sent["body"] = json
        return _Resp(200, json)

    monkeypatch.setattr(mod, "requests", types.SimpleNamespace(post=post))
    updates = [{"id": "recA", "fields": {"Zotero Key": "K1"}}, {"id": "recB", "fields": {"Zotero Key": "K2"}}]
    assert mod.update_records(CFG, "videos", updates) == 2
    assert sent["url"] == "https://proxy.example/esovdb/videos/update"
    assert sent["body"] == updates


def test_update_records_empty_reply_fails(monkeypatch):
    monkeypatch.setattr(mod, "requests", types.SimpleNamespace(post=lambda *a, **k: _Resp(200, [])))
    with pytest.raises(ReconciliationFailed):
        mod.update_records(CFG, "videos", [{"id": "recA", "fields": {}}])


def test_update_records_nothing_to_send_skips_request(monkeypatch):
    def post(*a, **k):
        raise AssertionError("should not be called")

    monkeypatch.setattr(mod, "requests", types.SimpleNamespace(post=post))
    assert mod.update_records(CFG, "videos", []) == 0


class _NotJson(_Resp):
    def json(self):
        raise ValueError("Expecting value: line 1 column 1 (char 0)")


def test_list_videos_invalid_json_is_source_unavailable(monkeypatch):
    monkeypatch.setattr(mod, "requests", types.SimpleNamespace(get=lambda *a, **k: _NotJson(200, "")))
    with pytest.raises(SourceUnavailable, match="invalid JSON"):
        mod.list_videos(CFG, mod.ListFilter())


def test_update_records_invalid_json_is_reconciliation_failure(monkeypatch):
    monkeypatch.setattr(mod, "requests", types.SimpleNamespace(post=lambda *a, **k: _NotJson(200, "")))
    with pytest.raises(ReconciliationFailed, match="invalid JSON"):
        mod.update_records(CFG, "videos", [{"id": "recA", "fields": {}}])
