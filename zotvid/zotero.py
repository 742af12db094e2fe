from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from requests import RequestException

from zotvid.config import DEFAULTS, ITEM_TYPE, USER_AGENT, ZOTERO
from zotvid.errors import ChunkSubmitFailed, CollectionCreateFailed, TemplateUnavailable


@dataclass
class ZoteroConfig:
    api_key: str
    user_id: str
    base_url: str = "https://api.zotero.org"
    timeout: int = DEFAULTS["TIMEOUT"]

    @classmethod
    def from_env(cls) -> "ZoteroConfig":
        return cls(api_key=ZOTERO["API_KEY"], user_id=ZOTERO["USER"], base_url=ZOTERO["BASE_URL"] or cls.base_url)

    @property
    def library_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/users/{self.user_id}"


def zotero_headers(cfg: ZoteroConfig, *, write: bool = False) -> Dict[str, str]:
    headers = {
        "Authorization": f"Bearer {cfg.api_key}",
        "Zotero-API-Version": "3",
        "User-Agent": USER_AGENT,
    }
    if write:
        headers["Content-Type"] = "application/json"
    return headers


def get_template(cfg: ZoteroConfig, item_type: str = ITEM_TYPE) -> Dict[str, Any]:
    """Fetch the blank item template for ``item_type``."""
    url = f"{cfg.base_url.rstrip('/')}/items/new"
    try:
        resp = requests.get(url, headers=zotero_headers(cfg), params={"itemType": item_type}, timeout=cfg.timeout)
    except RequestException as e:
        raise TemplateUnavailable(f"Zotero template request failed: {e}") from e
    if resp.status_code >= 400:
        raise TemplateUnavailable(f"HTTP {resp.status_code}: {resp.text[:1000]}")
    try:
        template = resp.json()
    except ValueError as e:
        raise TemplateUnavailable(f"Zotero template is not valid JSON: {e}") from e
    if not isinstance(template, dict) or not template:
        raise TemplateUnavailable(f"Empty template returned for item type '{item_type}'")
    return template


def post_items(cfg: ZoteroConfig, items: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Write up to 50 items in one request and return the raw write response.

    The response carries ``successful``, ``unchanged`` and ``failed`` maps keyed
    by the item's index in the request body.
    """
    if len(items) > DEFAULTS["MAX_CHUNK_SIZE"]:
        raise ValueError(f"Zotero accepts at most {DEFAULTS['MAX_CHUNK_SIZE']} items per request, got {len(items)}")
    url = f"{cfg.library_url}/items"
    try:
        resp = requests.post(url, headers=zotero_headers(cfg, write=True), json=items, timeout=cfg.timeout)
    except RequestException as e:
        raise ChunkSubmitFailed(f"Zotero write failed: {e}") from e
    if resp.status_code >= 400:
        raise ChunkSubmitFailed(f"HTTP {resp.status_code}: {resp.text[:1000]}")
    try:
        payload = resp.json()
    except ValueError as e:
        raise ChunkSubmitFailed(f"Zotero write response is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise ChunkSubmitFailed(f"Unexpected Zotero write response: {str(payload)[:200]}")
    return payload


def _first_key(success: Any) -> Optional[str]:
    # Native Zotero responses key by request index; the proxy returns a plain list
    if isinstance(success, dict):
        values = list(success.values())
    elif isinstance(success, list):
        values = success
    else:
        values = []
    return str(values[0]) if values else None


def create_collection(cfg: ZoteroConfig, name: str, parent: Optional[str] = None) -> str:
    """Create a collection (optionally nested under ``parent``) and return its key."""
    body: Dict[str, Any] = {"name": name}
    if parent:
        body["parentCollection"] = parent
    url = f"{cfg.library_url}/collections"
    try:
        resp = requests.post(url, headers=zotero_headers(cfg, write=True), json=[body], timeout=cfg.timeout)
    except RequestException as e:
        raise CollectionCreateFailed(f"Zotero collection request failed: {e}") from e
    if resp.status_code >= 400:
        raise CollectionCreateFailed(f"HTTP {resp.status_code}: {resp.text[:1000]}")
    try:
        payload = resp.json() or {}
    except ValueError as e:
        raise CollectionCreateFailed(f"Zotero collection response is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise CollectionCreateFailed(f"Unexpected Zotero collection response: {str(payload)[:200]}")
    key = _first_key(payload.get("success"))
    if not key:
        raise CollectionCreateFailed(f"Collection '{name}' was not created: {str(payload.get('failed'))[:500]}")
    return key
