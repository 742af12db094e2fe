#!/usr/bin/env python3
"""
Sync ESOVDB video records into a Zotero library.

Usage:
  python scripts/sync_zotero.py [-m N] [-p N] [-c N] [-w SECS] [-C DATE | -M DATE] [-j] [-s]

Environment variables (see zotvid/config.py):
  ESOVDB_PROXY_URL, ZOTERO_API_KEY, ZOTERO_USER
"""
from __future__ import annotations

from zotvid.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
