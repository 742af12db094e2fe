"""Sync ESOVDB video records into a Zotero library.

Exports the version string used in the CLI and in request User-Agent headers.
"""

from __future__ import annotations

__version__ = "1.4.0"

__all__ = ["__version__"]
