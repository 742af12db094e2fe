from __future__ import annotations

from typing import Any, Optional


class ZotvidError(RuntimeError):
    """Base class for errors raised while syncing the ESOVDB with Zotero."""


class SourceUnavailable(ZotvidError):
    """Raised when the ESOVDB list call fails or returns no records."""


class TemplateUnavailable(ZotvidError):
    """Raised when the Zotero item template cannot be retrieved."""


class CollectionCreateFailed(ZotvidError):
    """Raised when Zotero refuses to create a series collection."""


class ChunkSubmitFailed(ZotvidError):
    """Raised when a bulk write to Zotero fails at transport level.

    Carries the summary accumulated by the chunks that completed before the
    failing one, so their successful items can still be written back.
    """

    def __init__(self, message: str, summary: Optional[Any] = None):
        super().__init__(message)
        self.summary = summary


class ReconciliationFailed(ZotvidError):
    """Raised when Zotero keys/versions cannot be written back to the ESOVDB."""
