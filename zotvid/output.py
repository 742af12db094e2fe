from __future__ import annotations

import sys
from typing import TextIO


class Reporter:
    """Console output for a sync run.

    Progress lines go to stdout and are dropped in silent mode; errors always
    reach stderr with an ``ERROR:`` marker.
    """

    def __init__(self, silent: bool = False, out: TextIO | None = None, err: TextIO | None = None):
        self.silent = silent
        self._out = out
        self._err = err

    @property
    def out(self) -> TextIO:
        return self._out or sys.stdout

    @property
    def err(self) -> TextIO:
        return self._err or sys.stderr

    def info(self, message: str) -> None:
        if not self.silent:
            print(message, file=self.out)

    def success(self, message: str) -> None:
        if not self.silent:
            print(f"› {message}", file=self.out)

    def warn(self, message: str) -> None:
        if not self.silent:
            print(f"WARNING: {message}", file=self.out)

    def error(self, message: str) -> None:
        print(f"ERROR: {message}", file=self.err)


def plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"
