"""Enumerates the source files a run processes."""

from __future__ import annotations

import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Set

logger = logging.getLogger(__name__)

SKIP_DIRS: Set[str] = {".git", ".hg", ".svn", "node_modules", ".bundle"}


@lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> "re.Pattern[str]":
    """Translate a path glob with ``**``, ``*``, ``?`` and ``{a,b}`` into a regex."""
    out = []
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
            continue
        if pattern.startswith("**", i):
            out.append(".*")
            i += 2
            continue
        if char == "*":
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        elif char == "{":
            end = pattern.find("}", i)
            if end == -1:
                out.append(re.escape(char))
            else:
                options = pattern[i + 1:end].split(",")
                out.append("(?:" + "|".join(re.escape(option) for option in options) + ")")
                i = end + 1
                continue
        else:
            out.append(re.escape(char))
        i += 1
    return re.compile("".join(out) + r"\Z")


def matches_any(relative_path: str, patterns: Iterable[str]) -> bool:
    return any(glob_to_regex(pattern).match(relative_path) for pattern in patterns)


class FilesForProcessing:
    """Relative paths of files to process, honoring include and exclude globs."""

    def __init__(
        self,
        root_path: Path,
        include: Sequence[str],
        exclude: Sequence[str],
        relative_paths: Optional[Sequence[str]] = None,
    ) -> None:
        self.root_path = root_path
        self.include = list(include)
        self.exclude = list(exclude)
        self.relative_paths = list(relative_paths or [])

    def files(self) -> List[str]:
        if self.relative_paths:
            found: Set[str] = set()
            for relative in self.relative_paths:
                path = self.root_path / relative
                if path.is_dir():
                    found.update(self._walk(path))
                elif self._wanted(Path(relative).as_posix()):
                    found.add(Path(relative).as_posix())
            result = sorted(found)
        else:
            result = sorted(self._walk(self.root_path))
        logger.debug("Found %d files to process", len(result))
        return result

    def _walk(self, start: Path) -> Iterable[str]:
        for dirpath, dirnames, filenames in os.walk(start):
            relative_dir = Path(dirpath).relative_to(self.root_path).as_posix()
            prefix = "" if relative_dir == "." else relative_dir + "/"
            dirnames[:] = [
                d for d in sorted(dirnames)
                if d not in SKIP_DIRS and not matches_any(prefix + d + "/", self.exclude)
            ]
            for filename in filenames:
                relative = prefix + filename
                if self._wanted(relative):
                    yield relative

    def _wanted(self, relative: str) -> bool:
        return matches_any(relative, self.include) and not matches_any(relative, self.exclude)
