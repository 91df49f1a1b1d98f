"""On-disk cache of the unresolved references extracted from each file.

One JSON file per source file, named by the MD5 of the file's absolute
path and holding the MD5 of the file contents it was produced from::

    {"file_contents_digest": "...", "unresolved_references": [...]}

Resolution and checking always run fresh; only parsing and extraction
are skipped on a hit.

The whole directory is dropped when ``packguard.toml`` or the inflection
rules change. Dropping it is not atomic: another run writing entries at
the same moment can leave entries produced under the old configuration
behind. Runs sharing a cache directory must not change configuration
concurrently.
"""

from __future__ import annotations

import hashlib
import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from .models import UnresolvedReference

logger = logging.getLogger(__name__)

CONFIG_DIGEST_KEY = "packguard.toml"
INFLECTIONS_DIGEST_KEY = "inflections"


def digest_for_string(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()


def digest_for_file(path: Path) -> str:
    return hashlib.md5(path.read_bytes()).hexdigest()


@dataclass
class CacheContents:
    file_contents_digest: str
    unresolved_references: List[UnresolvedReference]

    def serialize(self) -> str:
        return json.dumps(
            {
                "file_contents_digest": self.file_contents_digest,
                "unresolved_references": [ref.to_dict() for ref in self.unresolved_references],
            }
        )

    @classmethod
    def deserialize(cls, serialized: str) -> "CacheContents":
        data = json.loads(serialized)
        return cls(
            file_contents_digest=data["file_contents_digest"],
            unresolved_references=[UnresolvedReference.from_dict(ref) for ref in data["unresolved_references"]],
        )


class Cache:
    """Per-file reference cache; a no-op wrapper when disabled."""

    def __init__(
        self,
        enable_cache: bool,
        cache_directory: Path,
        config_contents: str = "",
        inflections_digest: str = "",
    ) -> None:
        self.enable_cache = enable_cache
        self.cache_directory = cache_directory
        if self.enable_cache:
            self._create_cache_directory()
            self._bust_cache_if_contents_have_changed(config_contents, CONFIG_DIGEST_KEY)
            self._bust_cache_if_contents_have_changed(inflections_digest, INFLECTIONS_DIGEST_KEY)

    def bust_cache(self) -> None:
        shutil.rmtree(self.cache_directory, ignore_errors=True)
        self._create_cache_directory()

    def with_cache(
        self, file_path: Path, produce: Callable[[], List[UnresolvedReference]]
    ) -> List[UnresolvedReference]:
        """References for *file_path* from the cache, or from *produce* on a miss."""
        if not self.enable_cache:
            return produce()

        cache_location = self.cache_directory / digest_for_string(str(file_path.resolve()))
        file_contents_digest = digest_for_file(file_path)
        cache_contents = self._read(cache_location)

        if cache_contents is not None and cache_contents.file_contents_digest == file_contents_digest:
            logger.debug("Cache hit for %s", file_path)
            return cache_contents.unresolved_references

        logger.debug("Cache miss for %s", file_path)
        unresolved_references = produce()
        cache_contents = CacheContents(file_contents_digest, unresolved_references)
        cache_location.write_text(cache_contents.serialize(), encoding="utf-8")
        return unresolved_references

    # ------------------------------------------------------------------

    def _read(self, cache_location: Path) -> Optional[CacheContents]:
        if not cache_location.exists():
            return None
        try:
            return CacheContents.deserialize(cache_location.read_text(encoding="utf-8"))
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring unreadable cache entry %s: %s", cache_location, exc)
            return None

    def _create_cache_directory(self) -> None:
        self.cache_directory.mkdir(parents=True, exist_ok=True)

    def _bust_cache_if_contents_have_changed(self, contents: str, contents_key: str) -> None:
        current_digest = digest_for_string(contents)
        cached_digest_path = self.cache_directory / contents_key
        if not cached_digest_path.exists():
            # nothing cached yet under a known configuration
            cached_digest_path.write_text(current_digest, encoding="utf-8")
        elif cached_digest_path.read_text(encoding="utf-8") == current_digest:
            logger.debug("%s contents have not changed, preserving cache", contents_key)
        else:
            logger.debug("%s contents have changed, busting cache", contents_key)
            self.bust_cache()
            (self.cache_directory / contents_key).write_text(current_digest, encoding="utf-8")
