"""Name inflection shared by constant discovery and the inspectors.

Built on the ``inflection`` library, extended with project rules read
from ``config/inflections.yml``::

    acronym: [GraphQL, API]
    irregular: [[person, people]]
    uncountable: [sheep]
    singular: [["(octop)i$", "\\\\1us"]]
    plural: [["(octop)us$", "\\\\1i"]]
"""

from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import inflection
import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

RULE_KEYS = ("acronym", "irregular", "plural", "singular", "uncountable")


class Inflector:
    """Camelize / singularize / classify with project-specific overrides."""

    def __init__(self, rules: Optional[Dict[str, Any]] = None) -> None:
        self.rules: Dict[str, Any] = {key: list((rules or {}).get(key) or []) for key in RULE_KEYS}
        self._acronyms: Dict[str, str] = {str(a).lower(): str(a) for a in self.rules["acronym"]}
        self._uncountable = {str(word).lower() for word in self.rules["uncountable"]}
        self._irregular_singular: Dict[str, str] = {}
        self._irregular_plural: Dict[str, str] = {}
        for singular, plural in self.rules["irregular"]:
            self._irregular_singular[str(plural).lower()] = str(singular)
            self._irregular_plural[str(singular).lower()] = str(plural)
        self._singular_rules = self._compile(self.rules["singular"])
        self._plural_rules = self._compile(self.rules["plural"])

    @classmethod
    def from_file(cls, path: Path) -> "Inflector":
        """Load rules from *path*; a missing file means no custom rules."""
        if not path.exists():
            return cls()
        try:
            with open(path, "r", encoding="utf-8") as f:
                rules = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"Could not read {path}: {exc}") from exc
        if not isinstance(rules, dict):
            logger.warning("Ignoring inflections file %s: expected a mapping", path)
            return cls()
        unknown = set(rules) - set(RULE_KEYS)
        if unknown:
            logger.warning("Unknown inflection keys in %s: %s", path, ", ".join(sorted(unknown)))
        try:
            return cls(rules)
        except (TypeError, ValueError, re.error) as exc:
            raise ConfigurationError(f"Invalid inflection rules in {path}: {exc}") from exc

    @staticmethod
    def _compile(rules: List[Any]) -> List[Tuple["re.Pattern[str]", str]]:
        return [(re.compile(str(pattern), re.IGNORECASE), str(replacement)) for pattern, replacement in rules]

    def digest(self) -> str:
        """Stable digest of the active custom rules."""
        dumped = yaml.safe_dump(self.rules, sort_keys=True)
        return hashlib.md5(dumped.encode("utf-8")).hexdigest()

    # ------------------------------------------------------------------

    def camelize(self, term: str) -> str:
        """``"sales/order_item"`` -> ``"Sales::OrderItem"``."""
        return "::".join(self._camelize_segment(segment) for segment in term.split("/"))

    def _camelize_segment(self, segment: str) -> str:
        if not self._acronyms:
            return inflection.camelize(segment)
        return "".join(self._acronyms.get(part.lower(), inflection.camelize(part)) for part in segment.split("_"))

    def singularize(self, word: str) -> str:
        head, _, last = word.rpartition("/")
        prefix = f"{head}/" if head else ""
        lowered = last.lower()
        if lowered in self._uncountable:
            return word
        if lowered in self._irregular_singular:
            return prefix + self._irregular_singular[lowered]
        for pattern, replacement in self._singular_rules:
            if pattern.search(last):
                return prefix + pattern.sub(replacement, last)
        return prefix + inflection.singularize(last)

    def pluralize(self, word: str, count: Optional[int] = None) -> str:
        if count == 1:
            return word
        lowered = word.lower()
        if lowered in self._uncountable:
            return word
        if lowered in self._irregular_plural:
            return self._irregular_plural[lowered]
        for pattern, replacement in self._plural_rules:
            if pattern.search(word):
                return pattern.sub(replacement, word)
        return inflection.pluralize(word)

    def classify(self, table_name: str) -> str:
        """``"order_items"`` -> ``"OrderItem"``; anything before a dot is dropped."""
        return self.camelize(self.singularize(table_name.rsplit(".", 1)[-1]))

    def underscore(self, word: str) -> str:
        """``"Sales::OrderItem"`` -> ``"sales/order_item"``."""
        for acronym in self._acronyms.values():
            word = word.replace(acronym, acronym.capitalize())
        return inflection.underscore(word.replace("::", "/"))
