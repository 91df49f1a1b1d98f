"""Everything one run needs to turn a file into offenses."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from .cache import Cache
from .checkers import DEFAULT_CHECKERS, Checker, ReferenceLister, check_reference
from .config import Configuration
from .constant_discovery import ConstantDiscovery, discover_load_paths
from .errors import ParseError
from .extractor import ReferenceExtractor, get_fully_qualified_references
from .inflector import Inflector
from .inspectors import AssociationInspector, ConstantNameInspector, ConstNodeInspector, FixtureInspector
from .models import Offense, UnresolvedReference
from .package import PackageSet
from .package_todo import PackageTodoLister
from .parser import parser_for

logger = logging.getLogger(__name__)


@dataclass
class ProcessedFile:
    unresolved_references: List[UnresolvedReference] = field(default_factory=list)
    offenses: List[Offense] = field(default_factory=list)


class FileProcessor:
    """Parses one file (or reads it from the cache) and extracts its references."""

    def __init__(self, root_path: Path, inspectors: Sequence[ConstantNameInspector], cache: Cache) -> None:
        self.root_path = root_path
        self.inspectors = list(inspectors)
        self.cache = cache

    def process(self, relative_file: str) -> ProcessedFile:
        parser = parser_for(relative_file)
        if parser is None:
            return ProcessedFile(offenses=[Offense(file=relative_file, message="unknown file type")])

        absolute = self.root_path / relative_file

        def produce() -> List[UnresolvedReference]:
            source = absolute.read_text(encoding="utf-8", errors="replace")
            root_node = parser.parse(source, file_path=relative_file)
            return ReferenceExtractor(self.inspectors, root_node, relative_file).references()

        try:
            references = self.cache.with_cache(absolute, produce)
        except ParseError as exc:
            return ProcessedFile(offenses=[Offense(file=relative_file, message=exc.message)])
        return ProcessedFile(unresolved_references=references)


class RunContext:
    """Shared, read-only state of a run: packages, resolver, inspectors, cache."""

    def __init__(
        self,
        configuration: Configuration,
        package_set: Optional[PackageSet] = None,
        checkers: Sequence[Checker] = DEFAULT_CHECKERS,
    ) -> None:
        self.configuration = configuration
        self.root_path = configuration.root_path
        self.checkers = list(checkers)
        self.inflector = Inflector.from_file(configuration.inflections_file)
        self.package_set = package_set or PackageSet.load_all_from(
            self.root_path, configuration.package_paths, configuration.exclude
        )
        load_paths = discover_load_paths(self.root_path, configuration.load_paths, configuration.exclude)
        self.context_provider = ConstantDiscovery(self.package_set, self.root_path, load_paths, self.inflector)
        self.cache = Cache(
            enable_cache=configuration.cache_enabled,
            cache_directory=configuration.cache_directory,
            config_contents=configuration.raw_contents,
            inflections_digest=self.inflector.digest(),
        )
        self.file_processor = FileProcessor(self.root_path, self.constant_name_inspectors(), self.cache)
        self.reference_lister: ReferenceLister = PackageTodoLister(self.root_path)

    @classmethod
    def from_configuration(cls, configuration: Configuration) -> "RunContext":
        return cls(configuration)

    def constant_name_inspectors(self) -> List[ConstantNameInspector]:
        """Inspectors in the order they are consulted."""
        return [
            ConstNodeInspector(),
            AssociationInspector(
                inflector=self.inflector,
                custom_associations=self.configuration.custom_associations,
                excluded_files=self.configuration.associations_exclude,
            ),
            FixtureInspector(self.root_path, self.configuration.fixture_paths, self.inflector),
        ]

    def process_file(self, relative_file: str, reference_lister: Optional[ReferenceLister] = None) -> List[Offense]:
        """Offenses of one file; *reference_lister* defaults to the persisted todo files."""
        lister = reference_lister or self.reference_lister
        processed = self.file_processor.process(relative_file)
        references = get_fully_qualified_references(processed.unresolved_references, self.context_provider)
        offenses = list(processed.offenses)
        for reference in references:
            offenses.extend(check_reference(reference, self.checkers, lister))
        return offenses
