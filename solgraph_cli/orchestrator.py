"""Run orchestration: seed ingestion, import resolution, call tree extraction."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from . import config
from .call_tree import CallTreeBuilder
from .dependency_resolver import DependencyResolver
from .errors import FetchError, FunctionNotFoundError, SeedFetchError, SeedParseError
from .fetcher import Fetcher, GitHubFetcher
from .function_finder import available_functions, extract_entities, find_function
from .implementation_resolver import ImplementationResolver
from .ingestion import IngestionLoop, ingest_source
from .interface_detector import InterfaceCallDetector
from .models import CallTreeNode, CoverageReport, Entity, FetchedSource, SourceLocation
from .parser import Parser, TreeSitterSolidityParser
from .session import AnalysisSession

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    session: AnalysisSession
    entity: Entity
    tree: CallTreeNode
    entities: List[Entity] = field(default_factory=list)
    coverage: Optional[CoverageReport] = None
    call_depth: int = 0


class AnalysisOrchestrator:
    """Coordinates fetching, parsing, resolution, and call tree building."""

    def __init__(
        self,
        fetcher: Optional[Fetcher] = None,
        parser: Optional[Parser] = None,
        fetch_implementations: bool = True,
    ):
        self.fetcher = fetcher or GitHubFetcher()
        self.parser = parser or TreeSitterSolidityParser()
        self.fetch_implementations = fetch_implementations

    def _seed(self, session: AnalysisSession, url: str) -> None:
        try:
            location = SourceLocation.from_url(url)
        except ValueError as exc:
            raise SeedFetchError(str(exc)) from exc

        logger.info("Fetching main contract: %s", location.blob_url)
        try:
            content = self.fetcher.fetch_text(location)
        except FetchError as exc:
            raise SeedFetchError(f"Failed to fetch main contract: {exc}") from exc

        session.seeds.append(location)
        ingest_source(session, FetchedSource(location=location, content=content))
        if location.path in session.unparsed:
            raise SeedParseError(f"Failed to parse main contract: {location.path}")

    def analyze(
        self,
        urls: Sequence[str],
        resolve_dependencies: bool = True,
        max_depth: Optional[int] = None,
    ) -> AnalysisSession:
        """Ingest the seed files and, optionally, their transitive imports."""
        if not urls:
            raise SeedFetchError("No contract URL given")
        session = AnalysisSession(self.fetcher, self.parser)
        errors = []
        for url in urls:
            try:
                self._seed(session, url)
            except (SeedFetchError, SeedParseError) as exc:
                logger.error("%s", exc)
                errors.append(exc)
        if len(errors) == len(urls):
            raise errors[0]

        if resolve_dependencies:
            depth = config.IMPORT_DEPTH if max_depth is None else max_depth
            IngestionLoop(session, DependencyResolver(session)).run(depth)
        logger.info("Total declarations: %d in %d files", len(session.repository), len(session.repository.files()))
        return session

    def extract(
        self,
        url: str,
        function: str,
        call_depth: Optional[int] = None,
        import_depth: Optional[int] = None,
        resolve_dependencies: bool = True,
        include_modifiers: bool = True,
        include_events: bool = False,
    ) -> ExtractionResult:
        """Build the call tree of *function* declared in (or imported by) *url*."""
        session = self.analyze([url], resolve_dependencies=resolve_dependencies, max_depth=import_depth)
        repository = session.repository

        entity = find_function(repository, function)
        if entity is None:
            raise FunctionNotFoundError(function, available_functions(repository))
        logger.info("Found function: %s", entity.signature)

        depth = config.CALL_DEPTH if call_depth is None else call_depth
        implementations = ImplementationResolver(
            session, DependencyResolver(session), fetch_remote=self.fetch_implementations,
        )
        builder = CallTreeBuilder(repository, InterfaceCallDetector(), implementations)
        tree = builder.build(entity, depth)

        entities = extract_entities(repository, tree, include_modifiers, include_events)
        logger.info("Extracted %d relevant declarations", len(entities))
        return ExtractionResult(
            session=session,
            entity=entity,
            tree=tree,
            entities=entities,
            coverage=session.coverage(),
            call_depth=depth,
        )
