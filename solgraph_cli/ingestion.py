"""Fixed-point import ingestion: fetch → parse → extract → discover → repeat."""

from __future__ import annotations

import logging
from typing import List

from .dependency_resolver import DependencyResolver
from .errors import ParseError
from .models import CoverageReport, Entity, FetchedSource
from .session import AnalysisSession

logger = logging.getLogger(__name__)


def ingest_source(session: AnalysisSession, fetched: FetchedSource) -> List[Entity]:
    """Parse one fetched file into the session.

    Returns the entities it added. A :class:`ParseError` is logged and the
    file contributes nothing; a location already ingested is skipped.
    """
    file = session.file_label(fetched.location)
    if fetched.location.key in session.ingested:
        return []
    session.ingested.add(fetched.location.key)

    session.locations.setdefault(file, fetched.location)
    try:
        result = session.parser.parse(fetched.content, file)
    except ParseError as exc:
        logger.warning("  Failed to parse %s: %s", file, exc)
        session.unparsed.append(file)
        return []

    added = [e for e in result.entities if session.repository.add(e)]
    for ref in result.imports:
        session.discover(ref)
    logger.info("  Parsed: %s (%d declarations, %d imports)", file, len(added), len(result.imports))
    return added


class IngestionLoop:
    """Drive dependency resolution until a fixed point or the depth bound."""

    def __init__(self, session: AnalysisSession, resolver: DependencyResolver) -> None:
        self.session = session
        self.resolver = resolver

    def run(self, max_depth: int) -> CoverageReport:
        depth = 0
        while True:
            pending = self.session.pending_imports()
            if not pending:
                logger.info("No dependencies left to resolve")
                break
            if depth >= max_depth:
                logger.info("Maximum recursion depth (%d) reached", max_depth)
                break

            logger.info("Depth %d/%d: resolving %d dependencies", depth + 1, max_depth, len(pending))
            known_before = set(self.session.discovered)
            for fetched in self.resolver.resolve_all(pending):
                ingest_source(self.session, fetched)

            new_imports = set(self.session.discovered) - known_before
            if not new_imports:
                logger.info("No new dependencies found in resolved files")
                break
            logger.info("Found %d new dependencies in resolved files", len(new_imports))
            depth += 1

        coverage = self.session.coverage()
        logger.info(
            "Resolution summary: %d found, %d resolved, %d failed (%d external)",
            len(coverage.found), len(coverage.resolved), len(coverage.failed), len(coverage.external),
        )
        return coverage
