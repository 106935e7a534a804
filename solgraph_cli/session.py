"""Per-run analysis state shared by every component of one run."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List, Optional, Set

from .fetcher import Fetcher
from .models import CoverageReport, ImplementationBinding, ImportReference, SourceLocation
from .parser import Parser
from .repository import EntityRepository

logger = logging.getLogger(__name__)

FAILED_EXTERNAL = "external"
FAILED_UNREACHABLE = "unreachable"


class AnalysisSession:
    """Owns the entity repository and the processed/failed import sets.

    Created at run start and passed to every component; everything in it
    only grows for the lifetime of the run and is dropped with the session.
    """

    def __init__(self, fetcher: Fetcher, parser: Parser) -> None:
        self.fetcher = fetcher
        self.parser = parser
        self.repository = EntityRepository()
        self.started_at = datetime.now()

        self.seeds: List[SourceLocation] = []
        self.discovered: Dict[str, ImportReference] = {}
        self.processed: Dict[str, SourceLocation] = {}
        self.failed: Dict[str, str] = {}

        self.ingested: Set[str] = set()
        self.locations: Dict[str, SourceLocation] = {}
        self.unparsed: List[str] = []
        self.bindings: Dict[str, Optional[ImplementationBinding]] = {}
        self.implementation_lookups: Dict[str, bool] = {}
        self.fetch_attempts = 0

    # ------------------------------------------------------------------
    # Imports
    # ------------------------------------------------------------------

    def discover(self, ref: ImportReference) -> bool:
        """Record an import path; the first origin seen for a path is kept."""
        if ref.raw_path in self.discovered:
            return False
        self.discovered[ref.raw_path] = ref
        return True

    def is_settled(self, raw_path: str) -> bool:
        return raw_path in self.processed or raw_path in self.failed

    def pending_imports(self) -> List[ImportReference]:
        return [ref for path, ref in self.discovered.items() if not self.is_settled(path)]

    def mark_processed(self, raw_path: str, location: SourceLocation) -> None:
        self.processed[raw_path] = location

    def mark_failed(self, raw_path: str, reason: str = FAILED_UNREACHABLE) -> None:
        self.failed.setdefault(raw_path, reason)

    def file_label(self, location: SourceLocation) -> str:
        """Name *location* goes by in entities and reports.

        Files from a seed repository keep their repository-relative path;
        files from any other repository are qualified with the repository so
        that the same path in two libraries stays two files.
        """
        home = {(s.owner, s.repo, s.branch) for s in self.seeds}
        if not home or (location.owner, location.repo, location.branch) in home:
            return location.path
        return location.key

    def location_of(self, file: str) -> Optional[SourceLocation]:
        return self.locations.get(file)

    def coverage(self) -> CoverageReport:
        return CoverageReport(
            found=sorted(self.discovered),
            resolved=list(self.processed),
            external=[p for p, why in self.failed.items() if why == FAILED_EXTERNAL],
            unreachable=[p for p, why in self.failed.items() if why != FAILED_EXTERNAL],
        )
