"""Bind interfaces to the concrete contracts believed to implement them.

Lookup order for an interface ``IFoo``:

1. Name heuristics against files already in the repository
   (``Foo``, ``FooImpl``, ``FooContract`` …); the first candidate whose file
   implements at least one interface member wins.
2. The same candidate names fetched from common directories of the
   interface's repository, parsed into the session, then matched.
3. A scan of every known non-interface file, accepting the best file only
   if it implements more than half of the interface.

Members match on name, parameter count and parameter type strings; return
types, visibility and mutability are ignored.
"""

from __future__ import annotations

import logging
import posixpath
import re
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .dependency_resolver import DependencyResolver
from .ingestion import ingest_source
from .models import CallEdge, Entity, ImplementationBinding, MatchedMember, RepoCoords
from .repository import looks_like_interface_file
from .session import AnalysisSession

logger = logging.getLogger(__name__)

IMPLEMENTATION_DIRECTORIES = [
    "contracts",
    "src",
    "contracts/implementations",
    "contracts/impl",
    "src/implementations",
    "contracts/core",
    "src/core",
    "lib",
    "",
]

SCAN_THRESHOLD = 0.5
MEMBER_KINDS = ("function", "stateVariable")

_INTERFACE_MARKER = re.compile(r"^I(?=[A-Z])")


def interface_name_of(identifier: str) -> str:
    """``contracts/IFoo.sol`` → ``IFoo``."""
    return posixpath.basename(identifier).replace(".sol", "")


def strip_interface_marker(interface_name: str) -> str:
    return _INTERFACE_MARKER.sub("", interface_name)


def candidate_names(interface_name: str) -> List[str]:
    """Implementation names to try for *interface_name*, in priority order."""
    base = strip_interface_marker(interface_name)
    names = [
        base,
        f"{base}Impl",
        f"{base}Contract",
        f"{base}Implementation",
        f"Concrete{base}",
        f"{interface_name}Impl",
        base.lower(),
        base[:1].lower() + base[1:],
    ]
    return list(dict.fromkeys(n for n in names if n))


def implementation_paths(contract_name: str) -> List[str]:
    paths: List[str] = []
    for directory in IMPLEMENTATION_DIRECTORIES:
        prefix = f"{directory}/" if directory else ""
        for filename in (
            f"{contract_name}.sol",
            f"{contract_name.lower()}.sol",
            f"{contract_name}Contract.sol",
            f"{contract_name}Impl.sol",
        ):
            path = f"{prefix}{filename}"
            if path not in paths:
                paths.append(path)
    return paths


def signatures_compatible(interface_member: Entity, impl_member: Entity) -> bool:
    if interface_member.name != impl_member.name:
        return False
    if len(interface_member.parameters) != len(impl_member.parameters):
        return False
    return all(
        a.type == b.type for a, b in zip(interface_member.parameters, impl_member.parameters)
    )


def match_members(interface_members: Sequence[Entity], impl_members: Sequence[Entity]) -> List[MatchedMember]:
    matches: List[MatchedMember] = []
    for member in interface_members:
        impl = next((m for m in impl_members if signatures_compatible(member, m)), None)
        if impl is not None:
            matches.append(MatchedMember(interface_member=member, impl_member=impl))
    return matches


def match_ratio(matches: Sequence[MatchedMember], interface_members: Sequence[Entity]) -> float:
    return len(matches) / max(len(interface_members), 1)


class ImplementationResolver:
    """Resolve and cache one :class:`ImplementationBinding` per interface per run."""

    def __init__(
        self,
        session: AnalysisSession,
        resolver: DependencyResolver,
        fetch_remote: bool = True,
    ) -> None:
        self.session = session
        self.resolver = resolver
        self.fetch_remote = fetch_remote

    @property
    def repository(self):
        return self.session.repository

    def interface_members(self, interface_name: str) -> List[Entity]:
        """Functions declared in files whose name contains *interface_name*."""
        return [
            e for file in self.repository.files_containing(interface_name)
            for e in self.repository.in_file(file)
            if e.kind == "function"
        ]

    def _implementation_members(self, file: str) -> List[Entity]:
        return [e for e in self.repository.in_file(file) if e.kind in MEMBER_KINDS]

    def _binding(
        self, interface_name: str, file: str, matches: List[MatchedMember], members: List[Entity], strategy: str,
    ) -> ImplementationBinding:
        contract = matches[0].impl_member.owner_name if matches else posixpath.basename(file).replace(".sol", "")
        binding = ImplementationBinding(
            interface_name=interface_name,
            implementation_file=file,
            contract_name=contract,
            match_ratio=match_ratio(matches, members),
            matched_members=matches,
            strategy=strategy,
        )
        logger.info(
            "Found implementation of %s: %s (%.1f%% match, %s)",
            interface_name, contract, binding.match_ratio * 100, strategy,
        )
        return binding

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve(self, interface: str, coords: Optional[RepoCoords] = None) -> Optional[ImplementationBinding]:
        name = interface_name_of(interface)
        if name in self.session.bindings:
            return self.session.bindings[name]

        members = self.interface_members(name)
        binding: Optional[ImplementationBinding] = None
        if not members:
            logger.debug("No declared members known for %s; skipping implementation lookup", name)
        else:
            interface_files = {m.file for m in members}
            candidates = candidate_names(name)
            logger.debug("Searching for implementations of %s: %s", name, ", ".join(candidates))
            binding = self.match_local(name, members, candidates, interface_files)
            if binding is None and self.fetch_remote:
                binding = self.match_remote(name, members, candidates, coords or self._coords_for(interface_files))
            if binding is None:
                binding = self.scan(name, members, interface_files)
        if binding is None:
            logger.debug("No implementation found for %s", name)

        self.session.bindings[name] = binding
        return binding

    def bind_edges(self, edges: Iterable[CallEdge]) -> Dict[str, Optional[ImplementationBinding]]:
        """Resolve each distinct interface with a known definition and attach the binding."""
        edges = list(edges)
        resolved: Dict[str, Optional[ImplementationBinding]] = {}
        for edge in edges:
            if edge.definition is None or edge.interface in resolved:
                continue
            resolved[edge.interface] = self.resolve(edge.interface)
        for edge in edges:
            edge.binding = resolved.get(edge.interface)
        return resolved

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def match_local(
        self, name: str, members: List[Entity], candidates: List[str], interface_files: Set[str],
    ) -> Optional[ImplementationBinding]:
        for candidate in candidates:
            for file in self.repository.files_containing(candidate):
                if file in interface_files:
                    continue
                matches = match_members(members, self._implementation_members(file))
                if matches:
                    return self._binding(name, file, matches, members, "name")
        return None

    def match_remote(
        self, name: str, members: List[Entity], candidates: List[str], coords: Optional[RepoCoords],
    ) -> Optional[ImplementationBinding]:
        if coords is None:
            return None
        for candidate in candidates:
            if self.session.implementation_lookups.get(candidate):
                continue
            self.session.implementation_lookups[candidate] = True

            locations = [
                loc for loc in (coords.locate(p) for p in implementation_paths(candidate))
                if loc.key not in self.session.ingested
            ]
            fetched = self.resolver.fetch_first(locations)
            if fetched is None:
                continue
            ingest_source(self.session, fetched)
            file = self.session.file_label(fetched.location)
            matches = match_members(members, self._implementation_members(file))
            if matches:
                return self._binding(name, file, matches, members, "remote")
        return None

    def scan(self, name: str, members: List[Entity], interface_files: Set[str]) -> Optional[ImplementationBinding]:
        best: Optional[ImplementationBinding] = None
        for file in self.repository.files():
            if file in interface_files or looks_like_interface_file(file):
                continue
            matches = match_members(members, self._implementation_members(file))
            ratio = match_ratio(matches, members)
            if ratio > SCAN_THRESHOLD and (best is None or ratio > best.match_ratio):
                best = ImplementationBinding(
                    interface_name=name,
                    implementation_file=file,
                    contract_name=matches[0].impl_member.owner_name,
                    match_ratio=ratio,
                    matched_members=matches,
                    strategy="scan",
                )
        if best is not None:
            logger.info("Found implementation of %s by member scan: %s", name, best.contract_name)
        return best

    def _coords_for(self, interface_files: Set[str]) -> Optional[RepoCoords]:
        for file in sorted(interface_files):
            location = self.session.location_of(file)
            if location is not None:
                return location.coords
        if self.session.seeds:
            return self.session.seeds[0].coords
        return None
