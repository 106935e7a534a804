"""Turn Solidity import strings into fetchable repository locations.

Resolution is ordered and memoized per run:

1. Known library prefixes (``solmate/``, ``forge-std/`` …) map straight to
   their public repositories and nothing else is tried.
2. Package-manager style paths, URLs and IPFS references are external:
   they are reported, never fetched.
3. Otherwise a fixed list of layout guesses is generated relative to the
   importing file, the repository root and the usual source directories,
   with well-known contract filenames tried first.

Candidates are fetched strictly in order; the first success wins. An
import is marked failed only once every candidate has failed.
"""

from __future__ import annotations

import logging
import posixpath
import re
from typing import Dict, Iterable, List, Optional, Tuple

from . import config
from .errors import FetchError
from .models import FetchedSource, ImportReference, RepoCoords, SourceLocation
from .session import FAILED_EXTERNAL, FAILED_UNREACHABLE, AnalysisSession

logger = logging.getLogger(__name__)

EXTERNAL = "external"
RESOLVABLE = "resolvable"

EXTERNAL_PATTERNS = [
    re.compile(r"^@openzeppelin/"),
    re.compile(r"^@chainlink/"),
    re.compile(r"^hardhat/"),
    re.compile(r"^node_modules/"),
    re.compile(r"^npm:"),
    re.compile(r"^https?://"),
    re.compile(r"^ipfs://"),
]

COMMON_LIBRARIES: Dict[str, RepoCoords] = {
    "solady/": RepoCoords("Vectorized", "solady", "main"),
    "openzeppelin-contracts/": RepoCoords("OpenZeppelin", "openzeppelin-contracts", "master"),
    "solmate/": RepoCoords("transmissions11", "solmate", "main"),
    "forge-std/": RepoCoords("foundry-rs", "forge-std", "master"),
    "chainlink/": RepoCoords("smartcontractkit", "chainlink", "develop"),
    "uniswap/": RepoCoords("Uniswap", "v3-core", "main"),
}

_OZ = ("OpenZeppelin", "openzeppelin-contracts", "master")
_SOLMATE = ("transmissions11", "solmate", "main")
_SOLADY = ("Vectorized", "solady", "main")

WELL_KNOWN_CONTRACTS: Dict[str, List[Tuple[Tuple[str, str, str], str]]] = {
    "Ownable.sol": [
        (_OZ, "contracts/access/Ownable.sol"),
        (_SOLADY, "src/auth/Ownable.sol"),
    ],
    "ERC20.sol": [
        (_OZ, "contracts/token/ERC20/ERC20.sol"),
        (_SOLMATE, "src/tokens/ERC20.sol"),
    ],
    "ERC721.sol": [
        (_OZ, "contracts/token/ERC721/ERC721.sol"),
        (_SOLMATE, "src/tokens/ERC721.sol"),
    ],
    "ReentrancyGuard.sol": [
        (_OZ, "contracts/utils/ReentrancyGuard.sol"),
        (_SOLMATE, "src/utils/ReentrancyGuard.sol"),
    ],
    "SafeTransferLib.sol": [
        (_SOLMATE, "src/utils/SafeTransferLib.sol"),
        (_SOLADY, "src/utils/SafeTransferLib.sol"),
    ],
}


def classify(import_path: str) -> str:
    """``external`` for package-manager paths, URLs and IPFS; ``resolvable`` otherwise."""
    clean = clean_import(import_path)
    if any(pattern.search(clean) for pattern in EXTERNAL_PATTERNS):
        return EXTERNAL
    return RESOLVABLE


def is_external(import_path: str) -> bool:
    return classify(import_path) == EXTERNAL


def clean_import(import_path: str) -> str:
    return import_path.strip().strip("\"'")


def normalize_path(path: str) -> Optional[str]:
    """Collapse separators and dot segments; ``None`` if the path escapes the root."""
    path = re.sub(r"/+", "/", path).lstrip("/")
    if not path:
        return None
    normalized = posixpath.normpath(path)
    if normalized in (".", "..") or normalized.startswith("../"):
        return None
    return normalized


def with_extension(path: str) -> str:
    return path if path.endswith(config.SOURCE_EXTENSION) else f"{path}{config.SOURCE_EXTENSION}"


def resolve_relative(relative_path: str, base_path: str) -> str:
    """Apply ``..`` / ``.`` segments of *relative_path* to *base_path*."""
    parts = [p for p in base_path.split("/") if p]
    for part in relative_path.split("/"):
        if part == "..":
            if parts:
                parts.pop()
        elif part not in (".", ""):
            parts.append(part)
    return "/".join(parts)


def _dedupe(locations: Iterable[SourceLocation]) -> List[SourceLocation]:
    seen = set()
    unique: List[SourceLocation] = []
    for location in locations:
        if location.key not in seen:
            seen.add(location.key)
            unique.append(location)
    return unique


class DependencyResolver:
    """Resolve and fetch imports for one :class:`AnalysisSession`."""

    def __init__(self, session: AnalysisSession) -> None:
        self.session = session

    # ------------------------------------------------------------------
    # Candidate generation
    # ------------------------------------------------------------------

    def library_locations(self, import_path: str) -> List[SourceLocation]:
        """Direct mappings for known library prefixes."""
        clean = clean_import(import_path)
        for prefix, coords in COMMON_LIBRARIES.items():
            if not clean.startswith(prefix):
                continue
            relative = normalize_path(clean[len(prefix):])
            if relative is None:
                return []
            paths = [relative]
            if not relative.startswith("src/"):
                paths.append(f"src/{relative}")
            return _dedupe(coords.locate(with_extension(p)) for p in paths)
        return []

    def well_known_locations(self, import_path: str) -> List[SourceLocation]:
        basename = posixpath.basename(clean_import(import_path))
        return [
            SourceLocation(owner, repo, branch, path)
            for (owner, repo, branch), path in WELL_KNOWN_CONTRACTS.get(basename, [])
        ]

    def local_paths(self, import_path: str, base_path: str) -> List[str]:
        """Layout guesses in fixed priority order, normalized, with extension."""
        clean = clean_import(import_path)
        basename = posixpath.basename(clean)
        strategies = [
            f"{base_path}/{clean}" if base_path else clean,
            clean,
            f"contracts/{clean}",
            f"src/{clean}",
            f"lib/{clean}",
            clean[2:] if clean.startswith("./") else None,
            resolve_relative(clean, base_path) if clean.startswith("../") else None,
            f"contracts/{clean}" if not clean.startswith("contracts/") else None,
            f"contracts/interfaces/{basename}",
            f"contracts/utils/{basename}",
        ]
        paths: List[str] = []
        for strategy in strategies:
            if strategy is None:
                continue
            normalized = normalize_path(strategy)
            if normalized is None:
                continue
            path = with_extension(normalized)
            if path not in paths:
                paths.append(path)
        return paths

    def candidates(self, import_path: str, coords: Optional[RepoCoords]) -> List[SourceLocation]:
        """Ordered, de-duplicated fetch candidates for *import_path*."""
        mapped = self.library_locations(import_path)
        if mapped:
            return mapped
        if is_external(import_path) or coords is None:
            return []
        locations = self.well_known_locations(import_path)
        locations.extend(coords.locate(p) for p in self.local_paths(import_path, coords.base_path))
        return _dedupe(locations)

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def fetch_first(self, candidates: List[SourceLocation]) -> Optional[FetchedSource]:
        """Try *candidates* in order; the first successful fetch wins."""
        for location in candidates:
            self.session.fetch_attempts += 1
            logger.debug("    Trying: %s", location.short())
            try:
                content = self.session.fetcher.fetch_text(location)
            except FetchError as exc:
                logger.debug("    Skipping %s: %s", location.short(), exc)
                continue
            logger.info("    Found: %s", location.path)
            return FetchedSource(location=location, content=content)
        return None

    def coords_for(self, ref: ImportReference) -> Optional[RepoCoords]:
        origin = self.session.location_of(ref.origin_file)
        if origin is not None:
            return origin.coords
        if self.session.seeds:
            return self.session.seeds[0].coords
        return None

    def resolve(self, ref: ImportReference) -> Optional[FetchedSource]:
        """Resolve one import; settled paths are never attempted again."""
        path = ref.raw_path
        if self.session.is_settled(path):
            return None

        if is_external(path):
            logger.info("  External dependency (skipped): %s", path)
            self.session.mark_failed(path, FAILED_EXTERNAL)
            return None

        candidates = self.candidates(path, self.coords_for(ref))
        if not candidates:
            logger.info("  No resolution paths found: %s", path)
            self.session.mark_failed(path, FAILED_UNREACHABLE)
            return None

        logger.info("  Resolving: %s", path)
        fetched = self.fetch_first(candidates)
        if fetched is None:
            logger.info("    Could not resolve: %s", path)
            self.session.mark_failed(path, FAILED_UNREACHABLE)
            return None

        self.session.mark_processed(path, fetched.location)
        return fetched

    def resolve_all(self, refs: Iterable[ImportReference]) -> List[FetchedSource]:
        resolved: List[FetchedSource] = []
        for ref in refs:
            fetched = self.resolve(ref)
            if fetched is not None:
                resolved.append(fetched)
        return resolved
