"""Pytest configuration and fixtures for SolGraph CLI tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Dict, Generator, List, Optional, Sequence

import pytest

from solgraph_cli.errors import NetworkError, NotFound, ParseError
from solgraph_cli.fetcher import Fetcher
from solgraph_cli.models import Entity, ImportReference, Parameter, ParseResult, RawCall, SourceLocation
from solgraph_cli.parser import Parser, build_signature
from solgraph_cli.session import AnalysisSession

SEED_URL = "https://github.com/acme/vault/blob/main/contracts/Vault.sol"


class FakeFetcher(Fetcher):
    """In-memory fetcher.

    Keys are either a full location key (``owner/repo@branch:path``) or a
    bare path, which then matches in any repository.
    """

    def __init__(self, files: Optional[Dict[str, str]] = None, broken: Sequence[str] = ()):
        self.files = dict(files or {})
        self.broken = set(broken)
        self.calls: List[SourceLocation] = []

    def fetch_text(self, location: SourceLocation) -> str:
        self.calls.append(location)
        if location.path in self.broken:
            raise NetworkError(location.blob_url, "connection reset")
        for key in (location.key, location.path):
            if key in self.files:
                return self.files[key]
        raise NotFound(location.blob_url)

    @property
    def paths(self) -> List[str]:
        return [loc.path for loc in self.calls]


class StubParser(Parser):
    """Returns canned parse results per file path; unknown files parse empty."""

    def __init__(self, results: Optional[Dict[str, ParseResult]] = None, failing: Sequence[str] = ()):
        self.results = dict(results or {})
        self.failing = set(failing)
        self.parsed: List[str] = []

    def parse(self, source: str, file: str) -> ParseResult:
        self.parsed.append(file)
        if file in self.failing:
            raise ParseError(file, "syntax error")
        canned = self.results.get(file)
        if canned is None:
            return ParseResult()
        return ParseResult(
            entities=list(canned.entities),
            imports=[ImportReference(raw_path=i.raw_path, origin_file=file) for i in canned.imports],
        )


def make_entity(
    name: str,
    file: str = "contracts/Vault.sol",
    kind: str = "function",
    calls: Sequence[str] = (),
    params: Sequence[str] = (),
    returns: Sequence[str] = (),
    contract: str = "",
    visibility: str = "internal",
    modifiers: Sequence[str] = (),
    source: Optional[str] = None,
) -> Entity:
    """Build an entity the way the parser would, from type strings."""
    parameters = [Parameter(name=f"arg{i}", type=t) for i, t in enumerate(params)]
    return_parameters = [Parameter(name="", type=t) for t in returns]
    return Entity(
        kind=kind,
        name=name,
        signature=build_signature(name, parameters, return_parameters, visibility),
        file=file,
        contract=contract,
        visibility=visibility,
        parameters=parameters,
        return_parameters=return_parameters,
        modifiers=list(modifiers),
        calls=[RawCall(name=c) for c in calls],
        raw_source=source,
    )


def parse_result(entities: Sequence[Entity] = (), imports: Sequence[str] = ()) -> ParseResult:
    return ParseResult(
        entities=list(entities),
        imports=[ImportReference(raw_path=i, origin_file="") for i in imports],
    )


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch):
    """Keep config reads and writes away from the real home directory."""
    monkeypatch.setenv("SOLGRAPH_HOME", str(tmp_path / ".solgraph"))
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def contracts_path() -> Path:
    """Path to the Solidity fixture sources."""
    return Path(__file__).parent / "fixtures" / "contracts"


@pytest.fixture
def seed_location() -> SourceLocation:
    return SourceLocation.from_url(SEED_URL)


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def parser() -> StubParser:
    return StubParser()


@pytest.fixture
def session(fetcher: FakeFetcher, parser: StubParser, seed_location: SourceLocation) -> AnalysisSession:
    """A session seeded with ``contracts/Vault.sol`` (not yet ingested)."""
    s = AnalysisSession(fetcher, parser)
    s.seeds.append(seed_location)
    s.locations[seed_location.path] = seed_location
    return s
