"""Tests for import classification, candidate generation and resolution."""

import pytest

from solgraph_cli.dependency_resolver import (
    DependencyResolver,
    classify,
    normalize_path,
    resolve_relative,
)
from solgraph_cli.models import ImportReference, RepoCoords, SourceLocation
from solgraph_cli.session import FAILED_EXTERNAL, FAILED_UNREACHABLE

from conftest import FakeFetcher


def _ref(path: str, origin: str = "contracts/Vault.sol") -> ImportReference:
    return ImportReference(raw_path=path, origin_file=origin)


class TestClassify:
    """Tests for external vs resolvable classification."""

    @pytest.mark.parametrize("path", [
        "@openzeppelin/contracts/token/ERC20/ERC20.sol",
        "@chainlink/contracts/src/v0.8/interfaces/AggregatorV3Interface.sol",
        "hardhat/console.sol",
        "node_modules/foo/Bar.sol",
        "npm:some-package/Foo.sol",
        "https://example.com/Foo.sol",
        "ipfs://QmHash/Foo.sol",
    ])
    def test_external(self, path):
        assert classify(path) == "external"

    @pytest.mark.parametrize("path", ["./Library.sol", "../utils/Math.sol", "contracts/Token.sol", "solmate/tokens/ERC20.sol"])
    def test_resolvable(self, path):
        assert classify(path) == "resolvable"


class TestPathHelpers:
    """Tests for normalization and relative resolution."""

    def test_normalize_collapses_dots_and_slashes(self):
        assert normalize_path("contracts//./Library.sol") == "contracts/Library.sol"
        assert normalize_path("contracts/utils/../Library.sol") == "contracts/Library.sol"

    def test_normalize_rejects_escape(self):
        assert normalize_path("contracts/../../Library.sol") is None
        assert normalize_path("../Library.sol") is None

    def test_resolve_relative_clamps_at_root(self):
        assert resolve_relative("../utils/Math.sol", "contracts/core") == "contracts/utils/Math.sol"
        assert resolve_relative("../../../Math.sol", "contracts") == "Math.sol"


class TestCandidates:
    """Tests for ordered candidate generation."""

    def test_external_has_no_candidates(self, session):
        resolver = DependencyResolver(session)
        coords = session.seeds[0].coords
        assert resolver.candidates("@openzeppelin/contracts/token/ERC20/ERC20.sol", coords) == []

    def test_relative_import_order(self, session):
        resolver = DependencyResolver(session)
        paths = [loc.path for loc in resolver.candidates("./Library.sol", session.seeds[0].coords)]

        assert paths[:2] == ["contracts/Library.sol", "Library.sol"]
        assert "src/Library.sol" in paths
        assert "contracts/interfaces/Library.sol" in paths
        assert len(paths) == len(set(paths))

    def test_extension_is_appended(self, session):
        resolver = DependencyResolver(session)
        paths = [loc.path for loc in resolver.candidates("./Library", session.seeds[0].coords)]
        assert all(p.endswith(".sol") for p in paths)
        assert paths[0] == "contracts/Library.sol"

    def test_no_candidate_escapes_root(self, session):
        resolver = DependencyResolver(session)
        paths = [loc.path for loc in resolver.candidates("../../../Math.sol", session.seeds[0].coords)]
        assert paths
        assert not any(p.startswith("..") for p in paths)

    def test_library_prefix_maps_to_library_repo(self, session):
        resolver = DependencyResolver(session)
        locations = resolver.candidates("solmate/tokens/ERC20.sol", session.seeds[0].coords)

        assert [(loc.owner, loc.repo, loc.path) for loc in locations] == [
            ("transmissions11", "solmate", "tokens/ERC20.sol"),
            ("transmissions11", "solmate", "src/tokens/ERC20.sol"),
        ]

    def test_well_known_contract_comes_first(self, session):
        resolver = DependencyResolver(session)
        locations = resolver.candidates("./Ownable.sol", session.seeds[0].coords)

        assert (locations[0].owner, locations[0].path) == ("OpenZeppelin", "contracts/access/Ownable.sol")
        assert any(loc.owner == "acme" for loc in locations)

    def test_relative_to_library_origin(self, session):
        origin = SourceLocation("transmissions11", "solmate", "main", "src/tokens/ERC20.sol")
        session.locations[origin.key] = origin
        resolver = DependencyResolver(session)

        coords = resolver.coords_for(_ref("../utils/FixedPointMathLib.sol", origin.key))
        first = resolver.candidates("../utils/FixedPointMathLib.sol", coords)[0]

        assert coords == RepoCoords("transmissions11", "solmate", "main", "src/tokens")
        assert (first.repo, first.path) == ("solmate", "src/utils/FixedPointMathLib.sol")


class TestResolve:
    """Tests for fetching and recording import outcomes."""

    def test_external_import_is_never_fetched(self, session, fetcher: FakeFetcher):
        resolver = DependencyResolver(session)
        path = "@openzeppelin/contracts/token/ERC20/ERC20.sol"

        assert resolver.resolve(_ref(path)) is None
        assert session.failed[path] == FAILED_EXTERNAL
        assert fetcher.calls == []
        assert path in session.coverage().external

    def test_root_level_fallback(self, session, fetcher: FakeFetcher):
        fetcher.files["Library.sol"] = "library Library {}"
        resolver = DependencyResolver(session)

        fetched = resolver.resolve(_ref("./Library.sol"))

        assert fetched is not None
        assert fetched.location.path == "Library.sol"
        assert fetcher.paths == ["contracts/Library.sol", "Library.sol"]
        assert session.processed["./Library.sol"].path == "Library.sol"

    def test_all_candidates_fail(self, session, fetcher: FakeFetcher):
        resolver = DependencyResolver(session)
        candidates = resolver.candidates("./Missing.sol", session.seeds[0].coords)

        assert resolver.resolve(_ref("./Missing.sol")) is None
        assert session.failed["./Missing.sol"] == FAILED_UNREACHABLE
        assert len(fetcher.calls) == len(candidates)

    def test_network_error_moves_to_next_candidate(self, session):
        session.fetcher = FakeFetcher({"Library.sol": "library Library {}"}, broken=["contracts/Library.sol"])
        resolver = DependencyResolver(session)

        fetched = resolver.resolve(_ref("./Library.sol"))

        assert fetched.location.path == "Library.sol"

    def test_settled_import_is_not_retried(self, session, fetcher: FakeFetcher):
        fetcher.files["contracts/Library.sol"] = "library Library {}"
        resolver = DependencyResolver(session)

        resolver.resolve(_ref("./Library.sol"))
        attempts = len(fetcher.calls)

        assert resolver.resolve(_ref("./Library.sol")) is None
        assert resolver.resolve(_ref("./Missing.sol")) is None
        assert resolver.resolve(_ref("./Missing.sol")) is None
        assert "./Library.sol" in session.processed
        assert session.failed.get("./Missing.sol") == FAILED_UNREACHABLE
        missing_attempts = len(resolver.candidates("./Missing.sol", session.seeds[0].coords))
        assert len(fetcher.calls) == attempts + missing_attempts

    def test_stats(self, session, fetcher: FakeFetcher):
        fetcher.files["contracts/Library.sol"] = "library Library {}"
        resolver = DependencyResolver(session)
        resolver.resolve(_ref("./Library.sol"))
        resolver.resolve(_ref("hardhat/console.sol"))

        stats = session.coverage().stats()

        assert stats["resolved"] == 1
        assert stats["failed"] == 1
        assert stats["successRate"] == 0.5
