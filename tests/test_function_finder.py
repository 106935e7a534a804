"""Tests for start-function lookup and call tree slicing."""

from solgraph_cli.call_tree import CallTreeBuilder
from solgraph_cli.function_finder import available_functions, extract_entities, find_function, group_by_file
from solgraph_cli.repository import EntityRepository

from conftest import make_entity


def _repository(*entities) -> EntityRepository:
    repo = EntityRepository()
    repo.add_all(entities)
    return repo


def test_find_by_exact_name():
    repo = _repository(
        make_entity("deposit", params=["uint256"]),
        make_entity("deposit", params=["uint256", "address"]),
    )

    found = find_function(repo, "deposit")

    assert found.signature == "deposit(uint256 arg0)"


def test_find_by_signature_fragment():
    repo = _repository(make_entity("withdraw", params=["uint256"]))

    assert find_function(repo, "withdraw(uint256").name == "withdraw"


def test_events_are_not_start_functions():
    repo = _repository(make_entity("Deposit", kind="event"))

    assert find_function(repo, "Deposit") is None


def test_available_functions():
    repo = _repository(
        make_entity("constructor"),
        make_entity("deposit"),
        make_entity("deposit", params=["uint256"]),
        make_entity("onlyOwner", kind="modifier"),
    )

    assert available_functions(repo) == ["deposit"]


class TestExtractEntities:
    """Tests for the entities referenced by a call tree."""

    def _tree(self, repo, root_name="deposit"):
        return CallTreeBuilder(repo).build(find_function(repo, root_name), max_depth=5)

    def test_includes_invoked_modifiers(self):
        repo = _repository(
            make_entity("deposit", calls=["_mint"], modifiers=["nonReentrant"]),
            make_entity("_mint"),
            make_entity("nonReentrant", kind="modifier"),
        )
        tree = self._tree(repo)

        names = [e.name for e in extract_entities(repo, tree)]
        without = [e.name for e in extract_entities(repo, tree, include_modifiers=False)]

        assert names == ["_mint", "deposit", "nonReentrant"]
        assert without == ["_mint", "deposit"]

    def test_events_only_on_request(self):
        repo = _repository(
            make_entity("deposit", calls=["Deposited"]),
            make_entity("Deposited", kind="event", params=["uint256"]),
        )
        tree = self._tree(repo)

        assert [e.name for e in extract_entities(repo, tree)] == ["deposit"]
        assert [e.name for e in extract_entities(repo, tree, include_events=True)] == ["Deposited", "deposit"]

    def test_external_calls_contribute_nothing(self):
        repo = _repository(make_entity("deposit", calls=["safeTransferFrom"]))

        assert [e.name for e in extract_entities(repo, self._tree(repo))] == ["deposit"]

    def test_group_by_file(self):
        entities = [
            make_entity("deposit", file="contracts/Vault.sol"),
            make_entity("_mint", file="contracts/ERC20.sol"),
            make_entity("withdraw", file="contracts/Vault.sol"),
        ]

        assert group_by_file(entities) == {
            "contracts/Vault.sol": ["deposit", "withdraw"],
            "contracts/ERC20.sol": ["_mint"],
        }
