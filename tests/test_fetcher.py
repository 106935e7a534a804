"""Tests for the GitHub raw-content fetcher."""

from unittest.mock import MagicMock

import pytest
import requests

from solgraph_cli.errors import NetworkError, NotFound
from solgraph_cli.fetcher import GitHubFetcher
from solgraph_cli.models import SourceLocation

LOCATION = SourceLocation("acme", "vault", "main", "contracts/Vault.sol")


def _response(status: int, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.text = text
    response.reason = "Error"
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status}")
    return response


def _fetcher(response=None, error=None, token=""):
    session = MagicMock()
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value = response
    return GitHubFetcher(timeout=3.0, token=token, session=session), session


def test_fetches_raw_url():
    fetcher, session = _fetcher(_response(200, "contract Vault {}"))

    assert fetcher.fetch_text(LOCATION) == "contract Vault {}"
    url = session.get.call_args.args[0]
    assert url == "https://raw.githubusercontent.com/acme/vault/main/contracts/Vault.sol"
    assert session.get.call_args.kwargs["timeout"] == 3.0
    assert "Authorization" not in session.get.call_args.kwargs["headers"]


def test_token_is_sent():
    fetcher, session = _fetcher(_response(200), token="ghp_secret")
    fetcher.fetch_text(LOCATION)

    assert session.get.call_args.kwargs["headers"]["Authorization"] == "Bearer ghp_secret"


def test_not_found():
    fetcher, _ = _fetcher(_response(404))

    with pytest.raises(NotFound):
        fetcher.fetch_text(LOCATION)


def test_http_error():
    fetcher, _ = _fetcher(_response(500))

    with pytest.raises(NetworkError):
        fetcher.fetch_text(LOCATION)


def test_timeout():
    fetcher, _ = _fetcher(error=requests.Timeout("slow"))

    with pytest.raises(NetworkError) as excinfo:
        fetcher.fetch_text(LOCATION)

    assert excinfo.value.location == LOCATION.blob_url


def test_location_from_urls():
    blob = SourceLocation.from_url("https://github.com/acme/vault/blob/main/contracts/Vault.sol")
    raw = SourceLocation.from_url("https://raw.githubusercontent.com/acme/vault/main/contracts/Vault.sol")

    assert blob == raw == LOCATION
    assert blob.coords.base_path == "contracts"
    with pytest.raises(ValueError):
        SourceLocation.from_url("https://gitlab.com/acme/vault/-/blob/main/Vault.sol")
