"""Raw-content transport for GitHub-hosted source files."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

import requests

from . import config
from .errors import NetworkError, NotFound
from .models import SourceLocation

logger = logging.getLogger(__name__)


class Fetcher(ABC):
    """Anything that can turn a :class:`SourceLocation` into text."""

    @abstractmethod
    def fetch_text(self, location: SourceLocation) -> str:
        """Return the file content or raise ``NotFound`` / ``NetworkError``."""
        ...


class GitHubFetcher(Fetcher):
    """Fetch files from ``raw.githubusercontent.com`` with ``requests``."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        token: Optional[str] = None,
        user_agent: str = config.USER_AGENT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = timeout if timeout is not None else config.FETCH_TIMEOUT
        self.session = session or requests.Session()
        self.headers: Dict[str, str] = {"User-Agent": user_agent}
        token = token if token is not None else config.GITHUB_TOKEN
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    def fetch_text(self, location: SourceLocation) -> str:
        url = location.raw_url
        logger.debug("GET %s", url)
        try:
            response = self.session.get(url, headers=self.headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise NetworkError(location.blob_url, f"Network error: unable to reach GitHub ({exc})") from exc

        if response.status_code == 404:
            raise NotFound(location.blob_url, f"HTTP 404: {location.path}")
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise NetworkError(location.blob_url, f"HTTP {response.status_code}: {response.reason}") from exc
        return response.text
