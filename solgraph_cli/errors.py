"""Exception hierarchy shared by fetching, parsing, and analysis layers."""

from __future__ import annotations

from typing import List


class FetchError(Exception):
    """A source location could not be fetched."""

    def __init__(self, location: str, message: str = "") -> None:
        self.location = location
        super().__init__(message or f"Could not fetch {location}")


class NotFound(FetchError):
    """The location does not exist (HTTP 404)."""


class NetworkError(FetchError):
    """Transport failure: timeout, connection error, or unexpected HTTP status."""


class ParseError(Exception):
    """Source text could not be turned into declarations."""

    def __init__(self, file: str, message: str) -> None:
        self.file = file
        super().__init__(f"Parse error in {file}: {message}")


class AnalysisError(Exception):
    """Fatal error that aborts an analysis run."""


class SeedFetchError(AnalysisError):
    pass


class SeedParseError(AnalysisError):
    pass


class FunctionNotFoundError(AnalysisError):
    def __init__(self, name: str, available: List[str]) -> None:
        self.name = name
        self.available = available
        listing = ", ".join(available) if available else "none"
        super().__init__(f'Function "{name}" not found. Available functions: {listing}')
