"""SolGraph CLI: bounded call graphs for Solidity functions scattered across GitHub repositories."""

__version__ = "0.3.0"
