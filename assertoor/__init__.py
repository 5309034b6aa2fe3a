"""Block caches, fork tracking and node API clients for Ethereum test networks."""

__version__ = "0.1.0"