"""Configuration, a Bitcoin RPC client and helpers for a Bitcoin staking indexer."""

__version__ = "0.1.0"