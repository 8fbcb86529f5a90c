"""Exception hierarchy for chain and indexer access."""

from __future__ import annotations


class ChainError(Exception):
    """Base exception for all chain access errors."""


class ChainConnectionError(ChainError):
    """Failed to reach the RPC node or the mirror node."""


class ChainCallError(ChainError):
    """A contract read returned an error or an unexpected payload."""


class TransactionFailedError(ChainError):
    """A submitted transaction reverted or never finalized."""
