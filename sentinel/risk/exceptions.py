"""Supervisor and risk-loop exceptions."""

from __future__ import annotations


class SentinelError(Exception):
    """Base exception for supervisor errors."""


class InitializationError(SentinelError):
    """Wiring remote connections or sub-components failed; the process must not run."""


class InvalidStateError(SentinelError):
    """A lifecycle operation was requested from the wrong state."""


class LoanStoreError(Exception):
    """The loan store could not be read or written."""


class PriceSourceError(Exception):
    """The off-chain price source returned no usable price."""
