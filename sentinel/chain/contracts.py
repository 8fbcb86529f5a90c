"""ProtocolContracts — the contract-call surface the sentinel depends on."""

from __future__ import annotations

import abc
from decimal import Decimal

from sentinel.core.types import AssetData, ProtocolEvent, StakingInfo


class ProtocolContracts(abc.ABC):
    """Async facade over the pool, oracle and staking contracts.

    Implementations raise ``ChainError`` subclasses (or any exception) on
    failure; callers at the probe and collector boundary convert those into
    values. Amounts are returned raw, in token base units.
    """

    @abc.abstractmethod
    async def connect(self) -> None:
        """Open RPC connections and bind contract instances."""

    @abc.abstractmethod
    async def close(self) -> None:
        """Release RPC resources."""

    # ── Reads ────────────────────────────────────────────────────

    @abc.abstractmethod
    async def is_paused(self) -> bool:
        """Current value of the pool's pause flag."""

    @abc.abstractmethod
    async def list_assets(self) -> list[str]:
        """Addresses of every configured reserve."""

    @abc.abstractmethod
    async def asset_data(self, asset: str) -> AssetData:
        """Supply and borrow totals for *asset*."""

    @abc.abstractmethod
    async def asset_price(self, asset: str) -> int:
        """Oracle price for *asset*, scaled by the oracle decimals."""

    @abc.abstractmethod
    async def staking_info(self) -> StakingInfo:
        """Aggregate staking contract state."""

    @abc.abstractmethod
    async def latest_block(self) -> int:
        """Latest block number seen by the RPC node."""

    @abc.abstractmethod
    async def health_factor(self, borrower: str) -> Decimal:
        """Borrower health factor as a plain ratio (1.0 = liquidation line)."""

    @abc.abstractmethod
    async def fetch_events(
        self, from_block: int, to_block: int,
    ) -> list[ProtocolEvent]:
        """Pause, unpause and liquidation events in ``[from_block, to_block]``."""

    # ── Writes ───────────────────────────────────────────────────

    @abc.abstractmethod
    async def pause(self) -> str:
        """Submit the pool pause transaction. Returns the transaction hash."""

    @abc.abstractmethod
    async def update_price(self, new_price: int, gas_limit: int) -> str:
        """Submit a price-oracle update. Returns the transaction hash."""

    @abc.abstractmethod
    async def wait_for_receipt(self, tx_hash: str, timeout_secs: float) -> bool:
        """Wait for *tx_hash* to finalize. Returns True if it succeeded."""
