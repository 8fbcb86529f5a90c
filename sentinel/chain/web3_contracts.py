"""Web3ProtocolContracts — ProtocolContracts backed by an async JSON-RPC node."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any

import structlog
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3
from web3.contract import AsyncContract

from sentinel.chain.abis import (
    ERC20_ABI,
    ORACLE_ABI,
    POOL_ABI,
    PRICE_ORACLE_ABI,
    STAKING_ABI,
    WAD,
)
from sentinel.chain.contracts import ProtocolContracts
from sentinel.chain.exceptions import (
    ChainCallError,
    ChainConnectionError,
    TransactionFailedError,
)
from sentinel.core.config import NetworkConfig
from sentinel.core.types import AssetData, ProtocolEvent, ProtocolEventType, StakingInfo

logger = structlog.stdlib.get_logger()


class Web3ProtocolContracts(ProtocolContracts):
    """Reads and writes the Dera contracts through ``AsyncWeb3``.

    Writes are signed locally with the admin key from config and serialised
    behind a lock so concurrent submissions never reuse a nonce.
    """

    def __init__(self, config: NetworkConfig) -> None:
        self._config = config
        self._w3: AsyncWeb3 | None = None
        self._account: LocalAccount | None = None
        self._pool: AsyncContract | None = None
        self._oracle: AsyncContract | None = None
        self._staking: AsyncContract | None = None
        self._price_oracle: AsyncContract | None = None
        self._write_lock = asyncio.Lock()

    # ── Lifecycle ────────────────────────────────────────────────

    async def connect(self) -> None:
        if not self._config.pool_address:
            raise ChainConnectionError("network.pool_address is required")
        if not self._config.oracle_address:
            raise ChainConnectionError("network.oracle_address is required")

        w3 = AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(
                self._config.rpc_url,
                request_kwargs={"timeout": self._config.request_timeout_secs},
            ),
        )
        try:
            connected = await w3.is_connected()
        except Exception as exc:
            raise ChainConnectionError(f"RPC {self._config.rpc_url} unreachable: {exc}") from exc
        if not connected:
            raise ChainConnectionError(f"RPC {self._config.rpc_url} unreachable")

        self._w3 = w3
        self._pool = self._contract(self._config.pool_address, POOL_ABI)
        self._oracle = self._contract(self._config.oracle_address, ORACLE_ABI)
        if self._config.staking_address:
            self._staking = self._contract(self._config.staking_address, STAKING_ABI)
        if self._config.price_oracle_address:
            self._price_oracle = self._contract(
                self._config.price_oracle_address, PRICE_ORACLE_ABI,
            )

        key = self._config.admin_private_key.get_secret_value()
        if key:
            self._account = Account.from_key(key)

        logger.info(
            "contracts_loaded",
            network=self._config.name,
            pool=self._config.pool_address,
            signer=self._account.address if self._account else None,
        )

    async def close(self) -> None:
        if self._w3 is not None:
            provider = self._w3.provider
            disconnect = getattr(provider, "disconnect", None)
            if disconnect is not None:
                await disconnect()
            self._w3 = None

    # ── Reads ────────────────────────────────────────────────────

    async def is_paused(self) -> bool:
        return bool(await self._require(self._pool).functions.paused().call())

    async def list_assets(self) -> list[str]:
        assets = await self._require(self._pool).functions.getAssetsList().call()
        return [str(a) for a in assets]

    async def asset_data(self, asset: str) -> AssetData:
        pool = self._require(self._pool)
        data = await pool.functions.getAssetData(AsyncWeb3.to_checksum_address(asset)).call()
        try:
            supply_token, borrow_token = data[7], data[8]
        except (IndexError, TypeError) as exc:
            raise ChainCallError(f"Unexpected getAssetData payload for {asset}") from exc

        total_supply, total_borrow = await asyncio.gather(
            self._contract(supply_token, ERC20_ABI).functions.totalSupply().call(),
            self._contract(borrow_token, ERC20_ABI).functions.totalSupply().call(),
        )
        return AssetData(total_supply=int(total_supply), total_borrow=int(total_borrow))

    async def asset_price(self, asset: str) -> int:
        oracle = self._require(self._oracle)
        price = await oracle.functions.getAssetPrice(AsyncWeb3.to_checksum_address(asset)).call()
        return int(price)

    async def staking_info(self) -> StakingInfo:
        info = await self._require(self._staking).functions.getStakingInfo().call()
        return StakingInfo(currently_staked=int(info[1]), total_rewards=int(info[2]))

    async def latest_block(self) -> int:
        return int(await self._require(self._w3).eth.block_number)

    async def health_factor(self, borrower: str) -> Decimal:
        pool = self._require(self._pool)
        data = await pool.functions.getUserAccountData(
            AsyncWeb3.to_checksum_address(borrower),
        ).call()
        return Decimal(int(data[5])) / Decimal(WAD)

    async def fetch_events(
        self, from_block: int, to_block: int,
    ) -> list[ProtocolEvent]:
        pool = self._require(self._pool)
        logs: list[Any] = []
        for event_type in ProtocolEventType:
            contract_event = getattr(pool.events, event_type.value)
            logs.extend(
                await contract_event.get_logs(from_block=from_block, to_block=to_block),
            )
        logs.sort(key=lambda log: (log["blockNumber"], log["logIndex"]))
        return [
            ProtocolEvent(
                event_type=ProtocolEventType(log["event"]),
                block_number=int(log["blockNumber"]),
                tx_hash=AsyncWeb3.to_hex(log["transactionHash"]),
                args=dict(log["args"]),
            )
            for log in logs
        ]

    # ── Writes ───────────────────────────────────────────────────

    async def pause(self) -> str:
        pool = self._require(self._pool)
        return await self._send(pool.functions.pause(), {})

    async def update_price(self, new_price: int, gas_limit: int) -> str:
        oracle = self._require(self._price_oracle)
        return await self._send(
            oracle.functions.updatePrice(new_price), {"gas": gas_limit},
        )

    async def wait_for_receipt(self, tx_hash: str, timeout_secs: float) -> bool:
        w3 = self._require(self._w3)
        try:
            receipt = await w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=timeout_secs,
            )
        except Exception as exc:
            raise TransactionFailedError(
                f"Transaction {tx_hash} not finalized: {exc}",
            ) from exc
        return int(receipt["status"]) == 1

    # ── Internal ─────────────────────────────────────────────────

    def _contract(self, address: str, abi: list[dict[str, Any]]) -> AsyncContract:
        w3 = self._require(self._w3)
        return w3.eth.contract(address=AsyncWeb3.to_checksum_address(address), abi=abi)

    async def _send(self, fn: Any, overrides: dict[str, Any]) -> str:
        w3 = self._require(self._w3)
        if self._account is None:
            raise ChainConnectionError("network.admin_private_key is not configured")

        async with self._write_lock:
            nonce = await w3.eth.get_transaction_count(self._account.address, "pending")
            tx = await fn.build_transaction({
                "from": self._account.address,
                "nonce": nonce,
                **overrides,
            })
            signed = self._account.sign_transaction(tx)
            tx_hash = await w3.eth.send_raw_transaction(signed.raw_transaction)
        return AsyncWeb3.to_hex(tx_hash)

    @staticmethod
    def _require(value: Any) -> Any:
        if value is None:
            raise ChainConnectionError("Contracts not connected")
        return value
