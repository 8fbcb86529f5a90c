"""In-memory stand-ins for the chain adapter, channels and loan store."""

from __future__ import annotations

from decimal import Decimal

from sentinel.chain.contracts import ProtocolContracts
from sentinel.core.types import Alert, AssetData, Loan, LoanStatus, ProtocolEvent, StakingInfo
from sentinel.monitor.channels import NotificationChannel
from sentinel.risk.exceptions import LoanStoreError
from sentinel.risk.liquidation import LoanStore


class FakeContracts(ProtocolContracts):
    """Scriptable contracts: set attributes, or put an exception in ``errors``."""

    def __init__(
        self,
        *,
        paused: bool = False,
        assets: list[str] | None = None,
        asset_data: dict[str, AssetData] | None = None,
        prices: dict[str, int] | None = None,
        block: int = 100,
        health_factors: dict[str, Decimal] | None = None,
        receipt_ok: bool = True,
    ) -> None:
        self.paused = paused
        self.assets = list(assets or [])
        self.data = dict(asset_data or {})
        self.prices = dict(prices or {})
        self.block = block
        self.staking = StakingInfo(currently_staked=1_500 * 10**18, total_rewards=0)
        self.health_factors = dict(health_factors or {})
        self.receipt_ok = receipt_ok
        self.events: list[ProtocolEvent] = []
        self.event_ranges: list[tuple[int, int]] = []
        self.errors: dict[str, Exception] = {}
        self.pause_calls = 0
        self.pause_sets_paused = True
        self.price_updates: list[tuple[int, int]] = []
        self.connected = False
        self.closed = False

    def _maybe_raise(self, name: str) -> None:
        exc = self.errors.get(name)
        if exc is not None:
            raise exc

    async def connect(self) -> None:
        self._maybe_raise("connect")
        self.connected = True

    async def close(self) -> None:
        self.closed = True

    async def is_paused(self) -> bool:
        self._maybe_raise("is_paused")
        return self.paused

    async def list_assets(self) -> list[str]:
        self._maybe_raise("list_assets")
        return list(self.assets)

    async def asset_data(self, asset: str) -> AssetData:
        self._maybe_raise("asset_data")
        self._maybe_raise(f"asset_data:{asset}")
        return self.data[asset]

    async def asset_price(self, asset: str) -> int:
        self._maybe_raise("asset_price")
        return self.prices.get(asset, 0)

    async def staking_info(self) -> StakingInfo:
        self._maybe_raise("staking_info")
        return self.staking

    async def latest_block(self) -> int:
        self._maybe_raise("latest_block")
        return self.block

    async def health_factor(self, borrower: str) -> Decimal:
        self._maybe_raise("health_factor")
        self._maybe_raise(f"health_factor:{borrower}")
        return self.health_factors[borrower]

    async def fetch_events(self, from_block: int, to_block: int) -> list[ProtocolEvent]:
        self._maybe_raise("fetch_events")
        self.event_ranges.append((from_block, to_block))
        events, self.events = self.events, []
        return events

    async def pause(self) -> str:
        self._maybe_raise("pause")
        self.pause_calls += 1
        if self.pause_sets_paused:
            self.paused = True
        return f"0xpause{self.pause_calls}"

    async def update_price(self, new_price: int, gas_limit: int) -> str:
        self._maybe_raise("update_price")
        self.price_updates.append((new_price, gas_limit))
        return f"0xprice{len(self.price_updates)}"

    async def wait_for_receipt(self, tx_hash: str, timeout_secs: float) -> bool:
        self._maybe_raise("wait_for_receipt")
        return self.receipt_ok


class FakeChannel(NotificationChannel):
    """In-memory channel for testing."""

    def __init__(self, name: str = "fake", fail: bool = False, ok: bool = True) -> None:
        self.name = name
        self.sent: list[Alert] = []
        self._fail = fail
        self._ok = ok
        self.closed = False

    async def send(self, alert: Alert) -> bool:
        if self._fail:
            raise ConnectionError("fake error")
        self.sent.append(alert)
        return self._ok

    async def close(self) -> None:
        self.closed = True


def healthy_contracts(**kw: object) -> FakeContracts:
    """One asset ``0xA`` with 1000 supplied, 500 borrowed at $1.00."""
    defaults: dict[str, object] = {
        "assets": ["0xA"],
        "asset_data": {"0xA": AssetData(total_supply=1000 * 10**18, total_borrow=500 * 10**18)},
        "prices": {"0xA": 100_000_000},
    }
    defaults.update(kw)
    return FakeContracts(**defaults)  # type: ignore[arg-type]


class MemoryLoanStore(LoanStore):
    """Dict-backed loan store; ``fail_list`` makes listing raise."""

    def __init__(self, borrowers: list[str] | None = None) -> None:
        self.loans = {b: Loan(borrower=b) for b in borrowers or []}
        self.checks: list[tuple[str, Decimal, float]] = []
        self.warnings: list[str] = []
        self.fail_list = False
        self.closed = False

    async def list_active_loans(self) -> list[Loan]:
        if self.fail_list:
            raise LoanStoreError("db down")
        return [loan for loan in self.loans.values() if loan.status == LoanStatus.ACTIVE]

    async def record_health_factor(
        self, borrower: str, health_factor: Decimal, checked_at: float,
    ) -> None:
        self.checks.append((borrower, health_factor, checked_at))

    async def mark_pending_liquidation(self, borrower: str, triggered_at: float) -> None:
        self.loans[borrower] = Loan(borrower=borrower, status=LoanStatus.PENDING_LIQUIDATION)

    async def record_warning(
        self, borrower: str, health_factor: Decimal, created_at: float,
    ) -> None:
        self.warnings.append(borrower)

    async def close(self) -> None:
        self.closed = True
