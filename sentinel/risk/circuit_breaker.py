"""Price updater — pushes an off-chain USD price to the on-chain oracle.

Every update passes the circuit breaker in ``thresholds.check_price_change``
first: a price that moved too far from the last accepted one is logged and
dropped, and the oracle keeps its previous value.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
import structlog

from sentinel.chain.contracts import ProtocolContracts
from sentinel.core.config import PriceFeedConfig
from sentinel.core.periodic import PeriodicTask
from sentinel.core.types import Alert, AlertLevel, PriceVerdict
from sentinel.monitor.dispatcher import AlertDispatcher
from sentinel.probes.probes import describe_error
from sentinel.risk.exceptions import PriceSourceError
from sentinel.risk.thresholds import check_price_change

logger = structlog.stdlib.get_logger()


def scale_price(price_usd: Decimal, decimals: int = 8) -> int:
    """Truncate a USD price to an integer with *decimals* implied places."""
    return int(price_usd.scaleb(decimals))


class SaucerSwapPriceSource:
    """Reads token USD prices from the SaucerSwap REST API.

    Usage::

        source = SaucerSwapPriceSource("https://api.saucerswap.finance/v1")
        await source.connect()
        price = await source.fetch_usd_price("HBAR")
    """

    def __init__(self, base_url: str, timeout_secs: float = 10.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_secs = timeout_secs
        self._http: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the httpx async client."""
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout_secs))

    async def close(self) -> None:
        """Close the httpx async client."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def fetch_usd_price(self, token: str) -> Decimal:
        if self._http is None:
            raise PriceSourceError("HTTP client not connected")

        url = f"{self._base_url}/tokens/{token}"
        try:
            response = await self._http.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise PriceSourceError(
                f"Price source returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise PriceSourceError(f"Price source request failed: {exc}") from exc

        try:
            body: Any = response.json()
        except ValueError as exc:
            raise PriceSourceError("Price source returned invalid JSON") from exc

        raw = body.get("priceUsd") if isinstance(body, dict) else None
        if raw is None:
            raise PriceSourceError(f"No priceUsd for {token}")
        try:
            return Decimal(str(raw))
        except InvalidOperation as exc:
            raise PriceSourceError(f"Unparseable priceUsd {raw!r} for {token}") from exc


class PriceOracleUpdater:
    """Fetch → guard → write loop for the on-chain price oracle.

    The accepted price is remembered only once the ``update_price``
    transaction is confirmed, so a failed write never moves the breaker's
    reference point.
    """

    def __init__(
        self,
        contracts: ProtocolContracts,
        source: SaucerSwapPriceSource,
        config: PriceFeedConfig,
        max_change_percent: float,
        *,
        price_decimals: int = 8,
        receipt_timeout_secs: float = 120.0,
        dispatcher: AlertDispatcher | None = None,
    ) -> None:
        self._contracts = contracts
        self._source = source
        self._config = config
        self._max_change_percent = max_change_percent
        self._price_decimals = price_decimals
        self._receipt_timeout_secs = receipt_timeout_secs
        self._dispatcher = dispatcher
        self._last_price: int | None = None
        self._rejected_count = 0
        self._task = PeriodicTask(
            "price_updater", self.update_once, config.update_interval_secs,
        )

    @property
    def last_price(self) -> int | None:
        """Last price confirmed on-chain, in oracle units."""
        return self._last_price

    @property
    def rejected_count(self) -> int:
        return self._rejected_count

    @property
    def running(self) -> bool:
        return self._task.running

    async def start(self) -> None:
        await self._source.connect()
        self._task.start()
        logger.info(
            "price_updater_started",
            token=self._config.token,
            interval_secs=self._config.update_interval_secs,
        )

    async def stop(self, grace_secs: float | None = None) -> None:
        await self._task.stop(grace_secs)
        await self._source.close()
        logger.info("price_updater_stopped", last_price=self._last_price)

    async def update_once(self) -> PriceVerdict | None:
        """Run one cycle. Returns the breaker verdict, or None if the fetch failed."""
        try:
            price_usd = await self._source.fetch_usd_price(self._config.token)
        except PriceSourceError as exc:
            logger.error("price_fetch_failed", token=self._config.token, error=str(exc))
            return None

        new_price = scale_price(price_usd, self._price_decimals)
        verdict = check_price_change(self._last_price, new_price, self._max_change_percent)
        if not verdict.accepted:
            self._rejected_count += 1
            logger.error(
                "price_update_rejected",
                token=self._config.token,
                new_price=new_price,
                last_price=self._last_price,
                reason=verdict.reason,
            )
            if self._dispatcher is not None:
                await self._dispatcher.send(Alert(
                    level=AlertLevel.WARNING,
                    title="Price Update Rejected",
                    message=verdict.reason,
                    detail={
                        "token": self._config.token,
                        "new_price": new_price,
                        "last_price": self._last_price,
                    },
                    source="price_feed",
                ))
            return verdict

        try:
            tx_hash = await self._contracts.update_price(new_price, self._config.gas_limit)
            confirmed = await self._contracts.wait_for_receipt(tx_hash, self._receipt_timeout_secs)
        except Exception as exc:
            logger.error("price_write_failed", new_price=new_price, error=describe_error(exc))
            return verdict
        if not confirmed:
            logger.error("price_write_reverted", new_price=new_price, tx_hash=tx_hash)
            return verdict

        self._last_price = new_price
        logger.info(
            "price_updated",
            token=self._config.token,
            price_usd=str(price_usd),
            price=new_price,
            tx_hash=tx_hash,
        )
        return verdict
