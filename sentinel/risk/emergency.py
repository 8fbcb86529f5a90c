"""EmergencyActionExecutor — idempotent protocol pause on critical alerts."""

from __future__ import annotations

import structlog

from sentinel.chain.contracts import ProtocolContracts
from sentinel.core.types import Alert, AlertLevel, EmergencyOutcome, EmergencyResult
from sentinel.monitor.dispatcher import AlertDispatcher
from sentinel.probes.probes import describe_error

logger = structlog.stdlib.get_logger()


class EmergencyActionExecutor:
    """Pauses the protocol when an action-triggering alert arrives.

    Idempotency comes from the contract, not from local state: the paused
    flag is read immediately before every attempt and an already-paused
    protocol is left alone. Every failure after that read is reported as
    its own EMERGENCY alert.
    """

    def __init__(
        self,
        contracts: ProtocolContracts,
        dispatcher: AlertDispatcher,
        *,
        auto_pause_enabled: bool = False,
        receipt_timeout_secs: float = 120.0,
    ) -> None:
        self._contracts = contracts
        self._dispatcher = dispatcher
        self._auto_pause_enabled = auto_pause_enabled
        self._receipt_timeout_secs = receipt_timeout_secs
        self._pause_submissions = 0

    @property
    def auto_pause_enabled(self) -> bool:
        return self._auto_pause_enabled

    @property
    def pause_submissions(self) -> int:
        """Pause transactions submitted since construction."""
        return self._pause_submissions

    async def maybe_act(self, alert: Alert) -> EmergencyResult:
        if not alert.trigger_action:
            return EmergencyResult(outcome=EmergencyOutcome.SKIPPED, reason="no action requested")
        if not self._auto_pause_enabled:
            logger.info("auto_pause_disabled", title=alert.title)
            return EmergencyResult(outcome=EmergencyOutcome.SKIPPED, reason="auto-pause disabled")

        reason = f"{alert.title}: {alert.message}" if alert.message else alert.title

        try:
            paused = await self._contracts.is_paused()
        except Exception as exc:
            return await self._report_failure(reason, "Unable to read pause state", exc)

        if paused:
            logger.info("protocol_already_paused", reason=reason)
            return EmergencyResult(outcome=EmergencyOutcome.ALREADY_PAUSED, reason=reason)

        logger.warning("emergency_pause_submitting", reason=reason)
        try:
            self._pause_submissions += 1
            tx_hash = await self._contracts.pause()
        except Exception as exc:
            return await self._report_failure(reason, "Pause transaction rejected", exc)

        try:
            confirmed = await self._contracts.wait_for_receipt(
                tx_hash, self._receipt_timeout_secs,
            )
        except Exception as exc:
            return await self._report_failure(
                reason, "Pause transaction did not finalize", exc, tx_hash=tx_hash,
            )
        if not confirmed:
            return await self._report_failure(
                reason, "Pause transaction reverted", None, tx_hash=tx_hash,
            )

        logger.warning("emergency_pause_confirmed", reason=reason, tx_hash=tx_hash)
        await self._dispatcher.send(Alert(
            level=AlertLevel.EMERGENCY,
            title="Emergency Pause Activated",
            message=f"Protocol paused automatically: {reason}",
            detail={"reason": reason, "tx_hash": tx_hash},
            source="emergency",
        ))
        return EmergencyResult(outcome=EmergencyOutcome.PAUSED, reason=reason, tx_hash=tx_hash)

    async def _report_failure(
        self,
        reason: str,
        what: str,
        exc: Exception | None,
        *,
        tx_hash: str = "",
    ) -> EmergencyResult:
        error = describe_error(exc) if exc is not None else what
        logger.error(
            "emergency_pause_failed", reason=reason, step=what, error=error, tx_hash=tx_hash,
        )
        detail = {"reason": reason, "error": error}
        if tx_hash:
            detail["tx_hash"] = tx_hash
        await self._dispatcher.send(Alert(
            level=AlertLevel.EMERGENCY,
            title="Auto-Pause Failed",
            message=f"{what}; manual intervention required",
            detail=detail,
            source="emergency",
        ))
        return EmergencyResult(
            outcome=EmergencyOutcome.FAILED,
            reason=reason,
            tx_hash=tx_hash,
            error=error,
        )
