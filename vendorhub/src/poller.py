"""
Payment status polling.

Gateway collections are settled asynchronously. `PaymentPoller` asks the
gateway for the status of one transaction at a fixed interval until it
either settles or the attempts run out.

Usage:
    >>> poller = PaymentPoller(lipilaClient.checkStatus)
    >>> result = poller.run("TXN-123")
    >>> result.state
    <PollState.SUCCESS: 'success'>
"""

import logging
from enum import Enum
from threading import Event
from typing import Callable, Optional
from pydantic import BaseModel

from vendorhub.src.constants import PAYMENT_POLL_INTERVAL, PAYMENT_POLL_MAX_ATTEMPTS
from vendorhub.src.enums import GatewayStatus

logger = logging.getLogger("PaymentPoller")


class PollState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class PollResult(BaseModel):
    transaction_id: str
    state: PollState
    attempts: int
    gateway_status: Optional[str] = None
    response: Optional[dict] = None
    error: Optional[str] = None


class PaymentPoller:
    """
    Poll a transaction until it settles.

    `Successful` ends the poll with `success`; `Failed` and `Cancelled` end
    it with `failed`; `Pending` keeps polling. A status check raising an
    exception counts as an attempt. After `maxAttempts` checks without a
    final status the poll ends with `timeout`. `cancel()` interrupts the
    wait between two checks and ends the poll with `cancelled`.

    Args:
        checkStatus: Callable returning the gateway status document of a
            transaction, typically `LipilaClient.checkStatus`.
        interval: Seconds between two checks.
        maxAttempts: Maximum number of checks.
        onUpdate: Optional callback receiving the intermediate `PollResult`
            after every check.
    """

    def __init__(
        self,
        checkStatus: Callable[[str], dict],
        interval: float = PAYMENT_POLL_INTERVAL,
        maxAttempts: int = PAYMENT_POLL_MAX_ATTEMPTS,
        onUpdate: Optional[Callable[[PollResult], None]] = None,
    ):
        self.checkStatus = checkStatus
        self.interval = interval
        self.maxAttempts = maxAttempts
        self.onUpdate = onUpdate
        self.state = PollState.IDLE
        self.attempts = 0
        self._stop = Event()

    def cancel(self) -> None:
        self._stop.set()

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def run(self, transactionId: str) -> PollResult:
        self.state = PollState.PENDING
        self.attempts = 0
        gatewayStatus, response, error = None, None, None

        while self.attempts < self.maxAttempts:
            if self.cancelled:
                return self._finish(PollState.CANCELLED, transactionId, gatewayStatus, response, error)

            self.attempts += 1
            try:
                response = self.checkStatus(transactionId)
                gatewayStatus = response.get("status")
                error = None
            except Exception as e:
                logger.warning(
                    "Status check %d/%d of %s failed: %s",
                    self.attempts,
                    self.maxAttempts,
                    transactionId,
                    e,
                )
                error = str(e)
                gatewayStatus = None

            if gatewayStatus == GatewayStatus.SUCCESSFUL:
                return self._finish(PollState.SUCCESS, transactionId, gatewayStatus, response, error)
            if gatewayStatus in (GatewayStatus.FAILED, GatewayStatus.CANCELLED):
                return self._finish(PollState.FAILED, transactionId, gatewayStatus, response, error)

            self._notify(transactionId, gatewayStatus, response, error)
            if self.attempts < self.maxAttempts and self._stop.wait(self.interval):
                return self._finish(PollState.CANCELLED, transactionId, gatewayStatus, response, error)

        return self._finish(PollState.TIMEOUT, transactionId, gatewayStatus, response, error)

    def _result(self, transactionId, gatewayStatus, response, error) -> PollResult:
        return PollResult(
            transaction_id=transactionId,
            state=self.state,
            attempts=self.attempts,
            gateway_status=gatewayStatus,
            response=response,
            error=error,
        )

    def _notify(self, transactionId, gatewayStatus, response, error) -> None:
        if self.onUpdate is not None:
            self.onUpdate(self._result(transactionId, gatewayStatus, response, error))

    def _finish(self, state, transactionId, gatewayStatus, response, error) -> PollResult:
        self.state = state
        logger.info(
            "Polling of %s finished as %s after %d attempts",
            transactionId,
            state.value,
            self.attempts,
        )
        result = self._result(transactionId, gatewayStatus, response, error)
        if self.onUpdate is not None:
            self.onUpdate(result)
        return result
