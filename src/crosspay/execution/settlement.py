"""Bounded polling of a provider's cross-chain status endpoint."""

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

from crosspay.execution.base import SettlementFailedError, SettlementTimeoutError
from crosspay.routing.base import ProviderAPIError, SettlementState, SettlementStatus

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_MAX_ATTEMPTS = 60

StatusCheck = Callable[[], Awaitable[SettlementStatus]]


class SettlementPoller:
    """Polls a status check until it reports a terminal state.

    One poller belongs to one execution call. ``sleep`` is injectable so
    tests can run the full attempt budget instantly.
    """

    def __init__(
        self,
        interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.interval = interval
        self.max_attempts = max_attempts
        self._sleep = sleep
        self.attempts = 0
        self.last_status: SettlementStatus = SettlementStatus(state=SettlementState.PENDING)

    async def wait(self, check: StatusCheck, tx_hash: str = "") -> SettlementStatus:
        """Run ``check`` up to ``max_attempts`` times, ``interval`` seconds apart.

        Returns:
            The successful status

        Raises:
            SettlementFailedError: provider reported failure
            SettlementTimeoutError: no terminal status within the budget
        """
        for attempt in range(1, self.max_attempts + 1):
            self.attempts = attempt
            status = await self._poll_once(check, attempt, tx_hash)

            if status.state == SettlementState.SUCCESS:
                logger.info(f"Settlement of {tx_hash} confirmed after {attempt} poll(s)")
                self.last_status = status
                return status
            if status.state == SettlementState.FAILED:
                self.last_status = status
                raise SettlementFailedError(
                    f"Cross-chain transfer failed: {status.detail or 'provider reported failure'}"
                )

            self.last_status = status
            if attempt < self.max_attempts:
                await self._sleep(self.interval)

        raise SettlementTimeoutError(
            f"Settlement not confirmed after {self.max_attempts} polls "
            f"({self.max_attempts * self.interval:g}s); last status: "
            f"{self.last_status.detail or self.last_status.state.value}"
        )

    async def _poll_once(self, check: StatusCheck, attempt: int, tx_hash: str) -> SettlementStatus:
        try:
            status = await check()
        except ProviderAPIError as e:
            if e.status_code == 404:
                return SettlementStatus(state=SettlementState.NOT_FOUND, detail=e.message)
            logger.warning(f"Status poll {attempt}/{self.max_attempts} for {tx_hash} failed: {e}")
            return SettlementStatus(state=SettlementState.PENDING, detail=str(e))
        except httpx.HTTPError as e:
            logger.warning(f"Status poll {attempt}/{self.max_attempts} for {tx_hash} failed: {e}")
            return SettlementStatus(state=SettlementState.PENDING, detail=str(e))

        if status.state == SettlementState.NOT_FOUND:
            logger.debug(f"Status poll {attempt}: {tx_hash} not indexed yet")
        elif status.state == SettlementState.PENDING:
            logger.debug(f"Status poll {attempt}: {tx_hash} pending ({status.detail})")
        return status
