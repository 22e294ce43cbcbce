"""Tests for bounded settlement polling."""

import httpx
import pytest

from crosspay.execution.base import SettlementFailedError, SettlementTimeoutError
from crosspay.execution.settlement import SettlementPoller
from crosspay.routing.base import ProviderAPIError, SettlementState, SettlementStatus


def scripted(*items):
    """Status check returning (or raising) each item in turn, then pending forever."""
    queue = list(items)
    calls = []

    async def check():
        calls.append(1)
        item = queue.pop(0) if queue else SettlementState.PENDING
        if isinstance(item, Exception):
            raise item
        return SettlementStatus(state=item, detail=item.value)

    check.calls = calls
    return check


class TestSettlementPoller:
    """Tests for SettlementPoller."""

    @pytest.mark.asyncio
    async def test_gives_up_after_sixty_polls(self, fake_sleep, sleeps):
        """60 polls, 5s apart: 59 sleeps and then a timeout."""
        poller = SettlementPoller(interval=5, max_attempts=60, sleep=fake_sleep)
        check = scripted()

        with pytest.raises(SettlementTimeoutError) as exc_info:
            await poller.wait(check, "0xabc")

        assert len(check.calls) == 60
        assert sleeps == [5] * 59
        assert poller.attempts == 60
        assert "60 polls" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_success_stops_polling(self, fake_sleep, sleeps):
        poller = SettlementPoller(interval=5, max_attempts=60, sleep=fake_sleep)
        check = scripted(SettlementState.PENDING, SettlementState.NOT_FOUND, SettlementState.SUCCESS)

        status = await poller.wait(check)

        assert status.state == SettlementState.SUCCESS
        assert len(check.calls) == 3
        assert sleeps == [5, 5]

    @pytest.mark.asyncio
    async def test_first_poll_is_immediate(self, fake_sleep, sleeps):
        poller = SettlementPoller(interval=5, max_attempts=60, sleep=fake_sleep)

        await poller.wait(scripted(SettlementState.SUCCESS))

        assert sleeps == []

    @pytest.mark.asyncio
    async def test_failure_raises(self, fake_sleep):
        poller = SettlementPoller(interval=5, max_attempts=60, sleep=fake_sleep)
        check = scripted(SettlementState.PENDING, SettlementState.FAILED)

        with pytest.raises(SettlementFailedError):
            await poller.wait(check)

        assert len(check.calls) == 2
        assert poller.last_status.state == SettlementState.FAILED

    @pytest.mark.asyncio
    async def test_not_found_404_is_retried(self, fake_sleep):
        """Freshly submitted transactions are not indexed yet."""
        poller = SettlementPoller(interval=5, max_attempts=60, sleep=fake_sleep)
        check = scripted(
            ProviderAPIError("Across Protocol", 404, "DepositNotFound"),
            ProviderAPIError("Across Protocol", 404, "DepositNotFound"),
            SettlementState.SUCCESS,
        )

        status = await poller.wait(check)

        assert status.state == SettlementState.SUCCESS
        assert len(check.calls) == 3

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self, fake_sleep):
        poller = SettlementPoller(interval=5, max_attempts=60, sleep=fake_sleep)
        check = scripted(
            ProviderAPIError("LI.FI", 503, "unavailable"),
            httpx.ConnectError("connection refused"),
            SettlementState.SUCCESS,
        )

        status = await poller.wait(check)

        assert status.state == SettlementState.SUCCESS

    @pytest.mark.asyncio
    async def test_errors_exhaust_budget(self, fake_sleep, sleeps):
        poller = SettlementPoller(interval=2, max_attempts=3, sleep=fake_sleep)
        check = scripted(*[ProviderAPIError("Squid Router", 404, "Not found")] * 3)

        with pytest.raises(SettlementTimeoutError):
            await poller.wait(check)

        assert sleeps == [2, 2]
        assert poller.last_status.state == SettlementState.NOT_FOUND

    @pytest.mark.asyncio
    async def test_unexpected_error_propagates(self, fake_sleep):
        poller = SettlementPoller(interval=5, max_attempts=60, sleep=fake_sleep)

        with pytest.raises(KeyError):
            await poller.wait(scripted(KeyError("bad")))

    def test_requires_an_attempt(self):
        with pytest.raises(ValueError):
            SettlementPoller(max_attempts=0)
