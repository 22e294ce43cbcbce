"""Per-provider execution strategies.

A strategy knows how to find the approval spender for a route, how to get
executable call data for it, and how to ask for its settlement status.
Routes quoted with call data use it as is; the rest are built just in time
through the provider adapter.
"""

import logging
from typing import Optional

from crosspay.execution.base import ApprovalFailedError, SubmissionFailedError
from crosspay.routing.across import AcrossProvider
from crosspay.routing.base import (
    ProviderId,
    RouteProvider,
    RouteTransaction,
    RoutingError,
    SettlementStatus,
    UnifiedRoute,
)
from crosspay.routing.squid import SquidProvider, SquidRawData

logger = logging.getLogger(__name__)


def _quoted_transaction(route: UnifiedRoute) -> Optional[RouteTransaction]:
    for tx in route.transactions:
        if tx.has_calldata:
            return tx
    return None


def _require_request_id(route: UnifiedRoute) -> None:
    raw = route.raw_data
    request_id = raw.request_id if isinstance(raw, SquidRawData) else None
    if route.is_cross_chain and not request_id:
        raise SubmissionFailedError(
            "Squid route is missing its request id (x-request-id); "
            "cross-chain status could not be tracked"
        )


class ExecutionStrategy:
    """Default strategy: quoted call data, else the adapter's builder."""

    def __init__(self, provider: RouteProvider):
        self.provider = provider

    def validate(self, route: UnifiedRoute) -> None:
        """Reject a route before anything is sent on-chain for it."""

    async def resolve_spender(self, route: UnifiedRoute) -> str:
        try:
            return await self.provider.resolve_spender(route)
        except RoutingError as e:
            raise ApprovalFailedError(f"Could not determine approval spender: {e}") from e

    async def prepare(
        self,
        route: UnifiedRoute,
        user_address: str,
        recipient_address: Optional[str] = None,
    ) -> tuple[UnifiedRoute, RouteTransaction]:
        """Return the route to track and the transaction to submit."""
        tx = _quoted_transaction(route)
        if tx is not None:
            return route, tx

        try:
            tx = await self.provider.build_transaction(route, user_address, recipient_address)
        except RoutingError as e:
            raise SubmissionFailedError(
                f"{self.provider.name} could not build the transaction: {e}"
            ) from e

        if tx is None or not tx.has_calldata:
            raise SubmissionFailedError(
                f"No transaction data available for {self.provider.name} route {route.id}"
            )
        return route, tx

    async def check_status(self, route: UnifiedRoute, tx_hash: str) -> SettlementStatus:
        return await self.provider.get_settlement_status(route, tx_hash)


class SquidStrategy(ExecutionStrategy):
    """Squid routes need the quote's request id to be tracked across chains."""

    provider: SquidProvider

    def validate(self, route: UnifiedRoute) -> None:
        # Re-quoted routes are checked again in prepare
        if _quoted_transaction(route) is not None:
            _require_request_id(route)

    async def prepare(
        self,
        route: UnifiedRoute,
        user_address: str,
        recipient_address: Optional[str] = None,
    ) -> tuple[UnifiedRoute, RouteTransaction]:
        tx = _quoted_transaction(route)
        if tx is None:
            try:
                route = await self.provider.requote(route, user_address)
            except RoutingError as e:
                raise SubmissionFailedError(f"Squid re-quote failed: {e}") from e
            tx = _quoted_transaction(route)
            if tx is None:
                raise SubmissionFailedError(
                    f"No transaction data available for Squid route {route.id}"
                )

        _require_request_id(route)
        return route, tx


class LiFiStrategy(ExecutionStrategy):
    """LI.FI routes carry no call data; the first step is built on demand."""

    pass


class AcrossStrategy(ExecutionStrategy):
    """Across quotes include ``swapTx``; stale quotes are re-requested."""

    provider: AcrossProvider

    async def prepare(
        self,
        route: UnifiedRoute,
        user_address: str,
        recipient_address: Optional[str] = None,
    ) -> tuple[UnifiedRoute, RouteTransaction]:
        tx = _quoted_transaction(route)
        if tx is not None:
            return route, tx

        try:
            route = await self.provider.requote(route, user_address)
        except RoutingError as e:
            raise SubmissionFailedError(f"Across re-quote failed: {e}") from e
        tx = _quoted_transaction(route)
        if tx is None:
            raise SubmissionFailedError(
                f"No transaction data available for Across route {route.id}"
            )
        return route, tx


class GenericStrategy(ExecutionStrategy):
    """Fallback for providers without special handling (Socket, 1inch)."""

    pass


STRATEGIES: dict[ProviderId, type[ExecutionStrategy]] = {
    ProviderId.SQUID: SquidStrategy,
    ProviderId.LIFI: LiFiStrategy,
    ProviderId.ACROSS: AcrossStrategy,
}


def get_strategy(provider: RouteProvider) -> ExecutionStrategy:
    """Pick the execution strategy for a provider."""
    strategy_cls = STRATEGIES.get(provider.provider_id, GenericStrategy)
    return strategy_cls(provider)
