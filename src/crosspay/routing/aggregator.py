"""Route aggregation: concurrent quoting across providers plus ranking."""

import asyncio
import logging
from dataclasses import replace
from typing import Optional

from crosspay.routing.base import (
    ComparisonSummary,
    NoRoutesFoundError,
    PaymentIntent,
    RouteComparison,
    RouteProvider,
    UnifiedRoute,
)

logger = logging.getLogger(__name__)

DEFAULT_QUOTE_TIMEOUT = 20.0


def rank_routes(routes: list[UnifiedRoute]) -> RouteComparison:
    """Pick the recommended, fastest and cheapest routes.

    ``max``/``min`` return the first extreme element, so ties go to the
    earlier route in ``routes`` (adapter declaration order).
    """
    if not routes:
        raise NoRoutesFoundError("No routes to rank")

    indices = range(len(routes))
    recommended_idx = max(indices, key=lambda i: int(routes[i].to_amount))
    fastest_idx = min(indices, key=lambda i: routes[i].estimated_time)
    cheapest_idx = min(indices, key=lambda i: routes[i].total_cost_usd)

    annotated = tuple(
        replace(
            route,
            is_recommended=i == recommended_idx,
            is_fastest=i == fastest_idx,
            is_cheapest=i == cheapest_idx,
        )
        for i, route in enumerate(routes)
    )

    recommended = annotated[recommended_idx]
    fastest = annotated[fastest_idx]
    cheapest = annotated[cheapest_idx]

    return RouteComparison(
        recommended=recommended,
        fastest=fastest,
        cheapest=cheapest,
        all_routes=annotated,
        summary=ComparisonSummary(
            time_difference=fastest.estimated_time - recommended.estimated_time,
            cost_difference=recommended.total_cost_usd - cheapest.total_cost_usd,
            output_difference=str(int(recommended.to_amount) - int(cheapest.to_amount)),
        ),
    )


class RouteAggregator:
    """Aggregates routes from multiple providers and ranks them."""

    def __init__(
        self,
        providers: Optional[list[RouteProvider]] = None,
        timeout: float = DEFAULT_QUOTE_TIMEOUT,
    ):
        self.providers: list[RouteProvider] = providers or []
        self.timeout = timeout

    def add_provider(self, provider: RouteProvider) -> None:
        """Add a routing provider (it ranks after those already added on ties)."""
        self.providers.append(provider)

    def get_provider(self, provider_id) -> Optional[RouteProvider]:
        for provider in self.providers:
            if provider.provider_id == provider_id:
                return provider
        return None

    async def find_best_routes(self, intent: PaymentIntent) -> RouteComparison:
        """Quote every provider and rank the combined result.

        Raises:
            NoRoutesFoundError: every provider failed or returned nothing
        """
        logger.info(
            f"Finding routes: {intent.sender.amount} {intent.sender.token.symbol or intent.sender.token.address} "
            f"chain {intent.sender.chain} -> chain {intent.recipient.chain}"
        )
        routes, errors = await self._collect_routes(intent)

        if not routes:
            if errors:
                logger.error(
                    f"No routes found. Errors: {'; '.join(f'{k}: {v}' for k, v in errors.items())}"
                )
            else:
                logger.warning("No provider supports this payment")
            raise NoRoutesFoundError("No routes found for this payment", errors=errors)

        comparison = rank_routes(routes)
        best = comparison.recommended
        logger.info(
            f"Got {len(routes)} route(s). Recommended: {best.provider_name} "
            f"({best.to_amount}, ~{best.estimated_time}s, ${best.total_cost_usd:.2f})"
        )
        return comparison

    async def get_all_routes(self, intent: PaymentIntent) -> list[UnifiedRoute]:
        """Un-ranked routes from every provider that succeeded."""
        routes, _ = await self._collect_routes(intent)
        return routes

    async def _quote(self, provider: RouteProvider, intent: PaymentIntent) -> list[UnifiedRoute]:
        logger.debug(f"Requesting routes from {provider.name}...")
        return await asyncio.wait_for(provider.get_routes(intent), timeout=self.timeout)

    async def _collect_routes(
        self, intent: PaymentIntent
    ) -> tuple[list[UnifiedRoute], dict[str, str]]:
        results = await asyncio.gather(
            *(self._quote(provider, intent) for provider in self.providers),
            return_exceptions=True,
        )

        routes: list[UnifiedRoute] = []
        errors: dict[str, str] = {}

        for provider, result in zip(self.providers, results):
            key = provider.provider_id.value
            if isinstance(result, asyncio.TimeoutError):
                error_msg = f"timed out after {self.timeout:g}s"
                logger.warning(f"{provider.name} quote failed: {error_msg}")
                errors[key] = error_msg
            elif isinstance(result, Exception):
                error_msg = f"{type(result).__name__}: {result}"
                logger.warning(f"{provider.name} quote failed: {error_msg}")
                errors[key] = error_msg
            elif isinstance(result, BaseException):
                raise result
            elif result:
                logger.info(f"{provider.name} returned {len(result)} route(s)")
                routes.extend(result)
            else:
                logger.debug(f"{provider.name} returned no routes")

        return routes, errors
