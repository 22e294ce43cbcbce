"""Route quote service.

This service queries routing providers for quotes but does NOT execute
routes. Execution requires the caller's wallet and happens client-side
through ``TransactionExecutor``.
"""

import logging
from typing import Optional

from crosspay.chains import get_token
from crosspay.routing.aggregator import RouteAggregator
from crosspay.routing.base import (
    NoRoutesFoundError,
    PaymentIntent,
    RecipientInfo,
    RoutingError,
    SenderInfo,
    TokenRef,
    UnifiedRoute,
)
from crosspay.routing.factory import get_aggregator
from crosspay.web.contracts.quotes import (
    ComparisonSummaryResponse,
    ProviderInfo,
    ProvidersResponse,
    RouteQuoteRequest,
    RouteQuoteResponse,
    RouteResponse,
)

logger = logging.getLogger(__name__)


def route_to_response(route: UnifiedRoute) -> RouteResponse:
    return RouteResponse.model_validate(route.to_dict())


class RouteService:
    """Read-only route quoting over the aggregator."""

    def __init__(self, aggregator: Optional[RouteAggregator] = None):
        self._aggregator = aggregator

    @property
    def aggregator(self) -> RouteAggregator:
        if self._aggregator is None:
            self._aggregator = get_aggregator()
        return self._aggregator

    def build_intent(self, request: RouteQuoteRequest) -> PaymentIntent:
        """Turn an API request into a payment intent.

        Raises:
            ValueError: source token decimals unknown
        """
        from_info = get_token(request.from_chain, request.from_token)
        to_info = get_token(request.to_chain, request.to_token)

        from_decimals = request.from_decimals
        if from_decimals is None:
            if from_info is None:
                raise ValueError(
                    f"Unknown token {request.from_token} on chain {request.from_chain}; "
                    "pass from_decimals"
                )
            from_decimals = from_info.decimals

        to_decimals = request.to_decimals
        if to_decimals is None:
            to_decimals = to_info.decimals if to_info else 18

        return PaymentIntent(
            sender=SenderInfo(
                address=request.sender_address,
                token=TokenRef(
                    address=request.from_token,
                    chain_id=request.from_chain,
                    symbol=from_info.symbol if from_info else "",
                    decimals=from_decimals,
                ),
                chain=request.from_chain,
                amount=format(request.amount, "f"),
            ),
            recipient=RecipientInfo(
                address=request.recipient_address or request.sender_address,
                token=TokenRef(
                    address=request.to_token,
                    chain_id=request.to_chain,
                    symbol=to_info.symbol if to_info else "",
                    decimals=to_decimals,
                ),
                chain=request.to_chain,
            ),
        )

    async def get_routes(self, request: RouteQuoteRequest) -> RouteQuoteResponse:
        """Get ranked routes for a payment."""
        try:
            intent = self.build_intent(request)
        except ValueError as e:
            return RouteQuoteResponse(success=False, error=str(e))

        try:
            comparison = await self.aggregator.find_best_routes(intent)
        except NoRoutesFoundError as e:
            return RouteQuoteResponse(success=False, errors=e.errors, error=str(e))
        except RoutingError as e:
            logger.error(f"Failed to get routes: {e}")
            return RouteQuoteResponse(success=False, error=str(e))

        summary = comparison.summary
        return RouteQuoteResponse(
            success=True,
            recommended=route_to_response(comparison.recommended),
            fastest=route_to_response(comparison.fastest),
            cheapest=route_to_response(comparison.cheapest),
            routes=[route_to_response(r) for r in comparison.all_routes],
            summary=ComparisonSummaryResponse(
                time_difference=summary.time_difference,
                cost_difference=summary.cost_difference,
                output_difference=summary.output_difference,
            ),
        )

    def get_providers(self) -> ProvidersResponse:
        return ProvidersResponse(
            providers=[
                ProviderInfo(id=p.provider_id.value, name=p.name)
                for p in self.aggregator.providers
            ]
        )
