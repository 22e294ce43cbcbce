"""Request and response contracts for the web layer."""

from crosspay.web.contracts.quotes import (
    ComparisonSummaryResponse,
    ProviderInfo,
    ProvidersResponse,
    RouteQuoteRequest,
    RouteQuoteResponse,
    RouteResponse,
    RouteStepResponse,
)

__all__ = [
    "RouteQuoteRequest",
    "RouteQuoteResponse",
    "RouteResponse",
    "RouteStepResponse",
    "ComparisonSummaryResponse",
    "ProviderInfo",
    "ProvidersResponse",
]
