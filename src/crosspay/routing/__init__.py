"""Routing module for cross-chain route aggregation.

Providers:
- Squid Router: cross-chain swaps over Axelar/CCTP
- LI.FI: bridge and DEX aggregator
- Across Protocol: intent-based bridge
- Socket: multi-bridge aggregator
- 1inch: same-chain DEX aggregator
"""

from crosspay.routing.across import AcrossProvider
from crosspay.routing.aggregator import RouteAggregator, rank_routes
from crosspay.routing.base import (
    ComparisonSummary,
    IntentMetadata,
    NoRoutesFoundError,
    NormalizationError,
    PaymentIntent,
    ProviderAPIError,
    ProviderId,
    ProviderQuoteError,
    RecipientInfo,
    RouteComparison,
    RouteProvider,
    RouteStep,
    RouteTransaction,
    RoutingError,
    SenderInfo,
    SettlementState,
    SettlementStatus,
    StepType,
    TokenRef,
    UnifiedRoute,
)
from crosspay.routing.factory import (
    create_aggregator,
    create_provider,
    create_providers,
    get_aggregator,
)
from crosspay.routing.lifi import LiFiProvider
from crosspay.routing.oneinch import OneInchProvider
from crosspay.routing.socket_tech import SocketProvider
from crosspay.routing.squid import SquidProvider

__all__ = [
    # Model
    "TokenRef",
    "SenderInfo",
    "RecipientInfo",
    "IntentMetadata",
    "PaymentIntent",
    "ProviderId",
    "StepType",
    "RouteStep",
    "RouteTransaction",
    "UnifiedRoute",
    "ComparisonSummary",
    "RouteComparison",
    "SettlementState",
    "SettlementStatus",
    # Errors
    "RoutingError",
    "ProviderAPIError",
    "ProviderQuoteError",
    "NormalizationError",
    "NoRoutesFoundError",
    # Providers
    "RouteProvider",
    "SquidProvider",
    "LiFiProvider",
    "AcrossProvider",
    "SocketProvider",
    "OneInchProvider",
    # Aggregation
    "RouteAggregator",
    "rank_routes",
    "create_aggregator",
    "create_provider",
    "create_providers",
    "get_aggregator",
]
